"""Working tree status scanning.

This module partitions a working tree into the staged, unstaged, untracked
and conflicted buckets by parsing ``git status --porcelain=v2 -z`` output.
"""

from typing import Final, final

from gitstate.repository._common import IN_PROGRESS_HEADS, RepositoryComponent
from gitstate.repository._models import FileEntry, FileStatus, GitStatus, MergeState

_STATUS_CODES: Final[dict[str, FileStatus]] = {
    "M": FileStatus.MODIFIED,
    "T": FileStatus.TYPE_CHANGED,
    "A": FileStatus.ADDED,
    "D": FileStatus.DELETED,
    "R": FileStatus.RENAMED,
    "C": FileStatus.COPIED,
}


def _safe_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def parse_porcelain_v2(raw: str) -> GitStatus:
    """Parse ``git status --porcelain=v2 --branch -z`` output.

    Args:
        raw: NUL-separated status output.

    Returns:
        The status partition with every bucket sorted by path.
    """
    branch: str | None = None
    head: str | None = None
    upstream: str | None = None
    ahead = behind = 0
    staged: list[FileEntry] = []
    unstaged: list[FileEntry] = []
    untracked: list[FileEntry] = []
    conflicts: list[FileEntry] = []

    entries = raw.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if not entry:
            continue

        if entry.startswith("# "):
            parts = entry.split(" ")
            if len(parts) >= 3 and parts[1] == "branch.oid":
                head = None if parts[2] == "(initial)" else parts[2]
            elif len(parts) >= 3 and parts[1] == "branch.head":
                branch = None if parts[2] == "(detached)" else parts[2]
            elif len(parts) >= 3 and parts[1] == "branch.upstream":
                upstream = parts[2]
            elif len(parts) >= 4 and parts[1] == "branch.ab":
                ahead = _safe_int(parts[2].lstrip("+"))
                behind = _safe_int(parts[3].lstrip("-"))
            continue

        kind = entry[0]
        if kind == "?":
            untracked.append(FileEntry(path=entry[2:], status=FileStatus.UNTRACKED))
        elif kind == "u":
            # u XY sub m1 m2 m3 mW h1 h2 h3 path
            path = entry.split(" ", 10)[10]
            conflicts.append(FileEntry(path=path, status=FileStatus.CONFLICTED))
        elif kind in {"1", "2"}:
            if kind == "1":
                # 1 XY sub mH mI mW hH hI path
                parts = entry.split(" ", 8)
                path = parts[8]
                old_path = None
            else:
                # 2 XY sub mH mI mW hH hI Xscore path, followed by origPath
                parts = entry.split(" ", 9)
                path = parts[9]
                old_path = entries[i] if i < len(entries) else None
                i += 1
            index_code, worktree_code = parts[1][0], parts[1][1]
            if index_code != ".":
                staged.append(
                    FileEntry(
                        path=path,
                        status=_STATUS_CODES.get(index_code, FileStatus.MODIFIED),
                        staged=True,
                        old_path=old_path,
                        has_unstaged_changes=worktree_code != ".",
                    )
                )
            elif worktree_code != ".":
                unstaged.append(
                    FileEntry(
                        path=path,
                        status=_STATUS_CODES.get(worktree_code, FileStatus.MODIFIED),
                        old_path=old_path,
                    )
                )
        # "!" (ignored) entries are never requested

    def by_path(entry: FileEntry) -> str:
        return entry.path

    return GitStatus(
        branch=branch,
        head=head,
        upstream=upstream,
        ahead=ahead,
        behind=behind,
        staged=tuple(sorted(staged, key=by_path)),
        unstaged=tuple(sorted(unstaged, key=by_path)),
        untracked=tuple(sorted(untracked, key=by_path)),
        conflicts=tuple(sorted(conflicts, key=by_path)),
    )


@final
class WorkingTreeScanner(RepositoryComponent):
    """Computes the status partition of a working tree.

    Scanning has no side effects on the repository: git's opportunistic
    index refresh is disabled so that concurrent readers never take the
    index lock.
    """

    __slots__ = ()

    def scan(self) -> GitStatus:
        """Compute the current status.

        Returns:
            The status partition. Identical on-disk state and HEAD always
            produce an identical result.

        Raises:
            RepositoryNotFoundError: If the repository no longer exists.
        """
        raw = self._run(
            "--no-optional-locks",
            "status",
            "--porcelain=v2",
            "--branch",
            "-z",
            "--untracked-files=all",
        )
        return parse_porcelain_v2(raw)

    def merge_state(self, status: GitStatus) -> MergeState | None:
        """Describe the outstanding merge, if one exists.

        A merge is outstanding while MERGE_HEAD (or the equivalent marker of
        an interrupted rebase or cherry-pick) exists, or while any path is
        unmerged, e.g. after a conflicting stash application.

        Args:
            status: A status scanned from the same repository state.

        Returns:
            The merge state, or None if no merge is outstanding.
        """
        conflicts = tuple(entry.path for entry in status.conflicts)
        theirs: str | None = None
        for name in IN_PROGRESS_HEADS:
            theirs = self.special_head(name)
            if theirs is not None:
                break

        if theirs is None and not conflicts:
            return None

        ours = status.head or ""
        theirs = theirs or ours
        base: str | None = None
        if ours and theirs and ours != theirs:
            output = self._execute("merge-base", ours, theirs)
            base = (output.stdout.strip() or None) if output.ok else None

        return MergeState(ours=ours, theirs=theirs, base=base, conflicts=conflicts)

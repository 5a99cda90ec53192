"""Branch, merge, and remote management.

This module provides the RefStore, which owns every operation that moves
HEAD or rewrites refs: branch creation, switching, deletion and renaming,
merges and rebases, and remote configuration.
"""

import re
from typing import Final, final

from gitstate.exceptions import (
    DirtyWorkingTreeError,
    InvalidRefError,
    MergeInProgressError,
)
from gitstate.repository._common import (
    GitOutput,
    RepositoryComponent,
    is_overwrite_refusal,
    parse_paths_from_stderr,
    validate_branch_name,
)
from gitstate.repository._models import Branch, GitStatus, MergeResult, Remote, RemoteType

_AHEAD_RE: Final = re.compile(r"ahead (\d+)")
_BEHIND_RE: Final = re.compile(r"behind (\d+)")
_REMOTE_LINE_RE: Final = re.compile(r"^(\S+)\t(\S+) \((fetch|push)\)$")
_REMOTE_NAME_RE: Final = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

_BRANCH_FORMAT: Final = "%00".join(
    (
        "%(refname)",
        "%(refname:short)",
        "%(objectname)",
        "%(upstream:short)",
        "%(upstream:track)",
        "%(HEAD)",
        "%(contents:subject)",
    )
)


def parse_track(track: str) -> tuple[int, int, bool]:
    """Parse ``%(upstream:track)`` output.

    Args:
        track: Text such as ``[ahead 2, behind 1]`` or ``[gone]``.

    Returns:
        Tuple of (ahead, behind, gone).

    Examples:
        >>> parse_track("[ahead 2, behind 1]")
        (2, 1, False)
        >>> parse_track("[gone]")
        (0, 0, True)
    """
    ahead_match = _AHEAD_RE.search(track)
    behind_match = _BEHIND_RE.search(track)
    return (
        int(ahead_match.group(1)) if ahead_match else 0,
        int(behind_match.group(1)) if behind_match else 0,
        "gone" in track,
    )


def parse_branch_refs(raw: str) -> list[Branch]:
    """Parse ``git for-each-ref`` output produced with the branch format."""
    branches: list[Branch] = []
    for line in raw.splitlines():
        fields = line.split("\0")
        if len(fields) < 7:
            continue
        refname, short, sha, upstream, track, head_marker, subject = fields[:7]
        is_remote = refname.startswith("refs/remotes/")
        # Symbolic remote HEADs (origin/HEAD) are aliases, not branches.
        if is_remote and refname.endswith("/HEAD"):
            continue
        ahead, behind, gone = parse_track(track)
        branches.append(
            Branch(
                name=short,
                is_current=head_marker == "*",
                is_remote=is_remote,
                upstream=upstream or None,
                ahead=ahead,
                behind=behind,
                head=sha or None,
                subject=subject or None,
                gone=gone,
            )
        )
    return branches


def parse_remotes(raw: str) -> list[Remote]:
    """Parse ``git remote -v`` output into one entry per name and URL.

    A remote whose fetch and push URLs are identical is reported once with
    type ``both``.

    Examples:
        >>> parse_remotes("origin\\thttps://x (fetch)\\norigin\\thttps://x (push)")
        [Remote(name='origin', url='https://x', type=<RemoteType.BOTH: 'both'>)]
    """
    urls: dict[str, dict[str, str]] = {}
    for line in raw.splitlines():
        match = _REMOTE_LINE_RE.match(line.strip())
        if match is None:
            continue
        name, url, direction = match.groups()
        urls.setdefault(name, {})[direction] = url

    remotes: list[Remote] = []
    for name in sorted(urls):
        fetch_url = urls[name].get("fetch")
        push_url = urls[name].get("push")
        if fetch_url is not None and fetch_url == push_url:
            remotes.append(Remote(name=name, url=fetch_url, type=RemoteType.BOTH))
            continue
        if fetch_url is not None:
            remotes.append(Remote(name=name, url=fetch_url, type=RemoteType.FETCH))
        if push_url is not None:
            remotes.append(Remote(name=name, url=push_url, type=RemoteType.PUSH))
    return remotes


@final
class RefStore(RepositoryComponent):
    """Tracks branches, HEAD, remotes, and upstream tracking.

    All methods are synchronous and run a short sequence of git commands;
    callers serialize mutations so that at most one runs at a time.
    """

    __slots__ = ()

    # =========================================================================
    # Branch queries
    # =========================================================================

    def branches(self, *, include_remote: bool = False) -> list[Branch]:
        """List branches with upstream tracking information.

        The current branch of a repository without commits has no ref yet;
        it is still reported so that exactly one branch is current.

        Args:
            include_remote: Include remote-tracking branches.

        Returns:
            Local branches sorted by name, then remote branches.
        """
        patterns = ["refs/heads"]
        if include_remote:
            patterns.append("refs/remotes")
        raw = self._run("for-each-ref", f"--format={_BRANCH_FORMAT}", *patterns)
        branches = parse_branch_refs(raw)

        current = self.current_branch()
        if current is not None and not any(
            b.name == current and not b.is_remote for b in branches
        ):
            branches.append(Branch(name=current, is_current=True))

        return sorted(branches, key=lambda b: (b.is_remote, b.name))

    def upstream_of(self, branch: str) -> str | None:
        """Return the short upstream name (``origin/main``) of a branch."""
        output = self._execute(
            "rev-parse", "--abbrev-ref", "--symbolic-full-name", f"{branch}@{{upstream}}"
        )
        name = output.stdout.strip()
        return name if output.ok and name else None

    def branch_remote(self, branch: str) -> str | None:
        """Return the remote a branch tracks, if configured."""
        output = self._execute("config", "--get", f"branch.{branch}.remote")
        name = output.stdout.strip()
        return name if output.ok and name else None

    def branch_merge_ref(self, branch: str) -> str | None:
        """Return the upstream branch name (without ``refs/heads/``)."""
        output = self._execute("config", "--get", f"branch.{branch}.merge")
        ref = output.stdout.strip()
        if not output.ok or not ref:
            return None
        return ref.removeprefix("refs/heads/")

    # =========================================================================
    # Branch mutations
    # =========================================================================

    def create_branch(self, name: str, start_point: str | None = None) -> str:
        """Create a branch without checking it out.

        Args:
            name: New branch name.
            start_point: Revision the branch starts at (HEAD if None).

        Returns:
            The SHA the new branch points at.

        Raises:
            InvalidRefError: If the name is invalid or taken, or the start
                point does not resolve to a commit.
        """
        validate_branch_name(self._repo.git, name)
        if self.branch_exists(name):
            msg = f"Branch '{name}' already exists"
            raise InvalidRefError(msg, ref=name)

        target = start_point or "HEAD"
        sha = self.resolve_commit(target)
        if sha is None:
            msg = f"Cannot create branch '{name}': '{target}' is not a valid commit"
            raise InvalidRefError(msg, ref=target)

        _ = self._run("branch", name, sha)
        return sha

    def switch_branch(self, name: str, status: GitStatus, *, force: bool = False) -> None:
        """Check out an existing local branch.

        Without ``force`` the switch is refused when local changes touch
        paths that differ between HEAD and the target branch. With ``force``
        those local changes are discarded.

        Args:
            name: Branch to check out.
            status: The current working tree status.
            force: Discard conflicting local changes.

        Raises:
            InvalidRefError: If the branch does not exist.
            DirtyWorkingTreeError: If local changes would be overwritten.
        """
        if not self.branch_exists(name):
            msg = f"Branch '{name}' does not exist"
            raise InvalidRefError(msg, ref=name)
        if name == status.branch:
            return

        if force:
            _ = self._run("checkout", "--force", name, "--")
            return

        if status.conflicts:
            msg = "Cannot switch branches with unresolved conflicts"
            raise DirtyWorkingTreeError(
                msg, paths=tuple(entry.path for entry in status.conflicts)
            )

        overlap = self._local_changes(status) & self._changed_paths(status.head, name)
        if overlap:
            msg = f"Local changes would be overwritten by switching to '{name}'"
            raise DirtyWorkingTreeError(msg, paths=tuple(sorted(overlap)))

        output = self._execute("checkout", name, "--")
        if not output.ok:
            raise self._failure(output)

    def delete_branch(self, name: str, *, force: bool = False) -> None:
        """Delete a local branch.

        Raises:
            InvalidRefError: If the branch is current, missing, or (without
                ``force``) not merged.
        """
        if name == self.current_branch():
            msg = f"Cannot delete the current branch '{name}'"
            raise InvalidRefError(msg, ref=name)
        if not self.branch_exists(name):
            msg = f"Branch '{name}' does not exist"
            raise InvalidRefError(msg, ref=name)

        output = self._execute("branch", "-D" if force else "-d", name)
        if not output.ok:
            if "not fully merged" in output.stderr:
                msg = f"Branch '{name}' is not fully merged"
                raise InvalidRefError(msg, ref=name)
            raise self._failure(output)

    def rename_branch(self, old_name: str, new_name: str) -> None:
        """Rename a local branch. HEAD follows when the current branch moves.

        Raises:
            InvalidRefError: If ``old_name`` is missing or ``new_name`` is
                invalid or taken.
        """
        current = self.current_branch()
        if not self.branch_exists(old_name) and old_name != current:
            msg = f"Branch '{old_name}' does not exist"
            raise InvalidRefError(msg, ref=old_name)
        validate_branch_name(self._repo.git, new_name)
        if self.branch_exists(new_name):
            msg = f"Branch '{new_name}' already exists"
            raise InvalidRefError(msg, ref=new_name)

        _ = self._run("branch", "-m", old_name, new_name)

    def _local_changes(self, status: GitStatus) -> set[str]:
        paths: set[str] = set()
        for entry in (*status.staged, *status.unstaged):
            paths.add(entry.path)
            if entry.old_path is not None:
                paths.add(entry.old_path)
        return paths

    def _changed_paths(self, head: str | None, target: str) -> set[str]:
        """Paths whose content differs between ``head`` and ``target``."""
        if head is None:
            raw = self._run("ls-tree", "-r", "-z", "--name-only", target)
        else:
            raw = self._run("diff", "--no-renames", "--name-only", "-z", head, target, "--")
        return {p for p in raw.split("\0") if p}

    # =========================================================================
    # Merge and rebase
    # =========================================================================

    def merge(
        self,
        branch: str,
        *,
        no_ff: bool = False,
        squash: bool = False,
        env: dict[str, str] | None = None,
    ) -> MergeResult:
        """Merge ``branch`` into HEAD.

        Fast-forwards when possible unless ``no_ff`` is set. On conflicts the
        repository is left mid-merge (MERGE_HEAD and unmerged paths) for the
        caller to resolve or abort.

        Args:
            branch: Branch or revision to merge.
            no_ff: Always create a merge commit.
            squash: Stage the combined changes without committing.
            env: Commit identity environment.

        Returns:
            The merge result with conflicted paths on failure.

        Raises:
            MergeInProgressError: If a merge or rebase is already outstanding.
            InvalidRefError: If ``branch`` does not resolve to a commit.
            DirtyWorkingTreeError: If local changes would be overwritten.
        """
        self._ensure_no_operation_in_progress()
        if self.resolve_commit(branch) is None:
            msg = f"Cannot merge '{branch}': not a valid commit"
            raise InvalidRefError(msg, ref=branch)

        args = ["merge", "--no-edit"]
        if no_ff:
            args.append("--no-ff")
        if squash:
            args.append("--squash")
        args.append(branch)
        return self._conflict_aware(self._execute(*args, env=env))

    def abort_merge(self) -> None:
        """Abandon an outstanding merge and restore the pre-merge state."""
        _ = self._run("merge", "--abort")

    def rebase(self, branch: str, *, env: dict[str, str] | None = None) -> MergeResult:
        """Replay the current branch onto ``branch``.

        Raises:
            MergeInProgressError: If a merge or rebase is already outstanding.
            InvalidRefError: If ``branch`` does not resolve to a commit.
            DirtyWorkingTreeError: If the working tree has local changes.
        """
        self._ensure_no_operation_in_progress()
        if self.resolve_commit(branch) is None:
            msg = f"Cannot rebase onto '{branch}': not a valid commit"
            raise InvalidRefError(msg, ref=branch)

        output = self._execute("rebase", branch, env=env)
        if not output.ok and (
            "unstaged changes" in output.stderr or "uncommitted changes" in output.stderr
        ):
            dirty = self._run("diff", "--name-only", "-z", "HEAD", "--")
            msg = "Cannot rebase with local changes"
            raise DirtyWorkingTreeError(msg, paths=tuple(sorted(p for p in dirty.split("\0") if p)))
        return self._conflict_aware(output)

    def continue_rebase(self, *, env: dict[str, str] | None = None) -> MergeResult:
        """Resume a rebase after its conflicts have been staged.

        Raises:
            MergeInProgressError: If conflicted paths remain.
        """
        conflicts = self.conflicted_paths()
        if conflicts:
            msg = "Resolve all conflicts before continuing the rebase"
            raise MergeInProgressError(msg, conflicts=conflicts)
        return self._conflict_aware(self._execute("rebase", "--continue", env=env))

    def abort_rebase(self) -> None:
        """Abandon an outstanding rebase and restore the original branch."""
        _ = self._run("rebase", "--abort")

    def _ensure_no_operation_in_progress(self) -> None:
        if self.special_head("MERGE_HEAD") is not None:
            msg = "A merge is already in progress"
            raise MergeInProgressError(msg, conflicts=self.conflicted_paths())
        if (self.git_dir / "rebase-merge").is_dir() or (self.git_dir / "rebase-apply").is_dir():
            msg = "A rebase is already in progress"
            raise MergeInProgressError(msg, conflicts=self.conflicted_paths())

    def _conflict_aware(self, output: GitOutput) -> MergeResult:
        """Turn a merge-like invocation into a MergeResult."""
        if output.ok:
            summary = output.stdout.strip().splitlines()
            return MergeResult(success=True, message=summary[-1] if summary else None)

        conflicts = self.conflicted_paths()
        if conflicts:
            return MergeResult(
                success=False,
                conflicts=conflicts,
                message="Automatic merge failed; fix conflicts and then commit the result",
            )
        if is_overwrite_refusal(output.stderr):
            msg = "Local changes would be overwritten"
            raise DirtyWorkingTreeError(msg, paths=parse_paths_from_stderr(output.stderr))
        raise self._failure(output)

    # =========================================================================
    # Remotes
    # =========================================================================

    def remotes(self) -> list[Remote]:
        """List configured remotes sorted by name."""
        return parse_remotes(self._run("remote", "-v"))

    def remote_names(self) -> list[str]:
        """Names of the configured remotes."""
        return [name for name in self._run("remote").splitlines() if name]

    def add_remote(self, name: str, url: str) -> None:
        """Add a remote.

        Raises:
            InvalidRefError: If the name is invalid or already configured.
        """
        if not _REMOTE_NAME_RE.match(name) or not self._execute(
            "check-ref-format", f"refs/remotes/{name}/HEAD"
        ).ok:
            msg = f"Invalid remote name: {name!r}"
            raise InvalidRefError(msg, ref=name)
        if not url.strip():
            msg = f"Remote '{name}' needs a URL"
            raise InvalidRefError(msg, ref=name)
        if name in self.remote_names():
            msg = f"Remote '{name}' already exists"
            raise InvalidRefError(msg, ref=name)

        _ = self._run("remote", "add", name, url)

    def remove_remote(self, name: str) -> None:
        """Remove a remote and its remote-tracking branches.

        Raises:
            InvalidRefError: If no such remote is configured.
        """
        if name not in self.remote_names():
            msg = f"Remote '{name}' does not exist"
            raise InvalidRefError(msg, ref=name)
        _ = self._run("remote", "remove", name)

    def default_remote(self, branch: str | None = None) -> str | None:
        """Pick the remote for network operations.

        Uses the branch's configured remote, then ``origin``, then the only
        configured remote.
        """
        if branch is not None and (tracked := self.branch_remote(branch)) is not None:
            return tracked
        names = self.remote_names()
        if "origin" in names:
            return "origin"
        if len(names) == 1:
            return names[0]
        return None

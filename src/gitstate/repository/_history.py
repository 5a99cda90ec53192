"""Commit history, diffs, and tags.

History and diff queries only read the object database, so they may run
concurrently with each other and with status scans.
"""

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Final, final

from gitstate.exceptions import InvalidRefError
from gitstate.repository._common import RepositoryComponent
from gitstate.repository._models import (
    CommitInfo,
    DiffHunk,
    DiffLine,
    DiffLineKind,
    FileDiff,
    Tag,
)

# Field and record separators for `git log` output. Commit messages never
# contain these control characters.
_FS: Final = "\x1f"
_RS: Final = "\x1e"
_LOG_FORMAT: Final = _FS.join(("%H", "%h", "%an", "%ae", "%cI", "%P", "%D", "%B")) + _RS

_TAG_FORMAT: Final = "%00".join(
    (
        "%(refname:short)",
        "%(objecttype)",
        "%(objectname)",
        "%(*objectname)",
        "%(creatordate:unix)",
        "%(taggername)",
        "%(contents:subject)",
    )
)

_HUNK_RE: Final = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$")
_DIFF_GIT_RE: Final = re.compile(r"^diff --git a/(.+) b/(.+)$")


def parse_refs_decoration(decoration: str) -> tuple[str, ...]:
    """Split a ``%D`` decoration into ref names.

    Examples:
        >>> parse_refs_decoration("HEAD -> main, tag: v1.0, origin/main")
        ('HEAD', 'main', 'tag: v1.0', 'origin/main')
    """
    refs: list[str] = []
    for part in decoration.split(","):
        name = part.strip()
        if not name:
            continue
        if name.startswith("HEAD -> "):
            refs.extend(("HEAD", name.removeprefix("HEAD -> ")))
        else:
            refs.append(name)
    return tuple(refs)


def parse_log(raw: str) -> list[CommitInfo]:
    """Parse ``git log`` output produced with the history format."""
    commits: list[CommitInfo] = []
    for record in raw.split(_RS):
        record = record.lstrip("\n")
        if not record:
            continue
        fields = record.split(_FS)
        if len(fields) < 8:
            continue
        sha, short, author, email, date, parents, decoration, body = fields[:8]
        commits.append(
            CommitInfo(
                hash=sha,
                short_hash=short,
                author=author,
                email=email,
                date=datetime.fromisoformat(date),
                message=body.rstrip("\n"),
                refs=parse_refs_decoration(decoration),
                parents=tuple(parents.split()),
            )
        )
    return commits


@dataclass(slots=True)
class _HunkBuilder:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    header: str
    old_cursor: int
    new_cursor: int
    lines: list[DiffLine] = field(default_factory=list)

    @property
    def active(self) -> bool:
        """True while the hunk still expects lines."""
        consumed_old = self.old_cursor - self.old_start
        consumed_new = self.new_cursor - self.new_start
        return consumed_old < self.old_lines or consumed_new < self.new_lines

    def add(self, line: str) -> None:
        marker, content = line[:1], line[1:]
        if marker == "+":
            self.lines.append(DiffLine(DiffLineKind.ADDITION, content, None, self.new_cursor))
            self.new_cursor += 1
        elif marker == "-":
            self.lines.append(DiffLine(DiffLineKind.DELETION, content, self.old_cursor, None))
            self.old_cursor += 1
        else:
            self.lines.append(
                DiffLine(DiffLineKind.CONTEXT, content, self.old_cursor, self.new_cursor)
            )
            self.old_cursor += 1
            self.new_cursor += 1

    def build(self) -> DiffHunk:
        return DiffHunk(
            old_start=self.old_start,
            old_lines=self.old_lines,
            new_start=self.new_start,
            new_lines=self.new_lines,
            header=self.header,
            lines=tuple(self.lines),
        )


@dataclass(slots=True)
class _FileBuilder:
    path: str
    old_path: str
    is_binary: bool = False
    is_new: bool = False
    is_deleted: bool = False
    hunks: list[DiffHunk] = field(default_factory=list)
    current: _HunkBuilder | None = None

    def close_hunk(self) -> None:
        if self.current is not None:
            self.hunks.append(self.current.build())
            self.current = None

    def build(self) -> FileDiff:
        self.close_hunk()
        return FileDiff(
            path=self.path,
            old_path=None if self.is_new else self.old_path,
            hunks=tuple(self.hunks),
            is_binary=self.is_binary,
            is_new=self.is_new,
            is_deleted=self.is_deleted,
        )


def parse_diff(raw: str) -> list[FileDiff]:  # noqa: C901, PLR0912
    """Parse unified diff output from ``git diff``.

    Args:
        raw: Output of ``git diff`` (without color).

    Returns:
        One FileDiff per file, in output order.
    """
    files: list[FileDiff] = []
    current: _FileBuilder | None = None

    for line in raw.split("\n"):
        if line.startswith("diff --git "):
            if current is not None:
                files.append(current.build())
            match = _DIFF_GIT_RE.match(line)
            old_path, path = match.groups() if match else ("", "")
            current = _FileBuilder(path=path, old_path=old_path)
            continue
        if current is None:
            continue

        hunk = current.current
        if hunk is not None and hunk.active and line[:1] in {" ", "+", "-"}:
            hunk.add(line)
            continue
        if line.startswith("\\"):
            # "\ No newline at end of file"
            continue

        if line.startswith("@@"):
            current.close_hunk()
            hunk_match = _HUNK_RE.match(line)
            if hunk_match is None:
                continue
            old_start, old_lines, new_start, new_lines, header = hunk_match.groups()
            current.current = _HunkBuilder(
                old_start=int(old_start),
                old_lines=int(old_lines) if old_lines is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_lines) if new_lines is not None else 1,
                header=header.strip(),
                old_cursor=int(old_start),
                new_cursor=int(new_start),
            )
        elif line.startswith("new file mode"):
            current.is_new = True
        elif line.startswith("deleted file mode"):
            current.is_deleted = True
        elif line.startswith("rename from "):
            current.old_path = line.removeprefix("rename from ")
        elif line.startswith("rename to "):
            current.path = line.removeprefix("rename to ")
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            current.is_binary = True
        elif line.startswith("--- ") and line != "--- /dev/null":
            current.old_path = line.removeprefix("--- ").removeprefix("a/")
        elif line.startswith("+++ ") and line != "+++ /dev/null":
            current.path = line.removeprefix("+++ ").removeprefix("b/")

    if current is not None:
        files.append(current.build())
    return files


def parse_tags(raw: str) -> list[Tag]:
    """Parse ``git for-each-ref refs/tags`` output produced with the tag format."""
    tags: list[Tag] = []
    for line in raw.splitlines():
        fields = line.split("\0")
        if len(fields) < 7:
            continue
        name, object_type, sha, peeled, created, tagger, subject = fields[:7]
        annotated = object_type == "tag"
        tags.append(
            Tag(
                name=name,
                commit=peeled if annotated and peeled else sha,
                date=datetime.fromtimestamp(int(created), tz=UTC) if created else None,
                message=subject if annotated else None,
                author=tagger if annotated and tagger else None,
            )
        )
    return sorted(tags, key=lambda t: t.name)


@final
class HistoryReader(RepositoryComponent):
    """Reads commit history, diffs, and tags."""

    __slots__ = ()

    def commits(  # noqa: PLR0913
        self,
        rev: str,
        *,
        max_count: int,
        since: datetime | None = None,
        until: datetime | None = None,
        author: str | None = None,
        grep: str | None = None,
    ) -> list[CommitInfo]:
        """List commits reachable from ``rev``, newest first by commit time.

        Args:
            rev: Revision to start from.
            max_count: Maximum number of commits to return.
            since: Only commits newer than this.
            until: Only commits older than this.
            author: Only commits whose author matches this pattern.
            grep: Only commits whose message matches this pattern.

        Returns:
            The matching commits.

        Raises:
            InvalidRefError: If ``rev`` does not name a commit.
        """
        sha = self.resolve_commit(rev)
        if sha is None:
            msg = f"Unknown revision: {rev!r}"
            raise InvalidRefError(msg, ref=rev)

        args = ["log", "--date-order", f"--max-count={max_count}", f"--format={_LOG_FORMAT}"]
        if since is not None:
            args.append(f"--since={since.isoformat()}")
        if until is not None:
            args.append(f"--until={until.isoformat()}")
        if author:
            args.append(f"--author={author}")
        if grep:
            args.append(f"--grep={grep}")
        args.extend((sha, "--"))
        return parse_log(self._run(*args))

    def diff(
        self,
        *,
        staged: bool = False,
        path: str | None = None,
        commit1: str | None = None,
        commit2: str | None = None,
    ) -> list[FileDiff]:
        """Diff the working tree, index, or commits.

        Args:
            staged: Compare the index with HEAD instead of the working tree
                with the index.
            path: Restrict the diff to one path.
            commit1: Compare against this commit.
            commit2: With ``commit1``, compare the two commits.

        Returns:
            Parsed per-file diffs.

        Raises:
            InvalidRefError: If a commit does not resolve.
        """
        args = ["diff", "--no-color", "--no-ext-diff", "--find-renames"]
        if staged:
            args.append("--cached")
        for commit in (commit1, commit2):
            if commit is None:
                continue
            if self.resolve_commit(commit) is None:
                msg = f"Unknown revision: {commit!r}"
                raise InvalidRefError(msg, ref=commit)
            args.append(commit)
        args.append("--")
        if path:
            args.append(path)
        return parse_diff(self._run(*args))

    def tags(self) -> list[Tag]:
        """List tags sorted by name."""
        return parse_tags(self._run("for-each-ref", f"--format={_TAG_FORMAT}", "refs/tags"))

    def create_tag(
        self,
        name: str,
        *,
        message: str | None = None,
        commit: str | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """Create a lightweight tag, or an annotated one when ``message`` is set.

        Raises:
            InvalidRefError: If the name is invalid or taken, or the commit
                does not resolve.
        """
        if not name or name.startswith("-") or not self._execute(
            "check-ref-format", f"refs/tags/{name}"
        ).ok:
            msg = f"Invalid tag name: {name!r}"
            raise InvalidRefError(msg, ref=name)
        if self._execute("show-ref", "--verify", "--quiet", f"refs/tags/{name}").ok:
            msg = f"Tag '{name}' already exists"
            raise InvalidRefError(msg, ref=name)
        target = commit or "HEAD"
        sha = self.resolve_commit(target)
        if sha is None:
            msg = f"Cannot tag '{target}': not a valid commit"
            raise InvalidRefError(msg, ref=target)

        if message:
            _ = self._run("tag", "--annotate", f"--message={message}", name, sha, env=env)
        else:
            _ = self._run("tag", name, sha)

    def delete_tag(self, name: str) -> None:
        """Delete a tag.

        Raises:
            InvalidRefError: If the tag does not exist.
        """
        if not self._execute("show-ref", "--verify", "--quiet", f"refs/tags/{name}").ok:
            msg = f"Tag '{name}' does not exist"
            raise InvalidRefError(msg, ref=name)
        _ = self._run("tag", "--delete", name)

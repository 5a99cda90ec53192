# ruff: noqa: TC003  # datetime needed at runtime for dataclass fields
"""gitstate repository models.

This module defines the immutable data structures that describe a working
tree's repository state: file status partitions, branches, remotes, commits,
stashes, tags, merge state, and parsed diffs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class FileStatus(StrEnum):
    """Change kind of a single path."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    TYPE_CHANGED = "type_changed"
    UNTRACKED = "untracked"
    CONFLICTED = "conflicted"


class RemoteType(StrEnum):
    """Direction a remote URL is configured for."""

    FETCH = "fetch"
    PUSH = "push"
    BOTH = "both"


class DiffLineKind(StrEnum):
    """Kind of a line inside a diff hunk."""

    CONTEXT = "context"
    ADDITION = "addition"
    DELETION = "deletion"


@dataclass(frozen=True, slots=True)
class FileEntry:
    """A single path in one of the status buckets.

    Attributes:
        path: Repository-relative path (POSIX separators).
        status: The kind of change.
        staged: True if the entry belongs to the staged bucket.
        old_path: Previous path for renames and copies, None otherwise.
        has_unstaged_changes: True if a staged path was modified again in the
            working tree after being staged.
    """

    path: str
    status: FileStatus
    staged: bool = False
    old_path: str | None = None
    has_unstaged_changes: bool = False


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Partition of the working tree into status buckets.

    Every changed path appears in exactly one of ``staged``, ``unstaged``,
    ``untracked`` or ``conflicts``. Each bucket is sorted by path.

    Attributes:
        branch: Current branch name, or None when HEAD is detached.
        head: Commit SHA of HEAD, or None for an unborn branch.
        upstream: Upstream tracking ref (e.g. "origin/main"), if any.
        ahead: Commits on the branch not on its upstream.
        behind: Commits on the upstream not on the branch.
        staged: Paths with changes recorded in the index.
        unstaged: Tracked paths with working-tree-only changes.
        untracked: Paths not known to the index.
        conflicts: Paths with unresolved merge conflicts.
    """

    branch: str | None = None
    head: str | None = None
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    staged: tuple[FileEntry, ...] = ()
    unstaged: tuple[FileEntry, ...] = ()
    untracked: tuple[FileEntry, ...] = ()
    conflicts: tuple[FileEntry, ...] = ()

    @property
    def clean(self) -> bool:
        """True if all four buckets are empty."""
        return not (self.staged or self.unstaged or self.untracked or self.conflicts)

    @property
    def detached(self) -> bool:
        """True if HEAD points at a commit rather than a branch."""
        return self.branch is None and self.head is not None

    @property
    def staged_paths(self) -> list[str]:
        """Paths in the staged bucket."""
        return [entry.path for entry in self.staged]

    @property
    def unstaged_paths(self) -> list[str]:
        """Paths in the unstaged bucket."""
        return [entry.path for entry in self.unstaged]

    @property
    def untracked_paths(self) -> list[str]:
        """Paths in the untracked bucket."""
        return [entry.path for entry in self.untracked]

    @property
    def conflict_paths(self) -> list[str]:
        """Paths in the conflicts bucket."""
        return [entry.path for entry in self.conflicts]


@dataclass(frozen=True, slots=True)
class Branch:
    """A local or remote-tracking branch.

    Attributes:
        name: Short branch name ("main", "origin/main" for remote branches).
        is_current: True for the branch HEAD points at.
        is_remote: True for remote-tracking branches.
        upstream: Short name of the upstream branch, if configured.
        ahead: Commits not on the upstream.
        behind: Commits on the upstream not on this branch.
        head: Commit SHA the branch points at, None for an unborn branch.
        subject: Subject line of the branch tip commit.
        gone: True if the configured upstream no longer exists.
    """

    name: str
    is_current: bool = False
    is_remote: bool = False
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    head: str | None = None
    subject: str | None = None
    gone: bool = False


@dataclass(frozen=True, slots=True)
class Remote:
    """A configured remote.

    Attributes:
        name: Remote name.
        url: Remote URL.
        type: Whether the URL is used for fetch, push, or both.
    """

    name: str
    url: str
    type: RemoteType = RemoteType.BOTH


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Information about a single commit.

    Attributes:
        hash: Full 40-character commit SHA hex string.
        short_hash: Abbreviated SHA.
        author: Author name.
        email: Author email.
        date: Commit timestamp (timezone aware).
        message: Complete commit message (subject + body).
        refs: Branch and tag names pointing at this commit.
        parents: SHA hex strings of parent commits.
    """

    hash: str
    short_hash: str
    author: str
    email: str
    date: datetime
    message: str
    refs: tuple[str, ...] = ()
    parents: tuple[str, ...] = ()

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True, slots=True)
class StashEntry:
    """A saved working-tree snapshot.

    Attributes:
        index: Stack position, 0 is the most recent.
        message: Stash description.
        branch: Branch the stash was created on, if recorded.
        date: When the stash was created.
    """

    index: int
    message: str
    branch: str | None
    date: datetime

    @property
    def ref(self) -> str:
        """The ``stash@{n}`` reference for this entry."""
        return f"stash@{{{self.index}}}"


@dataclass(frozen=True, slots=True)
class Tag:
    """A tag.

    Attributes:
        name: Tag name.
        commit: SHA of the tagged commit.
        date: Tag (or tagged commit) date.
        message: Annotation message for annotated tags.
        author: Tagger for annotated tags.
    """

    name: str
    commit: str
    date: datetime | None = None
    message: str | None = None
    author: str | None = None


@dataclass(frozen=True, slots=True)
class MergeState:
    """An outstanding merge.

    Attributes:
        in_progress: Always True while the state exists.
        ours: SHA of HEAD when the merge started.
        theirs: SHA of the commit being merged in.
        base: SHA of the merge base, if one exists.
        conflicts: Paths that still have unresolved conflicts.
    """

    ours: str
    theirs: str
    base: str | None = None
    conflicts: tuple[str, ...] = ()
    in_progress: bool = True

    @property
    def resolved(self) -> bool:
        """True once every conflicted path has been staged."""
        return not self.conflicts


@dataclass(frozen=True, slots=True)
class MergeResult:
    """Outcome of a merge, rebase, or stash application.

    Attributes:
        success: True if the operation completed without conflicts.
        conflicts: Paths left in a conflicted state.
        message: Optional human-readable detail.
    """

    success: bool
    conflicts: tuple[str, ...] = ()
    message: str | None = None


@dataclass(frozen=True, slots=True)
class DiffLine:
    """One line of a diff hunk."""

    kind: DiffLineKind
    content: str
    old_lineno: int | None = None
    new_lineno: int | None = None


@dataclass(frozen=True, slots=True)
class DiffHunk:
    """A contiguous block of changes.

    Attributes:
        old_start: First line in the old file.
        old_lines: Line count in the old file.
        new_start: First line in the new file.
        new_lines: Line count in the new file.
        header: Section heading git printed after the range, if any.
        lines: The hunk lines.
    """

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    header: str = ""
    lines: tuple[DiffLine, ...] = ()


@dataclass(frozen=True, slots=True)
class FileDiff:
    """Parsed diff of a single file.

    Attributes:
        path: Path after the change.
        old_path: Path before the change (differs from ``path`` for renames).
        hunks: Parsed hunks (empty for binary files).
        is_binary: True if git reported a binary difference.
        is_new: True if the file was added.
        is_deleted: True if the file was deleted.
    """

    path: str
    old_path: str | None = None
    hunks: tuple[DiffHunk, ...] = field(default=())
    is_binary: bool = False
    is_new: bool = False
    is_deleted: bool = False

    @property
    def is_renamed(self) -> bool:
        """True if the file moved."""
        return self.old_path is not None and self.old_path != self.path

    @property
    def additions(self) -> int:
        """Number of added lines."""
        return sum(1 for h in self.hunks for line in h.lines if line.kind is DiffLineKind.ADDITION)

    @property
    def deletions(self) -> int:
        """Number of deleted lines."""
        return sum(1 for h in self.hunks for line in h.lines if line.kind is DiffLineKind.DELETION)

"""Stash stack management.

The stash is a LIFO stack of saved working-tree snapshots. Index 0 is the
most recent entry; pushing shifts existing entries up by one and dropping
an entry shifts the entries above it down by one.
"""

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, final

from git import Repo  # noqa: TC002 - Used at runtime in annotations

from gitstate.exceptions import (
    DirtyWorkingTreeError,
    InvalidRefError,
    MergeConflictError,
    MergeInProgressError,
    NoChangesToStashError,
)
from gitstate.repository._common import (
    RepositoryComponent,
    is_overwrite_refusal,
    parse_paths_from_stderr,
    stash_index,
)
from gitstate.repository._models import GitStatus, StashEntry

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

_SUBJECT_RE: Final = re.compile(r"^(?:WIP on|On) ([^:]+): (.*)$", re.DOTALL)


def parse_stash_list(raw: str) -> list[StashEntry]:
    """Parse ``git stash list --format=%gd%x00%gs%x00%ct`` output.

    Subjects look like ``On main: message`` for named stashes and
    ``WIP on main: abc1234 subject`` otherwise; the branch is split off.
    """
    entries: list[StashEntry] = []
    for line in raw.splitlines():
        fields = line.split("\0")
        if len(fields) < 3:
            continue
        selector, subject, timestamp = fields[:3]
        index = stash_index(selector)
        if index is None:
            continue
        match = _SUBJECT_RE.match(subject)
        branch = match.group(1) if match else None
        message = match.group(2) if match else subject
        try:
            date = datetime.fromtimestamp(int(timestamp), tz=UTC)
        except ValueError:
            date = datetime.fromtimestamp(0, tz=UTC)
        entries.append(StashEntry(index=index, message=message, branch=branch, date=date))
    return sorted(entries, key=lambda e: e.index)


@final
class StashStack(RepositoryComponent):
    """Ordered LIFO collection of saved working-tree snapshots."""

    __slots__ = ("_logger",)

    def __init__(
        self,
        repo: Repo,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the stash stack.

        Args:
            repo: The repository to operate on.
            logger: Optional logger for recovery notices.
        """
        super().__init__(repo)
        self._logger = logger

    def entries(self) -> list[StashEntry]:
        """Return the stash entries, most recent first."""
        return parse_stash_list(self._run("stash", "list", "--format=%gd%x00%gs%x00%ct"))

    def push(
        self,
        status: GitStatus,
        message: str | None = None,
        *,
        include_untracked: bool = False,
        env: dict[str, str] | None = None,
    ) -> StashEntry:
        """Save staged and unstaged changes as a new entry at index 0.

        Afterwards the working tree is clean relative to HEAD (untracked
        files stay unless ``include_untracked`` is set).

        Args:
            status: The current working tree status.
            message: Optional stash description.
            include_untracked: Also stash untracked files.
            env: Commit identity environment.

        Returns:
            The new entry.

        Raises:
            MergeInProgressError: If conflicted paths exist.
            NoChangesToStashError: If there is nothing to stash.
        """
        if status.conflicts:
            msg = "Cannot stash while conflicts are unresolved"
            raise MergeInProgressError(
                msg, conflicts=tuple(entry.path for entry in status.conflicts)
            )
        has_changes = bool(status.staged or status.unstaged) or (
            include_untracked and bool(status.untracked)
        )
        if not has_changes:
            msg = "No local changes to stash"
            raise NoChangesToStashError(msg)
        if status.head is None:
            msg = "Cannot stash before the first commit"
            raise NoChangesToStashError(msg)

        args = ["stash", "push"]
        if include_untracked:
            args.append("--include-untracked")
        if message:
            args.extend(["--message", message])
        _ = self._run(*args, env=env)
        return self.entries()[0]

    def apply(self, index: int = 0) -> None:
        """Reapply an entry, keeping it on the stack.

        The staged/unstaged split of the entry is restored. If the index part
        cannot be restored cleanly the changes are applied to the working
        tree only.

        Raises:
            InvalidRefError: If ``index`` is out of bounds.
            MergeConflictError: If applying produced conflicts.
            DirtyWorkingTreeError: If local changes would be overwritten.
        """
        ref = self._entry(index).ref
        output = self._execute("stash", "apply", "--index", ref)
        if not output.ok and "conflicts in index" in output.stderr.lower():
            if self._logger is not None:
                self._logger.warning("stash_index_not_restored", stash=ref)
            output = self._execute("stash", "apply", ref)
        if output.ok:
            return

        conflicts = self.conflicted_paths()
        if conflicts:
            msg = f"Applying {ref} produced conflicts"
            raise MergeConflictError(msg, conflicts=conflicts)
        if is_overwrite_refusal(output.stderr):
            msg = f"Local changes would be overwritten by applying {ref}"
            raise DirtyWorkingTreeError(msg, paths=parse_paths_from_stderr(output.stderr))
        raise self._failure(output)

    def pop(self, index: int = 0) -> None:
        """Apply an entry and drop it only if it applied without conflicts.

        A failed pop leaves the entry on the stack, so retrying is safe.

        Raises:
            InvalidRefError: If ``index`` is out of bounds.
            MergeConflictError: If applying produced conflicts.
            DirtyWorkingTreeError: If local changes would be overwritten.
        """
        self.apply(index)
        self.drop(index)

    def drop(self, index: int) -> None:
        """Remove an entry unconditionally.

        Raises:
            InvalidRefError: If ``index`` is out of bounds.
        """
        _ = self._run("stash", "drop", "--quiet", self._entry(index).ref)

    def _entry(self, index: int) -> StashEntry:
        entries = self.entries()
        if index < 0 or index >= len(entries):
            msg = f"Stash index {index} is out of range (stack has {len(entries)} entries)"
            raise InvalidRefError(msg, ref=f"stash@{{{index}}}")
        return entries[index]

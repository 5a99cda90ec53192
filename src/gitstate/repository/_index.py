"""Staging area and commit operations."""

from typing import Final, final

from gitstate.exceptions import (
    InvalidRefError,
    MergeInProgressError,
    NoStagedChangesError,
)
from gitstate.repository._common import RepositoryComponent
from gitstate.repository._models import GitStatus

# Operations that record their own commits when continued.
_SEQUENCER_HEADS: Final = {"REBASE_HEAD": "a rebase", "CHERRY_PICK_HEAD": "a cherry-pick"}


@final
class StagingArea(RepositoryComponent):
    """Moves changes between the working tree, the index, and HEAD."""

    __slots__ = ()

    def add(self, paths: list[str]) -> None:
        """Stage the given paths, including deletions.

        Staging an already staged path is a no-op.

        Raises:
            GitCommandFailedError: If a path matches nothing.
        """
        if not paths:
            return
        _ = self._run("add", "--all", "--", *paths)

    def add_all(self) -> None:
        """Stage every change in the working tree, including untracked files."""
        _ = self._run("add", "--all")

    def unstage(self, paths: list[str]) -> None:
        """Remove paths from the index, keeping working-tree content.

        On a branch without commits the paths become untracked.
        """
        if not paths:
            return
        if self.head_sha() is None:
            _ = self._run("rm", "--cached", "-r", "--quiet", "--ignore-unmatch", "--", *paths)
        else:
            _ = self._run("reset", "--quiet", "HEAD", "--", *paths)

    def discard(self, paths: list[str], status: GitStatus) -> None:
        """Throw away working-tree changes to the given paths.

        Tracked paths are restored from the index, so staged content
        survives. Untracked paths are deleted.
        """
        untracked = {entry.path for entry in status.untracked}
        to_clean = [p for p in paths if p in untracked]
        to_restore = [p for p in paths if p not in untracked]
        if to_restore:
            _ = self._run("checkout", "--", *to_restore)
        if to_clean:
            _ = self._run("clean", "--force", "--quiet", "--", *to_clean)

    def commit(
        self,
        message: str,
        status: GitStatus,
        *,
        amend: bool = False,
        sign_off: bool = False,
        author: str | None = None,
        env: dict[str, str] | None = None,
    ) -> str:
        """Record the staged changes as a new commit.

        While MERGE_HEAD exists the commit concludes the merge, so it may be
        empty. Commits are refused while a rebase or cherry-pick is
        interrupted; those continue through their own commands.

        Args:
            message: Commit message.
            status: The current working tree status.
            amend: Replace the tip commit instead of adding one.
            sign_off: Append a Signed-off-by trailer.
            author: Override author as ``Name <email>``.
            env: Committer identity environment.

        Returns:
            The new HEAD SHA.

        Raises:
            ValueError: If the message is empty.
            MergeInProgressError: If conflicted paths remain, or a rebase or
                cherry-pick is interrupted.
            NoStagedChangesError: If nothing is staged (and this neither
                concludes a merge nor amends).
            InvalidRefError: If amending on a branch without commits.
        """
        if not message.strip():
            msg = "Commit message must not be empty"
            raise ValueError(msg)
        if status.conflicts:
            msg = "Cannot commit while conflicts are unresolved"
            raise MergeInProgressError(
                msg, conflicts=tuple(entry.path for entry in status.conflicts)
            )
        operation = self.in_progress_operation()
        if operation is not None and operation in _SEQUENCER_HEADS:
            msg = f"Cannot commit while {_SEQUENCER_HEADS[operation]} is in progress"
            raise MergeInProgressError(msg)
        merging = operation == "MERGE_HEAD"
        if amend and status.head is None:
            msg = "Cannot amend: the current branch has no commits"
            raise InvalidRefError(msg, ref="HEAD")
        if not status.staged and not merging and not amend:
            msg = "No changes staged for commit"
            raise NoStagedChangesError(msg)

        args = ["commit", "--quiet", f"--message={message}"]
        if amend:
            args.append("--amend")
        if sign_off:
            args.append("--signoff")
        if author:
            args.append(f"--author={author}")
        _ = self._run(*args, env=env)
        return self._run("rev-parse", "HEAD").strip()

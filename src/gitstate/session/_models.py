# ruff: noqa: TC003  # Path and datetime needed at runtime for dataclass fields
"""Data models for repository sessions.

This module defines the values a session exposes to its callers:
- SerializerState: Whether an operation currently holds the lane
- EventName: Names of change events
- ChangeEvent: Immutable event records
- SessionSnapshot: The immutable repository state returned by queries
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from gitstate.repository._models import (
    Branch,
    GitStatus,
    MergeState,
    Remote,
    StashEntry,
)


class SerializerState(StrEnum):
    """Operation serializer states.

    - IDLE: No operation holds the lane
    - EXECUTING: An operation is running
    """

    IDLE = "idle"
    EXECUTING = "executing"


class EventName(StrEnum):
    """Names of the change events a session emits."""

    WORKING_DIRECTORY_CHANGED = "workingDirectoryChanged"
    REPOSITORY_INITIALIZED = "repositoryInitialized"
    COMMITTED = "committed"
    BRANCH_SWITCHED = "branchSwitched"
    BRANCH_CREATED = "branchCreated"
    BRANCH_DELETED = "branchDeleted"
    BRANCH_RENAMED = "branchRenamed"
    FILES_STAGED = "filesStaged"
    FILES_UNSTAGED = "filesUnstaged"
    CHANGES_DISCARDED = "changesDiscarded"
    PUSHED = "pushed"
    PULLED = "pulled"
    FETCHED = "fetched"
    STASHED = "stashed"
    STASH_APPLIED = "stashApplied"
    STASH_DROPPED = "stashDropped"
    MERGED = "merged"
    MERGE_ABORTED = "mergeAborted"
    CONFLICT_RESOLVED = "conflictResolved"
    REBASED = "rebased"
    REBASE_ABORTED = "rebaseAborted"
    REMOTE_ADDED = "remoteAdded"
    REMOTE_REMOVED = "remoteRemoved"
    TAG_CREATED = "tagCreated"
    TAG_DELETED = "tagDeleted"
    REFRESHED = "refreshed"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Immutable change notification.

    Events only say that state changed; subscribers re-query the session.

    Attributes:
        sequence: Position in the session's event log, starting at 1.
        name: Which operation completed.
        payload: Extra data (only merge-like and benign-failed operations
            carry any).
        version: Snapshot version current when the event fired.
        timestamp: When the event was recorded (UTC).
    """

    sequence: int
    name: EventName
    payload: dict[str, Any] = field(default_factory=dict)
    version: int = 0
    timestamp: datetime | None = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Immutable view of a workspace's repository state.

    Attributes:
        working_directory: The directory the session is attached to.
        is_repository: False if the directory is not inside a working tree.
        status: Status partitions (None when not a repository).
        branches: Local and remote-tracking branches.
        remotes: Configured remotes.
        stashes: Stash entries, most recent first.
        merge_state: Outstanding merge, rebase, or conflict overlay.
        head: SHA of HEAD (None on an unborn branch).
        version: Increases with every refresh.
    """

    working_directory: Path
    is_repository: bool
    status: GitStatus | None = None
    branches: tuple[Branch, ...] = ()
    remotes: tuple[Remote, ...] = ()
    stashes: tuple[StashEntry, ...] = ()
    merge_state: MergeState | None = None
    head: str | None = None
    version: int = 0

    @property
    def local_branches(self) -> tuple[Branch, ...]:
        """Branches under refs/heads."""
        return tuple(b for b in self.branches if not b.is_remote)

    @property
    def current_branch(self) -> Branch | None:
        """The checked-out branch, None when detached or not a repository."""
        return next((b for b in self.branches if b.is_current), None)

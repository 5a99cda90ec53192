"""gitstate repository components.

This package drives the system ``git`` executable against a single working
tree. Each component owns one concern and translates git failures into
gitstate exceptions.

Classes:
    GitWorkspace: Facade bundling the components for one working tree.
    WorkingTreeScanner: Status partitions and merge state.
    RefStore: Branches, merges, rebases, and remotes.
    StashStack: The stash stack.
    HistoryReader: Commit history, diffs, and tags.
    StagingArea: Staging and committing.
    NetworkTransport: Fetch, pull, and push with retries and timeouts.
    RetryPolicy: Which network failures are retried, and the wait between tries.

Example:
    >>> from pathlib import Path
    >>> from gitstate.repository import GitWorkspace
    >>> with GitWorkspace.open(Path.cwd()) as workspace:
    ...     status = workspace.scanner.scan()
"""

from gitstate.repository._common import GIT_ENV, GitOutput
from gitstate.repository._history import HistoryReader, parse_diff, parse_log, parse_tags
from gitstate.repository._index import StagingArea
from gitstate.repository._models import (
    Branch,
    CommitInfo,
    DiffHunk,
    DiffLine,
    DiffLineKind,
    FileDiff,
    FileEntry,
    FileStatus,
    GitStatus,
    MergeResult,
    MergeState,
    Remote,
    RemoteType,
    StashEntry,
    Tag,
)
from gitstate.repository._network import (
    NetworkTransport,
    RetryPolicy,
    classify_network_failure,
)
from gitstate.repository._refs import RefStore, parse_branch_refs, parse_remotes, parse_track
from gitstate.repository._scanner import WorkingTreeScanner, parse_porcelain_v2
from gitstate.repository._stash import StashStack, parse_stash_list
from gitstate.repository._workspace import GitWorkspace

__all__ = [
    "GIT_ENV",
    "Branch",
    "CommitInfo",
    "DiffHunk",
    "DiffLine",
    "DiffLineKind",
    "FileDiff",
    "FileEntry",
    "FileStatus",
    "GitOutput",
    "GitStatus",
    "GitWorkspace",
    "HistoryReader",
    "MergeResult",
    "MergeState",
    "NetworkTransport",
    "RefStore",
    "Remote",
    "RemoteType",
    "RetryPolicy",
    "StagingArea",
    "StashEntry",
    "StashStack",
    "Tag",
    "WorkingTreeScanner",
    "classify_network_failure",
    "parse_branch_refs",
    "parse_diff",
    "parse_log",
    "parse_porcelain_v2",
    "parse_remotes",
    "parse_stash_list",
    "parse_tags",
    "parse_track",
]

"""Repository session: the operation API for one workspace.

A session owns a workspace's execution lane, its current snapshot, and its
change notifier. Mutating operations are serialized; each one rescans the
repository and swaps in a fresh snapshot before its event fires. Queries read
the current snapshot without waiting for the lane.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime  # noqa: TC003 - Used at runtime in annotations
from functools import partial
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self, TypeVar, final

import anyio

from gitstate.config import Config
from gitstate.exceptions import (
    MergeConflictError,
    RepositoryNotFoundError,
)
from gitstate.repository._models import (
    Branch,
    CommitInfo,
    FileDiff,
    GitStatus,
    MergeResult,
    MergeState,
    Remote,
    StashEntry,
    Tag,
)
from gitstate.repository._workspace import GitWorkspace
from gitstate.utils._logging import create_session_logger

from ._models import ChangeEvent, EventName, SerializerState, SessionSnapshot
from ._notifier import ChangeNotifier, EventCallback, Subscription
from ._registry import SessionRegistry, workspace_key
from ._serializer import OperationSerializer

if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectReceiveStream
    from structlog.typing import FilteringBoundLogger

T = TypeVar("T")


def _merge_payload(result: MergeResult) -> dict[str, Any]:
    return {"success": result.success, "conflicts": list(result.conflicts)}


@final
class RepositorySession:
    """Serialized operation API over one working directory.

    Use ``RepositorySession.open`` (or a SessionRegistry) to create a session
    attached to a directory, and ``close`` (or ``async with``) to release it.

    Example:
        >>> async with await RepositorySession.open("/path/to/repo") as session:
        ...     await session.add_files(["README.md"])
        ...     await session.commit("Update readme")
    """

    __slots__ = (
        "_config",
        "_key",
        "_logger",
        "_notifier",
        "_registry",
        "_serializer",
        "_snapshot",
        "_working_directory",
        "_workspace",
    )

    def __init__(
        self,
        working_directory: Path | str,
        *,
        config: Config | None = None,
        registry: SessionRegistry | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Create a detached session.

        The session does no I/O until ``set_working_directory`` is awaited.

        Args:
            working_directory: Directory the session will attach to.
            config: Engine configuration (defaults when None).
            registry: Registry shared with the other sessions of the
                application. When None the session gets a private registry
                and is not checked against other sessions.
            logger: Logger to use (one is created from the logging
                configuration when None).
        """
        self._working_directory = Path(working_directory).expanduser().resolve()
        self._config = config or Config()
        self._logger = logger or create_session_logger(
            self._working_directory,
            level=str(self._config.logging.level),
            log_format=self._config.logging.format.value,  # pyright: ignore[reportArgumentType]
            log_file=self._config.logging.file,
        )
        self._registry = registry if registry is not None else SessionRegistry()
        self._serializer = OperationSerializer(self._config.serializer.max_pending, self._logger)
        self._notifier = ChangeNotifier(self._logger)
        self._workspace: GitWorkspace | None = None
        self._key: Path | None = None
        self._snapshot = SessionSnapshot(
            working_directory=self._working_directory, is_repository=False
        )

    @classmethod
    async def open(
        cls,
        path: Path | str,
        *,
        config: Config | None = None,
        registry: SessionRegistry | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> Self:
        """Create a session and attach it to ``path``.

        Without an explicit ``config`` the configuration is loaded for the
        workspace (``gitstate.toml`` and ``GITSTATE_*`` variables).

        Raises:
            ConcurrentOperationRejectedError: If another session owns the
                workspace.
        """
        resolved = Path(path).expanduser().resolve()
        if config is None:
            config = await anyio.to_thread.run_sync(partial(Config.load, workspace=resolved))
        session = cls(resolved, config=config, registry=registry, logger=logger)
        try:
            _ = await session.set_working_directory(resolved)
        except BaseException:
            with anyio.CancelScope(shield=True):
                await session.close()
            raise
        return session

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def working_directory(self) -> Path:
        """The directory the session is attached to."""
        return self._working_directory

    @property
    def config(self) -> Config:
        """The engine configuration."""
        return self._config

    @property
    def snapshot(self) -> SessionSnapshot:
        """The current immutable repository state."""
        return self._snapshot

    @property
    def is_repository(self) -> bool:
        """True if the working directory is inside a working tree."""
        return self._snapshot.is_repository

    @property
    def state(self) -> SerializerState:
        """Whether an operation is executing."""
        return self._serializer.state

    @property
    def current_operation(self) -> str | None:
        """Name of the executing operation, if any."""
        return self._serializer.current_operation

    @property
    def closed(self) -> bool:
        """True once ``close`` was called."""
        return self._serializer.closed

    @property
    def notifier(self) -> ChangeNotifier:
        """The session's change notifier."""
        return self._notifier

    @property
    def events(self) -> tuple[ChangeEvent, ...]:
        """Every change event emitted so far, oldest first."""
        return self._notifier.events

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(
        self,
        callback: EventCallback,
        names: list[EventName | str] | None = None,
    ) -> Subscription:
        """Register a change callback (see ChangeNotifier.subscribe)."""
        return self._notifier.subscribe(callback, names)

    def on(self, name: EventName | str, callback: EventCallback) -> Subscription:
        """Register a callback for one event name."""
        return self._notifier.on(name, callback)

    def off(self, target: Subscription | EventCallback) -> int:
        """Remove a subscription or every subscription of a callback."""
        return self._notifier.off(target)

    def open_stream(self) -> "MemoryObjectReceiveStream[ChangeEvent]":
        """Open a stream receiving every subsequent change event."""
        return self._notifier.open_stream()

    # =========================================================================
    # Execution
    # =========================================================================

    def _require_workspace(self) -> GitWorkspace:
        if self._workspace is None:
            msg = f"Not a git repository: {self._working_directory}"
            raise RepositoryNotFoundError(msg, path=self._working_directory)
        return self._workspace

    def _require_snapshot(self) -> SessionSnapshot:
        snapshot = self._snapshot
        if not snapshot.is_repository:
            msg = f"Not a git repository: {self._working_directory}"
            raise RepositoryNotFoundError(msg, path=self._working_directory)
        return snapshot

    def _require_status(self) -> GitStatus:
        status = self._require_snapshot().status
        if status is None:
            msg = f"Not a git repository: {self._working_directory}"
            raise RepositoryNotFoundError(msg, path=self._working_directory)
        return status

    def _collect(self, workspace: GitWorkspace | None, version: int) -> SessionSnapshot:
        """Read the full repository state (runs in a worker thread)."""
        if workspace is None:
            return SessionSnapshot(
                working_directory=self._working_directory,
                is_repository=False,
                version=version,
            )
        try:
            status = workspace.scanner.scan()
            return SessionSnapshot(
                working_directory=self._working_directory,
                is_repository=True,
                status=status,
                branches=tuple(workspace.refs.branches(include_remote=True)),
                remotes=tuple(workspace.refs.remotes()),
                stashes=tuple(workspace.stash.entries()),
                merge_state=workspace.scanner.merge_state(status),
                head=status.head,
                version=version,
            )
        except RepositoryNotFoundError:
            # The repository was removed underneath the session
            self._logger.warning("repository_disappeared")
            return SessionSnapshot(
                working_directory=self._working_directory,
                is_repository=False,
                version=version,
            )

    async def _refresh_snapshot(self, *, abandon_on_cancel: bool = False) -> SessionSnapshot:
        """Rescan and swap in a new snapshot if anything changed.

        Must be called while holding the lane.
        """
        current = self._snapshot
        fresh = await anyio.to_thread.run_sync(
            self._collect,
            self._workspace,
            current.version + 1,
            abandon_on_cancel=abandon_on_cancel,
        )
        if replace(fresh, version=current.version) == current:
            return current
        self._snapshot = fresh
        return fresh

    async def _settle(self) -> SessionSnapshot:
        with anyio.CancelScope(shield=True):
            return await self._refresh_snapshot()

    async def _run(  # noqa: PLR0913
        self,
        operation: str,
        work: Callable[[GitWorkspace], Awaitable[T]],
        *,
        event: EventName | None = None,
        payload: Callable[[T], dict[str, Any]] | None = None,
        cancellable: bool = False,
    ) -> T:
        """Run one operation in the lane, refresh, then notify.

        Local work is shielded so it completes or fails as a unit. A
        MergeConflictError still fires the operation's event with
        ``success=False`` before it propagates.
        """
        async with self._serializer.lane(operation):
            workspace = self._require_workspace()
            log = self._logger.bind(operation=operation)
            started = time.perf_counter()
            log.debug("operation_started")
            try:
                if cancellable:
                    result = await self._serializer.run_cancellable(
                        operation, partial(work, workspace)
                    )
                else:
                    with anyio.CancelScope(shield=True):
                        result = await work(workspace)
            except MergeConflictError as e:
                snapshot = await self._settle()
                log.info(
                    "operation_conflicted",
                    conflicts=list(e.conflicts),
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
                if event is not None:
                    _ = await self._notifier.emit(
                        event,
                        {"success": False, "conflicts": list(e.conflicts)},
                        version=snapshot.version,
                    )
                raise
            except anyio.get_cancelled_exc_class():
                _ = await self._settle()
                log.info("operation_interrupted")
                raise
            except Exception as e:
                _ = await self._settle()
                log.warning(
                    "operation_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                )
                raise

            snapshot = await self._settle()
            log.info(
                "operation_finished",
                version=snapshot.version,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            if event is not None:
                _ = await self._notifier.emit(
                    event,
                    payload(result) if payload is not None else {},
                    version=snapshot.version,
                )
            return result

    async def _mutate(
        self,
        operation: str,
        func: Callable[[GitWorkspace], T],
        *,
        event: EventName,
        payload: Callable[[T], dict[str, Any]] | None = None,
    ) -> T:
        """Run a local git mutation in a worker thread."""

        async def work(workspace: GitWorkspace) -> T:
            return await anyio.to_thread.run_sync(func, workspace)

        return await self._run(operation, work, event=event, payload=payload)

    async def _read(self, func: Callable[[GitWorkspace], T]) -> T:
        """Run a read-only query in a worker thread without the lane."""
        workspace = self._require_workspace()
        return await anyio.to_thread.run_sync(func, workspace)

    # =========================================================================
    # Workspace lifecycle
    # =========================================================================

    async def set_working_directory(self, path: Path | str) -> bool:
        """Attach the session to a directory.

        Args:
            path: The new working directory.

        Returns:
            True if the directory is inside a git working tree.

        Raises:
            ConcurrentOperationRejectedError: If another open session owns
                the workspace.
        """
        target = Path(path).expanduser().resolve()
        async with self._serializer.lane("set_working_directory"):

            def attach() -> tuple[Path, GitWorkspace | None]:
                try:
                    workspace = GitWorkspace.open(target, config=self._config, logger=self._logger)
                except RepositoryNotFoundError:
                    return target, None
                return workspace.root.resolve(), workspace

            with anyio.CancelScope(shield=True):
                key, workspace = await anyio.to_thread.run_sync(attach)
                self._attach(key, target, workspace)
                snapshot = await self._refresh_snapshot()

            self._logger.info(
                "working_directory_changed", is_repository=snapshot.is_repository
            )
            _ = await self._notifier.emit(
                EventName.WORKING_DIRECTORY_CHANGED, version=snapshot.version
            )
            return snapshot.is_repository

    def _attach(self, key: Path, target: Path, workspace: GitWorkspace | None) -> None:
        try:
            self._registry.claim(key, self)
        except Exception:
            if workspace is not None:
                workspace.close()
            raise
        if self._key is not None and self._key != key:
            self._registry.release(self._key, self)
        if self._workspace is not None:
            self._workspace.close()
        self._key = key
        self._workspace = workspace
        self._working_directory = target
        self._logger = self._logger.bind(workspace=str(target))

    async def init_repository(self, initial_branch: str | None = None) -> None:
        """Create a repository in the working directory and attach to it.

        Reinitializing an existing repository is harmless.

        Raises:
            InvalidRefError: If ``initial_branch`` is not a valid name.
        """
        target = self._working_directory
        async with self._serializer.lane("init_repository"):

            def initialize() -> GitWorkspace:
                return GitWorkspace.init(
                    target,
                    initial_branch=initial_branch,
                    config=self._config,
                    logger=self._logger,
                )

            with anyio.CancelScope(shield=True):
                workspace = await anyio.to_thread.run_sync(initialize)
                key = await anyio.to_thread.run_sync(workspace_key, workspace.root)
                self._attach(key, target, workspace)
                snapshot = await self._refresh_snapshot()

            self._logger.info("repository_initialized", branch=initial_branch)
            _ = await self._notifier.emit(
                EventName.REPOSITORY_INITIALIZED, version=snapshot.version
            )

    async def refresh(self) -> SessionSnapshot:
        """Rescan after external edits and swap in the result.

        The rescan is cancellable through ``cancel_current``.

        Raises:
            OperationCancelledError: If the rescan was cancelled.
        """
        async with self._serializer.lane("refresh"):

            async def rescan() -> SessionSnapshot:
                return await self._refresh_snapshot(abandon_on_cancel=True)

            snapshot = await self._serializer.run_cancellable("refresh", rescan)
            _ = await self._notifier.emit(EventName.REFRESHED, version=snapshot.version)
            return snapshot

    def cancel_current(self) -> bool:
        """Cancel the executing operation if it is a network operation or rescan.

        Returns:
            True if an operation was signalled.
        """
        return self._serializer.cancel_current()

    async def close(self) -> None:
        """Cancel the running network operation, wait for the lane, and detach.

        Queued operations fail with SessionClosedError. Closing twice is a
        no-op.
        """
        if self._serializer.closed:
            return
        async with self._serializer.closing():
            if self._workspace is not None:
                self._workspace.close()
                self._workspace = None
            if self._key is not None:
                self._registry.release(self._key, self)
                self._key = None
        self._notifier.close()
        self._logger.debug("session_closed")

    # =========================================================================
    # Status queries
    # =========================================================================

    def get_status(self) -> GitStatus:
        """Return the status partition of the current snapshot.

        Raises:
            RepositoryNotFoundError: If not attached to a repository.
        """
        return self._require_status()

    def get_branches(self, *, include_remote: bool = False) -> list[Branch]:
        """Return local branches, plus remote-tracking ones if requested."""
        branches = self._require_snapshot().branches
        return [b for b in branches if include_remote or not b.is_remote]

    def get_current_branch(self) -> str | None:
        """Return the checked-out branch, None when HEAD is detached."""
        return self.get_status().branch

    def get_remotes(self) -> list[Remote]:
        """Return the configured remotes."""
        return list(self._require_snapshot().remotes)

    def get_stashes(self) -> list[StashEntry]:
        """Return the stash entries, most recent first."""
        return list(self._require_snapshot().stashes)

    def get_merge_state(self) -> MergeState | None:
        """Return the outstanding merge, if any."""
        return self._require_snapshot().merge_state

    def get_conflicted_files(self) -> list[str]:
        """Return paths with unresolved conflicts."""
        return self.get_status().conflict_paths

    async def get_commit_history(  # noqa: PLR0913
        self,
        max_count: int | None = None,
        *,
        branch: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        author: str | None = None,
        grep: str | None = None,
    ) -> list[CommitInfo]:
        """Walk history from HEAD (or ``branch``), newest first.

        Returns an empty list on a branch without commits.

        Raises:
            InvalidRefError: If ``branch`` does not resolve.
        """
        snapshot = self._require_snapshot()
        rev = branch or snapshot.head
        if rev is None:
            return []
        count = max_count if max_count is not None else self._config.history.default_max_count
        return await self._read(
            lambda ws: ws.history.commits(
                rev, max_count=count, since=since, until=until, author=author, grep=grep
            )
        )

    async def get_diff(
        self,
        *,
        staged: bool = False,
        path: str | None = None,
        commit1: str | None = None,
        commit2: str | None = None,
    ) -> list[FileDiff]:
        """Diff the working tree, the index, or two commits."""
        _ = self._require_snapshot()
        return await self._read(
            lambda ws: ws.history.diff(staged=staged, path=path, commit1=commit1, commit2=commit2)
        )

    async def get_tags(self) -> list[Tag]:
        """Return tags sorted by name."""
        _ = self._require_snapshot()
        return await self._read(lambda ws: ws.history.tags())

    # =========================================================================
    # Staging and committing
    # =========================================================================

    async def add_files(self, paths: list[str]) -> None:
        """Stage paths (including deletions)."""
        await self._mutate(
            "add_files", lambda ws: ws.index.add(paths), event=EventName.FILES_STAGED
        )

    async def add_all_files(self) -> None:
        """Stage every change, including untracked files."""
        await self._mutate(
            "add_all_files", lambda ws: ws.index.add_all(), event=EventName.FILES_STAGED
        )

    async def unstage_files(self, paths: list[str]) -> None:
        """Move staged paths back to the working tree."""
        await self._mutate(
            "unstage_files", lambda ws: ws.index.unstage(paths), event=EventName.FILES_UNSTAGED
        )

    async def discard_changes(self, paths: list[str]) -> None:
        """Drop working-tree changes; untracked paths are deleted."""
        await self._mutate(
            "discard_changes",
            lambda ws: ws.index.discard(paths, ws.scanner.scan()),
            event=EventName.CHANGES_DISCARDED,
        )

    async def commit(
        self,
        message: str,
        *,
        amend: bool = False,
        sign_off: bool = False,
        author: str | None = None,
    ) -> bool:
        """Commit the staged changes (concluding a resolved merge if one is pending).

        Returns:
            True once the commit is recorded.

        Raises:
            ValueError: If the message is empty.
            NoStagedChangesError: If nothing is staged.
            MergeInProgressError: If conflicts remain, or a rebase or
                cherry-pick is interrupted.
        """

        def do_commit(ws: GitWorkspace) -> bool:
            _ = ws.index.commit(
                message,
                ws.scanner.scan(),
                amend=amend,
                sign_off=sign_off,
                author=author,
                env=ws.identity_env(),
            )
            return True

        return await self._mutate("commit", do_commit, event=EventName.COMMITTED)

    # =========================================================================
    # Branches
    # =========================================================================

    async def create_branch(self, name: str, start_point: str | None = None) -> None:
        """Create a branch without switching to it."""
        _ = await self._mutate(
            "create_branch",
            lambda ws: ws.refs.create_branch(name, start_point),
            event=EventName.BRANCH_CREATED,
        )

    async def switch_branch(self, name: str, *, force: bool = False) -> None:
        """Check out a branch. ``force`` discards conflicting local changes."""
        await self._mutate(
            "switch_branch",
            lambda ws: ws.refs.switch_branch(name, ws.scanner.scan(), force=force),
            event=EventName.BRANCH_SWITCHED,
        )

    async def delete_branch(self, name: str, *, force: bool = False) -> None:
        """Delete a local branch that is not checked out."""
        await self._mutate(
            "delete_branch",
            lambda ws: ws.refs.delete_branch(name, force=force),
            event=EventName.BRANCH_DELETED,
        )

    async def rename_branch(self, old_name: str, new_name: str) -> None:
        """Rename a local branch."""
        await self._mutate(
            "rename_branch",
            lambda ws: ws.refs.rename_branch(old_name, new_name),
            event=EventName.BRANCH_RENAMED,
        )

    # =========================================================================
    # Merging and rebasing
    # =========================================================================

    async def merge(
        self,
        branch: str,
        *,
        no_ff: bool = False,
        squash: bool = False,
    ) -> MergeResult:
        """Merge a branch into HEAD; conflicts are reported, not raised."""
        return await self._mutate(
            "merge",
            lambda ws: ws.refs.merge(branch, no_ff=no_ff, squash=squash, env=ws.identity_env()),
            event=EventName.MERGED,
            payload=_merge_payload,
        )

    async def resolve_conflict(self, path: str) -> None:
        """Mark a conflicted path as resolved by staging its current content.

        Raises:
            ValueError: If ``path`` is not conflicted.
        """

        def resolve(ws: GitWorkspace) -> None:
            if path not in ws.scanner.conflicted_paths():
                msg = f"Path is not conflicted: {path}"
                raise ValueError(msg)
            ws.index.add([path])

        await self._mutate("resolve_conflict", resolve, event=EventName.CONFLICT_RESOLVED)

    async def abort_merge(self) -> None:
        """Abandon the outstanding merge."""
        await self._mutate(
            "abort_merge", lambda ws: ws.refs.abort_merge(), event=EventName.MERGE_ABORTED
        )

    async def rebase(self, branch: str) -> MergeResult:
        """Replay the current branch onto ``branch``."""
        return await self._mutate(
            "rebase",
            lambda ws: ws.refs.rebase(branch, env=ws.identity_env()),
            event=EventName.REBASED,
            payload=_merge_payload,
        )

    async def continue_rebase(self) -> MergeResult:
        """Resume a rebase after resolving its conflicts."""
        return await self._mutate(
            "continue_rebase",
            lambda ws: ws.refs.continue_rebase(env=ws.identity_env()),
            event=EventName.REBASED,
            payload=_merge_payload,
        )

    async def abort_rebase(self) -> None:
        """Abandon the outstanding rebase."""
        await self._mutate(
            "abort_rebase", lambda ws: ws.refs.abort_rebase(), event=EventName.REBASE_ABORTED
        )

    # =========================================================================
    # Network
    # =========================================================================

    async def push(
        self,
        remote: str | None = None,
        branch: str | None = None,
        *,
        force: bool = False,
    ) -> None:
        """Push a branch, setting its upstream if it has none.

        Raises:
            AuthenticationFailureError: If the remote rejects credentials.
            NonFastForwardError: If the remote rejects the update.
            NetworkFailureError: On network failure or timeout.
            OperationCancelledError: If cancelled.
        """

        async def work(ws: GitWorkspace) -> None:
            _ = await ws.network.push(remote, branch, force=force)

        await self._run("push", work, event=EventName.PUSHED, cancellable=True)

    async def pull(self, remote: str | None = None, branch: str | None = None) -> None:
        """Fetch and merge the upstream branch.

        Raises:
            MergeConflictError: If the merge conflicted (the ``pulled`` event
                still fires with ``success=False``).
            RemoteError: If the fetch failed.
            OperationCancelledError: If cancelled during the fetch.
        """

        async def work(ws: GitWorkspace) -> None:
            env = await anyio.to_thread.run_sync(ws.identity_env)
            _ = await ws.network.pull(remote, branch, env=env)

        await self._run("pull", work, event=EventName.PULLED, cancellable=True)

    async def fetch(self, remote: str | None = None) -> None:
        """Update remote-tracking branches from a remote."""

        async def work(ws: GitWorkspace) -> None:
            _ = await ws.network.fetch(remote)

        await self._run("fetch", work, event=EventName.FETCHED, cancellable=True)

    # =========================================================================
    # Remotes
    # =========================================================================

    async def add_remote(self, name: str, url: str) -> bool:
        """Add a remote.

        Returns:
            True once the remote is configured.

        Raises:
            InvalidRefError: If the name is invalid or taken.
        """

        def add(ws: GitWorkspace) -> bool:
            ws.refs.add_remote(name, url)
            return True

        return await self._mutate("add_remote", add, event=EventName.REMOTE_ADDED)

    async def remove_remote(self, name: str) -> None:
        """Remove a remote and its remote-tracking branches."""
        await self._mutate(
            "remove_remote", lambda ws: ws.refs.remove_remote(name), event=EventName.REMOTE_REMOVED
        )

    # =========================================================================
    # Tags
    # =========================================================================

    async def create_tag(
        self,
        name: str,
        message: str | None = None,
        commit: str | None = None,
    ) -> None:
        """Create a tag; annotated when ``message`` is given."""
        await self._mutate(
            "create_tag",
            lambda ws: ws.history.create_tag(
                name, message=message, commit=commit, env=ws.identity_env()
            ),
            event=EventName.TAG_CREATED,
        )

    async def delete_tag(self, name: str) -> None:
        """Delete a tag."""
        await self._mutate(
            "delete_tag", lambda ws: ws.history.delete_tag(name), event=EventName.TAG_DELETED
        )

    # =========================================================================
    # Stash
    # =========================================================================

    async def stash(
        self,
        message: str | None = None,
        *,
        include_untracked: bool = False,
    ) -> StashEntry:
        """Save local changes as stash entry 0 and clean the working tree."""
        return await self._mutate(
            "stash",
            lambda ws: ws.stash.push(
                ws.scanner.scan(),
                message,
                include_untracked=include_untracked,
                env=ws.identity_env(),
            ),
            event=EventName.STASHED,
        )

    async def apply_stash(self, index: int = 0) -> None:
        """Reapply a stash entry, keeping it on the stack.

        Raises:
            MergeConflictError: If applying conflicted (the ``stashApplied``
                event still fires with ``success=False``).
        """
        await self._mutate(
            "apply_stash", lambda ws: ws.stash.apply(index), event=EventName.STASH_APPLIED
        )

    async def pop_stash(self, index: int = 0) -> None:
        """Apply a stash entry and drop it if it applied cleanly."""
        await self._mutate(
            "pop_stash", lambda ws: ws.stash.pop(index), event=EventName.STASH_APPLIED
        )

    async def drop_stash(self, index: int) -> None:
        """Remove a stash entry."""
        await self._mutate(
            "drop_stash", lambda ws: ws.stash.drop(index), event=EventName.STASH_DROPPED
        )

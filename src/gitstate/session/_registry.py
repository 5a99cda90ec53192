"""Registry enforcing one session per working directory."""

from pathlib import Path
from typing import TYPE_CHECKING, final

import anyio

from gitstate.config import Config
from gitstate.exceptions import ConcurrentOperationRejectedError, RepositoryNotFoundError
from gitstate.repository._common import open_repository

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._session import RepositorySession


def workspace_key(path: Path) -> Path:
    """Return the key identifying the workspace that contains ``path``.

    Paths inside a working tree map to its root; other paths map to
    themselves, resolved.
    """
    resolved = path.expanduser().resolve()
    try:
        repo = open_repository(resolved)
    except RepositoryNotFoundError:
        return resolved
    try:
        return Path(str(repo.working_tree_dir)).resolve()
    finally:
        repo.close()


@final
class SessionRegistry:
    """Tracks which session owns each workspace.

    Sessions sharing a registry never mutate the same working tree: a
    session claims its workspace key when it attaches and releases it when
    it closes or moves. Share one registry between every session of an
    application; there is no process-wide instance.
    """

    __slots__ = ("_sessions",)

    def __init__(self) -> None:
        self._sessions: dict[Path, RepositorySession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    @property
    def keys(self) -> tuple[Path, ...]:
        """Claimed workspace keys."""
        return tuple(self._sessions)

    def claim(self, key: Path, session: "RepositorySession") -> None:
        """Record ``session`` as the owner of ``key``.

        Raises:
            ConcurrentOperationRejectedError: If another open session owns it.
        """
        owner = self._sessions.get(key)
        if owner is not None and owner is not session:
            msg = f"Workspace {key} is already attached to another session"
            raise ConcurrentOperationRejectedError(msg, operation="set_working_directory")
        self._sessions[key] = session

    def release(self, key: Path, session: "RepositorySession") -> None:
        """Drop the claim on ``key`` if ``session`` holds it."""
        if self._sessions.get(key) is session:
            del self._sessions[key]

    def get(self, path: Path | str) -> "RepositorySession | None":
        """Return the session owning the exact key ``path``, if any."""
        return self._sessions.get(Path(path).expanduser().resolve())

    async def open(
        self,
        path: Path | str,
        *,
        config: Config | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> "RepositorySession":
        """Return the session for the workspace containing ``path``.

        An existing session is reused; otherwise a new one is opened and
        registered.
        """
        from ._session import RepositorySession  # noqa: PLC0415

        key = await anyio.to_thread.run_sync(workspace_key, Path(path))
        existing = self._sessions.get(key)
        if existing is not None and not existing.closed:
            return existing
        return await RepositorySession.open(path, config=config, registry=self, logger=logger)

    async def close(self, path: Path | str) -> bool:
        """Close the session owning ``path``.

        Returns:
            True if a session was closed.
        """
        key = await anyio.to_thread.run_sync(workspace_key, Path(path))
        session = self._sessions.get(key)
        if session is None:
            return False
        await session.close()
        return True

    async def aclose(self) -> None:
        """Close every registered session."""
        for session in list(self._sessions.values()):
            await session.close()
        self._sessions.clear()

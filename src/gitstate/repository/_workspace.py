"""Workspace facade tying the repository components to one working tree."""

from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Final, Self, final

from git import Repo  # noqa: TC002 - Used at runtime in annotations

from gitstate.config import Config
from gitstate.repository._common import init_repository, open_repository
from gitstate.repository._history import HistoryReader
from gitstate.repository._index import StagingArea
from gitstate.repository._network import NetworkTransport
from gitstate.repository._refs import RefStore
from gitstate.repository._scanner import WorkingTreeScanner
from gitstate.repository._stash import StashStack
from gitstate.utils._author import AuthorInfo, get_author_info

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


@final
class GitWorkspace:
    """One opened working tree and the components that operate on it.

    The workspace implements the context manager protocol; the underlying
    GitPython repository is closed on exit.

    Attributes:
        scanner: Working tree status.
        refs: Branches, merges, rebases, and remotes.
        stash: The stash stack.
        history: Commit history, diffs, and tags.
        index: Staging and committing.
        network: Fetch, pull, and push.
    """

    __slots__: Final = (
        "_config",
        "_repo",
        "history",
        "index",
        "network",
        "refs",
        "scanner",
        "stash",
    )

    def __init__(
        self,
        repo: Repo,
        *,
        config: Config | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Wrap an opened repository.

        Args:
            repo: The repository to operate on.
            config: Engine configuration.
            logger: Optional logger handed to components that log.
        """
        self._repo = repo
        self._config = config or Config()
        self.scanner = WorkingTreeScanner(repo)
        self.refs = RefStore(repo)
        self.stash = StashStack(repo, logger)
        self.history = HistoryReader(repo)
        self.index = StagingArea(repo)
        self.network = NetworkTransport(repo, self.refs, self._config.network, logger)

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        config: Config | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> Self:
        """Open the repository containing ``path``.

        Raises:
            RepositoryNotFoundError: If ``path`` is not inside a working tree.
        """
        return cls(open_repository(path), config=config, logger=logger)

    @classmethod
    def init(
        cls,
        path: Path,
        *,
        initial_branch: str | None = None,
        config: Config | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> Self:
        """Initialize a repository at ``path`` and open it.

        Raises:
            InvalidRefError: If ``initial_branch`` is not a valid branch name.
        """
        return cls(init_repository(path, initial_branch=initial_branch), config=config, logger=logger)

    # =========================================================================
    # Context Manager Protocol
    # =========================================================================

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the GitPython repository's handles."""
        self._repo.close()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def root(self) -> Path:
        """The working tree root."""
        return self.scanner.root

    @property
    def config(self) -> Config:
        """The engine configuration."""
        return self._config

    def author(self) -> AuthorInfo:
        """Resolve the commit identity for this workspace."""
        return get_author_info(self._repo, self._config.author)

    def identity_env(self) -> dict[str, str]:
        """Environment variables selecting the commit identity."""
        return self.author().as_env()

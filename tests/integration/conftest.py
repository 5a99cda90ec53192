from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from helpers import GitRepo

from gitstate.config import Config
from gitstate.repository import GitWorkspace
from gitstate.session import RepositorySession, SessionRegistry


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def workspace(git_repo: GitRepo) -> Iterator[GitWorkspace]:
    """Workspace opened on ``git_repo``."""
    with GitWorkspace.open(git_repo.root) as ws:
        yield ws


@pytest.fixture
def fast_config() -> Config:
    """Configuration with short network timeouts and no retry delay."""
    return Config.from_dict(
        {"network": {"timeout": 30, "backoff_base": 0, "backoff_max": 0}}
    )


@pytest.fixture
async def session(
    git_repo: GitRepo, registry: SessionRegistry, fast_config: Config
) -> AsyncIterator[RepositorySession]:
    """Session attached to ``git_repo``."""
    opened = await RepositorySession.open(git_repo.root, config=fast_config, registry=registry)
    try:
        yield opened
    finally:
        await opened.close()

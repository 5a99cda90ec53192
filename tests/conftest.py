"""Shared test fixtures for gitstate tests."""

from pathlib import Path

import pytest
from helpers import GitRepo, RemotePair, make_repo

from gitstate.session import SessionRegistry


@pytest.fixture(autouse=True)
def isolated_git_env(
    tmp_path_factory: pytest.TempPathFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Keep the user's git and gitstate configuration out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(home / ".gitconfig"))
    for name in (
        "GIT_DIR",
        "GIT_WORK_TREE",
        "GIT_INDEX_FILE",
        "GITSTATE_CONFIG",
        "GITSTATE_DEBUG",
        "GITSTATE_LOG_LEVEL",
        "GITSTATE_AUTHOR_NAME",
        "GITSTATE_AUTHOR_EMAIL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def empty_repo(tmp_path: Path) -> GitRepo:
    """Repository on an unborn ``main`` branch."""
    return make_repo(tmp_path / "empty")


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    """Repository on ``main`` with one commit containing README.md."""
    repo = make_repo(tmp_path / "work")
    _ = repo.commit_file("README.md", "# Test\n", "Initial commit")
    return repo


@pytest.fixture
def remote_pair(tmp_path: Path, git_repo: GitRepo) -> RemotePair:
    """``git_repo`` with a bare ``origin`` that has ``main`` pushed."""
    remote = make_repo(tmp_path / "remote.git", bare=True)
    _ = git_repo.git("remote", "add", "origin", str(remote.root))
    _ = git_repo.git("push", "-q", "-u", "origin", "main")
    return RemotePair(remote=remote, local=git_repo)


@pytest.fixture
def registry() -> SessionRegistry:
    """A fresh registry so sessions never leak between tests."""
    return SessionRegistry()

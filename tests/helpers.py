"""Helpers for building real git repositories in tests."""

import subprocess
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class GitRepo:
    """A real git repository created for a test."""

    root: Path

    def git(self, *args: str, check: bool = True) -> str:
        """Run git in the repository and return stdout."""
        result = subprocess.run(  # noqa: S603 - Safe: running git with controlled args
            ["git", *args],  # noqa: S607
            cwd=str(self.root),
            capture_output=True,
            text=True,
            check=False,
        )
        if check and result.returncode != 0:
            msg = f"git {' '.join(args)} failed: {result.stderr}"
            raise RuntimeError(msg)
        return result.stdout

    def write(self, path: str, content: str) -> Path:
        """Write a file relative to the repository root."""
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        _ = target.write_text(content)
        return target

    def read(self, path: str) -> str:
        return (self.root / path).read_text()

    def commit_file(self, path: str, content: str, message: str) -> str:
        """Write, stage, and commit a file; return the new HEAD SHA."""
        _ = self.write(path, content)
        _ = self.git("add", path)
        _ = self.git("commit", "-q", "-m", message)
        return self.head()

    def head(self) -> str:
        return self.git("rev-parse", "HEAD").strip()

    def current_branch(self) -> str:
        return self.git("symbolic-ref", "--short", "HEAD").strip()


def make_repo(path: Path, *, bare: bool = False) -> GitRepo:
    """Initialize a repository on ``main`` with a local test identity."""
    path.mkdir(parents=True, exist_ok=True)
    repo = GitRepo(path)
    if bare:
        _ = repo.git("init", "-q", "--bare", "-b", "main")
        return repo
    _ = repo.git("init", "-q", "-b", "main")
    _ = repo.git("config", "user.name", "Test User")
    _ = repo.git("config", "user.email", "test@example.com")
    _ = repo.git("config", "commit.gpgsign", "false")
    _ = repo.git("config", "tag.gpgsign", "false")
    return repo


@dataclass(frozen=True, slots=True)
class RemotePair:
    """A bare remote and a clone tracking it as ``origin``."""

    remote: GitRepo
    local: GitRepo

    def other_clone(self, path: Path) -> GitRepo:
        """Clone the remote a second time, to push competing commits."""
        _ = subprocess.run(  # noqa: S603
            ["git", "clone", "-q", str(self.remote.root), str(path)],  # noqa: S607
            capture_output=True,
            check=True,
        )
        clone = GitRepo(path)
        _ = clone.git("config", "user.name", "Other User")
        _ = clone.git("config", "user.email", "other@example.com")
        _ = clone.git("config", "commit.gpgsign", "false")
        return clone

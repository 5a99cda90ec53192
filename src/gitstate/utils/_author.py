"""Commit identity resolution utilities."""

import os
from dataclasses import dataclass

from git import Repo  # noqa: TC002 - Used at runtime in annotations
from git.exc import GitCommandError

from gitstate.config import AuthorConfig  # noqa: TC001 - Used at runtime in annotations

DEFAULT_AUTHOR_NAME = "gitstate"
DEFAULT_AUTHOR_EMAIL = "gitstate@localhost"


@dataclass(slots=True, frozen=True)
class AuthorInfo:
    """Resolved author information.

    Attributes:
        name: Author name.
        email: Author email.
    """

    name: str
    email: str

    def as_env(self) -> dict[str, str]:
        """Return git environment variables selecting this identity."""
        return {
            "GIT_AUTHOR_NAME": self.name,
            "GIT_AUTHOR_EMAIL": self.email,
            "GIT_COMMITTER_NAME": self.name,
            "GIT_COMMITTER_EMAIL": self.email,
        }

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"


def get_author_info(repo: Repo, config: AuthorConfig | None = None) -> AuthorInfo:
    """Resolve the commit identity for a repository.

    Resolution order:
    1. Environment variables (GITSTATE_AUTHOR_NAME, GITSTATE_AUTHOR_EMAIL)
    2. Git config (user.name, user.email)
    3. The ``author`` configuration section
    4. A fixed fallback identity

    Args:
        repo: Repository whose git config is consulted.
        config: Optional author configuration section.

    Returns:
        AuthorInfo with a resolved name and email.
    """
    name = (
        os.environ.get("GITSTATE_AUTHOR_NAME")
        or _git_config(repo, "user.name")
        or (config.name if config is not None else "")
        or DEFAULT_AUTHOR_NAME
    )
    email = (
        os.environ.get("GITSTATE_AUTHOR_EMAIL")
        or _git_config(repo, "user.email")
        or (config.email if config is not None else "")
        or DEFAULT_AUTHOR_EMAIL
    )
    return AuthorInfo(name=name, email=email)


def parse_author(value: str) -> AuthorInfo | None:
    """Parse a ``Name <email>`` string.

    Args:
        value: The author string.

    Returns:
        The parsed AuthorInfo, or None if the string is malformed.

    Examples:
        >>> parse_author("Ada <ada@example.com>")
        AuthorInfo(name='Ada', email='ada@example.com')
        >>> parse_author("Ada") is None
        True
    """
    name, sep, rest = value.partition("<")
    if not sep or not rest.endswith(">"):
        return None
    name = name.strip()
    email = rest[:-1].strip()
    if not name or not email:
        return None
    return AuthorInfo(name=name, email=email)


def _git_config(repo: Repo, key: str) -> str | None:
    """Read a value from git config.

    Args:
        repo: Repository whose config (including global config) is read.
        key: Git config key (e.g., "user.name").

    Returns:
        The config value, or None if not set.
    """
    # Validate key to prevent injection
    if not key.replace(".", "").replace("_", "").isalnum():
        return None

    try:
        value = repo.git.config("--get", key)
    except GitCommandError:
        return None
    return value.strip() or None

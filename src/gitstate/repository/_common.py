"""Common git plumbing shared by the repository components.

This module wraps GitPython's command runner so every component executes
``git`` the same way: with prompts disabled, with captured output, and with
failures translated into gitstate exceptions.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from git import Repo
from git.cmd import Git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from gitstate.exceptions import (
    DirtyWorkingTreeError,
    GitCommandFailedError,
    InvalidRefError,
    RepositoryNotFoundError,
)

# Environment applied to every git invocation. Credentials must come from a
# helper or agent; git never blocks waiting for terminal input.
GIT_ENV: Final[dict[str, str]] = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_SSH_COMMAND": "ssh -o BatchMode=yes",
    "GIT_EDITOR": "true",
    "GIT_MERGE_AUTOEDIT": "no",
}

# Pseudo-refs that mark an interrupted history operation, in priority order.
IN_PROGRESS_HEADS: Final = ("MERGE_HEAD", "REBASE_HEAD", "CHERRY_PICK_HEAD")

_OVERWRITE_MARKERS: Final = (
    "would be overwritten",
    "already exists, no checkout",
    "would be removed by",
)


@dataclass(frozen=True, slots=True)
class GitOutput:
    """Captured result of a git invocation.

    Attributes:
        args: Arguments passed after ``git``.
        status: Process exit status.
        stdout: Decoded standard output.
        stderr: Decoded standard error.
    """

    args: tuple[str, ...]
    status: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """True if git exited successfully."""
        return self.status == 0


def open_repository(path: Path) -> Repo:
    """Open the non-bare repository containing ``path``.

    Args:
        path: A directory inside the working tree.

    Returns:
        The opened repository.

    Raises:
        RepositoryNotFoundError: If ``path`` is not inside a working tree.
    """
    try:
        repo = Repo(path, search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        msg = f"Not a git repository: {path}"
        raise RepositoryNotFoundError(msg, path=path) from e

    if repo.bare or repo.working_tree_dir is None:
        repo.close()
        msg = f"Repository has no working tree: {path}"
        raise RepositoryNotFoundError(msg, path=path)
    return repo


def init_repository(path: Path, *, initial_branch: str | None = None) -> Repo:
    """Create (or reinitialize) a repository at ``path``.

    Args:
        path: Directory to initialize. Created if missing.
        initial_branch: Name of the unborn branch, git's default if None.

    Returns:
        The initialized repository.
    """
    if initial_branch is not None:
        validate_branch_name(Git(), initial_branch)
        return Repo.init(path, mkdir=True, initial_branch=initial_branch)
    return Repo.init(path, mkdir=True)


def validate_branch_name(git: Git, name: str) -> None:
    """Check that ``name`` is a valid branch name.

    Args:
        git: A GitPython ``Git`` command wrapper.
        name: Proposed branch name.

    Raises:
        InvalidRefError: If git rejects the name.
    """
    if not name or name.startswith("-") or name != name.strip():
        msg = f"Invalid branch name: {name!r}"
        raise InvalidRefError(msg, ref=name)
    try:
        expanded = git.execute(["git", "check-ref-format", "--branch", name])
    except GitCommandError as e:
        msg = f"Invalid branch name: {name!r}"
        raise InvalidRefError(msg, ref=name) from e
    # Reject @{-N} style shorthands, which check-ref-format expands.
    if expanded != name:
        msg = f"Invalid branch name: {name!r}"
        raise InvalidRefError(msg, ref=name)


def parse_paths_from_stderr(stderr: str) -> tuple[str, ...]:
    """Extract the tab-indented path list git prints in refusal messages.

    Examples:
        >>> parse_paths_from_stderr("error: ...:\\n\\ta.txt\\n\\tb.txt\\nAborting")
        ('a.txt', 'b.txt')
    """
    return tuple(
        sorted({line.strip() for line in stderr.splitlines() if line.startswith("\t")})
    )


def is_overwrite_refusal(stderr: str) -> bool:
    """True if git refused because local files would be overwritten."""
    lowered = stderr.lower()
    return any(marker in lowered for marker in _OVERWRITE_MARKERS)


class RepositoryComponent:
    """Base class for components that run git against one repository.

    Attributes:
        repo: The underlying GitPython repository.
    """

    __slots__: Final = ("_repo",)
    _repo: Repo

    def __init__(self, repo: Repo) -> None:
        """Initialize the component.

        Args:
            repo: The repository to operate on.
        """
        self._repo = repo

    @property
    def repo(self) -> Repo:
        """The underlying GitPython repository."""
        return self._repo

    @property
    def root(self) -> Path:
        """The working tree root."""
        return Path(str(self._repo.working_tree_dir))

    @property
    def git_dir(self) -> Path:
        """The repository's git directory."""
        return Path(self._repo.git_dir)

    def _execute(
        self,
        *args: str,
        env: dict[str, str] | None = None,
    ) -> GitOutput:
        """Run git and capture its output without raising on failure.

        Args:
            *args: Arguments after ``git``.
            env: Extra environment variables (e.g. commit identity).

        Returns:
            The captured output.
        """
        merged_env = {**GIT_ENV, **(env or {})}
        status, stdout, stderr = self._repo.git.execute(  # pyright: ignore[reportCallIssue, reportUnknownVariableType]
            ["git", *args],
            with_extended_output=True,
            with_exceptions=False,
            env=merged_env,
            strip_newline_in_stdout=False,
        )
        return GitOutput(
            args=args,
            status=int(status or 0),  # pyright: ignore[reportUnknownArgumentType]
            stdout=str(stdout),  # pyright: ignore[reportUnknownArgumentType]
            stderr=str(stderr),  # pyright: ignore[reportUnknownArgumentType]
        )

    def _run(self, *args: str, env: dict[str, str] | None = None) -> str:
        """Run git and return stdout, raising on failure.

        Raises:
            RepositoryNotFoundError: If the repository disappeared.
            GitCommandFailedError: If git exits with a non-zero status.
        """
        output = self._execute(*args, env=env)
        if not output.ok:
            raise self._failure(output)
        return output.stdout

    def _failure(self, output: GitOutput) -> Exception:
        """Translate a failed invocation into the matching exception."""
        stderr = output.stderr.strip()
        if "not a git repository" in stderr.lower():
            msg = f"Not a git repository: {self.root}"
            return RepositoryNotFoundError(msg, path=self.root)
        if is_overwrite_refusal(stderr):
            msg = "Local changes would be overwritten"
            return DirtyWorkingTreeError(msg, paths=parse_paths_from_stderr(output.stderr))
        first_line = stderr.splitlines()[0] if stderr else f"exit status {output.status}"
        msg = f"git {output.args[0] if output.args else ''} failed: {first_line}"
        return GitCommandFailedError(
            msg,
            command=output.args,
            stderr=output.stderr,
            status=output.status,
        )

    def resolve_commit(self, ref: str) -> str | None:
        """Resolve a revision to a commit SHA.

        Args:
            ref: Any revision git understands.

        Returns:
            The full SHA, or None if ``ref`` does not name a commit.
        """
        if not ref or ref.startswith("-"):
            return None
        output = self._execute("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
        sha = output.stdout.strip()
        return sha if output.ok and sha else None

    def head_sha(self) -> str | None:
        """Return the SHA HEAD points at, or None on an unborn branch."""
        return self.resolve_commit("HEAD")

    def current_branch(self) -> str | None:
        """Return the checked-out branch name, or None when detached."""
        output = self._execute("symbolic-ref", "--quiet", "--short", "HEAD")
        name = output.stdout.strip()
        return name if output.ok and name else None

    def branch_exists(self, name: str) -> bool:
        """True if a local branch called ``name`` exists."""
        return self._execute("show-ref", "--verify", "--quiet", f"refs/heads/{name}").ok

    def conflicted_paths(self) -> tuple[str, ...]:
        """Return the paths with unmerged index entries, sorted."""
        output = self._run("diff", "--name-only", "--diff-filter=U", "-z")
        return tuple(sorted({p for p in output.split("\0") if p}))

    def special_head(self, name: str) -> str | None:
        """Read a pseudo-ref file such as MERGE_HEAD from the git directory."""
        path = self.git_dir / name
        if not path.is_file():
            return None
        content = path.read_text(encoding="utf-8").strip()
        return content.splitlines()[0] if content else None

    def in_progress_operation(self) -> str | None:
        """Return the pseudo-ref of an interrupted merge, rebase or cherry-pick, if any."""
        for name in IN_PROGRESS_HEADS:
            if self.special_head(name) is not None:
                return name
        if (self.git_dir / "rebase-merge").is_dir() or (self.git_dir / "rebase-apply").is_dir():
            return "REBASE_HEAD"
        return None


_STASH_REF_RE: Final = re.compile(r"^stash@\{(\d+)\}$")


def stash_index(ref: str) -> int | None:
    """Extract the index from a ``stash@{n}`` reference.

    Examples:
        >>> stash_index("stash@{3}")
        3
        >>> stash_index("main") is None
        True
    """
    match = _STASH_REF_RE.match(ref)
    return int(match.group(1)) if match else None

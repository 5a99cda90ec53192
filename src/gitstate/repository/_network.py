"""Network operations: fetch, pull, and push.

Network commands run as anyio subprocesses so that they can be cancelled
and bounded by a timeout without blocking the event loop. Failures are
classified from git's stderr; only transient network failures are retried.
"""

import os
import random
import re
import subprocess
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Final, Self, final

import anyio
import anyio.abc
from git import Repo  # noqa: TC002 - Used at runtime in annotations

from gitstate.config import NetworkConfig
from gitstate.exceptions import (
    AuthenticationFailureError,
    InvalidRefError,
    MergeConflictError,
    NetworkFailureError,
    NonFastForwardError,
    RemoteError,
)
from gitstate.repository._common import GIT_ENV, GitOutput, RepositoryComponent
from gitstate.repository._models import MergeResult
from gitstate.repository._refs import RefStore  # noqa: TC001 - Used at runtime in annotations

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

_AUTH_MARKERS: Final = (
    "authentication failed",
    "could not read username",
    "could not read password",
    "terminal prompts disabled",
    "permission denied (publickey",
    "invalid username or password",
    "the requested url returned error: 401",
    "the requested url returned error: 403",
    "http basic: access denied",
)

_NON_FAST_FORWARD_MARKERS: Final = (
    "[rejected]",
    "non-fast-forward",
    "fetch first",
    "stale info",
    "tip of your current branch is behind",
)

_TRANSIENT_MARKERS: Final = (
    "could not resolve host",
    "temporary failure in name resolution",
    "connection timed out",
    "operation timed out",
    "connection reset",
    "connection refused",
    "connection closed",
    "network is unreachable",
    "failed to connect",
    "hung up unexpectedly",
    "early eof",
    "rpc failed",
    "unexpected disconnect",
    "gnutls_handshake",
    "ssl_read",
)

_UNREACHABLE_MARKERS: Final = (
    "does not appear to be a git repository",
    "repository not found",
    "could not read from remote repository",
    "no such file or directory",
)

_REJECTED_REF_RE: Final = re.compile(r"\[rejected\]\s+\S+\s+->\s+(\S+)")


def classify_network_failure(stderr: str, *, remote: str | None) -> RemoteError:
    """Map git's stderr from a failed network command to an exception.

    Authentication failures are checked first because ssh reports them
    together with a generic "could not read from remote" line.

    Args:
        stderr: Captured standard error.
        remote: The remote that was contacted.

    Returns:
        The exception describing the failure (not raised).

    Examples:
        >>> classify_network_failure("fatal: Authentication failed", remote="o")
        AuthenticationFailureError('Authentication failed for remote o')
    """
    lowered = stderr.lower()
    detail = next((line.strip() for line in stderr.splitlines() if line.strip()), "")

    if any(marker in lowered for marker in _AUTH_MARKERS):
        msg = f"Authentication failed for remote {remote}"
        return AuthenticationFailureError(msg, remote=remote)

    if any(marker in lowered for marker in _NON_FAST_FORWARD_MARKERS):
        match = _REJECTED_REF_RE.search(stderr)
        ref = match.group(1) if match else None
        msg = f"Remote {remote} rejected a non-fast-forward update"
        return NonFastForwardError(msg, remote=remote, ref=ref)

    if any(marker in lowered for marker in _TRANSIENT_MARKERS):
        msg = f"Network failure talking to remote {remote}: {detail}"
        return NetworkFailureError(msg, remote=remote, reason="network", transient=True)

    if any(marker in lowered for marker in _UNREACHABLE_MARKERS):
        msg = f"Remote {remote} is unreachable: {detail}"
        return NetworkFailureError(msg, remote=remote, reason="unreachable", transient=False)

    msg = f"Remote operation on {remote} failed: {detail or 'unknown error'}"
    return NetworkFailureError(msg, remote=remote, reason="error", transient=False)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Decides whether a failed network command is retried, and after how long.

    Only transient NetworkFailureErrors are retried. The wait before retry
    ``n`` (0 for the first retry) is drawn uniformly from the upper half of
    ``min(backoff_max, backoff_base * 2**n)``.

    Attributes:
        max_retries: Retries allowed after the first attempt.
        backoff_base: Ceiling of the first wait in seconds.
        backoff_max: Ceiling of every wait in seconds.
    """

    max_retries: int = 1
    backoff_base: float = 0.5
    backoff_max: float = 5.0

    @classmethod
    def from_config(cls, settings: NetworkConfig) -> Self:
        """Build the policy from the ``network`` configuration section."""
        return cls(
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base,
            backoff_max=settings.backoff_max,
        )

    def should_retry(self, error: RemoteError, retries_done: int) -> bool:
        """True if ``error`` earns another attempt after ``retries_done`` retries."""
        return (
            isinstance(error, NetworkFailureError)
            and error.transient
            and retries_done < self.max_retries
        )

    def wait(self, retry: int, rng: random.Random | None = None) -> float:
        """Seconds to sleep before retry number ``retry``.

        Args:
            retry: 0 for the first retry.
            rng: Random source (the module-level generator when None).
        """
        ceiling = min(self.backoff_max, self.backoff_base * 2**retry)
        if ceiling <= 0:
            return 0.0
        uniform = rng.uniform if rng is not None else random.uniform  # noqa: S311
        return uniform(ceiling / 2, ceiling)


async def _drain(stream: anyio.abc.ByteReceiveStream | None, chunks: list[bytes]) -> None:
    if stream is None:
        return
    async for chunk in stream:
        chunks.append(chunk)


@final
class NetworkTransport(RepositoryComponent):
    """Runs fetch, pull, and push against a repository's remotes."""

    __slots__ = ("_logger", "_refs", "_retry", "_settings")

    def __init__(
        self,
        repo: Repo,
        refs: RefStore,
        settings: NetworkConfig | None = None,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the transport.

        Args:
            repo: The repository to operate on.
            refs: The ref store used to resolve remotes and merge pulls.
            settings: Timeout and retry settings.
            logger: Optional logger for retries and cleanup.
        """
        super().__init__(repo)
        self._refs = refs
        self._settings = settings or NetworkConfig()
        self._logger = logger
        self._retry = RetryPolicy.from_config(self._settings)

    @property
    def settings(self) -> NetworkConfig:
        """The active timeout and retry settings."""
        return self._settings

    @property
    def retry_policy(self) -> RetryPolicy:
        """The policy deciding which failures are retried."""
        return self._retry

    # =========================================================================
    # Operations
    # =========================================================================

    async def fetch(self, remote: str | None = None) -> str:
        """Update remote-tracking refs from a remote.

        Args:
            remote: Remote to fetch from (the default remote if None).

        Returns:
            The remote that was fetched.

        Raises:
            InvalidRefError: If no remote is configured or it is unknown.
            RemoteError: If the fetch fails after retries.
        """
        remote_name = await anyio.to_thread.run_sync(self._resolve_remote, remote, None)
        _ = await self._run_network(["fetch", remote_name], remote=remote_name)
        return remote_name

    async def pull(
        self,
        remote: str | None = None,
        branch: str | None = None,
        *,
        env: dict[str, str] | None = None,
    ) -> MergeResult:
        """Fetch and merge the upstream branch into the current branch.

        Args:
            remote: Remote to pull from (the branch's remote if None).
            branch: Remote branch to merge (the upstream if None).
            env: Commit identity environment for the merge.

        Returns:
            The successful merge result.

        Raises:
            InvalidRefError: If the pull target cannot be determined.
            RemoteError: If the fetch fails after retries.
            MergeConflictError: If merging produced conflicts. The repository
                is left mid-merge.
            DirtyWorkingTreeError: If local changes would be overwritten.
        """
        remote_name, remote_branch = await anyio.to_thread.run_sync(
            self._pull_target, remote, branch
        )
        _ = await self._run_network(["fetch", remote_name], remote=remote_name)

        target = f"refs/remotes/{remote_name}/{remote_branch}"
        # The local merge runs to completion once started.
        with anyio.CancelScope(shield=True):
            result = await anyio.to_thread.run_sync(partial(self._refs.merge, target, env=env))
        if not result.success:
            msg = f"Pulling {remote_name}/{remote_branch} produced conflicts"
            raise MergeConflictError(msg, conflicts=result.conflicts)
        return result

    async def push(
        self,
        remote: str | None = None,
        branch: str | None = None,
        *,
        force: bool = False,
    ) -> tuple[str, str]:
        """Push a local branch, setting its upstream if it has none.

        Args:
            remote: Remote to push to (the branch's remote if None).
            branch: Local branch to push (the current branch if None).
            force: Overwrite the remote branch even if not a fast-forward.

        Returns:
            Tuple of (remote, branch) that was pushed.

        Raises:
            InvalidRefError: If the branch or remote cannot be determined.
            AuthenticationFailureError: If the remote rejects credentials.
            NonFastForwardError: If the remote rejects the update.
            NetworkFailureError: On network failure after retries or timeout.
        """
        remote_name, local_branch, refspec, set_upstream = await anyio.to_thread.run_sync(
            self._push_target, remote, branch
        )
        args = ["push"]
        if force:
            args.append("--force")
        if set_upstream:
            args.append("--set-upstream")
        args.extend((remote_name, refspec))
        _ = await self._run_network(args, remote=remote_name)
        return remote_name, local_branch

    # =========================================================================
    # Target resolution
    # =========================================================================

    def _resolve_remote(self, remote: str | None, branch: str | None) -> str:
        names = self._refs.remote_names()
        if remote is None:
            remote = self._refs.default_remote(branch or self._refs.current_branch())
        if remote is None:
            msg = "No remote configured"
            raise InvalidRefError(msg, ref=None)
        if remote not in names:
            msg = f"Remote '{remote}' does not exist"
            raise InvalidRefError(msg, ref=remote)
        return remote

    def _pull_target(self, remote: str | None, branch: str | None) -> tuple[str, str]:
        current = self._refs.current_branch()
        if branch is None:
            if current is None:
                msg = "Cannot pull with a detached HEAD without naming a branch"
                raise InvalidRefError(msg, ref="HEAD")
            tracked_remote = self._refs.branch_remote(current)
            merge_ref = self._refs.branch_merge_ref(current)
            if merge_ref is not None and remote in {None, tracked_remote}:
                branch = merge_ref
                remote = remote or tracked_remote
            else:
                branch = current
        return self._resolve_remote(remote, current), branch

    def _push_target(
        self,
        remote: str | None,
        branch: str | None,
    ) -> tuple[str, str, str, bool]:
        local_branch = branch or self._refs.current_branch()
        if local_branch is None:
            msg = "Cannot push with a detached HEAD without naming a branch"
            raise InvalidRefError(msg, ref="HEAD")
        if not self._refs.branch_exists(local_branch):
            msg = f"Branch '{local_branch}' has no commits to push"
            raise InvalidRefError(msg, ref=local_branch)

        tracked_remote = self._refs.branch_remote(local_branch)
        remote_name = self._resolve_remote(remote or tracked_remote, local_branch)
        merge_ref = self._refs.branch_merge_ref(local_branch)
        if tracked_remote == remote_name and merge_ref is not None:
            refspec = f"refs/heads/{local_branch}:refs/heads/{merge_ref}"
        else:
            refspec = f"refs/heads/{local_branch}:refs/heads/{local_branch}"
        return remote_name, local_branch, refspec, tracked_remote is None

    # =========================================================================
    # Process execution
    # =========================================================================

    async def _run_network(self, args: list[str], *, remote: str) -> GitOutput:
        """Run a network command with retries, a deadline, and cleanup.

        Raises:
            RemoteError: The classified failure.
        """
        locks_before = self._lock_files()
        attempt = 0
        try:
            with anyio.fail_after(self._settings.timeout):
                while True:
                    output = await self._spawn(args)
                    if output.ok:
                        return output

                    error = classify_network_failure(output.stderr, remote=remote)
                    if not self._retry.should_retry(error, attempt):
                        raise error

                    delay = self._retry.wait(attempt)
                    if self._logger is not None:
                        self._logger.warning(
                            "network_retry",
                            command=args[0],
                            remote=remote,
                            attempt=attempt + 1,
                            delay=round(delay, 3),
                            error=str(error),
                        )
                    await anyio.sleep(delay)
                    attempt += 1
        except TimeoutError as e:
            self._remove_stale_locks(locks_before)
            msg = f"git {args[0]} timed out after {self._settings.timeout:g}s"
            raise NetworkFailureError(msg, remote=remote, reason="timeout", transient=True) from e
        except anyio.get_cancelled_exc_class():
            self._remove_stale_locks(locks_before)
            raise

    async def _spawn(self, args: list[str]) -> GitOutput:
        """Run one git process, killing it if the caller is cancelled."""
        env = {**os.environ, **GIT_ENV, "LC_ALL": "C", "LANGUAGE": "C"}
        process = await anyio.open_process(
            ["git", *args],
            cwd=self.root,
            env=env,
            stdin=subprocess.DEVNULL,
        )
        stdout: list[bytes] = []
        stderr: list[bytes] = []
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(_drain, process.stdout, stdout)
                tg.start_soon(_drain, process.stderr, stderr)
                status = await process.wait()
        except BaseException:
            if process.returncode is None:
                process.kill()
            with anyio.CancelScope(shield=True):
                _ = await process.wait()
            raise
        finally:
            with anyio.CancelScope(shield=True):
                await process.aclose()

        return GitOutput(
            args=tuple(args),
            status=status,
            stdout=b"".join(stdout).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr).decode("utf-8", errors="replace"),
        )

    def _lock_files(self) -> set[Path]:
        git_dir = self.git_dir
        locks = set(git_dir.glob("*.lock"))
        refs_dir = git_dir / "refs"
        if refs_dir.is_dir():
            locks.update(refs_dir.rglob("*.lock"))
        return locks

    def _remove_stale_locks(self, before: set[Path]) -> None:
        """Remove lock files left behind by a killed git process."""
        for path in sorted(self._lock_files() - before):
            path.unlink(missing_ok=True)
            if self._logger is not None:
                self._logger.warning("stale_lock_removed", path=str(path))

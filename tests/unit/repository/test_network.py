"""Unit tests for network failure classification, retries, and timeouts."""

import random
from functools import partial
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import anyio
import pytest
from pytest_mock import MockerFixture

from gitstate.config import NetworkConfig
from gitstate.exceptions import (
    AuthenticationFailureError,
    NetworkFailureError,
    NonFastForwardError,
)
from gitstate.repository import (
    GitOutput,
    NetworkTransport,
    RetryPolicy,
    classify_network_failure,
)


class TestClassifyNetworkFailure:
    @pytest.mark.parametrize(
        "stderr",
        [
            "fatal: Authentication failed for 'https://host/repo.git/'",
            "fatal: could not read Username for 'https://host': terminal prompts disabled",
            "git@host: Permission denied (publickey).\nfatal: Could not read from remote repository.",
        ],
    )
    def test_authentication_failures(self, stderr: str) -> None:
        error = classify_network_failure(stderr, remote="origin")

        assert isinstance(error, AuthenticationFailureError)
        assert error.remote == "origin"

    def test_non_fast_forward_extracts_ref(self) -> None:
        stderr = (
            "To /tmp/remote.git\n"
            " ! [rejected]        main -> main (fetch first)\n"
            "error: failed to push some refs to '/tmp/remote.git'\n"
        )

        error = classify_network_failure(stderr, remote="origin")

        assert isinstance(error, NonFastForwardError)
        assert error.ref == "main"

    @pytest.mark.parametrize(
        "stderr",
        [
            "fatal: unable to access 'https://x/': Could not resolve host: x",
            "fatal: the remote end hung up unexpectedly",
            "ssh: connect to host x port 22: Connection refused",
        ],
    )
    def test_transient_failures(self, stderr: str) -> None:
        error = classify_network_failure(stderr, remote="origin")

        assert isinstance(error, NetworkFailureError)
        assert error.transient
        assert error.reason == "network"

    def test_missing_repository_is_not_transient(self) -> None:
        stderr = "fatal: '/nope' does not appear to be a git repository\n"

        error = classify_network_failure(stderr, remote="origin")

        assert isinstance(error, NetworkFailureError)
        assert not error.transient
        assert error.reason == "unreachable"

    def test_unknown_failure(self) -> None:
        error = classify_network_failure("fatal: something odd", remote="origin")

        assert isinstance(error, NetworkFailureError)
        assert error.reason == "error"
        assert not error.transient


class TestRetryPolicy:
    def test_built_from_network_config(self) -> None:
        settings = NetworkConfig(max_retries=3, backoff_base=0.25, backoff_max=2.0)

        policy = RetryPolicy.from_config(settings)

        assert policy == RetryPolicy(max_retries=3, backoff_base=0.25, backoff_max=2.0)

    def test_only_transient_network_failures_are_retried(self) -> None:
        policy = RetryPolicy(max_retries=2)
        transient = NetworkFailureError("down", remote="origin", reason="network", transient=True)
        unreachable = NetworkFailureError(
            "gone", remote="origin", reason="unreachable", transient=False
        )

        assert policy.should_retry(transient, 0)
        assert policy.should_retry(transient, 1)
        assert not policy.should_retry(transient, 2)
        assert not policy.should_retry(unreachable, 0)
        assert not policy.should_retry(AuthenticationFailureError("no", remote="origin"), 0)
        assert not policy.should_retry(
            NonFastForwardError("behind", remote="origin", ref="main"), 0
        )

    def test_zero_retries_never_retries(self) -> None:
        policy = RetryPolicy(max_retries=0)
        error = NetworkFailureError("down", remote="origin", reason="network", transient=True)

        assert not policy.should_retry(error, 0)

    @pytest.mark.parametrize(("retry", "ceiling"), [(0, 0.5), (1, 1.0), (2, 2.0), (5, 5.0)])
    def test_wait_stays_in_upper_half_of_capped_ceiling(self, retry: int, ceiling: float) -> None:
        policy = RetryPolicy(backoff_base=0.5, backoff_max=5.0)
        rng = random.Random(1234)

        for _ in range(50):
            assert ceiling / 2 <= policy.wait(retry, rng) <= ceiling

    def test_wait_is_reproducible_with_seeded_source(self) -> None:
        policy = RetryPolicy()

        first = [policy.wait(n, random.Random(7)) for n in range(3)]
        second = [policy.wait(n, random.Random(7)) for n in range(3)]

        assert first == second

    def test_zero_base_never_waits(self) -> None:
        assert RetryPolicy(backoff_base=0.0).wait(4) == 0.0


def _output(status: int, stderr: str = "") -> GitOutput:
    return GitOutput(args=("fetch", "origin"), status=status, stdout="", stderr=stderr)


@pytest.fixture
def transport(tmp_path: Path) -> NetworkTransport:
    repo = MagicMock()
    repo.git_dir = str(tmp_path)
    repo.working_tree_dir = str(tmp_path)
    (tmp_path / "refs" / "heads").mkdir(parents=True)
    settings = NetworkConfig(timeout=5.0, max_retries=1, backoff_base=0.0, backoff_max=0.0)
    return NetworkTransport(repo, MagicMock(), settings)


@pytest.mark.anyio
class TestRetries:
    async def test_transient_failure_is_retried_once(
        self, transport: NetworkTransport, mocker: MockerFixture
    ) -> None:
        spawn = mocker.patch.object(
            NetworkTransport,
            "_spawn",
            new=AsyncMock(side_effect=[_output(128, "Could not resolve host: x"), _output(0)]),
        )

        output = await transport._run_network(["fetch", "origin"], remote="origin")

        assert output.ok
        assert spawn.await_count == 2

    async def test_gives_up_after_max_retries(
        self, transport: NetworkTransport, mocker: MockerFixture
    ) -> None:
        spawn = mocker.patch.object(
            NetworkTransport,
            "_spawn",
            new=AsyncMock(return_value=_output(128, "Connection timed out")),
        )

        with pytest.raises(NetworkFailureError) as exc_info:
            _ = await transport._run_network(["fetch", "origin"], remote="origin")

        assert exc_info.value.transient
        assert spawn.await_count == 2

    @pytest.mark.parametrize(
        "stderr",
        [
            "fatal: Authentication failed",
            " ! [rejected]        main -> main (non-fast-forward)",
        ],
    )
    async def test_deterministic_failures_are_not_retried(
        self, transport: NetworkTransport, mocker: MockerFixture, stderr: str
    ) -> None:
        spawn = mocker.patch.object(
            NetworkTransport,
            "_spawn",
            new=AsyncMock(return_value=_output(1, stderr)),
        )

        with pytest.raises((AuthenticationFailureError, NonFastForwardError)):
            _ = await transport._run_network(["push", "origin"], remote="origin")

        assert spawn.await_count == 1

    async def test_transport_follows_configured_retry_count(
        self, tmp_path: Path, mocker: MockerFixture
    ) -> None:
        repo = MagicMock()
        repo.git_dir = str(tmp_path)
        settings = NetworkConfig(timeout=5.0, max_retries=3, backoff_base=0.0, backoff_max=0.0)
        transport = NetworkTransport(repo, MagicMock(), settings)
        spawn = mocker.patch.object(
            NetworkTransport,
            "_spawn",
            new=AsyncMock(return_value=_output(128, "Connection reset by peer")),
        )

        with pytest.raises(NetworkFailureError):
            _ = await transport._run_network(["fetch", "origin"], remote="origin")

        assert transport.retry_policy.max_retries == 3
        assert spawn.await_count == 4


@pytest.mark.anyio
class TestTimeouts:
    async def test_timeout_reports_network_failure(
        self, tmp_path: Path, mocker: MockerFixture
    ) -> None:
        repo = MagicMock()
        repo.git_dir = str(tmp_path)
        settings = NetworkConfig(timeout=0.05, max_retries=1)
        transport = NetworkTransport(repo, MagicMock(), settings)

        async def hang(_self: NetworkTransport, _args: list[str]) -> GitOutput:
            await anyio.sleep(10)
            return _output(0)

        _ = mocker.patch.object(NetworkTransport, "_spawn", new=hang)

        with pytest.raises(NetworkFailureError) as exc_info:
            _ = await transport._run_network(["fetch", "origin"], remote="origin")

        assert exc_info.value.reason == "timeout"

    async def test_timeout_removes_only_new_lock_files(
        self, tmp_path: Path, mocker: MockerFixture
    ) -> None:
        repo = MagicMock()
        repo.git_dir = str(tmp_path)
        heads = tmp_path / "refs" / "heads"
        heads.mkdir(parents=True)
        existing = tmp_path / "config.lock"
        _ = existing.write_text("")
        stale = heads / "main.lock"
        transport = NetworkTransport(repo, MagicMock(), NetworkConfig(timeout=0.05))

        async def hang(_self: NetworkTransport, _args: list[str]) -> GitOutput:
            _ = stale.write_text("")
            await anyio.sleep(10)
            return _output(0)

        _ = mocker.patch.object(NetworkTransport, "_spawn", new=hang)

        with pytest.raises(NetworkFailureError):
            _ = await transport._run_network(["fetch", "origin"], remote="origin")

        assert not stale.exists()
        assert existing.exists()

    async def test_cancellation_removes_new_lock_files(
        self, tmp_path: Path, mocker: MockerFixture
    ) -> None:
        repo = MagicMock()
        repo.git_dir = str(tmp_path)
        stale = tmp_path / "index.lock"
        transport = NetworkTransport(repo, MagicMock(), NetworkConfig())
        started = anyio.Event()

        async def hang(_self: NetworkTransport, _args: list[str]) -> GitOutput:
            _ = stale.write_text("")
            started.set()
            await anyio.sleep(10)
            return _output(0)

        _ = mocker.patch.object(NetworkTransport, "_spawn", new=hang)

        async with anyio.create_task_group() as tg:
            tg.start_soon(partial(transport._run_network, ["fetch", "origin"], remote="origin"))
            await started.wait()
            tg.cancel_scope.cancel()

        assert not stale.exists()

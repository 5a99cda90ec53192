"""Operation serializer for repository sessions.

Every mutating operation on a workspace runs through one lane. Callers that
arrive while the lane is busy wait in FIFO order; operations never
interleave.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar, final

import anyio

from gitstate.exceptions import (
    ConcurrentOperationRejectedError,
    OperationCancelledError,
    SessionClosedError,
)

from ._models import SerializerState

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

T = TypeVar("T")


@final
class OperationSerializer:
    """FIFO execution lane with a bounded wait queue.

    ``anyio.Lock`` wakes waiters in arrival order, which gives the FIFO
    guarantee. At most ``max_pending`` callers may wait at once; further
    callers are rejected immediately.
    """

    __slots__ = (
        "_cancel_scope",
        "_closed",
        "_current",
        "_lock",
        "_logger",
        "_max_pending",
        "_pending",
    )

    def __init__(
        self,
        max_pending: int = 64,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the serializer.

        Args:
            max_pending: Maximum number of callers waiting for the lane.
            logger: Optional logger for rejections and cancellations.
        """
        self._lock = anyio.Lock()
        self._max_pending = max_pending
        self._logger = logger
        self._pending = 0
        self._current: str | None = None
        self._cancel_scope: anyio.CancelScope | None = None
        self._closed = False

    @property
    def state(self) -> SerializerState:
        """IDLE or EXECUTING."""
        return SerializerState.IDLE if self._current is None else SerializerState.EXECUTING

    @property
    def current_operation(self) -> str | None:
        """Name of the executing operation, if any."""
        return self._current

    @property
    def pending(self) -> int:
        """Number of callers waiting for the lane."""
        return self._pending

    @property
    def closed(self) -> bool:
        """True once the serializer stopped accepting operations."""
        return self._closed

    @asynccontextmanager
    async def lane(self, operation: str) -> AsyncIterator[None]:
        """Hold the execution lane for one operation.

        Args:
            operation: Name of the operation, for state reporting.

        Raises:
            SessionClosedError: If the serializer is closed, or closed while
                the caller waited.
            ConcurrentOperationRejectedError: If the wait queue is full.
        """
        if self._closed:
            msg = f"Cannot run {operation}: session is closed"
            raise SessionClosedError(msg)
        if self._pending >= self._max_pending:
            if self._logger is not None:
                self._logger.warning(
                    "operation_rejected", operation=operation, pending=self._pending
                )
            msg = f"Too many operations queued; rejected {operation}"
            raise ConcurrentOperationRejectedError(msg, operation=operation)

        self._pending += 1
        try:
            await self._lock.acquire()
        finally:
            self._pending -= 1

        try:
            if self._closed:
                msg = f"Cannot run {operation}: session is closed"
                raise SessionClosedError(msg)
            self._current = operation
            yield
        finally:
            self._current = None
            self._cancel_scope = None
            self._lock.release()

    async def run_cancellable(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run work that ``cancel_current`` may interrupt.

        Must be called while holding the lane.

        Raises:
            OperationCancelledError: If the work was cancelled through
                ``cancel_current``.
        """
        with anyio.CancelScope() as scope:
            self._cancel_scope = scope
            try:
                return await func()
            finally:
                self._cancel_scope = None

        if self._logger is not None:
            self._logger.info("operation_cancelled", operation=operation)
        msg = f"Operation {operation} was cancelled"
        raise OperationCancelledError(msg, operation=operation)

    def cancel_current(self) -> bool:
        """Cancel the executing operation if it is cancellable.

        Returns:
            True if a cancellable operation was signalled.
        """
        if self._cancel_scope is None:
            return False
        self._cancel_scope.cancel()
        return True

    @asynccontextmanager
    async def closing(self) -> AsyncIterator[None]:
        """Stop accepting operations and hold the lane once it drains.

        The executing operation is cancelled if it is cancellable. Callers
        still queued fail with SessionClosedError once they get the lane.
        """
        self._closed = True
        _ = self.cancel_current()
        async with self._lock:
            yield

"""Change notification for repository sessions.

The notifier keeps an append-only log of change events and fans each event
out to subscribers in the order the mutations completed.

Callbacks are awaited inline while the session still holds its execution
lane, so a callback must not await a mutating session operation (it would
wait for itself). Use ``open_stream()`` to consume events from an independent
task instead.
"""

import inspect
import math
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeAlias, final

import anyio
from anyio.streams.memory import (  # noqa: TC002 - Used at runtime in annotations
    MemoryObjectReceiveStream,
    MemoryObjectSendStream,
)

from ._models import ChangeEvent, EventName

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

EventCallback: TypeAlias = Callable[[ChangeEvent], Awaitable[None] | None]


@dataclass(slots=True, eq=False)
class Subscription:
    """Handle returned by ``ChangeNotifier.subscribe``.

    Attributes:
        callback: The subscriber.
        names: Event names delivered to the subscriber (all when None).
        active: False once unsubscribed.
    """

    callback: EventCallback
    names: frozenset[EventName] | None = None
    active: bool = True
    _notifier: "ChangeNotifier | None" = field(default=None, repr=False)

    def matches(self, name: EventName) -> bool:
        """True if the subscription wants events called ``name``."""
        return self.active and (self.names is None or name in self.names)

    def unsubscribe(self) -> None:
        """Stop delivery to this subscriber."""
        if self._notifier is not None:
            self._notifier.off(self)


@final
class ChangeNotifier:
    """Append-only event log with fan-out to subscribers."""

    __slots__ = ("_events", "_logger", "_streams", "_subscriptions")

    def __init__(self, logger: "FilteringBoundLogger | None" = None) -> None:  # noqa: UP037
        """Initialize the notifier.

        Args:
            logger: Logger used to report failing subscribers.
        """
        self._events: list[ChangeEvent] = []
        self._subscriptions: list[Subscription] = []
        self._streams: list[MemoryObjectSendStream[ChangeEvent]] = []
        self._logger = logger

    @property
    def events(self) -> tuple[ChangeEvent, ...]:
        """Every event emitted so far, oldest first."""
        return tuple(self._events)

    @property
    def last_sequence(self) -> int:
        """Sequence number of the newest event, 0 before the first."""
        return self._events[-1].sequence if self._events else 0

    def subscribe(
        self,
        callback: EventCallback,
        names: Iterable[EventName | str] | None = None,
    ) -> Subscription:
        """Register a callback for all events, or only the named ones.

        Args:
            callback: Sync or async callable receiving each ChangeEvent.
            names: Event names to deliver; every event when None.

        Returns:
            A handle that unsubscribes the callback.
        """
        selected = frozenset(EventName(n) for n in names) if names is not None else None
        subscription = Subscription(callback=callback, names=selected, _notifier=self)
        self._subscriptions.append(subscription)
        return subscription

    def on(self, name: EventName | str, callback: EventCallback) -> Subscription:
        """Register a callback for a single event name."""
        return self.subscribe(callback, names=(name,))

    def off(self, target: Subscription | EventCallback) -> int:
        """Unsubscribe a subscription, or every subscription of a callback.

        Returns:
            Number of subscriptions removed.
        """
        removed = [
            s
            for s in self._subscriptions
            if s is target or s.callback is target
        ]
        for subscription in removed:
            subscription.active = False
            self._subscriptions.remove(subscription)
        return len(removed)

    def open_stream(self) -> MemoryObjectReceiveStream[ChangeEvent]:
        """Open an unbounded stream receiving every subsequent event.

        Close the returned stream (or use it as an async context manager)
        to stop receiving.

        Example:
            >>> async with notifier.open_stream() as events:  # doctest: +SKIP
            ...     async for event in events:
            ...         print(event.name)
        """
        send, receive = anyio.create_memory_object_stream[ChangeEvent](math.inf)
        self._streams.append(send)
        return receive

    async def emit(
        self,
        name: EventName | str,
        payload: dict[str, Any] | None = None,
        *,
        version: int = 0,
    ) -> ChangeEvent:
        """Record an event and deliver it to every matching subscriber.

        Subscriber exceptions are logged and never propagate.

        Args:
            name: The event name.
            payload: Optional event data.
            version: Snapshot version the event describes.

        Returns:
            The recorded event.
        """
        event = ChangeEvent(
            sequence=self.last_sequence + 1,
            name=EventName(name),
            payload=dict(payload or {}),
            version=version,
            timestamp=datetime.now(UTC),
        )
        self._events.append(event)

        for subscription in list(self._subscriptions):
            if not subscription.matches(event.name):
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                # Subscriber errors must not break delivery or the operation
                if self._logger is not None:
                    self._logger.exception(
                        "subscriber_failed", name=str(event.name), sequence=event.sequence
                    )

        for stream in list(self._streams):
            try:
                stream.send_nowait(event)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                self._streams.remove(stream)
        return event

    def close(self) -> None:
        """End every open stream and drop all subscribers."""
        for stream in self._streams:
            stream.close()
        self._streams.clear()
        for subscription in self._subscriptions:
            subscription.active = False
        self._subscriptions.clear()

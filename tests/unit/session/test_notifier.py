"""Unit tests for the change notifier."""

from unittest.mock import MagicMock

import anyio
import pytest

from gitstate.session import ChangeEvent, ChangeNotifier, EventName

pytestmark = pytest.mark.anyio


async def test_events_get_increasing_sequence_numbers() -> None:
    notifier = ChangeNotifier()

    first = await notifier.emit(EventName.FILES_STAGED, version=1)
    second = await notifier.emit(EventName.COMMITTED, version=2)

    assert (first.sequence, second.sequence) == (1, 2)
    assert notifier.last_sequence == 2
    assert [e.name for e in notifier.events] == [EventName.FILES_STAGED, EventName.COMMITTED]
    assert second.version == 2
    assert second.timestamp is not None


async def test_sync_and_async_callbacks_receive_events_in_order() -> None:
    notifier = ChangeNotifier()
    received: list[tuple[str, int]] = []

    def sync_callback(event: ChangeEvent) -> None:
        received.append(("sync", event.sequence))

    async def async_callback(event: ChangeEvent) -> None:
        await anyio.sleep(0)
        received.append(("async", event.sequence))

    _ = notifier.subscribe(sync_callback)
    _ = notifier.subscribe(async_callback)
    _ = await notifier.emit(EventName.BRANCH_CREATED)
    _ = await notifier.emit(EventName.BRANCH_SWITCHED)

    assert received == [("sync", 1), ("async", 1), ("sync", 2), ("async", 2)]


async def test_filtered_subscription_only_sees_named_events() -> None:
    notifier = ChangeNotifier()
    received: list[EventName] = []

    _ = notifier.on("merged", lambda event: received.append(event.name))
    _ = await notifier.emit(EventName.COMMITTED)
    _ = await notifier.emit(EventName.MERGED, {"success": True, "conflicts": []})

    assert received == [EventName.MERGED]


async def test_failing_subscriber_does_not_break_delivery() -> None:
    logger = MagicMock()
    notifier = ChangeNotifier(logger)
    received: list[int] = []

    def broken(_event: ChangeEvent) -> None:
        msg = "subscriber bug"
        raise RuntimeError(msg)

    _ = notifier.subscribe(broken)
    _ = notifier.subscribe(lambda event: received.append(event.sequence))

    event = await notifier.emit(EventName.PUSHED)

    assert received == [event.sequence]
    logger.exception.assert_called_once()


async def test_off_and_unsubscribe_stop_delivery() -> None:
    notifier = ChangeNotifier()
    received: list[int] = []

    def callback(event: ChangeEvent) -> None:
        received.append(event.sequence)

    subscription = notifier.subscribe(callback)
    _ = await notifier.emit(EventName.FETCHED)
    subscription.unsubscribe()
    _ = await notifier.emit(EventName.FETCHED)

    _ = notifier.subscribe(callback)
    _ = notifier.subscribe(callback)
    assert notifier.off(callback) == 2
    _ = await notifier.emit(EventName.FETCHED)

    assert received == [1]
    assert not subscription.active


async def test_unknown_event_name_is_rejected() -> None:
    notifier = ChangeNotifier()

    with pytest.raises(ValueError, match="not-an-event"):
        _ = notifier.subscribe(lambda _e: None, names=["not-an-event"])


async def test_stream_receives_events_emitted_after_opening() -> None:
    notifier = ChangeNotifier()
    _ = await notifier.emit(EventName.REFRESHED)
    stream = notifier.open_stream()

    _ = await notifier.emit(EventName.STASHED)
    _ = await notifier.emit(EventName.STASH_APPLIED, {"success": False, "conflicts": ["a"]})
    notifier.close()

    async with stream:
        events = [event async for event in stream]

    assert [e.name for e in events] == [EventName.STASHED, EventName.STASH_APPLIED]
    assert events[1].payload == {"success": False, "conflicts": ["a"]}


async def test_closed_stream_is_dropped() -> None:
    notifier = ChangeNotifier()
    stream = notifier.open_stream()
    await stream.aclose()

    _ = await notifier.emit(EventName.COMMITTED)

    assert notifier.last_sequence == 1

"""
Test PendingQueue and BufferedEvent.
"""

import pytest

from mqtt_relay import BufferedEvent, BufferOverflow, OverflowPolicy, PendingQueue


def test_append_keeps_fifo_order():
    queue = PendingQueue()
    for i in range(5):
        queue.append("a/topic", f"m{i}".encode())

    assert len(queue) == 5
    assert [e.payload for e in queue.snapshot()] == [b"m0", b"m1", b"m2", b"m3", b"m4"]


def test_drain_consumes_everything():
    queue = PendingQueue()
    queue.append("t", b"m1")
    queue.append("t", b"m2")

    drained = [e.payload for e in queue.drain()]

    assert drained == [b"m1", b"m2"]
    assert len(queue) == 0
    assert not queue


def test_drain_abort_keeps_current_and_later_entries():
    """Breaking out while holding entry k leaves k..N queued in order."""
    queue = PendingQueue()
    for name in (b"m1", b"m2", b"m3"):
        queue.append("t", name)

    for event in queue.drain():
        if event.payload == b"m2":
            break

    assert [e.payload for e in queue.snapshot()] == [b"m2", b"m3"]


def test_drain_abort_by_exception_keeps_entry():
    queue = PendingQueue()
    queue.append("t", b"m1")
    queue.append("t", b"m2")

    with pytest.raises(RuntimeError):
        for event in queue.drain():
            raise RuntimeError("send failed")

    assert [e.payload for e in queue.snapshot()] == [b"m1", b"m2"]


def test_clear_reports_dropped_count():
    queue = PendingQueue()
    queue.append("t", b"m1")
    queue.append("t", b"m2")

    assert queue.clear() == 2
    assert len(queue) == 0
    assert queue.clear() == 0


def test_buffered_event_is_immutable_and_validated():
    event = BufferedEvent(topic="t", payload=b"x")
    with pytest.raises(AttributeError):
        event.topic = "other"

    with pytest.raises(ValueError):
        BufferedEvent(topic="", payload=b"x")
    with pytest.raises(ValueError):
        BufferedEvent(topic="t", payload="not bytes")

    assert event.size == 1


def test_bounded_drop_oldest_evicts_head():
    queue = PendingQueue(max_size=2, overflow_policy=OverflowPolicy.DROP_OLDEST)
    assert queue.append("t", b"m1") is None
    assert queue.append("t", b"m2") is None

    evicted = queue.append("t", b"m3")

    assert evicted.payload == b"m1"
    assert [e.payload for e in queue.snapshot()] == [b"m2", b"m3"]


def test_bounded_reject_new_leaves_queue_untouched():
    queue = PendingQueue(max_size=1, overflow_policy="reject_new")
    queue.append("t", b"m1")

    with pytest.raises(BufferOverflow):
        queue.append("t", b"m2")

    assert [e.payload for e in queue.snapshot()] == [b"m1"]


def test_invalid_max_size_rejected():
    with pytest.raises(ValueError):
        PendingQueue(max_size=0)

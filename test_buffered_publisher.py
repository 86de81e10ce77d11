"""
Test BufferedPublisher (without a real broker).

Covers queueing while offline, ordered flush on reconnect, backlog-before-live
ordering, partial flush failures, live-send failure policies and teardown.
"""

import json
import threading

import pytest

from mqtt_relay import (
    BufferedPublisher,
    BufferOverflow,
    FlushFailed,
    InvalidArgument,
    LogEvent,
    OverflowPolicy,
    PublisherClosed,
    TransmitFailed,
    TransportError,
)


@pytest.fixture
def publisher(transport, logger):
    return BufferedPublisher(transport=transport, logger=logger)


def test_disconnected_publishes_are_queued(publisher, transport):
    """N offline publishes → N queued entries, nothing sent."""
    for i in range(10):
        publisher.publish("a/topic", f"m{i}".encode())

    assert publisher.pending == 10
    assert transport.attempts == 0
    assert publisher.get_stats()['buffered'] == 10


def test_reconnect_flush_preserves_order(publisher, transport):
    publisher.publish("a/topic", b"m1")
    publisher.publish("a/topic", b"m2")
    assert [e.payload for e in publisher.pending_events()] == [b"m1", b"m2"]

    transport.connected = True
    sent = publisher.flush()

    assert sent == 2
    assert transport.sent == [("a/topic", b"m1"), ("a/topic", b"m2")]
    assert publisher.pending == 0


def test_flush_preserves_per_entry_topic(publisher, transport):
    publisher.publish("a", b"1")
    publisher.publish("b", b"2")
    publisher.publish("a", b"3")

    transport.connected = True
    publisher.flush()

    assert transport.sent == [("a", b"1"), ("b", b"2"), ("a", b"3")]


def test_connected_publish_drains_backlog_first(publisher, transport):
    publisher.publish("t", b"m1")

    transport.connected = True
    publisher.publish("t", b"m2")

    assert transport.payloads == [b"m1", b"m2"]
    assert publisher.pending == 0


def test_connected_publish_with_empty_backlog_sends_directly(publisher, transport):
    transport.connected = True

    publisher.publish("t", b"x")

    assert transport.sent == [("t", b"x")]
    assert publisher.pending == 0
    assert publisher.get_stats()['buffered'] == 0


def test_second_flush_is_noop(publisher, transport):
    publisher.publish("t", b"m1")
    transport.connected = True

    assert publisher.flush() == 1
    assert publisher.flush() == 0
    assert publisher.pending == 0
    assert transport.attempts == 1


def test_flush_while_disconnected_leaves_queue_untouched(publisher, transport):
    publisher.publish("t", b"m1")
    publisher.publish("t", b"m2")

    assert publisher.flush() == 0

    assert [e.payload for e in publisher.pending_events()] == [b"m1", b"m2"]
    assert transport.attempts == 0


def test_flush_stops_at_first_failure(publisher, transport):
    """m1 ok, m2 fails → FlushFailed, queue is [m2, m3], m3 never attempted."""
    for payload in (b"m1", b"m2", b"m3"):
        publisher.publish("t", payload)

    transport.connected = True
    transport.fail_payloads.add(b"m2")

    with pytest.raises(FlushFailed) as exc_info:
        publisher.flush()

    assert exc_info.value.sent == 1
    assert exc_info.value.remaining == 2
    assert exc_info.value.event.payload == b"m2"
    assert isinstance(exc_info.value.__cause__, TransportError)
    assert transport.payloads == [b"m1"]
    assert transport.attempts == 2
    assert [e.payload for e in publisher.pending_events()] == [b"m2", b"m3"]


@pytest.mark.parametrize("k", [1, 3, 5])
def test_partial_failure_removes_exactly_k_minus_one(publisher, transport, k):
    payloads = [f"m{i}".encode() for i in range(1, 6)]
    for payload in payloads:
        publisher.publish("t", payload)

    transport.connected = True
    transport.fail_payloads.add(payloads[k - 1])

    with pytest.raises(FlushFailed):
        publisher.flush()

    assert transport.payloads == payloads[:k - 1]
    assert [e.payload for e in publisher.pending_events()] == payloads[k - 1:]


def test_flush_can_be_retried_after_failure(publisher, transport):
    for payload in (b"m1", b"m2", b"m3"):
        publisher.publish("t", payload)

    transport.connected = True
    transport.fail_payloads.add(b"m2")
    with pytest.raises(FlushFailed):
        publisher.flush()

    transport.fail_payloads.clear()
    assert publisher.flush() == 2
    assert transport.payloads == [b"m1", b"m2", b"m3"]


def test_failed_backlog_queues_new_message_behind_it(publisher, transport):
    publisher.publish("t", b"old")

    transport.connected = True
    transport.fail_payloads.add(b"old")

    with pytest.raises(FlushFailed):
        publisher.publish("t", b"new")

    assert transport.sent == []
    assert [e.payload for e in publisher.pending_events()] == [b"old", b"new"]

    transport.fail_payloads.clear()
    publisher.flush()
    assert transport.payloads == [b"old", b"new"]


def test_live_send_failure_drops_message_by_default(publisher, transport):
    transport.connected = True
    transport.fail_payloads.add(b"live")

    with pytest.raises(TransmitFailed) as exc_info:
        publisher.publish("t", b"live")

    assert exc_info.value.requeued is False
    assert exc_info.value.topic == "t"
    assert publisher.pending == 0
    stats = publisher.get_stats()
    assert stats['failed'] == 1
    assert stats['dropped'] == 1


def test_live_send_failure_requeues_when_configured(transport, logger):
    publisher = BufferedPublisher(
        transport=transport,
        logger=logger,
        requeue_on_transmit_failure=True
    )
    transport.connected = True
    transport.fail_payloads.add(b"live")

    with pytest.raises(TransmitFailed) as exc_info:
        publisher.publish("t", b"live")

    assert exc_info.value.requeued is True
    assert [e.payload for e in publisher.pending_events()] == [b"live"]

    transport.fail_payloads.clear()
    publisher.publish("t", b"next")
    assert transport.payloads == [b"live", b"next"]


@pytest.mark.parametrize("topic", ["", None, 42])
def test_invalid_topic_rejected(publisher, topic):
    with pytest.raises(InvalidArgument):
        publisher.publish(topic, b"x")
    assert publisher.pending == 0


def test_invalid_payload_rejected(publisher):
    with pytest.raises(InvalidArgument):
        publisher.publish("t", {"not": "rendered"})
    # InvalidArgument is also a ValueError
    with pytest.raises(ValueError):
        publisher.publish("t", None)


def test_str_payload_is_utf8_encoded(publisher, transport):
    publisher.publish("t", "héllo")
    publisher.publish("t", bytearray(b"raw"))

    assert [e.payload for e in publisher.pending_events()] == ["héllo".encode("utf-8"), b"raw"]


def test_close_drops_queue_and_blocks_further_use(publisher, transport):
    publisher.publish("t", b"m1")
    publisher.publish("t", b"m2")

    publisher.close()

    assert publisher.closed
    assert publisher.pending == 0
    assert publisher.get_stats()['dropped'] == 2

    transport.connected = True
    assert publisher.flush() == 0
    assert transport.attempts == 0
    with pytest.raises(PublisherClosed):
        publisher.publish("t", b"m3")

    publisher.close()


def test_context_manager_closes(transport, logger):
    with BufferedPublisher(transport=transport, logger=logger) as publisher:
        publisher.publish("t", b"m1")
    assert publisher.closed
    assert publisher.pending == 0


def test_bounded_reject_new_raises_overflow(transport, logger):
    publisher = BufferedPublisher(
        transport=transport,
        logger=logger,
        max_size=2,
        overflow_policy=OverflowPolicy.REJECT_NEW
    )
    publisher.publish("t", b"m1")
    publisher.publish("t", b"m2")

    with pytest.raises(BufferOverflow):
        publisher.publish("t", b"m3")

    assert [e.payload for e in publisher.pending_events()] == [b"m1", b"m2"]
    assert publisher.get_stats()['dropped'] == 1


def test_bounded_drop_oldest_keeps_newest(transport, logger):
    publisher = BufferedPublisher(transport=transport, logger=logger, max_size=2)
    for payload in (b"m1", b"m2", b"m3"):
        publisher.publish("t", payload)

    assert [e.payload for e in publisher.pending_events()] == [b"m2", b"m3"]
    assert publisher.get_stats()['dropped'] == 1


def test_stats_track_activity(publisher, transport):
    publisher.publish("t", b"m1")
    transport.connected = True
    publisher.publish("t", b"m2")

    stats = publisher.get_stats()
    assert stats == {
        'published': 1,
        'buffered': 1,
        'flushed': 1,
        'dropped': 0,
        'failed': 0,
        'pending': 0,
        'connected': True,
        'closed': False,
    }


def test_queueing_is_logged(publisher, caplog):
    caplog.set_level("DEBUG")
    publisher.publish("t", b"m1")

    events = [json.loads(record.getMessage())['event'] for record in caplog.records]
    assert LogEvent.BUFFER_QUEUED.value in events


def test_concurrent_producers_keep_per_producer_order(publisher, transport):
    """Publishes from several threads interleave but never reorder or vanish."""
    def produce(name):
        for i in range(50):
            publisher.publish("t", f"{name}-{i}".encode())

    threads = [threading.Thread(target=produce, args=(n,)) for n in ("a", "b", "c")]
    for t in threads:
        t.start()
    transport.connected = True
    for t in threads:
        t.join()
    publisher.flush()

    payloads = [p.decode() for p in transport.payloads]
    assert len(payloads) == 150
    assert len(set(payloads)) == 150
    for name in ("a", "b", "c"):
        mine = [p for p in payloads if p.startswith(f"{name}-")]
        assert mine == [f"{name}-{i}" for i in range(50)]

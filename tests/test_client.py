"""Tests for the StitchClient facade."""

import threading
from collections import Counter

import pytest
from loguru import logger

from stitch_client import BatchTooLargeError, ClientClosedError, ClientConfig, DeliveryError, EntryTooLargeError, StitchClient
from stitch_client.sender import ResponseHandler
from stitch_client.worker import WorkerState

NUM_THREADS = 4
NUM_RECORDS_PER_THREAD = 10_000


def make_config(**overrides):
    settings = {"batch_size_bytes": 1_000_000, "batch_delay_millis": float("inf")}
    settings.update(overrides)
    return ClientConfig(**settings)


def test_push_below_threshold_waits_for_close(transport):
    client = StitchClient(transport, config=make_config())
    client.push({"id": 1})
    client.push({"id": 2})

    assert transport.bodies == []
    assert not client.worker.running

    client.close()
    assert transport.records() == [{"id": 1}, {"id": 2}]


def test_push_with_zero_threshold_sends_every_record(transport):
    client = StitchClient(transport, config=make_config(batch_size_bytes=0))
    client.push({"id": 1})
    client.push({"id": 2})

    assert transport.batch_sizes() == [1, 1]
    client.close()


def test_push_that_triggers_flush_raises_delivery_error(transport):
    transport.status_code = 400
    transport.content = {"status": "ERROR", "error": "Invalid record"}
    client = StitchClient(transport, config=make_config(batch_size_bytes=0))

    with pytest.raises(DeliveryError) as excinfo:
        client.push({"id": 1})

    assert "Invalid record" in str(excinfo.value)
    assert excinfo.value.result.status_code == 400
    client.close()


def test_push_rejects_oversized_record(transport):
    client = StitchClient(transport, config=make_config(max_batch_size_bytes=64))

    with pytest.raises(EntryTooLargeError):
        client.push({"data": "x" * 100})

    assert client.buffer.available_bytes() == 0
    client.close()
    assert transport.bodies == []


def test_submissions_after_close_fail_fast(transport):
    client = StitchClient(transport, config=make_config())
    client.close()
    client.close()

    with pytest.raises(ClientClosedError):
        client.push({"id": 1})
    with pytest.raises(ClientClosedError):
        client.offer({"id": 1})
    with pytest.raises(ClientClosedError):
        client.put({"id": 1})
    assert client.closed


def test_offer_and_put_are_delivered_on_close(transport):
    flushed = []
    client = StitchClient(transport, config=make_config(), flush_handler=flushed.extend)

    assert client.offer({"id": 1}, callback_arg="one")
    client.put({"id": 2}, callback_arg="two")
    assert client.offer({"id": 3}, callback_arg="three", timeout=1.0)
    assert client.worker.running

    client.close()

    assert transport.records() == [{"id": 1}, {"id": 2}, {"id": 3}]
    assert flushed == ["one", "two", "three"]
    assert client.worker.state == WorkerState.STOPPED


def test_offer_returns_false_when_intake_is_full(transport):
    release = threading.Event()
    deliver = transport.deliver

    def blocked_deliver(body, content_type):
        release.wait(10.0)
        return deliver(body, content_type)

    transport.deliver = blocked_deliver
    client = StitchClient(transport, config=make_config(batch_size_bytes=0, intake_queue_capacity=1))
    try:
        results = [client.offer({"id": i}) for i in range(10)]
        assert not all(results)
        assert client.get_stats()["queue"]["total_rejected"] > 0
    finally:
        release.set()
        client.close()


def test_flush_with_worker_running(transport):
    client = StitchClient(transport, config=make_config())
    client.start()
    client.put({"id": 1})
    client.push({"id": 2})

    assert client.flush(timeout=5.0)
    assert sorted(record["id"] for record in transport.records()) == [1, 2]
    client.close()


def test_flush_without_worker_raises_on_failure(transport):
    client = StitchClient(transport, config=make_config())
    client.push({"id": 1})
    transport.raise_error = ConnectionError("unreachable")

    with pytest.raises(DeliveryError):
        client.flush()
    client.close()


def test_push_batch_delivers_immediately(transport):
    client = StitchClient(transport, config=make_config())
    result = client.push_batch([{"id": 1}, {"id": 2}], callback_args=["a", "b"])

    assert result.success
    assert result.record_count == 2
    assert transport.batch_sizes() == [2]
    client.close()


def test_push_batch_rejects_oversized_batch(transport):
    client = StitchClient(transport, config=make_config(max_batch_size_bytes=64))

    with pytest.raises(BatchTooLargeError):
        client.push_batch([{"data": "x" * 20}, {"data": "y" * 20}, {"data": "z" * 20}])
    assert transport.bodies == []
    client.close()


def test_push_batch_raises_on_failure(transport):
    transport.status_code = 503
    client = StitchClient(transport, config=make_config())

    with pytest.raises(DeliveryError):
        client.push_batch([{"id": 1}])
    client.close()


def test_response_handler_receives_outcomes(transport):
    class Handler(ResponseHandler):
        def __init__(self):
            self.ok_records = 0
            self.errors = []

        def handle_ok(self, entries, result):
            self.ok_records += len(entries)

        def handle_error(self, entries, error):
            self.errors.append(error)

    handler = Handler()
    client = StitchClient(transport, config=make_config(batch_size_bytes=0), callback=handler)
    client.push({"id": 1})
    transport.status_code = 500
    with pytest.raises(DeliveryError):
        client.push({"id": 2})
    client.close()

    assert handler.ok_records == 1
    assert len(handler.errors) == 1


def test_context_manager_starts_and_closes(transport):
    with StitchClient(transport, config=make_config()) as client:
        assert client.worker.running
        client.put({"id": 1})

    assert client.closed
    assert transport.records() == [{"id": 1}]


def test_invalid_config_is_rejected(transport):
    with pytest.raises(ValueError):
        StitchClient(transport, config=make_config(intake_queue_capacity=0))


@pytest.mark.parametrize("method", ["push", "put"])
def test_concurrent_producers(transport, method):
    """Four producers submit 10,000 tagged records each; none are lost."""
    flushed = []
    client = StitchClient(transport, config=make_config(batch_size_bytes=4_000_000), flush_handler=flushed.append)

    def producer(thread_id):
        submit = getattr(client, method)
        for record_id in range(NUM_RECORDS_PER_THREAD):
            submit({"thread_id": thread_id, "record_id": record_id, "a": "b" * 100}, callback_arg=(thread_id, record_id))

    threads = [threading.Thread(target=producer, args=(i,)) for i in range(NUM_THREADS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    client.close()

    records = transport.records()
    counts = Counter(record["thread_id"] for record in records)
    logger.info(f"Delivered {len(records)} records in {len(transport.bodies)} batches")

    assert counts == {i: NUM_RECORDS_PER_THREAD for i in range(NUM_THREADS)}
    assert all(len(tokens) > 0 for tokens in flushed)
    assert [len(tokens) for tokens in flushed] == transport.batch_sizes()
    assert sum(len(tokens) for tokens in flushed) == NUM_THREADS * NUM_RECORDS_PER_THREAD

    # Per-producer order is preserved
    for thread_id in range(NUM_THREADS):
        ids = [record["record_id"] for record in records if record["thread_id"] == thread_id]
        assert ids == list(range(NUM_RECORDS_PER_THREAD))


def test_failure_callback_can_retry_with_push(transport):
    """A callback that re-pushes after a failed batch completes instead of hanging."""
    transport.status_code = 500
    retried = []

    def retry(entries, result):
        if not result.success and not retried:
            retried.append(entries)
            transport.status_code = 200
            client.push({"retry": True})

    client = StitchClient(transport, config=make_config(batch_size_bytes=0), callback=retry)
    errors = []

    def producer():
        try:
            client.push({"id": 1})
        except DeliveryError as e:
            errors.append(e)

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    thread.join(5.0)

    assert not thread.is_alive()
    assert len(errors) == 1
    assert transport.records() == [{"id": 1}, {"retry": True}]
    client.close()


def test_worker_callback_can_push_flush_and_close(transport):
    transport.status_code = 500
    finished = threading.Event()

    def on_batch(entries, result):
        if result.success:
            return
        transport.status_code = 200
        client.push({"retry": True})
        client.put({"retry": "put"})
        client.flush()
        client.close()
        finished.set()

    client = StitchClient(transport, config=make_config(batch_size_bytes=0), callback=on_batch)
    client.put({"id": 1})

    assert finished.wait(5.0)
    assert client.closed
    assert transport.records() == [{"id": 1}, {"retry": True}, {"retry": "put"}]


def test_push_keeps_order_after_queued_records(transport):
    """A push from the same thread is delivered after that thread's earlier puts."""
    started = threading.Event()
    release = threading.Event()
    deliver = transport.deliver

    def stalled_deliver(body, content_type):
        started.set()
        release.wait(10.0)
        return deliver(body, content_type)

    transport.deliver = stalled_deliver
    client = StitchClient(transport, config=make_config(batch_size_bytes=0))

    def producer():
        client.put({"seq": 0})
        client.put({"seq": 1})
        client.push({"seq": 2})

    thread = threading.Thread(target=producer, daemon=True)
    thread.start()
    assert started.wait(5.0)
    release.set()
    thread.join(5.0)
    client.close()

    assert not thread.is_alive()
    assert [record["seq"] for record in transport.records()] == [0, 1, 2]


def test_push_through_running_worker_raises_delivery_error(transport):
    transport.status_code = 500
    client = StitchClient(transport, config=make_config(batch_size_bytes=0))
    client.start()

    with pytest.raises(DeliveryError):
        client.push({"id": 1})

    client.close()
    assert client.get_stats()["worker"]["total_loop_errors"] == 0

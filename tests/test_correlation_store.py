import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from callback_relay.errors import InvalidRecordError
from callback_relay.schemas import CallbackRecord
from callback_relay.services import CorrelationStore


def test_get_claims_record_once(store, make_record):
    store.save(make_record("TX1", status="READY_TO_CONFIRM"))

    record = store.get("TX1")
    assert record is not None
    assert record.payload["status"] == "READY_TO_CONFIRM"
    assert record.consumed is True

    assert store.get("TX1") is None


def test_get_unknown_code_returns_none(store):
    assert store.get("missing") is None


def test_save_rejects_missing_transaction_code(store):
    with pytest.raises(InvalidRecordError):
        store.save(CallbackRecord(payload={"status": "COMPLETED"}))

    with pytest.raises(InvalidRecordError):
        store.save(CallbackRecord(transaction_code="   "))

    assert store.stats()["total"] == 0


def test_new_callback_overwrites_and_resets_consumed(store, make_record):
    store.save(make_record("TX1", status="WAITING_AMOUNT"))
    assert store.get("TX1") is not None

    store.save(make_record("TX1", status="READY_TO_CONFIRM"))
    record = store.get("TX1")

    assert record.payload["status"] == "READY_TO_CONFIRM"
    assert store.stats() == {"total": 1, "unconsumed": 0, "consumed": 1}


def test_peek_does_not_claim(store, make_record):
    store.save(make_record("TX1"))

    assert store.peek("TX1") is not None
    assert store.peek("TX1").consumed is False
    assert store.get("TX1") is not None
    # still visible to diagnostics after the claim
    assert store.peek("TX1").consumed is True


def test_expired_record_is_not_found(store, clock, make_record):
    store.save(make_record("TX1"))
    clock.advance(3600)
    assert store.peek("TX1") is not None

    clock.advance(1)
    assert store.get("TX1") is None
    assert store.peek("TX1") is None


def test_returned_records_are_copies(store, make_record):
    store.save(make_record("TX1"))
    peeked = store.peek("TX1")
    peeked.consumed = True
    peeked.payload["status"] = "changed"

    record = store.get("TX1")
    assert record is not None
    assert "status" not in record.payload


def test_received_at_strictly_increases_with_frozen_clock(store, make_record):
    first = store.save(make_record("TX1"))
    second = store.save(make_record("TX2"))
    assert second.received_at > first.received_at
    assert first.timestamp


def test_mark_consumed(store, make_record):
    store.save(make_record("TX1"))

    assert store.mark_consumed("TX1") is True
    assert store.get("TX1") is None
    assert store.mark_consumed("unknown") is False


def test_clear_one_and_all(store, make_record):
    store.save(make_record("TX1"))
    store.save(make_record("TX2"))
    store.save(make_record("TX3"))

    assert store.clear("TX1") == 1
    assert store.clear("TX1") == 0
    assert store.peek("TX2") is not None

    assert store.clear() == 2
    assert store.stats()["total"] == 0


def test_stats_counts(store, make_record):
    store.save(make_record("TX1"))
    store.save(make_record("TX2"))
    store.get("TX1")

    assert store.stats() == {"total": 2, "unconsumed": 1, "consumed": 1}


def test_evict_expired(store, clock, make_record):
    store.save(make_record("OLD"))
    clock.advance(61 * 60)
    store.save(make_record("NEW"))

    assert store.evict_expired() == 1
    assert store.stats()["total"] == 1
    assert store.peek("NEW") is not None


def test_since_returns_newer_records_oldest_first(store, clock, make_record):
    first = store.save(make_record("TX1"))
    clock.advance(1)
    store.save(make_record("TX2"))
    clock.advance(1)
    store.save(make_record("TX3"))
    store.get("TX3")

    records = store.since(first.received_at)
    assert [r.transaction_code for r in records] == ["TX2", "TX3"]


def test_since_filters_by_client(store, make_record):
    store.save(make_record("TX1").model_copy(update={"client_id": "web-a"}))
    store.save(make_record("TX2").model_copy(update={"client_id": "web-b"}))

    records = store.since(0, client_id="web-b")
    assert [r.transaction_code for r in records] == ["TX2"]


def test_list_live_newest_first(store, clock, make_record):
    store.save(make_record("TX1"))
    clock.advance(1)
    store.save(make_record("TX2"))

    assert [r.transaction_code for r in store.list_live()] == ["TX2", "TX1"]


def test_concurrent_gets_claim_exactly_once(make_record):
    store = CorrelationStore()
    store.save(make_record("RACE"))

    workers = 16
    barrier = threading.Barrier(workers)

    def _claim(_):
        barrier.wait()
        return store.get("RACE")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(_claim, range(workers)))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert winners[0].transaction_code == "RACE"

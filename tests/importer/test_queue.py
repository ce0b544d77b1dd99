from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from museum_app.importer.adapters.base import FetchPage
from museum_app.importer.errors import AdapterError
from museum_app.importer.pipeline.queue import (
    EXCLUDED_CONTRACT_MESSAGE,
    STALE_CLAIM_MESSAGE,
    compute_checksum,
    enqueue,
    process_queue,
    queue_status,
    reset_stale_claims,
    retry_failed,
    sync_wallet,
)
from museum_app.importer.pipeline.records import build_raw_record
from museum_app.models import ArtworkIndex, ImportRun, ImportRunStatus, ImportStatus, db

WRAPPED_TEZOS = "KT1TjnZYs5CGLbmV6yuW169P8Pnr9BiVwwjz"


def _raw(payload=None, *, contract="0xABC", token="1", source="opensea", blockchain="ethereum"):
    return build_raw_record(source, payload or {"image_url": "https://x/1.png"}, blockchain=blockchain, contract_address=contract, token_id=token)


def test_checksum_is_key_order_independent():
    assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
    assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})
    assert compute_checksum(None) == compute_checksum({})


def test_enqueue_upserts_by_nft_uid():
    first = enqueue(_raw())
    second = enqueue(_raw())

    assert first["created"] is True
    assert second["created"] is False
    assert first["index_id"] == second["index_id"]
    assert first["nft_uid"] == "0xABC:1"
    assert db.session.query(ArtworkIndex).count() == 1


def test_unchanged_payload_keeps_imported_status():
    index_id = enqueue(_raw())["index_id"]
    process_queue("pending", 10)
    assert db.session.get(ArtworkIndex, index_id).import_status is ImportStatus.IMPORTED

    again = enqueue(_raw())

    assert again["status"] == "imported"


def test_failed_row_requeued_on_enqueue():
    index_id = enqueue(_raw(contract=None))["index_id"]
    process_queue("pending", 10)
    assert db.session.get(ArtworkIndex, index_id).import_status is ImportStatus.FAILED

    again = enqueue(_raw(contract=None))

    assert again["status"] == "pending"
    assert db.session.get(ArtworkIndex, index_id).error_message is None


def test_incomplete_records_never_share_a_queue_row():
    first = enqueue(_raw({"image_url": "https://x/a.png"}, contract=None, token="7"))
    second = enqueue(_raw({"image_url": "https://x/b.png"}, contract=None, token="7"))
    tezos = enqueue(_raw({"image_url": "https://x/a.png"}, contract=None, token="7", source="tezos", blockchain="tezos"))
    again = enqueue(_raw({"image_url": "https://x/a.png"}, contract=None, token="7"))

    assert len({first["index_id"], second["index_id"], tezos["index_id"]}) == 3
    assert again["index_id"] == first["index_id"]
    assert again["created"] is False
    assert db.session.query(ArtworkIndex).count() == 3


def test_wrapped_tezos_contract_is_skipped():
    result = enqueue(_raw({"token_id": "3"}, contract=WRAPPED_TEZOS, token="3", source="tezos", blockchain="tezos"))

    entry = db.session.get(ArtworkIndex, result["index_id"])
    assert result["status"] == "skipped"
    assert entry.error_message == EXCLUDED_CONTRACT_MESSAGE

    summary = process_queue("pending", 10)
    assert summary.processed == 0


def test_partial_failure_does_not_abort_batch():
    incomplete = _raw(contract=None, token="2")
    enqueue(_raw(token="1"))
    enqueue(incomplete)
    enqueue(_raw(token="3"))

    summary = process_queue("pending", 10, trigger="test")

    assert summary.processed == 3
    assert summary.successful == 2
    assert summary.failed == 1
    assert summary.errors[0]["nftUid"] == incomplete.nft_uid
    assert "contract_address" in summary.errors[0]["error"]

    run = db.session.get(ImportRun, summary.run_id)
    assert run.status is ImportRunStatus.PARTIALLY_FAILED
    assert run.trigger == "test"
    assert run.counts_json["successful"] == 2
    assert incomplete.nft_uid in run.error_summary
    assert run.finished_at is not None


def test_batch_respects_limit_and_creation_order():
    ids = [enqueue(_raw(token=str(number)))["index_id"] for number in range(1, 5)]

    summary = process_queue("pending", 2)

    assert [result.index_id for result in summary.results] == ids[:2]
    statuses = [db.session.get(ArtworkIndex, index_id).import_status for index_id in ids]
    assert statuses == [ImportStatus.IMPORTED, ImportStatus.IMPORTED, ImportStatus.PENDING, ImportStatus.PENDING]


def test_summary_serialization():
    enqueue(_raw())

    payload = process_queue("pending", 5).to_dict()
    compact = process_queue("pending", 5).to_dict(include_results=False)

    assert payload["success"] is True
    assert payload["processed"] == 1
    assert payload["results"][0]["nftUid"] == "0xABC:1"
    assert "results" not in compact
    assert compact["processed"] == 0


def test_empty_batch_records_succeeded_run():
    summary = process_queue("failed", 10)

    assert summary.processed == 0
    assert db.session.get(ImportRun, summary.run_id).status is ImportRunStatus.SUCCEEDED


def test_invalid_status_and_limit():
    with pytest.raises(ValueError):
        process_queue("bogus", 10)
    with pytest.raises(ValueError):
        process_queue("pending", 0)


def test_retry_failed_resets_rows():
    for token in ("1", "2", "3"):
        enqueue(_raw(contract=None, token=token))
    process_queue("pending", 10)

    assert retry_failed(limit=2) == 2
    counts = queue_status()["counts"]
    assert counts["pending"] == 2
    assert counts["failed"] == 1
    assert retry_failed() == 1


def _mark_processing(index_id, *, age_seconds):
    entry = db.session.get(ArtworkIndex, index_id)
    entry.import_status = ImportStatus.PROCESSING
    entry.last_attempt = datetime.now(timezone.utc) - timedelta(seconds=age_seconds)
    db.session.commit()


def test_stale_processing_claim_is_recovered_by_next_batch():
    stale = enqueue(_raw(token="1"))["index_id"]
    fresh = enqueue(_raw(token="2"))["index_id"]
    _mark_processing(stale, age_seconds=3600)
    _mark_processing(fresh, age_seconds=5)

    summary = process_queue("pending", 10)

    assert [result.index_id for result in summary.results] == [stale]
    assert summary.successful == 1
    recovered = db.session.get(ArtworkIndex, stale)
    assert recovered.import_status is ImportStatus.IMPORTED
    assert recovered.error_message is None
    assert db.session.get(ArtworkIndex, fresh).import_status is ImportStatus.PROCESSING


def test_reset_stale_claims_honours_max_age():
    index_id = enqueue(_raw())["index_id"]
    _mark_processing(index_id, age_seconds=120)

    assert reset_stale_claims() == 0
    assert reset_stale_claims(60) == 1

    entry = db.session.get(ArtworkIndex, index_id)
    assert entry.import_status is ImportStatus.PENDING
    assert entry.error_message == STALE_CLAIM_MESSAGE
    assert reset_stale_claims(60) == 0


def test_queue_status_reports_counts_and_recent_failures():
    incomplete = _raw(contract=None, token="2")
    enqueue(_raw(token="1"))
    enqueue(incomplete)
    enqueue(_raw({"token_id": "3"}, contract=WRAPPED_TEZOS, token="3", source="tezos", blockchain="tezos"))
    process_queue("pending", 10)

    status = queue_status(recent=5)

    assert status["counts"]["imported"] == 1
    assert status["counts"]["failed"] == 1
    assert status["counts"]["skipped"] == 1
    assert status["counts"]["pending"] == 0
    assert status["total"] == 3
    assert status["recentFailures"][0]["nftUid"] == incomplete.nft_uid
    assert status["recentFailures"][0]["lastAttempt"] is not None


class _PagedAdapter:
    name = "fake"

    def __init__(self, pages, fail_on=None):
        self.pages = pages
        self.fail_on = fail_on
        self.cursors = []

    def fetch_by_wallet(self, address, cursor=None):
        self.cursors.append(cursor)
        index = int(cursor or 0)
        if index == self.fail_on:
            raise AdapterError("page exploded", provider=self.name, status_code=500)
        records, has_more = self.pages[index]
        return FetchPage(records=records, next_cursor=str(index + 1) if has_more else None)

    def fetch_by_token(self, contract_address, token_id):
        return None


def test_sync_wallet_enqueues_every_page():
    adapter = _PagedAdapter(
        [
            ([_raw(token="1"), _raw(token="2")], True),
            ([_raw({"token_id": "9"}, contract=WRAPPED_TEZOS, token="9", source="tezos", blockchain="tezos")], False),
        ]
    )

    summary = sync_wallet(adapter, "0xwallet")

    assert adapter.cursors == [None, "1"]
    assert summary["pages"] == 2
    assert summary["records"] == 3
    assert summary["enqueued"] == 2
    assert summary["skipped"] == 1
    assert summary["error"] is None
    assert db.session.query(ArtworkIndex).count() == 3


def test_sync_wallet_stops_on_failed_page():
    adapter = _PagedAdapter([([_raw(token="1")], True)], fail_on=1)

    summary = sync_wallet(adapter, "0xwallet")

    assert summary["pages"] == 1
    assert summary["enqueued"] == 1
    assert "page exploded" in summary["error"]


def test_sync_wallet_honours_max_pages():
    adapter = _PagedAdapter([([_raw(token="1")], True), ([_raw(token="2")], False)])

    summary = sync_wallet(adapter, "0xwallet", max_pages=1)

    assert summary["pages"] == 1
    assert adapter.cursors == [None]

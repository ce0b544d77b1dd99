from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from museum_app.importer import get_celery_app
from museum_app.importer.adapters.base import FetchPage
from museum_app.importer.errors import AdapterError
from museum_app.importer.pipeline.queue import enqueue
from museum_app.importer.pipeline.records import build_raw_record
from museum_app.models import ArtworkIndex, ImportStatus, db


def _raw(token="1", contract="0xABC"):
    return build_raw_record(
        "opensea", {"image_url": f"https://x/{token}.png"}, blockchain="ethereum", contract_address=contract, token_id=token
    )


class _FakeSource:
    name = "opensea"

    def __init__(self, record=None, error=None, pages=None):
        self.record = record
        self.error = error
        self.pages = pages or []

    def fetch_by_token(self, contract_address, token_id):
        if self.error:
            raise self.error
        return self.record

    def fetch_by_wallet(self, address, cursor=None):
        index = int(cursor or 0)
        if isinstance(self.pages[index], Exception):
            raise self.pages[index]
        has_more = index + 1 < len(self.pages)
        return FetchPage(records=self.pages[index], next_cursor=str(index + 1) if has_more else None)


def _patch_source(monkeypatch, source):
    monkeypatch.setattr("museum_app.importer.cli.build_adapter", lambda name, config, **kwargs: source)


def test_disabled_importer_group(runner):
    result = runner.invoke(args=["importer"])

    assert result.exit_code != 0
    assert "Importer commands are unavailable" in result.output


def test_importer_group_lists_adapters(importer_app):
    result = importer_app.test_cli_runner().invoke(args=["importer"])

    assert result.exit_code == 0, result.output
    assert "  - opensea" in result.output
    assert "  - tezos" in result.output


def test_status_command(importer_app):
    enqueue(_raw("1"))

    result = importer_app.test_cli_runner().invoke(args=["importer", "status"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["counts"]["pending"] == 1


def test_process_command_inline(importer_app):
    enqueue(_raw("1"))
    enqueue(_raw("2", contract=None))

    result = importer_app.test_cli_runner().invoke(args=["importer", "process", "--limit", "10"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["processed"] == 2
    assert payload["failed"] == 1
    assert "results" not in payload


def test_process_command_rejects_bad_status(importer_app):
    result = importer_app.test_cli_runner().invoke(args=["importer", "process", "--status", "bogus"])

    assert result.exit_code != 0
    assert "Unknown import status" in result.output


def test_process_command_dispatches_to_worker(importer_app, monkeypatch):
    celery_app = get_celery_app(importer_app)
    sent = {}

    class _Result:
        id = "task-123"

    def fake_send_task(name, kwargs=None, **options):
        sent["name"] = name
        sent["kwargs"] = kwargs
        return _Result()

    monkeypatch.setattr(celery_app, "send_task", fake_send_task)

    result = importer_app.test_cli_runner().invoke(args=["importer", "process", "--no-inline", "--limit", "7"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"task_id": "task-123", "status": "queued", "limit": 7}
    assert sent == {"name": "importer.process_queue", "kwargs": {"status": "pending", "limit": 7, "trigger": "cli"}}


def test_retry_failed_command(importer_app):
    enqueue(_raw("1", contract=None))
    importer_app.test_cli_runner().invoke(args=["importer", "process"])

    result = importer_app.test_cli_runner().invoke(args=["importer", "retry-failed"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"reset": 1}
    assert db.session.query(ArtworkIndex).one().import_status is ImportStatus.PENDING


def test_reset_stale_command(importer_app):
    index_id = enqueue(_raw("1"))["index_id"]
    entry = db.session.get(ArtworkIndex, index_id)
    entry.import_status = ImportStatus.PROCESSING
    entry.last_attempt = datetime.now(timezone.utc) - timedelta(hours=2)
    db.session.commit()

    result = importer_app.test_cli_runner().invoke(args=["importer", "reset-stale", "--max-age", "600"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"reset": 1}
    assert db.session.get(ArtworkIndex, index_id).import_status is ImportStatus.PENDING


def test_enqueue_token_command(importer_app, monkeypatch):
    _patch_source(monkeypatch, _FakeSource(record=_raw("5")))

    result = importer_app.test_cli_runner().invoke(
        args=["importer", "enqueue-token", "--adapter", "opensea", "--contract", "0xABC", "--token-id", "5"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["nft_uid"] == "0xABC:5"
    assert payload["created"] is True


def test_enqueue_token_reports_missing_and_failed_fetches(importer_app, monkeypatch):
    runner = importer_app.test_cli_runner()
    args = ["importer", "enqueue-token", "--adapter", "opensea", "--contract", "0xABC", "--token-id", "5"]

    _patch_source(monkeypatch, _FakeSource(record=None))
    missing = runner.invoke(args=args)
    _patch_source(monkeypatch, _FakeSource(error=AdapterError("opensea API error 500", provider="opensea")))
    failed = runner.invoke(args=args)

    assert missing.exit_code != 0
    assert "was not found" in missing.output
    assert failed.exit_code != 0
    assert "opensea API error 500" in failed.output


def test_unknown_adapter_is_rejected(importer_app):
    result = importer_app.test_cli_runner().invoke(
        args=["importer", "sync-wallet", "--adapter", "rarible", "--address", "0xwallet"]
    )

    assert result.exit_code != 0
    assert "Unknown importer adapter 'rarible'" in result.output


def test_sync_wallet_command_with_processing(importer_app, monkeypatch):
    _patch_source(monkeypatch, _FakeSource(pages=[[_raw("1")], [_raw("2")]]))

    result = importer_app.test_cli_runner().invoke(
        args=["importer", "sync-wallet", "--adapter", "opensea", "--address", "0xwallet", "--process"]
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["pages"] == 2
    assert payload["enqueued"] == 2
    assert payload["processing"]["successful"] == 2


def test_sync_wallet_command_fails_on_partial_crawl(importer_app, monkeypatch):
    _patch_source(
        monkeypatch,
        _FakeSource(pages=[[_raw("1")], AdapterError("page two failed", provider="opensea")]),
    )

    result = importer_app.test_cli_runner().invoke(
        args=["importer", "sync-wallet", "--adapter", "opensea", "--address", "0xwallet"]
    )

    assert result.exit_code != 0
    assert "page two failed" in result.output
    assert '"enqueued": 1' in result.output

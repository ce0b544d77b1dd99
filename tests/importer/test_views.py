from __future__ import annotations

import pytest

from museum_app.importer.pipeline.queue import enqueue
from museum_app.importer.pipeline.records import build_raw_record


def _enqueue(token="1", contract="0xABC"):
    raw = build_raw_record(
        "opensea", {"image_url": f"https://x/{token}.png"}, blockchain="ethereum", contract_address=contract, token_id=token
    )
    return enqueue(raw)


def test_health_reports_disabled_importer(client):
    response = client.get("/importer/health")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"
    assert payload["enabled"] is False
    assert payload["adapters"] == []
    assert payload["service"] == "Wallace Museum Importer"


def test_health_lists_active_adapters(importer_app):
    response = importer_app.test_client().get("/importer/health")

    payload = response.get_json()
    assert payload["enabled"] is True
    assert [adapter["name"] for adapter in payload["adapters"]] == ["opensea", "tezos"]
    assert payload["adapters"][1]["blockchains"] == ["tezos"]


def test_process_queue_requires_enabled_importer(client):
    response = client.post("/importer/process-queue", json={})

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Importer is disabled."}


def test_process_queue_runs_batch(importer_app):
    _enqueue("1")
    incomplete = _enqueue("2", contract=None)

    response = importer_app.test_client().post("/importer/process-queue", json={"limit": 10})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    assert payload["processed"] == 2
    assert payload["successful"] == 1
    assert payload["failed"] == 1
    assert payload["errors"][0]["nftUid"] == incomplete["nft_uid"]
    assert incomplete["nft_uid"].startswith("opensea:ethereum::2:")
    assert len(payload["results"]) == 2


def test_process_queue_without_body_uses_defaults(importer_app):
    response = importer_app.test_client().post("/importer/process-queue")

    assert response.status_code == 200
    assert response.get_json()["processed"] == 0


@pytest.mark.parametrize(
    "body, message",
    [
        ({"status": "bogus"}, "Unknown import status"),
        ({"limit": 0}, "limit must be between"),
        ({"limit": 501}, "limit must be between"),
        ({"limit": "many"}, "limit must be an integer"),
        ([1, 2], "JSON object"),
    ],
)
def test_process_queue_rejects_bad_input(importer_app, body, message):
    response = importer_app.test_client().post("/importer/process-queue", json=body)

    assert response.status_code == 400
    payload = response.get_json()
    assert payload["success"] is False
    assert message in payload["error"]


def test_api_token_is_enforced(importer_app):
    importer_app.config["IMPORTER_API_TOKEN"] = "s3cret"
    client = importer_app.test_client()

    missing = client.post("/importer/process-queue", json={})
    wrong = client.get("/importer/queue-status", headers={"Authorization": "Bearer nope"})
    ok = client.post("/importer/process-queue", json={}, headers={"Authorization": "Bearer s3cret"})

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200


def test_queue_status_endpoint(importer_app):
    _enqueue("1")
    _enqueue("2")

    response = importer_app.test_client().get("/importer/queue-status?recent=3")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["counts"]["pending"] == 2
    assert payload["total"] == 2
    assert payload["recentFailures"] == []


def test_queue_status_rejects_non_integer_recent(importer_app):
    response = importer_app.test_client().get("/importer/queue-status?recent=lots")

    assert response.status_code == 400


def test_unknown_route_returns_json_404(client):
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Not found."}

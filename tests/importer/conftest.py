from __future__ import annotations

import copy
from typing import Any, Callable

import pytest

from museum_app.importer import init_importer
from museum_app.importer.pipeline.queue import enqueue
from museum_app.importer.pipeline.records import build_raw_record
from museum_app.models import ArtworkIndex, db

OPENSEA_NFT = {
    "identifier": "42",
    "collection": "chromie-squiggle-by-snowfro",
    "contract": "0x059edd72cd353df5106d2b9cc5ab83a52287ac3a",
    "token_standard": "erc721",
    "name": "Chromie Squiggle #42",
    "description": "Simple and easily identifiable.",
    "image_url": "https://i.seadn.io/gcs/files/squiggle42.png",
    "display_image_url": "https://i.seadn.io/gcs/files/squiggle42_w500.png",
    "animation_url": "https://generator.artblocks.io/0x059edd72cd353df5106d2b9cc5ab83a52287ac3a/42",
    "metadata_url": "https://api.artblocks.io/token/42",
    "creator": "0xF3860788D1597CECF938424BAABE976FAC87DC26",
    "traits": [
        {"trait_type": "Type", "value": "Normal"},
        {"trait_type": "Height", "value": 3},
    ],
}

TEZOS_TOKEN = {
    "token_id": "7",
    "name": "Morning Tide",
    "description": "A slow generative seascape.",
    "artifact_uri": "ipfs://QmArtifactArtifactArtifactArtifactArtifact7",
    "display_uri": "ipfs://QmDisplayDisplayDisplayDisplayDisplayDisp7",
    "thumbnail_uri": "ipfs://QmThumbThumbThumbThumbThumbThumbThumbThumb7",
    "mime": "image/png",
    "supply": 10,
    "timestamp": "2023-03-01T12:00:00+00:00",
    "dimensions": {"artifact": {"dimensions": {"width": 2000, "height": 1000}}},
    "attributes": [{"attribute": {"name": "palette", "value": "blue"}}],
    "tags": [{"tag": {"name": "generative"}}, {"tag": {"name": "sea"}}],
    "fa": {
        "contract": "KT1SeaSeaSeaSeaSeaSeaSeaSeaSeaSeaSea",
        "name": "Tides",
        "description": "Coastal studies.",
        "logo": "ipfs://QmLogo",
        "items": 30,
    },
    "creators": [
        {
            "creator_address": "tz1TideArtistTideArtistTideArtist12",
            "holder": {"address": "tz1TideArtistTideArtistTideArtist12", "alias": "tidewriter", "twitter": "tidewriter"},
        }
    ],
}


@pytest.fixture
def importer_app(app, tmp_path):
    app.config.update(
        {
            "IMPORTER_ENABLED": True,
            "IMPORTER_ADAPTERS": ("opensea", "tezos"),
            "CELERY_SQLITE_PATH": str(tmp_path / "celery.sqlite"),
            "CELERY_CONFIG": {"task_always_eager": True, "task_eager_propagates": True},
        }
    )
    init_importer(app)
    yield app


@pytest.fixture
def opensea_payload() -> Callable[..., dict[str, Any]]:
    def _factory(**overrides: Any) -> dict[str, Any]:
        payload = copy.deepcopy(OPENSEA_NFT)
        payload.update(overrides)
        return payload

    return _factory


@pytest.fixture
def tezos_payload() -> Callable[..., dict[str, Any]]:
    def _factory(**overrides: Any) -> dict[str, Any]:
        payload = copy.deepcopy(TEZOS_TOKEN)
        payload.update(overrides)
        return payload

    return _factory


@pytest.fixture
def enqueue_payload(app) -> Callable[..., ArtworkIndex]:
    """Enqueue a raw payload and return its queue row."""

    def _enqueue(
        source: str,
        payload: dict[str, Any],
        *,
        blockchain: str | None = None,
        contract_address: str | None = "__from_payload__",
        token_id: str | None = "__from_payload__",
    ) -> ArtworkIndex:
        if source == "tezos":
            default_contract = (payload.get("fa") or {}).get("contract")
            default_token = payload.get("token_id")
        else:
            default_contract = payload.get("contract")
            default_token = payload.get("identifier")
        raw = build_raw_record(
            source,
            payload,
            blockchain=blockchain or ("tezos" if source == "tezos" else "ethereum"),
            contract_address=default_contract if contract_address == "__from_payload__" else contract_address,
            token_id=default_token if token_id == "__from_payload__" else token_id,
        )
        result = enqueue(raw)
        return db.session.get(ArtworkIndex, result["index_id"])

    return _enqueue


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return self._payload


class FakeSession:
    """Replays queued responses and records every outgoing request."""

    def __init__(self) -> None:
        self.responses: list[Any] = []
        self.calls: list[dict[str, Any]] = []

    def queue(self, status_code: int = 200, payload: Any = None) -> "FakeSession":
        self.responses.append(FakeResponse(status_code, payload))
        return self

    def queue_error(self, exc: Exception) -> "FakeSession":
        self.responses.append(exc)
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def no_sleep() -> list[float]:
    """Collects requested sleeps instead of waiting."""
    return []

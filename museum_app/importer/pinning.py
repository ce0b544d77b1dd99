"""
Best-effort IPFS pinning of imported artwork media through Pinata.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import requests

from .errors import PinningError
from .metrics import record_pin_request
from .pipeline.media import extract_cids

logger = logging.getLogger(__name__)

PINATA_PIN_BY_HASH_URL = "https://api.pinata.cloud/pinning/pinByHash"

REFERENCE_FIELDS = ("image_url", "thumbnail_url", "animation_url", "generator_url", "metadata_url")


def extract_references(artwork: Any) -> list[str]:
    """Unique CIDs referenced by an artwork's media fields, in field order."""
    if isinstance(artwork, Mapping):
        urls: Iterable[str | None] = (artwork.get(name) for name in REFERENCE_FIELDS)
    else:
        urls = (getattr(artwork, name, None) for name in REFERENCE_FIELDS)
    return extract_cids(urls)


@dataclass
class PinSummary:
    requested: int = 0
    pinned: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class PinningClient:
    """Pin CIDs by hash; a client without a JWT is disabled and pins nothing."""

    def __init__(
        self,
        jwt: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: float = 10.0,
        url: str = PINATA_PIN_BY_HASH_URL,
    ) -> None:
        self.jwt = jwt
        self.session = session or requests.Session()
        self.timeout = timeout
        self.url = url

    @property
    def enabled(self) -> bool:
        return bool(self.jwt)

    def pin(self, cid: str, label: str) -> None:
        if not self.enabled:
            raise PinningError("Pinning is not configured.")
        try:
            response = self.session.post(
                self.url,
                headers={"Authorization": f"Bearer {self.jwt}", "Content-Type": "application/json"},
                json={"hashToPin": cid, "pinataMetadata": {"name": label}},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise PinningError(f"Pin request for {cid} failed: {exc}") from exc
        if not response.ok:
            raise PinningError(f"Pin request for {cid} returned HTTP {response.status_code}")

    def pin_artwork(self, artwork: Any) -> PinSummary:
        """Pin every CID referenced by ``artwork``; failures are logged and collected."""
        summary = PinSummary()
        if not self.enabled:
            logger.debug("Pinning disabled; skipping artwork", extra={"importer_artwork_id": getattr(artwork, "id", None)})
            return summary
        title = getattr(artwork, "title", None) or "Untitled"
        for cid in extract_references(artwork):
            summary.requested += 1
            try:
                self.pin(cid, f"{title} - {cid}")
            except PinningError as exc:
                summary.failed[cid] = str(exc)
                record_pin_request("failure")
                logger.warning("Pin request failed", extra={"importer_cid": cid, "importer_error": str(exc)})
                continue
            summary.pinned.append(cid)
            record_pin_request("success")
        return summary


__all__ = ["PinSummary", "PinningClient", "extract_references"]

"""
Best-effort enrichment of normalized records.

Each sub-call (mint date, creator profile, collection metadata) is
independent: it runs only when its own field group is incomplete, its failure
is logged and counted, and the record is returned with that group untouched.
Lookups are cached per batch in an explicit ``EnrichmentCache``.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Protocol

from museum_app.importer.metrics import record_enrichment_call

from .known_contracts import classify_collection
from .records import CollectionData, Creator, NormalizedNFT

logger = logging.getLogger(__name__)

_MISSING = object()


class EnrichmentSource(Protocol):
    """Collaborator fetching partial data; implementations may raise."""

    name: str

    def fetch_mint_date(self, contract_address: str, token_id: str) -> str | None: ...

    def fetch_creator_profile(self, address: str) -> Creator | None: ...

    def fetch_collection_metadata(self, slug: str) -> CollectionData | None: ...


@dataclass
class EnrichmentCache:
    """Per-batch lookup cache keyed by creator address and collection slug."""

    creators: dict[str, Creator | None] = field(default_factory=dict)
    collections: dict[str, CollectionData | None] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0

    def lookup(self, bucket: dict[str, Any], key: str) -> Any:
        if key in bucket:
            self.hits += 1
            return bucket[key]
        self.misses += 1
        return _MISSING

    def clear(self) -> None:
        self.creators.clear()
        self.collections.clear()


@dataclass(frozen=True)
class EnrichmentReport:
    skipped: bool
    calls: int
    failures: int
    filled: tuple[str, ...]


def _fill_missing(target: Any, source: Any) -> list[str]:
    """Copy non-empty values from ``source`` onto empty fields of ``target``."""
    filled: list[str] = []
    for item in fields(source):
        incoming = getattr(source, item.name)
        current = getattr(target, item.name)
        if incoming in (None, "", {}, []):
            continue
        if current in (None, "", {}, []):
            setattr(target, item.name, incoming)
            filled.append(item.name)
        elif isinstance(current, dict) and isinstance(incoming, dict):
            merged = {**incoming, **current}
            if merged != current:
                setattr(target, item.name, merged)
                filled.append(item.name)
    return filled


class Enricher:
    """Fill gaps in a ``NormalizedNFT`` from an enrichment source."""

    def __init__(self, source: EnrichmentSource, cache: EnrichmentCache | None = None) -> None:
        self.source = source
        self.cache = cache if cache is not None else EnrichmentCache()
        self.last_report: EnrichmentReport | None = None

    @staticmethod
    def needs_mint_date(nft: NormalizedNFT) -> bool:
        return not nft.mint_date

    @staticmethod
    def needs_creator(nft: NormalizedNFT) -> bool:
        return nft.creator is not None and bool(nft.creator.address) and not nft.creator.is_complete

    @staticmethod
    def needs_collection(nft: NormalizedNFT) -> bool:
        return nft.collection is not None and not nft.collection.is_complete

    def enrich(self, nft: NormalizedNFT, contract_address: str, token_id: str) -> NormalizedNFT:
        """
        Return ``nft`` with missing mint date, creator and collection details filled.

        Never raises; upstream failures leave the affected fields as they were.
        """
        stats: Counter[str] = Counter()
        filled: list[str] = []

        if not (self.needs_mint_date(nft) or self.needs_creator(nft) or self.needs_collection(nft)):
            self.last_report = EnrichmentReport(skipped=True, calls=0, failures=0, filled=())
            logger.debug(
                "Skipping enrichment for complete record",
                extra={"importer_contract": contract_address, "importer_token_id": token_id},
            )
            return nft

        if self.needs_mint_date(nft):
            mint_date = self._call("mint_date", stats, self.source.fetch_mint_date, contract_address, token_id)
            if mint_date:
                nft.mint_date = mint_date
                filled.append("mint_date")

        if self.needs_creator(nft):
            address = nft.creator.address.lower()
            profile = self.cache.lookup(self.cache.creators, address)
            if profile is _MISSING:
                profile = self._call("creator", stats, self.source.fetch_creator_profile, address)
                self.cache.creators[address] = profile
            if profile is not None:
                filled.extend(f"creator.{name}" for name in _fill_missing(nft.creator, profile))

        if self.needs_collection(nft):
            slug = nft.collection.slug
            metadata = self.cache.lookup(self.cache.collections, slug)
            if metadata is _MISSING:
                metadata = self._call("collection", stats, self.source.fetch_collection_metadata, slug)
                self.cache.collections[slug] = metadata
            if metadata is not None:
                filled.extend(f"collection.{name}" for name in _fill_missing(nft.collection, metadata))
                for flag in ("is_generative_art", "is_shared_contract"):
                    if getattr(metadata, flag) and not getattr(nft.collection, flag):
                        setattr(nft.collection, flag, True)
                        filled.append(f"collection.{flag}")
            # The enriched title may carry a generative keyword
            classify_collection(nft.collection)

        self.last_report = EnrichmentReport(
            skipped=False,
            calls=stats["calls"],
            failures=stats["failures"],
            filled=tuple(filled),
        )
        return nft

    def _call(self, kind: str, stats: Counter[str], fn: Callable[..., Any], *args: Any) -> Any:
        stats["calls"] += 1
        try:
            result = fn(*args)
        except Exception as exc:
            stats["failures"] += 1
            record_enrichment_call(self.source.name, kind, "failure")
            logger.warning(
                "Enrichment call failed",
                extra={"importer_enrichment": kind, "importer_args": [str(arg) for arg in args], "importer_error": str(exc)},
                exc_info=True,
            )
            return None
        record_enrichment_call(self.source.name, kind, "success" if result else "empty")
        return result


__all__ = ["EnrichmentCache", "EnrichmentReport", "EnrichmentSource", "Enricher"]

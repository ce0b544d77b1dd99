"""Importer pipeline helpers."""

from __future__ import annotations

from .artist_resolver import ArtistCreationResult, ArtistResolution, ArtistResolver
from .collection_resolver import CollectionResolution, CollectionResolver
from .enrichment import EnrichmentCache, Enricher
from .import_engine import ImportEngine, ImportResult
from .normalizer import normalize
from .queue import BatchSummary, compute_checksum, enqueue, process_queue, queue_status, reset_stale_claims, retry_failed, sync_wallet
from .records import CollectionData, Creator, DataSource, NormalizedNFT, RawRecord, build_raw_record

__all__ = [
    "ArtistCreationResult",
    "ArtistResolution",
    "ArtistResolver",
    "BatchSummary",
    "CollectionData",
    "CollectionResolution",
    "CollectionResolver",
    "Creator",
    "DataSource",
    "EnrichmentCache",
    "Enricher",
    "ImportEngine",
    "ImportResult",
    "NormalizedNFT",
    "RawRecord",
    "build_raw_record",
    "compute_checksum",
    "enqueue",
    "normalize",
    "process_queue",
    "queue_status",
    "reset_stale_claims",
    "retry_failed",
    "sync_wallet",
]

"""
Durable import queue backed by ``ArtworkIndex``.

Raw provider records are enqueued (upserted by ``nft_uid``) with status
``pending``; ``process_queue`` drains the oldest rows of a given status
sequentially through the ``ImportEngine`` and records each batch as an
``ImportRun``. Individual failures never abort the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from museum_app.models import ArtworkIndex, ImportRun, ImportRunStatus, ImportStatus, db
from museum_app.utils.importer import is_enrichment_enabled

from ..adapters.base import SourceAdapter, crawl_wallet
from ..metrics import record_import_outcome, record_queue_depth
from ..registry import build_adapter
from .enrichment import EnrichmentCache, Enricher
from .import_engine import ImportEngine, ImportResult, stale_claim_cutoff, stale_claim_filter
from .known_contracts import is_excluded_contract
from .records import RawRecord, payload_checksum

DEFAULT_BATCH_LIMIT = 50
MAX_BATCH_LIMIT = 500
RECENT_FAILURE_LIMIT = 10
EXCLUDED_CONTRACT_MESSAGE = "Contract is excluded from import (wrapped Tezos)."
STALE_CLAIM_MESSAGE = "Processing claim expired before the import finished; requeued."


def compute_checksum(payload: Mapping[str, Any] | None) -> str:
    """Return a stable checksum for a raw payload to detect upstream changes."""
    return payload_checksum(payload)


def coerce_status(value: ImportStatus | str) -> ImportStatus:
    if isinstance(value, ImportStatus):
        return value
    try:
        return ImportStatus(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(status.value for status in ImportStatus)
        raise ValueError(f"Unknown import status '{value}'. Expected one of: {allowed}.") from exc


@dataclass(frozen=True)
class BatchSummary:
    run_id: int | None
    status: ImportStatus
    processed: int = 0
    successful: int = 0
    failed: int = 0
    results: Sequence[ImportResult] = field(default_factory=tuple)

    @property
    def errors(self) -> list[dict[str, Any]]:
        return [
            {"indexId": result.index_id, "nftUid": result.nft_uid, "error": "; ".join(result.errors)}
            for result in self.results
            if not result.success
        ]

    def to_dict(self, *, include_results: bool = True) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "runId": self.run_id,
            "status": self.status.value,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": self.errors,
        }
        if include_results:
            payload["results"] = [result.to_dict() for result in self.results]
        return payload


# ---------------------------------------------------------------------------
# Enqueue
# ---------------------------------------------------------------------------


def enqueue(raw: RawRecord, *, session: Session | None = None) -> dict[str, Any]:
    """
    Upsert ``raw`` into the queue keyed by its ``nft_uid``.

    A re-enqueued record replaces the stored payload and resets
    ``last_attempt``. Its status returns to ``pending`` when the payload
    checksum changed or the previous attempt failed; an imported row with an
    unchanged payload keeps its status.
    """
    session = session or db.session
    nft_uid = raw.nft_uid
    checksum = compute_checksum(raw.payload)
    excluded = is_excluded_contract(raw.contract_address)

    entry = session.query(ArtworkIndex).filter_by(nft_uid=nft_uid).one_or_none()
    created = entry is None
    if created:
        entry = ArtworkIndex(
            nft_uid=nft_uid,
            data_source=raw.source.value,
            blockchain=raw.blockchain,
            contract_address=raw.contract_address,
            token_id=raw.token_id,
            raw_response=dict(raw.payload),
            checksum=checksum,
            import_status=ImportStatus.PENDING,
        )
        session.add(entry)
    else:
        changed = entry.checksum != checksum
        entry.data_source = raw.source.value
        entry.blockchain = raw.blockchain
        entry.raw_response = dict(raw.payload)
        entry.checksum = checksum
        entry.last_attempt = None
        if (changed or entry.import_status is ImportStatus.FAILED) and entry.import_status is not ImportStatus.PROCESSING:
            entry.import_status = ImportStatus.PENDING
            entry.error_message = None

    if excluded:
        entry.import_status = ImportStatus.SKIPPED
        entry.error_message = EXCLUDED_CONTRACT_MESSAGE

    session.commit()
    if excluded and created:
        record_import_outcome(source=raw.source.value, outcome="skipped")
    current_app.logger.debug(
        "Enqueued token",
        extra={
            "importer_index_id": entry.id,
            "importer_nft_uid": nft_uid,
            "importer_status": entry.import_status.value,
            "importer_created": created,
        },
    )
    return {"index_id": entry.id, "nft_uid": nft_uid, "status": entry.import_status.value, "created": created}


# ---------------------------------------------------------------------------
# Batch processing
# ---------------------------------------------------------------------------


def build_default_engine(session: Session | None = None) -> ImportEngine:
    """Engine wired from app config with a fresh per-batch enrichment cache."""
    enrichers: dict[str, Enricher] = {}
    if is_enrichment_enabled():
        enrichers["opensea"] = Enricher(build_adapter("opensea", current_app.config), cache=EnrichmentCache())
    return ImportEngine(session, enrichers=enrichers)


def _run_status(summary_failed: int, summary_processed: int) -> ImportRunStatus:
    if summary_failed == 0:
        return ImportRunStatus.SUCCEEDED
    if summary_failed < summary_processed:
        return ImportRunStatus.PARTIALLY_FAILED
    return ImportRunStatus.FAILED


def process_queue(
    status: ImportStatus | str = ImportStatus.PENDING,
    limit: int = DEFAULT_BATCH_LIMIT,
    *,
    trigger: str = "api",
    engine: ImportEngine | None = None,
    session: Session | None = None,
) -> BatchSummary:
    """
    Import up to ``limit`` of the oldest rows currently in ``status``.

    Stale ``processing`` claims are first returned to ``pending``. Rows are
    processed one at a time in ascending creation order. Raises
    ``ValueError`` only for an unknown status or a non-positive limit.
    """
    session = session or db.session
    status = coerce_status(status)
    limit = int(limit)
    if limit < 1:
        raise ValueError("limit must be a positive integer.")
    limit = min(limit, MAX_BATCH_LIMIT)

    run = ImportRun(
        trigger=trigger,
        status=ImportRunStatus.RUNNING,
        requested_status=status.value,
        requested_limit=limit,
        started_at=datetime.now(timezone.utc),
    )
    session.add(run)
    session.commit()
    run_id = run.id

    reset_stale_claims(session=session)
    index_ids = [
        row_id
        for (row_id,) in session.query(ArtworkIndex.id)
        .filter(ArtworkIndex.import_status == status)
        .order_by(ArtworkIndex.created_at.asc(), ArtworkIndex.id.asc())
        .limit(limit)
        .all()
    ]
    current_app.logger.info(
        "Processing import queue",
        extra={
            "importer_run_id": run_id,
            "importer_requested_status": status.value,
            "importer_limit": limit,
            "importer_selected": len(index_ids),
        },
    )

    engine = engine or build_default_engine(session)
    results: list[ImportResult] = []
    for index_id in index_ids:
        try:
            result = engine.import_record(index_id)
        except Exception as exc:
            session.rollback()
            current_app.logger.exception(
                "Unexpected error importing queue row",
                extra={"importer_run_id": run_id, "importer_index_id": index_id},
            )
            result = ImportResult(success=False, index_id=index_id, errors=(str(exc),))
        results.append(result)

    successful = sum(1 for result in results if result.success)
    failed = len(results) - successful
    summary = BatchSummary(
        run_id=run_id,
        status=status,
        processed=len(results),
        successful=successful,
        failed=failed,
        results=tuple(results),
    )

    run = session.get(ImportRun, run_id)
    run.status = _run_status(failed, len(results))
    run.finished_at = datetime.now(timezone.utc)
    run.counts_json = summary.to_dict(include_results=False)
    if failed:
        run.error_summary = "\n".join(f"{error['nftUid']}: {error['error']}" for error in summary.errors[:20])
    session.commit()

    record_queue_depth(queue_status(session=session)["counts"])
    current_app.logger.info(
        "Import queue batch finished",
        extra={
            "importer_run_id": run_id,
            "importer_status": run.status.value,
            "importer_processed": summary.processed,
            "importer_successful": successful,
            "importer_failed": failed,
        },
    )
    return summary


def retry_failed(limit: int | None = None, *, session: Session | None = None) -> int:
    """Reset ``failed`` rows (oldest first) to ``pending``; returns the count."""
    session = session or db.session
    query = (
        session.query(ArtworkIndex)
        .filter(ArtworkIndex.import_status == ImportStatus.FAILED)
        .order_by(ArtworkIndex.created_at.asc(), ArtworkIndex.id.asc())
    )
    if limit is not None:
        query = query.limit(limit)
    entries = query.all()
    for entry in entries:
        entry.import_status = ImportStatus.PENDING
    session.commit()
    if entries:
        current_app.logger.info("Reset failed queue rows", extra={"importer_reset_count": len(entries)})
    return len(entries)


def reset_stale_claims(max_age_seconds: int | None = None, *, session: Session | None = None) -> int:
    """
    Return ``processing`` rows abandoned by a crashed worker to ``pending``.

    A claim is stale when its ``last_attempt`` is older than
    ``max_age_seconds`` (``IMPORTER_STALE_CLAIM_SECONDS`` by default) or was
    never recorded. Returns the number of rows reset.
    """
    session = session or db.session
    cutoff = stale_claim_cutoff(max_age_seconds)
    count = (
        session.query(ArtworkIndex)
        .filter(stale_claim_filter(cutoff))
        .update(
            {
                ArtworkIndex.import_status: ImportStatus.PENDING,
                ArtworkIndex.error_message: STALE_CLAIM_MESSAGE,
            },
            synchronize_session=False,
        )
    )
    session.commit()
    if count:
        current_app.logger.warning(
            "Reset stale processing claims",
            extra={"importer_reset_count": count, "importer_cutoff": cutoff.isoformat()},
        )
    return count


def queue_status(*, recent: int = RECENT_FAILURE_LIMIT, session: Session | None = None) -> dict[str, Any]:
    """Per-status counts plus the most recent failure messages."""
    session = session or db.session
    counts = {status.value: 0 for status in ImportStatus}
    rows = (
        session.query(ArtworkIndex.import_status, func.count(ArtworkIndex.id))
        .group_by(ArtworkIndex.import_status)
        .all()
    )
    for status, count in rows:
        counts[ImportStatus(status).value] = count

    failures = (
        session.query(ArtworkIndex)
        .filter(ArtworkIndex.import_status == ImportStatus.FAILED)
        .order_by(ArtworkIndex.last_attempt.desc(), ArtworkIndex.id.desc())
        .limit(recent)
        .all()
    )
    return {
        "counts": counts,
        "total": sum(counts.values()),
        "recentFailures": [
            {
                "nftUid": entry.nft_uid,
                "errorMessage": entry.error_message,
                "lastAttempt": entry.last_attempt.isoformat() if entry.last_attempt else None,
            }
            for entry in failures
        ],
    }


def sync_wallet(
    adapter: SourceAdapter,
    address: str,
    *,
    max_pages: int | None = None,
    session: Session | None = None,
) -> dict[str, Any]:
    """
    Crawl every page of ``address`` through ``adapter`` and enqueue each token.

    A failed page stops this wallet's crawl and is reported in ``error``.
    """
    session = session or db.session
    outcome = {"enqueued": 0, "skipped": 0}

    def _handle(record: RawRecord) -> None:
        result = enqueue(record, session=session)
        outcome["skipped" if result["status"] == ImportStatus.SKIPPED.value else "enqueued"] += 1

    pages, records, error = crawl_wallet(adapter, address, _handle, max_pages=max_pages, logger=current_app.logger)
    summary = {
        "adapter": adapter.name,
        "address": address,
        "pages": pages,
        "records": records,
        "enqueued": outcome["enqueued"],
        "skipped": outcome["skipped"],
        "error": error,
    }
    current_app.logger.info("Wallet sync finished", extra={f"importer_{key}": value for key, value in summary.items()})
    return summary


__all__ = [
    "BatchSummary",
    "build_default_engine",
    "compute_checksum",
    "coerce_status",
    "enqueue",
    "process_queue",
    "queue_status",
    "reset_stale_claims",
    "retry_failed",
    "sync_wallet",
]

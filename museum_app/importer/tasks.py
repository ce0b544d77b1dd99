"""
Importer Celery tasks.

``importer.process_queue`` drains the import queue (scheduled by beat or
dispatched from the CLI/API) and ``importer.sync_wallet`` crawls a wallet
through a registered adapter and enqueues what it finds.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from celery import shared_task
from flask import current_app

from museum_app.models.base import db

from .pipeline.queue import DEFAULT_BATCH_LIMIT, process_queue, sync_wallet
from .registry import build_adapter


@shared_task(name="importer.healthcheck", bind=True)
def importer_healthcheck(self) -> dict[str, Any]:
    """
    Simple heartbeat task used by worker health checks.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "timestamp": now.isoformat(),
        "worker_hostname": self.request.hostname,
        "app_version": getattr(self.app, "user_options", {}).get("version"),
    }


@shared_task(name="importer.process_queue", bind=True)
def process_queue_task(
    self,
    *,
    status: str = "pending",
    limit: int | None = None,
    trigger: str = "worker",
) -> dict[str, Any]:
    """
    Process one batch of queued records and return the batch summary
    without per-record results.
    """
    limit = limit or int(current_app.config.get("IMPORTER_QUEUE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT))
    try:
        summary = process_queue(status, limit, trigger=trigger)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Importer queue task failed",
            extra={"importer_requested_status": status, "importer_limit": limit, "importer_trigger": trigger},
        )
        raise
    return summary.to_dict(include_results=False)


@shared_task(name="importer.sync_wallet", bind=True)
def sync_wallet_task(self, *, adapter: str, address: str, max_pages: int | None = None) -> dict[str, Any]:
    """Crawl ``address`` through the ``adapter`` source and enqueue every token."""
    source = build_adapter(adapter, current_app.config)
    try:
        return sync_wallet(source, address, max_pages=max_pages)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Importer wallet sync task failed",
            extra={"importer_adapter": adapter, "importer_address": address},
        )
        raise

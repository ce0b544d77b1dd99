"""
Importer blueprint endpoints: health checks and the queue processing API.
"""

from __future__ import annotations

import hmac
from http import HTTPStatus

from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask import Blueprint, current_app, jsonify, request

from museum_app.utils.importer import is_importer_enabled

from .celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from .pipeline.queue import DEFAULT_BATCH_LIMIT, MAX_BATCH_LIMIT, coerce_status, process_queue, queue_status
from .registry import AdapterDescriptor

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


def _serialize_adapter(adapter: AdapterDescriptor) -> dict:
    return {
        "name": adapter.name,
        "title": adapter.title,
        "summary": adapter.summary,
        "blockchains": list(adapter.blockchains),
        "enriches": adapter.enriches,
    }


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Lightweight health endpoint proving the importer blueprint mounted correctly.
    """
    importer_state = current_app.extensions.get("importer", {})
    adapters = importer_state.get("active_adapters", ())
    return (
        jsonify(
            {
                "status": "ok",
                "service": current_app.config.get("APP_NAME"),
                "version": current_app.config.get("APP_VERSION"),
                "enabled": importer_state.get("enabled", False),
                "adapters": [_serialize_adapter(adapter) for adapter in adapters],
            }
        ),
        200,
    )


@importer_blueprint.get("/worker_health")
def importer_worker_health():
    """
    Validate importer worker availability via the heartbeat task.
    """
    importer_state = current_app.extensions.get("importer", {})
    enabled = importer_state.get("enabled", False)
    worker_enabled = importer_state.get("worker_enabled", False)
    timeout_seconds = float(request.args.get("timeout", 5))

    payload = {
        "importer_enabled": enabled,
        "worker_enabled": worker_enabled,
        "queue": DEFAULT_QUEUE_NAME,
        "timeout_seconds": timeout_seconds,
    }

    if not enabled:
        payload["status"] = "disabled"
        return jsonify(payload), 200

    if not worker_enabled:
        payload["status"] = "disabled"
        payload["message"] = "Worker flag disabled; start the worker or set IMPORTER_WORKER_ENABLED=true."
        return jsonify(payload), 200

    celery_app = get_celery_app(current_app)
    if celery_app is None:
        payload["status"] = "error"
        payload["error"] = "celery_app_unavailable"
        return jsonify(payload), 500

    task = celery_app.tasks.get("importer.healthcheck")
    if task is None:
        payload["status"] = "error"
        payload["error"] = "heartbeat_task_missing"
        return jsonify(payload), 500

    result = task.apply_async()
    try:
        payload["status"] = "ok"
        payload["heartbeat"] = result.get(timeout=timeout_seconds)
        return jsonify(payload), 200
    except CeleryTimeoutError:
        payload["status"] = "timeout"
        return jsonify(payload), 504
    except Exception as exc:  # pragma: no cover - surfacing unexpected errors
        current_app.logger.exception("Importer worker health check failed.", exc_info=exc)
        payload["status"] = "error"
        payload["error"] = str(exc)
        return jsonify(payload), 500


def _json_error(message: str, status: HTTPStatus):
    return jsonify({"success": False, "error": message}), status


def _ensure_importer_enabled_api():
    if not is_importer_enabled(current_app):
        return _json_error("Importer is disabled.", HTTPStatus.NOT_FOUND)
    return None


def _ensure_authorized():
    token = current_app.config.get("IMPORTER_API_TOKEN")
    if not token:
        return None
    header = request.headers.get("Authorization", "")
    scheme, _, supplied = header.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(supplied.strip(), token):
        return _json_error("Missing or invalid importer API token.", HTTPStatus.UNAUTHORIZED)
    return None


@importer_blueprint.post("/process-queue")
def importer_process_queue():
    """
    Process one batch of the import queue.

    Accepts an optional JSON body ``{"status": "pending", "limit": 50}``.
    """
    error_response = _ensure_importer_enabled_api() or _ensure_authorized()
    if error_response:
        return error_response

    body = request.get_json(silent=True) or {}
    if not isinstance(body, dict):
        return _json_error("Request body must be a JSON object.", HTTPStatus.BAD_REQUEST)

    try:
        status = coerce_status(body.get("status") or "pending")
    except ValueError as exc:
        return _json_error(str(exc), HTTPStatus.BAD_REQUEST)

    raw_limit = body.get("limit", current_app.config.get("IMPORTER_QUEUE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT))
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        return _json_error("limit must be an integer.", HTTPStatus.BAD_REQUEST)
    if limit < 1 or limit > MAX_BATCH_LIMIT:
        return _json_error(f"limit must be between 1 and {MAX_BATCH_LIMIT}.", HTTPStatus.BAD_REQUEST)

    summary = process_queue(status, limit, trigger="api")
    return jsonify(summary.to_dict()), HTTPStatus.OK


@importer_blueprint.get("/queue-status")
def importer_queue_status():
    """Per-status queue counts plus recent failures."""
    error_response = _ensure_importer_enabled_api() or _ensure_authorized()
    if error_response:
        return error_response
    try:
        recent = int(request.args.get("recent", 10))
    except ValueError:
        return _json_error("recent must be an integer.", HTTPStatus.BAD_REQUEST)
    return jsonify(queue_status(recent=max(recent, 0))), HTTPStatus.OK

"""
Importer CLI commands.

``flask importer`` exposes wallet syncs, single-token enqueues, queue
processing (inline or through the worker) and queue inspection.
"""

from __future__ import annotations

import json
from contextlib import nullcontext
from typing import Optional

import click
from celery import Celery
from celery.exceptions import TimeoutError as CeleryTimeoutError
from flask import current_app, has_app_context
from flask.cli import ScriptInfo

from museum_app.importer.celery_app import DEFAULT_QUEUE_NAME, get_celery_app
from museum_app.importer.errors import AdapterError
from museum_app.importer.pipeline.queue import (
    DEFAULT_BATCH_LIMIT,
    coerce_status,
    enqueue,
    process_queue,
    queue_status,
    reset_stale_claims,
    retry_failed,
    sync_wallet,
)
from museum_app.importer.registry import build_adapter, get_adapter_registry
from museum_app.utils.importer import get_importer_adapters, is_importer_enabled


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Gallery importer commands.

    Displays configured adapters when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. " "Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        adapters = get_importer_adapters(app)
        if not adapters:
            click.echo("No importer adapters configured.")
        else:
            click.echo("Enabled importer adapters:")
            for adapter in adapters:
                click.echo(f"  - {adapter}")


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _load_app(ctx):
    return ctx.ensure_object(ScriptInfo).load_app()


def _app_context(app):
    if has_app_context() and current_app._get_current_object() is app:
        return nullcontext()
    return app.app_context()


def _resolve_celery(app) -> Optional[Celery]:
    """
    Retrieve the registered Celery instance, raising a helpful error if missing.
    """
    celery_app = get_celery_app(app)
    if celery_app is None:
        raise click.ClickException(
            "Importer Celery app is unavailable. Ensure IMPORTER_ENABLED=true and the "
            "importer package initialises before running worker commands."
        )
    return celery_app


def _build_source(app, adapter: str):
    adapter = adapter.lower()
    if adapter not in get_adapter_registry():
        raise click.ClickException(f"Unknown importer adapter '{adapter}'.")
    return build_adapter(adapter, app.config)


@importer_cli.group(name="worker")
@click.pass_context
def worker_group(ctx):
    """Manage the importer background worker."""
    app = _load_app(ctx)
    state = app.extensions.get("importer", {})
    if not state.get("worker_enabled") and not app.config.get("IMPORTER_WORKER_ENABLED"):
        click.echo(
            "Warning: IMPORTER_WORKER_ENABLED is false. Commands will still run, "
            "but enable the flag to surface accurate health status.",
            err=True,
        )


@worker_group.command("run")
@click.option("--loglevel", default="info", show_default=True)
@click.option("--concurrency", type=int, help="Number of worker processes/threads.")
@click.option(
    "--pool",
    type=str,
    help="Celery pool implementation (e.g., 'prefork', 'solo', 'threads').",
)
@click.option(
    "--queues",
    default=DEFAULT_QUEUE_NAME,
    show_default=True,
    help="Comma-separated queue list to consume.",
)
@click.option("--beat", is_flag=True, help="Embed the beat scheduler so scheduled imports run.")
@click.pass_context
def worker_run(ctx, loglevel: str, concurrency: Optional[int], pool: Optional[str], queues: str, beat: bool):
    """
    Start the Celery worker in the current process.
    """
    app = _load_app(ctx)
    celery_app = _resolve_celery(app)

    state = app.extensions.get("importer", {})
    if state is not None:
        state["worker_enabled"] = True

    argv = [
        "worker",
        "--loglevel",
        loglevel,
        "-Q",
        queues,
    ]
    if concurrency:
        argv.extend(["--concurrency", str(concurrency)])
    if pool:
        argv.extend(["--pool", pool])
    if beat:
        argv.append("--beat")

    pool_msg = f", pool: {pool}" if pool else ""
    click.echo(f"Starting importer worker (queues: {queues}, loglevel: {loglevel}{pool_msg})")
    try:
        celery_app.worker_main(argv=argv)
    except KeyboardInterrupt:
        click.echo("Worker shutdown requested. Exiting...")


@worker_group.command("ping")
@click.option("--timeout", default=10.0, show_default=True, help="Seconds to wait for a response.")
@click.pass_context
def worker_ping(ctx, timeout: float):
    """
    Validate worker connectivity by executing the heartbeat task.
    """
    app = _load_app(ctx)
    celery_app = _resolve_celery(app)
    task = celery_app.tasks.get("importer.healthcheck")
    if task is None:
        raise click.ClickException("Heartbeat task 'importer.healthcheck' is not registered.")

    result = task.apply_async()
    try:
        payload = result.get(timeout=timeout)
    except CeleryTimeoutError as exc:
        raise click.ClickException(f"Worker did not respond within {timeout}s") from exc
    except Exception as exc:  # pragma: no cover - surfacing unexpected errors
        raise click.ClickException(f"Worker ping failed: {exc}") from exc

    click.echo(json.dumps(payload, indent=2))


@importer_cli.command("sync-wallet")
@click.option("--adapter", required=True, help="Registered adapter name (opensea, tezos).")
@click.option("--address", required=True, help="Wallet address to crawl.")
@click.option("--max-pages", type=int, help="Stop after this many pages.")
@click.option("--process", "process_after", is_flag=True, help="Process pending records inline afterwards.")
@click.pass_context
def importer_sync_wallet(ctx, adapter: str, address: str, max_pages: Optional[int], process_after: bool):
    """Crawl a wallet and enqueue every token it holds."""
    app = _load_app(ctx)
    source = _build_source(app, adapter)
    with _app_context(app):
        payload = sync_wallet(source, address, max_pages=max_pages)
        if process_after:
            limit = int(app.config.get("IMPORTER_QUEUE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT))
            payload["processing"] = process_queue("pending", limit, trigger="cli").to_dict(include_results=False)
    click.echo(json.dumps(payload, indent=2))
    if payload["error"]:
        raise click.ClickException(f"Wallet crawl stopped early: {payload['error']}")


@importer_cli.command("enqueue-token")
@click.option("--adapter", required=True, help="Registered adapter name (opensea, tezos).")
@click.option("--contract", "contract_address", required=True, help="Token contract address.")
@click.option("--token-id", required=True, help="Token identifier within the contract.")
@click.pass_context
def importer_enqueue_token(ctx, adapter: str, contract_address: str, token_id: str):
    """Fetch a single token from its source and enqueue it."""
    app = _load_app(ctx)
    source = _build_source(app, adapter)
    try:
        record = source.fetch_by_token(contract_address, token_id)
    except AdapterError as exc:
        raise click.ClickException(f"Fetching {contract_address}:{token_id} failed: {exc}") from exc
    if record is None:
        raise click.ClickException(f"Token {contract_address}:{token_id} was not found by '{source.name}'.")
    with _app_context(app):
        payload = enqueue(record)
    click.echo(json.dumps(payload))


@importer_cli.command("process")
@click.option("--status", default="pending", show_default=True, help="Queue status to drain.")
@click.option("--limit", type=int, help="Maximum records to process (defaults to IMPORTER_QUEUE_BATCH_LIMIT).")
@click.option(
    "--inline/--no-inline",
    default=True,
    show_default=True,
    help="Process in this process instead of dispatching to the importer worker.",
)
@click.pass_context
def importer_process(ctx, status: str, limit: Optional[int], inline: bool):
    """Process one batch of the import queue."""
    app = _load_app(ctx)
    try:
        status_value = coerce_status(status).value
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--status") from exc
    limit = limit or int(app.config.get("IMPORTER_QUEUE_BATCH_LIMIT", DEFAULT_BATCH_LIMIT))
    if limit < 1:
        raise click.BadParameter("limit must be a positive integer.", param_hint="--limit")

    if not inline:
        celery_app = _resolve_celery(app)
        try:
            async_result = celery_app.send_task(
                "importer.process_queue",
                kwargs={"status": status_value, "limit": limit, "trigger": "cli"},
            )
        except Exception as exc:  # pragma: no cover - broker unavailable
            raise click.ClickException(f"Failed to dispatch queue processing: {exc}") from exc
        app.logger.info(
            "Importer queue processing dispatched via CLI",
            extra={"importer_task_id": async_result.id, "importer_requested_status": status_value},
        )
        click.echo(json.dumps({"task_id": async_result.id, "status": "queued", "limit": limit}))
        return

    with _app_context(app):
        summary = process_queue(status_value, limit, trigger="cli")
    click.echo(json.dumps(summary.to_dict(include_results=False), indent=2))


@importer_cli.command("status")
@click.option("--recent", default=10, show_default=True, help="Number of recent failures to include.")
@click.pass_context
def importer_status(ctx, recent: int):
    """Print per-status queue counts and recent failures."""
    app = _load_app(ctx)
    with _app_context(app):
        payload = queue_status(recent=recent)
    click.echo(json.dumps(payload, indent=2))


@importer_cli.command("retry-failed")
@click.option("--limit", type=int, help="Reset at most this many failed records.")
@click.pass_context
def importer_retry_failed(ctx, limit: Optional[int]):
    """Move failed records back to pending."""
    app = _load_app(ctx)
    with _app_context(app):
        count = retry_failed(limit)
    click.echo(json.dumps({"reset": count}))


@importer_cli.command("reset-stale")
@click.option("--max-age", type=click.IntRange(min=1), help="Seconds after which a processing claim is stale.")
@click.pass_context
def importer_reset_stale(ctx, max_age: Optional[int]):
    """Return processing records abandoned by a crashed worker to pending."""
    app = _load_app(ctx)
    with _app_context(app):
        count = reset_stale_claims(max_age)
    click.echo(json.dumps({"reset": count}))

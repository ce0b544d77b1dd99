"""
Gallery importer package.

Provides blueprint and CLI registration along with adapter registry
validation while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from flask import Flask

from museum_app.utils.importer import get_importer_adapters, is_importer_enabled

from .celery_app import ensure_celery_app, get_celery_app
from .cli import get_disabled_importer_group, importer_cli
from .registry import AdapterDescriptor, get_adapter_registry, resolve_adapters
from .views import importer_blueprint

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "get_celery_app",
]


def _ensure_extension_state(app: Flask) -> dict:
    state = app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "configured_adapters": (),
            "active_adapters": (),
            "worker_enabled": False,
            "celery_app": None,
        },
    )
    return state


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def _register_blueprint(app: Flask) -> None:
    # Endpoints check the importer flag per request, so the blueprint is
    # mounted even while disabled and can be enabled later without a restart.
    if importer_blueprint.name in app.blueprints:
        return
    if getattr(app, "_got_first_request", False):
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )
        return
    app.register_blueprint(importer_blueprint)


def init_importer(app: Flask) -> None:
    """
    Mount the importer blueprint and CLI according to configuration.

    Records importer state inside ``app.extensions['importer']`` for reuse in
    views, CLI commands and the worker.
    """
    enabled = is_importer_enabled(app)
    configured_adapters: Tuple[str, ...] = get_importer_adapters(app)

    state = _ensure_extension_state(app)
    worker_enabled = bool(app.config.get("IMPORTER_WORKER_ENABLED", False))
    state.update(
        {
            "enabled": enabled,
            "configured_adapters": configured_adapters,
            "worker_enabled": worker_enabled,
        }
    )
    _register_blueprint(app)

    if not enabled:
        state["active_adapters"] = ()
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    registry = get_adapter_registry()
    active_descriptors: Iterable[AdapterDescriptor] = resolve_adapters(configured_adapters, registry)
    state["active_adapters"] = tuple(active_descriptors)
    # Config changes between init calls (tests) need a freshly configured worker app
    state["celery_app"] = None
    ensure_celery_app(app, state)
    _set_cli(app, enabled=True)

    adapter_names = ", ".join(adapter.name for adapter in state["active_adapters"]) or "none"
    app.logger.info("Importer enabled with adapters: %s", adapter_names)

"""
Source adapter registry.

Adapters register metadata here so configuration validation can occur before
any provider client is constructed.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence, Tuple

from .adapters import OpenSeaAdapter, SourceAdapter, TezosAdapter
from .adapters.base import DEFAULT_TIMEOUT
from .adapters.tezos import OBJKT_GRAPHQL_URL
from .rate_limiter import AdaptiveRateLimiter


@dataclass(frozen=True)
class AdapterDescriptor:
    """Metadata describing an importer adapter."""

    name: str
    title: str
    blockchains: Tuple[str, ...] = ()
    summary: str | None = None
    enriches: bool = False


def _build_opensea(config: Mapping[str, Any], **kwargs: Any) -> OpenSeaAdapter:
    return OpenSeaAdapter(
        api_key=config.get("OPENSEA_API_KEY"),
        chain=config.get("OPENSEA_CHAIN") or "ethereum",
        **kwargs,
    )


def _build_tezos(config: Mapping[str, Any], **kwargs: Any) -> TezosAdapter:
    return TezosAdapter(graphql_url=config.get("OBJKT_GRAPHQL_URL") or OBJKT_GRAPHQL_URL, **kwargs)


_FACTORIES: Mapping[str, Callable[..., SourceAdapter]] = {
    "opensea": _build_opensea,
    "tezos": _build_tezos,
}


def get_adapter_registry() -> Mapping[str, AdapterDescriptor]:
    """Return the registry of supported adapters."""
    return OrderedDict(
        (
            (
                "opensea",
                AdapterDescriptor(
                    name="opensea",
                    title="OpenSea (v2 API)",
                    blockchains=("ethereum", "base", "polygon", "arbitrum", "optimism"),
                    summary="Fetch Ethereum-family tokens and enrich creators and collections.",
                    enriches=True,
                ),
            ),
            (
                "tezos",
                AdapterDescriptor(
                    name="tezos",
                    title="Tezos (objkt GraphQL)",
                    blockchains=("tezos",),
                    summary="Fetch Tezos tokens from the objkt indexer.",
                ),
            ),
        )
    )


def resolve_adapters(
    configured: Sequence[str],
    registry: Mapping[str, AdapterDescriptor] | None = None,
) -> Iterable[AdapterDescriptor]:
    """
    Map configured adapter names to registry descriptors, raising on unknowns.
    """
    registry = registry or get_adapter_registry()
    unknown = sorted({adapter for adapter in configured if adapter not in registry})
    if unknown:
        raise ValueError(
            "Unknown importer adapters configured: "
            + ", ".join(unknown)
            + ". Update configuration or register these adapters first."
        )
    return tuple(registry[adapter] for adapter in configured)


def build_adapter(name: str, config: Mapping[str, Any], **kwargs: Any) -> SourceAdapter:
    """
    Construct the adapter registered as ``name`` from Flask config values.

    Extra keyword arguments (``session``, ``rate_limiter``) are passed through.
    """
    factory = _FACTORIES.get(name)
    if factory is None:
        raise ValueError(f"Unknown importer adapter '{name}'.")
    kwargs.setdefault("timeout", float(config.get("IMPORTER_HTTP_TIMEOUT", DEFAULT_TIMEOUT)))
    kwargs.setdefault("rate_limiter", AdaptiveRateLimiter.from_config(config))
    return factory(config, **kwargs)


__all__ = ["AdapterDescriptor", "build_adapter", "get_adapter_registry", "resolve_adapters"]

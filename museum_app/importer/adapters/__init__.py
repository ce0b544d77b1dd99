"""Importer source adapters."""

from __future__ import annotations

from .base import DEFAULT_TIMEOUT, FetchPage, HttpAdapter, SourceAdapter, crawl_wallet
from .opensea import OpenSeaAdapter
from .tezos import TezosAdapter

__all__ = [
    "DEFAULT_TIMEOUT",
    "FetchPage",
    "HttpAdapter",
    "OpenSeaAdapter",
    "SourceAdapter",
    "TezosAdapter",
    "crawl_wallet",
]

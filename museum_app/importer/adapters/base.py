"""
Shared plumbing for HTTP source adapters.

Adapters page through a provider by opaque cursor and hand back tagged
``RawRecord`` values; the importer never sees provider transport details.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence

import requests

from museum_app.importer.errors import AdapterError
from museum_app.importer.metrics import record_adapter_request
from museum_app.importer.pipeline.records import RawRecord
from museum_app.importer.rate_limiter import AdaptiveRateLimiter

DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class FetchPage:
    """One page of wallet results; ``next_cursor`` is None on the last page."""

    records: Sequence[RawRecord]
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class SourceAdapter(Protocol):
    name: str

    def fetch_by_wallet(self, address: str, cursor: str | None = None) -> FetchPage: ...

    def fetch_by_token(self, contract_address: str, token_id: str) -> RawRecord | None: ...


class HttpAdapter:
    """Base class wiring a ``requests.Session`` through the adaptive rate limiter."""

    name = "http"

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        rate_limiter: AdaptiveRateLimiter | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.rate_limiter = rate_limiter or AdaptiveRateLimiter(base_delay=0.0)
        self.logger = logger or logging.getLogger(__name__)

    def default_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json"}

    def _send(self, method: str, url: str, *, context: str, allow_missing: bool = False, **kwargs: Any) -> Any:
        """
        Issue a request through the rate limiter and return decoded JSON.

        404 responses return None when ``allow_missing`` is set; other non-2xx
        statuses raise ``AdapterError`` (429 is retried with backoff first).
        """
        headers = {**self.default_headers(), **kwargs.pop("headers", {})}

        def _request() -> Any:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            if response.status_code == 429:
                record_adapter_request(self.name, "rate_limited")
                raise AdapterError(
                    f"{self.name} rate limit hit for {context}",
                    provider=self.name,
                    status_code=429,
                )
            if allow_missing and response.status_code == 404:
                record_adapter_request(self.name, "success")
                return None
            if not response.ok:
                record_adapter_request(self.name, "failure")
                raise AdapterError(
                    f"{self.name} API error {response.status_code} for {context}",
                    provider=self.name,
                    status_code=response.status_code,
                )
            record_adapter_request(self.name, "success")
            return response.json()

        return self.rate_limiter.call(_request, context=context, provider=self.name)


def crawl_wallet(
    adapter: SourceAdapter,
    address: str,
    handle_record: Callable[[RawRecord], Any],
    *,
    max_pages: int | None = None,
    logger: logging.Logger | None = None,
) -> tuple[int, int, str | None]:
    """
    Walk every page for ``address`` and pass each record to ``handle_record``.

    Returns ``(pages, records, error)``. A failed page stops the crawl and is
    reported through ``error`` rather than raised.
    """
    logger = logger or logging.getLogger(__name__)
    cursor: str | None = None
    pages = records = 0
    while True:
        try:
            page = adapter.fetch_by_wallet(address, cursor)
        except AdapterError as exc:
            logger.warning(
                "Wallet crawl stopped on failed page",
                extra={
                    "importer_adapter": adapter.name,
                    "importer_wallet": address,
                    "importer_cursor": cursor,
                    "importer_error": str(exc),
                },
            )
            return pages, records, str(exc)
        pages += 1
        for record in page.records:
            handle_record(record)
            records += 1
        if not page.has_more or (max_pages is not None and pages >= max_pages):
            return pages, records, None
        cursor = page.next_cursor


__all__ = ["DEFAULT_TIMEOUT", "FetchPage", "HttpAdapter", "SourceAdapter", "crawl_wallet"]

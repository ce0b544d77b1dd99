"""
Adaptive pacing for outbound provider calls.

Every call waits ``current_delay`` first. A rate-limited response multiplies
the delay by ``backoff_multiplier`` (bounded by ``max_delay``); after
``relax_after`` consecutive successes the delay relaxes by 20% but never drops
below ``base_delay``. Retries are bounded; once exhausted the last error is
surfaced as an ``AdapterError``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, TypeVar

import requests

from .errors import AdapterError, RateLimitExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("rate limit", "too many requests")
RELAX_FACTOR = 0.8


def is_rate_limit_error(exc: BaseException) -> bool:
    status_code = getattr(exc, "status_code", None)
    if status_code is None and isinstance(exc, requests.HTTPError) and exc.response is not None:
        status_code = exc.response.status_code
    if status_code == 429 or isinstance(exc, RateLimitExceeded):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class AdaptiveRateLimiter:
    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        backoff_multiplier: float = 1.5,
        max_retries: int = 5,
        relax_after: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_delay = max(0.0, base_delay)
        self.max_delay = max(self.base_delay, max_delay)
        self.backoff_multiplier = max(1.0, backoff_multiplier)
        self.max_retries = max(1, max_retries)
        self.relax_after = max(1, relax_after)
        self.current_delay = self.base_delay
        self.consecutive_successes = 0
        self.consecutive_failures = 0
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **overrides: Any) -> "AdaptiveRateLimiter":
        options: dict[str, Any] = {
            "base_delay": float(config.get("IMPORTER_RATE_LIMIT_BASE_DELAY", 1.0)),
            "max_delay": float(config.get("IMPORTER_RATE_LIMIT_MAX_DELAY", 10.0)),
            "max_retries": int(config.get("IMPORTER_RATE_LIMIT_MAX_RETRIES", 5)),
        }
        options.update(overrides)
        return cls(**options)

    def record_success(self) -> None:
        self.consecutive_successes += 1
        self.consecutive_failures = 0
        if self.consecutive_successes >= self.relax_after and self.current_delay > self.base_delay:
            self.current_delay = max(self.base_delay, self.current_delay * RELAX_FACTOR)
            self.consecutive_successes = 0

    def record_rate_limit(self) -> None:
        self.consecutive_failures += 1
        self.consecutive_successes = 0
        # A zero base delay still needs a floor to back off from
        self.current_delay = min(max(self.current_delay, 0.1) * self.backoff_multiplier, self.max_delay)

    def pace(self) -> None:
        """Wait the current delay; used between groups of calls."""
        if self.current_delay > 0:
            self._sleep(self.current_delay)

    def call(self, fn: Callable[[], T], *, context: str = "provider call", provider: str | None = None) -> T:
        """
        Run ``fn`` with pacing and bounded retries.

        Raises ``RateLimitExceeded`` when every attempt was rate limited and
        ``AdapterError`` for any other exhausted failure.
        """
        last_error: BaseException | None = None
        rate_limited = False
        for attempt in range(1, self.max_retries + 1):
            self.pace()
            try:
                result = fn()
            except (requests.RequestException, AdapterError) as exc:
                last_error = exc
                rate_limited = is_rate_limit_error(exc)
                if rate_limited:
                    self.record_rate_limit()
                    logger.info(
                        "Rate limited; backing off",
                        extra={
                            "importer_context": context,
                            "importer_attempt": attempt,
                            "importer_delay_seconds": self.current_delay,
                        },
                    )
                else:
                    self.consecutive_successes = 0
                    logger.warning(
                        "Provider call failed",
                        extra={"importer_context": context, "importer_attempt": attempt, "importer_error": str(exc)},
                    )
                continue
            self.record_success()
            return result

        message = f"{context} failed after {self.max_retries} attempts: {last_error}"
        status_code = getattr(last_error, "status_code", None)
        if rate_limited:
            raise RateLimitExceeded(message, provider=provider, status_code=status_code or 429) from last_error
        raise AdapterError(message, provider=provider, status_code=status_code) from last_error


__all__ = ["AdaptiveRateLimiter", "is_rate_limit_error"]

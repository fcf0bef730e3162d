"""Translate provider failures into HTTP errors for the API routes."""
import asyncio
from dataclasses import dataclass

import httpx
from fastapi import HTTPException

from riskwise.providers.core.exceptions import (PriceUnavailableError,
                                                ProviderError,
                                                RateLimitedError)


@dataclass(frozen=True)
class ProviderErrorMapper:
    """Turn price/research provider exceptions into (status_code, detail).

    ``PriceUnavailableError`` becomes 503 with the per-source reasons so callers
    can tell an outage from an unknown ticker.
    """

    subject: str = "Symbol"
    upstream: str = "Upstream"

    def to_http(self, exc: Exception, symbol: str | None = None) -> tuple[int, object]:
        if isinstance(exc, PriceUnavailableError):
            return 503, {
                "message": f"No price available for '{exc.symbol or symbol}'",
                "sources": exc.reasons,
            }
        if isinstance(exc, RateLimitedError):
            return 429, f"{self.upstream} rate limit reached"
        if isinstance(exc, httpx.HTTPStatusError):
            code = exc.response.status_code
            if code == 404:
                return 404, f"{self.subject} '{symbol}' not found"
            return 502, f"{self.upstream} returned HTTP {code}"
        if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
            return 504, f"{self.upstream} timed out for '{symbol}'"
        if isinstance(exc, ProviderError):
            return 502, str(exc)
        return 500, "Internal server error"

    def raise_http(self, exc: Exception, symbol: str | None = None) -> None:
        """Raise the mapped ``HTTPException``; never returns."""
        status_code, detail = self.to_http(exc, symbol=symbol)
        raise HTTPException(status_code=status_code, detail=detail) from exc

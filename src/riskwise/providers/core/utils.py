"""Shared utilities for price providers."""
import httpx

from riskwise.providers.core.exceptions import RateLimitedError

DECIMALS = 2


def normalize_stock_symbol(symbol: str) -> str:
    """Normalize a stock symbol (trimmed, uppercase)."""
    return symbol.strip().upper()


def round2(x: float | None) -> float | None:
    """Round a value to 2 decimal places; preserve None."""
    if x is None:
        return None
    return round(float(x), DECIMALS)


def raise_for_status(response: httpx.Response, provider: str, symbol: str | None = None) -> None:
    """raise_for_status that turns HTTP 429 into RateLimitedError."""
    if response.status_code == 429:
        raise RateLimitedError(
            f"{provider} rate limit reached", provider=provider, symbol=symbol
        )
    response.raise_for_status()

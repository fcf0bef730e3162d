"""Typed provider failures."""


class ProviderError(Exception):
    """A price or research provider could not serve a request."""

    def __init__(self, message: str, *, provider: str | None = None, symbol: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.symbol = symbol


class RateLimitedError(ProviderError):
    """The provider signalled a rate limit (HTTP 429 or equivalent)."""


class PriceUnavailableError(ProviderError):
    """Every configured price source failed for a symbol this cycle."""

    def __init__(self, symbol: str, reasons: dict[str, str] | None = None) -> None:
        self.reasons = dict(reasons or {})
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.reasons.items())
        message = f"No price available for '{symbol}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message, symbol=symbol)

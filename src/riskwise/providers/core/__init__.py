"""Core provider abstractions."""
from riskwise.providers.core.error_mapper import ProviderErrorMapper
from riskwise.providers.core.exceptions import (PriceUnavailableError,
                                                ProviderError,
                                                RateLimitedError)
from riskwise.providers.core.price_source_abc import PriceSourceABC
from riskwise.providers.core.utils import normalize_stock_symbol, round2

__all__ = [
    "PriceSourceABC",
    "PriceUnavailableError",
    "ProviderError",
    "ProviderErrorMapper",
    "RateLimitedError",
    "normalize_stock_symbol",
    "round2",
]

"""Brokerage-linked price source (Alpaca market data)."""
from riskwise.providers.alpaca.alpaca_provider import AlpacaPriceProvider

__all__ = ["AlpacaPriceProvider"]

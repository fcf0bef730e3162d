"""Yahoo Finance price and history source."""
from riskwise.providers.yfinance.y_finance_provider import YFinanceProvider

__all__ = ["YFinanceProvider"]

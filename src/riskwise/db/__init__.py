"""Database package: durable portfolio records and session management."""
from riskwise.db.models import PortfolioRecord

__all__ = ["PortfolioRecord"]

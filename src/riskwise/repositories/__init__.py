"""Portfolio repositories (in-memory and SQLModel-backed)."""
from riskwise.repositories.portfolio_repository import (
    InMemoryPortfolioRepository, PortfolioRepository, SqlPortfolioRepository,
    create_portfolio_repository)

__all__ = [
    "InMemoryPortfolioRepository",
    "PortfolioRepository",
    "SqlPortfolioRepository",
    "create_portfolio_repository",
]

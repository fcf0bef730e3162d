"""Owned stores for user portfolios.

The monitoring loop mutates ``Portfolio`` objects returned by ``get`` and then
calls ``save``; both repositories hand out the same live object per user so
concurrent tasks for one user never work on diverging copies.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from sqlmodel import select

from riskwise.db.models import PortfolioRecord
from riskwise.db.sessions import build_engine, get_session, init_db
from riskwise.schemas import Portfolio

logger = logging.getLogger(__name__)


class PortfolioRepository(ABC):
    """Keyed access to portfolios by user id."""

    @abstractmethod
    async def get(self, user_id: str) -> Portfolio | None:
        """Return the live portfolio for a user, or None."""

    @abstractmethod
    async def save(self, portfolio: Portfolio) -> None:
        """Persist the portfolio (insert or replace)."""

    @abstractmethod
    async def delete(self, user_id: str) -> bool:
        """Remove a portfolio; returns True when one existed."""

    @abstractmethod
    async def list_all(self) -> list[Portfolio]:
        """Return every stored portfolio."""

    async def holders_of(self, symbol: str) -> list[Portfolio]:
        """Portfolios holding the given symbol."""
        return [p for p in await self.list_all() if symbol in p.positions]

    async def close(self) -> None:
        """Release resources. Override when needed."""


class InMemoryPortfolioRepository(PortfolioRepository):
    """Process-lifetime store."""

    def __init__(self) -> None:
        self._items: dict[str, Portfolio] = {}

    async def get(self, user_id: str) -> Portfolio | None:
        return self._items.get(user_id)

    async def save(self, portfolio: Portfolio) -> None:
        portfolio.updated_at = datetime.now(timezone.utc)
        self._items[portfolio.user_id] = portfolio

    async def delete(self, user_id: str) -> bool:
        return self._items.pop(user_id, None) is not None

    async def list_all(self) -> list[Portfolio]:
        return list(self._items.values())


class SqlPortfolioRepository(PortfolioRepository):
    """Write-through SQLModel store with an in-memory working set.

    Records are loaded once into memory on first access. ``save`` snapshots the
    JSON document on the event loop and writes it in a worker thread; writes for
    one user are serialized and a snapshot superseded while waiting is skipped,
    so the row always ends at the newest state.
    """

    def __init__(self, database_url: str) -> None:
        self._engine = build_engine(database_url)
        init_db(self._engine)
        self._items: dict[str, Portfolio] | None = None
        self._load_lock = asyncio.Lock()
        self._write_locks: dict[str, asyncio.Lock] = {}
        self._versions: dict[str, int] = {}

    async def _working_set(self) -> dict[str, Portfolio]:
        if self._items is None:
            async with self._load_lock:
                if self._items is None:
                    self._items = await asyncio.to_thread(self._load_all_sync)
        return self._items

    def _load_all_sync(self) -> dict[str, Portfolio]:
        items: dict[str, Portfolio] = {}
        with get_session(self._engine) as session:
            for record in session.exec(select(PortfolioRecord)).all():
                try:
                    items[record.user_id] = Portfolio.model_validate(json.loads(record.payload))
                except ValueError as exc:
                    logger.warning("Skipping unreadable portfolio %s: %s", record.user_id, exc)
        logger.info("Loaded %d portfolios from storage", len(items))
        return items

    def _write_sync(self, user_id: str, payload: str, updated_at: datetime) -> None:
        with get_session(self._engine) as session:
            record = session.get(PortfolioRecord, user_id)
            if record is None:
                record = PortfolioRecord(user_id=user_id, payload=payload, updated_at=updated_at)
            else:
                record.payload = payload
                record.updated_at = updated_at
            session.add(record)

    def _delete_sync(self, user_id: str) -> None:
        with get_session(self._engine) as session:
            record = session.get(PortfolioRecord, user_id)
            if record is not None:
                session.delete(record)

    def _write_lock(self, user_id: str) -> asyncio.Lock:
        return self._write_locks.setdefault(user_id, asyncio.Lock())

    def _next_version(self, user_id: str) -> int:
        self._versions[user_id] = self._versions.get(user_id, 0) + 1
        return self._versions[user_id]

    async def get(self, user_id: str) -> Portfolio | None:
        return (await self._working_set()).get(user_id)

    async def save(self, portfolio: Portfolio) -> None:
        items = await self._working_set()
        user_id = portfolio.user_id
        updated_at = portfolio.updated_at = datetime.now(timezone.utc)
        items[user_id] = portfolio
        payload = json.dumps(portfolio.to_storage_dict())
        version = self._next_version(user_id)
        async with self._write_lock(user_id):
            if version != self._versions[user_id]:
                return
            await asyncio.to_thread(self._write_sync, user_id, payload, updated_at)

    async def delete(self, user_id: str) -> bool:
        items = await self._working_set()
        existed = items.pop(user_id, None) is not None
        self._next_version(user_id)
        async with self._write_lock(user_id):
            await asyncio.to_thread(self._delete_sync, user_id)
        return existed

    async def list_all(self) -> list[Portfolio]:
        return list((await self._working_set()).values())

    async def close(self) -> None:
        self._engine.dispose()


def create_portfolio_repository(database_url: str | None) -> PortfolioRepository:
    """In-memory store when no database URL is configured, SQLModel otherwise."""
    if not database_url:
        return InMemoryPortfolioRepository()
    return SqlPortfolioRepository(database_url)

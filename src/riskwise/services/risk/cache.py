"""Per-(user, symbol) memo of risk results, invalidated by price movement."""
import logging
from dataclasses import dataclass

from riskwise.schemas import RiskResult

logger = logging.getLogger(__name__)


@dataclass
class CachedRisk:
    reference_price: float
    result: RiskResult


class RiskResultCache:
    """Reuse a risk result while the price stays within ``threshold_pct`` of the price it was computed at."""

    def __init__(self, threshold_pct: float = 5.0) -> None:
        self._threshold = threshold_pct
        self._entries: dict[tuple[str, str], CachedRisk] = {}

    def get(self, user_id: str, symbol: str, current_price: float | None) -> RiskResult | None:
        entry = self._entries.get((user_id, symbol))
        if entry is None or current_price is None:
            return None
        if entry.reference_price <= 0:
            return None
        move_pct = abs(current_price - entry.reference_price) / entry.reference_price * 100
        if move_pct >= self._threshold:
            logger.debug(
                "Risk cache miss for %s/%s: price moved %.2f%%", user_id, symbol, move_pct
            )
            return None
        return entry.result

    def put(self, user_id: str, symbol: str, reference_price: float, result: RiskResult) -> None:
        # Neutral fallbacks are not memoized so the next pass retries scoring.
        if result.is_fallback:
            self._entries.pop((user_id, symbol), None)
            return
        self._entries[(user_id, symbol)] = CachedRisk(reference_price, result)

    def invalidate(self, user_id: str, symbol: str) -> None:
        self._entries.pop((user_id, symbol), None)

    def invalidate_symbol(self, symbol: str) -> None:
        for key in [k for k in self._entries if k[1] == symbol]:
            del self._entries[key]

    def drop_user(self, user_id: str) -> None:
        for key in [k for k in self._entries if k[0] == user_id]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

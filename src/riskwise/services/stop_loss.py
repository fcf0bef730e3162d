"""Portfolio-level stop-loss allocation weighted by relative risk."""
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from riskwise.schemas import NEUTRAL_RISK_SCORE, Position

logger = logging.getLogger(__name__)

MAX_LOSS_FRACTION = 0.9999


@dataclass(frozen=True)
class StopAllocation:
    symbol: str
    weight: float
    allocated_loss: float
    position_value: float
    loss_fraction: float
    stop_price: float


@dataclass(frozen=True)
class StopChange:
    symbol: str
    old_stop: float | None
    new_stop: float
    allocated_loss: float
    weight: float


def allocate_stop_losses(
    positions: Iterable[Position], max_loss_pct: float
) -> dict[str, StopAllocation]:
    """Split a portfolio's loss budget across positions in proportion to risk.

    Positions without a current price or with no shares are left out. A
    position's weight is its risk score over the sum of scores; positions not
    scored yet count as neutral (5), and when nothing is scored all weights
    are equal. The budget is ``portfolio value * max_loss_pct / 100``.

    Args:
        positions: Positions with ``last_price`` and optional ``risk_score``.
        max_loss_pct: Maximum portfolio loss as a percentage (5.0 = 5%).

    Returns:
        Allocation per symbol; empty when the portfolio value is not positive.
    """
    valued = [p for p in positions if p.last_price and p.last_price > 0 and p.shares > 0]
    values = {p.symbol: p.shares * p.last_price for p in valued}
    portfolio_value = sum(values.values())
    if portfolio_value <= 0:
        return {}

    if any(p.risk_score for p in valued):
        raw = {p.symbol: float(p.risk_score or NEUTRAL_RISK_SCORE) for p in valued}
    else:
        raw = {p.symbol: 1.0 for p in valued}
    total_raw = sum(raw.values())
    budget = portfolio_value * max_loss_pct / 100

    allocations: dict[str, StopAllocation] = {}
    for position in valued:
        weight = raw[position.symbol] / total_raw
        allocated = budget * weight
        value = values[position.symbol]
        fraction = min(max(allocated / value, 0.0), MAX_LOSS_FRACTION)
        anchor = position.anchor_price or position.last_price
        stop = max(0.0, round(anchor * (1 - fraction), 2))
        allocations[position.symbol] = StopAllocation(
            symbol=position.symbol,
            weight=weight,
            allocated_loss=allocated,
            position_value=value,
            loss_fraction=fraction,
            stop_price=stop,
        )
    return allocations


def _moved_beyond(old: float, new: float, epsilon: float) -> bool:
    # Stops are whole cents; compare in cents so 86.01 vs 86.00 is exactly one.
    return round(abs(new - old) * 100) > round(epsilon * 100)


def apply_stop_allocations(
    positions: dict[str, Position],
    allocations: dict[str, StopAllocation],
    epsilon: float = 0.01,
) -> list[StopChange]:
    """Write new stops that moved by more than ``epsilon``; return those changes."""
    changes: list[StopChange] = []
    for symbol, allocation in allocations.items():
        position = positions.get(symbol)
        if position is None:
            continue
        old = position.stop_price
        if old is not None and not _moved_beyond(old, allocation.stop_price, epsilon):
            continue
        position.stop_price = allocation.stop_price
        position.stop_triggered = False
        changes.append(
            StopChange(
                symbol=symbol,
                old_stop=old,
                new_stop=allocation.stop_price,
                allocated_loss=allocation.allocated_loss,
                weight=allocation.weight,
            )
        )
    return changes

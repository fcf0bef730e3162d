"""Risk scoring result schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from riskwise.schemas.market import utcnow

NEUTRAL_RISK_SCORE = 5


class RiskFactors(BaseModel):
    """Normalized sub-signals (0 = calm, 1 = risky) and the raw inputs behind them."""

    volatility_short: float = 0.0
    volatility_medium: float = 0.0
    volatility_long: float = 0.0
    volatility_composite: float = 0.0
    beta: float = 1.0
    max_drawdown: float = 0.0
    debt_to_equity: float | None = None
    interest_coverage: float | None = None
    earnings_surprise: float = 0.0
    sentiment: float = 0.5
    relative_strength: float = 0.5
    market_volatility: float | None = None
    scores: dict[str, float] = Field(default_factory=dict)
    composite: float | None = None


class RiskResult(BaseModel):
    """Composite risk score in [1, 10] with its explanation."""

    symbol: str
    overall_risk_score: int = Field(ge=1, le=10)
    current_price: float | None = None
    factors: RiskFactors = Field(default_factory=RiskFactors)
    explanation: dict[str, Any] = Field(default_factory=dict)
    analyzed_at: datetime = Field(default_factory=utcnow)

    @property
    def is_fallback(self) -> bool:
        """True when the score is the neutral fallback after a data failure."""
        return "error" in self.explanation

    @classmethod
    def neutral(cls, symbol: str, reason: str, current_price: float | None = None) -> "RiskResult":
        """Build the conservative neutral result used when scoring data is unavailable."""
        return cls(
            symbol=symbol,
            overall_risk_score=NEUTRAL_RISK_SCORE,
            current_price=current_price,
            explanation={"error": reason},
        )

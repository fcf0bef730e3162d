"""Risk scoring engine and risk result cache."""
from riskwise.services.risk.cache import RiskResultCache
from riskwise.services.risk.engine import (DEFAULT_WEIGHTS, RiskScoringEngine,
                                           score_from_composite)
from riskwise.services.risk.protocols import HistorySource, ResearchSource

__all__ = [
    "DEFAULT_WEIGHTS",
    "HistorySource",
    "ResearchSource",
    "RiskResultCache",
    "RiskScoringEngine",
    "score_from_composite",
]

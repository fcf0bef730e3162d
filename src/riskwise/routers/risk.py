"""Ad-hoc risk scoring routes (no stored portfolio involved)."""
import asyncio

from fastapi import APIRouter

from riskwise.container import MonitorDep
from riskwise.schemas import RiskResult
from riskwise.schemas.requests import BulkRiskRequest, BulkRiskResponse

router = APIRouter(prefix="/risk", tags=["risk"])


@router.get("/{ticker}", response_model=RiskResult)
async def get_risk(ticker: str, monitor: MonitorDep) -> RiskResult:
    """Score one ticker.

    Args:
        ticker: Stock ticker (e.g., "AAPL").

    Returns:
        Risk score 1-10 with factors; the neutral score 5 when data is unavailable.
    """
    return await monitor.score_symbol(ticker)


@router.post("/bulk", response_model=BulkRiskResponse)
async def get_bulk_risk(body: BulkRiskRequest, monitor: MonitorDep) -> BulkRiskResponse:
    """Score several tickers concurrently."""
    tickers = list(dict.fromkeys(t.strip().upper() for t in body.tickers if t.strip()))
    results = await asyncio.gather(*(monitor.score_symbol(t) for t in tickers))
    return BulkRiskResponse(results=dict(zip(tickers, results)))

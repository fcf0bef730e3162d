"""Portfolio routes: submit holdings, read monitored state."""
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException

from riskwise.container import MonitorDep, RepositoryDep
from riskwise.schemas import Portfolio
from riskwise.schemas.requests import (PortfolioUpdateRequest,
                                       PortfolioUpdateResponse)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["portfolio"])


@router.post("/update-portfolio", response_model=PortfolioUpdateResponse)
async def update_portfolio(
    body: PortfolioUpdateRequest,
    background_tasks: BackgroundTasks,
    monitor: MonitorDep,
) -> PortfolioUpdateResponse:
    """Create or merge a user's portfolio and schedule a forced first pass.

    Symbols kept from the previous portfolio keep their price, risk score and
    stop-loss; removed symbols are dropped from monitoring.
    """
    portfolio = await monitor.upsert_portfolio(body)
    background_tasks.add_task(monitor.initialize_portfolio, portfolio.user_id)
    return PortfolioUpdateResponse(user_id=portfolio.user_id, symbols=portfolio.symbols)


@router.get("/portfolio/{user_id}", response_model=Portfolio)
async def get_portfolio(user_id: str, repository: RepositoryDep) -> Portfolio:
    """Get a user's portfolio with positions, stops, risk scores and alert history."""
    portfolio = await repository.get(user_id)
    if portfolio is None:
        raise HTTPException(status_code=404, detail=f"Portfolio for '{user_id}' not found")
    return portfolio


@router.delete("/portfolio/{user_id}")
async def delete_portfolio(user_id: str, monitor: MonitorDep) -> dict[str, str]:
    """Stop monitoring a user's portfolio and forget its state."""
    if not await monitor.remove_portfolio(user_id):
        raise HTTPException(status_code=404, detail=f"Portfolio for '{user_id}' not found")
    return {"status": "deleted", "user_id": user_id}

"""API routers.

Includes routes for:
- /update-portfolio, /portfolio/{user_id} - portfolio submission and state
- /events/{user_id} - live Server-Sent Events stream; /subscribe - push registration
- /risk/{ticker}, /risk/bulk - ad-hoc risk scoring
- /webhook/event - forced recompute for externally detected events
- /prices/{symbol} - current price through the shared cache
"""
from riskwise.routers.events import router as events_router
from riskwise.routers.portfolio import router as portfolio_router
from riskwise.routers.prices import router as prices_router
from riskwise.routers.risk import router as risk_router
from riskwise.routers.webhook import router as webhook_router

__all__ = [
    "events_router",
    "portfolio_router",
    "prices_router",
    "risk_router",
    "webhook_router",
]

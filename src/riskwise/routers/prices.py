"""Current price route (through the shared price cache)."""
from fastapi import APIRouter

from riskwise.container import PriceCacheDep
from riskwise.providers import ProviderErrorMapper
from riskwise.schemas import PriceQuote

router = APIRouter(prefix="/prices", tags=["prices"])

_errors = ProviderErrorMapper("Stock", "Price sources")


@router.get("/{symbol}", response_model=PriceQuote)
async def get_price(symbol: str, prices: PriceCacheDep) -> PriceQuote:
    """Get the current price for a stock symbol.

    Args:
        symbol: Stock ticker (e.g., "AAPL", "MSFT").

    Returns:
        Latest price and the source that supplied it.
    """
    try:
        return await prices.get(symbol)
    except Exception as e:
        _errors.raise_http(e, symbol=symbol.upper())

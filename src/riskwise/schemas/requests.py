"""HTTP request and response bodies."""
from pydantic import AliasChoices, BaseModel, Field, field_validator

from riskwise.schemas.notifications import PushSubscription
from riskwise.schemas.portfolio import BrokerCredentials
from riskwise.schemas.risk import RiskResult


class StockInput(BaseModel):
    """One entry of the ``stocks`` map in a portfolio update."""

    shares: float = Field(gt=0, validation_alias=AliasChoices("shares", "quantity"))
    entry_price: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("entryPrice", "entry_price", "purchasePrice"),
    )
    sector: str | None = None
    amount_invested: float | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("amountInvested", "amount_invested"),
    )

    def resolved_entry_price(self) -> float | None:
        """Entry price, derived from the invested amount when not given."""
        if self.entry_price:
            return self.entry_price
        if self.amount_invested:
            return self.amount_invested / self.shares
        return None


class PortfolioUpdateRequest(BaseModel):
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("userId", "user_id"))
    stocks: dict[str, StockInput] = Field(min_length=1)
    credentials: BrokerCredentials | None = Field(
        default=None,
        validation_alias=AliasChoices("alpacaKeys", "brokerCredentials", "credentials"),
    )
    user_email: str | None = Field(
        default=None, validation_alias=AliasChoices("userEmail", "user_email")
    )
    max_loss_pct: float | None = Field(
        default=None,
        gt=0,
        lt=100,
        validation_alias=AliasChoices(
            "maxLossPercent", "portfolioRiskLevel", "riskLevel", "max_loss_pct"
        ),
    )
    total_investment: float | None = Field(
        default=None, validation_alias=AliasChoices("totalInvestment", "total_investment")
    )

    @field_validator("stocks")
    @classmethod
    def _upper_symbols(cls, value: dict[str, StockInput]) -> dict[str, StockInput]:
        return {symbol.strip().upper(): stock for symbol, stock in value.items() if symbol.strip()}


class PortfolioUpdateResponse(BaseModel):
    status: str = "accepted"
    user_id: str
    symbols: list[str]


class SubscribeRequest(BaseModel):
    user_id: str = Field(min_length=1, validation_alias=AliasChoices("userId", "user_id"))
    subscription: PushSubscription


class BulkRiskRequest(BaseModel):
    tickers: list[str] = Field(min_length=1, max_length=25)


class BulkRiskResponse(BaseModel):
    results: dict[str, RiskResult]


class WebhookEventRequest(BaseModel):
    ticker: str = Field(min_length=1)
    reason: str | None = None
    event_id: str | None = Field(default=None, validation_alias=AliasChoices("eventId", "event_id"))


class WebhookEventResponse(BaseModel):
    status: str = "accepted"
    ticker: str
    users: int

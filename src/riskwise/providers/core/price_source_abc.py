"""Abstract base class for price sources."""
from abc import ABC, abstractmethod

from riskwise.schemas import BrokerCredentials, PriceQuote


class PriceSourceABC(ABC):
    """Uniform ``get_price(symbol, credentials?)`` across interchangeable providers.

    Sources flagged with ``requires_credentials`` are only tried when the
    caller supplies brokerage credentials, and then ahead of generic sources.
    """

    name: str = "source"
    requires_credentials: bool = False

    @abstractmethod
    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        """Fetch the latest price for a symbol.

        Args:
            symbol: Normalized ticker (e.g. "AAPL").
            credentials: Optional brokerage credentials.

        Returns:
            A PriceQuote carrying this source's name.

        Raises:
            ProviderError: RateLimitedError on throttling; any other failure
                (httpx errors, ValueError) means the source could not serve.
        """

    async def close(self) -> None:
        """Clean up resources (connections, clients).

        Override in subclasses if cleanup is needed.
        """

    async def __aenter__(self) -> "PriceSourceABC":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.close()

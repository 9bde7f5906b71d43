from .base_client import RestClient
from .config import AlpacaConfig
from .endpoints.broker import TradingAPI
from .endpoints.mkt_data import MarketDataAPI
from .endpoints.streams import (
    MarketDataFeed,
    MarketDataStream,
    TradeUpdatesStream,
)


class AlpacaClient:
    """
    Central entry point for the Alpaca APIs.
    Aggregates the trading and market data sub-clients and opens streams.
    """

    def __init__(
        self,
        config: AlpacaConfig,
    ):
        self.config = config
        headers = config.auth_headers()

        # Both REST areas share the credential headers but not a base URL
        trading = (
            RestClient.builder(config.trading_base_url)
            .default_headers(headers)
            .timeout(config.timeout)
            .build()
        )
        market_data = (
            RestClient.builder(config.market_data_base_url)
            .default_headers(headers)
            .timeout(config.timeout)
            .build()
        )

        self.trading = TradingAPI(rest=trading)
        self.market_data = MarketDataAPI(rest=market_data)

    async def connect_market_data_stream(
        self,
        feed: MarketDataFeed = MarketDataFeed.IEX,
        **kwargs,
    ) -> MarketDataStream:
        return await MarketDataStream.connect(self.config, feed, **kwargs)

    async def connect_trade_updates_stream(
        self,
        **kwargs,
    ) -> TradeUpdatesStream:
        return await TradeUpdatesStream.connect(self.config, **kwargs)

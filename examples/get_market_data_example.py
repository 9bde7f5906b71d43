from alpaca_python_client.client import AlpacaClient
from alpaca_python_client.config import AlpacaConfig
from alpaca_python_client.toolbox import bars_to_dataframe

if __name__ == "__main__":
    # Reads APCA_API_KEY_ID / APCA_API_SECRET_KEY
    config = AlpacaConfig.from_env()

    # Facade Pattern, AlpacaClient is an entry point.
    client = AlpacaClient(config)

    # Every daily bar in the range, all pages included
    bars = client.market_data.get_bars(
        symbol="AAPL",
        start="2024-01-01",
        end="2024-06-30",
        timeframe="1Day",
    )
    df = bars_to_dataframe(bars)
    print(df.tail())

    # Several symbols at once
    universe = client.market_data.get_bars_for_symbols(
        symbols=["AAPL", "MSFT", "NVDA"],
        start="2024-06-01",
        end="2024-06-30",
        max_workers=3,
    )

    print({symbol: len(b) for symbol, b in universe.items()})

    quote = client.market_data.get_latest_quote("AAPL")
    print(quote.quote.bid_price, quote.quote.ask_price)

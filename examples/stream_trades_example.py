from alpaca_python_client.client import AlpacaClient
from alpaca_python_client.config import AlpacaConfig
from alpaca_python_client.endpoints.streams import MarketDataFeed
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)


async def main() -> None:
    client = AlpacaClient(AlpacaConfig.from_env())

    async with await client.connect_market_data_stream(
        MarketDataFeed.IEX
    ) as stream:
        await stream.subscribe(trades=["AAPL"], quotes=["AAPL"])

        while (msg := await stream.recv()) is not None:
            print(msg)


if __name__ == "__main__":
    asyncio.run(main())

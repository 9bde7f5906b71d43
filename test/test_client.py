from alpaca_python_client.client import AlpacaClient
from alpaca_python_client.config import AlpacaConfig
from alpaca_python_client.endpoints.broker import TradingAPI
from alpaca_python_client.endpoints.mkt_data import MarketDataAPI
from alpaca_python_client.endpoints.streams import (
    MarketDataFeed,
    MarketDataStream,
    TradeUpdatesStream,
)
from alpaca_python_client.errors import ConfigError
from unittest.mock import MagicMock, patch
import pytest


@pytest.fixture
def config():
    return AlpacaConfig.paper("key-id", "secret-key")


def test_client_builds_sub_clients(config):
    """
    Ensure AlpacaClient wires one RestClient per API area, both carrying
    the credential headers.
    """
    client = AlpacaClient(config)

    assert isinstance(client.trading, TradingAPI)
    assert isinstance(client.market_data, MarketDataAPI)
    assert client.config is config

    trading = client.trading.rest.config
    market_data = client.market_data.rest.config
    assert trading.base_url == "https://paper-api.alpaca.markets"
    assert market_data.base_url == "https://data.alpaca.markets"
    for endpoint in (trading, market_data):
        assert endpoint.headers["APCA-API-KEY-ID"] == "key-id"
        assert endpoint.headers["APCA-API-SECRET-KEY"] == "secret-key"
        assert endpoint.timeout == 30.0


def test_client_rejects_bad_credentials():
    with pytest.raises(ConfigError):
        AlpacaClient(AlpacaConfig.paper("key\r\nX-Injected: 1", "secret"))


@patch("alpaca_python_client.base_client.requests.request")
def test_client_request_reaches_trading_url(mock_request, config):
    resp = MagicMock(status_code=200)
    resp.text = (
        '{"timestamp": "2024-01-02T10:00:00-05:00", "is_open": false,'
        ' "next_open": "2024-01-02T09:30:00-05:00",'
        ' "next_close": "2024-01-02T16:00:00-05:00"}'
    )
    mock_request.return_value = resp

    clock = AlpacaClient(config).trading.get_clock()

    assert clock.is_open is False
    mock_request.assert_called_once()
    assert mock_request.call_args.args == (
        "GET", "https://paper-api.alpaca.markets/v2/clock"
    )


@pytest.mark.asyncio
async def test_client_opens_streams(config, fake_ws):
    client = AlpacaClient(config)

    ws, connector = fake_ws()
    market = await client.connect_market_data_stream(
        MarketDataFeed.TEST, connector=connector
    )
    assert isinstance(market, MarketDataStream)
    assert ws.urls == ["wss://stream.data.alpaca.markets/v2/test"]
    await market.close()

    ws, connector = fake_ws()
    updates = await client.connect_trade_updates_stream(connector=connector)
    assert isinstance(updates, TradeUpdatesStream)
    assert ws.urls == ["wss://paper-api.alpaca.markets/stream"]
    await updates.close()

from collections import deque
from enum import Enum
from typing import Any, Deque, List, Optional, Sequence
from ..base_stream import DEFAULT_QUEUE_SIZE, Connector, WebSocketClient
from ..config import AlpacaConfig
from ..errors import DeserializeError
from ..models import (
    AccountStreamMessage,
    StreamMessage,
    parse_account_message,
    parse_stream_message,
)
import json


class MarketDataFeed(str, Enum):
    """Market data stream source."""

    # Securities Information Processor, all US exchanges (paid plan).
    SIP = "sip"
    # Investors Exchange only (free tier).
    IEX = "iex"
    TEST = "test"

    @property
    def url(self) -> str:
        return f"wss://stream.data.alpaca.markets/v2/{self.value}"


def _decode_frame(text: str) -> List[Any]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise DeserializeError(str(exc)) from exc
    # Alpaca batches several messages per frame as a JSON array.
    return data if isinstance(data, list) else [data]


class _AlpacaStream:
    """Typed-message layer shared by both stream flavors."""

    def __init__(self, ws: WebSocketClient) -> None:
        self.ws = ws
        self._pending: Deque[Any] = deque()

    async def send(self, message: Any) -> None:
        await self.ws.send(message)

    async def recv_raw(self) -> Optional[str]:
        """Next undecoded frame, `None` at end of stream."""
        return await self.ws.recv()

    async def _next_object(self) -> Optional[Any]:
        while not self._pending:
            text = await self.ws.recv()
            if text is None:
                return None
            self._pending.extend(_decode_frame(text))
        return self._pending.popleft()

    async def close(self) -> None:
        await self.ws.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class MarketDataStream(_AlpacaStream):
    """
    Real-time trades, quotes and minute bars.

    Usage
    -----
    >>> async with await MarketDataStream.connect(config) as stream:
    ...     await stream.subscribe(trades=["AAPL"], bars=["SPY"])
    ...     while (msg := await stream.recv()) is not None:
    ...         print(msg)

    The first messages are the server's `success` acknowledgements
    ("connected", then "authenticated") or an `error` if the credentials
    were rejected; checking them is up to the caller.
    """

    @classmethod
    async def connect(
        cls,
        config: AlpacaConfig,
        feed: MarketDataFeed = MarketDataFeed.IEX,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        connector: Optional[Connector] = None,
    ) -> "MarketDataStream":
        auth = {
            "action": "auth",
            "key": config.api_key_id,
            "secret": config.api_secret_key,
        }
        ws = await WebSocketClient.connect(
            MarketDataFeed(feed).url,
            auth,
            queue_size=queue_size,
            connector=connector,
        )
        return cls(ws)

    async def subscribe(
        self,
        trades: Optional[Sequence[str]] = None,
        quotes: Optional[Sequence[str]] = None,
        bars: Optional[Sequence[str]] = None,
    ) -> None:
        """Subscribe to trades, quotes and/or bars in one message."""
        await self._send_subscription("subscribe", trades, quotes, bars)

    async def unsubscribe(
        self,
        trades: Optional[Sequence[str]] = None,
        quotes: Optional[Sequence[str]] = None,
        bars: Optional[Sequence[str]] = None,
    ) -> None:
        await self._send_subscription("unsubscribe", trades, quotes, bars)

    async def subscribe_trades(self, symbols: Sequence[str]) -> None:
        await self.subscribe(trades=symbols)

    async def subscribe_quotes(self, symbols: Sequence[str]) -> None:
        await self.subscribe(quotes=symbols)

    async def subscribe_bars(self, symbols: Sequence[str]) -> None:
        await self.subscribe(bars=symbols)

    async def _send_subscription(
        self,
        action: str,
        trades: Optional[Sequence[str]],
        quotes: Optional[Sequence[str]],
        bars: Optional[Sequence[str]],
    ) -> None:
        # The server expects all three keys, even when empty.
        await self.send({
            "action": action,
            "trades": list(trades or []),
            "quotes": list(quotes or []),
            "bars": list(bars or []),
        })

    async def recv(self) -> Optional[StreamMessage]:
        """
        Next typed message, or `None` once the stream has ended.

        Raises
        ------
        DeserializeError
            If a frame is not JSON or has an unknown `T` type.
        StreamingError
            If the connection failed while reading.
        """
        data = await self._next_object()
        if data is None:
            return None
        return parse_stream_message(data)


class TradeUpdatesStream(_AlpacaStream):
    """
    Account stream carrying order lifecycle events (fills, cancels...).

    After connecting, call `listen()` to start receiving
    `trade_updates` events.
    """

    @classmethod
    async def connect(
        cls,
        config: AlpacaConfig,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        connector: Optional[Connector] = None,
    ) -> "TradeUpdatesStream":
        auth = {
            "action": "authenticate",
            "data": {
                "key_id": config.api_key_id,
                "secret_key": config.api_secret_key,
            },
        }
        ws = await WebSocketClient.connect(
            config.trade_updates_url,
            auth,
            queue_size=queue_size,
            connector=connector,
        )
        return cls(ws)

    async def listen(self) -> None:
        await self.send({
            "action": "listen",
            "data": {"streams": ["trade_updates"]},
        })

    async def recv(self) -> Optional[AccountStreamMessage]:
        """Next typed account message, or `None` at end of stream."""
        data = await self._next_object()
        if data is None:
            return None
        return parse_account_message(data)

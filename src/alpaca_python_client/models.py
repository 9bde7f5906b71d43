"""
Typed records for the Alpaca Trading and Market Data APIs.

Response models ignore unknown fields so additions on the server side do
not break parsing. Prices are `Decimal`; the API sends most account and
order amounts as strings and those are kept as strings.

Stream messages carry a one-letter `T` discriminator (market data) or a
`stream` name (account stream); `parse_stream_message` and
`parse_account_message` read the discriminator first and only then
validate the full shape.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from .errors import DeserializeError
import datetime as dt


class AlpacaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


# Account

class Account(AlpacaModel):
    id: str
    account_number: str
    status: str
    currency: str
    buying_power: str
    cash: str
    portfolio_value: str
    equity: str
    last_equity: str
    long_market_value: str
    short_market_value: str
    initial_margin: str
    maintenance_margin: str
    daytrade_count: int
    pattern_day_trader: bool
    trading_blocked: bool
    transfers_blocked: bool
    account_blocked: bool
    shorting_enabled: bool
    multiplier: str
    created_at: datetime
    sma: Optional[str] = None
    crypto_status: Optional[str] = None


# Orders

class Order(AlpacaModel):
    id: str
    client_order_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    filled_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    replaced_at: Optional[datetime] = None
    replaced_by: Optional[str] = None
    replaces: Optional[str] = None
    asset_id: Optional[str] = None
    symbol: str
    asset_class: Optional[str] = None
    notional: Optional[str] = None
    qty: Optional[str] = None
    filled_qty: Optional[str] = None
    filled_avg_price: Optional[str] = None
    order_class: Optional[str] = None
    order_type: Optional[str] = None
    type: Optional[str] = None
    side: str
    time_in_force: Optional[str] = None
    limit_price: Optional[str] = None
    stop_price: Optional[str] = None
    status: str
    extended_hours: bool = False
    legs: Optional[List["Order"]] = None
    trail_percent: Optional[str] = None
    trail_price: Optional[str] = None
    hwm: Optional[str] = None


class OrderRequest(AlpacaModel):
    """Body of `POST /v2/orders`. `None` fields are not sent."""

    symbol: str
    qty: int
    side: str
    order_type: str = Field(serialization_alias="type")
    time_in_force: str
    limit_price: Optional[Decimal] = None
    extended_hours: bool = False


class ReplaceOrderRequest(AlpacaModel):
    """Body of `PATCH /v2/orders/{id}`."""

    qty: Optional[int] = None
    limit_price: Optional[Decimal] = None
    time_in_force: Optional[str] = None


# Positions

class Position(AlpacaModel):
    asset_id: str
    symbol: str
    exchange: str
    asset_class: str
    qty: str
    avg_entry_price: str
    side: str
    market_value: Optional[str] = None
    cost_basis: str
    unrealized_pl: Optional[str] = None
    unrealized_plpc: Optional[str] = None
    unrealized_intraday_pl: Optional[str] = None
    unrealized_intraday_plpc: Optional[str] = None
    current_price: Optional[str] = None
    lastday_price: Optional[str] = None
    change_today: Optional[str] = None
    qty_available: Optional[str] = None


# Assets

class Asset(AlpacaModel):
    id: str
    asset_class: str = Field(alias="class")
    exchange: str
    symbol: str
    name: Optional[str] = None
    status: str
    tradable: bool
    marginable: bool
    shortable: bool
    easy_to_borrow: bool = False
    fractionable: bool = False
    maintenance_margin_requirement: Optional[Any] = None


# Calendar & clock

class CalendarDay(AlpacaModel):
    date: dt.date
    open: str
    close: str
    session_open: Optional[str] = None
    session_close: Optional[str] = None


class Clock(AlpacaModel):
    timestamp: datetime
    is_open: bool
    next_open: datetime
    next_close: datetime


# Market data

class Quote(AlpacaModel):
    ask_price: Decimal = Field(alias="ap")
    ask_size: int = Field(alias="as")
    ask_exchange: str = Field(alias="ax")
    bid_price: Decimal = Field(alias="bp")
    bid_size: int = Field(alias="bs")
    bid_exchange: str = Field(alias="bx")
    conditions: Optional[List[str]] = Field(default=None, alias="c")
    timestamp: datetime = Field(alias="t")
    tape: str = Field(alias="z")


class LatestQuote(AlpacaModel):
    symbol: Optional[str] = None
    quote: Quote


class Trade(AlpacaModel):
    timestamp: datetime = Field(alias="t")
    price: Decimal = Field(alias="p")
    size: int = Field(alias="s")
    exchange: str = Field(alias="x")
    id: int = Field(alias="i")
    conditions: Optional[List[str]] = Field(default=None, alias="c")
    tape: str = Field(alias="z")


class LatestTrade(AlpacaModel):
    symbol: Optional[str] = None
    trade: Trade


class TradesPage(AlpacaModel):
    trades: List[Trade] = Field(default_factory=list)
    symbol: Optional[str] = None
    next_page_token: Optional[str] = None

    @field_validator("trades", mode="before")
    @classmethod
    def null_trades_as_empty(cls, value: Any) -> Any:
        return _none_as_empty(value)


class Bar(AlpacaModel):
    timestamp: datetime = Field(alias="t")
    open: Decimal = Field(alias="o")
    high: Decimal = Field(alias="h")
    low: Decimal = Field(alias="l")
    close: Decimal = Field(alias="c")
    volume: int = Field(alias="v")


class BarsPage(AlpacaModel):
    """One page of `GET /v2/stocks/{symbol}/bars`."""

    bars: List[Bar] = Field(default_factory=list)
    symbol: Optional[str] = None
    next_page_token: Optional[str] = None

    @field_validator("bars", mode="before")
    @classmethod
    def null_bars_as_empty(cls, value: Any) -> Any:
        return _none_as_empty(value)


class MultiBarsPage(AlpacaModel):
    """One page of `GET /v2/stocks/bars` (several symbols)."""

    bars: Dict[str, List[Bar]] = Field(default_factory=dict)
    next_page_token: Optional[str] = None

    @field_validator("bars", mode="before")
    @classmethod
    def null_bars_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class Snapshot(AlpacaModel):
    latest_trade: Optional[Trade] = Field(default=None, alias="latestTrade")
    latest_quote: Optional[Quote] = Field(default=None, alias="latestQuote")
    minute_bar: Optional[Bar] = Field(default=None, alias="minuteBar")
    daily_bar: Optional[Bar] = Field(default=None, alias="dailyBar")
    prev_daily_bar: Optional[Bar] = Field(
        default=None, alias="prevDailyBar"
    )


# Market data stream

class StreamSuccess(AlpacaModel):
    kind: Literal["success"] = Field(alias="T")
    msg: str


class StreamErrorMessage(AlpacaModel):
    kind: Literal["error"] = Field(alias="T")
    code: int
    msg: str


class SubscriptionAck(AlpacaModel):
    kind: Literal["subscription"] = Field(alias="T")
    trades: Optional[List[str]] = None
    quotes: Optional[List[str]] = None
    bars: Optional[List[str]] = None


class StreamTrade(AlpacaModel):
    kind: Literal["t"] = Field(alias="T")
    symbol: str = Field(alias="S")
    price: Decimal = Field(alias="p")
    size: int = Field(alias="s")
    timestamp: datetime = Field(alias="t")
    exchange: str = Field(alias="x")
    conditions: Optional[List[str]] = Field(default=None, alias="c")
    tape: str = Field(alias="z")


class StreamQuote(AlpacaModel):
    kind: Literal["q"] = Field(alias="T")
    symbol: str = Field(alias="S")
    ask_price: Decimal = Field(alias="ap")
    ask_size: int = Field(alias="as")
    ask_exchange: str = Field(alias="ax")
    bid_price: Decimal = Field(alias="bp")
    bid_size: int = Field(alias="bs")
    bid_exchange: str = Field(alias="bx")
    conditions: Optional[List[str]] = Field(default=None, alias="c")
    timestamp: datetime = Field(alias="t")
    tape: str = Field(alias="z")


class StreamBar(AlpacaModel):
    kind: Literal["b"] = Field(alias="T")
    symbol: str = Field(alias="S")
    open: Decimal = Field(alias="o")
    high: Decimal = Field(alias="h")
    low: Decimal = Field(alias="l")
    close: Decimal = Field(alias="c")
    volume: int = Field(alias="v")
    timestamp: datetime = Field(alias="t")


StreamMessage = Union[
    StreamSuccess,
    StreamErrorMessage,
    SubscriptionAck,
    StreamTrade,
    StreamQuote,
    StreamBar,
]

_STREAM_TYPES = {
    "success": StreamSuccess,
    "error": StreamErrorMessage,
    "subscription": SubscriptionAck,
    "t": StreamTrade,
    "q": StreamQuote,
    "b": StreamBar,
}


# Account stream

class TradeUpdate(AlpacaModel):
    event: str
    order: Order
    timestamp: Optional[datetime] = None
    position_qty: Optional[str] = None
    price: Optional[str] = None
    qty: Optional[str] = None


class AuthorizationData(AlpacaModel):
    status: str
    action: Optional[str] = None


class AuthorizationMessage(AlpacaModel):
    stream: Literal["authorization"]
    data: AuthorizationData


class ListeningData(AlpacaModel):
    streams: List[str] = Field(default_factory=list)


class ListeningMessage(AlpacaModel):
    stream: Literal["listening"]
    data: ListeningData


class TradeUpdateMessage(AlpacaModel):
    stream: Literal["trade_updates"]
    data: TradeUpdate


AccountStreamMessage = Union[
    AuthorizationMessage,
    ListeningMessage,
    TradeUpdateMessage,
]

_ACCOUNT_STREAM_TYPES = {
    "authorization": AuthorizationMessage,
    "listening": ListeningMessage,
    "trade_updates": TradeUpdateMessage,
}


def _dispatch(data: Any, key: str, registry: Dict[str, type]) -> Any:
    if not isinstance(data, dict):
        raise DeserializeError(
            f"expected a JSON object, got {type(data).__name__}"
        )

    tag = data.get(key)
    if not isinstance(tag, str):
        raise DeserializeError(f"missing or non-string {key} field: {tag!r}")

    model = registry.get(tag)
    if model is None:
        raise DeserializeError(f"unknown message type {key}={tag!r}")

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise DeserializeError(str(exc)) from exc


def parse_stream_message(data: Any) -> StreamMessage:
    """Decode one market data stream object by its `T` field."""
    return _dispatch(data, "T", _STREAM_TYPES)


def parse_account_message(data: Any) -> AccountStreamMessage:
    """Decode one account stream object by its `stream` field."""
    return _dispatch(data, "stream", _ACCOUNT_STREAM_TYPES)


Order.model_rebuild()

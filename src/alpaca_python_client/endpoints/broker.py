from ..base_client import RestClient
from ..models import (
    Account,
    Asset,
    CalendarDay,
    Clock,
    Order,
    OrderRequest,
    Position,
    ReplaceOrderRequest,
)
from typing import List, Optional, Tuple, Union
from datetime import date
from decimal import Decimal
import requests
import logging


logger = logging.getLogger("alpaca.rest")


def _quote(segment: str) -> str:
    return requests.utils.quote(segment.strip(), safe="")


class TradingAPI:
    """
    Wrapper around the Alpaca Trading API (account, orders, positions,
    assets, calendar and clock).

    Each method maps one HTTP verb/path to one typed record and lets the
    shared `RestClient` handle transport, status classification and
    parsing. Errors are the ones raised by `RestClient`.

    Attributes
    ----------
    rest : RestClient
        Client bound to the trading base URL.
    """

    def __init__(self, *, rest: RestClient) -> None:
        self.rest = rest

    # Account

    def get_account(self) -> Account:
        return self.rest.get("/v2/account", Account)

    # Orders

    def submit_order(
        self,
        *,
        symbol: str,
        qty: int,
        side: str,
        order_type: str = "market",
        time_in_force: str = "day",
        limit_price: Optional[Union[Decimal, str]] = None,
        extended_hours: bool = False,
    ) -> Order:
        """
        Submit a new order.

        Parameters
        ----------
        symbol : str
            Asset symbol (e.g., "AAPL").
        qty : int
            Number of shares.
        side : str
            "buy" or "sell".
        order_type : str, default="market"
            "market", "limit", "stop", ...
        time_in_force : str, default="day"
            "day", "gtc", "ioc", ...
        limit_price : Decimal, optional
            Required by the server for limit orders; not checked here.
        extended_hours : bool, default=False
            Allow execution outside regular hours.

        Returns
        -------
        Order
            The order as accepted by the server.
        """
        body = OrderRequest(
            symbol=symbol,
            qty=qty,
            side=side,
            order_type=order_type,
            time_in_force=time_in_force,
            limit_price=limit_price,
            extended_hours=extended_hours,
        )
        logger.debug(f"submit_order symbol={symbol} qty={qty} side={side}")
        return self.rest.post("/v2/orders", body, Order)

    def get_order(self, order_id: str) -> Order:
        return self.rest.get(f"/v2/orders/{_quote(order_id)}", Order)

    def list_orders(self, *, status: Optional[str] = None) -> List[Order]:
        """List orders, optionally filtered by "open", "closed" or "all"."""
        query: List[Tuple[str, str]] = []
        if status:
            query.append(("status", status))
        return self.rest.get_with_query("/v2/orders", query, List[Order])

    def cancel_order(self, order_id: str) -> None:
        self.rest.delete(f"/v2/orders/{_quote(order_id)}")

    def cancel_all_orders(self) -> None:
        self.rest.delete("/v2/orders")

    def replace_order(
        self,
        order_id: str,
        *,
        qty: Optional[int] = None,
        limit_price: Optional[Union[Decimal, str]] = None,
        time_in_force: Optional[str] = None,
    ) -> Order:
        """Replace an open order; only the given fields are sent."""
        body = ReplaceOrderRequest(
            qty=qty,
            limit_price=limit_price,
            time_in_force=time_in_force,
        )
        return self.rest.patch(
            f"/v2/orders/{_quote(order_id)}", body, Order
        )

    # Positions

    def list_positions(self) -> List[Position]:
        return self.rest.get("/v2/positions", List[Position])

    def close_position(self, symbol: str) -> Order:
        """Liquidate a position; returns the closing order."""
        return self.rest.delete_parsed(
            f"/v2/positions/{_quote(symbol)}", Order
        )

    # Assets

    def get_assets(
        self,
        *,
        status: Optional[str] = None,
        asset_class: Optional[str] = None,
    ) -> List[Asset]:
        params = {"status": status, "asset_class": asset_class}
        query = [(k, v) for k, v in params.items() if v is not None]
        return self.rest.get_with_query("/v2/assets", query, List[Asset])

    def get_asset(self, symbol: str) -> Asset:
        return self.rest.get(f"/v2/assets/{_quote(symbol)}", Asset)

    # Calendar & clock

    def get_calendar(
        self,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[CalendarDay]:
        params = {
            "start": start.isoformat() if start else None,
            "end": end.isoformat() if end else None,
        }
        query = [(k, v) for k, v in params.items() if v is not None]
        return self.rest.get_with_query(
            "/v2/calendar", query, List[CalendarDay]
        )

    def get_clock(self) -> Clock:
        return self.rest.get("/v2/clock", Clock)

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple, Union
from ..base_client import RestClient
from ..models import (
    Bar,
    BarsPage,
    LatestQuote,
    LatestTrade,
    Snapshot,
    Trade,
    TradesPage,
)
from ..pagination import paginate
from rich.progress import Progress
from datetime import date
import numpy as np
import requests


DateLike = Union[str, date]


def _quote(segment: str) -> str:
    return requests.utils.quote(segment.strip(), safe="")


class MarketDataAPI:
    """
    Wrapper around the Alpaca Market Data API (stocks).

    Historical endpoints are cursor-paginated: every page carries a
    `next_page_token` and the wrapper loops through `paginate` until the
    token runs out, returning the full, ordered result set.

    Notes
    -----
    - Dates are normalized to YYYY-MM-DD before being sent.
    - A page whose items array is `null` counts as an empty page.
    - Errors are the ones raised by `RestClient`; a failing page aborts
      the whole call.
    """

    default_limit = 10_000

    def __init__(self, *, rest: RestClient) -> None:
        self.rest = rest

    def _normalize_date(self, ds: DateLike) -> str:
        """
        Normalize an input date to YYYY-MM-DD (day precision).

        Raises
        ------
        ValueError
            If the input cannot be parsed as a date.
        """
        try:
            return str(np.datetime64(str(ds), "D"))
        except ValueError:
            raise ValueError(f"Invalid date format: {ds}")

    def get_latest_quote(self, symbol: str) -> LatestQuote:
        return self.rest.get(
            f"/v2/stocks/{_quote(symbol)}/quotes/latest", LatestQuote
        )

    def get_latest_trade(self, symbol: str) -> LatestTrade:
        return self.rest.get(
            f"/v2/stocks/{_quote(symbol)}/trades/latest", LatestTrade
        )

    def get_snapshot(self, symbol: str) -> Snapshot:
        return self.rest.get(
            f"/v2/stocks/{_quote(symbol)}/snapshot", Snapshot
        )

    def get_bars(
        self,
        *,
        symbol: str,
        start: DateLike,
        end: DateLike,
        timeframe: str = "1Day",
        feed: Optional[str] = "iex",
        adjustment: Optional[str] = "split",
        limit: Optional[int] = None,
    ) -> List[Bar]:
        """
        Retrieve every bar of `symbol` between two dates.

        Parameters
        ----------
        symbol : str
            Stock symbol.
        start, end : str or date
            Inclusive date range (various string formats accepted).
        timeframe : str, default="1Day"
            "1Min", "5Min", "15Min", "1Hour", "1Day", ...
        feed : str, default="iex"
            "iex" (free) or "sip".
        adjustment : str, default="split"
            Corporate action adjustment ("raw", "split", "all", ...).
        limit : int, optional
            Page size; defaults to 10,000.

        Returns
        -------
        list of Bar
            All bars, in the order returned by the server.
        """
        query = self._history_query(
            start=start,
            end=end,
            limit=limit,
            timeframe=timeframe,
            adjustment=adjustment,
            feed=feed,
        )
        path = f"/v2/stocks/{_quote(symbol)}/bars"

        def fetch_page(token: Optional[str]) -> Tuple[List[Bar], Optional[str]]:
            page: BarsPage = self.rest.get_with_query(
                path, self._with_token(query, token), BarsPage
            )
            return page.bars, page.next_page_token

        return paginate(fetch_page)

    def get_trades(
        self,
        *,
        symbol: str,
        start: DateLike,
        end: DateLike,
        feed: Optional[str] = "iex",
        limit: Optional[int] = None,
    ) -> List[Trade]:
        """Retrieve every trade of `symbol` between two dates."""
        query = self._history_query(
            start=start, end=end, limit=limit, feed=feed
        )
        path = f"/v2/stocks/{_quote(symbol)}/trades"

        def fetch_page(
            token: Optional[str]
        ) -> Tuple[List[Trade], Optional[str]]:
            page: TradesPage = self.rest.get_with_query(
                path, self._with_token(query, token), TradesPage
            )
            return page.trades, page.next_page_token

        return paginate(fetch_page)

    def get_bars_for_symbols(
        self,
        *,
        symbols: List[str],
        start: DateLike,
        end: DateLike,
        timeframe: str = "1Day",
        feed: Optional[str] = "iex",
        adjustment: Optional[str] = "split",
        max_workers: int = 8,
    ) -> Dict[str, List[Bar]]:
        """
        Fetch bars for several symbols concurrently.

        Each symbol is paginated independently on a worker thread; a
        progress bar tracks completed symbols.

        Returns
        -------
        dict
            Mapping symbol -> list of bars.

        Raises
        ------
        ValueError
            If no symbols are given.
        AlpacaClientError
            The first failure of any symbol; other results are dropped.
        """
        if not symbols:
            raise ValueError("At least one symbol must be provided.")

        results: Dict[str, List[Bar]] = {}

        with Progress() as progress:
            task = progress.add_task(
                "[cyan]Fetching bars...", total=len(symbols)
            )

            with ThreadPoolExecutor(max_workers=max_workers) as ex:
                futures = {
                    ex.submit(
                        self.get_bars,
                        symbol=symbol,
                        start=start,
                        end=end,
                        timeframe=timeframe,
                        feed=feed,
                        adjustment=adjustment,
                    ): symbol
                    for symbol in symbols
                }

                for fut in as_completed(futures):
                    symbol = futures[fut]
                    results[symbol] = fut.result()
                    progress.advance(task, 1)

        return {symbol: results[symbol] for symbol in symbols}

    def _history_query(
        self,
        *,
        start: DateLike,
        end: DateLike,
        limit: Optional[int],
        **extra: Optional[str],
    ) -> List[Tuple[str, str]]:
        params: Dict[str, Optional[str]] = {
            "start": self._normalize_date(start),
            "end": self._normalize_date(end),
            **extra,
            "limit": str(limit or self.default_limit),
        }
        return [(k, v) for k, v in params.items() if v is not None]

    @staticmethod
    def _with_token(
        query: List[Tuple[str, str]],
        token: Optional[str]
    ) -> List[Tuple[str, str]]:
        if token:
            return query + [("page_token", token)]
        return query

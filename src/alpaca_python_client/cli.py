from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from .client import AlpacaClient
from .config import AlpacaConfig
from .errors import AlpacaClientError
from .toolbox import bars_to_dataframe
import argparse
import logging
import json
import os
import sys


console = Console()
err_console = Console(stderr=True)


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def _log_level(name: str) -> int:
    # getLevelName maps known names to ints, anything else to a string.
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def cmd_account(client: AlpacaClient, args: argparse.Namespace) -> Any:
    return client.trading.get_account()


def cmd_positions(client: AlpacaClient, args: argparse.Namespace) -> Any:
    return client.trading.list_positions()


def cmd_orders(client: AlpacaClient, args: argparse.Namespace) -> Any:
    return client.trading.list_orders(status=args.status)


def cmd_quote(client: AlpacaClient, args: argparse.Namespace) -> Any:
    return client.market_data.get_latest_quote(args.symbol)


def cmd_bars(client: AlpacaClient, args: argparse.Namespace) -> Any:
    bars = client.market_data.get_bars(
        symbol=args.symbol,
        start=args.start,
        end=args.end,
        timeframe=args.timeframe,
    )
    if args.csv:
        bars_to_dataframe(bars).to_csv(args.csv, index=False)
        err_console.print(f"Wrote {len(bars)} bars to {args.csv}")
    return bars


def cmd_clock(client: AlpacaClient, args: argparse.Namespace) -> Any:
    return client.trading.get_clock()


COMMANDS: Dict[str, Callable[[AlpacaClient, argparse.Namespace], Any]] = {
    "account": cmd_account,
    "positions": cmd_positions,
    "orders": cmd_orders,
    "quote": cmd_quote,
    "bars": cmd_bars,
    "clock": cmd_clock,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="alpaca-client",
        description="CLI for the Alpaca Trading API",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("ALPACA_LOG_LEVEL", "WARNING"),
        help="Logging level (default: $ALPACA_LOG_LEVEL or WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("account", help="Show account details")
    sub.add_parser("positions", help="List open positions")

    orders = sub.add_parser("orders", help="List orders")
    orders.add_argument(
        "-s", "--status", help="Filter by status (open, closed, all)"
    )

    quote = sub.add_parser("quote", help="Get latest quote for a symbol")
    quote.add_argument("symbol", help="Stock symbol")

    bars = sub.add_parser("bars", help="Get historical bars for a symbol")
    bars.add_argument("symbol", help="Stock symbol")
    bars.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    bars.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    bars.add_argument(
        "--timeframe",
        default="1Day",
        help="Timeframe (1Min, 5Min, 15Min, 1Hour, 1Day)",
    )
    bars.add_argument("--csv", help="Also write the bars to this CSV file")

    sub.add_parser("clock", help="Get market clock")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        logging.basicConfig(
            level=_log_level(args.log_level),
            format="%(asctime)s [%(levelname)s] %(message)s",
        )
        client = AlpacaClient(AlpacaConfig.from_env())
        result = COMMANDS[args.command](client, args)
    except (AlpacaClientError, ValueError) as exc:
        err_console.print(f"[red]error:[/red] {escape(str(exc))}")
        return 1

    console.print_json(json.dumps(_jsonable(result)))
    return 0


if __name__ == "__main__":
    sys.exit(main())

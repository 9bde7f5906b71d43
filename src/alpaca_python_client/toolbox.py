from typing import Iterable
from .models import Bar
import pandas as pd


BAR_COLUMNS = ["date", "time", "open", "high", "low", "close", "volume"]

_PRICE_COLUMNS = ["open", "high", "low", "close"]


def bars_to_dataframe(bars: Iterable[Bar]) -> pd.DataFrame:
    """
    Tabulate bars returned by `MarketDataAPI.get_bars`.

    The UTC bar timestamp is split into a `date` (YYYY-MM-DD) and a
    `time` (HH:MM:SS) string column; prices become float64 and the
    volume int64.

    Parameters
    ----------
    bars : iterable of Bar
        Bars in server order.

    Returns
    -------
    pandas.DataFrame
        Columns ['date', 'time', 'open', 'high', 'low', 'close',
        'volume'], one row per bar. No bars gives an empty frame with
        the same columns.
    """
    rows = [bar.model_dump() for bar in bars]
    if not rows:
        return pd.DataFrame(columns=BAR_COLUMNS)

    frame = pd.DataFrame.from_records(rows)

    stamps = pd.to_datetime(frame.pop("timestamp"), utc=True)
    frame["date"] = stamps.dt.strftime("%Y-%m-%d")
    frame["time"] = stamps.dt.strftime("%H:%M:%S")

    frame[_PRICE_COLUMNS] = frame[_PRICE_COLUMNS].astype("float64")
    frame["volume"] = frame["volume"].astype("int64")

    return frame[BAR_COLUMNS]

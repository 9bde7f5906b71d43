from typing import Dict, Optional
from dataclasses import dataclass, field
from .errors import ConfigError
import os


PAPER_TRADING_URL = "https://paper-api.alpaca.markets"
LIVE_TRADING_URL = "https://api.alpaca.markets"
MARKET_DATA_URL = "https://data.alpaca.markets"

KEY_ID_HEADER = "APCA-API-KEY-ID"
SECRET_KEY_HEADER = "APCA-API-SECRET-KEY"


@dataclass(frozen=True)
class AlpacaConfig:
    """
    Credentials and endpoints for one Alpaca account.

    Attributes
    ----------
    api_key_id : str
        Key identifier, sent as the `APCA-API-KEY-ID` header.
    api_secret_key : str
        Secret key, sent as the `APCA-API-SECRET-KEY` header.
    trading_base_url : str
        Trading API root (paper by default).
    market_data_base_url : str
        Market data API root.
    timeout : float
        Per-request timeout in seconds.
    """

    api_key_id: str
    api_secret_key: str = field(repr=False)
    trading_base_url: str = PAPER_TRADING_URL
    market_data_base_url: str = MARKET_DATA_URL
    timeout: float = 30.0

    @classmethod
    def paper(cls, api_key_id: str, api_secret_key: str) -> "AlpacaConfig":
        return cls(api_key_id=api_key_id, api_secret_key=api_secret_key)

    @classmethod
    def live(cls, api_key_id: str, api_secret_key: str) -> "AlpacaConfig":
        return cls(
            api_key_id=api_key_id,
            api_secret_key=api_secret_key,
            trading_base_url=LIVE_TRADING_URL,
        )

    @classmethod
    def from_env(
        cls,
        environ: Optional[Dict[str, str]] = None
    ) -> "AlpacaConfig":
        """
        Build the configuration from environment variables.

        Required: `APCA_API_KEY_ID`, `APCA_API_SECRET_KEY`.
        Optional: `APCA_TRADING_BASE_URL`, `APCA_MARKET_DATA_BASE_URL`.

        Raises
        ------
        ConfigError
            If a required variable is missing or empty.
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> str:
            value = env.get(name)
            if not value:
                raise ConfigError(f"Missing environment variable: {name}")
            return value

        return cls(
            api_key_id=required("APCA_API_KEY_ID"),
            api_secret_key=required("APCA_API_SECRET_KEY"),
            trading_base_url=env.get(
                "APCA_TRADING_BASE_URL", PAPER_TRADING_URL
            ),
            market_data_base_url=env.get(
                "APCA_MARKET_DATA_BASE_URL", MARKET_DATA_URL
            ),
        )

    def auth_headers(self) -> Dict[str, str]:
        """Static credential headers attached to every REST request."""
        return {
            KEY_ID_HEADER: self.api_key_id,
            SECRET_KEY_HEADER: self.api_secret_key,
        }

    @property
    def trade_updates_url(self) -> str:
        """Account stream URL derived from the trading base URL."""
        base = self.trading_base_url.rstrip("/")
        return base.replace("https://", "wss://", 1) + "/stream"

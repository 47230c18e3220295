import os
import logging
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env file from project root if it exists
project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)
    logger.debug(f"Loaded environment variables from {env_file}")


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("true", "1", "yes")


@dataclass
class Config:
    # Price feed credentials
    price_feed: str = "alphavantage"  # "alphavantage" or "binance"
    alpha_vantage_api_key: str = ""
    binance_api_key: str = ""
    binance_api_secret: str = ""
    binance_testnet: bool = False

    # Ledger storage
    trades_file: str = "trades.json"

    # Telegram notifications
    telegram_bot_token: str = ""  # Telegram bot token (get from @BotFather)
    telegram_chat_id: str = ""  # Telegram chat ID to send messages to

    def __post_init__(self):
        """Override defaults with environment variables if present."""
        # Price feed
        self.price_feed = os.getenv("PRICE_FEED", self.price_feed).lower()
        self.alpha_vantage_api_key = os.getenv("ALPHA_VANTAGE_API_KEY", self.alpha_vantage_api_key)
        self.binance_api_key = os.getenv("BINANCE_API_KEY", self.binance_api_key)
        self.binance_api_secret = os.getenv("BINANCE_API_SECRET", self.binance_api_secret)
        self.binance_testnet = _env_flag("BINANCE_TESTNET", self.binance_testnet)

        # Storage
        self.trades_file = os.getenv("TRADES_FILE", self.trades_file)

        # Telegram notifications
        self.telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN", self.telegram_bot_token)
        self.telegram_chat_id = os.getenv("TELEGRAM_CHAT_ID", self.telegram_chat_id)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

"""
Configuration for LP Dashboard
"""
import os
from dataclasses import dataclass
from dotenv import load_dotenv


load_dotenv()

# Project root directory (for resolving the default data file)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@dataclass
class DashboardConfig:
    # Identity (opaque owner id; all records are scoped to it)
    OWNER_ID: str = os.getenv('LPDASH_OWNER_ID', "local-user")

    # Price source (CoinGecko)
    COINGECKO_API_KEY: str = os.getenv('COINGECKO_API_KEY', "")
    COINGECKO_BASE_URL: str = os.getenv('COINGECKO_BASE_URL', "https://api.coingecko.com/api/v3")
    PRICE_CACHE_TTL: int = 60  # live quotes are reused for 1 minute
    REQUEST_TIMEOUT_SEC: int = 10

    # Retry policy for price lookups (only rate-limit / outage failures are retried)
    MAX_RETRIES: int = 3
    RETRY_BACKOFF_SEC: float = 2.0  # doubled after every attempt

    # Currency
    DEFAULT_USD_TO_BRL: float = 5.5  # used until the owner sets a rate

    # Platforms offered before the owner adds any
    DEFAULT_PLATFORMS: list = None

    def __post_init__(self):
        if self.DEFAULT_PLATFORMS is None:
            self.DEFAULT_PLATFORMS = ['UniswapV3', 'Sushi', 'Curve']

    # Storage
    DATA_FILE: str = os.getenv('LPDASH_DATA_FILE', os.path.join(PROJECT_ROOT, 'data', 'lpdash.json'))

    # Yield advisor (Gemini REST API)
    GOOGLE_API_KEY: str = os.getenv('GOOGLE_API_KEY', "")
    ADVISOR_MODEL: str = os.getenv('LPDASH_ADVISOR_MODEL', "gemini-1.5-flash")
    ADVISOR_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    ADVISOR_HISTORY_SIZE: int = 5  # most recent entries sent to the model
    ADVISOR_TIMEOUT_SEC: int = 30


# Global config instance
config = DashboardConfig()

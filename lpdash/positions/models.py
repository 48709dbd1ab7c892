"""
Pool and DailyEntry records.

A Pool is a tracked liquidity position; a DailyEntry is one dated snapshot of
its value and of the fees accumulated so far (cumulative, never reset).
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional


def today_string() -> str:
    """Local calendar day as YYYY-MM-DD."""
    return date.today().isoformat()


def now_iso() -> str:
    return datetime.now().isoformat()


@dataclass
class Pool:
    """A liquidity position definition."""
    id: str
    user_id: str
    platform: str
    name: str
    token_a: str           # symbol, e.g. "ETH"
    token_b: str
    token_a_id: str        # CoinGecko id, e.g. "ethereum"
    token_b_id: str
    fee_tier: str          # e.g. "0.3%"
    range_min: float
    range_max: float
    created_at: str = field(default_factory=now_iso)

    @property
    def pair(self) -> str:
        return f"{self.token_a}/{self.token_b}"


@dataclass
class DailyEntry:
    """Snapshot of a pool on a given day."""
    id: str
    pool_id: str
    user_id: str
    date: str                          # YYYY-MM-DD
    position_value_usd: float
    fees_accumulated_token_a: float    # total as of this date
    fees_accumulated_token_b: float
    token_a_price_usd: float
    token_b_price_usd: float
    usd_to_brl: float
    fees_withdrawn_usd: float = 0.0
    note: str = ""
    updated_at: Optional[str] = None

    @property
    def withdrawn(self) -> float:
        """Withdrawn amount with a missing value treated as 0."""
        return self.fees_withdrawn_usd or 0.0

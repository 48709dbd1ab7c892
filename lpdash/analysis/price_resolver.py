"""
Price Resolver

Decides which prices describe a pool "now":
  1. Live CoinGecko quotes, when both tokens have one and token B's is non-zero
  2. Prices stored on the latest daily entry (historical fallback)
  3. Undetermined: no ratio, no in-range verdict

The same live-or-stored policy values the uncollected fees on a pool card.
"""
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from lpdash.analysis.numbers import is_number
from lpdash.coingecko_client import with_retry


@dataclass
class PairQuote:
    """Price ratio token A / token B and where it came from."""
    ratio: Optional[float] = None
    is_live: bool = False

    @property
    def determined(self) -> bool:
        return self.ratio is not None


@dataclass
class RangeStatus:
    ratio: Optional[float]
    is_live: bool
    in_range: Optional[bool]   # None = undetermined


def resolve_current_pair(token_a_id: str, token_b_id: str,
                         live_prices: Dict[str, float],
                         last_known: Optional[Tuple[float, float]] = None) -> PairQuote:
    """Current A/B ratio, preferring live quotes over the last stored ones."""
    live_prices = live_prices or {}
    live_a = live_prices.get(token_a_id)
    live_b = live_prices.get(token_b_id)
    if is_number(live_a) and is_number(live_b) and live_b != 0:
        return PairQuote(ratio=live_a / live_b, is_live=True)

    if last_known is not None:
        price_a, price_b = last_known
        if is_number(price_a) and is_number(price_b) and price_b != 0:
            return PairQuote(ratio=price_a / price_b, is_live=False)

    return PairQuote()


def is_in_range(ratio: Optional[float], range_min: Optional[float],
                range_max: Optional[float]) -> Optional[bool]:
    """True/False when all three are numbers, None (undetermined) otherwise."""
    if not (is_number(ratio) and is_number(range_min) and is_number(range_max)):
        return None
    return range_min <= ratio <= range_max


def range_status(pool, last_entry, live_prices: Dict[str, float]) -> RangeStatus:
    """In-range verdict for a pool given its latest entry (may be None)."""
    last_known = None
    if last_entry is not None:
        last_known = (last_entry.token_a_price_usd, last_entry.token_b_price_usd)
    quote = resolve_current_pair(pool.token_a_id, pool.token_b_id, live_prices, last_known)
    return RangeStatus(
        ratio=quote.ratio,
        is_live=quote.is_live,
        in_range=is_in_range(quote.ratio, pool.range_min, pool.range_max),
    )


def fees_to_collect_usd(pool, last_entry, live_prices: Dict[str, float]) -> float:
    """USD value of the latest cumulative fees, valued at live prices when known."""
    if last_entry is None:
        return 0.0
    live_prices = live_prices or {}

    price_a = live_prices.get(pool.token_a_id)
    if price_a is None:
        price_a = last_entry.token_a_price_usd
    price_b = live_prices.get(pool.token_b_id)
    if price_b is None:
        price_b = last_entry.token_b_price_usd

    value = (last_entry.fees_accumulated_token_a * (price_a or 0)
             + last_entry.fees_accumulated_token_b * (price_b or 0))
    return value if is_number(value) else 0.0


class LatestRequestGate:
    """Only the most recently issued request may deliver its response.

    Each lookup takes a ticket with `begin()`; when its response arrives,
    `is_current(ticket)` tells whether a newer lookup superseded it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest = 0

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, ticket: int) -> bool:
        with self._lock:
            return ticket == self._latest


class PriceResolver:
    """Fetches prices through the CoinGecko client without ever raising.

    A failed live lookup returns an empty dict, which sends every consumer
    down its stored-price or undetermined path.
    """

    def __init__(self, api_client):
        self.api_client = api_client
        self._entry_gate = LatestRequestGate()

    def get_live_prices(self, pools: Iterable) -> Dict[str, float]:
        """Live USD prices for both tokens of every given pool."""
        token_ids = []
        for pool in pools:
            token_ids.extend([pool.token_a_id, pool.token_b_id])
        if not token_ids:
            return {}

        result = with_retry(lambda: self.api_client.fetch_realtime_prices(token_ids))
        if not result.success:
            print(f"⚠ Failed to fetch real-time prices: {result.error}")
            return {}
        return result.prices

    def lookup_entry_prices(self, pool, date: str):
        """Historical prices for a new entry on `date`.

        Returns (price_a_result, price_b_result), or None when a later call
        for the same resolver superseded this one while it was in flight.
        """
        ticket = self._entry_gate.begin()
        result_a, result_b = self.api_client.fetch_pair_prices(pool.token_a_id, pool.token_b_id, date)
        if not self._entry_gate.is_current(ticket):
            print(f"ℹ Discarding stale price lookup for {pool.name} on {date}")
            return None
        return result_a, result_b

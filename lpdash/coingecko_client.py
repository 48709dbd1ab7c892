"""
CoinGecko price client with caching and typed failures

Two lookups are used by the dashboard:
  - Historical:  GET /coins/{id}/history?date=dd-mm-yyyy&localization=false
                 (price of one token on a calendar day, stamped on entries)
  - Real-time:   GET /simple/price?ids=a,b,c&vs_currencies=usd
                 (live quotes for fee valuation and range status, cached 60s)

Every call returns a result object instead of raising, so a failed lookup
leaves prices absent rather than breaking the analytics that consume them.
Rate-limit and outage failures can be retried with `with_retry`.
"""
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Tuple

import requests

from lpdash.config import config


# Failure kinds
NOT_FOUND = 'not_found'
RATE_LIMITED = 'rate_limited'
INVALID_REQUEST = 'invalid_request'
INVALID_KEY = 'invalid_key'
SERVICE_UNAVAILABLE = 'service_unavailable'

RETRYABLE_FAILURES = (RATE_LIMITED, SERVICE_UNAVAILABLE)


@dataclass
class PriceResult:
    """Outcome of a single historical price lookup."""
    success: bool
    price: Optional[float] = None
    error: str = ""
    failure: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return not self.success and self.failure in RETRYABLE_FAILURES


@dataclass
class RealtimePricesResult:
    """Outcome of a batch live-price lookup (token id -> USD)."""
    success: bool
    prices: Dict[str, float] = field(default_factory=dict)
    error: str = ""
    failure: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return not self.success and self.failure in RETRYABLE_FAILURES


def with_retry(fetch: Callable, max_retries: int = None, backoff: float = None,
               sleep: Callable[[float], None] = time.sleep):
    """Call `fetch()` until it succeeds or fails with a non-retryable error.

    Backoff doubles after every retryable failure. Returns the last result.
    """
    if max_retries is None:
        max_retries = config.MAX_RETRIES
    if backoff is None:
        backoff = config.RETRY_BACKOFF_SEC

    result = fetch()
    attempt = 1
    while result.retryable and attempt < max_retries:
        print(f"⚠ {result.error} Retrying in {backoff:.1f}s (attempt {attempt + 1}/{max_retries})")
        sleep(backoff)
        backoff *= 2
        result = fetch()
        attempt += 1
    return result


def _status_failure(status: int) -> Tuple[str, str]:
    """Map an HTTP error status to (failure kind, message)."""
    if status == 401:
        return INVALID_KEY, "Invalid API key. Check COINGECKO_API_KEY in your .env file."
    if status == 404:
        return NOT_FOUND, "Token id not found on CoinGecko."
    if status == 400:
        return INVALID_REQUEST, "Invalid request. Check that the date is valid and not in the future."
    if status == 429:
        return RATE_LIMITED, "CoinGecko rate limit reached. Try again later."
    if status >= 500:
        return SERVICE_UNAVAILABLE, f"The price service (CoinGecko) seems to be having problems (Error {status})."
    return INVALID_REQUEST, f"Price lookup failed: Error {status}"


class CoinGeckoClient:
    """Client for the CoinGecko v3 API with a short-lived live-price cache."""

    def __init__(self, api_key: str = None, base_url: str = None):
        self.api_key = config.COINGECKO_API_KEY if api_key is None else api_key
        self.base_url = base_url or config.COINGECKO_BASE_URL
        self._timeout = config.REQUEST_TIMEOUT_SEC
        # Live price cache: {token_id: (usd_price, timestamp)}
        self._realtime_cache: Dict[str, Tuple[float, float]] = {}
        self._realtime_cache_ttl: float = config.PRICE_CACHE_TTL

    def _params(self, **params) -> Dict:
        if self.api_key:
            # Demo plan keys go in x_cg_demo_api_key
            params['x_cg_demo_api_key'] = self.api_key
        return params

    # ------------------------------------------------------------------
    # Historical prices
    # ------------------------------------------------------------------

    def fetch_token_price(self, token_id: str, date: str) -> PriceResult:
        """USD price of `token_id` on `date` (YYYY-MM-DD)."""
        if not token_id or not date:
            return PriceResult(False, error="Token id and date are required.",
                               failure=INVALID_REQUEST)

        try:
            year, month, day = date.split('-')
        except ValueError:
            return PriceResult(False, error=f"Invalid date \"{date}\".", failure=INVALID_REQUEST)
        # CoinGecko wants dd-mm-yyyy
        formatted_date = f"{day}-{month}-{year}"

        try:
            response = requests.get(
                f"{self.base_url}/coins/{token_id}/history",
                params=self._params(date=formatted_date, localization='false'),
                headers={'Accept': 'application/json'},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            print(f"✗ Error fetching price for {token_id} on {date}: {e}")
            return PriceResult(False, error="Network error or the price service is unavailable.",
                               failure=SERVICE_UNAVAILABLE)

        if response.status_code != 200:
            failure, message = _status_failure(response.status_code)
            if failure == NOT_FOUND:
                message = f"Token id \"{token_id}\" was not found. Check the id on the token's CoinGecko page."
            elif failure == INVALID_REQUEST and response.status_code == 400:
                message = f"Invalid request. Check that the date \"{date}\" is valid and not in the future."
            print(f"✗ CoinGecko API error {response.status_code}: {token_id} @ {formatted_date}")
            return PriceResult(False, error=message, failure=failure)

        try:
            data = response.json()
        except ValueError:
            return PriceResult(False, error="Could not decode the CoinGecko response.",
                               failure=SERVICE_UNAVAILABLE)

        price = ((data.get('market_data') or {}).get('current_price') or {}).get('usd')
        if not price:
            return PriceResult(
                False,
                error=f"No price found for \"{token_id}\" on {formatted_date}. The API may not have data for this day.",
                failure=NOT_FOUND,
            )
        return PriceResult(True, price=float(price))

    def fetch_pair_prices(self, token_a_id: str, token_b_id: str,
                          date: str) -> Tuple[PriceResult, PriceResult]:
        """Historical prices for both tokens of a pool, fetched concurrently."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            future_a = pool.submit(with_retry, lambda: self.fetch_token_price(token_a_id, date))
            future_b = pool.submit(with_retry, lambda: self.fetch_token_price(token_b_id, date))
            return future_a.result(), future_b.result()

    # ------------------------------------------------------------------
    # Real-time prices
    # ------------------------------------------------------------------

    def fetch_realtime_prices(self, token_ids: Iterable[str],
                              force_refresh: bool = False) -> RealtimePricesResult:
        """Current USD prices for a set of tokens (cached PRICE_CACHE_TTL seconds)."""
        unique_ids = list(dict.fromkeys(t for t in (token_ids or []) if t))
        if not unique_ids:
            return RealtimePricesResult(True, prices={})

        now = time.time()
        prices: Dict[str, float] = {}
        missing = []
        for token_id in unique_ids:
            cached = self._realtime_cache.get(token_id)
            if not force_refresh and cached and now - cached[1] < self._realtime_cache_ttl:
                prices[token_id] = cached[0]
            else:
                missing.append(token_id)

        if not missing:
            return RealtimePricesResult(True, prices=prices)

        try:
            response = requests.get(
                f"{self.base_url}/simple/price",
                params=self._params(ids=','.join(missing), vs_currencies='usd'),
                headers={'Accept': 'application/json'},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            print(f"✗ Error fetching real-time prices: {e}")
            return RealtimePricesResult(
                False, error="Network error or the price service is unavailable.",
                failure=SERVICE_UNAVAILABLE,
            )

        if response.status_code != 200:
            failure, message = _status_failure(response.status_code)
            print(f"✗ CoinGecko real-time API error {response.status_code}: {','.join(missing)}")
            return RealtimePricesResult(False, error=message, failure=failure)

        try:
            data = response.json()
        except ValueError:
            return RealtimePricesResult(False, error="Could not decode the CoinGecko response.",
                                        failure=SERVICE_UNAVAILABLE)

        fetched_at = time.time()
        for token_id in missing:
            usd = (data.get(token_id) or {}).get('usd')
            if usd:
                prices[token_id] = float(usd)
                self._realtime_cache[token_id] = (float(usd), fetched_at)
            else:
                print(f"⚠ Real-time price not found for token id: {token_id}")

        return RealtimePricesResult(True, prices=prices)

"""Tests for lpdash/analysis/price_resolver.py — live/stored/undetermined pricing."""
import threading
from unittest.mock import MagicMock
import pytest

from lpdash.analysis.price_resolver import (
    LatestRequestGate,
    PairQuote,
    PriceResolver,
    fees_to_collect_usd,
    is_in_range,
    range_status,
    resolve_current_pair,
)
from lpdash.coingecko_client import PriceResult, RealtimePricesResult
from conftest import make_entry, make_pool


class TestResolveCurrentPair:

    def test_live_preferred(self):
        quote = resolve_current_pair("ethereum", "usd-coin",
                                     {"ethereum": 3100.0, "usd-coin": 1.0}, (3000.0, 1.0))
        assert quote == PairQuote(ratio=3100.0, is_live=True)

    def test_stored_fallback_when_live_missing(self):
        quote = resolve_current_pair("ethereum", "usd-coin", {"ethereum": 3100.0}, (3000.0, 1.0))
        assert quote == PairQuote(ratio=3000.0, is_live=False)

    def test_stored_fallback_when_live_b_is_zero(self):
        quote = resolve_current_pair("ethereum", "usd-coin",
                                     {"ethereum": 3100.0, "usd-coin": 0.0}, (3000.0, 2.0))
        assert quote.ratio == 1500.0
        assert not quote.is_live

    def test_undetermined_without_anything(self):
        quote = resolve_current_pair("ethereum", "usd-coin", {}, None)
        assert not quote.determined
        assert quote.ratio is None

    def test_undetermined_when_stored_b_is_zero(self):
        quote = resolve_current_pair("ethereum", "usd-coin", {}, (3000.0, 0.0))
        assert not quote.determined

    def test_none_live_prices(self):
        assert resolve_current_pair("a", "b", None, (2.0, 4.0)).ratio == 0.5


class TestIsInRange:

    @pytest.mark.parametrize("ratio,expected", [
        (2500.0, True), (3000.0, True), (3500.0, True), (2499.99, False), (3600.0, False),
    ])
    def test_bounds_inclusive(self, ratio, expected):
        assert is_in_range(ratio, 2500.0, 3500.0) is expected

    def test_undetermined(self):
        assert is_in_range(None, 1.0, 2.0) is None
        assert is_in_range(1.5, None, 2.0) is None
        assert is_in_range(float('nan'), 1.0, 2.0) is None


class TestRangeStatus:

    def test_live_in_range(self, sample_pool):
        status = range_status(sample_pool, make_entry("2025-01-01", 1.0),
                              {"ethereum": 3100.0, "usd-coin": 1.0})
        assert status.in_range is True
        assert status.is_live

    def test_stored_out_of_range(self, sample_pool):
        entry = make_entry("2025-01-01", 1.0, token_a_price_usd=4000.0)
        status = range_status(sample_pool, entry, {})
        assert status.in_range is False
        assert not status.is_live

    def test_undetermined_when_b_price_zero(self, sample_pool):
        entry = make_entry("2025-01-01", 1.0, token_b_price_usd=0.0)
        status = range_status(sample_pool, entry, {})
        assert status.in_range is None
        assert status.ratio is None

    def test_no_entry_no_live(self, sample_pool):
        assert range_status(sample_pool, None, {}).in_range is None


class TestFeesToCollect:

    def test_no_entry(self, sample_pool):
        assert fees_to_collect_usd(sample_pool, None, {}) == 0.0

    def test_live_prices(self, sample_pool):
        entry = make_entry("2025-01-01", 1.0, fees_accumulated_token_a=0.01,
                           fees_accumulated_token_b=5.0)
        value = fees_to_collect_usd(sample_pool, entry, {"ethereum": 4000.0, "usd-coin": 1.0})
        assert value == pytest.approx(45.0)

    def test_per_token_fallback_to_stored(self, sample_pool):
        entry = make_entry("2025-01-01", 1.0, fees_accumulated_token_a=0.01,
                           fees_accumulated_token_b=5.0, token_b_price_usd=0.99)
        value = fees_to_collect_usd(sample_pool, entry, {"ethereum": 4000.0})
        assert value == pytest.approx(40.0 + 4.95)

    def test_live_zero_is_used(self, sample_pool):
        entry = make_entry("2025-01-01", 1.0, fees_accumulated_token_a=1.0)
        assert fees_to_collect_usd(sample_pool, entry, {"ethereum": 0.0}) == 0.0


class TestLatestRequestGate:

    def test_newer_ticket_supersedes(self):
        gate = LatestRequestGate()
        first = gate.begin()
        second = gate.begin()
        assert not gate.is_current(first)
        assert gate.is_current(second)

    def test_tickets_unique_across_threads(self):
        gate = LatestRequestGate()
        tickets = []
        lock = threading.Lock()

        def take():
            t = gate.begin()
            with lock:
                tickets.append(t)

        threads = [threading.Thread(target=take) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(tickets) == list(range(1, 21))
        assert gate.is_current(20)


class TestPriceResolver:

    def test_live_prices_for_all_pool_tokens(self, mock_api_client):
        resolver = PriceResolver(mock_api_client)
        pools = [make_pool(), make_pool(id="p2", token_a_id="bitcoin")]
        prices = resolver.get_live_prices(pools)
        assert prices == {"ethereum": 3100.0, "usd-coin": 1.0}
        ids = mock_api_client.fetch_realtime_prices.call_args[0][0]
        assert set(ids) == {"ethereum", "usd-coin", "bitcoin"}

    def test_no_pools_no_request(self, mock_api_client):
        assert PriceResolver(mock_api_client).get_live_prices([]) == {}
        mock_api_client.fetch_realtime_prices.assert_not_called()

    def test_failure_returns_empty(self):
        client = MagicMock()
        client.fetch_realtime_prices.return_value = RealtimePricesResult(
            False, error="Invalid API key.", failure="invalid_key")
        assert PriceResolver(client).get_live_prices([make_pool()]) == {}

    def test_lookup_entry_prices(self, mock_api_client, sample_pool):
        result = PriceResolver(mock_api_client).lookup_entry_prices(sample_pool, "2025-01-02")
        assert result[0].price == 3000.0
        assert result[1].price == 1.0
        mock_api_client.fetch_pair_prices.assert_called_once_with("ethereum", "usd-coin", "2025-01-02")

    def test_stale_lookup_discarded(self, sample_pool):
        client = MagicMock()
        resolver = PriceResolver(client)

        def slow_fetch(a, b, date):
            if date == "2025-01-01":
                # A newer lookup starts while this one is in flight
                resolver.lookup_entry_prices(sample_pool, "2025-01-02")
            return PriceResult(True, price=1.0), PriceResult(True, price=1.0)

        client.fetch_pair_prices.side_effect = slow_fetch
        assert resolver.lookup_entry_prices(sample_pool, "2025-01-01") is None

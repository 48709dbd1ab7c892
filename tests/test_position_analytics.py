"""Tests for lpdash/analysis/position_analytics.py"""
import pytest

from lpdash.analysis.position_analytics import (
    PositionAnalytics,
    accumulated_fees_value_usd,
    analyze_position,
    check_fee_monotonicity,
    fee_history,
    first_entry,
    is_active,
    last_entry,
    profitability,
    value_history,
)
from conftest import make_entry, make_pool


# ── analyze_position ─────────────────────────────────────────────────

class TestAnalyzePosition:

    def test_no_entries_is_all_zero(self, sample_pool):
        result = analyze_position(sample_pool, [])
        assert result == PositionAnalytics()
        assert result.initial_value == 0
        assert result.current_value == 0
        assert result.total_withdrawn == 0
        assert result.gross_profitability == 0
        assert result.net_profitability == 0

    def test_two_day_scenario(self, sample_pool):
        entries = [
            make_entry("2025-01-01", 1000.0),
            make_entry("2025-01-02", 1200.0, fees_accumulated_token_a=0.1,
                       fees_accumulated_token_b=5.0, fees_withdrawn_usd=20.0),
        ]
        result = analyze_position(sample_pool, entries)
        assert result.initial_value == 1000.0
        assert result.current_value == 1200.0
        assert result.total_withdrawn == 20.0
        assert result.gross_profitability == pytest.approx(0.20)
        assert result.net_profitability == pytest.approx(0.22)
        assert result.net_profitability_percent == pytest.approx(22.0)
        assert result.entry_count == 2

    def test_entries_in_any_order(self, sample_pool):
        entries = [
            make_entry("2025-01-03", 900.0),
            make_entry("2025-01-01", 1000.0),
            make_entry("2025-01-02", 950.0),
        ]
        result = analyze_position(sample_pool, entries)
        assert result.initial_value == 1000.0
        assert result.current_value == 900.0
        assert result.gross_profitability == pytest.approx(-0.10)

    def test_ignores_other_pools(self, sample_pool):
        entries = [
            make_entry("2025-01-01", 1000.0),
            make_entry("2025-01-02", 5.0, pool_id="other", fees_withdrawn_usd=99.0),
        ]
        result = analyze_position(sample_pool, entries)
        assert result.current_value == 1000.0
        assert result.total_withdrawn == 0.0
        assert result.entry_count == 1

    def test_zero_initial_value(self, sample_pool):
        entries = [make_entry("2025-01-01", 0.0), make_entry("2025-01-02", 50.0)]
        result = analyze_position(sample_pool, entries)
        assert result.gross_profitability == 0.0
        assert result.net_profitability == 0.0

    def test_value_brl(self, sample_pool):
        result = analyze_position(sample_pool, [make_entry("2025-01-01", 100.0)], usd_to_brl=5.0)
        assert result.value_brl == pytest.approx(500.0)


class TestProfitability:

    def test_non_positive_initial(self):
        assert profitability(100.0, 0.0) == 0.0
        assert profitability(100.0, -5.0) == 0.0

    def test_increasing_in_current_value(self):
        values = [profitability(v, 1000.0, 10.0) for v in (800.0, 1000.0, 1200.0, 1500.0)]
        assert values == sorted(values)
        assert len(set(values)) == len(values)

    def test_increasing_in_withdrawn(self):
        values = [profitability(1000.0, 1000.0, w) for w in (0.0, 1.0, 50.0, 300.0)]
        assert values == sorted(values)
        assert len(set(values)) == len(values)


# ── Helpers ──────────────────────────────────────────────────────────

class TestEntryHelpers:

    def test_first_and_last(self):
        entries = [make_entry("2025-02-01", 2.0), make_entry("2025-01-01", 1.0)]
        assert first_entry(entries).date == "2025-01-01"
        assert last_entry(entries).date == "2025-02-01"

    def test_first_and_last_empty(self):
        assert first_entry([]) is None
        assert last_entry([]) is None

    def test_accumulated_fees_value(self):
        entry = make_entry("2025-01-01", 1000.0, fees_accumulated_token_a=0.01,
                           fees_accumulated_token_b=4.0)
        # 0.01 * 3000 + 4 * 1
        assert accumulated_fees_value_usd(entry) == pytest.approx(34.0)

    def test_histories_sorted_oldest_first(self):
        entries = [
            make_entry("2025-01-02", 1100.0, fees_accumulated_token_b=2.0),
            make_entry("2025-01-01", 1000.0, fees_accumulated_token_b=1.0),
        ]
        assert value_history(entries) == [("2025-01-01", 1000.0), ("2025-01-02", 1100.0)]
        assert fee_history(entries) == [("2025-01-01", 1.0), ("2025-01-02", 2.0)]


class TestIsActive:

    def test_no_entries_is_active(self):
        assert is_active([]) is True

    def test_latest_zero_is_inactive(self):
        entries = [make_entry("2025-01-01", 1000.0), make_entry("2025-01-02", 0.0)]
        assert is_active(entries) is False

    def test_latest_one_cent_is_active(self):
        entries = [make_entry("2025-01-01", 1000.0), make_entry("2025-01-02", 0.01)]
        assert is_active(entries) is True

    def test_only_latest_counts(self):
        entries = [make_entry("2025-01-01", 0.0), make_entry("2025-01-02", 10.0)]
        assert is_active(entries) is True


class TestFeeMonotonicity:

    def test_rising_fees_no_warnings(self):
        entries = [
            make_entry("2025-01-01", 1000.0, fees_accumulated_token_a=0.1),
            make_entry("2025-01-02", 1000.0, fees_accumulated_token_a=0.2),
        ]
        assert check_fee_monotonicity(entries) == []

    def test_drop_is_reported(self):
        entries = [
            make_entry("2025-01-02", 1000.0, fees_accumulated_token_b=3.0),
            make_entry("2025-01-01", 1000.0, fees_accumulated_token_b=5.0),
        ]
        warnings = check_fee_monotonicity(entries)
        assert warnings == ["2025-01-02: accumulated token B fees dropped from 5 to 3"]

    def test_single_entry(self):
        assert check_fee_monotonicity([make_entry("2025-01-01", 1.0)]) == []

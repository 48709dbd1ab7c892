"""
Portfolio aggregation across all of an owner's pools.

Totals for the dashboard KPI cards plus the per-date chart series:
  - portfolio value: each pool's latest-known entry carried forward to every
    date, summing only pools whose carried value is still > 0
  - withdrawals: same-day amounts only (never carried forward)
"""
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from lpdash.analysis.position_analytics import (
    first_entry,
    is_active,
    last_entry,
    profitability,
)
from lpdash.analysis.price_resolver import fees_to_collect_usd


@dataclass
class SeriesPoint:
    date: str
    position_value: float
    withdrawn_fees: float


@dataclass
class PortfolioSummary:
    total_invested: float = 0.0
    current_total_value: float = 0.0
    total_withdrawn: float = 0.0
    total_accumulated_fees: float = 0.0   # uncollected, live-or-stored prices
    net_profitability: float = 0.0
    series: List[SeriesPoint] = field(default_factory=list)


def entries_by_pool(entries: Sequence) -> Dict[str, List]:
    grouped = defaultdict(list)
    for entry in entries:
        grouped[entry.pool_id].append(entry)
    return grouped


def active_pools(pools: Sequence, entries: Sequence) -> List:
    """Pools with no entries yet, or whose latest value is above 0."""
    grouped = entries_by_pool(entries)
    return [pool for pool in pools if is_active(grouped.get(pool.id, []))]


def portfolio_series(entries: Sequence) -> List[SeriesPoint]:
    """Per-date portfolio value and withdrawals, ascending by date."""
    if not entries:
        return []

    by_date = defaultdict(list)
    for entry in entries:
        by_date[entry.date].append(entry)

    latest_by_pool = {}
    series = []
    for date in sorted(by_date):
        day_entries = by_date[date]
        for entry in day_entries:
            latest_by_pool[entry.pool_id] = entry

        position_value = sum(
            e.position_value_usd for e in latest_by_pool.values()
            if e.position_value_usd > 0
        )
        withdrawn = sum(e.withdrawn for e in day_entries)
        series.append(SeriesPoint(date=date, position_value=position_value,
                                  withdrawn_fees=withdrawn))
    return series


def aggregate_portfolio(pools: Sequence, entries: Sequence,
                        live_prices: Dict[str, float] = None) -> PortfolioSummary:
    """Fold every pool's analytics into portfolio totals."""
    live_prices = live_prices or {}
    grouped = entries_by_pool(entries)

    total_invested = 0.0
    current_total_value = 0.0
    total_accumulated_fees = 0.0
    for pool in pools:
        pool_entries = grouped.get(pool.id, [])
        if not pool_entries:
            continue
        total_invested += first_entry(pool_entries).position_value_usd
        latest = last_entry(pool_entries)
        current_total_value += latest.position_value_usd
        total_accumulated_fees += fees_to_collect_usd(pool, latest, live_prices)

    # Portfolio-wide, including entries of pools no longer listed
    total_withdrawn = sum(e.withdrawn for e in entries)

    return PortfolioSummary(
        total_invested=total_invested,
        current_total_value=current_total_value,
        total_withdrawn=total_withdrawn,
        total_accumulated_fees=total_accumulated_fees,
        net_profitability=profitability(current_total_value, total_invested, total_withdrawn),
        series=portfolio_series(entries),
    )

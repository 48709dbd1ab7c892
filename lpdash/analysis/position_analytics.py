"""
Position Analytics — KPIs for a single pool from its daily entries.

All values are USD. Entries carry CUMULATIVE fees, so the latest entry
already holds everything earned so far; withdrawals are per-day amounts and
are summed.

Every function here is total: no entries, or a zero initial value, give 0
rather than an exception.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


@dataclass
class PositionAnalytics:
    """Derived KPIs for one pool."""
    initial_value: float = 0.0
    current_value: float = 0.0
    total_withdrawn: float = 0.0
    gross_profitability: float = 0.0   # (current - initial) / initial
    net_profitability: float = 0.0     # (current + withdrawn - initial) / initial
    value_brl: float = 0.0
    entry_count: int = 0

    @property
    def gross_profitability_percent(self) -> float:
        return self.gross_profitability * 100

    @property
    def net_profitability_percent(self) -> float:
        return self.net_profitability * 100


def sort_entries(entries: Sequence) -> List:
    """Entries ordered ascending by date (YYYY-MM-DD sorts lexically)."""
    return sorted(entries, key=lambda e: e.date)


def first_entry(entries: Sequence):
    ordered = sort_entries(entries)
    return ordered[0] if ordered else None


def last_entry(entries: Sequence):
    ordered = sort_entries(entries)
    return ordered[-1] if ordered else None


def profitability(current_value: float, initial_value: float,
                  withdrawn: float = 0.0) -> float:
    """Return over the initial value, 0 when there is no initial value."""
    if initial_value <= 0:
        return 0.0
    return ((current_value + withdrawn) - initial_value) / initial_value


def analyze_position(pool, entries: Sequence, usd_to_brl: float = 0.0) -> PositionAnalytics:
    """Compute KPIs for `pool` from its entries (any order)."""
    pool_entries = sort_entries(e for e in entries if e.pool_id == pool.id)
    if not pool_entries:
        return PositionAnalytics()

    initial_value = pool_entries[0].position_value_usd
    current_value = pool_entries[-1].position_value_usd
    total_withdrawn = sum(e.withdrawn for e in pool_entries)

    return PositionAnalytics(
        initial_value=initial_value,
        current_value=current_value,
        total_withdrawn=total_withdrawn,
        gross_profitability=profitability(current_value, initial_value),
        net_profitability=profitability(current_value, initial_value, total_withdrawn),
        value_brl=current_value * (usd_to_brl or 0.0),
        entry_count=len(pool_entries),
    )


def accumulated_fees_value_usd(entry) -> float:
    """Historical USD value of an entry's cumulative fees at its own prices."""
    return (entry.fees_accumulated_token_a * entry.token_a_price_usd
            + entry.fees_accumulated_token_b * entry.token_b_price_usd)


def fee_history(entries: Sequence) -> List[Tuple[str, float]]:
    """Chart series of (date, accumulated fees in USD), oldest first."""
    return [(e.date, accumulated_fees_value_usd(e)) for e in sort_entries(entries)]


def value_history(entries: Sequence) -> List[Tuple[str, float]]:
    """Chart series of (date, position value in USD), oldest first."""
    return [(e.date, e.position_value_usd) for e in sort_entries(entries)]


def is_active(entries: Sequence) -> bool:
    """A pool is active until its latest entry records a value of exactly 0."""
    latest: Optional[object] = last_entry(entries)
    if latest is None:
        return True
    return latest.position_value_usd > 0


def check_fee_monotonicity(entries: Sequence) -> List[str]:
    """Warnings for dates where a cumulative fee total went down.

    Cumulative fees should never decrease; a drop usually means a daily
    amount was typed instead of the running total.
    """
    warnings = []
    ordered = sort_entries(entries)
    for prev, cur in zip(ordered, ordered[1:]):
        for label, attr in (('token A', 'fees_accumulated_token_a'),
                            ('token B', 'fees_accumulated_token_b')):
            before, after = getattr(prev, attr), getattr(cur, attr)
            if after < before:
                warnings.append(
                    f"{cur.date}: accumulated {label} fees dropped from {before:g} to {after:g}"
                )
    return warnings

"""
Number parsing, price resolution, position analytics and portfolio totals
"""
from lpdash.analysis.numbers import parse_locale_number
from lpdash.analysis.portfolio import aggregate_portfolio, portfolio_series
from lpdash.analysis.position_analytics import analyze_position
from lpdash.analysis.price_resolver import PriceResolver, resolve_current_pair

__all__ = [
    "parse_locale_number",
    "aggregate_portfolio",
    "portfolio_series",
    "analyze_position",
    "PriceResolver",
    "resolve_current_pair",
]

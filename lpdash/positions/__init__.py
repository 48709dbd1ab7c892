"""
Pool/entry records, form validation and the owner-scoped ledger
"""
from lpdash.positions.models import DailyEntry, Pool

__all__ = [
    "DailyEntry",
    "Pool",
]

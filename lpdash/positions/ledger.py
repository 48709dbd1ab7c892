"""
Position Ledger - owner-scoped pool/entry operations and dashboard views

Every write goes through DocumentStore.batch_write so multi-document
changes (pool + first entry, pool + cascade of entries) land together or
not at all. Views are rebuilt from fresh store snapshots on every call;
the analytics functions never touch the store themselves.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from lpdash import store as docs
from lpdash.analysis.portfolio import PortfolioSummary, active_pools, aggregate_portfolio, entries_by_pool
from lpdash.analysis.position_analytics import (
    PositionAnalytics,
    analyze_position,
    check_fee_monotonicity,
    fee_history,
    last_entry,
    value_history,
)
from lpdash.analysis.price_resolver import PriceResolver, RangeStatus, fees_to_collect_usd, range_status
from lpdash.config import config
from lpdash.exceptions import LedgerError, PriceLookupError
from lpdash.positions.models import DailyEntry, Pool, now_iso, today_string
from lpdash.positions.validation import (
    INITIAL_VALUE_FIELDS,
    POOL_TEXT_FIELDS,
    validate_entry_form,
    validate_pool_form,
)


INITIAL_ENTRY_NOTE = "Initial entry created with the position."
EDIT_INITIAL_ENTRY_NOTE = "Initial entry created while editing the position."


@dataclass
class PoolCard:
    """One active pool on the dashboard."""
    pool: Pool
    current_value: float
    fees_to_collect_usd: float
    range: RangeStatus


@dataclass
class DashboardView:
    summary: PortfolioSummary
    cards: List[PoolCard] = field(default_factory=list)
    usd_to_brl: float = 0.0


@dataclass
class PoolDetail:
    pool: Pool
    entries: List[DailyEntry]
    analytics: PositionAnalytics
    range: RangeStatus
    fees_to_collect_usd: float
    fee_history: List[Tuple[str, float]]
    value_history: List[Tuple[str, float]]
    usd_to_brl: float = 0.0


def build_dashboard(pools: List[Pool], entries: List[DailyEntry],
                    live_prices: Dict[str, float] = None,
                    usd_to_brl: float = 0.0) -> DashboardView:
    """Dashboard view from a (pools, entries) snapshot."""
    live_prices = live_prices or {}
    grouped = entries_by_pool(entries)

    cards = []
    for pool in active_pools(pools, entries):
        latest = last_entry(grouped.get(pool.id, []))
        cards.append(PoolCard(
            pool=pool,
            current_value=latest.position_value_usd if latest else 0.0,
            fees_to_collect_usd=fees_to_collect_usd(pool, latest, live_prices),
            range=range_status(pool, latest, live_prices),
        ))

    return DashboardView(
        summary=aggregate_portfolio(pools, entries, live_prices),
        cards=cards,
        usd_to_brl=usd_to_brl,
    )


class PositionLedger:
    """Pools and daily entries of one owner."""

    def __init__(self, store: docs.DocumentStore, api_client, owner_id: str = None):
        self.store = store
        self.api_client = api_client
        self.owner_id = owner_id or config.OWNER_ID
        self.price_resolver = PriceResolver(api_client)

    # ------------------------------------------------------------------
    # Settings & platforms
    # ------------------------------------------------------------------

    @property
    def usd_to_brl(self) -> float:
        rate = self.store.get_settings(self.owner_id).get('usd_to_brl')
        if isinstance(rate, (int, float)) and not isinstance(rate, bool):
            return float(rate)
        return config.DEFAULT_USD_TO_BRL

    def update_usd_to_brl(self, rate: float):
        if not isinstance(rate, (int, float)) or rate <= 0:
            raise LedgerError(f"Invalid exchange rate: {rate}")
        self.store.set_settings(self.owner_id, usd_to_brl=float(rate))
        print(f"✓ USD→BRL rate set to {rate:.4f}")

    def platforms(self) -> List[str]:
        return list(dict.fromkeys(config.DEFAULT_PLATFORMS + self.store.list_platforms()))

    def add_platform(self, name: str):
        name = name.strip()
        if name and name not in self.platforms():
            self.store.add_platform(name)

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------

    def _pair_prices_or_raise(self, pool_data: Dict, date: str, message: str) -> Tuple[float, float]:
        result_a, result_b = self.api_client.fetch_pair_prices(
            pool_data['token_a_id'], pool_data['token_b_id'], date
        )
        errors = []
        if not result_a.success:
            errors.append(f"Token A ({pool_data['token_a']}): {result_a.error}")
        if not result_b.success:
            errors.append(f"Token B ({pool_data['token_b']}): {result_b.error}")
        if errors:
            raise PriceLookupError(message, errors)
        return result_a.price, result_b.price

    def _initial_entry(self, pool_id: str, values: Dict, prices: Tuple[float, float],
                       date: str, note: str) -> DailyEntry:
        return DailyEntry(
            id=docs.new_id(),
            pool_id=pool_id,
            user_id=self.owner_id,
            date=date,
            position_value_usd=values['initial_position_value_usd'],
            fees_accumulated_token_a=values['initial_fees_accumulated_token_a'],
            fees_accumulated_token_b=values['initial_fees_accumulated_token_b'],
            fees_withdrawn_usd=0.0,
            note=note,
            token_a_price_usd=prices[0],
            token_b_price_usd=prices[1],
            usd_to_brl=self.usd_to_brl,
            updated_at=now_iso(),
        )

    def add_pool(self, form: Dict) -> Pool:
        """Create a pool together with its first daily entry (dated today)."""
        data = validate_pool_form({k: v for k, v in form.items() if k != 'id'})
        today = today_string()
        prices = self._pair_prices_or_raise(data, today, "Failed to fetch prices")

        pool = Pool(
            id=docs.new_id(),
            user_id=self.owner_id,
            platform=data['platform'],
            name=data['name'],
            token_a=data['token_a'],
            token_b=data['token_b'],
            token_a_id=data['token_a_id'],
            token_b_id=data['token_b_id'],
            fee_tier=data['fee_tier'],
            range_min=data['range_min'],
            range_max=data['range_max'],
            created_at=now_iso(),
        )
        first = self._initial_entry(pool.id, data, prices, today, INITIAL_ENTRY_NOTE)
        self.store.batch_write([
            docs.set_doc(docs.POOLS, pool.id, docs.pool_to_dict(pool)),
            docs.set_doc(docs.ENTRIES, first.id, docs.entry_to_dict(first)),
        ])
        # Only remembered once the pool itself is committed
        self.add_platform(data['platform'])
        print(f"✓ Added pool {pool.name} ({pool.pair}) on {pool.platform}")
        return pool

    def _owned_pool(self, pool_id: str) -> Pool:
        pool = self.store.get_pool(pool_id) if pool_id else None
        if pool is None or pool.user_id != self.owner_id:
            raise LedgerError(f"Pool not found: {pool_id}")
        return pool

    def update_pool(self, form: Dict) -> Pool:
        """Edit a pool; given initial values rewrite its earliest entry."""
        if not form.get('id'):
            raise LedgerError("Position id is missing for the update.")
        data = validate_pool_form(form)
        pool = self._owned_pool(data['id'])

        core ={key: data[key] for key in POOL_TEXT_FIELDS}
        core['range_min'] = data['range_min']
        core['range_max'] = data['range_max']
        ops = [docs.update_doc(docs.POOLS, pool.id, core)]

        initial = {key: data[key] for key in INITIAL_VALUE_FIELDS if data[key] is not None}
        if initial:
            entries = self.store.list_entries(self.owner_id, pool.id)
            if entries:
                renamed = {
                    'initial_position_value_usd': 'position_value_usd',
                    'initial_fees_accumulated_token_a': 'fees_accumulated_token_a',
                    'initial_fees_accumulated_token_b': 'fees_accumulated_token_b',
                }
                ops.append(docs.update_doc(
                    docs.ENTRIES, entries[0].id,
                    {renamed[key]: value for key, value in initial.items()},
                ))
            elif len(initial) == len(INITIAL_VALUE_FIELDS):
                today = today_string()
                prices = self._pair_prices_or_raise(
                    data, today,
                    "Could not create the initial entry while editing. Failed to fetch prices",
                )
                first = self._initial_entry(pool.id, data, prices, today, EDIT_INITIAL_ENTRY_NOTE)
                ops.append(docs.set_doc(docs.ENTRIES, first.id, docs.entry_to_dict(first)))

        self.store.batch_write(ops)
        self.add_platform(data['platform'])
        print(f"✓ Updated pool {data['name']}")
        return self.store.get_pool(pool.id)

    def delete_pool(self, pool_id: str) -> int:
        """Delete a pool and all of its entries. Returns entries removed."""
        pool = self._owned_pool(pool_id)
        entries = self.store.list_entries(self.owner_id, pool.id)
        ops = [docs.delete_doc(docs.POOLS, pool.id)]
        ops.extend(docs.delete_doc(docs.ENTRIES, e.id) for e in entries)
        self.store.batch_write(ops)
        print(f"✓ Deleted pool {pool.name} and {len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")
        return len(entries)

    # ------------------------------------------------------------------
    # Daily entries
    # ------------------------------------------------------------------

    def fetch_entry_prices(self, pool_id: str, date: str) -> Optional[Tuple[float, float]]:
        """Token prices for an entry on `date`; None if superseded by a newer lookup."""
        pool = self._owned_pool(pool_id)
        results = self.price_resolver.lookup_entry_prices(pool, date)
        if results is None:
            return None
        result_a, result_b = results
        errors = []
        if not result_a.success:
            errors.append(f"Token A ({pool.token_a}): {result_a.error}")
        if not result_b.success:
            errors.append(f"Token B ({pool.token_b}): {result_b.error}")
        if errors:
            raise PriceLookupError("Failed to fetch prices", errors)
        return result_a.price, result_b.price

    def save_entry(self, form: Dict, token_a_price_usd: Optional[float],
                   token_b_price_usd: Optional[float]) -> Tuple[DailyEntry, List[str]]:
        """Upsert the entry for (pool_id, date).

        Returns the stored entry and any fee-monotonicity warnings; those are
        advisory and never block the save.
        """
        if token_a_price_usd is None or token_b_price_usd is None:
            raise PriceLookupError("Token prices could not be loaded")
        data = validate_entry_form(form)
        pool = self._owned_pool(data['pool_id'])

        existing = self.store.find_entry(self.owner_id, pool.id, data['date'])
        entry = DailyEntry(
            id=existing.id if existing else docs.new_id(),
            pool_id=pool.id,
            user_id=self.owner_id,
            date=data['date'],
            position_value_usd=data['position_value_usd'],
            fees_accumulated_token_a=data['fees_accumulated_token_a'],
            fees_accumulated_token_b=data['fees_accumulated_token_b'],
            fees_withdrawn_usd=data['fees_withdrawn_usd'] or 0.0,
            note=data['note'],
            token_a_price_usd=token_a_price_usd,
            token_b_price_usd=token_b_price_usd,
            usd_to_brl=self.usd_to_brl,
            updated_at=now_iso(),
        )
        payload = docs.entry_to_dict(entry)
        if existing:
            self.store.batch_write([docs.update_doc(docs.ENTRIES, entry.id, payload)])
        else:
            self.store.batch_write([docs.set_doc(docs.ENTRIES, entry.id, payload)])

        warnings = check_fee_monotonicity(self.store.list_entries(self.owner_id, pool.id))
        for warning in warnings:
            print(f"⚠ {pool.name}: {warning}")
        print(f"✓ {'Updated' if existing else 'Saved'} entry for {pool.name} on {entry.date}")
        return entry, warnings

    def update_entry(self, entry: DailyEntry) -> DailyEntry:
        """Rewrite an owned entry in place, keeping one entry per (pool, date)."""
        if not entry.id:
            raise LedgerError("Entry id is missing for the update.")
        stored = self.store.get_entry(entry.id)
        if stored is None or stored.user_id != self.owner_id:
            raise LedgerError(f"Entry not found: {entry.id}")
        self._owned_pool(entry.pool_id)
        try:
            entry.date = datetime.strptime(entry.date, '%Y-%m-%d').date().isoformat()
        except (TypeError, ValueError):
            raise LedgerError(f"Invalid entry date: {entry.date}")

        clash = self.store.find_entry(self.owner_id, entry.pool_id, entry.date)
        if clash is not None and clash.id != entry.id:
            raise LedgerError(f"An entry for {entry.date} already exists for this pool.")

        entry.user_id = self.owner_id
        entry.updated_at = now_iso()
        payload = docs.entry_to_dict(entry)
        payload.pop('id')
        self.store.batch_write([docs.update_doc(docs.ENTRIES, entry.id, payload)])
        return entry

    def delete_entry(self, entry_id: str):
        entry = self.store.get_entry(entry_id)
        if entry is None or entry.user_id != self.owner_id:
            raise LedgerError(f"Entry not found: {entry_id}")
        self.store.batch_write([docs.delete_doc(docs.ENTRIES, entry_id)])

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def dashboard(self, live_prices: Dict[str, float] = None) -> DashboardView:
        """Portfolio KPIs plus one card per active pool."""
        return build_dashboard(
            self.store.list_pools(self.owner_id),
            self.store.list_entries(self.owner_id),
            live_prices,
            self.usd_to_brl,
        )

    def pool_detail(self, pool_id: str, live_prices: Dict[str, float] = None) -> PoolDetail:
        live_prices = live_prices or {}
        pool = self._owned_pool(pool_id)
        entries = self.store.list_entries(self.owner_id, pool.id)
        latest = last_entry(entries)
        rate = self.usd_to_brl
        return PoolDetail(
            pool=pool,
            entries=entries,
            analytics=analyze_position(pool, entries, rate),
            range=range_status(pool, latest, live_prices),
            fees_to_collect_usd=fees_to_collect_usd(pool, latest, live_prices),
            fee_history=fee_history(entries),
            value_history=value_history(entries),
            usd_to_brl=rate,
        )

"""
LP Dashboard command line

  python -m lpdash.main dashboard             portfolio KPIs + active pool cards
  python -m lpdash.main pool <id>             one pool's KPIs, range and history
  python -m lpdash.main add-pool ...          new pool + its initial entry (today)
  python -m lpdash.main edit-pool <id> ...    edit a pool / its initial values
  python -m lpdash.main add-entry <id> ...    upsert the entry for a date
  python -m lpdash.main analyze <id> ...      AI comparison of today's fee gain
  python -m lpdash.main delete-pool <id>      pool + all its entries
  python -m lpdash.main delete-entry <id>
  python -m lpdash.main set-rate <rate>       USD→BRL exchange rate
  python -m lpdash.main platforms

The dashboard subscribes to the store: every committed write pushes a new
(pools, entries) snapshot and the view is recomputed from it.
"""
import argparse
import sys
from datetime import datetime
from typing import Dict, List, Optional

from lpdash.advisor.yield_advisor import YieldAdvisor, build_history, current_fees_usd
from lpdash.analysis.numbers import parse_locale_number
from lpdash.analysis.portfolio import active_pools
from lpdash.coingecko_client import CoinGeckoClient
from lpdash.config import config
from lpdash.exceptions import AdvisorError, LedgerError, StoreError, ValidationError
from lpdash.positions.ledger import DashboardView, PositionLedger, build_dashboard
from lpdash.positions.models import today_string
from lpdash.store import DocumentStore


def _usd(value: float) -> str:
    return f"${value:,.2f}"


def _brl(value: float) -> str:
    # pt-BR grouping: 1.234,56
    text = f"{value:,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"R$ {text}"


def _pct(value: float) -> str:
    return f"{value * 100:+.2f}%"


def _range_str(status) -> str:
    if status.ratio is None or status.in_range is None:
        return "Range: —"
    icon = "🟢 In range" if status.in_range else "🔴 Out of range"
    source = "live" if status.is_live else "last entry"
    return f"{icon}  (price {status.ratio:.6g}, {source})"


class LPDashboard:
    """Wires the store, price client, ledger and advisor together."""

    def __init__(self, store: DocumentStore = None, api_client=None,
                 advisor: YieldAdvisor = None, owner_id: str = None):
        self.api_client = api_client or CoinGeckoClient()
        self.store = store or DocumentStore(config.DATA_FILE)
        self.ledger = PositionLedger(self.store, self.api_client, owner_id)
        self.advisor = advisor or YieldAdvisor()

        self.pools: List = []
        self.entries: List = []
        self.live_prices: Dict[str, float] = {}
        self.view: Optional[DashboardView] = None
        self._unsubscribe = self.store.subscribe(self.ledger.owner_id, self._on_change)

    def _on_change(self, pools, entries):
        self.pools, self.entries = pools, entries
        self.view = build_dashboard(pools, entries, self.live_prices, self.ledger.usd_to_brl)

    def refresh_prices(self):
        """Fetch live prices for active pools and recompute the view."""
        active = active_pools(self.pools, self.entries)
        self.live_prices = self.ledger.price_resolver.get_live_prices(active)
        self._on_change(self.pools, self.entries)

    def close(self):
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def print_dashboard(self):
        view = self.view
        summary = view.summary
        rate = view.usd_to_brl

        print(f"\n{'─' * 60}")
        print(f"LP Dashboard - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print(f"{'─' * 60}")
        print(f"Total in Pools:       {_usd(summary.current_total_value)}  ({_brl(summary.current_total_value * rate)})")
        print(f"Fees to Collect:      {_usd(summary.total_accumulated_fees)}  ({_brl(summary.total_accumulated_fees * rate)})")
        print(f"Fees Withdrawn:       {_usd(summary.total_withdrawn)}  ({_brl(summary.total_withdrawn * rate)})")
        print(f"Total Invested:       {_usd(summary.total_invested)}")
        print(f"Net Profitability:    {_pct(summary.net_profitability)}")

        if summary.series:
            print(f"\nPortfolio History:")
            for point in summary.series[-10:]:
                withdrawn = f"  |  withdrawn {_usd(point.withdrawn_fees)}" if point.withdrawn_fees else ""
                print(f"  {point.date}  {_usd(point.position_value)}{withdrawn}")

        if view.cards:
            print(f"\nYour Positions:")
            for card in view.cards:
                pool = card.pool
                print(f"  • {pool.name}  [{pool.platform} - {pool.fee_tier}]  id={pool.id}")
                print(f"    Range: {pool.range_min:g} – {pool.range_max:g}  |  {_range_str(card.range)}")
                print(f"    Value: {_usd(card.current_value)}  |  Fees to collect: {_usd(card.fees_to_collect_usd)}")
        else:
            print(f"\nNo active positions yet. Add one with `add-pool`.")
        print(f"{'─' * 60}\n")

    def print_pool(self, pool_id: str):
        detail = self.ledger.pool_detail(pool_id, self.live_prices)
        pool, stats, rate = detail.pool, detail.analytics, detail.usd_to_brl

        print(f"\n{'═' * 60}")
        print(f"  {pool.name}  ({pool.pair})  [{pool.platform} - {pool.fee_tier}]")
        print(f"{'═' * 60}")
        print(f"  {_range_str(detail.range)}  |  Range: {pool.range_min:g} – {pool.range_max:g}")
        print(f"  Current Value:   {_usd(stats.current_value)}  ({_brl(stats.value_brl)})")
        print(f"  Initial Value:   {_usd(stats.initial_value)}")
        print(f"  Fees Withdrawn:  {_usd(stats.total_withdrawn)}  ({_brl(stats.total_withdrawn * rate)})")
        print(f"  Fees to Collect: {_usd(detail.fees_to_collect_usd)}")
        print(f"  Gross Return:    {_pct(stats.gross_profitability)}")
        print(f"  Net Return:      {_pct(stats.net_profitability)}")

        if detail.entries:
            print(f"\n  {'Date':<12}{'Value':>14}{'Fees A':>14}{'Fees B':>14}{'Fees USD':>12}{'Withdrawn':>12}")
            fees_by_date = dict(detail.fee_history)
            for entry in reversed(detail.entries):
                print(f"  {entry.date:<12}{_usd(entry.position_value_usd):>14}"
                      f"{entry.fees_accumulated_token_a:>14.6g}{entry.fees_accumulated_token_b:>14.6g}"
                      f"{_usd(fees_by_date[entry.date]):>12}{_usd(entry.withdrawn):>12}"
                      + (f"  {entry.note}" if entry.note else ""))
        else:
            print(f"\n  No entries for this pool yet.")
        print(f"{'═' * 60}\n")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def analyze(self, pool_id: str, fees_a: float, fees_b: float,
                price_a: float, price_b: float) -> str:
        """AI comparison of today's fee gain against the recent average."""
        entries = self.store.list_entries(self.ledger.owner_id, pool_id)
        pool = self.ledger.pool_detail(pool_id).pool
        history = build_history(entries)
        return self.advisor.suggest_yield(pool, history, current_fees_usd(fees_a, fees_b, price_a, price_b))

    def add_entry(self, form: Dict, analyze: bool = False):
        prices = self.ledger.fetch_entry_prices(form['pool_id'], form['date'])
        if prices is None:
            return None
        price_a, price_b = prices
        print(f"✓ Prices on {form['date']}: A={_usd(price_a)}  B={_usd(price_b)}")

        if analyze:
            try:
                analysis = self.analyze(form['pool_id'],
                                        parse_locale_number(form['fees_accumulated_token_a']),
                                        parse_locale_number(form['fees_accumulated_token_b']),
                                        price_a, price_b)
                print(f"💡 {analysis}")
            except (AdvisorError, TypeError, ValueError) as e:
                print(f"⚠ Analysis unavailable: {e}")

        entry, _ = self.ledger.save_entry(form, price_a, price_b)
        return entry


def _pool_form(args) -> Dict:
    return {
        'platform': args.platform,
        'new_platform': args.new_platform,
        'name': args.name,
        'token_a': args.token_a,
        'token_b': args.token_b,
        'token_a_id': args.token_a_id,
        'token_b_id': args.token_b_id,
        'fee_tier': args.fee_tier,
        'range_min': args.range_min,
        'range_max': args.range_max,
        'initial_position_value_usd': args.value,
        'initial_fees_accumulated_token_a': args.fees_a,
        'initial_fees_accumulated_token_b': args.fees_b,
    }


def _add_pool_arguments(parser, required: bool):
    parser.add_argument("--platform", required=required, help="e.g. UniswapV3, or 'Other' with --new-platform")
    parser.add_argument("--new-platform")
    parser.add_argument("--name", required=required)
    parser.add_argument("--token-a", required=required, help="symbol, e.g. ETH")
    parser.add_argument("--token-b", required=required)
    parser.add_argument("--token-a-id", required=required, help="CoinGecko id, e.g. ethereum")
    parser.add_argument("--token-b-id", required=required)
    parser.add_argument("--fee-tier", required=required, help="e.g. 0.3%%")
    parser.add_argument("--range-min", required=required, help="accepts 1.234,56 or 1,234.56")
    parser.add_argument("--range-max", required=required)
    parser.add_argument("--value", help="initial position value (USD)")
    parser.add_argument("--fees-a", help="initial accumulated token A fees")
    parser.add_argument("--fees-b", help="initial accumulated token B fees")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lpdash", description="Track liquidity-pool positions")
    parser.add_argument("--owner", help="owner id (default: LPDASH_OWNER_ID)")
    parser.add_argument("--data-file", help="data file (default: LPDASH_DATA_FILE)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("dashboard", help="portfolio overview")
    p.add_argument("--no-live", action="store_true", help="skip live price lookup")

    p = sub.add_parser("pool", help="pool details")
    p.add_argument("pool_id")
    p.add_argument("--no-live", action="store_true")

    p = sub.add_parser("add-pool", help="add a pool and its initial entry")
    _add_pool_arguments(p, required=True)

    p = sub.add_parser("edit-pool", help="edit a pool")
    p.add_argument("pool_id")
    _add_pool_arguments(p, required=False)

    p = sub.add_parser("add-entry", help="add or overwrite a daily entry")
    p.add_argument("pool_id")
    p.add_argument("--date", default=None, help="YYYY-MM-DD (default: today)")
    p.add_argument("--value", required=True, help="position value (USD)")
    p.add_argument("--fees-a", required=True, help="accumulated token A fees (running total)")
    p.add_argument("--fees-b", required=True, help="accumulated token B fees (running total)")
    p.add_argument("--withdrawn", default=None, help="fees withdrawn today (USD)")
    p.add_argument("--note", default="")
    p.add_argument("--analyze", action="store_true", help="ask the AI advisor before saving")

    p = sub.add_parser("analyze", help="compare today's fee gain with the daily average")
    p.add_argument("pool_id")
    p.add_argument("--fees-a", required=True, type=float)
    p.add_argument("--fees-b", required=True, type=float)
    p.add_argument("--date", default=None)

    p = sub.add_parser("delete-pool", help="delete a pool and all its entries")
    p.add_argument("pool_id")

    p = sub.add_parser("delete-entry", help="delete one daily entry")
    p.add_argument("entry_id")

    p = sub.add_parser("set-rate", help="set the USD→BRL exchange rate")
    p.add_argument("rate", type=float)

    sub.add_parser("platforms", help="list known platforms")
    return parser


def _existing_pool_form(app: LPDashboard, args) -> Dict:
    """Edit form: current pool values overlaid with the given arguments."""
    pool = app.ledger.pool_detail(args.pool_id).pool
    form = {
        'id': pool.id,
        'platform': pool.platform,
        'name': pool.name,
        'token_a': pool.token_a,
        'token_b': pool.token_b,
        'token_a_id': pool.token_a_id,
        'token_b_id': pool.token_b_id,
        'fee_tier': pool.fee_tier,
        'range_min': pool.range_min,
        'range_max': pool.range_max,
    }
    form.update({k: v for k, v in _pool_form(args).items() if v is not None})
    return form


def run(args, app: LPDashboard) -> int:
    command = args.command

    if command == "dashboard":
        if not args.no_live:
            app.refresh_prices()
        app.print_dashboard()
    elif command == "pool":
        if not args.no_live:
            app.refresh_prices()
        app.print_pool(args.pool_id)
    elif command == "add-pool":
        pool = app.ledger.add_pool(_pool_form(args))
        print(f"  id: {pool.id}")
    elif command == "edit-pool":
        app.ledger.update_pool(_existing_pool_form(app, args))
    elif command == "add-entry":
        form = {
            'pool_id': args.pool_id,
            'date': args.date or today_string(),
            'position_value_usd': args.value,
            'fees_accumulated_token_a': args.fees_a,
            'fees_accumulated_token_b': args.fees_b,
            'fees_withdrawn_usd': args.withdrawn,
            'note': args.note,
        }
        app.add_entry(form, analyze=args.analyze)
    elif command == "analyze":
        prices = app.ledger.fetch_entry_prices(args.pool_id, args.date or today_string())
        if prices is not None:
            print(f"💡 {app.analyze(args.pool_id, args.fees_a, args.fees_b, *prices)}")
    elif command == "delete-pool":
        app.ledger.delete_pool(args.pool_id)
    elif command == "delete-entry":
        app.ledger.delete_entry(args.entry_id)
        print(f"✓ Deleted entry {args.entry_id}")
    elif command == "set-rate":
        app.ledger.update_usd_to_brl(args.rate)
    elif command == "platforms":
        for name in app.ledger.platforms():
            print(f"  • {name}")
    return 0


def main(argv=None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    try:
        store = DocumentStore(args.data_file or config.DATA_FILE)
        app = LPDashboard(store=store, owner_id=args.owner)
    except StoreError as e:
        print(f"✗ {e}")
        return 1

    try:
        return run(args, app)
    except ValidationError as e:
        print("✗ Invalid input:")
        for field_name, message in e.errors.items():
            print(f"  - {field_name}: {message}")
        return 1
    except (LedgerError, StoreError, AdvisorError) as e:
        print(f"✗ {e}")
        return 1
    finally:
        app.close()


if __name__ == "__main__":
    sys.exit(main())

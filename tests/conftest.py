"""
Shared fixtures for the LP Dashboard test suite.
"""
import os
import sys
import pytest
from unittest.mock import MagicMock

# Ensure project root is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lpdash.coingecko_client import PriceResult, RealtimePricesResult
from lpdash.config import config
from lpdash.positions.models import DailyEntry, Pool
from lpdash.store import DocumentStore


OWNER = "user-1"


# ── Environment stubs ────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _patch_env(monkeypatch, tmp_path):
    """Keep tests off real API keys and the real data file.

    `config` is built once at import, so its attributes are patched
    directly; the env vars cover anything that builds a fresh config.
    """
    monkeypatch.setenv("COINGECKO_API_KEY", "")
    monkeypatch.setenv("GOOGLE_API_KEY", "")
    monkeypatch.setenv("LPDASH_OWNER_ID", OWNER)
    monkeypatch.setattr(config, "COINGECKO_API_KEY", "")
    monkeypatch.setattr(config, "GOOGLE_API_KEY", "")
    monkeypatch.setattr(config, "OWNER_ID", OWNER)
    monkeypatch.setattr(config, "DATA_FILE", str(tmp_path / "lpdash.json"))


# ── Record builders ──────────────────────────────────────────────────

def make_pool(**overrides) -> Pool:
    defaults = dict(
        id="pool-eth-usdc",
        user_id=OWNER,
        platform="UniswapV3",
        name="ETH-USDC 0.3%",
        token_a="ETH",
        token_b="USDC",
        token_a_id="ethereum",
        token_b_id="usd-coin",
        fee_tier="0.3%",
        range_min=2500.0,
        range_max=3500.0,
        created_at="2025-01-01T10:00:00",
    )
    defaults.update(overrides)
    return Pool(**defaults)


def make_entry(date: str, value: float, pool_id: str = "pool-eth-usdc", **overrides) -> DailyEntry:
    defaults = dict(
        id=f"{pool_id}-{date}",
        pool_id=pool_id,
        user_id=OWNER,
        date=date,
        position_value_usd=value,
        fees_accumulated_token_a=0.0,
        fees_accumulated_token_b=0.0,
        fees_withdrawn_usd=0.0,
        note="",
        token_a_price_usd=3000.0,
        token_b_price_usd=1.0,
        usd_to_brl=5.5,
    )
    defaults.update(overrides)
    return DailyEntry(**defaults)


@pytest.fixture
def sample_pool():
    return make_pool()


@pytest.fixture
def pool_form():
    """A valid create-mode pool form, as typed by a pt-BR user."""
    return {
        "platform": "UniswapV3",
        "name": "ETH-USDC 0.3%",
        "token_a": "ETH",
        "token_b": "USDC",
        "token_a_id": "ethereum",
        "token_b_id": "usd-coin",
        "fee_tier": "0.3%",
        "range_min": "2.500,00",
        "range_max": "3.500,50",
        "initial_position_value_usd": "1000",
        "initial_fees_accumulated_token_a": "0",
        "initial_fees_accumulated_token_b": "0",
    }


@pytest.fixture
def memory_store():
    return DocumentStore(path=None)


@pytest.fixture
def mock_api_client():
    """A mock CoinGeckoClient: ETH $3000, USDC $1, live and historical."""
    client = MagicMock()
    client.fetch_pair_prices.return_value = (
        PriceResult(True, price=3000.0),
        PriceResult(True, price=1.0),
    )
    client.fetch_token_price.return_value = PriceResult(True, price=3000.0)
    client.fetch_realtime_prices.return_value = RealtimePricesResult(
        True, prices={"ethereum": 3100.0, "usd-coin": 1.0}
    )
    return client

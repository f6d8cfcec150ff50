import sys
from pathlib import Path

import pytest
from mesa import Model

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from xy_pool.agents.blockchain import LedgerAgent
from xy_pool.agents.ledger import TokenAssetLedger, TokenShareLedger
from xy_pool.agents.pool import PoolEngine

POOL = "POOL"
ALLOWANCE = 10**30


def make_pool(curve=None, **hooks):
    model = Model()
    ledger = LedgerAgent(model)
    pool = PoolEngine(
        model,
        asset_x=TokenAssetLedger(ledger, "X", POOL),
        asset_y=TokenAssetLedger(ledger, "Y", POOL),
        shares=TokenShareLedger(ledger, "LP"),
        curve=curve,
        **hooks,
    )
    return ledger, pool


def fund(ledger, who, x, y, approve=True):
    ledger.create_account(who, {"X": x, "Y": y})
    if approve:
        ledger.approve("X", who, POOL, ALLOWANCE)
        ledger.approve("Y", who, POOL, ALLOWANCE)


@pytest.fixture
def ledger_pool():
    return make_pool()


@pytest.fixture
def scenario_a():
    """Pool after init(1000, 4000) by alice, with bob funded for trading."""
    ledger, pool = make_pool()
    fund(ledger, "alice", 10_000, 40_000)
    fund(ledger, "bob", 10_000, 40_000)
    pool.init("alice", 1000, 4000)
    return ledger, pool

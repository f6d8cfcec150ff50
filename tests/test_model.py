import copy
import math
from pathlib import Path

import pytest

from xy_pool.agents.blockchain import LedgerAgent
from xy_pool.agents.pool import PoolEngine
from xy_pool.agents.trader import LiquidityProviderAgent, TraderAgent
from xy_pool.models.pool_model import PoolModel
from xy_pool.utils.config_parser import load_config


@pytest.fixture
def simple_config():
    return {
        "simulation": {"steps": 10, "seed": 123},
        "pool": {
            "token_x": "ETH",
            "token_y": "DAI",
            "share_token": "ETH-DAI-LP",
            "creator": "alice",
            "initial_x": 1000,
            "initial_y": 4000,
        },
        "traders": [
            {"name": "t1", "balance_x": 500, "balance_y": 2000, "max_trade": 50, "activity": 1.0},
            {"name": "t2", "balance_x": 500, "balance_y": 2000, "max_trade": 80, "activity": 0.5},
        ],
        "providers": [
            {"name": "lp1", "balance_x": 1000, "balance_y": 4000, "deposit_x": 200, "activity": 1.0},
        ],
    }


def assert_ledger_backs_pool(model):
    pool = model.pool
    assert model.ledger.get_token_balance(model.token_x, model.pool_address) == pool.reserve_x
    assert model.ledger.get_token_balance(model.token_y, model.pool_address) == pool.reserve_y
    assert model.ledger.total_supply(model.share_token) == pool.total_shares


def test_model_initialization_creates_expected_agents(simple_config):
    model = PoolModel(simple_config)
    names = [a.__class__.__name__ for a in model.agents]
    assert sorted(names) == sorted(
        ["LedgerAgent", "PoolEngine", "TraderAgent", "TraderAgent", "LiquidityProviderAgent"]
    )
    assert isinstance(model.ledger, LedgerAgent)
    assert isinstance(model.pool, PoolEngine)
    assert model.pool.get_reserves() == (1000, 4000)
    assert model.ledger.get_token_balance("ETH-DAI-LP", "alice") == 4_000_000
    assert_ledger_backs_pool(model)


def test_model_step_collects_pool_metrics(simple_config):
    model = PoolModel(simple_config)
    for _ in range(model.num_steps):
        model.step()

    df = model.datacollector.get_model_vars_dataframe()
    assert df.shape[0] == 10
    assert list(df.columns) == ["Reserve_X", "Reserve_Y", "Total_Shares", "K", "Spot_Price"]
    assert df["Reserve_X"].iloc[-1] == model.pool.reserve_x
    assert df["Spot_Price"].iloc[-1] == pytest.approx(model.pool.reserve_y / model.pool.reserve_x)
    assert len(model.metrics["k_history"]) == 10
    assert model.ledger.current_block == 10
    assert model.metrics["swaps"] > 0
    assert_ledger_backs_pool(model)


def test_provider_alternates_deposit_and_withdrawal(simple_config):
    cfg = copy.deepcopy(simple_config)
    cfg["traders"] = []
    model = PoolModel(cfg)
    provider = next(a for a in model.agents if isinstance(a, LiquidityProviderAgent))

    model.step()
    assert [h["action"] for h in provider.history] == ["deposit"]
    assert provider.history[0]["amounts"] == (200, 800)
    assert provider.share_balance() == 800_000

    model.step()
    assert [h["action"] for h in provider.history] == ["deposit", "withdraw"]
    assert provider.share_balance() == 0
    assert model.pool.get_reserves() == (1000, 4000)
    assert model.ledger.get_token_balance("ETH", "lp1") == 1000
    assert model.metrics["deposits"] == 1
    assert model.metrics["withdrawals"] == 1


def test_strict_curve_keeps_k_monotone_and_records_rejections(simple_config):
    cfg = copy.deepcopy(simple_config)
    cfg["pool"]["curve"] = "strict_constant_product"
    cfg["providers"] = []
    cfg["traders"] = [
        {"name": "dust", "balance_x": 100, "balance_y": 100, "max_trade": 1, "activity": 1.0}
    ]
    model = PoolModel(cfg)
    k0 = model.pool.get_k()
    for _ in range(10):
        model.step()

    history = [k0] + model.metrics["k_history"]
    assert all(b >= a for a, b in zip(history, history[1:]))
    assert model.metrics["swaps"] + len(model.metrics["rejected"]) == 10
    assert {r["error"] for r in model.metrics["rejected"]} <= {"ZeroOutput"}
    assert_ledger_backs_pool(model)


def test_seeded_runs_are_reproducible(simple_config):
    runs = []
    for _ in range(2):
        model = PoolModel(copy.deepcopy(simple_config))
        for _ in range(5):
            model.step()
        runs.append(model.metrics["k_history"])
    assert runs[0] == runs[1]


def test_example_config_runs():
    path = Path(__file__).resolve().parents[1] / "examples" / "config_simple.yaml"
    model = PoolModel(load_config(str(path)))
    for _ in range(25):
        model.step()
    traders = [a for a in model.agents if isinstance(a, TraderAgent)]
    assert len(traders) == 2
    assert not math.isnan(model.datacollector.get_model_vars_dataframe()["Spot_Price"].iloc[-1])
    assert_ledger_backs_pool(model)

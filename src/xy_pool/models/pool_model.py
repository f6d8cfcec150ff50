# src/xy_pool/models/pool_model.py

import logging

from mesa import Model
from mesa.datacollection import DataCollector

from xy_pool.agents.blockchain import LedgerAgent
from xy_pool.agents.curves import CURVES
from xy_pool.agents.ledger import TokenAssetLedger, TokenShareLedger
from xy_pool.agents.pool import PoolEngine
from xy_pool.agents.trader import LiquidityProviderAgent, TraderAgent
from xy_pool.errors import EmptyPool
from xy_pool.utils.config_parser import validate_pool_config

logger = logging.getLogger(__name__)


def _spot_price(m) -> float:
    try:
        return float(m.pool.spot_price())
    except EmptyPool:
        return float("nan")


class PoolModel(Model):
    """
    Mesa 3.0+ model driving a single constant-product pool.

    - A LedgerAgent holds every token balance; the pool moves tokens through
      TokenAssetLedger / TokenShareLedger adapters bound to ``pool_address``.
    - The pool creator is funded and bootstraps the pool during construction.
    - Traders and liquidity providers are activated in random order every step.
    """

    def __init__(self, config: dict):
        sim_cfg = config.get("simulation", {})
        seed = sim_cfg.get("seed", None)
        super().__init__(seed=seed)

        validate_pool_config(config)
        self.num_steps = sim_cfg.get("steps", 100)

        # --- Ledger and pool ---
        pool_cfg = config["pool"]
        self.token_x = pool_cfg["token_x"]
        self.token_y = pool_cfg["token_y"]
        self.share_token = pool_cfg.get("share_token", f"{self.token_x}-{self.token_y}-LP")
        self.pool_address = pool_cfg.get("address", "POOL")

        self.ledger = LedgerAgent(self, block_time=float(sim_cfg.get("block_time", 1.0)))

        self.metrics = {
            "k_history": [],
            "rejected": [],
            "swaps": 0,
            "deposits": 0,
            "withdrawals": 0,
        }

        self.pool = PoolEngine(
            self,
            asset_x=TokenAssetLedger(self.ledger, self.token_x, self.pool_address),
            asset_y=TokenAssetLedger(self.ledger, self.token_y, self.pool_address),
            shares=TokenShareLedger(self.ledger, self.share_token),
            token_x=self.token_x,
            token_y=self.token_y,
            curve=CURVES[pool_cfg.get("curve", "constant_product")](),
            on_swap=self._count("swaps"),
            on_deposit=self._count("deposits"),
            on_withdraw=self._count("withdrawals"),
        )

        # --- DataCollector ---
        self.datacollector = DataCollector(
            model_reporters={
                "Reserve_X": lambda m: m.pool.reserve_x,
                "Reserve_Y": lambda m: m.pool.reserve_y,
                "Total_Shares": lambda m: m.pool.total_shares,
                "K": lambda m: m.pool.get_k(),
                "Spot_Price": _spot_price,
            }
        )

        # --- Bootstrap and participants ---
        self._init_pool(pool_cfg)
        self._init_traders(config.get("traders", []))
        self._init_providers(config.get("providers", []))

    def _count(self, key: str):
        def hook(*_args):
            self.metrics[key] += 1
        return hook

    def _fund(self, name: str, cfg: dict, prefix: str = "balance_") -> None:
        self.ledger.create_account(
            name,
            {
                self.token_x: int(cfg.get(f"{prefix}x", 0)),
                self.token_y: int(cfg.get(f"{prefix}y", 0)),
            },
        )

    def _init_pool(self, pool_cfg: dict):
        """
        Fund the creator with at least the initial deposit and call ``init``.
        """
        creator = pool_cfg.get("creator", "creator")
        initial_x = pool_cfg["initial_x"]
        initial_y = pool_cfg["initial_y"]
        self.ledger.create_account(
            creator,
            {
                self.token_x: max(int(pool_cfg.get("creator_balance_x", 0)), initial_x),
                self.token_y: max(int(pool_cfg.get("creator_balance_y", 0)), initial_y),
            },
        )
        self.ledger.approve(self.token_x, creator, self.pool_address, initial_x)
        self.ledger.approve(self.token_y, creator, self.pool_address, initial_y)
        self.pool.init(creator, initial_x, initial_y)
        self.creator = creator

    def _init_traders(self, traders_cfg: list):
        for cfg in traders_cfg:
            self._fund(cfg["name"], cfg)
            TraderAgent(
                self,
                name=cfg["name"],
                max_trade=cfg["max_trade"],
                activity=float(cfg.get("activity", 1.0)),
            )

    def _init_providers(self, providers_cfg: list):
        for cfg in providers_cfg:
            self._fund(cfg["name"], cfg)
            LiquidityProviderAgent(
                self,
                name=cfg["name"],
                deposit_x=cfg["deposit_x"],
                activity=float(cfg.get("activity", 1.0)),
            )

    def record_rejection(self, who: str, action: str, err: Exception) -> None:
        """Keep a record of an operation the pool refused."""
        logger.debug("%s %s rejected: %s", who, action, err)
        self.metrics["rejected"].append(
            {"agent": who, "action": action, "error": type(err).__name__, "step": self.steps}
        )

    def step(self):
        """
        Advance the model one tick:
          1. Advance the ledger one block.
          2. Activate traders and providers in a random order.
          3. Collect data via DataCollector and record k.
        """
        self.ledger.step()
        self.agents.select(
            lambda a: isinstance(a, (TraderAgent, LiquidityProviderAgent))
        ).shuffle_do("step")

        self.datacollector.collect(self)
        self.metrics["k_history"].append(self.pool.get_k())

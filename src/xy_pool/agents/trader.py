from math import gcd
from typing import Dict, List, Optional
import logging

import numpy as np
from mesa import Agent

from xy_pool.agents.pool import Direction
from xy_pool.errors import PoolError

logger = logging.getLogger(__name__)


class TraderAgent(Agent):
    """
    Agent that swaps random amounts against the model's pool.

    Attributes:
        name (str): Holder identity on the ledger.
        max_trade (int): Upper bound of a single swap input.
        activity (float): Probability of trading on a given step.
        trades (List[dict]): Record of executed swaps.
        _rng (np.random.Generator): Random number generator for trade decisions.
    """

    def __init__(
        self,
        model,
        name: str,
        max_trade: int,
        activity: float = 1.0,
        seed: Optional[int] = None,
    ):
        super().__init__(model)
        self.name = name
        self.max_trade = int(max_trade)
        self.activity = float(activity)
        self.trades: List[Dict] = []
        if seed is None:
            seed = model.random.randrange(2**32)
        self._rng = np.random.default_rng(seed)

    def choose_trade(self):
        """Pick a direction and an input amount the trader can afford, or None."""
        pool = self.model.pool
        if self._rng.random() < 0.5:
            direction, token = Direction.X_TO_Y, pool.token_x
        else:
            direction, token = Direction.Y_TO_X, pool.token_y
        balance = self.model.ledger.get_token_balance(token, self.name)
        amount = min(int(self._rng.integers(1, self.max_trade + 1)), balance)
        if amount <= 0:
            return None
        return direction, token, amount

    def step(self):
        """With probability ``activity``, approve the pool and swap."""
        if self._rng.random() >= self.activity:
            return
        trade = self.choose_trade()
        if trade is None:
            return
        direction, token, amount = trade

        self.model.ledger.approve(token, self.name, self.model.pool_address, amount)
        try:
            amount_out = self.model.pool.swap(self.name, direction, amount)
        except PoolError as err:
            self.model.record_rejection(self.name, "swap", err)
            return
        self.trades.append(
            {"step": self.model.steps, "direction": direction.value, "in": amount, "out": amount_out}
        )


class LiquidityProviderAgent(Agent):
    """
    Agent that alternates between depositing into and fully exiting the pool.

    Deposits are sized to the largest multiple of the smallest exact-ratio unit
    ``(reserve_x / g, reserve_y / g)``, with ``g = gcd(reserve_x, reserve_y)``, that does
    not exceed ``deposit_x`` of token X.

    Attributes:
        name (str): Holder identity on the ledger.
        deposit_x (int): Target amount of token X per deposit.
        activity (float): Probability of acting on a given step.
        history (List[dict]): Record of deposits and withdrawals.
    """

    def __init__(
        self,
        model,
        name: str,
        deposit_x: int,
        activity: float = 1.0,
        seed: Optional[int] = None,
    ):
        super().__init__(model)
        self.name = name
        self.deposit_x = int(deposit_x)
        self.activity = float(activity)
        self.history: List[Dict] = []
        if seed is None:
            seed = model.random.randrange(2**32)
        self._rng = np.random.default_rng(seed)

    def share_balance(self) -> int:
        return self.model.pool.shares.balance_of(self.name)

    def plan_deposit(self):
        """Return an exact-ratio ``(amount_x, amount_y)`` within balances, or None."""
        pool = self.model.pool
        ledger = self.model.ledger
        reserve_x, reserve_y = pool.get_reserves()
        if reserve_x == 0 or reserve_y == 0:
            return None
        g = gcd(reserve_x, reserve_y)
        unit_x, unit_y = reserve_x // g, reserve_y // g
        units = min(
            self.deposit_x // unit_x,
            ledger.get_token_balance(pool.token_x, self.name) // unit_x,
            ledger.get_token_balance(pool.token_y, self.name) // unit_y,
        )
        if units == 0:
            return None
        return units * unit_x, units * unit_y

    def step(self):
        if self._rng.random() >= self.activity:
            return
        pool = self.model.pool
        ledger = self.model.ledger

        held = self.share_balance()
        try:
            if held:
                amounts = pool.remove_liquidity(self.name, held)
                self.history.append({"step": self.model.steps, "action": "withdraw", "shares": held, "amounts": amounts})
                return

            planned = self.plan_deposit()
            if planned is None:
                return
            amount_x, amount_y = planned
            ledger.approve(pool.token_x, self.name, self.model.pool_address, amount_x)
            ledger.approve(pool.token_y, self.name, self.model.pool_address, amount_y)
            issued = pool.add_liquidity(self.name, amount_x, amount_y)
            self.history.append({"step": self.model.steps, "action": "deposit", "shares": issued, "amounts": planned})
        except PoolError as err:
            self.model.record_rejection(self.name, "liquidity", err)

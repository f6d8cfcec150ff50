from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from fractions import Fraction
from typing import Callable, Iterator, Optional, Tuple, Union
import logging
import threading

from mesa import Agent

from xy_pool.agents.curves import BaseCurve, ConstantProductCurve
from xy_pool.agents.ledger import AssetLedger, ShareLedger
from xy_pool.errors import (
    AlreadyInitialized,
    EmptyPool,
    InsufficientShareBalance,
    NotInitialized,
    ReentrantCall,
    ReserveDepleted,
    SlippageExceeded,
    ZeroAmount,
    ZeroOutput,
)
from xy_pool.utils.math_helpers import check_amount, checked

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    """
    Side of a swap.
    - X_TO_Y: Sell token X, receive token Y.
    - Y_TO_X: Sell token Y, receive token X.
    """
    X_TO_Y = "x_to_y"
    Y_TO_X = "y_to_x"


@dataclass(frozen=True)
class PoolState:
    """
    Committed ledger of a pool. Instances are immutable; the engine replaces its
    current state as a whole when an operation commits.

    Attributes:
        reserve_x (int): Units of token X held by the pool.
        reserve_y (int): Units of token Y held by the pool.
        total_shares (int): Outstanding share supply.
        initialized (bool): Set once by the first successful ``init``; never reset.
    """
    reserve_x: int = 0
    reserve_y: int = 0
    total_shares: int = 0
    initialized: bool = False

    @property
    def k(self) -> int:
        """Constant product of the reserves."""
        return self.reserve_x * self.reserve_y


class PoolEngine(Agent):
    """
    Two-asset constant-product pool agent with integer reserves and proportional shares.

    Each operation validates its inputs, prices the trade against the committed
    :class:`PoolState`, calls the asset and share ledgers in a fixed order, and only then
    commits the new state. The whole sequence runs in a per-pool critical section: other
    threads wait for it, and a ledger calling back into the pool while it is in flight
    gets :class:`~xy_pool.errors.ReentrantCall`. If any ledger call fails, every ledger is
    restored to its snapshot from before the operation and the error is re-raised.

    Attributes:
        asset_x (AssetLedger): Ledger moving token X.
        asset_y (AssetLedger): Ledger moving token Y.
        shares (ShareLedger): Ledger issuing and redeeming pool shares.
        token_x (str): Symbol of token X.
        token_y (str): Symbol of token Y.
        curve (BaseCurve): Pricing curve.
        on_init (Callable): Optional hook after the pool is bootstrapped.
        on_swap (Callable): Optional hook for swap events.
        on_deposit (Callable): Optional hook for deposit events.
        on_withdraw (Callable): Optional hook for withdraw events.
    """

    def __init__(
        self,
        model,
        asset_x: AssetLedger,
        asset_y: AssetLedger,
        shares: ShareLedger,
        token_x: str = "X",
        token_y: str = "Y",
        curve: Optional[BaseCurve] = None,
        on_init: Optional[Callable] = None,
        on_swap: Optional[Callable] = None,
        on_deposit: Optional[Callable] = None,
        on_withdraw: Optional[Callable] = None,
    ):
        """Initialize an empty, uninitialized pool."""
        super().__init__(model)

        self.asset_x = asset_x
        self.asset_y = asset_y
        self.shares = shares
        self.token_x = token_x
        self.token_y = token_y
        self.curve = curve if curve is not None else ConstantProductCurve()

        self._state = PoolState()
        self._mutex = threading.Lock()
        self._owner: Optional[int] = None

        self.on_init = on_init
        self.on_swap = on_swap
        self.on_deposit = on_deposit
        self.on_withdraw = on_withdraw

    # Read-only accessors

    @property
    def state(self) -> PoolState:
        """Last committed state."""
        return self._state

    @property
    def reserve_x(self) -> int:
        return self._state.reserve_x

    @property
    def reserve_y(self) -> int:
        return self._state.reserve_y

    @property
    def total_shares(self) -> int:
        return self._state.total_shares

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    def get_reserves(self) -> Tuple[int, int]:
        """Return current reserves of token_x and token_y."""
        return self._state.reserve_x, self._state.reserve_y

    def get_k(self) -> int:
        """Return the invariant constant-product (k = x * y)."""
        return self._state.k

    def spot_price(self) -> Fraction:
        """Price of one unit of X in units of Y, as an exact fraction."""
        state = self._require_liquidity(self._state)
        if state.reserve_x == 0:
            raise EmptyPool("Pool holds no token X")
        return Fraction(state.reserve_y, state.reserve_x)

    # Critical section

    @contextmanager
    def _critical_section(self, operation: str) -> Iterator[None]:
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrantCall(f"{operation} called while another operation is in flight")
        with self._mutex:
            self._owner = me
            try:
                yield
            finally:
                self._owner = None

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[None]:
        collaborators = (self.asset_x, self.asset_y, self.shares)
        snapshots = [c.snapshot() for c in collaborators]
        try:
            yield
        except Exception as err:
            logger.warning(
                "%s on pool %s rolled back: %s", operation, self.unique_id, err
            )
            for collaborator, snap in reversed(list(zip(collaborators, snapshots))):
                try:
                    collaborator.restore(snap)
                except Exception:
                    logger.exception(
                        "Restoring %r after failed %s on pool %s",
                        collaborator, operation, self.unique_id,
                    )
            raise

    # Validation helpers

    @staticmethod
    def _require_positive(**amounts: int) -> None:
        for name, value in amounts.items():
            check_amount(value, name)
        for name, value in amounts.items():
            if value == 0:
                raise ZeroAmount(f"{name} must be greater than zero")

    @staticmethod
    def _require_liquidity(state: PoolState) -> PoolState:
        if not state.initialized:
            raise NotInitialized("Pool has not been initialized")
        if state.total_shares == 0:
            raise EmptyPool("Pool has no outstanding shares")
        return state

    def _sides(self, direction: Direction, state: PoolState):
        if direction == Direction.X_TO_Y:
            return self.asset_x, self.asset_y, state.reserve_x, state.reserve_y
        return self.asset_y, self.asset_x, state.reserve_y, state.reserve_x

    def _price_swap(self, direction: Direction, amount_in: int) -> Tuple[PoolState, int]:
        state = self._require_liquidity(self._state)
        _, _, reserve_in, reserve_out = self._sides(direction, state)
        if reserve_in == 0 or reserve_out == 0:
            raise EmptyPool("Pool holds no reserve on one side")
        amount_out, new_reserve_in, new_reserve_out = self.curve.compute_swap(
            amount_in=amount_in,
            reserve_in=reserve_in,
            reserve_out=reserve_out,
        )
        if amount_out == 0:
            raise ZeroOutput(f"Swapping {amount_in} yields no output at current reserves")
        if new_reserve_out == 0:
            raise ReserveDepleted(
                f"Swapping {amount_in} would drain the {reserve_out} reserve of outstanding shares"
            )
        if direction == Direction.X_TO_Y:
            new_state = replace(state, reserve_x=new_reserve_in, reserve_y=new_reserve_out)
        else:
            new_state = replace(state, reserve_x=new_reserve_out, reserve_y=new_reserve_in)
        return new_state, amount_out

    # Operations

    def init(self, caller, amount_x: int, amount_y: int) -> int:
        """
        Bootstrap the pool with its first deposit and set the initial price ratio.

        Args:
            caller: Identity depositing the tokens and receiving the shares.
            amount_x (int): Amount of token X.
            amount_y (int): Amount of token Y.

        Returns:
            int: Shares issued, ``amount_x * amount_y``.
        """
        with self._critical_section("init"):
            if self._state.initialized:
                raise AlreadyInitialized("Pool is already initialized")
            self._require_positive(amount_x=amount_x, amount_y=amount_y)

            issued = self.curve.compute_initial_shares(amount_x, amount_y)
            new_state = PoolState(amount_x, amount_y, issued, True)

            with self._atomic("init"):
                self.asset_x.transfer_in(caller, amount_x)
                self.asset_y.transfer_in(caller, amount_y)
                self.shares.issue(caller, issued)
            self._state = new_state

        logger.info(
            "Pool %s initialized by %s with (%d, %d); issued %d shares",
            self.unique_id, caller, amount_x, amount_y, issued,
        )
        if self.on_init:
            self.on_init(self, caller, issued)
        return issued

    def add_liquidity(self, caller, amount_x: int, amount_y: int) -> int:
        """
        Deposit tokens in the exact reserve ratio and receive shares.

        Args:
            caller: Liquidity provider.
            amount_x (int): Amount of token X.
            amount_y (int): Amount of token Y.

        Returns:
            int: Shares issued, ``floor(amount_x * total_shares / reserve_x)``.
        """
        with self._critical_section("add_liquidity"):
            self._require_positive(amount_x=amount_x, amount_y=amount_y)
            state = self._require_liquidity(self._state)

            issued = self.curve.compute_deposit_shares(
                reserve_x=state.reserve_x,
                reserve_y=state.reserve_y,
                total_shares=state.total_shares,
                amount_x=amount_x,
                amount_y=amount_y,
            )
            new_state = replace(
                state,
                reserve_x=checked(state.reserve_x + amount_x, "reserve X"),
                reserve_y=checked(state.reserve_y + amount_y, "reserve Y"),
                total_shares=checked(state.total_shares + issued, "share supply"),
            )

            with self._atomic("add_liquidity"):
                self.asset_x.transfer_in(caller, amount_x)
                self.asset_y.transfer_in(caller, amount_y)
                self.shares.issue(caller, issued)
            self._state = new_state

        logger.info(
            "%s deposited (%d, %d) into pool %s for %d shares",
            caller, amount_x, amount_y, self.unique_id, issued,
        )
        if self.on_deposit:
            self.on_deposit(self, caller, issued)
        return issued

    def remove_liquidity(self, caller, share_amount: int) -> Tuple[int, int]:
        """
        Redeem shares for a proportional slice of both reserves.

        Args:
            caller: Share holder.
            share_amount (int): Shares to redeem.

        Returns:
            Tuple[int, int]: Amounts of token X and Y withdrawn.
        """
        with self._critical_section("remove_liquidity"):
            self._require_positive(share_amount=share_amount)
            state = self._require_liquidity(self._state)
            if share_amount > state.total_shares:
                raise InsufficientShareBalance(
                    f"Cannot redeem {share_amount} of {state.total_shares} outstanding shares"
                )

            amount_x_out, amount_y_out = self.curve.compute_withdraw(
                reserve_x=state.reserve_x,
                reserve_y=state.reserve_y,
                total_shares=state.total_shares,
                share_amount=share_amount,
            )
            new_state = replace(
                state,
                reserve_x=state.reserve_x - amount_x_out,
                reserve_y=state.reserve_y - amount_y_out,
                total_shares=state.total_shares - share_amount,
            )

            with self._atomic("remove_liquidity"):
                self.shares.redeem(caller, share_amount)
                self.asset_x.transfer_out(caller, amount_x_out)
                self.asset_y.transfer_out(caller, amount_y_out)
            self._state = new_state

        logger.info(
            "%s redeemed %d shares from pool %s for (%d, %d)",
            caller, share_amount, self.unique_id, amount_x_out, amount_y_out,
        )
        if self.on_withdraw:
            self.on_withdraw(self, caller, (amount_x_out, amount_y_out))
        return amount_x_out, amount_y_out

    def swap(
        self,
        caller,
        direction: Union[str, Direction],
        amount_in: int,
        min_amount_out: int = 0,
    ) -> int:
        """
        Sell ``amount_in`` of one token for the other along the constant product.

        Args:
            caller: Trader paying the input and receiving the output.
            direction (Direction): ``X_TO_Y`` or ``Y_TO_X``.
            amount_in (int): Amount of the input token.
            min_amount_out (int): Reject the trade if it would return less.

        Returns:
            int: Amount of the output token received.
        """
        direction = Direction(direction)
        with self._critical_section("swap"):
            self._require_positive(amount_in=amount_in)
            check_amount(min_amount_out, "min_amount_out")
            new_state, amount_out = self._price_swap(direction, amount_in)
            if amount_out < min_amount_out:
                raise SlippageExceeded(f"Output {amount_out} below minimum {min_amount_out}")
            asset_in, asset_out, _, _ = self._sides(direction, new_state)

            with self._atomic("swap"):
                asset_in.transfer_in(caller, amount_in)
                asset_out.transfer_out(caller, amount_out)
            self._state = new_state

        logger.info(
            "%s swapped %d %s on pool %s for %d",
            caller, amount_in, direction.value, self.unique_id, amount_out,
        )
        if self.on_swap:
            self.on_swap(self, amount_in, amount_out, direction)
        return amount_out

    # Quotes

    def quote_swap(self, direction: Union[str, Direction], amount_in: int) -> int:
        """Return what ``swap`` would pay out right now, without trading."""
        direction = Direction(direction)
        self._require_positive(amount_in=amount_in)
        _, amount_out = self._price_swap(direction, amount_in)
        logger.debug("Quoted %d %s -> %d", amount_in, direction.value, amount_out)
        return amount_out

    def quote_deposit(self, amount_x: int) -> Tuple[int, int]:
        """
        Return the exact Y co-deposit and the shares a deposit of ``amount_x`` would get.

        Raises:
            RatioMismatch: If no integer Y amount matches the reserve ratio.
        """
        self._require_positive(amount_x=amount_x)
        state = self._require_liquidity(self._state)
        amount_y = self.curve.quote_co_deposit(state.reserve_x, state.reserve_y, amount_x)
        issued = self.curve.compute_deposit_shares(
            state.reserve_x, state.reserve_y, state.total_shares, amount_x, amount_y
        )
        return amount_y, issued

    def quote_withdraw(self, share_amount: int) -> Tuple[int, int]:
        """Return the token amounts redeeming ``share_amount`` would return."""
        self._require_positive(share_amount=share_amount)
        state = self._require_liquidity(self._state)
        if share_amount > state.total_shares:
            raise InsufficientShareBalance(
                f"Cannot redeem {share_amount} of {state.total_shares} outstanding shares"
            )
        return self.curve.compute_withdraw(
            state.reserve_x, state.reserve_y, state.total_shares, share_amount
        )

    def step(self):
        """Pools are reactive; no internal logic on each step."""
        pass

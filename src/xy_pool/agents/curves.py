from abc import ABC, abstractmethod
from typing import Tuple

from xy_pool.errors import RatioMismatch
from xy_pool.utils.math_helpers import checked, get_amount_out, mul_div_floor


class BaseCurve(ABC):
    """
    Abstract base class for integer pool pricing curves.

    A curve is a set of pure functions over reserves and share supply; it never touches
    balances or pool state. To implement a custom curve, subclass this and implement:
    - compute_initial_shares
    - compute_swap
    - compute_deposit_shares
    - quote_co_deposit
    - compute_withdraw
    """

    @abstractmethod
    def compute_initial_shares(self, amount_x: int, amount_y: int) -> int:
        """
        Determine the share supply created by the bootstrap deposit.

        Args:
            amount_x (int): Amount of token X deposited.
            amount_y (int): Amount of token Y deposited.

        Returns:
            int: Shares issued to the pool creator.
        """
        pass

    @abstractmethod
    def compute_swap(
        self,
        amount_in: int,
        reserve_in: int,
        reserve_out: int,
    ) -> Tuple[int, int, int]:
        """
        Calculate the output of a swap and the reserves after it.

        Args:
            amount_in (int): Amount of input token provided.
            reserve_in (int): Current reserve of the input token.
            reserve_out (int): Current reserve of the output token.

        Returns:
            Tuple[int, int, int]: Output amount, new input reserve, new output reserve.
        """
        pass

    @abstractmethod
    def compute_deposit_shares(
        self,
        reserve_x: int,
        reserve_y: int,
        total_shares: int,
        amount_x: int,
        amount_y: int,
    ) -> int:
        """
        Determine shares to issue for a deposit into a funded pool.

        Args:
            reserve_x (int): Reserve of token X.
            reserve_y (int): Reserve of token Y.
            total_shares (int): Outstanding share supply.
            amount_x (int): Amount of token X to deposit.
            amount_y (int): Amount of token Y to deposit.

        Returns:
            int: Shares to issue.
        """
        pass

    @abstractmethod
    def quote_co_deposit(self, reserve_x: int, reserve_y: int, amount_x: int) -> int:
        """
        Determine the amount of token Y a deposit of ``amount_x`` must be paired with.

        Args:
            reserve_x (int): Reserve of token X.
            reserve_y (int): Reserve of token Y.
            amount_x (int): Amount of token X to deposit.

        Returns:
            int: Required amount of token Y.
        """
        pass

    @abstractmethod
    def compute_withdraw(
        self,
        reserve_x: int,
        reserve_y: int,
        total_shares: int,
        share_amount: int,
    ) -> Tuple[int, int]:
        """
        Determine token amounts to return when shares are redeemed.

        Args:
            reserve_x (int): Reserve of token X.
            reserve_y (int): Reserve of token Y.
            total_shares (int): Outstanding share supply.
            share_amount (int): Shares being redeemed.

        Returns:
            Tuple[int, int]: Amounts of token X and Y to return.
        """
        pass


class ConstantProductCurve(BaseCurve):
    """
    Constant product curve x * y = k with truncating integer division.

    Every division floors. Deposits get no more shares than their exact entitlement and
    withdrawals get no more tokens. For swaps the floor applies to the new output reserve,
    so the reserve product may settle just below k; see StrictConstantProductCurve.
    """

    def compute_initial_shares(self, amount_x: int, amount_y: int) -> int:
        return checked(amount_x * amount_y, "initial share supply")

    def compute_swap(
        self,
        amount_in: int,
        reserve_in: int,
        reserve_out: int,
    ) -> Tuple[int, int, int]:
        amount_out = get_amount_out(amount_in, reserve_in, reserve_out)
        return amount_out, reserve_in + amount_in, reserve_out - amount_out

    def is_proportional(self, reserve_x: int, reserve_y: int, amount_x: int, amount_y: int) -> bool:
        """Return True if ``amount_x / amount_y`` equals ``reserve_x / reserve_y`` exactly."""
        return checked(amount_x * reserve_y, "ratio check") == checked(amount_y * reserve_x, "ratio check")

    def quote_co_deposit(self, reserve_x: int, reserve_y: int, amount_x: int) -> int:
        """
        Return the exact amount of Y that must accompany ``amount_x`` of X.

        Raises:
            RatioMismatch: If no integer amount of Y matches the reserve ratio.
        """
        numerator = checked(amount_x * reserve_y, "co-deposit")
        if numerator % reserve_x:
            raise RatioMismatch(
                f"No exact Y amount matches {amount_x} X at reserves ({reserve_x}, {reserve_y})"
            )
        return numerator // reserve_x

    def compute_deposit_shares(
        self,
        reserve_x: int,
        reserve_y: int,
        total_shares: int,
        amount_x: int,
        amount_y: int,
    ) -> int:
        if not self.is_proportional(reserve_x, reserve_y, amount_x, amount_y):
            raise RatioMismatch(
                f"Deposit must match pool ratio {reserve_x}:{reserve_y}, got {amount_x}:{amount_y}"
            )
        return mul_div_floor(amount_x, total_shares, reserve_x)

    def compute_withdraw(
        self,
        reserve_x: int,
        reserve_y: int,
        total_shares: int,
        share_amount: int,
    ) -> Tuple[int, int]:
        amount_x_out = mul_div_floor(share_amount, reserve_x, total_shares)
        amount_y_out = mul_div_floor(share_amount, reserve_y, total_shares)
        return amount_x_out, amount_y_out


class StrictConstantProductCurve(ConstantProductCurve):
    """
    Constant product curve whose swaps never lower ``reserve_x * reserve_y``.

    The new output reserve is rounded up, so the trader receives at most the
    exact-invariant amount and an input too small to move the output reserve by a whole
    unit yields zero output.
    """

    def compute_swap(
        self,
        amount_in: int,
        reserve_in: int,
        reserve_out: int,
    ) -> Tuple[int, int, int]:
        amount_out = get_amount_out(amount_in, reserve_in, reserve_out, round_up=True)
        return amount_out, reserve_in + amount_in, reserve_out - amount_out


CURVES = {
    "constant_product": ConstantProductCurve,
    "strict_constant_product": StrictConstantProductCurve,
}

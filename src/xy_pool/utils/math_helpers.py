from xy_pool.errors import AmountOverflow, InvalidAmount

UINT256_MAX = 2**256 - 1


def check_amount(value, name: str = "amount") -> int:
    """
    Validate that a value is usable as an unsigned 256-bit token amount.

    Parameters
    ----------
    value : int
        The candidate amount.
    name : str
        Name used in the error message.

    Returns
    -------
    int
        The same value, unchanged.

    Raises
    ------
    InvalidAmount
        If the value is not an ``int`` (``bool`` is rejected), is negative, or exceeds
        ``UINT256_MAX``.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise InvalidAmount(f"{name} out of uint256 range: {value}")
    return value


def checked(value: int, what: str = "result") -> int:
    """Raise ``AmountOverflow`` if ``value`` does not fit in a uint256."""
    if value > UINT256_MAX:
        raise AmountOverflow(f"{what} overflows uint256")
    return value


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    """
    Compute ``floor(a * b / denominator)`` with the product checked for overflow.

    The multiplication is performed before the division so no precision is lost, and the
    result is truncated toward zero, which for unsigned operands is the floor.

    Parameters
    ----------
    a, b : int
        Factors of the numerator.
    denominator : int
        Strictly positive divisor.

    Returns
    -------
    int
        The truncated quotient.
    """
    if denominator <= 0:
        raise ZeroDivisionError("denominator must be positive")
    return checked(a * b, "product") // denominator


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int, round_up: bool = False) -> int:
    """
    Compute the output amount of a constant-product swap with integer arithmetic.

    The invariant is taken from the pre-trade reserves, ``k = reserve_in * reserve_out``;
    the new output reserve is ``floor(k / (reserve_in + amount_in))`` and the output is the
    difference.

    Flooring the new output reserve means ``new_reserve_in * new_reserve_out <= k``: the
    product can end up slightly below ``k`` (by less than ``new_reserve_in``). With
    ``round_up=True`` the new output reserve is the ceiling instead, so the product never
    decreases and very small inputs produce no output at all.

    Parameters
    ----------
    amount_in : int
        The input token amount being swapped into the pool.
    reserve_in : int
        The amount of input token currently in the pool.
    reserve_out : int
        The amount of output token currently in the pool.
    round_up : bool
        Round the new output reserve up instead of down.

    Returns
    -------
    int
        The amount of output token the caller receives.
    """
    k = checked(reserve_in * reserve_out, "constant product")
    new_reserve_in = checked(reserve_in + amount_in, "input reserve")
    if new_reserve_in == 0:
        return 0
    if round_up:
        new_reserve_out = -(-k // new_reserve_in)
    else:
        new_reserve_out = k // new_reserve_in
    return reserve_out - new_reserve_out

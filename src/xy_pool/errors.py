"""
Typed failures raised by the pool engine and its ledgers.

Every error derives from :class:`PoolError`, itself a ``ValueError``, so callers that
only care about "the operation was rejected" can catch one type. Errors are terminal for
the operation that raised them: state is rolled back and nothing is retried.
"""


class PoolError(ValueError):
    """Base class for every rejected pool or ledger operation."""


class AlreadyInitialized(PoolError):
    """``init`` was called on a pool that has already been bootstrapped."""


class NotInitialized(PoolError):
    """An operation that needs reserves was called before ``init``."""


class EmptyPool(NotInitialized):
    """The pool was initialized but every share has since been withdrawn."""


class ZeroAmount(PoolError):
    """A required amount was zero."""


class InvalidAmount(PoolError):
    """An amount was not a non-negative integer within the 256-bit range."""


class AmountOverflow(PoolError):
    """A product or resulting balance would not fit in an unsigned 256-bit integer."""


class RatioMismatch(PoolError):
    """A deposit does not match the current reserve ratio exactly."""


class ZeroOutput(PoolError):
    """A swap input is too small to produce any output after rounding."""


class ReserveDepleted(PoolError):
    """A swap would drain the output reserve while shares are still outstanding."""


class SlippageExceeded(PoolError):
    """A swap would return less than the caller's minimum."""


class ReentrantCall(PoolError):
    """An operation was invoked while another one on the same pool was in flight."""


class LedgerError(PoolError):
    """Base class for failures surfaced by the asset and share ledgers."""


class InsufficientBalance(LedgerError):
    """The source account cannot cover a transfer."""


class InsufficientAllowance(LedgerError):
    """The pool has not been approved to move that much of the caller's tokens."""


class InsufficientShareBalance(LedgerError):
    """The holder owns fewer shares than it is trying to redeem."""


class InsufficientPoolBalance(LedgerError):
    """The pool account lacks the funds for an outgoing transfer."""

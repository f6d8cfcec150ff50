"""
Collaborator contracts the pool engine moves tokens through, and adapters that bind
them to a :class:`~xy_pool.agents.blockchain.LedgerAgent`.

The engine only ever talks to :class:`AssetLedger` and :class:`ShareLedger`. Any code
behind them is treated as untrusted: it may fail, and it may try to call back into the
engine before returning.
"""

from abc import ABC, abstractmethod
from typing import Any

from xy_pool.agents.blockchain import LedgerAgent
from xy_pool.errors import (
    InsufficientBalance,
    InsufficientPoolBalance,
    InsufficientShareBalance,
)


class AssetLedger(ABC):
    """Moves units of one pooled asset between callers and the pool."""

    @abstractmethod
    def transfer_in(self, frm: Any, amount: int) -> None:
        """
        Move ``amount`` from ``frm`` to the pool.

        Raises:
            InsufficientBalance: If ``frm`` cannot cover the amount.
            InsufficientAllowance: If the pool is not approved for the amount.
        """

    @abstractmethod
    def transfer_out(self, to: Any, amount: int) -> None:
        """
        Move ``amount`` from the pool to ``to``.

        Raises:
            InsufficientPoolBalance: If the pool lacks the funds.
        """

    @abstractmethod
    def snapshot(self) -> Any:
        """Return an opaque token that ``restore`` can roll back to."""

    @abstractmethod
    def restore(self, snapshot: Any) -> None:
        """Undo every movement made since ``snapshot`` was taken."""


class ShareLedger(ABC):
    """Issues and redeems the pool's accounting token."""

    @abstractmethod
    def issue(self, to: Any, amount: int) -> None:
        """Create ``amount`` shares for ``to``."""

    @abstractmethod
    def redeem(self, frm: Any, amount: int) -> None:
        """
        Destroy ``amount`` of ``frm``'s shares.

        Raises:
            InsufficientShareBalance: If ``frm`` holds fewer than ``amount``.
        """

    @abstractmethod
    def total_issued(self) -> int:
        """Return the outstanding share supply."""

    @abstractmethod
    def snapshot(self) -> Any:
        """Return an opaque token that ``restore`` can roll back to."""

    @abstractmethod
    def restore(self, snapshot: Any) -> None:
        """Undo every issuance and redemption made since ``snapshot`` was taken."""


class TokenAssetLedger(AssetLedger):
    """
    An :class:`AssetLedger` for one token on a :class:`LedgerAgent`.

    Incoming transfers use ``transfer_from`` with the pool as spender, so callers must
    ``approve`` the pool first.

    Attributes:
        ledger (LedgerAgent): Backing token ledger.
        token (Any): Token identifier on the ledger.
        pool_address (Any): Holder identity of the pool on the ledger.
    """

    def __init__(self, ledger: LedgerAgent, token: Any, pool_address: Any):
        self.ledger = ledger
        self.token = token
        self.pool_address = pool_address

    def transfer_in(self, frm: Any, amount: int) -> None:
        self.ledger.transfer_from(self.token, self.pool_address, frm, self.pool_address, amount)

    def transfer_out(self, to: Any, amount: int) -> None:
        try:
            self.ledger.transfer_token(self.token, self.pool_address, to, amount)
        except InsufficientBalance as err:
            raise InsufficientPoolBalance(str(err)) from err

    def balance(self) -> int:
        """Return the pool's balance of this token."""
        return self.ledger.get_token_balance(self.token, self.pool_address)

    def snapshot(self) -> Any:
        return self.ledger.snapshot_state()

    def restore(self, snapshot: Any) -> None:
        self.ledger.restore_state(snapshot)


class TokenShareLedger(ShareLedger):
    """A :class:`ShareLedger` that mints and burns a share token on a :class:`LedgerAgent`."""

    def __init__(self, ledger: LedgerAgent, token: Any):
        self.ledger = ledger
        self.token = token

    def issue(self, to: Any, amount: int) -> None:
        self.ledger.mint(self.token, to, amount)

    def redeem(self, frm: Any, amount: int) -> None:
        try:
            self.ledger.burn(self.token, frm, amount)
        except InsufficientBalance as err:
            raise InsufficientShareBalance(str(err)) from err

    def total_issued(self) -> int:
        return self.ledger.total_supply(self.token)

    def balance_of(self, holder: Any) -> int:
        """Return the shares held by ``holder``."""
        return self.ledger.get_token_balance(self.token, holder)

    def snapshot(self) -> Any:
        return self.ledger.snapshot_state()

    def restore(self, snapshot: Any) -> None:
        self.ledger.restore_state(snapshot)

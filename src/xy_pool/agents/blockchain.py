from mesa import Agent
from typing import Any, Dict, List, Optional, Tuple
import logging

from xy_pool.errors import InsufficientAllowance, InsufficientBalance
from xy_pool.utils.math_helpers import check_amount, checked

logger = logging.getLogger(__name__)


class LedgerAgent(Agent):
    """
    A Mesa agent simulating the token ledger a pool is deployed against.

    Balances are unsigned integers keyed by ``(token, holder)``. Holders and tokens are
    arbitrary hashable identifiers (strings in the bundled simulation).

    Supports:
        - Per-token balances and total supply (mint / burn)
        - Direct transfers and allowance-based ``transfer_from``
        - Event logging per block
        - Whole-ledger snapshots for rolling back failed operations

    Attributes:
        current_block (int): Current block height, advanced by ``step``.
        timestamp (float): Chain time, advanced by ``block_time`` every block.
        token_balances (Dict[Tuple[Any, Any], int]): Balance per (token, holder).
        allowances (Dict[Tuple[Any, Any, Any], int]): Allowance per (token, owner, spender).
        supplies (Dict[Any, int]): Total supply per token.
        event_logs (Dict[int, List[Tuple[str, Any]]]): Events recorded per block.
    """

    def __init__(self, model, block_time: float = 1.0):
        """Initialize an empty ledger."""
        super().__init__(model)
        self.current_block: int = 0
        self.timestamp: float = 0.0
        self.block_time: float = float(block_time)
        self.token_balances: Dict[Tuple[Any, Any], int] = {}
        self.allowances: Dict[Tuple[Any, Any, Any], int] = {}
        self.supplies: Dict[Any, int] = {}
        self.event_logs: Dict[int, List[Tuple[str, Any]]] = {}

    def create_account(self, holder: Any, balances: Optional[Dict[Any, int]] = None) -> None:
        """Register a holder, minting any initial token balances to it."""
        for token, amount in (balances or {}).items():
            if amount:
                self.mint(token, holder, amount)

    def get_token_balance(self, token: Any, holder: Any) -> int:
        """Return the balance of a holder for a given token."""
        return self.token_balances.get((token, holder), 0)

    def total_supply(self, token: Any) -> int:
        """Return the total minted and not burned supply of a token."""
        return self.supplies.get(token, 0)

    def allowance(self, token: Any, owner: Any, spender: Any) -> int:
        """Return how much of ``owner``'s token ``spender`` may move."""
        return self.allowances.get((token, owner, spender), 0)

    def mint(self, token: Any, to: Any, amount: int) -> None:
        """Create ``amount`` new units of ``token`` in ``to``'s balance."""
        check_amount(amount)
        self.supplies[token] = checked(self.total_supply(token) + amount, "total supply")
        key = (token, to)
        self.token_balances[key] = self.token_balances.get(key, 0) + amount
        self._log_event(self.current_block, "Mint", {"token": token, "to": to, "amount": amount})

    def burn(self, token: Any, frm: Any, amount: int) -> None:
        """Destroy ``amount`` units of ``token`` held by ``frm``."""
        check_amount(amount)
        key = (token, frm)
        balance = self.token_balances.get(key, 0)
        if balance < amount:
            raise InsufficientBalance(f"{frm} holds {balance} {token}, cannot burn {amount}")
        self.token_balances[key] = balance - amount
        self.supplies[token] = self.total_supply(token) - amount
        self._log_event(self.current_block, "Burn", {"token": token, "from": frm, "amount": amount})

    def transfer_token(self, token: Any, frm: Any, to: Any, amount: int) -> None:
        """Transfer tokens between two holders."""
        check_amount(amount)
        key_from = (token, frm)
        key_to = (token, to)
        balance = self.token_balances.get(key_from, 0)
        if balance < amount:
            raise InsufficientBalance(f"{frm} holds {balance} {token}, cannot send {amount}")
        self.token_balances[key_from] = balance - amount
        self.token_balances[key_to] = self.token_balances.get(key_to, 0) + amount
        logger.debug("Transfer %s %s from %s to %s", amount, token, frm, to)
        self._log_event(
            self.current_block,
            "Transfer",
            {"token": token, "from": frm, "to": to, "amount": amount},
        )

    def approve(self, token: Any, owner: Any, spender: Any, amount: int) -> None:
        """Set the amount of ``owner``'s token ``spender`` may move."""
        check_amount(amount)
        self.allowances[(token, owner, spender)] = amount
        self._log_event(
            self.current_block,
            "Approval",
            {"token": token, "owner": owner, "spender": spender, "amount": amount},
        )

    def transfer_from(self, token: Any, spender: Any, frm: Any, to: Any, amount: int) -> None:
        """Move ``frm``'s tokens on its behalf, consuming ``spender``'s allowance."""
        check_amount(amount)
        allowed = self.allowance(token, frm, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} may move {allowed} of {frm}'s {token}, requested {amount}"
            )
        self.transfer_token(token, frm, to, amount)
        self.allowances[(token, frm, spender)] = allowed - amount

    def _log_event(self, block: int, event_name: str, payload: Any) -> None:
        """Store an event in the event log for a specific block."""
        if block not in self.event_logs:
            self.event_logs[block] = []
        self.event_logs[block].append((event_name, payload))

    def get_events(self, block: Optional[int] = None) -> List[Tuple[str, Any]]:
        """Get all events from a block or the full ledger."""
        if block is None:
            all_events = []
            for ev_list in self.event_logs.values():
                all_events.extend(ev_list)
            return all_events
        return self.event_logs.get(block, [])

    def snapshot_state(self) -> Dict[str, Any]:
        """Capture balances, allowances, supplies and events for a later rollback."""
        return {
            "token_balances": self.token_balances.copy(),
            "allowances": self.allowances.copy(),
            "supplies": self.supplies.copy(),
            "event_logs": {b: list(ev) for b, ev in self.event_logs.items()},
        }

    def restore_state(self, snap: Dict[str, Any]) -> None:
        """Revert the ledger to a snapshot taken with ``snapshot_state``."""
        self.token_balances = snap["token_balances"].copy()
        self.allowances = snap["allowances"].copy()
        self.supplies = snap["supplies"].copy()
        self.event_logs = {b: list(ev) for b, ev in snap["event_logs"].items()}

    def step(self) -> None:
        """Advance the ledger one block forward."""
        self.current_block += 1
        self.timestamp += self.block_time

"""Settlement rail: the boundary where currency actually moves.

The pool never touches balances directly. Inbound stakes, withdrawals
and the sweep all go through a CurrencyRail, so the accounting engine
stays independent of whatever moves the native currency.

An outbound transfer can hand control to code the pool does not own
(the recipient's receive hook). Pool operations therefore commit all
of their state before calling transfer() toward an external account.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from stakepool.staking.errors import InsufficientBalanceError

ReceiveHook = Callable[[str, str, int], None]


@runtime_checkable
class CurrencyRail(Protocol):
    """Contract for anything that can move native currency."""

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Move amount from sender to recipient or raise."""
        ...

    def balance_of(self, account: str) -> int:
        ...


class InMemoryRail:
    """Local rail with integer balances per account.

    Receive hooks run after the recipient has been credited, the same
    point at which a real recipient would gain control.

    Usage:
        rail = InMemoryRail()
        rail.credit("alice", 10 ** 18)
        rail.transfer("alice", "pool", 10 ** 18)
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None) -> None:
        self._balances: Dict[str, int] = dict(balances or {})
        self._hooks: Dict[str, ReceiveHook] = {}

    def credit(self, account: str, amount: int) -> None:
        """Credit an account from outside the system (funding)."""
        if amount <= 0:
            raise ValueError(f"Credit amount must be positive, got {amount}")
        self._balances[account] = self._balances.get(account, 0) + amount

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Transfer amount must be non-negative, got {amount}")
        available = self._balances.get(sender, 0)
        if amount > available:
            raise InsufficientBalanceError(
                f"Insufficient balance: {sender} holds {available}, needs {amount}"
            )
        self._balances[sender] = available - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount

        hook = self._hooks.get(recipient)
        if hook is None:
            return
        try:
            hook(sender, recipient, amount)
        except Exception:
            # A failing receiver reverts the whole transfer.
            self._balances[recipient] -= amount
            self._balances[sender] += amount
            raise

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def on_receive(self, account: str, hook: Optional[ReceiveHook]) -> None:
        """Install (or clear, with None) a receive hook for an account."""
        if hook is None:
            self._hooks.pop(account, None)
        else:
            self._hooks[account] = hook

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {"balances": {k: str(v) for k, v in sorted(self._balances.items())}}

    @classmethod
    def from_dict(cls, data: dict) -> "InMemoryRail":
        return cls({k: int(v) for k, v in data.get("balances", {}).items()})

"""Staking pool models: pool configuration, patron records, receipts.

All monetary values are integers in the 18-decimal base unit. No floats
in accounting. Timestamps are integer UNIX seconds.

Invariants carried by these models:
- 0 <= principal <= accrued for every patron record
- checkpoint never passes the pool end and never moves backwards
- initialized and swept flip false -> true at most once
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

PERIOD_LENGTH = 3600  # seconds, one compounding period


@dataclass
class PoolConfig:
    """Pool parameters plus the mutable pool-wide counters.

    Parameters are populated once by init and never change afterwards;
    only owner (via change_owner), the counters and the swept flag move.
    """
    owner: str
    start: int = 0
    end: int = 0
    rate_per_period: int = 0
    period_length: int = PERIOD_LENGTH
    hard_cap: int = 0
    contribution_limit: int = 0
    reward_budget: int = 0
    initialized: bool = False
    swept: bool = False
    total_principal: int = 0
    interest_paid: int = 0
    swept_amount: int = 0
    initialized_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "start": self.start,
            "end": self.end,
            "rate_per_period": str(self.rate_per_period),
            "period_length": self.period_length,
            "hard_cap": str(self.hard_cap),
            "contribution_limit": str(self.contribution_limit),
            "reward_budget": str(self.reward_budget),
            "initialized": self.initialized,
            "swept": self.swept,
            "total_principal": str(self.total_principal),
            "interest_paid": str(self.interest_paid),
            "swept_amount": str(self.swept_amount),
            "initialized_at": self.initialized_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        return cls(
            owner=data["owner"],
            start=int(data["start"]),
            end=int(data["end"]),
            rate_per_period=int(data["rate_per_period"]),
            period_length=int(data.get("period_length", PERIOD_LENGTH)),
            hard_cap=int(data["hard_cap"]),
            contribution_limit=int(data["contribution_limit"]),
            reward_budget=int(data["reward_budget"]),
            initialized=bool(data["initialized"]),
            swept=bool(data["swept"]),
            total_principal=int(data["total_principal"]),
            interest_paid=int(data.get("interest_paid", "0")),
            swept_amount=int(data.get("swept_amount", "0")),
            initialized_at=data.get("initialized_at"),
        )


@dataclass
class PatronRecord:
    """Accounting record of a single patron.

    Mutable: stake and unstake move principal and accrued, catch-up
    moves accrued and checkpoint. Never deleted.
    """
    patron: str
    principal: int = 0
    accrued: int = 0
    checkpoint: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patron": self.patron,
            "principal": str(self.principal),
            "accrued": str(self.accrued),
            "checkpoint": self.checkpoint,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatronRecord":
        return cls(
            patron=data["patron"],
            principal=int(data["principal"]),
            accrued=int(data["accrued"]),
            checkpoint=int(data["checkpoint"]),
        )


@dataclass(frozen=True)
class PatronBalance:
    """Read-only projection of a patron record at a point in time."""
    principal: int
    accrued: int

    @property
    def interest(self) -> int:
        return self.accrued - self.principal


@dataclass(frozen=True)
class StakeReceipt:
    patron: str
    amount: int
    timestamp: int
    principal: int
    accrued: int


@dataclass(frozen=True)
class WithdrawalReceipt:
    """Result of an unstake.

    principal_released + interest_released == amount.
    """
    patron: str
    amount: int
    timestamp: int
    principal_released: int
    interest_released: int
    principal: int
    accrued: int


@dataclass(frozen=True)
class SweepQuote:
    """Pool-wide reconciliation at the window close.

    Invariant: amount_to_owner + owed_interest == reward_budget
    """
    patrons: int
    total_principal: int
    total_accrued: int
    owed_interest: int
    reward_budget: int
    amount_to_owner: int


@dataclass(frozen=True)
class SweepOutcome:
    owner: str
    amount: int
    timestamp: int
    quote: SweepQuote

"""Pool state: the explicit store passed to every pool operation.

PoolState bundles the PoolConfig and the PatronLedger. No module keeps
ambient pool state: controllers and the sweeper receive a PoolState and
mutate it only through their own operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from stakepool.models.pool import PoolConfig
from stakepool.staking.interest import CompoundInterestEngine
from stakepool.staking.ledger import PatronLedger, view


@dataclass
class PoolState:
    config: PoolConfig
    ledger: PatronLedger = field(default_factory=PatronLedger)

    @classmethod
    def deploy(cls, owner: str) -> "PoolState":
        """Fresh, uninitialized pool owned by its deployer."""
        return cls(config=PoolConfig(owner=owner))

    def engine(self) -> CompoundInterestEngine:
        """Compounding engine bound to the pool's rate and window end."""
        return CompoundInterestEngine(
            rate_per_period=self.config.rate_per_period,
            end=self.config.end if self.config.initialized else None,
            period_length=self.config.period_length,
        )

    def check_invariants(self, now: int) -> List[str]:
        """Return every violated ledger invariant (empty when healthy)."""
        config = self.config
        engine = self.engine()
        errors: List[str] = []
        principal_sum = 0
        for record in self.ledger.records():
            principal_sum += record.principal
            if record.principal < 0:
                errors.append(f"{record.patron}: negative principal {record.principal}")
            if record.principal > record.accrued:
                errors.append(
                    f"{record.patron}: principal {record.principal} exceeds "
                    f"accrued {record.accrued}"
                )
            if config.initialized and record.principal > config.contribution_limit:
                errors.append(
                    f"{record.patron}: principal {record.principal} exceeds "
                    f"contribution limit {config.contribution_limit}"
                )
            if config.initialized and record.checkpoint > config.end:
                errors.append(
                    f"{record.patron}: checkpoint {record.checkpoint} past end {config.end}"
                )
            projected = view(record, engine, now)
            if projected.accrued < record.accrued:
                errors.append(f"{record.patron}: accrued value decreased on catch-up")
        if principal_sum != config.total_principal:
            errors.append(
                f"sum(principal) {principal_sum} != total_principal {config.total_principal}"
            )
        if config.total_principal > config.hard_cap:
            errors.append(
                f"total_principal {config.total_principal} exceeds hard cap {config.hard_cap}"
            )
        if config.swept and not config.initialized:
            errors.append("pool swept before initialization")
        return errors

    def check_solvency(self, held: int, now: int) -> List[str]:
        """Compare the pool account balance against everything it owes.

        Before the sweep the pool must cover every patron's accrued value
        plus the reward budget not yet earned, and the budget must cover
        the interest owed at the window end. After the sweep it holds
        exactly the patrons' accrued values at the window end.
        """
        config = self.config
        engine = self.engine()
        errors: List[str] = []
        if config.swept:
            owed = sum(view(r, engine, config.end).accrued for r in self.ledger.records())
            if held != owed:
                errors.append(f"pool balance {held} != patron claims {owed} after sweep")
            return errors

        accrued = sum(view(r, engine, now).accrued for r in self.ledger.records())
        earned = accrued - config.total_principal + config.interest_paid
        required = accrued + (config.reward_budget - earned)
        if held < required:
            errors.append(
                f"pool balance {held} below patron claims plus unearned reward "
                f"budget {required}"
            )
        if config.initialized:
            at_end = sum(view(r, engine, config.end).accrued for r in self.ledger.records())
            owed_at_end = at_end - config.total_principal + config.interest_paid
            if owed_at_end > config.reward_budget:
                errors.append(
                    f"interest owed at end {owed_at_end} exceeds reward budget "
                    f"{config.reward_budget}"
                )
        return errors

    def to_dict(self) -> dict:
        return {"config": self.config.to_dict(), "ledger": self.ledger.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> "PoolState":
        return cls(
            config=PoolConfig.from_dict(data["config"]),
            ledger=PatronLedger.from_dict(data.get("ledger", {})),
        )

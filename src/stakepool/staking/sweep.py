"""Sweep reconciler: releases the unclaimed reward budget after expiry.

Interest is frozen at the window end, so every patron's final value is
view(record, end) no matter how late the sweep runs. The owner receives
what the budget does not owe anyone:

    owed_interest   = sum(accrued(end)) - sum(principal) + interest_paid
    amount_to_owner = reward_budget - owed_interest

interest_paid covers interest that patrons already withdrew; without it
a patron who cashed out after expiry would be paid twice, once to them
and once more to the owner. Afterwards the pool holds exactly
sum(accrued(end)), enough for every patron's future redemption.

Patron records are never touched by the sweep.
"""

from __future__ import annotations

import logging
from typing import Optional

from stakepool.models.pool import SweepOutcome, SweepQuote
from stakepool.staking.errors import (
    AlreadySweptError,
    NotInitializedError,
    NotOwnerError,
    PoolInvariantError,
    SweepBeforeExpiryError,
)
from stakepool.staking.guard import ReentrancyGuard
from stakepool.staking.ledger import view
from stakepool.staking.rail import CurrencyRail
from stakepool.staking.state import PoolState

logger = logging.getLogger(__name__)


class SweepReconciler:
    """One-shot post-expiry reconciliation of the reward budget.

    Usage:
        reconciler = SweepReconciler(state, rail, pool_account="pool", guard=guard)
        quote = reconciler.quote()
        outcome = reconciler.sweep(caller=owner, now=now)
    """

    def __init__(
        self,
        state: PoolState,
        rail: CurrencyRail,
        pool_account: str,
        guard: Optional[ReentrancyGuard] = None,
    ) -> None:
        self._state = state
        self._rail = rail
        self._pool_account = pool_account
        self._guard = guard or ReentrancyGuard()

    def quote(self) -> SweepQuote:
        """Reconcile every registered patron at the window end."""
        config = self._state.config
        engine = self._state.engine()
        total_principal = 0
        total_accrued = 0
        patrons = 0
        for record in self._state.ledger.records():
            balance = view(record, engine, config.end)
            total_principal += balance.principal
            total_accrued += balance.accrued
            patrons += 1
        owed_interest = total_accrued - total_principal + config.interest_paid
        return SweepQuote(
            patrons=patrons,
            total_principal=total_principal,
            total_accrued=total_accrued,
            owed_interest=owed_interest,
            reward_budget=config.reward_budget,
            amount_to_owner=config.reward_budget - owed_interest,
        )

    def sweep(self, caller: str, now: int) -> SweepOutcome:
        """Transfer the unclaimed reward budget to the owner, exactly once."""
        with self._guard.hold():
            config = self._state.config
            if caller != config.owner:
                raise NotOwnerError()
            if not config.initialized:
                raise NotInitializedError()
            if now <= config.end:
                raise SweepBeforeExpiryError()
            if config.swept:
                raise AlreadySweptError()

            quote = self.quote()
            if quote.amount_to_owner < 0:
                raise PoolInvariantError(
                    f"Owed interest {quote.owed_interest} exceeds reward budget "
                    f"{quote.reward_budget}"
                )

            config.swept = True
            config.swept_amount = quote.amount_to_owner
            try:
                self._rail.transfer(self._pool_account, config.owner, quote.amount_to_owner)
            except Exception:
                config.swept = False
                config.swept_amount = 0
                logger.warning("[Sweep] Transfer to %s failed, sweep reverted", config.owner)
                raise

        logger.info(
            "[Sweep] Released %s to %s (owed interest %s across %s patrons)",
            quote.amount_to_owner, config.owner, quote.owed_interest, quote.patrons,
        )
        return SweepOutcome(
            owner=config.owner,
            amount=quote.amount_to_owner,
            timestamp=now,
            quote=quote,
        )

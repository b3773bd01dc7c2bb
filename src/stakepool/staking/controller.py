"""Stake controller: initialization, ownership, stake and unstake.

Every mutating operation follows the same ordering:
    1. Checks: every precondition, in a fixed order, before any write.
    2. Inbound currency (stake, init): a failure here leaves no trace.
    3. Effects: catch-up, principal delta, pool counters.
    4. Outbound currency (unstake): only after effects are committed.
       If the transfer fails, the effects are rolled back and the error
       propagates, so an operation either completes or has no effect.

The shared ReentrancyGuard is held for the duration of each mutating
operation. Read-only queries (total, compound) never take the latch.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from stakepool.models.pool import (
    PERIOD_LENGTH,
    PatronBalance,
    PoolConfig,
    StakeReceipt,
    WithdrawalReceipt,
)
from stakepool.staking.eligibility import OpenEligibility, PatronEligibility
from stakepool.staking.errors import (
    AlreadyInitializedError,
    AlreadyOwnerError,
    ContributionLimitError,
    ExpiredError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidPoolParametersError,
    NotEligibleError,
    NotInitializedError,
    NotOwnerError,
    NotStartedError,
    PoolFullError,
    RewardBudgetMismatchError,
)
from stakepool.staking.guard import ReentrancyGuard
from stakepool.staking.ledger import catch_up, view
from stakepool.staking.rail import CurrencyRail
from stakepool.staking.state import PoolState

logger = logging.getLogger(__name__)


class StakeController:
    """Applies stake and withdrawal transitions to a PoolState.

    Usage:
        state = PoolState.deploy(owner="0xOwner")
        controller = StakeController(state, rail, pool_account="pool")
        controller.init_pool(
            caller="0xOwner", owner="0xOwner", start=start, end=end,
            rate_per_period=rate, hard_cap=cap, contribution_limit=limit,
            value=budget, now=now,
        )
        controller.stake("0xPatron", 10 ** 18, now)
        controller.unstake_all("0xPatron", later)
    """

    def __init__(
        self,
        state: PoolState,
        rail: CurrencyRail,
        pool_account: str,
        guard: Optional[ReentrancyGuard] = None,
        eligibility: Optional[PatronEligibility] = None,
    ) -> None:
        self._state = state
        self._rail = rail
        self._pool_account = pool_account
        self._guard = guard or ReentrancyGuard()
        self._eligibility = eligibility or OpenEligibility()

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def pool_account(self) -> str:
        return self._pool_account

    # ------------------------------------------------------------------
    # Initialization and ownership
    # ------------------------------------------------------------------

    def init_pool(
        self,
        caller: str,
        owner: str,
        start: int,
        end: int,
        rate_per_period: int,
        hard_cap: int,
        contribution_limit: int,
        value: int,
        now: int,
        reward_budget: Optional[int] = None,
        period_length: int = PERIOD_LENGTH,
    ) -> PoolConfig:
        """Populate the pool parameters and receive the reward budget.

        Args:
            caller: The account calling init (must be the deploying owner).
            owner: The operator entitled to sweep after expiry.
            start: First instant at which staking is accepted.
            end: Last instant at which staking is accepted.
            rate_per_period: Per-period rate on the 10**18 scale.
            hard_cap: Maximum total principal across all patrons.
            contribution_limit: Maximum principal per patron.
            value: Currency sent along with the call; becomes the budget.
            now: Current time.
            reward_budget: Optional declared budget that value must match.
            period_length: Seconds per compounding period.

        Returns:
            The populated PoolConfig.
        """
        with self._guard.hold():
            config = self._state.config
            if caller != config.owner:
                raise NotOwnerError()
            if config.initialized:
                raise AlreadyInitializedError()
            _validate_parameters(
                start, end, rate_per_period, hard_cap, contribution_limit, value, period_length,
            )
            if reward_budget is not None and reward_budget != value:
                raise RewardBudgetMismatchError(
                    f"Received value {value} does not match reward budget {reward_budget}"
                )

            if value > 0:
                self._rail.transfer(caller, self._pool_account, value)

            config.owner = owner
            config.start = start
            config.end = end
            config.rate_per_period = rate_per_period
            config.period_length = period_length
            config.hard_cap = hard_cap
            config.contribution_limit = contribution_limit
            config.reward_budget = value
            config.initialized = True
            config.initialized_at = now

        logger.info(
            "[Pool] Initialized: window %s..%s rate=%s cap=%s limit=%s budget=%s",
            start, end, rate_per_period, hard_cap, contribution_limit, value,
        )
        return config

    def change_owner(self, caller: str, new_owner: str) -> str:
        """Reassign ownership. Returns the previous owner."""
        with self._guard.hold():
            config = self._state.config
            if caller != config.owner:
                raise NotOwnerError()
            if new_owner == config.owner:
                raise AlreadyOwnerError()
            previous = config.owner
            config.owner = new_owner
        logger.info("[Pool] Ownership transferred: %s -> %s", previous, new_owner)
        return previous

    # ------------------------------------------------------------------
    # Stake / unstake
    # ------------------------------------------------------------------

    def stake(self, patron: str, amount: int, now: int) -> StakeReceipt:
        """Lock amount for patron. The currency is collected from patron."""
        with self._guard.hold():
            config = self._state.config
            if not self._eligibility.is_eligible(patron):
                raise NotEligibleError()
            if not config.initialized:
                raise NotInitializedError()
            if now < config.start:
                raise NotStartedError()
            if now > config.end:
                raise ExpiredError()
            if amount <= 0:
                raise InvalidAmountError()
            if config.total_principal + amount > config.hard_cap:
                raise PoolFullError()
            record = self._state.ledger.get(patron)
            current = record.principal if record is not None else 0
            if current + amount > config.contribution_limit:
                raise ContributionLimitError()

            caught_up = None
            if record is not None:
                caught_up = catch_up(replace(record), self._state.engine(), now)

            self._rail.transfer(patron, self._pool_account, amount)

            if record is None:
                record = self._state.ledger.open_record(patron, now)
            else:
                record.accrued = caught_up.accrued
                record.checkpoint = caught_up.checkpoint
            # New money enters at face value and compounds from here on.
            record.principal += amount
            record.accrued += amount
            config.total_principal += amount

        logger.info("[Stake] %s staked %s at %s", patron, amount, now)
        return StakeReceipt(
            patron=patron,
            amount=amount,
            timestamp=now,
            principal=record.principal,
            accrued=record.accrued,
        )

    def unstake(self, patron: str, amount: int, now: int) -> WithdrawalReceipt:
        """Withdraw up to the patron's accrued value.

        Principal is drawn down first; once it reaches zero the rest comes
        purely from accrued interest.
        """
        with self._guard.hold():
            config = self._state.config
            if not config.initialized:
                raise NotInitializedError()
            record = self._state.ledger.get(patron)
            if record is None or amount <= 0:
                raise InsufficientFundsError()
            engine = self._state.engine()
            if amount > view(record, engine, now).accrued:
                raise InsufficientFundsError()

            previous = replace(record)
            previous_total = config.total_principal
            previous_paid = config.interest_paid

            catch_up(record, engine, now)
            new_principal = max(record.principal - amount, 0)
            principal_released = record.principal - new_principal
            interest_released = amount - principal_released
            record.accrued -= amount
            record.principal = new_principal
            config.total_principal -= principal_released
            config.interest_paid += interest_released

            def _rollback() -> None:
                record.principal = previous.principal
                record.accrued = previous.accrued
                record.checkpoint = previous.checkpoint
                config.total_principal = previous_total
                config.interest_paid = previous_paid

            try:
                self._rail.transfer(self._pool_account, patron, amount)
            except Exception:
                _rollback()
                logger.warning("[Unstake] Transfer to %s failed, withdrawal reverted", patron)
                raise

        logger.info(
            "[Unstake] %s withdrew %s (principal %s, interest %s) at %s",
            patron, amount, principal_released, interest_released, now,
        )
        return WithdrawalReceipt(
            patron=patron,
            amount=amount,
            timestamp=now,
            principal_released=principal_released,
            interest_released=interest_released,
            principal=record.principal,
            accrued=record.accrued,
        )

    def unstake_all(self, patron: str, now: int) -> WithdrawalReceipt:
        """Withdraw the patron's entire accrued value."""
        if not self._state.config.initialized:
            raise NotInitializedError()
        return self.unstake(patron, self.total(patron, now).accrued, now)

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def total(self, patron: str, now: int) -> PatronBalance:
        """Principal and accrued value of a patron at now (zeros if unknown)."""
        record = self._state.ledger.get(patron)
        if record is None:
            return PatronBalance(principal=0, accrued=0)
        return view(record, self._state.engine(), now)

    def compound(self, principal: int, from_ts: int, to_ts: int) -> int:
        """Compound principal at the pool's rate, capped at the pool end."""
        return self._state.engine().compound(principal, from_ts, to_ts)


def _validate_parameters(
    start: int,
    end: int,
    rate_per_period: int,
    hard_cap: int,
    contribution_limit: int,
    value: int,
    period_length: int,
) -> None:
    if start >= end:
        raise InvalidPoolParametersError(f"Start ({start}) must be before end ({end})")
    if rate_per_period <= 0:
        raise InvalidPoolParametersError(f"Rate must be positive, got {rate_per_period}")
    if hard_cap <= 0:
        raise InvalidPoolParametersError(f"Hard cap must be positive, got {hard_cap}")
    if contribution_limit <= 0 or contribution_limit > hard_cap:
        raise InvalidPoolParametersError(
            f"Contribution limit must be in (0, {hard_cap}], got {contribution_limit}"
        )
    if value < 0:
        raise InvalidPoolParametersError(f"Reward budget must be non-negative, got {value}")
    if period_length <= 0:
        raise InvalidPoolParametersError(f"Period length must be positive, got {period_length}")

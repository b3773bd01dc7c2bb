"""Staking pool service: unified facade over the accounting core.

This is the primary interface for programmatic access to a pool. It
orchestrates:
- Deployment and initialization (reward budget sizing included)
- Stake and withdrawal through the StakeController
- Post-expiry reconciliation through the SweepReconciler
- Currency movement over the configured rail
- Persistence (event log, state store)

All operations produce typed results. The core raises on any rejected
precondition; the service turns that into ServiceResult(success=False)
with the literal failure reason. Once an operation has committed, audit
and persistence failures are reported as warnings, never rolled back:
the currency has already moved.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from stakepool.config import PoolSettings
from stakepool.identity import normalize_identity
from stakepool.models.pool import WithdrawalReceipt
from stakepool.persistence.event_log import EventKind, EventLog, EventRecord
from stakepool.persistence.state_store import StateStore
from stakepool.staking.controller import StakeController
from stakepool.staking.eligibility import PatronEligibility
from stakepool.staking.errors import StakingPoolError
from stakepool.staking.guard import ReentrancyGuard
from stakepool.staking.interest import required_reward_budget
from stakepool.staking.rail import InMemoryRail
from stakepool.staking.state import PoolState
from stakepool.staking.sweep import SweepReconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _wall_clock() -> int:
    return int(time.time())


class StakingPoolService:
    """Facade for a single staking pool.

    Usage:
        settings = PoolSettings.from_config_dir(config_dir)
        service = StakingPoolService(settings)
        service.deploy(owner)
        service.fund(owner, budget)
        service.init_pool(caller=owner, owner=owner, start=start, end=end, value=budget)
        service.stake(patron, amount)
        service.unstake_all(patron)
        service.sweep(owner)

    Persistence (optional):
        service = StakingPoolService(settings, event_log=log, state_store=store)
        # State is loaded on construction and saved after each mutation.
    """

    def __init__(
        self,
        settings: PoolSettings,
        state: Optional[PoolState] = None,
        rail: Optional[InMemoryRail] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        eligibility: Optional[PatronEligibility] = None,
        clock: Callable[[], int] = _wall_clock,
    ) -> None:
        self._settings = settings
        self._event_log = event_log
        self._state_store = state_store
        self._eligibility = eligibility
        self._clock = clock
        self._guard = ReentrancyGuard()

        if state is None and state_store is not None:
            state = state_store.load_state()
        if rail is None:
            rail = state_store.load_rail() if state_store is not None else InMemoryRail()
        self._rail = rail
        self._state: Optional[PoolState] = None
        self._controller: Optional[StakeController] = None
        self._reconciler: Optional[SweepReconciler] = None
        if state is not None:
            self._bind(state)

        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

    @property
    def rail(self) -> InMemoryRail:
        return self._rail

    @property
    def state(self) -> Optional[PoolState]:
        return self._state

    @property
    def pool_account(self) -> str:
        return self._settings.pool_account

    # ------------------------------------------------------------------
    # Deployment and funding
    # ------------------------------------------------------------------

    def deploy(self, owner: str) -> ServiceResult:
        """Create a fresh, uninitialized pool owned by owner."""
        if self._state is not None:
            return ServiceResult(success=False, errors=["Staking pool already deployed"])
        try:
            owner = normalize_identity(owner)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        self._bind(PoolState.deploy(owner))
        logger.info("[Pool] Deployed, owner %s", owner)
        return self._committed({"owner": owner})

    def fund(self, account: str, amount: int, now: Optional[int] = None) -> ServiceResult:
        """Credit an external account on the local rail."""
        now = self._now(now)
        try:
            account = normalize_identity(account)
            self._rail.credit(account, amount)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        warning = self._record_event(
            EventKind.ACCOUNT_FUNDED, account, {"amount": str(amount)}, now,
        )
        return self._committed(
            {"account": account, "balance": self._rail.balance_of(account)}, warning,
        )

    # ------------------------------------------------------------------
    # Pool lifecycle
    # ------------------------------------------------------------------

    def init_pool(
        self,
        caller: str,
        owner: str,
        start: int,
        end: int,
        rate_per_period: Optional[int] = None,
        hard_cap: Optional[int] = None,
        contribution_limit: Optional[int] = None,
        value: Optional[int] = None,
        reward_budget: Optional[int] = None,
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Initialize the pool.

        Unset parameters fall back to the settings. When value is None the
        budget is sized for the worst case: the pool filling to its hard cap
        at start and staying full until end.
        """
        if self._controller is None:
            return self._not_deployed()
        now = self._now(now)
        rate = rate_per_period if rate_per_period is not None else self._settings.rate_per_period
        cap = hard_cap if hard_cap is not None else self._settings.hard_cap
        limit = (
            contribution_limit if contribution_limit is not None
            else self._settings.contribution_limit
        )
        try:
            caller = normalize_identity(caller)
            owner = normalize_identity(owner)
            if value is None:
                value = required_reward_budget(
                    rate, cap, start, end, self._settings.period_length,
                )
            config = self._controller.init_pool(
                caller=caller,
                owner=owner,
                start=start,
                end=end,
                rate_per_period=rate,
                hard_cap=cap,
                contribution_limit=limit,
                value=value,
                now=now,
                reward_budget=reward_budget,
                period_length=self._settings.period_length,
            )
        except ValueError as e:
            return self._rejected("init", e)

        warning = self._record_event(
            EventKind.STAKING_POOL_INITIALIZED,
            caller,
            {"reward_budget": str(config.reward_budget), "timestamp": now},
            now,
        )
        return self._committed(
            {"reward_budget": config.reward_budget, "timestamp": now}, warning,
        )

    def stake(self, patron: str, amount: int, now: Optional[int] = None) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        now = self._now(now)
        try:
            patron = normalize_identity(patron)
            receipt = self._controller.stake(patron, amount, now)
        except ValueError as e:
            return self._rejected("stake", e)

        warning = self._record_event(
            EventKind.STAKE_ADDED,
            patron,
            {"amount": str(amount), "timestamp": now},
            now,
        )
        return self._committed(
            {
                "patron": patron,
                "amount": receipt.amount,
                "principal": receipt.principal,
                "accrued": receipt.accrued,
            },
            warning,
        )

    def unstake(self, patron: str, amount: int, now: Optional[int] = None) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        now = self._now(now)
        try:
            patron = normalize_identity(patron)
            receipt = self._controller.unstake(patron, amount, now)
        except ValueError as e:
            return self._rejected("unstake", e)
        return self._withdrawn(receipt, now)

    def unstake_all(self, patron: str, now: Optional[int] = None) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        now = self._now(now)
        try:
            patron = normalize_identity(patron)
            receipt = self._controller.unstake_all(patron, now)
        except ValueError as e:
            return self._rejected("unstake", e)
        return self._withdrawn(receipt, now)

    def sweep(self, caller: str, now: Optional[int] = None) -> ServiceResult:
        if self._reconciler is None:
            return self._not_deployed()
        now = self._now(now)
        try:
            caller = normalize_identity(caller)
            outcome = self._reconciler.sweep(caller, now)
        except ValueError as e:
            return self._rejected("sweep", e)

        warning = self._record_event(
            EventKind.POOL_SWEPT,
            caller,
            {
                "amount": str(outcome.amount),
                "owed_interest": str(outcome.quote.owed_interest),
                "patrons": outcome.quote.patrons,
            },
            now,
        )
        return self._committed(
            {
                "owner": outcome.owner,
                "amount": outcome.amount,
                "owed_interest": outcome.quote.owed_interest,
                "pool_balance": self._rail.balance_of(self.pool_account),
            },
            warning,
        )

    def change_owner(
        self,
        caller: str,
        new_owner: str,
        now: Optional[int] = None,
    ) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        now = self._now(now)
        try:
            caller = normalize_identity(caller)
            new_owner = normalize_identity(new_owner)
            previous = self._controller.change_owner(caller, new_owner)
        except ValueError as e:
            return self._rejected("change_owner", e)

        warning = self._record_event(
            EventKind.OWNERSHIP_TRANSFERRED,
            caller,
            {"previous_owner": previous, "new_owner": new_owner},
            now,
        )
        return self._committed({"previous_owner": previous, "owner": new_owner}, warning)

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def total(self, patron: str, now: Optional[int] = None) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        try:
            balance = self._controller.total(normalize_identity(patron), self._now(now))
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(
            success=True,
            data={"principal": balance.principal, "accrued": balance.accrued},
        )

    def compound(self, principal: int, from_ts: int, to_ts: int) -> ServiceResult:
        if self._controller is None:
            return self._not_deployed()
        try:
            value = self._controller.compound(principal, from_ts, to_ts)
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        return ServiceResult(success=True, data={"value": value})

    def quote(self) -> ServiceResult:
        """Preview the sweep without moving anything."""
        if self._reconciler is None:
            return self._not_deployed()
        quote = self._reconciler.quote()
        return ServiceResult(
            success=True,
            data={
                "patrons": quote.patrons,
                "total_principal": quote.total_principal,
                "total_accrued": quote.total_accrued,
                "owed_interest": quote.owed_interest,
                "reward_budget": quote.reward_budget,
                "amount_to_owner": quote.amount_to_owner,
            },
        )

    def check_invariants(self, now: Optional[int] = None) -> list[str]:
        if self._state is None:
            return []
        now = self._now(now)
        errors = self._state.check_invariants(now)
        held = self._rail.balance_of(self.pool_account)
        errors.extend(self._state.check_solvency(held, now))
        return errors

    def status(self, now: Optional[int] = None) -> dict[str, Any]:
        if self._state is None:
            return {"deployed": False}
        config = self._state.config
        last = self._event_log.last_event if self._event_log is not None else None
        return {
            "deployed": True,
            "owner": config.owner,
            "initialized": config.initialized,
            "swept": config.swept,
            "start": config.start,
            "end": config.end,
            "now": self._now(now),
            "rate_per_period": config.rate_per_period,
            "hard_cap": config.hard_cap,
            "contribution_limit": config.contribution_limit,
            "reward_budget": config.reward_budget,
            "total_principal": config.total_principal,
            "interest_paid": config.interest_paid,
            "swept_amount": config.swept_amount,
            "patrons": len(self._state.ledger),
            "pool_balance": self._rail.balance_of(self.pool_account),
            "events": self._event_log.count if self._event_log is not None else 0,
            "last_event": last.event_id if last is not None else None,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _bind(self, state: PoolState) -> None:
        self._state = state
        self._controller = StakeController(
            state,
            self._rail,
            self.pool_account,
            guard=self._guard,
            eligibility=self._eligibility,
        )
        self._reconciler = SweepReconciler(
            state, self._rail, self.pool_account, guard=self._guard,
        )

    def _now(self, now: Optional[int]) -> int:
        return self._clock() if now is None else now

    def _not_deployed(self) -> ServiceResult:
        return ServiceResult(success=False, errors=["Staking pool not deployed"])

    def _rejected(self, operation: str, error: ValueError) -> ServiceResult:
        if isinstance(error, StakingPoolError):
            logger.warning("[%s] Rejected: %s", operation, error)
        else:
            logger.warning("[%s] Invalid request: %s", operation, error)
        return ServiceResult(success=False, errors=[str(error)])

    def _withdrawn(self, receipt: WithdrawalReceipt, now: int) -> ServiceResult:
        warning = self._record_event(
            EventKind.STAKE_WITHDRAWN,
            receipt.patron,
            {
                "amount": str(receipt.amount),
                "principal_released": str(receipt.principal_released),
                "interest_released": str(receipt.interest_released),
            },
            now,
        )
        return self._committed(
            {
                "patron": receipt.patron,
                "amount": receipt.amount,
                "principal": receipt.principal,
                "accrued": receipt.accrued,
            },
            warning,
        )

    def _committed(
        self,
        data: dict[str, Any],
        warning: Optional[str] = None,
    ) -> ServiceResult:
        warnings = [w for w in (warning, self._safe_persist_post_commit()) if w]
        if warnings:
            data["warning"] = "; ".join(warnings)
        return ServiceResult(success=True, data=data)

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: int,
    ) -> Optional[str]:
        """Append an audit event. Returns a warning string or None."""
        if self._event_log is None:
            return None
        try:
            self._event_log.append(EventRecord.create(
                event_id=self._next_event_id(),
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
                timestamp=now,
            ))
        except (ValueError, OSError) as e:
            logger.error("[Audit] Failed to record %s: %s", kind.value, e)
            return f"Event log failure: {e}"
        return None

    def _safe_persist_post_commit(self) -> Optional[str]:
        """Persist state after an operation has committed.

        MUST NOT roll back: the currency has already moved. On failure the
        in-memory state stays authoritative, the persistence_degraded flag
        is raised and a warning is returned.
        """
        if self._state_store is None or self._state is None:
            return None
        try:
            self._state_store.save(self._state, self._rail)
            return None
        except OSError as e:
            self._persistence_degraded = True
            logger.error("[Persistence] Snapshot write failed: %s", e)
            return f"Persistence degraded: {e}; operation committed but state file is stale"

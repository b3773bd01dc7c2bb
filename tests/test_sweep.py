"""Tests for the sweep reconciler: proves reward conservation across withdrawal timings."""

import pytest

from stakepool.staking.controller import StakeController
from stakepool.staking.errors import StakingPoolError
from stakepool.staking.guard import ReentrancyGuard
from stakepool.staking.interest import PERIOD_LENGTH, WAD, required_reward_budget
from stakepool.staking.rail import InMemoryRail
from stakepool.staking.state import PoolState
from stakepool.staking.sweep import SweepReconciler


RATE = 22_500_000_000_000
START = 1_700_000_000
END = START + 720 * PERIOD_LENGTH
HARD_CAP = 100 * WAD
LIMIT = 50 * WAD
BUDGET = required_reward_budget(RATE, HARD_CAP, START, END)
POOL = "pool"


class _Pool:
    """Controller and reconciler sharing one state, one rail and one latch."""

    def __init__(
        self,
        hard_cap: int = HARD_CAP,
        limit: int = LIMIT,
        patron_funds: int = 100 * WAD,
    ) -> None:
        budget = required_reward_budget(RATE, hard_cap, START, END)
        self.rail = InMemoryRail()
        self.rail.credit("owner", budget)
        for patron in ("alice", "bob", "carol"):
            self.rail.credit(patron, patron_funds)
        self.state = PoolState.deploy("owner")
        guard = ReentrancyGuard()
        self.controller = StakeController(self.state, self.rail, POOL, guard=guard)
        self.reconciler = SweepReconciler(self.state, self.rail, POOL, guard=guard)
        self.controller.init_pool(
            caller="owner", owner="owner", start=START, end=END,
            rate_per_period=RATE, hard_cap=hard_cap, contribution_limit=limit,
            value=budget, now=START,
        )

    def claims(self) -> int:
        return sum(
            self.controller.total(patron, END).accrued
            for patron in self.state.ledger.patrons()
        )


@pytest.fixture
def pool() -> _Pool:
    return _Pool()


class TestSweepPreconditions:
    def test_before_expiry(self, pool: _Pool) -> None:
        with pytest.raises(StakingPoolError) as excinfo:
            pool.reconciler.sweep("owner", END)
        assert str(excinfo.value) == "Cannot sweep before expiry"

    def test_only_owner(self, pool: _Pool) -> None:
        with pytest.raises(StakingPoolError) as excinfo:
            pool.reconciler.sweep("alice", END + 1)
        assert str(excinfo.value) == "OnlyOwner: Not authorized"

    def test_not_initialized(self) -> None:
        state = PoolState.deploy("owner")
        reconciler = SweepReconciler(state, InMemoryRail(), POOL)
        with pytest.raises(StakingPoolError, match="Staking Pool not initialized"):
            reconciler.sweep("owner", END + 1)

    def test_sweep_once(self, pool: _Pool) -> None:
        pool.reconciler.sweep("owner", END + 1)
        with pytest.raises(StakingPoolError) as excinfo:
            pool.reconciler.sweep("owner", END + 2)
        assert str(excinfo.value) == "Already sweeped"

    def test_new_owner_sweeps(self, pool: _Pool) -> None:
        pool.controller.change_owner("owner", "operator")
        outcome = pool.reconciler.sweep("operator", END + 1)
        assert pool.rail.balance_of("operator") == outcome.amount


class TestRewardConservation:
    def test_empty_pool_returns_whole_budget(self, pool: _Pool) -> None:
        outcome = pool.reconciler.sweep("owner", END + 1)
        assert outcome.amount == BUDGET
        assert outcome.quote.patrons == 0
        assert pool.rail.balance_of(POOL) == 0
        assert pool.rail.balance_of("owner") == BUDGET

    def test_patrons_still_staked(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 50 * WAD, START)
        pool.controller.stake("bob", 20 * WAD, START + 100 * PERIOD_LENGTH)

        outcome = pool.reconciler.sweep("owner", END + 1)
        quote = outcome.quote
        assert quote.amount_to_owner + quote.owed_interest == BUDGET
        assert quote.total_principal == 70 * WAD
        assert pool.rail.balance_of(POOL) == pool.claims()

        # Every remaining patron can still redeem in full.
        pool.controller.unstake_all("alice", END + 10)
        pool.controller.unstake_all("bob", END + 10)
        assert pool.rail.balance_of(POOL) == 0

    def test_withdrawal_before_expiry(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 50 * WAD, START)
        pool.controller.unstake_all("alice", START + 360 * PERIOD_LENGTH)

        outcome = pool.reconciler.sweep("owner", END + 1)
        assert outcome.quote.owed_interest == pool.state.config.interest_paid
        assert pool.rail.balance_of(POOL) == 0

    def test_withdrawal_after_expiry(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 50 * WAD, START)
        earned = pool.controller.unstake_all("alice", END + 5).interest_released

        outcome = pool.reconciler.sweep("owner", END + 10)
        assert outcome.amount == BUDGET - earned
        assert pool.rail.balance_of(POOL) == 0

    def test_partial_withdrawal_then_sweep(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 50 * WAD, START)
        pool.controller.stake("carol", 30 * WAD, START)
        pool.controller.unstake("alice", 20 * WAD, START + 200 * PERIOD_LENGTH)

        pool.reconciler.sweep("owner", END + 1)
        assert pool.rail.balance_of(POOL) == pool.claims()
        pool.controller.unstake_all("alice", END + 2)
        pool.controller.unstake_all("carol", END + 2)
        assert pool.rail.balance_of(POOL) == 0

    def test_late_sweep_matches_early_sweep(self) -> None:
        early, late = _Pool(), _Pool()
        for p in (early, late):
            p.controller.stake("alice", 40 * WAD, START + 7)
        a = early.reconciler.sweep("owner", END + 1)
        b = late.reconciler.sweep("owner", END + 1_000 * PERIOD_LENGTH)
        assert a.amount == b.amount

    def test_sweep_leaves_records_untouched(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 10 * WAD, START)
        before = pool.state.ledger.get("alice").to_dict()
        pool.reconciler.sweep("owner", END + 1)
        assert pool.state.ledger.get("alice").to_dict() == before

    def test_quote_is_read_only(self, pool: _Pool) -> None:
        pool.controller.stake("alice", 10 * WAD, START)
        quote = pool.reconciler.quote()
        assert quote.amount_to_owner + quote.owed_interest == BUDGET
        assert not pool.state.config.swept
        assert pool.rail.balance_of(POOL) == BUDGET + 10 * WAD


class TestSweepFailure:
    def test_failed_transfer_reverts_flag(self, pool: _Pool) -> None:
        def reject(sender: str, recipient: str, amount: int) -> None:
            raise RuntimeError("owner refused")

        pool.rail.on_receive("owner", reject)
        with pytest.raises(RuntimeError):
            pool.reconciler.sweep("owner", END + 1)
        assert not pool.state.config.swept
        assert pool.state.config.swept_amount == 0

        pool.rail.on_receive("owner", None)
        pool.reconciler.sweep("owner", END + 1)
        assert pool.state.config.swept

    def test_reentrant_sweep_rejected(self, pool: _Pool) -> None:
        pool.rail.on_receive(
            "owner", lambda s, r, a: pool.reconciler.sweep("owner", END + 1),
        )
        with pytest.raises(StakingPoolError, match="ReentrancyGuard: reentrant call"):
            pool.reconciler.sweep("owner", END + 1)
        assert not pool.state.config.swept


class TestFullPoolHourlyCheckpoints:
    """A full pool whose patron checkpoints every hour still sweeps and redeems."""

    CAP = 5_000_000 * WAD

    def _full_pool(self) -> _Pool:
        pool = _Pool(hard_cap=self.CAP, limit=self.CAP, patron_funds=self.CAP)
        pool.controller.stake("alice", self.CAP - 720, START)
        for hour in range(1, 720):
            pool.controller.stake("alice", 1, START + hour * PERIOD_LENGTH)
        return pool

    def test_budget_covers_accrued_interest(self) -> None:
        pool = self._full_pool()
        assert pool.state.config.total_principal == self.CAP - 1
        quote = pool.reconciler.quote()
        assert quote.owed_interest <= quote.reward_budget
        assert quote.amount_to_owner >= 0

    def test_sweep_then_redeem_everyone(self) -> None:
        pool = self._full_pool()
        outcome = pool.reconciler.sweep("owner", END + 1)
        assert outcome.amount >= 0
        assert pool.rail.balance_of(POOL) == pool.claims()

        receipt = pool.controller.unstake_all("alice", END + 2)
        assert receipt.amount == outcome.quote.total_accrued
        assert pool.rail.balance_of(POOL) == 0

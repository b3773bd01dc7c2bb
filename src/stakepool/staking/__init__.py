"""Staking subsystem: compound interest engine, patron ledger, stake controller, sweep.

The subsystem is a pure accounting core. Currency moves only through a
CurrencyRail; event logging and persistence are handled by the service
layer.
"""

from stakepool.staking.controller import StakeController
from stakepool.staking.interest import CompoundInterestEngine, required_reward_budget
from stakepool.staking.ledger import PatronLedger
from stakepool.staking.rail import CurrencyRail, InMemoryRail
from stakepool.staking.state import PoolState
from stakepool.staking.sweep import SweepReconciler

__all__ = [
    "CompoundInterestEngine",
    "CurrencyRail",
    "InMemoryRail",
    "PatronLedger",
    "PoolState",
    "StakeController",
    "SweepReconciler",
    "required_reward_budget",
]

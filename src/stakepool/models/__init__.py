"""Staking pool data models."""

from stakepool.models.pool import (
    PatronBalance,
    PatronRecord,
    PoolConfig,
    StakeReceipt,
    SweepOutcome,
    SweepQuote,
    WithdrawalReceipt,
)

__all__ = [
    "PatronBalance",
    "PatronRecord",
    "PoolConfig",
    "StakeReceipt",
    "SweepOutcome",
    "SweepQuote",
    "WithdrawalReceipt",
]

"""Staking pool errors: one kind per violated precondition.

Every reason string is part of the compatibility surface: callers and
tests match them literally, so they must never be reworded.
"""

from __future__ import annotations

from typing import Optional


class StakingPoolError(ValueError):
    """Base class for every rejected pool operation."""
    reason = "Staking pool error"

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(reason or self.reason)

    @property
    def message(self) -> str:
        return str(self)


class NotInitializedError(StakingPoolError):
    reason = "Staking Pool not initialized"


class AlreadyInitializedError(StakingPoolError):
    reason = "Staking Pool already initialized"


class InvalidPoolParametersError(StakingPoolError):
    reason = "Invalid staking pool parameters"


class RewardBudgetMismatchError(StakingPoolError):
    reason = "Received value does not match reward budget"


class PoolFullError(StakingPoolError):
    reason = "Staking pool is full"


class ContributionLimitError(StakingPoolError):
    reason = "Stake greater than contribution limit"


class NotStartedError(StakingPoolError):
    reason = "Staking pool not yet started"


class ExpiredError(StakingPoolError):
    reason = "Staking pool already expired"


class InvalidAmountError(StakingPoolError):
    reason = "Stake amount must be positive"


class InsufficientFundsError(StakingPoolError):
    reason = "No funds available"


class SweepBeforeExpiryError(StakingPoolError):
    reason = "Cannot sweep before expiry"


class AlreadySweptError(StakingPoolError):
    reason = "Already sweeped"


class AlreadyOwnerError(StakingPoolError):
    reason = "changeOwner: already owner"


class NotOwnerError(StakingPoolError):
    reason = "OnlyOwner: Not authorized"


class NotEligibleError(StakingPoolError):
    reason = "Patron is not eligible"


class ReentrancyError(StakingPoolError):
    reason = "ReentrancyGuard: reentrant call"


class PoolInvariantError(StakingPoolError):
    """Raised when a pool-wide accounting invariant would be broken."""
    reason = "Staking pool invariant violated"


class FixedPointOverflowError(StakingPoolError, ArithmeticError):
    reason = "Fixed-point overflow"


class InsufficientBalanceError(StakingPoolError):
    """The settlement rail cannot debit the requested amount."""
    reason = "Insufficient balance"

"""Compound interest engine: integer fixed-point, truncating arithmetic.

All amounts are integers in the 18-decimal base unit and the per-period
rate uses the same 10**18 scale. No floats anywhere: every multiplication
truncates toward zero so the engine can never promise more than the
exact real-number result.

    value = principal * (1 + rate) ** periods
    periods = floor((min(to, end) - from) / period_length), clamped >= 0

The growth factor is raised by square-and-multiply and applied to the
principal in a single final multiplication. Intermediate products are
checked against the unsigned 256-bit range.

The reward budget is sized from the exact (unrounded) growth, rounded up,
so it bounds what any truncating path can accrue.
"""

from __future__ import annotations

from typing import Optional

from stakepool.models.pool import PERIOD_LENGTH
from stakepool.staking.errors import FixedPointOverflowError

WAD = 10 ** 18
MAX_UINT256 = 2 ** 256 - 1


def wad_mul(a: int, b: int) -> int:
    """Multiply two fixed-point values, truncating toward zero."""
    if a < 0 or b < 0:
        raise ValueError(f"Fixed-point operands must be non-negative, got {a} and {b}")
    product = a * b
    if product > MAX_UINT256:
        raise FixedPointOverflowError(
            f"Fixed-point overflow: {a} * {b} exceeds 256 bits"
        )
    return product // WAD


def wad_pow(base: int, exponent: int) -> int:
    """Raise a fixed-point base to a non-negative integer power."""
    if exponent < 0:
        raise ValueError(f"Exponent must be non-negative, got {exponent}")
    result = WAD
    while exponent:
        if exponent & 1:
            result = wad_mul(result, base)
        exponent >>= 1
        if exponent:
            base = wad_mul(base, base)
    return result


class CompoundInterestEngine:
    """Pure compounding function bound to a rate and a window end.

    Usage:
        engine = CompoundInterestEngine(rate_per_period=22_500_000_000_000, end=end)
        value = engine.compound(principal, checkpoint, now)
    """

    def __init__(
        self,
        rate_per_period: int,
        end: Optional[int] = None,
        period_length: int = PERIOD_LENGTH,
    ) -> None:
        if rate_per_period < 0:
            raise ValueError(f"Rate must be non-negative, got {rate_per_period}")
        if period_length <= 0:
            raise ValueError(f"Period length must be positive, got {period_length}")
        self._rate = rate_per_period
        self._end = end
        self._period_length = period_length

    @property
    def rate_per_period(self) -> int:
        return self._rate

    @property
    def end(self) -> Optional[int]:
        return self._end

    @property
    def period_length(self) -> int:
        return self._period_length

    def periods_between(self, from_ts: int, to_ts: int) -> int:
        """Whole compounding periods from from_ts to min(to_ts, end)."""
        if self._end is not None:
            to_ts = min(to_ts, self._end)
        elapsed = to_ts - from_ts
        if elapsed <= 0:
            return 0
        return elapsed // self._period_length

    def growth_factor(self, periods: int) -> int:
        """(1 + rate) ** periods on the 10**18 scale."""
        return wad_pow(WAD + self._rate, periods)

    def compound(self, principal: int, from_ts: int, to_ts: int) -> int:
        """Compounded value of principal between two timestamps."""
        if principal < 0:
            raise ValueError(f"Principal must be non-negative, got {principal}")
        periods = self.periods_between(from_ts, to_ts)
        if periods == 0 or principal == 0:
            return principal
        return wad_mul(principal, self.growth_factor(periods))


def required_reward_budget(
    rate_per_period: int,
    hard_cap: int,
    start: int,
    end: int,
    period_length: int = PERIOD_LENGTH,
) -> int:
    """Worst-case total interest: the pool fills at start and stays full.

    Sized from the exact value hard_cap * (1 + rate) ** periods, rounded
    up. Every truncating compounding path (one catch-up or hundreds) stays
    at or below that value, so the budget covers any sequence of stakes
    and withdrawals.
    """
    if hard_cap < 0:
        raise ValueError(f"Hard cap must be non-negative, got {hard_cap}")
    engine = CompoundInterestEngine(rate_per_period, period_length=period_length)
    periods = engine.periods_between(start, end)
    numerator = hard_cap * (WAD + rate_per_period) ** periods
    ceiling = -(-numerator // WAD ** periods)
    if ceiling > MAX_UINT256:
        raise FixedPointOverflowError(
            f"Fixed-point overflow: reward budget for {hard_cap} over {periods} periods"
        )
    return ceiling - hard_cap

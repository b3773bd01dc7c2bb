"""Tests for the compound interest engine: proves fixed-point accuracy and truncation."""

import pytest
from decimal import Decimal, localcontext

from stakepool.staking.errors import FixedPointOverflowError
from stakepool.staking.interest import (
    MAX_UINT256,
    PERIOD_LENGTH,
    WAD,
    CompoundInterestEngine,
    required_reward_budget,
    wad_mul,
    wad_pow,
)


RATE = 22_500_000_000_000  # 0.0000225 per hour
START = 1_700_000_000
END = START + 720 * PERIOD_LENGTH


def _exact(principal_units: int, periods: int) -> int:
    """Reference value in base units computed with high-precision decimals."""
    with localcontext() as ctx:
        ctx.prec = 80
        value = Decimal(principal_units) * (Decimal(1) + Decimal("0.0000225")) ** periods
        return int(value.scaleb(18))


class TestFixedPoint:
    def test_wad_mul_identity(self) -> None:
        assert wad_mul(7 * WAD, WAD) == 7 * WAD

    def test_wad_mul_truncates(self) -> None:
        # 1 base unit times 0.5 is half a unit: truncated to zero.
        assert wad_mul(1, WAD // 2) == 0
        assert wad_mul(3, WAD // 2) == 1

    def test_wad_mul_overflow(self) -> None:
        with pytest.raises(FixedPointOverflowError):
            wad_mul(MAX_UINT256, 2)

    def test_wad_mul_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            wad_mul(-1, WAD)

    def test_wad_pow_zero_exponent(self) -> None:
        assert wad_pow(WAD + RATE, 0) == WAD

    def test_wad_pow_matches_repeated_multiplication(self) -> None:
        base = WAD + RATE
        expected = WAD
        for _ in range(5):
            expected = wad_mul(expected, base)
        # Square-and-multiply truncates at different points; stay within a few units.
        assert abs(wad_pow(base, 5) - expected) <= 5

    def test_overflow_error_is_arithmetic_error(self) -> None:
        with pytest.raises(ArithmeticError):
            wad_mul(MAX_UINT256, MAX_UINT256)


class TestPeriods:
    def test_whole_periods_only(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.periods_between(START, START + PERIOD_LENGTH - 1) == 0
        assert engine.periods_between(START, START + PERIOD_LENGTH) == 1
        assert engine.periods_between(START, START + 2 * PERIOD_LENGTH + 59) == 2

    def test_capped_at_end(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.periods_between(START, END + 10 * PERIOD_LENGTH) == 720

    def test_clamped_at_zero(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.periods_between(END + 5, END + 10 * PERIOD_LENGTH) == 0
        assert engine.periods_between(START + 100, START) == 0

    def test_invalid_period_length(self) -> None:
        with pytest.raises(ValueError):
            CompoundInterestEngine(RATE, period_length=0)


class TestCompound:
    def test_zero_periods_returns_principal(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.compound(10 * WAD, START, START + 59) == 10 * WAD

    def test_zero_principal(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.compound(0, START, END) == 0

    def test_one_period(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        value = engine.compound(WAD, START, START + PERIOD_LENGTH)
        assert value == WAD + RATE

    def test_full_window_precision(self) -> None:
        """50,000 units over 720 hourly periods stays within 0.001 units."""
        engine = CompoundInterestEngine(RATE, end=END)
        value = engine.compound(50_000 * WAD, START, END)
        expected = _exact(50_000, 720)
        assert value <= expected
        assert expected - value <= 10 ** 15

    def test_truncation_never_overpays(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        for periods in (1, 7, 100, 719):
            value = engine.compound(123 * WAD, START, START + periods * PERIOD_LENGTH)
            assert value <= _exact(123, periods)

    def test_frozen_after_end(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        at_end = engine.compound(WAD, START, END)
        assert engine.compound(WAD, START, END + 1_000_000) == at_end

    def test_monotonic_in_time(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        previous = 0
        for hours in range(0, 721, 60):
            value = engine.compound(1_000 * WAD, START, START + hours * PERIOD_LENGTH)
            assert value >= previous
            previous = value

    def test_negative_principal_rejected(self) -> None:
        engine = CompoundInterestEngine(RATE, end=END)
        with pytest.raises(ValueError):
            engine.compound(-1, START, END)


class TestRewardBudget:
    def test_exact_growth_rounded_up(self) -> None:
        cap = 1_000 * WAD
        budget = required_reward_budget(RATE, cap, START, END)
        assert 0 <= budget + cap - _exact(1_000, 720) <= 1

    def test_covers_one_shot_compounding(self) -> None:
        cap = 5_000_000 * WAD
        budget = required_reward_budget(RATE, cap, START, END)
        engine = CompoundInterestEngine(RATE, end=END)
        assert engine.compound(cap, START, END) - cap <= budget

    def test_covers_hourly_checkpoints(self) -> None:
        """Compounding one period at a time loses less to truncation than one shot."""
        cap = 5_000_000 * WAD
        budget = required_reward_budget(RATE, cap, START, END)
        engine = CompoundInterestEngine(RATE, end=END)
        value = cap
        for hour in range(720):
            at = START + hour * PERIOD_LENGTH
            value = engine.compound(value, at, at + PERIOD_LENGTH)
        assert value > engine.compound(cap, START, END)
        assert value - cap <= budget

    def test_no_whole_period_no_budget(self) -> None:
        assert required_reward_budget(RATE, 100 * WAD, START, START + PERIOD_LENGTH - 1) == 0

    def test_overflow(self) -> None:
        with pytest.raises(FixedPointOverflowError):
            required_reward_budget(WAD, MAX_UINT256 // 2, START, START + 2 * PERIOD_LENGTH)

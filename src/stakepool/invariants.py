"""Pool invariant checks against the parameter file and the stored state."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from stakepool.config import DEFAULT_CONFIG, PARAMS_FILE, PoolSettings, load_json
from stakepool.persistence.state_store import StateStore
from stakepool.staking.interest import PERIOD_LENGTH, WAD, required_reward_budget
from stakepool.units import to_base_units


def check_params(params: dict, errors: list[str]) -> None:
    """Validate the raw pool parameter file."""
    for key in (
        "pool_account",
        "period_length_seconds",
        "duration_seconds",
        "rate_per_period",
        "hard_cap",
        "contribution_limit",
    ):
        if key not in params:
            errors.append(f"Missing pool parameter: {key}")
    if errors:
        return

    if params["period_length_seconds"] != PERIOD_LENGTH:
        errors.append(f"period_length_seconds must be {PERIOD_LENGTH} (one hour)")
    if params["duration_seconds"] % params["period_length_seconds"] != 0:
        errors.append("duration_seconds should be a whole number of periods")

    try:
        rate = to_base_units(params["rate_per_period"])
        hard_cap = to_base_units(params["hard_cap"])
        limit = to_base_units(params["contribution_limit"])
    except ValueError as e:
        errors.append(str(e))
        return
    if not 0 < rate < WAD:
        errors.append("rate_per_period must be in (0, 1)")
    if hard_cap <= 0:
        errors.append("hard_cap must be positive")
    if not 0 < limit <= hard_cap:
        errors.append("contribution_limit must be in (0, hard_cap]")
    if errors:
        return

    # The worst-case budget must be computable without overflow.
    try:
        required_reward_budget(rate, hard_cap, 0, params["duration_seconds"])
    except ArithmeticError as e:
        errors.append(f"Worst-case reward budget overflows: {e}")


def check_state(
    state_path: Path,
    now: int,
    errors: list[str],
    pool_account: Optional[str] = None,
) -> None:
    """Validate a stored pool snapshot against the ledger invariants."""
    store = StateStore(state_path)
    state = store.load_state()
    if state is None:
        return
    errors.extend(state.check_invariants(now))
    if pool_account is None:
        return
    held = store.load_rail().balance_of(pool_account)
    errors.extend(
        f"Pool account {pool_account}: {err}" for err in state.check_solvency(held, now)
    )


def check(
    config_dir: Path = DEFAULT_CONFIG,
    state_path: Optional[Path] = None,
    now: int = 0,
) -> int:
    errors: list[str] = []
    check_params(load_json(config_dir / PARAMS_FILE), errors)
    if state_path is not None and not errors:
        settings = PoolSettings.from_config_dir(config_dir)
        check_state(state_path, now, errors, settings.pool_account)

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0

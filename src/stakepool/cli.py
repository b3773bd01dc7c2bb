"""stakepool CLI: command-line interface for a local staking pool.

Amounts are given in whole currency units ("1.5") and reported in base
units. Timestamps are UNIX seconds; --now defaults to the wall clock.

Usage:
    python -m stakepool.cli deploy --owner 0xOwner
    python -m stakepool.cli fund --account 0xOwner --amount 1
    python -m stakepool.cli init-pool --caller 0xOwner --start 1700000000 --reward 1
    python -m stakepool.cli stake --patron 0xPatron --amount 1
    python -m stakepool.cli total --patron 0xPatron
    python -m stakepool.cli unstake --patron 0xPatron --all
    python -m stakepool.cli sweep --caller 0xOwner
    python -m stakepool.cli check-invariants
    python -m stakepool.cli events --since 1700000000 --kind stake_added
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from stakepool.config import DEFAULT_CONFIG, PoolSettings
from stakepool.identity import identity_from_key
from stakepool.invariants import check
from stakepool.persistence.event_log import EventKind, EventLog
from stakepool.persistence.state_store import StateStore
from stakepool.service import ServiceResult, StakingPoolService
from stakepool.units import format_amount, to_base_units


# Result fields carrying base-unit amounts, echoed in whole currency units.
AMOUNT_FIELDS = (
    "amount",
    "principal",
    "accrued",
    "principal_released",
    "interest_released",
    "owed_interest",
    "reward_budget",
    "amount_to_owner",
    "total_principal",
    "total_accrued",
    "pool_balance",
    "interest_paid",
    "swept_amount",
    "hard_cap",
    "contribution_limit",
    "balance",
    "value",
)


def _make_service(args: argparse.Namespace) -> StakingPoolService:
    """Create a StakingPoolService with durable persistence."""
    settings: PoolSettings = args.settings
    data_dir: Path = args.data_dir or settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    return StakingPoolService(
        settings,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(data_dir / "state.json"),
    )


def _caller(args: argparse.Namespace, value: Optional[str]) -> str:
    """Explicit identity, else the address of STAKEPOOL_PRIVATE_KEY."""
    if value:
        return value
    if args.settings.private_key:
        return identity_from_key(args.settings.private_key)
    raise ValueError("No caller given and STAKEPOOL_PRIVATE_KEY is not set")


def _with_units(data: dict) -> dict:
    """Add a "units" block of the amounts as currency strings."""
    units = {
        key: format_amount(data[key])
        for key in AMOUNT_FIELDS
        if isinstance(data.get(key), int) and not isinstance(data[key], bool)
    }
    if not units:
        return data
    return {**data, "units": units}


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(_with_units(result.data), indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(_with_units(service.status(args.now)), indent=2, default=str))
    return 0


def cmd_deploy(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.deploy(_caller(args, args.owner)))


def cmd_fund(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.fund(args.account, to_base_units(args.amount), args.now))


def cmd_init_pool(args: argparse.Namespace) -> int:
    service = _make_service(args)
    settings: PoolSettings = args.settings
    caller = _caller(args, args.caller)
    end = args.end if args.end is not None else args.start + settings.duration
    result = service.init_pool(
        caller=caller,
        owner=args.owner or caller,
        start=args.start,
        end=end,
        rate_per_period=to_base_units(args.rate) if args.rate else None,
        hard_cap=to_base_units(args.hard_cap) if args.hard_cap else None,
        contribution_limit=to_base_units(args.limit) if args.limit else None,
        value=to_base_units(args.reward) if args.reward else None,
        now=args.now,
    )
    return _report(result)


def cmd_stake(args: argparse.Namespace) -> int:
    service = _make_service(args)
    patron = _caller(args, args.patron)
    return _report(service.stake(patron, to_base_units(args.amount), args.now))


def cmd_unstake(args: argparse.Namespace) -> int:
    service = _make_service(args)
    patron = _caller(args, args.patron)
    if args.all:
        return _report(service.unstake_all(patron, args.now))
    if not args.amount:
        print("Failed: --amount or --all is required", file=sys.stderr)
        return 1
    return _report(service.unstake(patron, to_base_units(args.amount), args.now))


def cmd_total(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.total(_caller(args, args.patron), args.now))


def cmd_compound(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.compound(to_base_units(args.principal), args.from_ts, args.to_ts)
    )


def cmd_quote(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.quote())


def cmd_sweep(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.sweep(_caller(args, args.caller), args.now))


def cmd_change_owner(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.change_owner(_caller(args, args.caller), args.new_owner, args.now)
    )


def cmd_events(args: argparse.Namespace) -> int:
    """List audit events at or after --since, optionally of one kind."""
    data_dir: Path = args.data_dir or args.settings.data_dir
    log = EventLog(storage_path=data_dir / "events.jsonl")
    kind = EventKind(args.kind) if args.kind else None
    events = [
        {**event.to_dict(), "time": event.timestamp_utc}
        for event in log.events_since(args.since, kind)
    ]
    print(json.dumps(events, indent=2))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run pool invariant checks on the parameters and the stored state."""
    data_dir: Path = args.data_dir or args.settings.data_dir
    state_path = data_dir / "state.json"
    return check(
        config_dir=args.config,
        state_path=state_path if state_path.exists() else None,
        now=args.now or 0,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stakepool",
        description="Time-bounded compound-interest staking pool",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="State directory (default: STAKEPOOL_DATA_DIR or data/)",
    )
    parser.add_argument("--now", type=int, default=None, help="Override current time (UNIX seconds)")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show pool status")

    p_deploy = sub.add_parser("deploy", help="Deploy an uninitialized pool")
    p_deploy.add_argument("--owner", help="Deploying owner (default: key in .env)")

    p_fund = sub.add_parser("fund", help="Credit an account on the local rail")
    p_fund.add_argument("--account", required=True)
    p_fund.add_argument("--amount", required=True, help="Amount in currency units")

    p_init = sub.add_parser("init-pool", help="Initialize the pool and lock the reward budget")
    p_init.add_argument("--caller", help="Calling owner (default: key in .env)")
    p_init.add_argument("--owner", help="Operator entitled to sweep (default: caller)")
    p_init.add_argument("--start", type=int, required=True, help="Window start (UNIX seconds)")
    p_init.add_argument("--end", type=int, help="Window end (default: start + configured duration)")
    p_init.add_argument("--rate", help="Rate per period, e.g. 0.0000225")
    p_init.add_argument("--hard-cap", help="Hard cap in currency units")
    p_init.add_argument("--limit", help="Contribution limit in currency units")
    p_init.add_argument("--reward", help="Reward budget (default: worst-case interest)")

    p_stake = sub.add_parser("stake", help="Stake currency")
    p_stake.add_argument("--patron", help="Patron (default: key in .env)")
    p_stake.add_argument("--amount", required=True, help="Amount in currency units")

    p_unstake = sub.add_parser("unstake", help="Withdraw up to the accrued value")
    p_unstake.add_argument("--patron", help="Patron (default: key in .env)")
    p_unstake.add_argument("--amount", help="Amount in currency units")
    p_unstake.add_argument("--all", action="store_true", help="Withdraw everything")

    p_total = sub.add_parser("total", help="Show a patron's principal and accrued value")
    p_total.add_argument("--patron", help="Patron (default: key in .env)")

    p_compound = sub.add_parser("compound", help="Compound a principal at the pool rate")
    p_compound.add_argument("--principal", required=True, help="Principal in currency units")
    p_compound.add_argument("--from", dest="from_ts", type=int, required=True)
    p_compound.add_argument("--to", dest="to_ts", type=int, required=True)

    sub.add_parser("quote", help="Preview the post-expiry sweep")

    p_sweep = sub.add_parser("sweep", help="Release the unclaimed reward budget to the owner")
    p_sweep.add_argument("--caller", help="Owner (default: key in .env)")

    p_owner = sub.add_parser("change-owner", help="Transfer pool ownership")
    p_owner.add_argument("--caller", help="Current owner (default: key in .env)")
    p_owner.add_argument("--new-owner", required=True)

    p_events = sub.add_parser("events", help="List audit events")
    p_events.add_argument("--since", type=int, default=0, help="Earliest pool timestamp")
    p_events.add_argument(
        "--kind", choices=[k.value for k in EventKind], help="Only events of this kind",
    )

    sub.add_parser("check-invariants", help="Run pool invariant checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    args.settings = PoolSettings.from_config_dir(args.config)
    logging.basicConfig(
        level=getattr(logging, args.settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "status": cmd_status,
        "deploy": cmd_deploy,
        "fund": cmd_fund,
        "init-pool": cmd_init_pool,
        "stake": cmd_stake,
        "unstake": cmd_unstake,
        "total": cmd_total,
        "compound": cmd_compound,
        "quote": cmd_quote,
        "sweep": cmd_sweep,
        "change-owner": cmd_change_owner,
        "events": cmd_events,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""Staking pool invariant checks against the parameter file and stored state.

Usage:
    python tools/check_invariants.py [--state data/state.json] [--now 1700000000]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from stakepool.invariants import check  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=ROOT / "config")
    parser.add_argument("--state", type=Path, default=None)
    parser.add_argument("--now", type=int, default=0)
    args = parser.parse_args(argv)
    return check(config_dir=args.config, state_path=args.state, now=args.now)


if __name__ == "__main__":
    raise SystemExit(main())

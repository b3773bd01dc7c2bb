"""Pool settings: defaults from config/pool_params.json, overrides from .env.

Currency amounts in the JSON file are decimal strings in whole currency
units; they are converted to base units on load. The rate uses the same
18-digit scale ("0.0000225" per period).

Environment overrides (a .env file at the project root is loaded first):
    STAKEPOOL_DATA_DIR      directory for state.json and events.jsonl
    STAKEPOOL_LOG_LEVEL     logging level name (default INFO)
    STAKEPOOL_POOL_ACCOUNT  rail account that holds the pool's currency
    STAKEPOOL_PRIVATE_KEY   key of the default CLI caller
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from stakepool.units import to_base_units

ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"
PARAMS_FILE = "pool_params.json"


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


@dataclass(frozen=True)
class PoolSettings:
    """Resolved settings for one pool deployment."""
    pool_account: str
    period_length: int
    duration: int
    rate_per_period: int
    hard_cap: int
    contribution_limit: int
    data_dir: Path
    log_level: str = "INFO"
    private_key: Optional[str] = None

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path = DEFAULT_CONFIG,
        env_file: Optional[Path] = None,
    ) -> "PoolSettings":
        """Load pool_params.json from config_dir and apply env overrides.

        Raises ValueError if a required parameter is missing or invalid.
        """
        load_dotenv(env_file or ROOT / ".env")
        params = load_json(config_dir / PARAMS_FILE)
        try:
            settings = cls(
                pool_account=os.getenv("STAKEPOOL_POOL_ACCOUNT", params["pool_account"]),
                period_length=int(params["period_length_seconds"]),
                duration=int(params["duration_seconds"]),
                rate_per_period=to_base_units(params["rate_per_period"]),
                hard_cap=to_base_units(params["hard_cap"]),
                contribution_limit=to_base_units(params["contribution_limit"]),
                data_dir=Path(os.getenv("STAKEPOOL_DATA_DIR", str(DEFAULT_DATA))),
                log_level=os.getenv("STAKEPOOL_LOG_LEVEL", params.get("log_level", "INFO")),
                private_key=os.getenv("STAKEPOOL_PRIVATE_KEY") or None,
            )
        except KeyError as e:
            raise ValueError(f"Missing pool parameter in {config_dir / PARAMS_FILE}: {e}")
        settings.validate()
        return settings

    def validate(self) -> None:
        if not self.pool_account.strip():
            raise ValueError("pool_account must not be empty")
        if self.period_length <= 0:
            raise ValueError(f"period_length_seconds must be positive, got {self.period_length}")
        if self.duration < self.period_length:
            raise ValueError("duration_seconds must cover at least one period")
        if self.rate_per_period <= 0:
            raise ValueError("rate_per_period must be positive")
        if self.hard_cap <= 0:
            raise ValueError("hard_cap must be positive")
        if not 0 < self.contribution_limit <= self.hard_cap:
            raise ValueError("contribution_limit must be in (0, hard_cap]")

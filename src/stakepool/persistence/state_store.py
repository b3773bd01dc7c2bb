"""State store: JSON snapshot of the pool and the local rail.

The snapshot holds the PoolState (config + ledger) and the rail
balances. Amounts are written as decimal strings. Writes go to a
temporary file first and replace the snapshot in one step, so a crash
mid-write never leaves a half-written state file behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from stakepool.staking.rail import InMemoryRail
from stakepool.staking.state import PoolState

SNAPSHOT_VERSION = 1


class StateStore:
    """File-backed pool snapshot.

    Usage:
        store = StateStore(data_dir / "state.json")
        store.save(state, rail)
        state = store.load_state()
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(self, state: PoolState, rail: InMemoryRail) -> None:
        """Write the snapshot. Raises OSError on I/O failure."""
        data = {
            "version": SNAPSHOT_VERSION,
            "pool": state.to_dict(),
            "rail": rail.to_dict(),
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self._storage_path)

    def load_state(self) -> Optional[PoolState]:
        data = self._read()
        if data is None:
            return None
        return PoolState.from_dict(data["pool"])

    def load_rail(self) -> InMemoryRail:
        data = self._read()
        if data is None:
            return InMemoryRail()
        return InMemoryRail.from_dict(data.get("rail", {}))

    def _read(self) -> Optional[dict]:
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported state snapshot version {version} in {self._storage_path}"
            )
        return data

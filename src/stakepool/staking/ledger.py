"""Patron ledger: per-patron accounting records and the patron registry.

The ledger is the single keyed store of PatronRecords. Records live in
an index-stable list (the registry) with a parallel identity -> index
map, so reconciliation can enumerate every patron exactly once without
depending on dictionary ordering. Records are never removed: a fully
withdrawn patron keeps principal == accrued == 0.

catch_up brings a record forward to the current time; view does the
same on a copy and leaves stored state untouched.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterator, List, Optional

from stakepool.models.pool import PatronBalance, PatronRecord
from stakepool.staking.interest import CompoundInterestEngine

logger = logging.getLogger(__name__)


def catch_up(
    record: PatronRecord,
    engine: CompoundInterestEngine,
    now: int,
) -> PatronRecord:
    """Compound the record's accrued value up to min(now, end).

    Idempotent at a fixed now. Never touches principal.
    """
    effective_now = now if engine.end is None else min(now, engine.end)
    if effective_now <= record.checkpoint:
        return record
    compounded = engine.compound(record.accrued, record.checkpoint, effective_now)
    logger.debug(
        "[Ledger] catch-up %s: %s -> %s (%s -> %s)",
        record.patron, record.accrued, compounded, record.checkpoint, effective_now,
    )
    record.accrued = compounded
    record.checkpoint = effective_now
    return record


def view(
    record: PatronRecord,
    engine: CompoundInterestEngine,
    now: int,
) -> PatronBalance:
    """Principal and accrued value at now, without mutating the record."""
    projected = catch_up(replace(record), engine, now)
    return PatronBalance(principal=projected.principal, accrued=projected.accrued)


class PatronLedger:
    """In-memory store of patron records plus the registry of identities.

    Usage:
        ledger = PatronLedger()
        record = ledger.open_record("0xabc...", now)
        record = ledger.get("0xabc...")

        # Reconciliation:
        for record in ledger.records():
            ...
    """

    def __init__(self) -> None:
        self._records: List[PatronRecord] = []
        self._index: Dict[str, int] = {}

    def get(self, patron: str) -> Optional[PatronRecord]:
        """Return the record for a patron, or None if never seen."""
        position = self._index.get(patron)
        if position is None:
            return None
        return self._records[position]

    def open_record(self, patron: str, now: int) -> PatronRecord:
        """Create a record and register the identity.

        Raises ValueError if the patron is already registered.
        """
        if patron in self._index:
            raise ValueError(f"Patron already registered: {patron}")
        record = PatronRecord(patron=patron, checkpoint=now)
        self._index[patron] = len(self._records)
        self._records.append(record)
        return record

    def records(self) -> Iterator[PatronRecord]:
        """Iterate records in registry order."""
        return iter(self._records)

    def patrons(self) -> List[str]:
        """Return every identity ever registered, in registry order."""
        return [r.patron for r in self._records]

    def total_principal(self) -> int:
        return sum(r.principal for r in self._records)

    def __contains__(self, patron: object) -> bool:
        return patron in self._index

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize the registry for persistence."""
        return {"records": [r.to_dict() for r in self._records]}

    @classmethod
    def from_dict(cls, data: dict) -> "PatronLedger":
        """Reconstruct a ledger from persisted data.

        Raises ValueError on duplicate identities.
        """
        ledger = cls()
        for raw in data.get("records", []):
            record = PatronRecord.from_dict(raw)
            if record.patron in ledger._index:
                raise ValueError(f"Duplicate patron in persisted ledger: {record.patron}")
            ledger._index[record.patron] = len(ledger._records)
            ledger._records.append(record)
        return ledger

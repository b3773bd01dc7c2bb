"""Patron eligibility: optional gate in front of stake.

Deployments that require patrons to hold a verified role plug a
PatronEligibility in here; the permissionless pool uses OpenEligibility.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, Protocol, runtime_checkable


@runtime_checkable
class PatronEligibility(Protocol):
    def is_eligible(self, patron: str) -> bool:
        ...


class OpenEligibility:
    """Every patron may stake."""

    def is_eligible(self, patron: str) -> bool:
        return True


class RoleEligibility:
    """Patron must hold at least one of the required roles.

    Usage:
        gate = RoleEligibility({"email.roles.verification.apps"})
        gate.grant("0xabc...", "email.roles.verification.apps")
    """

    def __init__(self, required_roles: Iterable[str]) -> None:
        self._required: FrozenSet[str] = frozenset(required_roles)
        if not self._required:
            raise ValueError("At least one required role must be given")
        self._roles: Dict[str, set] = {}

    def grant(self, patron: str, role: str) -> None:
        self._roles.setdefault(patron, set()).add(role)

    def revoke(self, patron: str, role: str) -> None:
        self._roles.get(patron, set()).discard(role)

    def is_eligible(self, patron: str) -> bool:
        return bool(self._roles.get(patron, set()) & self._required)

"""Reentrancy latch shared by every mutating pool operation."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from stakepool.staking.errors import ReentrancyError


class ReentrancyGuard:
    """Boolean latch held for the duration of a mutating operation.

    Any mutating call made while the latch is held (for example from a
    recipient's receive hook during an outbound transfer) is rejected.
    """

    def __init__(self) -> None:
        self._entered = False

    @property
    def entered(self) -> bool:
        return self._entered

    @contextmanager
    def hold(self) -> Iterator[None]:
        if self._entered:
            raise ReentrancyError()
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

"""
Stale-result guard.

Long operations (decryptions, transactions) capture a ticket for the target
they were started for. When the view moves to another target or is torn
down, late results for the old ticket are dropped instead of applied.
"""
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Hashable, Optional

logger = logging.getLogger("staleness")


@dataclass(frozen=True)
class Ticket:
    target: Hashable
    generation: int


class StaleResultGuard:

    def __init__(self, target: Optional[Hashable] = None):
        self._generations = itertools.count(1)
        self._target = target
        self._generation = next(self._generations)
        self._closed = False

    @property
    def target(self) -> Optional[Hashable]:
        return self._target

    def begin(self, target: Optional[Hashable] = None) -> Ticket:
        """Capture a ticket for the current (or given) target."""
        if target is not None and target != self._target:
            self.retarget(target)
        return Ticket(target=self._target, generation=self._generation)

    def retarget(self, target: Hashable) -> None:
        """Switch to a new target; results for older tickets become stale."""
        self._target = target
        self._generation = next(self._generations)

    def close(self) -> None:
        """Tear down: every outstanding ticket becomes stale."""
        self._closed = True
        self._generation = next(self._generations)

    def is_current(self, ticket: Ticket) -> bool:
        return (
            not self._closed
            and ticket.generation == self._generation
            and ticket.target == self._target
        )

    def accept(self, ticket: Ticket, result: Any) -> bool:
        """Return True if `result` may be applied; log and drop it otherwise."""
        if self.is_current(ticket):
            return True
        logger.info(f"Discarding stale result for {ticket.target!r}")
        return False

"""
Optimistic field updates with explicit rollback.

Used for the user role selector: the new role is displayed immediately while
the remote call runs, and the previous value comes back if it fails.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import AdminConsoleError
from .outcome import Outcome

logger = logging.getLogger(__name__)


@dataclass
class OptimisticField:
    """
    Three-state field: ``committed`` (server value), ``pending`` (value being
    written) and ``previous`` (value to restore on rollback).
    """

    committed: Any
    pending: Optional[Any] = None
    previous: Optional[Any] = None
    label: str = "value"

    @property
    def in_flight(self) -> bool:
        return self.pending is not None

    @property
    def displayed(self) -> Any:
        return self.pending if self.pending is not None else self.committed

    def propose(self, value: Any) -> bool:
        """Start an optimistic change. Returns False if nothing changes."""
        if value == self.displayed:
            return False
        self.previous = self.committed
        self.pending = value
        logger.debug(f"Optimistic {self.label} change: {self.committed!r} -> {value!r}")
        return True

    def confirm(self) -> None:
        if self.pending is None:
            return
        self.committed = self.pending
        self.pending = None
        self.previous = None

    def rollback(self) -> None:
        if self.pending is None:
            return
        logger.debug(f"Rolling back {self.label} to {self.previous!r}")
        self.committed = self.previous
        self.pending = None
        self.previous = None

    def apply(self, value: Any, writer: Callable[[Any], Any]) -> Outcome:
        """Propose ``value``, write it, then confirm or roll back."""
        if not self.propose(value):
            return Outcome.skipped(f"{self.label.capitalize()} unchanged")

        try:
            writer(value)
        except AdminConsoleError as e:
            self.rollback()
            return Outcome.remote_failure(f"Failed to change {self.label}", e)

        self.confirm()
        return Outcome.success(f"{self.label.capitalize()} changed to \"{value}\"")

"""
Outcome values returned by the editing sessions.

Core code never displays notifications itself; it returns an Outcome (or a
BatchOutcome for per-entity commits) and the hosting view decides how to
surface it.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import AdminConsoleError


class OutcomeKind:
    """Outcome kind constants."""
    SUCCESS = "success"
    VALIDATION = "validation"
    REMOTE = "remote"
    SKIPPED = "skipped"


@dataclass
class Outcome:
    """Result of a single user-triggered operation."""

    kind: str
    message: str
    error: Optional[AdminConsoleError] = None

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @classmethod
    def success(cls, message: str) -> 'Outcome':
        return cls(OutcomeKind.SUCCESS, message)

    @classmethod
    def validation_failure(cls, message: str) -> 'Outcome':
        return cls(OutcomeKind.VALIDATION, message)

    @classmethod
    def remote_failure(cls, message: str, error: AdminConsoleError) -> 'Outcome':
        return cls(OutcomeKind.REMOTE, message, error)

    @classmethod
    def skipped(cls, message: str) -> 'Outcome':
        return cls(OutcomeKind.SKIPPED, message)


@dataclass
class BatchOutcome:
    """
    Result of a batch of independent per-entity remote calls.

    Nothing is assumed atomic: each entity either succeeded or failed on its
    own, and failures stay attributed to the entity that caused them.
    """

    action: str
    subject: str
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, AdminConsoleError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        return bool(self.failed) and bool(self.succeeded)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def _title(self) -> str:
        # keep acronyms such as "ACL" intact
        return self.action[:1].upper() + self.action[1:]

    @property
    def message(self) -> str:
        if not self.total:
            return f"No {self.action} needed for \"{self.subject}\""
        if self.ok:
            return f"{self._title} done for \"{self.subject}\" ({len(self.succeeded)} entities)"
        failed_names = ", ".join(sorted(self.failed))
        if self.partial:
            return (f"{self._title} partially failed for \"{self.subject}\": "
                    f"{len(self.succeeded)} succeeded, failed for {failed_names}")
        return f"{self._title} failed for \"{self.subject}\": {failed_names}"

    def as_outcome(self) -> Outcome:
        """Collapse to a single Outcome (first error kept for details)."""
        if self.ok:
            return Outcome.success(self.message)
        first_entity = sorted(self.failed)[0]
        return Outcome.remote_failure(self.message, self.failed[first_entity])

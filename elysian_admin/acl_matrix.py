"""
Permission matrix editing with sparse dirty tracking.

For one subject (a user), each entity owns a cell holding the baseline
PermissionSet loaded from the server and the current, edited copy. The
pending map contains exactly the entities whose current set differs from the
baseline, and is what a bulk commit sends.
"""

import copy
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .errors import AdminConsoleError, MatrixStateError
from .loading_state import RequestSequencer
from .outcome import BatchOutcome, Outcome

logger = logging.getLogger(__name__)

PERMISSIONS = (
    "read",
    "create",
    "update",
    "delete",
    "owning_read",
    "owning_write",
    "owning_update",
    "owning_delete",
)

PERMISSION_DESCRIPTIONS = {
    "read": "Allows reading all records of the entity.",
    "create": "Allows creating new records in the entity.",
    "update": "Allows updating any record of the entity.",
    "delete": "Allows deleting any record of the entity.",
    "owning_read": "Allows reading only records owned by the user.",
    "owning_write": "Allows creating records owned by the user.",
    "owning_update": "Allows updating only records owned by the user.",
    "owning_delete": "Allows deleting only records owned by the user.",
}

DEFAULT_MAX_PARALLEL_WRITES = 4

PermissionSet = Dict[str, bool]


def permission_sets_equal(a: Optional[Mapping[str, bool]], b: Optional[Mapping[str, bool]]) -> bool:
    """Structural equality of two permission sets; a missing flag counts as False."""
    if a is None or b is None:
        return a is b
    names = set(a) | set(b)
    return all(bool(a.get(name, False)) == bool(b.get(name, False)) for name in names)


def filter_names(names: Iterable[str], query: str) -> List[str]:
    """Case-insensitive substring filter over an already loaded list."""
    names = list(names)
    query = (query or "").strip().lower()
    if not query:
        return names
    return [name for name in names if query in name.lower()]


class MatrixDiffTracker:
    """
    Tracks edits to one subject's permission row.

    Cell life cycle: unloaded -> loaded (current == baseline) -> dirty
    (current != baseline) -> back to loaded when edits return to baseline.
    """

    def __init__(self, max_parallel_writes: int = DEFAULT_MAX_PARALLEL_WRITES):
        self.max_parallel_writes = max(1, int(max_parallel_writes))
        self.subject: Optional[str] = None
        self._baseline: Dict[str, PermissionSet] = {}
        self._current: Dict[str, PermissionSet] = {}
        self._pending: Dict[str, PermissionSet] = {}
        self._sequencer = RequestSequencer()
        self._loading = False
        self.load_error: Optional[AdminConsoleError] = None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def loaded(self) -> bool:
        return self.subject is not None and not self._loading and self.load_error is None

    @property
    def entities(self) -> List[str]:
        return list(self._current)

    @property
    def pending(self) -> Dict[str, PermissionSet]:
        """Copy of the pending change map."""
        return copy.deepcopy(self._pending)

    @property
    def is_dirty(self) -> bool:
        return bool(self._pending)

    def baseline_for(self, entity: str) -> Optional[PermissionSet]:
        cell = self._baseline.get(entity)
        return dict(cell) if cell is not None else None

    def current_for(self, entity: str) -> Optional[PermissionSet]:
        cell = self._current.get(entity)
        return dict(cell) if cell is not None else None

    def baselines(self) -> Dict[str, PermissionSet]:
        return copy.deepcopy(self._baseline)

    def begin_load(self, subject: str) -> int:
        """
        Start loading ``subject`` and return the generation tag of this load.

        All cells and pending entries of the previous subject are dropped, and
        edits are refused until the matching ``apply_baseline`` call.
        """
        tag = self._sequencer.next_tag()
        if subject != self.subject:
            logger.info(f"ACL subject changed: {self.subject} -> {subject}")
        self.subject = subject
        self._baseline = {}
        self._current = {}
        self._pending = {}
        self._loading = True
        self.load_error = None
        logger.debug(f"Loading permissions for '{subject}' (generation {tag})")
        return tag

    def apply_baseline(self, tag: int, rows: Mapping[str, Mapping[str, bool]]) -> bool:
        """
        Install loaded rows if ``tag`` is still the latest load.

        Returns False (and changes nothing) for a stale response.
        """
        if not self._sequencer.is_current(tag):
            logger.debug(f"Ignoring stale permissions response (generation {tag})")
            return False

        self._baseline = {entity: dict(permissions) for entity, permissions in rows.items()}
        self._current = copy.deepcopy(self._baseline)
        self._pending = {}
        self._loading = False
        logger.info(f"Loaded permissions for '{self.subject}' on {len(self._baseline)} entities")
        return True

    def fail_load(self, tag: int, error: AdminConsoleError) -> bool:
        """Record a failed load if ``tag`` is still the latest load."""
        if not self._sequencer.is_current(tag):
            return False
        self._loading = False
        self.load_error = error
        return True

    def load_baseline(self, subject: str,
                      loader: Callable[[str], Mapping[str, Mapping[str, bool]]]) -> Outcome:
        """Fetch the full permission row of ``subject`` and reset every cell to it."""
        tag = self.begin_load(subject)
        try:
            applied = self.apply_baseline(tag, loader(subject))
        except AdminConsoleError as e:
            logger.error(f"Failed to load permissions for '{subject}': {e}")
            self.fail_load(tag, e)
            return Outcome.remote_failure(f"Failed to load ACLs for \"{subject}\"", e)
        except Exception as e:
            logger.error(f"Unexpected error loading permissions for '{subject}': {e}", exc_info=True)
            error = AdminConsoleError(
                f"Unexpected response while loading permissions for '{subject}': {e}",
                context={'subject': subject, 'error_type': type(e).__name__},
                recovery_suggestions=["Retry loading the permissions", "Check the server logs for details"]
            )
            self.fail_load(tag, error)
            return Outcome.remote_failure(f"Failed to load ACLs for \"{subject}\"", error)

        if not applied:
            return Outcome.skipped(f"A newer load for \"{self.subject}\" is in progress")
        return Outcome.success(f"ACLs loaded for \"{subject}\"")

    def toggle(self, entity: str, permission: str) -> PermissionSet:
        """
        Flip one flag of ``entity`` and refresh its pending entry.

        Returns the new current PermissionSet of the entity.
        """
        if permission not in PERMISSIONS:
            raise MatrixStateError(entity, f"unknown permission '{permission}'", self.subject)
        if self._loading:
            raise MatrixStateError(entity, "permissions are still loading", self.subject)
        if entity not in self._current:
            raise MatrixStateError(entity, "no permissions loaded for this entity", self.subject)

        updated = dict(self._current[entity])
        updated[permission] = not updated.get(permission, False)
        self._current[entity] = updated
        self._refresh_pending(entity)
        return dict(updated)

    def set_permission(self, entity: str, permission: str, enabled: bool) -> PermissionSet:
        """Set one flag explicitly (checkbox widgets report the new value)."""
        if permission not in PERMISSIONS:
            raise MatrixStateError(entity, f"unknown permission '{permission}'", self.subject)
        current = self._current.get(entity)
        if current is not None and not self._loading and current.get(permission, False) == bool(enabled):
            return dict(current)
        return self.toggle(entity, permission)

    def _refresh_pending(self, entity: str) -> None:
        if permission_sets_equal(self._current[entity], self._baseline.get(entity)):
            if self._pending.pop(entity, None) is not None:
                logger.debug(f"'{entity}' is back to its baseline")
        else:
            self._pending[entity] = dict(self._current[entity])
            logger.debug(f"'{entity}' marked dirty")

    def discard_changes(self) -> None:
        self._current = copy.deepcopy(self._baseline)
        self._pending = {}

    def commit_pending(self, writer: Callable[[str, str, PermissionSet], Any]) -> BatchOutcome:
        """
        Write every pending entity with one ``writer(subject, entity, permissions)`` call each.

        Writes run concurrently and independently. Each succeeded entity gets
        its baseline updated and leaves the pending map; failed entities stay
        pending with their error attributed in the returned BatchOutcome.
        """
        subject = self.subject or ""
        batch = BatchOutcome(action="ACL update", subject=subject)
        snapshot = copy.deepcopy(self._pending)
        if not snapshot:
            return batch

        logger.info(f"Committing ACL changes for '{subject}' on {len(snapshot)} entities")
        worker_cap = min(len(snapshot), self.max_parallel_writes)

        with ThreadPoolExecutor(max_workers=worker_cap) as pool:
            future_map = {
                pool.submit(writer, subject, entity, permissions): entity
                for entity, permissions in snapshot.items()
            }
            wait(future_map)

        for future, entity in future_map.items():
            try:
                future.result()
            except AdminConsoleError as e:
                logger.error(f"ACL write failed for '{subject}' on '{entity}': {e}")
                batch.failed[entity] = e
                continue

            written = snapshot[entity]
            self._baseline[entity] = dict(written)
            if entity in self._current:
                self._refresh_pending(entity)
            else:
                self._pending.pop(entity, None)
            batch.succeeded.append(entity)

        batch.succeeded.sort()
        return batch

    def restore_defaults(self, entities: Iterable[str],
                         resetter: Callable[[str, str], Any],
                         loader: Callable[[str], Mapping[str, Mapping[str, bool]]]) -> BatchOutcome:
        """
        Reset ``entities`` to the server defaults, then reload the baseline.

        One ``resetter(subject, entity)`` call per entity, regardless of dirty
        state. When at least one reset succeeded the baseline is reloaded,
        which also clears the pending map.
        """
        subject = self.subject or ""
        batch = BatchOutcome(action="default ACL restore", subject=subject)

        for entity in entities:
            try:
                resetter(subject, entity)
            except AdminConsoleError as e:
                logger.error(f"ACL reset failed for '{subject}' on '{entity}': {e}")
                batch.failed[entity] = e
                continue
            batch.succeeded.append(entity)

        if batch.succeeded:
            reload_outcome = self.load_baseline(subject, loader)
            if reload_outcome.error is not None:
                batch.failed["(reload)"] = reload_outcome.error

        return batch

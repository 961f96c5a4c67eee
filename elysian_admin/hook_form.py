"""
Validated editing session for a single read hook.

The draft is re-validated on every field change and can only be saved while
every rule holds. A failed save keeps the draft untouched so nothing typed is
lost.
"""

import logging
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from .errors import AdminConsoleError
from .models import HOOK_EVENTS, HookInput, HookRecord, validation_messages
from .outcome import Outcome

logger = logging.getLogger(__name__)

SCRIPT_PREFIXES = {
    "post_read": "function postRead",
    "pre_read": "function preRead",
}

EDITABLE_FIELDS = ("name", "event", "priority", "language", "script", "bypass_acl", "enabled")


def validate_hook_script(event: str, script: Optional[str]) -> Optional[str]:
    """
    Check the syntactic prefix rule of a hook script.

    An empty script is valid (not yet authored). Otherwise the script must
    start with the function declaration of its event.

    Returns:
        The message of the failing rule, or None when the script is valid.
    """
    if not script:
        return None
    prefix = SCRIPT_PREFIXES.get(event)
    if prefix is None:
        return f"Unknown hook event '{event}'"
    if not script.startswith(prefix):
        return f"A {event} script must start with \"{prefix}\""
    return None


@dataclass(frozen=True)
class HookDraft:
    """Editable copy of a hook record."""

    id: Optional[str]
    entity: str
    name: str = ""
    event: str = "post_read"
    priority: int = 1
    language: str = "javascript"
    script: str = ""
    bypass_acl: bool = False
    enabled: bool = True

    @classmethod
    def from_record(cls, record: Any) -> "HookDraft":
        """Build a draft from a HookRecord or a raw API dict, filling defaults."""
        data = record.model_dump() if isinstance(record, HookRecord) else dict(record or {})
        return cls(
            id=data.get("id"),
            entity=data.get("entity") or "",
            name=data.get("name") or "",
            event=data.get("event") or "post_read",
            priority=data.get("priority") if data.get("priority") is not None else 1,
            language=data.get("language") or "javascript",
            script=data.get("script") or "",
            bypass_acl=bool(data.get("bypass_acl", False)),
            enabled=bool(data.get("enabled", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def validate_draft(draft: HookDraft) -> List[str]:
    """All failing rules of ``draft``; empty when it can be saved."""
    errors = []
    try:
        HookInput.model_validate(draft.to_dict())
    except ValidationError as e:
        errors.extend(validation_messages(e))

    script_error = validate_hook_script(draft.event, draft.script)
    if script_error and draft.event in HOOK_EVENTS:
        errors.append(script_error)
    return errors


class FormState(Enum):
    NO_DRAFT = "no_draft"
    EDITING = "editing"
    SAVING = "saving"


class HookFormSession:
    """
    Owns the hook draft being edited.

    States: NO_DRAFT -> EDITING (valid or invalid) -> SAVING -> EDITING.
    """

    def __init__(self):
        self.state = FormState.NO_DRAFT
        self.draft: Optional[HookDraft] = None
        self._saved: Optional[HookDraft] = None
        self._errors: List[str] = []

    def load(self, record: Any) -> HookDraft:
        """Replace any draft with a fresh copy of ``record``."""
        if self.draft is not None and self.has_unsaved_changes:
            logger.info(f"Discarding unsaved draft of hook {self.draft.id}")
        self.draft = HookDraft.from_record(record)
        self._saved = self.draft
        self.state = FormState.EDITING
        self._errors = validate_draft(self.draft)
        logger.debug(f"Loaded hook {self.draft.id} for editing")
        return self.draft

    def clear(self) -> None:
        self.state = FormState.NO_DRAFT
        self.draft = None
        self._saved = None
        self._errors = []

    def set_field(self, key: str, value: Any) -> List[str]:
        """
        Replace one draft attribute and re-derive the errors.

        Returns the current list of failing rules.
        """
        if self.draft is None:
            raise AdminConsoleError(
                "No hook is loaded",
                context={"field": key},
                recovery_suggestions=["Select a hook before editing it"],
            )
        if key not in EDITABLE_FIELDS:
            raise AdminConsoleError(
                f"Hook field '{key}' cannot be edited",
                context={"field": key, "editable": list(EDITABLE_FIELDS)},
            )
        if getattr(self.draft, key) == value:
            return list(self._errors)

        self.draft = replace(self.draft, **{key: value})
        self._errors = validate_draft(self.draft)
        return list(self._errors)

    def update(self, values: Mapping[str, Any]) -> List[str]:
        for key, value in values.items():
            self.set_field(key, value)
        return list(self._errors)

    @property
    def errors(self) -> List[str]:
        return list(self._errors)

    @property
    def script_error(self) -> Optional[str]:
        if self.draft is None:
            return None
        return validate_hook_script(self.draft.event, self.draft.script)

    @property
    def is_valid(self) -> bool:
        return self.draft is not None and not self._errors

    @property
    def has_unsaved_changes(self) -> bool:
        return self.draft is not None and self.draft != self._saved

    @property
    def needs_attention(self) -> bool:
        """True when the draft has unsaved edits or fails validation."""
        return self.draft is not None and (self.has_unsaved_changes or bool(self._errors))

    def save(self, saver: Callable[[str, Dict[str, Any]], Any]) -> Outcome:
        """
        Send the draft with ``saver(hook_id, payload)`` if it is valid.

        An invalid draft is never sent. A remote failure leaves the draft as
        it was so the user can retry.
        """
        if self.draft is None:
            return Outcome.skipped("No hook is loaded")
        if self._errors:
            logger.info(f"Save of hook {self.draft.id} blocked: {self._errors}")
            return Outcome.validation_failure(self._errors[0])

        draft = self.draft
        self.state = FormState.SAVING
        try:
            saver(draft.id, draft.to_dict())
        except AdminConsoleError as e:
            logger.error(f"Failed to save hook {draft.id}: {e}")
            self.state = FormState.EDITING
            return Outcome.remote_failure(f"Failed to save hook \"{draft.name or draft.id}\"", e)

        self.state = FormState.EDITING
        self._saved = draft
        logger.info(f"Saved hook {draft.id} ({draft.event}, priority {draft.priority})")
        return Outcome.success(f"Hook \"{draft.name or draft.id}\" saved")


def group_hooks_by_event(hooks: List[Any]) -> Dict[str, List[HookRecord]]:
    """Hooks grouped by event, each group sorted by priority (highest first)."""
    grouped: Dict[str, List[HookRecord]] = {event: [] for event in HOOK_EVENTS}
    for hook in hooks:
        record = hook if isinstance(hook, HookRecord) else HookRecord.model_validate(hook)
        grouped.setdefault(record.event, []).append(record)
    for records in grouped.values():
        records.sort(key=lambda record: record.priority, reverse=True)
    return grouped

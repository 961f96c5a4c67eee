"""
Pydantic models for the records exchanged with the ElysianDB API.
"""

import json
import logging
from typing import Dict, List, Literal, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

HOOK_EVENTS = ("pre_read", "post_read")
HOOK_LANGUAGES = ("javascript",)
USER_ROLES = ("admin", "user")
MIN_HOOK_PRIORITY = 1
MAX_HOOK_PRIORITY = 100


class HookRecord(BaseModel):
    """
    A server-side read hook as stored by the server.

    Parsing is lenient: the server does not enforce the priority range or the
    event and language vocabularies, so stored hooks must load whatever they
    hold. The editing rules live in HookInput.
    """

    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    entity: str
    name: str = ""
    event: str = "post_read"
    priority: int = 1
    language: str = "javascript"
    script: str = ""
    bypass_acl: bool = False
    enabled: bool = True

    @field_validator('name', 'script', mode='before')
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class HookInput(HookRecord):
    """A hook as the editor may save it."""

    event: Literal["pre_read", "post_read"] = "post_read"
    priority: int = Field(default=1, ge=MIN_HOOK_PRIORITY, le=MAX_HOOK_PRIORITY)
    language: Literal["javascript"] = "javascript"


class AclEntry(BaseModel):
    """Permissions of one user on one entity."""

    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    username: str
    entity: str
    permissions: Dict[str, bool] = Field(default_factory=dict)


class UserRecord(BaseModel):
    """An ElysianDB user account."""

    model_config = ConfigDict(extra='ignore')

    username: str
    role: str = "user"


class EntityTypeSummary(BaseModel):
    """An entry of the entity type list."""

    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    id: str
    manual: bool = Field(default=False, alias='_manual')


def parse_entity_types(payload: Any) -> List[EntityTypeSummary]:
    """
    Parse the ``/api/entity/types`` response.

    The server returns ``{"entities": [...]}`` where each entry is a JSON
    encoded schema document (or a bare name). Null and unparseable entries
    are skipped.
    """
    if not isinstance(payload, dict):
        return []

    summaries = []
    for raw in payload.get('entities') or []:
        if not raw or raw == "null":
            continue
        data: Any = raw
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                data = {'id': raw}
        if not isinstance(data, dict):
            logger.warning(f"Skipping unexpected entity type entry: {raw!r}")
            continue
        try:
            summaries.append(EntityTypeSummary.model_validate(data))
        except ValidationError as e:
            logger.warning(f"Skipping invalid entity type entry {raw!r}: {e}")
    return summaries


def acl_rows(entries: List[AclEntry]) -> Dict[str, Dict[str, bool]]:
    """Map entity -> PermissionSet for one subject."""
    return {entry.entity: dict(entry.permissions) for entry in entries}


def validation_messages(error: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into user-facing messages."""
    messages = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ()))
        messages.append(f"{location}: {item.get('msg', 'invalid value')}" if location else item.get('msg', ''))
    return messages

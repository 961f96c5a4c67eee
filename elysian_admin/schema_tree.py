"""
Schema tree editing for ElysianDB entity types.

An entity schema is a recursive mapping of field name -> FieldNode. Every edit
is a pure function that returns a new mapping: the levels along the edited key
path are rebuilt, untouched siblings are shared, and nothing is mutated in
place. Sibling keys stay unique and a node's mapping key always equals its
name.
"""

import logging
import random
import string
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .diff_utils import summarize_schema_changes
from .errors import AdminConsoleError
from .outcome import Outcome

logger = logging.getLogger(__name__)

FIELD_TYPES = ("string", "number", "boolean", "object", "array")
DEFAULT_FIELD_TYPE = "string"
SYNTHETIC_NAME_PREFIX = "newField_"
SYNTHETIC_SUFFIX_LENGTH = 4
_BASE36 = string.digits + string.ascii_lowercase
_NODE_ATTRIBUTES = ("name", "type", "required", "children")

KeyPath = Tuple[str, ...]
PathLike = Union[str, Sequence[str]]


@dataclass(frozen=True)
class FieldNode:
    """A named schema field, optionally holding child fields."""

    name: str
    type: str = DEFAULT_FIELD_TYPE
    required: bool = False
    children: Optional[Dict[str, 'FieldNode']] = None

    @property
    def is_composite(self) -> bool:
        return self.children is not None

    def merged(self, patch: Mapping[str, Any]) -> 'FieldNode':
        """
        Shallow-merge a patch into a copy of this node.

        A ``children`` entry replaces the children mapping wholesale. Unknown
        attributes and unsupported types are dropped so the node always keeps
        a concrete type.
        """
        values = {}
        for key, value in patch.items():
            if key not in _NODE_ATTRIBUTES:
                logger.debug(f"Ignoring unknown field attribute '{key}' in patch for '{self.name}'")
                continue
            values[key] = value

        if 'type' in values and values['type'] not in FIELD_TYPES:
            logger.warning(f"Ignoring unsupported type {values['type']!r} for field '{self.name}'")
            del values['type']
        if 'required' in values:
            values['required'] = bool(values['required'])
        if values.get('children') is not None:
            values['children'] = dict(values['children'])

        return replace(self, **values)


def _normalize_path(path: PathLike) -> KeyPath:
    if isinstance(path, str):
        return (path,)
    return tuple(path)


def _replace_entry(fields: Mapping[str, FieldNode], key: str, node: FieldNode) -> Dict[str, FieldNode]:
    """Copy of ``fields`` with ``key`` bound to ``node`` at its current position."""
    return {k: (node if k == key else v) for k, v in fields.items()}


def _apply_at(fields: Dict[str, FieldNode], parent_path: KeyPath,
              operation: Callable[[Dict[str, FieldNode]], Dict[str, FieldNode]]) -> Dict[str, FieldNode]:
    """
    Apply ``operation`` to the sibling mapping addressed by ``parent_path``.

    Each ancestor on the way down is rebuilt with the new children spliced
    into a fresh copy of its mapping. When the path does not exist, or the
    operation returns its input unchanged, the original mapping is returned.
    """
    if not parent_path:
        return operation(fields)

    key = parent_path[0]
    node = fields.get(key)
    if node is None:
        logger.debug(f"Path segment '{key}' not found, leaving tree unchanged")
        return fields

    current_children = node.children if node.children is not None else {}
    new_children = _apply_at(current_children, parent_path[1:], operation)
    if new_children is current_children:
        return fields

    return _replace_entry(fields, key, replace(node, children=new_children))


def _rename_in(siblings: Dict[str, FieldNode], key: str, node: FieldNode,
               to_front: bool = False) -> Dict[str, FieldNode]:
    new_key = node.name
    if new_key != key and new_key in siblings:
        logger.warning(f"Renaming '{key}' to '{new_key}' overwrites an existing sibling")

    if to_front:
        renamed = {new_key: node}
        for k, v in siblings.items():
            if k not in (key, new_key):
                renamed[k] = v
        return renamed

    renamed = {}
    for k, v in siblings.items():
        if k == key:
            renamed[new_key] = node
        elif k == new_key:
            continue
        else:
            renamed[k] = v
    return renamed


def generate_synthetic_name(rng: Optional[random.Random] = None) -> str:
    """Placeholder name for a freshly added field, e.g. ``newField_k3x9``."""
    chooser = rng or random
    suffix = ''.join(chooser.choice(_BASE36) for _ in range(SYNTHETIC_SUFFIX_LENGTH))
    return f"{SYNTHETIC_NAME_PREFIX}{suffix}"


def find_field(fields: Mapping[str, FieldNode], path: PathLike) -> Optional[FieldNode]:
    """Return the node at ``path`` or None."""
    path = _normalize_path(path)
    if not path:
        return None

    node = fields.get(path[0])
    for key in path[1:]:
        if node is None or not node.children:
            return None
        node = node.children.get(key)
    return node


def update_field(fields: Dict[str, FieldNode], path: PathLike,
                 patch: Mapping[str, Any]) -> Dict[str, FieldNode]:
    """
    Merge ``patch`` into the node at ``path``.

    The node keeps its key. A ``name`` in the patch that differs from the key
    is applied as a rename, so the key always matches the name.
    """
    path = _normalize_path(path)
    if not path:
        return fields
    key = path[-1]

    def _update(siblings: Dict[str, FieldNode]) -> Dict[str, FieldNode]:
        node = siblings.get(key)
        if node is None:
            return siblings
        updated = node.merged(patch)
        if updated.name != key:
            return _rename_in(siblings, key, updated)
        return _replace_entry(siblings, key, updated)

    return _apply_at(fields, path[:-1], _update)


def rename_field(fields: Dict[str, FieldNode], path: PathLike, updated_node: FieldNode,
                 to_front: bool = False) -> Dict[str, FieldNode]:
    """
    Re-key the node at ``path`` under ``updated_node.name``.

    The node keeps its position among its siblings. A sibling that already
    uses the new name is overwritten. ``to_front=True`` moves the renamed
    node to the front instead, like a freshly added field.
    """
    path = _normalize_path(path)
    if not path:
        return fields
    key = path[-1]

    def _rename(siblings: Dict[str, FieldNode]) -> Dict[str, FieldNode]:
        if key not in siblings:
            return siblings
        return _rename_in(siblings, key, updated_node, to_front=to_front)

    return _apply_at(fields, path[:-1], _rename)


def delete_field(fields: Dict[str, FieldNode], path: PathLike) -> Dict[str, FieldNode]:
    """Remove the node at ``path`` together with its subtree."""
    path = _normalize_path(path)
    if not path:
        return fields
    key = path[-1]

    def _delete(siblings: Dict[str, FieldNode]) -> Dict[str, FieldNode]:
        if key not in siblings:
            return siblings
        return {k: v for k, v in siblings.items() if k != key}

    return _apply_at(fields, path[:-1], _delete)


def add_child(fields: Dict[str, FieldNode], parent_path: PathLike = (),
              name_factory: Optional[Callable[[], str]] = None) -> Tuple[Dict[str, FieldNode], Optional[str]]:
    """
    Insert a new ``string`` leaf at the front of the mapping under ``parent_path``.

    The empty path targets the top level. Returns the new mapping and the
    synthetic key, or the unchanged mapping and None if the parent is missing.
    """
    parent_path = _normalize_path(parent_path)
    factory = name_factory or generate_synthetic_name
    created: List[str] = []

    def _add(siblings: Dict[str, FieldNode]) -> Dict[str, FieldNode]:
        new_key = factory()
        attempts = 1
        while new_key in siblings:
            if attempts >= 100:
                new_key = f"{new_key}_{len(siblings)}"
                break
            new_key = factory()
            attempts += 1

        created.append(new_key)
        extended = {new_key: FieldNode(name=new_key)}
        extended.update(siblings)
        return extended

    new_fields = _apply_at(fields, parent_path, _add)
    if not created:
        return fields, None
    return new_fields, created[0]


def iter_paths(fields: Mapping[str, FieldNode], prefix: KeyPath = ()) -> List[Tuple[KeyPath, FieldNode]]:
    """Depth-first list of (path, node), in display order."""
    result = []
    for key, node in fields.items():
        path = prefix + (key,)
        result.append((path, node))
        if node.children:
            result.extend(iter_paths(node.children, path))
    return result


def fields_to_wire(fields: Mapping[str, FieldNode]) -> Dict[str, Dict[str, Any]]:
    """
    Serialize a field mapping for the "replace schema" call.

    Shape: ``{key: {"name", "type", "required", "fields"?}}``.
    """
    wire = {}
    for key, node in fields.items():
        entry = {
            'name': key,
            'type': node.type or DEFAULT_FIELD_TYPE,
            'required': bool(node.required)
        }
        if node.children:
            entry['fields'] = fields_to_wire(node.children)
        wire[key] = entry
    return wire


def fields_from_wire(raw: Any) -> Dict[str, FieldNode]:
    """Build a field mapping from the server representation."""
    if not isinstance(raw, Mapping):
        return {}

    fields = {}
    for key, value in raw.items():
        if not isinstance(value, Mapping):
            logger.warning(f"Skipping malformed schema field '{key}': {value!r}")
            continue

        field_type = value.get('type')
        if not isinstance(field_type, str) or not field_type:
            logger.warning(f"Field '{key}' has no type, defaulting to '{DEFAULT_FIELD_TYPE}'")
            field_type = DEFAULT_FIELD_TYPE
        elif field_type not in FIELD_TYPES:
            logger.warning(f"Field '{key}' has unsupported type '{field_type}', keeping it as-is")

        sub_fields = value.get('fields')
        children = fields_from_wire(sub_fields) if isinstance(sub_fields, Mapping) and sub_fields else None

        fields[key] = FieldNode(
            name=key,
            type=field_type,
            required=bool(value.get('required', False)),
            children=children
        )
    return fields


@dataclass(frozen=True)
class SchemaTree:
    """Root aggregate of an entity schema."""

    entity_id: str
    fields: Dict[str, FieldNode]
    is_manually_managed: bool = False

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any], entity_id: Optional[str] = None) -> 'SchemaTree':
        return cls(
            entity_id=str(payload.get('id') or entity_id or ''),
            fields=fields_from_wire(payload.get('fields') or {}),
            is_manually_managed=bool(payload.get('_manual', False))
        )

    def to_wire(self) -> Dict[str, Any]:
        return {'id': self.entity_id, 'fields': fields_to_wire(self.fields)}

    def with_fields(self, fields: Dict[str, FieldNode]) -> 'SchemaTree':
        if fields is self.fields:
            return self
        return replace(self, fields=fields)

    def update_field(self, path: PathLike, patch: Mapping[str, Any]) -> 'SchemaTree':
        return self.with_fields(update_field(self.fields, path, patch))

    def rename_field(self, path: PathLike, updated_node: FieldNode, to_front: bool = False) -> 'SchemaTree':
        return self.with_fields(rename_field(self.fields, path, updated_node, to_front=to_front))

    def delete_field(self, path: PathLike) -> 'SchemaTree':
        return self.with_fields(delete_field(self.fields, path))

    def add_child(self, parent_path: PathLike = (),
                  name_factory: Optional[Callable[[], str]] = None) -> Tuple['SchemaTree', Optional[str]]:
        fields, new_key = add_child(self.fields, parent_path, name_factory=name_factory)
        return self.with_fields(fields), new_key


class SchemaEditorSession:
    """
    Editing session for one entity schema.

    Holds the last known-good baseline and the tree being edited. Commit
    failures never reset the edited tree.
    """

    def __init__(self, baseline: SchemaTree):
        self.baseline = baseline
        self.tree = baseline
        logger.debug(f"Schema editor session opened for '{baseline.entity_id}' "
                     f"with {len(baseline.fields)} top-level fields")

    @property
    def entity_id(self) -> str:
        return self.baseline.entity_id

    @property
    def is_dirty(self) -> bool:
        return fields_to_wire(self.tree.fields) != fields_to_wire(self.baseline.fields)

    def update_field(self, path: PathLike, patch: Mapping[str, Any]) -> None:
        self.tree = self.tree.update_field(path, patch)

    def rename_field(self, path: PathLike, new_name: str) -> None:
        node = find_field(self.tree.fields, path)
        if node is None or not new_name:
            return
        self.tree = self.tree.rename_field(path, replace(node, name=new_name))

    def delete_field(self, path: PathLike) -> None:
        self.tree = self.tree.delete_field(path)

    def add_field(self, parent_path: PathLike = ()) -> Optional[str]:
        self.tree, new_key = self.tree.add_child(parent_path)
        return new_key

    def discard_changes(self) -> None:
        self.tree = self.baseline

    def changes(self) -> List[str]:
        """Human-readable list of changes against the baseline."""
        return summarize_schema_changes(
            fields_to_wire(self.baseline.fields),
            fields_to_wire(self.tree.fields)
        )

    def commit(self, client) -> Outcome:
        """
        Replace the server schema with the edited tree, then reload it.

        On failure the edited tree is kept as-is.
        """
        entity_id = self.entity_id
        payload = fields_to_wire(self.tree.fields)

        try:
            client.replace_schema(entity_id, payload)
        except AdminConsoleError as e:
            logger.error(f"Failed to update schema for '{entity_id}': {e}")
            return Outcome.remote_failure(f"Failed to update schema for \"{entity_id}\"", e)

        logger.info(f"Schema updated for '{entity_id}' ({len(payload)} top-level fields)")
        self.baseline = self.tree

        try:
            reloaded = client.load_schema(entity_id)
        except AdminConsoleError as e:
            logger.error(f"Schema saved but reload failed for '{entity_id}': {e}")
            return Outcome.remote_failure(
                f"Schema updated for \"{entity_id}\", but reloading it failed", e
            )

        self.baseline = reloaded
        self.tree = reloaded
        return Outcome.success(f"Schema updated for \"{entity_id}\"")

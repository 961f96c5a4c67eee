"""
Diff utilities for the admin console.
Compares baseline and edited schemas with DeepDiff and turns the result into
field-level change lines for display before a save. Also formats pending ACL
changes per entity.
"""

from typing import Dict, Any, List, Optional, Tuple, Mapping
from deepdiff import DeepDiff
from deepdiff.helper import notpresent
import logging

logger = logging.getLogger(__name__)

CHANGE_TYPES = (
    'values_changed',
    'type_changes',
    'dictionary_item_added',
    'dictionary_item_removed',
)

# Keys of a serialized schema field entry
_CHILDREN_KEY = 'fields'


def _present(value: Any) -> Any:
    return None if value is notpresent else value


def calculate_diff(original: Dict[str, Any], modified: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Calculate differences between two JSON-like dictionaries.

    Uses DeepDiff's tree view so each change keeps its path as a token list
    instead of a ``root['a']['b']`` string.

    Args:
        original: Baseline data
        modified: Edited data

    Returns:
        Dict mapping change type to a list of ``{"path", "old_value", "new_value"}``
        entries, with only the change types that occurred.
    """
    try:
        diff = DeepDiff(original, modified, view='tree', threshold_to_diff_deeper=0)
    except Exception as e:
        logger.error(f"Error calculating diff: {e}", exc_info=True)
        return {}

    processed: Dict[str, List[Dict[str, Any]]] = {}
    for change_type in CHANGE_TYPES:
        levels = diff.get(change_type)
        if not levels:
            continue
        entries = []
        for level in levels:
            entries.append({
                'path': list(level.path(output_format='list')),
                'old_value': _present(level.t1),
                'new_value': _present(level.t2)
            })
        entries.sort(key=lambda entry: [str(token) for token in entry['path']])
        processed[change_type] = entries

    return processed


def has_changes(diff: Dict[str, Any]) -> bool:
    """
    Check if there are any changes in the diff.

    Args:
        diff: Diff dictionary from calculate_diff

    Returns:
        True if there are changes, False otherwise
    """
    if not diff:
        return False
    return any(diff.get(change_type) for change_type in CHANGE_TYPES)


def get_change_summary(diff: Dict[str, Any]) -> Dict[str, int]:
    """Count changes by type."""
    summary = {
        'modified': len(diff.get('values_changed', [])) + len(diff.get('type_changes', [])),
        'added': len(diff.get('dictionary_item_added', [])),
        'removed': len(diff.get('dictionary_item_removed', [])),
    }
    summary['total'] = sum(summary.values())
    return summary


def split_schema_path(tokens: List[Any]) -> Tuple[List[str], Optional[str]]:
    """
    Split a serialized-schema path into field keys and a trailing attribute.

    ``['address', 'fields', 'city', 'type']`` -> ``(['address', 'city'], 'type')``.
    Positions alternate between a field key and the ``fields`` container, so a
    user field that is itself called ``fields`` is handled correctly.
    """
    if not tokens:
        return [], None

    keys = [str(tokens[0])]
    index = 1
    while index < len(tokens):
        token = tokens[index]
        if token == _CHILDREN_KEY and index + 1 < len(tokens):
            keys.append(str(tokens[index + 1]))
            index += 2
            continue
        return keys, str(token)
    return keys, None


def _format_value(value: Any, max_length: int = 60) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if len(text) > max_length:
        return text[:max_length - 3] + "..."
    return text


def summarize_schema_changes(baseline: Dict[str, Any], current: Dict[str, Any]) -> List[str]:
    """
    Describe the changes between two serialized field mappings.

    Returns one line per change, e.g. ``Added field 'address.city'`` or
    ``Changed type of 'status': string -> number``. A renamed field shows up as
    a removal plus an addition.
    """
    diff = calculate_diff(baseline, current)
    if not has_changes(diff):
        return []

    lines: List[str] = []

    for entry in diff.get('dictionary_item_removed', []):
        keys, attribute = split_schema_path(entry['path'])
        field_name = '.'.join(keys)
        if attribute is None:
            lines.append(f"Removed field '{field_name}'")
        elif attribute == _CHILDREN_KEY:
            for child in (entry['old_value'] or {}):
                lines.append(f"Removed field '{field_name}.{child}'")
        else:
            lines.append(f"Removed {attribute} of '{field_name}'")

    for entry in diff.get('dictionary_item_added', []):
        keys, attribute = split_schema_path(entry['path'])
        field_name = '.'.join(keys)
        if attribute is None:
            lines.append(f"Added field '{field_name}'")
        elif attribute == _CHILDREN_KEY:
            for child in (entry['new_value'] or {}):
                lines.append(f"Added field '{field_name}.{child}'")
        else:
            lines.append(f"Added {attribute} to '{field_name}'")

    for change_type in ('values_changed', 'type_changes'):
        for entry in diff.get(change_type, []):
            keys, attribute = split_schema_path(entry['path'])
            field_name = '.'.join(keys)
            lines.append(
                f"Changed {attribute or 'value'} of '{field_name}': "
                f"{_format_value(entry['old_value'])} -> {_format_value(entry['new_value'])}"
            )

    return lines


def format_changes_for_display(lines: List[str]) -> str:
    """Markdown bullet list for st.markdown."""
    if not lines:
        return "✅ **No changes detected**"
    return "\n".join(f"- {line}" for line in lines)


def describe_permission_changes(baseline: Mapping[str, Mapping[str, bool]],
                                pending: Mapping[str, Mapping[str, bool]]) -> List[Dict[str, Any]]:
    """
    One row per changed flag of every pending entity.

    Rows have ``entity``, ``permission``, ``before`` and ``after`` keys and are
    sorted by entity then permission.
    """
    rows = []
    for entity in sorted(pending):
        current = pending[entity]
        original = baseline.get(entity, {})
        for permission in sorted(set(current) | set(original)):
            before = original.get(permission)
            after = current.get(permission)
            if before != after:
                rows.append({
                    'entity': entity,
                    'permission': permission,
                    'before': before,
                    'after': after
                })
    return rows

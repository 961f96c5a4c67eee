"""
Unit tests for schema_tree module.
"""

import random
from unittest.mock import MagicMock

import pytest

from elysian_admin.errors import ApiError
from elysian_admin.outcome import OutcomeKind
from elysian_admin.schema_tree import (
    FieldNode,
    SchemaEditorSession,
    SchemaTree,
    SYNTHETIC_NAME_PREFIX,
    add_child,
    delete_field,
    fields_from_wire,
    fields_to_wire,
    find_field,
    generate_synthetic_name,
    iter_paths,
    rename_field,
    update_field,
)

ORDERS_PAYLOAD = {
    "id": "orders",
    "fields": {
        "status": {"name": "status", "type": "string", "required": True}
    }
}


def _nested_fields():
    return fields_from_wire({
        "title": {"name": "title", "type": "string", "required": True},
        "address": {
            "name": "address",
            "type": "object",
            "required": False,
            "fields": {
                "street": {"name": "street", "type": "string", "required": False},
                "city": {"name": "city", "type": "string", "required": True},
                "zip": {"name": "zip", "type": "string", "required": False},
            }
        },
        "total": {"name": "total", "type": "number", "required": False},
    })


def _names(factory_values):
    values = iter(factory_values)
    return lambda: next(values)


class TestWireFormat:
    """Test cases for converting schemas from and to the API shape."""

    def test_from_wire_keys_match_names(self):
        fields = _nested_fields()
        assert list(fields) == ["title", "address", "total"]
        assert fields["address"].children["city"] == FieldNode("city", "string", True)

    def test_missing_type_defaults_to_string(self):
        fields = fields_from_wire({"note": {"name": "note"}})
        assert fields["note"].type == "string"
        assert fields["note"].required is False

    def test_unknown_type_is_kept(self):
        fields = fields_from_wire({"blob": {"name": "blob", "type": "unknown"}})
        assert fields["blob"].type == "unknown"

    def test_malformed_entries_are_skipped(self):
        fields = fields_from_wire({"ok": {"type": "number"}, "bad": "string"})
        assert list(fields) == ["ok"]

    def test_round_trip_preserves_order_and_nesting(self):
        wire = fields_to_wire(_nested_fields())
        assert list(wire) == ["title", "address", "total"]
        assert list(wire["address"]["fields"]) == ["street", "city", "zip"]
        assert "fields" not in wire["title"]

    def test_schema_tree_reads_manual_flag(self):
        tree = SchemaTree.from_wire({"id": "orders", "_manual": True, "fields": {}})
        assert tree.entity_id == "orders"
        assert tree.is_manually_managed is True
        assert tree.to_wire() == {"id": "orders", "fields": {}}

    def test_schema_tree_uses_fallback_entity_id(self):
        tree = SchemaTree.from_wire({"fields": None}, entity_id="invoices")
        assert tree.entity_id == "invoices"
        assert tree.fields == {}


class TestDeleteField:
    """Test cases for delete_field."""

    def test_delete_top_level_keeps_siblings(self):
        fields = _nested_fields()
        result = delete_field(fields, "title")

        assert find_field(result, "title") is None
        assert list(result) == ["address", "total"]
        assert result["address"] is fields["address"]
        assert result["total"] is fields["total"]

    def test_delete_nested_rebuilds_only_the_path(self):
        fields = _nested_fields()
        result = delete_field(fields, ("address", "city"))

        assert find_field(result, ("address", "city")) is None
        assert list(result["address"].children) == ["street", "zip"]
        assert result["title"] is fields["title"]
        # input untouched
        assert list(fields["address"].children) == ["street", "city", "zip"]

    def test_delete_every_key(self):
        fields = _nested_fields()
        for key in list(fields):
            remaining = delete_field(fields, key)
            assert key not in remaining
            assert len(remaining) == len(fields) - 1
            for other in fields:
                if other != key:
                    assert remaining[other] == fields[other]

    def test_delete_missing_key_returns_same_mapping(self):
        fields = _nested_fields()
        assert delete_field(fields, "missing") is fields
        assert delete_field(fields, ("missing", "child")) is fields


class TestRenameField:
    """Test cases for rename_field."""

    def test_rename_keeps_contents_and_position(self):
        fields = _nested_fields()
        node = fields["address"]
        result = rename_field(fields, "address", FieldNode("location", node.type, node.required, node.children))

        assert "address" not in result
        assert list(result) == ["title", "location", "total"]
        assert result["location"].children == node.children
        assert result["location"].type == "object"

    def test_rename_to_front(self):
        fields = _nested_fields()
        result = rename_field(fields, "total", FieldNode("amount", "number"), to_front=True)
        assert list(result) == ["amount", "title", "address"]

    def test_rename_nested(self):
        fields = _nested_fields()
        result = rename_field(fields, ("address", "zip"), FieldNode("postcode", "string"))
        assert list(result["address"].children) == ["street", "city", "postcode"]

    def test_rename_onto_existing_sibling_overwrites_it(self):
        fields = _nested_fields()
        result = rename_field(fields, "title", FieldNode("total", "string", True))
        assert list(result) == ["total", "address"]
        assert result["total"].type == "string"

    def test_rename_random_names(self):
        rng = random.Random(7)
        fields = _nested_fields()
        for _ in range(20):
            key = rng.choice(list(fields))
            new_name = f"renamed_{rng.randrange(10000)}"
            if new_name in fields:
                continue
            node = fields[key]
            result = rename_field(fields, key, FieldNode(new_name, node.type, node.required, node.children))
            assert new_name in result and key not in result
            assert result[new_name].children == node.children
            assert result[new_name].required == node.required
            assert len(result) == len(fields)


class TestUpdateField:
    """Test cases for update_field."""

    def test_empty_patch_is_identity(self):
        fields = _nested_fields()
        assert update_field(fields, "title", {}) == fields
        assert update_field(fields, ("address", "city"), {}) == fields

    def test_patch_merges_attributes(self):
        fields = _nested_fields()
        result = update_field(fields, ("address", "street"), {"required": True, "type": "number"})
        assert result["address"].children["street"] == FieldNode("street", "number", True)
        assert fields["address"].children["street"].required is False

    def test_unsupported_type_is_ignored(self):
        fields = _nested_fields()
        result = update_field(fields, "title", {"type": "datetime"})
        assert result["title"].type == "string"

    def test_name_in_patch_renames_in_place(self):
        fields = _nested_fields()
        result = update_field(fields, "title", {"name": "headline"})
        assert list(result) == ["headline", "address", "total"]
        assert result["headline"].name == "headline"

    def test_missing_path_is_noop(self):
        fields = _nested_fields()
        assert update_field(fields, ("nope",), {"type": "number"}) is fields


class TestAddChild:
    """Test cases for add_child."""

    def test_add_top_level_inserts_first(self):
        fields = _nested_fields()
        result, key = add_child(fields, (), name_factory=lambda: "newField_abcd")

        assert key == "newField_abcd"
        assert list(result)[0] == key
        assert result[key] == FieldNode(key, "string", False)
        assert list(result)[1:] == list(fields)

    def test_add_nested_child(self):
        fields = _nested_fields()
        result, key = add_child(fields, ("address",), name_factory=lambda: "newField_zz00")
        assert list(result["address"].children)[0] == key
        assert len(result["address"].children) == 4

    def test_add_child_to_leaf_creates_children(self):
        fields = _nested_fields()
        result, key = add_child(fields, ("title",), name_factory=lambda: "newField_0001")
        assert result["title"].children == {key: FieldNode(key)}

    def test_add_regenerates_colliding_name(self):
        fields = {"newField_aaaa": FieldNode("newField_aaaa")}
        result, key = add_child(fields, (), name_factory=_names(["newField_aaaa", "newField_bbbb"]))
        assert key == "newField_bbbb"
        assert list(result) == ["newField_bbbb", "newField_aaaa"]

    def test_add_to_missing_parent(self):
        fields = _nested_fields()
        result, key = add_child(fields, ("missing",))
        assert result is fields
        assert key is None

    def test_generated_names(self):
        name = generate_synthetic_name(random.Random(1))
        assert name.startswith(SYNTHETIC_NAME_PREFIX)
        suffix = name[len(SYNTHETIC_NAME_PREFIX):]
        assert len(suffix) == 4
        assert all(c.isdigit() or c.islower() for c in suffix)


def test_orders_scenario():
    tree = SchemaTree.from_wire(ORDERS_PAYLOAD)
    status = tree.fields["status"]

    tree, new_key = tree.add_child(())
    assert len(tree.fields) == 2
    assert list(tree.fields)[0] == new_key
    assert tree.fields["status"] == status

    tree = tree.delete_field("status")
    assert list(tree.fields) == [new_key]


def test_iter_paths_depth_first():
    paths = [path for path, _ in iter_paths(_nested_fields())]
    assert paths == [
        ("title",),
        ("address",),
        ("address", "street"),
        ("address", "city"),
        ("address", "zip"),
        ("total",),
    ]


class TestSchemaEditorSession:
    """Test cases for SchemaEditorSession."""

    def test_edits_mark_session_dirty(self):
        session = SchemaEditorSession(SchemaTree.from_wire(ORDERS_PAYLOAD))
        assert not session.is_dirty

        session.update_field("status", {"required": False})
        assert session.is_dirty
        assert session.changes() == ["Changed required of 'status': true -> false"]

        session.discard_changes()
        assert not session.is_dirty

    def test_rename_reports_removal_and_addition(self):
        session = SchemaEditorSession(SchemaTree.from_wire(ORDERS_PAYLOAD))
        session.rename_field("status", "state")
        assert list(session.tree.fields) == ["state"]
        assert sorted(session.changes()) == ["Added field 'state'", "Removed field 'status'"]

    def test_commit_success_reloads_baseline(self):
        baseline = SchemaTree.from_wire(ORDERS_PAYLOAD)
        session = SchemaEditorSession(baseline)
        new_key = session.add_field()

        reloaded = SchemaTree.from_wire({
            "id": "orders",
            "fields": fields_to_wire(session.tree.fields)
        })
        client = MagicMock()
        client.load_schema.return_value = reloaded

        outcome = session.commit(client)

        assert outcome.ok
        assert outcome.message == 'Schema updated for "orders"'
        sent_entity, sent_fields = client.replace_schema.call_args[0]
        assert sent_entity == "orders"
        assert list(sent_fields) == [new_key, "status"]
        client.load_schema.assert_called_once_with("orders")
        assert session.baseline is reloaded
        assert not session.is_dirty

    def test_commit_failure_keeps_edits(self):
        session = SchemaEditorSession(SchemaTree.from_wire(ORDERS_PAYLOAD))
        session.delete_field("status")
        edited = session.tree

        client = MagicMock()
        client.replace_schema.side_effect = ApiError(500, {"error": "boom"}, "PUT", "/api/orders/schema")

        outcome = session.commit(client)

        assert outcome.kind == OutcomeKind.REMOTE
        assert isinstance(outcome.error, ApiError)
        assert session.tree is edited
        assert session.is_dirty
        client.load_schema.assert_not_called()

    def test_commit_reload_failure_is_reported(self):
        session = SchemaEditorSession(SchemaTree.from_wire(ORDERS_PAYLOAD))
        session.update_field("status", {"type": "number"})

        client = MagicMock()
        client.load_schema.side_effect = ApiError(404, {}, "GET", "/api/orders/schema")

        outcome = session.commit(client)

        assert outcome.kind == OutcomeKind.REMOTE
        assert "reloading it failed" in outcome.message
        assert not session.is_dirty


@pytest.mark.parametrize("path", ["status", ("status",), ["status"]])
def test_paths_accept_strings_and_sequences(path):
    fields = fields_from_wire(ORDERS_PAYLOAD["fields"])
    assert find_field(fields, path) == fields["status"]

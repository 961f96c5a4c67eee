"""
Unit tests for api_client module.

Requests are answered by an ``httpx.MockTransport`` so no server is needed.
"""

import json

import httpx
import pytest

from elysian_admin.api_client import ElysianClient, build_query
from elysian_admin.errors import ApiConnectionError, ApiError, ResponseFormatError
from elysian_admin.schema_tree import SchemaTree


class Recorder:
    """Mock transport handler returning canned responses by (method, path)."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"error": "not found"})
        route = self.routes[key]
        if callable(route):
            return route(request)
        return route

    def body(self, index=-1):
        content = self.requests[index].content
        return json.loads(content) if content else None


def _client(routes):
    recorder = Recorder(routes)
    client = ElysianClient(base_url="http://elysian.test", transport=httpx.MockTransport(recorder))
    return client, recorder


class TestRequestHandling:
    """Test cases for response decoding and error mapping."""

    def test_no_content(self):
        client, _ = _client({("DELETE", "/api/orders"): httpx.Response(204)})
        assert client.drop_entity_type("orders") is None

    def test_empty_success_body(self):
        client, _ = _client({("GET", "/admin/logout"): httpx.Response(200, text="")})
        assert client.logout() is None

    def test_non_json_success_body(self):
        client, _ = _client({("GET", "/admin/me"): httpx.Response(200, text="plain")})
        assert client.me() == "plain"

    def test_error_status_raises_api_error(self):
        client, _ = _client({
            ("PUT", "/api/orders/schema"): httpx.Response(400, json={"error": "field name missing"})
        })
        with pytest.raises(ApiError) as exc_info:
            client.replace_schema("orders", {})

        error = exc_info.value
        assert error.status == 400
        assert error.data == {"error": "field name missing"}
        assert error.method == "PUT"
        assert error.path == "/api/orders/schema"
        assert "field name missing" in str(error)

    def test_error_with_text_body(self):
        client, _ = _client({("GET", "/api/entity/types"): httpx.Response(500, text="boom\n")})
        with pytest.raises(ApiError) as exc_info:
            client.list_entity_types()
        assert exc_info.value.data == {"error": "boom"}

    def test_unauthorized(self):
        client, _ = _client({("GET", "/api/security/user"): httpx.Response(401)})
        with pytest.raises(ApiError) as exc_info:
            client.list_users()
        assert exc_info.value.is_auth_error
        assert exc_info.value.data == {}

    def test_transport_failure_raises_connection_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = _client({("GET", "/api/entity/types"): refuse})
        with pytest.raises(ApiConnectionError) as exc_info:
            client.list_entity_types()
        assert exc_info.value.path == "/api/entity/types"
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    def test_context_manager_closes_client(self):
        client, _ = _client({})
        with client as entered:
            assert entered is client
        assert client.client.is_closed


class TestEndpoints:
    """Test cases for paths and payloads of each call."""

    def test_login(self):
        client, recorder = _client({
            ("POST", "/admin/login"): httpx.Response(200, json={"username": "admin", "role": "admin"})
        })
        assert client.login("admin", "secret") == {"username": "admin", "role": "admin"}
        assert recorder.body() == {"username": "admin", "password": "secret"}

    def test_list_entity_types(self):
        client, _ = _client({
            ("GET", "/api/entity/types"): httpx.Response(200, json={"entities": [
                json.dumps({"id": "orders", "_manual": True}), None
            ]})
        })
        summaries = client.list_entity_types()
        assert [(summary.id, summary.manual) for summary in summaries] == [("orders", True)]

    def test_load_schema(self):
        client, _ = _client({
            ("GET", "/api/orders/schema"): httpx.Response(200, json={
                "id": "orders",
                "fields": {"status": {"name": "status", "type": "string", "required": True}}
            })
        })
        tree = client.load_schema("orders")
        assert isinstance(tree, SchemaTree)
        assert tree.entity_id == "orders"
        assert tree.fields["status"].required is True

    def test_replace_schema_sends_fields(self):
        client, recorder = _client({("PUT", "/api/orders/schema"): httpx.Response(200, json={})})
        fields = {"status": {"name": "status", "type": "string", "required": False}}
        client.replace_schema("orders", fields)
        assert recorder.body() == {"fields": fields}

    def test_create_entity_type(self):
        client, recorder = _client({("POST", "/api/invoices/create"): httpx.Response(200, json={})})
        client.create_entity_type("invoices")
        assert recorder.body() == {"fields": {}}

    def test_query_records(self):
        client, recorder = _client({
            ("POST", "/api/query"): httpx.Response(200, json=[{"id": "1"}, {"id": "2"}])
        })
        assert client.query_records(build_query("orders", 10)) == [{"id": "1"}, {"id": "2"}]
        assert recorder.body() == {"entity": "orders", "limit": 10}

    def test_query_records_non_list(self):
        client, _ = _client({("POST", "/api/query"): httpx.Response(200, json={"unexpected": True})})
        assert client.query_records({"entity": "orders"}) == []

    def test_load_permissions(self):
        client, _ = _client({
            ("GET", "/api/acl/alice"): httpx.Response(200, json=[
                {"username": "alice", "entity": "orders", "permissions": {"read": True, "create": False}},
                {"username": "alice", "entity": "invoices", "permissions": {"read": False}},
            ])
        })
        assert client.load_permissions("alice") == {
            "orders": {"read": True, "create": False},
            "invoices": {"read": False},
        }

    def test_write_and_reset_permissions(self):
        client, recorder = _client({
            ("PUT", "/api/acl/alice/orders"): httpx.Response(200, json={}),
            ("PUT", "/api/acl/alice/orders/default"): httpx.Response(204),
        })
        client.write_permissions("alice", "orders", {"read": True})
        assert recorder.body() == {"permissions": {"read": True}}

        client.reset_permissions("alice", "orders")
        assert recorder.requests[-1].url.path == "/api/acl/alice/orders/default"
        assert recorder.body() is None

    def test_hooks(self):
        hook = {"id": "h1", "entity": "orders", "name": "mask", "event": "pre_read", "priority": 2}
        client, recorder = _client({
            ("GET", "/api/hook/orders"): httpx.Response(200, json=[hook]),
            ("GET", "/api/hook/id/h1"): httpx.Response(200, json=hook),
            ("POST", "/api/hook/orders"): httpx.Response(200, json={}),
            ("PUT", "/api/hook/id/h1"): httpx.Response(200, json={}),
        })

        assert [record.id for record in client.list_hooks("orders")] == ["h1"]
        assert client.load_hook("h1").event == "pre_read"

        client.create_hook("orders", "post_read", "audit")
        created = recorder.body()
        assert created["name"] == "audit"
        assert created["event"] == "post_read"
        assert created["enabled"] is False
        assert created["script"] == ""

        client.save_hook("h1", {"name": "renamed"})
        assert recorder.body() == {"name": "renamed"}

    def test_hooks_outside_editor_rules_still_load(self):
        stored = {"id": "h2", "entity": "orders", "event": "post_read", "priority": 0}
        client, _ = _client({
            ("GET", "/api/hook/orders"): httpx.Response(200, json=[stored]),
            ("GET", "/api/hook/id/h2"): httpx.Response(200, json=dict(stored, priority=150)),
        })

        assert [record.priority for record in client.list_hooks("orders")] == [0]
        assert client.load_hook("h2").priority == 150

    def test_malformed_acl_row_raises_response_format_error(self):
        client, _ = _client({
            ("GET", "/api/acl/alice"): httpx.Response(200, json=[
                {"username": "alice", "entity": "orders", "permissions": {"read": None}},
            ])
        })

        with pytest.raises(ResponseFormatError) as exc_info:
            client.load_permissions("alice")

        assert exc_info.value.path == "/api/acl/alice"
        assert exc_info.value.context["original_error_type"] == "ValidationError"

    def test_non_list_hook_response_raises_response_format_error(self):
        client, _ = _client({("GET", "/api/hook/orders"): httpx.Response(200, json={"hooks": []})})

        with pytest.raises(ResponseFormatError):
            client.list_hooks("orders")

    def test_users(self):
        client, recorder = _client({
            ("GET", "/api/security/user"): httpx.Response(200, json={"users": [
                {"username": "admin", "role": "admin"}, {"username": "bob"}
            ]}),
            ("PUT", "/api/security/user/bob/role"): httpx.Response(200, json={}),
            ("PUT", "/api/security/user/bob/password"): httpx.Response(200, json={}),
        })

        users = client.list_users()
        assert [(user.username, user.role) for user in users] == [("admin", "admin"), ("bob", "user")]

        client.change_user_role("bob", "admin")
        assert recorder.body() == {"role": "admin"}

        client.change_user_password("bob", "s3cret")
        assert recorder.body() == {"password": "s3cret"}


def test_build_query_default_limit():
    assert build_query("orders") == {"entity": "orders", "limit": 50}

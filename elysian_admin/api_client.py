"""
HTTP client for the ElysianDB admin API.

Thin wrapper over ``httpx.Client``: every call goes through ``_request``,
which returns the parsed JSON body (or None for 204 / empty bodies) and turns
non-2xx answers into ``ApiError`` and transport failures into
``ApiConnectionError``. Session cookies set by ``/admin/login`` are kept by
the underlying client.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .errors import ApiConnectionError, ApiError, ResponseFormatError
from .models import (
    AclEntry,
    EntityTypeSummary,
    HookRecord,
    UserRecord,
    acl_rows,
    parse_entity_types,
)
from .schema_tree import SchemaTree

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8089"
DEFAULT_TIMEOUT = 10.0
DEFAULT_QUERY_LIMIT = 50

ModelT = TypeVar("ModelT", bound=BaseModel)


class ElysianClient:
    """Client for the ElysianDB HTTP API."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"accept": "application/json"},
        )

    def __enter__(self) -> "ElysianClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, payload: Optional[Any] = None) -> Any:
        logger.debug(f"{method} {path}")
        try:
            if payload is None:
                resp = self.client.request(method, path)
            else:
                resp = self.client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiConnectionError(method, path, e) from e

        if resp.status_code == 204:
            return None

        text = resp.text
        if resp.is_success:
            if not text:
                return None
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                logger.warning(f"{method} {path} returned a non-JSON body")
                return text

        data: Any = None
        if text:
            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                data = {"error": text.strip()}
        if not isinstance(data, dict):
            data = {"error": data} if data else {}

        logger.warning(f"{method} {path} -> HTTP {resp.status_code}")
        raise ApiError(resp.status_code, data, method=method, path=path)

    def _parse(self, model: Type[ModelT], data: Any, method: str, path: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"{method} {path} returned an invalid {model.__name__}: {e}")
            raise ResponseFormatError(method, path, e) from e

    def _parse_rows(self, model: Type[ModelT], rows: Any, method: str, path: str) -> List[ModelT]:
        if not isinstance(rows, list):
            logger.error(f"{method} {path} returned {type(rows).__name__} instead of a list")
            raise ResponseFormatError(method, path, TypeError(f"expected a list, got {type(rows).__name__}"))
        return [self._parse(model, row, method, path) for row in rows]

    # Authentication

    def login(self, username: str, password: str) -> Dict[str, Any]:
        """POST /admin/login"""
        account = self._request("POST", "/admin/login", {"username": username, "password": password})
        logger.info(f"Logged in as '{username}'")
        return account or {}

    def logout(self) -> None:
        """GET /admin/logout"""
        self._request("GET", "/admin/logout")

    def me(self) -> Optional[Dict[str, Any]]:
        """GET /admin/me"""
        return self._request("GET", "/admin/me")

    # Entity types and schemas

    def list_entity_types(self) -> List[EntityTypeSummary]:
        """GET /api/entity/types"""
        return parse_entity_types(self._request("GET", "/api/entity/types"))

    def load_schema(self, entity: str) -> SchemaTree:
        """GET /api/{entity}/schema"""
        payload = self._request("GET", f"/api/{entity}/schema") or {}
        return SchemaTree.from_wire(payload, entity_id=entity)

    def replace_schema(self, entity: str, fields: Dict[str, Any]) -> None:
        """PUT /api/{entity}/schema (full replacement)"""
        self._request("PUT", f"/api/{entity}/schema", {"fields": fields})

    def create_entity_type(self, entity: str) -> None:
        """POST /api/{entity}/create"""
        self._request("POST", f"/api/{entity}/create", {"fields": {}})

    def drop_entity_type(self, entity: str) -> None:
        """DELETE /api/{entity}"""
        self._request("DELETE", f"/api/{entity}")

    # Records

    def query_records(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """POST /api/query"""
        result = self._request("POST", "/api/query", query)
        return result if isinstance(result, list) else []

    def delete_record(self, entity: str, record_id: str) -> None:
        """DELETE /api/{entity}/{id}"""
        self._request("DELETE", f"/api/{entity}/{record_id}")

    # ACL

    def load_acl_entries(self, username: str) -> List[AclEntry]:
        """GET /api/acl/{username}"""
        path = f"/api/acl/{username}"
        return self._parse_rows(AclEntry, self._request("GET", path) or [], "GET", path)

    def load_permissions(self, username: str) -> Dict[str, Dict[str, bool]]:
        """Entity -> PermissionSet mapping for ``username``."""
        return acl_rows(self.load_acl_entries(username))

    def write_permissions(self, username: str, entity: str, permissions: Dict[str, bool]) -> None:
        """PUT /api/acl/{username}/{entity}"""
        self._request("PUT", f"/api/acl/{username}/{entity}", {"permissions": dict(permissions)})

    def reset_permissions(self, username: str, entity: str) -> None:
        """PUT /api/acl/{username}/{entity}/default"""
        self._request("PUT", f"/api/acl/{username}/{entity}/default")

    # Hooks

    def list_hooks(self, entity: str) -> List[HookRecord]:
        """GET /api/hook/{entity}"""
        path = f"/api/hook/{entity}"
        return self._parse_rows(HookRecord, self._request("GET", path) or [], "GET", path)

    def load_hook(self, hook_id: str) -> HookRecord:
        """GET /api/hook/id/{id}"""
        path = f"/api/hook/id/{hook_id}"
        return self._parse(HookRecord, self._request("GET", path) or {}, "GET", path)

    def create_hook(self, entity: str, event: str, name: str) -> None:
        """POST /api/hook/{entity} (created disabled with an empty script)"""
        self._request("POST", f"/api/hook/{entity}", {
            "name": name,
            "entity": entity,
            "event": event,
            "priority": 1,
            "script": "",
            "language": "javascript",
            "bypass_acl": True,
            "enabled": False,
        })

    def save_hook(self, hook_id: str, hook: Dict[str, Any]) -> None:
        """PUT /api/hook/id/{id}"""
        self._request("PUT", f"/api/hook/id/{hook_id}", hook)

    def delete_hook(self, hook_id: str) -> None:
        """DELETE /api/hook/id/{id}"""
        self._request("DELETE", f"/api/hook/id/{hook_id}")

    # Users

    def list_users(self) -> List[UserRecord]:
        """GET /api/security/user"""
        payload = self._request("GET", "/api/security/user") or {}
        if not isinstance(payload, dict):
            raise ResponseFormatError("GET", "/api/security/user",
                                      TypeError(f"expected an object, got {type(payload).__name__}"))
        return self._parse_rows(UserRecord, payload.get("users") or [], "GET", "/api/security/user")

    def create_user(self, username: str, password: str, role: str = "user") -> None:
        """POST /api/security/user"""
        self._request("POST", "/api/security/user",
                      {"username": username, "password": password, "role": role})

    def change_user_password(self, username: str, password: str) -> None:
        """PUT /api/security/user/{username}/password"""
        self._request("PUT", f"/api/security/user/{username}/password", {"password": password})

    def change_user_role(self, username: str, role: str) -> None:
        """PUT /api/security/user/{username}/role"""
        self._request("PUT", f"/api/security/user/{username}/role", {"role": role})

    def delete_user(self, username: str) -> None:
        """DELETE /api/security/user/{username}"""
        self._request("DELETE", f"/api/security/user/{username}")


def build_query(entity: str, limit: int = DEFAULT_QUERY_LIMIT) -> Dict[str, Any]:
    """Default query document for the records page."""
    return {"entity": entity, "limit": limit}

"""
Session state management for the ElysianDB admin console.
Each page owns its editing state (schema session, ACL tracker, hook draft,
role fields); this module keeps it in st.session_state across reruns.
"""

import streamlit as st
from typing import Dict, Any, Optional
from datetime import datetime
import logging

from .acl_matrix import MatrixDiffTracker
from .config_loader import get_config_value
from .hook_form import HookFormSession
from .optimistic import OptimisticField
from .schema_tree import SchemaEditorSession, SchemaTree

logger = logging.getLogger(__name__)

DEFAULT_PAGE = "entities"
PAGES = ("entities", "records", "acl", "hooks", "users")


class SessionManager:
    """Manages Streamlit session state for the admin console."""

    @staticmethod
    def initialize():
        """Initialize all session state variables with default values."""
        defaults = {
            'current_page': DEFAULT_PAGE,
            'account': None,
            'api_client': None,
            'selected_entity': None,
            'schema_session': None,
            'acl_tracker': None,
            'hook_entity': None,
            'hook_session': None,
            'selected_hook_id': None,
            'role_fields': {},
            'session_id': None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

        if not st.session_state.session_id:
            st.session_state.session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

        logger.debug(f"Session initialized: {st.session_state.session_id}")

    @staticmethod
    def get_current_page() -> str:
        """Get the current page."""
        return st.session_state.get('current_page', DEFAULT_PAGE)

    @staticmethod
    def set_current_page(page: str):
        """Set the current page."""
        old_page = st.session_state.get('current_page')

        if old_page != page:
            logger.info(f"Page transition: {old_page} -> {page}")
            if SessionManager.has_unsaved_changes():
                logger.warning(f"Leaving '{old_page}' with unsaved changes")
            st.session_state.current_page = page

    @staticmethod
    def get_client():
        """Get the API client of this session."""
        return st.session_state.get('api_client')

    @staticmethod
    def set_client(client):
        old_client = st.session_state.get('api_client')
        if old_client is not None and old_client is not client:
            old_client.close()
        st.session_state.api_client = client

    @staticmethod
    def get_account() -> Optional[Dict[str, Any]]:
        return st.session_state.get('account')

    @staticmethod
    def set_account(account: Optional[Dict[str, Any]]):
        if account:
            logger.info(f"Signed in as {account.get('username', 'unknown')}")
        st.session_state.account = account

    @staticmethod
    def is_authenticated() -> bool:
        return bool(st.session_state.get('account'))

    # Schema editor

    @staticmethod
    def get_selected_entity() -> Optional[str]:
        return st.session_state.get('selected_entity')

    @staticmethod
    def get_schema_session() -> Optional[SchemaEditorSession]:
        return st.session_state.get('schema_session')

    @staticmethod
    def open_schema_session(tree: SchemaTree) -> SchemaEditorSession:
        """Replace the schema editing session with one seeded from ``tree``."""
        current = st.session_state.get('schema_session')
        if current is not None and current.is_dirty and current.entity_id != tree.entity_id:
            logger.info(f"Discarding unsaved schema edits of '{current.entity_id}'")

        session = SchemaEditorSession(tree)
        st.session_state.schema_session = session
        st.session_state.selected_entity = tree.entity_id
        return session

    @staticmethod
    def close_schema_session():
        st.session_state.schema_session = None
        st.session_state.selected_entity = None

    # ACL matrix

    @staticmethod
    def get_acl_tracker() -> MatrixDiffTracker:
        """Get the ACL tracker, creating it on first use."""
        tracker = st.session_state.get('acl_tracker')
        if tracker is None:
            tracker = MatrixDiffTracker(
                max_parallel_writes=get_config_value('api', 'max_parallel_writes', 4)
            )
            st.session_state.acl_tracker = tracker
        return tracker

    # Hooks

    @staticmethod
    def get_hook_session() -> HookFormSession:
        """Get the hook form session, creating it on first use."""
        session = st.session_state.get('hook_session')
        if session is None:
            session = HookFormSession()
            st.session_state.hook_session = session
        return session

    @staticmethod
    def get_hook_entity() -> Optional[str]:
        return st.session_state.get('hook_entity')

    @staticmethod
    def set_hook_entity(entity: Optional[str]):
        """Select the entity whose hooks are listed; drops the open draft."""
        if entity != st.session_state.get('hook_entity'):
            logger.info(f"Hook entity changed: {st.session_state.get('hook_entity')} -> {entity}")
            st.session_state.hook_entity = entity
            st.session_state.selected_hook_id = None
            SessionManager.get_hook_session().clear()

    @staticmethod
    def get_selected_hook_id() -> Optional[str]:
        return st.session_state.get('selected_hook_id')

    @staticmethod
    def set_selected_hook_id(hook_id: Optional[str]):
        st.session_state.selected_hook_id = hook_id

    # Users

    @staticmethod
    def get_role_field(username: str, role: str) -> OptimisticField:
        """
        Get the optimistic role field of ``username``.

        A field with no change in flight is resynchronized with the role
        the server reported.
        """
        fields = st.session_state.get('role_fields')
        if fields is None:
            fields = {}
            st.session_state.role_fields = fields

        role_field = fields.get(username)
        if role_field is None:
            role_field = OptimisticField(committed=role, label="role")
            fields[username] = role_field
        elif not role_field.in_flight:
            role_field.committed = role
        return role_field

    @staticmethod
    def drop_role_field(username: str):
        fields = st.session_state.get('role_fields') or {}
        fields.pop(username, None)

    @staticmethod
    def has_unsaved_changes() -> bool:
        """True if any page holds edits that were not committed (or an invalid hook draft)."""
        schema_session = st.session_state.get('schema_session')
        if schema_session is not None and schema_session.is_dirty:
            return True

        tracker = st.session_state.get('acl_tracker')
        if tracker is not None and tracker.is_dirty:
            return True

        hook_session = st.session_state.get('hook_session')
        if hook_session is not None and hook_session.needs_attention:
            return True

        return False

    @staticmethod
    def get_session_id() -> str:
        """Get the session ID."""
        return st.session_state.get('session_id') or 'unknown'

    @staticmethod
    def reset_session():
        """Reset the entire session state (used on logout)."""
        logger.info(f"Resetting session: {SessionManager.get_session_id()}")

        client = st.session_state.get('api_client')
        if client is not None:
            client.close()

        for key in list(st.session_state.keys()):
            del st.session_state[key]

        SessionManager.initialize()

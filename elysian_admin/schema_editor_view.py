"""
Schema Editor View for the ElysianDB admin console.
Lists entity types and edits the field tree of the selected one.
"""

import streamlit as st
import logging
from typing import List, Optional

from .diff_utils import format_changes_for_display
from .error_handler import ErrorHandler
from .errors import AdminConsoleError
from .models import EntityTypeSummary
from .schema_tree import FIELD_TYPES, FieldNode, KeyPath, SchemaEditorSession
from .session_manager import SessionManager
from .ui_feedback import LoadingIndicator, Notify, UserFeedback, render_outcome
from .acl_matrix import filter_names

logger = logging.getLogger(__name__)

MAX_RENDER_DEPTH = 8
NONCE_KEY = 'schema_editor_nonce'


def _widget_key(entity: str, path: KeyPath, suffix: str) -> str:
    nonce = st.session_state.get(NONCE_KEY, 0)
    return f"schema_{entity}_{nonce}_{'/'.join(path)}_{suffix}"


def _reset_field_widgets() -> None:
    st.session_state[NONCE_KEY] = st.session_state.get(NONCE_KEY, 0) + 1


class SchemaEditorView:
    """Entity type list and recursive field editor."""

    @staticmethod
    def render() -> None:
        """Main entry point for the entity types page."""
        client = SessionManager.get_client()
        st.header("🗂️ Entity Types")

        try:
            entity_types = LoadingIndicator.run_with_delayed_spinner(
                client.list_entity_types, message="Loading entity types..."
            )
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, "loading entity types")
            return

        with st.expander("➕ New entity type"):
            SchemaEditorView._render_create_form()

        selected = SchemaEditorView._render_entity_list(entity_types)
        st.divider()

        if selected is None:
            st.info("Select an entity type to edit its schema.")
            return
        session = SchemaEditorView._ensure_session(selected)
        if session is not None:
            SchemaEditorView._render_editor(session)

    @staticmethod
    def _render_entity_list(entity_types: List[EntityTypeSummary]) -> Optional[str]:
        names = [summary.id for summary in entity_types]
        if not names:
            st.info("📁 No entity types yet.")
            return None

        query = st.text_input("🔍 Search entity types", key="schema_entity_search",
                              placeholder="Type to filter...")
        visible = filter_names(names, query)
        if not visible:
            st.caption("No entity type matches the search.")
            return None

        current = SessionManager.get_selected_entity()
        index = visible.index(current) if current in visible else 0
        return st.selectbox("Entity type", options=visible, index=index, key="schema_entity_select")

    @staticmethod
    def _render_create_form() -> None:
        client = SessionManager.get_client()
        with st.form("create_entity_type_form", clear_on_submit=True):
            entity = st.text_input("New entity type", placeholder="e.g. orders")
            submitted = st.form_submit_button("➕ Create")

        if not submitted:
            return
        entity = (entity or "").strip()
        if not entity:
            Notify.warn("Entity type name is required")
            return

        try:
            client.create_entity_type(entity)
        except AdminConsoleError as e:
            Notify.error(f"Failed to create entity type \"{entity}\": {e}")
            return

        Notify.success(f"Entity type \"{entity}\" created")
        st.rerun()

    @staticmethod
    def _ensure_session(entity: str) -> Optional[SchemaEditorSession]:
        """Return the editing session of ``entity``, loading its schema on selection change."""
        session = SessionManager.get_schema_session()
        if session is not None and session.entity_id == entity:
            return session

        client = SessionManager.get_client()
        try:
            tree = LoadingIndicator.run_with_delayed_spinner(
                client.load_schema, entity, message=f"Loading schema of {entity}..."
            )
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, f"loading schema of {entity}")
            return None
        _reset_field_widgets()
        return SessionManager.open_schema_session(tree)

    @staticmethod
    def _render_editor(session: SchemaEditorSession) -> None:
        tree = session.tree
        mode = "manual" if tree.is_manually_managed else "auto-managed"
        st.subheader(f"{tree.entity_id} ({mode})")

        col1, col2, col3, col4 = st.columns(4)
        with col1:
            if st.button("➕ Add field", key="schema_add_root"):
                session.add_field()
                st.rerun()
        with col2:
            if st.button("💾 Update schema", type="primary", key="schema_commit",
                         disabled=not session.is_dirty):
                SchemaEditorView._commit(session)
        with col3:
            if st.button("↩️ Discard changes", key="schema_discard", disabled=not session.is_dirty):
                session.discard_changes()
                _reset_field_widgets()
                st.rerun()
        with col4:
            if st.button("🗑️ Drop entity type", key="schema_drop"):
                st.session_state.schema_confirm_drop = tree.entity_id

        SchemaEditorView._render_drop_confirmation(tree.entity_id)

        if not tree.fields:
            st.caption("This entity type has no fields.")
        for key, node in list(tree.fields.items()):
            SchemaEditorView._render_field(session, (key,), node)

        with st.expander("🔍 Pending changes", expanded=session.is_dirty):
            st.markdown(format_changes_for_display(session.changes()))

    @staticmethod
    def _render_field(session: SchemaEditorSession, path: KeyPath, node: FieldNode) -> None:
        """Render one field row, then its children one level deeper."""
        entity = session.entity_id
        depth = len(path) - 1

        _, col_name, col_type, col_required, col_add, col_delete = st.columns(
            [depth * 0.4 + 0.01, 3, 2, 1, 1, 1]
        )
        with col_name:
            new_name = st.text_input("Name", value=node.name, label_visibility="collapsed",
                                     key=_widget_key(entity, path, "name"))
        with col_type:
            options = list(FIELD_TYPES)
            if node.type not in options:
                options.append(node.type)
            new_type = st.selectbox("Type", options=options, index=options.index(node.type),
                                    label_visibility="collapsed",
                                    key=_widget_key(entity, path, "type"))
        with col_required:
            new_required = st.checkbox("Required", value=node.required,
                                       key=_widget_key(entity, path, "required"))
        with col_add:
            add_clicked = st.button("➕", key=_widget_key(entity, path, "add"),
                                    help="Add a child field",
                                    disabled=(new_type != "object" or depth >= MAX_RENDER_DEPTH))
        with col_delete:
            delete_clicked = st.button("🗑️", key=_widget_key(entity, path, "delete"),
                                       help="Delete this field")

        if delete_clicked:
            session.delete_field(path)
            st.rerun()
        if add_clicked:
            session.add_field(path)
            st.rerun()

        new_name = (new_name or "").strip()
        if new_name and new_name != node.name:
            session.rename_field(path, new_name)
            st.rerun()

        patch = {}
        if new_type != node.type:
            patch['type'] = new_type
        if bool(new_required) != node.required:
            patch['required'] = bool(new_required)
        if patch:
            session.update_field(path, patch)
            st.rerun()

        for child_key, child in list((node.children or {}).items()):
            SchemaEditorView._render_field(session, path + (child_key,), child)

    @staticmethod
    def _commit(session: SchemaEditorSession) -> None:
        client = SessionManager.get_client()
        outcome = LoadingIndicator.run_with_delayed_spinner(
            session.commit, client, message="Updating schema..."
        )
        if render_outcome(outcome):
            _reset_field_widgets()
            st.rerun()
        elif outcome.error is not None:
            UserFeedback.show_validation_results([], outcome.error.recovery_suggestions)

    @staticmethod
    def _render_drop_confirmation(entity: str) -> None:
        if st.session_state.get('schema_confirm_drop') != entity:
            return

        st.warning(f"⚠️ Drop entity type \"{entity}\" and all its records?")
        decision = UserFeedback.confirmation_buttons("schema_drop", confirm_text="Drop")
        if decision is None:
            return

        st.session_state.schema_confirm_drop = None
        if not decision:
            st.rerun()
            return

        client = SessionManager.get_client()
        try:
            client.drop_entity_type(entity)
        except AdminConsoleError as e:
            Notify.error(f"Failed to drop entity type \"{entity}\": {e}")
            return

        Notify.success(f"Entity type \"{entity}\" dropped")
        SessionManager.close_schema_session()
        st.rerun()

"""
ACL View for the ElysianDB admin console.
Edits the permission matrix of one user and commits only the changed entities.
"""

import streamlit as st
import pandas as pd
import logging
from typing import List, Optional

from .acl_matrix import PERMISSIONS, PERMISSION_DESCRIPTIONS, MatrixDiffTracker, filter_names
from .diff_utils import describe_permission_changes
from .error_handler import ErrorHandler
from .errors import AdminConsoleError
from .models import UserRecord
from .session_manager import SessionManager
from .ui_feedback import LoadingIndicator, UserFeedback, render_batch_outcome, render_outcome

logger = logging.getLogger(__name__)

NONCE_KEY = 'acl_editor_nonce'


def _bump_editor_nonce() -> None:
    """Force the matrix widget to start over from the tracker state."""
    st.session_state[NONCE_KEY] = st.session_state.get(NONCE_KEY, 0) + 1


def build_matrix_frame(tracker: MatrixDiffTracker, entities: List[str]) -> pd.DataFrame:
    """One row per entity, one boolean column per permission."""
    rows = []
    for entity in entities:
        current = tracker.current_for(entity) or {}
        rows.append({permission: bool(current.get(permission, False)) for permission in PERMISSIONS})
    return pd.DataFrame(rows, index=pd.Index(entities, name="entity"), columns=list(PERMISSIONS))


def apply_matrix_edits(tracker: MatrixDiffTracker, edited: pd.DataFrame) -> int:
    """
    Push cell values of an edited matrix frame into the tracker.

    Returns the number of cells that changed.
    """
    changed = 0
    for entity, row in edited.iterrows():
        current = tracker.current_for(entity)
        if current is None:
            continue
        for permission in PERMISSIONS:
            value = bool(row[permission])
            if bool(current.get(permission, False)) != value:
                tracker.set_permission(entity, permission, value)
                changed += 1
    return changed


def build_pending_frame(tracker: MatrixDiffTracker) -> pd.DataFrame:
    rows = describe_permission_changes(tracker.baselines(), tracker.pending)
    return pd.DataFrame(rows, columns=['entity', 'permission', 'before', 'after'])


class ACLView:
    """User list and permission matrix."""

    @staticmethod
    def render() -> None:
        client = SessionManager.get_client()
        tracker = SessionManager.get_acl_tracker()
        st.header("🔐 Access Control")

        try:
            users = LoadingIndicator.run_with_delayed_spinner(client.list_users, message="Loading users...")
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, "loading users")
            return

        col_users, col_matrix = st.columns([1, 3])
        with col_users:
            subject = ACLView._render_user_list(users, tracker.subject)

        with col_matrix:
            if subject is None:
                st.info("Select a user to edit their permissions.")
                return

            if subject != tracker.subject:
                ACLView._load(tracker, subject)

            if tracker.load_error is not None:
                st.error(f"❌ Failed to load ACLs for \"{subject}\": {tracker.load_error}")
                if st.button("🔄 Retry", key="acl_retry"):
                    ACLView._load(tracker, subject)
                    st.rerun()
                return

            ACLView._render_matrix(tracker)

        ACLView._render_permissions_overview()

    @staticmethod
    def _render_user_list(users: List[UserRecord], current: Optional[str]) -> Optional[str]:
        st.subheader("Users")
        query = st.text_input("🔍 Search user", key="acl_user_search", placeholder="Search user...")
        names = filter_names([user.username for user in users], query)
        if not names:
            st.caption("No user matches the search.")
            return None

        roles = {user.username: user.role for user in users}
        index = names.index(current) if current in names else 0
        return st.radio("User", options=names, index=index, key="acl_user_select",
                        format_func=lambda name: f"{name} ({roles.get(name, '?')})",
                        label_visibility="collapsed")

    @staticmethod
    def _load(tracker: MatrixDiffTracker, subject: str) -> None:
        client = SessionManager.get_client()
        outcome = LoadingIndicator.run_with_delayed_spinner(
            tracker.load_baseline, subject, client.load_permissions,
            message=f"Loading ACLs for {subject}..."
        )
        _bump_editor_nonce()
        if not outcome.ok:
            render_outcome(outcome)

    @staticmethod
    def _render_matrix(tracker: MatrixDiffTracker) -> None:
        subject = tracker.subject
        client = SessionManager.get_client()

        col_search, col_update, col_discard, col_restore = st.columns([3, 1, 1, 1])
        with col_search:
            query = st.text_input("🔍 Search entity", key="acl_entity_search",
                                  placeholder="Search entity...", label_visibility="collapsed")
        visible = filter_names(tracker.entities, query)

        with col_update:
            if st.button("💾 Update ACLs", type="primary", key="acl_commit",
                         disabled=not tracker.is_dirty or tracker.loading):
                batch = LoadingIndicator.run_with_delayed_spinner(
                    tracker.commit_pending, client.write_permissions, message="Updating ACLs..."
                )
                _bump_editor_nonce()
                render_batch_outcome(batch)
                st.rerun()
        with col_discard:
            if st.button("↩️ Discard", key="acl_discard", disabled=not tracker.is_dirty):
                tracker.discard_changes()
                _bump_editor_nonce()
                st.rerun()
        with col_restore:
            if st.button("♻️ Restore defaults", key="acl_restore", disabled=not visible):
                st.session_state.acl_confirm_restore = subject

        if st.session_state.get('acl_confirm_restore') == subject:
            ACLView._render_restore_confirmation(tracker, visible)

        if not visible:
            st.caption("No entity to show.")
            return

        frame = build_matrix_frame(tracker, visible)
        edited = st.data_editor(
            frame,
            key=f"acl_matrix_{subject}_{st.session_state.get(NONCE_KEY, 0)}",
            disabled=tracker.loading,
            column_config={
                permission: st.column_config.CheckboxColumn(permission, help=PERMISSION_DESCRIPTIONS[permission])
                for permission in PERMISSIONS
            },
            width='stretch'
        )
        if apply_matrix_edits(tracker, edited):
            st.rerun()

        if tracker.is_dirty:
            st.markdown(f"**Pending changes ({len(tracker.pending)} entities)**")
            st.dataframe(build_pending_frame(tracker), hide_index=True, width='stretch')

    @staticmethod
    def _render_restore_confirmation(tracker: MatrixDiffTracker, entities: List[str]) -> None:
        subject = tracker.subject
        st.warning(f"⚠️ Restore default permissions for \"{subject}\" on {len(entities)} entities?")
        decision = UserFeedback.confirmation_buttons("acl_restore", confirm_text="Restore")
        if decision is None:
            return

        st.session_state.acl_confirm_restore = None
        if decision:
            client = SessionManager.get_client()
            batch = LoadingIndicator.run_with_delayed_spinner(
                tracker.restore_defaults, entities, client.reset_permissions, client.load_permissions,
                message="Restoring default ACLs..."
            )
            _bump_editor_nonce()
            render_batch_outcome(batch)
        st.rerun()

    @staticmethod
    def _render_permissions_overview() -> None:
        with st.expander("📖 Permissions overview"):
            for permission in PERMISSIONS:
                st.markdown(f"**{permission}**: {PERMISSION_DESCRIPTIONS[permission]}")

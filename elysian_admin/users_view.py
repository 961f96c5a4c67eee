"""
Users View for the ElysianDB admin console.
"""

import streamlit as st
import logging

from .acl_matrix import filter_names
from .error_handler import ErrorHandler
from .errors import AdminConsoleError
from .models import USER_ROLES, UserRecord
from .optimistic import OptimisticField
from .session_manager import SessionManager
from .ui_feedback import LoadingIndicator, Notify, UserFeedback, render_outcome

logger = logging.getLogger(__name__)


class UsersView:
    """User accounts: creation, password, role and deletion."""

    @staticmethod
    def render() -> None:
        client = SessionManager.get_client()
        st.header("👥 Users")

        try:
            users = LoadingIndicator.run_with_delayed_spinner(client.list_users, message="Loading users...")
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, "loading users")
            return

        with st.expander("➕ New user"):
            UsersView._render_create_form()

        query = st.text_input("🔍 Search user", key="users_search", placeholder="Search user...")
        visible = set(filter_names([user.username for user in users], query))
        if not visible:
            st.caption("No user matches the search.")
            return

        for user in users:
            if user.username in visible:
                UsersView._render_user_row(user)

    @staticmethod
    def _render_create_form() -> None:
        client = SessionManager.get_client()
        with st.form("create_user_form", clear_on_submit=True):
            username = st.text_input("Username")
            password = st.text_input("Password", type="password")
            role = st.selectbox("Role", options=list(USER_ROLES), index=USER_ROLES.index("user"))
            submitted = st.form_submit_button("Create user")

        if not submitted:
            return
        username = (username or "").strip()
        if not username or not password:
            UserFeedback.show_validation_results(["Username and password are required"])
            return

        try:
            client.create_user(username, password, role)
        except AdminConsoleError as e:
            Notify.error(f"Failed to create user: {e}")
            return

        Notify.success("User created successfully")
        st.rerun()

    @staticmethod
    def _render_user_row(user: UserRecord) -> None:
        username = user.username
        role_field = SessionManager.get_role_field(username, user.role)
        options = list(USER_ROLES)
        if role_field.displayed not in options:
            options.append(role_field.displayed)

        col_name, col_role, col_password, col_delete = st.columns([2, 2, 3, 1])
        with col_name:
            st.markdown(f"**{username}**")
        with col_role:
            new_role = st.selectbox("Role", options=options, index=options.index(role_field.displayed),
                                    key=f"user_role_{username}", label_visibility="collapsed",
                                    disabled=role_field.in_flight)
        with col_password:
            with st.popover("🔑 Change password"):
                with st.form(f"user_password_{username}", clear_on_submit=True):
                    password = st.text_input("New password", type="password")
                    submitted = st.form_submit_button("Change")
        with col_delete:
            delete_clicked = st.button("🗑️", key=f"user_delete_{username}", help="Delete this user")

        if new_role != role_field.displayed:
            UsersView._change_role(username, role_field, new_role)

        if submitted:
            UsersView._change_password(username, password)

        if delete_clicked:
            st.session_state.users_confirm_delete = username
        if st.session_state.get('users_confirm_delete') == username:
            UsersView._render_delete_confirmation(username)

    @staticmethod
    def _change_role(username: str, role_field: OptimisticField, role: str) -> None:
        client = SessionManager.get_client()
        outcome = role_field.apply(role, lambda value: client.change_user_role(username, value))
        render_outcome(outcome)
        if not outcome.ok:
            # the selectbox still holds the rejected role
            st.session_state.pop(f"user_role_{username}", None)
        st.rerun()

    @staticmethod
    def _change_password(username: str, password: str) -> None:
        if not password:
            Notify.warn("Password cannot be empty")
            return
        client = SessionManager.get_client()
        try:
            client.change_user_password(username, password)
        except AdminConsoleError as e:
            Notify.error(f"Failed to change user's password: {e}")
            return
        Notify.success("User's password successfully modified")

    @staticmethod
    def _render_delete_confirmation(username: str) -> None:
        st.warning(f"⚠️ Delete user \"{username}\"?")
        decision = UserFeedback.confirmation_buttons(f"user_delete_{username}", confirm_text="Delete")
        if decision is None:
            return

        st.session_state.users_confirm_delete = None
        if decision:
            client = SessionManager.get_client()
            try:
                client.delete_user(username)
            except AdminConsoleError as e:
                Notify.error(f"Failed to delete user: {e}")
                return
            SessionManager.drop_role_field(username)
            Notify.success(f"User \"{username}\" deleted")
        st.rerun()

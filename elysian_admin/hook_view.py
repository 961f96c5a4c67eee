"""
Hooks View for the ElysianDB admin console.
Lists the read hooks of an entity and edits one of them behind the script
validity gate.
"""

import streamlit as st
import logging
from typing import Dict, List, Optional

from .error_handler import ErrorHandler
from .errors import AdminConsoleError
from .hook_form import HookFormSession, group_hooks_by_event
from .models import HOOK_EVENTS, HOOK_LANGUAGES, MAX_HOOK_PRIORITY, MIN_HOOK_PRIORITY, HookRecord
from .session_manager import SessionManager
from .ui_feedback import LoadingIndicator, Notify, UserFeedback, render_outcome

logger = logging.getLogger(__name__)

NONCE_KEY = 'hook_editor_nonce'


def _editor_key(hook_id: Optional[str], name: str) -> str:
    return f"hook_{hook_id}_{st.session_state.get(NONCE_KEY, 0)}_{name}"


class HookView:
    """Hooks per entity and the hook editor."""

    @staticmethod
    def render() -> None:
        client = SessionManager.get_client()
        st.header("🪝 Hooks")

        try:
            entity_types = LoadingIndicator.run_with_delayed_spinner(
                client.list_entity_types, message="Loading entity types..."
            )
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, "loading entity types")
            return

        names = [summary.id for summary in entity_types]
        if not names:
            st.info("📁 Create an entity type before adding hooks.")
            return

        current = SessionManager.get_hook_entity()
        entity = st.selectbox("Entity type", options=names,
                              index=names.index(current) if current in names else 0,
                              key="hook_entity_select")
        SessionManager.set_hook_entity(entity)

        try:
            hooks = LoadingIndicator.run_with_delayed_spinner(
                client.list_hooks, entity, message=f"Loading hooks of {entity}..."
            )
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, f"loading hooks of {entity}")
            return

        col_list, col_editor = st.columns([1, 2])
        with col_list:
            HookView._render_hook_list(entity, group_hooks_by_event(hooks))
            HookView._render_create_form(entity)

        with col_editor:
            hook_id = SessionManager.get_selected_hook_id()
            if hook_id is None:
                st.info("Select a hook to edit it.")
                return
            HookView._render_editor(hook_id)

    @staticmethod
    def _render_hook_list(entity: str, grouped: Dict[str, List[HookRecord]]) -> None:
        # stored hooks may carry an event the editor does not offer
        extra_events = sorted(set(grouped) - set(HOOK_EVENTS))
        for event in list(HOOK_EVENTS) + extra_events:
            st.markdown(f"**{event}**")
            hooks = grouped.get(event) or []
            if not hooks:
                st.caption("No hooks.")
                continue
            for hook in hooks:
                state = "✅" if hook.enabled else "⏸️"
                label = f"{state} {hook.name or hook.id} (priority {hook.priority})"
                if st.button(label, key=f"hook_select_{hook.id}", width='stretch'):
                    HookView._select(hook.id)
                    st.rerun()

    @staticmethod
    def _select(hook_id: Optional[str]) -> None:
        """Load ``hook_id`` into the form session, dropping any draft."""
        client = SessionManager.get_client()
        session = SessionManager.get_hook_session()
        try:
            record = LoadingIndicator.run_with_delayed_spinner(
                client.load_hook, hook_id, message="Loading hook..."
            )
        except AdminConsoleError as e:
            Notify.error(f"Failed to load hook: {e}")
            return

        session.load(record)
        SessionManager.set_selected_hook_id(hook_id)
        st.session_state[NONCE_KEY] = st.session_state.get(NONCE_KEY, 0) + 1

    @staticmethod
    def _render_create_form(entity: str) -> None:
        client = SessionManager.get_client()
        with st.form("create_hook_form", clear_on_submit=True):
            st.markdown("**New hook**")
            name = st.text_input("Name")
            event = st.selectbox("Event", options=list(HOOK_EVENTS), index=HOOK_EVENTS.index("post_read"))
            submitted = st.form_submit_button("➕ Create hook")

        if not submitted:
            return
        name = (name or "").strip()
        if not name:
            Notify.warn("Hook name is required")
            return

        try:
            client.create_hook(entity, event, name)
        except AdminConsoleError as e:
            Notify.error(f"Failed to create a hook for \"{entity}\": {e}")
            return

        Notify.success(f"The hook \"{name}\" was created for \"{entity}\"")
        st.rerun()

    @staticmethod
    def _render_editor(hook_id: str) -> None:
        session = SessionManager.get_hook_session()
        if session.draft is None or session.draft.id != hook_id:
            HookView._select(hook_id)
        draft = session.draft
        if draft is None:
            return

        title = draft.name or draft.id
        marker = " ✏️" if session.has_unsaved_changes else ""
        st.subheader(f"{title}{marker}")

        with st.expander("⚙️ Options"):
            values = {
                'enabled': st.toggle("Enabled", value=draft.enabled, key=_editor_key(hook_id, "enabled")),
                'bypass_acl': st.toggle("Bypass ACL", value=draft.bypass_acl,
                                        help="Allows this hook to bypass ACL checks",
                                        key=_editor_key(hook_id, "bypass_acl")),
                'language': st.selectbox("Language", options=list(HOOK_LANGUAGES),
                                         key=_editor_key(hook_id, "language")),
                'event': st.selectbox("Event", options=list(HOOK_EVENTS),
                                      index=HOOK_EVENTS.index(draft.event) if draft.event in HOOK_EVENTS else 0,
                                      key=_editor_key(hook_id, "event")),
                'priority': st.number_input("Priority", min_value=MIN_HOOK_PRIORITY,
                                            max_value=MAX_HOOK_PRIORITY, step=1,
                                            value=min(max(int(draft.priority), MIN_HOOK_PRIORITY), MAX_HOOK_PRIORITY),
                                            key=_editor_key(hook_id, "priority")),
                'name': st.text_input("Name", value=draft.name, key=_editor_key(hook_id, "name")),
            }

        values['script'] = st.text_area("Script", value=draft.script, height=260,
                                        placeholder=f"function {'postRead' if draft.event == 'post_read' else 'preRead'}(ctx) {{ }}",
                                        key=_editor_key(hook_id, "script"))
        session.update(values)

        script_error = session.script_error
        if script_error:
            st.error(f"❌ {script_error}")
        other_errors = [error for error in session.errors if error != script_error]
        if other_errors:
            UserFeedback.show_validation_results(other_errors)

        col_save, col_delete = st.columns(2)
        with col_save:
            if st.button("💾 Save", type="primary", key=_editor_key(hook_id, "save"),
                         disabled=not session.is_valid):
                HookView._save(session)
        with col_delete:
            if st.button("🗑️ Delete hook", key=_editor_key(hook_id, "delete")):
                st.session_state.hook_confirm_delete = hook_id

        if st.session_state.get('hook_confirm_delete') == hook_id:
            HookView._render_delete_confirmation(hook_id, title)

    @staticmethod
    def _save(session: HookFormSession) -> None:
        client = SessionManager.get_client()
        outcome = LoadingIndicator.run_with_delayed_spinner(
            session.save, client.save_hook, message="Saving hook..."
        )
        if render_outcome(outcome):
            st.rerun()

    @staticmethod
    def _render_delete_confirmation(hook_id: str, title: str) -> None:
        st.warning(f"⚠️ Delete hook \"{title}\"?")
        decision = UserFeedback.confirmation_buttons("hook_delete", confirm_text="Delete")
        if decision is None:
            return

        st.session_state.hook_confirm_delete = None
        if decision:
            client = SessionManager.get_client()
            try:
                client.delete_hook(hook_id)
            except AdminConsoleError as e:
                Notify.error(f"Failed to delete hook \"{title}\": {e}")
                return
            Notify.success(f"Hook \"{title}\" deleted")
            SessionManager.get_hook_session().clear()
            SessionManager.set_selected_hook_id(None)
        st.rerun()

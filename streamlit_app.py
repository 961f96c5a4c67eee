"""
Main Streamlit application for the ElysianDB admin console.
Browse records, edit entity schemas, manage ACLs, hooks and users through
the ElysianDB HTTP API.
"""

import streamlit as st
import logging

from elysian_admin.config_loader import get_config, get_config_value, get_config_summary


def get_logging_level(level_str):
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


# Configure logging dynamically from config
log_level_str = get_config_value('logging', 'level', 'INFO')
logging.basicConfig(
    level=get_logging_level(log_level_str),
    format=get_config_value('logging', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
)
logger = logging.getLogger(__name__)
logger.info(f"Logging configured to level: {log_level_str}")

from elysian_admin.api_client import ElysianClient  # noqa: E402
from elysian_admin.errors import AdminConsoleError, ApiError  # noqa: E402
from elysian_admin.error_handler import ErrorHandler  # noqa: E402
from elysian_admin.session_manager import PAGES, SessionManager  # noqa: E402
from elysian_admin.ui_feedback import Notify  # noqa: E402

PAGE_LABELS = {
    'entities': '🗂️ Entity Types',
    'records': '📄 Records',
    'acl': '🔐 ACL',
    'hooks': '🪝 Hooks',
    'users': '👥 Users'
}

st.set_page_config(
    page_title=get_config_value('ui', 'page_title', 'ElysianDB Admin'),
    page_icon="🗄️",
    layout="wide",
    initial_sidebar_state="expanded"
)


def main():
    """Main application entry point."""
    try:
        SessionManager.initialize()
        ensure_client()

        if not SessionManager.is_authenticated():
            render_login()
            return

        render_sidebar()
        render_main_content()

    except ApiError as e:
        if e.is_auth_error:
            logger.info("Session expired, returning to login")
            SessionManager.set_account(None)
            st.rerun()
        ErrorHandler.handle_error(e, f"page {SessionManager.get_current_page()}")

    except Exception as e:
        ErrorHandler.handle_error(e, "application")


def ensure_client():
    """Create the API client once per session and resume an existing login."""
    if SessionManager.get_client() is not None:
        return

    config = get_config()
    logger.info(f"Starting {config['app']['name']} {config['app']['version']}: {get_config_summary(config)}")
    client = ElysianClient(
        base_url=get_config_value('api', 'base_url', 'http://localhost:8089'),
        timeout=float(get_config_value('api', 'timeout', 10))
    )
    SessionManager.set_client(client)

    username = get_config_value('api', 'username')
    password = get_config_value('api', 'password')
    if username and password:
        try:
            SessionManager.set_account(client.login(username, password) or {'username': username})
        except AdminConsoleError as e:
            logger.error(f"Automatic login as '{username}' failed: {e}")
            Notify.error(f"Automatic login as \"{username}\" failed")


def render_login():
    """Render the login form."""
    st.title(f"🗄️ {get_config_value('app', 'name', 'ElysianDB Admin')}")

    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Log in", type="primary")

    if not submitted:
        return

    client = SessionManager.get_client()
    try:
        account = client.login(username, password)
    except ApiError as e:
        logger.warning(f"Login failed for '{username}': HTTP {e.status}")
        st.error("❌ Invalid username or password")
        return
    except AdminConsoleError as e:
        ErrorHandler.handle_error(e, "login")
        return

    SessionManager.set_account(account or {'username': username})
    st.rerun()


def render_sidebar():
    """Render application sidebar."""
    with st.sidebar:
        st.header(get_config_value('ui', 'sidebar_title', 'Navigation'))

        current = SessionManager.get_current_page()
        page = st.radio(
            "Select View:",
            options=list(PAGES),
            format_func=lambda x: PAGE_LABELS[x],
            index=list(PAGES).index(current) if current in PAGES else 0
        )
        if page != current:
            SessionManager.set_current_page(page)
            st.rerun()

        if SessionManager.has_unsaved_changes():
            st.warning("⚠️ Unsaved changes")

        st.divider()
        account = SessionManager.get_account() or {}
        st.caption(f"Signed in as **{account.get('username', '?')}**")
        st.caption(get_config_value('api', 'base_url', ''))
        if st.button("🚪 Log out"):
            logout()


def logout():
    client = SessionManager.get_client()
    try:
        client.logout()
    except AdminConsoleError as e:
        logger.warning(f"Logout request failed: {e}")
    finally:
        SessionManager.reset_session()
    st.rerun()


def render_main_content():
    """Render main content area based on current page."""
    page = SessionManager.get_current_page()

    if page == 'entities':
        from elysian_admin.schema_editor_view import SchemaEditorView
        SchemaEditorView.render()
    elif page == 'records':
        from elysian_admin.records_view import RecordsView
        RecordsView.render()
    elif page == 'acl':
        from elysian_admin.acl_view import ACLView
        ACLView.render()
    elif page == 'hooks':
        from elysian_admin.hook_view import HookView
        HookView.render()
    elif page == 'users':
        from elysian_admin.users_view import UsersView
        UsersView.render()
    else:
        st.error(f"Unknown page: {page}")


if __name__ == "__main__":
    main()

"""
Records View for the ElysianDB admin console.
Runs JSON queries against an entity type and lists the matching documents.
"""

import streamlit as st
import pandas as pd
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .api_client import build_query
from .config_loader import get_config_value
from .error_handler import ErrorHandler
from .errors import AdminConsoleError
from .session_manager import SessionManager
from .ui_feedback import LoadingIndicator, Notify, UserFeedback

logger = logging.getLogger(__name__)


def parse_query(text: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """Parse the query editor content. Returns (query, error message)."""
    try:
        query = json.loads(text)
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON query: {e.msg} (line {e.lineno})"
    if not isinstance(query, dict):
        return None, "The query must be a JSON object"
    if not query.get('entity'):
        return None, "The query must name an entity"
    return query, None


def records_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    """Flatten documents into a table; nested values become dotted columns."""
    if not records:
        return pd.DataFrame()
    frame = pd.json_normalize(records)
    if 'id' in frame.columns:
        frame = frame[['id'] + [column for column in frame.columns if column != 'id']]
    return frame


class RecordsView:
    """Query editor and document list."""

    @staticmethod
    def render() -> None:
        client = SessionManager.get_client()
        st.header("📄 Records")

        try:
            entity_types = LoadingIndicator.run_with_delayed_spinner(
                client.list_entity_types, message="Loading entity types..."
            )
        except AdminConsoleError as e:
            ErrorHandler.handle_error(e, "loading entity types")
            return

        names = [summary.id for summary in entity_types]
        if not names:
            st.info("📁 No entity types yet.")
            return

        entity = st.selectbox("Entity type", options=names, key="records_entity_select")
        query_key = f"records_query_{entity}"
        if query_key not in st.session_state:
            limit = get_config_value('ui', 'default_query_limit', 50)
            st.session_state[query_key] = json.dumps(build_query(entity, limit), indent=2)

        with st.expander("🔎 Query"):
            st.text_area("Query (JSON)", key=query_key, height=220)

        query, error = parse_query(st.session_state[query_key])
        if error:
            UserFeedback.show_validation_results([error])
            return

        try:
            records = LoadingIndicator.run_with_delayed_spinner(
                client.query_records, query, message="Running query..."
            )
        except AdminConsoleError as e:
            st.error("❌ Error while executing query")
            logger.error(f"Query failed for {entity}: {e}")
            return

        st.caption(f"{len(records)} documents")
        table_tab, documents_tab = st.tabs(["Table", "Documents"])
        with table_tab:
            st.dataframe(records_frame(records), hide_index=True, width='stretch')
        with documents_tab:
            for index, record in enumerate(records):
                RecordsView._render_document(entity, index, record)

    @staticmethod
    def _render_document(entity: str, index: int, record: Dict[str, Any]) -> None:
        record_id = record.get('id')
        with st.expander(str(record_id or f"Document {index + 1}")):
            st.json(record)
            if not record_id:
                return
            if st.button("🗑️ Delete", key=f"records_delete_{entity}_{record_id}"):
                st.session_state.records_confirm_delete = record_id
            if st.session_state.get('records_confirm_delete') == record_id:
                decision = UserFeedback.confirmation_buttons(f"records_delete_{record_id}",
                                                             confirm_text="Delete")
                if decision is None:
                    return
                st.session_state.records_confirm_delete = None
                if decision:
                    RecordsView._delete(entity, record_id)
                st.rerun()

    @staticmethod
    def _delete(entity: str, record_id: str) -> None:
        client = SessionManager.get_client()
        try:
            client.delete_record(entity, record_id)
        except AdminConsoleError as e:
            Notify.error(f"Failed to delete \"{record_id}\": {e}")
            return
        Notify.success(f"Entity \"{record_id}\" deleted")

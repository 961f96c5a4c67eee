"""
Unit tests for ui_feedback module.
"""

import threading
from unittest.mock import patch, MagicMock, call
import pytest

from elysian_admin.errors import ApiError
from elysian_admin.outcome import BatchOutcome, Outcome
from elysian_admin.ui_feedback import (
    LoadingIndicator,
    Notify,
    UserFeedback,
    render_batch_outcome,
    render_outcome
)


class TestLoadingIndicator:
    """Test class for loading indicators."""

    @patch('streamlit.spinner')
    def test_fast_call_never_shows_spinner(self, mock_spinner):
        """Test that a call finishing before the delay shows no spinner."""
        result = LoadingIndicator.run_with_delayed_spinner(lambda a, b=0: a + b, 1, b=2,
                                                           message="Adding...", delay=5)
        assert result == 3
        mock_spinner.assert_not_called()

    @patch('streamlit.spinner')
    def test_slow_call_shows_spinner(self, mock_spinner):
        """Test that a call outliving the delay shows the spinner."""
        released = threading.Event()
        mock_spinner.return_value.__enter__.side_effect = lambda *args: released.set()

        def slow():
            released.wait(timeout=5)
            return "done"

        result = LoadingIndicator.run_with_delayed_spinner(slow, message="Waiting...", delay=0)

        assert result == "done"
        mock_spinner.assert_called_once_with("Waiting...")

    @patch('streamlit.spinner')
    def test_errors_propagate(self, mock_spinner):
        """Test that exceptions from the wrapped call are re-raised."""
        def failing():
            raise ApiError(500)

        with pytest.raises(ApiError):
            LoadingIndicator.run_with_delayed_spinner(failing, delay=5)


class TestUserFeedback:
    """Test class for user feedback."""

    @patch('streamlit.error')
    @patch('streamlit.warning')
    def test_show_validation_results(self, mock_warning, mock_error):
        """Test showing validation errors and warnings."""
        UserFeedback.show_validation_results(["Script must start"], ["Priority is low"])

        mock_error.assert_has_calls([call("❌ **Validation Errors:**"), call("  • Script must start")])
        mock_warning.assert_has_calls([call("⚠️ **Warnings:**"), call("  • Priority is low")])

    @patch('streamlit.error')
    @patch('streamlit.warning')
    def test_show_validation_results_empty(self, mock_warning, mock_error):
        """Test that nothing is shown without errors or warnings."""
        UserFeedback.show_validation_results([])
        mock_error.assert_not_called()
        mock_warning.assert_not_called()

    @pytest.mark.parametrize("clicks,expected", [
        ([True, False], True),
        ([False, True], False),
        ([False, False], None),
    ])
    @patch('streamlit.button')
    @patch('streamlit.columns')
    def test_confirmation_buttons(self, mock_columns, mock_button, clicks, expected):
        """Test the confirm / cancel pair."""
        mock_columns.return_value = [MagicMock(), MagicMock()]
        mock_button.side_effect = clicks

        assert UserFeedback.confirmation_buttons("drop", confirm_text="Drop") is expected
        assert mock_button.call_args_list[0] == call("Drop", type="primary", key="drop_confirm")
        assert mock_button.call_args_list[1] == call("Cancel", key="drop_cancel")


class TestNotify:
    """Test class for toast notifications."""

    @patch('streamlit.toast')
    def test_icons(self, mock_toast):
        """Test that each helper uses its icon."""
        Notify.success("ok")
        Notify.info("fyi")
        Notify.warn("careful")
        Notify.error("broken")

        assert mock_toast.call_args_list == [
            call("ok", icon="✅"),
            call("fyi", icon="ℹ️"),
            call("careful", icon="⚠️"),
            call("broken", icon="❌"),
        ]


class TestRenderOutcome:
    """Test class for outcome rendering."""

    @patch('streamlit.toast')
    def test_success(self, mock_toast):
        assert render_outcome(Outcome.success("Saved"))
        mock_toast.assert_called_once_with("Saved", icon="✅")

    @patch('streamlit.toast')
    def test_validation_failure(self, mock_toast):
        assert not render_outcome(Outcome.validation_failure("Bad script"))
        mock_toast.assert_called_once_with("Bad script", icon="⚠️")

    @patch('streamlit.toast')
    def test_remote_failure_includes_error(self, mock_toast):
        error = ApiError(500, {"error": "db down"}, "PUT", "/api/hook/id/1")
        assert not render_outcome(Outcome.remote_failure("Failed to save hook", error))
        message = mock_toast.call_args[0][0]
        assert message.startswith("Failed to save hook: ")
        assert "db down" in message
        assert mock_toast.call_args[1] == {"icon": "❌"}

    @patch('streamlit.toast')
    def test_skipped(self, mock_toast):
        assert not render_outcome(Outcome.skipped("Role unchanged"))
        mock_toast.assert_called_once_with("Role unchanged", icon="ℹ️")


class TestRenderBatchOutcome:
    """Test class for batch outcome rendering."""

    @patch('streamlit.toast')
    def test_empty_batch(self, mock_toast):
        assert render_batch_outcome(BatchOutcome("ACL update", "alice"))
        assert mock_toast.call_args[1] == {"icon": "ℹ️"}

    @patch('streamlit.toast')
    def test_partial_batch(self, mock_toast):
        batch = BatchOutcome("ACL update", "alice", succeeded=["orders"],
                             failed={"invoices": ApiError(500, message="write failed")})

        assert not render_batch_outcome(batch)

        assert mock_toast.call_count == 2
        assert mock_toast.call_args_list[0][1] == {"icon": "⚠️"}
        assert mock_toast.call_args_list[1] == call("invoices: write failed", icon="❌")

    @patch('streamlit.toast')
    def test_full_success(self, mock_toast):
        assert render_batch_outcome(BatchOutcome("ACL update", "alice", succeeded=["orders"]))
        mock_toast.assert_called_once()


"""
UI feedback utilities for the ElysianDB admin console.
Provides toast notifications, delayed loading spinners and the rendering of
operation outcomes returned by the editing sessions.
"""

import streamlit as st
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional, Callable, Any, List
import logging

from .config_loader import get_config_value
from .loading_state import DEFAULT_SPINNER_DELAY, LoadingFlag
from .outcome import BatchOutcome, Outcome, OutcomeKind

logger = logging.getLogger(__name__)


def _configured_spinner_delay() -> float:
    delay_ms = get_config_value('ui', 'spinner_delay_ms', int(DEFAULT_SPINNER_DELAY * 1000))
    try:
        return max(0.0, float(delay_ms) / 1000.0)
    except (TypeError, ValueError):
        return DEFAULT_SPINNER_DELAY


class LoadingIndicator:
    """Loading indicator utilities."""

    @staticmethod
    def run_with_delayed_spinner(func: Callable[..., Any], *args,
                                 message: str = "Loading...",
                                 delay: Optional[float] = None, **kwargs) -> Any:
        """
        Run ``func`` and show a spinner only if it outlives the spinner delay.

        The call runs on a worker thread; fast calls return before the delay
        and never show the spinner. Exceptions raised by ``func`` propagate.
        """
        flag = LoadingFlag(delay=_configured_spinner_delay() if delay is None else delay)
        flag.start()
        try:
            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(func, *args, **kwargs)
                done, _ = wait([future], timeout=flag.delay)
                if not done and flag.spinner_visible():
                    logger.debug(f"Showing spinner after {flag.elapsed():.3f}s: {message}")
                    with st.spinner(message):
                        wait([future])
            return future.result()
        finally:
            flag.finish()


class UserFeedback:
    """Inline feedback utilities."""

    @staticmethod
    def show_validation_results(errors: List[str], warnings: Optional[List[str]] = None):
        """Show validation results with errors and warnings."""
        if warnings is None:
            warnings = []

        if errors:
            st.error("❌ **Validation Errors:**")
            for error in errors:
                st.error(f"  • {error}")

        if warnings:
            st.warning("⚠️ **Warnings:**")
            for warning in warnings:
                st.warning(f"  • {warning}")

    @staticmethod
    def confirmation_buttons(key: str, confirm_text: str = "Confirm",
                             cancel_text: str = "Cancel") -> Optional[bool]:
        """Confirm / cancel button pair. Returns None until one is clicked."""
        col1, col2 = st.columns(2)

        with col1:
            confirmed = st.button(confirm_text, type="primary", key=f"{key}_confirm")

        with col2:
            cancelled = st.button(cancel_text, key=f"{key}_cancel")

        if confirmed:
            return True
        elif cancelled:
            return False
        return None


class Notify:
    """
    Toast notification helper.

    The API includes: success, info, warn, error.

    Usage:
    Notify.success("Schema updated")
    """

    _ICONS = {
        'success': '✅',
        'info': 'ℹ️',
        'warning': '⚠️',
        'error': '❌'
    }

    @staticmethod
    def _display_notification(message: str, notification_type: str = 'info') -> None:
        """Internal method to display notification based on type."""
        icon = Notify._ICONS.get(notification_type, 'ℹ️')
        st.toast(message, icon=icon)

    @staticmethod
    def success(message: str) -> None:
        """Show success notification."""
        Notify._display_notification(message, 'success')

    @staticmethod
    def info(message: str) -> None:
        """Show info notification."""
        Notify._display_notification(message, 'info')

    @staticmethod
    def warn(message: str) -> None:
        """Show warning notification."""
        Notify._display_notification(message, 'warning')

    @staticmethod
    def error(message: str) -> None:
        """Show error notification."""
        Notify._display_notification(message, 'error')


def render_outcome(outcome: Outcome) -> bool:
    """
    Surface an Outcome as a toast.

    Returns True when the outcome is a success.
    """
    if outcome.kind == OutcomeKind.SUCCESS:
        Notify.success(outcome.message)
    elif outcome.kind == OutcomeKind.VALIDATION:
        Notify.warn(outcome.message)
    elif outcome.kind == OutcomeKind.REMOTE:
        detail = f": {outcome.error}" if outcome.error is not None else ""
        Notify.error(f"{outcome.message}{detail}")
    else:
        Notify.info(outcome.message)
    return outcome.ok


def render_batch_outcome(batch: BatchOutcome) -> bool:
    """
    Surface a BatchOutcome: one summary toast, then one error toast per
    failed entity.
    """
    if not batch.total:
        Notify.info(batch.message)
        return True

    if batch.ok:
        Notify.success(batch.message)
        return True

    if batch.partial:
        Notify.warn(batch.message)
    else:
        Notify.error(batch.message)

    for entity in sorted(batch.failed):
        Notify.error(f"{entity}: {batch.failed[entity]}")
    return False

"""
Error handling utilities for the ElysianDB admin console.
Turns unexpected exceptions raised while rendering a page into user-friendly
messages with recovery suggestions and technical details.
"""

import streamlit as st
import logging
import traceback
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .errors import AdminConsoleError, ApiConnectionError, ApiError, ResponseFormatError

logger = logging.getLogger(__name__)


class ErrorType:
    """Error type constants."""
    API = "api"
    NETWORK = "network"
    AUTH = "auth"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    USER_INPUT = "user_input"
    SYSTEM = "system"


_DEFAULT_MESSAGES = {
    ErrorType.API: "🛰️ The server rejected the request. Please try again.",
    ErrorType.NETWORK: "🌐 The ElysianDB server could not be reached. Please check that it is running.",
    ErrorType.AUTH: "🔑 Your session has expired. Please log in again.",
    ErrorType.PERMISSION: "🔐 You don't have permission to perform this action.",
    ErrorType.NOT_FOUND: "🔎 The requested resource no longer exists. Please reload the page.",
    ErrorType.VALIDATION: "✅ The server returned data in an unexpected format.",
    ErrorType.USER_INPUT: "⚠️ Invalid input provided. Please check your data and try again.",
    ErrorType.SYSTEM: "💻 An unexpected error occurred. Please try again."
}


class ErrorHandler:
    """Error handling for the admin console pages."""

    @staticmethod
    def classify(error: Exception) -> str:
        """Map an exception to an ErrorType."""
        if isinstance(error, ApiConnectionError):
            return ErrorType.NETWORK
        if isinstance(error, ApiError):
            if error.status == 401:
                return ErrorType.AUTH
            if error.status == 403:
                return ErrorType.PERMISSION
            if error.status == 404:
                return ErrorType.NOT_FOUND
            if 400 <= error.status < 500:
                return ErrorType.USER_INPUT
            return ErrorType.API
        if isinstance(error, (ResponseFormatError, ValidationError)):
            return ErrorType.VALIDATION
        if isinstance(error, (ValueError, TypeError)):
            return ErrorType.USER_INPUT
        return ErrorType.SYSTEM

    @staticmethod
    def _get_user_friendly_message(error: Exception, error_type: Optional[str] = None) -> str:
        """Generate a user-friendly message for ``error``."""
        if error_type is None:
            error_type = ErrorHandler.classify(error)
        return _DEFAULT_MESSAGES.get(error_type, _DEFAULT_MESSAGES[ErrorType.SYSTEM])

    @staticmethod
    def handle_error(
        error: Exception,
        context: str,
        error_type: Optional[str] = None,
        user_message: Optional[str] = None,
        show_details: bool = False
    ) -> None:
        """
        Handle errors with user-friendly messages and recovery suggestions.

        Args:
            error: The exception that occurred
            context: Context where the error occurred
            error_type: Type of error (from ErrorType constants), derived when omitted
            user_message: Custom user-friendly message
            show_details: Whether to expand technical details
        """
        if error_type is None:
            error_type = ErrorHandler.classify(error)

        logger.error(f"Error in {context}: {str(error)}", exc_info=True)

        if not user_message:
            user_message = ErrorHandler._get_user_friendly_message(error, error_type)

        ErrorHandler._display_error(user_message, error, context, show_details)

    @staticmethod
    def _display_error(user_message: str, error: Exception, context: str,
                       show_details: bool = False) -> None:
        """Display error message with recovery suggestions and details."""
        st.error(user_message)

        if isinstance(error, AdminConsoleError) and error.recovery_suggestions:
            st.markdown("**🔧 Suggested Actions:**")
            for suggestion in error.recovery_suggestions:
                st.markdown(f"- {suggestion}")

        with st.expander("🔍 Technical Details", expanded=show_details):
            st.write(f"**Error Type:** {type(error).__name__}")
            st.write(f"**Context:** {context}")
            st.write(f"**Error Message:** {str(error)}")
            if isinstance(error, AdminConsoleError) and error.context:
                st.json(error.context)
            st.code(''.join(traceback.format_exception(type(error), error, error.__traceback__)))

    @staticmethod
    def with_error_handling(
        func: Callable,
        context: str,
        error_type: Optional[str] = None,
        user_message: Optional[str] = None,
        default_return: Any = None
    ) -> Any:
        """
        Decorator-like function to wrap operations with error handling.

        Returns:
            Function result or default_return on error
        """
        try:
            return func()
        except Exception as e:
            ErrorHandler.handle_error(e, context, error_type, user_message)
            return default_return


def handle_error(error: Exception, context: str, error_type: Optional[str] = None) -> None:
    """Convenience function for error handling."""
    ErrorHandler.handle_error(error, context, error_type)


def with_error_handling(func: Callable, context: str, **kwargs) -> Any:
    """Convenience function for wrapping operations with error handling."""
    return ErrorHandler.with_error_handling(func, context, **kwargs)

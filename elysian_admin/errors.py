"""
Exception classes for the ElysianDB admin console.

Remote failures are raised by the API client and caught by the editing
sessions, which turn them into outcome values for the views.
"""

from typing import Optional, Dict, Any, List


class AdminConsoleError(Exception):
    """
    Base exception for admin console errors.

    Attributes:
        message: Error message
        context: Additional context information
        recovery_suggestions: List of suggested recovery actions
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None,
                 recovery_suggestions: Optional[List[str]] = None):
        self.message = message
        self.context = context or {}
        self.recovery_suggestions = recovery_suggestions or []
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def get_full_details(self) -> Dict[str, Any]:
        """Get complete error details including context and suggestions."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'context': self.context,
            'recovery_suggestions': self.recovery_suggestions
        }


class ApiError(AdminConsoleError):
    """
    Exception raised when the server answers with a non-2xx status.

    The parsed JSON body (if any) is kept in ``data``.
    """

    def __init__(self, status: int, data: Optional[Dict[str, Any]] = None,
                 method: str = "GET", path: str = "", message: Optional[str] = None):
        self.status = status
        self.data = data or {}
        self.method = method
        self.path = path

        if message is None:
            detail = self.data.get('error') if isinstance(self.data, dict) else None
            message = f"{method} {path} failed with HTTP {status}"
            if detail:
                message += f": {detail}"

        context = {
            'status': status,
            'method': method,
            'path': path,
            'body': self.data
        }

        if status == 401:
            recovery_suggestions = [
                "Your session has expired, log in again",
                "Check the configured API credentials"
            ]
        elif status == 403:
            recovery_suggestions = [
                "This action requires an admin account",
                "Ask an administrator to grant the required role"
            ]
        elif status == 404:
            recovery_suggestions = [
                "The resource may have been deleted, reload the page",
                "Check that the entity, user or hook still exists"
            ]
        else:
            recovery_suggestions = [
                "Retry the action",
                "Check the server logs for details"
            ]

        super().__init__(message, context, recovery_suggestions)

    @property
    def is_auth_error(self) -> bool:
        return self.status == 401


class ApiConnectionError(AdminConsoleError):
    """
    Exception raised when the server cannot be reached at all.

    Wraps the transport error (timeout, refused connection, DNS failure...).
    """

    def __init__(self, method: str, path: str, original_error: Exception,
                 message: Optional[str] = None):
        self.method = method
        self.path = path
        self.original_error = original_error

        if message is None:
            message = f"{method} {path} could not reach the server: {str(original_error)}"

        context = {
            'method': method,
            'path': path,
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Check that the ElysianDB server is running",
            "Verify api.base_url in config.yaml",
            "Check your network connection"
        ]

        super().__init__(message, context, recovery_suggestions)


class MatrixStateError(AdminConsoleError):
    """
    Exception raised when a permission cell cannot be edited.

    This happens while a baseline load is in flight or when the entity
    has no loaded cell for the current subject.
    """

    def __init__(self, entity: str, reason: str, subject: Optional[str] = None):
        self.entity = entity
        self.reason = reason
        self.subject = subject

        message = f"Cannot edit permissions of '{entity}': {reason}"
        context = {
            'entity': entity,
            'subject': subject,
            'reason': reason
        }

        super().__init__(message, context, ["Wait for the permissions to finish loading"])



class ResponseFormatError(AdminConsoleError):
    """
    Exception raised when a 2xx response body does not have the expected shape.

    The pydantic error (or the offending value) is kept in ``original_error``.
    """

    def __init__(self, method: str, path: str, original_error: Exception,
                 message: Optional[str] = None):
        self.method = method
        self.path = path
        self.original_error = original_error

        if message is None:
            message = f"{method} {path} returned an unexpected response: {str(original_error)}"

        context = {
            'method': method,
            'path': path,
            'original_error_type': type(original_error).__name__,
            'original_error_message': str(original_error)
        }

        recovery_suggestions = [
            "Reload the page",
            "Check that the console and the ElysianDB server versions match"
        ]

        super().__init__(message, context, recovery_suggestions)

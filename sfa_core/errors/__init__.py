# =============================================================================
# sfa_core/errors/__init__.py
# Centralized Error Handling for the SFA Sync Core
# =============================================================================

from .exceptions import (
    SfaError,
    NotConnectedNoLocalDataError,
    NoLocalDataError,
    LocalStoreError,
    RemoteError,
    RemoteUnavailableError,
    NetworkError,
    RequestTimeoutError,
    AuthExpiredError,
    LoginError,
    RemoteRequestError,
    ConfigurationError,
)

from .handlers import (
    classify_error,
    error_for_status,
    handle_error,
    safe_execute,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "SfaError",
    "NotConnectedNoLocalDataError",
    "NoLocalDataError",
    "LocalStoreError",
    "RemoteError",
    "RemoteUnavailableError",
    "NetworkError",
    "RequestTimeoutError",
    "AuthExpiredError",
    "LoginError",
    "RemoteRequestError",
    "ConfigurationError",
    # Handlers
    "classify_error",
    "error_for_status",
    "handle_error",
    "safe_execute",
    "ErrorContext",
    "error_boundary",
]

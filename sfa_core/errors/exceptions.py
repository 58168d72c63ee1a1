# =============================================================================
# sfa_core/errors/exceptions.py
# Exception Taxonomy for the SFA Sync Core
# =============================================================================

from typing import Optional, Dict, Any


class SfaError(Exception):
    """
    Base exception for all SFA sync core errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NET_001")
        details: Additional context as a dictionary
        recoverable: Whether the caller can retry or continue
    """

    default_user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SFA_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    @property
    def user_message(self) -> str:
        """Message suitable for showing to the sales executive."""
        return self.default_user_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# OFFLINE / LOCAL STORE
# =============================================================================

class NotConnectedNoLocalDataError(SfaError):
    """Raised when there is no network and nothing has been cached yet"""

    default_user_message = (
        "No local data available. Please connect to the internet and try again."
    )

    def __init__(self, message: Optional[str] = None, entity: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity

        super().__init__(
            message=message or self.default_user_message,
            code="OFFLINE_001",
            details=details,
            **kwargs,
        )


NoLocalDataError = NotConnectedNoLocalDataError


class LocalStoreError(SfaError):
    """Raised when a local SQLite read or write fails"""

    default_user_message = "No data available on this device."

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="LOCAL_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# REMOTE DATA SOURCE
# =============================================================================

class RemoteError(SfaError):
    """Common parent for failures talking to the backend"""

    def __init__(
        self,
        message: str,
        code: str = "REMOTE_001",
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )
        self.status_code = status_code


class RemoteUnavailableError(RemoteError):
    """Raised when the backend answers 404 for the requested resource"""

    default_user_message = "Data is currently unavailable. Please try again later."

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(message=message, code="REMOTE_404", **kwargs)


class NetworkError(RemoteError):
    """Raised on transport failures (DNS, connection refused, reset)"""

    default_user_message = (
        "Network connection issue. Please check your internet connection and try again."
    )

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="NET_001", **kwargs)


class RequestTimeoutError(RemoteError):
    """Raised when a request exceeds its deadline"""

    default_user_message = "Request timed out. Please try again."

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        details = kwargs.pop("details", {})
        if timeout is not None:
            details["timeout"] = timeout
        super().__init__(message=message, code="NET_002", details=details, **kwargs)


class AuthExpiredError(RemoteError):
    """Raised on 401/403 or when no token is available; the session must be renewed"""

    default_user_message = "Authentication error. Please log in again."

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", False)
        super().__init__(message=message, code="AUTH_401", **kwargs)


class LoginError(RemoteError):
    """Raised when the backend rejects the supplied credentials"""

    default_user_message = "Failed to login. Please check your credentials."

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 400)
        super().__init__(message=message, code="AUTH_400", **kwargs)

    @property
    def user_message(self) -> str:
        return self.message or self.default_user_message


class RemoteRequestError(RemoteError):
    """Raised for any other HTTP error or an unreadable response body"""

    default_user_message = "Unable to load data. Please try again."


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConfigurationError(SfaError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )

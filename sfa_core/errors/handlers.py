# =============================================================================
# sfa_core/errors/handlers.py
# Error Classification and Handling Utilities
# =============================================================================

from __future__ import annotations
import functools
import sqlite3
from typing import Optional, Callable, TypeVar, Any

import requests

from sfa_core.logging import get_logger
from .exceptions import (
    SfaError,
    AuthExpiredError,
    LocalStoreError,
    NetworkError,
    RemoteRequestError,
    RemoteUnavailableError,
    RequestTimeoutError,
)

logger = get_logger(__name__)

T = TypeVar("T")


def error_for_status(
    status_code: int,
    message: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> SfaError:
    """
    Map an HTTP status code to the error taxonomy.

    Args:
        status_code: HTTP status returned by the backend
        message: Message extracted from the response body, if any
        endpoint: Endpoint that produced the status

    Returns:
        Classified SfaError instance (not raised)
    """
    if status_code == 404:
        return RemoteUnavailableError(
            message or "Resource not found",
            endpoint=endpoint,
        )
    if status_code in (401, 403):
        return AuthExpiredError(
            message or "Session expired. Please log in again.",
            endpoint=endpoint,
            status_code=status_code,
        )
    return RemoteRequestError(
        message or f"Request failed with status {status_code}",
        endpoint=endpoint,
        status_code=status_code,
    )


def _response_message(response: Optional[requests.Response]) -> Optional[str]:
    """Pull the backend's `message` field out of an error body."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


def classify_error(
    error: BaseException,
    endpoint: Optional[str] = None,
    timeout: Optional[float] = None,
) -> SfaError:
    """
    Translate a raw exception into the SFA error taxonomy.

    SfaError instances pass through unchanged so classification can be
    applied more than once along a call chain.

    Args:
        error: The exception to classify
        endpoint: Endpoint being called, recorded in details
        timeout: Timeout in effect, recorded for timeout errors

    Returns:
        Classified SfaError instance (not raised)
    """
    if isinstance(error, SfaError):
        return error

    # Timeout before ConnectionError: ConnectTimeout inherits from both
    if isinstance(error, requests.exceptions.Timeout) or isinstance(error, TimeoutError):
        return RequestTimeoutError(
            f"Request timed out: {error}",
            endpoint=endpoint,
            timeout=timeout,
        )

    if isinstance(error, requests.exceptions.HTTPError):
        response = error.response
        if response is not None:
            return error_for_status(
                response.status_code,
                _response_message(response),
                endpoint=endpoint,
            )
        return RemoteRequestError(str(error), endpoint=endpoint)

    if isinstance(
        error,
        (requests.exceptions.ConnectionError, requests.exceptions.ChunkedEncodingError),
    ):
        return NetworkError(f"Network request failed: {error}", endpoint=endpoint)

    if isinstance(error, requests.exceptions.RequestException):
        return RemoteRequestError(f"Request failed: {error}", endpoint=endpoint)

    if isinstance(error, sqlite3.Error):
        return LocalStoreError(f"Local database error: {error}")

    if isinstance(error, (ConnectionError, OSError)):
        return NetworkError(f"Network request failed: {error}", endpoint=endpoint)

    if isinstance(error, ValueError):
        return RemoteRequestError(f"Invalid response payload: {error}", endpoint=endpoint)

    return SfaError(
        str(error) or error.__class__.__name__,
        details={"error_type": error.__class__.__name__},
    )


def handle_error(
    error: Exception,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> SfaError:
    """
    Centralized error handling function.

    Classifies the error, logs it with its code and details, and returns
    the classified error so callers can surface `user_message`.

    Args:
        error: The exception to handle
        log_error: Whether to log the error
        user_message: Custom message to log instead of the error's own
    """
    classified = classify_error(error)
    message = user_message or classified.message

    if log_error:
        if classified.recoverable:
            logger.warning(
                f"[{classified.code}] {message}",
                extra={"details": classified.details},
            )
        else:
            logger.error(
                f"[{classified.code}] {message}",
                extra={"details": classified.details},
                exc_info=error,
            )

    return classified


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Execute a function with automatic error handling.

    Args:
        func: Function to execute
        *args: Positional arguments to pass to func
        default: Default value to return on error
        error_message: Custom error message to log
        reraise: Whether to reraise the classified exception after handling
        **kwargs: Keyword arguments to pass to func

    Returns:
        Function result or default value on error

    Usage:
        products = safe_execute(
            local_db.get_all_products,
            default=[],
            error_message="Failed to read cached products"
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        classified = handle_error(e, user_message=error_message)
        if reraise:
            if classified is e:
                raise
            raise classified from e
        return default


class ErrorContext:
    """
    Context manager for error handling with automatic logging.

    Usage:
        with ErrorContext("Writing product cache"):
            local_db.upsert_products(records)

        # On a recoverable error, logs and suppresses it
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.error: Optional[SfaError] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            return False

        if not issubclass(exc_type, Exception):
            return False

        self.error = handle_error(
            exc_val,
            user_message=f"Error during: {self.operation}",
        )
        return self.recoverable


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
    log: bool = True,
):
    """
    Decorator to wrap functions with error handling.

    Args:
        default_return: Value to return if function fails
        error_message: Custom error message
        log: Whether to log errors

    Usage:
        @error_boundary(default_return=None, error_message="Session read failed")
        def get_profile(self) -> Optional[UserProfile]:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    handle_error(
                        e,
                        user_message=error_message or f"Error in {func.__name__}: {e}",
                    )
                return default_return

        return wrapper

    return decorator

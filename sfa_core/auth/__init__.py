"""
Session and login for the SFA sync core.
"""

from .session import SessionStore
from .authentication import AuthenticationService, LoginOutcome, validate_login_inputs

__all__ = [
    "SessionStore",
    "AuthenticationService",
    "LoginOutcome",
    "validate_login_inputs",
]

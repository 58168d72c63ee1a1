"""
Cached login session.

The executive's login profile (including the bearer token) lives in the
local database so the app can reopen without a network round trip. Any
local failure reads as "not logged in".
"""

from __future__ import annotations
from typing import Optional

from sfa_core.errors import error_boundary
from sfa_core.logging import get_logger
from sfa_core.models import UserProfile

logger = get_logger(__name__)

USER_DATA_KEY = "user_data"


class SessionStore:
    """Persist, read and invalidate the cached login profile."""

    def __init__(self, local_db):
        self.local_db = local_db

    @error_boundary(default_return=None, error_message="Error getting user data")
    def get_profile(self) -> Optional[UserProfile]:
        data = self.local_db.get_setting(USER_DATA_KEY)
        if not isinstance(data, dict):
            return None
        return UserProfile.from_dict(data)

    def store_profile(self, profile: UserProfile) -> None:
        self.local_db.set_setting(USER_DATA_KEY, profile.to_dict())

    @error_boundary(default_return=None, error_message="Error clearing user data")
    def clear(self) -> None:
        """Forget the cached login; the user has to authenticate again."""
        self.local_db.delete_setting(USER_DATA_KEY)
        logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        profile = self.get_profile()
        return bool(profile and profile.token)

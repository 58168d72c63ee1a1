"""
Login flow for a sales executive.

Online, a successful login stores the profile and immediately syncs the
dashboard and catalog into the local cache. Offline, login is allowed
only when a previous sync left both a dashboard snapshot and at least
one product on the device.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from sfa_core.errors import (
    LocalStoreError,
    LoginError,
    NotConnectedNoLocalDataError,
    SfaError,
    handle_error,
    safe_execute,
)
from sfa_core.logging import get_logger
from sfa_core.models import UserProfile
from sfa_core.offline.sync_engine import SyncCoordinator, SyncResult
from .session import SessionStore

logger = get_logger(__name__)


# ==================== INPUT VALIDATION ====================

def validate_login_inputs(company_id: str, user_id: str, password: str) -> Optional[str]:
    """Return an error message for missing fields, or None when all are present."""
    if not (company_id or "").strip():
        return "Please enter your company ID"
    if not (user_id or "").strip():
        return "Please enter your user ID"
    if not password:
        return "Please enter your password"
    return None


@dataclass
class LoginOutcome:
    """Result of a login attempt that let the user in."""
    profile: Optional[UserProfile]
    offline: bool = False
    sync_result: Optional[SyncResult] = None
    sync_error: Optional[SfaError] = None


# ==================== AUTHENTICATION SERVICE ====================

class AuthenticationService:
    """Log in, restore and log out the executive's session."""

    def __init__(self, client, session: SessionStore, coordinator: SyncCoordinator):
        self.client = client
        self.session = session
        self.coordinator = coordinator

    def login(self, company_id: str, user_id: str, password: str) -> LoginOutcome:
        """
        Log in online, or offline from a previously synced cache.

        Raises:
            LoginError: missing fields or rejected credentials
            NotConnectedNoLocalDataError: offline and nothing cached
            NetworkError, RequestTimeoutError, RemoteRequestError: login call failed
        """
        validation_error = validate_login_inputs(company_id, user_id, password)
        if validation_error:
            raise LoginError(validation_error, status_code=None)

        if not self.coordinator.connection_manager.is_connected():
            return self._offline_login()

        profile = self.client.login(company_id.strip(), user_id.strip(), password)

        try:
            self.session.store_profile(profile)
        except LocalStoreError as e:
            handle_error(e, user_message="Could not cache login profile")

        outcome = LoginOutcome(profile=profile)
        try:
            outcome.sync_result = self.coordinator.sync_catalog_and_dashboard(profile.exe_id)
        except SfaError as e:
            # Login still succeeds; the cache keeps whatever an earlier sync left
            outcome.sync_error = handle_error(e, user_message=f"Local DB sync failed: {e.message}")

        return outcome

    def _offline_login(self) -> LoginOutcome:
        local_db = self.coordinator.local_db
        snapshot = safe_execute(local_db.get_latest_dashboard, default=None)
        product_count = safe_execute(local_db.count_products, default=0)

        if snapshot is None or not product_count:
            raise NotConnectedNoLocalDataError(entity="login")

        logger.info("Offline login from cached dashboard and catalog")
        return LoginOutcome(profile=self.session.get_profile(), offline=True)

    def restore_session(self) -> Optional[UserProfile]:
        """Reattach the cached token to the client; None when not logged in."""
        profile = self.session.get_profile()
        if profile is None or not profile.token:
            return None
        self.client.set_token(profile.token)
        return profile

    def logout(self) -> None:
        self.session.clear()
        self.client.set_token(None)
        logger.info("Logged out")

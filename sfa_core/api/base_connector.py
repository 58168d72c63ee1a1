"""
Base API Connector Class for the SFA Backend
Provides session handling, bearer auth and error classification
"""
from typing import Any, Callable, Dict, Optional
from dataclasses import dataclass, field
import logging

import requests

from sfa_core.errors import AuthExpiredError, RemoteRequestError, classify_error, error_for_status

logger = logging.getLogger(__name__)


@dataclass
class APIConfig:
    """Configuration for API connection"""
    api_name: str
    base_url: str
    token: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=lambda: {"Content-Type": "application/json"})
    timeout: float = 30.0


class BaseAPIConnector:
    """Base class for JSON-over-HTTP backends using a bearer token"""

    def __init__(
        self,
        config: APIConfig,
        session: Optional[requests.Session] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.on_unauthorized = on_unauthorized

        if config.headers:
            self.session.headers.update(config.headers)

        if config.token:
            self.set_token(config.token)

    @property
    def token(self) -> Optional[str]:
        return self.config.token

    def set_token(self, token: Optional[str]) -> None:
        """Attach (or with None, remove) the bearer token for later requests"""
        self.config.token = token
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        else:
            self.session.headers.pop("Authorization", None)

    def _require_token(self, endpoint: str) -> None:
        if not self.config.token:
            raise AuthExpiredError(
                "Authentication token not found. Please log out and log back in.",
                endpoint=endpoint,
            )

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Make HTTP request and return the decoded JSON body

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (GET, POST, etc.)
            params: Query parameters
            data: JSON request body
            authenticated: Whether the call needs the bearer token

        Returns:
            Decoded JSON payload (None for an empty body)

        Raises:
            SfaError subclass classified from the transport or HTTP failure
        """
        if authenticated:
            self._require_token(endpoint)

        url = self._url(endpoint)
        logger.debug(f"{method} {url} params={params}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise classify_error(e, endpoint=endpoint, timeout=self.config.timeout) from e

        if not response.ok:
            error = self._error_from_response(response, endpoint)
            if response.status_code in (401, 403):
                self._handle_unauthorized()
            raise error

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteRequestError(
                f"Invalid JSON from {self.config.api_name}: {e}",
                endpoint=endpoint,
                status_code=response.status_code,
            ) from e

    def _error_from_response(self, response: requests.Response, endpoint: str):
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message") if isinstance(body, dict) else None
        return error_for_status(response.status_code, message, endpoint=endpoint)

    def _handle_unauthorized(self) -> None:
        """Drop the token and let the session owner invalidate the cached login"""
        logger.info("Token expired or invalid, clearing session")
        self.set_token(None)
        if self.on_unauthorized is not None:
            try:
                self.on_unauthorized()
            except Exception as e:
                logger.error(f"Error in unauthorized callback: {e}")

    def test_connection(self) -> Dict[str, Any]:
        """
        Test API reachability and return status

        Returns:
            Dict with status and message
        """
        try:
            response = self.session.get(self.config.base_url, timeout=self.config.timeout)
            return {
                "status": "success",
                "message": f"Reached {self.config.api_name}",
                "status_code": response.status_code,
            }
        except requests.exceptions.RequestException as e:
            error = classify_error(e, endpoint=self.config.base_url)
            return {
                "status": "error",
                "code": error.code,
                "message": f"Connection failed: {error.message}",
            }

# =============================================================================
# sfa_core/offline/connection_manager.py
# Connectivity Detection
# =============================================================================
"""
ConnectionManager - Point-in-time internet/backend reachability checks.

Features:
- Fresh check on every call (no cached answer between requests)
- Only an explicit failure of every internet check counts as offline
- Manual offline/online override for user preference and tests
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Internet + backend host reachable
    OFFLINE = "offline"         # Every internet check failed
    DEGRADED = "degraded"       # Internet OK but backend host unreachable
    CHECKING = "checking"       # Currently checking status
    UNKNOWN = "unknown"         # Initial state, or the check itself broke


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    internet_available: bool = False
    backend_available: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Connectivity oracle consulted before every remote read.

    Usage:
        manager = ConnectionManager(backend_url="https://sfa-back-end.vercel.app")
        if manager.is_connected():
            # Use the backend
        else:
            # Serve the local cache
    """

    _instance: Optional[ConnectionManager] = None
    _lock = threading.Lock()

    CONNECTION_TIMEOUT = 5      # Seconds per check
    CHECK_HOSTS: Tuple[Tuple[str, int], ...] = (
        ("8.8.8.8", 53),        # Google DNS
        ("1.1.1.1", 53),        # Cloudflare DNS
        ("208.67.222.222", 53), # OpenDNS
    )

    def __init__(
        self,
        backend_url: Optional[str] = None,
        check_hosts: Optional[Iterable[Tuple[str, int]]] = None,
        timeout: Optional[float] = None,
    ):
        self.backend_url = backend_url
        self.check_hosts = tuple(check_hosts) if check_hosts else self.CHECK_HOSTS
        self.timeout = timeout or self.CONNECTION_TIMEOUT
        self._state = ConnectionState()
        self._override: Optional[bool] = None

    @classmethod
    def get_instance(
        cls,
        backend_url: Optional[str] = None,
        check_hosts: Optional[Iterable[Tuple[str, int]]] = None,
        timeout: Optional[float] = None,
    ) -> ConnectionManager:
        """Get or create the singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = ConnectionManager(backend_url, check_hosts, timeout)
        return cls._instance

    @property
    def state(self) -> ConnectionState:
        """State recorded by the most recent check."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    def is_connected(self) -> bool:
        """
        Check reachability right now.

        Returns False only when the platform explicitly reports no
        network (every internet check failed) or offline mode is forced.
        Ambiguous states answer True so the network path is attempted.
        Never raises.
        """
        if self._override is not None:
            return self._override

        try:
            state = self.check_connection()
        except Exception as e:
            logger.warning(f"Connectivity check failed, assuming connected: {e}")
            self._state.status = ConnectionStatus.UNKNOWN
            self._state.error_message = str(e)
            return True

        return state.status != ConnectionStatus.OFFLINE

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Returns:
            Updated ConnectionState
        """
        old_status = self._state.status
        self._state.status = ConnectionStatus.CHECKING
        self._state.last_check = datetime.now()

        internet_ok = self._check_internet()
        self._state.internet_available = internet_ok

        backend_ok = False
        if internet_ok:
            backend_ok = self._check_backend()
        self._state.backend_available = backend_ok

        if internet_ok and backend_ok:
            self._state.status = ConnectionStatus.ONLINE
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._state.error_message = None
        elif internet_ok:
            self._state.status = ConnectionStatus.DEGRADED
            self._state.consecutive_failures += 1
        else:
            self._state.status = ConnectionStatus.OFFLINE
            self._state.consecutive_failures += 1

        if old_status not in (self._state.status, ConnectionStatus.CHECKING):
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")

        return self._state

    def _check_host(self, host: str, port: int) -> bool:
        try:
            with socket.create_connection((host, port), timeout=self.timeout):
                return True
        except OSError:
            return False

    def _check_internet(self) -> bool:
        """
        Check internet connectivity by attempting to reach well-known hosts.

        Returns:
            True if any check host accepted a connection
        """
        return any(self._check_host(host, port) for host, port in self.check_hosts)

    def _check_backend(self) -> bool:
        """
        Check that the backend host accepts connections.

        Returns:
            True if reachable, or if no backend URL is configured
        """
        if not self.backend_url:
            return True

        parsed = urlparse(self.backend_url)
        host = parsed.hostname
        if not host:
            return True
        port = parsed.port or (443 if parsed.scheme == "https" else 80)

        reachable = self._check_host(host, port)
        if not reachable:
            self._state.error_message = f"Backend host {host}:{port} unreachable"
            logger.debug(self._state.error_message)
        return reachable

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        self._override = False
        self._state.status = ConnectionStatus.OFFLINE
        logger.info("Forced offline mode")

    def force_online(self) -> None:
        """Skip probing and always attempt the network path."""
        self._override = True
        logger.info("Forced online mode")

    def clear_override(self) -> None:
        """Return to live probing."""
        self._override = None

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "forced": self._override is not None,
            "internet": self._state.internet_available,
            "backend": self._state.backend_available,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }


# Singleton accessor
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager(
    backend_url: Optional[str] = None,
    check_hosts: Optional[Iterable[Tuple[str, int]]] = None,
    timeout: Optional[float] = None,
) -> ConnectionManager:
    """
    Get the global ConnectionManager instance.

    Returns:
        ConnectionManager singleton
    """
    global _connection_manager
    if _connection_manager is None:
        _connection_manager = ConnectionManager.get_instance(backend_url, check_hosts, timeout)
    return _connection_manager

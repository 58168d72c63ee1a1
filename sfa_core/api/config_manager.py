"""
API Configuration Manager
Loads backend/storage settings and creates the configured API client
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import toml

from sfa_core.errors import ConfigurationError
from sfa_core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SECRETS_PATH = Path(".sfa") / "secrets.toml"
DEFAULT_DB_PATH = Path("local_data") / "sfa_app.db"
DEFAULT_CHECK_HOSTS: Tuple[Tuple[str, int], ...] = (
    ("8.8.8.8", 53),        # Google DNS
    ("1.1.1.1", 53),        # Cloudflare DNS
    ("208.67.222.222", 53), # OpenDNS
)


@dataclass(frozen=True)
class SfaSettings:
    """Settings for the backend connection and local cache"""
    base_url: str = "https://sfa-back-end.vercel.app"
    api_prefix: str = "api"
    timeout: float = 30.0
    page_size: int = 100
    db_path: Path = DEFAULT_DB_PATH
    connection_timeout: float = 5.0
    check_hosts: Tuple[Tuple[str, int], ...] = field(default=DEFAULT_CHECK_HOSTS)

    @property
    def api_root(self) -> str:
        """Base URL joined with the API prefix, without a trailing slash"""
        root = self.base_url.rstrip("/")
        prefix = self.api_prefix.strip("/")
        return f"{root}/{prefix}" if prefix else root


def _coerce(key: str, value: Any, kind: type) -> Any:
    try:
        result = kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid value for {key}: {value!r}",
            config_key=key,
            expected_type=kind.__name__,
        ) from e
    if kind in (int, float) and result <= 0:
        raise ConfigurationError(
            f"{key} must be positive, got {value!r}",
            config_key=key,
            expected_type=kind.__name__,
        )
    return result


def _parse_check_hosts(value: Any) -> Tuple[Tuple[str, int], ...]:
    """["8.8.8.8:53", "1.1.1.1:53"] -> (("8.8.8.8", 53), ("1.1.1.1", 53))"""
    if not isinstance(value, (list, tuple)) or not value:
        raise ConfigurationError(
            "connectivity.check_hosts must be a non-empty list of 'host:port' strings",
            config_key="connectivity.check_hosts",
            expected_type="list",
        )
    hosts = []
    for entry in value:
        host, _, port = str(entry).rpartition(":")
        if not host:
            raise ConfigurationError(
                f"Check host {entry!r} is not 'host:port'",
                config_key="connectivity.check_hosts",
            )
        hosts.append((host, _coerce("connectivity.check_hosts", port, int)))
    return tuple(hosts)


def settings_from_mapping(values: Mapping[str, Any]) -> SfaSettings:
    """
    Build settings from a secrets mapping

    Expected secrets.toml format:
    [api]
    base_url = "https://sfa-back-end.vercel.app"
    api_prefix = "api"
    timeout = 30
    page_size = 100

    [storage]
    db_path = "local_data/sfa_app.db"

    [connectivity]
    timeout = 5
    check_hosts = ["8.8.8.8:53", "1.1.1.1:53"]
    """
    settings = SfaSettings()
    api = dict(values.get("api", {}))
    storage = dict(values.get("storage", {}))
    connectivity = dict(values.get("connectivity", {}))

    updates: Dict[str, Any] = {}
    if "base_url" in api:
        updates["base_url"] = str(api["base_url"])
    if "api_prefix" in api:
        updates["api_prefix"] = str(api["api_prefix"])
    if "timeout" in api:
        updates["timeout"] = _coerce("api.timeout", api["timeout"], float)
    if "page_size" in api:
        updates["page_size"] = _coerce("api.page_size", api["page_size"], int)
    if "db_path" in storage:
        updates["db_path"] = Path(storage["db_path"])
    if "timeout" in connectivity:
        updates["connection_timeout"] = _coerce(
            "connectivity.timeout", connectivity["timeout"], float
        )
    if "check_hosts" in connectivity:
        updates["check_hosts"] = _parse_check_hosts(connectivity["check_hosts"])

    return replace(settings, **updates)


def _apply_env_overrides(settings: SfaSettings) -> SfaSettings:
    updates: Dict[str, Any] = {}
    if os.getenv("SFA_BASE_URL"):
        updates["base_url"] = os.environ["SFA_BASE_URL"]
    if os.getenv("SFA_API_PREFIX") is not None:
        updates["api_prefix"] = os.environ["SFA_API_PREFIX"]
    if os.getenv("SFA_TIMEOUT"):
        updates["timeout"] = _coerce("SFA_TIMEOUT", os.environ["SFA_TIMEOUT"], float)
    if os.getenv("SFA_DB_PATH"):
        updates["db_path"] = Path(os.environ["SFA_DB_PATH"])
    return replace(settings, **updates) if updates else settings


def load_settings(secrets_path: Optional[Path] = None) -> SfaSettings:
    """
    Load settings from the secrets file, then apply environment overrides.

    Missing secrets file means defaults; a malformed one is a
    ConfigurationError.
    """
    path = Path(secrets_path or os.getenv("SFA_SECRETS_PATH") or DEFAULT_SECRETS_PATH)

    if path.exists():
        try:
            values = toml.load(path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigurationError(
                f"Could not read settings file {path}: {e}",
                config_key=str(path),
            ) from e
        settings = settings_from_mapping(values)
        logger.debug(f"Loaded settings from {path}")
    else:
        settings = SfaSettings()
        logger.debug(f"No settings file at {path}, using defaults")

    settings = _apply_env_overrides(settings)
    if not settings.base_url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"base_url must be an http(s) URL, got {settings.base_url!r}",
            config_key="api.base_url",
        )
    return settings


class APIConfigManager:
    """
    Holds the active settings and creates the configured API client

    Usage:
        config_manager = APIConfigManager()
        client = config_manager.get_client()
        dashboard = client.get_dashboard_summary("EXE123")
    """

    def __init__(self, settings: Optional[SfaSettings] = None):
        self.settings = settings or load_settings()

    def get_client(self, token: Optional[str] = None, on_unauthorized=None):
        """Create an SfaApiClient for the configured backend"""
        from .sfa_client import SfaApiClient

        return SfaApiClient.from_settings(
            self.settings,
            token=token,
            on_unauthorized=on_unauthorized,
        )

    def get_config_summary(self) -> Dict[str, Any]:
        """Settings for display, without secrets"""
        return {
            "api_root": self.settings.api_root,
            "timeout": self.settings.timeout,
            "page_size": self.settings.page_size,
            "db_path": str(self.settings.db_path),
        }

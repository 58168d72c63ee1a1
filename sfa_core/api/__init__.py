"""
Remote Data Source
HTTP client for the SFA backend and its configuration
"""

from .base_connector import BaseAPIConnector, APIConfig
from .config_manager import APIConfigManager, SfaSettings, load_settings
from .sfa_client import SfaApiClient

__all__ = [
    "BaseAPIConnector",
    "APIConfig",
    "APIConfigManager",
    "SfaSettings",
    "load_settings",
    "SfaApiClient",
]

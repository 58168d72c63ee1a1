# =============================================================================
# sfa_core/offline/__init__.py
# Offline-Aware Cache and Sync for the SFA Client
# =============================================================================
"""
Offline Module

Serves dashboard and catalog reads from the backend when connected and
from the device cache when not, and writes fresh backend data into the
cache on login and on explicit refresh.

Architecture:
------------
                 ┌──────────────────────────┐
                 │     SyncCoordinator      │
                 └──────────────────────────┘
                   │           │          │
                   ▼           ▼          ▼
        ┌──────────────┐ ┌────────────┐ ┌─────────────┐
        │ConnectionMgr │ │SfaApiClient│ │LocalDatabase│
        │ (reachable?) │ │ (backend)  │ │  (SQLite)   │
        └──────────────┘ └────────────┘ └─────────────┘

Usage:
------
from sfa_core.offline import get_sync_coordinator

coordinator = get_sync_coordinator()
coordinator.sync_catalog_and_dashboard("EXE123")
snapshot = coordinator.load_dashboard("EXE123", "06", "2023")
"""

from sfa_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
    get_connection_manager,
)

from sfa_core.offline.local_database import (
    DASHBOARD_ROW_ID,
    LocalDatabase,
    get_local_database,
)

from sfa_core.offline.sync_engine import (
    SyncCoordinator,
    SyncPhase,
    SyncResult,
    SyncState,
    get_sync_coordinator,
)

__all__ = [
    # Connectivity
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "get_connection_manager",
    # Local Database
    "DASHBOARD_ROW_ID",
    "LocalDatabase",
    "get_local_database",
    # Sync
    "SyncCoordinator",
    "SyncPhase",
    "SyncResult",
    "SyncState",
    "get_sync_coordinator",
]

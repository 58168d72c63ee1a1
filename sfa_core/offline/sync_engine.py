# =============================================================================
# sfa_core/offline/sync_engine.py
# Offline-Aware Dashboard and Catalog Synchronization
# =============================================================================
"""
SyncCoordinator - Decides between backend and local cache, and writes
fresh backend data through to the cache on explicit sync.

Features:
- Up-front connectivity branch for reads (no exception-driven fallback)
- Classified errors only; raw transport exceptions never escape
- Per-entity all-or-nothing sync of dashboard and products
- Single-flight guard per account for overlapping syncs
- Sync status tracking for display
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence
import logging

from sfa_core.errors import (
    AuthExpiredError,
    ErrorContext,
    LocalStoreError,
    NetworkError,
    NotConnectedNoLocalDataError,
    RemoteUnavailableError,
    RequestTimeoutError,
    SfaError,
    classify_error,
    handle_error,
)
from sfa_core.logging import LogContext
from sfa_core.models import DashboardSnapshot, ProductPage, ProductRecord
from sfa_core.offline.local_database import SORTABLE_COLUMNS

logger = logging.getLogger(__name__)


class SyncPhase(Enum):
    """Where a sync currently is; not resumable."""
    IDLE = "idle"
    FETCHING = "fetching"
    WRITING_DASHBOARD = "writing_dashboard"
    WRITING_PRODUCTS = "writing_products"
    DONE = "done"


@dataclass
class SyncResult:
    """Outcome of one sync: what was written and what was left out."""
    account_id: str
    dashboard_written: bool = False
    products_written: int = 0
    products_skipped: int = 0
    omissions: List[str] = field(default_factory=list)
    errors: Dict[str, SfaError] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def is_partial(self) -> bool:
        return bool(self.omissions or self.errors)

    @property
    def wrote_anything(self) -> bool:
        return self.dashboard_written or self.products_written > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "account_id": self.account_id,
            "dashboard_written": self.dashboard_written,
            "products_written": self.products_written,
            "products_skipped": self.products_skipped,
            "omissions": list(self.omissions),
            "errors": {entity: error.to_dict() for entity, error in self.errors.items()},
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass
class SyncState:
    """Session-wide sync status, shown to the user; never persisted."""
    is_syncing: bool = False
    phase: SyncPhase = SyncPhase.IDLE
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    last_result: Optional[SyncResult] = None
    total_synced: int = 0
    failed_count: int = 0


class _InFlightSync:
    """A running sync that later callers for the same account wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[SyncResult] = None
        self.error: Optional[BaseException] = None


class SyncCoordinator:
    """
    Orchestrates dashboard and catalog reads and syncs for one session.

    Usage:
        coordinator = SyncCoordinator(client, local_db, connection_manager)
        result = coordinator.sync_catalog_and_dashboard("EXE123")   # at login
        snapshot = coordinator.load_dashboard("EXE123", "06", "2023")
    """

    def __init__(
        self,
        client,
        local_db,
        connection_manager,
        sync_state: Optional[SyncState] = None,
    ):
        self.client = client
        self.local_db = local_db
        self.connection_manager = connection_manager
        self._state = sync_state or SyncState()
        self._flight_lock = threading.Lock()
        self._in_flight: Dict[str, _InFlightSync] = {}

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    # =========================================================================
    # READS
    # =========================================================================

    def _read_local(self, func, *args, default=None, **kwargs):
        """Run a local read; a store failure is logged and treated as a cache miss."""
        try:
            return func(*args, **kwargs)
        except LocalStoreError as e:
            handle_error(e, user_message=f"Local cache read failed: {e.message}")
            return default

    def load_dashboard(
        self,
        account_id: str,
        month: Optional[str] = None,
        year: Optional[str] = None,
    ) -> DashboardSnapshot:
        """
        Load the dashboard for an account and period.

        Offline: the cached snapshot, or NotConnectedNoLocalDataError.
        Online: the backend result, never written back here and never
        replaced by cached data when the backend call fails.

        Raises:
            NotConnectedNoLocalDataError: offline with nothing cached
            RemoteUnavailableError, NetworkError, RequestTimeoutError,
            AuthExpiredError, RemoteRequestError: online failures
        """
        if not self.connection_manager.is_connected():
            snapshot = self._read_local(self.local_db.get_latest_dashboard)
            if snapshot is None:
                raise NotConnectedNoLocalDataError(entity="dashboard")
            logger.info(f"Offline: serving cached dashboard for {account_id}")
            return snapshot

        endpoint = "reports/dashboard/summary"
        try:
            snapshot = self.client.get_dashboard_summary(account_id, month, year)
        except Exception as e:
            error = classify_error(e, endpoint=endpoint)
            logger.warning(f"Dashboard fetch failed for {account_id}: {error}")
            if error is e:
                raise
            raise error from e

        if snapshot is None:
            raise RemoteUnavailableError("Dashboard summary is empty", endpoint=endpoint)
        return snapshot

    def load_products_page(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        category: str = "",
        sub_categories: Sequence[str] = (),
        sort_by: str = "itemCode",
        sort_order: str = "asc",
    ) -> ProductPage:
        """One page of the catalog, from the backend or, offline, from the cache."""
        if sort_by not in SORTABLE_COLUMNS:
            logger.warning(f"Unknown product sort key {sort_by!r}, sorting by itemCode")
            sort_by = "itemCode"
        if sort_order.lower() not in ("asc", "desc"):
            sort_order = "asc"

        query = dict(
            page=page,
            limit=limit,
            search=search,
            category=category,
            sub_categories=sub_categories,
            sort_by=sort_by,
            sort_order=sort_order,
        )

        if not self.connection_manager.is_connected():
            if not self._read_local(self.local_db.count_products, default=0):
                raise NotConnectedNoLocalDataError(entity="products")
            result = self._read_local(self.local_db.query_products, **query)
            if result is None:
                raise NotConnectedNoLocalDataError(entity="products")
            return result

        try:
            return self.client.get_products_page(**query)
        except Exception as e:
            error = classify_error(e, endpoint="ic/items/paginated")
            if error is e:
                raise
            raise error from e

    def load_categories(self) -> List[str]:
        if not self.connection_manager.is_connected():
            return self._read_local(self.local_db.get_categories, default=[])

        try:
            return self.client.get_categories()
        except Exception as e:
            error = classify_error(e, endpoint="ic/categories")
            if error is e:
                raise
            raise error from e

    def get_all_products(self) -> List[ProductRecord]:
        """Every cached product; empty on a local read failure."""
        return self._read_local(self.local_db.get_all_products, default=[])

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_catalog_and_dashboard(self, account_id: str) -> SyncResult:
        """
        Fetch dashboard and catalog and upsert them into the local cache.

        Called at login and on explicit refresh. Partial failures are
        reported in the result, including both fetches failing for reasons
        other than reachability. Raises only when neither fetch could reach
        the backend (network or timeout), or on AuthExpiredError.

        A second call for an account whose sync is still running waits
        for that sync and returns its result.
        """
        with self._flight_lock:
            call = self._in_flight.get(account_id)
            leader = call is None
            if leader:
                call = _InFlightSync()
                self._in_flight[account_id] = call
                self._state.is_syncing = True

        if not leader:
            logger.info(f"Sync already running for {account_id}, waiting for it")
            call.done.wait()
            if call.error is not None:
                raise call.error
            return call.result

        try:
            with LogContext(logger, f"Syncing dashboard and catalog for {account_id}"):
                call.result = self._perform_sync(account_id)
            return call.result
        except BaseException as e:
            call.error = e
            raise
        finally:
            with self._flight_lock:
                self._in_flight.pop(account_id, None)
                self._state.is_syncing = bool(self._in_flight)
            call.done.set()

    def _fetch(self, entity: str, func, result: SyncResult, *args):
        """Fetch one entity; failures are classified and recorded, auth failures raised."""
        try:
            return func(*args)
        except Exception as e:
            error = classify_error(e)
            if isinstance(error, AuthExpiredError):
                logger.warning(f"Sync stopped for {result.account_id}: {error}")
                if error is e:
                    raise
                raise error from e
            logger.warning(f"Could not fetch {entity} for {result.account_id}: {error}")
            result.errors[entity] = error
            result.omissions.append(f"{entity}: {error.message}")
            return None

    @staticmethod
    def _unreachable(result: SyncResult) -> bool:
        """Both fetches failed because the backend could not be reached at all."""
        unreachable = (NetworkError, RequestTimeoutError)
        return all(
            isinstance(result.errors.get(entity), unreachable)
            for entity in ("dashboard", "products")
        )

    def _perform_sync(self, account_id: str) -> SyncResult:
        result = SyncResult(account_id=account_id)
        self._state.last_sync = result.started_at

        try:
            self._state.phase = SyncPhase.FETCHING
            snapshot = self._fetch("dashboard", self.client.get_dashboard_summary, result, account_id)
            if snapshot is None and "dashboard" not in result.errors:
                logger.warning("Dashboard data is empty, skipping write")
                result.omissions.append("dashboard: empty response")

            products = self._fetch("products", self.client.fetch_all_products, result)

            if self._unreachable(result):
                self._state.failed_count += 1
                raise result.errors["dashboard"]

            if snapshot is not None:
                self._state.phase = SyncPhase.WRITING_DASHBOARD
                self._write_dashboard(snapshot, result)

            if products is not None:
                self._state.phase = SyncPhase.WRITING_PRODUCTS
                self._write_products(products, result)
        finally:
            result.finished_at = datetime.now()
            self._state.phase = SyncPhase.DONE
            self._state.last_result = result

        if result.wrote_anything:
            self._state.last_sync_success = result.finished_at
        self._state.total_synced += result.products_written + int(result.dashboard_written)

        logger.info(
            f"Sync complete for {account_id}: dashboard={'yes' if result.dashboard_written else 'no'}, "
            f"{result.products_written} products, {result.products_skipped} skipped"
        )
        return result

    def _write_dashboard(self, snapshot: DashboardSnapshot, result: SyncResult) -> None:
        with ErrorContext("Writing dashboard to local cache") as ctx:
            self.local_db.upsert_dashboard(snapshot)
            result.dashboard_written = True
        if ctx.error is not None:
            result.errors["dashboard"] = ctx.error
            result.omissions.append(f"dashboard: {ctx.error.message}")

    def _write_products(self, products: List[ProductRecord], result: SyncResult) -> None:
        by_code: Dict[str, ProductRecord] = {}
        for record in products:
            if not record.has_identity:
                result.products_skipped += 1
                continue
            # Later duplicates replace earlier ones, as the upsert would
            by_code[record.item_code] = record

        if result.products_skipped:
            logger.warning(f"Skipped {result.products_skipped} product(s) without item code")
            result.omissions.append(f"products: {result.products_skipped} without item code")

        with ErrorContext("Writing products to local cache") as ctx:
            result.products_written = self.local_db.upsert_products(by_code.values())
        if ctx.error is not None:
            result.errors["products"] = ctx.error
            result.omissions.append(f"products: {ctx.error.message}")

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        last = self._state.last_result
        return {
            "is_syncing": self._state.is_syncing,
            "phase": self._state.phase.value,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "last_result": last.to_dict() if last else None,
            "failed_count": self._state.failed_count,
            "total_synced": self._state.total_synced,
        }


# Singleton accessor
_sync_coordinator: Optional[SyncCoordinator] = None


def get_sync_coordinator() -> SyncCoordinator:
    """
    Get the global SyncCoordinator wired from configured settings.

    The API client invalidates the cached session on a 401.
    """
    global _sync_coordinator
    if _sync_coordinator is None:
        from sfa_core.api import APIConfigManager
        from sfa_core.auth.session import SessionStore
        from sfa_core.offline.connection_manager import get_connection_manager
        from sfa_core.offline.local_database import get_local_database

        config_manager = APIConfigManager()
        settings = config_manager.settings
        local_db = get_local_database(settings.db_path)
        session = SessionStore(local_db)
        profile = session.get_profile()
        client = config_manager.get_client(
            token=profile.token if profile else None,
            on_unauthorized=session.clear,
        )
        _sync_coordinator = SyncCoordinator(
            client=client,
            local_db=local_db,
            connection_manager=get_connection_manager(
                settings.base_url,
                check_hosts=settings.check_hosts,
                timeout=settings.connection_timeout,
            ),
        )
    return _sync_coordinator

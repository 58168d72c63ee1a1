# =============================================================================
# tests/unit/test_sync_coordinator.py
# Unit Tests for SyncCoordinator
# =============================================================================

import sqlite3
import threading

import pytest
import requests

from sfa_core.errors import (
    AuthExpiredError,
    LocalStoreError,
    NetworkError,
    NoLocalDataError,
    NotConnectedNoLocalDataError,
    RemoteUnavailableError,
    RequestTimeoutError,
)
from sfa_core.models import DashboardSnapshot, ProductPage, ProductRecord
from sfa_core.offline import SyncCoordinator, SyncPhase


class TestLoadDashboardOffline:
    """Disconnected reads come from the local cache only"""

    def test_no_cache_raises_not_connected(self, coordinator, connection_manager, mock_client):
        """Offline and never synced fails with the offline error"""
        connection_manager.force_offline()

        with pytest.raises(NotConnectedNoLocalDataError) as exc_info:
            coordinator.load_dashboard("EXE123")

        assert exc_info.value.code == "OFFLINE_001"
        assert "connect to the internet" in exc_info.value.user_message
        mock_client.get_dashboard_summary.assert_not_called()

    def test_alias_matches(self):
        """NoLocalDataError is the same class"""
        assert NoLocalDataError is NotConnectedNoLocalDataError

    def test_serves_cached_snapshot(self, coordinator, connection_manager, local_db, sample_dashboard_payload):
        """A cached snapshot is returned without touching the network"""
        local_db.upsert_dashboard(DashboardSnapshot.from_dict(sample_dashboard_payload))
        connection_manager.force_offline()

        snapshot = coordinator.load_dashboard("EXE123", "06", "2023")

        assert snapshot.to_dict() == sample_dashboard_payload
        coordinator.client.get_dashboard_summary.assert_not_called()

    def test_local_read_failure_is_cache_miss(self, coordinator, connection_manager, monkeypatch):
        """A broken local store degrades to 'no data', not a crash"""
        connection_manager.force_offline()

        def broken():
            raise LocalStoreError("disk I/O error", table="dashboard")

        monkeypatch.setattr(coordinator.local_db, "get_latest_dashboard", broken)

        with pytest.raises(NotConnectedNoLocalDataError):
            coordinator.load_dashboard("EXE123")


class TestLoadDashboardOnline:
    """Connected reads go to the backend and never fall back to the cache"""

    def test_returns_remote_result(self, coordinator, mock_client, sample_dashboard_payload):
        snapshot = coordinator.load_dashboard("EXE123", "06", "2023")

        assert snapshot.to_dict() == sample_dashboard_payload
        mock_client.get_dashboard_summary.assert_called_once_with("EXE123", "06", "2023")

    def test_does_not_write_back(self, coordinator, local_db):
        """Reads are decoupled from cache writes"""
        coordinator.load_dashboard("EXE123")

        assert local_db.get_latest_dashboard() is None

    def test_404_is_remote_unavailable(self, coordinator, mock_client):
        mock_client.get_dashboard_summary.side_effect = RemoteUnavailableError("not found")

        with pytest.raises(RemoteUnavailableError):
            coordinator.load_dashboard("EXE123")

    def test_failure_does_not_serve_stale_cache(
        self, coordinator, mock_client, local_db, sample_dashboard_payload
    ):
        """Connected failure surfaces the error even when a cache exists"""
        local_db.upsert_dashboard(DashboardSnapshot.from_dict(sample_dashboard_payload))
        mock_client.get_dashboard_summary.side_effect = NetworkError("connection refused")

        with pytest.raises(NetworkError):
            coordinator.load_dashboard("EXE123")

    def test_raw_transport_errors_are_classified(self, coordinator, mock_client):
        """requests exceptions never leak to the caller"""
        mock_client.get_dashboard_summary.side_effect = requests.exceptions.ReadTimeout("slow")

        with pytest.raises(RequestTimeoutError) as exc_info:
            coordinator.load_dashboard("EXE123")

        assert isinstance(exc_info.value.__cause__, requests.exceptions.ReadTimeout)

    def test_empty_body_is_remote_unavailable(self, coordinator, mock_client):
        mock_client.get_dashboard_summary.return_value = None

        with pytest.raises(RemoteUnavailableError):
            coordinator.load_dashboard("EXE123")


class TestSyncCatalogAndDashboard:
    """Write-through of dashboard and catalog"""

    def test_writes_dashboard_and_products(self, coordinator, local_db, sample_dashboard_payload):
        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert result.dashboard_written
        assert result.products_written == 4
        assert result.products_skipped == 0
        assert not result.is_partial
        assert local_db.get_latest_dashboard().to_dict() == sample_dashboard_payload
        assert local_db.count_products() == 4

    def test_skips_products_without_item_code(self, coordinator, mock_client, local_db, sample_products):
        """One blank item code among four records: 3 written, 1 omission"""
        records = sample_products[:3] + [ProductRecord(item_code="  ", description="ghost")]
        mock_client.fetch_all_products.return_value = records

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert result.products_written == 3
        assert result.products_skipped == 1
        assert result.is_partial
        assert local_db.count_products() == 3

    def test_idempotent(self, coordinator, local_db):
        """Running sync twice with identical input keeps the row count"""
        coordinator.sync_catalog_and_dashboard("EXE123")
        coordinator.sync_catalog_and_dashboard("EXE123")

        assert local_db.count_products() == 4

    def test_duplicate_item_codes_collapse(self, coordinator, mock_client, local_db, sample_products):
        duplicate = ProductRecord(item_code="HW001", description="Steel Nails 4 inch", price=600.0)
        mock_client.fetch_all_products.return_value = sample_products + [duplicate]

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert result.products_written == 4
        assert local_db.get_product("HW001").description == "Steel Nails 4 inch"

    def test_dashboard_failure_is_partial(self, coordinator, mock_client, local_db):
        """Dashboard fetch fails, products still land"""
        mock_client.get_dashboard_summary.side_effect = RemoteUnavailableError("not found")

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert not result.dashboard_written
        assert result.products_written == 4
        assert "dashboard" in result.errors
        assert local_db.get_latest_dashboard() is None

    def test_null_dashboard_skips_write(self, coordinator, mock_client, local_db):
        mock_client.get_dashboard_summary.return_value = None

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert not result.dashboard_written
        assert "dashboard: empty response" in result.omissions
        assert result.products_written == 4

    def test_products_failure_keeps_previous_catalog(
        self, coordinator, mock_client, local_db, sample_products
    ):
        """A failed catalog fetch writes nothing and leaves older rows alone"""
        local_db.upsert_products(sample_products[:2])
        mock_client.fetch_all_products.side_effect = RequestTimeoutError("timed out")

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert result.dashboard_written
        assert result.products_written == 0
        assert "products" in result.errors
        assert local_db.count_products() == 2

    def test_total_failure_raises(self, coordinator, mock_client):
        mock_client.get_dashboard_summary.side_effect = requests.exceptions.ConnectionError("down")
        mock_client.fetch_all_products.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(NetworkError):
            coordinator.sync_catalog_and_dashboard("EXE123")

        assert coordinator.state.failed_count == 1
        assert not coordinator.is_syncing

    def test_timeout_on_both_fetches_raises(self, coordinator, mock_client):
        mock_client.get_dashboard_summary.side_effect = RequestTimeoutError("timed out")
        mock_client.fetch_all_products.side_effect = NetworkError("unreachable")

        with pytest.raises(RequestTimeoutError):
            coordinator.sync_catalog_and_dashboard("EXE123")

    def test_backend_reachable_but_empty_is_reported(self, coordinator, mock_client, local_db):
        """Two 404s mean the backend answered, so the sync returns a result"""
        mock_client.get_dashboard_summary.side_effect = RemoteUnavailableError("no dashboard")
        mock_client.fetch_all_products.side_effect = RemoteUnavailableError("no catalog")

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert not result.wrote_anything
        assert isinstance(result.errors["dashboard"], RemoteUnavailableError)
        assert isinstance(result.errors["products"], RemoteUnavailableError)
        assert coordinator.state.failed_count == 0
        assert coordinator.state.last_sync_success is None
        assert local_db.count_products() == 0

    def test_mixed_double_failure_is_reported(self, coordinator, mock_client):
        mock_client.get_dashboard_summary.side_effect = RemoteUnavailableError("no dashboard")
        mock_client.fetch_all_products.side_effect = requests.exceptions.ConnectionError("down")

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert isinstance(result.errors["products"], NetworkError)
        assert set(result.errors) == {"dashboard", "products"}

    def test_auth_expired_stops_immediately(self, coordinator, mock_client):
        """No further calls after a 401"""
        mock_client.get_dashboard_summary.side_effect = AuthExpiredError("expired", status_code=401)

        with pytest.raises(AuthExpiredError):
            coordinator.sync_catalog_and_dashboard("EXE123")

        mock_client.fetch_all_products.assert_not_called()

    def test_local_write_failure_is_recorded(self, coordinator, monkeypatch):
        def broken(records):
            raise LocalStoreError("database is locked", table="products")

        monkeypatch.setattr(coordinator.local_db, "upsert_products", broken)

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert result.dashboard_written
        assert result.products_written == 0
        assert isinstance(result.errors["products"], LocalStoreError)

    def test_raw_sqlite_error_on_dashboard_write(self, coordinator, monkeypatch):
        """A raw sqlite error is classified and recorded, products still land"""
        def broken(snapshot):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(coordinator.local_db, "upsert_dashboard", broken)

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        assert not result.dashboard_written
        assert isinstance(result.errors["dashboard"], LocalStoreError)
        assert any(o.startswith("dashboard: Local database error") for o in result.omissions)
        assert result.products_written == 4

    def test_updates_sync_state(self, coordinator):
        assert coordinator.state.last_sync_success is None

        result = coordinator.sync_catalog_and_dashboard("EXE123")

        state = coordinator.state
        assert state.phase == SyncPhase.DONE
        assert state.last_sync_success == result.finished_at
        assert state.last_result is result
        assert state.total_synced == 5
        assert coordinator.get_status_display()["last_result"]["products_written"] == 4


class _WatchedEvent(threading.Event):
    """Event that reports when somebody starts waiting on it"""

    def __init__(self):
        super().__init__()
        self.waiting = threading.Event()

    def wait(self, timeout=None):
        self.waiting.set()
        return super().wait(timeout)


class TestSingleFlight:
    """Overlapping syncs for one account share a single run"""

    def test_concurrent_sync_shares_result(self, mock_client, local_db, connection_manager, sample_products):
        started = threading.Event()
        release = threading.Event()

        def slow_fetch():
            started.set()
            release.wait(timeout=5)
            return sample_products

        mock_client.fetch_all_products.side_effect = slow_fetch
        coordinator = SyncCoordinator(mock_client, local_db, connection_manager)

        results = {}

        def run(name):
            results[name] = coordinator.sync_catalog_and_dashboard("EXE123")

        first = threading.Thread(target=run, args=("first",))
        first.start()
        assert started.wait(timeout=5)
        assert coordinator.is_syncing

        flight = coordinator._in_flight["EXE123"]
        flight.done = _WatchedEvent()

        second = threading.Thread(target=run, args=("second",))
        second.start()
        assert flight.done.waiting.wait(timeout=5)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert mock_client.fetch_all_products.call_count == 1
        assert results["first"] is results["second"]
        assert not coordinator.is_syncing

    def test_follower_sees_leader_error(self, mock_client, local_db, connection_manager):
        started = threading.Event()
        release = threading.Event()

        def expired(*args):
            started.set()
            release.wait(timeout=5)
            raise AuthExpiredError("expired", status_code=401)

        mock_client.get_dashboard_summary.side_effect = expired
        coordinator = SyncCoordinator(mock_client, local_db, connection_manager)

        errors = {}

        def run(name):
            try:
                coordinator.sync_catalog_and_dashboard("EXE123")
            except AuthExpiredError as e:
                errors[name] = e

        first = threading.Thread(target=run, args=("first",))
        first.start()
        assert started.wait(timeout=5)

        flight = coordinator._in_flight["EXE123"]
        flight.done = _WatchedEvent()

        second = threading.Thread(target=run, args=("second",))
        second.start()
        assert flight.done.waiting.wait(timeout=5)
        release.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert errors["first"] is errors["second"]
        assert mock_client.get_dashboard_summary.call_count == 1

    def test_different_accounts_run_separately(self, coordinator, mock_client):
        coordinator.sync_catalog_and_dashboard("EXE123")
        coordinator.sync_catalog_and_dashboard("EXE456")

        assert mock_client.fetch_all_products.call_count == 2


class TestProductReads:
    """Catalog reads follow the same connectivity rule"""

    def test_offline_page_from_cache(self, coordinator, connection_manager, local_db, sample_products):
        local_db.upsert_products(sample_products)
        connection_manager.force_offline()

        page = coordinator.load_products_page(page=1, limit=3)

        assert page.total == 4
        assert len(page.products) == 3
        assert page.has_next
        coordinator.client.get_products_page.assert_not_called()

    def test_offline_page_without_cache(self, coordinator, connection_manager):
        connection_manager.force_offline()

        with pytest.raises(NotConnectedNoLocalDataError):
            coordinator.load_products_page()

    def test_online_page_from_backend(self, coordinator, mock_client, sample_products):
        mock_client.get_products_page.return_value = ProductPage.build(sample_products[:2], 4, 1, 2)

        page = coordinator.load_products_page(page=1, limit=2, search="HW")

        assert page.total == 4
        kwargs = mock_client.get_products_page.call_args.kwargs
        assert kwargs["search"] == "HW"
        assert kwargs["limit"] == 2

    def test_offline_page_unknown_sort_key(self, coordinator, connection_manager, local_db, sample_products):
        """An unsortable key falls back to item code instead of failing"""
        local_db.upsert_products(sample_products)
        connection_manager.force_offline()

        page = coordinator.load_products_page(sort_by="name; DROP TABLE products", sort_order="sideways")

        assert [p.item_code for p in page.products] == ["EL001", "HW001", "HW002", "LT001"]
        assert local_db.count_products() == 4

    def test_online_page_unknown_sort_key(self, coordinator, mock_client, sample_products):
        mock_client.get_products_page.return_value = ProductPage.build(sample_products, 4, 1, 10)

        coordinator.load_products_page(sort_by="name", sort_order="desc")

        kwargs = mock_client.get_products_page.call_args.kwargs
        assert kwargs["sort_by"] == "itemCode"
        assert kwargs["sort_order"] == "desc"

    def test_offline_categories(self, coordinator, connection_manager, local_db, sample_products):
        local_db.upsert_products(sample_products)
        connection_manager.force_offline()

        assert coordinator.load_categories() == [
            "Building Materials",
            "Electrical",
            "Hardware",
            "Lighting",
        ]

    def test_get_all_products_on_broken_store(self, coordinator, monkeypatch):
        def broken():
            raise LocalStoreError("no such table: products")

        monkeypatch.setattr(coordinator.local_db, "get_all_products", broken)

        assert coordinator.get_all_products() == []

# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import json
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from sfa_core.api import APIConfig, SfaApiClient
from sfa_core.models import DashboardSnapshot, ProductRecord
from sfa_core.offline import ConnectionManager, LocalDatabase, SyncCoordinator


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

def _metric(value, percentage):
    return {"value": value, "percentage": percentage, "formattedValue": f"{value:,.2f}"}


@pytest.fixture
def sample_dashboard_payload() -> Dict[str, Any]:
    """Dashboard summary for EXE123, June 2023"""
    return {
        "period": {
            "month": "06",
            "year": "2023",
            "startDate": "2023-06-01",
            "endDate": "2023-06-30",
        },
        "metrics": {
            "sales": _metric(1000, 5.2),
            "collections": _metric(850.5, -1.25),
            "returns": _metric(40, 0),
            "replacements": _metric(12, 3.0),
        },
        "summary": {
            "totalTransactions": 42,
            "totalCustomers": 17,
            "totalProducts": 4,
        },
    }


@pytest.fixture
def sample_product_payloads() -> List[Dict[str, Any]]:
    """Backend catalog entries (camelCase)"""
    return [
        {
            "itemCode": "HW001",
            "description": "Steel Nails 3 inch",
            "category": "Hardware",
            "subCategory": "Nails",
            "categoryCode": "HW",
            "uom": "KG",
            "price": 500.0,
            "qty": 100,
            "imageUrl": "https://example.com/images/hw001.jpg",
            "discountAmount": 50.0,
            "discountPercentage": 10.0,
        },
        {
            "itemCode": "HW002",
            "description": "Cement Portland 50kg",
            "category": "Building Materials",
            "subCategory": "Cement",
            "categoryCode": "BM",
            "uom": "BAG",
            "price": 1200.0,
            "qty": 50,
            "imageUrl": None,
            "discountAmount": 0.0,
            "discountPercentage": 0.0,
        },
        {
            "itemCode": "LT001",
            "description": "LED Bulb 9W Warm White",
            "category": "Lighting",
            "subCategory": "LED Bulbs",
            "categoryCode": "LT",
            "uom": "PCS",
            "price": 250.0,
            "qty": 200,
            "imageUrl": "https://example.com/images/lt001.jpg",
            "discountAmount": 25.0,
            "discountPercentage": 10.0,
        },
        {
            "itemCode": "EL001",
            "description": "Electrical Wire 2.5mm",
            "category": "Electrical",
            "subCategory": "Wires",
            "categoryCode": "EL",
            "uom": "MTR",
            "price": 150.0,
            "qty": 500,
            "imageUrl": "",
            "discountAmount": 0.0,
            "discountPercentage": 0.0,
        },
    ]


@pytest.fixture
def sample_products(sample_product_payloads) -> List[ProductRecord]:
    return [ProductRecord.from_api(p) for p in sample_product_payloads]


@pytest.fixture
def sample_login_payload() -> Dict[str, Any]:
    return {
        "leader": "LDR01",
        "exeId": "EXE123",
        "areaCode": "A01",
        "exeNameOrig": "Kamal Perera",
        "exeName": "Kamal",
        "role": "executive",
        "areaName": "Colombo North",
        "region": "Western",
        "subdivisionCode": "SD1",
        "imageLocation": "",
        "token": "jwt-token-abc",
    }


# =============================================================================
# LOCAL STORE / CONNECTIVITY FIXTURES
# =============================================================================

@pytest.fixture
def local_db(tmp_path):
    """Initialized SQLite cache in a temp directory"""
    db = LocalDatabase(tmp_path / "sfa_test.db")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def connection_manager():
    """Connectivity oracle that never touches the network; tests flip it with force_offline()"""
    manager = ConnectionManager(backend_url="https://sfa.test")
    manager.force_online()
    return manager


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_client(sample_dashboard_payload, sample_products):
    """SfaApiClient double returning the sample dashboard and catalog"""
    client = MagicMock(spec=SfaApiClient)
    client.get_dashboard_summary.return_value = DashboardSnapshot.from_dict(sample_dashboard_payload)
    client.fetch_all_products.return_value = copy.deepcopy(sample_products)
    client.get_categories.return_value = ["Hardware", "Lighting"]
    return client


@pytest.fixture
def coordinator(mock_client, local_db, connection_manager):
    return SyncCoordinator(
        client=mock_client,
        local_db=local_db,
        connection_manager=connection_manager,
    )


def make_response(status_code: int = 200, body: Optional[Any] = None, url: str = "https://sfa.test/api") -> requests.Response:
    """Build a real requests.Response carrying a JSON body"""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.headers["Content-Type"] = "application/json"
    return response


@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def mock_http_session():
    """requests.Session double; set .request.return_value / side_effect per test"""
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def api_client(mock_http_session):
    """Real SfaApiClient over the mocked HTTP session, already holding a token"""
    config = APIConfig(api_name="sfa-test", base_url="https://sfa.test/api", token="jwt-token-abc", timeout=5)
    return SfaApiClient(config, session=mock_http_session, page_size=2)

"""
SFA Backend Client
Login, dashboard summary, customers and product catalog endpoints
"""
from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Sequence
import logging

import requests

from sfa_core.errors import LoginError, RemoteError, RemoteRequestError
from sfa_core.models import Customer, DashboardSnapshot, ProductPage, ProductRecord, UserProfile
from .base_connector import APIConfig, BaseAPIConnector

logger = logging.getLogger(__name__)

# Upper bound on catalog pages fetched in one sync
MAX_CATALOG_PAGES = 1000


class SfaApiClient(BaseAPIConnector):
    """
    Client for the SFA REST backend.

    Usage:
        client = SfaApiClient(APIConfig(api_name="sfa", base_url="https://host/api"))
        profile = client.login("C01", "EXE123", "secret")
        snapshot = client.get_dashboard_summary(profile.exe_id, "06", "2023")
    """

    def __init__(
        self,
        config: APIConfig,
        session: Optional[requests.Session] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        page_size: int = 100,
    ):
        super().__init__(config, session=session, on_unauthorized=on_unauthorized)
        self.page_size = page_size

    @classmethod
    def from_settings(
        cls,
        settings,
        token: Optional[str] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        session: Optional[requests.Session] = None,
    ) -> SfaApiClient:
        config = APIConfig(
            api_name="sfa-backend",
            base_url=settings.api_root,
            token=token,
            timeout=settings.timeout,
        )
        return cls(
            config,
            session=session,
            on_unauthorized=on_unauthorized,
            page_size=settings.page_size,
        )

    # =========================================================================
    # AUTHENTICATION
    # =========================================================================

    def login(self, company_id: str, exe_id: str, password: str) -> UserProfile:
        """
        Authenticate and attach the returned token to this client.

        Raises:
            LoginError: credentials rejected (HTTP 400)
        """
        endpoint = "login/basic"
        try:
            payload = self._make_request(
                endpoint,
                method="POST",
                data={"companyId": company_id, "exeId": exe_id, "password": password},
                authenticated=False,
            )
        except RemoteError as e:
            if e.status_code == 400:
                raise LoginError(e.message or "Login failed", endpoint=endpoint) from e
            raise

        if not isinstance(payload, dict) or not payload.get("token"):
            raise RemoteRequestError("Login response did not contain a token", endpoint=endpoint)

        profile = UserProfile.from_dict(payload)
        self.set_token(profile.token)
        logger.info(f"Logged in as {profile.exe_id}")
        return profile

    # =========================================================================
    # REPORTS
    # =========================================================================

    def get_dashboard_summary(
        self,
        executive_id: Optional[str] = None,
        month: Optional[str] = None,
        year: Optional[str] = None,
    ) -> Optional[DashboardSnapshot]:
        """Fetch the KPI summary; None when the backend returns an empty body."""
        params: Dict[str, str] = {}
        if executive_id:
            params["executiveId"] = executive_id
        if month:
            params["month"] = month
        if year:
            params["year"] = year

        endpoint = "reports/dashboard/summary"
        payload = self._make_request(endpoint, params=params)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            raise RemoteRequestError("Dashboard summary is not an object", endpoint=endpoint)
        return DashboardSnapshot.from_dict(payload)

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    def get_customer_list(self, exe_id: str) -> List[Customer]:
        payload = self._make_request(f"ar/list/{exe_id}") or []
        return [Customer.from_api(item) for item in payload if isinstance(item, dict)]

    def get_due_list(self, exe_id: str) -> List[Dict[str, Any]]:
        """Customers with overdue invoices, as returned by the backend."""
        payload = self._make_request(f"ar/due/list/{exe_id}") or {}
        return list(payload.get("duelist") or [])

    # =========================================================================
    # PRODUCT CATALOG
    # =========================================================================

    def get_products_page(
        self,
        page: int = 1,
        limit: int = 10,
        search: str = "",
        category: str = "",
        sub_categories: Sequence[str] = (),
        sort_by: str = "itemCode",
        sort_order: str = "asc",
    ) -> ProductPage:
        params: Dict[str, Any] = {
            "page": page,
            "limit": limit,
            "sortBy": sort_by,
            "sortOrder": sort_order,
        }
        if search:
            params["search"] = search
        if category:
            params["category"] = category
        if sub_categories:
            params["subcategory"] = ",".join(sub_categories)

        endpoint = "ic/items/paginated"
        payload = self._make_request(endpoint, params=params)
        if not isinstance(payload, dict):
            raise RemoteRequestError("Product page is not an object", endpoint=endpoint)
        return ProductPage.from_api(payload)

    def get_total_count(self) -> int:
        payload = self._make_request("ic/items/count")
        try:
            return int(payload or 0)
        except (TypeError, ValueError) as e:
            raise RemoteRequestError(f"Invalid item count: {payload!r}", endpoint="ic/items/count") from e

    def get_categories(self) -> List[str]:
        payload = self._make_request("ic/categories") or []
        return [str(c) for c in payload if c]

    def fetch_all_products(self, page_size: Optional[int] = None) -> List[ProductRecord]:
        """
        Fetch the whole catalog, page by page.

        Either every page is fetched or the first failure propagates;
        no partial catalog is returned.
        """
        limit = page_size or self.page_size
        products: List[ProductRecord] = []
        page = 1

        while page <= MAX_CATALOG_PAGES:
            result = self.get_products_page(page=page, limit=limit)
            products.extend(result.products)
            if not result.has_next or not result.products:
                break
            page += 1
        else:
            logger.warning(f"Stopped catalog fetch after {MAX_CATALOG_PAGES} pages")

        logger.info(f"Fetched {len(products)} products in {page} page(s)")
        return products

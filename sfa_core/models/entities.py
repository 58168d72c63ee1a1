# =============================================================================
# sfa_core/models/entities.py
# Plain Data Objects Exchanged Between Backend, Cache and Callers
# =============================================================================
"""
Data model for the SFA sync core.

Backend payloads use camelCase keys; local rows use snake_case columns.
Each entity knows how to build itself from both and how to go back.
"""

from __future__ import annotations
import copy
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional


METRIC_NAMES = ("sales", "collections", "returns", "replacements")


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> Optional[int]:
    number = _as_float(value)
    if number is None or math.isnan(number) or math.isinf(number):
        return None
    return int(number)


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# =============================================================================
# DASHBOARD
# =============================================================================

@dataclass
class ReportingPeriod:
    """Month/year window a dashboard snapshot was computed for."""
    month: Optional[str] = None
    year: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> ReportingPeriod:
        payload = payload or {}
        return cls(
            month=_as_str(payload.get("month")),
            year=_as_str(payload.get("year")),
            start_date=_as_str(payload.get("startDate")),
            end_date=_as_str(payload.get("endDate")),
        )


@dataclass
class MetricBlock:
    """One KPI: raw value, period-over-period change and display string."""
    value: float = 0.0
    percentage: float = 0.0
    formatted_value: str = ""

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> MetricBlock:
        payload = payload or {}
        value = _as_float(payload.get("value"))
        percentage = _as_float(payload.get("percentage"))
        return cls(
            value=value if value is not None else 0.0,
            percentage=percentage if percentage is not None else 0.0,
            formatted_value=_as_str(payload.get("formattedValue")) or "",
        )


@dataclass
class DashboardSnapshot:
    """
    The most recent dashboard summary for an account.

    The backend payload is kept verbatim in `data` so that a snapshot
    written to the local store and read back compares equal to the one
    fetched. Typed views are derived on access.
    """
    data: Dict[str, Any]
    updated_at: Optional[datetime] = field(default=None, compare=False)

    @classmethod
    def from_dict(
        cls,
        payload: Mapping[str, Any],
        updated_at: Optional[datetime] = None,
    ) -> DashboardSnapshot:
        if not isinstance(payload, Mapping):
            raise ValueError(
                f"Dashboard payload must be an object, got {type(payload).__name__}"
            )
        return cls(data=copy.deepcopy(dict(payload)), updated_at=updated_at)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    @property
    def period(self) -> ReportingPeriod:
        return ReportingPeriod.from_dict(self.data.get("period"))

    def metric(self, name: str) -> MetricBlock:
        metrics = self.data.get("metrics") or {}
        return MetricBlock.from_dict(metrics.get(name))

    @property
    def metrics(self) -> Dict[str, MetricBlock]:
        return {name: self.metric(name) for name in METRIC_NAMES}

    @property
    def summary(self) -> Dict[str, Any]:
        return dict(self.data.get("summary") or {})


# =============================================================================
# PRODUCTS
# =============================================================================

@dataclass
class ProductRecord:
    """Catalog entry keyed by item code."""
    item_code: Optional[str]
    description: Optional[str] = None
    price: Optional[float] = None
    qty: Optional[int] = None
    uom: Optional[str] = None
    image_url: Optional[str] = None
    discount_percentage: Optional[float] = None
    discount_amount: Optional[float] = None
    category: Optional[str] = None
    sub_category: Optional[str] = None

    # Local table columns, in insert order
    COLUMNS = (
        "item_code",
        "description",
        "price",
        "qty",
        "uom",
        "image_url",
        "discount_percentage",
        "discount_amount",
        "category",
        "sub_category",
    )

    @property
    def has_identity(self) -> bool:
        """False when the item code is missing or blank; such rows are never stored."""
        return bool(self.item_code and str(self.item_code).strip())

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> ProductRecord:
        return cls(
            item_code=_as_str(payload.get("itemCode")),
            description=_as_str(payload.get("description")),
            price=_as_float(payload.get("price")),
            qty=_as_int(payload.get("qty")),
            uom=_as_str(payload.get("uom")),
            image_url=_as_str(payload.get("imageUrl")) or "",
            discount_percentage=_as_float(payload.get("discountPercentage")),
            discount_amount=_as_float(payload.get("discountAmount")),
            category=_as_str(payload.get("category")),
            sub_category=_as_str(payload.get("subCategory")),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ProductRecord:
        return cls(**{column: row[column] for column in cls.COLUMNS})

    def to_row(self) -> Dict[str, Any]:
        return {column: getattr(self, column) for column in self.COLUMNS}

    def to_dict(self) -> Dict[str, Any]:
        """Backend (camelCase) representation."""
        return {
            "itemCode": self.item_code,
            "description": self.description,
            "price": self.price,
            "qty": self.qty,
            "uom": self.uom,
            "imageUrl": self.image_url,
            "discountPercentage": self.discount_percentage,
            "discountAmount": self.discount_amount,
            "category": self.category,
            "subCategory": self.sub_category,
        }


@dataclass
class ProductPage:
    """One page of catalog results, remote or local."""
    products: List[ProductRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def build(
        cls,
        products: List[ProductRecord],
        total: int,
        page: int,
        limit: int,
    ) -> ProductPage:
        total_pages = math.ceil(total / limit) if limit > 0 else 0
        return cls(
            products=products,
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> ProductPage:
        # Null entries stay as identity-less records so callers can count them
        products = [
            ProductRecord.from_api(item) if isinstance(item, Mapping) else ProductRecord(item_code=None)
            for item in (payload.get("products") or [])
        ]
        page = _as_int(payload.get("page")) or 1
        limit = _as_int(payload.get("limit")) or len(products) or 1
        total = _as_int(payload.get("total"))
        if total is None:
            total = len(products)
        result = cls.build(products, total, page, limit)

        # Trust the backend's own paging flags when it sends them
        if "totalPages" in payload:
            result.total_pages = _as_int(payload.get("totalPages")) or 0
        if "hasNext" in payload:
            result.has_next = bool(payload.get("hasNext"))
        if "hasPrev" in payload:
            result.has_prev = bool(payload.get("hasPrev"))
        return result


# =============================================================================
# ACCOUNT / CUSTOMERS
# =============================================================================

@dataclass
class UserProfile:
    """Login response for a sales executive, including the bearer token."""
    data: Dict[str, Any]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> UserProfile:
        return cls(data=dict(payload))

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)

    @property
    def exe_id(self) -> Optional[str]:
        return _as_str(self.data.get("exeId"))

    @property
    def exe_name(self) -> Optional[str]:
        return _as_str(self.data.get("exeName"))

    @property
    def area_code(self) -> Optional[str]:
        return _as_str(self.data.get("areaCode"))

    @property
    def role(self) -> Optional[str]:
        return _as_str(self.data.get("role"))

    @property
    def region(self) -> Optional[str]:
        return _as_str(self.data.get("region"))

    @property
    def image_location(self) -> Optional[str]:
        return _as_str(self.data.get("imageLocation"))

    @property
    def token(self) -> Optional[str]:
        return _as_str(self.data.get("token"))


@dataclass
class Customer:
    """Customer on an executive's route."""
    customer_id: str
    customer_name: str = ""
    exe_id: Optional[str] = None
    address_lines: List[str] = field(default_factory=list)
    city: Optional[str] = None
    route: Optional[str] = None
    phones: List[str] = field(default_factory=list)
    is_active: bool = True
    grade: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> Customer:
        addresses = [payload.get(k) for k in ("addr1", "addr2", "addr3")]
        phones = [payload.get(k) for k in ("phone1", "phone2", "phone3")]
        active = payload.get("isActive")
        return cls(
            customer_id=_as_str(payload.get("customerId")) or "",
            customer_name=_as_str(payload.get("customerName")) or "",
            exe_id=_as_str(payload.get("exeId")),
            address_lines=[str(a) for a in addresses if a],
            city=_as_str(payload.get("city")),
            route=_as_str(payload.get("route")),
            phones=[str(p) for p in phones if p],
            is_active=True if active is None else bool(_as_int(active)),
            grade=_as_str(payload.get("grade")),
        )

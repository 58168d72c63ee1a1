"""
Report Service - Dashboard KPI cards and catalog summaries.

KPI cards come from the dashboard snapshot (backend or cache, per the
coordinator's connectivity rule). Catalog summaries are computed from
the local product cache with pandas.
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from sfa_core.models import DashboardSnapshot, METRIC_NAMES
from .base_service import BaseService, ServiceResult


METRIC_LABELS = {
    "sales": "Sales",
    "collections": "Collections",
    "returns": "Returns",
    "replacements": "Replacements",
}


# =============================================================================
# FORMATTING
# =============================================================================

def format_currency(amount: float) -> str:
    """1234.5 -> '1,234.50'"""
    return f"{amount:,.2f}"


def format_percentage(percentage: float) -> str:
    """Signed change with two decimals; empty for no change."""
    if not percentage:
        return ""
    sign = "+" if percentage > 0 else ""
    return f"{sign}{percentage:.2f}%"


@dataclass
class KpiCard:
    """Display-ready view of one dashboard metric."""
    name: str
    label: str
    value: float
    percentage: float
    display_value: str
    display_change: str
    trend: str  # "up", "down" or "flat"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_kpi_cards(snapshot: DashboardSnapshot) -> List[KpiCard]:
    cards = []
    for name in METRIC_NAMES:
        metric = snapshot.metric(name)
        if metric.percentage > 0:
            trend = "up"
        elif metric.percentage < 0:
            trend = "down"
        else:
            trend = "flat"
        cards.append(KpiCard(
            name=name,
            label=METRIC_LABELS[name],
            value=metric.value,
            percentage=metric.percentage,
            display_value=metric.formatted_value or format_currency(metric.value),
            display_change=format_percentage(metric.percentage),
            trend=trend,
        ))
    return cards


# =============================================================================
# SERVICE
# =============================================================================

class ReportService(BaseService):
    """
    Reports over dashboard and catalog data.

    Usage:
        service = ReportService(coordinator)
        result = service.dashboard_kpis("EXE123", "06", "2023")
        if result:
            for card in result.data:
                print(card.label, card.display_value, card.display_change)
        else:
            print(result.error)
    """

    SUMMARY_COLUMNS = [
        "category",
        "products",
        "total_qty",
        "stock_value",
        "avg_discount_percentage",
    ]

    def __init__(self, coordinator):
        super().__init__()
        self.coordinator = coordinator

    def dashboard_kpis(
        self,
        account_id: str,
        month: Optional[str] = None,
        year: Optional[str] = None,
    ) -> ServiceResult:
        """KPI cards for an account and period; failures carry a user-facing message."""
        return self.safe_execute(
            f"Loading dashboard KPIs for {account_id}",
            self._dashboard_kpis,
            account_id,
            month,
            year,
        )

    def _dashboard_kpis(self, account_id, month, year) -> List[KpiCard]:
        snapshot = self.coordinator.load_dashboard(account_id, month, year)
        return build_kpi_cards(snapshot)

    def category_summary(self) -> ServiceResult:
        """
        Per-category totals over the cached catalog.

        Returns:
            ServiceResult whose data is a DataFrame with SUMMARY_COLUMNS,
            sorted by stock value (highest first)
        """
        return self.safe_execute("Building category summary", self._category_summary)

    def _category_summary(self) -> pd.DataFrame:
        df = self.coordinator.local_db.products_dataframe()
        if df.empty:
            return pd.DataFrame(columns=self.SUMMARY_COLUMNS)

        df["category"] = df["category"].fillna("Uncategorized").replace("", "Uncategorized")
        df["price"] = pd.to_numeric(df["price"], errors="coerce").fillna(0.0)
        df["qty"] = pd.to_numeric(df["qty"], errors="coerce").fillna(0)
        df["stock_value"] = df["price"] * df["qty"]

        summary = (
            df.groupby("category")
            .agg(
                products=("item_code", "count"),
                total_qty=("qty", "sum"),
                stock_value=("stock_value", "sum"),
                avg_discount_percentage=("discount_percentage", "mean"),
            )
            .reset_index()
            .sort_values("stock_value", ascending=False, ignore_index=True)
        )
        summary["stock_value"] = summary["stock_value"].round(2)
        summary["avg_discount_percentage"] = summary["avg_discount_percentage"].fillna(0.0).round(2)
        return summary[self.SUMMARY_COLUMNS]

    def catalog_metadata(self) -> ServiceResult:
        """Counts, categories and last successful sync of the cached catalog."""
        return self.safe_execute("Reading catalog metadata", self._catalog_metadata)

    def _catalog_metadata(self) -> Dict[str, Any]:
        local_db = self.coordinator.local_db
        last_success = self.coordinator.state.last_sync_success
        return {
            "total_count": local_db.count_products(),
            "categories": local_db.get_categories(),
            "sub_categories": local_db.get_sub_categories(),
            "last_sync_time": last_success.isoformat() if last_success else None,
        }

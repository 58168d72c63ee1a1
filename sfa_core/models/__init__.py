"""
Data model for the SFA sync core.
"""

from .entities import (
    METRIC_NAMES,
    ReportingPeriod,
    MetricBlock,
    DashboardSnapshot,
    ProductRecord,
    ProductPage,
    UserProfile,
    Customer,
)

__all__ = [
    "METRIC_NAMES",
    "ReportingPeriod",
    "MetricBlock",
    "DashboardSnapshot",
    "ProductRecord",
    "ProductPage",
    "UserProfile",
    "Customer",
]

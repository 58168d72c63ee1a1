# =============================================================================
# sfa_core/services/__init__.py
# Service Layer for the SFA Sync Core
# =============================================================================
"""
Service layer: wraps coordinator operations in ServiceResult so callers
get data or a user-facing message without handling exceptions.

Usage Example:
-------------
    from sfa_core.offline import get_sync_coordinator
    from sfa_core.services import ReportService

    service = ReportService(get_sync_coordinator())
    result = service.dashboard_kpis("EXE123")
    if not result:
        print(result.error)
"""

from .base_service import BaseService, ServiceResult
from .report_service import (
    KpiCard,
    ReportService,
    build_kpi_cards,
    format_currency,
    format_percentage,
)

__all__ = [
    "BaseService",
    "ServiceResult",
    "KpiCard",
    "ReportService",
    "build_kpi_cards",
    "format_currency",
    "format_percentage",
]

"""Pydantic schemas for decoded reports and API responses."""
from .report import (
    MonitReport,
    HostDescriptor,
    ServiceDescriptor,
    EventDescriptor,
    ServiceGroupDescriptor,
    ServiceKind,
)
from .ingestion import IngestionSummary
from .host import (
    HostSummary,
    HostDetail,
    ServiceResponse,
    ServiceGroupResponse,
)
from .status import (
    EventResponse,
    StatisticValue,
    DashboardStats,
    DashboardOverview,
)

__all__ = [
    "MonitReport",
    "HostDescriptor",
    "ServiceDescriptor",
    "EventDescriptor",
    "ServiceGroupDescriptor",
    "ServiceKind",
    "IngestionSummary",
    "HostSummary",
    "HostDetail",
    "ServiceResponse",
    "ServiceGroupResponse",
    "EventResponse",
    "StatisticValue",
    "DashboardStats",
    "DashboardOverview",
]

"""Event, statistics and dashboard schemas."""
from typing import List
from pydantic import BaseModel


class EventResponse(BaseModel):
    """Event record with host and service names resolved."""
    id: int
    collected_sec: int
    collected_usec: int
    host_id: int
    host_name: str
    service_name: str
    service_type: int
    event: int
    state: int
    action: int
    message: str
    active: int


class StatisticValue(BaseModel):
    """One point of a service statistic."""
    descriptor: str
    collected_sec: int
    value: float


class DashboardStats(BaseModel):
    total_hosts: int
    hosts_ok: int
    total_services: int
    services_ok: int
    active_events: int


class DashboardOverview(BaseModel):
    """Dashboard overview data."""
    stats: DashboardStats
    recent_events: List[EventResponse]

"""Host and service schemas for the read API."""
from typing import Optional
from pydantic import BaseModel


class HostSummary(BaseModel):
    """Host row in the host list."""
    id: int
    hostname: str
    monit_id: str
    ip_addr_in: Optional[str] = None
    port_in: Optional[int] = None
    status: int
    updated_at: int
    version: Optional[str] = None
    platform_name: Optional[str] = None
    platform_release: Optional[str] = None
    platform_cpu: Optional[int] = None
    platform_memory: Optional[int] = None
    platform_swap: Optional[int] = None
    service_up: int = 0
    service_down: int = 0
    service_count: int = 0
    service_issues: int = 0


class HostDetail(BaseModel):
    """Everything stored about a host except its agent credentials."""
    id: int
    hostname: str
    control_file: str = ""
    monit_id: str
    created_at: int
    updated_at: int
    incarnation: int
    status: int
    description: Optional[str] = None
    ip_addr_in: Optional[str] = None
    ip_addr_out: Optional[str] = None
    port_in: Optional[int] = None
    port_out: Optional[int] = None
    ssl_in: int = 0
    ssl_out: int = 0
    poll: int
    start_delay: int
    status_modified: Optional[int] = None
    status_heartbeat: Optional[int] = None
    version: Optional[str] = None
    platform_name: Optional[str] = None
    platform_release: Optional[str] = None
    platform_version: Optional[str] = None
    platform_machine: Optional[str] = None
    platform_cpu: Optional[int] = None
    platform_memory: Optional[int] = None
    platform_swap: Optional[int] = None
    platform_uptime: Optional[float] = None
    service_up: int = 0
    service_down: int = 0
    service_unmonitor_auto: int = 0
    service_unmonitor_manual: int = 0


class ServiceResponse(BaseModel):
    """Schema for service in API responses."""
    id: int
    service_name: str
    type: int
    status: int
    status_hint: int
    monitoring_state: int
    monitoring_mode: int
    updated_at: int
    status_modified: Optional[int] = None


class ServiceGroupResponse(BaseModel):
    id: int
    name: str
    services: list[str] = []

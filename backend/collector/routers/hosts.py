"""Host API endpoints (read-only)."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..database import get_db
from ..models import Host, Name, Service, ServiceGroup, servicegroup_members
from ..schemas.host import HostSummary, HostDetail, ServiceResponse, ServiceGroupResponse

router = APIRouter(prefix="/api/hosts", tags=["hosts"])

# Columns never returned by the API
_HIDDEN_HOST_COLUMNS = {"password", "username", "name_id", "control_file_name_id"}


async def _require_host(db: AsyncSession, host_id: int):
    result = await db.execute(select(Host.id).where(Host.id == host_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Host not found")


@router.get("", response_model=List[HostSummary])
async def list_hosts(db: AsyncSession = Depends(get_db)):
    """List all monitored hosts with their service counts."""
    counts = (
        select(
            Service.host_id,
            func.count(Service.id).label("service_count"),
            func.sum(case((Service.status != 0, 1), else_=0)).label("service_issues"),
        )
        .group_by(Service.host_id)
        .subquery()
    )
    result = await db.execute(
        select(Host, Name.name, counts.c.service_count, counts.c.service_issues)
        .join(Name, Host.name_id == Name.id)
        .outerjoin(counts, counts.c.host_id == Host.id)
        .order_by(Name.name)
    )

    return [
        HostSummary(
            id=host.id,
            hostname=hostname,
            monit_id=host.monit_id,
            ip_addr_in=host.ip_addr_in,
            port_in=host.port_in,
            status=host.status,
            updated_at=host.updated_at,
            version=host.version,
            platform_name=host.platform_name,
            platform_release=host.platform_release,
            platform_cpu=host.platform_cpu,
            platform_memory=host.platform_memory,
            platform_swap=host.platform_swap,
            service_up=host.service_up or 0,
            service_down=host.service_down or 0,
            service_count=service_count or 0,
            service_issues=service_issues or 0,
        )
        for host, hostname, service_count, service_issues in result.all()
    ]


@router.get("/{host_id}", response_model=HostDetail)
async def get_host(host_id: int, db: AsyncSession = Depends(get_db)):
    """Get detailed information about a specific host."""
    control_file = aliased(Name)
    result = await db.execute(
        select(Host, Name.name, control_file.name)
        .join(Name, Host.name_id == Name.id)
        .outerjoin(control_file, Host.control_file_name_id == control_file.id)
        .where(Host.id == host_id)
    )
    row = result.one_or_none()
    if row is None:
        raise HTTPException(status_code=404, detail="Host not found")

    host, hostname, control_file_name = row
    fields = {
        column.key: getattr(host, column.key)
        for column in Host.__table__.columns
        if column.key not in _HIDDEN_HOST_COLUMNS
    }
    return HostDetail(hostname=hostname, control_file=control_file_name or "", **fields)


@router.get("/{host_id}/services", response_model=List[ServiceResponse])
async def get_host_services(host_id: int, db: AsyncSession = Depends(get_db)):
    """Get all services for a specific host."""
    await _require_host(db, host_id)

    result = await db.execute(
        select(Service, Name.name)
        .join(Name, Service.name_id == Name.id)
        .where(Service.host_id == host_id)
        .order_by(Service.type, Name.name)
    )
    return [
        ServiceResponse(
            id=service.id,
            service_name=name,
            type=service.type,
            status=service.status,
            status_hint=service.status_hint,
            monitoring_state=service.monitoring_state,
            monitoring_mode=service.monitoring_mode,
            updated_at=service.updated_at,
            status_modified=service.status_modified,
        )
        for service, name in result.all()
    ]


@router.get("/{host_id}/groups", response_model=List[ServiceGroupResponse])
async def get_host_groups(host_id: int, db: AsyncSession = Depends(get_db)):
    """Get the service groups of a host with their member names."""
    await _require_host(db, host_id)

    member_name = aliased(Name)
    result = await db.execute(
        select(ServiceGroup.id, Name.name, member_name.name)
        .join(Name, ServiceGroup.name_id == Name.id)
        .outerjoin(servicegroup_members, servicegroup_members.c.servicegroup_id == ServiceGroup.id)
        .outerjoin(member_name, servicegroup_members.c.service_name_id == member_name.id)
        .where(ServiceGroup.host_id == host_id)
        .order_by(Name.name, member_name.name)
    )

    groups = {}
    for group_id, group_name, member in result.all():
        group = groups.setdefault(group_id, ServiceGroupResponse(id=group_id, name=group_name, services=[]))
        if member is not None:
            group.services.append(member)
    return list(groups.values())

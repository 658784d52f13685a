"""Event, statistics and dashboard API endpoints (read-only)."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..database import get_db
from ..models import Event, Host, Name, Service, StatisticDescriptor, StatisticPoint
from ..schemas.status import DashboardOverview, DashboardStats, EventResponse, StatisticValue

router = APIRouter(prefix="/api", tags=["status"])

# Upper bound on statistic points per request
MAX_STATISTIC_POINTS = 1000


def _events_query():
    host_name = aliased(Name)
    service_name = aliased(Name)
    return (
        select(Event, host_name.name, service_name.name)
        .join(Host, Event.host_id == Host.id)
        .join(host_name, Host.name_id == host_name.id)
        .join(service_name, Event.service_name_id == service_name.id)
    )


def _event_response(event: Event, host_name: str, service_name: str) -> EventResponse:
    return EventResponse(
        id=event.id,
        collected_sec=event.collected_sec,
        collected_usec=event.collected_usec or 0,
        host_id=event.host_id,
        host_name=host_name,
        service_name=service_name,
        service_type=event.service_type,
        event=event.event,
        state=event.state,
        action=event.action,
        message=event.message or "",
        active=event.active,
    )


@router.get("/events", response_model=List[EventResponse])
async def list_events(
    host_id: Optional[int] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
):
    """Get recent events, newest first."""
    query = _events_query()
    if host_id is not None:
        query = query.where(Event.host_id == host_id)
    query = query.order_by(Event.collected_sec.desc(), Event.collected_usec.desc()).limit(limit)

    result = await db.execute(query)
    return [_event_response(*row) for row in result.all()]


@router.get("/statistics/{service_id}", response_model=List[StatisticValue])
async def get_statistics(
    service_id: int,
    descriptor: Optional[str] = None,
    from_sec: Optional[int] = None,
    to_sec: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
):
    """Get statistic points for a service, newest first."""
    query = (
        select(StatisticDescriptor.descriptor, StatisticPoint.collected_sec, StatisticPoint.value)
        .join(StatisticPoint, StatisticPoint.statistics_id == StatisticDescriptor.id)
        .where(StatisticDescriptor.service_id == service_id)
    )
    if descriptor:
        query = query.where(StatisticDescriptor.descriptor == descriptor)
    if from_sec is not None:
        query = query.where(StatisticPoint.collected_sec >= from_sec)
    if to_sec is not None:
        query = query.where(StatisticPoint.collected_sec <= to_sec)
    query = query.order_by(StatisticPoint.collected_sec.desc()).limit(MAX_STATISTIC_POINTS)

    result = await db.execute(query)
    return [
        StatisticValue(descriptor=name, collected_sec=collected_sec, value=value)
        for name, collected_sec, value in result.all()
    ]


@router.get("/dashboard", response_model=DashboardOverview)
async def get_dashboard(db: AsyncSession = Depends(get_db)):
    """Get dashboard overview data."""
    hosts = (await db.execute(
        select(
            func.count(Host.id),
            func.coalesce(func.sum(case((Host.status == 0, 1), else_=0)), 0),
        )
    )).one()
    services = (await db.execute(
        select(
            func.count(Service.id),
            func.coalesce(func.sum(case((Service.status == 0, 1), else_=0)), 0),
        )
    )).one()
    active_events = (await db.execute(
        select(func.count(Event.id)).where(Event.active == 1)
    )).scalar() or 0

    recent = await db.execute(
        _events_query()
        .where(Event.active == 1)
        .order_by(Event.collected_sec.desc())
        .limit(10)
    )

    return DashboardOverview(
        stats=DashboardStats(
            total_hosts=hosts[0],
            hosts_ok=hosts[1],
            total_services=services[0],
            services_ok=services[1],
            active_events=active_events,
        ),
        recent_events=[_event_response(*row) for row in recent.all()],
    )

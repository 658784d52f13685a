"""Metric recorder - stores numeric service readings as time series.

Each service kind emits a fixed set of named series. A series descriptor is
created the first time a value for it shows up; every value is appended as
a new point, even when a point with the same timestamp already exists.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import StatisticDescriptor, StatisticPoint, DATA_TYPE_DOUBLE
from ..schemas.report import (
    FilesystemPayload,
    PortPayload,
    ProcessPayload,
    ServiceDescriptor,
    SystemPayload,
    SYSTEM_CPU_FIELDS,
)
from ..utils.db_utils import insert_or_fetch
from ..utils.ids import generate_id

logger = logging.getLogger(__name__)

Metric = Tuple[str, Optional[float]]


def _system_metrics(payload: SystemPayload) -> List[Metric]:
    metrics = [
        ("load_avg01", payload.load.avg01),
        ("load_avg05", payload.load.avg05),
        ("load_avg15", payload.load.avg15),
    ]
    metrics += [(f"cpu_{field}", getattr(payload.cpu, field)) for field in SYSTEM_CPU_FIELDS]
    metrics += [
        ("memory_percent", payload.memory.percent),
        ("memory_kilobyte", payload.memory.kilobyte),
        ("swap_percent", payload.swap.percent),
        ("swap_kilobyte", payload.swap.kilobyte),
    ]
    return metrics


def _process_metrics(payload: ProcessPayload) -> List[Metric]:
    return [
        ("process_memory_percent", payload.memory.percent),
        ("process_memory_kilobyte", payload.memory.kilobyte),
    ]


def _filesystem_metrics(payload: FilesystemPayload) -> List[Metric]:
    return [
        ("filesystem_percent", payload.percent),
        ("filesystem_usage", payload.usage),
    ]


def _port_metrics(payload: PortPayload) -> List[Metric]:
    return [("port_responsetime", payload.responsetime)]


# Keyed by the payload's kind tag; program payloads carry no series
METRIC_EXTRACTORS: Dict[str, Callable[..., List[Metric]]] = {
    "system": _system_metrics,
    "process": _process_metrics,
    "filesystem": _filesystem_metrics,
    "port": _port_metrics,
}


def service_metrics(service: ServiceDescriptor) -> List[Metric]:
    """All series a service can emit, with None for values not reported."""
    metrics: List[Metric] = []
    if service.payload is not None:
        extractor = METRIC_EXTRACTORS.get(service.payload.kind)
        if extractor is not None:
            metrics += extractor(service.payload)

    fds = service.filedescriptors
    metrics += [
        ("filedescriptors_allocated", fds.allocated),
        ("filedescriptors_unused", fds.unused),
        ("filedescriptors_maximum", fds.maximum),
    ]
    return metrics


class MetricRecorder:
    """Appends statistic points, creating descriptors lazily."""

    async def record(
        self,
        session: AsyncSession,
        service_id: int,
        name: str,
        value: Optional[float],
        collected_sec: int,
    ) -> bool:
        """Record one value. Returns False when there was nothing to record."""
        return await self._record_many(session, service_id, [(name, value)], collected_sec) > 0

    async def record_service(
        self,
        session: AsyncSession,
        service_id: int,
        service: ServiceDescriptor,
        collected_sec: int,
    ) -> int:
        """Record every reported value of a service. Returns the point count."""
        return await self._record_many(session, service_id, service_metrics(service), collected_sec)

    async def _record_many(
        self,
        session: AsyncSession,
        service_id: int,
        metrics: Sequence[Metric],
        collected_sec: int,
    ) -> int:
        present = [(name, float(value)) for name, value in metrics if value is not None]
        if not present:
            return 0

        names = list(dict.fromkeys(name for name, _ in present))
        descriptor_ids = await self._descriptor_ids(session, service_id, names)

        await session.execute(
            insert(StatisticPoint),
            [
                {
                    "statistics_id": descriptor_ids[name],
                    "collected_sec": collected_sec,
                    "value": value,
                }
                for name, value in present
            ],
        )
        return len(present)

    async def _descriptor_ids(
        self,
        session: AsyncSession,
        service_id: int,
        names: List[str],
    ) -> Dict[str, int]:
        """Find-or-create the descriptors of one service."""
        known = await self._select_descriptors(session, service_id, names)
        missing = [name for name in names if name not in known]
        if not missing:
            return known

        rows = [
            {
                "id": generate_id(),
                "service_id": service_id,
                "type": 0,
                "data_type": DATA_TYPE_DOUBLE,
                "descriptor": name,
            }
            for name in missing
        ]
        try:
            async with session.begin_nested():
                await session.execute(insert(StatisticDescriptor), rows)
        except IntegrityError:
            # Conflict with a concurrent report or on a generated id
            logger.debug(f"Descriptor insert conflicted for service {service_id}, resolving individually")
            for name in missing:
                known[name] = await self._insert_descriptor(session, service_id, name)
            return known

        known.update({row["descriptor"]: row["id"] for row in rows})
        return known

    async def _insert_descriptor(self, session: AsyncSession, service_id: int, name: str) -> int:
        """Create one descriptor, or return the id another writer gave it."""

        async def insert_row() -> int:
            new_id = generate_id()
            await session.execute(
                insert(StatisticDescriptor).values(
                    id=new_id,
                    service_id=service_id,
                    type=0,
                    data_type=DATA_TYPE_DOUBLE,
                    descriptor=name,
                )
            )
            return new_id

        async def fetch_row():
            return (await self._select_descriptors(session, service_id, [name])).get(name)

        return await insert_or_fetch(session, insert_row, fetch_row)

    async def _select_descriptors(
        self,
        session: AsyncSession,
        service_id: int,
        names: List[str],
    ) -> Dict[str, int]:
        result = await session.execute(
            select(StatisticDescriptor.descriptor, StatisticDescriptor.id).where(
                StatisticDescriptor.service_id == service_id,
                StatisticDescriptor.descriptor.in_(names),
            )
        )
        return {descriptor: descriptor_id for descriptor, descriptor_id in result.all()}


# Global instance
metric_recorder = MetricRecorder()

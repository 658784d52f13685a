"""Service reconciler - brings a host's stored services in line with a report."""
import logging
from typing import Dict, List

from sqlalchemy import and_, case, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Host, Service
from ..schemas.report import ServiceDescriptor
from ..utils.db_utils import insert_or_fetch
from ..utils.ids import generate_id
from .metrics import MetricRecorder, metric_recorder
from .names import NameInterner, name_interner

logger = logging.getLogger(__name__)

# Monit status and monitoring constants
SERVICE_STATUS_OK = 0
MONITOR_NOT = 0
MONITOR_MODE_MANUAL = 2


class ServiceReconciler:
    """Upserts the services of one report.

    Services the report does not mention are left as they are; nothing here
    deletes or marks services stale.
    """

    def __init__(
        self,
        names: NameInterner = name_interner,
        metrics: MetricRecorder = metric_recorder,
    ):
        self.names = names
        self.metrics = metrics

    async def reconcile(
        self,
        session: AsyncSession,
        host_id: int,
        services: List[ServiceDescriptor],
        now: int,
    ) -> Dict[str, int]:
        """Upsert services, record their metrics and refresh host counts.

        Returns the service id for every service name in the report. When a
        name appears twice, the later entry wins.
        """
        by_name = {service.name: service for service in services}
        service_ids: Dict[str, int] = {}

        if by_name:
            name_ids = await self.names.resolve_batch(session, by_name.keys())
            stored = await self._stored_services(session, host_id)

            updates = []
            inserts: Dict[str, dict] = {}
            for name, service in by_name.items():
                name_id = name_ids[name]
                fields = self._mutable_fields(service, now)
                if name_id in stored:
                    service_ids[name] = stored[name_id]
                    updates.append({"id": stored[name_id], **fields})
                else:
                    service_ids[name] = generate_id()
                    inserts[name] = {
                        "id": service_ids[name],
                        "created_at": now,
                        "host_id": host_id,
                        "name_id": name_id,
                        **fields,
                    }

            if updates:
                await session.execute(update(Service), updates)
            if inserts:
                try:
                    async with session.begin_nested():
                        await session.execute(insert(Service), list(inserts.values()))
                except IntegrityError:
                    # A concurrent report for the same host created some of them first
                    logger.debug(f"Host {host_id}: service insert conflicted, resolving individually")
                    for name, row in inserts.items():
                        fields = self._mutable_fields(by_name[name], now)
                        service_ids[name] = await self._insert_or_update(session, row, fields)
            logger.debug(f"Host {host_id}: {len(updates)} services updated, {len(inserts)} added")

            for name, service in by_name.items():
                collected_sec = service.collected_sec or now
                await self.metrics.record_service(session, service_ids[name], service, collected_sec)

        await self._refresh_host_counts(session, host_id)
        return service_ids

    async def _stored_services(self, session: AsyncSession, host_id: int) -> Dict[int, int]:
        """Service ids of a host keyed by name id."""
        result = await session.execute(
            select(Service.name_id, Service.id).where(Service.host_id == host_id)
        )
        return {name_id: service_id for name_id, service_id in result.all()}

    async def _insert_or_update(self, session: AsyncSession, row: dict, fields: dict) -> int:
        """Insert one service row, or update the row another writer created."""

        async def insert_row() -> int:
            new_id = generate_id()
            await session.execute(insert(Service).values(**{**row, "id": new_id}))
            return new_id

        async def fetch_row():
            result = await session.execute(
                select(Service.id).where(
                    Service.host_id == row["host_id"],
                    Service.name_id == row["name_id"],
                )
            )
            return result.scalar_one_or_none()

        service_id = await insert_or_fetch(session, insert_row, fetch_row)
        await session.execute(update(Service), [{"id": service_id, **fields}])
        return service_id

    def _mutable_fields(self, service: ServiceDescriptor, now: int) -> dict:
        return {
            "updated_at": now,
            "type": service.type,
            "status": service.status,
            "status_hint": service.status_hint,
            "monitoring_state": service.monitor,
            "monitoring_mode": service.monitor_mode,
            "on_reboot": service.on_reboot,
            "status_modified": now,
        }

    async def _refresh_host_counts(self, session: AsyncSession, host_id: int):
        """Recompute the host's service summary from its stored services."""
        monitored = Service.monitoring_state != MONITOR_NOT
        unmonitored = Service.monitoring_state == MONITOR_NOT
        manual = Service.monitoring_mode == MONITOR_MODE_MANUAL

        def _count(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        result = await session.execute(
            select(
                _count(and_(monitored, Service.status == SERVICE_STATUS_OK)),
                _count(and_(monitored, Service.status != SERVICE_STATUS_OK)),
                _count(and_(unmonitored, ~manual)),
                _count(and_(unmonitored, manual)),
            ).where(Service.host_id == host_id)
        )
        up, down, unmonitor_auto, unmonitor_manual = result.one()

        await session.execute(
            update(Host)
            .where(Host.id == host_id)
            .values(
                service_up=up,
                service_down=down,
                service_unmonitor_auto=unmonitor_auto,
                service_unmonitor_manual=unmonitor_manual,
            )
        )


# Global instance
service_reconciler = ServiceReconciler()

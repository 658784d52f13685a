"""Event recorder - stores state-change events reported by an agent."""
import logging
from typing import List

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Event, Service
from ..schemas.report import EventDescriptor
from ..utils.ids import generate_id
from .names import NameInterner, name_interner

logger = logging.getLogger(__name__)


class EventRecorder:
    """Appends events for services already known on the host.

    An event naming a service the host never reported is dropped; there is
    no row to attach it to.
    """

    def __init__(self, names: NameInterner = name_interner):
        self.names = names

    async def record(
        self,
        session: AsyncSession,
        host_id: int,
        events: List[EventDescriptor],
        now: int,
    ) -> int:
        """Insert events as active. Returns how many were stored."""
        if not events:
            return 0

        name_ids = await self.names.resolve_batch(session, (event.service for event in events))
        result = await session.execute(
            select(Service.name_id, Service.id).where(
                Service.host_id == host_id,
                Service.name_id.in_(list(name_ids.values())),
            )
        )
        service_ids = {name_id: service_id for name_id, service_id in result.all()}

        rows = []
        for event in events:
            name_id = name_ids[event.service]
            service_id = service_ids.get(name_id)
            if service_id is None:
                logger.warning(f"Dropping event for unknown service '{event.service}' on host {host_id}")
                continue
            rows.append({
                "id": generate_id(),
                "host_id": host_id,
                "service_id": service_id,
                "collected_sec": event.collected_sec or now,
                "collected_usec": event.collected_usec,
                "service_name_id": name_id,
                "service_type": event.type,
                "event": event.id,
                "state": event.state,
                "action": event.action,
                "message": event.message,
                "active": 1,
            })

        if rows:
            await session.execute(insert(Event), rows)
        return len(rows)


# Global instance
event_recorder = EventRecorder()

"""Group reconciler - replaces a host's service group memberships."""
import logging
from typing import Dict, List

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ServiceGroup, servicegroup_members
from ..schemas.report import ServiceDescriptor, ServiceGroupDescriptor
from ..utils.db_utils import insert_or_fetch
from ..utils.ids import generate_id
from .names import NameInterner, name_interner

logger = logging.getLogger(__name__)


class GroupReconciler:
    """Writes each reported group's members, replacing the previous set.

    Members that are not services of the same report are skipped.
    """

    def __init__(self, names: NameInterner = name_interner):
        self.names = names

    async def reconcile(
        self,
        session: AsyncSession,
        host_id: int,
        groups: List[ServiceGroupDescriptor],
        services: List[ServiceDescriptor],
    ):
        if not groups:
            return

        service_name_ids = await self.names.resolve_batch(session, (s.name for s in services))
        group_name_ids = await self.names.resolve_batch(session, (g.name for g in groups))

        stored = await self._stored_groups(session, host_id)

        for group in groups:
            name_id = group_name_ids[group.name]
            group_id = stored.get(name_id)
            if group_id is None:
                group_id = await self._insert_group(session, host_id, name_id)
                stored[name_id] = group_id

            await session.execute(
                delete(servicegroup_members).where(servicegroup_members.c.servicegroup_id == group_id)
            )

            member_ids = []
            for member in dict.fromkeys(group.services):
                member_id = service_name_ids.get(member)
                if member_id is None:
                    logger.debug(f"Group '{group.name}' on host {host_id}: skipping unknown member '{member}'")
                    continue
                member_ids.append(member_id)

            if member_ids:
                await session.execute(
                    insert(servicegroup_members),
                    [{"servicegroup_id": group_id, "service_name_id": member_id} for member_id in member_ids],
                )

    async def _stored_groups(self, session: AsyncSession, host_id: int) -> Dict[int, int]:
        result = await session.execute(
            select(ServiceGroup.name_id, ServiceGroup.id).where(ServiceGroup.host_id == host_id)
        )
        return {name_id: group_id for name_id, group_id in result.all()}

    async def _insert_group(self, session: AsyncSession, host_id: int, name_id: int) -> int:
        """Create a group row, or return the one a concurrent report created."""

        async def insert_row() -> int:
            group_id = generate_id()
            await session.execute(
                insert(ServiceGroup).values(id=group_id, host_id=host_id, name_id=name_id)
            )
            return group_id

        async def fetch_row():
            result = await session.execute(
                select(ServiceGroup.id).where(
                    ServiceGroup.host_id == host_id,
                    ServiceGroup.name_id == name_id,
                )
            )
            return result.scalar_one_or_none()

        return await insert_or_fetch(session, insert_row, fetch_row)


# Global instance
group_reconciler = GroupReconciler()

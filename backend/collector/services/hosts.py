"""Identity resolver - finds or registers the host behind a report."""
import ipaddress
import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Host, HOST_STATUS_ACTIVE
from ..schemas.report import HostDescriptor
from ..utils.db_utils import insert_or_fetch
from ..utils.ids import generate_id
from .names import NameInterner, name_interner

logger = logging.getLogger(__name__)


def normalize_address(address: Optional[str]) -> str:
    """Turn IPv6-mapped IPv4 (``::ffff:10.5.10.4``) into plain IPv4.

    Anything that is not an IP address is returned unchanged.
    """
    if not address:
        return ""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return address
    if ip.version == 6 and ip.ipv4_mapped is not None:
        return str(ip.ipv4_mapped)
    return str(ip)


class IdentityResolver:
    """Resolves a report's host descriptor to a durable Host row.

    Hosts are keyed by the agent's monit id. A changed incarnation on a known
    id means the agent restarted; the host keeps its row and only the new
    incarnation is recorded.
    """

    def __init__(self, names: NameInterner = name_interner):
        self.names = names

    async def resolve_host(
        self,
        session: AsyncSession,
        host: HostDescriptor,
        source_address: str,
        now: int,
    ) -> int:
        """Create or refresh the Host row and return its id."""
        name_ids = await self.names.resolve_batch(session, [host.localhostname, host.control_file])
        observed = normalize_address(source_address)
        fields = self._mutable_fields(host, observed, name_ids, now)

        existing = await self._find(session, host.monit_id)
        if existing is None:
            host_id = await insert_or_fetch(
                session,
                lambda: self._insert(session, host, fields, observed, now),
                lambda: self._find_id(session, host.monit_id),
            )
            existing = await session.get(Host, host_id)
        elif existing.incarnation != host.incarnation:
            logger.info(
                f"Host {host.localhostname} reincarnated "
                f"(incarnation: {existing.incarnation} -> {host.incarnation})"
            )

        for key, value in fields.items():
            setattr(existing, key, value)
        await session.flush()
        return existing.id

    async def _find(self, session: AsyncSession, monit_id: str) -> Optional[Host]:
        result = await session.execute(select(Host).where(Host.monit_id == monit_id))
        return result.scalar_one_or_none()

    async def _find_id(self, session: AsyncSession, monit_id: str) -> Optional[int]:
        result = await session.execute(select(Host.id).where(Host.monit_id == monit_id))
        return result.scalar_one_or_none()

    async def _insert(
        self,
        session: AsyncSession,
        host: HostDescriptor,
        fields: dict,
        observed: str,
        now: int,
    ) -> int:
        record = Host(id=generate_id(), created_at=now, monit_id=host.monit_id, **fields)
        session.add(record)
        await session.flush()
        logger.info(f"New host registered: {host.localhostname} ({observed})")
        return record.id

    def _mutable_fields(
        self,
        host: HostDescriptor,
        observed: str,
        name_ids: Dict[str, int],
        now: int,
    ) -> dict:
        """Host columns rewritten on every report."""
        ssl = 1 if host.httpd.ssl else 0
        return {
            "updated_at": now,
            "incarnation": host.incarnation,
            "status": HOST_STATUS_ACTIVE,
            "name_id": name_ids[host.localhostname],
            "description": host.description,
            "ip_addr_in": host.httpd.address,  # as configured in monitrc
            "ip_addr_out": observed,  # where the report actually came from
            "port_in": host.httpd.port,
            "port_out": host.httpd.port,
            "ssl_in": ssl,
            "ssl_out": ssl,
            "username": host.credentials.username,
            "password": host.credentials.password,
            "poll": host.poll,
            "start_delay": host.start_delay,
            "control_file_name_id": name_ids[host.control_file],
            "status_modified": now,
            "status_heartbeat": now,
            "version": host.version,
            "platform_name": host.platform.name,
            "platform_release": host.platform.release,
            "platform_version": host.platform.version,
            "platform_machine": host.platform.machine,
            "platform_cpu": host.platform.cpu,
            "platform_memory": host.platform.memory,
            "platform_swap": host.platform.swap,
            "platform_uptime": host.uptime,
        }


# Global instance
identity_resolver = IdentityResolver()

"""Tests for host identity resolution."""

import logging

import pytest
from sqlalchemy import select

from collector.models import Host, HOST_STATUS_ACTIVE, Name
from collector.schemas.report import HttpdInfo
from collector.services.hosts import IdentityResolver, normalize_address

NOW = 1706634789


@pytest.mark.parametrize("address,expected", [
    ("::ffff:10.5.10.4", "10.5.10.4"),
    ("10.5.10.4", "10.5.10.4"),
    ("2001:db8::1", "2001:db8::1"),
    ("testclient", "testclient"),
    ("", ""),
    (None, ""),
])
def test_normalize_address(address, expected):
    assert normalize_address(address) == expected


@pytest.mark.asyncio
async def test_new_host_is_registered(db_session, host_descriptor, caplog):
    caplog.set_level(logging.INFO)
    host_descriptor.httpd = HttpdInfo(address="192.168.1.10", port=2812, ssl=True)

    host_id = await IdentityResolver().resolve_host(db_session, host_descriptor, "::ffff:10.5.10.4", NOW)

    host = await db_session.get(Host, host_id)
    assert host.monit_id == "abc123"
    assert host.status == HOST_STATUS_ACTIVE
    assert host.created_at == NOW
    assert host.ip_addr_in == "192.168.1.10"
    assert host.ip_addr_out == "10.5.10.4"
    assert host.port_in == 2812
    assert host.ssl_in == 1
    assert host.ssl_out == 1
    assert host.status_heartbeat == NOW
    hostname = await db_session.get(Name, host.name_id)
    assert hostname.name == "web-1"
    control_file = await db_session.get(Name, host.control_file_name_id)
    assert control_file.name == "/etc/monit/monitrc"
    assert "New host registered" in caplog.text


@pytest.mark.asyncio
async def test_same_monit_id_keeps_the_row(db_session, host_descriptor):
    resolver = IdentityResolver()

    first = await resolver.resolve_host(db_session, host_descriptor, "10.0.0.1", NOW)
    second = await resolver.resolve_host(db_session, host_descriptor, "10.0.0.1", NOW + 120)

    assert first == second
    result = await db_session.execute(select(Host))
    hosts = result.scalars().all()
    assert len(hosts) == 1
    assert hosts[0].updated_at == NOW + 120
    assert hosts[0].created_at == NOW


@pytest.mark.asyncio
async def test_reincarnation_updates_incarnation(db_session, host_descriptor, caplog):
    caplog.set_level(logging.INFO)
    resolver = IdentityResolver()

    first = await resolver.resolve_host(db_session, host_descriptor, "10.0.0.1", NOW)
    restarted = host_descriptor.model_copy(update={"incarnation": 2})
    second = await resolver.resolve_host(db_session, restarted, "10.0.0.1", NOW + 60)

    assert first == second
    host = await db_session.get(Host, first)
    assert host.incarnation == 2
    assert "reincarnated" in caplog.text


@pytest.mark.asyncio
async def test_existing_host_takes_new_names(db_session, host_descriptor):
    resolver = IdentityResolver()
    host_id = await resolver.resolve_host(db_session, host_descriptor, "10.0.0.1", NOW)

    renamed = host_descriptor.model_copy(update={"localhostname": "web-1.example.com"})
    await resolver.resolve_host(db_session, renamed, "10.0.0.2", NOW + 60)

    host = await db_session.get(Host, host_id)
    hostname = await db_session.get(Name, host.name_id)
    assert hostname.name == "web-1.example.com"
    assert host.ip_addr_out == "10.0.0.2"


class StaleReadResolver(IdentityResolver):
    """Misses the host on its first lookup, as if another report registered it meanwhile."""

    def __init__(self):
        super().__init__()
        self.lookups = 0

    async def _find(self, session, monit_id):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super()._find(session, monit_id)


@pytest.mark.asyncio
async def test_concurrent_registration_reuses_the_row(db_session, host_descriptor):
    first = await IdentityResolver().resolve_host(db_session, host_descriptor, "10.0.0.1", NOW)

    host_descriptor.incarnation = 2
    second = await StaleReadResolver().resolve_host(db_session, host_descriptor, "10.0.0.2", NOW + 120)

    assert second == first
    result = await db_session.execute(select(Host))
    hosts = result.scalars().all()
    assert len(hosts) == 1
    assert hosts[0].incarnation == 2
    assert hosts[0].ip_addr_out == "10.0.0.2"
    assert hosts[0].updated_at == NOW + 120

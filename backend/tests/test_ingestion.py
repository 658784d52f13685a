"""Tests for whole-report ingestion."""

import asyncio
import sqlite3

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collector.errors import MalformedPayload, PayloadTooLarge, StorageFailure
from collector.models import Event, Host, Name, Service, ServiceGroup, StatisticDescriptor, StatisticPoint
from collector.services.groups import GroupReconciler
from collector.services.ingestion import IngestionService

from .factories import (
    COLLECTED_SEC,
    SAMPLE_REPORT,
    event_xml,
    group_xml,
    report_xml,
    scenario_report,
    service_xml,
)


class FailingGroups(GroupReconciler):
    async def reconcile(self, session, host_id, groups, services):
        raise OperationalError("INSERT INTO servicegroup", {}, Exception("disk I/O error"))


class SlowGroups(GroupReconciler):
    async def reconcile(self, session, host_id, groups, services):
        await asyncio.sleep(5)


class FaultyGroups(GroupReconciler):
    async def reconcile(self, session, host_id, groups, services):
        raise ValueError("unexpected group layout")


class SlowCommitSession(AsyncSession):
    async def commit(self):
        await asyncio.sleep(0.3)
        await super().commit()


@pytest.mark.asyncio
async def test_end_to_end_scenario(ingestion, session_factory, count_rows):
    summary = await ingestion.submit(scenario_report(monit_id="abc123", incarnation=1), "10.0.0.1")

    assert summary.hostname == "test-server-1"
    assert summary.service_count == 2
    assert summary.event_count == 0

    async with session_factory() as session:
        host = (await session.execute(select(Host))).scalar_one()
        assert host.monit_id == "abc123"
        assert host.id == summary.host_id

        names = await session.execute(
            select(Name.name).join(Service, Service.name_id == Name.id).order_by(Name.name)
        )
        assert names.scalars().all() == ["nginx", "system"]

        points = await session.execute(
            select(Name.name, StatisticDescriptor.descriptor, StatisticPoint.value, StatisticPoint.collected_sec)
            .join(StatisticDescriptor, StatisticPoint.statistics_id == StatisticDescriptor.id)
            .join(Service, StatisticDescriptor.service_id == Service.id)
            .join(Name, Service.name_id == Name.id)
        )
        recorded = {(service, descriptor): (value, sec) for service, descriptor, value, sec in points.all()}

    assert recorded == {
        ("system", "load_avg01"): (1.25, COLLECTED_SEC),
        ("system", "load_avg05"): (1.10, COLLECTED_SEC),
        ("system", "load_avg15"): (0.95, COLLECTED_SEC),
        ("system", "memory_percent"): (45.8, COLLECTED_SEC),
        ("nginx", "process_memory_percent"): (2.5, COLLECTED_SEC),
    }
    assert await count_rows(StatisticPoint) == 5
    assert await count_rows(Event) == 0


@pytest.mark.asyncio
async def test_resubmission_keeps_host_and_services(ingestion, count_rows):
    first = await ingestion.submit(scenario_report(), "10.0.0.1")
    second = await ingestion.submit(scenario_report(), "10.0.0.1")

    assert first.host_id == second.host_id
    assert await count_rows(Host) == 1
    assert await count_rows(Service) == 2
    assert await count_rows(StatisticDescriptor) == 5
    assert await count_rows(StatisticPoint) == 10


@pytest.mark.asyncio
async def test_reincarnation_keeps_one_host(ingestion, session_factory, count_rows):
    await ingestion.submit(scenario_report(incarnation=1), "10.0.0.1")
    await ingestion.submit(scenario_report(incarnation=2), "10.0.0.1")

    assert await count_rows(Host) == 1
    async with session_factory() as session:
        host = (await session.execute(select(Host))).scalar_one()
    assert host.incarnation == 2


@pytest.mark.asyncio
async def test_sample_report(ingestion, count_rows):
    summary = await ingestion.submit(SAMPLE_REPORT.encode(), "::ffff:127.0.0.1")

    assert summary.service_count == 3
    # 3 load + 3 cpu + 4 memory/swap, 2 process memory, 2 filesystem
    assert await count_rows(StatisticPoint) == 14


@pytest.mark.asyncio
async def test_dangling_event_is_dropped(ingestion, count_rows):
    xml = report_xml(
        services=[service_xml("nginx", 3)],
        events=[event_xml("ghost"), event_xml("nginx")],
    )

    summary = await ingestion.submit(xml, "10.0.0.1")

    assert summary.event_count == 2
    assert await count_rows(Event) == 1
    assert await count_rows(Service) == 1


@pytest.mark.asyncio
async def test_groups_are_recorded(ingestion, session_factory):
    xml = report_xml(
        services=[service_xml("nginx", 3), service_xml("php-fpm", 3)],
        groups=[group_xml("web", ["nginx", "php-fpm"])],
    )

    await ingestion.submit(xml, "10.0.0.1")

    async with session_factory() as session:
        result = await session.execute(select(Name.name).join(ServiceGroup, ServiceGroup.name_id == Name.id))
        assert result.scalars().all() == ["web"]


@pytest.mark.asyncio
async def test_storage_failure_rolls_back_everything(session_factory, count_rows):
    ingestion = IngestionService(session_factory=session_factory, groups=FailingGroups())

    with pytest.raises(StorageFailure) as exc_info:
        await ingestion.submit(scenario_report(), "10.0.0.1")

    assert exc_info.value.state == "services-reconciled"
    assert isinstance(exc_info.value.__cause__, OperationalError)
    for model in (Host, Service, StatisticPoint, Event, Name):
        assert await count_rows(model) == 0


@pytest.mark.asyncio
async def test_failed_report_leaves_earlier_reports(session_factory, count_rows):
    await IngestionService(session_factory=session_factory).submit(scenario_report(monit_id="first"), "10.0.0.1")

    with pytest.raises(StorageFailure):
        await IngestionService(session_factory=session_factory, groups=FailingGroups()).submit(
            scenario_report(monit_id="second"), "10.0.0.2"
        )

    assert await count_rows(Host) == 1
    assert await count_rows(StatisticPoint) == 5


@pytest.mark.asyncio
async def test_deadline_rolls_back(session_factory, count_rows):
    ingestion = IngestionService(session_factory=session_factory, groups=SlowGroups(), timeout=0.1)

    with pytest.raises(StorageFailure) as exc_info:
        await ingestion.submit(scenario_report(), "10.0.0.1")

    assert exc_info.value.state == "services-reconciled"
    assert await count_rows(Host) == 0


@pytest.mark.asyncio
async def test_locked_commit_is_retried(ingestion, db_engine, count_rows, monkeypatch):
    dialect = db_engine.sync_engine.dialect
    do_commit = dialect.do_commit
    calls = []

    def locked_once(dbapi_connection):
        calls.append(dbapi_connection)
        if len(calls) == 1:
            raise sqlite3.OperationalError("database is locked")
        do_commit(dbapi_connection)

    monkeypatch.setattr(dialect, "do_commit", locked_once)

    summary = await ingestion.submit(scenario_report(), "10.0.0.1")

    assert len(calls) == 2
    assert summary.service_count == 2
    assert await count_rows(Host) == 1
    assert await count_rows(Service) == 2
    assert await count_rows(StatisticPoint) == 5


@pytest.mark.asyncio
async def test_deadline_does_not_cover_commit(db_engine, count_rows):
    factory = async_sessionmaker(db_engine, class_=SlowCommitSession, expire_on_commit=False)
    ingestion = IngestionService(session_factory=factory, timeout=0.1)

    summary = await ingestion.submit(scenario_report(), "10.0.0.1")

    assert summary.service_count == 2
    assert await count_rows(Host) == 1
    assert await count_rows(StatisticPoint) == 5


@pytest.mark.asyncio
async def test_oversized_incarnation_is_stored_as_default(ingestion, session_factory):
    await ingestion.submit(scenario_report(incarnation=99999999999999999999), "10.0.0.1")

    async with session_factory() as session:
        host = (await session.execute(select(Host))).scalar_one()
        assert host.incarnation == 0


@pytest.mark.asyncio
async def test_unexpected_error_is_a_storage_failure(session_factory, count_rows):
    ingestion = IngestionService(session_factory=session_factory, groups=FaultyGroups())

    with pytest.raises(StorageFailure) as exc_info:
        await ingestion.submit(scenario_report(), "10.0.0.1")

    assert exc_info.value.state == "services-reconciled"
    assert isinstance(exc_info.value.__cause__, ValueError)
    assert await count_rows(Host) == 0


@pytest.mark.asyncio
async def test_malformed_payload(ingestion, count_rows):
    with pytest.raises(MalformedPayload):
        await ingestion.submit(b"<monit><service></monit>", "10.0.0.1")

    assert await count_rows(Host) == 0


@pytest.mark.asyncio
async def test_payload_too_large(session_factory):
    ingestion = IngestionService(session_factory=session_factory, max_payload_bytes=100)

    with pytest.raises(PayloadTooLarge):
        await ingestion.submit(scenario_report(), "10.0.0.1")

"""Ingestion coordinator - processes one Monit report as one transaction.

A report moves through these states, all inside a single transaction:

    received -> decoded -> host-resolved -> services-reconciled
             -> groups-recorded -> events-recorded -> committed

Any error in any state rolls the transaction back and moves the report to
``failed``; nothing from it is persisted. A locked database or a dropped
connection gets the whole transaction run again; beyond that, retrying is up
to the sender.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..database import async_session
from ..errors import IngestionError, MalformedPayload, PayloadTooLarge, StorageFailure
from ..schemas.ingestion import IngestionSummary
from ..schemas.report import MonitReport
from ..utils.db_utils import retry_on_lock
from .events import EventRecorder, event_recorder
from .groups import GroupReconciler, group_reconciler
from .hosts import IdentityResolver, identity_resolver
from .report_decoder import decode_report
from .service_reconciler import ServiceReconciler, service_reconciler

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    RECEIVED = "received"
    DECODED = "decoded"
    HOST_RESOLVED = "host-resolved"
    SERVICES_RECONCILED = "services-reconciled"
    GROUPS_RECORDED = "groups-recorded"
    EVENTS_RECORDED = "events-recorded"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class IngestionRun:
    """Progress of one report through the pipeline."""
    source_address: str
    state: IngestionState = IngestionState.RECEIVED

    def advance(self, state: IngestionState):
        logger.debug(f"Report from {self.source_address}: {self.state.value} -> {state.value}")
        self.state = state


class IngestionService:
    """Runs the ingestion steps for one report, one session per attempt."""

    def __init__(
        self,
        session_factory: async_sessionmaker = async_session,
        resolver: IdentityResolver = identity_resolver,
        services: ServiceReconciler = service_reconciler,
        groups: GroupReconciler = group_reconciler,
        events: EventRecorder = event_recorder,
        timeout: float = settings.ingest_timeout_seconds,
        max_payload_bytes: int = settings.max_payload_bytes,
    ):
        self.session_factory = session_factory
        self.resolver = resolver
        self.services = services
        self.groups = groups
        self.events = events
        self.timeout = timeout
        self.max_payload_bytes = max_payload_bytes

    async def submit(self, payload: Union[bytes, str], source_address: str) -> IngestionSummary:
        """Decode and store a report.

        Storage runs on a fresh session per attempt. An attempt that hits a
        locked database or a dropped connection is rolled back and run again
        while the deadline allows. The deadline covers the steps before
        COMMIT only, so a report is never failed after it was stored.

        Raises:
            PayloadTooLarge: If the payload exceeds the size bound.
            MalformedPayload: If the payload is not a well-formed Monit document.
            StorageFailure: If storage fails or the deadline passes.
        """
        if len(payload) > self.max_payload_bytes:
            raise PayloadTooLarge(
                f"Report of {len(payload)} bytes exceeds limit of {self.max_payload_bytes}"
            )

        run = IngestionRun(source_address=source_address or "")
        try:
            report = decode_report(payload)
        except MalformedPayload as e:
            self._fail(run, e)
            raise
        run.advance(IngestionState.DECODED)

        deadline = asyncio.get_running_loop().time() + self.timeout
        try:
            summary = await retry_on_lock(lambda: self._attempt(run, report, deadline))
        except asyncio.TimeoutError as e:
            failed_in = self._fail(run, e)
            raise StorageFailure(f"Ingestion exceeded {self.timeout}s", state=failed_in) from e
        except IngestionError as e:
            self._fail(run, e)
            raise
        except SQLAlchemyError as e:
            failed_in = self._fail(run, e)
            raise StorageFailure(f"Storage error: {e}", state=failed_in) from e
        except Exception as e:
            failed_in = self._fail(run, e)
            raise StorageFailure(f"Unexpected error: {e}", state=failed_in) from e

        logger.info(
            f"Processed: {summary.hostname} - "
            f"{summary.service_count} services, {summary.event_count} events"
        )
        return summary

    async def _attempt(self, run: IngestionRun, report: MonitReport, deadline: float) -> IngestionSummary:
        """Store the report in one transaction, rolling it back on any error."""
        # Every attempt starts over from the decoded report
        run.state = IngestionState.DECODED

        async with self.session_factory() as session:
            try:
                remaining = deadline - asyncio.get_running_loop().time()
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                summary = await asyncio.wait_for(
                    self._process(session, run, report),
                    timeout=remaining,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        run.advance(IngestionState.COMMITTED)
        return summary

    async def _process(
        self,
        session: AsyncSession,
        run: IngestionRun,
        report: MonitReport,
    ) -> IngestionSummary:
        now = int(time.time())

        host_id = await self.resolver.resolve_host(session, report.host, run.source_address, now)
        run.advance(IngestionState.HOST_RESOLVED)

        await self.services.reconcile(session, host_id, report.services, now)
        run.advance(IngestionState.SERVICES_RECONCILED)

        await self.groups.reconcile(session, host_id, report.groups, report.services)
        run.advance(IngestionState.GROUPS_RECORDED)

        await self.events.record(session, host_id, report.events, now)
        run.advance(IngestionState.EVENTS_RECORDED)

        return IngestionSummary(
            host_id=host_id,
            hostname=report.host.localhostname,
            service_count=len(report.services),
            event_count=len(report.events),
        )

    def _fail(self, run: IngestionRun, error: Exception) -> str:
        """Record the failure. Returns the state it failed in."""
        failed_in = run.state.value
        run.advance(IngestionState.FAILED)
        logger.error(f"Error processing report from {run.source_address} in state {failed_in}: {error}")
        return failed_in


# Global instance
ingestion_service = IngestionService()

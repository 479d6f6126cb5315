"""
The scheduled unit of work: one sync run.

    START -> FETCH_CONNECTIONS -> PERSIST_TICKET -> NORMALIZE
          -> WRITE_HEALTH_RECORD -> MIRROR_TO_WEARABLE -> DONE

A failure in any step before MIRROR_TO_WEARABLE ends the run as FAILED. The
run never retries and never raises; the outcome is returned to the scheduler.
Ticket and user are loaded at the start of every run and the rotated ticket is
saved right after the fetch; nothing else carries over between runs.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from llu_sync.auth.credentials import CredentialStore, get_credential_store
from llu_sync.auth.libre_client import LibreLinkUpClient
from llu_sync.data.health_store import HealthStore, get_health_store
from llu_sync.metrics import records_written_total, sync_run_duration_seconds, sync_run_total
from llu_sync.models.glucose import BloodGlucoseRecord
from llu_sync.models.libre import ConnectionsResult, GlucoseMeasurement
from llu_sync.models.sync import SyncRunResult, SyncStep
from llu_sync.sync.normalizer import normalize_measurement
from llu_sync.sync.wearable import WearableMirror
from llu_sync.utils.config import Settings, get_settings
from llu_sync.utils.error_handling import NoReadingError

logger = logging.getLogger(__name__)


def latest_measurement(result: ConnectionsResult) -> GlucoseMeasurement:
    """
    The latest measurement of the first connection.

    Only the first connection is synced; any others are ignored.
    """
    if not result.data:
        raise NoReadingError("No linked connections returned")
    if len(result.data) > 1:
        logger.debug(
            "Ignoring additional connections",
            extra={"log_type": "extra_connections", "count": len(result.data) - 1},
        )
    measurement = result.data[0].glucose_measurement
    if measurement is None:
        raise NoReadingError("First connection has no glucose measurement")
    return measurement


class SyncWorker:
    """Runs one sync: fetch, persist ticket, normalize, write, mirror."""

    def __init__(
        self,
        client: LibreLinkUpClient,
        credentials: Optional[CredentialStore] = None,
        health_store: Optional[HealthStore] = None,
        mirror: Optional[WearableMirror] = None,
        settings: Optional[Settings] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.credentials = credentials or get_credential_store()
        self.health_store = health_store or get_health_store()
        self.mirror = mirror or WearableMirror(self.settings)
        self._now = now

    async def run(self) -> SyncRunResult:
        """
        Execute one run.

        Returns:
            SyncRunResult: success or failure, with the step reached
        """
        result = SyncRunResult()
        correlation_id = result.run_id
        logger.info("Starting sync run", extra={"log_type": "sync_start", "correlation_id": correlation_id})

        try:
            ticket, user = self.credentials.load()

            result.record_step(SyncStep.FETCH_CONNECTIONS)
            user_id = user.id if user else None
            connections = await self.client.connections(ticket, user_id, correlation_id=correlation_id)

            result.record_step(SyncStep.PERSIST_TICKET)
            if not self.credentials.save_ticket(connections.ticket):
                logger.warning(
                    "Rotated ticket could not be persisted",
                    extra={"log_type": "ticket_persist_failed", "correlation_id": correlation_id},
                )

            result.record_step(SyncStep.NORMALIZE)
            measurement = latest_measurement(connections)
            reading = normalize_measurement(measurement, now=self._now)
            result.reading = reading

            result.record_step(SyncStep.WRITE_HEALTH_RECORD)
            record = BloodGlucoseRecord.from_reading(reading, user_id=user_id, data_origin=self.settings.app_id)
            await asyncio.to_thread(self.health_store.insert, record)
            records_written_total.inc()
        except Exception as e:
            result.record_failure(f"{type(e).__name__}: {e}")
            self._report(result)
            logger.error(
                "Sync run failed",
                exc_info=True,
                extra={
                    "log_type": "sync_failed",
                    "correlation_id": correlation_id,
                    "step": result.failed_step.value,
                    "severity": getattr(getattr(e, "severity", None), "value", None),
                },
            )
            return result

        result.record_step(SyncStep.MIRROR_TO_WEARABLE)
        try:
            result.mirrored = await self.mirror.push(measurement, correlation_id=correlation_id)
        except Exception:
            logger.warning(
                "Wearable mirror raised; ignoring",
                exc_info=True,
                extra={"log_type": "wearable_push_error", "correlation_id": correlation_id},
            )

        result.record_completion()
        self._report(result)
        logger.info(
            "Sync run completed",
            extra={
                "log_type": "sync_completed",
                "correlation_id": correlation_id,
                "reading_time": reading.instant.isoformat(),
                "timestamp_source": reading.timestamp_source.value,
                "value_mg_per_dl": reading.value_mg_per_dl,
                "mirrored": result.mirrored,
            },
        )
        return result

    def _report(self, result: SyncRunResult) -> None:
        sync_run_total.labels(status=result.status.value).inc()
        sync_run_duration_seconds.observe(result.duration_seconds)


async def run_sync_once(settings: Optional[Settings] = None) -> SyncRunResult:
    """Build the default collaborators, run one sync and release the HTTP client."""
    settings = settings or get_settings()
    async with LibreLinkUpClient(settings) as client:
        worker = SyncWorker(client, settings=settings)
        return await worker.run()

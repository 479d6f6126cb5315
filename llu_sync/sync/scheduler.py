"""
Recurring sync job.

Runs the sync every `sync_interval_minutes` while a ticket is stored. Runs
never overlap, including on-demand runs started through `run_now()`, and each
scheduled run first checks that the LibreLinkUp host is
reachable; an offline tick is skipped and the next one tries again.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from llu_sync.auth.credentials import CredentialStore, get_credential_store
from llu_sync.metrics import sync_run_total
from llu_sync.models.sync import SyncRunResult
from llu_sync.sync.orchestrator import run_sync_once
from llu_sync.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "glucose_sync"


class SyncScheduler:
    """Enqueues and cancels the recurring sync job."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        credentials: Optional[CredentialStore] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        job: Optional[Callable[[Settings], Awaitable[SyncRunResult]]] = None,
        connectivity_check: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        self.settings = settings or get_settings()
        self.credentials = credentials or get_credential_store()
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._job = job or run_sync_once
        self._connectivity_check = connectivity_check or self.network_available
        self._run_lock: Optional[asyncio.Lock] = None

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def cancel(self) -> None:
        """Remove every scheduled sync job."""
        self.scheduler.remove_all_jobs()

    def schedule(self) -> bool:
        """
        Cancel existing jobs, then enqueue the recurring sync if logged in.

        Returns:
            bool: True if a job was enqueued
        """
        self.cancel()
        if not self.credentials.is_logged_in():
            logger.info("Not logged in; glucose sync job not scheduled")
            return False

        self.scheduler.add_job(
            self.run_job,
            trigger="interval",
            minutes=self.settings.sync_interval_minutes,
            id=SYNC_JOB_ID,
            name="Glucose sync",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            f"Glucose sync job scheduled every {self.settings.sync_interval_minutes} minutes",
            extra={"log_type": "sync_scheduled"},
        )
        return True

    async def network_available(self) -> bool:
        """True if the LibreLinkUp host answers at all within the connectivity timeout."""
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.settings.connectivity_timeout_seconds)) as client:
                await client.head(self.settings.librelinkup_api_url)
        except httpx.RequestError as e:
            logger.info("Network unavailable", extra={"log_type": "connectivity", "error": str(e)})
            return False
        return True

    async def run_job(self) -> SyncRunResult:
        """One scheduled tick: check connectivity, run the sync, log the outcome."""
        if not await self._connectivity_check():
            result = SyncRunResult()
            result.record_skipped("network unavailable")
            sync_run_total.labels(status=result.status.value).inc()
            logger.info("Skipping sync run: network unavailable", extra={"log_type": "sync_skipped"})
            return result

        return await self._run_exclusive()

    async def run_now(self) -> SyncRunResult:
        """Run one sync immediately, waiting for any run already in progress."""
        return await self._run_exclusive()

    async def _run_exclusive(self) -> SyncRunResult:
        if self._run_lock is None:
            self._run_lock = asyncio.Lock()
        if self._run_lock.locked():
            logger.info("Sync run in progress; waiting for it to finish", extra={"log_type": "sync_waiting"})
        async with self._run_lock:
            return await self._run_job_once()

    async def _run_job_once(self) -> SyncRunResult:
        try:
            result = await self._job(self.settings)
        except Exception as e:
            logger.error("Sync job raised", exc_info=True, extra={"log_type": "sync_job_error"})
            result = SyncRunResult()
            result.record_failure(f"{type(e).__name__}: {e}")
            sync_run_total.labels(status=result.status.value).inc()
            return result

        if result.succeeded:
            logger.info(f"[Scheduler] Sync succeeded (run {result.run_id})")
        else:
            step = result.failed_step.value if result.failed_step else "unknown"
            logger.error(f"[Scheduler] Sync failed at {step}: {result.error_message}")
        return result

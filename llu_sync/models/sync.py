"""Models for sync runs."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from llu_sync.models.glucose import NormalizedReading


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncStatus(str, Enum):
    """Outcome reported to the scheduler."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class SyncStep(str, Enum):
    """Steps of a single sync run, in execution order."""

    START = "start"
    FETCH_CONNECTIONS = "fetch_connections"
    PERSIST_TICKET = "persist_ticket"
    NORMALIZE = "normalize"
    WRITE_HEALTH_RECORD = "write_health_record"
    MIRROR_TO_WEARABLE = "mirror_to_wearable"
    DONE = "done"
    FAILED = "failed"


class SyncRunResult(BaseModel):
    """Result of one sync run."""

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Correlation id for the run")
    status: Optional[SyncStatus] = Field(None, description="Outcome, set when the run finishes")
    step: SyncStep = Field(SyncStep.START, description="Last step entered")
    failed_step: Optional[SyncStep] = Field(None, description="Step that raised, if the run failed")
    reading: Optional[NormalizedReading] = Field(None, description="Reading written during the run")
    mirrored: bool = Field(False, description="Whether the wearable push succeeded")
    error_message: Optional[str] = Field(None, description="Error message if the run failed")
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SyncStatus.SUCCESS

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or _utcnow()
        return (end - self.started_at).total_seconds()

    def record_step(self, step: SyncStep) -> None:
        self.step = step

    def record_completion(self) -> None:
        """Mark the run as completed."""
        self.step = SyncStep.DONE
        self.status = SyncStatus.SUCCESS
        self.finished_at = _utcnow()

    def record_failure(self, error_message: str) -> None:
        """Mark the run as failed at the current step."""
        self.failed_step = self.step
        self.step = SyncStep.FAILED
        self.status = SyncStatus.FAILURE
        self.error_message = error_message
        self.finished_at = _utcnow()

    def record_skipped(self, reason: str) -> None:
        self.status = SyncStatus.SKIPPED
        self.error_message = reason
        self.finished_at = _utcnow()

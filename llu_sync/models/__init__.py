"""Pydantic models and schemas."""

from llu_sync.models.libre import (
    AuthTicket,
    UserIdentity,
    Sensor,
    GlucoseMeasurement,
    Connection,
    ErrorDetail,
    LoginResult,
    ConnectionsResult,
)
from llu_sync.models.glucose import (
    NormalizedReading,
    BloodGlucoseRecord,
    TimestampSource,
    SpecimenSource,
    RelationToMeal,
)
from llu_sync.models.sync import (
    SyncRunResult,
    SyncStatus,
    SyncStep,
)

__all__ = [
    # LibreLinkUp wire models
    "AuthTicket",
    "UserIdentity",
    "Sensor",
    "GlucoseMeasurement",
    "Connection",
    "ErrorDetail",
    "LoginResult",
    "ConnectionsResult",

    # Glucose models
    "NormalizedReading",
    "BloodGlucoseRecord",
    "TimestampSource",
    "SpecimenSource",
    "RelationToMeal",

    # Sync run models
    "SyncRunResult",
    "SyncStatus",
    "SyncStep",
]

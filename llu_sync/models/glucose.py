"""Models for normalized glucose readings and the health records written from them."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class TimestampSource(str, Enum):
    """How a reading's instant was resolved."""

    PATTERN = "pattern"
    EPOCH_MILLIS = "epoch_millis"
    FALLBACK_NOW = "fallback_now"


class SpecimenSource(str, Enum):
    """Where the glucose sample was taken from."""

    UNKNOWN = "unknown"
    INTERSTITIAL_FLUID = "interstitial_fluid"
    CAPILLARY_BLOOD = "capillary_blood"
    PLASMA = "plasma"
    SERUM = "serum"
    TEARS = "tears"
    WHOLE_BLOOD = "whole_blood"


class RelationToMeal(str, Enum):
    UNKNOWN = "unknown"
    GENERAL = "general"
    FASTING = "fasting"
    BEFORE_MEAL = "before_meal"
    AFTER_MEAL = "after_meal"


class NormalizedReading(BaseModel):
    """Canonical reading: an absolute instant with its UTC offset, and a mg/dL value."""

    instant: datetime = Field(..., description="Timezone-aware instant of the reading")
    value_mg_per_dl: int = Field(..., description="Blood glucose in mg/dL")
    timestamp_source: TimestampSource = Field(..., description="Which step of the timestamp chain produced the instant")

    @field_validator("instant")
    @classmethod
    def validate_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("Reading instant must carry a UTC offset")
        return value

    @property
    def zone_offset(self) -> timedelta:
        return self.instant.utcoffset()

    @property
    def is_fallback(self) -> bool:
        return self.timestamp_source == TimestampSource.FALLBACK_NOW


class BloodGlucoseRecord(BaseModel):
    """Record handed to the health store."""

    user_id: str = Field(..., description="Account the reading belongs to")
    time: datetime = Field(..., description="Timezone-aware time of the reading")
    zone_offset_seconds: int = Field(..., description="UTC offset of the reading in seconds")
    value_mg_per_dl: int = Field(..., description="Blood glucose value in mg/dL", ge=0)
    specimen_source: SpecimenSource = Field(SpecimenSource.INTERSTITIAL_FLUID)
    relation_to_meal: RelationToMeal = Field(RelationToMeal.UNKNOWN)
    data_origin: str = Field(..., description="Identifier of the app that wrote the record")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("time")
    @classmethod
    def validate_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("Record time must carry a UTC offset")
        return value

    @classmethod
    def from_reading(cls, reading: NormalizedReading, user_id: str, data_origin: str) -> "BloodGlucoseRecord":
        return cls(
            user_id=user_id,
            time=reading.instant,
            zone_offset_seconds=int(reading.zone_offset.total_seconds()),
            value_mg_per_dl=reading.value_mg_per_dl,
            data_origin=data_origin,
        )

    def to_dynamodb_item(self) -> dict:
        """Convert the model to a DynamoDB item."""
        return {
            "user_id": self.user_id,
            # UTC so the range key sorts chronologically
            "timestamp": self.time.astimezone(timezone.utc).isoformat(),
            "zone_offset_seconds": self.zone_offset_seconds,
            "value_mg_per_dl": self.value_mg_per_dl,
            "specimen_source": self.specimen_source.value,
            "relation_to_meal": self.relation_to_meal.value,
            "data_origin": self.data_origin,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "BloodGlucoseRecord":
        """Create a BloodGlucoseRecord instance from a DynamoDB item."""
        offset = int(item.get("zone_offset_seconds", 0))
        time = datetime.fromisoformat(item["timestamp"]).astimezone(timezone(timedelta(seconds=offset)))
        created_at = (
            datetime.fromisoformat(item["created_at"]) if "created_at" in item else datetime.now(timezone.utc)
        )
        return cls(
            user_id=item["user_id"],
            time=time,
            zone_offset_seconds=offset,
            value_mg_per_dl=int(item["value_mg_per_dl"]),
            specimen_source=SpecimenSource(item.get("specimen_source", SpecimenSource.INTERSTITIAL_FLUID.value)),
            relation_to_meal=RelationToMeal(item.get("relation_to_meal", RelationToMeal.UNKNOWN.value)),
            data_origin=item.get("data_origin", ""),
            created_at=created_at,
        )

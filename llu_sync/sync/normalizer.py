"""
Reading normalization: resolve a raw FactoryTimestamp into an absolute instant.

The server reports timestamps either as "M/d/yyyy h:m:s AM|PM" in UTC or as
epoch milliseconds. Resolution tries each parser in order and falls back to
the current time, so it always yields a usable instant:

    ParsedAsPattern -> ParsedAsEpochMillis -> FallbackNow

FallbackNow discards the reported time; it is logged and counted so it can be
spotted in tests and in production.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal, Optional, Sequence, Union

from pydantic import BaseModel

from llu_sync.metrics import timestamp_resolution_total
from llu_sync.models.glucose import NormalizedReading, TimestampSource
from llu_sync.models.libre import GlucoseMeasurement

logger = logging.getLogger(__name__)

FACTORY_TIMESTAMP_FORMAT = "%m/%d/%Y %I:%M:%S %p"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_MILLIS_PATTERN = re.compile(r"^[+-]?\d+$")
_MERIDIEM_PATTERN = re.compile(r"(?i)\b(am|pm)$")


class ParsedAsPattern(BaseModel):
    kind: Literal["pattern"] = "pattern"
    instant: datetime


class ParsedAsEpochMillis(BaseModel):
    kind: Literal["epoch_millis"] = "epoch_millis"
    instant: datetime


class FallbackNow(BaseModel):
    kind: Literal["fallback_now"] = "fallback_now"
    instant: datetime
    reason: Literal["missing", "unparseable"]


TimestampResolution = Union[ParsedAsPattern, ParsedAsEpochMillis, FallbackNow]

_SOURCES = {
    "pattern": TimestampSource.PATTERN,
    "epoch_millis": TimestampSource.EPOCH_MILLIS,
    "fallback_now": TimestampSource.FALLBACK_NOW,
}


def local_now() -> datetime:
    """Current wall-clock time in the local system zone."""
    return datetime.now().astimezone()


def parse_factory_pattern(raw: str) -> Optional[ParsedAsPattern]:
    """'3/21/2024 2:05:30 PM' at UTC offset zero."""
    text = _MERIDIEM_PATTERN.sub(lambda m: m.group(1).upper(), raw.strip())
    try:
        parsed = datetime.strptime(text, FACTORY_TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return ParsedAsPattern(instant=parsed.replace(tzinfo=timezone.utc))


def parse_epoch_millis(raw: str) -> Optional[ParsedAsEpochMillis]:
    """Integer milliseconds since the epoch, rendered in the local zone."""
    text = raw.strip()
    if not _MILLIS_PATTERN.match(text):
        return None
    try:
        instant = (EPOCH + timedelta(milliseconds=int(text))).astimezone()
    except (OverflowError, ValueError, OSError):
        return None
    return ParsedAsEpochMillis(instant=instant)


PARSERS: Sequence[Callable[[str], Optional[TimestampResolution]]] = (
    parse_factory_pattern,
    parse_epoch_millis,
)


def resolve_timestamp(raw: Optional[str], now: Optional[Callable[[], datetime]] = None) -> TimestampResolution:
    """
    Resolve a raw FactoryTimestamp. Never raises.

    Args:
        raw: The timestamp string as reported, or None
        now: Clock used for the fallback (defaults to local wall-clock time)

    Returns:
        TimestampResolution: the first parser that matched, else FallbackNow
    """
    clock = now or local_now
    if raw is None or not str(raw).strip():
        return FallbackNow(instant=clock(), reason="missing")
    for parser in PARSERS:
        resolution = parser(str(raw))
        if resolution is not None:
            return resolution
    return FallbackNow(instant=clock(), reason="unparseable")


def normalize_measurement(measurement: GlucoseMeasurement, now: Optional[Callable[[], datetime]] = None) -> NormalizedReading:
    """Pair the resolved instant with the reading's mg/dL value."""
    resolution = resolve_timestamp(measurement.factory_timestamp, now=now)
    timestamp_resolution_total.labels(kind=resolution.kind).inc()
    if isinstance(resolution, FallbackNow):
        logger.warning(
            "Reading timestamp could not be resolved; using current time",
            extra={
                "log_type": "timestamp_fallback",
                "reason": resolution.reason,
                "raw_timestamp": measurement.factory_timestamp,
            },
        )
    return NormalizedReading(
        instant=resolution.instant,
        value_mg_per_dl=measurement.value_in_mg_per_dl,
        timestamp_source=_SOURCES[resolution.kind],
    )

"""Best-effort mirror of the latest reading to the companion wearable channel."""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from llu_sync.metrics import wearable_push_total
from llu_sync.models.libre import GlucoseMeasurement
from llu_sync.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

GLUCOSE_PATH = "/glucose"


class WearableMirror:
    """
    Pushes a key/value data map to the companion device channel.

    The channel is optional: with no endpoint configured it is unavailable and
    pushes are skipped. Errors are logged and swallowed; push() never raises.
    """

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings or get_settings()
        self.timeout = self.settings.wearable_timeout_seconds
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self.settings.wearable_url)

    def build_data_map(self, measurement: GlucoseMeasurement) -> Dict[str, Any]:
        prefix = self.settings.app_id
        return {
            f"{prefix}.glucose": float(measurement.value),
            f"{prefix}.trendArrow": int(measurement.trend_arrow),
            f"{prefix}.color": int(measurement.measurement_color),
            f"{prefix}.units": int(measurement.glucose_units),
            f"{prefix}.timestamp": measurement.factory_timestamp,
        }

    async def push(self, measurement: GlucoseMeasurement, correlation_id: str = None) -> bool:
        """
        Push the measurement once, waiting at most `wearable_timeout_seconds`.

        Returns:
            bool: True if the channel accepted the data map
        """
        if not self.available:
            wearable_push_total.labels(status="unavailable").inc()
            logger.debug("Wearable channel not configured; skipping mirror", extra={"correlation_id": correlation_id})
            return False

        payload = {"path": GLUCOSE_PATH, "data": self.build_data_map(measurement)}
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.wearable_url.rstrip("/"),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await asyncio.wait_for(client.put(GLUCOSE_PATH, json=payload), timeout=self.timeout)
                response.raise_for_status()
        except Exception as e:
            wearable_push_total.labels(status="error").inc()
            logger.warning(
                "Wearable mirror failed",
                extra={
                    "log_type": "wearable_push_error",
                    "correlation_id": correlation_id,
                    "error": f"{type(e).__name__}: {e}",
                },
            )
            return False

        wearable_push_total.labels(status="success").inc()
        logger.info("Mirrored reading to wearable", extra={"log_type": "wearable_push", "correlation_id": correlation_id})
        return True

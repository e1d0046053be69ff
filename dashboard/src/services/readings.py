"""
Latest-reading service with a read-through Redis cache.

Fetches the newest telemetry row of a device from the compute collaborator,
decodes it at the boundary, evaluates health alerts, and caches the resulting
:class:`~dashboard.src.models.LatestReading` in Redis under
``latest:{device_id}`` for a short TTL. Redis is best-effort: on any cache
failure the collaborator is queried directly.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError

from dashboard.src.cache.redis_client import delete_key, read_json, write_json
from dashboard.src.decoder import decode_sample
from dashboard.src.devices import DEFAULT_CONTROLLER_ID, normalize_device_id
from dashboard.src.models import LatestReading
from dashboard.src.services.alerts import evaluate_alerts

logger = logging.getLogger(__name__)

LatestFetcher = Callable[[str], Awaitable[dict[str, Any] | None]]


def cache_key(device: str) -> str:
    """Return the Redis key of a device's latest reading."""
    return f"latest:{device}"


def build_reading(device: str, row: dict[str, Any]) -> LatestReading:
    """Decode a raw row and attach its alerts."""
    sample = decode_sample(row)
    return LatestReading(
        device_id=device,
        timestamp=sample.timestamp,
        values=dict(sample.numbers),
        labels=dict(sample.texts),
        alerts=evaluate_alerts(sample),
    )


class LatestReadingService:
    """Read-through cache in front of the latest-reading compute function.

    Args:
        fetch_latest: Called as ``await fetch_latest(device_suffix)``;
            returns the newest raw row or None.
        redis_url: Redis connection URL.
        ttl_s: Cache TTL in seconds.
        controller_id: Literal identifying the pack controller.
    """

    def __init__(
        self,
        fetch_latest: LatestFetcher,
        *,
        redis_url: str,
        ttl_s: int,
        controller_id: str = DEFAULT_CONTROLLER_ID,
    ) -> None:
        self._fetch_latest = fetch_latest
        self._redis_url = redis_url
        self._ttl_s = ttl_s
        self._controller_id = controller_id

    async def get_latest(self, device_id: str) -> LatestReading | None:
        """Return the latest reading of a device, or None if it has none.

        Raises:
            ValueError: If *device_id* is not a valid identifier.
            ComputeError: If the collaborator call fails on a cache miss.
        """
        device = normalize_device_id(device_id, self._controller_id)
        key = cache_key(device)

        cached = await read_json(self._redis_url, key)
        if cached is not None:
            try:
                return LatestReading.model_validate(cached)
            except ValidationError:
                logger.warning("Ignoring malformed cached reading for %s", device)

        row = await self._fetch_latest(device)
        if row is None:
            logger.info("No latest reading available for %s", device)
            return None

        reading = build_reading(device, row)
        await write_json(self._redis_url, key, reading.model_dump(mode="json"), self._ttl_s)
        return reading

    async def invalidate(self, device_id: str) -> None:
        """Drop the cached reading of a device."""
        device = normalize_device_id(device_id, self._controller_id)
        await delete_key(self._redis_url, cache_key(device))

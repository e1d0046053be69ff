"""
Request cache and coordinator for per-device telemetry fetches.

Ensures at most one outstanding compute invocation per ``(device, time range)``
key, serves cached results without touching the collaborator, and broadcasts
results and progress events to every subscriber of a device.

Keys and subscriber sets use the normalised device id (``0x440``); progress
messages echo the identifier as the caller supplied it. Data subscribers are
indexed by device only, so every completed fetch for a device reaches them
regardless of its time range.

Operations:
- subscribe(device_id, on_data, on_progress): register callbacks.
- fetch_data(device_id, time_range, force): coalesced, cached fetch.
- get_cached_data / is_loading: pure reads.
- clear_cache(device_id, time_range): scoped invalidation.
- preload(device_ids, time_range): warm the cache concurrently.

The coordinator is an ordinary object built by the application lifespan and
injected where needed; tests build isolated instances.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from dashboard.src.clients.compute import ComputeError
from dashboard.src.devices import DEFAULT_CONTROLLER_ID, is_controller, normalize_device_id
from dashboard.src.models import DEFAULT_TIME_RANGE, VALID_TIME_RANGES, ProgressEvent
from dashboard.src.services.reshaper import shape_bms_result

logger = logging.getLogger(__name__)

DataCallback = Callable[[Any], None]
ProgressCallback = Callable[[ProgressEvent], None]
ComputeInvoker = Callable[[str, str], Awaitable[Any]]
"""Collaborator contract: ``invoke(device_suffix, time_range) -> raw result``."""

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PROGRESS_STEPS: tuple[tuple[int, str], ...] = (
    (10, "Initializing compute request..."),
    (30, "Processing battery data..."),
    (60, "Calculating energy metrics..."),
    (80, "Preparing response..."),
)
"""Synthetic checkpoints emitted while a fetch is outstanding."""

DEFAULT_PROGRESS_STEP_INTERVAL_S: float = 0.5


def request_key(device: str, time_range: str) -> str:
    """Return the cache / in-flight key for a normalised device and range."""
    return f"{device}-{time_range}"


def device_of_key(key: str) -> str:
    """Return the normalised device part of a request key."""
    return key.rpartition("-")[0]


class FetchCoordinator:
    """Coalescing, caching fetch coordinator with subscriber broadcast.

    Args:
        invoke: The compute collaborator, called as
            ``await invoke(device_suffix, time_range)``.
        shape_bms: Transforms a raw BMS result into the cached value.
            Controller results are cached as returned.
        controller_id: Literal identifying the pack controller.
        progress_step_interval_s: Delay between synthetic progress events.
        in_flight_timeout_s: Optional upper bound on a collaborator call.
            ``None`` waits indefinitely, leaving the key in flight until
            the collaborator settles.
    """

    def __init__(
        self,
        invoke: ComputeInvoker,
        *,
        shape_bms: Callable[[Any], Any] = shape_bms_result,
        controller_id: str = DEFAULT_CONTROLLER_ID,
        progress_step_interval_s: float = DEFAULT_PROGRESS_STEP_INTERVAL_S,
        in_flight_timeout_s: float | None = None,
    ) -> None:
        self._invoke = invoke
        self._shape_bms = shape_bms
        self._controller_id = controller_id
        self._progress_step_interval_s = progress_step_interval_s
        self._in_flight_timeout_s = in_flight_timeout_s

        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._cache: dict[str, Any] = {}
        self._latest_key: dict[str, str] = {}
        self._data_subscribers: dict[str, set[DataCallback]] = {}
        self._progress_subscribers: dict[str, set[ProgressCallback]] = {}

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        device_id: str,
        on_data: DataCallback,
        on_progress: ProgressCallback | None = None,
    ) -> Callable[[], None]:
        """Register data and progress callbacks for a device.

        If a result for the device is already cached (under whichever time
        range completed most recently), *on_data* is called with it before
        this method returns.

        Args:
            device_id: Device identifier in any accepted spelling.
            on_data: Called with every result broadcast for the device.
            on_progress: Optional; called with every ProgressEvent.

        Returns:
            A function removing both callbacks. Calling it again is a no-op.
        """
        device = self._normalize(device_id)
        self._data_subscribers.setdefault(device, set()).add(on_data)
        if on_progress is not None:
            self._progress_subscribers.setdefault(device, set()).add(on_progress)

        latest = self._latest_key.get(device)
        if latest is not None and latest in self._cache:
            self._safe_call(on_data, self._cache[latest], device)

        unsubscribed = False

        def unsubscribe() -> None:
            nonlocal unsubscribed
            if unsubscribed:
                return
            unsubscribed = True
            _discard(self._data_subscribers, device, on_data)
            if on_progress is not None:
                _discard(self._progress_subscribers, device, on_progress)

        return unsubscribe

    def subscriber_count(self, device_id: str) -> int:
        """Return the number of data subscribers of a device."""
        return len(self._data_subscribers.get(self._normalize(device_id), ()))

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch_data(
        self,
        device_id: str,
        time_range: str = DEFAULT_TIME_RANGE,
        force: bool = False,
    ) -> Any:
        """Return data for a device and time range, fetching if needed.

        Concurrent calls for the same key share one collaborator invocation
        unless *force* is set. Cached results are returned (and re-broadcast
        to data subscribers) without invoking the collaborator.

        Args:
            device_id: Device identifier in any accepted spelling.
            time_range: One of the dashboard time range literals.
            force: Bypass both the in-flight request and the cache.

        Returns:
            The shaped result (a StructuredSeries for BMS devices, the raw
            payload for the controller).

        Raises:
            ValueError: If the device id or time range is invalid.
            ComputeError: If the collaborator fails. Nothing is cached.
        """
        if time_range not in VALID_TIME_RANGES:
            raise ValueError(
                f"Invalid time range '{time_range}'. "
                f"Must be one of: {sorted(VALID_TIME_RANGES)}."
            )
        device = self._normalize(device_id)
        key = request_key(device, time_range)

        pending = self._in_flight.get(key)
        if pending is not None and not force:
            logger.info("Request already in progress for %s", key)
            return await asyncio.shield(pending)

        if key in self._cache and not force:
            logger.info("Returning cached data for %s", key)
            cached = self._cache[key]
            self._notify_data(device, cached)
            return cached

        logger.info("Starting background fetch for %s (force=%s)", key, force)
        self._notify_progress(
            device,
            ProgressEvent(
                status="starting",
                message=f"Fetching data for Battery {device_id}...",
                progress=0,
            ),
        )
        task = asyncio.create_task(self._perform_fetch(device_id, device, time_range, key))
        self._in_flight[key] = task
        return await asyncio.shield(task)

    async def preload(
        self,
        device_ids: Iterable[str],
        time_range: str = DEFAULT_TIME_RANGE,
    ) -> list[Any]:
        """Fetch several devices concurrently, tolerating failures.

        Returns:
            One entry per device: the result, or ``None`` if its fetch failed.
        """
        ids = list(device_ids)
        logger.info("Preloading data for %d device(s): %s", len(ids), ids)
        results = await asyncio.gather(*(self._preload_one(d, time_range) for d in ids))
        logger.info("Preload completed: %d requests processed", len(results))
        return list(results)

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------

    def get_cached_data(
        self, device_id: str, time_range: str = DEFAULT_TIME_RANGE
    ) -> Any | None:
        """Return the cached result for a key without fetching."""
        return self._cache.get(request_key(self._normalize(device_id), time_range))

    def is_loading(self, device_id: str, time_range: str = DEFAULT_TIME_RANGE) -> bool:
        """Return True if a fetch for the key is in flight."""
        return request_key(self._normalize(device_id), time_range) in self._in_flight

    def clear_cache(
        self, device_id: str | None = None, time_range: str | None = None
    ) -> None:
        """Invalidate cached results.

        With both arguments exactly one entry is removed; with only
        *device_id* every time range of that device is removed; with
        neither the whole cache is cleared. In-flight fetches are untouched.
        """
        if device_id and time_range:
            self._cache.pop(request_key(self._normalize(device_id), time_range), None)
        elif device_id:
            prefix = f"{self._normalize(device_id)}-"
            for key in [k for k in self._cache if k.startswith(prefix)]:
                del self._cache[key]
        else:
            self._cache.clear()

        self._latest_key = {
            device: key for device, key in self._latest_key.items() if key in self._cache
        }

    def cached_keys(self) -> list[str]:
        """Return the keys currently cached."""
        return sorted(self._cache)

    def in_flight_keys(self) -> list[str]:
        """Return the keys currently being fetched."""
        return sorted(self._in_flight)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalize(self, device_id: str) -> str:
        return normalize_device_id(device_id, self._controller_id)

    async def _perform_fetch(
        self, display_id: str, device: str, time_range: str, key: str
    ) -> Any:
        """Run one collaborator invocation for a key and publish the outcome."""
        ticker = asyncio.create_task(self._emit_synthetic_progress(device))
        try:
            raw = await self._call_collaborator(device, time_range)
            result = self._shape(device, raw)
        except Exception as exc:
            ticker.cancel()
            logger.warning("Background fetch failed for %s: %s", key, exc)
            self._notify_progress(
                device,
                ProgressEvent(
                    status="error",
                    message=f"Failed to load data for Battery {display_id}: {exc}",
                    progress=0,
                ),
            )
            raise
        finally:
            ticker.cancel()
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

        self._cache[key] = result
        self._latest_key[device] = key
        self._notify_data(device, result)
        self._notify_progress(
            device,
            ProgressEvent(
                status="completed",
                message=f"Data loaded for Battery {display_id}",
                progress=100,
            ),
        )
        logger.info("Background fetch completed for %s", key)
        return result

    async def _call_collaborator(self, device: str, time_range: str) -> Any:
        call = self._invoke(device, time_range)
        if self._in_flight_timeout_s is None:
            raw = await call
        else:
            try:
                raw = await asyncio.wait_for(call, timeout=self._in_flight_timeout_s)
            except TimeoutError as exc:
                raise ComputeError(
                    f"Compute request timed out after {self._in_flight_timeout_s}s"
                ) from exc
        if raw is None:
            raise ComputeError("No response from compute function")
        return raw

    def _shape(self, device: str, raw: Any) -> Any:
        if is_controller(device, self._controller_id):
            return raw
        return self._shape_bms(raw)

    async def _emit_synthetic_progress(self, device: str) -> None:
        """Emit fixed UI checkpoints; cancelled once the fetch settles."""
        for index, (progress, message) in enumerate(PROGRESS_STEPS):
            if index > 0:
                await asyncio.sleep(self._progress_step_interval_s)
            self._notify_progress(
                device,
                ProgressEvent(status="processing", message=message, progress=progress),
            )

    async def _preload_one(self, device_id: str, time_range: str) -> Any | None:
        try:
            return await self.fetch_data(device_id, time_range)
        except Exception as exc:
            logger.warning("Preload failed for %s: %s", device_id, exc)
            return None

    def _notify_data(self, device: str, data: Any) -> None:
        for callback in list(self._data_subscribers.get(device, ())):
            self._safe_call(callback, data, device)

    def _notify_progress(self, device: str, event: ProgressEvent) -> None:
        for callback in list(self._progress_subscribers.get(device, ())):
            self._safe_call(callback, event, device)

    @staticmethod
    def _safe_call(callback: Callable[[Any], None], value: Any, device: str) -> None:
        try:
            callback(value)
        except Exception:
            logger.error("Error in subscriber callback for %s", device, exc_info=True)


def _discard(registry: dict[str, set[Any]], device: str, callback: Any) -> None:
    """Remove a callback from a registry, dropping empty device entries."""
    callbacks = registry.get(device)
    if callbacks is None:
        return
    callbacks.discard(callback)
    if not callbacks:
        del registry[device]

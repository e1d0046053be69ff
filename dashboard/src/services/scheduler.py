"""
Shared polling scheduler for latest-reading updates.

Runs at most one polling loop per device, however many observers are
watching it. The first observer starts the loop; the last unsubscribe stops
it. Each tick awaits the injected poll function and broadcasts the result to
every observer of the device. A failed poll is logged and the loop carries on
at the same fixed interval.

Loops are ordinary asyncio tasks that sleep on a per-loop stop event, so a
stop request takes effect without waiting out the interval.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from dashboard.src.devices import DEFAULT_CONTROLLER_ID, normalize_device_id

logger = logging.getLogger(__name__)

Observer = Callable[[Any], None]
PollFunction = Callable[[str], Awaitable[Any]]


@dataclass
class _DeviceLoop:
    observers: set[Observer] = field(default_factory=set)
    stop: asyncio.Event = field(default_factory=asyncio.Event)
    task: asyncio.Task[None] | None = None


class PollingScheduler:
    """Reference-counted per-device polling loops.

    Args:
        poll: Coroutine function called as ``await poll(device_id)`` with the
            normalised device id.
        interval_s: Seconds between the end of one poll and the next.
        controller_id: Literal identifying the pack controller.
    """

    def __init__(
        self,
        poll: PollFunction,
        *,
        interval_s: float,
        controller_id: str = DEFAULT_CONTROLLER_ID,
    ) -> None:
        self._poll = poll
        self._interval_s = interval_s
        self._controller_id = controller_id
        self._loops: dict[str, _DeviceLoop] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def subscribe(self, device_id: str, observer: Observer) -> Callable[[], None]:
        """Add an observer, starting the device loop if it is the first.

        Must be called from within a running event loop.

        Returns:
            An idempotent function removing the observer.
        """
        device = normalize_device_id(device_id, self._controller_id)
        loop = self._loops.get(device)
        if loop is None:
            loop = _DeviceLoop()
            self._loops[device] = loop
            loop.task = asyncio.create_task(
                self._run(device, loop), name=f"poll-{device}"
            )
            self._tasks.add(loop.task)
            loop.task.add_done_callback(self._tasks.discard)
            logger.info(
                "Polling started for %s (interval=%ss)", device, self._interval_s
            )
        loop.observers.add(observer)

        removed = False

        def unsubscribe() -> None:
            nonlocal removed
            if removed:
                return
            removed = True
            loop.observers.discard(observer)
            if not loop.observers and self._loops.get(device) is loop:
                del self._loops[device]
                loop.stop.set()
                logger.info("Polling stopped for %s (no observers)", device)

        return unsubscribe

    def observer_count(self, device_id: str) -> int:
        """Return the number of observers polling a device."""
        device = normalize_device_id(device_id, self._controller_id)
        loop = self._loops.get(device)
        return len(loop.observers) if loop else 0

    def active_devices(self) -> list[str]:
        """Return the normalised ids of devices with a running loop."""
        return sorted(self._loops)

    async def shutdown(self) -> None:
        """Stop every loop and wait for the tasks to finish."""
        for loop in self._loops.values():
            loop.stop.set()
        self._loops.clear()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("Polling scheduler stopped")

    async def _run(self, device: str, loop: _DeviceLoop) -> None:
        while not loop.stop.is_set():
            try:
                result = await self._poll(device)
            except Exception as exc:
                logger.warning("Poll failed for %s: %s", device, exc)
            else:
                self._broadcast(device, loop, result)
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(loop.stop.wait(), timeout=self._interval_s)

    @staticmethod
    def _broadcast(device: str, loop: _DeviceLoop, result: Any) -> None:
        for observer in list(loop.observers):
            try:
                observer(result)
            except Exception:
                logger.error("Error in poll observer for %s", device, exc_info=True)

"""Per-mission registry of live subscriber handles."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from libs.core.application.contracts import SubscriberHandle
from libs.core.application.errors import TransportError
from libs.core.application.messages import subscribed_message

logger = logging.getLogger(__name__)

DEFAULT_SEND_TIMEOUT_SEC = 5.0


class SubscriberRegistry:
    """Tracks which handles receive telemetry for which mission.

    A handle belongs to at most one mission; subscribing it again moves it.
    Closed handles are skipped by ``broadcast`` and removed only when their
    own disconnect is reported.
    """

    def __init__(self, send_timeout_sec: float = DEFAULT_SEND_TIMEOUT_SEC) -> None:
        self._send_timeout_sec = send_timeout_sec
        self._lock = threading.Lock()
        self._by_mission: dict[str, set[SubscriberHandle]] = {}
        self._mission_of: dict[SubscriberHandle, str] = {}

    async def subscribe(
        self,
        mission_id: str,
        handle: SubscriberHandle,
        snapshot: dict[str, Any] | None = None,
    ) -> None:
        with self._lock:
            previous = self._mission_of.get(handle)
            if previous is not None:
                self._discard(previous, handle)

        # acknowledgement and snapshot go out before the first telemetry tick
        await self._deliver(mission_id, handle, subscribed_message(mission_id))
        if snapshot is not None:
            await self._deliver(mission_id, handle, snapshot)

        with self._lock:
            self._by_mission.setdefault(mission_id, set()).add(handle)
            self._mission_of[handle] = mission_id
        logger.info("Subscriber added to mission %s", mission_id)

    def unsubscribe(self, mission_id: str, handle: SubscriberHandle) -> bool:
        with self._lock:
            if self._mission_of.get(handle) != mission_id:
                return False
            self._discard(mission_id, handle)
        logger.info("Subscriber removed from mission %s", mission_id)
        return True

    def remove_handle(self, handle: SubscriberHandle) -> str | None:
        with self._lock:
            mission_id = self._mission_of.get(handle)
            if mission_id is None:
                return None
            self._discard(mission_id, handle)
        logger.info("Subscriber disconnected from mission %s", mission_id)
        return mission_id

    def mission_of(self, handle: SubscriberHandle) -> str | None:
        with self._lock:
            return self._mission_of.get(handle)

    async def broadcast(self, mission_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every open handle; return successful deliveries."""
        with self._lock:
            handles = list(self._by_mission.get(mission_id, ()))
        if not handles:
            return 0

        delivered = await asyncio.gather(
            *(self._deliver(mission_id, handle, message) for handle in handles)
        )
        return sum(1 for ok in delivered if ok)

    def count_for(self, mission_id: str) -> int:
        with self._lock:
            return len(self._by_mission.get(mission_id, ()))

    def count_all(self) -> int:
        with self._lock:
            return len(self._mission_of)

    def clear(self) -> None:
        with self._lock:
            self._by_mission.clear()
            self._mission_of.clear()

    def _discard(self, mission_id: str, handle: SubscriberHandle) -> None:
        handles = self._by_mission.get(mission_id)
        if handles is not None:
            handles.discard(handle)
            if not handles:
                del self._by_mission[mission_id]
        self._mission_of.pop(handle, None)

    async def _deliver(
        self,
        mission_id: str,
        handle: SubscriberHandle,
        message: dict[str, Any],
    ) -> bool:
        if not handle.is_open:
            return False
        try:
            await asyncio.wait_for(handle.send(message), timeout=self._send_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(
                "Delivery to subscriber of mission %s timed out after %.1fs",
                mission_id,
                self._send_timeout_sec,
            )
            return False
        except TransportError as error:
            logger.warning(
                "Delivery to subscriber of mission %s failed: %s", mission_id, error
            )
            return False
        return True

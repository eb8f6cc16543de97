from __future__ import annotations

import asyncio
import logging
import random
import secrets
import string
from datetime import datetime, timezone

from libs.core.application.contracts import (
    MissionRepository,
    SubscriberHandle,
    TelemetryRepository,
)
from libs.core.application.errors import (
    MissionAlreadyCompletedError,
    MissionNotFoundError,
    TransportError,
)
from libs.core.application.messages import (
    error_message,
    mission_snapshot_message,
)
from libs.core.application.subscriber_registry import SubscriberRegistry
from libs.core.application.telemetry_generator import GeneratorConfig, initial_reading
from libs.core.application.telemetry_scheduler import TelemetryScheduler
from libs.core.domain.entities import Mission, MissionStatus, TelemetrySample

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100
_ID_ALPHABET = string.digits + string.ascii_lowercase


class MissionService:
    """Coordinates mission lifecycle with telemetry timers and subscribers."""

    def __init__(
        self,
        mission_repository: MissionRepository,
        telemetry_repository: TelemetryRepository,
        subscribers: SubscriberRegistry,
        scheduler: TelemetryScheduler,
        generator_config: GeneratorConfig = GeneratorConfig(),
        rng: random.Random | None = None,
    ) -> None:
        self._missions = mission_repository
        self._telemetry = telemetry_repository
        self._subscribers = subscribers
        self._scheduler = scheduler
        self._generator_config = generator_config
        self._rng = rng or random.Random()
        self._locks: dict[str, asyncio.Lock] = {}

    async def start_mission(self) -> Mission:
        now = _utc_now()
        mission = Mission(
            mission_id=_generate_mission_id(now),
            status=MissionStatus.ACTIVE,
            start_time=now,
            created_at=now,
        )
        await asyncio.to_thread(self._missions.create, mission)
        logger.info("Mission created: %s", mission.mission_id)

        self._locks[mission.mission_id] = asyncio.Lock()
        seed = initial_reading(self._rng, self._generator_config)
        self._scheduler.start(mission.mission_id, seed)
        return mission

    async def get_mission(self, mission_id: str) -> Mission | None:
        return await asyncio.to_thread(self._missions.get, mission_id)

    async def list_missions(self) -> list[Mission]:
        return await asyncio.to_thread(self._missions.list_all)

    async def get_telemetry_history(
        self,
        mission_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[TelemetrySample]:
        if await self.get_mission(mission_id) is None:
            raise MissionNotFoundError(mission_id)
        return await asyncio.to_thread(self._telemetry.history, mission_id, limit)

    async def end_mission(self, mission_id: str) -> Mission:
        async with self._lock_for(mission_id):
            mission = await self.get_mission(mission_id)
            if mission is None:
                raise MissionNotFoundError(mission_id)
            if not mission.is_active:
                raise MissionAlreadyCompletedError(mission_id)

            await self._scheduler.stop(mission_id)
            ended = await asyncio.to_thread(
                self._missions.complete, mission_id, _utc_now()
            )
            self._locks.pop(mission_id, None)

        if ended is None:
            raise MissionNotFoundError(mission_id)
        logger.info(
            "Mission ended: %s (flight time %ss)",
            mission_id,
            ended.total_flight_time,
        )
        return ended

    async def subscribe(self, mission_id: str, handle: SubscriberHandle) -> bool:
        async with self._lock_for(mission_id):
            mission = await self.get_mission(mission_id)
            if mission is None:
                logger.info("Subscribe rejected, mission not found: %s", mission_id)
                await _send_quietly(
                    handle, error_message("Mission not found", mission_id)
                )
                return False
            if not mission.is_active:
                await _send_quietly(
                    handle, error_message("Mission already completed", mission_id)
                )
                return False

            await self._subscribers.subscribe(
                mission_id,
                handle,
                snapshot=mission_snapshot_message(mission, _utc_now()),
            )
        return True

    def unsubscribe(self, mission_id: str, handle: SubscriberHandle) -> bool:
        return self._subscribers.unsubscribe(mission_id, handle)

    def disconnect(self, handle: SubscriberHandle) -> None:
        self._subscribers.remove_handle(handle)

    def connected_clients(self, mission_id: str | None = None) -> int:
        if mission_id is None:
            return self._subscribers.count_all()
        return self._subscribers.count_for(mission_id)

    async def get_status(self) -> dict[str, int]:
        missions = await self.list_missions()
        return {
            "totalMissions": len(missions),
            "activeMissions": sum(1 for mission in missions if mission.is_active),
            "connectedClients": self._subscribers.count_all(),
        }

    async def shutdown(self) -> None:
        await self._scheduler.shutdown()
        self._subscribers.clear()
        self._locks.clear()
        logger.info("Mission service runtime state cleared")

    def _lock_for(self, mission_id: str) -> asyncio.Lock:
        # only missions started by this process share a lock; unknown,
        # completed or pre-restart ids get a throwaway one
        lock = self._locks.get(mission_id)
        return lock if lock is not None else asyncio.Lock()


async def _send_quietly(handle: SubscriberHandle, message: dict[str, object]) -> None:
    try:
        await handle.send(message)
    except TransportError as error:
        logger.warning("Could not notify subscriber: %s", error)


def _generate_mission_id(now: datetime) -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"MISSION_{int(now.timestamp() * 1000)}_{suffix}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

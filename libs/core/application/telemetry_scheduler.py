"""Per-mission periodic telemetry generation, persistence and fan-out."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from libs.core.application.contracts import TelemetryRepository
from libs.core.application.errors import TelemetryPersistenceError
from libs.core.application.messages import telemetry_message
from libs.core.application.subscriber_registry import SubscriberRegistry
from libs.core.application.telemetry_generator import GeneratorConfig, next_reading
from libs.core.domain.entities import TelemetryReading, TelemetrySample

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_SEC = 2.0


@dataclass
class _MissionTimer:
    reading: TelemetryReading
    stop_requested: asyncio.Event
    task: asyncio.Task | None = None
    ticks: int = 0


class TelemetryScheduler:
    """Runs one asyncio task per active mission.

    Each tick advances the mission's reading by one generator step, appends
    the sample to the telemetry repository and broadcasts the same sample to
    the mission's subscribers. ``stop`` waits for an in-flight tick to finish,
    so no tick starts after it returns.
    """

    def __init__(
        self,
        telemetry_repository: TelemetryRepository,
        subscribers: SubscriberRegistry,
        interval_sec: float = DEFAULT_TICK_INTERVAL_SEC,
        generator_config: GeneratorConfig = GeneratorConfig(),
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._telemetry = telemetry_repository
        self._subscribers = subscribers
        self._interval_sec = interval_sec
        self._config = generator_config
        self._rng = rng or random.Random()
        self._clock = clock or _utc_now
        self._timers: dict[str, _MissionTimer] = {}

    def start(self, mission_id: str, seed: TelemetryReading) -> bool:
        if mission_id in self._timers:
            logger.warning("Telemetry already running for mission %s", mission_id)
            return False

        timer = _MissionTimer(reading=seed, stop_requested=asyncio.Event())
        timer.task = asyncio.get_running_loop().create_task(
            self._run(mission_id, timer),
            name=f"telemetry-{mission_id}",
        )
        self._timers[mission_id] = timer
        logger.info(
            "Started telemetry updates for mission %s every %.2fs",
            mission_id,
            self._interval_sec,
        )
        return True

    async def stop(self, mission_id: str) -> bool:
        timer = self._timers.pop(mission_id, None)
        if timer is None:
            return False

        timer.stop_requested.set()
        if timer.task is not None:
            await timer.task
        logger.info(
            "Stopped telemetry updates for mission %s after %d ticks",
            mission_id,
            timer.ticks,
        )
        return True

    async def shutdown(self) -> None:
        mission_ids = list(self._timers)
        await asyncio.gather(*(self.stop(mission_id) for mission_id in mission_ids))

    def is_running(self, mission_id: str) -> bool:
        return mission_id in self._timers

    def tick_count(self, mission_id: str) -> int:
        timer = self._timers.get(mission_id)
        return timer.ticks if timer is not None else 0

    async def _run(self, mission_id: str, timer: _MissionTimer) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        while not timer.stop_requested.is_set():
            deadline += self._interval_sec
            try:
                await asyncio.wait_for(
                    timer.stop_requested.wait(),
                    timeout=max(0.0, deadline - loop.time()),
                )
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                await self._tick(mission_id, timer)
            except Exception:
                logger.exception("Telemetry tick failed for mission %s", mission_id)

            # an overrunning tick drops the missed slots instead of bursting
            if loop.time() - deadline >= self._interval_sec:
                deadline = loop.time()

    async def _tick(self, mission_id: str, timer: _MissionTimer) -> None:
        reading = next_reading(timer.reading, self._rng, self._config)
        timer.reading = reading
        timer.ticks += 1
        sample = TelemetrySample(
            mission_id=mission_id,
            timestamp=self._clock(),
            reading=reading,
        )

        try:
            await asyncio.to_thread(self._telemetry.append, sample)
        except TelemetryPersistenceError as error:
            logger.warning(
                "Error storing telemetry history for mission %s: %s",
                mission_id,
                error,
            )

        await self._subscribers.broadcast(mission_id, telemetry_message(sample))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)

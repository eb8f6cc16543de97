"""In-memory storage for missions and telemetry history."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime

from libs.core.application.errors import DuplicateMissionError
from libs.core.domain.entities import (
    Mission,
    MissionStatus,
    TelemetrySample,
    flight_seconds,
)


@dataclass
class InMemoryDatabase:
    """Shared tables guarded by one lock; repositories run in worker threads."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    missions: dict[str, Mission] = field(default_factory=dict)
    telemetry: dict[str, list[TelemetrySample]] = field(default_factory=dict)


class InMemoryMissionRepository:
    """Mission repository backed by insertion-ordered dict."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def create(self, mission: Mission) -> None:
        with self._db.lock:
            if mission.mission_id in self._db.missions:
                raise DuplicateMissionError(mission.mission_id)
            self._db.missions[mission.mission_id] = replace(mission)

    def get(self, mission_id: str) -> Mission | None:
        with self._db.lock:
            mission = self._db.missions.get(mission_id)
            return replace(mission) if mission is not None else None

    def list_all(self) -> list[Mission]:
        with self._db.lock:
            missions = [replace(mission) for mission in self._db.missions.values()]
        missions.reverse()
        missions.sort(key=lambda item: item.created_at, reverse=True)
        return missions

    def complete(self, mission_id: str, ended_at: datetime) -> Mission | None:
        with self._db.lock:
            mission = self._db.missions.get(mission_id)
            if mission is None:
                return None
            if mission.status == MissionStatus.ACTIVE:
                mission.status = MissionStatus.COMPLETED
                mission.end_time = ended_at
                mission.total_flight_time = flight_seconds(
                    mission.start_time, ended_at
                )
            return replace(mission)

    def clear(self) -> None:
        with self._db.lock:
            self._db.missions.clear()


class InMemoryTelemetryRepository:
    """Append-only per-mission telemetry log."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def append(self, sample: TelemetrySample) -> None:
        with self._db.lock:
            self._db.telemetry.setdefault(sample.mission_id, []).append(sample)

    def history(self, mission_id: str, limit: int = 100) -> list[TelemetrySample]:
        if limit <= 0:
            return []
        with self._db.lock:
            samples = list(self._db.telemetry.get(mission_id, ()))
        samples.reverse()
        samples.sort(key=lambda item: item.timestamp, reverse=True)
        return samples[:limit]

    def count(self, mission_id: str) -> int:
        with self._db.lock:
            return len(self._db.telemetry.get(mission_id, ()))

    def clear(self) -> None:
        with self._db.lock:
            self._db.telemetry.clear()

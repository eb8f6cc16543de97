from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class MissionStatus(str, Enum):
    """Mission lifecycle status. Transitions only ACTIVE -> COMPLETED."""

    ACTIVE = "IN_MISSION"
    COMPLETED = "COMPLETED"


@dataclass
class Mission:
    """Mission state entity."""

    mission_id: str
    status: MissionStatus
    start_time: datetime
    created_at: datetime
    end_time: Optional[datetime] = None
    total_flight_time: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == MissionStatus.ACTIVE


@dataclass(frozen=True)
class TelemetryReading:
    """One step of simulated drone state."""

    battery: float
    latitude: float
    longitude: float
    altitude: float


@dataclass(frozen=True)
class TelemetrySample:
    """Telemetry reading stored in the per-mission history log."""

    mission_id: str
    timestamp: datetime
    reading: TelemetryReading


def flight_seconds(start_time: datetime, end_time: datetime) -> int:
    """Whole seconds flown between mission start and end."""
    return max(0, int((end_time - start_time).total_seconds()))

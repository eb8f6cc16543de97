from datetime import datetime
from typing import Any, Protocol

from libs.core.domain.entities import Mission, TelemetrySample


class MissionRepository(Protocol):
    """Mission persistence contract."""

    def create(self, mission: Mission) -> None: ...

    def get(self, mission_id: str) -> Mission | None: ...

    def list_all(self) -> list[Mission]: ...

    def complete(self, mission_id: str, ended_at: datetime) -> Mission | None: ...

    def clear(self) -> None: ...


class TelemetryRepository(Protocol):
    """Append-only telemetry history contract."""

    def append(self, sample: TelemetrySample) -> None: ...

    def history(self, mission_id: str, limit: int = 100) -> list[TelemetrySample]: ...

    def count(self, mission_id: str) -> int: ...

    def clear(self) -> None: ...


class SubscriberHandle(Protocol):
    """Live output channel that receives pushed JSON messages."""

    @property
    def is_open(self) -> bool: ...

    async def send(self, message: dict[str, Any]) -> None: ...

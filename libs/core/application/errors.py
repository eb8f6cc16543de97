"""Error taxonomy for mission lifecycle and telemetry fan-out."""


class MissionError(ValueError):
    """Base class for errors surfaced to API clients."""

    message = "Mission error"

    def __init__(self, mission_id: str | None = None, message: str | None = None):
        self.mission_id = mission_id
        if message is not None:
            self.message = message
        super().__init__(self.message)


class MissionNotFoundError(MissionError):
    message = "Mission not found"


class MissionAlreadyCompletedError(MissionError):
    message = "Mission is already completed"


class DuplicateMissionError(MissionError):
    message = "Mission already exists"


class InvalidSubscribeMessageError(ValueError):
    """Streaming channel received a payload it cannot act on."""


class TelemetryPersistenceError(RuntimeError):
    """Telemetry sample could not be written to the history store."""


class TransportError(RuntimeError):
    """Message could not be delivered to a subscriber handle."""

"""Streaming channel message envelopes."""

from datetime import datetime
from typing import Any

from libs.core.domain.entities import Mission, TelemetryReading, TelemetrySample

SUBSCRIBE_USAGE = (
    'Invalid message format. Use: {"type": "subscribe", "missionId": "MISSION_ID"}'
)


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


def reading_to_dict(reading: TelemetryReading) -> dict[str, float]:
    return {
        "battery": reading.battery,
        "latitude": reading.latitude,
        "longitude": reading.longitude,
        "altitude": reading.altitude,
    }


def telemetry_message(sample: TelemetrySample) -> dict[str, Any]:
    return {
        "type": "telemetry",
        "missionId": sample.mission_id,
        "timestamp": format_timestamp(sample.timestamp),
        "data": reading_to_dict(sample.reading),
    }


def subscribed_message(mission_id: str) -> dict[str, Any]:
    return {
        "type": "subscribed",
        "message": "Successfully subscribed to mission",
        "missionId": mission_id,
    }


def unsubscribed_message(mission_id: str) -> dict[str, Any]:
    return {"type": "unsubscribed", "missionId": mission_id}


def mission_snapshot_message(mission: Mission, now: datetime) -> dict[str, Any]:
    return {
        "type": "mission",
        "missionId": mission.mission_id,
        "status": mission.status.value,
        "startTime": format_timestamp(mission.start_time),
        "timestamp": format_timestamp(now),
    }


def error_message(message: str, mission_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": "error", "message": message}
    if mission_id is not None:
        payload["missionId"] = mission_id
    return payload

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, JSONResponse, Response

from libs.core.application.errors import MissionNotFoundError
from libs.core.application.messages import format_timestamp, reading_to_dict
from libs.core.application.mission_service import DEFAULT_HISTORY_LIMIT
from libs.core.domain.entities import Mission, TelemetrySample
from services.api_gateway.config.settings import settings
from services.api_gateway.dependencies import get_mission_service
from services.api_gateway.presentation.http.ui_page import build_ui_html

router = APIRouter()
mission_router = APIRouter()

MAX_HISTORY_LIMIT = 1000


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/", response_class=HTMLResponse)
def ui_index() -> str:
    return build_ui_html()


@router.get("/favicon.ico")
def favicon() -> Response:
    return Response(status_code=204)


@router.get("/ready")
def ready() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/version")
def version() -> dict[str, str]:
    return {"version": settings.app_version}


@mission_router.post("/start-mission", status_code=201)
async def start_mission() -> dict[str, object]:
    service = get_mission_service()
    mission = await service.start_mission()
    return {
        "success": True,
        "mission": {
            "missionId": mission.mission_id,
            "status": mission.status.value,
            "startTime": format_timestamp(mission.start_time),
        },
    }


@mission_router.post("/missions/{mission_id}/end")
async def end_mission(mission_id: str) -> dict[str, object]:
    service = get_mission_service()
    mission = await service.end_mission(mission_id)
    return {
        "success": True,
        "message": "Mission ended successfully",
        "mission": {
            "missionId": mission.mission_id,
            "status": mission.status.value,
            "endTime": _optional_timestamp(mission.end_time),
            "totalFlightTime": mission.total_flight_time,
        },
    }


@mission_router.get("/status")
async def get_status() -> dict[str, int]:
    service = get_mission_service()
    return await service.get_status()


@mission_router.get("/missions")
async def list_missions() -> dict[str, object]:
    service = get_mission_service()
    missions = await service.list_missions()
    return {
        "success": True,
        "missions": [
            {
                "missionId": mission.mission_id,
                "status": mission.status.value,
                "startTime": format_timestamp(mission.start_time),
                "createdAt": format_timestamp(mission.created_at),
            }
            for mission in missions
        ],
    }


@mission_router.get("/missions/{mission_id}")
async def get_mission(mission_id: str) -> dict[str, object]:
    service = get_mission_service()
    mission = await service.get_mission(mission_id)
    if mission is None:
        raise MissionNotFoundError(mission_id)
    return {
        "success": True,
        "mission": _mission_to_dict(
            mission,
            connected_clients=service.connected_clients(mission_id),
        ),
    }


@mission_router.get("/missions/{mission_id}/telemetry")
async def get_mission_telemetry(
    mission_id: str,
    limit: str | None = Query(default=None),
) -> dict[str, object]:
    service = get_mission_service()
    samples = await service.get_telemetry_history(
        mission_id, limit=parse_history_limit(limit)
    )
    return {
        "success": True,
        "missionId": mission_id,
        "count": len(samples),
        "telemetry": [_sample_to_dict(sample) for sample in samples],
    }


def parse_history_limit(raw: str | None) -> int:
    # missing, non-numeric and non-positive values fall back to the default
    try:
        limit = int(raw) if raw is not None else 0
    except ValueError:
        limit = 0
    if limit <= 0:
        return DEFAULT_HISTORY_LIMIT
    return min(limit, MAX_HISTORY_LIMIT)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
    )


def _mission_to_dict(mission: Mission, connected_clients: int) -> dict[str, Any]:
    return {
        "missionId": mission.mission_id,
        "status": mission.status.value,
        "startTime": format_timestamp(mission.start_time),
        "endTime": _optional_timestamp(mission.end_time),
        "totalFlightTime": mission.total_flight_time,
        "createdAt": format_timestamp(mission.created_at),
        "connectedClients": connected_clients,
    }


def _sample_to_dict(sample: TelemetrySample) -> dict[str, Any]:
    return {
        "timestamp": format_timestamp(sample.timestamp),
        **reading_to_dict(sample.reading),
    }


def _optional_timestamp(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None

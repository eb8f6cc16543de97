"""Streaming channel: clients subscribe to live mission telemetry."""

import json
import logging
from typing import Literal

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from libs.core.application.errors import (
    InvalidSubscribeMessageError,
    TransportError,
)
from libs.core.application.messages import (
    SUBSCRIBE_USAGE,
    error_message,
    unsubscribed_message,
)
from services.api_gateway.dependencies import get_mission_service
from services.api_gateway.infrastructure.websocket_handle import WebSocketHandle

logger = logging.getLogger(__name__)

router = APIRouter()


class ChannelMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["subscribe", "unsubscribe"]
    mission_id: str = Field(alias="missionId", min_length=1)


def parse_channel_message(raw: str | bytes) -> ChannelMessage:
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise InvalidSubscribeMessageError("Invalid JSON format") from error
    try:
        return ChannelMessage.model_validate(payload)
    except ValidationError as error:
        raise InvalidSubscribeMessageError(SUBSCRIBE_USAGE) from error


async def receive_frame(websocket: WebSocket) -> str | bytes:
    """Return the next text or binary frame payload from the client."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    text = message.get("text")
    if text is not None:
        return text
    return message.get("bytes") or b""


@router.websocket("/ws")
async def telemetry_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    service = get_mission_service()
    handle = WebSocketHandle(websocket)
    logger.info("Client connected")

    try:
        while True:
            raw = await receive_frame(websocket)
            try:
                message = parse_channel_message(raw)
            except InvalidSubscribeMessageError as error:
                await handle.send(error_message(str(error)))
                continue

            if message.type == "subscribe":
                await service.subscribe(message.mission_id, handle)
            else:
                service.unsubscribe(message.mission_id, handle)
                await handle.send(unsubscribed_message(message.mission_id))
    except (WebSocketDisconnect, TransportError):
        logger.info("Client disconnected")
    finally:
        service.disconnect(handle)

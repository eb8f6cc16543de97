"""Subscriber handle adapter over a Starlette WebSocket."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from libs.core.application.errors import TransportError


class WebSocketHandle:
    """Serialises sends so broadcasts and direct replies never interleave."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._send_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state == WebSocketState.CONNECTED
            and self._websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, message: dict[str, Any]) -> None:
        async with self._send_lock:
            try:
                await self._websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as error:
                raise TransportError(str(error) or type(error).__name__) from error

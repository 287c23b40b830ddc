"""
Push channel.

One WebSocket per device. The socket is registered only after its token and
session check out; until then nothing is pushed to it.
"""

import asyncio
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.app.services.connection_registry import ConnectionHandle
from src.app.services.pipeline import RequestPipeline
from src.depends import build_session_store, build_token_service, unit_of_work_scope
from src.domain.auth import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Push"])

WS_CLOSE_UNAUTHORIZED = 4401


def _parse(text: str) -> Optional[dict]:
    try:
        message = json.loads(text)
    except ValueError:
        return None
    return message if isinstance(message, dict) else None


async def _await_auth_message(websocket: WebSocket, timeout: float) -> Optional[str]:
    """Token from a first {"type": "auth", "token": ...} message"""
    try:
        text = await asyncio.wait_for(websocket.receive_text(), timeout)
    except asyncio.TimeoutError:
        logger.info("Push channel closed: no auth message in time")
        return None
    message = _parse(text)
    if message is None or message.get("type") != "auth":
        return None
    token = message.get("token")
    return token if isinstance(token, str) else None


async def _authenticate(websocket: WebSocket, token: Optional[str]):
    state = websocket.app.state
    async with unit_of_work_scope(getattr(state, "session_factory", None)) as uow:
        pipeline = RequestPipeline(
            build_token_service(state, uow),
            build_session_store(state, uow),
            state.rate_limiter,
        )
        return await pipeline.authenticate(token)


async def _touch(websocket: WebSocket, auth: AuthContext) -> None:
    state = websocket.app.state
    async with unit_of_work_scope(getattr(state, "session_factory", None)) as uow:
        await build_session_store(state, uow).touch(auth.session_id)


@router.websocket("/ws")
async def push_channel(websocket: WebSocket, token: Optional[str] = None):
    await websocket.accept()
    state = websocket.app.state

    try:
        if not token:
            token = await _await_auth_message(websocket, state.config.WS_AUTH_TIMEOUT)
        result = await _authenticate(websocket, token)
    except WebSocketDisconnect:
        return

    if result.is_err():
        logger.info(f"Push channel rejected: {result.error.code}")
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=result.error.code)
        return

    auth = result.value
    handle = ConnectionHandle(
        user_id=str(auth.user_id), channel=websocket, session_id=auth.session_id
    )
    await state.registry.register(handle)

    try:
        await websocket.send_json({"type": "connected", "session_id": auth.session_id})
        while True:
            message = _parse(await websocket.receive_text())
            if message is None:
                continue
            if message.get("type") == "ping":
                await _touch(websocket, auth)
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.debug(f"Push channel {handle.id} disconnected")
    finally:
        await state.registry.unregister(handle)

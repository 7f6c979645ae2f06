"""FastAPI routes exposing the chat relay to browser clients.

Public API (the "studs"):
    create_chat_router: Build an APIRouter serving the chat WebSocket
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import APIRouter, WebSocket, status
from fastapi.websockets import WebSocketState

from levee.llm.client import LLMClient
from levee.llm.relay import RelaySession

_logger = logging.getLogger(__name__)

OriginCheck = Callable[[str | None], bool]


def create_chat_router(
    llm: LLMClient,
    check_origin: OriginCheck | None = None,
    path: str = "/ws/chat",
) -> APIRouter:
    """Create a router bridging WebSocket chat to the LLM stream.

    Args:
        llm: Client shared by all sockets served by the router
        check_origin: Called with the Origin header; returning False
            rejects the socket with close code 1008. All origins are
            allowed when None.
        path: WebSocket route path

    Returns:
        APIRouter to include in the host application

    Example:
        >>> app = FastAPI()
        >>> app.include_router(create_chat_router(llm), prefix="/levee")
    """
    router = APIRouter()

    @router.websocket(path)
    async def chat_websocket(websocket: WebSocket) -> None:
        origin = websocket.headers.get("origin")
        if check_origin is not None and not check_origin(origin):
            _logger.warning("Rejected chat WebSocket from origin %r", origin)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        try:
            await RelaySession(websocket, llm).run()
        finally:
            if websocket.client_state is WebSocketState.CONNECTED:
                await websocket.close()

    return router


__all__ = ["create_chat_router"]

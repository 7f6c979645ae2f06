"""WebSocket relay between browser clients and the LLM chat stream.

One RelaySession serves one accepted socket. The read loop translates each
client frame into a backend envelope; once a session is started, a
forwarding task drains the backend stream and writes one frame per backend
event. Both write to the socket through a single lock.

Wire format (text or binary frames, JSON)::

    {"type": "<type>", "data": {...}}

Client types: start, message, abort, tool_result.
Server types: started, chunk, tool_call, completion, error.

Public API (the "studs"):
    RelaySession: Bridges one socket to one backend chat stream
    WSMessage: Frame envelope
    WSMessageType: Frame types
    WSStartRequest, WSUserMessage, WSAbortRequest, WSToolResult: Client payloads
    WSStartedResponse, WSChunkResponse, WSToolCallResponse,
    WSCompletionResponse, WSErrorResponse: Server payloads
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from levee.llm.client import LLMClient
from levee.llm.events import (
    AbortedEvent,
    AbortTurn,
    BackendEvent,
    ChunkEvent,
    CompletionEvent,
    ErrorEvent,
    SessionStarted,
    StartChat,
    ToolCallEvent,
    ToolResult,
    UserTurn,
)
from levee.llm.exceptions import ConnectError, SessionError
from levee.llm.transport import ChatStream
from levee.llm.types import ChatMessage

_logger = logging.getLogger(__name__)


class WSMessageType(str, Enum):
    """Frame types of the relay protocol."""

    START = "start"
    MESSAGE = "message"
    ABORT = "abort"
    TOOL_RESULT = "tool_result"
    STARTED = "started"
    CHUNK = "chunk"
    TOOL_CALL = "tool_call"
    COMPLETION = "completion"
    ERROR = "error"


class WSMessage(BaseModel):
    """Frame envelope; ``data`` is validated per type."""

    type: str
    data: Any = None


# -----------------------------------------------------------------------------
# Client payloads
# -----------------------------------------------------------------------------


class WSStartRequest(BaseModel):
    system_prompt: str = ""
    model: str = ""
    max_tokens: int = Field(0, ge=0)
    temperature: float = 0.0
    messages: list[ChatMessage] = Field(default_factory=list)


class WSUserMessage(BaseModel):
    content: str


class WSAbortRequest(BaseModel):
    reason: str = ""


class WSToolResult(BaseModel):
    tool_call_id: str
    result: str = ""
    is_error: bool = False


# -----------------------------------------------------------------------------
# Server payloads
# -----------------------------------------------------------------------------


class WSStartedResponse(BaseModel):
    session_id: str
    provider: str
    model: str


class WSChunkResponse(BaseModel):
    content: str
    index: int


class WSToolCallResponse(BaseModel):
    tool_call_id: str
    name: str
    arguments_json: str


class WSCompletionResponse(BaseModel):
    full_content: str
    stop_reason: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    latency_ms: int


class WSErrorResponse(BaseModel):
    code: str
    message: str
    retryable: bool = False


def _to_frame(event: BackendEvent) -> tuple[WSMessageType, BaseModel]:
    """Map a backend event to the outbound frame type and payload."""
    if isinstance(event, SessionStarted):
        return WSMessageType.STARTED, WSStartedResponse(
            session_id=event.session_id, provider=event.provider, model=event.model
        )
    if isinstance(event, ChunkEvent):
        return WSMessageType.CHUNK, WSChunkResponse(content=event.content, index=event.index)
    if isinstance(event, ToolCallEvent):
        return WSMessageType.TOOL_CALL, WSToolCallResponse(
            tool_call_id=event.tool_call_id,
            name=event.name,
            arguments_json=event.arguments_json,
        )
    if isinstance(event, CompletionEvent):
        return WSMessageType.COMPLETION, WSCompletionResponse(
            full_content=event.full_content,
            stop_reason=event.stop_reason,
            input_tokens=event.input_tokens,
            output_tokens=event.output_tokens,
            cost_usd=event.cost_usd,
            latency_ms=event.latency_ms,
        )
    if isinstance(event, ErrorEvent):
        return WSMessageType.ERROR, WSErrorResponse(
            code=event.code, message=event.message, retryable=event.retryable
        )
    if isinstance(event, AbortedEvent):
        return WSMessageType.ERROR, WSErrorResponse(code="aborted", message=event.reason)
    raise TypeError(f"Unhandled backend event: {type(event).__name__}")


class RelaySession:
    """Bridges one WebSocket connection to one backend chat stream.

    The caller accepts the socket before ``run()`` and closes it after.
    Relay errors are reported as ``error`` frames and do not end the
    session; only a socket disconnect does.
    """

    def __init__(self, websocket: WebSocket, llm: LLMClient) -> None:
        self._ws = websocket
        self._llm = llm
        self._stream: ChatStream | None = None
        self._forward_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def run(self) -> None:
        """Serve client frames until the socket disconnects."""
        try:
            while True:
                message = await self._ws.receive()
                if message["type"] == "websocket.disconnect":
                    _logger.debug("WebSocket closed (code=%s)", message.get("code"))
                    return
                # Text and binary frames carry the same JSON.
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await self.handle_frame(raw)
        finally:
            await self._shutdown()

    async def handle_frame(self, raw: str | bytes) -> None:
        """Dispatch one client frame; undecodable payloads get an error frame."""
        try:
            msg = WSMessage.model_validate_json(raw)
        except ValidationError:
            await self.send_error("invalid_json", "Invalid JSON message")
            return

        if msg.type == WSMessageType.START.value:
            await self._handle_start(msg.data)
        elif msg.type == WSMessageType.MESSAGE.value:
            await self._handle_message(msg.data)
        elif msg.type == WSMessageType.ABORT.value:
            await self._handle_abort(msg.data)
        elif msg.type == WSMessageType.TOOL_RESULT.value:
            await self._handle_tool_result(msg.data)
        else:
            await self.send_error("unknown_type", f"Unknown message type: {msg.type}")

    async def _handle_start(self, data: Any) -> None:
        if self._started:
            await self.send_error("already_started", "Session already started")
            return

        try:
            req = WSStartRequest.model_validate(data or {})
        except ValidationError:
            await self.send_error("invalid_data", "Invalid start request")
            return

        try:
            stream = await self._llm.open_stream()
        except ConnectError as e:
            await self.send_error("connection_failed", str(e), retryable=True)
            return
        except SessionError as e:
            await self.send_error("stream_failed", e.message, retryable=True)
            return

        start = StartChat(
            api_key=self._llm.connector.api_key,
            system_prompt=req.system_prompt,
            model=req.model,
            max_tokens=req.max_tokens,
            temperature=req.temperature,
            messages=req.messages,
        )
        try:
            await stream.write(start)
        except SessionError as e:
            stream.cancel()
            await self.send_error("start_failed", e.message, retryable=True)
            return

        self._stream = stream
        self._started = True
        self._forward_task = asyncio.create_task(self._forward_events(stream))
        _logger.debug("Relay session started (model=%s)", req.model or "<default>")

    async def _handle_message(self, data: Any) -> None:
        if self._stream is None:
            await self.send_error("not_started", "Session not started")
            return

        try:
            msg = WSUserMessage.model_validate(data)
        except ValidationError:
            await self.send_error("invalid_data", "Invalid message")
            return

        try:
            await self._stream.write(UserTurn(content=msg.content))
        except SessionError as e:
            await self.send_error("send_failed", e.message, retryable=True)

    async def _handle_abort(self, data: Any) -> None:
        if self._stream is None:
            return

        try:
            reason = WSAbortRequest.model_validate(data or {}).reason
        except ValidationError:
            reason = ""

        try:
            await self._stream.write(AbortTurn(reason=reason))
        except SessionError as e:
            _logger.debug("Abort not delivered: %s", e)

    async def _handle_tool_result(self, data: Any) -> None:
        if self._stream is None:
            await self.send_error("not_started", "Session not started")
            return

        try:
            result = WSToolResult.model_validate(data)
        except ValidationError:
            await self.send_error("invalid_data", "Invalid tool result")
            return

        try:
            await self._stream.write(
                ToolResult(
                    tool_call_id=result.tool_call_id,
                    result=result.result,
                    is_error=result.is_error,
                )
            )
        except SessionError as e:
            await self.send_error("send_failed", e.message, retryable=True)

    async def _forward_events(self, stream: ChatStream) -> None:
        """Drain the backend stream into socket frames."""
        while True:
            try:
                event = await stream.read()
            except SessionError as e:
                _logger.warning("Backend chat stream failed: %s", e.message)
                await self.send_error("stream_error", e.message)
                return
            if event is None:
                _logger.debug("Backend chat stream ended")
                return

            msg_type, payload = _to_frame(event)
            if not await self.send(msg_type, payload):
                return

    async def send(self, msg_type: WSMessageType, payload: BaseModel) -> bool:
        """Write one frame. Returns False if the socket is gone."""
        frame = WSMessage(type=msg_type.value, data=payload.model_dump()).model_dump_json()
        async with self._send_lock:
            try:
                await self._ws.send_text(frame)
            except (WebSocketDisconnect, RuntimeError) as e:
                _logger.debug("Dropping %s frame, socket closed: %s", msg_type.value, e)
                return False
        return True

    async def send_error(self, code: str, message: str, retryable: bool = False) -> bool:
        return await self.send(
            WSMessageType.ERROR,
            WSErrorResponse(code=code, message=message, retryable=retryable),
        )

    async def _shutdown(self) -> None:
        task = self._forward_task
        if task is not None:
            task.cancel()
            # wait() leaves the child's cancellation in the task but still
            # raises if this coroutine itself is cancelled.
            await asyncio.wait({task})
            if not task.cancelled() and task.exception() is not None:
                _logger.warning("Relay forwarding task failed: %r", task.exception())
        if self._stream is not None:
            self._stream.cancel()
            self._stream = None


__all__ = [
    "RelaySession",
    "WSMessage",
    "WSMessageType",
    "WSStartRequest",
    "WSUserMessage",
    "WSAbortRequest",
    "WSToolResult",
    "WSStartedResponse",
    "WSChunkResponse",
    "WSToolCallResponse",
    "WSCompletionResponse",
    "WSErrorResponse",
]

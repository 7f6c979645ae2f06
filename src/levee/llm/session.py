"""Bidirectional streaming chat session.

Public API (the "studs"):
    ChatSession: One backend chat stream driven one turn at a time
    SessionState: Lifecycle states of a ChatSession
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from types import TracebackType

from levee.llm.events import (
    AbortedEvent,
    AbortTurn,
    ChunkEvent,
    ClientRequest,
    CompletionEvent,
    ErrorEvent,
    SessionStarted,
    StartChat,
    ToolCallEvent,
    UserTurn,
)
from levee.llm.exceptions import SessionClosedError, SessionError
from levee.llm.transport import ChatStream
from levee.llm.types import ChatResponse, ChunkCallback

_logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of a ChatSession."""

    STARTED = "started"
    TURN_ACTIVE = "turn_active"
    IDLE = "idle"
    CLOSED = "closed"


class ChatSession:
    """An active chat session over one bidirectional stream.

    The session exclusively owns its stream. The backend protocol assumes
    one in-flight turn, so ``send`` calls are serialized by a turn lock;
    callers needing concurrent turns must open separate sessions.
    ``abort`` bypasses the turn lock so it can interrupt a running turn.

    Use ``LLMClient.new_session()`` rather than constructing directly.

    Example:
        >>> async with await client.new_session(ChatRequest(model="sonnet")) as session:
        ...     reply = await session.send("Hello", on_chunk=print)
    """

    def __init__(self, stream: ChatStream) -> None:
        self._stream = stream
        self._state = SessionState.STARTED
        self._turn_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()
        self._started: SessionStarted | None = None
        # Set while a turn is unfinished on the wire; cleared by a terminal event.
        self._turn_pending = False

    @classmethod
    async def start(cls, stream: ChatStream, start: StartChat) -> ChatSession:
        """Create a session by sending the start envelope on ``stream``.

        Raises:
            SessionError: If the start envelope cannot be sent
        """
        await stream.write(start)
        return cls(stream)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SessionState.CLOSED

    @property
    def session_id(self) -> str | None:
        """Backend session ID, once the backend acknowledged the start."""
        return self._started.session_id if self._started else None

    async def _write(self, request: ClientRequest) -> None:
        async with self._write_lock:
            await self._stream.write(request)

    async def send(self, content: str, on_chunk: ChunkCallback | None = None) -> ChatResponse:
        """Send a user message and stream the response.

        Args:
            content: User message text
            on_chunk: Optional callback (sync or async) invoked with each
                chunk in arrival order. An exception raised by the callback
                ends the turn and propagates unchanged; the unread rest of
                that turn is discarded by the next ``send``.

        Returns:
            The completion of the turn. If the stream ended without a
            completion, a response holding only the accumulated content.

        Raises:
            SessionClosedError: If the session was closed
            SessionError: On a backend error or abort, or a transport failure
        """
        async with self._turn_lock:
            if self.closed:
                raise SessionClosedError()

            self._state = SessionState.TURN_ACTIVE
            try:
                if self._turn_pending:
                    await self._discard_unfinished_turn()
                await self._write(UserTurn(content=content))
                self._turn_pending = True
                return await self._receive_turn(on_chunk)
            finally:
                if not self.closed:
                    self._state = SessionState.IDLE

    async def _discard_unfinished_turn(self) -> None:
        """Drop what is left of a turn that ended without a terminal event.

        A failing chunk callback or a cancelled ``send`` leaves the rest of
        that turn on the stream; it must not be read as the next reply.
        """
        discarded = 0
        while True:
            event = await self._stream.read()
            if event is None or isinstance(event, (CompletionEvent, ErrorEvent, AbortedEvent)):
                break
            if isinstance(event, SessionStarted):
                self._started = event
            discarded += 1
        self._turn_pending = False
        _logger.debug("Discarded %d events of an unfinished turn", discarded)

    async def _receive_turn(self, on_chunk: ChunkCallback | None) -> ChatResponse:
        parts: list[str] = []
        while True:
            event = await self._stream.read()
            if event is None or isinstance(event, (CompletionEvent, ErrorEvent, AbortedEvent)):
                self._turn_pending = False

            if event is None:
                # Backend closed without a completion marker.
                return ChatResponse(content="".join(parts))
            if isinstance(event, SessionStarted):
                self._started = event
            elif isinstance(event, ChunkEvent):
                parts.append(event.content)
                if on_chunk is not None:
                    result = on_chunk(event.to_chunk())
                    if inspect.isawaitable(result):
                        await result
            elif isinstance(event, CompletionEvent):
                response = event.to_response()
                if self._started and self._started.model:
                    response.model = self._started.model
                return response
            elif isinstance(event, ToolCallEvent):
                _logger.debug("Ignoring tool call %s (%s)", event.tool_call_id, event.name)
            elif isinstance(event, ErrorEvent):
                raise SessionError(
                    event.message or "LLM error",
                    code=event.code or "llm_error",
                    retryable=event.retryable,
                )
            elif isinstance(event, AbortedEvent):
                raise SessionError(f"generation aborted: {event.reason}", code="aborted")
            else:
                raise TypeError(f"Unhandled backend event: {type(event).__name__}")

    async def abort(self, reason: str = "") -> None:
        """Ask the backend to stop the current generation.

        Does not wait for the acknowledgement; the in-flight ``send``
        observes the resulting abort or error event.

        Raises:
            SessionClosedError: If the session was closed
        """
        if self.closed:
            raise SessionClosedError()
        await self._write(AbortTurn(reason=reason))

    async def close(self) -> None:
        """Close the session and half-close its stream. Idempotent."""
        async with self._write_lock:
            if self.closed:
                return
            self._state = SessionState.CLOSED
            await self._stream.done_writing()
            _logger.debug("Closed chat session %s", self.session_id or "<unacknowledged>")

    async def __aenter__(self) -> ChatSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


__all__ = ["ChatSession", "SessionState"]

"""Envelopes exchanged with the backend over a chat stream.

Both directions are closed tagged unions keyed on ``kind``. Every consumer
dispatches on the concrete class and handles each variant explicitly.

Public API (the "studs"):
    StartChat, UserTurn, AbortTurn, ToolResult, ClientRequest
    SessionStarted, ChunkEvent, ToolCallEvent, CompletionEvent,
    ErrorEvent, AbortedEvent, BackendEvent
"""

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from levee.llm.types import ChatMessage, ChatRequest, ChatResponse, StreamChunk


class _Envelope(BaseModel):
    model_config = ConfigDict(frozen=True)


# -----------------------------------------------------------------------------
# Client -> backend
# -----------------------------------------------------------------------------


class StartChat(_Envelope):
    """First envelope of every stream."""

    kind: Literal["start"] = "start"
    api_key: str
    system_prompt: str = ""
    model: str = ""
    max_tokens: int = 0
    temperature: float = 0.0
    messages: list[ChatMessage] = Field(default_factory=list)

    @classmethod
    def from_request(cls, api_key: str, request: ChatRequest) -> "StartChat":
        return cls(
            api_key=api_key,
            system_prompt=request.system_prompt or "",
            model=request.model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            messages=list(request.messages),
        )


class UserTurn(_Envelope):
    kind: Literal["message"] = "message"
    content: str


class AbortTurn(_Envelope):
    kind: Literal["abort"] = "abort"
    reason: str = ""


class ToolResult(_Envelope):
    kind: Literal["tool_result"] = "tool_result"
    tool_call_id: str
    result: str = ""
    is_error: bool = False


ClientRequest = Annotated[
    StartChat | UserTurn | AbortTurn | ToolResult,
    Field(discriminator="kind"),
]


# -----------------------------------------------------------------------------
# Backend -> client
# -----------------------------------------------------------------------------


class SessionStarted(_Envelope):
    kind: Literal["session_started"] = "session_started"
    session_id: str = ""
    provider: str = ""
    model: str = ""


class ChunkEvent(_Envelope):
    kind: Literal["chunk"] = "chunk"
    content: str = ""
    index: int = 0

    def to_chunk(self) -> StreamChunk:
        return StreamChunk(content=self.content, index=self.index)


class ToolCallEvent(_Envelope):
    kind: Literal["tool_call"] = "tool_call"
    tool_call_id: str = ""
    name: str = ""
    arguments_json: str = ""


class CompletionEvent(_Envelope):
    """Marks a turn's text and metadata as final."""

    kind: Literal["completion"] = "completion"
    full_content: str = ""
    stop_reason: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    latency_ms: int = 0

    def to_response(self) -> ChatResponse:
        return ChatResponse(
            content=self.full_content,
            stop_reason=self.stop_reason,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cost_usd=self.cost_usd,
            latency_ms=self.latency_ms,
        )


class ErrorEvent(_Envelope):
    kind: Literal["error"] = "error"
    code: str = ""
    message: str = ""
    retryable: bool = False


class AbortedEvent(_Envelope):
    kind: Literal["aborted"] = "aborted"
    reason: str = ""


BackendEvent = Annotated[
    SessionStarted | ChunkEvent | ToolCallEvent | CompletionEvent | ErrorEvent | AbortedEvent,
    Field(discriminator="kind"),
]


__all__ = [
    "StartChat",
    "UserTurn",
    "AbortTurn",
    "ToolResult",
    "ClientRequest",
    "SessionStarted",
    "ChunkEvent",
    "ToolCallEvent",
    "CompletionEvent",
    "ErrorEvent",
    "AbortedEvent",
    "BackendEvent",
]

"""Conversion between chat envelopes and their protobuf representation.

Public API (the "studs"):
    encode_messages: ChatMessage list -> repeated proto Message
    encode_request: ClientRequest -> proto ChatRequest
    decode_event: proto ChatResponse -> BackendEvent
    encode_simple_request: ChatRequest -> proto SimpleChatRequest
    decode_simple_response: proto SimpleChatResponse -> ChatResponse
"""

from typing import Any

from levee.llm import proto
from levee.llm.events import (
    AbortedEvent,
    AbortTurn,
    BackendEvent,
    ChunkEvent,
    ClientRequest,
    CompletionEvent,
    ErrorEvent,
    SessionStarted,
    StartChat,
    ToolCallEvent,
    ToolResult,
    UserTurn,
)
from levee.llm.types import ChatMessage, ChatRequest, ChatResponse


def encode_messages(messages: list[ChatMessage]) -> list[Any]:
    """Convert messages preserving their order."""
    return [proto.Message(role=msg.role, content=msg.content) for msg in messages]


def encode_request(request: ClientRequest) -> Any:
    """Wrap a client envelope into the ``ChatRequest`` oneof."""
    if isinstance(request, StartChat):
        return proto.ChatRequest(
            start=proto.StartChatRequest(
                api_key=request.api_key,
                system_prompt=request.system_prompt,
                model=request.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                messages=encode_messages(request.messages),
            )
        )
    if isinstance(request, UserTurn):
        return proto.ChatRequest(message=proto.UserMessage(content=request.content))
    if isinstance(request, AbortTurn):
        return proto.ChatRequest(abort=proto.AbortRequest(reason=request.reason))
    if isinstance(request, ToolResult):
        return proto.ChatRequest(
            tool_result=proto.ToolResult(
                tool_call_id=request.tool_call_id,
                result=request.result,
                is_error=request.is_error,
            )
        )
    raise TypeError(f"Unsupported client request: {type(request).__name__}")


def decode_event(response: Any) -> BackendEvent:
    """Unwrap the ``ChatResponse`` oneof into a backend event.

    Raises:
        ValueError: If the envelope has no variant set
    """
    variant = response.WhichOneof("response")
    if variant == "session_started":
        r = response.session_started
        return SessionStarted(session_id=r.session_id, provider=r.provider, model=r.model)
    if variant == "chunk":
        return ChunkEvent(content=response.chunk.content, index=response.chunk.index)
    if variant == "tool_call":
        r = response.tool_call
        return ToolCallEvent(
            tool_call_id=r.tool_call_id, name=r.name, arguments_json=r.arguments_json
        )
    if variant == "completion":
        r = response.completion
        return CompletionEvent(
            full_content=r.full_content,
            stop_reason=r.stop_reason,
            input_tokens=r.input_tokens,
            output_tokens=r.output_tokens,
            cost_usd=r.cost_usd,
            latency_ms=r.latency_ms,
        )
    if variant == "error":
        r = response.error
        return ErrorEvent(code=r.code, message=r.message, retryable=r.retryable)
    if variant == "aborted":
        return AbortedEvent(reason=response.aborted.reason)
    raise ValueError("ChatResponse envelope has no response variant set")


def encode_simple_request(api_key: str, request: ChatRequest) -> Any:
    return proto.SimpleChatRequest(
        api_key=api_key,
        messages=encode_messages(request.messages),
        system_prompt=request.system_prompt or "",
        model=request.model,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
    )


def decode_simple_response(response: Any) -> ChatResponse:
    return ChatResponse(
        content=response.content,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
        cost_usd=response.cost_usd,
        latency_ms=response.latency_ms,
        stop_reason=response.stop_reason,
    )


__all__ = [
    "encode_messages",
    "encode_request",
    "decode_event",
    "encode_simple_request",
    "decode_simple_response",
]

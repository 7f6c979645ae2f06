"""Type definitions for the Levee LLM chat API.

Public API (the "studs"):
    ChatRole: Allowed message roles
    ChatMessage: Represents a single message in a conversation
    ChatRequest: Parameters for a one-shot call or a session start
    ChatResponse: Result of one turn
    StreamChunk: Incremental content fragment of a streamed turn
    ChunkCallback: Signature of the on_chunk hook
"""

from collections.abc import Awaitable, Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChatRole(str, Enum):
    """Message roles understood by the backend."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """Represents a single message in a conversation.

    Messages are immutable once built. Their order inside a request is
    the model's context.

    Attributes:
        role: Message role ("user", "assistant", or "system")
        content: Message content text
    """

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    role: ChatRole = Field(..., description="Message role: user, assistant, or system")
    content: str = Field(..., description="Message content")


class ChatRequest(BaseModel):
    """Chat parameters.

    Used as-is for the one-shot call and as the start payload of a
    streaming session.

    Attributes:
        messages: Conversation so far, oldest first
        system_prompt: Optional system prompt
        model: "haiku", "sonnet", "opus" or a full model ID; empty selects
            the backend default
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature
    """

    messages: list[ChatMessage] = Field(default_factory=list, description="Conversation messages")
    system_prompt: str | None = Field(None, description="Optional system prompt")
    model: str = Field("", description="Model alias or full model ID")
    max_tokens: int = Field(1024, ge=1, description="Maximum tokens to generate")
    temperature: float = Field(0.7, ge=0.0, le=2.0, description="Sampling temperature")


class ChatResponse(BaseModel):
    """Result of one turn.

    Produced exactly once per one-shot call or streamed turn. A streamed
    turn that ended without a completion only carries ``content``.

    Attributes:
        content: Generated text content
        model: Model that generated the response
        input_tokens: Prompt tokens billed
        output_tokens: Generated tokens billed
        cost_usd: Cost of the turn in US dollars
        latency_ms: Backend latency in milliseconds
        stop_reason: Why generation stopped
    """

    content: str = Field("", description="Generated text content")
    model: str = Field("", description="Model that generated the response")
    input_tokens: int = Field(0, ge=0, description="Prompt tokens")
    output_tokens: int = Field(0, ge=0, description="Generated tokens")
    cost_usd: float = Field(0.0, ge=0.0, description="Cost in US dollars")
    latency_ms: int = Field(0, ge=0, description="Latency in milliseconds")
    stop_reason: str = Field("", description="Why generation stopped")


class StreamChunk(BaseModel):
    """A fragment of streamed content.

    ``index`` comes straight from the backend and is not validated for
    gaps or reordering.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    index: int = 0


# Sync or async callable; raising aborts the turn.
ChunkCallback = Callable[[StreamChunk], Awaitable[None] | None]


__all__ = [
    "ChatRole",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "StreamChunk",
    "ChunkCallback",
]

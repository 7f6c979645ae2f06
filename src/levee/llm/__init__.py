"""Levee LLM chat client.

This module provides access to the Levee LLM gateway:
- one-shot chat calls
- bidirectional streaming chat sessions
- a WebSocket relay for browser clients (``levee.llm.routes``)

Public API (the "studs"):
    LLMClient: Client for one-shot calls and streaming sessions
    LLMClientConfig: Configuration model
    ChatSession: Streaming chat session
    ChatMessage, ChatRequest, ChatResponse, StreamChunk: Message model
    LLMError and subclasses: Exceptions

Example:
    >>> from levee.llm import ChatMessage, ChatRequest, LLMClient, LLMClientConfig
    >>>
    >>> config = LLMClientConfig(api_key="lv-...", base_url="https://levee.example.com")
    >>> client = LLMClient(config)
    >>> request = ChatRequest(
    ...     messages=[ChatMessage(role="user", content="Hello!")], model="sonnet"
    ... )
    >>> response = await client.chat(request)
    >>> print(response.content)
    >>>
    >>> # Streaming
    >>> session = await client.new_session(ChatRequest(model="sonnet"))
    >>> reply = await session.send("Hello!", on_chunk=lambda c: print(c.content, end=""))
    >>> await session.close()
"""

from levee.llm.client import LLMClient
from levee.llm.config import LLMClientConfig, LLMServiceConfig
from levee.llm.exceptions import (
    CallError,
    ConnectError,
    LLMError,
    SessionClosedError,
    SessionError,
)
from levee.llm.session import ChatSession, SessionState
from levee.llm.types import ChatMessage, ChatRequest, ChatResponse, ChatRole, StreamChunk

__all__ = [
    # Client
    "LLMClient",
    "ChatSession",
    "SessionState",
    # Config
    "LLMClientConfig",
    "LLMServiceConfig",
    # Types
    "ChatRole",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "StreamChunk",
    # Exceptions
    "LLMError",
    "ConnectError",
    "CallError",
    "SessionError",
    "SessionClosedError",
]

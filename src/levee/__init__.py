"""Levee SDK - embed the Levee platform's LLM chat in a host application.

Key components:
    - LLMClient: One-shot chat calls and streaming chat sessions over gRPC
    - ChatSession: Multi-turn streaming session with chunk callbacks
    - create_chat_router: WebSocket relay for browser clients (FastAPI)
    - CLI: ``levee llm`` commands for quick checks

Quick start:
    # Install
    pip install levee-sdk

    # Check service discovery
    export LEVEE_API_KEY=lv-...
    export LEVEE_BASE_URL=https://levee.example.com
    levee llm config

    # Chat
    levee llm chat "Hello" --model sonnet --stream
"""

from .llm import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatSession,
    LLMClient,
    LLMClientConfig,
)

# WebSocket relay - import explicitly to keep FastAPI off the client import path
# Use: from levee.llm.routes import create_chat_router

__version__ = "0.1.0"

__all__ = [
    "LLMClient",
    "LLMClientConfig",
    "ChatSession",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "__version__",
]

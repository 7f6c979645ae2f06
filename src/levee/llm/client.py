"""Levee LLM client.

Public API (the "studs"):
    LLMClient: Entry point for one-shot and streaming chat
"""

from __future__ import annotations

import logging
from types import TracebackType

import httpx

from levee.llm.codec import decode_simple_response, encode_simple_request
from levee.llm.config import LLMClientConfig, LLMServiceConfig
from levee.llm.events import StartChat
from levee.llm.exceptions import CallError, ConnectError, SessionError
from levee.llm.session import ChatSession
from levee.llm.transport import ChannelFactory, ChatStream, Connector
from levee.llm.types import ChatRequest, ChatResponse, ChatRole, ChunkCallback

_logger = logging.getLogger(__name__)


class LLMClient:
    """Client for the Levee LLM gateway.

    One client per configuration; the underlying gRPC channel is created
    on first use and shared by every call and session.

    Example:
        >>> config = LLMClientConfig(api_key="lv-...", base_url="https://levee.example.com")
        >>> async with LLMClient(config) as client:
        ...     reply = await client.chat(
        ...         ChatRequest(messages=[ChatMessage(role="user", content="Hi")], model="sonnet")
        ...     )
    """

    def __init__(
        self,
        config: LLMClientConfig,
        http_client: httpx.AsyncClient | None = None,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        self._config = config
        self._connector = Connector(config, http_client=http_client, channel_factory=channel_factory)

    @classmethod
    def from_env(cls) -> LLMClient:
        return cls(LLMClientConfig.from_env())

    @property
    def connector(self) -> Connector:
        return self._connector

    async def connect(self) -> None:
        await self._connector.connect()

    async def discover(self) -> LLMServiceConfig:
        return await self._connector.discover()

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send a simple (non-streaming) chat request.

        Raises:
            CallError: On connection or transport failure. Not retried.
        """
        try:
            await self._connector.connect()
            reply = await self._connector.simple_chat(
                encode_simple_request(self._connector.api_key, request)
            )
        except ConnectError as e:
            raise CallError(str(e)) from e
        except Exception as e:
            raise CallError(f"chat request failed: {e}") from e
        return decode_simple_response(reply)

    async def open_stream(self) -> ChatStream:
        """Connect if needed and open a raw bidirectional chat stream.

        Raises:
            ConnectError: If the connector cannot connect
            SessionError: If the stream cannot be opened (code "stream_failed")
        """
        await self._connector.connect()
        try:
            return self._connector.open_chat_stream()
        except Exception as e:
            raise SessionError(
                f"failed to start chat session: {e}", code="stream_failed", retryable=True
            ) from e

    async def new_session(self, request: ChatRequest) -> ChatSession:
        """Start a new bidirectional chat session.

        Sends the start envelope (system prompt, model, parameters and the
        request's messages as seed context) before returning.

        Raises:
            SessionError: If connecting, opening the stream or sending the
                start envelope fails
        """
        try:
            stream = await self.open_stream()
        except ConnectError as e:
            raise SessionError(str(e), code="connection_failed", retryable=True) from e

        try:
            session = await ChatSession.start(
                stream, StartChat.from_request(self._connector.api_key, request)
            )
        except SessionError as e:
            stream.cancel()
            raise SessionError(
                f"failed to send start request: {e.message}", code="start_failed", retryable=True
            ) from e
        _logger.debug("Started chat session (model=%s)", request.model or "<default>")
        return session

    async def chat_stream(
        self, request: ChatRequest, on_chunk: ChunkCallback | None = None
    ) -> ChatResponse:
        """Stream a single reply to the last message of ``request``.

        Earlier messages are sent as seed context; the last one must come
        from the user. The session is closed afterwards.

        Raises:
            ValueError: If there is no message or the last one is not from the user
            SessionError: If the session fails
        """
        if not request.messages:
            raise ValueError("at least one message is required")
        last = request.messages[-1]
        if last.role != ChatRole.USER.value:
            raise ValueError("last message must be from user")

        seed = request.model_copy(update={"messages": request.messages[:-1]})
        async with await self.new_session(seed) as session:
            return await session.send(last.content, on_chunk)

    async def close(self) -> None:
        await self._connector.close()

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


__all__ = ["LLMClient"]

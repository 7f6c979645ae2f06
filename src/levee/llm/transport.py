"""gRPC transport for the Levee LLM backend.

Public API (the "studs"):
    Connector: Lazily creates and caches the shared gRPC channel
    ConnectionState: States of the connector's channel cell
    ChatStream: Exclusive handle on one bidirectional Chat call
    ChannelFactory: Signature of the channel constructor hook
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

import grpc
import httpx
from pydantic import ValidationError

from levee.llm import proto
from levee.llm.codec import decode_event, encode_request
from levee.llm.config import LLMClientConfig, LLMServiceConfig
from levee.llm.events import BackendEvent, ClientRequest
from levee.llm.exceptions import ConnectError, SessionError

_logger = logging.getLogger(__name__)

CONFIG_PATH = "/sdk/v1/llm/config"

# (address, use_tls) -> channel
ChannelFactory = Callable[[str, bool], Any]


def open_channel(address: str, use_tls: bool) -> grpc.aio.Channel:
    """Create a gRPC channel; TLS uses the default trust roots."""
    if use_tls:
        return grpc.aio.secure_channel(address, grpc.ssl_channel_credentials())
    return grpc.aio.insecure_channel(address)


class ConnectionState(str, Enum):
    """States of the connector's channel cell."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class ChatStream:
    """Exclusive handle on one bidirectional ``Chat`` call.

    Translates between chat envelopes and protobuf messages. The caller
    must not issue concurrent ``write`` calls.
    """

    def __init__(self, call: Any) -> None:
        self._call = call

    async def write(self, request: ClientRequest) -> None:
        """Send one envelope.

        Raises:
            SessionError: If the transport rejects the write (code "send_failed")
        """
        try:
            await self._call.write(encode_request(request))
        except (grpc.RpcError, grpc.aio.BaseError) as e:
            raise SessionError(
                f"failed to send {request.kind}: {e}", code="send_failed", retryable=True
            ) from e

    async def read(self) -> BackendEvent | None:
        """Receive the next event, or None at end of stream.

        Raises:
            SessionError: If the transport fails (code "stream_error")
        """
        try:
            response = await self._call.read()
        except (grpc.RpcError, grpc.aio.BaseError) as e:
            raise SessionError(f"stream receive error: {e}", code="stream_error") from e
        if response is grpc.aio.EOF:
            return None
        try:
            return decode_event(response)
        except ValueError as e:
            raise SessionError(str(e), code="stream_error") from e

    async def done_writing(self) -> None:
        """Half-close the stream; the backend still may send."""
        try:
            await self._call.done_writing()
        except (grpc.RpcError, grpc.aio.BaseError) as e:
            raise SessionError(f"failed to close stream: {e}", code="stream_error") from e

    def cancel(self) -> None:
        self._call.cancel()


class Connector:
    """Lazily establishes one multiplexed gRPC channel per client config.

    ``connect()`` is idempotent and safe to call before every operation.
    The whole resolve-and-connect step runs under one lock, so concurrent
    callers never create two channels.
    """

    def __init__(
        self,
        config: LLMClientConfig,
        http_client: httpx.AsyncClient | None = None,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._channel_factory = channel_factory or open_channel
        self._address = config.grpc_address
        self._lock = asyncio.Lock()
        self._state = ConnectionState.UNINITIALIZED
        self._channel: Any = None
        self._simple_chat: Any = None
        self._chat: Any = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def address(self) -> str | None:
        """Resolved gRPC address, once known."""
        return self._address

    @property
    def api_key(self) -> str:
        return self._config.api_key.get_secret_value()

    async def discover(self) -> LLMServiceConfig:
        """Fetch the LLM service config from the HTTP API.

        Raises:
            ConnectError: On request failure, non-200 status or bad body
        """
        if not self._config.base_url:
            raise ConnectError("base_url is required for auto-discovery")

        url = self._config.base_url + CONFIG_PATH
        headers = {"X-API-Key": self.api_key}
        try:
            if self._http_client is not None:
                resp = await self._http_client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    resp = await client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            raise ConnectError("LLM config request timed out") from e
        except httpx.RequestError as e:
            raise ConnectError(f"failed to fetch LLM config: {e}") from e

        if resp.status_code != 200:
            raise ConnectError(
                f"config request failed with status {resp.status_code}: {resp.text}"
            )

        try:
            return LLMServiceConfig.model_validate_json(resp.content)
        except ValidationError as e:
            raise ConnectError(f"failed to decode config response: {e}") from e

    async def _resolve_address(self) -> str:
        if self._address:
            return self._address

        service = await self.discover()
        if not service.available:
            raise ConnectError("LLM service is not available for this organization")
        if not service.grpc_port:
            raise ConnectError("LLM config response did not include a gRPC port")

        self._address = f"{self._config.host}:{service.grpc_port}"
        _logger.debug("Discovered LLM gRPC address %s", self._address)
        return self._address

    async def connect(self) -> None:
        """Create the channel if not already connected.

        Raises:
            ConnectError: If the address cannot be resolved or the channel
                cannot be created
        """
        async with self._lock:
            if self._state is ConnectionState.READY:
                return

            self._state = ConnectionState.CONNECTING
            try:
                address = await self._resolve_address()
            except ConnectError:
                self._state = ConnectionState.FAILED
                raise

            try:
                channel = self._channel_factory(address, self._config.use_tls)
            except Exception as e:
                self._state = ConnectionState.FAILED
                raise ConnectError(f"failed to connect to LLM server at {address}: {e}") from e

            self._channel = channel
            self._simple_chat = channel.unary_unary(
                proto.SIMPLE_CHAT_METHOD,
                request_serializer=proto.SimpleChatRequest.SerializeToString,
                response_deserializer=proto.SimpleChatResponse.FromString,
            )
            self._chat = channel.stream_stream(
                proto.CHAT_METHOD,
                request_serializer=proto.ChatRequest.SerializeToString,
                response_deserializer=proto.ChatResponse.FromString,
            )
            self._state = ConnectionState.READY
            _logger.debug(
                "Connected to LLM server at %s (tls=%s)", address, self._config.use_tls
            )

    def _require_ready(self) -> None:
        if self._state is not ConnectionState.READY:
            raise ConnectError(f"not connected (state={self._state.value})")

    async def simple_chat(self, request: Any) -> Any:
        """Issue one ``SimpleChat`` RPC on the connected channel."""
        self._require_ready()
        return await self._simple_chat(request)

    def open_chat_stream(self) -> ChatStream:
        """Open a new bidirectional ``Chat`` call on the connected channel."""
        self._require_ready()
        return ChatStream(self._chat())

    async def close(self) -> None:
        """Release the channel. Safe to call multiple times."""
        async with self._lock:
            if self._channel is None:
                return
            channel = self._channel
            self._channel = None
            self._simple_chat = None
            self._chat = None
            self._state = ConnectionState.CLOSED
            await channel.close()
            _logger.debug("Closed LLM channel")


__all__ = ["Connector", "ConnectionState", "ChatStream", "ChannelFactory", "open_channel"]

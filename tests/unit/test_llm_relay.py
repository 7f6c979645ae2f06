"""Tests for the WebSocket relay session."""

import asyncio

import grpc
import pytest

from levee.llm.relay import RelaySession

from llm_fakes import (
    CountingChannelFactory,
    FakeCall,
    FakeChannel,
    FakeWebSocket,
    aborted,
    chunk,
    completion,
    error,
    started,
    tool_call,
    wait_until,
)

START = {"type": "start", "data": {"model": "sonnet", "system_prompt": "Be brief"}}


@pytest.fixture()
def relay_for(make_client):
    """Build a relay over a fake socket and a channel serving the given calls."""

    def _make(*calls, websocket=None):
        factory = CountingChannelFactory(FakeChannel(calls=list(calls)))
        ws = websocket or FakeWebSocket()
        return RelaySession(ws, make_client(factory)), ws, factory

    return _make


class TestRelayBeforeStart:
    async def test_message_before_start(self, relay_for):
        relay, ws, factory = relay_for()

        await relay.handle_frame('{"type": "message", "data": {"content": "Hi"}}')

        assert ws.sent == [
            {
                "type": "error",
                "data": {"code": "not_started", "message": "Session not started", "retryable": False},
            }
        ]
        assert factory.count == 0

    async def test_tool_result_before_start(self, relay_for):
        relay, ws, _ = relay_for()
        await relay.handle_frame('{"type": "tool_result", "data": {"tool_call_id": "c-1"}}')
        assert ws.error_codes() == ["not_started"]

    async def test_abort_before_start_is_ignored(self, relay_for):
        relay, ws, factory = relay_for()
        await relay.handle_frame('{"type": "abort", "data": {"reason": "stop"}}')
        assert ws.sent == []
        assert factory.count == 0

    async def test_invalid_json(self, relay_for):
        relay, ws, _ = relay_for()
        await relay.handle_frame("{not json")
        assert ws.error_codes() == ["invalid_json"]
        assert ws.sent[0]["data"]["message"] == "Invalid JSON message"

    async def test_unknown_type(self, relay_for):
        relay, ws, _ = relay_for()
        await relay.handle_frame('{"type": "ping"}')
        assert ws.error_codes() == ["unknown_type"]
        assert ws.sent[0]["data"]["message"] == "Unknown message type: ping"

    async def test_invalid_start_payload(self, relay_for):
        relay, ws, factory = relay_for()
        await relay.handle_frame('{"type": "start", "data": {"max_tokens": "lots"}}')
        assert ws.error_codes() == ["invalid_data"]
        assert relay.started is False


class TestRelayStart:
    async def test_start_sends_start_envelope(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame(
            '{"type": "start", "data": {"model": "sonnet", "system_prompt": "Be brief",'
            ' "max_tokens": 256, "temperature": 0.3,'
            ' "messages": [{"role": "user", "content": "Earlier"}]}}'
        )

        assert relay.started is True
        assert call.kinds() == ["start"]
        start = call.written[0].start
        assert start.api_key == "lv-test-key"
        assert start.model == "sonnet"
        assert start.system_prompt == "Be brief"
        assert start.max_tokens == 256
        assert [m.content for m in start.messages] == ["Earlier"]
        await relay._shutdown()

    async def test_start_without_data(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start"}')

        assert relay.started is True
        assert call.written[0].start.model == ""
        await relay._shutdown()

    async def test_double_start(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, factory = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await relay.handle_frame('{"type": "start", "data": {}}')
        await relay.handle_frame('{"type": "message", "data": {"content": "Hi"}}')

        assert ws.error_codes() == ["already_started"]
        assert factory.channel.opened == [call]
        assert call.kinds() == ["start", "message"]
        await relay._shutdown()

    async def test_connection_failure_is_retryable(self, make_client):
        def broken_factory(address, use_tls):
            raise RuntimeError("no route to host")

        ws = FakeWebSocket()
        relay = RelaySession(ws, make_client(broken_factory))

        await relay.handle_frame('{"type": "start", "data": {}}')

        assert ws.error_codes() == ["connection_failed"]
        assert ws.sent[0]["data"]["retryable"] is True
        assert relay.started is False

    async def test_start_write_failure(self, relay_for):
        call = FakeCall()
        call.write_error = grpc.RpcError("unavailable")
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')

        assert ws.error_codes() == ["start_failed"]
        assert call.cancelled is True
        assert relay.started is False


class TestRelayForwarding:
    async def test_full_turn(self, relay_for):
        call = FakeCall(
            started(),
            chunk("Hel", 0),
            tool_call(),
            chunk("lo", 1),
            completion("Hello", input_tokens=5, output_tokens=2),
            hold_open=True,
        )
        ws = FakeWebSocket(START, {"type": "message", "data": {"content": "Hi"}})
        relay, _, _ = relay_for(call, websocket=ws)

        task = asyncio.create_task(relay.run())
        await wait_until(lambda: len(ws.sent) == 5)
        ws.push(None)
        await task

        assert ws.types() == ["started", "chunk", "tool_call", "chunk", "completion"]
        assert ws.sent[0]["data"] == {
            "session_id": "sess-1",
            "provider": "anthropic",
            "model": "claude-sonnet",
        }
        assert ws.sent[1]["data"] == {"content": "Hel", "index": 0}
        assert ws.sent[2]["data"]["name"] == "lookup"
        assert ws.sent[4]["data"]["full_content"] == "Hello"
        assert ws.sent[4]["data"]["input_tokens"] == 5
        assert call.kinds() == ["start", "message"]
        assert call.cancelled is True

    async def test_backend_error_and_abort_become_error_frames(self, relay_for):
        call = FakeCall(error("overloaded", "busy", retryable=True), aborted("stop"))
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await wait_until(lambda: len(ws.sent) == 2)

        assert ws.sent == [
            {"type": "error", "data": {"code": "overloaded", "message": "busy", "retryable": True}},
            {"type": "error", "data": {"code": "aborted", "message": "stop", "retryable": False}},
        ]
        await relay._shutdown()

    async def test_stream_failure_sends_stream_error(self, relay_for):
        call = FakeCall(chunk("Hel", 0), grpc.RpcError("connection reset"))
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await wait_until(lambda: len(ws.sent) == 2)

        assert ws.types() == ["chunk", "error"]
        assert ws.sent[1]["data"]["code"] == "stream_error"
        assert ws.sent[1]["data"]["retryable"] is False
        await relay._shutdown()

    async def test_abort_is_forwarded(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await relay.handle_frame('{"type": "abort", "data": {"reason": "user clicked stop"}}')
        await relay.handle_frame('{"type": "abort", "data": {"reason": 42}}')

        assert call.kinds() == ["start", "abort", "abort"]
        assert call.written[1].abort.reason == "user clicked stop"
        assert call.written[2].abort.reason == ""
        assert ws.sent == []
        await relay._shutdown()

    async def test_tool_result_is_forwarded(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await relay.handle_frame(
            '{"type": "tool_result",'
            ' "data": {"tool_call_id": "call-1", "result": "42", "is_error": false}}'
        )

        assert call.kinds() == ["start", "tool_result"]
        assert call.written[1].tool_result.tool_call_id == "call-1"
        assert call.written[1].tool_result.result == "42"
        await relay._shutdown()

    async def test_invalid_message_payload(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        await relay.handle_frame('{"type": "message", "data": {"text": "Hi"}}')
        await relay.handle_frame('{"type": "tool_result", "data": {"result": "42"}}')

        assert ws.error_codes() == ["invalid_data", "invalid_data"]
        assert call.kinds() == ["start"]
        await relay._shutdown()

    async def test_message_write_failure(self, relay_for):
        call = FakeCall(hold_open=True)
        relay, ws, _ = relay_for(call)

        await relay.handle_frame('{"type": "start", "data": {}}')
        call.write_error = grpc.RpcError("broken pipe")
        await relay.handle_frame('{"type": "message", "data": {"content": "Hi"}}')

        assert ws.error_codes() == ["send_failed"]
        assert ws.sent[0]["data"]["retryable"] is True
        await relay._shutdown()


class TestRelayShutdown:
    async def test_disconnect_cancels_stream(self, relay_for):
        call = FakeCall(hold_open=True)
        ws = FakeWebSocket(START, None)
        relay, _, _ = relay_for(call, websocket=ws)

        await relay.run()

        assert call.cancelled is True
        assert ws.sent == []

    async def test_disconnect_before_start(self, relay_for):
        ws = FakeWebSocket(None)
        relay, _, factory = relay_for(websocket=ws)

        await relay.run()

        assert factory.count == 0

    async def test_cancelled_while_waiting_for_forwarder(self, relay_for):
        relay, _, _ = relay_for()
        release = asyncio.Event()

        async def slow_to_stop():
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                await release.wait()
                raise

        forwarder = asyncio.create_task(slow_to_stop())
        await asyncio.sleep(0)
        relay._forward_task = forwarder

        shutdown = asyncio.create_task(relay._shutdown())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        shutdown.cancel()

        with pytest.raises(asyncio.CancelledError):
            await shutdown

        release.set()
        with pytest.raises(asyncio.CancelledError):
            await forwarder


class TestRelayBinaryFrames:
    async def test_binary_frame_is_decoded_as_json(self, relay_for):
        ws = FakeWebSocket(b'{"type": "message", "data": {"content": "Hi"}}', None)
        relay, _, _ = relay_for(websocket=ws)

        await relay.run()

        assert ws.error_codes() == ["not_started"]

    async def test_undecodable_binary_frame_keeps_serving(self, relay_for):
        ws = FakeWebSocket(b"\xff\xfe", b"", '{"type": "ping"}', None)
        relay, _, _ = relay_for(websocket=ws)

        await relay.run()

        assert ws.error_codes() == ["invalid_json", "invalid_json", "unknown_type"]

    async def test_binary_frames_drive_a_turn(self, relay_for):
        call = FakeCall(chunk("Hi", 0), completion("Hi"), hold_open=True)
        ws = FakeWebSocket(
            b'{"type": "start", "data": {}}',
            b'{"type": "message", "data": {"content": "Hello"}}',
        )
        relay, _, _ = relay_for(call, websocket=ws)

        task = asyncio.create_task(relay.run())
        await wait_until(lambda: len(ws.sent) == 2)
        ws.push(None)
        await task

        assert ws.types() == ["chunk", "completion"]
        assert call.kinds() == ["start", "message"]

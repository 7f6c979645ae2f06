"""Tests for CLI commands using Click's CliRunner."""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import grpc
import httpx
import yaml
from click.testing import CliRunner

from levee.cli.main import cli
from levee.llm import proto
from levee.llm.client import LLMClient
from levee.llm.config import LLMClientConfig

from llm_fakes import CountingChannelFactory, FakeCall, FakeChannel, chunk, completion, error

runner = CliRunner()


def _simple_reply(content="Hello from Levee"):
    return proto.SimpleChatResponse(
        content=content,
        model="claude-sonnet",
        input_tokens=9,
        output_tokens=4,
        cost_usd=0.0002,
        latency_ms=310,
        stop_reason="end_turn",
    )


def _patched(client):
    return patch("levee.cli.main.get_client", return_value=client)


class TestCLIBasic:
    """Tests for basic CLI functionality."""

    def test_version(self):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "levee-sdk" in result.output
        assert "0.1.0" in result.output

    def test_help(self):
        result = runner.invoke(cli, ["llm", "--help"])
        assert result.exit_code == 0
        assert "chat" in result.output
        assert "session" in result.output
        assert "config" in result.output

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            result = runner.invoke(cli, ["llm", "chat", "Hi"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert "LEVEE_API_KEY" in result.output


class TestChatCommand:
    """Tests for the chat command."""

    def test_chat(self, make_client):
        channel = FakeChannel(simple_reply=_simple_reply())
        with _patched(make_client(CountingChannelFactory(channel))):
            result = runner.invoke(cli, ["llm", "chat", "Hi", "--model", "sonnet"])

        assert result.exit_code == 0
        assert "Hello from Levee" in result.output
        assert "tokens in=9 out=4" in result.output
        sent = channel.simple_requests[0]
        assert sent.model == "sonnet"
        assert [(m.role, m.content) for m in sent.messages] == [("user", "Hi")]
        assert channel.closed is True

    def test_chat_json(self, make_client):
        channel = FakeChannel(simple_reply=_simple_reply())
        with _patched(make_client(CountingChannelFactory(channel))):
            result = runner.invoke(cli, ["llm", "chat", "Hi", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["content"] == "Hello from Levee"
        assert data["input_tokens"] == 9

    def test_chat_stream(self, make_client):
        call = FakeCall(chunk("Hel", 0), chunk("lo", 1), completion("Hello"))
        channel = FakeChannel(calls=[call])
        with _patched(make_client(CountingChannelFactory(channel))):
            result = runner.invoke(cli, ["llm", "chat", "Hi", "--stream", "-s", "Be brief"])

        assert result.exit_code == 0
        assert "Hello" in result.output
        assert call.kinds() == ["start", "message"]
        assert call.written[0].start.system_prompt == "Be brief"
        assert call.written[1].message.content == "Hi"

    def test_chat_failure(self, make_client):
        channel = FakeChannel(simple_error=grpc.RpcError("unavailable"))
        with _patched(make_client(CountingChannelFactory(channel))):
            result = runner.invoke(cli, ["llm", "chat", "Hi"])

        assert result.exit_code == 1
        assert "chat request failed" in result.output

    def test_chat_with_params_file(self, make_client):
        params = {
            "model": "haiku",
            "max_tokens": 200,
            "system_prompt": "Answer in French",
            "messages": [
                {"role": "user", "content": "Hello"},
                {"role": "assistant", "content": "Bonjour"},
            ],
        }
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            yaml.dump(params, f)
            params_path = f.name

        channel = FakeChannel(simple_reply=_simple_reply())
        try:
            with _patched(make_client(CountingChannelFactory(channel))):
                result = runner.invoke(
                    cli,
                    ["llm", "chat", "How are you?", "--params-file", params_path, "-m", "opus"],
                )
        finally:
            Path(params_path).unlink()

        assert result.exit_code == 0
        sent = channel.simple_requests[0]
        assert sent.model == "opus"
        assert sent.max_tokens == 200
        assert sent.system_prompt == "Answer in French"
        assert [m.content for m in sent.messages] == ["Hello", "Bonjour", "How are you?"]

    def test_params_file_not_found(self):
        result = runner.invoke(cli, ["llm", "chat", "Hi", "--params-file", "/nonexistent.yaml"])
        assert result.exit_code != 0
        assert "not found" in result.output.lower()

    def test_params_file_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("invalid: yaml: content: [")
            params_path = f.name

        try:
            result = runner.invoke(cli, ["llm", "chat", "Hi", "--params-file", params_path])
        finally:
            Path(params_path).unlink()

        assert result.exit_code != 0
        assert "Invalid YAML" in result.output

    def test_invalid_parameters(self):
        result = runner.invoke(cli, ["llm", "chat", "Hi", "--max-tokens", "0"])
        assert result.exit_code != 0
        assert "Invalid chat parameters" in result.output


class TestSessionCommand:
    """Tests for the interactive session command."""

    def test_multi_turn(self, make_client):
        call = FakeCall(
            chunk("Hi", 0),
            completion("Hi"),
            error("rate_limited", "slow down"),
            chunk("Sure", 0),
            completion("Sure"),
        )
        channel = FakeChannel(calls=[call])
        with _patched(make_client(CountingChannelFactory(channel))):
            result = runner.invoke(
                cli,
                ["llm", "session", "--model", "sonnet"],
                input="Hello\n\nAgain\nOnce more\n/quit\nignored\n",
            )

        assert result.exit_code == 0
        assert "Error: slow down" in result.output
        assert "Sure" in result.output
        assert call.kinds() == ["start", "message", "message", "message"]
        assert [req.message.content for req in call.written[1:]] == [
            "Hello",
            "Again",
            "Once more",
        ]
        assert call.done_writing_called is True


class TestConfigCommand:
    """Tests for the config command."""

    def _client(self, payload):
        def handler(request):
            return httpx.Response(200, json=payload)

        config = LLMClientConfig(api_key="lv-test-key", base_url="https://levee.example.com")
        return LLMClient(config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    def test_config_text(self):
        client = self._client(
            {
                "available": True,
                "grpc_port": 9443,
                "default_provider": "anthropic",
                "configured_providers": ["anthropic", "openai"],
            }
        )
        with _patched(client):
            result = runner.invoke(cli, ["llm", "config"])

        assert result.exit_code == 0
        assert "Available:        yes" in result.output
        assert "9443" in result.output
        assert "anthropic, openai" in result.output

    def test_config_json(self):
        client = self._client({"available": False})
        with _patched(client):
            result = runner.invoke(cli, ["llm", "config", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["available"] is False

    def test_config_requires_base_url(self, make_client):
        with _patched(make_client(CountingChannelFactory())):
            result = runner.invoke(cli, ["llm", "config"])

        assert result.exit_code == 1
        assert "base_url is required" in result.output

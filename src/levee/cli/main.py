"""Main CLI entry point for the Levee SDK.

Provides quick checks against the Levee LLM gateway:
    levee llm config
    levee llm chat <prompt> [options]
    levee llm session [options]

Configuration comes from the environment (LEVEE_API_KEY, LEVEE_BASE_URL,
LEVEE_GRPC_ADDRESS, LEVEE_TIMEOUT_SECONDS).
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError

from .. import __version__
from ..llm import ChatRequest, ChatResponse, LLMClient, LLMError, SessionError, StreamChunk


def run_async(coro: Any) -> Any:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def get_client() -> LLMClient:
    """Create a client from environment variables."""
    try:
        return LLMClient.from_env()
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from None


def _load_params_file(params_file: str) -> dict[str, Any]:
    """Load chat parameters from a YAML file.

    Args:
        params_file: Path to the YAML file

    Returns:
        Parsed parameter mapping

    Raises:
        click.ClickException: If file not found or invalid YAML
    """
    path = Path(params_file)
    if not path.exists():
        raise click.ClickException(f"Params file not found: {params_file}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise click.ClickException(f"Invalid YAML in params file: {e}") from None

    if not isinstance(data, dict):
        raise click.ClickException("Params file must contain a YAML mapping (dict)")

    return data


def _build_request(
    params_file: str | None,
    system_prompt: str | None,
    model: str | None,
    max_tokens: int | None,
    temperature: float | None,
    prompt: str | None = None,
) -> ChatRequest:
    """Merge file params and CLI flags (flags take precedence)."""
    params: dict[str, Any] = _load_params_file(params_file) if params_file else {}

    overrides = {
        "system_prompt": system_prompt,
        "model": model,
        "max_tokens": max_tokens,
        "temperature": temperature,
    }
    params.update({k: v for k, v in overrides.items() if v is not None})

    messages = list(params.pop("messages", None) or [])
    if prompt is not None:
        messages.append({"role": "user", "content": prompt})

    try:
        return ChatRequest(messages=messages, **params)
    except (ValidationError, TypeError) as e:
        raise click.ClickException(f"Invalid chat parameters: {e}") from None


def _echo_chunk(chunk: StreamChunk) -> None:
    click.echo(chunk.content, nl=False)


def _echo_usage(response: ChatResponse) -> None:
    click.echo(
        f"[{response.model or 'model n/a'}] "
        f"tokens in={response.input_tokens} out={response.output_tokens} "
        f"cost=${response.cost_usd:.6f} latency={response.latency_ms}ms "
        f"stop={response.stop_reason or 'n/a'}",
        err=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="levee-sdk")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
def cli(log_level: str) -> None:
    """Levee SDK command line.

    \b
    Commands:
        levee llm config
        levee llm chat "Hello" --model sonnet
        levee llm session --model sonnet
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s %(name)s %(message)s",
    )


@cli.group()
def llm() -> None:
    """LLM gateway commands."""
    pass


# =============================================================================
# Config Command
# =============================================================================


@llm.command("config")
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)
def llm_config(output_format: str) -> None:
    """Show the LLM service config discovered from the HTTP API.

    \b
    Examples:
        levee llm config
        levee llm config --format json
    """
    client = get_client()

    async def _discover():
        async with client:
            return await client.discover()

    try:
        service = run_async(_discover())
    except LLMError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(service.model_dump_json(indent=2))
        return

    click.echo(f"Available:        {'yes' if service.available else 'no'}")
    click.echo(f"gRPC port:        {service.grpc_port}")
    click.echo(f"Default provider: {service.default_provider or '-'}")
    providers = ", ".join(service.configured_providers) or "-"
    click.echo(f"Providers:        {providers}")


# =============================================================================
# Chat Command
# =============================================================================


@llm.command()
@click.argument("prompt")
@click.option("--system", "-s", "system_prompt", help="System prompt")
@click.option("--model", "-m", help="Model alias (haiku, sonnet, opus) or full model ID")
@click.option("--max-tokens", type=int, help="Maximum tokens to generate")
@click.option("--temperature", type=float, help="Sampling temperature")
@click.option(
    "--params-file",
    type=click.Path(exists=False),
    help="YAML chat parameters file (CLI flags take precedence)",
)
@click.option("--stream", is_flag=True, help="Stream the reply as it is generated")
@click.option(
    "--format", "-f", "output_format", type=click.Choice(["text", "json"]), default="text"
)
def chat(
    prompt: str,
    system_prompt: str | None,
    model: str | None,
    max_tokens: int | None,
    temperature: float | None,
    params_file: str | None,
    stream: bool,
    output_format: str,
) -> None:
    """Send one prompt and print the reply.

    \b
    Examples:
        levee llm chat "Hello" --model sonnet
        levee llm chat "Summarize this" --params-file chat.yaml --stream
        levee llm chat "Hello" --format json
    """
    request = _build_request(params_file, system_prompt, model, max_tokens, temperature, prompt)
    client = get_client()
    echo_chunks = stream and output_format == "text"

    async def _chat() -> ChatResponse:
        async with client:
            if stream:
                return await client.chat_stream(
                    request, on_chunk=_echo_chunk if echo_chunks else None
                )
            return await client.chat(request)

    try:
        response = run_async(_chat())
    except LLMError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(response.model_dump_json(indent=2))
        return

    if echo_chunks:
        click.echo()
    else:
        click.echo(response.content)
    _echo_usage(response)


# =============================================================================
# Session Command
# =============================================================================


@llm.command()
@click.option("--system", "-s", "system_prompt", help="System prompt")
@click.option("--model", "-m", help="Model alias (haiku, sonnet, opus) or full model ID")
@click.option("--max-tokens", type=int, help="Maximum tokens to generate")
@click.option("--temperature", type=float, help="Sampling temperature")
@click.option(
    "--params-file",
    type=click.Path(exists=False),
    help="YAML chat parameters file (CLI flags take precedence)",
)
def session(
    system_prompt: str | None,
    model: str | None,
    max_tokens: int | None,
    temperature: float | None,
    params_file: str | None,
) -> None:
    """Interactive multi-turn chat over one streaming session.

    Reads one prompt per line from stdin. Ends on EOF or /quit.

    \b
    Examples:
        levee llm session --model sonnet
        levee llm session --params-file chat.yaml
    """
    request = _build_request(params_file, system_prompt, model, max_tokens, temperature)
    client = get_client()

    async def _run() -> None:
        async with client:
            async with await client.new_session(request) as chat_session:
                while True:
                    click.echo("> ", nl=False)
                    line = await asyncio.to_thread(sys.stdin.readline)
                    if not line:
                        break
                    text = line.strip()
                    if text in ("/quit", "/exit"):
                        break
                    if not text:
                        continue
                    try:
                        response = await chat_session.send(text, on_chunk=_echo_chunk)
                    except SessionError as e:
                        if e.code == "stream_error":
                            raise
                        click.echo(f"\nError: {e}", err=True)
                        continue
                    click.echo()
                    _echo_usage(response)

    try:
        run_async(_run())
    except LLMError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()

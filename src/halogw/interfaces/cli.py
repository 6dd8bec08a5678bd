"""CLI interface for halogw using Click."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from pydantic import ValidationError

from halogw.core.errors import GatewayError
from halogw.core.service import GatewayService
from halogw.llm.schemas import ChatMessage, ChatRequest, format_validation_errors
from halogw.llm.task_profiles import TASK_PROFILES


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@click.group()
@click.version_option(version="0.1.0", prog_name="halogw")
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """halogw - OpenAI-compatible multi-provider LLM gateway"""
    ctx.ensure_object(dict)
    service = GatewayService()
    ctx.obj["service"] = service
    _configure_logging(log_level or service.settings.log_level)


@cli.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", "-p", default=None, type=int, help="Port (default from settings)")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from halogw.interfaces.web.app import create_app

    service: GatewayService = ctx.obj["service"]
    app = create_app(service=service)
    uvicorn.run(
        app,
        host=host or service.settings.server.host,
        port=port or service.settings.server.port,
        log_level=service.settings.log_level.lower(),
    )


@cli.command("models")
@click.option("--provider", default=None, help="Only models routable through this provider")
@click.pass_context
def list_models(ctx: click.Context, provider: str | None):
    """List models and their capabilities."""
    service: GatewayService = ctx.obj["service"]
    models = service.list_models(provider)
    if not models:
        click.echo("No models found.")
        return

    click.echo(f"{'Model':<18} {'Vision':<7} {'Tools':<6} {'Reasoning':<10} {'Stream':<7} {'Context'}")
    click.echo("-" * 70)
    for card in models:
        caps = card["capabilities"]
        click.echo(
            f"{card['id']:<18} {_yes(caps['vision']):<7} {_yes(caps['tool_calls']):<6} "
            f"{_yes(caps['reasoning']):<10} {_yes(caps['supports_streaming']):<7} "
            f"{caps['max_context_tokens']}"
        )


def _yes(flag: bool) -> str:
    return "yes" if flag else "-"


@cli.command("profiles")
def list_profiles():
    """List task profiles."""
    click.echo(f"{'Profile':<16} {'Model':<12} {'Reasoning':<10} {'Description'}")
    click.echo("-" * 70)
    for profile in TASK_PROFILES.values():
        click.echo(
            f"{profile.name:<16} {profile.model:<12} {profile.reasoning_effort or '-':<10} "
            f"{profile.description[:40]}"
        )


@cli.command()
@click.argument("message")
@click.option("--model", "-m", default=None, help="Model to use")
@click.option("--task-profile", "-t", default=None, help="Pick the model by task profile")
@click.option("--provider", default=None, help="Provider (default from settings)")
@click.option("--stream/--no-stream", default=False, help="Stream the response")
@click.pass_context
def chat(
    ctx: click.Context,
    message: str,
    model: str | None,
    task_profile: str | None,
    provider: str | None,
    stream: bool,
):
    """Send a single message through the gateway and print the reply."""
    service: GatewayService = ctx.obj["service"]
    try:
        request = ChatRequest(
            model=model,
            task_profile=task_profile,
            provider=provider,
            stream=stream,
            messages=[ChatMessage(role="user", content=message)],
        )
        asyncio.run(_chat(service, request))
    except ValidationError as e:
        click.echo(f"Error: {format_validation_errors(e)}", err=True)
        sys.exit(1)
    except GatewayError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


async def _chat(service: GatewayService, request: ChatRequest):
    try:
        prepared = service.prepare(request)
        if not prepared.stream:
            response = await service.complete(prepared)
            click.echo(response.choices[0].message.content if response.choices else "")
            return

        async for frame in service.stream(prepared):
            payload = frame[len("data: "):].strip()
            if payload == "[DONE]":
                break
            chunk = json.loads(payload)
            if chunk.get("halo_metadata"):
                continue
            for choice in chunk.get("choices", []):
                content = choice.get("delta", {}).get("content")
                if content:
                    click.echo(content, nl=False)
        click.echo()
    finally:
        await service.aclose()

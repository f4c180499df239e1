"""CLI commands for koro."""

import asyncio
from pathlib import Path

import httpx
import typer
from rich.console import Console

from koro import __version__

app = typer.Typer(
    name="koro",
    help="koro - a personal agent with durable memory",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"koro v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """koro - Personal Agent Core."""
    pass


# ============================================================================
# Provider / Dispatcher Factory
# ============================================================================


def create_provider(config):
    """Instantiate the correct LLM provider from config.

    Uses lazy imports so a missing SDK only errors when that provider is selected.
    """
    from koro.providers import OpenAICompatibleProvider

    api_key = config.get_api_key()
    api_base = config.get_api_base()
    model = config.agent.model
    timeout = config.agent.model_timeout

    if config.agent.provider == "anthropic":
        from koro.providers.anthropic import AnthropicProvider

        return AnthropicProvider(
            api_key=api_key, api_base=api_base, default_model=model or "claude-sonnet-4-6",
            timeout=timeout,
        )
    return OpenAICompatibleProvider(
        api_key=api_key, api_base=api_base, default_model=model or "gpt-4o", timeout=timeout
    )


def _load_ready_config():
    from koro.config import load_config
    from koro.logging import setup_logging

    config = load_config()
    setup_logging(config.logging.level, config.logging.format)

    if not config.get_api_key():
        console.print("[red]Error: No API key configured.[/red]")
        console.print("Run [cyan]koro init[/cyan] and edit the config to set a provider.")
        raise typer.Exit(1)
    return config


# ============================================================================
# Init
# ============================================================================


DEFAULT_CORE = {
    "identity.md": "# Identity\n\nI am koro, a personal AI agent. I remember everything.\n",
    "user.md": "# User\n\n(Not yet configured)\n",
    "state.md": "# State\n\n(No state yet)\n",
}

EXAMPLE_SKILL = """---
description: Report disk usage of the workspace
---

# Disk Report

## Steps
1. Show the total size of the workspace directory
2. List the five largest entries in the workspace
"""


def _create_templates(config) -> None:
    """Create the home layout with default core memory and an example skill."""
    core_dir = config.memory_path / "core"
    core_dir.mkdir(parents=True, exist_ok=True)
    for sub in ("daily", "weekly", "monthly"):
        (config.memory_path / "logs" / sub).mkdir(parents=True, exist_ok=True)
    config.skills_path.mkdir(parents=True, exist_ok=True)
    config.workspace_path.mkdir(parents=True, exist_ok=True)

    for filename, content in DEFAULT_CORE.items():
        path = core_dir / filename
        if not path.exists():
            path.write_text(content, encoding="utf-8")

    example = config.skills_path / "disk_report.md"
    if not any(config.skills_path.iterdir()):
        example.write_text(EXAMPLE_SKILL, encoding="utf-8")


@app.command()
def init(
    provider: str = typer.Option("openai", "--provider", "-p", help="openai or anthropic"),
    model: str = typer.Option("", "--model", help="Model identifier"),
):
    """Create the config file and the memory/skill directories."""
    from koro.config import Config, get_config_path, load_config, save_config

    config_path = get_config_path()
    if config_path.exists():
        config = load_config()
        console.print(f"[dim]Updating existing config at {config_path}[/dim]")
    else:
        config = Config()

    if provider not in ("openai", "anthropic"):
        console.print(f"[red]Unknown provider: {provider}[/red]")
        raise typer.Exit(1)
    config.agent.provider = provider
    if model:
        config.agent.model = model

    save_config(config)
    _create_templates(config)

    console.print(f"[green]>[/green] Config saved to {config_path}")
    console.print(f"[green]>[/green] Memory at {config.memory_path}")
    console.print(f"[green]>[/green] Skills at {config.skills_path}")
    console.print(f"\nSet [cyan]providers.{provider}.api_key[/cyan] in the config, "
                  "then run [cyan]koro serve[/cyan].")


# ============================================================================
# Serve
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", help="Bind port"),
):
    """Run the message endpoint and the tool protocol."""
    import uvicorn

    from koro.agent import RequestDispatcher
    from koro.api import create_app

    config = _load_ready_config()
    dispatcher = RequestDispatcher.from_config(config, create_provider(config))
    api = create_app(dispatcher, name=config.agent.name)

    console.print(f"Starting {config.agent.name} on {host or config.api.host}:{port or config.api.port}")
    uvicorn.run(api, host=host or config.api.host, port=port or config.api.port, log_config=None)


# ============================================================================
# Chat
# ============================================================================


def _print_result(result) -> None:
    console.print(f"\n{result.text}")
    for action in result.actions:
        color = "green" if action["status"] == "succeeded" else "red"
        label = "rollback" if action.get("rollback") else action["status"]
        console.print(f"  [{color}]{label}[/{color}] {action['command']}")
    for warning in result.warnings:
        console.print(f"  [yellow]warning:[/yellow] {warning}")


@app.command()
def chat(
    message: str = typer.Option(..., "--message", "-m", help="Message to send"),
):
    """Handle one request in-process (no server needed)."""
    from koro.agent import RequestDispatcher

    config = _load_ready_config()
    dispatcher = RequestDispatcher.from_config(config, create_provider(config))

    result = asyncio.run(dispatcher.handle(message))
    _print_result(result)
    if result.error_code:
        raise typer.Exit(1)


# ============================================================================
# Consolidate
# ============================================================================


@app.command()
def consolidate(
    date: str = typer.Option(None, "--date", "-d", help="Day to consolidate (YYYY-MM-DD)"),
    url: str = typer.Option(None, "--url", help="Server base URL"),
):
    """Ask a running server to fold a day's log into the state document."""
    from koro.agent.dispatcher import CONSOLIDATE_INSTRUCTION
    from koro.config import load_config

    config = load_config()
    base_url = url or f"http://{config.api.host}:{config.api.port}"
    text = f"{CONSOLIDATE_INSTRUCTION} {date}" if date else CONSOLIDATE_INSTRUCTION

    try:
        response = httpx.post(f"{base_url}/message", json={"text": text},
                              timeout=config.agent.model_timeout + 30)
    except httpx.HTTPError as e:
        console.print(f"[red]Could not reach {base_url}: {e}[/red]")
        raise typer.Exit(1)

    try:
        body = response.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        console.print(f"[red]Unexpected response from {base_url} (HTTP {response.status_code})[/red]")
        raise typer.Exit(1)

    console.print(body.get("text", ""))
    if response.status_code >= 400 or body.get("error"):
        raise typer.Exit(1)


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show status and configuration."""
    from koro.config import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    def mark(path: Path) -> str:
        return "[green]>[/green]" if path.exists() else "[red]x[/red]"

    console.print("koro Status\n")
    console.print(f"Config:    {config_path} {mark(config_path)}")
    console.print(f"Memory:    {config.memory_path} {mark(config.memory_path)}")
    console.print(f"Skills:    {config.skills_path} {mark(config.skills_path)}")
    console.print(f"Workspace: {config.workspace_path} {mark(config.workspace_path)}")
    console.print(f"Provider:  {config.agent.provider or '[dim]not set[/dim]'}")
    console.print(f"Model:     {config.agent.model or '[dim]default[/dim]'}")
    console.print(
        f"API Key:   {'[green]configured[/green]' if config.get_api_key() else '[dim]not set[/dim]'}"
    )
    console.print(f"Endpoint:  http://{config.api.host}:{config.api.port}")

    if not config.agent.provider:
        console.print("\n[yellow]Run [cyan]koro init[/cyan] to set up a provider.[/yellow]")


if __name__ == "__main__":
    app()

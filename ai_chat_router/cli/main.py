"""
CLI interface for AI Chat Router.

Provides command-line access to schema setup, the model catalog,
routing decisions and the HTTP server.
"""

import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ai_chat_router.config.loader import load_settings
from ai_chat_router.core.catalog import ModelCatalog
from ai_chat_router.core.errors import ChatRouterError
from ai_chat_router.core.routing import Router, TaskDescriptor
from ai_chat_router.demo.catalog import seed_demo_catalog
from ai_chat_router.logging_config import setup_logging
from ai_chat_router.storage.repository import ChatRepository

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration file")

# Reported as a red error line with EXIT_CODE_FAIL
COMMAND_ERRORS = (ChatRouterError, FileNotFoundError, ValueError, yaml.YAMLError)


def _repository(config: Optional[str]) -> ChatRepository:
    return ChatRepository(load_settings(config).database_path)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """AI Chat Router CLI."""
    if ctx.invoked_subcommand is None:
        console.print("AI Chat Router - Use --help to see available commands")


@app.command()
def init(config: Optional[str] = ConfigOption):
    """Initialize the database schema."""
    try:
        _repository(config).initialize_schema()
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("seed-demo")
def seed_demo(config: Optional[str] = ConfigOption):
    """Load the demo model catalog."""
    try:
        count = seed_demo_catalog(_repository(config))
        console.print(f"[green]✓[/] Loaded {count} demo models")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error seeding catalog:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def models(config: Optional[str] = ConfigOption):
    """List the active model catalog."""
    try:
        catalog = ModelCatalog.load(_repository(config))
    except COMMAND_ERRORS as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    if len(catalog) == 0:
        console.print("\n[bold yellow]No active models in the catalog[/]")
        console.print("Run `ai-chat-router seed-demo` to load the demo catalog\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Active Models")
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Type")
    table.add_column("Capabilities")
    table.add_column("Roles")
    table.add_column("Cost/token", justify="right")
    for model in catalog:
        table.add_row(
            model.name,
            model.provider,
            model.model_type.value,
            ", ".join(sorted(model.capabilities)),
            ", ".join(sorted(model.roles)),
            _format_cost(model.cost_per_token)
        )
    console.print(table)


@app.command()
def route(
    task_type: str = typer.Argument(..., help="Task type, e.g. chat, code, reasoning, image"),
    complexity: Optional[str] = typer.Option(None, "--complexity", "-x", help="low, medium or high"),
    priority: Optional[str] = typer.Option(None, "--priority", "-p", help="normal or fast"),
    content: Optional[str] = typer.Option(None, "--content", help="Content to size the estimate"),
    config: Optional[str] = ConfigOption
):
    """Show which model a task would be routed to."""
    try:
        settings = load_settings(config)
        task = TaskDescriptor.from_request(task_type, complexity, priority, content)
        catalog = ModelCatalog.load(ChatRepository(settings.database_path))
        decision = Router(settings.routing).route(task, catalog)
    except COMMAND_ERRORS as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("\n[bold]Routing Decision[/bold]")
    console.print("-" * 40)
    console.print(f"Model: {decision.model.name} ({decision.model.provider})")
    console.print(f"Rule: {decision.rule} ({decision.selection.value})")
    console.print(f"Reason: {decision.rationale}")
    console.print(f"Estimated tokens: {decision.estimate.tokens:,}")
    console.print(f"Estimated cost: {_format_cost(decision.estimate.cost)}")
    console.print(f"Estimated latency: {decision.estimate.latency_ms:,} ms (heuristic)")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
    config: Optional[str] = ConfigOption
):
    """Run the HTTP API."""
    import uvicorn

    from ai_chat_router.api.app import create_app

    setup_logging(logging.INFO)
    try:
        settings = load_settings(config)
    except COMMAND_ERRORS as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(EXIT_CODE_FAIL)
    ChatRepository(settings.database_path).initialize_schema()
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


def _format_cost(amount: Optional[float]) -> str:
    if not amount:
        return "$0"
    return f"${amount:,.8f}".rstrip("0").rstrip(".")


if __name__ == "__main__":
    app()

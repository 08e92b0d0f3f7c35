"""CLI commands for the patrol assistant.

Commands:
    patrol resolve TEXT  - Resolve a message to an intent (optionally create the task)
    patrol templates     - List task templates
    patrol config        - Show (or save) the effective configuration
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import AppConfig
from .core.intent import IntentResult, create_resolver
from .core.intent.templates import TASK_TEMPLATES
from .core.tasks import TaskApiClient, TaskApiError

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(log_dir: Path | None = None) -> Path:
    """Configure rotating file logging.

    Logs are written to ~/.patrol/logs/ with owner-only permissions.
    Uses INFO level by default; set PATROL_DEBUG=1 for DEBUG level.

    Args:
        log_dir: Override for the log directory

    Returns:
        Path of the log file
    """
    log_dir = log_dir or Path.home() / ".patrol" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_dir.chmod(0o700)

    log_file = log_dir / "patrol.log"
    log_level = logging.DEBUG if os.environ.get("PATROL_DEBUG") else logging.INFO

    # 5 MB per file, keep 3 backups
    handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    return log_file


def _load_config(args: argparse.Namespace) -> AppConfig:
    return AppConfig.load(Path(args.project_path).resolve())


def print_result(result: IntentResult) -> None:
    """Render an IntentResult as a table."""
    table = Table(title="Intent", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Intent", f"{result.intent.value} ({result.intent.label})")
    table.add_row("Confidence", f"{result.confidence:.2f}")
    table.add_row("Create task", "[green]yes[/green]" if result.should_create_task else "no")
    table.add_row("Source", result.source)

    if result.params is not None:
        params = result.params
        table.add_row("Task name", params.task_name or "-")
        table.add_row("Start", params.start_pos or "-")
        table.add_row("Distance", f"{params.task_trip} m" if params.task_trip else "-")
        table.add_row("Executor", params.executor or "-")
        table.add_row("Remark", params.remark or "-")
        if params.task_type:
            table.add_row("Template", params.task_type)

    console.print(table)
    console.print(f"[bold]{result.reply}[/bold]")


async def _resolve(
    args: argparse.Namespace,
    config: AppConfig,
) -> tuple[IntentResult, dict | None]:
    resolver = create_resolver(config, offline=args.offline)
    try:
        result = await resolver.resolve(args.text)
    finally:
        await resolver.close()

    created = None
    params = result.params if result.is_actionable() else None
    if args.create and params is not None:
        async with TaskApiClient(config.task_api_endpoint, config.request_timeout) as client:
            created = await client.create_task(params)

    return result, created


def resolve_command(args: argparse.Namespace) -> int:
    """Resolve a message and print the result.

    Args:
        args: Parsed arguments (text, offline, json, create)

    Returns:
        Exit code (0 for success, 1 if --create failed)
    """
    config = _load_config(args)

    try:
        result, created = asyncio.run(_resolve(args, config))
    except TaskApiError as e:
        logger.error(f"Task creation failed: {e}")
        console.print(f"[red]Task creation failed:[/red] {e}")
        return 1

    if args.json:
        data = result.to_dict()
        if created is not None:
            data["createdTask"] = created
        console.print_json(data=data)
        return 0

    print_result(result)

    if args.create:
        if created is not None:
            console.print(f"[green]✓[/green] Task created: {created.get('id', '-')}")
        else:
            console.print("[dim]No task created.[/dim]")

    return 0


def show_templates(args: argparse.Namespace) -> int:
    """List the task templates in classification order.

    Returns:
        Exit code (0 for success)
    """
    table = Table(title="Task Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("Distance", justify="right")
    table.add_column("Keywords", style="dim")

    for template in TASK_TEMPLATES.values():
        defaults = template.default_params
        table.add_row(
            template.id,
            template.display_name,
            defaults.start_pos,
            f"{defaults.task_trip:,} m",
            " ".join(template.keywords),
        )

    console.print(table)
    return 0


def show_config(args: argparse.Namespace) -> int:
    """Show the effective configuration, optionally saving it.

    Returns:
        Exit code (0 for success)
    """
    config = _load_config(args)

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("backend", config.backend)
    table.add_row("model_name", config.model_name)
    endpoint = config.ollama_endpoint if config.backend == "ollama" else config.vllm_endpoint
    table.add_row("endpoint", endpoint)
    table.add_row("task_api_endpoint", config.task_api_endpoint)
    table.add_row("confidence_threshold", f"{config.confidence_threshold:.2f}")
    table.add_row("scale_kilometers", str(config.scale_kilometers))
    for name, value in config.generation.model_dump().items():
        table.add_row(f"generation.{name}", str(value))

    console.print(table)

    if args.save:
        config.save()
        console.print(f"[green]✓[/green] Saved {config.config_file}")

    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="patrol",
        description="Patrol assistant: create tunnel inspection tasks from plain language",
    )
    parser.add_argument(
        "--project",
        "-p",
        dest="project_path",
        default=".",
        help="Path to project directory (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a message to an intent")
    resolve_parser.add_argument("text", help="User message, e.g. '帮我创建巡检任务，距离：800米'")
    resolve_parser.add_argument(
        "--offline",
        action="store_true",
        help="Use keyword rules only, skip the model",
    )
    resolve_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    resolve_parser.add_argument(
        "--create",
        action="store_true",
        help="Create the task on the task service when the result allows it",
    )
    resolve_parser.set_defaults(func=resolve_command)

    templates_parser = subparsers.add_parser("templates", help="List task templates")
    templates_parser.set_defaults(func=show_templates)

    config_parser = subparsers.add_parser("config", help="Show the effective configuration")
    config_parser.add_argument(
        "--save",
        action="store_true",
        help="Write the configuration to .patrol/config.yaml",
    )
    config_parser.set_defaults(func=show_config)

    return parser


def run_cli(args: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        logger.exception(f"Command {parsed.command} failed")
        console.print(f"[red]Error:[/red] {e}")
        return 1


def main() -> None:
    """Entry point for the patrol command."""
    setup_logging()
    sys.exit(run_cli())


__all__ = [
    "create_parser",
    "main",
    "print_result",
    "resolve_command",
    "run_cli",
    "setup_logging",
    "show_config",
    "show_templates",
]

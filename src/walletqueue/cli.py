#!/usr/bin/env python3
"""
WalletQueue CLI Entry Points

Provides the MCP server entry point and operator commands that work on the
file-backed offline queue.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from . import __version__
from .core import QueueManager
from .server import build_queue_manager, create_server, run_server, start_queue_manager
from .server_config import (
    ConfigurationLoader,
    QueueConfig,
    get_config_paths,
    load_configuration,
)

console = Console()


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout carries MCP traffic and command output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_configuration_or_exit() -> QueueConfig:
    try:
        return load_configuration()
    except (TypeError, ValueError) as e:
        console.print(f"❌ Failed to load configuration: {e}")
        sys.exit(1)


def walletqueue_mcp() -> None:
    """Main entry point for the WalletQueue MCP server (for pipx)"""
    parser = argparse.ArgumentParser(description="WalletQueue MCP Server")
    parser.add_argument(
        "--version", action="version", version=f"WalletQueue {__version__}"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding the persisted queue (e.g. ./.walletqueue)",
    )
    args = parser.parse_args()

    config = _load_configuration_or_exit()
    if args.data_dir:
        config.data_dir = str(Path(args.data_dir).expanduser().resolve())
    configure_logging(config.log_level)

    try:
        run_server(config)
    except KeyboardInterrupt:
        sys.exit(0)


def _run_with_manager(
    config: QueueConfig,
    action: Callable[[QueueManager], Awaitable[Any]],
    probe: bool = False,
) -> Any:
    """Load the persisted queue, run ``action`` against it, then shut down."""

    async def runner() -> Any:
        manager = build_queue_manager(config)
        await start_queue_manager(manager)
        try:
            if probe and manager.connectivity is not None:
                await manager.connectivity.check()
                manager.store.set_online(manager.connectivity.is_online)
            return await action(manager)
        finally:
            await manager.shutdown()

    return asyncio.run(runner())


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def walletqueue_stats(config: QueueConfig, as_json: bool = False) -> None:
    """Show queue totals and breakdowns"""

    async def action(manager: QueueManager) -> Dict[str, Any]:
        return (await manager.get_queue_stats()).model_dump()

    stats = _run_with_manager(config, action)
    if as_json:
        _print_json(stats)
        return

    table = Table(title="Offline Queue")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Total", str(stats["total"]))
    table.add_row("Pending", str(stats["pending"]))
    table.add_row("Failed", str(stats["failed"]))
    for priority, count in sorted(stats["by_priority"].items()):
        table.add_row(f"Priority {priority}", str(count))
    for resource, count in sorted(stats["by_resource"].items()):
        table.add_row(f"Resource {resource}", str(count))
    console.print(table)


def walletqueue_list(config: QueueConfig, as_json: bool = False) -> None:
    """List queued items in processing order"""

    async def action(manager: QueueManager) -> list:
        return [item.to_storage() for item in await manager.get_items()]

    items = _run_with_manager(config, action)
    if as_json:
        _print_json(items)
        return

    if not items:
        console.print("Queue is empty")
        return

    table = Table(title=f"Queued Operations ({len(items)})")
    table.add_column("Id", style="dim")
    table.add_column("Operation", style="cyan")
    table.add_column("Priority")
    table.add_column("Retries", justify="right")
    table.add_column("Last Error", style="red")
    for item in items:
        table.add_row(
            item["id"],
            f"{item['type']} {item['resource']}",
            item["priority"],
            str(item["retryCount"]),
            item.get("lastError") or "",
        )
    console.print(table)


def walletqueue_process(config: QueueConfig, probe: bool = False) -> None:
    """Run one processing pass"""

    async def action(manager: QueueManager) -> Dict[str, Any]:
        if not manager.is_online:
            return {"processed": 0, "online": False}
        processed = await manager.process_queue()
        return {"processed": processed, "online": manager.is_online}

    _print_json(_run_with_manager(config, action, probe=probe))


def walletqueue_retry(config: QueueConfig) -> None:
    """Reset permanently failed items and run a pass"""

    async def action(manager: QueueManager) -> Dict[str, Any]:
        return {"reset": await manager.retry_failed_items()}

    _print_json(_run_with_manager(config, action))


def walletqueue_clear(config: QueueConfig) -> None:
    """Remove items that have never failed"""

    async def action(manager: QueueManager) -> Dict[str, Any]:
        return {"removed": await manager.clear_completed_items()}

    _print_json(_run_with_manager(config, action))


def walletqueue_remove(config: QueueConfig, ids: list) -> None:
    """Remove items by id"""

    async def action(manager: QueueManager) -> Dict[str, Any]:
        return {"removed": await manager.remove_from_queue(ids)}

    _print_json(_run_with_manager(config, action))


def walletqueue_enqueue(config: QueueConfig, args: Any) -> None:
    """Queue one operation"""
    try:
        data = json.loads(args.data) if args.data else {}
    except json.JSONDecodeError as e:
        console.print(f"❌ --data is not valid JSON: {e}")
        sys.exit(1)

    options = {
        "priority": args.priority,
        "dependencies": args.depends_on or None,
        "immediate": args.immediate,
    }

    async def action(manager: QueueManager) -> Dict[str, Any]:
        item_id = await manager.enqueue(args.type, args.resource, data, options)
        return {"status": "queued", "id": item_id}

    try:
        _print_json(_run_with_manager(config, action, probe=args.immediate))
    except ValidationError as e:
        console.print(f"❌ Invalid operation: {e}")
        sys.exit(1)


def walletqueue_config(args: Any) -> None:
    """Show or initialize WalletQueue configuration"""
    config_paths = get_config_paths()

    if args.action == "init":
        project_config = config_paths["project"]
        if project_config.exists() and not args.force:
            console.print(
                f"❌ Project already has WalletQueue configuration: {project_config}"
            )
            console.print("Use --force to overwrite existing configuration")
            return

        defaults = QueueConfig().to_dict()
        loader = ConfigurationLoader()
        if loader.save_project_config(defaults):
            console.print(f"✅ Project configuration created: {project_config}")
        else:
            console.print("❌ Failed to write project configuration")
            sys.exit(1)
        return

    config = _load_configuration_or_exit()

    table = Table(title="Configuration Sources")
    table.add_column("Source", style="cyan")
    table.add_column("File", style="dim")
    table.add_column("Exists", style="bold")
    table.add_row(
        "User",
        str(config_paths["user"]),
        "✅" if config_paths["user"].exists() else "❌",
    )
    table.add_row(
        "Project",
        str(config_paths["project"]),
        "✅" if config_paths["project"].exists() else "❌",
    )
    table.add_row("Environment", "WALLETQUEUE_* variables", "✅ Active")
    console.print(table)

    settings_table = Table(title="Active Settings")
    settings_table.add_column("Setting", style="cyan")
    settings_table.add_column("Value", style="bold")
    for key, value in config.to_dict().items():
        settings_table.add_row(key, str(value))
    console.print(settings_table)


def walletqueue_serve(config: QueueConfig) -> None:
    """Start the WalletQueue MCP server"""
    try:
        server = create_server(config=config)
        server.run()
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        logging.getLogger(__name__).error(f"Server startup failed: {e}")
        sys.exit(1)


def main(argv: Optional[list] = None) -> None:
    """Main CLI with subcommands"""
    parser = argparse.ArgumentParser(
        description="WalletQueue - offline mutation queue for a DID/VC wallet"
    )
    parser.add_argument(
        "--version", action="version", version=f"WalletQueue {__version__}"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding the persisted queue",
    )
    parser.add_argument(
        "--log-level", type=str, default=None, help="Override the configured log level"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("serve", help="Start the WalletQueue MCP server")

    stats_parser = subparsers.add_parser("stats", help="Show queue statistics")
    stats_parser.add_argument("--json", action="store_true", help="Print JSON")

    list_parser = subparsers.add_parser("list", help="List queued operations")
    list_parser.add_argument("--json", action="store_true", help="Print JSON")

    process_parser = subparsers.add_parser("process", help="Run one queue pass")
    process_parser.add_argument(
        "--probe",
        action="store_true",
        help="Probe the network first instead of assuming online",
    )

    subparsers.add_parser("retry", help="Reset failed operations and run a pass")
    subparsers.add_parser("clear", help="Remove operations that never failed")

    remove_parser = subparsers.add_parser("remove", help="Remove operations by id")
    remove_parser.add_argument("ids", nargs="+", help="Queue item ids")

    enqueue_parser = subparsers.add_parser("enqueue", help="Queue an operation")
    enqueue_parser.add_argument(
        "type", choices=["create", "update", "delete", "share", "verify"]
    )
    enqueue_parser.add_argument(
        "resource", choices=["credential", "handshake", "profile"]
    )
    enqueue_parser.add_argument("--data", type=str, default=None, help="JSON payload")
    enqueue_parser.add_argument(
        "--priority", choices=["high", "medium", "low"], default="medium"
    )
    enqueue_parser.add_argument(
        "--depends-on",
        action="append",
        default=[],
        help="Id of an operation that must complete first (repeatable)",
    )
    enqueue_parser.add_argument(
        "--immediate",
        action="store_true",
        help="Dispatch right away when the network is reachable",
    )

    config_parser = subparsers.add_parser(
        "config", help="Manage WalletQueue configuration"
    )
    config_subparsers = config_parser.add_subparsers(
        dest="action", help="Config actions"
    )
    config_subparsers.add_parser("show", help="Show current configuration")
    config_init = config_subparsers.add_parser(
        "init", help="Write a project configuration with default values"
    )
    config_init.add_argument(
        "--force", action="store_true", help="Overwrite existing configuration"
    )

    args = parser.parse_args(argv)

    if args.command == "config":
        if not args.action:
            args.action = "show"
        walletqueue_config(args)
        return

    config = _load_configuration_or_exit()
    if args.data_dir:
        config.data_dir = args.data_dir
    configure_logging(args.log_level or config.log_level)

    if args.command == "stats":
        walletqueue_stats(config, args.json)
    elif args.command == "list":
        walletqueue_list(config, args.json)
    elif args.command == "process":
        walletqueue_process(config, args.probe)
    elif args.command == "retry":
        walletqueue_retry(config)
    elif args.command == "clear":
        walletqueue_clear(config)
    elif args.command == "remove":
        walletqueue_remove(config, args.ids)
    elif args.command == "enqueue":
        walletqueue_enqueue(config, args)
    else:
        # Default to serve command (most common usage)
        walletqueue_serve(config)


if __name__ == "__main__":
    main()

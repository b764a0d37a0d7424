"""
WalletQueue MCP server and queue wiring.
"""

import asyncio
import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .core import (
    ConnectivityMonitor,
    DispatcherRegistry,
    FileBackupCache,
    JsonFileItemStore,
    LoggingNotificationSink,
    MemoryBackupCache,
    MemoryItemStore,
    QueueManager,
)
from .server_config import QueueConfig, load_configuration
from .services import (
    MemoryRecordStore,
    SimulatedCredentialService,
    SimulatedHandshakeService,
    SimulatedProfileService,
)
from .tools import setup_queue_tools

logger = logging.getLogger(__name__)


def build_queue_manager(config: Optional[QueueConfig] = None) -> QueueManager:
    """
    Assemble a queue manager backed by the simulated wallet services.

    With ``persist_queue`` enabled the item store and backup cache live under
    ``data_dir``; otherwise both are in memory.
    """
    config = config or load_configuration()

    if config.persist_queue:
        data_path = config.data_path
        store = JsonFileItemStore(data_path / "offline-queue.json")
        cache = FileBackupCache(data_path / "cache")
    else:
        store = MemoryItemStore()
        cache = MemoryBackupCache()

    service_args = {
        "latency": config.simulated_latency,
        "failure_rate": config.simulated_failure_rate,
    }
    dispatchers = DispatcherRegistry.from_services(
        credentials=SimulatedCredentialService(**service_args),
        handshakes=SimulatedHandshakeService(**service_args),
        profiles=SimulatedProfileService(**service_args),
        records=MemoryRecordStore(),
    )

    connectivity = ConnectivityMonitor(
        probe_host=config.probe_host,
        probe_port=config.probe_port,
        probe_timeout=config.probe_timeout,
    )

    return QueueManager(
        store=store,
        cache=cache,
        dispatchers=dispatchers,
        notifier=LoggingNotificationSink(),
        connectivity=connectivity,
        config=config,
    )


async def start_queue_manager(manager: QueueManager) -> None:
    """Load the persisted queue (when file-backed) and initialize the manager."""
    if isinstance(manager.store, JsonFileItemStore):
        await manager.store.load()
    await manager.initialize()


def create_server(
    name: Optional[str] = None, config: Optional[QueueConfig] = None
) -> FastMCP:
    """Create and configure the WalletQueue MCP server"""

    # Load configuration if not provided
    if config is None:
        config = load_configuration()

    if name is None:
        name = config.name

    mcp = FastMCP(name)

    manager = build_queue_manager(config)
    ready_lock = asyncio.Lock()

    async def ensure_ready() -> None:
        async with ready_lock:
            if getattr(mcp, "_queue_ready", False):
                return
            await start_queue_manager(manager)
            if config.probe_interval > 0 and manager.connectivity is not None:
                manager.connectivity.start_polling(config.probe_interval)
            mcp._queue_ready = True  # type: ignore

    setup_queue_tools(mcp, manager, ensure_ready, manager.connectivity)

    # Store components for use in request handling
    mcp.queue_manager = manager  # type: ignore
    mcp.queue_config = config  # type: ignore

    return mcp


def run_server(config: Optional[QueueConfig] = None) -> None:
    """Run the WalletQueue MCP server over stdio"""
    server = create_server(config=config)
    manager = getattr(server, "queue_manager", None)

    logger.info("Starting WalletQueue MCP server")
    if manager is not None:
        logger.info(
            f"Queue: max {manager.max_retries} retries, "
            f"base delay {manager.base_retry_delay:.1f}s"
        )

    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Received Ctrl-C, shutting down")
    finally:
        logger.info("Server stopped.")

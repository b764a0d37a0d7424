"""
Offline queue MCP tools.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp.server.fastmcp import Context, FastMCP
from pydantic import ValidationError

from ..core.connectivity import ConnectivityMonitor
from ..core.queue_manager import QueueManager


def _item_summary(item) -> Dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type.value,
        "resource": item.resource.value,
        "priority": item.priority.value,
        "retryCount": item.retry_count,
        "lastError": item.last_error,
        "dependencies": item.dependencies or [],
        "timestamp": item.timestamp,
    }


def setup_queue_tools(
    mcp: FastMCP,
    manager: QueueManager,
    ensure_ready: Callable[[], Awaitable[None]],
    connectivity: Optional[ConnectivityMonitor] = None,
) -> None:
    """Setup offline-queue MCP tools"""

    @mcp.tool()
    async def enqueue_operation(
        type: str,
        resource: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = "medium",
        dependencies: Optional[List[str]] = None,
        immediate: bool = False,
        background: bool = False,
        ctx: Context = None,
    ) -> Dict[str, Any]:
        """
        Queue a wallet write operation for replay when online.

        type is one of create/update/delete/share/verify; resource is one of
        credential/handshake/profile. Returns the queued item id.
        """
        await ensure_ready()
        try:
            item_id = await manager.enqueue(
                type,
                resource,
                data or {},
                {
                    "priority": priority,
                    "dependencies": dependencies,
                    "immediate": immediate,
                    "background": background,
                },
            )
        except ValidationError as e:
            return {"status": "error", "message": f"Invalid operation: {e}"}

        if ctx is not None:
            await ctx.info(f"Queued {type} {resource} as {item_id}")
        return {"status": "queued", "id": item_id}

    @mcp.tool()
    async def enqueue_bulk(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Queue several operations in order.

        Each entry has type, resource, data and optional options. Entries
        before an invalid one stay queued.
        """
        await ensure_ready()
        ids: List[str] = []
        for index, entry in enumerate(entries):
            try:
                ids.extend(await manager.add_bulk_to_queue([entry]))
            except ValidationError as e:
                return {
                    "status": "partial" if ids else "error",
                    "ids": ids,
                    "message": f"Entry {index} is invalid: {e}",
                }
        return {"status": "queued", "ids": ids}

    @mcp.tool()
    async def process_queue() -> Dict[str, Any]:
        """Run one processing pass now (no-op while offline or already running)."""
        await ensure_ready()
        processed = await manager.process_queue()
        stats = await manager.get_queue_stats()
        return {"processed": processed, "stats": stats.model_dump()}

    @mcp.tool()
    async def get_queue_stats() -> Dict[str, Any]:
        """Queue totals, pending and failed counts, and breakdowns."""
        await ensure_ready()
        stats = await manager.get_queue_stats()
        return {**stats.model_dump(), "online": manager.is_online}

    @mcp.tool()
    async def list_queue_items() -> List[Dict[str, Any]]:
        """Queued items in processing order."""
        await ensure_ready()
        return [_item_summary(item) for item in await manager.get_items()]

    @mcp.tool()
    async def retry_failed_items() -> Dict[str, Any]:
        """Reset permanently failed items and run a fresh pass."""
        await ensure_ready()
        reset = await manager.retry_failed_items()
        return {"reset": reset}

    @mcp.tool()
    async def clear_completed_items() -> Dict[str, Any]:
        """Remove items that have never failed."""
        await ensure_ready()
        return {"removed": await manager.clear_completed_items()}

    @mcp.tool()
    async def remove_from_queue(ids: List[str]) -> Dict[str, Any]:
        """Remove items by id. Unknown ids are ignored."""
        await ensure_ready()
        return {"removed": await manager.remove_from_queue(ids)}

    @mcp.tool()
    async def set_connectivity(online: Optional[bool] = None) -> Dict[str, Any]:
        """
        Report or probe connectivity.

        With no argument the network is probed. Coming back online starts a
        queue pass in the background.
        """
        await ensure_ready()
        if connectivity is None:
            if online is not None:
                manager.store.set_online(online)
            return {"online": manager.is_online}

        if online is None:
            await connectivity.check()
        else:
            await connectivity.set_online(online)
        return {"online": connectivity.is_online}

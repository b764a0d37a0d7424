"""
Data models for the wallet offline queue.
"""

from .core import (
    PRIORITY_RANK,
    BulkQueueEntry,
    Notification,
    NotificationSeverity,
    OperationType,
    Priority,
    QueueItem,
    QueueOptions,
    QueueStats,
    ResourceType,
    generate_item_id,
    now_ms,
)

__all__ = [
    "OperationType",
    "ResourceType",
    "Priority",
    "NotificationSeverity",
    "PRIORITY_RANK",
    "QueueItem",
    "QueueOptions",
    "BulkQueueEntry",
    "QueueStats",
    "Notification",
    "generate_item_id",
    "now_ms",
]

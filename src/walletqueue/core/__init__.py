"""
Core functionality for the wallet offline queue.
"""

from .backup_cache import FileBackupCache, MemoryBackupCache
from .connectivity import ConnectivityMonitor
from .dispatchers import (
    CredentialDispatcher,
    DispatcherRegistry,
    HandshakeDispatcher,
    ProfileDispatcher,
    ResourceDispatcher,
)
from .errors import (
    InvalidPayloadError,
    QueueError,
    UnknownOperationError,
    UnmetDependencyError,
)
from .item_store import JsonFileItemStore, MemoryItemStore
from .notifications import LoggingNotificationSink, MemoryNotificationSink
from .queue_manager import QueueManager
from .scheduler import RetryHandle, RetryScheduler

__all__ = [
    "QueueManager",
    "MemoryItemStore",
    "JsonFileItemStore",
    "MemoryBackupCache",
    "FileBackupCache",
    "DispatcherRegistry",
    "ResourceDispatcher",
    "CredentialDispatcher",
    "HandshakeDispatcher",
    "ProfileDispatcher",
    "RetryScheduler",
    "RetryHandle",
    "ConnectivityMonitor",
    "LoggingNotificationSink",
    "MemoryNotificationSink",
    "QueueError",
    "UnmetDependencyError",
    "UnknownOperationError",
    "InvalidPayloadError",
]

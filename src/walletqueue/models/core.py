"""
Core data models for the wallet offline queue.
"""

import secrets
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

_ID_ALPHABET = string.digits + string.ascii_lowercase


class OperationType(str, Enum):
    """Kinds of deferred write operations."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SHARE = "share"
    VERIFY = "verify"


class ResourceType(str, Enum):
    """Domain objects an operation targets."""

    CREDENTIAL = "credential"
    HANDSHAKE = "handshake"
    PROFILE = "profile"


class Priority(str, Enum):
    """Processing precedence."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NotificationSeverity(str, Enum):
    """Notification severities understood by the wallet UI."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


# Lower rank is processed first
PRIORITY_RANK: Dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def generate_item_id() -> str:
    """
    Generate a queue item id.

    Ids look like ``queue_<epoch-ms>_<9 base36 chars>``: the millisecond
    prefix keeps them roughly creation-ordered, the random suffix keeps
    items created in the same millisecond apart.
    """
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"queue_{now_ms()}_{suffix}"


class QueueItem(BaseModel):
    """A durable unit of deferred work."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_item_id)
    type: OperationType
    resource: ResourceType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(default_factory=now_ms, ge=0)
    retry_count: int = Field(default=0, ge=0, alias="retryCount")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    priority: Priority = Priority.MEDIUM
    dependencies: Optional[List[str]] = None
    version: int = Field(default=1, ge=1)
    original_data: Optional[Any] = Field(default=None, alias="originalData")

    @model_validator(mode="before")
    @classmethod
    def _inherit_payload_metadata(cls, values: Any) -> Any:
        """Pick up version/originalData carried inside the payload."""
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        if not isinstance(data, dict):
            return values
        values = dict(values)
        if "version" not in values and data.get("version") is not None:
            values["version"] = data["version"]
        if (
            "original_data" not in values
            and "originalData" not in values
            and "originalData" in data
        ):
            values["originalData"] = data["originalData"]
        return values

    @property
    def sort_key(self) -> tuple:
        return (PRIORITY_RANK[self.priority], self.timestamp)

    @property
    def description(self) -> str:
        return f"{self.type.value} {self.resource.value}"

    def to_storage(self) -> Dict[str, Any]:
        """JSON-ready dict using the wallet's camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)


class QueueOptions(BaseModel):
    """Per-enqueue options."""

    priority: Priority = Priority.MEDIUM
    dependencies: Optional[List[str]] = None
    immediate: bool = False
    background: bool = False


class BulkQueueEntry(BaseModel):
    """One entry of a bulk enqueue request."""

    type: OperationType
    resource: ResourceType
    data: Dict[str, Any] = Field(default_factory=dict)
    options: QueueOptions = Field(default_factory=QueueOptions)


class QueueStats(BaseModel):
    """Read-only aggregation over the current queue snapshot."""

    total: int = 0
    pending: int = 0
    failed: int = 0
    processing: bool = False
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_resource: Dict[str, int] = Field(default_factory=dict)


class Notification(BaseModel):
    """User-facing notification emitted by the queue."""

    severity: NotificationSeverity = NotificationSeverity.INFO
    title: str
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

"""
Exceptions raised while processing queue items.

Every one of these is retryable from the queue's point of view; running out
of retries is a classification applied by the queue manager, not an error
type of its own.
"""

from typing import List, Optional


class QueueError(Exception):
    """Base class for queue processing failures."""

    pass


class UnmetDependencyError(QueueError):
    """An item's dependencies have not resolved yet."""

    def __init__(self, dependencies: Optional[List[str]] = None):
        self.dependencies = list(dependencies or [])
        super().__init__("Dependencies not met")


class UnknownOperationError(QueueError):
    """No dispatcher branch exists for a (resource, type) pair."""

    def __init__(self, resource: str, operation: str):
        self.resource = resource
        self.operation = operation
        super().__init__(f"Unknown {resource} operation: {operation}")


class InvalidPayloadError(QueueError):
    """The item payload lacks a field the operation needs."""

    pass

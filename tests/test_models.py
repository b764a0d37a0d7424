"""
Tests for the queue data models.
"""

import re

import pytest
from pydantic import ValidationError

from walletqueue.models import (
    PRIORITY_RANK,
    BulkQueueEntry,
    Notification,
    NotificationSeverity,
    OperationType,
    Priority,
    QueueItem,
    QueueOptions,
    ResourceType,
    generate_item_id,
)

ID_PATTERN = re.compile(r"^queue_\d+_[0-9a-z]{9}$")


class TestEnums:
    """Enum values match the wallet's wire strings."""

    def test_operation_types(self):
        assert [t.value for t in OperationType] == [
            "create",
            "update",
            "delete",
            "share",
            "verify",
        ]

    def test_resource_types(self):
        assert {r.value for r in ResourceType} == {"credential", "handshake", "profile"}

    def test_priority_rank_orders_high_first(self):
        ranked = sorted(Priority, key=PRIORITY_RANK.__getitem__)
        assert ranked == [Priority.HIGH, Priority.MEDIUM, Priority.LOW]


class TestItemIds:
    """Queue item id generation."""

    def test_id_shape(self):
        assert ID_PATTERN.match(generate_item_id())

    def test_ids_are_unique(self):
        ids = {generate_item_id() for _ in range(1000)}
        assert len(ids) == 1000

    def test_item_gets_generated_id(self):
        item = QueueItem(type="create", resource="credential")
        assert ID_PATTERN.match(item.id)


class TestQueueItem:
    """QueueItem validation and serialization."""

    def test_defaults(self):
        item = QueueItem(type="create", resource="credential")

        assert item.retry_count == 0
        assert item.last_error is None
        assert item.priority == Priority.MEDIUM
        assert item.dependencies is None
        assert item.version == 1
        assert item.data == {}
        assert item.timestamp > 0

    def test_rejects_unknown_type(self):
        with pytest.raises(ValidationError):
            QueueItem(type="publish", resource="credential")

    def test_rejects_unknown_resource(self):
        with pytest.raises(ValidationError):
            QueueItem(type="create", resource="wallet")

    def test_rejects_negative_retry_count(self):
        with pytest.raises(ValidationError):
            QueueItem(type="create", resource="credential", retry_count=-1)

    def test_accepts_camel_case_and_snake_case(self):
        camel = QueueItem.model_validate(
            {"type": "update", "resource": "profile", "retryCount": 2, "lastError": "x"}
        )
        snake = QueueItem(type="update", resource="profile", retry_count=2, last_error="x")

        assert camel.retry_count == snake.retry_count == 2
        assert camel.last_error == snake.last_error == "x"

    def test_to_storage_uses_camel_case(self):
        item = QueueItem(type="create", resource="credential", retry_count=1)

        stored = item.to_storage()

        assert stored["retryCount"] == 1
        assert stored["type"] == "create"
        assert stored["priority"] == "medium"
        assert "retry_count" not in stored

    def test_storage_round_trip(self):
        item = QueueItem(
            type="share",
            resource="credential",
            data={"id": "cred-1"},
            priority="high",
            dependencies=["queue_1_aaaaaaaaa"],
        )
        assert QueueItem.model_validate(item.to_storage()) == item

    def test_inherits_version_and_original_data_from_payload(self):
        item = QueueItem(
            type="update",
            resource="credential",
            data={"id": "cred-1", "version": 4, "originalData": {"name": "old"}},
        )

        assert item.version == 4
        assert item.original_data == {"name": "old"}

    def test_explicit_version_wins(self):
        item = QueueItem(
            type="update", resource="credential", data={"version": 4}, version=2
        )
        assert item.version == 2

    def test_sort_key(self):
        high = QueueItem(type="create", resource="credential", priority="high", timestamp=5)
        low = QueueItem(type="create", resource="credential", priority="low", timestamp=1)
        assert sorted([low, high], key=lambda i: i.sort_key) == [high, low]

    def test_description(self):
        item = QueueItem(type="verify", resource="credential")
        assert item.description == "verify credential"


class TestOptions:
    """Enqueue options and bulk entries."""

    def test_option_defaults(self):
        options = QueueOptions()
        assert options.priority == Priority.MEDIUM
        assert options.immediate is False
        assert options.background is False

    def test_bulk_entry_defaults(self):
        entry = BulkQueueEntry(type="create", resource="handshake")
        assert entry.data == {}
        assert entry.options == QueueOptions()

    def test_notification_defaults(self):
        notification = Notification(title="t", message="m")
        assert notification.severity == NotificationSeverity.INFO
        assert notification.timestamp.tzinfo is not None

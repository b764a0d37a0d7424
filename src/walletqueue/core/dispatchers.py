"""
Resource dispatchers: translate a queue item into remote service calls.

Dispatchers are pass-throughs. They own no retry or backoff logic; any
exception they raise is handled by the queue manager.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..models import OperationType, QueueItem, ResourceType
from ..services.base import (
    CredentialService,
    HandshakeService,
    LocalRecordStore,
    ProfileService,
)
from .errors import InvalidPayloadError, UnknownOperationError


def _require(data: Dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidPayloadError(f"Missing required parameter: {key}")
    return value


class ResourceDispatcher:
    """
    Common interface for per-resource dispatchers.

    Every operation is unsupported unless a subclass overrides it.
    """

    resource: ResourceType

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    async def dispatch(self, item: QueueItem) -> Any:
        """
        Route an item to the handler for its operation type.

        Raises:
            UnknownOperationError: If the type has no handler for this resource
        """
        handlers: Dict[OperationType, Callable[[QueueItem], Awaitable[Any]]] = {
            OperationType.CREATE: self.create,
            OperationType.UPDATE: self.update,
            OperationType.DELETE: self.delete,
            OperationType.SHARE: self.share,
            OperationType.VERIFY: self.verify,
        }
        handler = handlers.get(item.type)
        if handler is None:
            raise UnknownOperationError(
                self.resource.value, getattr(item.type, "value", item.type)
            )
        return await handler(item)

    def _unsupported(self, item: QueueItem) -> UnknownOperationError:
        return UnknownOperationError(self.resource.value, item.type.value)

    async def create(self, item: QueueItem) -> Any:
        raise self._unsupported(item)

    async def update(self, item: QueueItem) -> Any:
        raise self._unsupported(item)

    async def delete(self, item: QueueItem) -> Any:
        raise self._unsupported(item)

    async def share(self, item: QueueItem) -> Any:
        raise self._unsupported(item)

    async def verify(self, item: QueueItem) -> Any:
        raise self._unsupported(item)


class CredentialDispatcher(ResourceDispatcher):
    """Credential create/update/delete/share/verify."""

    resource = ResourceType.CREDENTIAL

    def __init__(self, service: CredentialService, records: LocalRecordStore):
        super().__init__()
        self.service = service
        self.records = records

    async def create(self, item: QueueItem) -> Any:
        credential = await self.service.create_credential(item.data)
        await self.records.save_credential(credential)
        return credential

    async def update(self, item: QueueItem) -> Any:
        credential_id = _require(item.data, "id")
        updated = await self.service.update_credential(
            credential_id, item.data.get("updates") or {}
        )
        await self.records.update_credential(credential_id, updated)
        return updated

    async def delete(self, item: QueueItem) -> Any:
        credential_id = _require(item.data, "id")
        await self.service.delete_credential(credential_id)
        await self.records.delete_credential(credential_id)

    async def share(self, item: QueueItem) -> Any:
        credential_id = _require(item.data, "id")
        return await self.service.share_credential(
            credential_id, item.data.get("options") or {}
        )

    async def verify(self, item: QueueItem) -> Any:
        return await self.service.verify_credential(_require(item.data, "id"))


class HandshakeDispatcher(ResourceDispatcher):
    """Connection handshake requests."""

    resource = ResourceType.HANDSHAKE

    def __init__(self, service: HandshakeService, records: LocalRecordStore):
        super().__init__()
        self.service = service
        self.records = records

    async def create(self, item: QueueItem) -> Any:
        request = await self.service.create_request(item.data)
        await self.records.save_handshake_request(request)
        return request

    async def update(self, item: QueueItem) -> Any:
        # TODO: route to handshake respond/cancel once the payload carries the action
        self.logger.warning(
            f"Handshake update processing not fully implemented; "
            f"completing item {item.id} without a remote call"
        )
        return None


class ProfileDispatcher(ResourceDispatcher):
    """Profile updates."""

    resource = ResourceType.PROFILE

    def __init__(self, service: ProfileService, records: LocalRecordStore):
        super().__init__()
        self.service = service
        self.records = records

    async def update(self, item: QueueItem) -> Any:
        result = await self.service.update_profile(item.data)
        await self.records.save_profile_data("profile", item.data)
        return result


class DispatcherRegistry:
    """Maps each resource kind to its dispatcher, resolved once."""

    def __init__(self, dispatchers: Optional[Mapping[ResourceType, ResourceDispatcher]] = None):
        self._dispatchers: Dict[ResourceType, ResourceDispatcher] = dict(dispatchers or {})

    @classmethod
    def from_services(
        cls,
        credentials: CredentialService,
        handshakes: HandshakeService,
        profiles: ProfileService,
        records: LocalRecordStore,
    ) -> "DispatcherRegistry":
        return cls(
            {
                ResourceType.CREDENTIAL: CredentialDispatcher(credentials, records),
                ResourceType.HANDSHAKE: HandshakeDispatcher(handshakes, records),
                ResourceType.PROFILE: ProfileDispatcher(profiles, records),
            }
        )

    def register(self, resource: ResourceType, dispatcher: ResourceDispatcher) -> None:
        self._dispatchers[ResourceType(resource)] = dispatcher

    def get(self, resource: ResourceType) -> Optional[ResourceDispatcher]:
        return self._dispatchers.get(resource)

    async def dispatch(self, item: QueueItem) -> Any:
        """
        Perform an item's effect against its resource's dispatcher.

        Raises:
            UnknownOperationError: If no dispatcher handles the item
            Exception: Whatever the underlying service raises
        """
        dispatcher = self._dispatchers.get(item.resource)
        if dispatcher is None:
            raise UnknownOperationError(item.resource.value, item.type.value)
        return await dispatcher.dispatch(item)

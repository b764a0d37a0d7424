"""
Tests for resource dispatchers and the dispatcher registry.
"""

from unittest.mock import AsyncMock

import pytest

from walletqueue.core import (
    CredentialDispatcher,
    DispatcherRegistry,
    HandshakeDispatcher,
    InvalidPayloadError,
    ProfileDispatcher,
    UnknownOperationError,
)
from walletqueue.models import QueueItem, ResourceType
from walletqueue.services import (
    CredentialService,
    HandshakeService,
    LocalRecordStore,
    MemoryRecordStore,
    ProfileService,
    SimulatedCredentialService,
    SimulatedHandshakeService,
    SimulatedProfileService,
    SimulatedServiceError,
)


def make_item(type: str, resource: str, data=None) -> QueueItem:
    return QueueItem(type=type, resource=resource, data=data or {})


class TestCredentialDispatcher:
    """Credential operations call the remote service, then local records."""

    @pytest.fixture
    def service(self):
        service = AsyncMock()
        service.create_credential.return_value = {"id": "cred-1", "status": "active"}
        service.update_credential.return_value = {"id": "cred-1", "name": "New"}
        service.share_credential.return_value = {"shareCode": "ABC"}
        service.verify_credential.return_value = {"isValid": True}
        return service

    @pytest.fixture
    def records(self):
        return MemoryRecordStore()

    @pytest.fixture
    def dispatcher(self, service, records):
        return CredentialDispatcher(service, records)

    @pytest.mark.asyncio
    async def test_create_saves_returned_credential(self, dispatcher, service, records):
        data = {"credentialSubject": {"name": "Alice"}}

        result = await dispatcher.dispatch(make_item("create", "credential", data))

        service.create_credential.assert_awaited_once_with(data)
        assert result["id"] == "cred-1"
        assert await records.get_credential("cred-1") == {
            "id": "cred-1",
            "status": "active",
        }

    @pytest.mark.asyncio
    async def test_update_uses_id_and_updates(self, dispatcher, service, records):
        item = make_item("update", "credential", {"id": "cred-1", "updates": {"name": "New"}})

        await dispatcher.dispatch(item)

        service.update_credential.assert_awaited_once_with("cred-1", {"name": "New"})
        assert (await records.get_credential("cred-1"))["name"] == "New"

    @pytest.mark.asyncio
    async def test_update_without_id_fails(self, dispatcher, service):
        with pytest.raises(InvalidPayloadError, match="Missing required parameter: id"):
            await dispatcher.dispatch(make_item("update", "credential", {"updates": {}}))
        service.update_credential.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_removes_local_record(self, dispatcher, service, records):
        await records.save_credential({"id": "cred-1"})

        await dispatcher.dispatch(make_item("delete", "credential", {"id": "cred-1"}))

        service.delete_credential.assert_awaited_once_with("cred-1")
        assert await records.get_credential("cred-1") is None

    @pytest.mark.asyncio
    async def test_remote_failure_leaves_local_record(self, dispatcher, service, records):
        await records.save_credential({"id": "cred-1"})
        service.delete_credential.side_effect = SimulatedServiceError("Network error")

        with pytest.raises(SimulatedServiceError):
            await dispatcher.dispatch(make_item("delete", "credential", {"id": "cred-1"}))

        assert await records.get_credential("cred-1") == {"id": "cred-1"}

    @pytest.mark.asyncio
    async def test_share_passes_options(self, dispatcher, service):
        item = make_item(
            "share", "credential", {"id": "cred-1", "options": {"oneTime": True}}
        )

        result = await dispatcher.dispatch(item)

        service.share_credential.assert_awaited_once_with("cred-1", {"oneTime": True})
        assert result == {"shareCode": "ABC"}

    @pytest.mark.asyncio
    async def test_verify(self, dispatcher, service):
        result = await dispatcher.dispatch(make_item("verify", "credential", {"id": "cred-1"}))

        service.verify_credential.assert_awaited_once_with("cred-1")
        assert result == {"isValid": True}


class TestHandshakeDispatcher:
    """Handshake create, the placeholder update, and unsupported types."""

    @pytest.fixture
    def service(self):
        service = AsyncMock()
        service.create_request.return_value = {"id": "hs-1", "status": "pending"}
        return service

    @pytest.fixture
    def records(self):
        return MemoryRecordStore()

    @pytest.mark.asyncio
    async def test_create_saves_request(self, service, records):
        dispatcher = HandshakeDispatcher(service, records)

        await dispatcher.dispatch(make_item("create", "handshake", {"recipientDid": "did:x"}))

        service.create_request.assert_awaited_once_with({"recipientDid": "did:x"})
        assert records.handshake_requests["hs-1"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_update_completes_without_remote_call(self, service, records, caplog):
        dispatcher = HandshakeDispatcher(service, records)

        result = await dispatcher.dispatch(make_item("update", "handshake", {"id": "hs-1"}))

        assert result is None
        service.create_request.assert_not_awaited()
        assert "not fully implemented" in caplog.text

    @pytest.mark.asyncio
    async def test_delete_is_unknown(self, service, records):
        dispatcher = HandshakeDispatcher(service, records)

        with pytest.raises(UnknownOperationError, match="Unknown handshake operation: delete"):
            await dispatcher.dispatch(make_item("delete", "handshake"))


class TestProfileDispatcher:
    """Profile updates."""

    @pytest.mark.asyncio
    async def test_update_saves_profile_data(self):
        service = AsyncMock()
        service.update_profile.return_value = {"displayName": "Bob"}
        records = MemoryRecordStore()
        dispatcher = ProfileDispatcher(service, records)

        await dispatcher.dispatch(make_item("update", "profile", {"displayName": "Bob"}))

        service.update_profile.assert_awaited_once_with({"displayName": "Bob"})
        assert await records.get_profile_data("profile") == {"displayName": "Bob"}

    @pytest.mark.asyncio
    async def test_create_is_unknown(self):
        dispatcher = ProfileDispatcher(AsyncMock(), MemoryRecordStore())

        with pytest.raises(UnknownOperationError) as exc_info:
            await dispatcher.dispatch(make_item("create", "profile"))

        assert exc_info.value.resource == "profile"
        assert exc_info.value.operation == "create"


class TestDispatcherRegistry:
    """Routing by resource."""

    @pytest.mark.asyncio
    async def test_from_services_routes_each_resource(self):
        credentials = AsyncMock()
        credentials.verify_credential.return_value = {"isValid": True}
        profiles = AsyncMock()
        profiles.update_profile.return_value = {}
        registry = DispatcherRegistry.from_services(
            credentials=credentials,
            handshakes=AsyncMock(),
            profiles=profiles,
            records=MemoryRecordStore(),
        )

        await registry.dispatch(make_item("verify", "credential", {"id": "c"}))
        await registry.dispatch(make_item("update", "profile", {"bio": "hi"}))

        credentials.verify_credential.assert_awaited_once_with("c")
        profiles.update_profile.assert_awaited_once_with({"bio": "hi"})
        assert isinstance(registry.get(ResourceType.HANDSHAKE), HandshakeDispatcher)

    @pytest.mark.asyncio
    async def test_missing_dispatcher(self):
        registry = DispatcherRegistry()

        with pytest.raises(UnknownOperationError, match="Unknown profile operation: update"):
            await registry.dispatch(make_item("update", "profile"))

    def test_register_accepts_string_resource(self):
        registry = DispatcherRegistry()
        dispatcher = ProfileDispatcher(AsyncMock(), MemoryRecordStore())

        registry.register("profile", dispatcher)

        assert registry.get(ResourceType.PROFILE) is dispatcher


class TestSimulatedServices:
    """Simulated backends satisfy the service interfaces."""

    def test_protocol_conformance(self):
        assert isinstance(SimulatedCredentialService(), CredentialService)
        assert isinstance(SimulatedHandshakeService(), HandshakeService)
        assert isinstance(SimulatedProfileService(), ProfileService)
        assert isinstance(MemoryRecordStore(), LocalRecordStore)

    @pytest.mark.asyncio
    async def test_create_credential_assigns_id(self):
        service = SimulatedCredentialService(latency=0)

        credential = await service.create_credential({"credentialSubject": {"n": 1}})

        assert credential["id"].startswith("cred_")
        assert credential["status"] == "active"

    @pytest.mark.asyncio
    async def test_failure_rate_one_always_fails(self):
        service = SimulatedProfileService(latency=0, failure_rate=1.0)

        with pytest.raises(SimulatedServiceError, match="update_profile"):
            await service.update_profile({})

    def test_invalid_failure_rate(self):
        with pytest.raises(ValueError):
            SimulatedHandshakeService(failure_rate=1.5)

    @pytest.mark.asyncio
    async def test_record_store_requires_ids(self):
        records = MemoryRecordStore()

        with pytest.raises(ValueError):
            await records.save_credential({"name": "no id"})
        with pytest.raises(ValueError):
            await records.save_handshake_request({})

"""
Interfaces of the remote services and local record storage the queue drives.

The queue never retries inside these calls; any exception they raise is a
processing failure handled at queue level.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class CredentialService(Protocol):
    """Remote verifiable credential operations."""

    async def create_credential(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    async def update_credential(
        self, credential_id: str, updates: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def delete_credential(self, credential_id: str) -> None: ...

    async def share_credential(
        self, credential_id: str, options: Dict[str, Any]
    ) -> Dict[str, Any]: ...

    async def verify_credential(self, credential_id: str) -> Dict[str, Any]: ...


@runtime_checkable
class HandshakeService(Protocol):
    """Remote connection handshake operations."""

    async def create_request(self, data: Dict[str, Any]) -> Dict[str, Any]: ...


@runtime_checkable
class ProfileService(Protocol):
    """Remote profile operations."""

    async def update_profile(self, data: Dict[str, Any]) -> Dict[str, Any]: ...


@runtime_checkable
class LocalRecordStore(Protocol):
    """On-device persistence of records produced by remote calls."""

    async def save_credential(self, credential: Dict[str, Any]) -> None: ...

    async def update_credential(
        self, credential_id: str, credential: Dict[str, Any]
    ) -> None: ...

    async def delete_credential(self, credential_id: str) -> None: ...

    async def save_handshake_request(self, request: Dict[str, Any]) -> None: ...

    async def save_profile_data(self, key: str, data: Dict[str, Any]) -> None: ...

    async def get_profile_data(self, key: str) -> Optional[Dict[str, Any]]: ...

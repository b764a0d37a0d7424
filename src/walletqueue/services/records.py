"""
In-memory local record storage.
"""

import copy
import logging
from typing import Any, Dict, List, Optional


class MemoryRecordStore:
    """Keeps credentials, handshake requests and profile data in dicts."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)
        self.credentials: Dict[str, Dict[str, Any]] = {}
        self.handshake_requests: Dict[str, Dict[str, Any]] = {}
        self.profile: Dict[str, Dict[str, Any]] = {}

    async def save_credential(self, credential: Dict[str, Any]) -> None:
        credential_id = credential.get("id")
        if not credential_id:
            raise ValueError("Credential record has no id")
        self.credentials[credential_id] = copy.deepcopy(credential)

    async def update_credential(
        self, credential_id: str, credential: Dict[str, Any]
    ) -> None:
        existing = self.credentials.get(credential_id, {"id": credential_id})
        existing.update(copy.deepcopy(credential))
        self.credentials[credential_id] = existing

    async def delete_credential(self, credential_id: str) -> None:
        self.credentials.pop(credential_id, None)

    async def get_credential(self, credential_id: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.credentials.get(credential_id))

    async def list_credentials(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(c) for c in self.credentials.values()]

    async def save_handshake_request(self, request: Dict[str, Any]) -> None:
        request_id = request.get("id")
        if not request_id:
            raise ValueError("Handshake request has no id")
        self.handshake_requests[request_id] = copy.deepcopy(request)

    async def save_profile_data(self, key: str, data: Dict[str, Any]) -> None:
        self.profile[key] = copy.deepcopy(data)

    async def get_profile_data(self, key: str) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.profile.get(key))

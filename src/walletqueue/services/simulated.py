"""
Simulated wallet backend services.

These stand in for the wallet's HTTP backend when the queue runs locally
(CLI and MCP server). Every call waits a short latency and may fail at a
configurable rate so retry behaviour can be observed end to end.
"""

import asyncio
import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SimulatedServiceError(Exception):
    """Failure injected by a simulated service."""

    pass


class _SimulatedService:
    def __init__(
        self,
        latency: float = 0.05,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.latency = latency
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

    async def _call(self, operation: str) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        if self._rng.random() < self.failure_rate:
            raise SimulatedServiceError(f"Network error during {operation}")
        self.logger.debug(f"Simulated {operation} succeeded")

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()


class SimulatedCredentialService(_SimulatedService):
    """Credential issuance, update, sharing and verification."""

    async def create_credential(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._call("create_credential")
        now = self._now()
        return {
            "id": data.get("id") or f"cred_{uuid.uuid4().hex[:12]}",
            "type": data.get("type", ["VerifiableCredential"]),
            "issuer": data.get("issuer", "did:web:wallet.example"),
            "credentialSubject": data.get("credentialSubject", {}),
            "issuanceDate": now,
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        }

    async def update_credential(
        self, credential_id: str, updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        await self._call("update_credential")
        return {"id": credential_id, **updates, "updatedAt": self._now()}

    async def delete_credential(self, credential_id: str) -> None:
        await self._call("delete_credential")

    async def share_credential(
        self, credential_id: str, options: Dict[str, Any]
    ) -> Dict[str, Any]:
        await self._call("share_credential")
        share_code = uuid.uuid4().hex[:8].upper()
        return {
            "shareUrl": f"https://wallet.example/share/{credential_id}/{share_code}",
            "shareCode": share_code,
            "expiresIn": options.get("expiresIn"),
            "oneTime": bool(options.get("oneTime", False)),
        }

    async def verify_credential(self, credential_id: str) -> Dict[str, Any]:
        await self._call("verify_credential")
        return {
            "isValid": True,
            "verificationResult": {"credentialId": credential_id, "checks": ["proof", "status"]},
        }


class SimulatedHandshakeService(_SimulatedService):
    """Connection handshake requests."""

    async def create_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._call("create_request")
        return {
            "id": data.get("id") or f"hs_{uuid.uuid4().hex[:12]}",
            "requesterDid": data.get("requesterDid"),
            "recipientDid": data.get("recipientDid"),
            "requestedFields": data.get("requestedFields", []),
            "message": data.get("message"),
            "status": "pending",
            "createdAt": self._now(),
        }


class SimulatedProfileService(_SimulatedService):
    """User profile updates."""

    async def update_profile(self, data: Dict[str, Any]) -> Dict[str, Any]:
        await self._call("update_profile")
        return {**data, "updatedAt": self._now()}

"""
Remote service interfaces, local record storage and simulated backends.
"""

from .base import CredentialService, HandshakeService, LocalRecordStore, ProfileService
from .records import MemoryRecordStore
from .simulated import (
    SimulatedCredentialService,
    SimulatedHandshakeService,
    SimulatedProfileService,
    SimulatedServiceError,
)

__all__ = [
    "CredentialService",
    "HandshakeService",
    "ProfileService",
    "LocalRecordStore",
    "MemoryRecordStore",
    "SimulatedCredentialService",
    "SimulatedHandshakeService",
    "SimulatedProfileService",
    "SimulatedServiceError",
]

"""
WalletQueue - offline mutation queue for a DID and verifiable credential wallet

Accepts credential, connection handshake and profile writes while the wallet
is offline, persists them durably, and replays them in priority order with
dependency gating and exponential-backoff retry once connectivity returns.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("walletqueue")
except PackageNotFoundError:
    # Source checkout without an install
    __version__ = "0.0.0.dev0"

__author__ = "WalletQueue Team"

from .core import QueueManager  # noqa: E402
from .models import OperationType, Priority, QueueItem, QueueOptions, ResourceType  # noqa: E402

__all__ = [
    "__version__",
    "__author__",
    "QueueManager",
    "QueueItem",
    "QueueOptions",
    "OperationType",
    "ResourceType",
    "Priority",
]

"""
MCP tools for the WalletQueue server.
"""

from .queue import setup_queue_tools

__all__ = ["setup_queue_tools"]

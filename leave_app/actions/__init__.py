"""
Directory-service action adapters.

Wraps the external "grant marker", "revoke marker" and "notify account"
operations behind one idempotent interface.
"""
from .base import BaseActionAdapter
from .discord_adapter import DiscordActionAdapter
from .memory_adapter import InMemoryActionAdapter

__all__ = ["BaseActionAdapter", "DiscordActionAdapter", "InMemoryActionAdapter"]

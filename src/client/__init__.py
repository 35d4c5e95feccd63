"""Python client for the packup API."""

from .api_client import ApiError, PackupClient
from .config_cache import (
    CacheState,
    ChatbotSettings,
    FileSessionStorage,
    MemorySessionStorage,
    RuntimeConfigCache,
)

__all__ = [
    "ApiError",
    "CacheState",
    "ChatbotSettings",
    "FileSessionStorage",
    "MemorySessionStorage",
    "PackupClient",
    "RuntimeConfigCache",
]

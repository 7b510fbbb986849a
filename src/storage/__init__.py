"""
Storage Module

Durable storage providers for the validation cache
"""

from .storage_provider import (
    StorageProvider,
    InMemoryStorageProvider,
    RedisStorageProvider,
    RedisStorageConfig,
    create_storage_provider
)

__all__ = [
    "StorageProvider",
    "InMemoryStorageProvider",
    "RedisStorageProvider",
    "RedisStorageConfig",
    "create_storage_provider"
]

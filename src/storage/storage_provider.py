"""Durable Storage Providers

The validation cache treats its durable tier as an injected capability with
three asynchronous operations. Any backend (memory, disk, remote) can be
plugged in by implementing StorageProvider.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import ConnectionPool

logger = logging.getLogger(__name__)


class StorageProvider(ABC):
    """Abstract durable key/value store for serialized cache payloads"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored payload or None"""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        """Store `value` under `key`

        Args:
            key: Cache key
            value: Serialized payload (JSON text)
            ttl: Time to live in milliseconds, None for no expiry
        """
        pass

    @abstractmethod
    async def flush_all(self) -> None:
        """Remove every stored payload"""
        pass

    async def close(self) -> None:
        """Release backend resources"""
        return None


class InMemoryStorageProvider(StorageProvider):
    """Process-local provider, mainly for development and tests"""

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._data.get(key)
        if item is None:
            return None

        value, expires_at = item
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        expires_at = time.monotonic() + ttl / 1000 if ttl else None
        self._data[key] = (value, expires_at)

    async def flush_all(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


@dataclass
class RedisStorageConfig:
    """Redis connection configuration"""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key_prefix: str = ""
    pool_max_connections: int = 50
    socket_timeout: float = 1.0
    socket_connect_timeout: float = 1.0
    retry_on_timeout: bool = True


class RedisStorageProvider(StorageProvider):
    """Redis-backed provider using the asyncio client"""

    def __init__(self, config: Optional[RedisStorageConfig] = None):
        self.config = config or RedisStorageConfig()
        self.redis_pool = None
        self.redis_client = None
        self.is_connected = False

    async def initialize(self) -> None:
        """Initialize the Redis connection pool"""
        try:
            self.redis_pool = ConnectionPool(
                host=self.config.host,
                port=self.config.port,
                db=self.config.db,
                password=self.config.password,
                max_connections=self.config.pool_max_connections,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.socket_connect_timeout,
                retry_on_timeout=self.config.retry_on_timeout,
                decode_responses=True
            )
            self.redis_client = redis.Redis(connection_pool=self.redis_pool)

            await self.redis_client.ping()
            self.is_connected = True

            logger.info(f"Redis storage provider connected to {self.config.host}:{self.config.port}/{self.config.db}")

        except Exception as e:
            logger.error(f"Failed to initialize Redis storage provider: {e}")
            self.is_connected = False
            raise

    def _key(self, key: str) -> str:
        return f"{self.config.key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return await self.redis_client.get(self._key(key))

    async def set(self, key: str, value: str, ttl: Optional[float] = None) -> None:
        if ttl:
            await self.redis_client.set(self._key(key), value, px=int(ttl))
        else:
            await self.redis_client.set(self._key(key), value)

    async def flush_all(self) -> None:
        if not self.config.key_prefix:
            await self.redis_client.flushdb()
            return

        keys = [key async for key in self.redis_client.scan_iter(match=f"{self.config.key_prefix}*")]
        if keys:
            await self.redis_client.delete(*keys)

    async def close(self) -> None:
        """Close Redis connections"""
        if self.redis_client:
            await self.redis_client.aclose()
        if self.redis_pool:
            await self.redis_pool.aclose()
        self.is_connected = False
        logger.info("Redis storage provider closed")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def create_storage_provider(settings) -> StorageProvider:
    """Build the provider selected by a StorageSettings object

    Redis providers still need ``await provider.initialize()``.
    """
    if settings.backend == "redis":
        return RedisStorageProvider(RedisStorageConfig(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            key_prefix=settings.key_prefix
        ))
    if settings.backend == "memory":
        return InMemoryStorageProvider()
    raise ValueError(f"Unknown storage backend: {settings.backend}")

"""Redis-backed checkpoint log.

Lets a run crash on one machine and resume on another.

Data Structures:
- stepflow:run:{run_id} (HASH): node_id -> pickled Checkpoint

Key Features:
- First-write-wins via HSETNX
- Optional TTL per run so finished runs expire

Design: Adapter Pattern
Implements CheckpointLog for Redis.
"""

from __future__ import annotations

try:
    import redis.asyncio as redis
except ImportError:
    raise ImportError("redis-py is required for RedisCheckpointLog. Install with: pip install redis")

from pystepflow.storage.base import (
    Checkpoint,
    CheckpointLog,
    StorageError,
    deserialize_checkpoint,
    serialize_checkpoint,
)

KEY_PREFIX = "stepflow:run:"


class RedisCheckpointLog(CheckpointLog):
    """Checkpoints in Redis hashes, one per run.

    Usage:
        log = RedisCheckpointLog("redis://localhost:6379", ttl_seconds=86400)
        await log.connect()

    Args:
        redis_url: Redis connection URL
        max_connections: Maximum pool size
        ttl_seconds: Expire a run's checkpoints this long after the last
            write; None keeps them until delete_run()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        max_connections: int = 16,
        ttl_seconds: int | None = None,
    ):
        self._redis_url = redis_url
        self._max_connections = max_connections
        self._ttl_seconds = ttl_seconds
        self._redis: redis.Redis | None = None

    @classmethod
    def from_client(cls, client: redis.Redis, ttl_seconds: int | None = None) -> RedisCheckpointLog:
        """Wrap an existing client, e.g. to share a connection pool."""
        instance = cls(ttl_seconds=ttl_seconds)
        instance._redis = client
        return instance

    def __repr__(self) -> str:
        return f"RedisCheckpointLog({self._redis_url})"

    async def connect(self) -> None:
        if self._redis is not None:
            return
        self._redis = redis.from_url(
            self._redis_url,
            decode_responses=False,
            max_connections=self._max_connections,
        )

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _check_connected(self) -> None:
        if self._redis is None:
            raise StorageError("Not connected. Call connect() first.")

    @staticmethod
    def _run_key(run_id: str) -> str:
        return f"{KEY_PREFIX}{run_id}"

    async def get_checkpoint(self, run_id: str, node_id: str) -> Checkpoint | None:
        self._check_connected()
        try:
            data = await self._redis.hget(self._run_key(run_id), node_id)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read checkpoint: {e}") from e
        return deserialize_checkpoint(data) if data is not None else None

    async def record(self, checkpoint: Checkpoint) -> Checkpoint:
        self._check_connected()
        key = self._run_key(checkpoint.run_id)
        payload = serialize_checkpoint(checkpoint)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hsetnx(key, checkpoint.node_id, payload)
                pipe.hget(key, checkpoint.node_id)
                if self._ttl_seconds is not None:
                    pipe.expire(key, self._ttl_seconds)
                results = await pipe.execute()
        except redis.RedisError as e:
            raise StorageError(f"Failed to record checkpoint: {e}") from e
        return deserialize_checkpoint(results[1])

    async def get_run(self, run_id: str) -> list[Checkpoint]:
        self._check_connected()
        try:
            entries = await self._redis.hgetall(self._run_key(run_id))
        except redis.RedisError as e:
            raise StorageError(f"Failed to read run: {e}") from e
        return sorted((deserialize_checkpoint(v) for v in entries.values()), key=lambda c: c.sequence)

    async def delete_run(self, run_id: str) -> None:
        self._check_connected()
        await self._redis.delete(self._run_key(run_id))

    async def reset(self) -> None:
        self._check_connected()
        keys = [key async for key in self._redis.scan_iter(match=f"{KEY_PREFIX}*")]
        if keys:
            await self._redis.delete(*keys)

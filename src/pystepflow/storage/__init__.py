"""Checkpoint storage backends for resumable runs.

Provides multiple implementations behind a common interface:
    - CheckpointLog: Abstract interface
    - InMemoryCheckpointLog: Process-local storage for tests
    - SqliteCheckpointLog: SQLite-backed storage
    - RedisCheckpointLog: Redis-backed distributed storage

Design: Adapter Pattern + Dependency Inversion
    The step boundary depends on CheckpointLog only, so backends can be
    swapped without touching the executor.
"""

from pystepflow.storage.base import Checkpoint, CheckpointLog, StorageError

# Backends are imported lazily so that aiosqlite and redis are only loaded
# when the corresponding backend is used.


def __getattr__(name: str):
    if name == "InMemoryCheckpointLog":
        from pystepflow.storage.memory import InMemoryCheckpointLog

        return InMemoryCheckpointLog
    elif name == "RedisCheckpointLog":
        from pystepflow.storage.redis import RedisCheckpointLog

        return RedisCheckpointLog
    elif name == "SqliteCheckpointLog":
        from pystepflow.storage.sqlite import SqliteCheckpointLog

        return SqliteCheckpointLog
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Checkpoint",
    "CheckpointLog",
    "StorageError",
    "InMemoryCheckpointLog",
    "SqliteCheckpointLog",
    "RedisCheckpointLog",
]

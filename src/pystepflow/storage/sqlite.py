"""SQLite-backed checkpoint log.

Design Pattern: Adapter Pattern
SqliteCheckpointLog adapts an SQLite database to the CheckpointLog
interface.

Implementation details:
- aiosqlite for async operations
- WAL mode for concurrent readers
- (run_id, node_id) primary key with INSERT OR IGNORE for first-write-wins
- Index on (run_id, sequence) for ordered run listings
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import aiosqlite

from pystepflow.storage.base import (
    Checkpoint,
    CheckpointLog,
    StorageError,
    deserialize_checkpoint,
    serialize_checkpoint,
)


class SqliteCheckpointLog(CheckpointLog):
    """Durable checkpoints in one SQLite file.

    After __init__ the instance is not usable yet; call connect() first.

    Usage:
        log = SqliteCheckpointLog("checkpoints.db")
        await log.connect()
        try:
            ...
        finally:
            await log.close()
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    @classmethod
    async def in_memory(cls) -> SqliteCheckpointLog:
        """Connected log on an in-memory database, for tests."""
        instance = cls(":memory:")
        await instance.connect()
        return instance

    def __repr__(self) -> str:
        if self.db_path == ":memory:":
            return "SqliteCheckpointLog(in-memory)"
        return f"SqliteCheckpointLog({self.db_path})"

    async def connect(self) -> None:
        if self._connection is not None:
            return

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(
            self.db_path,
            timeout=5.0,
            isolation_level=None,
        )

        # In-memory databases report "memory" and cannot use WAL
        cursor = await self._connection.execute("PRAGMA journal_mode=WAL")
        result = await cursor.fetchone()
        await cursor.close()
        if result and result[0].upper() not in ("WAL", "MEMORY"):
            raise StorageError(f"Failed to enable WAL mode, got: {result[0]}")

        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA busy_timeout=5000")
        await self._create_schema()

    async def _create_schema(self) -> None:
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS checkpoints (
                run_id TEXT NOT NULL,
                node_id TEXT NOT NULL,
                node_name TEXT NOT NULL,
                sequence INTEGER NOT NULL,
                input_hash INTEGER,
                payload BLOB NOT NULL,
                recorded_at TEXT NOT NULL,
                PRIMARY KEY (run_id, node_id)
            )
        """)
        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_checkpoints_run_sequence
            ON checkpoints(run_id, sequence)
        """)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    def _check_connected(self) -> None:
        if self._connection is None:
            raise StorageError("Not connected. Call connect() first.")

    async def get_checkpoint(self, run_id: str, node_id: str) -> Checkpoint | None:
        self._check_connected()
        cursor = await self._connection.execute(
            "SELECT payload FROM checkpoints WHERE run_id = ? AND node_id = ?",
            (run_id, node_id),
        )
        row = await cursor.fetchone()
        await cursor.close()
        return deserialize_checkpoint(row[0]) if row is not None else None

    async def record(self, checkpoint: Checkpoint) -> Checkpoint:
        self._check_connected()
        payload = serialize_checkpoint(checkpoint)
        async with self._lock:
            try:
                await self._connection.execute(
                    """
                    INSERT OR IGNORE INTO checkpoints
                        (run_id, node_id, node_name, sequence, input_hash, payload, recorded_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        checkpoint.run_id,
                        checkpoint.node_id,
                        checkpoint.node_name,
                        checkpoint.sequence,
                        _mask(checkpoint.input_hash),
                        payload,
                        checkpoint.recorded_at.isoformat(),
                    ),
                )
            except aiosqlite.Error as e:
                raise StorageError(f"Failed to record checkpoint: {e}") from e

        stored = await self.get_checkpoint(checkpoint.run_id, checkpoint.node_id)
        if stored is None:
            raise StorageError(
                f"Failed to retrieve checkpoint: run_id={checkpoint.run_id}, node={checkpoint.node_id}"
            )
        return stored

    async def get_run(self, run_id: str) -> list[Checkpoint]:
        self._check_connected()
        cursor = await self._connection.execute(
            "SELECT payload FROM checkpoints WHERE run_id = ? ORDER BY sequence",
            (run_id,),
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [deserialize_checkpoint(row[0]) for row in rows]

    async def delete_run(self, run_id: str) -> None:
        self._check_connected()
        await self._connection.execute("DELETE FROM checkpoints WHERE run_id = ?", (run_id,))

    async def reset(self) -> None:
        self._check_connected()
        await self._connection.execute("DELETE FROM checkpoints")


def _mask(value: int | None) -> int | None:
    # SQLite INTEGER is signed 64-bit
    return value & 0x7FFFFFFFFFFFFFFF if value is not None else None

"""In-memory checkpoint log.

Checkpoints are kept pickled, so a value that could not be persisted by the
durable backends fails here too, and replayed values are copies rather
than shared objects.
"""

from __future__ import annotations

import asyncio

from pystepflow.storage.base import (
    Checkpoint,
    CheckpointLog,
    deserialize_checkpoint,
    serialize_checkpoint,
)


class InMemoryCheckpointLog(CheckpointLog):
    def __init__(self) -> None:
        self._runs: dict[str, dict[str, bytes]] = {}
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"InMemoryCheckpointLog(runs={len(self._runs)})"

    async def get_checkpoint(self, run_id: str, node_id: str) -> Checkpoint | None:
        async with self._lock:
            data = self._runs.get(run_id, {}).get(node_id)
        return deserialize_checkpoint(data) if data is not None else None

    async def record(self, checkpoint: Checkpoint) -> Checkpoint:
        data = serialize_checkpoint(checkpoint)
        async with self._lock:
            stored = self._runs.setdefault(checkpoint.run_id, {}).setdefault(
                checkpoint.node_id, data
            )
        return deserialize_checkpoint(stored)

    async def get_run(self, run_id: str) -> list[Checkpoint]:
        async with self._lock:
            blobs = list(self._runs.get(run_id, {}).values())
        return sorted((deserialize_checkpoint(b) for b in blobs), key=lambda c: c.sequence)

    async def delete_run(self, run_id: str) -> None:
        async with self._lock:
            self._runs.pop(run_id, None)

    async def reset(self) -> None:
        async with self._lock:
            self._runs.clear()

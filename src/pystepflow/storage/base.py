"""
CheckpointLog - abstract interface for step result persistence.

Design Pattern: Adapter Pattern
CheckpointLog is the target interface; the in-memory, SQLite and Redis
backends adapt their storage to it. The step boundary only depends on this
abstraction.

A checkpoint is the recorded StepResult of one node in one run, together
with a hash of the input the node was invoked with. Recording is
first-write-wins: once a node has a checkpoint in a run, later record()
calls return the stored checkpoint unchanged. This gives at-most-one
recording per node per run. It does not make the external effect of an
action happen at most once: a crash between invoking an action and
recording its result re-invokes it on resume.
"""

from __future__ import annotations

import pickle
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pystepflow.models.result import StepResult


class StorageError(Exception):
    """Checkpoint storage operation failed."""


@dataclass(frozen=True)
class Checkpoint:
    """Recorded result of one node in one run.

    Attributes:
        run_id: Run the node belongs to
        node_id: Stable node id (names may change between saves)
        node_name: Namespace key at the time of recording
        sequence: Recording order within the run, starting at 1
        result: The node's StepResult
        input_hash: xxhash of the rendered input; None when the node failed
            before its input could be rendered
        recorded_at: UTC timestamp
    """

    run_id: str
    node_id: str
    node_name: str
    sequence: int
    result: StepResult
    input_hash: int | None = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def serialize_checkpoint(checkpoint: Checkpoint) -> bytes:
    try:
        return pickle.dumps(checkpoint)
    except (pickle.PicklingError, TypeError, AttributeError) as e:
        raise StorageError(
            f"Cannot serialize result of node {checkpoint.node_name!r}: {e}"
        ) from e


def deserialize_checkpoint(data: bytes) -> Checkpoint:
    try:
        checkpoint = pickle.loads(data)
    except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
        raise StorageError(f"Corrupt checkpoint: {e}") from e
    if not isinstance(checkpoint, Checkpoint):
        raise StorageError(f"Corrupt checkpoint: got {type(checkpoint).__name__}")
    return checkpoint


class CheckpointLog(ABC):
    """
    Abstract storage interface for step checkpoints.

    Backends:
        - InMemoryCheckpointLog: process-local, for tests and one-shot runs
        - SqliteCheckpointLog: single host durability (aiosqlite, WAL)
        - RedisCheckpointLog: shared durability across hosts

    Usage:
        log = SqliteCheckpointLog("checkpoints.db")
        await log.connect()
        try:
            executor = WorkflowExecutor(checkpoint_log=log)
            await executor.run(workflow, run_id=run_id)
        finally:
            await log.close()
    """

    async def connect(self) -> None:  # noqa: B027
        """Open connections; backends without any keep the no-op."""

    async def close(self) -> None:  # noqa: B027
        """Release connections."""

    @abstractmethod
    async def get_checkpoint(self, run_id: str, node_id: str) -> Checkpoint | None:
        """The node's checkpoint in this run, or None when not recorded."""

    @abstractmethod
    async def record(self, checkpoint: Checkpoint) -> Checkpoint:
        """Store a checkpoint unless one exists; return the stored checkpoint.

        Raises:
            StorageError: Serialization or backend failure
        """

    @abstractmethod
    async def get_run(self, run_id: str) -> list[Checkpoint]:
        """All checkpoints of a run ordered by sequence."""

    @abstractmethod
    async def delete_run(self, run_id: str) -> None:
        """Forget a run, e.g. to re-execute it from scratch."""

    @abstractmethod
    async def reset(self) -> None:
        """Clear all data (for testing)."""

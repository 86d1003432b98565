"""Run and node status enums."""

from __future__ import annotations

from enum import Enum


class RunStatus(Enum):
    """Lifecycle of one run: PENDING -> ORDERING -> EXECUTING -> terminal."""

    PENDING = "PENDING"
    ORDERING = "ORDERING"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class NodeStatus(Enum):
    """Per-node state; values match the routing module's plain strings."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    UNREACHABLE = "unreachable"

    def __str__(self) -> str:
        return self.value

    @property
    def is_settled(self) -> bool:
        return self is not NodeStatus.PENDING

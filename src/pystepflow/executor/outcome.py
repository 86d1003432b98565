"""
Run outcome types.

A finished run is described by a RunOutcome: the terminal RunStatus, the
final output namespace and one NodeReport per node in rank order.

Example:
    ```python
    outcome = await executor.run(workflow, {"email": "a@example.com"})
    if outcome.is_completed:
        print(outcome.output("Send Email"))
    else:
        for report in outcome.failed:
            print(f"{report.name}: {report.error}")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pystepflow.core.errors import ErrorKind
from pystepflow.models.status import NodeStatus, RunStatus

__all__ = ["NodeReport", "RunOutcome"]


@dataclass(frozen=True)
class NodeReport:
    """Final state of one node.

    Attributes:
        node_id: Stable node id
        name: Node name (namespace key)
        status: SUCCEEDED, FAILED, UNREACHABLE, or PENDING for nodes a
            cancelled run never reached
        error: Failure message for failed nodes
        kind: Failure classification for failed nodes
        sequence: Recording order within the run
    """

    node_id: str
    name: str
    status: NodeStatus
    error: str | None = None
    kind: ErrorKind | None = None
    sequence: int | None = None

    def __str__(self) -> str:
        text = f"{self.name}: {self.status}"
        return f"{text} ({self.error})" if self.error else text


@dataclass(frozen=True)
class RunOutcome:
    run_id: str
    workflow_name: str
    status: RunStatus
    namespace: dict[str, Any] = field(default_factory=dict)
    nodes: dict[str, NodeReport] = field(default_factory=dict)
    """Reports keyed by node name, in rank order."""
    cancelled: bool = False

    @property
    def is_completed(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status is RunStatus.FAILED

    @property
    def failed(self) -> list[NodeReport]:
        return [r for r in self.nodes.values() if r.status is NodeStatus.FAILED]

    @property
    def unreachable(self) -> list[NodeReport]:
        return [r for r in self.nodes.values() if r.status is NodeStatus.UNREACHABLE]

    @property
    def executed(self) -> list[str]:
        """Names of nodes that ran (or were replayed), in recording order."""
        ran = [r for r in self.nodes.values() if r.sequence is not None]
        return [r.name for r in sorted(ran, key=lambda r: r.sequence)]

    def output(self, name: str) -> Any:
        return self.namespace[name]

    def __repr__(self) -> str:
        return (
            f"RunOutcome(run_id={self.run_id!r}, status={self.status}, "
            f"failed={[r.name for r in self.failed]}, unreachable={[r.name for r in self.unreachable]})"
        )

"""Task-local execution context for one workflow run.

The context owns everything that is scoped to a single run: the output
namespace (node name -> value), the per-node step results, the credential
cache, the recording sequence and the cancellation flag. Nothing in it is
shared between runs, so concurrent runs in one process never interfere.

Design: Task-Local State (contextvars)
    Actions that need run state (the trigger reads its input, the credential
    resolver reads its cache) look the context up with get_current_context()
    instead of threading it through every call.
"""

from __future__ import annotations

from contextvars import ContextVar
from threading import Lock
from typing import Any, Optional

from pystepflow.core.routing import guard_view
from pystepflow.models.result import Failure, StepResult, Success

EXECUTION_CONTEXT: ContextVar[Optional["ExecutionContext"]] = ContextVar(
    "execution_context", default=None
)
"""Task-local ExecutionContext of the run being executed.

Usage:
    ```python
    ctx = ExecutionContext(run_id, "my workflow")
    token = EXECUTION_CONTEXT.set(ctx)
    try:
        ...
    finally:
        EXECUTION_CONTEXT.reset(token)
    ```
"""


class ExecutionContext:
    """State of one run.

    Attributes:
        run_id: Identifier used as the checkpoint log key
        workflow_name: Display name, used in logs
        trigger_input: Payload the run was started with
        namespace: Node name -> output value, successes only
        results: Node name -> StepResult, successes and failures
        credential_cache: Integration reference -> resolved secrets, None
            for a reference the store did not have
    """

    def __init__(
        self,
        run_id: str,
        workflow_name: str = "workflow",
        trigger_input: dict[str, Any] | None = None,
    ):
        self.run_id = run_id
        self.workflow_name = workflow_name
        self.trigger_input: dict[str, Any] = dict(trigger_input or {})
        self.namespace: dict[str, Any] = {}
        self.results: dict[str, StepResult] = {}
        self.sequences: dict[str, int] = {}
        self.credential_cache: dict[str | None, dict[str, str] | None] = {}
        self._sequence = 0
        self._cancelled = False
        self._lock = Lock()

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence

    def record(self, name: str, result: StepResult, sequence: int | None = None) -> None:
        """Store a node's result; successes also enter the namespace."""
        self.results[name] = result
        if sequence is not None:
            self.sequences[name] = sequence
            with self._lock:
                self._sequence = max(self._sequence, sequence)
        if isinstance(result, Success):
            self.namespace[name] = result.value

    def has_result(self, name: str) -> bool:
        return name in self.results

    def get_result(self, name: str) -> StepResult | None:
        return self.results.get(name)

    def guard_view(self) -> dict[str, Any]:
        """Namespace seen by condition nodes.

        Every settled node maps to its output plus `success` and `error`, so
        a condition can branch on whether an upstream node failed.
        """
        errors = {
            name: result.error for name, result in self.results.items() if isinstance(result, Failure)
        }
        return guard_view(self.namespace, errors)

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(run_id={self.run_id!r}, workflow={self.workflow_name!r}, "
            f"settled={len(self.results)})"
        )


def get_current_context() -> ExecutionContext | None:
    """Return the ExecutionContext of the current task, if any."""
    return EXECUTION_CONTEXT.get()

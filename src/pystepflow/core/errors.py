"""Exception hierarchy for workflow validation, node failures and runs.

Every error is rooted at WorkflowError and carries an ErrorKind so the step
boundary can turn it into a Failure without string matching.

Validation errors are fatal and raised before any node runs. Node errors are
recovered at the step boundary and recorded as that node's result. Replay and
cancellation errors abort the run.

This module only depends on the standard library: exported programs embed
its source next to the interpolation module.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

__all__ = [
    "ErrorKind",
    "WorkflowError",
    "ValidationError",
    "CycleDetected",
    "MultipleOrZeroTriggers",
    "UnknownActionId",
    "InvalidGraph",
    "NodeError",
    "UnresolvedReference",
    "PathNotFound",
    "MissingCredential",
    "ActionInvocationError",
    "NonDeterministicReplay",
    "RunCancelled",
]


class ErrorKind(Enum):
    """Classification attached to every workflow error and Failure."""

    CYCLE_DETECTED = "CycleDetected"
    MULTIPLE_OR_ZERO_TRIGGERS = "MultipleOrZeroTriggers"
    UNKNOWN_ACTION_ID = "UnknownActionId"
    INVALID_GRAPH = "InvalidGraph"
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    PATH_NOT_FOUND = "PathNotFound"
    MISSING_CREDENTIAL = "MissingCredential"
    ACTION_INVOCATION_ERROR = "ActionInvocationError"
    NON_DETERMINISTIC_REPLAY = "NonDeterministicReplay"
    RUN_CANCELLED = "RunCancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_fatal(self) -> bool:
        """True for kinds that stop a run instead of failing a single node."""
        return self not in (
            ErrorKind.UNRESOLVED_REFERENCE,
            ErrorKind.PATH_NOT_FOUND,
            ErrorKind.MISSING_CREDENTIAL,
            ErrorKind.ACTION_INVOCATION_ERROR,
        )


class WorkflowError(Exception):
    """Base class for everything the engine raises on purpose."""

    kind: ErrorKind = ErrorKind.ACTION_INVOCATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


# ---------------------------------------------------------------------------
# Validation (raised before the run starts)
# ---------------------------------------------------------------------------


class ValidationError(WorkflowError):
    """A graph that can never be executed."""

    kind = ErrorKind.INVALID_GRAPH


class CycleDetected(ValidationError):
    """The graph contains a directed cycle.

    Attributes:
        cycle: Node names along the cycle, first name repeated at the end
    """

    kind = ErrorKind.CYCLE_DETECTED

    def __init__(self, cycle: list[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cycle detected: {' -> '.join(self.cycle)}")

    @property
    def node(self) -> str:
        """A node that lies on the cycle."""
        return self.cycle[0]


class MultipleOrZeroTriggers(ValidationError):
    """The graph does not have exactly one trigger node."""

    kind = ErrorKind.MULTIPLE_OR_ZERO_TRIGGERS

    def __init__(self, triggers: list[str]):
        self.triggers = list(triggers)
        if not self.triggers:
            message = "Workflow has no trigger node"
        else:
            message = f"Workflow has {len(self.triggers)} trigger nodes: {', '.join(self.triggers)}"
        super().__init__(message)


class UnknownActionId(ValidationError):
    """A node names an action the registry does not know."""

    kind = ErrorKind.UNKNOWN_ACTION_ID

    def __init__(self, action_id: str | None, node: str | None = None):
        self.action_id = action_id
        self.node = node
        where = f" (node {node!r})" if node else ""
        super().__init__(f"Unknown action id: {action_id!r}{where}")


class InvalidGraph(ValidationError):
    """Structural problem: duplicate names, dangling edges, bad branches."""

    kind = ErrorKind.INVALID_GRAPH


# ---------------------------------------------------------------------------
# Node errors (recovered at the step boundary)
# ---------------------------------------------------------------------------


class NodeError(WorkflowError):
    """Failure of a single node; recorded, never propagated past the boundary."""


class UnresolvedReference(NodeError):
    """An interpolation token names a node absent from the namespace."""

    kind = ErrorKind.UNRESOLVED_REFERENCE

    def __init__(self, identifier: str, token: str | None = None):
        self.identifier = identifier
        self.token = token
        shown = token if token is not None else identifier
        super().__init__(f"Unresolved reference {shown!r}: no output named {identifier!r}")


class PathNotFound(NodeError):
    """The referenced node exists but the path into its output does not."""

    kind = ErrorKind.PATH_NOT_FOUND

    def __init__(self, identifier: str, path: str, token: str | None = None):
        self.identifier = identifier
        self.path = path
        self.token = token
        super().__init__(f"Path {path!r} not found in output of {identifier!r}")


class MissingCredential(NodeError):
    """The integration reference or one of its required keys is missing."""

    kind = ErrorKind.MISSING_CREDENTIAL

    def __init__(self, reference: str | None, key: str | None = None):
        self.reference = reference
        self.key = key
        target = reference if reference is not None else "process defaults"
        if key is None:
            message = f"No credentials found for {target!r}"
        else:
            message = f"Credential {key!r} missing from {target!r}"
        super().__init__(message)


class ActionInvocationError(NodeError):
    """The action itself reported an error (bad response, bad expression).

    Attributes:
        status_code: HTTP status when the failure came from a remote call
    """

    kind = ErrorKind.ACTION_INVOCATION_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"ActionInvocationError(message={self.message!r}, status_code={self.status_code!r})"


# ---------------------------------------------------------------------------
# Run-level errors
# ---------------------------------------------------------------------------


class NonDeterministicReplay(WorkflowError):
    """A resumed run rendered different input for an already recorded node."""

    kind = ErrorKind.NON_DETERMINISTIC_REPLAY

    def __init__(self, node: str, recorded_hash: int, current_hash: int | None):
        self.node = node
        self.recorded_hash = recorded_hash
        self.current_hash = current_hash
        super().__init__(
            f"Non-deterministic replay of node {node!r}: "
            f"recorded input hash {recorded_hash}, current input hash {current_hash}"
        )


class RunCancelled(WorkflowError):
    """The run was cancelled between node dispatches.

    `outcome` holds the partial RunOutcome when the executor raised it.
    """

    kind = ErrorKind.RUN_CANCELLED

    def __init__(self, run_id: str, outcome: Any = None):
        self.run_id = run_id
        self.outcome = outcome
        super().__init__(f"Run {run_id} was cancelled")

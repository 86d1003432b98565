"""
Core primitives: errors, configuration and routing rules.

The execution context lives in pystepflow.core.context and is imported from
there directly; it depends on the models package, which depends on the
errors defined here.
"""

from pystepflow.core.config import EngineConfig
from pystepflow.core.errors import (
    ActionInvocationError,
    CycleDetected,
    ErrorKind,
    InvalidGraph,
    MissingCredential,
    MultipleOrZeroTriggers,
    NodeError,
    NonDeterministicReplay,
    PathNotFound,
    RunCancelled,
    UnknownActionId,
    UnresolvedReference,
    ValidationError,
    WorkflowError,
)

__all__ = [
    "EngineConfig",
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

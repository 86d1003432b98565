"""
Data models for pystepflow.

Graph documents (Node, Edge, Workflow), step results (Success, Failure) and
the status enums shared by the executor and the exported programs.
"""

from pystepflow.models.graph import FALSE_BRANCH, TRUE_BRANCH, Edge, Node, NodeKind, Workflow
from pystepflow.models.result import (
    Failure,
    StepResult,
    Success,
    failure_from,
    is_failure,
    is_success,
)
from pystepflow.models.status import NodeStatus, RunStatus

__all__ = [
    "Node",
    "NodeKind",
    "Edge",
    "Workflow",
    "TRUE_BRANCH",
    "FALSE_BRANCH",
    "Success",
    "Failure",
    "StepResult",
    "is_success",
    "is_failure",
    "failure_from",
    "NodeStatus",
    "RunStatus",
]

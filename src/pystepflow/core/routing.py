"""Dead-path routing rules shared by the executor and exported programs.

Statuses are plain strings here ("pending", "succeeded", "failed",
"unreachable") so this module stays standard-library only and can be
embedded verbatim in generated code.

An edge is live when its source succeeded and, for a condition source, the
edge's branch matches the condition result. An edge whose source failed is
live only when its target is a condition node: a condition placed directly
after a node guards it and may branch on the failure. Every other settled
edge is dead.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

PENDING = "pending"
SUCCEEDED = "succeeded"
FAILED = "failed"
UNREACHABLE = "unreachable"

LIVE = "live"
DEAD = "dead"
RUNNABLE = "runnable"

COMPLETED = "COMPLETED"
RUN_FAILED = "FAILED"


def edge_state(
    source_status: str,
    target_is_condition: bool,
    branch: str | None = None,
    taken: str | None = None,
) -> str | None:
    """Return LIVE, DEAD, or None while the source is still pending."""
    if source_status == PENDING:
        return None
    if source_status == UNREACHABLE:
        return DEAD
    if source_status == FAILED:
        return LIVE if target_is_condition else DEAD
    if branch is None:
        return LIVE
    return LIVE if branch == taken else DEAD


def decide(states: Iterable[str | None]) -> str | None:
    """Combine the incoming edge states of a node.

    Returns RUNNABLE, UNREACHABLE, or None when some edge is undecided.
    A node without incoming edges is unreachable; the trigger is handled by
    the caller.
    """
    states = list(states)
    if any(state is None for state in states):
        return None
    return RUNNABLE if LIVE in states else UNREACHABLE


def branch_of(value: Any) -> str:
    """Branch taken by a condition node given its output value."""
    if isinstance(value, Mapping):
        value = value.get("result")
    return "true" if value else "false"


def guard_view(outputs: Mapping[str, Any], errors: Mapping[str, str]) -> dict[str, Any]:
    """Namespace for condition rendering: each settled node with success/error."""
    view: dict[str, Any] = {}
    for name, value in outputs.items():
        if isinstance(value, Mapping):
            entry = dict(value)
        else:
            entry = {"value": value}
        entry["success"] = True
        entry["error"] = None
        view[name] = entry
    for name, error in errors.items():
        view[name] = {"success": False, "error": error}
    return view


def run_status(
    statuses: Mapping[str, str],
    required: Iterable[str] = (),
    handled: Iterable[str] = (),
) -> str:
    """Final status of a run from the per-node statuses (keyed by name).

    With required nodes declared, the run fails when any of them failed or
    became unreachable. Without a declaration it fails when some failure was
    not observed by a guard condition.
    """
    required = list(required)
    if required:
        bad = [name for name in required if statuses.get(name) in (FAILED, UNREACHABLE, PENDING, None)]
        return RUN_FAILED if bad else COMPLETED
    handled = set(handled)
    unhandled = [name for name, status in statuses.items() if status == FAILED and name not in handled]
    return RUN_FAILED if unhandled else COMPLETED

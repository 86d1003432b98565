"""
Graph validation, ranking and online scheduling.

`validate(workflow, registry)` turns an untrusted Workflow into a GraphPlan
or raises a ValidationError before any node runs:

- exactly one trigger (MultipleOrZeroTriggers)
- unique ids and names, edges between existing nodes, nothing enters the
  trigger, exactly one true and one false edge per condition (InvalidGraph)
- no cycles (CycleDetected, found with a DFS recursion stack)
- every node resolves to a registered action (UnknownActionId)
- every interpolation token parses (InvalidGraph)

The plan's rank is a Kahn topological order with ties broken by document
order. Execution and code generation both walk nodes in rank order.

**Dead-path elimination**:
The Scheduler tracks node statuses during a run. After each completion the
next node to run is the lowest-rank pending node whose incoming edges are
all decided with at least one live edge. Pending nodes whose incoming edges
are all dead are marked unreachable on the way. Edge liveness rules live in
pystepflow.core.routing and are shared with exported programs.
"""

from __future__ import annotations

import heapq
import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, replace

from pystepflow.actions.base import ActionDescriptor
from pystepflow.actions.registry import ActionRegistry
from pystepflow.core import routing
from pystepflow.core.errors import CycleDetected, InvalidGraph, MultipleOrZeroTriggers
from pystepflow.models.graph import FALSE_BRANCH, TRUE_BRANCH, Edge, Node, NodeKind, Workflow
from pystepflow.models.result import Failure, StepResult
from pystepflow.models.status import NodeStatus, RunStatus
from pystepflow.template.expressions import references

logger = logging.getLogger(__name__)

__all__ = ["GraphPlan", "PlanSummary", "Scheduler", "validate"]


@dataclass(frozen=True)
class PlanSummary:
    """
    Shape of a validated workflow.

    Attributes:
        total_nodes: Number of nodes
        condition_count: Number of condition nodes
        max_depth: Longest edge path from the trigger
        leaves: Names of nodes without outgoing edges, in rank order
    """

    total_nodes: int
    condition_count: int
    max_depth: int
    leaves: list[str]


@dataclass(frozen=True, eq=False)
class GraphPlan:
    """A validated workflow: nodes in rank order plus adjacency by node id."""

    workflow: Workflow
    trigger: Node
    order: tuple[Node, ...]
    actions: Mapping[str, ActionDescriptor]
    incoming: Mapping[str, tuple[Edge, ...]]
    outgoing: Mapping[str, tuple[Edge, ...]]
    required: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.workflow.name

    @property
    def edges(self) -> tuple[Edge, ...]:
        """Normalized edges (condition branches assigned), in rank order of source."""
        return tuple(edge for node in self.order for edge in self.outgoing[node.id])

    def node(self, node_id: str) -> Node:
        for node in self.order:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def rank(self, node_id: str) -> int:
        for position, node in enumerate(self.order):
            if node.id == node_id:
                return position
        raise KeyError(node_id)

    def depths(self) -> dict[str, int]:
        """Longest distance from the trigger per node id."""
        depths: dict[str, int] = {}
        for node in self.order:
            parents = [depths[edge.source] for edge in self.incoming[node.id]]
            depths[node.id] = max(parents) + 1 if parents else 0
        return depths

    def summary(self) -> PlanSummary:
        depths = self.depths()
        return PlanSummary(
            total_nodes=len(self.order),
            condition_count=sum(1 for node in self.order if node.kind is NodeKind.CONDITION),
            max_depth=max(depths.values()) if depths else 0,
            leaves=[node.name for node in self.order if not self.outgoing[node.id]],
        )


def validate(workflow: Workflow, registry: ActionRegistry) -> GraphPlan:
    """Check a workflow and compute its plan.

    Raises:
        MultipleOrZeroTriggers, CycleDetected, UnknownActionId, InvalidGraph
    """
    nodes = list(workflow.nodes)
    by_id: dict[str, Node] = {}
    for node in nodes:
        if node.id in by_id:
            raise InvalidGraph(f"Duplicate node id: {node.id!r}")
        by_id[node.id] = node

    duplicates = sorted(name for name, count in Counter(n.name for n in nodes).items() if count > 1)
    if duplicates:
        raise InvalidGraph(f"Duplicate node names: {', '.join(duplicates)}")

    triggers = [node for node in nodes if node.kind is NodeKind.TRIGGER]
    if len(triggers) != 1:
        raise MultipleOrZeroTriggers([node.name for node in triggers])
    trigger = triggers[0]

    for edge in workflow.edges:
        for end in (edge.source, edge.target):
            if end not in by_id:
                raise InvalidGraph(f"Edge {edge.source} -> {edge.target} references unknown node {end!r}")
        if edge.target == trigger.id:
            raise InvalidGraph(f"Edge {by_id[edge.source].name} -> {trigger.name} enters the trigger")

    _check_cycles(nodes, workflow.edges, by_id)

    names = {node.name for node in nodes}
    actions: dict[str, ActionDescriptor] = {}
    for node in nodes:
        action = registry.resolve_node(node)
        if action.kind is not node.kind:
            raise InvalidGraph(f"Node {node.name!r} of type {node.kind} cannot run {action.action_id}")
        actions[node.id] = action
        _check_templates(node, names)

    edges = _normalize_branches(workflow.edges, by_id)
    incoming: dict[str, list[Edge]] = {node.id: [] for node in nodes}
    outgoing: dict[str, list[Edge]] = {node.id: [] for node in nodes}
    for edge in edges:
        outgoing[edge.source].append(edge)
        incoming[edge.target].append(edge)

    order = _rank(nodes, outgoing, incoming)
    plan = GraphPlan(
        workflow=workflow,
        trigger=trigger,
        order=tuple(order),
        actions=actions,
        incoming={k: tuple(v) for k, v in incoming.items()},
        outgoing={k: tuple(v) for k, v in outgoing.items()},
        required=_required_outputs(trigger, names),
    )
    logger.debug(f"Validated {workflow.name!r}: order={[node.name for node in order]}")
    return plan


def _check_cycles(nodes: list[Node], edges: tuple[Edge, ...], by_id: dict[str, Node]) -> None:
    children: dict[str, list[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        children[edge.source].append(edge.target)

    visited: set[str] = set()
    rec_stack: list[str] = []

    def visit(node_id: str) -> None:
        visited.add(node_id)
        rec_stack.append(node_id)
        for child in children[node_id]:
            if child in rec_stack:
                cycle = rec_stack[rec_stack.index(child) :] + [child]
                raise CycleDetected([by_id[n].name for n in cycle])
            if child not in visited:
                visit(child)
        rec_stack.pop()

    for node in nodes:
        if node.id not in visited:
            visit(node.id)


def _check_templates(node: Node, names: set[str]) -> None:
    """Warn about references to unknown nodes.

    references() parses every template on the way, so a malformed token
    raises InvalidGraph from there.
    """
    for identifier in references(node.action_config):
        if identifier not in names:
            logger.warning(f"Node {node.name!r} references unknown node {identifier!r}")


def _normalize_branches(edges: tuple[Edge, ...], by_id: dict[str, Node]) -> list[Edge]:
    """Assign true/false to condition edges; drop labels on other edges.

    Unlabelled condition edges take the remaining branches in document
    order: the first is true, the second false.
    """
    normalized: list[Edge] = []
    condition_edges: dict[str, list[int]] = {}
    for edge in edges:
        if by_id[edge.source].kind is NodeKind.CONDITION:
            if edge.branch not in (None, TRUE_BRANCH, FALSE_BRANCH):
                raise InvalidGraph(
                    f"Condition {by_id[edge.source].name!r} has an edge with branch {edge.branch!r}"
                )
            condition_edges.setdefault(edge.source, []).append(len(normalized))
            normalized.append(edge)
        else:
            normalized.append(replace(edge, branch=None) if edge.branch is not None else edge)

    for node in by_id.values():
        if node.kind is not NodeKind.CONDITION:
            continue
        positions = condition_edges.get(node.id, [])
        if len(positions) != 2:
            raise InvalidGraph(
                f"Condition {node.name!r} needs exactly two outgoing edges, has {len(positions)}"
            )
        labelled = [normalized[p].branch for p in positions if normalized[p].branch is not None]
        remaining = [b for b in (TRUE_BRANCH, FALSE_BRANCH) if b not in labelled]
        for position in positions:
            if normalized[position].branch is None:
                normalized[position] = replace(normalized[position], branch=remaining.pop(0))
        if {normalized[p].branch for p in positions} != {TRUE_BRANCH, FALSE_BRANCH}:
            raise InvalidGraph(f"Condition {node.name!r} needs one true and one false edge")
    return normalized


def _rank(
    nodes: list[Node], outgoing: dict[str, list[Edge]], incoming: dict[str, list[Edge]]
) -> list[Node]:
    """Kahn's algorithm; among ready nodes the earliest in the document wins."""
    position = {node.id: index for index, node in enumerate(nodes)}
    remaining = {node.id: len(incoming[node.id]) for node in nodes}
    ready = [(position[node.id], node.id) for node in nodes if remaining[node.id] == 0]
    heapq.heapify(ready)

    order: list[Node] = []
    while ready:
        _, node_id = heapq.heappop(ready)
        order.append(nodes[position[node_id]])
        for edge in outgoing[node_id]:
            remaining[edge.target] -= 1
            if remaining[edge.target] == 0:
                heapq.heappush(ready, (position[edge.target], edge.target))
    return order


def _required_outputs(trigger: Node, names: set[str]) -> tuple[str, ...]:
    declared = trigger.config.get("outputs") or ()
    if isinstance(declared, str):
        declared = [declared]
    for name in declared:
        if name not in names:
            raise InvalidGraph(f"Trigger declares unknown output node {name!r}")
    return tuple(declared)


class Scheduler:
    """Online dead-path elimination over a GraphPlan.

    Usage:
        scheduler = Scheduler(plan)
        while (node := scheduler.next_runnable()) is not None:
            scheduler.begin(node)
            scheduler.settle(node, await dispatch(node))
        status = scheduler.run_status()
    """

    def __init__(self, plan: GraphPlan):
        self.plan = plan
        self.statuses: dict[str, NodeStatus] = {node.id: NodeStatus.PENDING for node in plan.order}
        self.taken: dict[str, str] = {}
        self.handled: set[str] = set()

    def next_runnable(self) -> Node | None:
        """Lowest-rank runnable node, marking unreachable nodes on the way."""
        for node in self.plan.order:
            if self.statuses[node.id] is not NodeStatus.PENDING:
                continue
            decision = self._decide(node)
            if decision == routing.UNREACHABLE:
                self.statuses[node.id] = NodeStatus.UNREACHABLE
                logger.debug(f"Node {node.name!r} is unreachable")
            elif decision == routing.RUNNABLE:
                return node
        return None

    def _decide(self, node: Node) -> str | None:
        if node.id == self.plan.trigger.id:
            return routing.RUNNABLE
        is_condition = node.kind is NodeKind.CONDITION
        states = [
            routing.edge_state(
                self.statuses[edge.source].value, is_condition, edge.branch, self.taken.get(edge.source)
            )
            for edge in self.plan.incoming[node.id]
        ]
        return routing.decide(states)

    def begin(self, node: Node) -> None:
        """A condition about to run observes its failed predecessors."""
        if node.kind is NodeKind.CONDITION:
            for edge in self.plan.incoming[node.id]:
                if self.statuses[edge.source] is NodeStatus.FAILED:
                    self.handled.add(edge.source)

    def settle(self, node: Node, result: StepResult) -> None:
        if isinstance(result, Failure):
            self.statuses[node.id] = NodeStatus.FAILED
            return
        self.statuses[node.id] = NodeStatus.SUCCEEDED
        if node.kind is NodeKind.CONDITION:
            self.taken[node.id] = routing.branch_of(result.value)
            logger.debug(f"Condition {node.name!r} took the {self.taken[node.id]} branch")

    def run_status(self) -> RunStatus:
        names = {node.id: node.name for node in self.plan.order}
        status = routing.run_status(
            {names[node_id]: status.value for node_id, status in self.statuses.items()},
            self.plan.required,
            {names[node_id] for node_id in self.handled},
        )
        return RunStatus(status)

"""
Workflow graph model: nodes, edges and the workflow document.

The core treats a Workflow as read-only. Documents arrive either in the
authoring editor's shape::

    {"id": "n1", "data": {"label": "Scrape", "type": "action",
                          "config": {"actionType": "firecrawl/scrape", "url": "..."}}}

or in the flat shape::

    {"id": "n1", "name": "Scrape", "kind": "action",
     "action_id": "firecrawl/scrape", "config": {"url": "..."}}

Both are accepted by `Node.from_dict`. Structural checks (one trigger,
acyclic, unique names) are done later by the scheduler's `validate`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pystepflow.core.errors import InvalidGraph

__all__ = ["NodeKind", "Node", "Edge", "Workflow", "TRUE_BRANCH", "FALSE_BRANCH"]

TRUE_BRANCH = "true"
FALSE_BRANCH = "false"

# Config keys the editor stores next to the action's own fields.
_EDITOR_KEYS = ("actionType", "integrationId")


class NodeKind(Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | NodeKind | None) -> NodeKind:
        if isinstance(value, NodeKind):
            return value
        if value is None:
            return cls.ACTION
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidGraph(f"Unsupported node type: {value!r}") from None


@dataclass(frozen=True, eq=False)
class Node:
    """A named step.

    `name` is the key of this node's output in the run namespace, so it is
    unique per workflow. `action_id` may be a namespaced id
    (``"resend/send-email"``) or a legacy label (``"Send Email"``); trigger and
    condition nodes may leave it empty.
    """

    id: str
    name: str
    kind: NodeKind = NodeKind.ACTION
    action_id: str | None = None
    config: Mapping[str, Any] = field(default_factory=dict)
    integration_id: str | None = None

    @property
    def integration_ref(self) -> str | None:
        """Opaque credential reference, from the field or the editor config."""
        if self.integration_id:
            return self.integration_id
        ref = self.config.get("integrationId")
        return str(ref) if ref else None

    @property
    def action_config(self) -> dict[str, Any]:
        """Config without the editor bookkeeping keys."""
        return {k: v for k, v in self.config.items() if k not in _EDITOR_KEYS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Node:
        if "id" not in data:
            raise InvalidGraph(f"Node without id: {dict(data)!r}")
        node_id = str(data["id"])

        editor = data.get("data")
        if isinstance(editor, Mapping):
            config = dict(editor.get("config") or {})
            return cls(
                id=node_id,
                name=str(editor.get("label") or node_id),
                kind=NodeKind.parse(editor.get("type")),
                action_id=config.get("actionType") or editor.get("actionType"),
                config=config,
                integration_id=editor.get("integrationId"),
            )

        return cls(
            id=node_id,
            name=str(data.get("name") or node_id),
            kind=NodeKind.parse(data.get("kind") or data.get("type")),
            action_id=data.get("action_id") or data.get("actionId"),
            config=dict(data.get("config") or {}),
            integration_id=data.get("integration_id") or data.get("integrationId"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "action_id": self.action_id,
            "config": dict(self.config),
            "integration_id": self.integration_id,
        }


@dataclass(frozen=True)
class Edge:
    """Directed link `source -> target` between node ids.

    `branch` is "true" or "false" for edges leaving a condition node. The
    editor stores it as the React Flow `sourceHandle`.
    """

    source: str
    target: str
    branch: str | None = None
    id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Edge:
        try:
            source, target = str(data["source"]), str(data["target"])
        except KeyError as e:
            raise InvalidGraph(f"Edge missing {e.args[0]!r}: {dict(data)!r}") from None
        branch = next(
            (data[key] for key in ("branch", "sourceHandle", "label") if data.get(key) is not None),
            None,
        )
        if isinstance(branch, bool):
            branch = TRUE_BRANCH if branch else FALSE_BRANCH
        return cls(
            source=source,
            target=target,
            branch=str(branch).strip().lower() or None if branch is not None else None,
            id=data.get("id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "source": self.source, "target": self.target, "branch": self.branch}


@dataclass(frozen=True, eq=False)
class Workflow:
    name: str
    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable; store tuples so the document stays read-only.
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Workflow:
        return cls(
            name=str(data.get("name") or "workflow"),
            nodes=[n if isinstance(n, Node) else Node.from_dict(n) for n in data.get("nodes", ())],
            edges=[e if isinstance(e, Edge) else Edge.from_dict(e) for e in data.get("edges", ())],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }

    def node(self, node_id: str) -> Node | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

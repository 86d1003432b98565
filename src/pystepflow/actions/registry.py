"""
Action registry: action id -> ActionDescriptor.

The registry is built once from a fixed set of descriptors and is read-only
afterwards. Feature toggles come from the EngineConfig passed to
`ActionRegistry.default`, so two registries built with different configs
can coexist in one process.

Example:
    ```python
    registry = ActionRegistry.default(EngineConfig(enable_ai_actions=False))
    registry.resolve("resend/send-email")       # SendEmailAction
    registry.resolve("Send Email")              # UnknownActionId, labels are
                                                # mapped by resolve_node only
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from types import MappingProxyType

import httpx

from pystepflow.actions.base import ActionDescriptor
from pystepflow.actions.builtin import AI_ACTIONS, CORE_ACTIONS
from pystepflow.actions.legacy import resolve_legacy_id
from pystepflow.core.config import EngineConfig
from pystepflow.core.errors import UnknownActionId
from pystepflow.models.graph import Node, NodeKind

logger = logging.getLogger(__name__)

# Action used when a trigger or condition node names none.
DEFAULT_ACTION_IDS = {
    NodeKind.TRIGGER: "system/trigger",
    NodeKind.CONDITION: "system/condition",
}


class ActionRegistry:
    def __init__(self, actions: Iterable[ActionDescriptor]):
        mapping: dict[str, ActionDescriptor] = {}
        for action in actions:
            if action.action_id in mapping:
                raise ValueError(f"Duplicate action id: {action.action_id}")
            mapping[action.action_id] = action
        self._actions = MappingProxyType(mapping)

    @classmethod
    def default(
        cls,
        config: EngineConfig = EngineConfig.DEFAULT,
        transport: httpx.AsyncBaseTransport | None = None,
        extra: Iterable[ActionDescriptor] = (),
    ) -> ActionRegistry:
        """Built-in actions, plus `extra` descriptors.

        Args:
            config: Timeouts, endpoints and the AI toggle
            transport: httpx transport shared by the HTTP actions (tests)
            extra: Additional descriptors, e.g. project specific actions
        """
        classes = CORE_ACTIONS + (AI_ACTIONS if config.enable_ai_actions else ())
        actions = [action_class(config, transport) for action_class in classes]
        registry = cls([*actions, *extra])
        logger.debug(f"Registry built with {len(registry)} actions")
        return registry

    def resolve(self, action_id: str) -> ActionDescriptor:
        try:
            return self._actions[action_id]
        except KeyError:
            raise UnknownActionId(action_id) from None

    def resolve_node(self, node: Node) -> ActionDescriptor:
        """Descriptor for a node: default ids first, then legacy labels.

        Raises:
            UnknownActionId: The id (or label) maps to no registered action
        """
        action_id = node.action_id or DEFAULT_ACTION_IDS.get(node.kind)
        resolved = resolve_legacy_id(action_id)
        if resolved is None or resolved not in self._actions:
            raise UnknownActionId(action_id, node.name)
        if resolved != action_id:
            logger.debug(f"Node {node.name!r}: legacy action {action_id!r} -> {resolved!r}")
        return self._actions[resolved]

    def credential_keys(self) -> tuple[str, ...]:
        """Every secret name declared by a registered action."""
        keys: list[str] = []
        for action in self._actions.values():
            keys.extend(key for key in action.credential_keys if key not in keys)
        return tuple(keys)

    def ids(self) -> tuple[str, ...]:
        return tuple(self._actions)

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._actions

    def __iter__(self) -> Iterator[ActionDescriptor]:
        return iter(self._actions.values())

    def __len__(self) -> int:
        return len(self._actions)

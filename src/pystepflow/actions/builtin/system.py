"""Trigger and condition actions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.models.graph import NodeKind
from pystepflow.template.expressions import evaluate_condition


class TriggerAction(ActionDescriptor):
    """Passes the run's trigger input through, marked as triggered."""

    action_id = "system/trigger"
    label = "Trigger"
    description = "Start of the workflow; outputs the trigger input"
    kind = NodeKind.TRIGGER
    input_shape = {"outputs": "list[string]"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return {**inputs, "triggered": True}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                return {**inputs, "triggered": True}
            """,
            function_name,
        )


class ConditionAction(ActionDescriptor):
    """Evaluates `condition` after interpolation; the result picks the branch."""

    action_id = "system/condition"
    label = "Condition"
    description = "Boolean expression; routes to the true or false branch"
    kind = NodeKind.CONDITION
    input_shape = {"condition": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        condition = inputs.get("condition")
        return {"condition": condition, "result": evaluate_condition(condition)}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                condition = inputs.get("condition")
                return {"condition": condition, "result": evaluate_condition(condition)}
            """,
            function_name,
        )

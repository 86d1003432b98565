"""
Export a workflow as one standalone Python module.

The exported module has no dependencies beyond the standard library. It
contains, in order:

1. A header docstring
2. The embedded sources of the error classes, the interpolation engine,
   the routing rules, the HTTP payload helpers and the standalone runtime
   (their package imports removed)
3. One step function per node, produced by the node's action
4. The graph tables, nodes in rank order
5. The run function, calling each node in rank order when it is runnable
6. A `__main__` block reading trigger input JSON from stdin

Because the interpolation and routing code is the same code the executor
runs, an exported program produces the same outputs and node statuses as
direct execution with the same trigger input and action behavior.

Example:
    ```python
    exported = generate_workflow_code("Notify", nodes, edges)
    Path("notify.py").write_text(exported.code)
    ```
"""

from __future__ import annotations

import ast
import inspect
import keyword
import logging
import pprint
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any

from pystepflow.actions import payloads
from pystepflow.actions.base import ActionDescriptor
from pystepflow.actions.registry import ActionRegistry
from pystepflow.codegen import runtime
from pystepflow.core import errors, routing
from pystepflow.executor.scheduler import GraphPlan, validate
from pystepflow.models.graph import Edge, Node, Workflow
from pystepflow.template import expressions

logger = logging.getLogger(__name__)

__all__ = ["ExportedWorkflow", "generate_workflow_code", "step_function_names"]

EMBEDDED_MODULES: tuple[ModuleType, ...] = (errors, expressions, routing, payloads, runtime)

HEADER = '''"""
Generated workflow: {name}

This file was generated from a workflow definition. Regenerate it from the
workflow instead of editing it by hand.

Usage:
    echo '{{"key": "value"}}' | python {module}.py

Secrets are read from environment variables.
"""

from __future__ import annotations
'''

MAIN_BLOCK = """
if __name__ == "__main__":
    import sys

    payload = sys.stdin.read().strip()
    result = {function}(json.loads(payload) if payload else {{}})
    print(json.dumps(result, indent=2, default=str))
    sys.exit(0 if result["status"] == COMPLETED else 1)
"""

STUB = '''def {function}(inputs, secrets):
    raise NotImplementedError({message!r})
'''


@dataclass(frozen=True)
class ExportedWorkflow:
    """Generated module source.

    Attributes:
        code: Python source of the whole module
        name: Workflow display name
        function_name: Name of the run function in `code`
        step_functions: Node name -> generated step function name
    """

    code: str
    name: str
    function_name: str
    step_functions: dict[str, str] = field(default_factory=dict)


def generate_workflow_code(
    name: str,
    nodes: Iterable[Node | Mapping[str, Any]],
    edges: Iterable[Edge | Mapping[str, Any]],
    registry: ActionRegistry | None = None,
    function_name: str = "run_workflow",
) -> ExportedWorkflow:
    """Validate a workflow and emit it as a standalone module.

    Raises:
        ValidationError: Same checks as execution
        ValueError: function_name is not a usable identifier
    """
    if not function_name.isidentifier() or keyword.iskeyword(function_name):
        raise ValueError(f"Invalid function name: {function_name!r}")

    workflow = Workflow(
        name=name,
        nodes=[n if isinstance(n, Node) else Node.from_dict(n) for n in nodes],
        edges=[e if isinstance(e, Edge) else Edge.from_dict(e) for e in edges],
    )
    plan = validate(workflow, registry if registry is not None else ActionRegistry.default())
    step_names = step_function_names(node.name for node in plan.order)

    title = name.replace('"""', "'''")
    sections = [HEADER.format(name=title, module=_identifier(name) or "workflow")]
    sections.extend(embedded_source(module) for module in EMBEDDED_MODULES)
    sections.append(_section("Steps"))
    for node in plan.order:
        sections.append(_step_source(plan.actions[node.id], node, step_names[node.name]))
    sections.append(_tables(plan))
    sections.append(_run_function(plan, step_names, function_name))
    sections.append(MAIN_BLOCK.format(function=function_name))

    code = "\n\n\n".join(section.strip("\n") for section in sections) + "\n"
    logger.info(f"Generated {len(code.splitlines())} lines for workflow {name!r}")
    return ExportedWorkflow(code=code, name=name, function_name=function_name, step_functions=step_names)


def step_function_names(names: Iterable[str]) -> dict[str, str]:
    """Node name -> unique `<name>_step` identifier.

    "Send Email" -> "send_email_step"; a second "Send-Email" -> "send_email_step_2".
    """
    assigned: dict[str, str] = {}
    taken: set[str] = set()
    for name in names:
        base = f"{_identifier(name) or 'node'}_step"
        candidate, counter = base, 2
        while candidate in taken:
            candidate = f"{base}_{counter}"
            counter += 1
        taken.add(candidate)
        assigned[name] = candidate
    return assigned


def embedded_source(module: ModuleType) -> str:
    """Module source minus its docstring, `__future__` and package imports."""
    source = inspect.getsource(module)
    tree = ast.parse(source)
    dropped: set[int] = set()
    for index, statement in enumerate(tree.body):
        if index == 0 and isinstance(statement, ast.Expr) and isinstance(statement.value, ast.Constant):
            dropped.update(range(statement.lineno, statement.end_lineno + 1))
        elif isinstance(statement, ast.ImportFrom) and _is_internal(statement.module):
            dropped.update(range(statement.lineno, statement.end_lineno + 1))

    lines = [line for number, line in enumerate(source.splitlines(), 1) if number not in dropped]
    body = re.sub(r"\n{3,}", "\n\n\n", "\n".join(lines)).strip("\n")
    return f"{_section(module.__name__)}\n\n{body}\n"


def _is_internal(module: str | None) -> bool:
    return module is not None and (module == "__future__" or module.split(".")[0] == "pystepflow")


def _identifier(name: str) -> str:
    text = re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()
    if text and text[0].isdigit():
        text = f"n_{text}"
    return text


def _section(title: str) -> str:
    return f"# {'-' * 75}\n# {title}\n# {'-' * 75}"


def _step_source(action: ActionDescriptor, node: Node, function: str) -> str:
    source = action.emit_source(node.action_config, function)
    if source is None:
        logger.warning(f"Action {action.action_id} of node {node.name!r} cannot be exported")
        return STUB.format(
            function=function, message=f"Action {action.action_id} cannot be exported"
        )
    return source


def _tables(plan: GraphPlan) -> str:
    names = {node.id: node.name for node in plan.order}
    nodes = [(node.name, node.kind.value) for node in plan.order]
    edges = [(names[e.source], names[e.target], e.branch) for e in plan.edges]
    configs = {node.name: node.action_config for node in plan.order}
    return "\n\n".join(
        [
            _section("Graph"),
            f"NODES = {pprint.pformat(nodes, sort_dicts=False)}",
            f"EDGES = {pprint.pformat(edges, sort_dicts=False)}",
            f"CONFIGS = {pprint.pformat(configs, sort_dicts=False)}",
            f"REQUIRED = {list(plan.required)!r}",
        ]
    )


def _run_function(plan: GraphPlan, step_names: Mapping[str, str], function_name: str) -> str:
    lines = [
        _section("Run"),
        "",
        f"def {function_name}(trigger_input=None):",
        f'    """Run {plan.name!r} and return {{"status", "outputs", "nodes", "sequence"}}."""',
        "    run = WorkflowRun(NODES, EDGES, trigger_input, REQUIRED)",
    ]
    for node in plan.order:
        action = plan.actions[node.id]
        arguments = [repr(node.name), step_names[node.name], f"CONFIGS[{node.name!r}]"]
        if action.credential_keys:
            arguments.append(f"secret_keys={action.credential_keys!r}")
        if action.required_credentials:
            arguments.append(f"required_secrets={action.required_credentials!r}")
        arguments.append(f"label={action.label!r}")
        lines.append(f"    if run.runnable({node.name!r}):")
        lines.append(f"        run.call({', '.join(arguments)})")
    lines.append("    return run.result()")
    if function_name != "run_workflow":
        lines.extend(["", "", f"run_workflow = {function_name}"])
    return "\n".join(lines)

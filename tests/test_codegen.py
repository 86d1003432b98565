"""
Exported workflow programs: the generated module compiles, runs without
the package, and agrees with direct execution.
"""

import ast
import sys
import types

import pytest
from conftest import action, chain, condition, edge, scrape_guard_workflow, trigger

from pystepflow.actions import ActionRegistry
from pystepflow.codegen import generate_workflow_code, step_function_names
from pystepflow.core import CycleDetected, UnknownActionId
from pystepflow.models import Workflow


def export(workflow: Workflow, registry, **kwargs):
    return generate_workflow_code(workflow.name, workflow.nodes, workflow.edges, registry, **kwargs)


def load(code: str) -> dict:
    """Execute generated code as a fresh module namespace."""
    module = types.ModuleType("exported_workflow")
    sys.modules[module.__name__] = module
    exec(compile(code, "exported_workflow.py", "exec"), module.__dict__)
    return module.__dict__


def node_statuses(outcome) -> dict[str, str]:
    return {name: report.status.value for name, report in outcome.nodes.items()}


# ==============================================================================
# Structure
# ==============================================================================


def test_generated_code_is_standalone(registry):
    exported = export(scrape_guard_workflow(), registry)
    tree = ast.parse(exported.code)

    imported = set()
    for statement in ast.walk(tree):
        if isinstance(statement, ast.Import):
            imported.update(alias.name.split(".")[0] for alias in statement.names)
        elif isinstance(statement, ast.ImportFrom):
            imported.add((statement.module or "").split(".")[0])

    assert "pystepflow" not in imported
    assert "httpx" not in imported
    assert exported.code.count("from __future__ import annotations") == 1
    assert ast.get_docstring(tree).startswith("Generated workflow: scrape and notify")


def test_step_functions_are_named_after_nodes(registry):
    exported = export(scrape_guard_workflow(), registry)

    assert exported.step_functions == {
        "Trigger": "trigger_step",
        "Scrape": "scrape_step",
        "Check": "check_step",
        "Notify": "notify_step",
        "LogError": "logerror_step",
    }
    namespace = load(exported.code)
    assert all(callable(namespace[fn]) for fn in exported.step_functions.values())


def test_step_function_names_are_sanitized_and_unique():
    names = step_function_names(["Send Email", "Send-Email", "send email!", "2nd Step", "!!!"])

    assert names == {
        "Send Email": "send_email_step",
        "Send-Email": "send_email_step_2",
        "send email!": "send_email_step_3",
        "2nd Step": "n_2nd_step_step",
        "!!!": "node_step",
    }


def test_custom_function_name_keeps_run_workflow_alias(registry):
    exported = export(chain(trigger()), registry, function_name="notify_team")
    namespace = load(exported.code)

    assert exported.function_name == "notify_team"
    assert namespace["run_workflow"] is namespace["notify_team"]


@pytest.mark.parametrize("function_name", ["", "2fast", "run-workflow", "class"])
def test_invalid_function_name(registry, function_name):
    with pytest.raises(ValueError, match="Invalid function name"):
        export(chain(trigger()), registry, function_name=function_name)


def test_export_runs_the_same_validation(registry):
    looped = Workflow(
        "loop",
        [trigger(), action("a", "A", "test/echo"), action("b", "B", "test/echo")],
        [edge("trigger", "a"), edge("a", "b"), edge("b", "a")],
    )
    with pytest.raises(CycleDetected):
        export(looped, registry)

    with pytest.raises(UnknownActionId):
        export(chain(trigger(), action("a", "A", "nope/missing")), registry)


def test_accepts_editor_documents(registry):
    exported = generate_workflow_code(
        "doc",
        [
            {"id": "t", "data": {"label": "Start", "type": "trigger"}},
            {"id": "e", "data": {"label": "Echo", "type": "action", "config": {"actionType": "test/echo", "v": "{{Start.x}}"}}},
        ],
        [{"id": "e1", "source": "t", "target": "e"}],
        registry,
    )

    result = load(exported.code)["run_workflow"]({"x": 2})

    assert result["outputs"]["Echo"] == {"v": "2"}


def test_builtin_actions_all_export(registry):
    workflow = chain(
        trigger(),
        action("s", "Scrape", "firecrawl/scrape", url="{{Trigger.url}}"),
        action("f", "Search", "firecrawl/search", query="x"),
        action("m", "Mail", "resend/send-email", emailTo="a@b.c"),
        action("k", "Slack", "slack/send-message", slackChannel="#c"),
        action("c", "Ticket", "linear/create-ticket", ticketTitle="t"),
        action("i", "Issues", "linear/find-issues"),
        action("h", "Http", "native/http-request", endpoint="https://example.com"),
        action("v", "Chat", "v0/create-chat", message="hi"),
        action("w", "Reply", "v0/send-message", chatId="{{Chat.chatId}}", message="more"),
    )

    exported = export(workflow, registry)

    assert "NotImplementedError" not in exported.code.split("# Steps")[1]
    load(exported.code)


def test_ai_actions_export():
    workflow = chain(
        trigger(),
        action("t", "Write", "Generate Text", aiPrompt="hi"),
        action("i", "Draw", "Generate Image", imagePrompt="{{Write.text}}"),
    )

    exported = export(workflow, ActionRegistry.default())

    steps = exported.code.split("# Steps")[1]
    assert "NotImplementedError" not in steps
    assert "/images/generations" in steps
    load(exported.code)


# ==============================================================================
# Agreement with direct execution
# ==============================================================================


@pytest.mark.asyncio
async def test_exported_pipeline_matches_execution(executor, registry):
    workflow = chain(
        trigger(),
        action("a", "Shout", "test/upper", text="hello {{Trigger.name}}"),
        action("b", "Repeat", "test/echo", message="{{Shout.text}}!", items="{{Trigger.tags}}"),
    )
    trigger_input = {"name": "ada", "tags": ["x", "y"]}

    outcome = await executor.run(workflow, trigger_input)
    result = load(export(workflow, registry).code)["run_workflow"](trigger_input)

    assert result["status"] == outcome.status.value == "COMPLETED"
    assert result["outputs"] == outcome.namespace
    assert result["nodes"] == {
        name: {"status": status, "error": outcome.nodes[name].error}
        for name, status in node_statuses(outcome).items()
    }
    assert result["sequence"] == outcome.executed


@pytest.mark.asyncio
@pytest.mark.parametrize("scrape_action", ["test/fail", "test/echo"])
async def test_exported_guard_matches_execution(executor, registry, scrape_action):
    workflow = scrape_guard_workflow(scrape_action)
    trigger_input = {"url": "https://example.com"}

    outcome = await executor.run(workflow, trigger_input)
    result = load(export(workflow, registry).code)["run_workflow"](trigger_input)

    assert result["status"] == outcome.status.value
    assert result["outputs"] == outcome.namespace
    assert {name: node["status"] for name, node in result["nodes"].items()} == node_statuses(outcome)


@pytest.mark.asyncio
async def test_exported_failure_messages_match_execution(executor, registry):
    workflow = Workflow(
        "failures",
        [
            trigger(),
            action("a", "Broken", "test/fail", message="upstream down"),
            action("c", "Crash", "test/crash"),
            action("b", "After", "test/echo"),
        ],
        [edge("trigger", "a"), edge("trigger", "c"), edge("a", "b")],
    )

    outcome = await executor.run(workflow)
    result = load(export(workflow, registry).code)["run_workflow"]()

    assert result["status"] == "FAILED"
    assert result["nodes"]["Broken"]["error"] == outcome.nodes["Broken"].error == "upstream down"
    assert result["nodes"]["After"]["status"] == "unreachable"
    # CrashAction has no exported form, so its stub raises instead
    assert result["nodes"]["Crash"]["error"] == "Crash failed: Action test/crash cannot be exported"


@pytest.mark.parametrize("amount, taken", [(5, "Reject"), (500, "Approve")])
def test_exported_condition_takes_one_branch(registry, amount, taken):
    workflow = Workflow(
        "branch",
        [
            trigger(),
            condition("c", "Big", "{{Trigger.amount}} > 100"),
            action("y", "Approve", "test/echo", amount="{{Trigger.amount}}"),
            action("n", "Reject", "test/echo", amount="{{Trigger.amount}}"),
        ],
        [edge("trigger", "c"), edge("c", "y", "true"), edge("c", "n", "false")],
    )

    result = load(export(workflow, registry).code)["run_workflow"]({"amount": amount})

    assert set(result["outputs"]) == {"Trigger", "Big", taken}
    assert result["status"] == "COMPLETED"


def test_unresolved_reference_fails_node_in_export(registry):
    workflow = chain(trigger(), action("a", "Summarize", "test/echo", text="{{Scrape.markdown}}"))

    result = load(export(workflow, registry).code)["run_workflow"]()

    assert result["nodes"]["Summarize"]["status"] == "failed"
    assert "Scrape" in result["nodes"]["Summarize"]["error"]


# ==============================================================================
# Secrets
# ==============================================================================


def test_exported_secrets_come_from_environment(registry, monkeypatch):
    workflow = chain(trigger(), action("s", "Secret", "test/secret"))
    run_workflow = load(export(workflow, registry).code)["run_workflow"]

    monkeypatch.setenv("API_KEY", "from-env")
    assert run_workflow()["outputs"]["Secret"] == {"key_length": len("from-env")}

    monkeypatch.delenv("API_KEY")
    result = run_workflow()
    assert result["nodes"]["Secret"]["status"] == "failed"
    assert "API_KEY" in result["nodes"]["Secret"]["error"]

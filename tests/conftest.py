"""
Pytest configuration and fixtures for pystepflow tests.

Provides fake actions (each exportable unless stated otherwise), workflow
builders, a registry and executor wired to in-memory stores, and hypothesis
strategies for random DAGs.
"""

import shutil
import tempfile
from collections.abc import AsyncGenerator, Mapping
from pathlib import Path
from typing import Any

import pytest
from hypothesis import strategies as st

from pystepflow.actions import ActionDescriptor, ActionRegistry, function_source
from pystepflow.core import ActionInvocationError, EngineConfig
from pystepflow.credentials import CredentialResolver, InMemoryCredentialStore
from pystepflow.executor import WorkflowExecutor
from pystepflow.models import Edge, Node, NodeKind, Workflow
from pystepflow.storage import InMemoryCheckpointLog
from pystepflow.storage.sqlite import SqliteCheckpointLog

TEST_CONFIG = EngineConfig(enable_ai_actions=False, default_credentials_from_env=False)


# Fake actions


class CountingAction(ActionDescriptor):
    """Records every input it is invoked with."""

    def __init__(self, config: EngineConfig = TEST_CONFIG):
        super().__init__(config)
        self.calls: list[dict[str, Any]] = []

    async def invoke(self, inputs, credentials):
        self.calls.append(dict(inputs))
        return await super().invoke(inputs, credentials)


class EchoAction(CountingAction):
    action_id = "test/echo"
    label = "Echo"

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return dict(inputs)

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                return dict(inputs)
            """,
            function_name,
        )


class UpperAction(CountingAction):
    action_id = "test/upper"
    label = "Upper"

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return {"text": str(inputs.get("text", "")).upper()}

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                return {"text": str(inputs.get("text", "")).upper()}
            """,
            function_name,
        )


class FailAction(CountingAction):
    action_id = "test/fail"
    label = "Fail"

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        raise ActionInvocationError(inputs.get("message") or "boom")

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                raise ActionInvocationError(inputs.get("message") or "boom")
            """,
            function_name,
        )


class CrashAction(CountingAction):
    """Raises a non-workflow exception."""

    action_id = "test/crash"
    label = "Crash"

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        raise RuntimeError("disk on fire")


class SecretAction(CountingAction):
    action_id = "test/secret"
    label = "Secret"
    credential_keys = ("API_KEY",)
    required_credentials = ("API_KEY",)

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return {"key_length": len(credentials["API_KEY"])}

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                return {"key_length": len(secrets["API_KEY"])}
            """,
            function_name,
        )


class OpaqueAction(CountingAction):
    """Has no exported form."""

    action_id = "test/opaque"
    label = "Opaque"

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return {"ok": True}


FAKE_ACTIONS = (EchoAction, UpperAction, FailAction, CrashAction, SecretAction, OpaqueAction)


# Workflow builders


def trigger(node_id: str = "trigger", name: str = "Trigger", **config: Any) -> Node:
    return Node(id=node_id, name=name, kind=NodeKind.TRIGGER, config=config)


def action(node_id: str, name: str, action_id: str, integration: str | None = None, **config) -> Node:
    return Node(id=node_id, name=name, action_id=action_id, config=config, integration_id=integration)


def condition(node_id: str, name: str, expression: str) -> Node:
    return Node(id=node_id, name=name, kind=NodeKind.CONDITION, config={"condition": expression})


def edge(source: str, target: str, branch: str | None = None) -> Edge:
    return Edge(source=source, target=target, branch=branch)


def chain(*nodes: Node, name: str = "test") -> Workflow:
    """Workflow linking the nodes one after another."""
    edges = [edge(a.id, b.id) for a, b in zip(nodes, nodes[1:])]
    return Workflow(name=name, nodes=nodes, edges=edges)


def scrape_guard_workflow(scrape_action: str = "test/fail") -> Workflow:
    """Trigger -> Scrape -> Check; true -> Notify, false -> LogError."""
    return Workflow(
        name="scrape and notify",
        nodes=[
            trigger(),
            action("scrape", "Scrape", scrape_action, url="{{Trigger.url}}"),
            condition("check", "Check", "{{Scrape.success}} == true"),
            action("notify", "Notify", "test/echo", text="Scraped {{Scrape.url}}"),
            action("log", "LogError", "test/echo", text="Could not scrape {{Trigger.url}}"),
        ],
        edges=[
            edge("trigger", "scrape"),
            edge("scrape", "check"),
            edge("check", "notify", "true"),
            edge("check", "log", "false"),
        ],
    )


# Fixtures


@pytest.fixture
def fake_actions() -> dict[str, CountingAction]:
    return {cls.action_id: cls() for cls in FAKE_ACTIONS}


@pytest.fixture
def registry(fake_actions) -> ActionRegistry:
    """Built-in actions (AI disabled) plus the fakes."""
    return ActionRegistry.default(TEST_CONFIG, extra=fake_actions.values())


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore({"integration-1": {"API_KEY": "secret-value"}})


@pytest.fixture
def default_credentials() -> InMemoryCredentialStore:
    return InMemoryCredentialStore({None: {"API_KEY": "default-key"}})


@pytest.fixture
def credentials(credential_store, default_credentials) -> CredentialResolver:
    return CredentialResolver(store=credential_store, defaults=default_credentials)


@pytest.fixture
async def checkpoint_log() -> AsyncGenerator[InMemoryCheckpointLog, None]:
    log = InMemoryCheckpointLog()
    yield log
    await log.reset()


@pytest.fixture
def executor(registry, credentials, checkpoint_log) -> WorkflowExecutor:
    return WorkflowExecutor(registry, credentials, checkpoint_log, TEST_CONFIG)


@pytest.fixture
def temp_db_path():
    """Temporary database file path with automatic cleanup."""
    tmpdir = Path(tempfile.mkdtemp())
    yield tmpdir / "checkpoints.db"
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
async def sqlite_log(temp_db_path) -> AsyncGenerator[SqliteCheckpointLog, None]:
    log = SqliteCheckpointLog(str(temp_db_path))
    await log.connect()
    yield log
    await log.close()


# Hypothesis strategies


@st.composite
def dag_strategy(draw, max_actions: int = 8):
    """Random DAG of echo/fail nodes behind one trigger.

    Every action node has at least one parent with a lower index, so the
    graph is acyclic and every node is connected to the trigger. Document
    order is shuffled so ranking cannot rely on it.

    Returns:
        (workflow, failing node names)
    """
    count = draw(st.integers(min_value=1, max_value=max_actions))
    nodes = [trigger("n0", "Trigger")]
    failing: set[str] = set()
    edges: list[Edge] = []
    for index in range(1, count + 1):
        name = f"Step{index}"
        fails = draw(st.booleans())
        if fails:
            failing.add(name)
        nodes.append(action(f"n{index}", name, "test/fail" if fails else "test/echo", value=name))
        parents = draw(
            st.lists(st.integers(min_value=0, max_value=index - 1), min_size=1, max_size=3, unique=True)
        )
        edges.extend(edge(f"n{parent}", f"n{index}") for parent in parents)
    shuffled = draw(st.permutations(nodes))
    return Workflow(name="random", nodes=shuffled, edges=edges), failing

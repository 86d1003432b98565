"""
Credential resolution: per-run caching, required keys and stores.
"""

import pytest
from conftest import TEST_CONFIG, action, chain, edge, trigger

from pystepflow.core import ErrorKind, MissingCredential
from pystepflow.core.context import ExecutionContext
from pystepflow.credentials import (
    CredentialResolver,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
)
from pystepflow.executor import WorkflowExecutor
from pystepflow.models import NodeStatus, Workflow


def _secret_chain(count: int, integration: str | None = "integration-1"):
    nodes = [trigger()]
    nodes.extend(
        action(f"s{i}", f"Secret{i}", "test/secret", integration=integration) for i in range(count)
    )
    return chain(*nodes)


@pytest.mark.asyncio
async def test_reference_fetched_once_per_run(executor, credential_store, fake_actions):
    outcome = await executor.run(_secret_chain(3))

    assert outcome.is_completed
    assert credential_store.lookups == {"integration-1": 1}
    assert outcome.output("Secret2") == {"key_length": len("secret-value")}


@pytest.mark.asyncio
async def test_cache_does_not_outlive_the_run(executor, credential_store):
    await executor.run(_secret_chain(2))
    await credential_store.put("integration-1", {"API_KEY": "rotated-key-value"})
    outcome = await executor.run(_secret_chain(2))

    assert credential_store.lookups == {"integration-1": 2}
    assert outcome.output("Secret0") == {"key_length": len("rotated-key-value")}


@pytest.mark.asyncio
async def test_nodes_without_reference_use_defaults(executor, default_credentials):
    outcome = await executor.run(_secret_chain(2, integration=None))

    assert outcome.output("Secret1") == {"key_length": len("default-key")}
    assert default_credentials.lookups == {None: 1}


@pytest.mark.asyncio
async def test_unknown_reference_is_missing_credential(executor):
    workflow = chain(trigger(), action("s", "Secret", "test/secret", integration="revoked"))

    outcome = await executor.run(workflow)

    report = outcome.nodes["Secret"]
    assert report.status is NodeStatus.FAILED
    assert report.kind is ErrorKind.MISSING_CREDENTIAL
    assert "revoked" in report.error


@pytest.mark.asyncio
async def test_missing_reference_looked_up_once_per_run(executor, credential_store):
    workflow = Workflow(
        "fan out",
        [
            trigger(),
            action("a", "A", "test/secret", integration="gone"),
            action("b", "B", "test/secret", integration="gone"),
        ],
        [edge("trigger", "a"), edge("trigger", "b")],
    )

    outcome = await executor.run(workflow)

    assert credential_store.lookups["gone"] == 1
    assert outcome.nodes["A"].kind is ErrorKind.MISSING_CREDENTIAL
    assert outcome.nodes["B"].kind is ErrorKind.MISSING_CREDENTIAL


@pytest.mark.asyncio
async def test_reference_added_mid_run_stays_missing(credential_store):
    resolver = CredentialResolver(credential_store)
    ctx = ExecutionContext("run")

    with pytest.raises(MissingCredential):
        await resolver.fetch("late", ctx)
    await credential_store.put("late", {"API_KEY": "k"})

    with pytest.raises(MissingCredential):
        await resolver.fetch("late", ctx)
    assert await resolver.fetch("late", ExecutionContext("next-run")) == {"API_KEY": "k"}
    assert credential_store.lookups["late"] == 2


@pytest.mark.asyncio
async def test_required_key_absent_is_missing_credential(registry, checkpoint_log):
    store = InMemoryCredentialStore({"integration-1": {"OTHER": "x"}})
    executor = WorkflowExecutor(registry, CredentialResolver(store), checkpoint_log, TEST_CONFIG)

    outcome = await executor.run(_secret_chain(1))

    assert outcome.nodes["Secret0"].kind is ErrorKind.MISSING_CREDENTIAL
    assert "API_KEY" in outcome.nodes["Secret0"].error


@pytest.mark.asyncio
async def test_actions_without_credentials_never_touch_the_store(executor, credential_store, default_credentials):
    await executor.run(chain(trigger(), action("a", "Echo", "test/echo")))

    assert credential_store.lookups == {}
    assert default_credentials.lookups == {}


@pytest.mark.asyncio
async def test_secrets_for_passes_only_declared_default_keys(fake_actions):
    defaults = InMemoryCredentialStore({None: {"API_KEY": "k", "UNRELATED": "u"}})
    resolver = CredentialResolver(defaults=defaults)

    secrets = await resolver.secrets_for(fake_actions["test/secret"], None, ExecutionContext("run"))

    assert secrets == {"API_KEY": "k"}


@pytest.mark.asyncio
async def test_secrets_for_passes_whole_integration_mapping(fake_actions):
    store = InMemoryCredentialStore({"ref": {"API_KEY": "k", "EXTRA": "e"}})
    resolver = CredentialResolver(store)

    secrets = await resolver.secrets_for(fake_actions["test/secret"], "ref", ExecutionContext("run"))

    assert secrets == {"API_KEY": "k", "EXTRA": "e"}


@pytest.mark.asyncio
async def test_fetch_without_store_is_missing_credential():
    resolver = CredentialResolver()

    with pytest.raises(MissingCredential):
        await resolver.fetch("anything", ExecutionContext("run"))


@pytest.mark.asyncio
async def test_environment_store_reads_declared_keys():
    store = EnvironmentCredentialStore(
        ["RESEND_API_KEY", "SLACK_API_KEY"], environ={"RESEND_API_KEY": "re_123", "PATH": "/bin"}
    )

    assert await store.get(None) == {"RESEND_API_KEY": "re_123"}
    assert await store.get("any-reference") == {"RESEND_API_KEY": "re_123"}

"""
pystepflow: run visual workflow graphs, or export them as Python programs.

A workflow is a DAG of nodes (one trigger, actions and conditions) whose
configs reference earlier outputs with `{{Node.path}}` tokens. The executor
validates the graph, runs nodes one at a time in rank order, skips branches
that can no longer run, checkpoints every result and isolates failures at
each node. The code generator turns the same graph into one standalone
module with identical routing and interpolation.

Design Pattern: Facade
This module re-exports the pieces most callers need.

Example:
    ```python
    import asyncio
    from pystepflow import Workflow, execute_workflow

    workflow = Workflow.from_dict({
        "name": "Scrape and notify",
        "nodes": [
            {"id": "t", "type": "trigger", "name": "Trigger"},
            {"id": "s", "type": "action", "name": "Scrape",
             "actionId": "firecrawl/scrape", "config": {"url": "{{Trigger.url}}"}},
        ],
        "edges": [{"source": "t", "target": "s"}],
    })

    outcome = asyncio.run(execute_workflow(workflow, {"url": "https://example.com"}))
    print(outcome.status, outcome.namespace.get("Scrape"))
    ```
"""

from pystepflow.actions import ActionDescriptor, ActionRegistry, resolve_legacy_id
from pystepflow.codegen import ExportedWorkflow, generate_workflow_code
from pystepflow.core import (
    ActionInvocationError,
    CycleDetected,
    EngineConfig,
    ErrorKind,
    InvalidGraph,
    MissingCredential,
    MultipleOrZeroTriggers,
    NodeError,
    NonDeterministicReplay,
    PathNotFound,
    RunCancelled,
    UnknownActionId,
    UnresolvedReference,
    ValidationError,
    WorkflowError,
)
from pystepflow.credentials import (
    CredentialResolver,
    CredentialStore,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
)
from pystepflow.executor import NodeReport, RunOutcome, WorkflowExecutor, execute_workflow
from pystepflow.models import (
    Edge,
    Failure,
    Node,
    NodeKind,
    NodeStatus,
    RunStatus,
    StepResult,
    Success,
    Workflow,
)
from pystepflow.storage import Checkpoint, CheckpointLog, StorageError

__version__ = "0.1.0"

__all__ = [
    # Graph model
    "Workflow",
    "Node",
    "Edge",
    "NodeKind",
    # Results and statuses
    "Success",
    "Failure",
    "StepResult",
    "NodeStatus",
    "RunStatus",
    "RunOutcome",
    "NodeReport",
    # Execution
    "WorkflowExecutor",
    "execute_workflow",
    "EngineConfig",
    # Actions
    "ActionDescriptor",
    "ActionRegistry",
    "resolve_legacy_id",
    # Credentials
    "CredentialStore",
    "CredentialResolver",
    "InMemoryCredentialStore",
    "EnvironmentCredentialStore",
    # Checkpoints
    "Checkpoint",
    "CheckpointLog",
    "StorageError",
    # Code generation
    "generate_workflow_code",
    "ExportedWorkflow",
    # Errors
    "ErrorKind",
    "WorkflowError",
    "ValidationError",
    "CycleDetected",
    "MultipleOrZeroTriggers",
    "UnknownActionId",
    "InvalidGraph",
    "NodeError",
    "UnresolvedReference",
    "PathNotFound",
    "MissingCredential",
    "ActionInvocationError",
    "NonDeterministicReplay",
    "RunCancelled",
]

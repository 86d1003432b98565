"""
Workflow executor: validates a workflow and runs it node by node.

Execution model:
    One run is one asyncio task. Nodes run one at a time in the order the
    Scheduler hands them out; the only suspension points are action
    invocations. Each run gets its own ExecutionContext, so concurrent runs
    on one executor share nothing but the registry and the credential store.

Run states:
    PENDING -> ORDERING (validation, ranking) -> EXECUTING -> COMPLETED | FAILED

Resuming:
    Calling `run` again with the same run_id and a durable checkpoint log
    replays every recorded node from the log and continues with the rest.
    A cancelled run keeps its checkpoints even in the default in-memory log,
    so the same executor can resume it.

Example:
    ```python
    async with WorkflowExecutor(checkpoint_log=SqliteCheckpointLog("runs.db")) as executor:
        outcome = await executor.run(workflow, {"url": "https://example.com"})
        print(outcome.status, outcome.namespace)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from uuid_extensions import uuid7

from pystepflow.actions.registry import ActionRegistry
from pystepflow.core.config import EngineConfig
from pystepflow.core.context import EXECUTION_CONTEXT, ExecutionContext
from pystepflow.core.errors import RunCancelled
from pystepflow.credentials.env import EnvironmentCredentialStore
from pystepflow.credentials.resolver import CredentialResolver
from pystepflow.executor.boundary import StepBoundary
from pystepflow.executor.outcome import NodeReport, RunOutcome
from pystepflow.executor.scheduler import GraphPlan, Scheduler, validate
from pystepflow.models.graph import Node, NodeKind, Workflow
from pystepflow.models.result import Failure, StepResult
from pystepflow.models.status import RunStatus
from pystepflow.storage.base import CheckpointLog
from pystepflow.storage.memory import InMemoryCheckpointLog
from pystepflow.template.expressions import render_config

logger = logging.getLogger(__name__)

__all__ = ["WorkflowExecutor", "execute_workflow"]


class WorkflowExecutor:
    """Runs workflows against a registry, a credential resolver and a checkpoint log.

    Args:
        registry: Actions available to nodes; defaults to the built-in set
        credentials: Credential resolver; defaults to environment variables
            for the registry's declared keys (when enabled in config)
        checkpoint_log: Where step results are recorded; defaults to an
            SqliteCheckpointLog at config.checkpoint_path when set, else a
            process-local InMemoryCheckpointLog that forgets finished runs.
            Connected on first run.
        config: Engine configuration
    """

    def __init__(
        self,
        registry: ActionRegistry | None = None,
        credentials: CredentialResolver | None = None,
        checkpoint_log: CheckpointLog | None = None,
        config: EngineConfig = EngineConfig.DEFAULT,
    ):
        self.config = config
        self.registry = registry if registry is not None else ActionRegistry.default(config)
        if credentials is None:
            defaults = (
                EnvironmentCredentialStore(self.registry.credential_keys())
                if config.default_credentials_from_env
                else None
            )
            credentials = CredentialResolver(defaults=defaults)
        self.credentials = credentials
        # A process-local log created here cannot serve a resume after the
        # executor is gone, so finished runs are purged from it.
        self._owns_memory_log = checkpoint_log is None and not config.checkpoint_path
        if checkpoint_log is None:
            if config.checkpoint_path:
                from pystepflow.storage.sqlite import SqliteCheckpointLog

                checkpoint_log = SqliteCheckpointLog(config.checkpoint_path)
            else:
                checkpoint_log = InMemoryCheckpointLog()
        self.checkpoint_log = checkpoint_log
        self.boundary = StepBoundary(self.checkpoint_log)
        self._statuses: dict[str, RunStatus] = {}
        self._active: dict[str, ExecutionContext] = {}

    async def __aenter__(self) -> WorkflowExecutor:
        await self.checkpoint_log.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.checkpoint_log.close()

    def compile(self, workflow: Workflow | Mapping[str, Any]) -> GraphPlan:
        """Validate and rank without running anything."""
        if not isinstance(workflow, Workflow):
            workflow = Workflow.from_dict(workflow)
        return validate(workflow, self.registry)

    def status(self, run_id: str) -> RunStatus | None:
        return self._statuses.get(run_id)

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; takes effect before the next dispatch.

        Returns:
            False if no run with this id is executing
        """
        ctx = self._active.get(run_id)
        if ctx is None:
            return False
        ctx.cancel()
        logger.info(f"Cancellation requested for run {run_id}")
        return True

    async def run(
        self,
        workflow: Workflow | Mapping[str, Any],
        trigger_input: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> RunOutcome:
        """Execute `workflow` to a terminal state.

        Raises:
            ValidationError: The graph can never run (before any node runs)
            NonDeterministicReplay: A resumed run rendered different input
            RunCancelled: cancel() was called; carries the partial outcome
        """
        run_id = run_id or str(uuid7())
        self._statuses[run_id] = RunStatus.PENDING

        self._statuses[run_id] = RunStatus.ORDERING
        try:
            plan = self.compile(workflow)
        except Exception:
            await self._finish(run_id, RunStatus.FAILED)
            raise

        await self.checkpoint_log.connect()
        ctx = ExecutionContext(run_id, plan.name, dict(trigger_input or {}))
        scheduler = Scheduler(plan)
        logger.info(f"Starting run {run_id} of {plan.name!r} ({len(plan.order)} nodes)")

        self._statuses[run_id] = RunStatus.EXECUTING
        self._active[run_id] = ctx
        token = EXECUTION_CONTEXT.set(ctx)
        try:
            while (node := scheduler.next_runnable()) is not None:
                if ctx.is_cancelled:
                    outcome = self._outcome(plan, scheduler, ctx, RunStatus.FAILED, cancelled=True)
                    logger.info(f"Run {run_id} cancelled before {node.name!r}")
                    raise RunCancelled(run_id, outcome)
                scheduler.begin(node)
                result = await self._dispatch(ctx, plan, node)
                scheduler.settle(node, result)
        except RunCancelled:
            self._statuses[run_id] = RunStatus.FAILED
            raise
        except BaseException:
            await self._finish(run_id, RunStatus.FAILED)
            raise
        finally:
            EXECUTION_CONTEXT.reset(token)
            self._active.pop(run_id, None)

        status = scheduler.run_status()
        outcome = self._outcome(plan, scheduler, ctx, status)
        await self._finish(run_id, status)
        if outcome.is_completed:
            logger.info(f"Run {run_id} completed")
        else:
            logger.warning(
                f"Run {run_id} failed: failed={[r.name for r in outcome.failed]} "
                f"unreachable={[r.name for r in outcome.unreachable]}"
            )
        return outcome

    async def _finish(self, run_id: str, status: RunStatus) -> None:
        """Record a terminal status and release what the run still holds."""
        self._statuses.pop(run_id, None)
        self._statuses[run_id] = status
        finished = [r for r, s in self._statuses.items() if s.is_terminal and r not in self._active]
        for stale in finished[: max(len(finished) - self.config.status_history, 0)]:
            del self._statuses[stale]
        if self._owns_memory_log:
            await self.checkpoint_log.delete_run(run_id)

    async def _dispatch(self, ctx: ExecutionContext, plan: GraphPlan, node: Node) -> StepResult:
        action = plan.actions[node.id]
        logger.debug(f"Dispatching {node.name!r} -> {action.action_id}")

        def render() -> dict[str, Any]:
            if node.kind is NodeKind.TRIGGER:
                return dict(ctx.trigger_input)
            if node.kind is NodeKind.CONDITION:
                return render_config(node.action_config, ctx.guard_view())
            return render_config(node.action_config, ctx.namespace)

        async def fetch_secrets() -> dict[str, str]:
            return await self.credentials.secrets_for(action, node.integration_ref, ctx)

        return await self.boundary.execute(ctx, node, action, render, fetch_secrets)

    @staticmethod
    def _outcome(
        plan: GraphPlan,
        scheduler: Scheduler,
        ctx: ExecutionContext,
        status: RunStatus,
        cancelled: bool = False,
    ) -> RunOutcome:
        reports: dict[str, NodeReport] = {}
        for node in plan.order:
            result = ctx.get_result(node.name)
            failure = result if isinstance(result, Failure) else None
            reports[node.name] = NodeReport(
                node_id=node.id,
                name=node.name,
                status=scheduler.statuses[node.id],
                error=failure.error if failure else None,
                kind=failure.kind if failure else None,
                sequence=ctx.sequences.get(node.name),
            )
        return RunOutcome(
            run_id=ctx.run_id,
            workflow_name=plan.name,
            status=status,
            namespace=dict(ctx.namespace),
            nodes=reports,
            cancelled=cancelled,
        )


async def execute_workflow(
    workflow: Workflow | Mapping[str, Any],
    trigger_input: Mapping[str, Any] | None = None,
    *,
    registry: ActionRegistry | None = None,
    credentials: CredentialResolver | None = None,
    checkpoint_log: CheckpointLog | None = None,
    config: EngineConfig = EngineConfig.DEFAULT,
    run_id: str | None = None,
) -> RunOutcome:
    """Run one workflow with a throwaway executor.

    Example:
        ```python
        outcome = await execute_workflow(
            {"name": "notify", "nodes": [...], "edges": [...]},
            {"email": "user@example.com"},
        )
        ```
    """
    executor = WorkflowExecutor(registry, credentials, checkpoint_log, config)
    return await executor.run(workflow, trigger_input, run_id)

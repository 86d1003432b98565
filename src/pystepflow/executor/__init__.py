"""
Workflow execution.

- scheduler: validation, ranking and dead-path elimination
- boundary: failure isolation and checkpoint replay around one node
- engine: WorkflowExecutor and execute_workflow
- outcome: RunOutcome and NodeReport
"""

from pystepflow.executor.boundary import StepBoundary, input_hash
from pystepflow.executor.engine import WorkflowExecutor, execute_workflow
from pystepflow.executor.outcome import NodeReport, RunOutcome
from pystepflow.executor.scheduler import GraphPlan, PlanSummary, Scheduler, validate

__all__ = [
    "WorkflowExecutor",
    "execute_workflow",
    "RunOutcome",
    "NodeReport",
    "StepBoundary",
    "input_hash",
    "GraphPlan",
    "PlanSummary",
    "Scheduler",
    "validate",
]

"""
Step boundary: failure isolation and checkpointing around one node.

Flow for one node:

1. The node already has a result in the run context: return it.
2. The checkpoint log has a result for (run, node): verify the rendered
   input still hashes the same, then replay it without invoking.
3. Otherwise render the input, resolve credentials and invoke the action.
   Any exception becomes a Failure; the run is never aborted by a node.
4. Record the result to the checkpoint log, then to the context. An output
   the log cannot serialize is recorded as a Failure in its place.

Recording is first-write-wins, so a node has at most one recorded result
per run. A crash between steps 3 and 4 re-invokes the action on resume:
external side effects are not at-most-once.

A replayed node whose input hash differs means the workflow or its inputs
changed between crash and resume. That raises NonDeterministicReplay and
stops the run.
"""

from __future__ import annotations

import logging
import pickle
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

import xxhash

from pystepflow.actions.base import ActionDescriptor
from pystepflow.core.context import ExecutionContext
from pystepflow.core.errors import NodeError, NonDeterministicReplay
from pystepflow.models.graph import Node
from pystepflow.models.result import Failure, StepResult, failure_from
from pystepflow.storage.base import Checkpoint, CheckpointLog, StorageError, serialize_checkpoint

logger = logging.getLogger(__name__)

Render = Callable[[], dict[str, Any]]
FetchSecrets = Callable[[], Awaitable[dict[str, str]]]


def input_hash(inputs: Any) -> int:
    """
    Hash rendered input with xxHash.

    Deterministic across processes for equal pickled input; masked to 63
    bits so it fits a signed SQLite INTEGER.
    """
    return xxhash.xxh64(pickle.dumps(inputs, protocol=4)).intdigest() & 0x7FFFFFFFFFFFFFFF


class StepBoundary:
    def __init__(self, checkpoint_log: CheckpointLog | None = None):
        self.checkpoint_log = checkpoint_log

    async def execute(
        self,
        ctx: ExecutionContext,
        node: Node,
        action: ActionDescriptor,
        render: Render,
        fetch_secrets: FetchSecrets,
    ) -> StepResult:
        existing = ctx.get_result(node.name)
        if existing is not None:
            return existing

        if self.checkpoint_log is not None:
            checkpoint = await self.checkpoint_log.get_checkpoint(ctx.run_id, node.id)
            if checkpoint is not None:
                return self._replay(ctx, node, checkpoint, render)

        digest: int | None = None
        try:
            inputs = render()
            digest = input_hash(inputs)
            secrets = await fetch_secrets()
        except Exception as e:
            result: StepResult = failure_from(e)
        else:
            try:
                result = await action.invoke(inputs, secrets)
            except Exception as e:
                result = failure_from(e, action.label)

        if isinstance(result, Failure):
            logger.warning(f"Node {node.name!r} failed ({result.kind}): {result.error}")
        return await self._record(ctx, node, result, digest)

    def _replay(
        self, ctx: ExecutionContext, node: Node, checkpoint: Checkpoint, render: Render
    ) -> StepResult:
        if checkpoint.input_hash is not None:
            try:
                current: int | None = input_hash(render())
            except NodeError:
                current = None
            if current != checkpoint.input_hash:
                logger.warning(f"Node {node.name!r} rendered different input on replay")
                raise NonDeterministicReplay(node.name, checkpoint.input_hash, current)

        logger.info(f"Replaying node {node.name!r} from checkpoint #{checkpoint.sequence}")
        ctx.record(node.name, checkpoint.result, checkpoint.sequence)
        return checkpoint.result

    async def _record(
        self, ctx: ExecutionContext, node: Node, result: StepResult, digest: int | None
    ) -> StepResult:
        sequence = ctx.next_sequence()
        if self.checkpoint_log is not None:
            checkpoint = Checkpoint(
                run_id=ctx.run_id,
                node_id=node.id,
                node_name=node.name,
                sequence=sequence,
                result=result,
                input_hash=digest,
            )
            try:
                serialize_checkpoint(checkpoint)
            except StorageError as e:
                result = Failure(f"{node.name} output is not serializable: {e.__cause__ or e}")
                logger.warning(f"Node {node.name!r} failed ({result.kind}): {result.error}")
                checkpoint = replace(checkpoint, result=result)
            stored = await self.checkpoint_log.record(checkpoint)
            result, sequence = stored.result, stored.sequence
        ctx.record(node.name, result, sequence)
        return result

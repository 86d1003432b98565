"""Runtime support embedded in exported workflow programs.

Exported programs have no dependencies, so this module sticks to the
standard library: urllib for HTTP, os.environ for secrets, and the routing
rules and interpolation functions embedded before it.

`WorkflowRun` mirrors the executor's scheduler: the generated
`run_workflow` asks `runnable(name)` for each node in rank order and, when
true, calls `call(name, step, config, ...)`.
"""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from pystepflow.core.errors import ActionInvocationError, MissingCredential, WorkflowError
from pystepflow.core.routing import (
    FAILED,
    PENDING,
    RUNNABLE,
    SUCCEEDED,
    UNREACHABLE,
    branch_of,
    decide,
    edge_state,
    guard_view,
    run_status,
)
from pystepflow.template.expressions import render_config


def http_request(
    method: str,
    url: str,
    headers: Mapping[str, str] | None = None,
    body: Any = None,
    timeout: float = 30.0,
) -> tuple[int, Any]:
    """Send a request and return (status, body); JSON bodies are decoded.

    Non-2xx responses and transport errors raise ActionInvocationError.
    """
    headers = dict(headers or {})
    data = None
    if isinstance(body, (dict, list)):
        data = json.dumps(body).encode("utf-8")
        headers.setdefault("Content-Type", "application/json")
    elif isinstance(body, str):
        data = body.encode("utf-8")
    elif isinstance(body, bytes):
        data = body

    request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.status
            content_type = response.headers.get("Content-Type", "")
            raw = response.read()
    except urllib.error.HTTPError as e:
        detail = e.read()[:500].decode("utf-8", errors="replace")
        raise ActionInvocationError(
            f"Request failed with status {e.code}: {detail}", status_code=e.code
        ) from None
    except urllib.error.URLError as e:
        raise ActionInvocationError(f"Request failed: {e.reason}") from None

    text = raw.decode("utf-8", errors="replace")
    if "application/json" in content_type:
        return status, json.loads(text) if text else None
    return status, text


def load_secrets(keys: Sequence[str], required: Sequence[str] = ()) -> dict[str, str]:
    secrets = {key: os.environ[key] for key in keys if os.environ.get(key)}
    for key in required:
        if key not in secrets:
            raise MissingCredential(None, key)
    return secrets


class WorkflowRun:
    """Node statuses, outputs and routing for one standalone run.

    Args:
        nodes: (name, kind) pairs in rank order
        edges: (source name, target name, branch) triples
        trigger_input: Payload handed to the trigger node
        required: Node names that must succeed for the run to complete
    """

    def __init__(
        self,
        nodes: Sequence[tuple[str, str]],
        edges: Sequence[tuple[str, str, str | None]],
        trigger_input: Mapping[str, Any] | None = None,
        required: Sequence[str] = (),
    ):
        self.kinds = dict(nodes)
        self.order = [name for name, _ in nodes]
        self.incoming: dict[str, list[tuple[str, str | None]]] = {name: [] for name in self.order}
        for source, target, branch in edges:
            self.incoming[target].append((source, branch))
        self.trigger_input = dict(trigger_input or {})
        self.required = list(required)
        self.statuses = {name: PENDING for name in self.order}
        self.taken: dict[str, str] = {}
        self.outputs: dict[str, Any] = {}
        self.errors: dict[str, str] = {}
        self.handled: set[str] = set()
        self.sequence: list[str] = []

    def runnable(self, name: str) -> bool:
        if self.kinds[name] == "trigger":
            return True
        is_condition = self.kinds[name] == "condition"
        states = [
            edge_state(self.statuses[source], is_condition, branch, self.taken.get(source))
            for source, branch in self.incoming[name]
        ]
        decision = decide(states)
        if decision == UNREACHABLE:
            self.statuses[name] = UNREACHABLE
        return decision == RUNNABLE

    def call(
        self,
        name: str,
        step: Callable[[dict[str, Any], dict[str, str]], Any],
        config: Mapping[str, Any],
        secret_keys: Sequence[str] = (),
        required_secrets: Sequence[str] = (),
        label: str | None = None,
    ) -> None:
        kind = self.kinds[name]
        self.sequence.append(name)
        if kind == "condition":
            for source, _ in self.incoming[name]:
                if self.statuses[source] == FAILED:
                    self.handled.add(source)
        try:
            if kind == "trigger":
                inputs = dict(self.trigger_input)
            elif kind == "condition":
                inputs = render_config(config, guard_view(self.outputs, self.errors))
            else:
                inputs = render_config(config, self.outputs)
            secrets = load_secrets(secret_keys, required_secrets)
            value = step(inputs, secrets)
        except WorkflowError as e:
            self._fail(name, str(e))
        except Exception as e:
            message = str(e) or type(e).__name__
            self._fail(name, f"{label} failed: {message}" if label else message)
        else:
            self.statuses[name] = SUCCEEDED
            self.outputs[name] = value
            if kind == "condition":
                self.taken[name] = branch_of(value)

    def _fail(self, name: str, error: str) -> None:
        self.statuses[name] = FAILED
        self.errors[name] = error

    def result(self) -> dict[str, Any]:
        return {
            "status": run_status(self.statuses, self.required, self.handled),
            "outputs": dict(self.outputs),
            "nodes": {
                name: {"status": self.statuses[name], "error": self.errors.get(name)}
                for name in self.order
            },
            "sequence": list(self.sequence),
        }

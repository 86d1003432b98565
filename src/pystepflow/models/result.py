"""
Step results: the normalized shape of every node invocation.

A node either produced a value (Success) or failed with a classified error
(Failure). Exceptions never cross the step boundary; they are converted here.

Example:
    ```python
    result = await action.invoke(inputs, secrets)
    if is_success(result):
        namespace[node.name] = result.value
    else:
        logger.warning(f"{node.name} failed: {result.error}")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from pystepflow.core.errors import ErrorKind, WorkflowError

__all__ = ["Success", "Failure", "StepResult", "is_success", "is_failure", "failure_from"]


@dataclass(frozen=True)
class Success:
    """The node produced `value`, which becomes its namespace entry."""

    value: Any = None

    def __repr__(self) -> str:
        return f"Success({self.value!r})"


@dataclass(frozen=True)
class Failure:
    """The node failed; `error` is a human readable message."""

    error: str
    kind: ErrorKind = ErrorKind.ACTION_INVOCATION_ERROR

    def __repr__(self) -> str:
        return f"Failure({self.kind}: {self.error!r})"


StepResult = Union[Success, Failure]


def is_success(result: StepResult) -> bool:
    return isinstance(result, Success)


def is_failure(result: StepResult) -> bool:
    return isinstance(result, Failure)


def failure_from(exc: BaseException, label: str | None = None) -> Failure:
    """Convert an exception into a Failure.

    Workflow errors keep their own kind and message. Anything else is an
    action invocation error, prefixed with the action label when given.
    """
    if isinstance(exc, WorkflowError):
        return Failure(str(exc), exc.kind)
    message = str(exc) or type(exc).__name__
    if label:
        message = f"{label} failed: {message}"
    return Failure(message, ErrorKind.ACTION_INVOCATION_ERROR)

"""
Action descriptors: the common interface of every step a node can run.

Each known action is one ActionDescriptor subclass (a closed set of tagged
variants). The registry maps action ids to instances; the executor only
ever calls `invoke`, and the code generator only ever calls `emit_source`.

Design: Template Method
    Subclasses implement `run(inputs, credentials)` and raise on failure.
    `invoke` wraps `run` and normalizes the outcome to a StepResult, so no
    exception ever escapes a node.

Example:
    ```python
    class Echo(ActionDescriptor):
        action_id = "test/echo"
        label = "Echo"
        input_shape = {"text": "string"}

        async def run(self, inputs, credentials):
            return {"text": inputs["text"]}
    ```
"""

from __future__ import annotations

import logging
import textwrap
from abc import ABC, abstractmethod
from collections.abc import Mapping
from string import Template as SourceTemplate
from typing import Any, ClassVar

import httpx

from pystepflow.core.config import EngineConfig
from pystepflow.core.errors import ActionInvocationError
from pystepflow.models.graph import NodeKind
from pystepflow.models.result import StepResult, Success, failure_from

logger = logging.getLogger(__name__)

__all__ = ["ActionDescriptor", "function_source"]


class ActionDescriptor(ABC):
    """Base class of all actions.

    Class attributes describe the action; instances carry the explicit
    configuration (timeouts, endpoints) and an optional httpx transport,
    which tests replace with httpx.MockTransport.
    """

    action_id: ClassVar[str]
    label: ClassVar[str]
    description: ClassVar[str] = ""
    kind: ClassVar[NodeKind] = NodeKind.ACTION
    input_shape: ClassVar[Mapping[str, str]] = {}
    """Field name -> type name. Documentation and code generation only."""

    integration: ClassVar[str | None] = None
    credential_keys: ClassVar[tuple[str, ...]] = ()
    """Secrets the action reads; resolved from process defaults when the
    node has no integration reference."""

    required_credentials: ClassVar[tuple[str, ...]] = ()
    """Subset of credential_keys that must be present, else MissingCredential."""

    def __init__(
        self,
        config: EngineConfig = EngineConfig.DEFAULT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.transport = transport

    @abstractmethod
    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        """Perform the action and return its output value; raise on failure."""

    async def invoke(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> StepResult:
        try:
            value = await self.run(inputs, credentials)
        except Exception as e:
            failure = failure_from(e, self.label)
            logger.warning(f"{self.action_id} failed: {failure.error}")
            return failure
        return Success(value)

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str | None:
        """Standalone Python source of `def function_name(inputs, secrets)`.

        Returns None when the action cannot be exported; the generator then
        emits a stub raising NotImplementedError.
        """
        return None

    # -------------------------------------------------------------------------
    # HTTP helpers shared by the integration actions
    # -------------------------------------------------------------------------

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.http_timeout, transport=self.transport, **kwargs
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request; transport errors and non-2xx become ActionInvocationError."""
        async with self.client() as client:
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                raise ActionInvocationError(f"{self.label} request failed: {e}") from e
        if not response.is_success:
            raise ActionInvocationError(
                f"{self.label} request failed with status {response.status_code}: "
                f"{response.text[:500]}",
                status_code=response.status_code,
            )
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self.request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise ActionInvocationError(f"{self.label} returned invalid JSON") from e

    @staticmethod
    def require(inputs: Mapping[str, Any], field: str, label: str | None = None) -> Any:
        value = inputs.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ActionInvocationError(f"{label or field} is required")
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(action_id={self.action_id!r})"


def function_source(template: str, function_name: str, **values: Any) -> str:
    """Fill a `$name` source template for an exported step function.

    `$function` is the generated function name; other placeholders are
    substituted with the repr of the matching keyword argument.
    """
    substitutions = {key: repr(value) for key, value in values.items()}
    substitutions["function"] = function_name
    return SourceTemplate(textwrap.dedent(template).lstrip("\n")).substitute(substitutions)

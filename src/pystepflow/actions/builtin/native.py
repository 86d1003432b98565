"""Generic HTTP request action."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.actions.payloads import prepare_http_request
from pystepflow.core.errors import ActionInvocationError


class HttpRequestAction(ActionDescriptor):
    """Calls an arbitrary endpoint.

    When the node has an integration reference, the integration's secret is
    attached as an auth header and relative endpoints are resolved against
    the integration's base URL (see payloads.HTTP_INTEGRATIONS).

    Output: `{"success": True, "data": <json or text>, "status": <code>}`.
    """

    action_id = "native/http-request"
    label = "HTTP Request"
    description = "Send an HTTP request"
    input_shape = {
        "endpoint": "string",
        "httpMethod": "string",
        "httpHeaders": "string | object",
        "httpBody": "string | object",
    }

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        method, url, headers, body = prepare_http_request(inputs, credentials)
        if not url:
            raise ActionInvocationError("HTTP request failed: URL is required")

        response = await self.request(method, url, headers=headers, content=body)
        if "application/json" in response.headers.get("content-type", ""):
            data = response.json() if response.content else None
        else:
            data = response.text
        return {"success": True, "data": data, "status": response.status_code}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                method, url, headers, body = prepare_http_request(inputs, secrets)
                if not url:
                    raise ActionInvocationError("HTTP request failed: URL is required")
                status, data = http_request(method, url, headers, body, timeout=$timeout)
                return {"success": True, "data": data, "status": status}
            """,
            function_name,
            timeout=self.config.http_timeout,
        )

"""Request shaping for HTTP-backed actions.

Header and body fields arrive from the editor as JSON strings, plain
mappings, or lists of `{"key", "value"}` rows. These helpers normalize them
the same way for the server-side actions and for exported programs, which
embed this module; it only uses the standard library.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, NamedTuple


class HttpAuth(NamedTuple):
    """How an integration's secret is attached to a plain HTTP request."""

    credential_key: str
    base_url: str | None = None
    header: str = "Authorization"
    prefix: str = "Bearer "


# Checked in order; the first integration whose key is in the secrets wins.
HTTP_INTEGRATIONS: dict[str, HttpAuth] = {
    "firecrawl": HttpAuth("FIRECRAWL_API_KEY", "https://api.firecrawl.dev"),
    "resend": HttpAuth("RESEND_API_KEY", "https://api.resend.com"),
    "slack": HttpAuth("SLACK_API_KEY", "https://slack.com/api"),
    "linear": HttpAuth("LINEAR_API_KEY", "https://api.linear.app", prefix=""),
    "ai-gateway": HttpAuth("AI_GATEWAY_API_KEY", "https://ai-gateway.vercel.sh/v1"),
}


def properties_to_dict(rows: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        key = str(row.get("key") or "").strip()
        if key:
            result[key] = row.get("value")
    return result


def parse_headers(headers: Any) -> dict[str, str]:
    """Headers as a dict; unparseable text yields no headers."""
    if not headers:
        return {}
    if isinstance(headers, (list, tuple)):
        return {k: str(v) for k, v in properties_to_dict(headers).items()}
    if isinstance(headers, Mapping):
        return {str(k): str(v) for k, v in headers.items()}
    try:
        parsed = json.loads(headers)
    except (TypeError, ValueError):
        return {}
    if isinstance(parsed, list):
        return {k: str(v) for k, v in properties_to_dict(parsed).items()}
    if isinstance(parsed, Mapping):
        return {str(k): str(v) for k, v in parsed.items()}
    return {}


def parse_body(method: str, body: Any) -> str | None:
    """Serialized request body, or None for GET and empty bodies.

    JSON text is normalized; other text is sent verbatim.
    """
    if method.upper() == "GET" or not body:
        return None
    if isinstance(body, (list, tuple)):
        obj = properties_to_dict(body)
        return json.dumps(obj) if obj else None
    if isinstance(body, Mapping):
        return json.dumps(dict(body)) if body else None
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        stripped = str(body).strip()
        return body if stripped and stripped != "{}" else None
    if isinstance(parsed, list):
        obj = properties_to_dict(parsed)
        return json.dumps(obj) if obj else None
    if isinstance(parsed, Mapping):
        return json.dumps(parsed) if parsed else None
    return json.dumps(parsed)


def build_url(endpoint: str, base_url: str | None = None) -> str:
    if not base_url or endpoint.startswith(("http://", "https://")):
        return endpoint
    path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    return base_url.rstrip("/") + path


def integration_auth(secrets: Mapping[str, str]) -> HttpAuth | None:
    for auth in HTTP_INTEGRATIONS.values():
        if secrets.get(auth.credential_key):
            return auth
    return None


def prepare_http_request(
    inputs: Mapping[str, Any], secrets: Mapping[str, str]
) -> tuple[str, str, dict[str, str], str | None]:
    """Method, URL, headers and body for native/http-request."""
    endpoint = str(inputs.get("endpoint") or "").strip()
    method = str(inputs.get("httpMethod") or "GET").upper()
    headers = parse_headers(inputs.get("httpHeaders"))
    body = parse_body(method, inputs.get("httpBody"))

    auth = integration_auth(secrets)
    if auth is not None:
        endpoint = build_url(endpoint, auth.base_url)
        headers[auth.header] = f"{auth.prefix}{secrets[auth.credential_key]}"

    if body is not None and not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = "application/json"
    return method, endpoint, headers, body


def model_string(model_id: str | None) -> str:
    """Gateway model id in provider/model form."""
    model_id = model_id or "meta/llama-4-scout"
    if "/" in model_id:
        return model_id
    if model_id.startswith("claude-"):
        return f"anthropic/{model_id}"
    return f"openai/{model_id}"


def prompt_with_schema(prompt: str, schema: Any, as_object: bool) -> str:
    """Append the expected object fields to the prompt for object output.

    `schema` is the editor's JSON list of `{"name", "type"}` fields.
    """
    if not as_object or not schema:
        return prompt
    try:
        fields = json.loads(schema) if isinstance(schema, str) else schema
    except ValueError:
        return prompt
    described = ", ".join(
        f"{field['name']} ({field.get('type', 'string')})"
        for field in fields
        if isinstance(field, Mapping) and field.get("name")
    )
    if not described:
        return prompt
    return f"{prompt}\n\nRespond with a JSON object with the fields: {described}."

"""AI Gateway text and image generation (OpenAI-compatible endpoints)."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.actions.payloads import model_string, prompt_with_schema
from pystepflow.core.errors import ActionInvocationError

DEFAULT_IMAGE_MODEL = "google/imagen-4.0-generate"


class GenerateTextAction(ActionDescriptor):
    """Generate text from `aiPrompt`; output `{"success": True, "text"}`.

    With `aiFormat == "object"` the model is asked for a JSON object and the
    output is `{"success": True, "object": {...}}`.
    """

    action_id = "ai-gateway/generate-text"
    label = "Generate Text"
    integration = "ai-gateway"
    credential_keys = ("AI_GATEWAY_API_KEY",)
    required_credentials = ("AI_GATEWAY_API_KEY",)
    input_shape = {"aiModel": "string", "aiPrompt": "string", "aiFormat": "string", "aiSchema": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        prompt = str(inputs.get("aiPrompt") or "")
        if not prompt.strip():
            raise ActionInvocationError("Prompt is required for text generation")

        as_object = inputs.get("aiFormat") == "object"
        payload: dict[str, Any] = {
            "model": model_string(inputs.get("aiModel")),
            "messages": [{"role": "user", "content": prompt_with_schema(prompt, inputs.get("aiSchema"), as_object)}],
        }
        if as_object:
            payload["response_format"] = {"type": "json_object"}

        body = await self.request_json(
            "POST",
            f"{self.config.ai_gateway_base_url.rstrip('/')}/chat/completions",
            json=payload,
            headers={"Authorization": f"Bearer {credentials['AI_GATEWAY_API_KEY']}"},
        )
        try:
            content = body["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise ActionInvocationError("AI Gateway returned no completion") from None

        if as_object:
            try:
                return {"success": True, "object": json.loads(content)}
            except ValueError:
                raise ActionInvocationError("AI Gateway returned invalid JSON for object output") from None
        return {"success": True, "text": content}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                prompt = str(inputs.get("aiPrompt") or "")
                if not prompt.strip():
                    raise ActionInvocationError("Prompt is required for text generation")
                as_object = inputs.get("aiFormat") == "object"
                payload = {
                    "model": model_string(inputs.get("aiModel")),
                    "messages": [{"role": "user", "content": prompt_with_schema(prompt, inputs.get("aiSchema"), as_object)}],
                }
                if as_object:
                    payload["response_format"] = {"type": "json_object"}
                _, body = http_request(
                    "POST",
                    $url,
                    {"Authorization": "Bearer " + secrets["AI_GATEWAY_API_KEY"]},
                    payload,
                    timeout=$timeout,
                )
                content = body["choices"][0]["message"]["content"] or ""
                if as_object:
                    return {"success": True, "object": json.loads(content)}
                return {"success": True, "text": content}
            """,
            function_name,
            url=f"{self.config.ai_gateway_base_url.rstrip('/')}/chat/completions",
            timeout=self.config.http_timeout,
        )

class GenerateImageAction(ActionDescriptor):
    """Generate one 1024x1024 image from `imagePrompt`; output `{"success": True, "base64"}`."""

    action_id = "ai-gateway/generate-image"
    label = "Generate Image"
    integration = "ai-gateway"
    credential_keys = ("AI_GATEWAY_API_KEY",)
    required_credentials = ("AI_GATEWAY_API_KEY",)
    input_shape = {"imageModel": "string", "imagePrompt": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        body = await self.request_json(
            "POST",
            f"{self.config.ai_gateway_base_url.rstrip('/')}/images/generations",
            json={
                "model": inputs.get("imageModel") or DEFAULT_IMAGE_MODEL,
                "prompt": self.require(inputs, "imagePrompt", "Prompt"),
                "size": "1024x1024",
                "response_format": "b64_json",
            },
            headers={"Authorization": f"Bearer {credentials['AI_GATEWAY_API_KEY']}"},
        )
        try:
            image = body["data"][0]["b64_json"]
        except (KeyError, IndexError, TypeError):
            image = None
        if not image:
            raise ActionInvocationError("Failed to generate image: No image returned")
        return {"success": True, "base64": image}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                if not str(inputs.get("imagePrompt") or "").strip():
                    raise ActionInvocationError("Prompt is required")
                _, body = http_request(
                    "POST",
                    $url,
                    {"Authorization": "Bearer " + secrets["AI_GATEWAY_API_KEY"]},
                    {
                        "model": inputs.get("imageModel") or $model,
                        "prompt": inputs["imagePrompt"],
                        "size": "1024x1024",
                        "response_format": "b64_json",
                    },
                    timeout=$timeout,
                )
                data = body.get("data") or [{}]
                if not data[0].get("b64_json"):
                    raise ActionInvocationError("Failed to generate image: No image returned")
                return {"success": True, "base64": data[0]["b64_json"]}
            """,
            function_name,
            url=f"{self.config.ai_gateway_base_url.rstrip('/')}/images/generations",
            model=DEFAULT_IMAGE_MODEL,
            timeout=self.config.http_timeout,
        )

"""v0 chat actions over the v0 Platform REST API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from pystepflow.actions.base import ActionDescriptor, function_source

V0_API_URL = "https://api.v0.dev/v1"


def _demo_url(chat: Mapping[str, Any]) -> str | None:
    return (chat.get("latestVersion") or {}).get("demoUrl")


class CreateChatAction(ActionDescriptor):
    """Start a chat from `message` (and optional `system`).

    Output `{"success": True, "chatId", "url", "demoUrl"}`.
    """

    action_id = "v0/create-chat"
    label = "Create Chat"
    integration = "v0"
    credential_keys = ("V0_API_KEY",)
    required_credentials = ("V0_API_KEY",)
    input_shape = {"message": "string", "system": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        payload = {"message": self.require(inputs, "message", "Message")}
        if inputs.get("system"):
            payload["system"] = inputs["system"]
        chat = await self.request_json(
            "POST",
            f"{V0_API_URL}/chats",
            json=payload,
            headers={"Authorization": f"Bearer {credentials['V0_API_KEY']}"},
        )
        return {
            "success": True,
            "chatId": chat.get("id"),
            "url": chat.get("webUrl"),
            "demoUrl": _demo_url(chat),
        }

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                if not str(inputs.get("message") or "").strip():
                    raise ActionInvocationError("Message is required")
                payload = {"message": inputs["message"]}
                if inputs.get("system"):
                    payload["system"] = inputs["system"]
                _, chat = http_request(
                    "POST",
                    $url,
                    {"Authorization": "Bearer " + secrets["V0_API_KEY"]},
                    payload,
                    timeout=$timeout,
                )
                return {
                    "success": True,
                    "chatId": chat.get("id"),
                    "url": chat.get("webUrl"),
                    "demoUrl": (chat.get("latestVersion") or {}).get("demoUrl"),
                }
            """,
            function_name,
            url=f"{V0_API_URL}/chats",
            timeout=self.config.http_timeout,
        )


class SendMessageAction(ActionDescriptor):
    """Send `message` to chat `chatId`; output `{"success": True, "chatId", "demoUrl"}`."""

    action_id = "v0/send-message"
    label = "Send Message"
    integration = "v0"
    credential_keys = ("V0_API_KEY",)
    required_credentials = ("V0_API_KEY",)
    input_shape = {"chatId": "string", "message": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        chat_id = str(self.require(inputs, "chatId", "Chat ID")).strip()
        chat = await self.request_json(
            "POST",
            f"{V0_API_URL}/chats/{quote(chat_id, safe='')}/messages",
            json={"message": self.require(inputs, "message", "Message")},
            headers={"Authorization": f"Bearer {credentials['V0_API_KEY']}"},
        )
        return {"success": True, "chatId": chat.get("id") or chat_id, "demoUrl": _demo_url(chat)}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                chat_id = str(inputs.get("chatId") or "").strip()
                if not chat_id:
                    raise ActionInvocationError("Chat ID is required")
                if not str(inputs.get("message") or "").strip():
                    raise ActionInvocationError("Message is required")
                _, chat = http_request(
                    "POST",
                    $url + "/" + urllib.parse.quote(chat_id, safe="") + "/messages",
                    {"Authorization": "Bearer " + secrets["V0_API_KEY"]},
                    {"message": inputs["message"]},
                    timeout=$timeout,
                )
                return {
                    "success": True,
                    "chatId": chat.get("id") or chat_id,
                    "demoUrl": (chat.get("latestVersion") or {}).get("demoUrl"),
                }
            """,
            function_name,
            url=f"{V0_API_URL}/chats",
            timeout=self.config.http_timeout,
        )

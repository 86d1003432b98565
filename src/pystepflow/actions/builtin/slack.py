"""Slack message action."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.core.errors import ActionInvocationError

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"


class SendSlackMessageAction(ActionDescriptor):
    """Post to a channel; output `{"success": True, "ts", "channel"}`.

    Slack answers 200 with `ok: false` on API errors; those fail the node.
    """

    action_id = "slack/send-message"
    label = "Send Slack Message"
    integration = "slack"
    credential_keys = ("SLACK_API_KEY",)
    required_credentials = ("SLACK_API_KEY",)
    input_shape = {"slackChannel": "string", "slackMessage": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        body = await self.request_json(
            "POST",
            SLACK_POST_MESSAGE_URL,
            json={
                "channel": self.require(inputs, "slackChannel", "Channel"),
                "text": inputs.get("slackMessage") or "",
            },
            headers={"Authorization": f"Bearer {credentials['SLACK_API_KEY']}"},
        )
        if not body.get("ok"):
            raise ActionInvocationError(
                f"Failed to send Slack message: {body.get('error') or 'unknown error'}"
            )
        return {"success": True, "ts": body.get("ts") or "", "channel": body.get("channel") or ""}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                if not inputs.get("slackChannel"):
                    raise ActionInvocationError("Channel is required")
                _, body = http_request(
                    "POST",
                    $url,
                    {"Authorization": "Bearer " + secrets["SLACK_API_KEY"]},
                    {"channel": inputs["slackChannel"], "text": inputs.get("slackMessage") or ""},
                    timeout=$timeout,
                )
                if not body.get("ok"):
                    raise ActionInvocationError(
                        "Failed to send Slack message: " + (body.get("error") or "unknown error")
                    )
                return {"success": True, "ts": body.get("ts") or "", "channel": body.get("channel") or ""}
            """,
            function_name,
            url=SLACK_POST_MESSAGE_URL,
            timeout=self.config.http_timeout,
        )

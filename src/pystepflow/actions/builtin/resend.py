"""Resend email action."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.core.errors import ActionInvocationError

RESEND_API_URL = "https://api.resend.com"

# Optional node fields -> Resend API fields.
_OPTIONAL_FIELDS = {
    "emailCc": "cc",
    "emailBcc": "bcc",
    "emailReplyTo": "reply_to",
    "emailScheduledAt": "scheduled_at",
    "emailTopicId": "topic_id",
}


class SendEmailAction(ActionDescriptor):
    """Send a plain text email; output `{"success": True, "id"}`.

    The sender is the node's `emailFrom`, else RESEND_FROM_EMAIL.
    """

    action_id = "resend/send-email"
    label = "Send Email"
    integration = "resend"
    credential_keys = ("RESEND_API_KEY", "RESEND_FROM_EMAIL")
    required_credentials = ("RESEND_API_KEY",)
    input_shape = {
        "emailFrom": "string",
        "emailTo": "string",
        "emailSubject": "string",
        "emailBody": "string",
        "emailCc": "string",
        "emailBcc": "string",
        "emailReplyTo": "string",
        "emailScheduledAt": "string",
        "emailTopicId": "string",
        "idempotencyKey": "string",
    }

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        sender = inputs.get("emailFrom") or credentials.get("RESEND_FROM_EMAIL")
        if not sender:
            raise ActionInvocationError(
                "No sender is configured. Set emailFrom or RESEND_FROM_EMAIL"
            )
        payload = {
            "from": sender,
            "to": self.require(inputs, "emailTo", "Recipient"),
            "subject": inputs.get("emailSubject") or "",
            "text": inputs.get("emailBody") or "",
        }
        for field, api_field in _OPTIONAL_FIELDS.items():
            if inputs.get(field):
                payload[api_field] = inputs[field]

        headers = {"Authorization": f"Bearer {credentials['RESEND_API_KEY']}"}
        if inputs.get("idempotencyKey"):
            headers["Idempotency-Key"] = str(inputs["idempotencyKey"])

        body = await self.request_json("POST", f"{RESEND_API_URL}/emails", json=payload, headers=headers)
        return {"success": True, "id": body.get("id") or ""}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                sender = inputs.get("emailFrom") or secrets.get("RESEND_FROM_EMAIL")
                if not sender:
                    raise ActionInvocationError("No sender is configured. Set emailFrom or RESEND_FROM_EMAIL")
                if not inputs.get("emailTo"):
                    raise ActionInvocationError("Recipient is required")
                payload = {
                    "from": sender,
                    "to": inputs["emailTo"],
                    "subject": inputs.get("emailSubject") or "",
                    "text": inputs.get("emailBody") or "",
                }
                for field, api_field in $optional.items():
                    if inputs.get(field):
                        payload[api_field] = inputs[field]
                headers = {"Authorization": "Bearer " + secrets["RESEND_API_KEY"]}
                if inputs.get("idempotencyKey"):
                    headers["Idempotency-Key"] = str(inputs["idempotencyKey"])
                _, body = http_request("POST", $base + "/emails", headers, payload, timeout=$timeout)
                return {"success": True, "id": body.get("id") or ""}
            """,
            function_name,
            optional=_OPTIONAL_FIELDS,
            base=RESEND_API_URL,
            timeout=self.config.http_timeout,
        )

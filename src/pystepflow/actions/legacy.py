"""Legacy action labels.

Workflows saved before actions were namespaced store the display label
("Send Email") as the action id. They keep working by mapping the label to
its namespaced id before the registry lookup.
"""

from __future__ import annotations

LEGACY_ACTION_MAPPINGS: dict[str, str] = {
    "Scrape": "firecrawl/scrape",
    "Search": "firecrawl/search",
    "Generate Text": "ai-gateway/generate-text",
    "Generate Image": "ai-gateway/generate-image",
    "Send Email": "resend/send-email",
    "Create Ticket": "linear/create-ticket",
    "Find Issues": "linear/find-issues",
    "Send Slack Message": "slack/send-message",
    "Create Chat": "v0/create-chat",
    "Send Message": "v0/send-message",
    "HTTP Request": "native/http-request",
    "Condition": "system/condition",
}


def resolve_legacy_id(label: str | None) -> str | None:
    """Namespaced ids pass through; labels map exactly, otherwise None.

    The lookup is case and whitespace sensitive.
    """
    if not label:
        return None
    if "/" in label:
        return label
    return LEGACY_ACTION_MAPPINGS.get(label)

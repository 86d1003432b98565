"""Firecrawl scrape and search actions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source

FIRECRAWL_API_URL = "https://api.firecrawl.dev/v1"


class _FirecrawlAction(ActionDescriptor):
    integration = "firecrawl"
    credential_keys = ("FIRECRAWL_API_KEY",)
    required_credentials = ("FIRECRAWL_API_KEY",)

    async def post(self, path: str, payload: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        return await self.request_json(
            "POST",
            f"{FIRECRAWL_API_URL}/{path}",
            json=payload,
            headers={"Authorization": f"Bearer {credentials['FIRECRAWL_API_KEY']}"},
        )


class ScrapeAction(_FirecrawlAction):
    """Scrape one URL; output `{"markdown", "metadata"}`."""

    action_id = "firecrawl/scrape"
    label = "Scrape"
    input_shape = {"url": "string", "formats": "list[string]"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        url = self.require(inputs, "url", "URL")
        body = await self.post(
            "scrape", {"url": url, "formats": inputs.get("formats") or ["markdown"]}, credentials
        )
        data = body.get("data") or {}
        return {"markdown": data.get("markdown"), "metadata": data.get("metadata")}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                if not inputs.get("url"):
                    raise ActionInvocationError("URL is required")
                _, body = http_request(
                    "POST",
                    $base + "/scrape",
                    {"Authorization": "Bearer " + secrets["FIRECRAWL_API_KEY"]},
                    {"url": inputs["url"], "formats": inputs.get("formats") or ["markdown"]},
                    timeout=$timeout,
                )
                data = body.get("data") or {}
                return {"markdown": data.get("markdown"), "metadata": data.get("metadata")}
            """,
            function_name,
            base=FIRECRAWL_API_URL,
            timeout=self.config.http_timeout,
        )


class SearchAction(_FirecrawlAction):
    """Web search; output `{"web": [results]}`."""

    action_id = "firecrawl/search"
    label = "Search"
    input_shape = {"query": "string", "limit": "number", "scrapeOptions": "object"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        payload: dict[str, Any] = {"query": self.require(inputs, "query", "Query")}
        if inputs.get("limit"):
            payload["limit"] = int(inputs["limit"])
        if inputs.get("scrapeOptions"):
            payload["scrapeOptions"] = inputs["scrapeOptions"]
        body = await self.post("search", payload, credentials)
        data = body.get("data")
        return {"web": data.get("web") if isinstance(data, Mapping) else data}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                if not inputs.get("query"):
                    raise ActionInvocationError("Query is required")
                payload = {"query": inputs["query"]}
                if inputs.get("limit"):
                    payload["limit"] = int(inputs["limit"])
                if inputs.get("scrapeOptions"):
                    payload["scrapeOptions"] = inputs["scrapeOptions"]
                _, body = http_request(
                    "POST",
                    $base + "/search",
                    {"Authorization": "Bearer " + secrets["FIRECRAWL_API_KEY"]},
                    payload,
                    timeout=$timeout,
                )
                data = body.get("data")
                return {"web": data.get("web") if isinstance(data, dict) else data}
            """,
            function_name,
            base=FIRECRAWL_API_URL,
            timeout=self.config.http_timeout,
        )

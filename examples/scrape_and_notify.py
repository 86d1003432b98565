import asyncio
import logging
from pathlib import Path

from pystepflow import (
    ActionDescriptor,
    ActionInvocationError,
    ActionRegistry,
    EngineConfig,
    Workflow,
    WorkflowExecutor,
    generate_workflow_code,
)
from pystepflow.actions import function_source

logging.basicConfig(level=logging.INFO)


class FakeScrape(ActionDescriptor):
    """Offline stand-in for firecrawl/scrape."""

    action_id = "demo/scrape"
    label = "Scrape"

    async def run(self, inputs, credentials):
        url = inputs.get("url") or ""
        if not url.startswith("https://"):
            raise ActionInvocationError(f"Refusing to scrape {url!r}")
        return {"url": url, "markdown": f"# {url}"}

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                url = inputs.get("url") or ""
                if not url.startswith("https://"):
                    raise ActionInvocationError("Refusing to scrape " + repr(url))
                return {"url": url, "markdown": "# " + url}
            """,
            function_name,
        )


class Log(ActionDescriptor):
    action_id = "demo/log"
    label = "Log"

    async def run(self, inputs, credentials):
        print(inputs["text"])
        return {"logged": inputs["text"]}

    def emit_source(self, config, function_name):
        return function_source(
            """
            def $function(inputs, secrets):
                print(inputs["text"])
                return {"logged": inputs["text"]}
            """,
            function_name,
        )


WORKFLOW = Workflow.from_dict(
    {
        "name": "Scrape and notify",
        "nodes": [
            {"id": "t", "data": {"label": "Trigger", "type": "trigger"}},
            {"id": "s", "data": {"label": "Scrape", "type": "action",
                                 "config": {"actionType": "demo/scrape", "url": "{{Trigger.url}}"}}},
            {"id": "c", "data": {"label": "Check", "type": "condition",
                                 "config": {"condition": "{{Scrape.success}} == true"}}},
            {"id": "n", "data": {"label": "Notify", "type": "action",
                                 "config": {"actionType": "demo/log", "text": "Scraped {{Scrape.url}}"}}},
            {"id": "e", "data": {"label": "LogError", "type": "action",
                                 "config": {"actionType": "demo/log", "text": "Could not scrape {{Trigger.url}}"}}},
        ],
        "edges": [
            {"source": "t", "target": "s"},
            {"source": "s", "target": "c"},
            {"source": "c", "target": "n", "sourceHandle": "true"},
            {"source": "c", "target": "e", "sourceHandle": "false"},
        ],
    }
)


async def main():
    config = EngineConfig(enable_ai_actions=False, checkpoint_path="data/scrape_and_notify.db")
    registry = ActionRegistry.default(config, extra=[FakeScrape(config), Log(config)])

    async with WorkflowExecutor(registry, config=config) as executor:
        for url in ("https://example.com", "ftp://example.com"):
            outcome = await executor.run(WORKFLOW, {"url": url})
            print(repr(outcome))
            for report in outcome.nodes.values():
                print(f"  {report}")

    exported = generate_workflow_code(WORKFLOW.name, WORKFLOW.nodes, WORKFLOW.edges, registry)
    Path("data/scrape_and_notify_export.py").write_text(exported.code)
    print(f"Exported {exported.function_name} to data/scrape_and_notify_export.py")


if __name__ == "__main__":
    asyncio.run(main())

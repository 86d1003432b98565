"""
HTTP-backed actions against httpx.MockTransport.
"""

import json

import httpx
import pytest

from pystepflow.actions.builtin import (
    CreateChatAction,
    CreateTicketAction,
    FindIssuesAction,
    GenerateImageAction,
    GenerateTextAction,
    HttpRequestAction,
    ScrapeAction,
    SearchAction,
    SendEmailAction,
    SendMessageAction,
    SendSlackMessageAction,
)
from pystepflow.core import ActionInvocationError, EngineConfig, ErrorKind
from pystepflow.models import Failure, Success


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def body(self, index: int = -1):
        return json.loads(self.requests[index].content)


# ==============================================================================
# Firecrawl
# ==============================================================================


@pytest.mark.asyncio
async def test_scrape_posts_url_and_returns_markdown():
    recorder = Recorder({"data": {"markdown": "# Title", "metadata": {"title": "T"}}})
    scrape = ScrapeAction(transport=recorder.transport)

    output = await scrape.run({"url": "https://example.com"}, {"FIRECRAWL_API_KEY": "fc-1"})

    assert output == {"markdown": "# Title", "metadata": {"title": "T"}}
    request = recorder.requests[0]
    assert str(request.url) == "https://api.firecrawl.dev/v1/scrape"
    assert request.headers["Authorization"] == "Bearer fc-1"
    assert recorder.body() == {"url": "https://example.com", "formats": ["markdown"]}


@pytest.mark.asyncio
async def test_scrape_without_url_fails_without_request():
    recorder = Recorder({})
    result = await ScrapeAction(transport=recorder.transport).invoke({}, {"FIRECRAWL_API_KEY": "k"})

    assert result == Failure("URL is required", ErrorKind.ACTION_INVOCATION_ERROR)
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_search_sends_limit_and_unwraps_web_results():
    recorder = Recorder({"data": {"web": [{"url": "https://a"}]}})
    search = SearchAction(transport=recorder.transport)

    output = await search.run({"query": "durable", "limit": "3"}, {"FIRECRAWL_API_KEY": "k"})

    assert output == {"web": [{"url": "https://a"}]}
    assert recorder.body() == {"query": "durable", "limit": 3}


# ==============================================================================
# Resend
# ==============================================================================


@pytest.mark.asyncio
async def test_send_email_payload_and_idempotency_key():
    recorder = Recorder({"id": "email-1"})
    send = SendEmailAction(transport=recorder.transport)
    inputs = {
        "emailTo": "ada@example.com",
        "emailSubject": "Hi",
        "emailBody": "Hello",
        "emailCc": "bob@example.com",
        "idempotencyKey": "run-1/mail",
    }

    output = await send.run(inputs, {"RESEND_API_KEY": "re_1", "RESEND_FROM_EMAIL": "bot@example.com"})

    assert output == {"success": True, "id": "email-1"}
    request = recorder.requests[0]
    assert request.headers["Idempotency-Key"] == "run-1/mail"
    assert recorder.body() == {
        "from": "bot@example.com",
        "to": "ada@example.com",
        "subject": "Hi",
        "text": "Hello",
        "cc": "bob@example.com",
    }


@pytest.mark.asyncio
async def test_send_email_without_sender_fails():
    recorder = Recorder({})
    result = await SendEmailAction(transport=recorder.transport).invoke(
        {"emailTo": "ada@example.com"}, {"RESEND_API_KEY": "re_1"}
    )

    assert isinstance(result, Failure)
    assert "No sender is configured" in result.error
    assert recorder.requests == []


# ==============================================================================
# Slack
# ==============================================================================


@pytest.mark.asyncio
async def test_slack_ok_false_fails_the_node():
    recorder = Recorder({"ok": False, "error": "channel_not_found"})
    result = await SendSlackMessageAction(transport=recorder.transport).invoke(
        {"slackChannel": "#nope", "slackMessage": "hi"}, {"SLACK_API_KEY": "xoxb"}
    )

    assert result == Failure("Failed to send Slack message: channel_not_found")


@pytest.mark.asyncio
async def test_slack_success():
    recorder = Recorder({"ok": True, "ts": "1.2", "channel": "C1"})
    output = await SendSlackMessageAction(transport=recorder.transport).run(
        {"slackChannel": "#general", "slackMessage": "hi"}, {"SLACK_API_KEY": "xoxb"}
    )

    assert output == {"success": True, "ts": "1.2", "channel": "C1"}
    assert recorder.requests[0].headers["Authorization"] == "Bearer xoxb"


# ==============================================================================
# Linear
# ==============================================================================


@pytest.mark.asyncio
async def test_create_ticket_falls_back_to_first_team():
    recorder = Recorder(
        {"data": {"teams": {"nodes": [{"id": "team-1"}]}}},
        {"data": {"issueCreate": {"issue": {"id": "i1", "title": "Bug", "url": "https://l/i1"}}}},
    )
    create = CreateTicketAction(transport=recorder.transport)

    output = await create.run({"ticketTitle": "Bug"}, {"LINEAR_API_KEY": "lin_1"})

    assert output == {"success": True, "id": "i1", "url": "https://l/i1", "title": "Bug"}
    assert len(recorder.requests) == 2
    assert recorder.requests[0].headers["Authorization"] == "lin_1"
    assert recorder.body(1)["variables"]["input"]["teamId"] == "team-1"


@pytest.mark.asyncio
async def test_create_ticket_uses_configured_team():
    recorder = Recorder(
        {"data": {"issueCreate": {"issue": {"id": "i1", "title": "Bug", "url": "u"}}}}
    )

    await CreateTicketAction(transport=recorder.transport).run(
        {"ticketTitle": "Bug"}, {"LINEAR_API_KEY": "lin_1", "LINEAR_TEAM_ID": "team-9"}
    )

    assert len(recorder.requests) == 1
    assert recorder.body()["variables"]["input"]["teamId"] == "team-9"


@pytest.mark.asyncio
async def test_find_issues_builds_filter_and_summarizes():
    recorder = Recorder(
        {
            "data": {
                "issues": {
                    "nodes": [
                        {
                            "id": "i1",
                            "title": "Bug",
                            "url": "u",
                            "priority": 2,
                            "state": {"name": "Todo"},
                            "assignee": {"id": "user-1"},
                        }
                    ]
                }
            }
        }
    )

    output = await FindIssuesAction(transport=recorder.transport).run(
        {"linearAssigneeId": "user-1", "linearStatus": "todo"}, {"LINEAR_API_KEY": "lin_1"}
    )

    assert output["count"] == 1
    assert output["issues"][0] == {
        "id": "i1",
        "title": "Bug",
        "url": "u",
        "state": "Todo",
        "priority": 2,
        "assigneeId": "user-1",
    }
    assert recorder.body()["variables"]["filter"] == {
        "assignee": {"id": {"eq": "user-1"}},
        "state": {"name": {"eqIgnoreCase": "todo"}},
    }


@pytest.mark.asyncio
async def test_linear_graphql_errors_fail_the_node():
    recorder = Recorder({"errors": [{"message": "Authentication required"}]})

    result = await FindIssuesAction(transport=recorder.transport).invoke({}, {"LINEAR_API_KEY": "x"})

    assert result == Failure("Linear API error: Authentication required")


# ==============================================================================
# HTTP request
# ==============================================================================


@pytest.mark.asyncio
async def test_http_request_plain_json():
    recorder = Recorder({"hello": "world"})

    output = await HttpRequestAction(transport=recorder.transport).run(
        {"endpoint": "https://api.example.com/things", "httpMethod": "POST", "httpBody": '{"a": 1}'},
        {},
    )

    assert output == {"success": True, "data": {"hello": "world"}, "status": 200}
    request = recorder.requests[0]
    assert request.method == "POST"
    assert request.headers["Content-Type"] == "application/json"
    assert recorder.body() == {"a": 1}


@pytest.mark.asyncio
async def test_http_request_attaches_integration_auth_and_base_url():
    recorder = Recorder({"ok": True})

    await HttpRequestAction(transport=recorder.transport).run(
        {"endpoint": "/emails", "httpMethod": "GET", "httpHeaders": [{"key": "X-Trace", "value": "1"}]},
        {"RESEND_API_KEY": "re_1"},
    )

    request = recorder.requests[0]
    assert str(request.url) == "https://api.resend.com/emails"
    assert request.headers["Authorization"] == "Bearer re_1"
    assert request.headers["X-Trace"] == "1"
    assert request.content == b""


@pytest.mark.asyncio
async def test_http_request_text_response():
    recorder = Recorder(httpx.Response(200, text="plain", headers={"content-type": "text/plain"}))

    output = await HttpRequestAction(transport=recorder.transport).run(
        {"endpoint": "https://example.com"}, {}
    )

    assert output["data"] == "plain"


@pytest.mark.asyncio
async def test_non_2xx_is_action_invocation_error_with_status():
    recorder = Recorder(httpx.Response(503, text="unavailable"))
    http = HttpRequestAction(transport=recorder.transport)

    with pytest.raises(ActionInvocationError) as exc_info:
        await http.run({"endpoint": "https://example.com"}, {})

    assert exc_info.value.status_code == 503
    assert "unavailable" in str(exc_info.value)

    result = await http.invoke({"endpoint": "https://example.com"}, {})
    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.ACTION_INVOCATION_ERROR


@pytest.mark.asyncio
async def test_transport_error_becomes_failure():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await HttpRequestAction(transport=httpx.MockTransport(refuse)).invoke(
        {"endpoint": "https://example.com"}, {}
    )

    assert isinstance(result, Failure)
    assert "connection refused" in result.error


# ==============================================================================
# AI Gateway
# ==============================================================================


@pytest.mark.asyncio
async def test_generate_text():
    recorder = Recorder({"choices": [{"message": {"content": "A haiku"}}]})
    config = EngineConfig(ai_gateway_base_url="https://gateway.test/v1/")

    result = await GenerateTextAction(config, recorder.transport).invoke(
        {"aiPrompt": "Write a haiku", "aiModel": "gpt-4o"}, {"AI_GATEWAY_API_KEY": "gw"}
    )

    assert result == Success({"success": True, "text": "A haiku"})
    assert str(recorder.requests[0].url) == "https://gateway.test/v1/chat/completions"
    assert recorder.body()["model"] == "openai/gpt-4o"


@pytest.mark.asyncio
async def test_generate_object_parses_json():
    recorder = Recorder({"choices": [{"message": {"content": '{"score": 7}'}}]})

    output = await GenerateTextAction(transport=recorder.transport).run(
        {
            "aiPrompt": "Rate it",
            "aiFormat": "object",
            "aiSchema": '[{"name": "score", "type": "number"}]',
        },
        {"AI_GATEWAY_API_KEY": "gw"},
    )

    assert output == {"success": True, "object": {"score": 7}}
    body = recorder.body()
    assert body["response_format"] == {"type": "json_object"}
    assert "score (number)" in body["messages"][0]["content"]


@pytest.mark.asyncio
async def test_generate_text_requires_prompt():
    result = await GenerateTextAction(transport=Recorder({}).transport).invoke(
        {"aiPrompt": "  "}, {"AI_GATEWAY_API_KEY": "gw"}
    )

    assert result == Failure("Prompt is required for text generation")


@pytest.mark.asyncio
async def test_generate_image_returns_base64():
    recorder = Recorder({"data": [{"b64_json": "aGVsbG8="}]})

    output = await GenerateImageAction(transport=recorder.transport).run(
        {"imagePrompt": "A lighthouse"}, {"AI_GATEWAY_API_KEY": "gw"}
    )

    assert output == {"success": True, "base64": "aGVsbG8="}
    assert str(recorder.requests[0].url) == "https://ai-gateway.vercel.sh/v1/images/generations"
    assert recorder.body() == {
        "model": "google/imagen-4.0-generate",
        "prompt": "A lighthouse",
        "size": "1024x1024",
        "response_format": "b64_json",
    }


@pytest.mark.asyncio
async def test_generate_image_without_image_fails():
    result = await GenerateImageAction(transport=Recorder({"data": []}).transport).invoke(
        {"imagePrompt": "A lighthouse", "imageModel": "openai/dall-e-3"}, {"AI_GATEWAY_API_KEY": "gw"}
    )

    assert result == Failure("Failed to generate image: No image returned")


# ==============================================================================
# v0
# ==============================================================================


@pytest.mark.asyncio
async def test_create_chat():
    recorder = Recorder(
        {"id": "chat-1", "webUrl": "https://v0.dev/chat/chat-1", "latestVersion": {"demoUrl": "https://demo"}}
    )

    output = await CreateChatAction(transport=recorder.transport).run(
        {"message": "Build a dashboard", "system": "You are terse"}, {"V0_API_KEY": "v0-key"}
    )

    assert output == {
        "success": True,
        "chatId": "chat-1",
        "url": "https://v0.dev/chat/chat-1",
        "demoUrl": "https://demo",
    }
    request = recorder.requests[0]
    assert str(request.url) == "https://api.v0.dev/v1/chats"
    assert request.headers["Authorization"] == "Bearer v0-key"
    assert recorder.body() == {"message": "Build a dashboard", "system": "You are terse"}


@pytest.mark.asyncio
async def test_send_message_posts_to_chat():
    recorder = Recorder({"id": "chat 1", "latestVersion": None})

    output = await SendMessageAction(transport=recorder.transport).run(
        {"chatId": "chat 1", "message": "Add a footer"}, {"V0_API_KEY": "v0-key"}
    )

    assert output == {"success": True, "chatId": "chat 1", "demoUrl": None}
    assert str(recorder.requests[0].url) == "https://api.v0.dev/v1/chats/chat%201/messages"
    assert recorder.body() == {"message": "Add a footer"}


@pytest.mark.asyncio
async def test_send_message_requires_chat_id():
    recorder = Recorder({})

    result = await SendMessageAction(transport=recorder.transport).invoke(
        {"message": "hi"}, {"V0_API_KEY": "k"}
    )

    assert result == Failure("Chat ID is required")
    assert recorder.requests == []

"""Built-in actions, one class per action id."""

from pystepflow.actions.builtin.ai_gateway import GenerateImageAction, GenerateTextAction
from pystepflow.actions.builtin.firecrawl import ScrapeAction, SearchAction
from pystepflow.actions.builtin.linear import CreateTicketAction, FindIssuesAction
from pystepflow.actions.builtin.native import HttpRequestAction
from pystepflow.actions.builtin.resend import SendEmailAction
from pystepflow.actions.builtin.slack import SendSlackMessageAction
from pystepflow.actions.builtin.system import ConditionAction, TriggerAction
from pystepflow.actions.builtin.v0 import CreateChatAction, SendMessageAction

CORE_ACTIONS = (
    TriggerAction,
    ConditionAction,
    HttpRequestAction,
    ScrapeAction,
    SearchAction,
    SendEmailAction,
    SendSlackMessageAction,
    CreateTicketAction,
    FindIssuesAction,
    CreateChatAction,
    SendMessageAction,
)

AI_ACTIONS = (GenerateTextAction, GenerateImageAction)

__all__ = [
    "CORE_ACTIONS",
    "AI_ACTIONS",
    "TriggerAction",
    "ConditionAction",
    "HttpRequestAction",
    "GenerateTextAction",
    "GenerateImageAction",
    "ScrapeAction",
    "SearchAction",
    "SendEmailAction",
    "SendSlackMessageAction",
    "CreateTicketAction",
    "FindIssuesAction",
    "CreateChatAction",
    "SendMessageAction",
]

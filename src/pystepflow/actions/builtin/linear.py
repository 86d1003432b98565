"""Linear ticket actions over the GraphQL API.

Linear expects the raw API key in the Authorization header, without a
Bearer prefix. GraphQL errors arrive with status 200 and fail the node.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pystepflow.actions.base import ActionDescriptor, function_source
from pystepflow.core.errors import ActionInvocationError

LINEAR_API_URL = "https://api.linear.app/graphql"

TEAMS_QUERY = "query { teams(first: 1) { nodes { id } } }"

CREATE_ISSUE_MUTATION = (
    "mutation IssueCreate($input: IssueCreateInput!) { "
    "issueCreate(input: $input) { success issue { id title url } } }"
)

FIND_ISSUES_QUERY = (
    "query Issues($filter: IssueFilter) { issues(filter: $filter) { nodes { "
    "id title url priority state { name } assignee { id } } } }"
)


def issue_filter(inputs: Mapping[str, Any]) -> dict[str, Any]:
    query_filter: dict[str, Any] = {}
    if inputs.get("linearAssigneeId"):
        query_filter["assignee"] = {"id": {"eq": inputs["linearAssigneeId"]}}
    if inputs.get("linearTeamId"):
        query_filter["team"] = {"id": {"eq": inputs["linearTeamId"]}}
    if inputs.get("linearStatus"):
        query_filter["state"] = {"name": {"eqIgnoreCase": inputs["linearStatus"]}}
    if inputs.get("linearLabel"):
        query_filter["labels"] = {"name": {"eqIgnoreCase": inputs["linearLabel"]}}
    return query_filter


def summarize_issue(issue: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": issue.get("id"),
        "title": issue.get("title"),
        "url": issue.get("url"),
        "state": (issue.get("state") or {}).get("name", ""),
        "priority": issue.get("priority"),
        "assigneeId": (issue.get("assignee") or {}).get("id"),
    }


class _LinearAction(ActionDescriptor):
    integration = "linear"

    async def graphql(
        self, query: str, variables: dict[str, Any] | None, credentials: Mapping[str, str]
    ) -> dict[str, Any]:
        body = await self.request_json(
            "POST",
            LINEAR_API_URL,
            json={"query": query, "variables": variables or {}},
            headers={"Authorization": credentials["LINEAR_API_KEY"]},
        )
        if body.get("errors"):
            raise ActionInvocationError(f"Linear API error: {body['errors'][0].get('message')}")
        return body.get("data") or {}


class CreateTicketAction(_LinearAction):
    """Create an issue; output `{"success": True, "id", "url", "title"}`.

    Uses LINEAR_TEAM_ID when set, otherwise the workspace's first team.
    """

    action_id = "linear/create-ticket"
    label = "Create Ticket"
    credential_keys = ("LINEAR_API_KEY", "LINEAR_TEAM_ID")
    required_credentials = ("LINEAR_API_KEY",)
    input_shape = {"ticketTitle": "string", "ticketDescription": "string"}

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        title = self.require(inputs, "ticketTitle", "Title")
        team_id = credentials.get("LINEAR_TEAM_ID")
        if not team_id:
            teams = (await self.graphql(TEAMS_QUERY, None, credentials)).get("teams") or {}
            nodes = teams.get("nodes") or []
            if not nodes:
                raise ActionInvocationError("No teams found in Linear workspace")
            team_id = nodes[0]["id"]

        data = await self.graphql(
            CREATE_ISSUE_MUTATION,
            {"input": {"title": title, "description": inputs.get("ticketDescription") or "", "teamId": team_id}},
            credentials,
        )
        issue = (data.get("issueCreate") or {}).get("issue")
        if not issue:
            raise ActionInvocationError("Failed to create issue")
        return {"success": True, "id": issue["id"], "url": issue["url"], "title": issue["title"]}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                def graphql(query, variables):
                    _, body = http_request(
                        "POST",
                        $url,
                        {"Authorization": secrets["LINEAR_API_KEY"]},
                        {"query": query, "variables": variables},
                        timeout=$timeout,
                    )
                    if body.get("errors"):
                        raise ActionInvocationError("Linear API error: " + str(body["errors"][0].get("message")))
                    return body.get("data") or {}

                if not inputs.get("ticketTitle"):
                    raise ActionInvocationError("Title is required")
                team_id = secrets.get("LINEAR_TEAM_ID")
                if not team_id:
                    nodes = (graphql($teams_query, {}).get("teams") or {}).get("nodes") or []
                    if not nodes:
                        raise ActionInvocationError("No teams found in Linear workspace")
                    team_id = nodes[0]["id"]
                data = graphql(
                    $mutation,
                    {"input": {"title": inputs["ticketTitle"], "description": inputs.get("ticketDescription") or "", "teamId": team_id}},
                )
                issue = (data.get("issueCreate") or {}).get("issue")
                if not issue:
                    raise ActionInvocationError("Failed to create issue")
                return {"success": True, "id": issue["id"], "url": issue["url"], "title": issue["title"]}
            """,
            function_name,
            url=LINEAR_API_URL,
            timeout=self.config.http_timeout,
            teams_query=TEAMS_QUERY,
            mutation=CREATE_ISSUE_MUTATION,
        )


class FindIssuesAction(_LinearAction):
    """Query issues by assignee, team, status and label.

    Output: `{"success": True, "issues": [...], "count": n}`.
    """

    action_id = "linear/find-issues"
    label = "Find Issues"
    credential_keys = ("LINEAR_API_KEY",)
    required_credentials = ("LINEAR_API_KEY",)
    input_shape = {
        "linearAssigneeId": "string",
        "linearTeamId": "string",
        "linearStatus": "string",
        "linearLabel": "string",
    }

    async def run(self, inputs: dict[str, Any], credentials: Mapping[str, str]) -> Any:
        data = await self.graphql(FIND_ISSUES_QUERY, {"filter": issue_filter(inputs)}, credentials)
        issues = [summarize_issue(node) for node in (data.get("issues") or {}).get("nodes") or []]
        return {"success": True, "issues": issues, "count": len(issues)}

    def emit_source(self, config: Mapping[str, Any], function_name: str) -> str:
        return function_source(
            """
            def $function(inputs, secrets):
                query_filter = {}
                if inputs.get("linearAssigneeId"):
                    query_filter["assignee"] = {"id": {"eq": inputs["linearAssigneeId"]}}
                if inputs.get("linearTeamId"):
                    query_filter["team"] = {"id": {"eq": inputs["linearTeamId"]}}
                if inputs.get("linearStatus"):
                    query_filter["state"] = {"name": {"eqIgnoreCase": inputs["linearStatus"]}}
                if inputs.get("linearLabel"):
                    query_filter["labels"] = {"name": {"eqIgnoreCase": inputs["linearLabel"]}}
                _, body = http_request(
                    "POST",
                    $url,
                    {"Authorization": secrets["LINEAR_API_KEY"]},
                    {"query": $query, "variables": {"filter": query_filter}},
                    timeout=$timeout,
                )
                if body.get("errors"):
                    raise ActionInvocationError("Linear API error: " + str(body["errors"][0].get("message")))
                nodes = ((body.get("data") or {}).get("issues") or {}).get("nodes") or []
                issues = [
                    {
                        "id": node.get("id"),
                        "title": node.get("title"),
                        "url": node.get("url"),
                        "state": (node.get("state") or {}).get("name", ""),
                        "priority": node.get("priority"),
                        "assigneeId": (node.get("assignee") or {}).get("id"),
                    }
                    for node in nodes
                ]
                return {"success": True, "issues": issues, "count": len(issues)}
            """,
            function_name,
            url=LINEAR_API_URL,
            timeout=self.config.http_timeout,
            query=FIND_ISSUES_QUERY,
        )

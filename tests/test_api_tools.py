from __future__ import annotations

import pytest

from api.features.conversation import repository
from api.features.tools import repository as tools_repository
from api.features.tools.entities import ConnectionStatus, Platform
from tests.conftest import TOKEN, USER_ID

AUTH = {"Authorization": f"Bearer {TOKEN}"}


def _action(action, conversation_id="c1", **extra):
    return {"idToken": TOKEN, "action": action, "conversationId": conversation_id, **extra}


async def _connect(client, platform, **body):
    resp = await client.put(f"/api/v1/tools/connections/{platform}", json=body, headers=AUTH)
    assert resp.status_code == 200
    return resp.json()["data"]


async def test_missing_token_is_401(client, seed):
    await seed("c1")
    resp = await client.post(
        "/api/v1/tools", json={"action": "get_available_tools", "conversationId": "c1"}
    )
    assert resp.status_code == 401
    assert resp.json()["code"] == "AUTH_FAILED"


@pytest.mark.parametrize(
    "body",
    [
        {"idToken": TOKEN},
        {"idToken": TOKEN, "action": "get_available_tools"},
        {"idToken": TOKEN, "conversationId": "c1"},
        {"idToken": TOKEN, "action": "", "conversationId": "c1"},
    ],
)
async def test_missing_action_or_conversation_is_400(client, body):
    resp = await client.post("/api/v1/tools", json=body)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing action or conversation ID"


async def test_unknown_conversation_is_404(client):
    resp = await client.post("/api/v1/tools", json=_action("get_available_tools", "ghost"))
    assert resp.status_code == 404


async def test_invalid_action_is_400(client, seed):
    await seed("c1")
    resp = await client.post("/api/v1/tools", json=_action("delete_everything"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid action"


async def test_available_tools_follow_connections(client, seed):
    await seed("c1")

    resp = await client.post("/api/v1/tools", json=_action("get_available_tools"))
    assert resp.json() == {"availableTools": []}

    await _connect(client, "jira")
    await _connect(client, "slack", status="disconnected")
    tools = (await client.post("/api/v1/tools", json=_action("get_available_tools"))).json()
    assert [t["type"] for t in tools["availableTools"]] == ["jira_ticket"]

    await _connect(client, "slack")
    tools = (await client.post("/api/v1/tools", json=_action("get_available_tools"))).json()
    assert [t["type"] for t in tools["availableTools"]] == ["jira_ticket", "slack_notification"]


async def test_escalation_walks_connect_select_create(client, db, seed):
    await seed("c1", messages=[("user", "VPN keeps dropping")], title="VPN Drops")
    escalate = _action("escalate_to_ticket", toolType="ticket_creation")

    resp = await client.post("/api/v1/tools", json=escalate)
    assert resp.status_code == 200
    assert resp.json()["action"] == "connect_jira"

    await _connect(client, "jira", default_project="OPS")
    step = (await client.post("/api/v1/tools", json=escalate)).json()
    assert step["action"] == "select_project"
    projects = step["data"]["projects"]
    assert [p["key"] for p in projects] == ["IT", "DEV", "OPS"]
    assert [p["current"] for p in projects] == [False, False, True]

    resp = await client.post(
        "/api/v1/tools", json=_action("select_project", projectName="Operations")
    )
    assert resp.json() == {
        "success": True,
        "projectSelected": "Operations",
        "message": "Project selected successfully",
    }

    step = (await client.post("/api/v1/tools", json=escalate)).json()
    assert step["action"] == "create_ticket"
    assert step["data"]["project"] == "Operations"
    assert step["data"]["ticketDetails"]["subject"] == "VPN Drops"

    async with db.get_session() as s:
        async with s.begin():
            conv = await repository.get_conversation(s, user_id=USER_ID, conversation_id="c1")
            rows = await repository.fetch_recent_messages(s, user_id=USER_ID, conversation_id="c1")
    assert conv.selected_project == "Operations"
    assert rows[-1].content == 'Project "Operations" selected for ticket creation.'


async def test_escalation_requires_ticket_tool_type(client, seed):
    await seed("c1")
    resp = await client.post(
        "/api/v1/tools", json=_action("escalate_to_ticket", toolType="slack_notification")
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid tool type for escalation"


async def test_select_project_requires_name(client, seed):
    await seed("c1")
    resp = await client.post("/api/v1/tools", json=_action("select_project"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing project name"


async def test_execute_tool_dispatches_to_platform_function(client, seed):
    await seed("c1")
    data = {"summary": "Printer offline", "priority": "High"}

    resp = await client.post(
        "/api/v1/tools", json=_action("execute_tool", toolType="jira_ticket", toolData=data)
    )
    assert resp.json() == {"action": "call_jira_function", "toolType": "jira_ticket", "data": data}

    resp = await client.post("/api/v1/tools", json=_action("execute_tool"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing tool type"

    resp = await client.post("/api/v1/tools", json=_action("execute_tool", toolType="fax"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Unsupported tool type"


async def test_connections_are_scoped_to_caller(client, db):
    await _connect(client, "jira", default_project="IT")

    listed = (await client.get("/api/v1/tools/connections", headers=AUTH)).json()["data"]
    assert listed["total"] == 1
    assert listed["items"][0]["platform"] == "jira"
    assert listed["items"][0]["status"] == "connected"

    resp = await client.get(
        "/api/v1/tools/connections", headers={"Authorization": "Bearer token-bob"}
    )
    assert resp.json()["data"]["total"] == 0

    async with db.get_session() as s:
        async with s.begin():
            conn = await tools_repository.get_connection(s, user_id=USER_ID, platform=Platform.JIRA)
    assert conn.status == ConnectionStatus.CONNECTED
    assert conn.default_project == "IT"


async def test_unknown_platform_is_400(client):
    resp = await client.put("/api/v1/tools/connections/teams", json={}, headers=AUTH)
    assert resp.status_code == 400

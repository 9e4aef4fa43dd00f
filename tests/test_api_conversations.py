from __future__ import annotations

from tests.conftest import TOKEN

AUTH = {"Authorization": f"Bearer {TOKEN}"}


async def test_requires_bearer_token(client):
    resp = await client.get("/api/v1/conversations")
    assert resp.status_code == 401
    assert resp.json()["code"] == "AUTH_FAILED"


async def test_create_list_and_get(client):
    resp = await client.post("/api/v1/conversations", json={"id": "c1"}, headers=AUTH)
    assert resp.status_code == 200
    created = resp.json()["data"]
    assert created["id"] == "c1"
    assert created["title"] == "New Chat"

    resp = await client.post("/api/v1/conversations", json={"title": "VPN"}, headers=AUTH)
    generated_id = resp.json()["data"]["id"]
    assert generated_id

    listed = (await client.get("/api/v1/conversations", headers=AUTH)).json()["data"]
    assert listed["total"] == 2
    assert {c["id"] for c in listed["items"]} == {"c1", generated_id}

    fetched = (await client.get(f"/api/v1/conversations/{generated_id}", headers=AUTH)).json()
    assert fetched["data"]["title"] == "VPN"


async def test_duplicate_id_rejected(client):
    await client.post("/api/v1/conversations", json={"id": "c1"}, headers=AUTH)
    resp = await client.post("/api/v1/conversations", json={"id": "c1"}, headers=AUTH)
    assert resp.status_code == 400


async def test_unknown_conversation_is_404(client):
    resp = await client.get("/api/v1/conversations/ghost", headers=AUTH)
    assert resp.status_code == 404
    resp = await client.get("/api/v1/conversations/ghost/messages", headers=AUTH)
    assert resp.status_code == 404


async def test_user_message_then_chat_turn(client, completions):
    await client.post("/api/v1/conversations", json={"id": "c1"}, headers=AUTH)

    resp = await client.post(
        "/api/v1/conversations/c1/messages", json={"content": "Outlook won't open"}, headers=AUTH
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "user"

    completions.replies = ["Start Outlook in safe mode."]
    resp = await client.post("/api/v1/chat", json={"idToken": TOKEN, "conversationId": "c1"})
    assert resp.status_code == 200

    messages = (await client.get("/api/v1/conversations/c1/messages", headers=AUTH)).json()["data"]
    assert [(m["role"], m["content"]) for m in messages["items"]] == [
        ("user", "Outlook won't open"),
        ("assistant", "Start Outlook in safe mode."),
    ]
    conv = (await client.get("/api/v1/conversations/c1", headers=AUTH)).json()["data"]
    assert conv["last_message"] == "Start Outlook in safe mode."
    assert conv["title"] == completions.title


async def test_empty_message_is_400(client):
    await client.post("/api/v1/conversations", json={"id": "c1"}, headers=AUTH)
    resp = await client.post("/api/v1/conversations/c1/messages", json={"content": ""}, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["code"] == "VALIDATION_ERROR"

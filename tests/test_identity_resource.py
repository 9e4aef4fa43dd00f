from __future__ import annotations

import json

import httpx
import pytest

from infra.resources import IdentityResource, IdentityServiceHTTPError

BASE_URL = "http://identity.test"


def make_resource(handler) -> IdentityResource:
    resource = IdentityResource(
        base_url=BASE_URL, api_key="web-key", project_id="fixie-prod", admin_token="admin"
    )
    resource.client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(handler)
    )
    return resource


async def test_lookup_posts_token_with_api_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["key"] = request.url.params.get("key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"users": [{"localId": "uid-1", "email": "a@b.c"}]})

    resource = make_resource(handler)
    account = await resource.lookup("tok")
    await resource.shutdown()

    assert account["localId"] == "uid-1"
    assert seen == {"path": "/v1/accounts:lookup", "key": "web-key", "body": {"idToken": "tok"}}


async def test_lookup_error_carries_status_and_code():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": 400, "message": "INVALID_ID_TOKEN"}})

    resource = make_resource(handler)
    with pytest.raises(IdentityServiceHTTPError) as excinfo:
        await resource.lookup("tok")
    assert excinfo.value.status_code == 400
    assert excinfo.value.code == "INVALID_ID_TOKEN"


async def test_lookup_without_users_is_rejected():
    resource = make_resource(lambda request: httpx.Response(200, json={}))
    with pytest.raises(IdentityServiceHTTPError) as excinfo:
        await resource.lookup("tok")
    assert excinfo.value.code == "USER_NOT_FOUND"


async def test_list_users_pages_with_admin_token():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"users": [], "nextPageToken": "p2"})

    resource = make_resource(handler)
    page = await resource.list_users(max_results=1000, page_token="p1")

    assert page["nextPageToken"] == "p2"
    assert seen["path"] == "/v1/projects/fixie-prod/accounts:batchGet"
    assert seen["params"] == {"maxResults": "1000", "nextPageToken": "p1"}
    assert seen["auth"] == "Bearer admin"


async def test_delete_user():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={})

    resource = make_resource(handler)
    await resource.delete_user("uid-9")
    assert seen == {"path": "/v1/projects/fixie-prod/accounts:delete", "body": {"localId": "uid-9"}}


async def test_uninitialised_client():
    resource = IdentityResource(base_url=BASE_URL, api_key="k", project_id="p")
    with pytest.raises(RuntimeError):
        await resource.lookup("tok")

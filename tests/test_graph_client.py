import socket

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from teams_admin.graph_client import GraphClient

TOKEN = "test-token"
USER_ID = "6e3d5c1a-0b7f-4a57-9a59-5b1f4f3cbe01"
GUEST_ID = "1f0e9d8c-7b6a-4c5d-8e9f-0a1b2c3d4e5f"
GROUP_ID = "0c3b6d2e-9f8a-4b7c-8d6e-5f4a3b2c1d0e"


def build_graph_app(calls):
    async def get_user(request):
        calls.append(request)
        if request.match_info["email"] == "known@org.com":
            return web.json_response({"id": USER_ID})
        return web.json_response({"error": {"code": "Request_ResourceNotFound"}}, status=404)

    async def invite(request):
        body = await request.json()
        calls.append((request, body))
        if body["invitedUserEmailAddress"].endswith("@blocked.com"):
            return web.json_response({"error": {"code": "BadRequest"}}, status=400)
        return web.json_response({"id": "inv-1", "invitedUser": {"id": GUEST_ID}}, status=201)

    async def groups(request):
        body = await request.json()
        calls.append((request, body))
        return web.json_response({"id": GROUP_ID}, status=201)

    async def find_group(request):
        calls.append(request)
        if "Missing" in request.query["$filter"]:
            return web.json_response({"value": []})
        return web.json_response({"value": [{"id": GROUP_ID}, {"id": USER_ID}]})

    async def create_team(request):
        body = await request.json()
        calls.append((request, body))
        if request.match_info["group_id"] == "not-ready":
            return web.json_response({"error": {"code": "NotFound"}}, status=404)
        return web.json_response({"id": request.match_info["group_id"]}, status=201)

    async def add_member(request):
        body = await request.json()
        calls.append((request, body))
        return web.Response(status=204)

    async def channels(request):
        return web.Response(text="created", content_type="text/plain", status=201)

    app = web.Application()
    app.router.add_get("/users/{email}", get_user)
    app.router.add_post("/invitations", invite)
    app.router.add_post("/groups", groups)
    app.router.add_get("/groups", find_group)
    app.router.add_put("/groups/{group_id}/team", create_team)
    app.router.add_post("/groups/{group_id}/members/{ref}", add_member)
    app.router.add_post("/teams/{team_id}/channels", channels)
    return app


@pytest_asyncio.fixture
async def graph():
    calls = []
    async with TestServer(build_graph_app(calls)) as server:
        client = GraphClient(root_uri=str(server.make_url("/")), timeout_seconds=5)
        yield client, calls


@pytest.mark.asyncio
async def test_get_user_id_sends_bearer_token(graph):
    client, calls = graph

    assert await client.get_user_id(TOKEN, "known@org.com") == USER_ID

    request = calls[0]
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    assert request.headers["Accept"] == "application/json"
    assert request.query["$select"] == "id"


@pytest.mark.asyncio
async def test_get_user_id_miss_returns_none(graph):
    client, _ = graph

    assert await client.get_user_id(TOKEN, "nobody@org.com") is None


@pytest.mark.asyncio
async def test_invite_guest_returns_invited_user_id(graph):
    client, calls = graph

    assert await client.invite_guest(TOKEN, "guest@partner.com") == GUEST_ID

    _, body = calls[0]
    assert body["invitedUserEmailAddress"] == "guest@partner.com"
    assert body["sendInvitationMessage"] is True
    assert body["inviteRedirectUrl"] == client.invite_redirect_url


@pytest.mark.asyncio
async def test_invite_guest_rejected_returns_none(graph):
    client, _ = graph

    assert await client.invite_guest(TOKEN, "someone@blocked.com") is None


@pytest.mark.asyncio
async def test_create_group_binds_owner(graph):
    client, calls = graph

    assert await client.create_group(TOKEN, "IT Help-Desk", USER_ID) == GROUP_ID

    _, body = calls[0]
    assert body["displayName"] == "IT Help-Desk"
    assert body["groupTypes"] == ["Unified"]
    assert body["mailNickname"].startswith("ITHelpDesk")
    assert body["owners@odata.bind"] == [f"{client.root_uri}users/{USER_ID}"]


@pytest.mark.asyncio
async def test_create_team_failure_returns_none(graph):
    client, _ = graph

    assert await client.create_team(TOKEN, GROUP_ID) == GROUP_ID
    assert await client.create_team(TOKEN, "not-ready") is None


@pytest.mark.asyncio
async def test_add_member_accepts_empty_response(graph):
    client, calls = graph

    assert await client.add_member(TOKEN, GROUP_ID, USER_ID) is True

    _, body = calls[0]
    assert body["@odata.id"] == f"{client.root_uri}directoryObjects/{USER_ID}"


@pytest.mark.asyncio
async def test_get_group_id_takes_first_match_and_escapes_quotes(graph):
    client, calls = graph

    assert await client.get_group_id(TOKEN, "Bob's Team") == GROUP_ID
    assert calls[0].query["$filter"] == "displayName eq 'Bob''s Team'"

    assert await client.get_group_id(TOKEN, "Missing Team") is None


@pytest.mark.asyncio
async def test_non_json_success_is_a_failure(graph):
    client, _ = graph

    assert await client.create_channel(TOKEN, GROUP_ID, "General", "General") is None


@pytest.mark.asyncio
async def test_transport_error_is_a_failure():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    client = GraphClient(root_uri=f"http://127.0.0.1:{port}/", timeout_seconds=2)

    assert await client.get_user_id(TOKEN, "known@org.com") is None
    assert await client.add_member(TOKEN, GROUP_ID, USER_ID) is False


"""Tests for board, member and list endpoints."""
import pytest
from httpx import AsyncClient

from factories import OWNER, headers


@pytest.mark.asyncio
async def test_create_board_from_default_template(client: AsyncClient):
    """Test creating a board lays out the default stages."""
    response = await client.post(
        "/v1/boards/", json={"name": "Launch", "description": "Q4", "projectId": "proj_1"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Launch"
    assert data["project_id"] == "proj_1"
    assert data["created_by"] == OWNER
    assert [lst["title"] for lst in data["lists"]] == ["To Do", "In Progress", "Review", "Done"]
    assert [lst["position"] for lst in data["lists"]] == [1, 2, 3, 4]
    assert [lst["list_type"] for lst in data["lists"]] == ["todo", "in_progress", "review", "done"]
    assert data["members"] == [{"user_id": OWNER, "role": "owner", "added_at": data["members"][0]["added_at"]}]
    assert data["metadata"] == {"total_lists": 4, "total_cards": 0}


@pytest.mark.asyncio
async def test_create_board_unknown_template(client: AsyncClient):
    """Test an unknown template id is a 404."""
    response = await client.post("/v1/boards/", json={"name": "X", "templateId": "nope"})

    assert response.status_code == 404
    assert response.json()["type"] == "NotFound"


@pytest.mark.asyncio
async def test_create_board_requires_name(client: AsyncClient):
    """Test malformed bodies are 400 with the offending field."""
    response = await client.post("/v1/boards/", json={"name": ""})

    assert response.status_code == 400
    assert response.json()["field"] == "name"


@pytest.mark.asyncio
async def test_missing_identity_headers(client: AsyncClient):
    """Test requests without identity headers are rejected."""
    response = await client.post(
        "/v1/boards/", json={"name": "X"}, headers={"X-User-Id": "", "X-User-Role": ""}
    )
    assert response.status_code == 401

    response = await client.post(
        "/v1/boards/", json={"name": "X"}, headers={"X-User-Role": "wizard"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_board_not_found(client: AsyncClient):
    """Test fetching a missing board."""
    response = await client.get("/v1/boards/board_missing")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_board_includes_cards(client: AsyncClient, board: dict):
    """Test the board view lists cards per list."""
    todo = board["lists"][0]["id"]
    await client.post(f"/v1/boards/{board['id']}/cards", json={"listId": todo, "title": "First"})

    response = await client.get(f"/v1/boards/{board['id']}")

    assert response.status_code == 200
    data = response.json()
    assert [c["title"] for c in data["lists"][0]["cards"]] == ["First"]
    assert data["lists"][1]["cards"] == []
    assert data["metadata"]["total_cards"] == 1


@pytest.mark.asyncio
async def test_non_member_forbidden(client: AsyncClient, board: dict):
    """Test users outside the board cannot read it."""
    response = await client.get(f"/v1/boards/{board['id']}", headers=headers("stranger"))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_global_admin_bypasses_membership(client: AsyncClient, board: dict):
    """Test global admins reach any board."""
    response = await client.get(f"/v1/boards/{board['id']}", headers=headers("root", "superadmin"))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_board_members(client: AsyncClient, board: dict):
    """Test adding, re-roling and removing board members."""
    url = f"/v1/boards/{board['id']}/members"

    response = await client.post(url, json={"userId": "viewer_1", "role": "viewer"})
    assert response.status_code == 200
    assert response.json()["role"] == "viewer"

    # Viewers can read but not write
    response = await client.get(f"/v1/boards/{board['id']}", headers=headers("viewer_1"))
    assert response.status_code == 200
    response = await client.post(
        f"/v1/boards/{board['id']}/lists", json={"title": "Nope"}, headers=headers("viewer_1")
    )
    assert response.status_code == 403

    response = await client.post(url, json={"userId": "viewer_1", "role": "editor"})
    assert response.json()["role"] == "editor"
    response = await client.post(
        f"/v1/boards/{board['id']}/lists", json={"title": "Backlog"}, headers=headers("viewer_1")
    )
    assert response.status_code == 201

    # Editors cannot manage members
    response = await client.post(
        url, json={"userId": "someone", "role": "viewer"}, headers=headers("viewer_1")
    )
    assert response.status_code == 403

    response = await client.delete(f"{url}/viewer_1")
    assert response.status_code == 200
    response = await client.get(f"/v1/boards/{board['id']}", headers=headers("viewer_1"))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_creator_stays_owner(client: AsyncClient, board: dict):
    """Test the creator cannot be demoted or removed."""
    url = f"/v1/boards/{board['id']}/members"

    response = await client.post(url, json={"userId": OWNER, "role": "viewer"})
    assert response.status_code == 400

    response = await client.delete(f"{url}/{OWNER}")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_list_at_position(client: AsyncClient, board: dict):
    """Test inserting a list shifts later lists."""
    response = await client.post(
        f"/v1/boards/{board['id']}/lists",
        json={"title": "Backlog", "listType": "custom", "position": 1, "cardLimit": 5},
    )

    assert response.status_code == 201
    assert response.json()["position"] == 1
    assert response.json()["card_limit"] == 5

    data = (await client.get(f"/v1/boards/{board['id']}")).json()
    assert [lst["title"] for lst in data["lists"]] == [
        "Backlog", "To Do", "In Progress", "Review", "Done"
    ]
    assert data["metadata"]["total_lists"] == 5


@pytest.mark.asyncio
async def test_move_list(client: AsyncClient, board: dict):
    """Test moving Done to the front renumbers the rest."""
    done = board["lists"][3]["id"]

    response = await client.post(
        f"/v1/boards/{board['id']}/lists/{done}/move", json={"position": 1}
    )

    assert response.status_code == 200
    data = response.json()
    assert [lst["title"] for lst in data] == ["Done", "To Do", "In Progress", "Review"]
    assert [lst["position"] for lst in data] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_update_and_archive_list(client: AsyncClient, board: dict):
    """Test list fields update and archived lists refuse new cards."""
    review = board["lists"][2]["id"]
    url = f"/v1/boards/{board['id']}/lists/{review}"

    response = await client.put(url, json={"title": "QA", "cardLimit": 2})
    assert response.status_code == 200
    assert response.json()["title"] == "QA"
    assert response.json()["card_limit"] == 2

    response = await client.put(url, json={"isArchived": True})
    assert response.json()["is_archived"] is True

    response = await client.post(
        f"/v1/boards/{board['id']}/cards", json={"listId": review, "title": "Late"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_board_activity(client: AsyncClient, board: dict):
    """Test board actions appear in the activity feed."""
    await client.post(f"/v1/boards/{board['id']}/lists", json={"title": "Backlog"})

    response = await client.get(f"/v1/boards/{board['id']}/activity")

    assert response.status_code == 200
    types = [a["type"] for a in response.json()]
    assert "board_created" in types
    assert "list_created" in types
    assert all(a["actor_id"] == OWNER for a in response.json())

"""Tests for task, dependency and subtask endpoints."""
import pytest
import pytest_asyncio
from httpx import AsyncClient

from kanbanflow.config import settings

from factories import headers


@pytest_asyncio.fixture
async def card(client: AsyncClient, board: dict) -> dict:
    response = await client.post(
        f"/v1/boards/{board['id']}/cards",
        json={"listId": board["lists"][0]["id"], "title": "Feature"},
    )
    return response.json()


async def _task(client: AsyncClient, card: dict, title: str, **extra) -> dict:
    response = await client.post(f"/v1/cards/{card['id']}/tasks", json={"title": title, **extra})
    assert response.status_code == 201, response.text
    return response.json()["task"]


@pytest.mark.asyncio
async def test_create_task(client: AsyncClient, card: dict):
    """Test creating a task returns it with no unlock side results."""
    response = await client.post(
        f"/v1/cards/{card['id']}/tasks",
        json={"title": "Write docs", "priority": "high", "assignedTo": ["alice"]},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["task"]["title"] == "Write docs"
    assert data["task"]["priority"] == "high"
    assert data["task"]["assigned_to"] == ["alice"]
    assert data["task"]["position"] == 1
    assert data["unlocked_tasks"] == []
    assert data["workflow"] is None


@pytest.mark.asyncio
async def test_create_task_survives_broken_webhook(client: AsyncClient, card: dict, monkeypatch):
    """Test a notifier error after the save still returns the created task."""
    monkeypatch.setattr(settings, "slack_webhook_url", "http://[::1/hook")

    response = await client.post(
        f"/v1/cards/{card['id']}/tasks", json={"title": "Notify me", "assignedTo": ["bob"]}
    )

    assert response.status_code == 201
    tasks = (await client.get(f"/v1/cards/{card['id']}")).json()["tasks"]
    assert [t["title"] for t in tasks] == ["Notify me"]


@pytest.mark.asyncio
async def test_create_task_validation(client: AsyncClient, card: dict):
    """Test blank titles and unknown dependencies are rejected."""
    response = await client.post(f"/v1/cards/{card['id']}/tasks", json={"title": " "})
    assert response.status_code == 400
    assert response.json()["field"] == "title"

    response = await client.post(
        f"/v1/cards/{card['id']}/tasks", json={"title": "X", "dependsOn": "task_missing"}
    )
    assert response.status_code == 404
    assert response.json()["field"] == "dependsOn"


@pytest.mark.asyncio
async def test_locked_task_cannot_be_completed(client: AsyncClient, card: dict):
    """Test completing a locked task is a 403 and leaves it untouched."""
    first = await _task(client, card, "Design")
    second = await _task(client, card, "Build", dependsOn=first["id"])
    assert second["is_locked"] is True
    assert second["locked_reason"] == "Waiting for: Design"

    response = await client.put(
        f"/v1/cards/{card['id']}/tasks/{second['id']}", json={"completed": True}
    )

    assert response.status_code == 403
    task = (await client.get(f"/v1/cards/{card['id']}/tasks/{second['id']}")).json()["task"]
    assert task["completed"] is False
    assert task["is_locked"] is True


@pytest.mark.asyncio
async def test_completion_unlocks_and_advances(client: AsyncClient, board: dict, card: dict):
    """Test the A/B scenario: unlock, auto-assign, then stage advance."""
    first = await _task(client, card, "Design", assignedTo=["alice"])
    second = await _task(
        client,
        card,
        "Build",
        dependsOn=first["id"],
        autoAssignOnUnlock=True,
        assignToOnUnlock=["bob"],
    )
    url = f"/v1/cards/{card['id']}/tasks"

    response = await client.put(f"{url}/{first['id']}", json={"completed": True})
    assert response.status_code == 200
    data = response.json()
    assert data["task"]["completed"] is True
    assert [t["id"] for t in data["unlocked_tasks"]] == [second["id"]]
    assert data["unlocked_tasks"][0]["assigned_to"] == ["bob"]
    assert data["unlocked_tasks"][0]["is_locked"] is False
    assert data["workflow"] is None

    response = await client.put(f"{url}/{second['id']}", json={"completed": True})
    assert response.json()["workflow"] == {
        "advanced": True, "fromStage": 0, "toStage": 1, "completed": False
    }

    moved = (await client.get(f"/v1/cards/{card['id']}")).json()
    assert moved["list_id"] == board["lists"][1]["id"]
    assert moved["current_stage_index"] == 1
    assert moved["status"] == "in_progress"

    activity = (await client.get(f"/v1/cards/{card['id']}/activity")).json()
    types = [a["type"] for a in activity]
    assert "task_completed" in types
    assert "task_unlocked" in types
    automatic = [a for a in activity if a["type"] == "card_moved"]
    assert automatic and automatic[0]["metadata"]["automatic"] is True


@pytest.mark.asyncio
async def test_completing_twice_changes_nothing(client: AsyncClient, card: dict):
    """Test a repeated completion reports no unlocks."""
    first = await _task(client, card, "Design")
    await _task(client, card, "Build", dependsOn=first["id"])
    url = f"/v1/cards/{card['id']}/tasks/{first['id']}"

    await client.put(url, json={"completed": True})
    response = await client.put(url, json={"completed": True})

    assert response.status_code == 200
    assert response.json()["unlocked_tasks"] == []


@pytest.mark.asyncio
async def test_uncomplete_relocks(client: AsyncClient, card: dict):
    """Test reopening a predecessor locks its dependent again."""
    first = await _task(client, card, "Design")
    second = await _task(client, card, "Build", dependsOn=first["id"])
    url = f"/v1/cards/{card['id']}/tasks/{first['id']}"
    await client.put(url, json={"completed": True})

    response = await client.put(url, json={"completed": False})

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["relocked_tasks"]] == [second["id"]]
    assert response.json()["relocked_tasks"][0]["is_locked"] is True


@pytest.mark.asyncio
async def test_completed_task_rejects_open_dependency(client: AsyncClient, card: dict):
    """Test a finished task cannot be made to wait on an open one."""
    done = await _task(client, card, "Design")
    pending = await _task(client, card, "Build")
    url = f"/v1/cards/{card['id']}/tasks/{done['id']}"
    await client.put(url, json={"completed": True})

    response = await client.put(url, json={"dependsOn": pending["id"]})

    assert response.status_code == 400
    assert response.json()["field"] == "dependsOn"
    task = (await client.get(url)).json()["task"]
    assert task["completed"] is True
    assert task["is_locked"] is False
    assert task["depends_on"] is None


@pytest.mark.asyncio
async def test_update_fields_and_dependency(client: AsyncClient, card: dict):
    """Test partial updates, clearing dependsOn and cycle rejection."""
    first = await _task(client, card, "Design")
    second = await _task(client, card, "Build", dependsOn=first["id"])
    url = f"/v1/cards/{card['id']}/tasks"

    response = await client.put(f"{url}/{first['id']}", json={"dependsOn": second["id"]})
    assert response.status_code == 400
    assert "cycle" in response.json()["detail"]

    response = await client.put(
        f"{url}/{second['id']}", json={"title": "Build it", "dependsOn": None}
    )
    assert response.status_code == 200
    task = response.json()["task"]
    assert task["title"] == "Build it"
    assert task["depends_on"] is None
    assert task["is_locked"] is False
    # Omitted fields are left alone
    assert task["priority"] == "medium"


@pytest.mark.asyncio
async def test_get_task_details(client: AsyncClient, card: dict):
    """Test dependency chain, can_start and progress."""
    a = await _task(client, card, "A")
    b = await _task(client, card, "B", dependsOn=a["id"])
    c = await _task(client, card, "C", dependsOn=b["id"])

    response = await client.get(f"/v1/cards/{card['id']}/tasks/{c['id']}")

    assert response.status_code == 200
    data = response.json()
    assert [link["title"] for link in data["dependency_chain"]] == ["A", "B"]
    assert data["can_start"] is False
    assert data["progress"] == 0

    response = await client.get(f"/v1/cards/{card['id']}/tasks/task_missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_predecessor_releases_dependent(client: AsyncClient, card: dict):
    """Test deleting a predecessor unlocks its dependent."""
    first = await _task(client, card, "Design")
    second = await _task(client, card, "Build", dependsOn=first["id"])

    response = await client.delete(f"/v1/cards/{card['id']}/tasks/{first['id']}")

    assert response.status_code == 200
    assert [t["id"] for t in response.json()["unlocked_tasks"]] == [second["id"]]
    tasks = (await client.get(f"/v1/cards/{card['id']}")).json()["tasks"]
    assert [(t["title"], t["position"], t["is_locked"]) for t in tasks] == [("Build", 1, False)]


@pytest.mark.asyncio
async def test_move_task(client: AsyncClient, card: dict):
    """Test reordering tasks on a card."""
    await _task(client, card, "A")
    await _task(client, card, "B")
    c = await _task(client, card, "C")

    response = await client.post(
        f"/v1/cards/{card['id']}/tasks/{c['id']}/move", json={"position": 1}
    )

    assert response.status_code == 200
    assert [(t["title"], t["position"]) for t in response.json()] == [("C", 1), ("A", 2), ("B", 3)]


@pytest.mark.asyncio
async def test_subtasks(client: AsyncClient, card: dict):
    """Test subtask lifecycle drives task progress."""
    task = await _task(client, card, "Build")
    url = f"/v1/cards/{card['id']}/tasks/{task['id']}/subtasks"

    one = (await client.post(url, json={"text": "One"})).json()
    two = (await client.post(url, json={"text": "Two"})).json()
    assert (one["position"], two["position"]) == (1, 2)

    response = await client.put(f"{url}/{one['id']}", json={"completed": True})
    assert response.status_code == 200
    assert response.json()["completed"] is True

    detail = (await client.get(f"/v1/cards/{card['id']}/tasks/{task['id']}")).json()
    assert detail["progress"] == 50

    response = await client.delete(f"{url}/{one['id']}")
    assert response.status_code == 200
    detail = (await client.get(f"/v1/cards/{card['id']}/tasks/{task['id']}")).json()
    assert [(s["text"], s["position"]) for s in detail["task"]["subtasks"]] == [("Two", 1)]
    assert detail["progress"] == 0


@pytest.mark.asyncio
async def test_viewer_cannot_change_tasks(client: AsyncClient, board: dict, card: dict):
    """Test board viewers read tasks but cannot write them."""
    await client.post(
        f"/v1/boards/{board['id']}/members", json={"userId": "vic", "role": "viewer"}
    )
    task = await _task(client, card, "Design")

    viewer = headers("vic")
    url = f"/v1/cards/{card['id']}/tasks/{task['id']}"
    assert (await client.get(url, headers=viewer)).status_code == 200
    assert (await client.put(url, json={"completed": True}, headers=viewer)).status_code == 403
    assert (await client.delete(url, headers=viewer)).status_code == 403


@pytest.mark.asyncio
async def test_terminal_stage_completes_card(client: AsyncClient, board: dict):
    """Test finishing work in the last stage completes the card in place."""
    done = board["lists"][3]["id"]
    card = (
        await client.post(f"/v1/boards/{board['id']}/cards", json={"listId": done, "title": "Ship"})
    ).json()
    task = await _task(client, card, "Release")

    response = await client.put(
        f"/v1/cards/{card['id']}/tasks/{task['id']}", json={"completed": True}
    )

    assert response.json()["workflow"]["completed"] is True
    data = (await client.get(f"/v1/cards/{card['id']}")).json()
    assert data["is_completed"] is True
    assert data["list_id"] == done

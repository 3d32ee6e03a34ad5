# ---------- tests/test_api_notifications.py ----------
from fastapi.testclient import TestClient

from backend.models import Notification


def _notify(session, user, title="Hello", is_read=False, todo_id=None):
    notification = Notification(
        title=title, message=f"{title} message", type="todo_updated", user_id=user.id, is_read=is_read, todo_id=todo_id
    )
    session.add(notification)
    session.commit()
    session.refresh(notification)
    return notification


def test_assignment_then_read_flow(client: TestClient, user_token_headers, other_token_headers, other_user):
    """Assigning a todo notifies the assignee, who reads it."""
    client.post("/api/todos", json={"title": "Write report", "assignee_id": other_user.id}, headers=user_token_headers)

    response = client.get("/api/notifications", headers=other_token_headers)
    data = response.json()["data"]
    assert data["unread_count"] == 1
    notification = data["notifications"][0]
    assert notification["type"] == "todo_assigned"
    assert notification["is_read"] is False
    assert notification["todo"]["title"] == "Write report"

    response = client.put(f"/api/notifications/{notification['id']}", json={"is_read": True}, headers=other_token_headers)
    assert response.status_code == 200
    assert response.json()["data"]["read_at"] is not None

    response = client.get("/api/notifications/unread-count", headers=other_token_headers)
    assert response.json()["data"] == {"count": 0}


def test_list_notifications_pagination(client: TestClient, session, user_token_headers, test_user):
    for i in range(3):
        _notify(session, test_user, title=f"N{i}")
    _notify(session, test_user, title="Old", is_read=True)

    response = client.get("/api/notifications", params={"limit": 2}, headers=user_token_headers)

    data = response.json()["data"]
    assert len(data["notifications"]) == 2
    assert data["unread_count"] == 3
    assert data["pagination"] == {
        "current_page": 1,
        "total_pages": 2,
        "total_items": 4,
        "items_per_page": 2,
        "has_next_page": True,
        "has_previous_page": False,
    }

    response = client.get("/api/notifications", params={"unread": "true"}, headers=user_token_headers)
    titles = {n["title"] for n in response.json()["data"]["notifications"]}
    assert titles == {"N0", "N1", "N2"}


def test_notifications_are_private(client: TestClient, session, user_token_headers, other_token_headers, other_user):
    notification = _notify(session, other_user)

    response = client.get("/api/notifications", headers=user_token_headers)
    assert response.json()["data"]["notifications"] == []

    response = client.put(f"/api/notifications/{notification.id}", json={"is_read": True}, headers=user_token_headers)
    assert response.status_code == 403

    response = client.delete(f"/api/notifications/{notification.id}", headers=user_token_headers)
    assert response.status_code == 403


def test_mark_unread_clears_read_at(client: TestClient, session, user_token_headers, test_user):
    notification = _notify(session, test_user)

    client.put(f"/api/notifications/{notification.id}", headers=user_token_headers)
    response = client.put(f"/api/notifications/{notification.id}", json={"is_read": False}, headers=user_token_headers)

    data = response.json()["data"]
    assert data["is_read"] is False
    assert data["read_at"] is None


def test_mark_read_defaults_to_true(client: TestClient, session, user_token_headers, test_user):
    notification = _notify(session, test_user)

    response = client.put(f"/api/notifications/{notification.id}", headers=user_token_headers)

    assert response.status_code == 200
    assert response.json()["data"]["is_read"] is True


def test_delete_notification(client: TestClient, session, user_token_headers, test_user):
    notification = _notify(session, test_user)
    notification_id = notification.id

    response = client.delete(f"/api/notifications/{notification_id}", headers=user_token_headers)

    assert response.status_code == 200
    assert session.get(Notification, notification_id) is None
    assert client.delete(f"/api/notifications/{notification_id}", headers=user_token_headers).status_code == 404


def test_no_creation_endpoint(client: TestClient, user_token_headers):
    response = client.post("/api/notifications", json={"title": "x"}, headers=user_token_headers)
    assert response.status_code == 405

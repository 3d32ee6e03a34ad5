# ---------- tests/test_notifications.py ----------
from sqlmodel import select

from backend.models import Notification, NotificationType
from backend.notifications import NotificationEmitter


def test_assigned_notification(session, test_user, other_user, test_todo):
    notification = NotificationEmitter(session).todo_assigned(test_todo, test_user)

    assert notification.user_id == other_user.id
    assert notification.todo_id == test_todo.id
    assert notification.type == NotificationType.TODO_ASSIGNED.value
    assert notification.title == "New Todo Assigned"
    assert notification.is_read is False
    assert notification.details == {"creator_name": test_user.name, "todo_title": test_todo.title}


def test_no_notification_for_own_action(session, other_user, test_todo):
    emitter = NotificationEmitter(session)

    assert emitter.todo_assigned(test_todo, other_user) is None
    assert emitter.todo_completed(test_todo, other_user) is None
    assert session.exec(select(Notification)).all() == []


def test_updated_notification_requires_changes(session, test_user, test_todo):
    emitter = NotificationEmitter(session)

    assert emitter.todo_updated(test_todo, test_user, {}) is None

    changes = {"status": {"from": "PENDING", "to": "IN_PROGRESS"}}
    notification = emitter.todo_updated(test_todo, test_user, changes)
    assert notification.details == {"updated_by": test_user.name, "changes": changes}


def test_deleted_notification_has_no_todo_link(session, test_user, other_user):
    notification = NotificationEmitter(session).todo_deleted(other_user.id, "Gone", test_user)

    assert notification.todo_id is None
    assert notification.type == NotificationType.TODO_UPDATED.value
    assert notification.title == "Todo Deleted"
    assert "Gone" in notification.message


def test_failures_are_swallowed(session, monkeypatch, caplog, test_user, test_todo):
    emitter = NotificationEmitter(session)

    def broken_create(**fields):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(emitter.repo, "create", broken_create)

    assert emitter.todo_assigned(test_todo, test_user) is None
    assert "Failed to create todo_assigned notification" in caplog.text

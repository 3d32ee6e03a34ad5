# ---------- tests/test_database.py ----------
from datetime import timedelta

import pytest
from sqlalchemy import text
from sqlmodel import Session

from backend import database
from backend.database import get_db_session, init_db
from backend.models import Todo, utcnow


@pytest.fixture(name="bound_engine")
def bound_engine_fixture(engine, monkeypatch):
    """Point the module-level engine at the in-memory test database."""
    monkeypatch.setattr(database, "engine", engine)
    return engine


def test_init_db(bound_engine):
    """Test database initialization."""
    init_db()

    with Session(bound_engine) as session:
        result = session.execute(text("SELECT name FROM sqlite_master WHERE type='table'"))
        tables = {row[0] for row in result}

    assert {"user", "todo", "attachment", "notification"} <= tables


def test_foreign_keys_enforced(engine):
    with Session(engine) as session:
        assert session.execute(text("PRAGMA foreign_keys")).scalar_one() == 1


def test_database_cascade_on_raw_delete(session, test_user, test_todo):
    """Deleting a user row directly still removes its todos."""
    todo_id = test_todo.id
    session.execute(text("DELETE FROM user WHERE id = :id"), {"id": test_user.id})
    session.commit()
    session.expire_all()

    assert session.get(Todo, todo_id) is None


def test_get_db_session_context_manager(bound_engine):
    """Test the context manager for database sessions."""
    # Test successful transaction
    with get_db_session() as session:
        result = session.execute(text("SELECT 1")).scalar_one()
        assert result == 1

    # Test transaction rollback on exception
    with pytest.raises(ValueError):
        with get_db_session() as session:
            session.execute(text("SELECT 1"))
            raise ValueError("Test exception")


def test_seed_is_idempotent(bound_engine):
    from backend import seed

    seed.main()
    seed.main()

    with Session(bound_engine) as session:
        users = session.execute(text("SELECT email, role FROM user ORDER BY email")).all()
        todos = session.execute(text("SELECT COUNT(*) FROM todo")).scalar_one()

    assert ("admin@todoapp.com", "ADMIN") in users
    assert len(users) == 3
    assert todos == len(seed.DEMO_TODOS)


def test_timestamps_round_trip_as_naive_utc(session, test_user):
    """Stored timestamps come back as the same naive UTC values."""
    due = utcnow().replace(microsecond=0) + timedelta(days=3)
    todo = Todo(title="Dated", creator_id=test_user.id, assignee_id=test_user.id, due_date=due)
    session.add(todo)
    session.commit()
    todo_id = todo.id
    session.expire_all()

    stored = session.get(Todo, todo_id)
    assert stored.due_date == due
    assert stored.due_date.tzinfo is None
    assert stored.created_at.tzinfo is None

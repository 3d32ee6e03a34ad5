"""Populate an empty database with demo accounts and todos.

Run with ``python -m backend.seed``. Existing accounts are left untouched.
"""
from datetime import timedelta
from typing import Dict

from sqlmodel import Session

from logger import logger
from .database import get_db_session, init_db
from .models import Todo, TodoPriority, TodoStatus, User, UserRole, utcnow
from .repository import TodoRepository, UserRepository
from .schemas import UserCreate

DEMO_USERS = [
    {"key": "admin", "email": "admin@todoapp.com", "name": "Admin User", "password": "Admin123!", "role": UserRole.ADMIN},
    {"key": "john", "email": "john@example.com", "name": "John Doe", "password": "User123!", "role": UserRole.USER},
    {"key": "jane", "email": "jane@example.com", "name": "Jane Smith", "password": "User123!", "role": UserRole.USER},
]

# (title, description, creator, assignee, priority, status, due in days)
DEMO_TODOS = [
    ("Design new landing page", "Create mockups and prototypes for the new company landing page",
     "admin", "john", TodoPriority.HIGH, TodoStatus.PENDING, 7),
    ("Review database schema", "Review and optimize the current database schema for performance",
     "john", "jane", TodoPriority.MEDIUM, TodoStatus.IN_PROGRESS, 3),
    ("Update documentation", "Update the API documentation with new endpoints",
     "jane", "john", TodoPriority.LOW, TodoStatus.PENDING, 14),
    ("Fix critical bug in payment system", "Investigate and fix the payment processing issue reported by users",
     "admin", "jane", TodoPriority.URGENT, TodoStatus.PENDING, 1),
    ("Setup CI/CD pipeline", "Configure automated deployment pipeline",
     "john", "jane", TodoPriority.MEDIUM, TodoStatus.COMPLETED, None),
]


def seed_users(session: Session) -> Dict[str, User]:
    repo = UserRepository(session)
    users = {}
    for entry in DEMO_USERS:
        user = repo.get_by_email(entry["email"])
        if user is None:
            payload = UserCreate(name=entry["name"], email=entry["email"], password=entry["password"], role=entry["role"])
            user = repo.create_user(payload)
            logger.info(f"Created {entry['role'].value} account {user.email}")
        users[entry["key"]] = user
    return users


def seed_todos(session: Session, users: Dict[str, User]) -> int:
    if TodoRepository(session).count_where():
        logger.info("Todos already present, skipping sample todos")
        return 0
    now = utcnow()
    for position, (title, description, creator, assignee, priority, status, due_in) in enumerate(DEMO_TODOS, start=1):
        session.add(Todo(
            title=title,
            description=description,
            creator_id=users[creator].id,
            assignee_id=users[assignee].id,
            priority=priority,
            status=status,
            due_date=now + timedelta(days=due_in) if due_in is not None else None,
            completed_at=now if status == TodoStatus.COMPLETED else None,
            position=position,
        ))
    return len(DEMO_TODOS)


def main() -> None:
    init_db()
    with get_db_session() as session:
        users = seed_users(session)
        created = seed_todos(session, users)
    logger.info(f"Seed complete: {len(users)} users, {created} todos")


if __name__ == "__main__":
    main()

"""Access decisions over already-fetched users and todos.

Every predicate answers ``True``/``False``; turning a denial into a 403 or a
404 is the caller's job.
"""
from typing import Optional

from sqlmodel import Session

from .models import Attachment, Todo, User, UserRole


def require_admin(actor: Optional[User]) -> bool:
    return actor is not None and actor.role == UserRole.ADMIN


def can_access_user(actor: User, target_id: int) -> bool:
    return actor.id == target_id or require_admin(actor)


def can_access_todo(actor_id: int, todo: Optional[Todo]) -> bool:
    """Creator or assignee; viewing and editing share this rule."""
    if todo is None:
        return False
    return todo.involves(actor_id)


def can_delete_todo(actor_id: int, todo: Optional[Todo]) -> bool:
    return todo is not None and todo.creator_id == actor_id


def can_access_todo_id(session: Session, actor_id: int, todo_id: int) -> bool:
    """Same as can_access_todo, after a single lookup; a missing todo is denied."""
    return can_access_todo(actor_id, session.get(Todo, todo_id))


def can_access_attachment(actor_id: int, attachment: Optional[Attachment]) -> bool:
    """Uploader, or a participant of the todo the file is attached to."""
    if attachment is None:
        return False
    if attachment.uploaded_by_id == actor_id:
        return True
    return can_access_todo(actor_id, attachment.todo)

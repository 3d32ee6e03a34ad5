"""Notifications raised by todo lifecycle events.

Every trigger is fire-and-forget: a failure is logged and never reaches the
mutation that caused it. Nobody is notified about their own actions.
"""
from typing import Any, Dict, Optional

from sqlmodel import Session

from logger import logger
from .models import Notification, NotificationType, Todo, User
from .repository import NotificationRepository


class NotificationEmitter:
    def __init__(self, session: Session):
        self.repo = NotificationRepository(session)

    def _emit(
        self,
        *,
        recipient_id: int,
        actor: User,
        type: NotificationType,
        title: str,
        message: str,
        todo_id: Optional[int],
        details: Dict[str, Any],
    ) -> Optional[Notification]:
        if recipient_id == actor.id:
            return None
        try:
            return self.repo.create(
                title=title,
                message=message,
                type=type.value,
                user_id=recipient_id,
                todo_id=todo_id,
                details=details,
            )
        except Exception:
            logger.exception(f"Failed to create {type.value} notification for user {recipient_id}")
            return None

    def todo_assigned(self, todo: Todo, actor: User) -> Optional[Notification]:
        return self._emit(
            recipient_id=todo.assignee_id,
            actor=actor,
            type=NotificationType.TODO_ASSIGNED,
            title="New Todo Assigned",
            message=f'You have been assigned a new todo: "{todo.title}"',
            todo_id=todo.id,
            details={"creator_name": actor.name, "todo_title": todo.title},
        )

    def todo_updated(self, todo: Todo, actor: User, changes: Dict[str, Dict[str, Any]]) -> Optional[Notification]:
        if not changes:
            return None
        return self._emit(
            recipient_id=todo.assignee_id,
            actor=actor,
            type=NotificationType.TODO_UPDATED,
            title="Todo Updated",
            message=f'Your todo "{todo.title}" has been updated',
            todo_id=todo.id,
            details={"updated_by": actor.name, "changes": changes},
        )

    def todo_completed(self, todo: Todo, actor: User) -> Optional[Notification]:
        return self._emit(
            recipient_id=todo.assignee_id,
            actor=actor,
            type=NotificationType.TODO_COMPLETED,
            title="Todo Completed",
            message=f'Your todo "{todo.title}" has been marked as completed',
            todo_id=todo.id,
            details={"completed_by": actor.name},
        )

    def todo_deleted(self, assignee_id: int, title: str, actor: User) -> Optional[Notification]:
        # The todo row is gone, so the notification carries no todo link
        return self._emit(
            recipient_id=assignee_id,
            actor=actor,
            type=NotificationType.TODO_UPDATED,
            title="Todo Deleted",
            message=f'The todo "{title}" has been deleted by {actor.name}',
            todo_id=None,
            details={"deleted_by": actor.name, "todo_title": title},
        )

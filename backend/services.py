from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import UploadFile
from sqlmodel import Session, col

from logger import logger
from .errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from .models import Attachment, Notification, Todo, TodoStatus, User, utcnow
from .notifications import NotificationEmitter
from .policy import can_access_attachment, can_access_todo, can_access_user, can_delete_todo, require_admin
from .repository import AttachmentRepository, NotificationRepository, TodoRepository, UserRepository
from .schemas import (
    AttachmentRead,
    AuthResponse,
    NotificationRead,
    PasswordChange,
    RegisterRequest,
    TodoCreate,
    TodoRead,
    TodoUpdate,
    UserCounts,
    UserCreate,
    UserRead,
    UserReadWithCounts,
    UserSummary,
    UserUpdate,
)
from .security import get_password_hash, issue_token, verify_password
from .storage import IMAGE_MIME_TYPES, FileStore, build_stored_name, file_extension, format_file_size, timestamp_ms

# Fields whose changes are reported to the assignee
TRACKED_FIELDS = ("title", "description", "status", "priority", "due_date")
NON_NULLABLE_FIELDS = ("title", "status", "priority")
PROFILE_URL_PREFIX = "/api/uploads/profiles/"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def compute_todo_changes(todo: Todo, requested: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]]]:
    """Diff a requested update against the stored row.

    Returns the column updates to write (including the completed_at stamp)
    and the tracked changes as ``{field: {"from": old, "to": new}}``.
    """
    updates: Dict[str, Any] = {}
    changes: Dict[str, Dict[str, Any]] = {}
    for field, value in requested.items():
        if value is None and field in NON_NULLABLE_FIELDS:
            raise ValidationError(f"{field.capitalize()} cannot be empty")
        current = getattr(todo, field)
        if value == current:
            continue
        updates[field] = value
        if field in TRACKED_FIELDS:
            changes[field] = {"from": _jsonable(current), "to": _jsonable(value)}

    if "status" in updates:
        if updates["status"] == TodoStatus.COMPLETED:
            updates["completed_at"] = utcnow()
        elif todo.status == TodoStatus.COMPLETED:
            updates["completed_at"] = None
    return updates, changes


class UserService:
    """Accounts: registration, login, admin management and profile data."""

    def __init__(self, session: Session, store: Optional[FileStore] = None):
        self.session = session
        self.users = UserRepository(session)
        self.store = store or FileStore()

    def _auth_response(self, user: User) -> AuthResponse:
        token, expires_at = issue_token(user)
        return AuthResponse(user=UserRead.model_validate(user), token=token, expires_at=expires_at)

    def register(self, payload: RegisterRequest) -> AuthResponse:
        user = self.users.create_user(payload)
        logger.info(f"Registered user: {user.email}")
        return self._auth_response(user)

    def authenticate(self, email: str, password: str) -> User:
        user = self.users.get_by_email(email)
        if not user or not user.verify_password(password):
            logger.warning(f"Failed login attempt for user: {email}")
            raise UnauthorizedError("Invalid email or password")
        if not user.is_active:
            logger.warning(f"Login attempt for disabled account: {email}")
            raise UnauthorizedError("Account is disabled. Please contact administrator.")
        user = self.users.record_login(user)
        logger.info(f"Successful login for user: {email}")
        return user

    def login(self, email: str, password: str) -> AuthResponse:
        return self._auth_response(self.authenticate(email, password))

    def profile(self, user: User) -> Dict[str, Any]:
        counts = self.users.counts(user.id)
        return {
            "user": UserRead.model_validate(user),
            "stats": {
                "todos_created": counts["created_todos"],
                "todos_assigned": counts["assigned_todos"],
                "files_uploaded": counts["files"],
                "unread_notifications": NotificationRepository(self.session).unread_count(user.id),
            },
        }

    def with_counts(self, user: User) -> UserReadWithCounts:
        data = UserRead.model_validate(user).model_dump()
        return UserReadWithCounts(**data, counts=UserCounts(**self.users.counts(user.id)))

    def create(self, payload: UserCreate) -> UserReadWithCounts:
        user = self.users.create_user(payload)
        logger.info(f"Admin created user: {user.email} ({user.role.value})")
        return self.with_counts(user)

    def list_users(self, **filters) -> Tuple[List[UserReadWithCounts], int]:
        users, total = self.users.search(**filters)
        return [self.with_counts(user) for user in users], total

    def assignable(self, search: str = "", limit: int = 100) -> List[UserSummary]:
        return [UserSummary.model_validate(user) for user in self.users.list_assignable(search=search, limit=limit)]

    def get(self, actor: User, user_id: int) -> User:
        if not can_access_user(actor, user_id):
            raise ForbiddenError("Access denied")
        user = self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update(self, actor: User, user_id: int, payload: UserUpdate) -> User:
        if not can_access_user(actor, user_id):
            raise ForbiddenError("Access denied")

        requested = payload.model_dump(exclude_unset=True)
        if "is_active" in requested:
            if not require_admin(actor):
                raise ForbiddenError("Admin access required to change user status")
            if requested["is_active"] is None:
                raise ValidationError("is_active cannot be null")
            if requested["is_active"] is False and actor.id == user_id:
                raise ValidationError("Cannot disable your own account")
        if "name" in requested and requested["name"] is None:
            raise ValidationError("Name cannot be empty")

        user = self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return self.users.update(user, **requested)

    def delete(self, actor: User, user_id: int, hard: bool = False) -> Dict[str, Any]:
        if not require_admin(actor):
            raise ForbiddenError("Admin access required")
        if actor.id == user_id:
            raise ValidationError("Cannot delete your own account")

        user = self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")

        counts = self.users.counts(user_id)
        affected = {"todos": counts["created_todos"] + counts["assigned_todos"], "files": counts["files"]}

        if not hard:
            self.users.update(user, is_active=False, email=f"deleted_{timestamp_ms()}_{user.email}")
            logger.info(f"Deactivated user {user_id}")
            return {"message": "User deactivated successfully (data preserved)", "preserved_data": affected}

        # Collect on-disk objects before the cascade removes their catalog rows
        paths = {attachment.file_path for attachment in user.uploads}
        picture = self._own_picture_path(user)
        if picture is not None:
            paths.add(str(picture))
        for todo in list(user.created_todos) + list(user.assigned_todos):
            paths.update(attachment.file_path for attachment in todo.attachments)

        self.users.delete(user)
        for path in paths:
            self.store.remove(path)
        logger.info(f"Permanently deleted user {user_id} with {affected['todos']} todos and {len(paths)} files")
        return {"message": "User and all associated data deleted permanently", "deleted_data": affected}

    def change_password(self, actor: User, user_id: int, payload: PasswordChange) -> None:
        if not can_access_user(actor, user_id):
            raise ForbiddenError("Access denied")
        user = self.users.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        if not verify_password(payload.current_password, user.hashed_password):
            raise UnauthorizedError("Current password is incorrect")
        self.users.update(user, hashed_password=get_password_hash(payload.new_password))
        logger.info(f"Password changed for user {user_id}")

    async def set_profile_picture(self, actor: User, upload: UploadFile) -> User:
        data = await self.store.read_upload(upload)
        name = upload.filename or "profile"
        reason = self.store.rejection_reason(name, upload.content_type, len(data), allowed_types=IMAGE_MIME_TYPES)
        if reason:
            raise ValidationError(reason)

        file_name = f"{actor.id}-{timestamp_ms()}{file_extension(name)}"
        self.store.write(file_name, data, directory=self.store.profiles_dir)

        previous = self._own_picture_path(actor)
        user = self.users.update(actor, profile_pic=f"{PROFILE_URL_PREFIX}{file_name}")
        if previous is not None and previous.name != file_name:
            self.store.remove(str(previous))
        return user

    def _own_picture_path(self, user: User) -> Optional[Path]:
        """Stored picture of ``user``, or None when the reference is not one of their uploads."""
        picture = user.profile_pic or ""
        if not picture.startswith(PROFILE_URL_PREFIX):
            return None
        file_name = picture[len(PROFILE_URL_PREFIX):]
        if not file_name.startswith(f"{user.id}-"):
            return None
        return self.store.path_for(file_name, directory=self.store.profiles_dir)


class TodoService:
    """Todo lifecycle: creation, diff-based updates, deletion and their notifications."""

    def __init__(self, session: Session, store: Optional[FileStore] = None):
        self.session = session
        self.todos = TodoRepository(session)
        self.users = UserRepository(session)
        self.notifier = NotificationEmitter(session)
        self.store = store or FileStore()

    def get_for(self, actor: User, todo_id: int) -> Todo:
        todo = self.todos.get(todo_id)
        if not todo:
            raise NotFoundError("Todo not found")
        if not can_access_todo(actor.id, todo):
            raise ForbiddenError("Access denied")
        return todo

    def list_for(self, actor: User, **filters) -> Tuple[List[Todo], int]:
        return self.todos.search(actor.id, **filters)

    def create(self, actor: User, payload: TodoCreate) -> Todo:
        assignee = self.users.get(payload.assignee_id)
        if not assignee:
            raise NotFoundError("Assignee not found")
        if not assignee.is_active:
            raise ValidationError("Cannot assign todo to inactive user")
        if payload.due_date is not None and payload.due_date.date() < utcnow().date():
            raise ValidationError("Due date cannot be in the past")

        todo = self.todos.create(
            title=payload.title,
            description=payload.description,
            priority=payload.priority,
            due_date=payload.due_date,
            creator_id=actor.id,
            assignee_id=assignee.id,
            position=self.todos.next_position(assignee.id),
        )
        logger.info(f"User {actor.id} created todo {todo.id} for user {assignee.id}")
        self.notifier.todo_assigned(todo, actor)
        return todo

    def update(self, actor: User, todo_id: int, payload: TodoUpdate) -> Todo:
        todo = self.get_for(actor, todo_id)
        updates, changes = compute_todo_changes(todo, payload.model_dump(exclude_unset=True))
        if not updates:
            raise ValidationError("No changes detected")

        updates["updated_at"] = utcnow()
        todo = self.todos.update(todo, **updates)
        logger.info(f"User {actor.id} updated todo {todo.id}: {', '.join(sorted(updates))}")

        self.notifier.todo_updated(todo, actor, changes)
        if updates.get("status") == TodoStatus.COMPLETED:
            self.notifier.todo_completed(todo, actor)
        return todo

    def change_status(self, actor: User, todo_id: int, status: TodoStatus) -> Todo:
        return self.update(actor, todo_id, TodoUpdate(status=status))

    def delete(self, actor: User, todo_id: int) -> None:
        todo = self.get_for(actor, todo_id)
        if not can_delete_todo(actor.id, todo):
            raise ForbiddenError("Only the creator can delete this todo")

        assignee_id, title = todo.assignee_id, todo.title
        paths = [attachment.file_path for attachment in todo.attachments]

        self.todos.delete(todo)
        logger.info(f"User {actor.id} deleted todo {todo_id}")
        for path in paths:
            self.store.remove(path)
        self.notifier.todo_deleted(assignee_id, title, actor)


class AttachmentService:
    """Catalog side of uploaded files, with access checks."""

    def __init__(self, session: Session, store: FileStore):
        self.session = session
        self.attachments = AttachmentRepository(session)
        self.todos = TodoRepository(session)
        self.store = store

    @staticmethod
    def describe(attachment: Attachment) -> AttachmentRead:
        data = AttachmentRead.model_validate(attachment)
        data.url = f"/api/files/serve/{attachment.file_name}"
        data.size_formatted = format_file_size(attachment.file_size)
        data.is_image = attachment.mime_type.startswith("image/")
        return data

    async def upload(self, actor: User, uploads: List[UploadFile], todo_id: Optional[int] = None) -> Dict[str, Any]:
        if not uploads:
            raise ValidationError("No files provided")
        if len(uploads) > self.store.max_files:
            raise ValidationError(f"Maximum {self.store.max_files} files allowed per upload")

        if todo_id is not None:
            todo = self.todos.get(todo_id)
            if not todo:
                raise NotFoundError("Todo not found")
            if not can_access_todo(actor.id, todo):
                raise ForbiddenError("Access denied")

        stored: List[AttachmentRead] = []
        warnings: List[str] = []
        for upload in uploads:
            name = upload.filename or "unnamed"
            data = await self.store.read_upload(upload)
            reason = self.store.rejection_reason(name, upload.content_type, len(data))
            if reason:
                warnings.append(reason)
                continue

            file_name = build_stored_name(name)
            path = self.store.write(file_name, data)
            try:
                attachment = self.attachments.create(
                    file_name=file_name,
                    original_name=name,
                    file_path=str(path),
                    file_size=len(data),
                    mime_type=upload.content_type,
                    todo_id=todo_id,
                    uploaded_by_id=actor.id,
                )
            except Exception:
                logger.exception(f"Error processing file {name}")
                self.store.remove(str(path))
                warnings.append(f"Failed to upload: {name}")
                continue
            stored.append(self.describe(attachment))

        if warnings:
            logger.warning(f"Upload by user {actor.id} skipped files: {'; '.join(warnings)}")
        if not stored:
            raise ValidationError("; ".join(warnings) if warnings else "No files were uploaded")

        result: Dict[str, Any] = {"files": stored, "message": f"{len(stored)} file(s) uploaded successfully"}
        if warnings:
            result["warnings"] = warnings
        return result

    def list_for(self, actor: User, **filters) -> Tuple[List[AttachmentRead], int]:
        items, total = self.attachments.list_for_uploader(actor.id, **filters)
        return [self.describe(item) for item in items], total

    def get_for(self, actor: User, attachment_id: int) -> Attachment:
        attachment = self.attachments.get(attachment_id)
        # Denial looks exactly like absence
        if not can_access_attachment(actor.id, attachment):
            raise NotFoundError("File not found or access denied")
        return attachment

    def resolve_for_serving(self, actor: User, file_name: str) -> Tuple[Attachment, str]:
        attachment = self.attachments.get_by_file_name(file_name)
        if not can_access_attachment(actor.id, attachment):
            raise NotFoundError("File not found or access denied")
        path = Path(attachment.file_path)
        if not path.is_file():
            logger.error(f"File not found on disk: {attachment.file_path}")
            raise NotFoundError("File not found on server")
        return attachment, str(path)

    def delete(self, actor: User, attachment_id: int) -> None:
        attachment = self.attachments.get(attachment_id)
        if not attachment:
            raise NotFoundError("File not found")
        if not can_access_attachment(actor.id, attachment):
            raise ForbiddenError("Access denied")

        path = attachment.file_path
        self.attachments.delete(attachment)
        self.store.remove(path)
        logger.info(f"User {actor.id} deleted file {attachment_id}")


class NotificationService:
    def __init__(self, session: Session):
        self.notifications = NotificationRepository(session)

    def list_for(self, actor: User, **filters) -> Tuple[List[NotificationRead], int]:
        items, total = self.notifications.list_for_user(actor.id, **filters)
        return [NotificationRead.model_validate(item) for item in items], total

    def unread_count(self, actor: User) -> int:
        return self.notifications.unread_count(actor.id)

    def _owned(self, actor: User, notification_id: int) -> Notification:
        notification = self.notifications.get(notification_id)
        if not notification:
            raise NotFoundError("Notification not found")
        if notification.user_id != actor.id:
            raise ForbiddenError("Access denied")
        return notification

    def mark(self, actor: User, notification_id: int, is_read: bool = True) -> Notification:
        notification = self._owned(actor, notification_id)
        return self.notifications.update(notification, is_read=is_read, read_at=utcnow() if is_read else None)

    def delete(self, actor: User, notification_id: int) -> None:
        self.notifications.delete(self._owned(actor, notification_id))


class DashboardService:
    def __init__(self, session: Session):
        self.todos = TodoRepository(session)
        self.notifications = NotificationRepository(session)

    def stats(self, actor: User) -> Dict[str, Any]:
        now = utcnow()
        mine = TodoRepository.involving(actor.id)
        open_statuses = (TodoStatus.PENDING, TodoStatus.IN_PROGRESS)

        total = self.todos.count_where(mine)
        completed = self.todos.count_where(mine, Todo.status == TodoStatus.COMPLETED)
        progress = int(completed * 100 / total + 0.5) if total else 0

        return {
            "stats": {
                "total_todos": total,
                "completed_todos": completed,
                "pending_todos": self.todos.count_where(mine, Todo.status == TodoStatus.PENDING),
                "in_progress_todos": self.todos.count_where(mine, Todo.status == TodoStatus.IN_PROGRESS),
                "overdue_todos": self.todos.count_where(
                    mine, col(Todo.status).in_(open_statuses), col(Todo.due_date) < now
                ),
                "todos_assigned_to_me": self.todos.count_where(Todo.assignee_id == actor.id),
                "todos_created_by_me": self.todos.count_where(Todo.creator_id == actor.id),
                "progress_percentage": progress,
                "unread_notifications": self.notifications.unread_count(actor.id),
            },
            "charts": {
                "priority_distribution": [
                    {"priority": priority, "count": count}
                    for priority, count in self.todos.distribution("priority", mine, col(Todo.status).in_(open_statuses))
                ],
                "status_distribution": [
                    {"status": status, "count": count}
                    for status, count in self.todos.distribution("status", mine)
                ],
            },
            "recent_activity": {
                "recent_todos": [TodoRead.model_validate(t) for t in self.todos.recent(actor.id, now - timedelta(days=7))],
                "upcoming_deadlines": [
                    TodoRead.model_validate(t) for t in self.todos.due_between(actor.id, now, now + timedelta(days=7))
                ],
            },
        }

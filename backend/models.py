from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, ForeignKey, Integer
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without a zone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class TodoStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TodoPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationType(str, Enum):
    TODO_ASSIGNED = "todo_assigned"
    TODO_UPDATED = "todo_updated"
    TODO_COMPLETED = "todo_completed"


def _cascade_fk(target: str, nullable: bool = False) -> Any:
    return Field(
        sa_column=Column(
            Integer,
            ForeignKey(target, ondelete="CASCADE"),
            nullable=nullable,
            index=True,
        )
    )


class UserBase(SQLModel):
    """Base model for User with common fields."""
    email: str = Field(index=True, unique=True)
    name: str
    role: UserRole = Field(default=UserRole.USER)
    is_active: bool = Field(default=True)
    profile_pic: Optional[str] = Field(default=None)


class User(UserBase, table=True):
    """User DB model for storing in the database."""
    id: Optional[int] = Field(default=None, primary_key=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_login: Optional[datetime] = Field(default=None)

    created_todos: List["Todo"] = Relationship(
        back_populates="creator",
        sa_relationship_kwargs={"foreign_keys": "Todo.creator_id", "cascade": "all, delete"},
    )
    assigned_todos: List["Todo"] = Relationship(
        back_populates="assignee",
        sa_relationship_kwargs={"foreign_keys": "Todo.assignee_id", "cascade": "all, delete"},
    )
    uploads: List["Attachment"] = Relationship(
        back_populates="uploaded_by",
        sa_relationship_kwargs={"cascade": "all, delete"},
    )
    notifications: List["Notification"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete"},
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def verify_password(self, password: str) -> bool:
        """Verify password against the stored hash."""
        # Import here to avoid circular imports
        from .security import verify_password
        return verify_password(password, self.hashed_password)


class TodoBase(SQLModel):
    """Base model for Todo with common fields."""
    title: str = Field(index=True, max_length=255)
    description: Optional[str] = Field(default=None)
    status: TodoStatus = Field(default=TodoStatus.PENDING, index=True)
    priority: TodoPriority = Field(default=TodoPriority.MEDIUM)
    due_date: Optional[datetime] = Field(default=None, index=True)
    position: Optional[int] = Field(default=None)


class Todo(TodoBase, table=True):
    """Todo DB model for storing in the database."""
    id: Optional[int] = Field(default=None, primary_key=True)
    creator_id: int = _cascade_fk("user.id")
    assignee_id: int = _cascade_fk("user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = Field(default=None)

    creator: Optional[User] = Relationship(
        back_populates="created_todos",
        sa_relationship_kwargs={"foreign_keys": "Todo.creator_id"},
    )
    assignee: Optional[User] = Relationship(
        back_populates="assigned_todos",
        sa_relationship_kwargs={"foreign_keys": "Todo.assignee_id"},
    )
    attachments: List["Attachment"] = Relationship(
        back_populates="todo",
        sa_relationship_kwargs={"cascade": "all, delete"},
    )
    notifications: List["Notification"] = Relationship(
        back_populates="todo",
        sa_relationship_kwargs={"cascade": "all, delete"},
    )

    def involves(self, user_id: Optional[int]) -> bool:
        return user_id is not None and user_id in (self.creator_id, self.assignee_id)


class Attachment(SQLModel, table=True):
    """Uploaded file stored on disk and catalogued here."""
    id: Optional[int] = Field(default=None, primary_key=True)
    file_name: str = Field(index=True, unique=True)
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    todo_id: Optional[int] = _cascade_fk("todo.id", nullable=True)
    uploaded_by_id: int = _cascade_fk("user.id")
    uploaded_at: datetime = Field(default_factory=utcnow)

    todo: Optional[Todo] = Relationship(back_populates="attachments")
    uploaded_by: Optional[User] = Relationship(back_populates="uploads")


class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    message: str
    is_read: bool = Field(default=False, index=True)
    type: str
    user_id: int = _cascade_fk("user.id")
    todo_id: Optional[int] = _cascade_fk("todo.id", nullable=True)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, index=True)
    read_at: Optional[datetime] = Field(default=None)

    user: Optional[User] = Relationship(back_populates="notifications")
    todo: Optional[Todo] = Relationship(back_populates="notifications")

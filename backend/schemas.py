import re
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, EmailStr, field_validator
from sqlmodel import SQLModel

from .models import TodoBase, TodoPriority, TodoStatus, UserRole

DataT = TypeVar("DataT")

QUICK_STATUSES = (TodoStatus.PENDING, TodoStatus.IN_PROGRESS, TodoStatus.COMPLETED)


def check_password_strength(password: str) -> str:
    """Raise ValueError describing the first rule the password breaks."""
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        raise ValueError("Password must contain at least one number")
    return password


def _clean_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Name must be at least 2 characters long")
    return value


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ---------- Envelope ----------

class ErrorDetail(BaseModel):
    message: str


class ApiResponse(BaseModel, Generic[DataT]):
    """Shape shared by every JSON response."""
    success: bool = True
    data: Optional[DataT] = None
    error: Optional[ErrorDetail] = None


def envelope(data: Any) -> Dict[str, Any]:
    return {"success": True, "data": data}


# ---------- Users ----------

class RegisterRequest(SQLModel):
    """Self-service sign-up; the account always gets the USER role."""
    name: str
    email: EmailStr
    password: str

    @field_validator("name")
    def name_min_length(cls, v):
        return _clean_name(v)

    @field_validator("email")
    def email_lowercase(cls, v):
        return v.lower()

    @field_validator("password")
    def password_strength(cls, v):
        return check_password_strength(v)


class UserCreate(RegisterRequest):
    """Schema for admin user creation requests."""
    role: UserRole = UserRole.USER


class LoginRequest(SQLModel):
    email: EmailStr
    password: str

    @field_validator("email")
    def email_lowercase(cls, v):
        return v.lower()


class UserUpdate(SQLModel):
    """Schema for user update requests."""
    name: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    def name_min_length(cls, v):
        return _clean_name(v) if v is not None else v


class PasswordChange(SQLModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    def password_strength(cls, v):
        return check_password_strength(v)


class UserSummary(SQLModel):
    id: int
    name: str
    email: str
    profile_pic: Optional[str] = None


class UserRead(SQLModel):
    """Schema for user read responses."""
    id: int
    email: str
    name: str
    role: UserRole
    is_active: bool
    profile_pic: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    last_login: Optional[datetime] = None


class UserCounts(SQLModel):
    created_todos: int = 0
    assigned_todos: int = 0
    files: int = 0


class UserReadWithCounts(UserRead):
    counts: UserCounts = UserCounts()


class AuthResponse(SQLModel):
    user: UserRead
    token: str
    expires_at: datetime


# ---------- Attachments ----------

class AttachmentSummary(SQLModel):
    id: int
    file_name: str
    original_name: str
    file_size: int
    mime_type: str
    uploaded_at: datetime


class AttachmentRead(AttachmentSummary):
    todo_id: Optional[int] = None
    uploaded_by: Optional[UserSummary] = None
    url: str = ""
    size_formatted: str = ""
    is_image: bool = False


# ---------- Todos ----------

class TodoCreate(SQLModel):
    """Schema for todo creation requests."""
    title: str
    description: Optional[str] = None
    assignee_id: int
    due_date: Optional[datetime] = None
    priority: TodoPriority = TodoPriority.MEDIUM

    @field_validator("title")
    def title_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        if len(v) > 255:
            raise ValueError("Title must be less than 255 characters")
        return v

    @field_validator("description")
    def description_blank_is_none(cls, v):
        return (v.strip() or None) if v is not None else None

    @field_validator("due_date")
    def due_date_utc(cls, v):
        return _naive_utc(v)


class TodoUpdate(SQLModel):
    """Schema for todo update requests; only the fields sent are considered."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TodoStatus] = None
    priority: Optional[TodoPriority] = None
    due_date: Optional[datetime] = None
    position: Optional[int] = None

    @field_validator("title")
    def title_not_empty(cls, v):
        if v is None:
            raise ValueError("Title cannot be empty")
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        if len(v) > 255:
            raise ValueError("Title must be less than 255 characters")
        return v

    @field_validator("description")
    def description_blank_is_none(cls, v):
        return (v.strip() or None) if v is not None else None

    @field_validator("due_date", mode="before")
    def due_date_blank_is_none(cls, v):
        return None if v == "" else v

    @field_validator("due_date")
    def due_date_utc(cls, v):
        return _naive_utc(v)


class TodoStatusUpdate(SQLModel):
    status: TodoStatus

    @field_validator("status")
    def quick_status_only(cls, v):
        if v not in QUICK_STATUSES:
            raise ValueError("Invalid status")
        return v


class TodoRead(TodoBase):
    """Schema for todo read responses."""
    id: int
    creator_id: int
    assignee_id: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    creator: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
    attachments: List[AttachmentSummary] = []


class TodoBrief(SQLModel):
    id: int
    title: str
    status: TodoStatus
    priority: TodoPriority
    due_date: Optional[datetime] = None


# ---------- Notifications ----------

class NotificationRead(SQLModel):
    id: int
    title: str
    message: str
    is_read: bool
    type: str
    user_id: int
    todo_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
    read_at: Optional[datetime] = None
    todo: Optional[TodoBrief] = None


class NotificationUpdate(SQLModel):
    is_read: bool = True


# ---------- Pagination ----------

class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=-(-total // limit) if limit else 0)

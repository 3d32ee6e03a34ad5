from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar, cast

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql.selectable import Select
from sqlmodel import Session, col, select

from .errors import ConflictError, ValidationError
from .models import Attachment, Notification, Todo, TodoStatus, User, utcnow
from .schemas import RegisterRequest, UserCreate
from .security import get_password_hash

# Generic type variable
T = TypeVar('T')

SORT_ORDERS = ("asc", "desc")
USER_SORT_FIELDS = ("created_at", "updated_at", "name", "email", "last_login", "role")
TODO_SORT_FIELDS = ("created_at", "updated_at", "due_date", "priority", "status", "title", "position")


def _order_by(model: Any, sort_by: str, sort_order: str, allowed: Sequence[str]):
    if sort_by not in allowed:
        raise ValidationError(f"Cannot sort by '{sort_by}'")
    if sort_order not in SORT_ORDERS:
        raise ValidationError("Sort order must be 'asc' or 'desc'")
    column = col(getattr(model, sort_by))
    return column.asc() if sort_order == "asc" else column.desc()


class BaseRepository(Generic[T]):
    """Generic base repository for CRUD operations."""

    def __init__(self, session: Session, model_class: Type[T]):
        self.session = session
        self.model_class = model_class

    def get(self, id: int) -> Optional[T]:
        """Get an item by ID."""
        return self.session.get(self.model_class, id)

    def count_where(self, *conditions) -> int:
        query = select(func.count()).select_from(self.model_class).where(*conditions)
        return int(self.session.exec(query).one())

    def save(self, db_obj: T) -> T:
        """Add or update an item and commit; the session is rolled back on failure."""
        try:
            self.session.add(db_obj)
            self.session.commit()
            self.session.refresh(db_obj)
            return db_obj
        except Exception:
            self.session.rollback()
            raise

    def create(self, **fields) -> T:
        return self.save(self.model_class(**fields))

    def update(self, db_obj: T, **changes) -> T:
        for key, value in changes.items():
            setattr(db_obj, key, value)
        return self.save(db_obj)

    def delete(self, db_obj: T) -> None:
        """Delete an item; relationship cascades remove its dependents."""
        try:
            self.session.delete(db_obj)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


class UserRepository(BaseRepository[User]):
    """Repository for User entity."""

    def __init__(self, session: Session):
        super().__init__(session, User)

    def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (case-insensitive)."""
        query = cast(Select, select(User).where(User.email == email.strip().lower()))
        return self.session.exec(query).first()

    def create_user(self, user_create: RegisterRequest) -> User:
        """Create a new user with a hashed password."""
        if self.get_by_email(user_create.email):
            raise ConflictError("User with this email already exists")

        role = user_create.role if isinstance(user_create, UserCreate) else None
        user_data = {"name": user_create.name, "email": user_create.email.lower()}
        if role is not None:
            user_data["role"] = role
        try:
            return self.create(**user_data, hashed_password=get_password_hash(user_create.password))
        except IntegrityError:
            # Lost a race against a concurrent registration for the same email
            raise ConflictError("User with this email already exists")

    def update(self, db_obj: User, **changes) -> User:
        changes.setdefault("updated_at", utcnow())
        try:
            return super().update(db_obj, **changes)
        except IntegrityError:
            raise ConflictError("User with this email already exists")

    def record_login(self, user: User) -> User:
        return super().update(user, last_login=utcnow())

    def search(
        self,
        *,
        search: str = "",
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[User], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(col(User.name).ilike(pattern), col(User.email).ilike(pattern)))
        if is_active is not None:
            conditions.append(User.is_active == is_active)

        query = (
            select(User)
            .where(*conditions)
            .order_by(_order_by(User, sort_by, sort_order, USER_SORT_FIELDS))
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.exec(query).all()), self.count_where(*conditions)

    def list_assignable(self, *, search: str = "", limit: int = 100) -> List[User]:
        """Active users, by name, for picking an assignee."""
        query = select(User).where(User.is_active == True)  # noqa: E712
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(col(User.name).ilike(pattern), col(User.email).ilike(pattern)))
        return list(self.session.exec(query.order_by(col(User.name).asc()).limit(limit)).all())

    def counts(self, user_id: int) -> Dict[str, int]:
        return {
            "created_todos": self.count_in(Todo, Todo.creator_id == user_id),
            "assigned_todos": self.count_in(Todo, Todo.assignee_id == user_id),
            "files": self.count_in(Attachment, Attachment.uploaded_by_id == user_id),
        }

    def count_in(self, model: Any, *conditions) -> int:
        query = select(func.count()).select_from(model).where(*conditions)
        return int(self.session.exec(query).one())


class TodoRepository(BaseRepository[Todo]):
    """Repository for Todo entity."""

    def __init__(self, session: Session):
        super().__init__(session, Todo)

    @staticmethod
    def involving(user_id: int):
        """Todos the user created or is assigned to."""
        return or_(Todo.creator_id == user_id, Todo.assignee_id == user_id)

    def next_position(self, assignee_id: int) -> int:
        """One past the highest position among the assignee's todos."""
        query = select(func.max(Todo.position)).where(Todo.assignee_id == assignee_id)
        current = self.session.exec(query).one()
        return (current or 0) + 1

    def search(
        self,
        user_id: int,
        *,
        scope: str = "all",
        status: Optional[TodoStatus] = None,
        priority: Optional[str] = None,
        assignee_id: Optional[int] = None,
        creator_id: Optional[int] = None,
        search: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Todo], int]:
        """Filtered, sorted page of the todos visible to ``user_id`` plus the total."""
        conditions: List[Any] = []
        if scope == "assigned_to_me":
            conditions.append(Todo.assignee_id == user_id)
        elif scope == "created_by_me":
            conditions.append(Todo.creator_id == user_id)
            conditions.append(Todo.assignee_id != user_id)
        else:
            conditions.append(self.involving(user_id))

        if status:
            conditions.append(Todo.status == status)
        if priority:
            conditions.append(Todo.priority == priority)
        if assignee_id is not None:
            conditions.append(Todo.assignee_id == assignee_id)
        if creator_id is not None:
            conditions.append(Todo.creator_id == creator_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(col(Todo.title).ilike(pattern), col(Todo.description).ilike(pattern)))

        order = [_order_by(Todo, sort_by, sort_order, TODO_SORT_FIELDS)]
        if sort_by == "position":
            order.append(col(Todo.created_at).desc())

        query = select(Todo).where(*conditions).order_by(*order).offset(skip).limit(limit)
        return list(self.session.exec(query).all()), self.count_where(*conditions)

    def distribution(self, field: str, *conditions) -> List[Tuple[str, int]]:
        column = getattr(Todo, field)
        query = select(column, func.count()).where(*conditions).group_by(column)
        return [(getattr(value, "value", value), int(count)) for value, count in self.session.exec(query).all()]

    def recent(self, user_id: int, since: datetime, limit: int = 5) -> List[Todo]:
        query = (
            select(Todo)
            .where(self.involving(user_id), Todo.created_at >= since)
            .order_by(col(Todo.created_at).desc())
            .limit(limit)
        )
        return list(self.session.exec(query).all())

    def due_between(self, user_id: int, start: datetime, end: datetime, limit: int = 5) -> List[Todo]:
        query = (
            select(Todo)
            .where(
                self.involving(user_id),
                col(Todo.status).notin_([TodoStatus.COMPLETED, TodoStatus.CANCELLED]),
                Todo.due_date >= start,
                Todo.due_date <= end,
            )
            .order_by(col(Todo.due_date).asc())
            .limit(limit)
        )
        return list(self.session.exec(query).all())


class AttachmentRepository(BaseRepository[Attachment]):
    """Repository for the uploaded-file catalog."""

    def __init__(self, session: Session):
        super().__init__(session, Attachment)

    def get_by_file_name(self, file_name: str) -> Optional[Attachment]:
        query = select(Attachment).where(Attachment.file_name == file_name)
        return self.session.exec(query).first()

    def list_for_uploader(
        self,
        uploader_id: int,
        *,
        todo_id: Optional[int] = None,
        search: str = "",
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Attachment], int]:
        conditions: List[Any] = [Attachment.uploaded_by_id == uploader_id]
        if todo_id is not None:
            conditions.append(Attachment.todo_id == todo_id)
        if search:
            conditions.append(col(Attachment.original_name).ilike(f"%{search}%"))

        query = (
            select(Attachment)
            .where(*conditions)
            .order_by(col(Attachment.uploaded_at).desc(), col(Attachment.id).desc())
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.exec(query).all()), self.count_where(*conditions)


class NotificationRepository(BaseRepository[Notification]):
    """Repository for in-app notifications."""

    def __init__(self, session: Session):
        super().__init__(session, Notification)

    def list_for_user(
        self,
        user_id: int,
        *,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Notification], int]:
        conditions: List[Any] = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read == False)  # noqa: E712

        query = (
            select(Notification)
            .where(*conditions)
            .order_by(col(Notification.created_at).desc(), col(Notification.id).desc())
            .offset(skip)
            .limit(limit)
        )
        return list(self.session.exec(query).all()), self.count_where(*conditions)

    def unread_count(self, user_id: int) -> int:
        return self.count_where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712

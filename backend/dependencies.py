"""Reusable route dependencies: per-request services and common query params."""
from dataclasses import dataclass

from fastapi import Depends, Query
from sqlmodel import Session

from .database import get_session
from .services import AttachmentService, DashboardService, NotificationService, TodoService, UserService
from .storage import FileStore, get_file_store


def get_user_service(
        session: Session = Depends(get_session),
        store: FileStore = Depends(get_file_store),
) -> UserService:
    return UserService(session, store)


def get_todo_service(
        session: Session = Depends(get_session),
        store: FileStore = Depends(get_file_store),
) -> TodoService:
    return TodoService(session, store)


def get_attachment_service(
        session: Session = Depends(get_session),
        store: FileStore = Depends(get_file_store),
) -> AttachmentService:
    return AttachmentService(session, store)


def get_notification_service(session: Session = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


def get_dashboard_service(session: Session = Depends(get_session)) -> DashboardService:
    return DashboardService(session)


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
) -> PageParams:
    return PageParams(page=page, limit=limit)

from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from ..dependencies import PageParams, get_todo_service, page_params
from ..models import TodoPriority, TodoStatus, User
from ..schemas import Pagination, TodoCreate, TodoRead, TodoStatusUpdate, TodoUpdate, envelope
from ..security import get_current_active_user
from ..services import TodoService

router = APIRouter(prefix="/todos", tags=["todos"])


@router.get("", summary="List todos")
async def list_todos(
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
        paging: Annotated[PageParams, Depends(page_params)],
        scope: Annotated[Literal["all", "assigned_to_me", "created_by_me"], Query(alias="filter")] = "all",
        status_filter: Annotated[Optional[TodoStatus], Query(alias="status")] = None,
        priority: Optional[TodoPriority] = None,
        assignee_id: Optional[int] = None,
        creator_id: Optional[int] = None,
        search: str = "",
        sort_by: str = "created_at",
        sort_order: str = "desc",
):
    """
    Todos the current user created or is assigned to, filtered and paginated.
    """
    items, total = todos.list_for(
        current_user,
        scope=scope,
        status=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        creator_id=creator_id,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=paging.skip,
        limit=paging.limit,
    )
    return envelope({
        "todos": [TodoRead.model_validate(todo) for todo in items],
        "pagination": Pagination.build(paging.page, paging.limit, total),
    })


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create todo")
async def create_todo(
        todo: Annotated[TodoCreate, Body(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
):
    """
    Create a todo and assign it; the assignee is notified.
    """
    return envelope(TodoRead.model_validate(todos.create(current_user, todo)))


@router.get("/{todo_id}", summary="Get todo by ID")
async def read_todo(
        todo_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
):
    return envelope(TodoRead.model_validate(todos.get_for(current_user, todo_id)))


@router.put("/{todo_id}", summary="Update todo")
async def update_todo(
        todo_id: Annotated[int, Path(...)],
        todo_update: Annotated[TodoUpdate, Body(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
):
    """
    Apply only the fields that differ from the stored todo.
    """
    return envelope(TodoRead.model_validate(todos.update(current_user, todo_id, todo_update)))


@router.put("/{todo_id}/status", summary="Quick status change")
async def update_todo_status(
        todo_id: Annotated[int, Path(...)],
        payload: Annotated[TodoStatusUpdate, Body(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
):
    return envelope(TodoRead.model_validate(todos.change_status(current_user, todo_id, payload.status)))


@router.delete("/{todo_id}", summary="Delete todo")
async def delete_todo(
        todo_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        todos: Annotated[TodoService, Depends(get_todo_service)],
):
    """
    Only the creator may delete; attachments go with the todo.
    """
    todos.delete(current_user, todo_id)
    return envelope({"message": "Todo deleted successfully"})

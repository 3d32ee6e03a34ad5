from typing import Annotated, Optional

from fastapi import APIRouter, Body, Depends, File, Path, Query, UploadFile, status
from fastapi.responses import FileResponse

from ..dependencies import PageParams, get_user_service, page_params
from ..errors import NotFoundError
from ..models import User
from ..schemas import PasswordChange, Pagination, UserCreate, UserRead, UserUpdate, envelope
from ..security import get_admin_user, get_current_active_user
from ..services import UserService
from ..storage import FileStore, get_file_store

router = APIRouter(prefix="/users", tags=["users"])
uploads_router = APIRouter(prefix="/uploads", tags=["users"])


# Admin-only user endpoints
@router.get("", summary="List users (admin only)")
async def list_users(
        admin_user: Annotated[User, Depends(get_admin_user)],
        users: Annotated[UserService, Depends(get_user_service)],
        paging: Annotated[PageParams, Depends(page_params)],
        search: str = "",
        is_active: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
):
    """
    Paginated users with per-user todo and file counts.
    """
    items, total = users.list_users(
        search=search,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=paging.skip,
        limit=paging.limit,
    )
    return envelope({"users": items, "pagination": Pagination.build(paging.page, paging.limit, total)})


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create user (admin only)")
async def create_user(
        payload: Annotated[UserCreate, Body(...)],
        admin_user: Annotated[User, Depends(get_admin_user)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    return envelope(users.create(payload))


@router.get("/list", summary="Active users available as assignees")
async def list_assignable_users(
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
        search: str = "",
        limit: Annotated[int, Query(ge=1, le=100)] = 100,
):
    return envelope(users.assignable(search=search, limit=limit))


@router.post("/profile-picture", summary="Upload a profile picture")
async def upload_profile_picture(
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
        profile_picture: UploadFile = File(...),
):
    user = await users.set_profile_picture(current_user, profile_picture)
    return envelope({"profile_pic": user.profile_pic, "user": UserRead.model_validate(user)})


@router.get("/{user_id}", summary="Get user by ID")
async def read_user(
        user_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    """
    A user can read their own record; admins can read anyone's.
    """
    return envelope(users.with_counts(users.get(current_user, user_id)))


@router.put("/{user_id}", summary="Update user")
async def update_user(
        user_id: Annotated[int, Path(...)],
        user_update: Annotated[UserUpdate, Body(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    return envelope(UserRead.model_validate(users.update(current_user, user_id, user_update)))


@router.delete("/{user_id}", summary="Deactivate or permanently delete a user (admin only)")
async def delete_user(
        user_id: Annotated[int, Path(...)],
        admin_user: Annotated[User, Depends(get_admin_user)],
        users: Annotated[UserService, Depends(get_user_service)],
        hard: bool = False,
):
    return envelope(users.delete(admin_user, user_id, hard=hard))


@router.put("/{user_id}/password", summary="Change password")
async def change_password(
        user_id: Annotated[int, Path(...)],
        payload: Annotated[PasswordChange, Body(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    users.change_password(current_user, user_id, payload)
    return envelope({"message": "Password changed successfully"})


@uploads_router.get("/profiles/{filename}", summary="Serve a profile picture")
async def serve_profile_picture(
        filename: str,
        store: Annotated[FileStore, Depends(get_file_store)],
):
    path = store.path_for(filename, directory=store.profiles_dir)
    if path is None or not path.is_file():
        raise NotFoundError("Profile picture not found")
    return FileResponse(path, headers={"Cache-Control": "public, max-age=31536000"})

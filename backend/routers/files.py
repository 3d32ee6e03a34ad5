from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, Path, Query, UploadFile, status
from fastapi.responses import FileResponse

from ..dependencies import get_attachment_service
from ..models import User
from ..schemas import Pagination, envelope
from ..security import get_current_active_user
from ..services import AttachmentService

router = APIRouter(prefix="/files", tags=["files"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Upload files")
async def upload_files(
        current_user: Annotated[User, Depends(get_current_active_user)],
        attachments: Annotated[AttachmentService, Depends(get_attachment_service)],
        files: List[UploadFile] = File(...),
        todo_id: Optional[int] = Form(None),
):
    """
    Store up to five files, optionally attached to a todo.

    Files that fail validation are skipped and reported under ``warnings``.
    """
    return envelope(await attachments.upload(current_user, files, todo_id=todo_id))


@router.get("", summary="List my uploaded files")
async def list_files(
        current_user: Annotated[User, Depends(get_current_active_user)],
        attachments: Annotated[AttachmentService, Depends(get_attachment_service)],
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = 20,
        todo_id: Optional[int] = None,
        search: str = "",
):
    items, total = attachments.list_for(
        current_user, todo_id=todo_id, search=search, skip=(page - 1) * limit, limit=limit
    )
    return envelope({"files": items, "pagination": Pagination.build(page, limit, total)})


@router.get("/serve/{filename}", summary="Stream a stored file")
async def serve_file(
        filename: str,
        current_user: Annotated[User, Depends(get_current_active_user)],
        attachments: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    attachment, path = attachments.resolve_for_serving(current_user, filename)
    headers = {}
    if attachment.mime_type.startswith("image/"):
        headers["Cache-Control"] = "public, max-age=86400"
    return FileResponse(
        path,
        media_type=attachment.mime_type,
        filename=attachment.original_name,
        content_disposition_type="inline",
        headers=headers,
    )


@router.get("/{file_id}", summary="Get file metadata")
async def read_file(
        file_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        attachments: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    return envelope(attachments.describe(attachments.get_for(current_user, file_id)))


@router.delete("/{file_id}", summary="Delete a file")
async def delete_file(
        file_id: Annotated[int, Path(...)],
        current_user: Annotated[User, Depends(get_current_active_user)],
        attachments: Annotated[AttachmentService, Depends(get_attachment_service)],
):
    attachments.delete(current_user, file_id)
    return envelope({"message": "File deleted successfully"})

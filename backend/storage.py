import re
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from logger import logger
from . import config

ALLOWED_MIME_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
    "application/zip",
    "application/x-zip-compressed",
})

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")
_STORED_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"


def file_extension(original_name: Optional[str]) -> str:
    """Extension of the client-supplied name, or '' when it looks unsafe."""
    suffix = Path(original_name or "").suffix
    return suffix if _EXTENSION_RE.match(suffix) else ""


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def build_stored_name(original_name: Optional[str]) -> str:
    """Random id + timestamp + original extension; the client name never reaches the path."""
    return f"{uuid.uuid4()}_{timestamp_ms()}{file_extension(original_name)}"


class FileStore:
    """Disk side of attachments: validation, writing, serving paths and cleanup."""

    def __init__(
        self,
        upload_dir: str = config.UPLOAD_DIR,
        max_file_size: int = config.MAX_FILE_SIZE,
        max_files: int = config.MAX_FILES_PER_UPLOAD,
    ):
        self.upload_dir = Path(upload_dir)
        self.max_file_size = max_file_size
        self.max_files = max_files

    @property
    def profiles_dir(self) -> Path:
        return self.upload_dir / "profiles"

    def path_for(self, file_name: str, directory: Optional[Path] = None) -> Optional[Path]:
        """Location of a stored name inside the store, or None for names that could escape it."""
        if not _STORED_NAME_RE.match(file_name) or file_name in (".", ".."):
            return None
        return (directory or self.upload_dir) / file_name

    async def read_upload(self, upload: UploadFile) -> bytes:
        # One byte past the cap is enough to know the file is too large
        return await upload.read(self.max_file_size + 1)

    def rejection_reason(
        self,
        name: str,
        content_type: Optional[str],
        size: int,
        allowed_types: frozenset = ALLOWED_MIME_TYPES,
    ) -> Optional[str]:
        if size == 0:
            return f"Empty file: {name}"
        if size > self.max_file_size:
            return f"File too large: {name} (max {format_file_size(self.max_file_size)})"
        if content_type not in allowed_types:
            return f"File type not allowed: {name} ({content_type})"
        return None

    def write(self, file_name: str, data: bytes, directory: Optional[Path] = None) -> Path:
        target_dir = directory or self.upload_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / file_name
        path.write_bytes(data)
        return path

    def remove(self, file_path: str) -> bool:
        """Best-effort delete; the catalog is authoritative, so failures are only logged."""
        try:
            Path(file_path).unlink(missing_ok=True)
            return True
        except OSError:
            logger.exception(f"Error deleting file from disk: {file_path}")
            return False


def get_file_store() -> FileStore:
    """Dependency returning the configured store."""
    return FileStore()

"""
Local disk storage for deal documents under UPLOAD_PATH/<deal_id>/.
"""
import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}
MAX_FILENAME_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^\w\- ]", re.UNICODE)


def content_type_for(filename: str) -> str:
    return ALLOWED_MIME_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def sanitize_filename(filename: str, extension: str) -> str:
    stem = Path(filename or "").stem
    stem = _UNSAFE_CHARS.sub("", stem).strip()
    if not stem:
        stem = "document"
    return stem[:MAX_FILENAME_LENGTH] + extension


def validate_upload(filename: Optional[str], content_type: Optional[str], size: int, max_bytes: int) -> str:
    """Check size, extension and declared MIME type. Returns the lowercased extension."""
    if size == 0:
        raise HTTPException(status_code=400, detail="File is required")
    if size > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds maximum allowed ({max_bytes // 1024 // 1024} MB)",
        )

    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail="File type not allowed. Allowed: PDF, DOC, DOCX, XLS, XLSX, PNG, JPG",
        )

    declared = (content_type or "").split(";")[0].strip().lower()
    if declared != ALLOWED_MIME_TYPES[extension]:
        raise HTTPException(status_code=400, detail="File content does not match extension")
    return extension


class DocumentStorage:
    def __init__(self, upload_path: str):
        self.root = Path(upload_path).resolve()

    def _contained(self, path: Path) -> Path:
        resolved = path.resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file path")
        return resolved

    def save(self, deal_id: uuid.UUID, extension: str, content: bytes) -> str:
        folder = self._contained(self.root / str(deal_id))
        folder.mkdir(parents=True, exist_ok=True)
        target = self._contained(folder / f"{uuid.uuid4()}{extension}")
        target.write_bytes(content)
        return str(target)

    def signed_path_for(self, file_path: str) -> str:
        original = self._contained(Path(file_path))
        return str(original.with_name(f"{original.stem}_signed.pdf"))

    def write(self, file_path: str, content: bytes) -> None:
        self._contained(Path(file_path)).write_bytes(content)

    def exists(self, file_path: str) -> bool:
        try:
            return self._contained(Path(file_path)).is_file()
        except HTTPException:
            return False

    def read(self, file_path: str) -> bytes:
        if not self.exists(file_path):
            raise HTTPException(status_code=404, detail="File not found on server")
        return Path(file_path).resolve().read_bytes()

    def delete(self, file_path: Optional[str]) -> None:
        if file_path and self.exists(file_path):
            Path(file_path).resolve().unlink()
            logger.info("[STORAGE] Deleted %s", file_path)

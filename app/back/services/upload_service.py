# app/back/services/upload_service.py
import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import Any, Optional

from app.back.core.config import settings

logger = logging.getLogger(__name__)

# 필드명 → 저장 디렉토리 (upload_root 기준 상대경로)
RESUME_DIR = "uploads/resumes"
LOGO_DIR = "uploads/logos"

RESUME_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
LOGO_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/svg+xml",
}

ALLOWED_MIME_TYPES = {
    "resume": RESUME_MIME_TYPES,
    "logo": LOGO_MIME_TYPES,
}
INVALID_TYPE_MESSAGES = {
    "resume": "Invalid file type. Only PDF and DOC files are allowed for resumes.",
    "logo": "Invalid file type. Only JPEG, PNG, WEBP, and SVG files are allowed for logos.",
}
UNKNOWN_FIELD_MESSAGE = "Unknown file field"

CHUNK_SIZE = 64 * 1024


class UploadValidationError(ValueError):
    """MIME 타입 / 필드명 검증 실패 (파일은 저장되지 않음)"""

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


class UploadTooLargeError(Exception):
    def __init__(self, field: str, limit: int):
        super().__init__(f"File too large. Maximum size is {limit} bytes.")
        self.field = field
        self.limit = limit


@dataclass
class StoredUpload:
    field: str
    relative_path: str          # 예: "uploads/resumes/1718000000000-a1b2c3d4e5f60718.pdf"
    absolute_path: str
    size: int
    content_type: Optional[str]
    original_filename: str

    @property
    def reference(self) -> str:
        # DB 컬럼에 들어가는 형태 ("/uploads/...")
        return "/" + self.relative_path


def destination_for_field(field: str) -> str:
    return RESUME_DIR if field == "resume" else LOGO_DIR


def generate_filename(original_filename: str) -> str:
    """
    <unix millis>-<16자리 hex><원래 확장자>
    """
    ext = os.path.splitext(original_filename or "")[1]
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{ext}"


def validate_upload(field: str, content_type: Optional[str]) -> None:
    allowed = ALLOWED_MIME_TYPES.get(field)
    if allowed is None:
        raise UploadValidationError(field, UNKNOWN_FIELD_MESSAGE)
    if content_type not in allowed:
        raise UploadValidationError(field, INVALID_TYPE_MESSAGES[field])


async def save_upload(
    field: str,
    file: Any,
    *,
    upload_root: Optional[str] = None,
    max_bytes: Optional[int] = None,
) -> StoredUpload:
    """
    - field: "resume" / "logo"
    - file: fastapi.UploadFile (.filename, .content_type, await .read(n))

    검증 → ".part" 임시파일에 청크 단위로 쓰면서 용량 체크 → 완료되면 rename.
    용량 초과하면 그 시점에 중단하고 임시파일 삭제
    """
    validate_upload(field, getattr(file, "content_type", None))

    upload_root = upload_root if upload_root is not None else settings.UPLOAD_ROOT
    max_bytes = max_bytes if max_bytes is not None else settings.UPLOAD_MAX_BYTES

    original_filename = getattr(file, "filename", None) or ""
    relative_dir = destination_for_field(field)
    saved_name = generate_filename(original_filename)

    target_dir = os.path.join(upload_root, relative_dir)
    os.makedirs(target_dir, exist_ok=True)

    final_path = os.path.join(target_dir, saved_name)
    part_path = final_path + ".part"

    size = 0
    try:
        with open(part_path, "wb") as f:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise UploadTooLargeError(field, max_bytes)
                f.write(chunk)
        os.replace(part_path, final_path)
    except BaseException:
        if os.path.exists(part_path):
            os.remove(part_path)
        raise

    logger.info("upload saved | field=%s path=%s size=%d", field, final_path, size)

    return StoredUpload(
        field=field,
        relative_path=f"{relative_dir}/{saved_name}",
        absolute_path=os.path.abspath(final_path),
        size=size,
        content_type=file.content_type,
        original_filename=original_filename,
    )

# app/back/routers/api_uploads.py
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile as StarletteUploadFile

from app.back.core.db import get_db
from app.back.core.security import require_user
from app.back.services import company_service, talent_service
from app.back.services.upload_service import (
    StoredUpload,
    UploadTooLargeError,
    UploadValidationError,
    save_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["uploads"])


async def _store_or_raise(field: str, file) -> StoredUpload:
    """
    업로드 저장 + 에러를 HTTP 응답으로 변환
    - 검증 실패: 400 / 용량 초과: 413 / 디스크 에러: 500
    """
    try:
        return await save_upload(field, file)
    except UploadValidationError as e:
        raise HTTPException(status_code=400, detail={"error": e.reason, "field": e.field})
    except UploadTooLargeError as e:
        raise HTTPException(status_code=413, detail={"error": str(e), "field": e.field})
    except OSError:
        logger.exception("upload write failed | field=%s", field)
        raise HTTPException(status_code=500, detail={"error": "Failed to store file", "field": field})


# ===========================
# 단순 업로드 (경로만 반환)
# ===========================
@router.post("/uploads")
async def upload_file(request: Request):
    """
    multipart 필드명이 곧 종류: "resume" 또는 "logo"
    """
    form = await request.form()
    try:
        files = [
            (name, value)
            for name, value in form.multi_items()
            if isinstance(value, StarletteUploadFile)
        ]
        if not files:
            raise HTTPException(status_code=400, detail={"error": "No file uploaded", "field": None})

        field, file = files[0]
        stored = await _store_or_raise(field, file)
    finally:
        await form.close()

    return {"field": stored.field, "path": stored.relative_path, "size": stored.size}


# ===========================
# 회사 로고 업로드
# ===========================
@router.post("/companies/{company_id}/logo")
async def upload_company_logo(
    company_id: str,
    logo: UploadFile = File(...),
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    # 회사-멤버 연결이 없으므로 로고 교체는 관리자만
    if current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")

    if not await company_service.get_company(db, company_id):
        raise HTTPException(status_code=404, detail="Company not found")

    stored = await _store_or_raise("logo", logo)
    company = await company_service.update_company_logo(db, company_id, stored.reference)
    return company


# ===========================
# 이력서 업로드
# ===========================
@router.post("/talents/{user_id}/resume")
async def upload_talent_resume(
    user_id: str,
    resume: UploadFile = File(...),
    current_user=Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    # 본인 또는 관리자만
    if current_user.id != user_id and current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")

    stored = await _store_or_raise("resume", resume)
    profile = await talent_service.set_resume(db, user_id, stored.reference)
    if profile is None:
        raise HTTPException(status_code=404, detail="User not found")
    return profile

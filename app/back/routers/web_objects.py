# app/back/routers/web_objects.py
import asyncio
import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from app.back.core.config import settings
from app.back.core.object_store import (
    ObjectNotFoundError,
    ObjectStore,
    missing_storage_config,
    object_path_for_reference,
    private_object_dir,
)
from app.back.core.security import require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["objects"])


@lru_cache
def _build_store() -> ObjectStore:
    return ObjectStore.from_settings(settings)


def get_object_store() -> ObjectStore:
    if missing_storage_config(settings):
        raise HTTPException(status_code=503, detail="Object storage is not configured")
    return _build_store()


# ===========================
# 비공개 파일 (로고/아바타/이력서) 다운로드
# ===========================
@router.get("/objects/{kind}/{filename}")
async def get_private_object(
    kind: str,
    filename: str,
    current_user=Depends(require_user),
    store: ObjectStore = Depends(get_object_store),
):
    reference = f"/objects/{kind}/{filename}"
    try:
        object_path = object_path_for_reference(settings, reference)
        obj = await asyncio.to_thread(store.get_object, object_path)
    except ObjectNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")

    headers = {
        # 브라우저에서 PDF/이미지 미리보기는 되도록 inline
        "Content-Disposition": f'inline; filename="{obj.name}"',
        "Cache-Control": "private, max-age=0, no-store",
    }
    if obj.size is not None:
        headers["Content-Length"] = str(obj.size)

    return StreamingResponse(
        obj.body.iter_chunks(),
        media_type=obj.content_type,
        headers=headers,
    )


# ===========================
# 직접 업로드용 서명 URL 발급
# ===========================
@router.post("/api/objects/upload")
async def request_upload_url(
    current_user=Depends(require_user),
    store: ObjectStore = Depends(get_object_store),
):
    upload_url, object_path = store.upload_url(
        private_object_dir(settings),
        ttl_sec=settings.OBJECT_UPLOAD_URL_TTL_S,
    )
    logger.info("upload url issued | user=%s object=%s", current_user.id, object_path)
    return {"uploadURL": upload_url, "objectPath": object_path}

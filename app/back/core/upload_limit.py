# app/back/core/upload_limit.py
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from app.back.core.config import settings

# multipart 경계/헤더 몫 (파일 1개 기준 여유분)
MULTIPART_OVERHEAD = 64 * 1024


def _header(scope, name: bytes) -> bytes | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value
    return None


def _too_large_detail(limit: int) -> dict:
    return {"error": f"Request body too large. Maximum upload size is {limit} bytes.", "field": None}


class UploadSizeLimitMiddleware:
    """
    multipart 요청 본문 크기 제한.
    - Content-Length 가 한도를 넘으면 본문을 읽지 않고 바로 413
    - 헤더가 없거나 거짓이어도, 받은 바이트가 한도를 넘는 순간 413 (나머지는 안 읽음)
    Starlette 가 form 을 파싱하면서 디스크에 쌓기 전에 끊기 위함.
    파일별 정확한 한도(경계 포함)는 upload_service.save_upload 에서 다시 확인
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_type = _header(scope, b"content-type") or b""
        if not content_type.lower().startswith(b"multipart/form-data"):
            await self.app(scope, receive, send)
            return

        limit = settings.UPLOAD_MAX_BYTES + MULTIPART_OVERHEAD

        raw_length = _header(scope, b"content-length")
        if raw_length is not None and raw_length.isdigit() and int(raw_length) > limit:
            response = JSONResponse({"detail": _too_large_detail(settings.UPLOAD_MAX_BYTES)}, status_code=413)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > limit:
                    # 라우터 안에서 터지므로 FastAPI 예외 핸들러가 413 응답으로 바꿔줌
                    raise HTTPException(status_code=413, detail=_too_large_detail(settings.UPLOAD_MAX_BYTES))
            return message

        await self.app(scope, limited_receive, send)

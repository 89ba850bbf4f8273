import logging

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from app.back.core.config import settings
from app.back.core.db import init_db
from app.back.core.upload_limit import UploadSizeLimitMiddleware
from app.back.routers import api_companies, api_uploads, web_objects

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
)

app = FastAPI(
    title="Job Board API",
    docs_url=None,
    redoc_url=None,
)

# 세션 (로그인 상태 유지용)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie="jobboard_session",
)

# 업로드 용량 제한 (form 파싱 전에 본문 스트림에서 끊음)
app.add_middleware(UploadSizeLimitMiddleware)

# 라우터 등록
app.include_router(api_companies.router)
app.include_router(api_uploads.router)
app.include_router(web_objects.router)


# 헬스체크 (Render용 포함)
@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.on_event("startup")
async def on_startup():
    # 개발 단계용: 테이블 자동 생성
    await init_db()

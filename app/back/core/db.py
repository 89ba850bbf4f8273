# app/back/core/db.py
import re
import urllib.parse
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
)
from sqlalchemy.orm import sessionmaker, declarative_base

from app.back.core.config import settings

Base = declarative_base()


def to_async_url(raw_url: str) -> str:
    """
    postgresql://... → postgresql+asyncpg://... (sslmode 같은 querystring 제거)
    그 외 URL (sqlite+aiosqlite 등)은 그대로 사용
    """
    if not raw_url.startswith("postgresql:"):
        return raw_url

    # sslmode, channel_binding 같은 querystring 제거
    parsed = urllib.parse.urlsplit(raw_url)
    clean_url = urllib.parse.urlunsplit(parsed._replace(query=""))
    return re.sub(r"^postgresql:", "postgresql+asyncpg:", clean_url)


def create_engine_from_url(raw_url: str) -> AsyncEngine:
    url = to_async_url(raw_url)
    connect_args = {}
    if url.startswith("postgresql+asyncpg:"):
        connect_args["ssl"] = "require"   # Neon 이 SSL 요구하므로 이렇게 지정

    return create_async_engine(
        url,
        echo=False,        # 필요하면 True로 바꿔서 SQL 로그 보기
        future=True,
        connect_args=connect_args,
    )


def make_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> AsyncEngine:
    """웹 앱용 엔진 (처음 호출될 때 생성)"""
    global _engine
    if _engine is None:
        _engine = create_engine_from_url(settings.DATABASE_URL)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())
    return _session_factory


async def get_db():
    """FastAPI 의존성용 세션"""
    async with get_session_factory()() as session:
        yield session


@asynccontextmanager
async def session_scope(session_factory: sessionmaker):
    """
    스크립트용: 작업 단위마다 세션을 열고 commit / rollback 후 반드시 닫음
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine | None = None):
    """
    초기 개발 단계용: 모델 변경 시마다 테이블 자동 생성.
    나중에는 Alembic 마이그레이션으로 교체하는 게 좋음.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        # 여기서 import 해야 순환참조 방지
        from app.back.models.user import UserORM  # noqa: F401
        from app.back.models.company import Company  # noqa: F401
        from app.back.models.talent_profile import TalentProfile  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

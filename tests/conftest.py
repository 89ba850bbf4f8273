"""
Pytest configuration and shared fixtures.
"""

import asyncio
import base64
import json
import os
import tempfile

# 앱 모듈 import 전에 DB URL 지정 (Settings 에서 필수값)
_TEST_DIR = tempfile.mkdtemp(prefix="jobboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from app.back.core.config import Settings
from app.back.core.db import init_db, make_session_factory
from app.back.core.object_store import StoredObject, parse_object_path


class FakeBody:
    def __init__(self, data: bytes):
        self.data = data

    def read(self) -> bytes:
        return self.data

    def iter_chunks(self, chunk_size: int = 1024):
        for i in range(0, len(self.data), chunk_size):
            yield self.data[i:i + chunk_size]


class FakeObjectStore:
    """In-memory stand-in for ObjectStore."""

    def __init__(self, fail_on=()):
        self.objects = {}
        self.uploads = []
        self.fail_on = set(fail_on)

    def upload_file(self, object_path, local_path, content_type, metadata=None):
        self.uploads.append(object_path)
        if os.path.basename(local_path) in self.fail_on:
            raise ConnectionError(f"upload failed for {local_path}")
        with open(local_path, "rb") as f:
            self.objects[object_path] = {
                "data": f.read(),
                "content_type": content_type,
                "metadata": dict(metadata or {}),
            }

    def upload_url(self, private_dir, ttl_sec=900):
        object_id = f"upload-{len(self.uploads)}"
        self.uploads.append(f"{private_dir}/uploads/{object_id}")
        return f"https://signed.example/{object_id}?ttl={ttl_sec}", f"/objects/uploads/{object_id}"

    def get_object(self, object_path):
        from app.back.core.object_store import ObjectNotFoundError

        if object_path not in self.objects:
            raise ObjectNotFoundError(object_path)
        item = self.objects[object_path]
        return StoredObject(
            body=FakeBody(item["data"]),
            content_type=item["content_type"],
            size=len(item["data"]),
            name=parse_object_path(object_path)[1].rsplit("/", 1)[-1],
        )


def encode_service_account(data: dict) -> str:
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


@pytest.fixture
def storage_settings() -> Settings:
    """Settings with every object-storage value present."""
    return Settings(
        DATABASE_URL=os.environ["DATABASE_URL"],
        GCS_BUCKET="jobboard-test",
        GCS_PROJECT_ID="jobboard-project",
        GCS_SERVICE_ACCOUNT_B64=encode_service_account(
            {"accessId": "GOOG1EXAMPLE", "secret": "s3cr3t"}
        ),
        PRIVATE_OBJECT_DIR="",
        MIGRATION_UPLOAD_TIMEOUT_S=5.0,
    )


@pytest.fixture
def session_factory(tmp_path):
    """Fresh sqlite database with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    asyncio.run(init_db(engine))
    yield make_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def seed(session_factory):
    """Insert ORM objects: seed(obj1, obj2, ...)."""

    def _seed(*objects):
        async def _run():
            async with session_factory() as session:
                session.add_all(objects)
                await session.commit()

        asyncio.run(_run())

    return _seed


@pytest.fixture
def fetch_value(session_factory):
    """Read one column of one row: fetch_value(Model.column, Model.key, key)."""

    def _fetch(column, key_column, key):
        async def _run():
            async with session_factory() as session:
                result = await session.execute(select(column).where(key_column == key))
                return result.scalar_one_or_none()

        return asyncio.run(_run())

    return _fetch


@pytest.fixture
def upload_root(tmp_path, monkeypatch):
    """Point UPLOAD_ROOT at a temp directory."""
    from app.back.core.config import settings

    root = tmp_path / "root"
    root.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_ROOT", str(root))
    return root


@pytest.fixture
def make_store():
    """Factory for FakeObjectStore(fail_on=...)."""
    return FakeObjectStore

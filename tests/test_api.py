"""HTTP-level tests for uploads, companies and private objects."""

import asyncio
import re

import pytest
from fastapi.testclient import TestClient

from app.back import main
from app.back.core.db import get_db
from app.back.core.security import require_user
from app.back.models.company import Company
from app.back.models.talent_profile import TalentProfile
from app.back.models.user import User, UserORM
from app.back.routers import api_uploads
from app.back.routers.web_objects import get_object_store

TALENT = User(id="u1", email="talent@example.com", role="talent")
ADMIN = User(id="a1", email="admin@example.com", role="admin")


@pytest.fixture
def app(session_factory, upload_root, monkeypatch):
    async def no_init_db():
        return None

    async def test_db():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(main, "init_db", no_init_db)
    main.app.dependency_overrides[get_db] = test_db
    yield main.app
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(app):
    def _login(user: User = TALENT):
        app.dependency_overrides[require_user] = lambda: user
        return user

    return _login


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestUploadEndpoint:

    def test_logo_png_is_accepted(self, client, upload_root):
        response = client.post("/api/uploads", files={"logo": ("logo.png", b"\x89PNG", "image/png")})

        assert response.status_code == 200
        body = response.json()
        assert body["field"] == "logo"
        assert re.fullmatch(r"uploads/logos/\d+-[0-9a-f]{16}\.png", body["path"])
        assert (upload_root / body["path"]).read_bytes() == b"\x89PNG"

    def test_resume_png_is_rejected(self, client, upload_root):
        response = client.post("/api/uploads", files={"resume": ("cv.png", b"\x89PNG", "image/png")})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["field"] == "resume"
        assert detail["error"].startswith("Invalid file type")
        assert not (upload_root / "uploads" / "resumes").exists()

    def test_unknown_field_is_rejected(self, client):
        response = client.post("/api/uploads", files={"banner": ("b.png", b"x", "image/png")})

        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "Unknown file field", "field": "banner"}

    def test_oversized_file_is_413(self, client):
        data = b"a" * (5 * 1024 * 1024 + 1)
        response = client.post("/api/uploads", files={"resume": ("cv.pdf", data, "application/pdf")})

        assert response.status_code == 413

    def test_no_file_is_400(self, client):
        response = client.post("/api/uploads", data={"note": "hi"})

        assert response.status_code == 400


BOUNDARY = "jobboardboundary"
MIB = 1024 * 1024


def multipart_chunks(field, filename, content_type, total_bytes, chunk_size=256 * 1024):
    """Stream a single-file multipart body in chunks."""
    head = (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
        f"Content-Type: {content_type}\r\n\r\n"
    ).encode()
    yield head
    sent = 0
    while sent < total_bytes:
        size = min(chunk_size, total_bytes - sent)
        yield b"a" * size
        sent += size
    yield f"\r\n--{BOUNDARY}--\r\n".encode()


def call_app(app, headers, chunks):
    """Drive the ASGI app directly; returns (status, number of body chunks consumed)."""
    chunks = list(chunks)
    state = {"consumed": 0, "status": None}

    async def receive():
        index = state["consumed"]
        if index >= len(chunks):
            return {"type": "http.disconnect"}
        state["consumed"] += 1
        return {
            "type": "http.request",
            "body": chunks[index],
            "more_body": index < len(chunks) - 1,
        }

    async def send(message):
        if message["type"] == "http.response.start":
            state["status"] = message["status"]

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": "/api/uploads",
        "raw_path": b"/api/uploads",
        "root_path": "",
        "query_string": b"",
        "headers": headers,
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    asyncio.run(app(scope, receive, send))
    return state["status"], state["consumed"], len(chunks)


class TestUploadBodyLimit:

    def test_declared_oversized_body_is_rejected_before_reading(self, client, monkeypatch):
        def must_not_store(*args, **kwargs):
            raise AssertionError("body should not reach the upload service")

        monkeypatch.setattr(api_uploads, "save_upload", must_not_store)

        response = client.post(
            "/api/uploads",
            files={"logo": ("big.png", b"a" * (20 * MIB), "image/png")},
        )

        assert response.status_code == 413
        assert "too large" in response.json()["detail"]["error"]

    def test_streamed_oversized_body_stops_being_read(self, app):
        headers = [(b"content-type", f"multipart/form-data; boundary={BOUNDARY}".encode())]

        status, consumed, total = call_app(
            app, headers, multipart_chunks("logo", "big.png", "image/png", 20 * MIB)
        )

        assert status == 413
        # 5 MiB cap in 256 KiB chunks: reading stops a little past chunk 20 of 82
        assert consumed < total / 2

    def test_streamed_small_body_is_accepted(self, app, upload_root):
        headers = [(b"content-type", f"multipart/form-data; boundary={BOUNDARY}".encode())]

        status, consumed, total = call_app(
            app, headers, multipart_chunks("logo", "small.png", "image/png", 300 * 1024)
        )

        assert status == 200
        assert consumed == total
        assert len(list((upload_root / "uploads" / "logos").iterdir())) == 1

    def test_non_multipart_requests_are_untouched(self, client):
        response = client.post("/api/companies", json={"name": "x" * 10})

        assert response.status_code == 201


class TestCompanyEndpoints:

    def test_create_and_fetch_by_slug(self, client):
        first = client.post("/api/companies", json={"name": "Acme Labs"})
        second = client.post("/api/companies", json={"name": "Acme Labs"})

        assert first.status_code == 201
        assert first.json()["slug"] == "acme-labs"
        assert second.json()["slug"] == "acme-labs-1"

        fetched = client.get("/api/companies/acme-labs-1")
        assert fetched.status_code == 200
        assert fetched.json()["id"] == second.json()["id"]

    def test_gcs_logo_url_is_stored_as_objects_path(self, client, monkeypatch):
        from app.back.core.config import settings

        monkeypatch.setattr(settings, "GCS_BUCKET", "jobboard-test")
        monkeypatch.setattr(settings, "PRIVATE_OBJECT_DIR", "")

        response = client.post("/api/companies", json={
            "name": "Initech",
            "logo": "https://storage.googleapis.com/jobboard-test/.private/logos/x.png",
        })

        assert response.status_code == 201
        assert response.json()["logo"] == "/objects/logos/x.png"

    def test_unknown_slug_is_404(self, client):
        assert client.get("/api/companies/nope").status_code == 404

    def test_logo_upload_sets_local_reference(self, client, login, seed, fetch_value):
        login(ADMIN)
        seed(Company(id="c1", name="Acme", slug="acme"))

        response = client.post(
            "/api/companies/c1/logo",
            files={"logo": ("logo.webp", b"RIFF", "image/webp")},
        )

        assert response.status_code == 200
        logo = fetch_value(Company.logo, Company.id, "c1")
        assert logo.startswith("/uploads/logos/")
        assert response.json()["logo"] == logo

    def test_logo_upload_requires_login(self, client, seed):
        seed(Company(id="c1", name="Acme", slug="acme"))

        response = client.post(
            "/api/companies/c1/logo",
            files={"logo": ("logo.png", b"x", "image/png")},
        )

        assert response.status_code == 401

    def test_non_admin_cannot_replace_logo(self, client, login, seed, fetch_value, upload_root):
        login(TALENT)
        seed(Company(id="c1", name="Acme", slug="acme", logo="/uploads/logos/old.png"))

        response = client.post(
            "/api/companies/c1/logo",
            files={"logo": ("logo.png", b"x", "image/png")},
        )

        assert response.status_code == 403
        assert fetch_value(Company.logo, Company.id, "c1") == "/uploads/logos/old.png"
        assert not (upload_root / "uploads").exists()

    def test_logo_upload_for_missing_company_is_404(self, client, login, upload_root):
        login(ADMIN)

        response = client.post(
            "/api/companies/missing/logo",
            files={"logo": ("logo.png", b"x", "image/png")},
        )

        assert response.status_code == 404
        assert not (upload_root / "uploads").exists()


class TestResumeEndpoint:

    def test_resume_upload_creates_profile(self, client, login, seed, fetch_value):
        login()
        seed(UserORM(id="u1", email="talent@example.com"))

        response = client.post(
            "/api/talents/u1/resume",
            files={"resume": ("cv.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 200
        resume = fetch_value(TalentProfile.resume, TalentProfile.user_id, "u1")
        assert re.fullmatch(r"/uploads/resumes/\d+-[0-9a-f]{16}\.pdf", resume)

    def test_other_users_resume_is_forbidden(self, client, login):
        login()

        response = client.post(
            "/api/talents/u2/resume",
            files={"resume": ("cv.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 403


class TestPrivateObjects:

    @pytest.fixture
    def store(self, app, make_store):
        store = make_store()
        app.dependency_overrides[get_object_store] = lambda: store
        return store

    def test_serves_object_inline_without_caching(self, client, login, store, monkeypatch):
        from app.back.core.config import settings

        monkeypatch.setattr(settings, "GCS_BUCKET", "jobboard-test")
        monkeypatch.setattr(settings, "PRIVATE_OBJECT_DIR", "")
        store.objects["jobboard-test/.private/resumes/abc.pdf"] = {
            "data": b"%PDF-1.7",
            "content_type": "application/pdf",
            "metadata": {},
        }
        login()

        response = client.get("/objects/resumes/abc.pdf")

        assert response.status_code == 200
        assert response.content == b"%PDF-1.7"
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["cache-control"] == "private, max-age=0, no-store"
        assert response.headers["content-disposition"] == 'inline; filename="abc.pdf"'

    def test_missing_object_is_404(self, client, login, store, monkeypatch):
        from app.back.core.config import settings

        monkeypatch.setattr(settings, "GCS_BUCKET", "jobboard-test")
        login()

        assert client.get("/objects/logos/none.png").status_code == 404

    def test_requires_login(self, client, store):
        assert client.get("/objects/logos/a.png").status_code == 401

    def test_upload_url_is_issued_to_logged_in_user(self, client, login, store, monkeypatch):
        from app.back.core.config import settings

        monkeypatch.setattr(settings, "GCS_BUCKET", "jobboard-test")
        monkeypatch.setattr(settings, "PRIVATE_OBJECT_DIR", "")
        monkeypatch.setattr(settings, "OBJECT_UPLOAD_URL_TTL_S", 300)
        login()

        response = client.post("/api/objects/upload")

        assert response.status_code == 200
        assert response.json() == {
            "uploadURL": "https://signed.example/upload-0?ttl=300",
            "objectPath": "/objects/uploads/upload-0",
        }
        assert store.uploads == ["jobboard-test/.private/uploads/upload-0"]

    def test_upload_url_requires_login(self, client, store):
        assert client.post("/api/objects/upload").status_code == 401
        assert store.uploads == []

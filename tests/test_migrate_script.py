"""Tests for the migrate_uploads_to_object_store command line entry point."""

import asyncio

import pytest

from app.back.scripts import migrate_uploads_to_object_store as script
from app.back.services.migration_service import MigrationLockedError, MigrationReport, CandidateFailure


@pytest.fixture(autouse=True)
def in_tmp_dir(tmp_path, monkeypatch):
    # 로그 파일이 tmp 아래에 생기도록
    monkeypatch.chdir(tmp_path)


def test_missing_config_exits_1_without_db(monkeypatch, caplog):
    monkeypatch.setattr(script.settings, "GCS_BUCKET", "")
    monkeypatch.setattr(script.settings, "GCS_PROJECT_ID", "")
    monkeypatch.setattr(script.settings, "GCS_SERVICE_ACCOUNT_B64", "")

    def no_engine(url):
        raise AssertionError("database must not be touched")

    monkeypatch.setattr(script, "create_engine_from_url", no_engine)

    assert script.main([]) == 1
    assert "GCS_BUCKET" in caplog.text
    assert "GCS_SERVICE_ACCOUNT_B64" in caplog.text


def test_invalid_credentials_exit_1(monkeypatch, storage_settings):
    monkeypatch.setattr(script, "settings", storage_settings)
    storage_settings.GCS_SERVICE_ACCOUNT_B64 = "%%%"

    assert asyncio.run(script.migrate(base_dir=".")) == 1


class TestExitCode:

    @pytest.fixture
    def run_with(self, monkeypatch, storage_settings, session_factory):
        monkeypatch.setattr(script, "settings", storage_settings)
        monkeypatch.setattr(script, "make_session_factory", lambda engine: session_factory)

        def _run_with(outcome):
            async def fake_run(*args, **kwargs):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

            monkeypatch.setattr(script, "run_migration", fake_run)
            return asyncio.run(script.migrate(base_dir="."))

        return _run_with

    def test_clean_run_exits_0(self, run_with):
        assert run_with(MigrationReport(migrated=3, skipped=1)) == 0

    def test_any_failure_exits_1(self, run_with):
        report = MigrationReport(migrated=2, failures=[CandidateFailure("logo", "c1", "boom")])
        assert run_with(report) == 1

    def test_concurrent_run_exits_1(self, run_with):
        assert run_with(MigrationLockedError("busy")) == 1

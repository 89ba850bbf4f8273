# scripts/migrate_uploads_to_object_store.py
"""
기존 로컬 업로드 파일을 GCS 로 옮기고 DB 경로를 /objects/... 로 바꾸는 스크립트

Usage:
    python -m app.back.scripts.migrate_uploads_to_object_store
    python -m app.back.scripts.migrate_uploads_to_object_store --dry-run
    python -m app.back.scripts.migrate_uploads_to_object_store --kind logo --kind resume

⚠ 동시에 두 번 돌리지 말 것 (Postgres 에서는 advisory lock 으로 막음)
"""
import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from typing import List, Optional

from dotenv import load_dotenv
load_dotenv()

from app.back.core.config import settings
from app.back.core.db import create_engine_from_url, make_session_factory
from app.back.core.object_store import (
    REQUIRED_STORAGE_SETTINGS,
    InvalidServiceAccountError,
    ObjectStore,
    missing_storage_config,
)
from app.back.services.migration_service import (
    TARGETS,
    MigrationLockedError,
    MigrationReport,
    run_migration,
)

logger = logging.getLogger(__name__)

LOG_DIR = "logs"


# =========================
# Logging 설정
# =========================
def setup_logging(log_dir: str = LOG_DIR) -> str:
    os.makedirs(log_dir, exist_ok=True)

    log_file = os.path.join(
        log_dir,
        f"migrate_uploads_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    )

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        handlers=[
            logging.StreamHandler(),                 # 콘솔
            logging.FileHandler(log_file, encoding="utf-8"),  # 파일
        ],
    )
    return log_file


def log_summary(report: MigrationReport, dry_run: bool) -> None:
    logger.info("=" * 60)
    if dry_run:
        logger.info("Dry run complete! would migrate: %d", report.planned)
        return

    logger.info("Migration complete!")
    logger.info("   Migrated: %d", report.migrated)
    logger.info("   Skipped:  %d", report.skipped)
    logger.info("   Errors:   %d", report.failed)
    logger.info("=" * 60)

    if report.failures:
        logger.warning("Some uploads failed to migrate. Failed samples (up to 10):")
        for item in report.failures[:10]:
            logger.warning("  [%s] id=%s error=%s", item.kind, item.row_id, item.error)


async def migrate(
    *,
    base_dir: str,
    kinds: Optional[List[str]] = None,
    dry_run: bool = False,
) -> int:
    logger.info("=== Upload Migration START ===")

    # 설정 먼저 확인 (DB 건드리기 전에 중단)
    missing = missing_storage_config(settings)
    if missing:
        logger.error("Missing GCS environment variables. Please set:")
        for name in REQUIRED_STORAGE_SETTINGS:
            if name in missing:
                logger.error("   - %s", name)
        return 1

    try:
        store = ObjectStore.from_settings(settings)
    except InvalidServiceAccountError as e:
        logger.error("%s", e)
        return 1

    engine = create_engine_from_url(settings.DATABASE_URL)
    session_factory = make_session_factory(engine)

    try:
        report = await run_migration(
            settings,
            session_factory,
            store,
            base_dir=base_dir,
            kinds=kinds,
            dry_run=dry_run,
        )
    except MigrationLockedError as e:
        logger.error("%s", e)
        return 1
    finally:
        await engine.dispose()

    log_summary(report, dry_run)
    logger.info("=== Upload Migration END ===")
    return report.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Migrate local uploads to Google Cloud Storage")
    parser.add_argument("--base-dir", default=settings.UPLOAD_ROOT,
                        help="Directory that contains uploads/ (default: UPLOAD_ROOT)")
    parser.add_argument("--kind", action="append", choices=[t.kind for t in TARGETS],
                        help="Only migrate this kind (repeatable)")
    parser.add_argument("--dry-run", action="store_true",
                        help="List candidates without uploading or updating rows")
    args = parser.parse_args(argv)

    log_file = setup_logging()
    try:
        return asyncio.run(
            migrate(base_dir=args.base_dir, kinds=args.kind, dry_run=args.dry_run)
        )
    except Exception:
        logger.exception("Migration failed")
        return 1
    finally:
        logger.info("Log file saved to: %s", log_file)


if __name__ == "__main__":
    sys.exit(main())

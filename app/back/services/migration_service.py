# app/back/services/migration_service.py
"""
로컬 업로드(/uploads/...) → GCS 비공개 영역(/objects/...) 이관

- 대상: companies.logo / users.avatar / talent_profiles.resume 중 아직 로컬 경로인 row
- row 하나씩 독립 처리 (하나 실패해도 전체는 계속 진행)
- 로컬 파일 없으면 SKIP (에러 아님)
- 다시 돌려도 안전: 이미 /objects/... 로 바뀐 row 는 조회 대상에서 빠짐
- 로컬 파일은 삭제하지 않음 (정리는 수동)
"""
import asyncio
import logging
import os
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Iterable, List, Optional

from sqlalchemy import select, text, update
from sqlalchemy.orm import sessionmaker

from app.back.core.config import Settings
from app.back.core.db import session_scope
from app.back.core.object_store import (
    ObjectStore,
    canonical_reference,
    guess_content_type,
    missing_storage_config,
    private_object_dir,
)
from app.back.models.company import Company
from app.back.models.talent_profile import TalentProfile
from app.back.models.user import UserORM

logger = logging.getLogger(__name__)

# 같은 (kind, row, 로컬경로) 면 항상 같은 object id → 재시도해도 같은 오브젝트를 덮어씀
OBJECT_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "jobboard/upload-migration")

# pg_advisory_lock 키 (동시에 두 번 실행 방지)
MIGRATION_LOCK_KEY = 727_001

# 업로드 스레드 수 (멈춘 호출이 있어도 다음 후보는 진행되도록 여유있게)
UPLOAD_WORKERS = 4


class MissingStorageConfigError(RuntimeError):
    def __init__(self, missing: List[str]):
        super().__init__("Missing GCS environment variables: " + ", ".join(missing))
        self.missing = missing


class MigrationLockedError(RuntimeError):
    pass


@dataclass(frozen=True)
class MigrationTarget:
    kind: str                 # logo / avatar / resume
    label: str                # 로그용
    model: Any
    key_attr: str
    ref_attr: str
    local_prefix: str

    @property
    def key_column(self):
        return getattr(self.model, self.key_attr)

    @property
    def ref_column(self):
        return getattr(self.model, self.ref_attr)


TARGETS = (
    MigrationTarget("logo", "Company", Company, "id", "logo", "/uploads/logos/"),
    MigrationTarget("avatar", "User", UserORM, "id", "avatar", "/uploads/avatars/"),
    MigrationTarget("resume", "Talent", TalentProfile, "user_id", "resume", "/uploads/resumes/"),
)


@dataclass
class Candidate:
    target: MigrationTarget
    row_id: str
    reference: str


@dataclass
class CandidateFailure:
    kind: str
    row_id: str
    error: str


@dataclass
class MigrationReport:
    migrated: int = 0
    skipped: int = 0
    planned: int = 0          # dry-run 일 때 대상 개수
    failures: List[CandidateFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


def object_id_for(candidate: Candidate) -> str:
    name = f"{candidate.target.kind}:{candidate.row_id}:{candidate.reference}"
    return str(uuid.uuid5(OBJECT_ID_NAMESPACE, name))


def resolve_local_path(base_dir: str, reference: str) -> str:
    """
    "/uploads/logos/a.png" → "<base_dir>/uploads/logos/a.png"
    base_dir 밖으로 나가는 경로("../")는 거부
    """
    root = os.path.abspath(base_dir)
    local_path = os.path.abspath(os.path.join(root, reference.lstrip("/")))
    if os.path.commonpath([root, local_path]) != root:
        raise ValueError(f"Reference escapes upload root: {reference}")
    return local_path


async def find_candidates(session_factory: sessionmaker, target: MigrationTarget) -> List[Candidate]:
    async with session_factory() as session:
        result = await session.execute(
            select(target.key_column, target.ref_column)
            .where(target.ref_column.like(f"{target.local_prefix}%"))
            .order_by(target.key_column)
        )
        return [Candidate(target, str(row_id), ref) for row_id, ref in result.all()]


async def migrate_candidate(
    candidate: Candidate,
    *,
    session_factory: sessionmaker,
    store: ObjectStore,
    private_dir: str,
    base_dir: str,
    timeout_s: Optional[float] = None,
    executor: Optional[Executor] = None,
) -> Optional[str]:
    """
    후보 1개 이관. 새 canonical 경로 반환, 건너뛰면 None.
    실패는 예외로 올려보냄 (run_migration 에서 집계)
    """
    target = candidate.target
    local_path = resolve_local_path(base_dir, candidate.reference)

    if not os.path.exists(local_path):
        logger.warning(
            "[%s] SKIP | %s %s | file not found at %s",
            target.kind, target.label, candidate.row_id, local_path,
        )
        return None

    filename = os.path.basename(local_path)
    ext = os.path.splitext(filename)[1]
    object_id = object_id_for(candidate)
    object_path = f"{private_dir}/{target.kind}s/{object_id}{ext}"

    logger.info("  Uploading %s → gs://%s", local_path, object_path)

    # boto3 는 동기 → 스레드에서 실행. 실제 타임아웃은 boto3 소켓 타임아웃,
    # wait_for 는 그게 안 먹힐 때를 위한 안전장치
    loop = asyncio.get_running_loop()
    await asyncio.wait_for(
        loop.run_in_executor(
            executor,
            partial(
                store.upload_file,
                object_path,
                local_path,
                guess_content_type(filename),
                {
                    "originalFilename": filename,
                    "uploadedAt": datetime.now(timezone.utc).isoformat(),
                    "migratedFrom": local_path,
                },
            ),
        ),
        timeout=timeout_s,
    )

    new_reference = canonical_reference(target.kind, object_id, ext)

    # 업로드하는 사이에 다른 곳에서 값이 바뀌었으면 덮어쓰지 않음
    async with session_scope(session_factory) as session:
        result = await session.execute(
            update(target.model)
            .where(
                target.key_column == candidate.row_id,
                target.ref_column == candidate.reference,
            )
            .values({target.ref_attr: new_reference})
            .execution_options(synchronize_session=False)
        )

    if result.rowcount == 0:
        logger.warning(
            "[%s] SKIP | %s %s | row changed during migration, left as is",
            target.kind, target.label, candidate.row_id,
        )
        return None

    logger.info(
        "[%s] SUCCESS | %s %s | %s → %s",
        target.kind, target.label, candidate.row_id, candidate.reference, new_reference,
    )
    return new_reference


@asynccontextmanager
async def migration_lock(session_factory: sessionmaker):
    """
    Postgres 면 advisory lock 으로 동시 실행 막음. (sqlite 등은 그냥 통과)
    락은 커넥션(세션) 단위 → 이 커넥션을 끝까지 잡고 있어야 함.
    획득 직후 commit 해서 idle-in-transaction 상태로 오래 두지 않음 (Neon 타임아웃)
    """
    engine = session_factory.kw["bind"]
    async with engine.connect() as conn:
        if conn.dialect.name != "postgresql":
            yield
            return

        acquired = (
            await conn.execute(
                text("SELECT pg_try_advisory_lock(:key)"), {"key": MIGRATION_LOCK_KEY}
            )
        ).scalar()
        await conn.commit()
        if not acquired:
            raise MigrationLockedError("Another upload migration is already running.")

        try:
            yield
        finally:
            await conn.execute(
                text("SELECT pg_advisory_unlock(:key)"), {"key": MIGRATION_LOCK_KEY}
            )
            await conn.commit()


def select_targets(kinds: Optional[Iterable[str]] = None) -> List[MigrationTarget]:
    if not kinds:
        return list(TARGETS)
    wanted = set(kinds)
    unknown = wanted - {t.kind for t in TARGETS}
    if unknown:
        raise ValueError(f"Unknown kind(s): {', '.join(sorted(unknown))}")
    return [t for t in TARGETS if t.kind in wanted]


async def run_migration(
    settings: Settings,
    session_factory: sessionmaker,
    store: ObjectStore,
    *,
    base_dir: str,
    kinds: Optional[Iterable[str]] = None,
    timeout_s: Optional[float] = None,
    dry_run: bool = False,
) -> MigrationReport:
    missing = missing_storage_config(settings)
    if missing:
        raise MissingStorageConfigError(missing)

    targets = select_targets(kinds)
    private_dir = private_object_dir(settings)
    if timeout_s is None:
        timeout_s = settings.MIGRATION_UPLOAD_TIMEOUT_S

    report = MigrationReport()

    # 전용 스레드풀: 끝날 때 멈춘 업로드 스레드를 기다리지 않고 바로 반환
    executor = ThreadPoolExecutor(max_workers=UPLOAD_WORKERS, thread_name_prefix="upload-migration")
    try:
        await _migrate_targets(
            report,
            targets,
            session_factory=session_factory,
            store=store,
            private_dir=private_dir,
            base_dir=base_dir,
            timeout_s=timeout_s,
            dry_run=dry_run,
            executor=executor,
        )
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return report


async def _migrate_targets(
    report: MigrationReport,
    targets: List[MigrationTarget],
    *,
    session_factory: sessionmaker,
    store: ObjectStore,
    private_dir: str,
    base_dir: str,
    timeout_s: Optional[float],
    dry_run: bool,
    executor: Executor,
) -> None:
    async with migration_lock(session_factory):
        for target in targets:
            logger.info("=== Migrating %s %ss ===", target.label, target.kind)
            candidates = await find_candidates(session_factory, target)
            logger.info("found %d candidate(s)", len(candidates))

            for candidate in candidates:
                if dry_run:
                    report.planned += 1
                    logger.info(
                        "[%s] DRY-RUN | %s %s | %s",
                        target.kind, target.label, candidate.row_id, candidate.reference,
                    )
                    continue

                try:
                    new_reference = await migrate_candidate(
                        candidate,
                        session_factory=session_factory,
                        store=store,
                        private_dir=private_dir,
                        base_dir=base_dir,
                        timeout_s=timeout_s,
                        executor=executor,
                    )
                except Exception as e:
                    error = str(e) or type(e).__name__
                    report.failures.append(CandidateFailure(target.kind, candidate.row_id, error))
                    logger.error(
                        "[%s] FAIL | %s %s | error=%s",
                        target.kind, target.label, candidate.row_id, error,
                        exc_info=True,
                    )
                    continue

                if new_reference is None:
                    report.skipped += 1
                else:
                    report.migrated += 1

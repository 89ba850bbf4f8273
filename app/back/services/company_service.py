# app/back/services/company_service.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.back.core.config import settings
from app.back.core.object_store import normalize_object_entity_path
from app.back.models.company import Company, CompanyRead, CompanyCreate
from app.back.services.slug_service import generate_unique_company_slug


# ========================
# slug 로 회사 조회
# ========================
async def get_company_by_slug(db: AsyncSession, slug: str) -> Optional[Company]:
    q = await db.execute(select(Company).where(Company.slug == slug))
    return q.scalar_one_or_none()


async def get_company(db: AsyncSession, company_id: str) -> Optional[Company]:
    q = await db.execute(select(Company).where(Company.id == company_id))
    return q.scalar_one_or_none()


# ========================
# 회사 생성 (slug 자동 생성)
# ========================
async def create_company(db: AsyncSession, data: CompanyCreate) -> CompanyRead:
    slug = await generate_unique_company_slug(
        data.name,
        lambda candidate: get_company_by_slug(db, candidate),
    )

    company = Company(
        name=data.name,
        slug=slug,
        description=data.description,
        website=data.website,
        # GCS URL 로 들어오면 /objects/... 형태로 통일
        logo=normalize_object_entity_path(settings, data.logo) if data.logo else None,
    )

    db.add(company)
    await db.commit()
    await db.refresh(company)
    return CompanyRead.model_validate(company)


# ========================
# 로고 경로 변경
# ========================
async def update_company_logo(
    db: AsyncSession,
    company_id: str,
    logo: str,
) -> Optional[CompanyRead]:
    company = await get_company(db, company_id)
    if not company:
        return None

    company.logo = logo

    await db.commit()
    await db.refresh(company)
    return CompanyRead.model_validate(company)

# app/back/routers/api_companies.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.back.core.db import get_db
from app.back.models.company import CompanyCreate, CompanyRead
from app.back.services import company_service
from app.back.services.slug_service import SlugExhaustedError

router = APIRouter(prefix="/api/companies", tags=["companies"])


@router.post("", status_code=201)
async def create_company(
    data: CompanyCreate,
    db: AsyncSession = Depends(get_db),
) -> CompanyRead:
    try:
        return await company_service.create_company(db, data)
    except SlugExhaustedError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{slug}")
async def get_company(
    slug: str,
    db: AsyncSession = Depends(get_db),
) -> CompanyRead:
    company = await company_service.get_company_by_slug(db, slug)
    if not company:
        raise HTTPException(status_code=404, detail="Company not found")
    return CompanyRead.model_validate(company)

# app/back/services/talent_service.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.back.models.talent_profile import TalentProfile, TalentProfileRead
from app.back.models.user import UserORM


async def get_profile_by_user_id(db: AsyncSession, user_id: str) -> Optional[TalentProfile]:
    result = await db.execute(
        select(TalentProfile).where(TalentProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def set_resume(
    db: AsyncSession,
    user_id: str,
    resume: str,
) -> Optional[TalentProfileRead]:
    """
    이력서 경로 저장. 프로필이 아직 없으면 새로 만듦 (유저 자체가 없으면 None)
    """
    user = await db.get(UserORM, user_id)
    if not user:
        return None

    profile = await get_profile_by_user_id(db, user_id)
    if profile is None:
        profile = TalentProfile(user_id=user_id)
        db.add(profile)

    profile.resume = resume

    await db.commit()
    await db.refresh(profile)
    return TalentProfileRead.model_validate(profile)

# app/back/services/user_service.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.back.models.user import UserORM, User


async def get_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    result = await db.execute(
        select(UserORM).where(UserORM.id == user_id)
    )
    user_orm = result.scalar_one_or_none()
    if not user_orm:
        return None
    return User.model_validate(user_orm)

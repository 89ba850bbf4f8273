# app/back/core/security.py
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.back.core.db import get_db
from app.back.models.user import User
from app.back.services import user_service


# 공통: 현재 로그인 유저 (세션에 user_id 없으면 None)
async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    return await user_service.get_by_id(db, user_id)


async def require_user(current_user: User | None = Depends(get_current_user)) -> User:
    if not current_user or not current_user.is_active:
        raise HTTPException(status_code=401, detail="Login required")
    return current_user

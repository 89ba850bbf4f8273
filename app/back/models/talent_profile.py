# app/back/models/talent_profile.py
import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, String, Text, DateTime, ForeignKey

from app.back.core.db import Base


class TalentProfile(Base):
    __tablename__ = "talent_profiles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # 유저당 프로필 1개 → 마이그레이션/업데이트는 user_id 기준
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    headline = Column(String(255))
    bio = Column(Text)

    # 이력서 경로: "/uploads/resumes/..." 또는 "/objects/resumes/..."
    resume = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow,
                        onupdate=datetime.utcnow, nullable=False)


class TalentProfileRead(BaseModel):
    id: str
    user_id: str
    headline: str | None = None
    resume: str | None = None

    class Config:
        from_attributes = True

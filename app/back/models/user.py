# app/back/models/user.py
import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Boolean, Column, String, DateTime

from app.back.core.db import Base


# SQLAlchemy ORM 모델 (Postgres 테이블)
class UserORM(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100))
    role = Column(String(20), nullable=False, default="talent")   # talent / employer / admin
    is_active = Column(Boolean, default=True, nullable=False)

    # 프로필 사진: "/uploads/avatars/..." 또는 "/objects/avatars/..."
    avatar = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )


# ===== Pydantic 스키마 =====

class User(BaseModel):
    id: str
    email: str
    name: str | None = None
    role: str = "talent"
    is_active: bool = True
    avatar: str | None = None

    class Config:
        from_attributes = True  # ORM 객체에서 바로 변환 가능

# app/back/models/company.py
import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, String, Text, DateTime

from app.back.core.db import Base


# ==========================
# SQLAlchemy ORM 모델
# ==========================
class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)   # URL 용 (중복 불가)
    description = Column(Text)
    website = Column(String(500))

    # 로고 경로: "/uploads/logos/..." (로컬) 또는 "/objects/logos/..." (GCS 이관 후)
    logo = Column(String(500))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow,
                        onupdate=datetime.utcnow, nullable=False)


# ==========================
# Pydantic 모델 (읽기용)
# ==========================
class CompanyRead(BaseModel):
    id: str
    name: str
    slug: str
    description: str | None = None
    website: str | None = None
    logo: str | None = None

    class Config:
        from_attributes = True


# ==========================
# Pydantic 모델 (생성용)
# ==========================
class CompanyCreate(BaseModel):
    name: str
    description: str | None = None
    website: str | None = None
    logo: str | None = None

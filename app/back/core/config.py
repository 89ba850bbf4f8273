# app/back/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 세션/보안용 키 (운영환경에서는 .env 로 관리 추천)
    SECRET_KEY: str = "change-this-secret-in-env"

    # 환경
    ENV: str = "local"
    DEBUG: bool = True

    # ★ Neon DB URL (.env 에서 읽어올 값)
    DATABASE_URL: str

    # pydantic-settings v2 스타일 설정
    model_config = SettingsConfigDict(
        env_file=".env",           # 프로젝트 루트에 .env 두면 자동 로드
        env_file_encoding="utf-8",
        extra="ignore",            # .env 에 다른 값 있어도 무시 (에러 X)
    )

    # 로컬 업로드 (uploads/resumes, uploads/logos, uploads/avatars 의 상위 디렉토리)
    UPLOAD_ROOT: str = "."
    UPLOAD_MAX_BYTES: int = 5 * 1024 * 1024

    # Google Cloud Storage (S3 호환 XML API)
    GCS_BUCKET: str = ""
    GCS_PROJECT_ID: str = ""
    GCS_SERVICE_ACCOUNT_B64: str = ""
    GCS_ENDPOINT_URL: str = "https://storage.googleapis.com"
    PRIVATE_OBJECT_DIR: str = ""   # 비워두면 "<GCS_BUCKET>/.private"

    # 회사 slug 중복 시 "-n" 붙여보는 최대 횟수
    SLUG_MAX_ATTEMPTS: int = 1000

    # 마이그레이션: 파일 1개 업로드 타임아웃(초). boto3 소켓 타임아웃에도 사용
    MIGRATION_UPLOAD_TIMEOUT_S: float = 60.0

    # 클라이언트 직접 업로드용 서명 URL 유효시간(초)
    OBJECT_UPLOAD_URL_TTL_S: int = 900


settings = Settings()

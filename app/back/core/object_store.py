# app/back/core/object_store.py
import base64
import binascii
import json
import os
import urllib.parse
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from app.back.core.config import Settings

# 서비스 계정 관련 설정 (이 3개 없으면 오브젝트 스토리지 못 씀)
REQUIRED_STORAGE_SETTINGS = ("GCS_BUCKET", "GCS_PROJECT_ID", "GCS_SERVICE_ACCOUNT_B64")

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# 확장자 → Content-Type (mimetypes 는 OS마다 결과가 달라서 고정 테이블 사용)
CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

CANONICAL_PREFIX = "/objects/"
GCS_PUBLIC_HOST = "https://storage.googleapis.com/"


class ObjectNotFoundError(Exception):
    def __init__(self, reference: str = ""):
        super().__init__(f"Object not found: {reference}" if reference else "Object not found")
        self.reference = reference


class InvalidServiceAccountError(ValueError):
    pass


def missing_storage_config(settings: Settings) -> list[str]:
    return [name for name in REQUIRED_STORAGE_SETTINGS if not getattr(settings, name, "")]


def decode_service_account(b64: str) -> Dict[str, Any]:
    """
    GCS_SERVICE_ACCOUNT_B64 → dict
    서비스 계정 JSON 안에 HMAC 키(accessId / secret)가 들어있어야 S3 호환 API 사용 가능
    """
    try:
        raw = base64.b64decode(b64, validate=True).decode("utf-8")
        data = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidServiceAccountError(
            "Invalid GCS_SERVICE_ACCOUNT_B64 (failed to base64-decode/parse JSON)."
        ) from e

    if not isinstance(data, dict):
        raise InvalidServiceAccountError("GCS_SERVICE_ACCOUNT_B64 must decode to a JSON object.")
    return data


def _hmac_keys(account: Dict[str, Any]) -> tuple[str, str]:
    access_id = account.get("accessId") or account.get("access_key_id")
    secret = account.get("secret") or account.get("secret_access_key")
    if not access_id or not secret:
        raise InvalidServiceAccountError(
            "Service account JSON has no HMAC key (expected 'accessId' and 'secret')."
        )
    return access_id, secret


def guess_content_type(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def private_object_dir(settings: Settings) -> str:
    """
    비공개 영역 디렉토리: PRIVATE_OBJECT_DIR 가 있으면 그걸, 없으면 "<bucket>/.private"
    """
    directory = (settings.PRIVATE_OBJECT_DIR or "").strip().rstrip("/")
    if directory:
        return directory
    if not settings.GCS_BUCKET:
        raise RuntimeError(
            "Missing PRIVATE_OBJECT_DIR and GCS_BUCKET. Set either to enable object storage."
        )
    return f"{settings.GCS_BUCKET}/.private"


def parse_object_path(path: str) -> tuple[str, str]:
    """
    "bucket/dir/file" 또는 "/bucket/dir/file" → (bucket, "dir/file")
    """
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Invalid path: must include a bucket name: {path}")
    return parts[0], "/".join(parts[1:])


def canonical_reference(kind: str, object_id: str, ext: str) -> str:
    # 예: /objects/resumes/0b1c....pdf
    return f"{CANONICAL_PREFIX}{kind}s/{object_id}{ext}"


def object_path_for_reference(settings: Settings, reference: str) -> str:
    """
    "/objects/<entity>" → "<bucket>/.private/<entity>"
    """
    if not reference.startswith(CANONICAL_PREFIX):
        raise ObjectNotFoundError(reference)

    entity_id = reference[len(CANONICAL_PREFIX):]
    parts = [p for p in entity_id.split("/") if p]
    if not parts or ".." in parts:
        raise ObjectNotFoundError(reference)

    return f"{private_object_dir(settings)}/{'/'.join(parts)}"


def normalize_object_entity_path(settings: Settings, raw_path: str) -> str:
    """
    https://storage.googleapis.com/<bucket>/.private/<id> 형태 URL을 "/objects/<id>" 로 변환.
    이미 canonical 이거나 다른 형식이면 그대로 반환 (비공개 영역 밖이면 버킷 경로만)
    """
    if not raw_path or raw_path.startswith(CANONICAL_PREFIX):
        return raw_path

    if raw_path.startswith(GCS_PUBLIC_HOST):
        raw_object_path = urllib.parse.urlsplit(raw_path).path
        entity_dir = "/" + private_object_dir(settings).strip("/") + "/"
        if raw_object_path.startswith(entity_dir):
            return CANONICAL_PREFIX + raw_object_path[len(entity_dir):]
        return raw_object_path

    return raw_path


def _encode_metadata(metadata: Dict[str, str]) -> Dict[str, str]:
    # S3 메타데이터 헤더는 ASCII만 허용 → 한글 파일명 등은 퍼센트 인코딩
    return {k: urllib.parse.quote(str(v), safe="/:.-_ ") for k, v in metadata.items()}


@dataclass
class StoredObject:
    body: Any                 # .read() / .iter_chunks() 지원하는 스트림
    content_type: str
    size: Optional[int]
    name: str


class ObjectStore:
    """
    GCS (S3 호환 XML API) 래퍼.
    path 는 항상 "<bucket>/<object name>" 형태로 받음
    """

    def __init__(self, client: Any):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        account = decode_service_account(settings.GCS_SERVICE_ACCOUNT_B64)
        access_id, secret = _hmac_keys(account)

        # 소켓 타임아웃 없으면 네트워크가 멈췄을 때 스레드가 끝나지 않음
        timeout = settings.MIGRATION_UPLOAD_TIMEOUT_S
        client = boto3.client(
            "s3",
            endpoint_url=settings.GCS_ENDPOINT_URL,
            aws_access_key_id=access_id,
            aws_secret_access_key=secret,
            region_name="auto",
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 2},
            ),
        )
        return cls(client)

    def upload_file(
        self,
        object_path: str,
        local_path: str,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        bucket_name, object_name = parse_object_path(object_path)
        self.client.upload_file(
            Filename=str(local_path),
            Bucket=bucket_name,
            Key=object_name,
            ExtraArgs={
                "ContentType": content_type,
                "Metadata": _encode_metadata(metadata or {}),
            },
        )

    def get_object(self, object_path: str) -> StoredObject:
        bucket_name, object_name = parse_object_path(object_path)
        try:
            resp = self.client.get_object(Bucket=bucket_name, Key=object_name)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise ObjectNotFoundError(object_path) from e
            raise

        return StoredObject(
            body=resp["Body"],
            content_type=resp.get("ContentType") or DEFAULT_CONTENT_TYPE,
            size=resp.get("ContentLength"),
            name=object_name.rsplit("/", 1)[-1],
        )

    def upload_url(self, private_dir: str, ttl_sec: int = 900) -> tuple[str, str]:
        """
        클라이언트가 직접 PUT 할 수 있는 서명 URL 발급.
        return: (서명 URL, "/objects/uploads/<uuid>" canonical 경로)
        """
        object_id = str(uuid.uuid4())
        bucket_name, object_name = parse_object_path(f"{private_dir}/uploads/{object_id}")
        url = self.client.generate_presigned_url(
            "put_object",
            Params={"Bucket": bucket_name, "Key": object_name},
            ExpiresIn=ttl_sec,
            HttpMethod="PUT",
        )
        return url, f"{CANONICAL_PREFIX}uploads/{object_id}"

# app/back/services/slug_service.py
import re
import time
from typing import Any, Awaitable, Callable, Optional

from app.back.core.config import settings

# slug 로 회사 조회 (없으면 None)
CompanyLookup = Callable[[str], Awaitable[Optional[Any]]]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_MULTI_HYPHENS = re.compile(r"-{2,}")


class SlugExhaustedError(Exception):
    def __init__(self, base_slug: str, attempts: int):
        super().__init__(
            f"No free slug for '{base_slug}' after {attempts} attempts"
        )
        self.base_slug = base_slug
        self.attempts = attempts


def slugify(value: str) -> str:
    """
    "Foo & Bar, Inc.!!" → "foo-bar-inc"
    """
    slug = _NON_ALNUM.sub("-", value.lower().strip())
    slug = _EDGE_HYPHENS.sub("", slug)
    return _MULTI_HYPHENS.sub("-", slug)


async def generate_unique_company_slug(
    name: str,
    get_company_by_slug: CompanyLookup,
    *,
    max_attempts: Optional[int] = None,
) -> str:
    """
    회사명 → 중복 없는 slug.
    이미 있으면 "-1", "-2" ... 붙여가며 확인 (조회 에러는 그대로 올려보냄)
    저장은 호출하는 쪽 책임
    """
    if max_attempts is None:
        max_attempts = settings.SLUG_MAX_ATTEMPTS

    base_slug = slugify(name) or f"company-{int(time.time() * 1000)}"

    if not await get_company_by_slug(base_slug):
        return base_slug

    for counter in range(1, max_attempts + 1):
        slug = f"{base_slug}-{counter}"
        if not await get_company_by_slug(slug):
            return slug

    raise SlugExhaustedError(base_slug, max_attempts)

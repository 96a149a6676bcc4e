# union_core/unions/selectors.py
from __future__ import annotations

import re
from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from union_core.unions.models import Union, UnionStatus

SLUG_RE = re.compile(r"^[a-z0-9-_.]+$", re.IGNORECASE)


def is_valid_slug(slug: str | None) -> bool:
    return bool(slug) and SLUG_RE.match(slug) is not None


def union_qs() -> QuerySet[Union]:
    return Union.objects.exclude(status=UnionStatus.DELETED)


def get_union(*, union_id: UUID) -> Union:
    return Union.objects.get(id=union_id)


def get_active_union_by_slug_or_none(*, slug: str) -> Optional[Union]:
    return Union.objects.filter(slug=slug, status=UnionStatus.ACTIVE).first()

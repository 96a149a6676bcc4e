# union_core/unions/services.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import ValidationError

from union_core.unions.models import BusinessType, Union, UnionStatus
from union_core.unions.selectors import is_valid_slug


class UnionService:
    """
    All Union mutations live here (write-model boundary).
    """

    @staticmethod
    @transaction.atomic
    def create(
        *,
        name: str,
        slug: str,
        business_type: str = BusinessType.REDEVELOPMENT,
        member_count: int = 0,
        metadata: Optional[dict] = None,
    ) -> Union:
        slug = (slug or "").strip()
        name = (name or "").strip()

        if not name:
            raise ValidationError({"name": "This field is required."})
        if not is_valid_slug(slug):
            raise ValidationError({"slug": "Invalid slug. Use letters, digits, '-', '_' or '.'."})
        if business_type not in BusinessType.values:
            raise ValidationError({"business_type": f"Invalid business type. Allowed: {list(BusinessType.values)}"})
        if member_count is None or int(member_count) < 0:
            raise ValidationError({"member_count": "Must be zero or greater."})
        if Union.objects.filter(slug=slug).exists():
            raise ValidationError({"slug": "A union with this slug already exists."})

        return Union.objects.create(
            name=name,
            slug=slug,
            business_type=business_type,
            member_count=int(member_count),
            metadata=metadata or {},
        )

    @staticmethod
    @transaction.atomic
    def set_member_count(*, union_id: UUID, member_count: int) -> Union:
        if member_count is None or int(member_count) < 0:
            raise ValidationError({"member_count": "Must be zero or greater."})

        u = Union.objects.select_for_update().get(id=union_id)
        u.member_count = int(member_count)
        u.save(update_fields=["member_count", "updated_at"])
        return u

    @staticmethod
    @transaction.atomic
    def set_status(*, union_id: UUID, status: str) -> Union:
        if status not in UnionStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(UnionStatus.values)}"})

        u = Union.objects.select_for_update().get(id=union_id)

        # idempotent no-op
        if u.status == status:
            return u

        u.status = status
        u.save(update_fields=["status", "updated_at"])
        return u

# union_core/unions/models.py
import uuid

from django.db import models


class UnionStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    DELETED = "DELETED", "Deleted"


class BusinessType(models.TextChoices):
    REDEVELOPMENT = "REDEVELOPMENT", "재개발"
    RECONSTRUCTION = "RECONSTRUCTION", "재건축"
    STREET_HOUSING = "STREET_HOUSING", "가로주택정비"
    REGIONAL_HOUSING = "REGIONAL_HOUSING", "지역주택"


class Union(models.Model):
    """
    Redevelopment union (tenant).
    Root of all scoping; every other entity carries tenant_id = Union.id.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    slug = models.CharField(max_length=64, unique=True)  # URL segment: /api/v1/u/<slug>/

    business_type = models.CharField(
        max_length=32,
        choices=BusinessType.choices,
        default=BusinessType.REDEVELOPMENT,
        db_index=True,
    )

    # admin-set denominator for union-wide consent/registration rates
    member_count = models.PositiveIntegerField(default=0)

    status = models.CharField(
        max_length=16,
        choices=UnionStatus.choices,
        default=UnionStatus.ACTIVE,
        db_index=True,
    )

    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "unions_union"
        indexes = [
            models.Index(fields=["slug"]),
            models.Index(fields=["status"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.slug})"

# union_core/consents/models.py
from __future__ import annotations

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from union_core.common.models import TenantScopedModel, TimeStampedModel
from union_core.unions.models import BusinessType


class ConsentStage(TenantScopedModel):
    """
    Named consent milestone (e.g. '조합설립 동의', '본동의') with the
    agreement threshold required by law.
    """
    business_type = models.CharField(max_length=32, choices=BusinessType.choices)
    stage_name = models.CharField(max_length=128)
    required_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "consents_consent_stage"
        ordering = ["sort_order", "created_at"]
        indexes = [
            models.Index(fields=["tenant_id", "business_type", "sort_order"]),
        ]

    def __str__(self) -> str:
        return f"{self.stage_name} ({self.required_rate}%)"


class ConsentStatus(models.TextChoices):
    AGREED = "AGREED", "Agreed"
    DISAGREED = "DISAGREED", "Disagreed"
    PENDING = "PENDING", "Pending"


class UserConsent(TimeStampedModel):
    id = models.BigAutoField(primary_key=True)

    member = models.ForeignKey("members.Member", on_delete=models.CASCADE, related_name="consents")
    stage = models.ForeignKey(ConsentStage, on_delete=models.CASCADE, related_name="consents")

    status = models.CharField(
        max_length=16,
        choices=ConsentStatus.choices,
        default=ConsentStatus.PENDING,
        db_index=True,
    )
    consent_date = models.DateField(null=True, blank=True)

    class Meta:
        db_table = "consents_user_consent"
        constraints = [
            models.UniqueConstraint(fields=["member", "stage"], name="uq_member_stage_consent"),
        ]

# union_core/notifications/models.py
from __future__ import annotations

from django.db import models

from union_core.common.models import TenantScopedModel


class MessageStatus(models.TextChoices):
    SENT = "SENT", "Sent"
    PARTIAL = "PARTIAL", "Partially sent"
    FAILED = "FAILED", "Failed"
    SKIPPED = "SKIPPED", "Skipped"


class MessageLog(TenantScopedModel):
    """
    One row per templated send (possibly many recipients).
    """
    template_code = models.CharField(max_length=64, db_index=True)
    status = models.CharField(max_length=16, choices=MessageStatus.choices, db_index=True)

    recipient_count = models.PositiveIntegerField(default=0)
    success_count = models.PositiveIntegerField(default=0)
    fail_count = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True, default="")
    sent_by_user_id = models.IntegerField(null=True, blank=True)
    meta = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "notifications_message_log"
        indexes = [
            models.Index(fields=["tenant_id", "created_at"]),
        ]

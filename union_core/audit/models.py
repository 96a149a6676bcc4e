# union_core/audit/models.py
from django.conf import settings
from django.db import models

from union_core.common.models import TenantScopedModel


class AuditEvent(TenantScopedModel):
    """
    Immutable audit record: who approved, blocked, merged what and when.
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "member.approved"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "Member"
    entity_id = models.CharField(max_length=64, db_index=True)  # UUID or PNU

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["tenant_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
            models.Index(fields=["tenant_id", "event_code"]),
        ]

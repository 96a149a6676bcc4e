# union_core/consents/services.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from union_core.audit.services import AuditService
from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.members.models import Member
from union_core.unions.models import BusinessType
from union_core.unions.selectors import get_union


def _check_stage_matches_union(stage: ConsentStage) -> None:
    union = get_union(union_id=stage.tenant_id)
    if stage.business_type != union.business_type:
        raise ValidationError(
            {"stage_id": f"Stage is for {stage.business_type}; this union is {union.business_type}."}
        )


def _consent_date(status: str, consent_date: Optional[date]) -> Optional[date]:
    if consent_date is not None:
        return consent_date
    return timezone.localdate() if status == ConsentStatus.AGREED else None


@dataclass
class BulkConsentResult:
    updated_count: int = 0
    missing_member_ids: List[UUID] = field(default_factory=list)


class ConsentService:

    @staticmethod
    @transaction.atomic
    def create_stage(
        *,
        tenant_id: UUID,
        stage_name: str,
        required_rate: Decimal,
        business_type: str | None = None,
        sort_order: int = 0,
        actor_user_id: int | None = None,
    ) -> ConsentStage:
        stage_name = (stage_name or "").strip()
        if not stage_name:
            raise ValidationError({"stage_name": "This field is required."})
        if required_rate is None or not (Decimal("0") <= Decimal(required_rate) <= Decimal("100")):
            raise ValidationError({"required_rate": "Must be between 0 and 100."})

        business_type = business_type or get_union(union_id=tenant_id).business_type
        if business_type not in BusinessType.values:
            raise ValidationError({"business_type": f"Invalid business type. Allowed: {list(BusinessType.values)}"})

        stage = ConsentStage.objects.create(
            tenant_id=tenant_id,
            business_type=business_type,
            stage_name=stage_name,
            required_rate=required_rate,
            sort_order=sort_order,
        )

        AuditService.log(
            event_code="consent.stage.created",
            entity_type="ConsentStage",
            entity_id=stage.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"stage_name": stage_name, "required_rate": str(required_rate)},
        )
        return stage

    @staticmethod
    @transaction.atomic
    def set_consent(
        *,
        tenant_id: UUID,
        member_id: UUID,
        stage_id: UUID,
        status: str,
        consent_date: Optional[date] = None,
        actor_user_id: int | None = None,
    ) -> UserConsent:
        """
        Upsert of the member's answer for a stage. The stage must belong to
        the union's business type.
        """
        if status not in ConsentStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(ConsentStatus.values)}"})

        stage = ConsentStage.objects.get(id=stage_id, tenant_id=tenant_id)
        _check_stage_matches_union(stage)
        member = Member.objects.get(id=member_id, tenant_id=tenant_id)

        consent, _ = UserConsent.objects.update_or_create(
            member=member,
            stage=stage,
            defaults={"status": status, "consent_date": _consent_date(status, consent_date)},
        )

        AuditService.log(
            event_code="consent.updated",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"stage_id": str(stage.id), "status": status},
        )
        return consent

    @staticmethod
    @transaction.atomic
    def bulk_update(
        *,
        tenant_id: UUID,
        stage_id: UUID,
        member_ids: Iterable[UUID],
        status: str,
        consent_date: Optional[date] = None,
        actor_user_id: int | None = None,
    ) -> BulkConsentResult:
        if status not in ConsentStatus.values:
            raise ValidationError({"status": f"Invalid status. Allowed: {list(ConsentStatus.values)}"})

        stage = ConsentStage.objects.get(id=stage_id, tenant_id=tenant_id)
        _check_stage_matches_union(stage)

        wanted = list(dict.fromkeys(member_ids))
        members = {m.id: m for m in Member.objects.filter(tenant_id=tenant_id, id__in=wanted)}

        result = BulkConsentResult()
        when = _consent_date(status, consent_date)
        for mid in wanted:
            member = members.get(mid)
            if member is None:
                result.missing_member_ids.append(mid)
                continue
            UserConsent.objects.update_or_create(
                member=member,
                stage=stage,
                defaults={"status": status, "consent_date": when},
            )
            result.updated_count += 1

        AuditService.log(
            event_code="consent.bulk_updated",
            entity_type="ConsentStage",
            entity_id=stage.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"status": status, "updated": result.updated_count, "missing": len(result.missing_member_ids)},
        )
        return result

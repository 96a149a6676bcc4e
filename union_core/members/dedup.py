# union_core/members/dedup.py
"""
Duplicate-member detection and merge.

Registration through a second social provider (or a second sign-up) can
create another row for a person already in the union. After the new row
commits, DedupService.check_and_merge folds older rows sharing the same
normalized name and resident address into the new one ("keeper").
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from django.db import transaction

from union_core.audit.services import AuditService
from union_core.consents.models import UserConsent
from union_core.members.models import Member, PropertyUnit, UserAuthLink
from union_core.members.normalization import normalize_jibun_address, normalize_name

logger = logging.getLogger(__name__)


@dataclass
class DedupResult:
    keeper_id: UUID
    merged_count: int = 0
    merged_ids: List[UUID] = field(default_factory=list)
    affected: Dict[str, int] = field(default_factory=dict)
    error: str = ""

    @property
    def success(self) -> bool:
        return not self.error


def _same_residence(
    candidate: Member,
    *,
    resident_pnu: str,
    normalized_jibun: str,
) -> bool:
    # PNU comparison wins when both sides carry one
    if resident_pnu and candidate.resident_pnu:
        return candidate.resident_pnu == resident_pnu
    if not normalized_jibun:
        return False
    return normalize_jibun_address(candidate.resident_address_jibun) == normalized_jibun


class DedupService:

    @staticmethod
    def find_duplicates(
        *,
        tenant_id: UUID,
        name: str,
        resident_pnu: Optional[str] = None,
        resident_address_jibun: Optional[str] = None,
        exclude_member_id: Optional[UUID] = None,
    ) -> List[Member]:
        normalized_name = normalize_name(name)
        resident_pnu = (resident_pnu or "").strip()
        normalized_jibun = normalize_jibun_address(resident_address_jibun)

        if not normalized_name or not (resident_pnu or normalized_jibun):
            return []

        qs = Member.objects.filter(tenant_id=tenant_id).only(
            "id", "tenant_id", "name", "status", "resident_pnu", "resident_address_jibun", "created_at"
        )
        if exclude_member_id:
            qs = qs.exclude(id=exclude_member_id)

        return [
            m
            for m in qs.order_by("created_at")
            if normalize_name(m.name) == normalized_name
            and _same_residence(m, resident_pnu=resident_pnu, normalized_jibun=normalized_jibun)
        ]

    @staticmethod
    @transaction.atomic
    def merge_into_keeper(
        *,
        tenant_id: UUID,
        keeper_id: UUID,
        duplicate_ids: Iterable[UUID],
        actor_user_id: int | None = None,
    ) -> DedupResult:
        """
        Moves property units, consents and auth links of the duplicates onto
        the keeper, then deletes the duplicates.

        - a duplicate unit with the same (pnu, dong, ho) as one the keeper
          already holds is dropped
        - for a stage both sides answered, the keeper's consent stays
        - primary flag: the keeper's existing primary wins, else the
          earliest moved primary; exactly one primary remains
        """
        ids = [d for d in duplicate_ids if d != keeper_id]
        if not ids:
            return DedupResult(keeper_id=keeper_id)

        keeper = Member.objects.select_for_update().get(id=keeper_id, tenant_id=tenant_id)
        duplicates = list(
            Member.objects.select_for_update().filter(id__in=ids, tenant_id=tenant_id).order_by("created_at")
        )
        if not duplicates:
            return DedupResult(keeper_id=keeper_id)
        dup_ids = [d.id for d in duplicates]

        keeper_units = list(PropertyUnit.objects.select_for_update().filter(member_id=keeper.id))
        held = {(u.pnu, u.dong, u.ho) for u in keeper_units}
        keeper_has_primary = any(u.is_primary for u in keeper_units)

        moved_units = 0
        dropped_units = 0
        first_moved_primary: Optional[PropertyUnit] = None

        for dup in duplicates:
            for unit in PropertyUnit.objects.select_for_update().filter(member_id=dup.id).order_by("created_at"):
                key = (unit.pnu, unit.dong, unit.ho)
                if key in held:
                    dropped_units += 1
                    continue

                was_primary = unit.is_primary
                unit.member_id = keeper.id
                unit.is_primary = False
                unit.save(update_fields=["member", "is_primary", "updated_at"])
                held.add(key)
                moved_units += 1

                if was_primary and first_moved_primary is None:
                    first_moved_primary = unit

        if not keeper_has_primary:
            promote = first_moved_primary or (
                PropertyUnit.objects.filter(member_id=keeper.id).order_by("created_at").first()
            )
            if promote is not None:
                PropertyUnit.objects.filter(id=promote.id).update(is_primary=True)

        answered = set(UserConsent.objects.filter(member_id=keeper.id).values_list("stage_id", flat=True))
        moved_consents = 0
        for consent in UserConsent.objects.select_for_update().filter(member_id__in=dup_ids).order_by("-updated_at"):
            if consent.stage_id in answered:
                continue
            consent.member_id = keeper.id
            consent.save(update_fields=["member", "updated_at"])
            answered.add(consent.stage_id)
            moved_consents += 1

        moved_links = UserAuthLink.objects.filter(member_id__in=dup_ids).update(member_id=keeper.id)

        Member.objects.filter(id__in=dup_ids).delete()

        affected = {
            "property_units": moved_units,
            "dropped_units": dropped_units,
            "consents": moved_consents,
            "auth_links": moved_links,
        }

        AuditService.log(
            event_code="member.merged",
            entity_type="Member",
            entity_id=keeper.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"duplicate_ids": [str(i) for i in dup_ids], **affected},
        )

        return DedupResult(
            keeper_id=keeper.id,
            merged_count=len(dup_ids),
            merged_ids=dup_ids,
            affected=affected,
        )

    @staticmethod
    def check_and_merge(
        *,
        tenant_id: UUID,
        keeper_id: UUID,
        name: str,
        resident_pnu: Optional[str] = None,
        resident_address_jibun: Optional[str] = None,
        actor_user_id: int | None = None,
    ) -> DedupResult:
        """
        Never raises: a failed merge leaves the keeper valid on its own and
        is reported through DedupResult.error.
        """
        try:
            duplicates = DedupService.find_duplicates(
                tenant_id=tenant_id,
                name=name,
                resident_pnu=resident_pnu,
                resident_address_jibun=resident_address_jibun,
                exclude_member_id=keeper_id,
            )
            if not duplicates:
                return DedupResult(keeper_id=keeper_id)

            logger.info("found %d duplicate(s) of member %s; merging", len(duplicates), keeper_id)
            return DedupService.merge_into_keeper(
                tenant_id=tenant_id,
                keeper_id=keeper_id,
                duplicate_ids=[d.id for d in duplicates],
                actor_user_id=actor_user_id,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("duplicate merge failed for member %s", keeper_id)
            return DedupResult(keeper_id=keeper_id, error=str(exc))

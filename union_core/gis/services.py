# union_core/gis/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from rest_framework.exceptions import APIException, NotFound, ValidationError

from union_core.audit.services import AuditService
from union_core.common.api.exceptions import ConflictError
from union_core.consents.models import UserConsent
from union_core.gis.address import is_valid_pnu
from union_core.gis.models import Building, BuildingUnit, LandLot, ParcelBuildingMapping, UnionLandLot
from union_core.members.models import Member, OwnershipType, PropertyUnit

logger = logging.getLogger(__name__)

LAND_LOT_EDITABLE = ("owner_count", "area", "official_price", "land_category", "address", "road_address")
BUILDING_EDITABLE = ("building_name", "building_type", "main_purpose", "floor_count", "total_unit_count")


def _audit(tenant_id: Optional[UUID], **kwargs) -> None:
    if tenant_id is not None:
        AuditService.log(tenant_id=tenant_id, **kwargs)


def _get_mapping_for_update(pnu: str) -> ParcelBuildingMapping:
    mapping = ParcelBuildingMapping.objects.select_for_update().filter(pnu=pnu).first()
    if mapping is None:
        raise NotFound(f"No building mapping for PNU {pnu}.")
    return mapping


@dataclass(frozen=True)
class MergeResult:
    success: bool
    moved_units_count: int
    updated_mappings_count: int
    target_building_id: UUID


@dataclass(frozen=True)
class UndoMergeResult:
    success: bool
    restored_units_count: int
    restored_mappings_count: int
    source_building_id: Optional[UUID]


@dataclass
class MergeMultipleResult:
    target_building_id: UUID
    moved_units_count: int = 0
    updated_mappings_count: int = 0
    merged_pnus: List[str] = field(default_factory=list)
    skipped_pnus: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


class BuildingMatchService:
    """
    Parcel <-> building association.

    Every write locks the mapping rows it reads and bumps their version.
    """

    @staticmethod
    @transaction.atomic
    def update_building_match(
        *,
        pnu: str,
        new_building_id: UUID,
        note: Optional[str] = None,
        expected_version: Optional[int] = None,
        tenant_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> ParcelBuildingMapping:
        """
        Upsert keyed on pnu. The replaced building becomes previous_building
        (cleared when re-matching to the same building); older history is
        dropped.
        """
        pnu = (pnu or "").strip()
        if not pnu:
            raise ValidationError({"pnu": "This field is required."})
        if not Building.objects.filter(id=new_building_id).exists():
            raise NotFound("Building not found.")

        existing = ParcelBuildingMapping.objects.select_for_update().filter(pnu=pnu).first()
        previous = None

        if existing is None:
            if expected_version:
                raise ConflictError({"detail": "Mapping does not exist yet.", "current_version": None})
            try:
                with transaction.atomic():
                    mapping = ParcelBuildingMapping.objects.create(
                        pnu=pnu,
                        building_id=new_building_id,
                        note=note or "",
                    )
            except IntegrityError:
                # a concurrent first match inserted the row; continue as an update
                logger.info("mapping for %s created concurrently; updating instead", pnu)
                existing = ParcelBuildingMapping.objects.select_for_update().get(pnu=pnu)

        if existing is not None:
            if expected_version is not None and existing.version != expected_version:
                raise ConflictError(
                    {"detail": "Mapping was changed by someone else.", "current_version": existing.version}
                )
            previous = existing.building_id if existing.building_id != new_building_id else None

            existing.building_id = new_building_id
            existing.previous_building_id = previous
            existing.merged_at = None
            if note is not None:
                existing.note = note
            existing.version = existing.version + 1
            existing.save(update_fields=["building", "previous_building", "merged_at", "note", "version", "updated_at"])
            mapping = existing

        _audit(
            tenant_id,
            event_code="gis.building.matched",
            entity_type="ParcelBuildingMapping",
            entity_id=pnu,
            actor_user_id=actor_user_id,
            metadata={"building_id": str(new_building_id), "previous_building_id": str(previous) if previous else None},
        )
        return mapping

    @staticmethod
    @transaction.atomic
    def merge_building_into_pnu(
        *,
        target_pnu: str,
        source_building_id: UUID,
        tenant_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> MergeResult:
        """
        Moves every unit and mapping of the source building onto the target
        parcel's current building. Mappings record the source as previous
        building for undo_merge. The source building row is left in place.
        """
        target = _get_mapping_for_update(target_pnu)
        target_building_id = target.building_id

        if source_building_id == target_building_id:
            return MergeResult(
                success=True,
                moved_units_count=0,
                updated_mappings_count=0,
                target_building_id=target_building_id,
            )

        if not Building.objects.filter(id=source_building_id).exists():
            raise NotFound("Source building not found.")

        now = timezone.now()

        moved = BuildingUnit.objects.filter(building_id=source_building_id).update(
            building_id=target_building_id,
            merged_from_building_id=source_building_id,
            updated_at=now,
        )

        # lock before the bulk update
        list(ParcelBuildingMapping.objects.select_for_update().filter(building_id=source_building_id).values_list("id", flat=True))
        updated = ParcelBuildingMapping.objects.filter(building_id=source_building_id).update(
            building_id=target_building_id,
            previous_building_id=source_building_id,
            merged_at=now,
            version=F("version") + 1,
            updated_at=now,
        )

        _audit(
            tenant_id,
            event_code="gis.building.merged",
            entity_type="ParcelBuildingMapping",
            entity_id=target_pnu,
            actor_user_id=actor_user_id,
            metadata={
                "source_building_id": str(source_building_id),
                "target_building_id": str(target_building_id),
                "moved_units": moved,
                "updated_mappings": updated,
            },
        )
        return MergeResult(
            success=True,
            moved_units_count=moved,
            updated_mappings_count=updated,
            target_building_id=target_building_id,
        )

    @staticmethod
    @transaction.atomic
    def undo_merge(
        *,
        target_pnu: str,
        tenant_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> UndoMergeResult:
        """
        Reverses the latest merge into the target parcel's building: mappings
        that recorded that source go back to it, and so do the units that
        came from it. No-op when no merge is recorded.
        """
        target = _get_mapping_for_update(target_pnu)
        target_building_id = target.building_id

        latest = (
            ParcelBuildingMapping.objects.select_for_update()
            .filter(building_id=target_building_id, merged_at__isnull=False, previous_building__isnull=False)
            .order_by("-merged_at")
            .first()
        )
        if latest is None:
            return UndoMergeResult(success=True, restored_units_count=0, restored_mappings_count=0, source_building_id=None)

        source_building_id = latest.previous_building_id
        now = timezone.now()

        restored_mappings = ParcelBuildingMapping.objects.filter(
            building_id=target_building_id,
            previous_building_id=source_building_id,
            merged_at__isnull=False,
        ).update(
            building_id=source_building_id,
            previous_building_id=None,
            merged_at=None,
            version=F("version") + 1,
            updated_at=now,
        )
        restored_units = BuildingUnit.objects.filter(
            building_id=target_building_id,
            merged_from_building_id=source_building_id,
        ).update(
            building_id=source_building_id,
            merged_from_building_id=None,
            updated_at=now,
        )

        _audit(
            tenant_id,
            event_code="gis.building.merge_undone",
            entity_type="ParcelBuildingMapping",
            entity_id=target_pnu,
            actor_user_id=actor_user_id,
            metadata={
                "source_building_id": str(source_building_id),
                "restored_units": restored_units,
                "restored_mappings": restored_mappings,
            },
        )
        return UndoMergeResult(
            success=True,
            restored_units_count=restored_units,
            restored_mappings_count=restored_mappings,
            source_building_id=source_building_id,
        )

    @staticmethod
    def merge_multiple_pnus(
        *,
        target_pnu: str,
        source_pnus: Iterable[str],
        tenant_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> MergeMultipleResult:
        """
        Merges each source parcel's building into the target's, one
        transaction per source. Items that already share the target's
        building are skipped; a failing item is reported in `failed` and
        does not undo the items merged before it.
        """
        target = ParcelBuildingMapping.objects.filter(pnu=target_pnu).first()
        if target is None:
            raise NotFound(f"No building mapping for PNU {target_pnu}.")

        result = MergeMultipleResult(target_building_id=target.building_id)
        seen = set()

        for pnu in source_pnus:
            pnu = (pnu or "").strip()
            if not pnu or pnu in seen:
                continue
            seen.add(pnu)

            if pnu == target_pnu:
                result.skipped_pnus.append(pnu)
                continue

            source = ParcelBuildingMapping.objects.filter(pnu=pnu).first()
            if source is None:
                result.failed.append({"pnu": pnu, "error": "No building mapping for this PNU."})
                continue

            if source.building_id == result.target_building_id:
                result.skipped_pnus.append(pnu)
                continue

            try:
                r = BuildingMatchService.merge_building_into_pnu(
                    target_pnu=target_pnu,
                    source_building_id=source.building_id,
                    tenant_id=tenant_id,
                    actor_user_id=actor_user_id,
                )
            except (DatabaseError, APIException, ObjectDoesNotExist) as exc:
                logger.exception("merge of %s into %s failed", pnu, target_pnu)
                result.failed.append({"pnu": pnu, "error": str(exc)})
                continue

            result.moved_units_count += r.moved_units_count
            result.updated_mappings_count += r.updated_mappings_count
            result.merged_pnus.append(pnu)

        return result

    @staticmethod
    @transaction.atomic
    def delete_building_unit(*, pnu: str, unit_id: UUID) -> None:
        """Only units of the parcel's current or previous building can be deleted."""
        mapping = _get_mapping_for_update(pnu)
        buildings = [b for b in (mapping.building_id, mapping.previous_building_id) if b]
        deleted, _ = BuildingUnit.objects.filter(id=unit_id, building_id__in=buildings).delete()
        if not deleted:
            raise NotFound("Building unit not found on this parcel.")


@dataclass(frozen=True)
class DeleteParcelResult:
    deleted_consents: int
    land_lot_deleted: bool


class ParcelService:

    @staticmethod
    @transaction.atomic
    def update_parcel_info(
        *,
        pnu: str,
        land: Optional[Dict[str, Any]] = None,
        building_id: Optional[UUID] = None,
        building: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[UUID] = None,
        actor_user_id: int | None = None,
    ) -> LandLot:
        land = {k: v for k, v in (land or {}).items() if k in LAND_LOT_EDITABLE}
        building = {k: v for k, v in (building or {}).items() if k in BUILDING_EDITABLE}

        lot = LandLot.objects.select_for_update().filter(pnu=pnu).first()
        if lot is None:
            raise NotFound("Parcel not found.")

        if land:
            for k, v in land.items():
                setattr(lot, k, v)
            lot.save(update_fields=[*land.keys(), "updated_at"])

        if building_id and building:
            b = Building.objects.select_for_update().filter(id=building_id).first()
            if b is None:
                raise NotFound("Building not found.")
            for k, v in building.items():
                setattr(b, k, v)
            b.save(update_fields=[*building.keys(), "updated_at"])

        _audit(
            tenant_id,
            event_code="gis.parcel.updated",
            entity_type="LandLot",
            entity_id=pnu,
            actor_user_id=actor_user_id,
            metadata={"land": sorted(land), "building": sorted(building)},
        )
        return lot

    @staticmethod
    @transaction.atomic
    def link_member_to_parcel(
        *,
        tenant_id: UUID,
        pnu: str,
        member_id: UUID,
        dong: str = "",
        ho: str = "",
        building_unit_id: Optional[UUID] = None,
        ownership_type: str = OwnershipType.OWNER,
        actor_user_id: int | None = None,
    ) -> PropertyUnit:
        """
        Upserts the member's unit on this parcel. A linked unit is never made
        primary unless it is the member's only unit.
        """
        if ownership_type not in OwnershipType.values:
            raise ValidationError({"ownership_type": f"Invalid ownership type. Allowed: {list(OwnershipType.values)}"})

        member = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)
        unit = PropertyUnit.objects.select_for_update().filter(member_id=member.id, pnu=pnu).first()

        if unit is not None:
            unit.dong = dong or ""
            unit.ho = ho or ""
            unit.building_unit_id = building_unit_id
            unit.ownership_type = ownership_type
            unit.save(update_fields=["dong", "ho", "building_unit", "ownership_type", "updated_at"])
        else:
            unit = PropertyUnit.objects.create(
                tenant_id=tenant_id,
                member=member,
                pnu=pnu,
                dong=dong or "",
                ho=ho or "",
                building_unit_id=building_unit_id,
                ownership_type=ownership_type,
                is_primary=not PropertyUnit.objects.filter(member_id=member.id).exists(),
            )

        _audit(
            tenant_id,
            event_code="gis.parcel.member_linked",
            entity_type="LandLot",
            entity_id=pnu,
            actor_user_id=actor_user_id,
            metadata={"member_id": str(member.id)},
        )
        return unit

    @staticmethod
    @transaction.atomic
    def delete_parcel(*, tenant_id: UUID, pnu: str, actor_user_id: int | None = None) -> DeleteParcelResult:
        """
        Removes the parcel from the union: the consents of members holding a
        unit on it, the union link, and the land lot itself once no other
        union references it.
        """
        link = UnionLandLot.objects.select_for_update().filter(tenant_id=tenant_id, land_lot_id=pnu).first()
        if link is None:
            raise NotFound("Parcel is not part of this union.")

        member_ids = list(
            PropertyUnit.objects.filter(tenant_id=tenant_id, pnu=pnu).values_list("member_id", flat=True).distinct()
        )
        deleted_consents = 0
        if member_ids:
            deleted_consents, _ = UserConsent.objects.filter(member_id__in=member_ids).delete()

        link.delete()

        land_lot_deleted = False
        if not UnionLandLot.objects.filter(land_lot_id=pnu).exists():
            LandLot.objects.filter(pnu=pnu).delete()
            land_lot_deleted = True

        _audit(
            tenant_id,
            event_code="gis.parcel.deleted",
            entity_type="LandLot",
            entity_id=pnu,
            actor_user_id=actor_user_id,
            metadata={"deleted_consents": deleted_consents, "land_lot_deleted": land_lot_deleted},
        )
        return DeleteParcelResult(deleted_consents=deleted_consents, land_lot_deleted=land_lot_deleted)

    @staticmethod
    @transaction.atomic
    def add_manual_land_lot(
        *,
        tenant_id: UUID,
        pnu: str,
        address: str,
        area=None,
        official_price: Optional[int] = None,
        owner_count: Optional[int] = None,
        boundary: Optional[dict] = None,
        actor_user_id: int | None = None,
    ) -> LandLot:
        pnu = (pnu or "").strip()
        address = (address or "").strip()
        if not is_valid_pnu(pnu):
            raise ValidationError({"pnu": "PNU must be 19 digits."})
        if not address:
            raise ValidationError({"address": "This field is required."})

        defaults: Dict[str, Any] = {"address": address}
        if area is not None:
            defaults["area"] = area
        if official_price is not None:
            defaults["official_price"] = official_price
        if owner_count is not None:
            defaults["owner_count"] = owner_count
        if boundary is not None:
            defaults["boundary"] = boundary

        lot, _ = LandLot.objects.update_or_create(pnu=pnu, defaults=defaults)
        UnionLandLot.objects.get_or_create(tenant_id=tenant_id, land_lot=lot)

        _audit(
            tenant_id,
            event_code="gis.parcel.added",
            entity_type="LandLot",
            entity_id=pnu,
            actor_user_id=actor_user_id,
            metadata={"manual": True},
        )
        return lot

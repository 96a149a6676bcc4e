# union_core/gis/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from union_core.gis.models import (
    Building,
    BuildingUnit,
    LandLot,
    ParcelBuildingMapping,
    SyncJob,
    SyncJobStatus,
    UnionLandLot,
)

UNIT_SOURCE_CURRENT = "current"
UNIT_SOURCE_PREVIOUS = "previous"


def get_mapping(*, pnu: str) -> ParcelBuildingMapping:
    return ParcelBuildingMapping.objects.select_related("building", "previous_building").get(pnu=pnu)


def get_mapping_or_none(*, pnu: str) -> Optional[ParcelBuildingMapping]:
    return ParcelBuildingMapping.objects.select_related("building", "previous_building").filter(pnu=pnu).first()


def union_land_lots(*, tenant_id: UUID) -> QuerySet[LandLot]:
    return LandLot.objects.filter(union_links__tenant_id=tenant_id).order_by("pnu")


def union_pnus(*, tenant_id: UUID) -> List[str]:
    return list(UnionLandLot.objects.filter(tenant_id=tenant_id).values_list("land_lot_id", flat=True))


def get_union_land_lot(*, tenant_id: UUID, pnu: str) -> LandLot:
    return union_land_lots(tenant_id=tenant_id).get(pnu=pnu)


def search_buildings(*, keyword: str, limit: int = 50) -> QuerySet[Building]:
    """
    Buildings by name, annotated with distinct dong count and unit count.
    """
    qs = Building.objects.annotate(
        dong_count=Count("units__dong", distinct=True, filter=~Q(units__dong="")),
        unit_count=Count("units", distinct=True),
    )
    keyword = (keyword or "").strip()
    if keyword:
        qs = qs.filter(building_name__icontains=keyword)
    return qs.order_by("building_name", "id")[:limit]


@dataclass(frozen=True)
class UnitView:
    id: UUID
    building_id: UUID
    dong: str
    ho: str
    floor: Optional[int]
    area: Optional[Decimal]
    official_price: Optional[int]
    source: str


def building_units_union(*, pnu: str) -> List[UnitView]:
    """
    Units of the parcel's current building, followed by the units still on
    its previous building (if any), each tagged with where it came from.
    """
    mapping = get_mapping(pnu=pnu)

    out: List[UnitView] = []
    sources = [(mapping.building_id, UNIT_SOURCE_CURRENT)]
    if mapping.previous_building_id:
        sources.append((mapping.previous_building_id, UNIT_SOURCE_PREVIOUS))

    seen = set()
    for building_id, source in sources:
        units = BuildingUnit.objects.filter(building_id=building_id).order_by("dong", "ho")
        for u in units:
            if u.id in seen:
                continue
            seen.add(u.id)
            out.append(
                UnitView(
                    id=u.id,
                    building_id=u.building_id,
                    dong=u.dong,
                    ho=u.ho,
                    floor=u.floor,
                    area=u.area,
                    official_price=u.official_price,
                    source=source,
                )
            )
    return out


@dataclass(frozen=True)
class LinkedParcel:
    pnu: str
    address: str
    building_id: UUID
    building_name: str


def search_linked_parcels(
    *,
    tenant_id: UUID,
    query: str = "",
    exclude_pnu: Optional[str] = None,
    limit: int = 30,
) -> List[LinkedParcel]:
    """Union parcels that already have a building match (merge candidates)."""
    lots = union_land_lots(tenant_id=tenant_id)
    query = (query or "").strip()
    if query:
        lots = lots.filter(Q(address__icontains=query) | Q(pnu__startswith=query))
    if exclude_pnu:
        lots = lots.exclude(pnu=exclude_pnu)

    addresses = dict(lots.values_list("pnu", "address"))
    mappings = (
        ParcelBuildingMapping.objects.select_related("building")
        .filter(pnu__in=list(addresses))
        .order_by("pnu")[:limit]
    )
    return [
        LinkedParcel(
            pnu=m.pnu,
            address=addresses.get(m.pnu, ""),
            building_id=m.building_id,
            building_name=m.building.building_name,
        )
        for m in mappings
    ]


def latest_completed_job(*, tenant_id: UUID) -> Optional[SyncJob]:
    return (
        SyncJob.objects.filter(tenant_id=tenant_id, status=SyncJobStatus.COMPLETED)
        .order_by("-completed_at", "-created_at")
        .first()
    )


def latest_published_job(*, tenant_id: UUID) -> Optional[SyncJob]:
    """The latest completed job, only when it is published."""
    job = latest_completed_job(tenant_id=tenant_id)
    if job is None or not job.is_published:
        return None
    return job


def union_parcels_geojson(*, tenant_id: UUID, properties: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    FeatureCollection of the union's parcels that carry a boundary.
    `properties` adds per-pnu fields (e.g. consent status) to each feature.
    """
    properties = properties or {}
    buildings = dict(
        ParcelBuildingMapping.objects.filter(pnu__in=union_pnus(tenant_id=tenant_id)).values_list("pnu", "building_id")
    )

    features = []
    for lot in union_land_lots(tenant_id=tenant_id).exclude(boundary__isnull=True):
        building_id = buildings.get(lot.pnu)
        props = {
            "pnu": lot.pnu,
            "address": lot.address,
            "area": str(lot.area) if lot.area is not None else None,
            "building_id": str(building_id) if building_id else None,
        }
        props.update(properties.get(lot.pnu, {}))
        features.append({"type": "Feature", "id": lot.pnu, "geometry": lot.boundary, "properties": props})

    return {"type": "FeatureCollection", "features": features}

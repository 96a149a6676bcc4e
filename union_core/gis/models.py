# union_core/gis/models.py
from __future__ import annotations

import uuid

from django.db import models
from django.db.models import F, Q

from union_core.common.models import TenantScopedModel, TimeStampedModel


class LandLot(TimeStampedModel):
    """
    Cadastral parcel. Natural key is the 19-digit PNU.
    Shared across unions; a union's map extent is its UnionLandLot rows.
    """
    pnu = models.CharField(max_length=19, primary_key=True)

    address = models.CharField(max_length=255, blank=True, default="")
    road_address = models.CharField(max_length=255, blank=True, default="")

    area = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    official_price = models.BigIntegerField(null=True, blank=True)  # KRW per m2
    land_category = models.CharField(max_length=32, blank=True, default="")

    # GeoJSON geometry (Polygon/MultiPolygon) used for map rendering
    boundary = models.JSONField(null=True, blank=True)

    owner_count = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        db_table = "gis_land_lot"
        indexes = [
            models.Index(fields=["address"]),
        ]

    def __str__(self) -> str:
        return f"{self.pnu} {self.address}".strip()


class UnionLandLot(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant_id = models.UUIDField(db_index=True)
    land_lot = models.ForeignKey(
        LandLot,
        on_delete=models.CASCADE,
        related_name="union_links",
        db_column="pnu",
    )

    class Meta:
        db_table = "gis_union_land_lot"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "land_lot"], name="uq_union_land_lot"),
        ]


class Building(TimeStampedModel):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    building_name = models.CharField(max_length=255, blank=True, default="")
    building_type = models.CharField(max_length=64, blank=True, default="")
    main_purpose = models.CharField(max_length=128, blank=True, default="")
    floor_count = models.PositiveIntegerField(null=True, blank=True)
    total_unit_count = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        db_table = "gis_building"
        indexes = [
            models.Index(fields=["building_name"]),
        ]

    def __str__(self) -> str:
        return self.building_name or str(self.id)


class BuildingUnit(TimeStampedModel):
    """
    A dong/ho unit inside a building, independent of ownership.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    building = models.ForeignKey(Building, on_delete=models.CASCADE, related_name="units")

    dong = models.CharField(max_length=32, blank=True, default="")
    ho = models.CharField(max_length=32, blank=True, default="")
    floor = models.IntegerField(null=True, blank=True)
    area = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    official_price = models.BigIntegerField(null=True, blank=True)

    # set while the unit sits on a target building because of a merge
    merged_from_building = models.ForeignKey(
        Building,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        db_table = "gis_building_unit"
        indexes = [
            models.Index(fields=["building", "dong", "ho"]),
        ]

    def __str__(self) -> str:
        return f"{self.dong}동 {self.ho}호".strip()


class ParcelBuildingMapping(TimeStampedModel):
    """
    One row per PNU: the parcel's current building plus one retained
    previous reference for undoing a re-match or merge.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    pnu = models.CharField(max_length=19, unique=True)

    building = models.ForeignKey(Building, on_delete=models.PROTECT, related_name="parcel_mappings")
    previous_building = models.ForeignKey(
        Building,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    # set by merge_building_into_pnu; undo_merge looks for the latest one
    merged_at = models.DateTimeField(null=True, blank=True)
    note = models.TextField(blank=True, default="")

    # bumped on every write; callers may compare-and-swap on it
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "gis_parcel_building_mapping"
        indexes = [
            models.Index(fields=["building"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(previous_building=F("building")),
                name="ck_mapping_previous_differs",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.pnu} -> {self.building_id}"


class SyncJobStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    RUNNING = "RUNNING", "Running"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"


class SyncJob(TenantScopedModel):
    """
    GIS ingestion job record. Ingestion itself runs elsewhere; the portal
    only reads status + is_published to decide whether maps are visible.
    """
    status = models.CharField(
        max_length=16,
        choices=SyncJobStatus.choices,
        default=SyncJobStatus.PENDING,
        db_index=True,
    )
    is_published = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    summary = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "gis_sync_job"
        indexes = [
            models.Index(fields=["tenant_id", "status", "created_at"]),
        ]

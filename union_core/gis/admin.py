from django.contrib import admin

from union_core.gis.models import Building, BuildingUnit, LandLot, ParcelBuildingMapping, SyncJob, UnionLandLot


@admin.register(LandLot)
class LandLotAdmin(admin.ModelAdmin):
    list_display = ("pnu", "address", "area", "owner_count", "updated_at")
    search_fields = ("pnu", "address", "road_address")
    ordering = ("pnu",)


@admin.register(UnionLandLot)
class UnionLandLotAdmin(admin.ModelAdmin):
    list_display = ("tenant_id", "land_lot", "created_at")
    search_fields = ("land_lot__pnu",)


class BuildingUnitInline(admin.TabularInline):
    model = BuildingUnit
    fk_name = "building"
    extra = 0
    fields = ("dong", "ho", "floor", "area", "merged_from_building")


@admin.register(Building)
class BuildingAdmin(admin.ModelAdmin):
    list_display = ("building_name", "building_type", "main_purpose", "floor_count", "total_unit_count")
    search_fields = ("building_name",)
    inlines = [BuildingUnitInline]


@admin.register(ParcelBuildingMapping)
class ParcelBuildingMappingAdmin(admin.ModelAdmin):
    list_display = ("pnu", "building", "previous_building", "merged_at", "version", "updated_at")
    search_fields = ("pnu",)
    readonly_fields = ("version",)


@admin.register(SyncJob)
class SyncJobAdmin(admin.ModelAdmin):
    list_display = ("tenant_id", "status", "is_published", "completed_at", "created_at")
    list_filter = ("status", "is_published")
    ordering = ("-created_at",)

# union_core/gis/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from union_core.gis.models import Building, LandLot, ParcelBuildingMapping
from union_core.members.models import OwnershipType


class LandLotSerializer(serializers.ModelSerializer):
    class Meta:
        model = LandLot
        fields = [
            "pnu",
            "address",
            "road_address",
            "area",
            "official_price",
            "land_category",
            "owner_count",
            "boundary",
            "updated_at",
        ]
        read_only_fields = fields


class BuildingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Building
        fields = ["id", "building_name", "building_type", "main_purpose", "floor_count", "total_unit_count"]
        read_only_fields = fields


class BuildingSearchResultSerializer(BuildingSerializer):
    dong_count = serializers.IntegerField(read_only=True)
    unit_count = serializers.IntegerField(read_only=True)

    class Meta(BuildingSerializer.Meta):
        fields = BuildingSerializer.Meta.fields + ["dong_count", "unit_count"]
        read_only_fields = fields


class ParcelBuildingMappingSerializer(serializers.ModelSerializer):
    building = BuildingSerializer(read_only=True)

    class Meta:
        model = ParcelBuildingMapping
        fields = ["pnu", "building", "previous_building_id", "merged_at", "note", "version", "updated_at"]
        read_only_fields = fields


class ParcelDetailSerializer(serializers.Serializer):
    land_lot = LandLotSerializer()
    mapping = ParcelBuildingMappingSerializer(allow_null=True)


class ParcelUpdateSerializer(serializers.Serializer):
    owner_count = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    area = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    official_price = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    land_category = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    road_address = serializers.CharField(max_length=255, required=False, allow_blank=True)

    building_id = serializers.UUIDField(required=False)
    building_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    building_type = serializers.CharField(max_length=64, required=False, allow_blank=True)
    main_purpose = serializers.CharField(max_length=128, required=False, allow_blank=True)
    floor_count = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    total_unit_count = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class BuildingMatchSerializer(serializers.Serializer):
    building_id = serializers.UUIDField()
    note = serializers.CharField(required=False, allow_blank=True)
    expected_version = serializers.IntegerField(required=False, min_value=0)


class MergeSerializer(serializers.Serializer):
    source_building_id = serializers.UUIDField()


class MergeResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    moved_units_count = serializers.IntegerField()
    updated_mappings_count = serializers.IntegerField()
    target_building_id = serializers.UUIDField()


class UndoMergeResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    restored_units_count = serializers.IntegerField()
    restored_mappings_count = serializers.IntegerField()
    source_building_id = serializers.UUIDField(allow_null=True)


class MergeMultipleSerializer(serializers.Serializer):
    source_pnus = serializers.ListField(child=serializers.CharField(max_length=19), allow_empty=False, max_length=500)


class MergeFailureSerializer(serializers.Serializer):
    pnu = serializers.CharField()
    error = serializers.CharField()


class MergeMultipleResultSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    moved_units_count = serializers.IntegerField()
    updated_mappings_count = serializers.IntegerField()
    target_building_id = serializers.UUIDField()
    merged_pnus = serializers.ListField(child=serializers.CharField())
    skipped_pnus = serializers.ListField(child=serializers.CharField())
    failed = MergeFailureSerializer(many=True)


class UnitViewSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    building_id = serializers.UUIDField()
    dong = serializers.CharField()
    ho = serializers.CharField()
    floor = serializers.IntegerField(allow_null=True)
    area = serializers.DecimalField(max_digits=10, decimal_places=2, allow_null=True)
    official_price = serializers.IntegerField(allow_null=True)
    source = serializers.CharField()


class LinkMemberSerializer(serializers.Serializer):
    member_id = serializers.UUIDField()
    dong = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    ho = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    building_unit_id = serializers.UUIDField(required=False, allow_null=True)
    ownership_type = serializers.ChoiceField(choices=OwnershipType.choices, required=False, default=OwnershipType.OWNER)


class ParcelMemberSerializer(serializers.Serializer):
    member_id = serializers.UUIDField(source="member.id")
    name = serializers.CharField(source="member.name")
    phone_number = serializers.CharField(source="member.phone_number")
    property_unit_id = serializers.UUIDField(source="id")
    dong = serializers.CharField()
    ho = serializers.CharField()
    ownership_type = serializers.CharField()
    is_primary = serializers.BooleanField()


class ManualLandLotSerializer(serializers.Serializer):
    pnu = serializers.CharField(max_length=19)
    address = serializers.CharField(max_length=255)
    area = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    official_price = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    owner_count = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    boundary = serializers.JSONField(required=False, allow_null=True)


class ResolvePnuSerializer(serializers.Serializer):
    address = serializers.CharField(max_length=255)
    legal_dong_code = serializers.CharField(max_length=10, required=False)
    main_number = serializers.IntegerField(required=False, min_value=0, max_value=9999)
    sub_number = serializers.IntegerField(required=False, min_value=0, max_value=9999, default=0)
    is_mountain = serializers.BooleanField(required=False, default=False)


class PnuResolutionSerializer(serializers.Serializer):
    pnu = serializers.CharField()
    address = serializers.CharField()
    source = serializers.CharField()


class LinkedParcelSerializer(serializers.Serializer):
    pnu = serializers.CharField()
    address = serializers.CharField()
    building_id = serializers.UUIDField()
    building_name = serializers.CharField()


class DeleteParcelResultSerializer(serializers.Serializer):
    deleted_consents = serializers.IntegerField()
    land_lot_deleted = serializers.BooleanField()

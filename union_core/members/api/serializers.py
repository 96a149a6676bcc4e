# union_core/members/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from union_core.members.models import Member, MemberInvite, OwnershipType, PropertyUnit


class PropertyUnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = PropertyUnit
        fields = [
            "id",
            "pnu",
            "dong",
            "ho",
            "building_unit_id",
            "is_primary",
            "ownership_type",
            "land_ownership_ratio",
            "property_address_jibun",
            "property_address_road",
        ]
        read_only_fields = fields


class MemberSerializer(serializers.ModelSerializer):
    property_units = PropertyUnitSerializer(many=True, read_only=True)

    class Meta:
        model = Member
        fields = [
            "id",
            "tenant_id",
            "name",
            "phone_number",
            "birth_date",
            "status",
            "role",
            "is_blocked",
            "blocked_reason",
            "blocked_at",
            "rejected_reason",
            "rejected_at",
            "approved_at",
            "resident_address",
            "resident_address_jibun",
            "resident_address_detail",
            "resident_pnu",
            "notes",
            "property_units",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class MemberProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=64, required=False)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    birth_date = serializers.DateField(required=False, allow_null=True)
    resident_address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    resident_address_jibun = serializers.CharField(max_length=255, required=False, allow_blank=True)
    resident_address_detail = serializers.CharField(max_length=255, required=False, allow_blank=True)
    resident_pnu = serializers.CharField(max_length=19, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField()


class SetPrimaryUnitSerializer(serializers.Serializer):
    unit_id = serializers.UUIDField()


class MemberActionResultSerializer(serializers.Serializer):
    member = MemberSerializer()
    notification_sent = serializers.BooleanField()


class MemberRowSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=["primary", "co_owner"])
    member_id = serializers.UUIDField()
    name = serializers.CharField()
    phone_number = serializers.CharField()
    status = serializers.CharField()
    is_blocked = serializers.BooleanField()
    property_unit_id = serializers.UUIDField(allow_null=True)
    pnu = serializers.CharField(allow_null=True)
    dong = serializers.CharField()
    ho = serializers.CharField()
    building_unit_id = serializers.UUIDField(allow_null=True)
    ownership_type = serializers.CharField(allow_null=True)
    land_ownership_ratio = serializers.DecimalField(max_digits=7, decimal_places=4, allow_null=True)
    property_address = serializers.CharField()


class PropertyConflictSerializer(serializers.Serializer):
    property_unit_id = serializers.UUIDField()
    building_unit_id = serializers.UUIDField(allow_null=True)
    pnu = serializers.CharField(allow_null=True)
    dong = serializers.CharField()
    ho = serializers.CharField()
    address = serializers.CharField()
    existing_member_id = serializers.UUIDField()
    existing_name = serializers.CharField()
    existing_phone = serializers.CharField()
    existing_status = serializers.CharField()
    existing_ownership_type = serializers.CharField()
    existing_share_ratio = serializers.DecimalField(max_digits=7, decimal_places=4, allow_null=True)


class PropertyInputSerializer(serializers.Serializer):
    pnu = serializers.CharField(max_length=19, required=False, allow_blank=True, allow_null=True)
    dong = serializers.CharField(max_length=32, required=False, allow_blank=True)
    ho = serializers.CharField(max_length=32, required=False, allow_blank=True)
    building_unit_id = serializers.UUIDField(required=False, allow_null=True)
    ownership_type = serializers.ChoiceField(choices=OwnershipType.choices, required=False, default=OwnershipType.OWNER)
    land_ownership_ratio = serializers.DecimalField(max_digits=7, decimal_places=4, required=False, allow_null=True)
    property_address_jibun = serializers.CharField(max_length=255, required=False, allow_blank=True)
    property_address_road = serializers.CharField(max_length=255, required=False, allow_blank=True)


class RegistrationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=64)
    phone_number = serializers.CharField(max_length=32)
    birth_date = serializers.DateField(required=False, allow_null=True)
    provider = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    resident_address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    resident_address_jibun = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    resident_address_detail = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    resident_pnu = serializers.CharField(max_length=19, required=False, allow_blank=True, default="")
    properties = PropertyInputSerializer(many=True)
    link_to_member_id = serializers.UUIDField(required=False, allow_null=True)


class RegistrationResponseSerializer(serializers.Serializer):
    member = MemberSerializer()
    linked_existing = serializers.BooleanField()
    merged_count = serializers.IntegerField()
    dedup_error = serializers.CharField(allow_blank=True)


class MemberInviteSerializer(serializers.ModelSerializer):
    class Meta:
        model = MemberInvite
        fields = [
            "id",
            "name",
            "phone_number",
            "property_address",
            "status",
            "expires_at",
            "used_at",
            "member_id",
            "created_at",
        ]
        read_only_fields = fields


class InviteCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=64)
    phone_number = serializers.CharField(max_length=32)
    property_address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    pnu = serializers.CharField(max_length=19, required=False, allow_blank=True, allow_null=True)
    dong = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    ho = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    expires_in_days = serializers.IntegerField(required=False, min_value=1, max_value=90)


class BulkInviteSerializer(serializers.Serializer):
    entries = InviteCreateSerializer(many=True, allow_empty=False, max_length=1000)


class BulkInviteResultSerializer(serializers.Serializer):
    created_count = serializers.IntegerField()
    sent_count = serializers.IntegerField()
    failed_count = serializers.IntegerField()
    invalid = serializers.ListField(child=serializers.DictField())


class InviteAcceptSerializer(serializers.Serializer):
    token = serializers.CharField(max_length=64)
    provider = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")


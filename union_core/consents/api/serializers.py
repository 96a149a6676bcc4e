# union_core/consents/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.unions.models import BusinessType


class ConsentStageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConsentStage
        fields = ["id", "business_type", "stage_name", "required_rate", "sort_order", "created_at"]
        read_only_fields = fields


class ConsentStageCreateSerializer(serializers.Serializer):
    stage_name = serializers.CharField(max_length=128)
    required_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100)
    business_type = serializers.ChoiceField(choices=BusinessType.choices, required=False)
    sort_order = serializers.IntegerField(required=False, default=0, min_value=0)


class UserConsentSerializer(serializers.ModelSerializer):
    member_id = serializers.UUIDField(source="member.id", read_only=True)
    member_name = serializers.CharField(source="member.name", read_only=True)

    class Meta:
        model = UserConsent
        fields = ["id", "member_id", "member_name", "stage_id", "status", "consent_date", "updated_at"]
        read_only_fields = fields


class SetConsentSerializer(serializers.Serializer):
    member_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=ConsentStatus.choices)
    consent_date = serializers.DateField(required=False, allow_null=True)


class BulkConsentSerializer(serializers.Serializer):
    member_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False, max_length=2000)
    status = serializers.ChoiceField(choices=ConsentStatus.choices)
    consent_date = serializers.DateField(required=False, allow_null=True)


class BulkConsentResultSerializer(serializers.Serializer):
    updated_count = serializers.IntegerField()
    missing_member_ids = serializers.ListField(child=serializers.UUIDField())


class ParcelConsentStatusSerializer(serializers.Serializer):
    pnu = serializers.CharField()
    stage_id = serializers.UUIDField()
    total_owners = serializers.IntegerField()
    agreed_owners = serializers.IntegerField()
    consent_rate = serializers.IntegerField()
    display_status = serializers.CharField()
    is_completed = serializers.BooleanField()


class UnionConsentSummarySerializer(serializers.Serializer):
    stage_id = serializers.UUIDField()
    stage_name = serializers.CharField()
    required_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    agreed_count = serializers.IntegerField()
    member_count = serializers.IntegerField()
    rate = serializers.DecimalField(max_digits=6, decimal_places=1, coerce_to_string=False)
    area_rate = serializers.DecimalField(max_digits=6, decimal_places=1, coerce_to_string=False)
    parcel_count = serializers.IntegerField()
    completed_parcel_count = serializers.IntegerField()
    is_completed = serializers.BooleanField()


class ParcelRegistrationStatusSerializer(serializers.Serializer):
    pnu = serializers.CharField()
    total_owners = serializers.IntegerField()
    registered_owners = serializers.IntegerField()
    registration_rate = serializers.IntegerField()
    status = serializers.CharField()


class UnionRegistrationSummarySerializer(serializers.Serializer):
    registered_count = serializers.IntegerField()
    member_count = serializers.IntegerField()
    rate = serializers.DecimalField(max_digits=6, decimal_places=1, coerce_to_string=False)
    status_counts = serializers.DictField(child=serializers.IntegerField())


class ParcelMapSerializer(serializers.Serializer):
    is_published = serializers.BooleanField()
    sync_job_id = serializers.UUIDField(allow_null=True)
    geojson = serializers.JSONField(allow_null=True)


class ReminderResultSerializer(serializers.Serializer):
    status = serializers.CharField()
    recipient_count = serializers.IntegerField()
    success_count = serializers.IntegerField()
    fail_count = serializers.IntegerField()
    error = serializers.CharField(allow_blank=True)

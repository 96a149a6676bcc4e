# union_core/unions/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from union_core.unions.models import BusinessType, Union, UnionStatus


class UnionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Union
        fields = [
            "id",
            "name",
            "slug",
            "business_type",
            "member_count",
            "status",
            "metadata",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class UnionMetaSerializer(serializers.ModelSerializer):
    """Public view of a union (landing pages, registration form)."""

    class Meta:
        model = Union
        fields = ["id", "name", "slug", "business_type"]
        read_only_fields = fields


class UnionCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    slug = serializers.CharField(max_length=64)
    business_type = serializers.ChoiceField(choices=BusinessType.choices, required=False, default=BusinessType.REDEVELOPMENT)
    member_count = serializers.IntegerField(required=False, default=0, min_value=0)
    metadata = serializers.JSONField(required=False, default=dict)


class UnionStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=UnionStatus.choices)


class UnionMemberCountSerializer(serializers.Serializer):
    member_count = serializers.IntegerField(min_value=0)

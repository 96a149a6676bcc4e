# union_core/iam/api/schema_serializers.py
from __future__ import annotations

from rest_framework import serializers


class LoginRequestSerializer(serializers.Serializer):
    username = serializers.CharField(required=False)
    email = serializers.EmailField(required=False)
    password = serializers.CharField()


class DetailResponseSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False, allow_blank=True)
    is_superuser = serializers.BooleanField()


class UnionMembershipSerializer(serializers.Serializer):
    union_id = serializers.UUIDField()
    union_slug = serializers.CharField()
    union_name = serializers.CharField()
    member_id = serializers.UUIDField()
    member_name = serializers.CharField()
    status = serializers.CharField()
    role = serializers.CharField()
    is_blocked = serializers.BooleanField()


class MeResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    memberships = UnionMembershipSerializer(many=True)

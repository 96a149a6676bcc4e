# union_core/unions/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from union_core.common.permissions import IsSystemAdmin
from union_core.unions.api.serializers import (
    UnionCreateSerializer,
    UnionMemberCountSerializer,
    UnionMetaSerializer,
    UnionSerializer,
    UnionStatusUpdateSerializer,
)
from union_core.unions.models import Union
from union_core.unions.selectors import union_qs
from union_core.unions.services import UnionService


@extend_schema_view(
    list=extend_schema(tags=["Unions"], operation_id="v1_unions_list", responses={200: UnionSerializer(many=True)}),
    retrieve=extend_schema(tags=["Unions"], operation_id="v1_unions_retrieve", responses={200: UnionSerializer}),
    create=extend_schema(tags=["Unions"], operation_id="v1_unions_create", request=UnionCreateSerializer, responses={201: UnionSerializer}),
    set_status=extend_schema(tags=["Unions"], operation_id="v1_unions_set_status", request=UnionStatusUpdateSerializer, responses={200: UnionSerializer}),
    set_member_count=extend_schema(tags=["Unions"], operation_id="v1_unions_set_member_count", request=UnionMemberCountSerializer, responses={200: UnionSerializer}),
)
class UnionViewSet(viewsets.ViewSet):
    """
    System-admin union management.
    Routing is centralized in union_core/api/urls.py.
    """

    permission_classes = [IsSystemAdmin]

    serializer_class = UnionSerializer
    queryset = Union.objects.none()

    def list(self, request):
        qs = union_qs().order_by("-created_at")[:300]
        return Response(UnionSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        obj = union_qs().get(id=UUID(str(pk)))
        return Response(UnionSerializer(obj).data, status=status.HTTP_200_OK)

    def create(self, request):
        ser = UnionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        u = UnionService.create(**ser.validated_data)
        return Response(UnionSerializer(u).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="set-status")
    def set_status(self, request, pk=None):
        ser = UnionStatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        u = UnionService.set_status(union_id=UUID(str(pk)), status=ser.validated_data["status"])
        return Response(UnionSerializer(u).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="set-member-count")
    def set_member_count(self, request, pk=None):
        ser = UnionMemberCountSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        u = UnionService.set_member_count(union_id=UUID(str(pk)), member_count=ser.validated_data["member_count"])
        return Response(UnionSerializer(u).data, status=status.HTTP_200_OK)


class UnionMetaView(APIView):
    """
    GET /api/v1/u/<slug>/meta/
    Public; the middleware already resolved request.union.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(tags=["Unions"], responses={200: UnionMetaSerializer})
    def get(self, request, slug=None):
        return Response(UnionMetaSerializer(request.union).data, status=status.HTTP_200_OK)

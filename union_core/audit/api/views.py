# union_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from union_core.audit.api.serializers import AuditEventSerializer
from union_core.audit.models import AuditEvent
from union_core.audit.selectors import list_audit_events
from union_core.common.permissions import AuditPermission


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    List audit events of the union (admin only).
    """
    permission_classes = [AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="entity_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False,
                             description="Filter by entity type (e.g. Member, ParcelBuildingMapping)."),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False,
                             description="Filter by entity id (UUID or PNU)."),
            OpenApiParameter(name="event_code", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False,
                             description="Filter by event code (e.g. member.approved, gis.building.merged)."),
            OpenApiParameter(name="actor_user_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="limit", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False,
                             description="Max records to return (default 200, max 500)."),
        ],
    )
    def list(self, request, slug=None):
        actor_user_raw = request.query_params.get("actor_user_id")

        actor_user_id = None
        if actor_user_raw:
            try:
                actor_user_id = int(actor_user_raw)
            except ValueError:
                raise ValidationError({"actor_user_id": "Invalid actor_user_id (int expected)"})

        qs = list_audit_events(
            tenant_id=request.tenant_id,
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=request.query_params.get("entity_id") or None,
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=actor_user_id,
        )

        limit = request.query_params.get("limit")
        try:
            limit_n = int(limit) if limit else 200
        except ValueError:
            limit_n = 200
        limit_n = max(1, min(limit_n, 500))

        return Response(AuditEventSerializer(qs[:limit_n], many=True).data, status=status.HTTP_200_OK)

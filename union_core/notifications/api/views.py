# union_core/notifications/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets

from union_core.common.api.pagination import paginate
from union_core.common.permissions import MessageLogPermission
from union_core.notifications.api.serializers import MessageLogSerializer
from union_core.notifications.models import MessageLog


class MessageLogViewSet(viewsets.GenericViewSet):
    """
    Sent alimtalk batches of the union (admin only).
    """
    permission_classes = [MessageLogPermission]

    serializer_class = MessageLogSerializer
    queryset = MessageLog.objects.none()

    @extend_schema(
        tags=["Notifications"],
        responses={200: MessageLogSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="template_code", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request, slug=None):
        qs = MessageLog.objects.filter(tenant_id=request.tenant_id)

        template_code = request.query_params.get("template_code")
        if template_code:
            qs = qs.filter(template_code=template_code)
        status_filter = request.query_params.get("status")
        if status_filter:
            qs = qs.filter(status=status_filter)

        return paginate(request, qs.order_by("-created_at"), MessageLogSerializer)

# union_core/consents/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from union_core.common.api.pagination import paginate
from union_core.common.permissions import ConsentPermission
from union_core.consents.api.serializers import (
    BulkConsentResultSerializer,
    BulkConsentSerializer,
    ConsentStageCreateSerializer,
    ConsentStageSerializer,
    ParcelConsentStatusSerializer,
    ParcelMapSerializer,
    ParcelRegistrationStatusSerializer,
    ReminderResultSerializer,
    SetConsentSerializer,
    UnionConsentSummarySerializer,
    UnionRegistrationSummarySerializer,
    UserConsentSerializer,
)
from union_core.consents.models import ConsentStage
from union_core.consents.selectors import (
    consent_map,
    get_stage,
    list_consents,
    list_stages,
    parcel_consent_status,
    parcel_registration_status,
    union_consent_statuses,
    union_consent_summary,
    union_registration_statuses,
    union_registration_summary,
)
from union_core.consents.services import ConsentService
from union_core.notifications.services import send_consent_reminders


def _actor_id(request) -> int | None:
    return getattr(request.user, "id", None)


@extend_schema_view(
    list=extend_schema(tags=["Consents"], responses={200: ConsentStageSerializer(many=True)}),
    retrieve=extend_schema(tags=["Consents"], responses={200: ConsentStageSerializer}),
    create=extend_schema(tags=["Consents"], request=ConsentStageCreateSerializer, responses={201: ConsentStageSerializer}),
    consents=extend_schema(
        tags=["Consents"],
        parameters=[OpenApiParameter("status", str, required=False)],
        responses={200: UserConsentSerializer(many=True)},
    ),
    set_consent=extend_schema(tags=["Consents"], request=SetConsentSerializer, responses={200: UserConsentSerializer}),
    bulk_update=extend_schema(tags=["Consents"], request=BulkConsentSerializer, responses={200: BulkConsentResultSerializer}),
    summary=extend_schema(tags=["Consents"], responses={200: UnionConsentSummarySerializer}),
    parcels=extend_schema(
        tags=["Consents"],
        parameters=[OpenApiParameter("pnu", str, required=False)],
        responses={200: ParcelConsentStatusSerializer(many=True)},
    ),
    map=extend_schema(tags=["Consents"], responses={200: ParcelMapSerializer}),
    remind=extend_schema(tags=["Consents"], request=None, responses={200: ReminderResultSerializer}),
)
class ConsentStageViewSet(viewsets.ViewSet):
    """
    Consent stages of the union and their aggregated rates.
    Routes: /api/v1/u/<slug>/consent-stages/...
    """

    permission_classes = [ConsentPermission]

    serializer_class = ConsentStageSerializer
    queryset = ConsentStage.objects.none()

    def list(self, request, slug=None):
        qs = list_stages(tenant_id=request.tenant_id, business_type=request.query_params.get("business_type") or None)
        return Response(ConsentStageSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, slug=None, pk=None):
        stage = get_stage(tenant_id=request.tenant_id, stage_id=UUID(str(pk)))
        return Response(ConsentStageSerializer(stage).data, status=status.HTTP_200_OK)

    def create(self, request, slug=None):
        ser = ConsentStageCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        stage = ConsentService.create_stage(
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(ConsentStageSerializer(stage).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="consents")
    def consents(self, request, slug=None, pk=None):
        qs = list_consents(
            tenant_id=request.tenant_id,
            stage_id=UUID(str(pk)),
            status=request.query_params.get("status") or None,
        )
        return paginate(request, qs, UserConsentSerializer)

    @action(detail=True, methods=["post"], url_path="set-consent")
    def set_consent(self, request, slug=None, pk=None):
        ser = SetConsentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        consent = ConsentService.set_consent(
            tenant_id=request.tenant_id,
            stage_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(UserConsentSerializer(consent).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="bulk-update")
    def bulk_update(self, request, slug=None, pk=None):
        ser = BulkConsentSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = ConsentService.bulk_update(
            tenant_id=request.tenant_id,
            stage_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(BulkConsentResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="summary")
    def summary(self, request, slug=None, pk=None):
        s = union_consent_summary(tenant_id=request.tenant_id, stage_id=UUID(str(pk)))
        return Response(UnionConsentSummarySerializer(s).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="parcels")
    def parcels(self, request, slug=None, pk=None):
        pnu = (request.query_params.get("pnu") or "").strip()
        if pnu:
            items = [parcel_consent_status(tenant_id=request.tenant_id, pnu=pnu, stage_id=UUID(str(pk)))]
        else:
            items = union_consent_statuses(tenant_id=request.tenant_id, stage_id=UUID(str(pk)))
        return Response(ParcelConsentStatusSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="map")
    def map(self, request, slug=None, pk=None):
        m = consent_map(tenant_id=request.tenant_id, stage_id=UUID(str(pk)))
        return Response(ParcelMapSerializer(m).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="remind")
    def remind(self, request, slug=None, pk=None):
        stage = get_stage(tenant_id=request.tenant_id, stage_id=UUID(str(pk)))
        result = send_consent_reminders(tenant_id=request.tenant_id, stage_id=stage.id, actor_user_id=_actor_id(request))
        return Response(ReminderResultSerializer(result).data, status=status.HTTP_200_OK)


class RegistrationSummaryView(APIView):
    """
    GET /api/v1/u/<slug>/registration/summary/
    Approved members over the union's member_count, plus per-parcel status counts.
    """

    permission_classes = [ConsentPermission]
    action = "registration_summary"

    @extend_schema(tags=["Consents"], responses={200: UnionRegistrationSummarySerializer})
    def get(self, request, slug=None):
        s = union_registration_summary(tenant_id=request.tenant_id)
        return Response(UnionRegistrationSummarySerializer(s).data, status=status.HTTP_200_OK)


class RegistrationParcelsView(APIView):
    """
    GET /api/v1/u/<slug>/registration/parcels/?pnu=
    Per-parcel owner registration status.
    """

    permission_classes = [ConsentPermission]
    action = "registration_parcels"

    @extend_schema(
        tags=["Consents"],
        parameters=[OpenApiParameter("pnu", str, required=False)],
        responses={200: ParcelRegistrationStatusSerializer(many=True)},
    )
    def get(self, request, slug=None):
        pnu = (request.query_params.get("pnu") or "").strip()
        if pnu:
            items = [parcel_registration_status(tenant_id=request.tenant_id, pnu=pnu)]
        else:
            items = union_registration_statuses(tenant_id=request.tenant_id)
        return Response(ParcelRegistrationStatusSerializer(items, many=True).data, status=status.HTTP_200_OK)

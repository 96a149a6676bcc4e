# union_core/gis/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from union_core.common.api.pagination import paginate
from union_core.common.permissions import ParcelPermission
from union_core.consents.api.serializers import ParcelMapSerializer
from union_core.consents.selectors import registration_map as build_registration_map
from union_core.gis.address import AddressComponents, AddressLookupError, parse_jibun, resolve_pnu
from union_core.gis.api.serializers import (
    BuildingMatchSerializer,
    BuildingSearchResultSerializer,
    DeleteParcelResultSerializer,
    LandLotSerializer,
    LinkedParcelSerializer,
    LinkMemberSerializer,
    ManualLandLotSerializer,
    MergeMultipleResultSerializer,
    MergeMultipleSerializer,
    MergeResultSerializer,
    MergeSerializer,
    ParcelBuildingMappingSerializer,
    ParcelDetailSerializer,
    ParcelMemberSerializer,
    ParcelUpdateSerializer,
    PnuResolutionSerializer,
    ResolvePnuSerializer,
    UndoMergeResultSerializer,
    UnitViewSerializer,
)
from union_core.gis.models import LandLot
from union_core.gis.selectors import (
    building_units_union,
    get_mapping,
    get_mapping_or_none,
    get_union_land_lot,
    search_buildings,
    search_linked_parcels,
    union_land_lots,
)
from union_core.gis.services import BUILDING_EDITABLE, BuildingMatchService, ParcelService
from union_core.members.api.serializers import PropertyUnitSerializer
from union_core.members.selectors import parcel_members


def _union_parcel(request, pnu: str) -> LandLot:
    return get_union_land_lot(tenant_id=request.tenant_id, pnu=pnu)


def _actor_id(request) -> int | None:
    return getattr(request.user, "id", None)


@extend_schema_view(
    list=extend_schema(
        tags=["Parcels"],
        parameters=[OpenApiParameter("q", str, required=False)],
        responses={200: LandLotSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Parcels"], responses={200: ParcelDetailSerializer}),
    partial_update=extend_schema(tags=["Parcels"], request=ParcelUpdateSerializer, responses={200: LandLotSerializer}),
    destroy=extend_schema(tags=["Parcels"], responses={200: DeleteParcelResultSerializer}),
    members=extend_schema(tags=["Parcels"], responses={200: ParcelMemberSerializer(many=True)}),
    link_member=extend_schema(tags=["Parcels"], request=LinkMemberSerializer, responses={200: PropertyUnitSerializer}),
    building_match=extend_schema(tags=["Parcels"], request=BuildingMatchSerializer, responses={200: ParcelBuildingMappingSerializer}),
    building_units=extend_schema(tags=["Parcels"], responses={200: UnitViewSerializer(many=True)}),
    delete_building_unit=extend_schema(tags=["Parcels"], responses={204: None}),
    merge=extend_schema(tags=["Parcels"], request=MergeSerializer, responses={200: MergeResultSerializer}),
    merge_multiple=extend_schema(tags=["Parcels"], request=MergeMultipleSerializer, responses={200: MergeMultipleResultSerializer}),
    undo_merge=extend_schema(tags=["Parcels"], request=None, responses={200: UndoMergeResultSerializer}),
    manual_add=extend_schema(tags=["Parcels"], request=ManualLandLotSerializer, responses={201: LandLotSerializer}),
    resolve_pnu=extend_schema(tags=["Parcels"], request=ResolvePnuSerializer, responses={200: PnuResolutionSerializer}),
    linked_search=extend_schema(
        tags=["Parcels"],
        parameters=[OpenApiParameter("q", str, required=False), OpenApiParameter("exclude_pnu", str, required=False)],
        responses={200: LinkedParcelSerializer(many=True)},
    ),
    building_search=extend_schema(
        tags=["Parcels"],
        parameters=[OpenApiParameter("keyword", str, required=False)],
        responses={200: BuildingSearchResultSerializer(many=True)},
    ),
    registration_map=extend_schema(tags=["Parcels"], responses={200: ParcelMapSerializer}),
)
class ParcelViewSet(viewsets.ViewSet):
    """
    Union parcels, their building match and building merges.
    Routes: /api/v1/u/<slug>/parcels/<pnu>/...
    """

    permission_classes = [ParcelPermission]

    serializer_class = LandLotSerializer
    queryset = LandLot.objects.none()

    lookup_field = "pnu"
    lookup_value_regex = r"[^/]+"

    def list(self, request, slug=None):
        qs = union_land_lots(tenant_id=request.tenant_id)
        q = (request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(address__icontains=q) | qs.filter(pnu__startswith=q)
        return paginate(request, qs, LandLotSerializer)

    def retrieve(self, request, slug=None, pnu=None):
        lot = _union_parcel(request, pnu)
        data = ParcelDetailSerializer({"land_lot": lot, "mapping": get_mapping_or_none(pnu=pnu)}).data
        return Response(data, status=status.HTTP_200_OK)

    def partial_update(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)

        ser = ParcelUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        building_id = data.pop("building_id", None)
        building = {k: data.pop(k) for k in list(data) if k in BUILDING_EDITABLE}
        if building and building_id is None:
            mapping = get_mapping_or_none(pnu=pnu)
            if mapping is None:
                raise ValidationError({"building_id": "Parcel has no building match."})
            building_id = mapping.building_id

        lot = ParcelService.update_parcel_info(
            pnu=pnu,
            land=data,
            building_id=building_id,
            building=building,
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
        )
        return Response(LandLotSerializer(lot).data, status=status.HTTP_200_OK)

    def destroy(self, request, slug=None, pnu=None):
        result = ParcelService.delete_parcel(tenant_id=request.tenant_id, pnu=pnu, actor_user_id=_actor_id(request))
        return Response(DeleteParcelResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="members")
    def members(self, request, slug=None, pnu=None):
        units = parcel_members(tenant_id=request.tenant_id, pnu=pnu)
        return Response(ParcelMemberSerializer(units, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="link-member")
    def link_member(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)

        ser = LinkMemberSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        unit = ParcelService.link_member_to_parcel(
            tenant_id=request.tenant_id,
            pnu=pnu,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(PropertyUnitSerializer(unit).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="building-match")
    def building_match(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)
        ser = BuildingMatchSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        BuildingMatchService.update_building_match(
            pnu=pnu,
            new_building_id=ser.validated_data["building_id"],
            note=ser.validated_data.get("note"),
            expected_version=ser.validated_data.get("expected_version"),
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
        )
        return Response(ParcelBuildingMappingSerializer(get_mapping(pnu=pnu)).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="building-units")
    def building_units(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)
        items = building_units_union(pnu=pnu)
        return Response(UnitViewSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["delete"], url_path=r"building-units/(?P<unit_id>[0-9a-f-]+)")
    def delete_building_unit(self, request, slug=None, pnu=None, unit_id=None):
        _union_parcel(request, pnu)
        BuildingMatchService.delete_building_unit(pnu=pnu, unit_id=UUID(str(unit_id)))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="merge")
    def merge(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)
        ser = MergeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = BuildingMatchService.merge_building_into_pnu(
            target_pnu=pnu,
            source_building_id=ser.validated_data["source_building_id"],
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
        )
        return Response(MergeResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="merge-multiple")
    def merge_multiple(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)
        ser = MergeMultipleSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        source_pnus = [p.strip() for p in ser.validated_data["source_pnus"] if p and p.strip()]
        owned = set(union_land_lots(tenant_id=request.tenant_id).filter(pnu__in=source_pnus).values_list("pnu", flat=True))
        foreign = sorted(set(source_pnus) - owned)
        if foreign:
            raise NotFound({"source_pnus": f"Parcels not in this union: {', '.join(foreign)}"})

        result = BuildingMatchService.merge_multiple_pnus(
            target_pnu=pnu,
            source_pnus=source_pnus,
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
        )
        return Response(MergeMultipleResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="undo-merge")
    def undo_merge(self, request, slug=None, pnu=None):
        _union_parcel(request, pnu)
        result = BuildingMatchService.undo_merge(target_pnu=pnu, tenant_id=request.tenant_id, actor_user_id=_actor_id(request))
        return Response(UndoMergeResultSerializer(result).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="manual-add")
    def manual_add(self, request, slug=None):
        ser = ManualLandLotSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        lot = ParcelService.add_manual_land_lot(
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        return Response(LandLotSerializer(lot).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="resolve-pnu")
    def resolve_pnu(self, request, slug=None):
        ser = ResolvePnuSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        components = None
        if data.get("legal_dong_code"):
            main = data.get("main_number")
            sub = data.get("sub_number") or 0
            mountain = data.get("is_mountain", False)
            if main is None:
                parsed = parse_jibun(data["address"])
                if parsed is not None:
                    mountain, main, sub = parsed
            if main is not None:
                components = AddressComponents(
                    legal_dong_code=data["legal_dong_code"],
                    main_number=main,
                    sub_number=sub,
                    is_mountain=mountain,
                )

        try:
            res = resolve_pnu(data["address"], components)
        except AddressLookupError as exc:
            raise ValidationError({"address": str(exc)})
        return Response(PnuResolutionSerializer(res).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="linked-search")
    def linked_search(self, request, slug=None):
        items = search_linked_parcels(
            tenant_id=request.tenant_id,
            query=request.query_params.get("q") or "",
            exclude_pnu=request.query_params.get("exclude_pnu") or None,
        )
        return Response(LinkedParcelSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="building-search")
    def building_search(self, request, slug=None):
        items = search_buildings(keyword=request.query_params.get("keyword") or "")
        return Response(BuildingSearchResultSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="registration-map")
    def registration_map(self, request, slug=None):
        m = build_registration_map(tenant_id=request.tenant_id)
        return Response(ParcelMapSerializer(m).data, status=status.HTTP_200_OK)

# union_core/members/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from union_core.common.api.pagination import paginate
from union_core.common.permissions import InvitePermission, MemberPermission
from union_core.members.api.serializers import (
    BulkInviteResultSerializer,
    BulkInviteSerializer,
    InviteAcceptSerializer,
    InviteCreateSerializer,
    MemberActionResultSerializer,
    MemberInviteSerializer,
    MemberProfileUpdateSerializer,
    MemberRowSerializer,
    MemberSerializer,
    PropertyConflictSerializer,
    PropertyUnitSerializer,
    ReasonSerializer,
    RegistrationResponseSerializer,
    RegistrationSerializer,
    SetPrimaryUnitSerializer,
)
from union_core.members.filters import MemberFilter
from union_core.members.models import Member, MemberInvite
from union_core.members.selectors import (
    find_property_conflicts,
    get_member,
    list_invites,
    member_qs,
    member_rows,
)
from union_core.members.services import InviteService, MemberService, RegistrationService


def _actor_id(request) -> int | None:
    return getattr(request.user, "id", None)


def _action_response(result) -> Response:
    member = get_member(tenant_id=result.member.tenant_id, member_id=result.member.id)
    data = MemberActionResultSerializer({"member": member, "notification_sent": result.notification_sent}).data
    return Response(data, status=status.HTTP_200_OK)


@extend_schema_view(
    list=extend_schema(tags=["Members"], responses={200: MemberSerializer(many=True)}),
    retrieve=extend_schema(tags=["Members"], responses={200: MemberSerializer}),
    partial_update=extend_schema(tags=["Members"], request=MemberProfileUpdateSerializer, responses={200: MemberSerializer}),
    approve=extend_schema(tags=["Members"], request=None, responses={200: MemberActionResultSerializer}),
    reject=extend_schema(tags=["Members"], request=ReasonSerializer, responses={200: MemberActionResultSerializer}),
    cancel_rejection=extend_schema(tags=["Members"], request=None, responses={200: MemberSerializer}),
    block=extend_schema(tags=["Members"], request=ReasonSerializer, responses={200: MemberSerializer}),
    unblock=extend_schema(tags=["Members"], request=None, responses={200: MemberSerializer}),
    force_withdraw=extend_schema(tags=["Members"], request=ReasonSerializer, responses={200: MemberSerializer}),
    conflicts=extend_schema(tags=["Members"], responses={200: PropertyConflictSerializer(many=True)}),
    rows=extend_schema(tags=["Members"], responses={200: MemberRowSerializer(many=True)}),
    set_primary_unit=extend_schema(tags=["Members"], request=SetPrimaryUnitSerializer, responses={200: PropertyUnitSerializer}),
)
class MemberViewSet(viewsets.ViewSet):
    """
    Union member registry (admin).
    Routes: /api/v1/u/<slug>/members/...
    """

    permission_classes = [MemberPermission]

    serializer_class = MemberSerializer
    queryset = Member.objects.none()

    def list(self, request, slug=None):
        qs = member_qs(tenant_id=request.tenant_id).order_by("-created_at")
        qs = MemberFilter(request.query_params, queryset=qs, request=request).qs
        return paginate(request, qs, MemberSerializer)

    def retrieve(self, request, slug=None, pk=None):
        m = get_member(tenant_id=request.tenant_id, member_id=UUID(str(pk)))
        return Response(MemberSerializer(m).data, status=status.HTTP_200_OK)

    def partial_update(self, request, slug=None, pk=None):
        ser = MemberProfileUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        m = MemberService.update_profile(
            tenant_id=request.tenant_id,
            member_id=UUID(str(pk)),
            data=dict(ser.validated_data),
            actor_user_id=_actor_id(request),
        )
        m = get_member(tenant_id=request.tenant_id, member_id=m.id)
        return Response(MemberSerializer(m).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, slug=None, pk=None):
        result = MemberService.approve(tenant_id=request.tenant_id, member_id=UUID(str(pk)), actor_user_id=_actor_id(request))
        return _action_response(result)

    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, slug=None, pk=None):
        ser = ReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = MemberService.reject(
            tenant_id=request.tenant_id,
            member_id=UUID(str(pk)),
            reason=ser.validated_data["reason"],
            actor_user_id=_actor_id(request),
        )
        return _action_response(result)

    @action(detail=True, methods=["post"], url_path="cancel-rejection")
    def cancel_rejection(self, request, slug=None, pk=None):
        m = MemberService.cancel_rejection(tenant_id=request.tenant_id, member_id=UUID(str(pk)), actor_user_id=_actor_id(request))
        return Response(MemberSerializer(get_member(tenant_id=request.tenant_id, member_id=m.id)).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="block")
    def block(self, request, slug=None, pk=None):
        ser = ReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        m = MemberService.block(
            tenant_id=request.tenant_id,
            member_id=UUID(str(pk)),
            reason=ser.validated_data["reason"],
            actor_user_id=_actor_id(request),
        )
        return Response(MemberSerializer(get_member(tenant_id=request.tenant_id, member_id=m.id)).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="unblock")
    def unblock(self, request, slug=None, pk=None):
        m = MemberService.unblock(tenant_id=request.tenant_id, member_id=UUID(str(pk)), actor_user_id=_actor_id(request))
        return Response(MemberSerializer(get_member(tenant_id=request.tenant_id, member_id=m.id)).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="force-withdraw")
    def force_withdraw(self, request, slug=None, pk=None):
        ser = ReasonSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        m = MemberService.force_withdraw(
            tenant_id=request.tenant_id,
            member_id=UUID(str(pk)),
            reason=ser.validated_data["reason"],
            actor_user_id=_actor_id(request),
        )
        return Response(MemberSerializer(get_member(tenant_id=request.tenant_id, member_id=m.id)).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="conflicts")
    def conflicts(self, request, slug=None, pk=None):
        items = find_property_conflicts(tenant_id=request.tenant_id, member_id=UUID(str(pk)))
        return Response(PropertyConflictSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="rows")
    def rows(self, request, slug=None, pk=None):
        items = member_rows(tenant_id=request.tenant_id, member_id=UUID(str(pk)))
        return Response(MemberRowSerializer(items, many=True).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="set-primary-unit")
    def set_primary_unit(self, request, slug=None, pk=None):
        ser = SetPrimaryUnitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        unit = MemberService.set_primary_unit(
            tenant_id=request.tenant_id,
            member_id=UUID(str(pk)),
            unit_id=ser.validated_data["unit_id"],
        )
        return Response(PropertyUnitSerializer(unit).data, status=status.HTTP_200_OK)


class RegistrationView(APIView):
    """
    POST /api/v1/u/<slug>/register/
    Any authenticated auth user may apply to the union in the URL.
    409 duplicate_member asks the client to confirm linking (retry with link_to_member_id).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Members"], request=RegistrationSerializer, responses={201: RegistrationResponseSerializer})
    def post(self, request, slug=None):
        ser = RegistrationSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        result = RegistrationService.register(
            tenant_id=request.tenant_id,
            auth_user=request.user,
            properties=[dict(p) for p in data.pop("properties")],
            **data,
        )

        member = get_member(tenant_id=request.tenant_id, member_id=result.member.id)
        body = {
            "member": member,
            "linked_existing": result.linked_existing,
            "merged_count": result.dedup.merged_count if result.dedup else 0,
            "dedup_error": result.dedup.error if result.dedup else "",
        }
        code = status.HTTP_200_OK if result.linked_existing else status.HTTP_201_CREATED
        return Response(RegistrationResponseSerializer(body).data, status=code)


@extend_schema_view(
    list=extend_schema(tags=["Invites"], responses={200: MemberInviteSerializer(many=True)}),
    create=extend_schema(tags=["Invites"], request=InviteCreateSerializer, responses={201: MemberInviteSerializer}),
    bulk=extend_schema(tags=["Invites"], request=BulkInviteSerializer, responses={200: BulkInviteResultSerializer}),
    destroy=extend_schema(tags=["Invites"], responses={204: None}),
)
class MemberInviteViewSet(viewsets.ViewSet):
    permission_classes = [InvitePermission]

    serializer_class = MemberInviteSerializer
    queryset = MemberInvite.objects.none()

    def list(self, request, slug=None):
        qs = list_invites(tenant_id=request.tenant_id, status=request.query_params.get("status") or None)
        return paginate(request, qs, MemberInviteSerializer)

    def create(self, request, slug=None):
        ser = InviteCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = InviteService.create_invite(
            tenant_id=request.tenant_id,
            actor_user_id=_actor_id(request),
            **ser.validated_data,
        )
        data = MemberInviteSerializer(result.invite).data
        data["notification_sent"] = result.notification_sent
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="bulk")
    def bulk(self, request, slug=None):
        ser = BulkInviteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        result = InviteService.bulk_invite(
            tenant_id=request.tenant_id,
            entries=[dict(e) for e in ser.validated_data["entries"]],
            actor_user_id=_actor_id(request),
        )
        return Response(BulkInviteResultSerializer(result).data, status=status.HTTP_200_OK)

    def destroy(self, request, slug=None, pk=None):
        InviteService.revoke_invite(tenant_id=request.tenant_id, invite_id=UUID(str(pk)), actor_user_id=_actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


class InviteAcceptView(APIView):
    """
    POST /api/v1/u/<slug>/invites/accept/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Invites"], request=InviteAcceptSerializer, responses={200: MemberSerializer})
    def post(self, request, slug=None):
        ser = InviteAcceptSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        invite = MemberInvite.objects.filter(token=ser.validated_data["token"], tenant_id=request.tenant_id).first()
        if invite is None:
            raise NotFound("Invite not found.")

        m = InviteService.accept_invite(
            token=invite.token,
            auth_user=request.user,
            provider=ser.validated_data.get("provider") or "",
        )
        return Response(MemberSerializer(get_member(tenant_id=request.tenant_id, member_id=m.id)).data, status=status.HTTP_200_OK)

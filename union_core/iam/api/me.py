# union_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from union_core.iam.api.schema_serializers import MeResponseSerializer
from union_core.members.selectors import auth_links_for_user
from union_core.unions.models import Union


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: MeResponseSerializer}, tags=["IAM"])
    def get(self, request):
        """
        Returns the auth user and the union member records linked to it.
        """
        links = list(auth_links_for_user(auth_user_id=request.user.id))
        unions = Union.objects.in_bulk({link.tenant_id for link in links})

        memberships = []
        for link in links:
            union = unions.get(link.tenant_id)
            if union is None:
                continue
            m = link.member
            memberships.append(
                {
                    "union_id": union.id,
                    "union_slug": union.slug,
                    "union_name": union.name,
                    "member_id": m.id,
                    "member_name": m.name,
                    "status": m.status,
                    "role": m.role,
                    "is_blocked": m.is_blocked,
                }
            )

        body = {
            "user": {
                "id": request.user.id,
                "username": getattr(request.user, "username", None),
                "email": getattr(request.user, "email", None),
                "is_superuser": bool(getattr(request.user, "is_superuser", False)),
            },
            "memberships": memberships,
        }
        return Response(MeResponseSerializer(body).data, status=status.HTTP_200_OK)

# union_core/iam/api/auth.py

from __future__ import annotations

from datetime import timedelta
from typing import Any

from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.settings import api_settings

from union_core.iam.api.schema_serializers import DetailResponseSerializer, LoginRequestSerializer


def _seconds(value: Any) -> int:
    """JWT lifetime setting (timedelta or seconds) as seconds; 0 means session cookie."""
    if isinstance(value, timedelta):
        return int(value.total_seconds())
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _jwt_cfg() -> dict:
    return getattr(settings, "SIMPLE_JWT", {}) or {}


def _set_auth_cookies(response: Response, *, access: str, refresh: str) -> None:
    cfg = _jwt_cfg()
    secure = bool(cfg.get("AUTH_COOKIE_SECURE", False))
    samesite = cfg.get("AUTH_COOKIE_SAMESITE", "Lax")

    cookies = (
        (cfg.get("AUTH_COOKIE", "uc_access"), access, cfg.get("ACCESS_TOKEN_LIFETIME", timedelta(minutes=10))),
        (cfg.get("AUTH_COOKIE_REFRESH", "uc_refresh"), refresh, cfg.get("REFRESH_TOKEN_LIFETIME", timedelta(days=14))),
    )
    for name, value, lifetime in cookies:
        response.set_cookie(
            name,
            value,
            max_age=_seconds(lifetime),
            httponly=True,
            secure=secure,
            samesite=samesite,
            path="/",
        )


def _clear_auth_cookies(response: Response) -> None:
    cfg = _jwt_cfg()
    response.delete_cookie(cfg.get("AUTH_COOKIE", "uc_access"), path="/")
    response.delete_cookie(cfg.get("AUTH_COOKIE_REFRESH", "uc_refresh"), path="/")


class _TokenEndpoint(APIView):
    """Unauthenticated token endpoint; credential failures still answer 401."""

    permission_classes = [AllowAny]
    authentication_classes = []

    def get_authenticate_header(self, request):
        return f'{api_settings.AUTH_HEADER_TYPES[0]} realm="api"'


class LoginView(_TokenEndpoint):
    @extend_schema(request=LoginRequestSerializer, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        serializer = TokenObtainPairSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        res = Response({"detail": "login ok"}, status=status.HTTP_200_OK)
        _set_auth_cookies(res, access=serializer.validated_data["access"], refresh=serializer.validated_data["refresh"])
        return res


class RefreshView(_TokenEndpoint):
    @extend_schema(request=None, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        refresh = request.COOKIES.get(_jwt_cfg().get("AUTH_COOKIE_REFRESH", "uc_refresh"))

        serializer = TokenRefreshSerializer(data={"refresh": refresh})
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as exc:
            raise InvalidToken(exc.args[0])

        res = Response({"detail": "refreshed"}, status=status.HTTP_200_OK)
        _set_auth_cookies(
            res,
            access=serializer.validated_data["access"],
            refresh=serializer.validated_data.get("refresh", refresh),
        )
        return res


class LogoutView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=None, responses={200: DetailResponseSerializer}, tags=["IAM"])
    def post(self, request):
        res = Response({"detail": "logged out"}, status=status.HTTP_200_OK)
        _clear_auth_cookies(res)
        return res

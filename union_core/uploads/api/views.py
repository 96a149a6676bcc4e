# union_core/uploads/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers, status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from union_core.common.api.exceptions import StorageError
from union_core.unions.selectors import get_active_union_by_slug_or_none, is_valid_slug
from union_core.uploads.storage import build_storage_path, is_safe_segment, store_base64, store_file


def _error(code: str, http_status: int) -> Response:
    return Response({"error": code}, status=http_status)


class UploadView(APIView):
    """
    POST /api/v1/uploads/

    multipart: slug, target_table, target_id?, file
    json:      slug, target_table, target_id?, file_name, content_type, base64

    Errors use a flat {"error": "<code>"} body.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    @extend_schema(
        tags=["Uploads"],
        request=inline_serializer(
            name="UploadRequest",
            fields={
                "slug": serializers.CharField(),
                "target_table": serializers.CharField(),
                "target_id": serializers.CharField(required=False),
                "file": serializers.FileField(required=False),
                "file_name": serializers.CharField(required=False),
                "content_type": serializers.CharField(required=False),
                "base64": serializers.CharField(required=False),
            },
        ),
        responses={
            200: inline_serializer(
                name="UploadResponse",
                fields={
                    "bucket": serializers.CharField(),
                    "path": serializers.CharField(),
                    "file_url": serializers.CharField(),
                },
            )
        },
    )
    def post(self, request):
        data = request.data
        slug = (data.get("slug") or "").strip()
        target_table = (data.get("target_table") or "").strip()
        target_id = (data.get("target_id") or "").strip() or None

        if not is_valid_slug(slug):
            return _error("invalid_slug", status.HTTP_400_BAD_REQUEST)
        if not target_table:
            return _error("missing_target_table", status.HTTP_400_BAD_REQUEST)
        if not is_safe_segment(target_table):
            return _error("invalid_target_table", status.HTTP_400_BAD_REQUEST)
        if target_id and not is_safe_segment(target_id):
            return _error("invalid_target_id", status.HTTP_400_BAD_REQUEST)

        is_multipart = request.content_type and not request.content_type.startswith("application/json")
        upload = request.FILES.get("file") if is_multipart else None

        if is_multipart:
            if upload is None:
                return _error("missing_file", status.HTTP_400_BAD_REQUEST)
            file_name = upload.name
        else:
            file_name = (data.get("file_name") or "").strip()
            if not file_name:
                return _error("missing_file_name", status.HTTP_400_BAD_REQUEST)
            if not data.get("base64"):
                return _error("missing_base64", status.HTTP_400_BAD_REQUEST)

        union = get_active_union_by_slug_or_none(slug=slug)
        if union is None:
            return _error("union_not_found", status.HTTP_404_NOT_FOUND)

        path = build_storage_path(
            tenant_id=union.id,
            target_table=target_table,
            target_id=target_id,
            filename=file_name,
        )

        try:
            if upload is not None:
                stored = store_file(path=path, content=upload)
            else:
                stored = store_base64(path=path, data=data["base64"])
        except ValueError:
            return _error("invalid_base64", status.HTTP_400_BAD_REQUEST)
        except StorageError:
            return _error("upload_failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response(
            {"bucket": stored.bucket, "path": stored.path, "file_url": stored.file_url},
            status=status.HTTP_200_OK,
        )

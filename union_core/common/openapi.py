# union_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter


class UnionAutoSchema(AutoSchema):
    """
    Schema tweaks for the union portal:

    - Documents the <slug> path segment of union-scoped routes
    - Tags scoped operations by their first path segment after the slug
    """

    SLUG_PARAMETER = OpenApiParameter(
        name="slug",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.PATH,
        required=True,
        description="Union slug (letters, digits, '-', '_', '.').",
    )

    def _is_union_scoped(self) -> bool:
        return "/u/{slug}/" in (self.path or "")

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])
        if self._is_union_scoped() and not any(p.name == "slug" for p in params):
            params.append(self.SLUG_PARAMETER)
        return params

    def get_tags(self):
        tags = super().get_tags()
        if self._is_union_scoped() and tags == ["u"]:
            tail = (self.path or "").split("/u/{slug}/", 1)[1]
            head = tail.split("/", 1)[0]
            return [head or "unions"]
        return tags

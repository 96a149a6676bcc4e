from __future__ import annotations

import re
from typing import Optional

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from union_core.common.api.exceptions import build_error_envelope

INVALID_SLUG_MSG = "Invalid union slug. Use letters, digits, '-', '_' or '.'."
UNION_NOT_FOUND_MSG = "Union not found."


class UnionScopeMiddleware(MiddlewareMixin):
    """
    Resolves the union (tenant) for slug-scoped API requests.

    Behavior:
      - Applies to /api/v1/u/<slug>/... and the /api/u/<slug>/... alias.
      - Invalid slug characters -> 400 (invalid_slug)
      - Unknown or inactive union -> 404 (union_not_found)
      - On success -> attaches request.union and request.tenant_id
      - Any other path is left untouched (request.union stays None).

    Role checks happen in the permission layer, after DRF authentication has run.
    """

    SCOPED_PATH_RE = re.compile(r"^/api/(?:v1/)?u/(?P<slug>[^/]+)/")

    def _json_error(self, request, *, status_code: int, code: str, message: str) -> JsonResponse:
        return JsonResponse(
            build_error_envelope(request=request, code=code, message=message, details=None),
            status=status_code,
        )

    def _slug_from_path(self, path: str) -> Optional[str]:
        m = self.SCOPED_PATH_RE.match(path or "")
        return m.group("slug") if m else None

    def process_request(self, request):
        request.union = None
        request.tenant_id = None

        slug = self._slug_from_path(getattr(request, "path", "") or "")
        if slug is None:
            return None

        from union_core.unions.selectors import get_active_union_by_slug_or_none, is_valid_slug

        if not is_valid_slug(slug):
            return self._json_error(request, status_code=400, code="invalid_slug", message=INVALID_SLUG_MSG)

        union = get_active_union_by_slug_or_none(slug=slug)
        if union is None:
            return self._json_error(request, status_code=404, code="union_not_found", message=UNION_NOT_FOUND_MSG)

        request.union = union
        request.tenant_id = union.id
        return None

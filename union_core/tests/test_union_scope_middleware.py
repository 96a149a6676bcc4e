import json

import pytest
from django.test import RequestFactory

from union_core.common.middleware import UnionScopeMiddleware
from union_core.unions.models import UnionStatus


def _process(path):
    req = RequestFactory().get(path)
    mw = UnionScopeMiddleware(get_response=lambda r: None)
    return req, mw.process_request(req)


@pytest.mark.django_db
def test_invalid_slug_returns_error_envelope():
    req, resp = _process("/api/v1/u/My%20Union!/members/")

    assert resp is not None
    assert resp.status_code == 400

    body = json.loads(resp.content.decode("utf-8"))
    assert body["error"]["code"] == "invalid_slug"
    assert "request_id" in body["error"]


@pytest.mark.django_db
def test_unknown_union_is_404():
    req, resp = _process("/api/v1/u/nowhere/members/")

    assert resp.status_code == 404
    assert json.loads(resp.content)["error"]["code"] == "union_not_found"


@pytest.mark.django_db
def test_inactive_union_is_404(union):
    union.status = UnionStatus.INACTIVE
    union.save(update_fields=["status"])

    req, resp = _process(f"/api/v1/u/{union.slug}/members/")

    assert resp.status_code == 404


@pytest.mark.django_db
def test_known_union_is_attached_to_request(union):
    req, resp = _process(f"/api/u/{union.slug}/meta/")

    assert resp is None
    assert req.union == union
    assert req.tenant_id == union.id


def test_unscoped_paths_are_untouched():
    req, resp = _process("/api/v1/me/")

    assert resp is None
    assert req.union is None
    assert req.tenant_id is None

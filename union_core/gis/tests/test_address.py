import pytest
import requests

from union_core.gis import address
from union_core.gis.address import AddressComponents, AddressLookupError, derive_pnu, parse_jibun, resolve_pnu


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body if body is not None else {}

    def json(self):
        return self._body


def test_derive_pnu_layout():
    c = AddressComponents(legal_dong_code="1129010100", main_number=12, sub_number=3)
    assert derive_pnu(c) == "1129010100100120003"


def test_derive_pnu_mountain_flag():
    c = AddressComponents(legal_dong_code="1129010100", main_number=7, is_mountain=True)
    assert derive_pnu(c) == "1129010100200070000"


def test_derive_pnu_rejects_bad_legal_dong_code():
    with pytest.raises(AddressLookupError):
        derive_pnu(AddressComponents(legal_dong_code="11290", main_number=1))


def test_parse_jibun():
    assert parse_jibun("서울 성북구 미아동 산 12-3") == (True, 12, 3)
    assert parse_jibun("미아동 791") == (False, 791, 0)
    assert parse_jibun("미아동") is None


def test_resolve_pnu_uses_lookup_service(monkeypatch):
    seen = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        seen.update(url=url, json=json, auth=headers.get("Authorization"))
        return FakeResponse(body={"success": True, "data": {"address": "미아동 12-3", "pnu": "1130510100100120003"}})

    monkeypatch.setattr(address.requests, "post", fake_post)

    r = resolve_pnu("미아동 12-3")

    assert r.pnu == "1130510100100120003"
    assert r.source == "lookup"
    assert seen["json"] == {"address": "미아동 12-3"}
    assert seen["auth"] == "Bearer test-token"


def test_resolve_pnu_falls_back_to_components_when_lookup_fails(monkeypatch):
    def broken_post(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(address.requests, "post", broken_post)

    c = AddressComponents(legal_dong_code="1129010100", main_number=12, sub_number=3)
    r = resolve_pnu("행복동 12-3", c)

    assert r.pnu == "1129010100100120003"
    assert r.source == "derived"


def test_resolve_pnu_without_components_raises_when_lookup_has_no_answer(monkeypatch):
    monkeypatch.setattr(address.requests, "post", lambda *a, **kw: FakeResponse(body={"success": False}))

    with pytest.raises(AddressLookupError):
        resolve_pnu("없는주소 1")

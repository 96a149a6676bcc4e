# union_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from union_core.gis.models import Building, BuildingUnit, LandLot, ParcelBuildingMapping, UnionLandLot
from union_core.members.models import Member, MemberRole, MemberStatus, PropertyUnit, UserAuthLink
from union_core.notifications.client import AlimtalkClient
from union_core.unions.models import BusinessType, Union


class AlimtalkStub:
    """Records alimtalk form posts; flip `fail` to make the API reject them."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def __call__(self, client, data):
        self.sent.append(data)
        if self.fail:
            return {"code": -99, "message": "rejected"}
        return {"code": 0, "message": "success"}


@pytest.fixture(autouse=True)
def alimtalk(monkeypatch):
    stub = AlimtalkStub()
    monkeypatch.setattr(AlimtalkClient, "_post", lambda self, data: stub(self, data))
    return stub


@pytest.fixture
def union(db):
    return Union.objects.create(
        name="행복1구역 재개발조합",
        slug="happy-1",
        business_type=BusinessType.REDEVELOPMENT,
        member_count=10,
    )


@pytest.fixture
def other_union(db):
    return Union.objects.create(
        name="다른구역 조합",
        slug="other-union",
        business_type=BusinessType.REDEVELOPMENT,
        member_count=5,
    )


@pytest.fixture
def make_user(db):
    User = get_user_model()
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        username = kwargs.pop("username", f"user{counter['n']}")
        return User.objects.create_user(username=username, password="pass1234", **kwargs)

    return _make


@pytest.fixture
def make_member(db):
    def _make(union, name="홍길동", phone_number="010-1111-2222", status=MemberStatus.APPROVED,
              role=MemberRole.USER, units=(), auth_user=None, **fields):
        m = Member.objects.create(
            tenant_id=union.id,
            name=name,
            phone_number=phone_number,
            status=status,
            role=role,
            **fields,
        )
        for i, unit in enumerate(units):
            data = dict(unit)
            data.setdefault("is_primary", i == 0)
            PropertyUnit.objects.create(tenant_id=union.id, member=m, **data)
        if auth_user is not None:
            UserAuthLink.objects.create(tenant_id=union.id, member=m, auth_user=auth_user)
        return m

    return _make


@pytest.fixture
def admin_user(make_user, make_member, union):
    """Auth user linked to an APPROVED ADMIN member of `union`."""
    user = make_user(username="union-admin")
    make_member(union, name="관리자", phone_number="010-0000-0000", role=MemberRole.ADMIN, auth_user=user)
    return user


@pytest.fixture
def api_client(admin_user):
    c = APIClient()
    c.force_authenticate(user=admin_user)
    return c


@pytest.fixture
def make_parcel(db):
    def _make(union, pnu, address="서울특별시 성북구 행복동 1", area=None, building=None):
        lot, _ = LandLot.objects.get_or_create(pnu=pnu, defaults={"address": address, "area": area})
        UnionLandLot.objects.get_or_create(tenant_id=union.id, land_lot=lot)
        if building is not None:
            ParcelBuildingMapping.objects.create(pnu=pnu, building=building)
        return lot

    return _make


@pytest.fixture
def make_building(db):
    def _make(name="행복빌라", units=()):
        b = Building.objects.create(building_name=name)
        for dong, ho in units:
            BuildingUnit.objects.create(building=b, dong=dong, ho=ho)
        return b

    return _make

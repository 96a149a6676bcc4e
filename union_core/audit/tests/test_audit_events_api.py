import pytest
from rest_framework.test import APIClient

from union_core.gis.services import BuildingMatchService
from union_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def test_building_match_is_audited_per_union(api_client, admin_user, union, make_building, make_parcel):
    b = make_building("A동")
    make_parcel(union, "PNU-1")
    BuildingMatchService.update_building_match(
        pnu="PNU-1", new_building_id=b.id, tenant_id=union.id, actor_user_id=admin_user.id
    )

    res = api_client.get(scoped(union, "audit/events/"), {"entity_id": "PNU-1"})

    assert res.status_code == 200
    events = res.json()
    assert [e["event_code"] for e in events] == ["gis.building.matched"]
    assert events[0]["actor_user_id"] == admin_user.id
    assert events[0]["actor_username"] == admin_user.username
    assert events[0]["metadata"]["previous_building_id"] is None


def test_audit_events_of_other_union_are_hidden(api_client, union, other_union, make_building):
    b = make_building()
    BuildingMatchService.update_building_match(pnu="PNU-X", new_building_id=b.id, tenant_id=other_union.id)

    res = api_client.get(scoped(union, "audit/events/"), {"event_code": "gis.building.matched"})

    assert res.json() == []


def test_bad_actor_filter_is_validation_error(api_client, union):
    res = api_client.get(scoped(union, "audit/events/"), {"actor_user_id": "abc"})

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_plain_member_cannot_read_audit(union, make_user, make_member):
    user = make_user()
    make_member(union, auth_user=user)
    client = APIClient()
    client.force_authenticate(user=user)

    assert client.get(scoped(union, "audit/events/")).status_code == 403

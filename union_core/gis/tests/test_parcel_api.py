import pytest
from rest_framework.test import APIClient

from union_core.gis.models import BuildingUnit, ParcelBuildingMapping, SyncJob, SyncJobStatus
from union_core.members.models import MemberRole
from union_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def test_parcel_list_is_scoped_to_union(api_client, union, other_union, make_parcel):
    make_parcel(union, "PNU-MINE")
    make_parcel(other_union, "PNU-THEIRS")

    res = api_client.get(scoped(union, "parcels/"))

    assert res.status_code == 200
    assert [p["pnu"] for p in res.json()["results"]] == ["PNU-MINE"]


def test_building_match_endpoint_and_stale_version(api_client, union, make_parcel, make_building):
    make_parcel(union, "PNU-1")
    a, b = make_building("A"), make_building("B")

    res = api_client.post(scoped(union, "parcels/PNU-1/building-match/"), {"building_id": str(a.id)}, format="json")
    assert res.status_code == 200
    assert res.json()["building"]["id"] == str(a.id)
    assert res.json()["version"] == 1

    res = api_client.post(
        scoped(union, "parcels/PNU-1/building-match/"),
        {"building_id": str(b.id), "expected_version": 5},
        format="json",
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "conflict"


def test_merge_and_undo_endpoints(api_client, union, make_parcel, make_building):
    target = make_building("target")
    source = make_building("source", units=[("1", "101")])
    make_parcel(union, "PNU-T", building=target)
    make_parcel(union, "PNU-S", building=source)

    res = api_client.post(scoped(union, "parcels/PNU-T/merge/"), {"source_building_id": str(source.id)}, format="json")
    assert res.status_code == 200
    assert res.json()["moved_units_count"] == 1

    res = api_client.post(scoped(union, "parcels/PNU-T/undo-merge/"), format="json")
    assert res.status_code == 200
    assert res.json()["source_building_id"] == str(source.id)


def test_merge_multiple_endpoint_reports_skipped(api_client, union, make_parcel, make_building):
    target = make_building("target")
    other = make_building("other")
    make_parcel(union, "PNU-T", building=target)
    make_parcel(union, "PNU-A", building=target)
    make_parcel(union, "PNU-B", building=other)

    res = api_client.post(
        scoped(union, "parcels/PNU-T/merge-multiple/"),
        {"source_pnus": ["PNU-A", "PNU-B"]},
        format="json",
    )

    assert res.status_code == 200
    body = res.json()
    assert body["skipped_pnus"] == ["PNU-A"]
    assert body["merged_pnus"] == ["PNU-B"]
    assert body["success"] is True


def test_merge_on_unmatched_parcel_is_not_found(api_client, union, make_parcel, make_building):
    make_parcel(union, "PNU-X")
    b = make_building("b")

    res = api_client.post(scoped(union, "parcels/PNU-X/merge/"), {"source_building_id": str(b.id)}, format="json")

    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_found"


def test_plain_member_cannot_merge(union, make_user, make_member, make_parcel, make_building):
    user = make_user()
    make_member(union, role=MemberRole.USER, auth_user=user)
    target = make_building("target")
    make_parcel(union, "PNU-T", building=target)
    client = APIClient()
    client.force_authenticate(user=user)

    res = client.post(scoped(union, "parcels/PNU-T/undo-merge/"), format="json")

    assert res.status_code == 403
    assert res.json()["error"]["code"] == "permission_denied"


def test_registration_map_hidden_until_sync_job_published(api_client, union, make_parcel):
    make_parcel(union, "PNU-1")
    SyncJob.objects.create(tenant_id=union.id, status=SyncJobStatus.COMPLETED, is_published=False)

    res = api_client.get(scoped(union, "parcels/registration-map/"))

    assert res.status_code == 200
    assert res.json()["is_published"] is False
    assert res.json()["geojson"] is None


def test_resolve_pnu_endpoint_derives_from_components(api_client, union, monkeypatch):
    from union_core.gis import address

    def broken_post(*args, **kwargs):
        raise address.requests.ConnectionError("down")

    monkeypatch.setattr(address.requests, "post", broken_post)

    res = api_client.post(
        scoped(union, "parcels/resolve-pnu/"),
        {"address": "행복동 산 5-1", "legal_dong_code": "1129010100"},
        format="json",
    )

    assert res.status_code == 200
    assert res.json() == {"pnu": "1129010100200050001", "address": "행복동 산 5-1", "source": "derived"}


def test_parcel_routes_refuse_other_unions_parcel(api_client, union, other_union, make_parcel, make_building):
    theirs = make_building("theirs", units=[("1", "101")])
    mine = make_building("mine")
    make_parcel(other_union, "PNU-THEIRS", building=theirs)
    unit_id = theirs.units.get().id

    for method, path, body in [
        ("post", "building-match/", {"building_id": str(mine.id)}),
        ("post", "merge/", {"source_building_id": str(mine.id)}),
        ("post", "merge-multiple/", {"source_pnus": ["PNU-X"]}),
        ("post", "undo-merge/", {}),
        ("get", "building-units/", None),
        ("delete", f"building-units/{unit_id}/", None),
    ]:
        url = scoped(union, f"parcels/PNU-THEIRS/{path}")
        res = api_client.post(url, body, format="json") if method == "post" else getattr(api_client, method)(url)
        assert res.status_code == 404, path
        assert res.json()["error"]["code"] == "not_found"

    assert ParcelBuildingMapping.objects.get(pnu="PNU-THEIRS").building_id == theirs.id
    assert BuildingUnit.objects.filter(id=unit_id).exists()


def test_merge_multiple_refuses_foreign_source(api_client, union, other_union, make_parcel, make_building):
    target = make_building("target")
    theirs = make_building("theirs", units=[("1", "101")])
    make_parcel(union, "PNU-T", building=target)
    make_parcel(other_union, "PNU-THEIRS", building=theirs)

    res = api_client.post(
        scoped(union, "parcels/PNU-T/merge-multiple/"),
        {"source_pnus": ["PNU-THEIRS"]},
        format="json",
    )

    assert res.status_code == 404
    assert ParcelBuildingMapping.objects.get(pnu="PNU-THEIRS").building_id == theirs.id


def test_delete_building_unit_must_belong_to_parcel(api_client, union, make_parcel, make_building):
    mine = make_building("mine", units=[("1", "101")])
    elsewhere = make_building("elsewhere", units=[("2", "201")])
    make_parcel(union, "PNU-1", building=mine)
    foreign_unit = elsewhere.units.get()
    own_unit = mine.units.get()

    res = api_client.delete(scoped(union, f"parcels/PNU-1/building-units/{foreign_unit.id}/"))
    assert res.status_code == 404
    assert BuildingUnit.objects.filter(id=foreign_unit.id).exists()

    res = api_client.delete(scoped(union, f"parcels/PNU-1/building-units/{own_unit.id}/"))
    assert res.status_code == 204
    assert not BuildingUnit.objects.filter(id=own_unit.id).exists()

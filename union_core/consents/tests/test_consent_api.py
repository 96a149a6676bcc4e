import pytest
from rest_framework.test import APIClient

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


@pytest.fixture
def stage(union):
    return ConsentStage.objects.create(
        tenant_id=union.id, business_type=union.business_type, stage_name="조합설립 동의", required_rate=75
    )


def test_admin_creates_stage(api_client, union):
    res = api_client.post(
        scoped(union, "consent-stages/"),
        {"stage_name": "본동의", "required_rate": "66.67"},
        format="json",
    )

    assert res.status_code == 201
    assert res.json()["business_type"] == "REDEVELOPMENT"


def test_set_consent_and_summary(api_client, union, stage, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    m = make_member(union, name="가", units=[{"pnu": "PNU-1"}])

    res = api_client.post(
        scoped(union, f"consent-stages/{stage.id}/set-consent/"),
        {"member_id": str(m.id), "status": "AGREED"},
        format="json",
    )
    assert res.status_code == 200
    assert UserConsent.objects.get(member=m, stage=stage).status == ConsentStatus.AGREED

    summary = api_client.get(scoped(union, f"consent-stages/{stage.id}/summary/")).json()
    assert summary["agreed_count"] == 1
    assert summary["rate"] == 10.0
    assert summary["parcel_count"] == 1

    parcels = api_client.get(scoped(union, f"consent-stages/{stage.id}/parcels/"), {"pnu": "PNU-1"}).json()
    assert parcels == [
        {
            "pnu": "PNU-1",
            "stage_id": str(stage.id),
            "total_owners": 1,
            "agreed_owners": 1,
            "consent_rate": 100,
            "display_status": "FULL_AGREED",
            "is_completed": True,
        }
    ]


def test_bulk_update_endpoint(api_client, union, stage, make_member):
    a = make_member(union, name="가")
    b = make_member(union, name="나")

    res = api_client.post(
        scoped(union, f"consent-stages/{stage.id}/bulk-update/"),
        {"member_ids": [str(a.id), str(b.id)], "status": "DISAGREED"},
        format="json",
    )

    assert res.status_code == 200
    assert res.json()["updated_count"] == 2


def test_map_unpublished_by_default(api_client, union, stage):
    res = api_client.get(scoped(union, f"consent-stages/{stage.id}/map/"))

    assert res.status_code == 200
    assert res.json() == {"is_published": False, "sync_job_id": None, "geojson": None}


def test_stage_of_other_union_is_404(api_client, union, other_union):
    foreign = ConsentStage.objects.create(
        tenant_id=other_union.id, business_type=other_union.business_type, stage_name="x", required_rate=50
    )

    res = api_client.get(scoped(union, f"consent-stages/{foreign.id}/summary/"))

    assert res.status_code == 404


def test_member_reads_summary_but_cannot_set_consent(union, stage, make_user, make_member):
    user = make_user()
    m = make_member(union, auth_user=user)
    client = APIClient()
    client.force_authenticate(user=user)

    assert client.get(scoped(union, f"consent-stages/{stage.id}/summary/")).status_code == 200
    res = client.post(
        scoped(union, f"consent-stages/{stage.id}/set-consent/"),
        {"member_id": str(m.id), "status": "AGREED"},
        format="json",
    )
    assert res.status_code == 403


def test_registration_summary_endpoint(api_client, union, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    make_member(union, name="가", units=[{"pnu": "PNU-1"}])

    res = api_client.get(scoped(union, "registration/summary/"))

    assert res.status_code == 200
    body = res.json()
    # admin member from the fixture counts as registered too
    assert body["registered_count"] == 2
    assert body["status_counts"]["ALL_REGISTERED"] == 1


def test_registration_parcels_endpoint(api_client, union, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    make_member(union, name="가", units=[{"pnu": "PNU-1"}])
    make_member(union, name="나", phone_number="010-2222-3333", status="PENDING_APPROVAL", units=[{"pnu": "PNU-1"}])

    res = api_client.get(scoped(union, "registration/parcels/"), {"pnu": "PNU-1"})

    assert res.status_code == 200
    assert res.json() == [
        {
            "pnu": "PNU-1",
            "total_owners": 2,
            "registered_owners": 1,
            "registration_rate": 50,
            "status": "PARTIAL_REGISTERED",
        }
    ]

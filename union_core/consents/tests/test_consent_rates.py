from decimal import Decimal

import pytest
from django.utils import timezone

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.consents.selectors import (
    ALL_REGISTERED,
    FULL_AGREED,
    NO_OWNER,
    NONE_AGREED,
    NOT_SUBMITTED,
    PARTIAL_AGREED,
    PARTIAL_REGISTERED,
    consent_map,
    members_without_agreement,
    parcel_consent_status,
    parcel_registration_status,
    union_consent_statuses,
    union_consent_summary,
    union_registration_summary,
)
from union_core.gis.models import SyncJob, SyncJobStatus
from union_core.members.models import Member, MemberStatus, PropertyUnit

pytestmark = pytest.mark.django_db


@pytest.fixture
def stage(union):
    return ConsentStage.objects.create(
        tenant_id=union.id, business_type=union.business_type, stage_name="조합설립 동의", required_rate=Decimal("75")
    )


def _owners(union, make_member, pnu, n, *, agreed=0, stage=None, **kw):
    out = []
    for i in range(n):
        m = make_member(union, name=f"{pnu}-{i}", phone_number=f"010-0000-{i:04d}", units=[{"pnu": pnu}], **kw)
        if i < agreed:
            UserConsent.objects.create(member=m, stage=stage, status=ConsentStatus.AGREED)
        out.append(m)
    return out


def test_three_of_four_owners_reach_threshold(union, stage, make_member, make_parcel):
    make_parcel(union, "PNU-001")
    _owners(union, make_member, "PNU-001", 4, agreed=3, stage=stage)

    s = parcel_consent_status(tenant_id=union.id, pnu="PNU-001", stage_id=stage.id)

    assert (s.total_owners, s.agreed_owners) == (4, 3)
    assert s.consent_rate == 75
    assert s.is_completed is True
    assert s.display_status == PARTIAL_AGREED


def test_rate_rounds_half_up(union, stage, make_member):
    _owners(union, make_member, "PNU-8", 8, agreed=1, stage=stage)
    _owners(union, make_member, "PNU-3", 3, agreed=2, stage=stage)

    assert parcel_consent_status(tenant_id=union.id, pnu="PNU-8", stage_id=stage.id).consent_rate == 13
    assert parcel_consent_status(tenant_id=union.id, pnu="PNU-3", stage_id=stage.id).consent_rate == 67


def test_full_agreement_and_zero_owner_parcels(union, stage, make_member, make_parcel):
    make_parcel(union, "PNU-A")
    make_parcel(union, "PNU-B")
    make_parcel(union, "PNU-C")
    _owners(union, make_member, "PNU-A", 2, agreed=2, stage=stage)
    _owners(union, make_member, "PNU-B", 2, agreed=0, stage=stage)

    by_pnu = {s.pnu: s for s in union_consent_statuses(tenant_id=union.id, stage_id=stage.id)}

    assert by_pnu["PNU-A"].display_status == FULL_AGREED
    assert by_pnu["PNU-B"].display_status == NONE_AGREED
    assert by_pnu["PNU-C"].display_status == NOT_SUBMITTED
    assert by_pnu["PNU-C"].is_completed is False


def _bulk_owners(union, stage, pnu, n, agreed):
    members = Member.objects.bulk_create(
        [Member(tenant_id=union.id, name=f"{pnu}-{i}", status=MemberStatus.APPROVED) for i in range(n)]
    )
    PropertyUnit.objects.bulk_create(
        [PropertyUnit(tenant_id=union.id, member=m, pnu=pnu, is_primary=True) for m in members]
    )
    UserConsent.objects.bulk_create(
        [UserConsent(member=m, stage=stage, status=ConsentStatus.AGREED) for m in members[:agreed]]
    )


def test_display_status_follows_rounded_rate(union, stage):
    _bulk_owners(union, stage, "PNU-HI", 200, 199)
    _bulk_owners(union, stage, "PNU-LO", 201, 1)

    hi = parcel_consent_status(tenant_id=union.id, pnu="PNU-HI", stage_id=stage.id)
    lo = parcel_consent_status(tenant_id=union.id, pnu="PNU-LO", stage_id=stage.id)

    assert (hi.consent_rate, hi.display_status, hi.is_completed) == (100, FULL_AGREED, True)
    assert (lo.consent_rate, lo.display_status, lo.is_completed) == (0, NONE_AGREED, False)


def test_zero_owner_parcel_completes_only_at_zero_threshold(union, make_parcel):
    make_parcel(union, "PNU-EMPTY")
    free = ConsentStage.objects.create(
        tenant_id=union.id, business_type=union.business_type, stage_name="사전 안내", required_rate=Decimal("0")
    )

    s = parcel_consent_status(tenant_id=union.id, pnu="PNU-EMPTY", stage_id=free.id)

    assert (s.consent_rate, s.display_status, s.is_completed) == (0, NOT_SUBMITTED, True)


def test_disagreed_and_unapproved_owners(union, stage, make_member):
    owners = _owners(union, make_member, "PNU-1", 2, agreed=1, stage=stage)
    UserConsent.objects.create(member=owners[1], stage=stage, status=ConsentStatus.DISAGREED)
    make_member(union, name="대기", status=MemberStatus.PENDING_APPROVAL, units=[{"pnu": "PNU-1"}])

    s = parcel_consent_status(tenant_id=union.id, pnu="PNU-1", stage_id=stage.id)

    assert (s.total_owners, s.agreed_owners, s.consent_rate) == (2, 1, 50)


def test_union_summary_over_member_count_and_area(union, stage, make_member, make_parcel):
    make_parcel(union, "PNU-1", area=Decimal("100"))
    make_parcel(union, "PNU-2", area=Decimal("100"))
    _owners(union, make_member, "PNU-1", 4, agreed=3, stage=stage)

    s = union_consent_summary(tenant_id=union.id, stage_id=stage.id)

    assert s.agreed_count == 3
    assert s.member_count == 10
    assert s.rate == Decimal("30.0")
    assert s.area_rate == Decimal("37.5")
    assert s.parcel_count == 2
    assert s.completed_parcel_count == 1
    assert s.is_completed is False


def test_union_summary_with_zero_member_count(union, stage, make_member):
    union.member_count = 0
    union.save(update_fields=["member_count"])
    _owners(union, make_member, "PNU-1", 1, agreed=1, stage=stage)

    s = union_consent_summary(tenant_id=union.id, stage_id=stage.id)

    assert s.rate == Decimal("0")
    assert s.is_completed is False


def test_members_without_agreement_skips_blocked_and_agreed(union, stage, make_member):
    agreed, pending = _owners(union, make_member, "PNU-1", 2, agreed=1, stage=stage)
    make_member(union, name="차단", is_blocked=True)

    names = [m.name for m in members_without_agreement(tenant_id=union.id, stage_id=stage.id)]

    assert names == [pending.name]


def test_registration_status_and_summary(union, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    make_parcel(union, "PNU-2")
    make_parcel(union, "PNU-3")
    make_member(union, name="가", units=[{"pnu": "PNU-1"}])
    make_member(union, name="나", units=[{"pnu": "PNU-2"}])
    make_member(union, name="다", status=MemberStatus.PENDING_APPROVAL, units=[{"pnu": "PNU-2"}])
    make_member(union, name="라", status=MemberStatus.REJECTED, units=[{"pnu": "PNU-1"}])

    assert parcel_registration_status(tenant_id=union.id, pnu="PNU-1").status == ALL_REGISTERED
    p2 = parcel_registration_status(tenant_id=union.id, pnu="PNU-2")
    assert (p2.status, p2.registration_rate) == (PARTIAL_REGISTERED, 50)

    s = union_registration_summary(tenant_id=union.id)
    assert s.registered_count == 2
    assert s.rate == Decimal("20.0")
    assert s.status_counts[NO_OWNER] == 1


def test_consent_map_hidden_until_latest_job_published(union, stage, make_member, make_parcel):
    lot = make_parcel(union, "PNU-1")
    lot.boundary = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]}
    lot.save(update_fields=["boundary"])
    _owners(union, make_member, "PNU-1", 2, agreed=1, stage=stage)

    SyncJob.objects.create(tenant_id=union.id, status=SyncJobStatus.COMPLETED, completed_at=timezone.now())
    assert consent_map(tenant_id=union.id, stage_id=stage.id).is_published is False

    job = SyncJob.objects.create(
        tenant_id=union.id, status=SyncJobStatus.COMPLETED, completed_at=timezone.now(), is_published=True
    )
    m = consent_map(tenant_id=union.id, stage_id=stage.id)

    assert m.is_published is True
    assert m.sync_job_id == job.id
    [feature] = m.geojson["features"]
    assert feature["properties"]["consent_rate"] == 50
    assert feature["properties"]["display_status"] == PARTIAL_AGREED

from datetime import date
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.consents.services import ConsentService
from union_core.notifications.models import MessageLog
from union_core.notifications.services import send_consent_reminders
from union_core.unions.models import BusinessType

pytestmark = pytest.mark.django_db


def test_create_stage_defaults_to_union_business_type(union):
    stage = ConsentStage.objects.get(
        id=ConsentService.create_stage(tenant_id=union.id, stage_name="본동의", required_rate=Decimal("75")).id
    )

    assert stage.business_type == BusinessType.REDEVELOPMENT
    assert stage.required_rate == Decimal("75")


def test_create_stage_rejects_out_of_range_rate(union):
    with pytest.raises(ValidationError):
        ConsentService.create_stage(tenant_id=union.id, stage_name="x", required_rate=Decimal("120"))


def test_set_consent_upserts_and_dates_agreement(union, make_member):
    stage = ConsentService.create_stage(tenant_id=union.id, stage_name="본동의", required_rate=Decimal("75"))
    m = make_member(union)

    first = ConsentService.set_consent(tenant_id=union.id, member_id=m.id, stage_id=stage.id, status=ConsentStatus.PENDING)
    assert first.consent_date is None

    again = ConsentService.set_consent(tenant_id=union.id, member_id=m.id, stage_id=stage.id, status=ConsentStatus.AGREED)

    assert again.id == first.id
    assert again.consent_date == timezone.localdate()
    assert UserConsent.objects.filter(member=m, stage=stage).count() == 1


def test_stage_for_other_business_type_is_refused(union, make_member):
    stage = ConsentStage.objects.create(
        tenant_id=union.id, business_type=BusinessType.RECONSTRUCTION, stage_name="재건축 동의", required_rate=75
    )
    m = make_member(union)

    with pytest.raises(ValidationError):
        ConsentService.set_consent(tenant_id=union.id, member_id=m.id, stage_id=stage.id, status=ConsentStatus.AGREED)


def test_bulk_update_reports_missing_members(union, other_union, make_member):
    stage = ConsentService.create_stage(tenant_id=union.id, stage_name="본동의", required_rate=Decimal("75"))
    a = make_member(union, name="가")
    b = make_member(union, name="나")
    stranger = make_member(other_union, name="남")

    r = ConsentService.bulk_update(
        tenant_id=union.id,
        stage_id=stage.id,
        member_ids=[a.id, b.id, a.id, stranger.id],
        status=ConsentStatus.AGREED,
        consent_date=date(2024, 3, 1),
    )

    assert r.updated_count == 2
    assert r.missing_member_ids == [stranger.id]
    assert set(UserConsent.objects.filter(stage=stage).values_list("consent_date", flat=True)) == {date(2024, 3, 1)}


def test_reminders_go_to_members_who_have_not_agreed(union, make_member, alimtalk):
    stage = ConsentService.create_stage(tenant_id=union.id, stage_name="본동의", required_rate=Decimal("75"))
    done = make_member(union, name="완료", phone_number="010-1000-0001")
    make_member(union, name="미제출", phone_number="010-1000-0002")
    UserConsent.objects.create(member=done, stage=stage, status=ConsentStatus.AGREED)

    r = send_consent_reminders(tenant_id=union.id, stage_id=stage.id)

    assert r.status == "SENT"
    assert r.success_count == 1
    assert [s["receiver_1"] for s in alimtalk.sent] == ["01010000002"]
    assert "본동의" in alimtalk.sent[0]["message_1"]
    assert MessageLog.objects.get(template_code="CONSENT_REMINDER").recipient_count == 1


def test_reminder_failure_is_reported_not_raised(union, make_member, alimtalk):
    alimtalk.fail = True
    stage = ConsentService.create_stage(tenant_id=union.id, stage_name="본동의", required_rate=Decimal("75"))
    make_member(union, name="미제출")

    r = send_consent_reminders(tenant_id=union.id, stage_id=stage.id)

    assert r.status == "FAILED"
    assert r.fail_count == 1

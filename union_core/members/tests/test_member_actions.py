import pytest
from rest_framework.exceptions import ValidationError

from union_core.audit.models import AuditEvent
from union_core.members.models import Member, MemberRole, MemberStatus, PropertyUnit
from union_core.members.selectors import find_property_conflicts, member_rows
from union_core.members.services import MemberService
from union_core.notifications.models import MessageLog, MessageStatus

pytestmark = pytest.mark.django_db


def test_approve_promotes_applicant_and_notifies(union, make_member, alimtalk):
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL, role=MemberRole.APPLICANT)

    r = MemberService.approve(tenant_id=union.id, member_id=m.id)

    m.refresh_from_db()
    assert m.status == MemberStatus.APPROVED
    assert m.role == MemberRole.USER
    assert m.approved_at is not None
    assert r.notification_sent is True
    assert len(alimtalk.sent) == 1
    assert alimtalk.sent[0]["receiver_1"] == "01011112222"
    assert alimtalk.sent[0]["tpl_code"] == "TPL_APPROVED"
    assert AuditEvent.objects.filter(event_code="member.approved", entity_id=str(m.id)).exists()


def test_approve_survives_notification_failure(union, make_member, alimtalk):
    alimtalk.fail = True
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL)

    r = MemberService.approve(tenant_id=union.id, member_id=m.id)

    assert r.notification_sent is False
    m.refresh_from_db()
    assert m.status == MemberStatus.APPROVED
    assert MessageLog.objects.get(template_code="MEMBER_APPROVED").status == MessageStatus.FAILED


def test_approve_requires_pending_member(union, make_member):
    m = make_member(union, status=MemberStatus.APPROVED)

    with pytest.raises(ValidationError):
        MemberService.approve(tenant_id=union.id, member_id=m.id)


def test_reject_then_cancel_rejection(union, make_member, alimtalk):
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL)

    r = MemberService.reject(tenant_id=union.id, member_id=m.id, reason="서류 미비")

    assert r.member.status == MemberStatus.REJECTED
    assert r.member.rejected_reason == "서류 미비"
    assert "서류 미비" in alimtalk.sent[0]["message_1"]

    back = MemberService.cancel_rejection(tenant_id=union.id, member_id=m.id)
    assert back.status == MemberStatus.PENDING_APPROVAL
    assert back.rejected_reason == ""


def test_reject_needs_a_reason(union, make_member):
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL)

    with pytest.raises(ValidationError):
        MemberService.reject(tenant_id=union.id, member_id=m.id, reason="  ")


def test_block_is_idempotent_and_unblock_clears(union, make_member):
    m = make_member(union)

    MemberService.block(tenant_id=union.id, member_id=m.id, reason="분쟁")
    MemberService.block(tenant_id=union.id, member_id=m.id, reason="분쟁")
    assert AuditEvent.objects.filter(event_code="member.blocked").count() == 1

    out = MemberService.unblock(tenant_id=union.id, member_id=m.id)
    assert out.is_blocked is False
    assert out.blocked_reason == ""
    assert out.blocked_at is None


def test_force_withdraw_keeps_row_blocked(union, make_member):
    m = make_member(union)

    MemberService.force_withdraw(tenant_id=union.id, member_id=m.id, reason="탈퇴")

    m.refresh_from_db()
    assert m.is_blocked is True
    assert AuditEvent.objects.filter(event_code="member.force_withdrawn").exists()


def test_update_profile_rejects_unknown_fields(union, make_member):
    m = make_member(union)

    with pytest.raises(ValidationError):
        MemberService.update_profile(tenant_id=union.id, member_id=m.id, data={"status": "APPROVED"})

    out = MemberService.update_profile(tenant_id=union.id, member_id=m.id, data={"notes": " 메모 "})
    assert out.notes == "메모"


def test_set_primary_unit_leaves_one_primary(union, make_member):
    m = make_member(union, units=[{"pnu": "A"}, {"pnu": "B"}])
    b = PropertyUnit.objects.get(member=m, pnu="B")

    MemberService.set_primary_unit(tenant_id=union.id, member_id=m.id, unit_id=b.id)

    assert list(PropertyUnit.objects.filter(member=m, is_primary=True).values_list("pnu", flat=True)) == ["B"]


def test_property_conflicts_find_other_owners_of_same_parcel(union, make_member):
    make_member(union, name="기존", units=[{"pnu": "PNU-1"}])
    make_member(union, name="거절됨", status=MemberStatus.REJECTED, units=[{"pnu": "PNU-1"}])
    applicant = make_member(union, name="신청자", status=MemberStatus.PENDING_APPROVAL, units=[{"pnu": "PNU-1"}])

    conflicts = find_property_conflicts(tenant_id=union.id, member_id=applicant.id)

    assert [c.existing_name for c in conflicts] == ["기존"]


def test_member_rows_include_co_owners(union, make_member, make_building):
    b = make_building(units=[("1", "101")])
    bu = b.units.get()
    owner = make_member(union, name="가", units=[{"pnu": "P", "building_unit_id": bu.id}])
    make_member(union, name="나", units=[{"pnu": "P", "building_unit_id": bu.id}])

    rows = member_rows(tenant_id=union.id, member_id=owner.id)

    assert [(r.kind, r.name) for r in rows] == [("primary", "가"), ("co_owner", "나")]


def test_members_of_other_union_are_not_found(union, other_union, make_member):
    stranger = make_member(other_union)

    with pytest.raises(Member.DoesNotExist):
        MemberService.block(tenant_id=union.id, member_id=stranger.id, reason="x")

from datetime import timedelta

import pytest
from django.core.management import call_command
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from union_core.members.models import InviteStatus, Member, MemberInvite, MemberStatus, UserAuthLink
from union_core.members.services import InviteService

pytestmark = pytest.mark.django_db


def _invite(union, **kw):
    data = dict(name="박초대", phone_number="010-3333-4444", property_address="행복동 7", pnu="PNU-7")
    data.update(kw)
    return InviteService.create_invite(tenant_id=union.id, **data)


def test_create_invite_pre_registers_member_and_sends_link(union, alimtalk):
    r = _invite(union)

    assert r.notification_sent is True
    member = r.invite.member
    assert member.status == MemberStatus.PRE_REGISTERED
    assert member.property_units.get().pnu == "PNU-7"
    assert f"https://portal.test/happy-1/invite/{r.invite.token}" in alimtalk.sent[0]["message_1"]


def test_bulk_invite_reports_invalid_entries_by_index(union, alimtalk):
    r = InviteService.bulk_invite(
        tenant_id=union.id,
        entries=[
            {"name": "가", "phone_number": "010-1000-0001"},
            {"name": "", "phone_number": "010-1000-0002"},
            {"name": "다", "phone_number": "010-1000-0003"},
        ],
    )

    assert r.created_count == 2
    assert r.sent_count == 2
    assert r.failed_count == 0
    assert [i["index"] for i in r.invalid] == [1]
    assert MemberInvite.objects.filter(tenant_id=union.id).count() == 2


def test_bulk_invite_counts_failed_sends(union, alimtalk):
    alimtalk.fail = True

    r = InviteService.bulk_invite(tenant_id=union.id, entries=[{"name": "가", "phone_number": "010-1000-0001"}])

    assert r.created_count == 1
    assert r.failed_count == 1


def test_accept_invite_links_and_approves(union, make_user):
    invite = _invite(union).invite
    user = make_user()

    m = InviteService.accept_invite(token=invite.token, auth_user=user, provider="kakao")

    assert m.status == MemberStatus.APPROVED
    assert UserAuthLink.objects.get(auth_user=user).member_id == m.id
    invite.refresh_from_db()
    assert invite.status == InviteStatus.USED
    assert invite.used_at is not None


def test_accept_used_invite_is_rejected(union, make_user):
    invite = _invite(union).invite
    InviteService.accept_invite(token=invite.token, auth_user=make_user())

    with pytest.raises(ValidationError):
        InviteService.accept_invite(token=invite.token, auth_user=make_user())


def test_accept_overdue_invite_marks_it_expired(union, make_user):
    invite = _invite(union).invite
    MemberInvite.objects.filter(id=invite.id).update(expires_at=timezone.now() - timedelta(minutes=1))

    with pytest.raises(ValidationError):
        InviteService.accept_invite(token=invite.token, auth_user=make_user())

    invite.refresh_from_db()
    assert invite.status == InviteStatus.EXPIRED
    assert not UserAuthLink.objects.exists()


def test_revoke_removes_pre_registered_member_and_invite(union):
    invite = _invite(union).invite
    member_id = invite.member_id

    InviteService.revoke_invite(tenant_id=union.id, invite_id=invite.id)

    assert not MemberInvite.objects.filter(id=invite.id).exists()
    assert not Member.objects.filter(id=member_id).exists()


def test_expire_invites_command(union):
    fresh = _invite(union).invite
    stale = _invite(union, phone_number="010-5555-6666").invite
    MemberInvite.objects.filter(id=stale.id).update(expires_at=timezone.now() - timedelta(days=1))

    call_command("expire_invites")

    fresh.refresh_from_db()
    stale.refresh_from_db()
    assert fresh.status == InviteStatus.PENDING
    assert stale.status == InviteStatus.EXPIRED

import pytest
from rest_framework.test import APIClient

from union_core.members.models import MemberRole, MemberStatus
from union_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def test_member_list_is_scoped_to_union(api_client, union, other_union, make_member):
    make_member(union, name="우리조합원")
    make_member(other_union, name="남의조합원")

    res = api_client.get(scoped(union, "members/"))

    assert res.status_code == 200
    names = {m["name"] for m in res.json()["results"]}
    assert "우리조합원" in names
    assert "남의조합원" not in names


def test_member_list_filters_by_status(api_client, union, make_member):
    make_member(union, name="대기", status=MemberStatus.PENDING_APPROVAL)
    make_member(union, name="승인")

    res = api_client.get(scoped(union, "members/"), {"status": "PENDING_APPROVAL"})

    assert [m["name"] for m in res.json()["results"]] == ["대기"]


def test_approve_endpoint_returns_member_and_notification_flag(api_client, union, make_member, alimtalk):
    alimtalk.fail = True
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL, role=MemberRole.APPLICANT)

    res = api_client.post(scoped(union, f"members/{m.id}/approve/"))

    assert res.status_code == 200
    body = res.json()
    assert body["member"]["status"] == "APPROVED"
    assert body["notification_sent"] is False


def test_reject_endpoint_requires_reason(api_client, union, make_member):
    m = make_member(union, status=MemberStatus.PENDING_APPROVAL)

    res = api_client.post(scoped(union, f"members/{m.id}/reject/"), {}, format="json")

    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_member_of_other_union_is_404(api_client, union, other_union, make_member):
    stranger = make_member(other_union)

    res = api_client.get(scoped(union, f"members/{stranger.id}/"))

    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_found"


def test_plain_member_cannot_list_members(union, make_user, make_member):
    user = make_user()
    make_member(union, auth_user=user)
    client = APIClient()
    client.force_authenticate(user=user)

    res = client.get(scoped(union, "members/"))

    assert res.status_code == 403


def test_blocked_admin_loses_access(api_client, union, admin_user):
    from union_core.members.models import UserAuthLink

    link = UserAuthLink.objects.get(auth_user=admin_user)
    link.member.is_blocked = True
    link.member.save(update_fields=["is_blocked"])

    res = api_client.get(scoped(union, "members/"))

    assert res.status_code == 403


def test_invite_create_and_accept_flow(api_client, union, make_user):
    res = api_client.post(
        scoped(union, "invites/"),
        {"name": "박초대", "phone_number": "010-3333-4444", "property_address": "행복동 7"},
        format="json",
    )
    assert res.status_code == 201
    assert res.json()["notification_sent"] is True

    from union_core.members.models import MemberInvite

    token = MemberInvite.objects.get(id=res.json()["id"]).token
    invitee = APIClient()
    invitee.force_authenticate(user=make_user())

    res = invitee.post(scoped(union, "invites/accept/"), {"token": token}, format="json")

    assert res.status_code == 200
    assert res.json()["status"] == "APPROVED"


def test_accept_with_unknown_token_is_404(union, make_user):
    client = APIClient()
    client.force_authenticate(user=make_user())

    res = client.post(scoped(union, "invites/accept/"), {"token": "nope"}, format="json")

    assert res.status_code == 404

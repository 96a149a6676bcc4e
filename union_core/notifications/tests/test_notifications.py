import pytest
import requests

from union_core.notifications.client import AlimtalkClient, NotificationError, Recipient
from union_core.notifications.models import MessageLog, MessageStatus
from union_core.notifications.services import NotificationService
from union_core.notifications.templates import MEMBER_APPROVED, get_template
from union_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def _client(**kw):
    data = dict(api_url="https://alimtalk.test/send/", api_key="k", user_id="u", sender_key="s", sender="021234")
    data.update(kw)
    return AlimtalkClient(**data)


def test_send_one_posts_aligo_form_fields(monkeypatch):
    # the autouse stub replaces _post; restore the real one for this test
    monkeypatch.undo()
    captured = {}

    def fake_post(url, data=None, timeout=None):
        captured.update(url=url, data=data, timeout=timeout)
        return FakeResponse(body={"code": 0, "message": "ok"})

    monkeypatch.setattr(requests, "post", fake_post)

    _client(template_codes={MEMBER_APPROVED: "TPL_A"}).send_one(
        template_code=MEMBER_APPROVED,
        recipient=Recipient(phone_number="010-1234-5678", name="홍길동", variables={"union_name": "행복조합", "member_name": "홍길동"}),
    )

    assert captured["url"] == "https://alimtalk.test/send/"
    form = captured["data"]
    assert form["receiver_1"] == "01012345678"
    assert form["tpl_code"] == "TPL_A"
    assert form["senderkey"] == "s"
    assert form["message_1"] == "[행복조합] 홍길동님의 조합원 가입이 승인되었습니다."


def test_api_error_code_raises(monkeypatch):
    monkeypatch.undo()
    monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(body={"code": -101, "message": "bad key"}))

    with pytest.raises(NotificationError):
        _client().send_one(template_code=MEMBER_APPROVED, recipient=Recipient(phone_number="01011112222"))


def test_transport_error_raises(monkeypatch):
    monkeypatch.undo()

    def boom(*a, **k):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "post", boom)

    with pytest.raises(NotificationError):
        _client().send_one(template_code=MEMBER_APPROVED, recipient=Recipient(phone_number="01011112222"))


def test_unconfigured_client_refuses_to_send():
    with pytest.raises(NotificationError):
        _client(api_key="").send_template(template_code=MEMBER_APPROVED, recipients=[Recipient(phone_number="01011112222")])


def test_template_renders_missing_variables_blank():
    assert get_template(MEMBER_APPROVED).render({}) == "[] 님의 조합원 가입이 승인되었습니다."


def test_disabled_notifications_are_logged_as_skipped(union, settings, alimtalk):
    settings.NOTIFICATIONS_ENABLED = False

    r = NotificationService.send_template(
        tenant_id=union.id, template_code=MEMBER_APPROVED, recipients=[Recipient(phone_number="01011112222")]
    )

    assert r.status == MessageStatus.SKIPPED
    assert alimtalk.sent == []
    assert MessageLog.objects.get().status == MessageStatus.SKIPPED


def test_partial_delivery_is_logged(union, alimtalk):
    r = NotificationService.send_template(
        tenant_id=union.id,
        template_code=MEMBER_APPROVED,
        recipients=[Recipient(phone_number="01011112222"), Recipient(phone_number="")],
    )

    assert r.status == MessageStatus.PARTIAL
    assert (r.success_count, r.fail_count) == (1, 1)
    assert r.sent is False


def test_message_log_endpoint(api_client, union, other_union):
    MessageLog.objects.create(tenant_id=union.id, template_code=MEMBER_APPROVED, status=MessageStatus.SENT, recipient_count=1)
    MessageLog.objects.create(tenant_id=other_union.id, template_code=MEMBER_APPROVED, status=MessageStatus.SENT, recipient_count=1)

    res = api_client.get(scoped(union, "notifications/messages/"), {"status": "SENT"})

    assert res.status_code == 200
    assert res.json()["count"] == 1

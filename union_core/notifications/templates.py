# union_core/notifications/templates.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

MEMBER_APPROVED = "MEMBER_APPROVED"
MEMBER_REJECTED = "MEMBER_REJECTED"
MEMBER_INVITE = "MEMBER_INVITE"
CONSENT_REMINDER = "CONSENT_REMINDER"


@dataclass(frozen=True)
class MessageTemplate:
    code: str
    subject: str
    body: str

    def render(self, variables: Dict[str, str]) -> str:
        return self.body.format_map(_Blank(variables))


class _Blank(dict):
    # missing variables render as empty strings
    def __missing__(self, key):
        return ""


TEMPLATES: Dict[str, MessageTemplate] = {
    MEMBER_APPROVED: MessageTemplate(
        code=MEMBER_APPROVED,
        subject="조합원 승인 안내",
        body="[{union_name}] {member_name}님의 조합원 가입이 승인되었습니다.",
    ),
    MEMBER_REJECTED: MessageTemplate(
        code=MEMBER_REJECTED,
        subject="조합원 가입 반려 안내",
        body="[{union_name}] {member_name}님의 조합원 가입 신청이 반려되었습니다.\n사유: {reason}",
    ),
    MEMBER_INVITE: MessageTemplate(
        code=MEMBER_INVITE,
        subject="조합원 초대 안내",
        body=(
            "[{union_name}] {member_name}님, 조합원 등록을 위한 초대장이 도착했습니다.\n"
            "물건지: {property_address}\n초대 링크: {invite_url}\n만료: {expires_at}"
        ),
    ),
    CONSENT_REMINDER: MessageTemplate(
        code=CONSENT_REMINDER,
        subject="동의서 제출 안내",
        body="[{union_name}] {member_name}님, '{stage_name}' 동의서 제출을 부탁드립니다.",
    ),
}


def get_template(code: str) -> MessageTemplate:
    try:
        return TEMPLATES[code]
    except KeyError:
        raise ValueError(f"Unknown template code: {code}")

# union_core/notifications/client.py
"""
Aligo KakaoTalk alimtalk client.

One HTTP request per recipient; the API answers 200 with a JSON body whose
``code`` is "0" (or "1" for partial acceptance) on success.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests
from django.conf import settings

from union_core.members.normalization import normalize_phone
from union_core.notifications.templates import get_template

logger = logging.getLogger(__name__)

SUCCESS_CODES = {"0", "1"}


class NotificationError(Exception):
    """Transport or API failure while sending a templated message."""


@dataclass(frozen=True)
class Recipient:
    phone_number: str
    name: str = ""
    variables: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeliveryReport:
    success_count: int = 0
    fail_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def recipient_count(self) -> int:
        return self.success_count + self.fail_count


class AlimtalkClient:
    def __init__(
        self,
        *,
        api_url: str,
        api_key: str,
        user_id: str,
        sender_key: str,
        sender: str = "",
        template_codes: Optional[Dict[str, str]] = None,
        timeout: float = 10,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.user_id = user_id
        self.sender_key = sender_key
        self.sender = sender
        self.template_codes = template_codes or {}
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "AlimtalkClient":
        return cls(
            api_url=settings.ALIGO_API_URL,
            api_key=settings.ALIGO_API_KEY,
            user_id=settings.ALIGO_USER_ID,
            sender_key=settings.ALIGO_SENDER_KEY,
            sender=settings.ALIGO_SENDER,
            template_codes=getattr(settings, "ALIMTALK_TEMPLATE_CODES", {}),
            timeout=settings.EXTERNAL_HTTP_TIMEOUT,
        )

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.user_id and self.sender_key)

    def _post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = requests.post(self.api_url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NotificationError(f"alimtalk transport error: {exc}") from exc

        if res.status_code != 200:
            raise NotificationError(f"alimtalk HTTP {res.status_code}: {res.text[:200]}")

        try:
            return res.json()
        except ValueError as exc:
            raise NotificationError("alimtalk returned a non-JSON body") from exc

    def send_one(self, *, template_code: str, recipient: Recipient) -> Dict[str, Any]:
        if not self.is_configured():
            raise NotificationError("alimtalk client is not configured")

        template = get_template(template_code)
        phone = normalize_phone(recipient.phone_number)
        if not phone:
            raise NotificationError("recipient has no phone number")

        data = {
            "apikey": self.api_key,
            "userid": self.user_id,
            "senderkey": self.sender_key,
            "tpl_code": self.template_codes.get(template_code) or template_code,
            "sender": self.sender,
            "receiver_1": phone,
            "recvname_1": recipient.name,
            "subject_1": template.subject,
            "message_1": template.render(recipient.variables),
        }
        body = self._post(data)

        code = str(body.get("code", ""))
        if code not in SUCCESS_CODES:
            raise NotificationError(f"alimtalk rejected ({code}): {body.get('message', '')}")
        return body

    def send_template(self, *, template_code: str, recipients: Iterable[Recipient]) -> DeliveryReport:
        """
        Sends to every recipient; per-recipient failures are counted, not raised.
        Raises NotificationError only when nothing could be attempted.
        """
        if not self.is_configured():
            raise NotificationError("alimtalk client is not configured")

        report = DeliveryReport()
        for r in recipients:
            try:
                self.send_one(template_code=template_code, recipient=r)
                report.success_count += 1
            except NotificationError as exc:
                logger.warning("alimtalk send failed template=%s to=%s: %s", template_code, r.name, exc)
                report.fail_count += 1
                report.errors.append(str(exc))
        return report

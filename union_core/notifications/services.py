# union_core/notifications/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from django.conf import settings

from union_core.notifications.client import AlimtalkClient, NotificationError, Recipient
from union_core.notifications.models import MessageLog, MessageStatus
from union_core.notifications.templates import CONSENT_REMINDER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    status: str
    recipient_count: int
    success_count: int
    fail_count: int
    error: str = ""

    @property
    def sent(self) -> bool:
        return self.success_count > 0 and self.fail_count == 0


class NotificationService:
    """
    Sends templated alimtalk messages and records a MessageLog per send.
    Never called inside a DB transaction that the send could roll back.
    """

    @staticmethod
    def _client() -> AlimtalkClient:
        return AlimtalkClient.from_settings()

    @staticmethod
    def _log(*, tenant_id: UUID, template_code: str, status: str, recipient_count: int,
             success_count: int = 0, fail_count: int = 0, error: str = "",
             actor_user_id: int | None = None, meta: Optional[dict] = None) -> SendResult:
        MessageLog.objects.create(
            tenant_id=tenant_id,
            template_code=template_code,
            status=status,
            recipient_count=recipient_count,
            success_count=success_count,
            fail_count=fail_count,
            error_message=error[:2000],
            sent_by_user_id=actor_user_id,
            meta=meta or {},
        )
        return SendResult(
            status=status,
            recipient_count=recipient_count,
            success_count=success_count,
            fail_count=fail_count,
            error=error,
        )

    @staticmethod
    def send_template(
        *,
        tenant_id: UUID,
        template_code: str,
        recipients: Iterable[Recipient],
        actor_user_id: int | None = None,
        meta: Optional[dict] = None,
    ) -> SendResult:
        """
        Raises NotificationError when nobody received the message.
        Disabled notifications (or no recipients) yield a SKIPPED result.
        """
        recipients = list(recipients)
        common = dict(tenant_id=tenant_id, template_code=template_code, actor_user_id=actor_user_id, meta=meta)

        if not recipients or not getattr(settings, "NOTIFICATIONS_ENABLED", False):
            return NotificationService._log(status=MessageStatus.SKIPPED, recipient_count=len(recipients), **common)

        try:
            report = NotificationService._client().send_template(template_code=template_code, recipients=recipients)
        except NotificationError as exc:
            NotificationService._log(
                status=MessageStatus.FAILED,
                recipient_count=len(recipients),
                fail_count=len(recipients),
                error=str(exc),
                **common,
            )
            raise

        if report.fail_count == 0:
            status = MessageStatus.SENT
        elif report.success_count > 0:
            status = MessageStatus.PARTIAL
        else:
            status = MessageStatus.FAILED

        result = NotificationService._log(
            status=status,
            recipient_count=report.recipient_count,
            success_count=report.success_count,
            fail_count=report.fail_count,
            error="; ".join(report.errors),
            **common,
        )

        if status == MessageStatus.FAILED:
            raise NotificationError(result.error or "no recipient received the message")
        return result

    @staticmethod
    def notify_quietly(
        *,
        tenant_id: UUID,
        template_code: str,
        recipients: Iterable[Recipient],
        actor_user_id: int | None = None,
        meta: Optional[dict] = None,
    ) -> bool:
        """Returns True only when every recipient was reached."""
        try:
            result = NotificationService.send_template(
                tenant_id=tenant_id,
                template_code=template_code,
                recipients=recipients,
                actor_user_id=actor_user_id,
                meta=meta,
            )
        except NotificationError:
            logger.exception("notification %s failed for tenant %s", template_code, tenant_id)
            return False
        return result.sent


def send_consent_reminders(*, tenant_id: UUID, stage_id: UUID, actor_user_id: int | None = None) -> SendResult:
    """
    Reminds approved owners of union parcels who have not AGREED to the stage.
    """
    from union_core.consents.selectors import members_without_agreement
    from union_core.consents.models import ConsentStage
    from union_core.unions.selectors import get_union

    union = get_union(union_id=tenant_id)
    stage = ConsentStage.objects.get(id=stage_id, tenant_id=tenant_id)

    recipients = [
        Recipient(
            phone_number=m.phone_number,
            name=m.name,
            variables={"union_name": union.name, "member_name": m.name, "stage_name": stage.stage_name},
        )
        for m in members_without_agreement(tenant_id=tenant_id, stage_id=stage_id)
        if m.phone_number
    ]

    try:
        return NotificationService.send_template(
            tenant_id=tenant_id,
            template_code=CONSENT_REMINDER,
            recipients=recipients,
            actor_user_id=actor_user_id,
            meta={"stage_id": str(stage_id)},
        )
    except NotificationError as exc:
        logger.warning("consent reminders failed for stage %s: %s", stage_id, exc)
        return SendResult(
            status=MessageStatus.FAILED,
            recipient_count=len(recipients),
            success_count=0,
            fail_count=len(recipients),
            error=str(exc),
        )

# union_core/members/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from union_core.audit.services import AuditService
from union_core.common.api.exceptions import DuplicateMemberConflict
from union_core.members.dedup import DedupResult, DedupService
from union_core.members.models import (
    InviteStatus,
    Member,
    MemberInvite,
    MemberRole,
    MemberStatus,
    OwnershipType,
    PropertyUnit,
    UserAuthLink,
)
from union_core.members.normalization import normalize_jibun_address, normalize_name, normalize_phone
from union_core.notifications.client import NotificationError, Recipient
from union_core.notifications.services import NotificationService
from union_core.notifications.templates import MEMBER_APPROVED, MEMBER_INVITE, MEMBER_REJECTED
from union_core.unions.selectors import get_union

logger = logging.getLogger(__name__)

PROPERTY_FIELDS = (
    "pnu",
    "dong",
    "ho",
    "building_unit_id",
    "ownership_type",
    "land_ownership_ratio",
    "property_address_jibun",
    "property_address_road",
)

PROFILE_FIELDS = (
    "name",
    "phone_number",
    "birth_date",
    "resident_address",
    "resident_address_jibun",
    "resident_address_detail",
    "resident_pnu",
    "notes",
)


def _recipient(member: Member, **variables: str) -> Recipient:
    union = get_union(union_id=member.tenant_id)
    return Recipient(
        phone_number=member.phone_number,
        name=member.name,
        variables={"union_name": union.name, "member_name": member.name, **variables},
    )


def _create_units(member: Member, properties: List[Dict[str, Any]]) -> List[PropertyUnit]:
    units = []
    for idx, p in enumerate(properties):
        ownership = p.get("ownership_type") or OwnershipType.OWNER
        if ownership not in OwnershipType.values:
            raise ValidationError({"properties": f"Invalid ownership_type: {ownership}"})
        units.append(
            PropertyUnit.objects.create(
                tenant_id=member.tenant_id,
                member=member,
                pnu=(p.get("pnu") or None),
                dong=p.get("dong") or "",
                ho=p.get("ho") or "",
                building_unit_id=p.get("building_unit_id"),
                ownership_type=ownership,
                land_ownership_ratio=p.get("land_ownership_ratio"),
                property_address_jibun=p.get("property_address_jibun") or "",
                property_address_road=p.get("property_address_road") or "",
                is_primary=(idx == 0),
            )
        )
    return units


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegistrationResult:
    member: Member
    linked_existing: bool = False
    dedup: Optional[DedupResult] = None


class RegistrationService:

    @staticmethod
    def find_exact_match(
        *,
        tenant_id: UUID,
        name: str,
        phone_number: str,
        property_address: str = "",
    ) -> Optional[Member]:
        """
        Same name + phone (+ property address when given) among members that
        already have a linked auth identity.
        """
        n = normalize_name(name)
        phone = normalize_phone(phone_number)
        addr = normalize_jibun_address(property_address)
        if not n or not phone:
            return None

        candidates = (
            Member.objects.filter(tenant_id=tenant_id, auth_links__isnull=False)
            .distinct()
            .prefetch_related("property_units")
            .order_by("created_at")
        )
        for m in candidates:
            if normalize_name(m.name) != n or normalize_phone(m.phone_number) != phone:
                continue
            if not addr:
                return m
            for u in m.property_units.all():
                if addr in (
                    normalize_jibun_address(u.property_address_jibun),
                    normalize_jibun_address(u.property_address_road),
                ):
                    return m
        return None

    @staticmethod
    def register(
        *,
        tenant_id: UUID,
        auth_user,
        name: str,
        phone_number: str,
        properties: List[Dict[str, Any]],
        provider: str = "",
        birth_date=None,
        resident_address: str = "",
        resident_address_jibun: str = "",
        resident_address_detail: str = "",
        resident_pnu: str = "",
        link_to_member_id: Optional[UUID] = None,
    ) -> RegistrationResult:
        """
        1) validation
        2) exact-match check: a linked member with the same identity pauses
           registration (DuplicateMemberConflict) unless the caller confirmed
           the link with link_to_member_id
        3) member + units + auth link insert (one transaction)
        4) duplicate merge pass (own transaction, non-fatal)
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})
        if not normalize_phone(phone_number):
            raise ValidationError({"phone_number": "This field is required."})
        if not properties:
            raise ValidationError({"properties": "At least one property is required."})
        if UserAuthLink.objects.filter(tenant_id=tenant_id, auth_user=auth_user).exists():
            raise ValidationError({"auth_user": "Already registered in this union."})

        if link_to_member_id:
            member = RegistrationService.link_auth_user(
                tenant_id=tenant_id,
                member_id=link_to_member_id,
                auth_user=auth_user,
                provider=provider,
                name=name,
                phone_number=phone_number,
            )
            return RegistrationResult(member=member, linked_existing=True)

        first = properties[0]
        match = RegistrationService.find_exact_match(
            tenant_id=tenant_id,
            name=name,
            phone_number=phone_number,
            property_address=first.get("property_address_jibun") or first.get("property_address_road") or "",
        )
        if match is not None:
            raise DuplicateMemberConflict(
                candidate={"member_id": str(match.id), "name": match.name, "status": str(match.status)}
            )

        member = RegistrationService._insert(
            tenant_id=tenant_id,
            auth_user=auth_user,
            provider=provider,
            properties=properties,
            name=name,
            phone_number=phone_number,
            birth_date=birth_date,
            resident_address=resident_address or "",
            resident_address_jibun=resident_address_jibun or "",
            resident_address_detail=resident_address_detail or "",
            resident_pnu=(resident_pnu or "").strip(),
        )

        dedup = DedupService.check_and_merge(
            tenant_id=tenant_id,
            keeper_id=member.id,
            name=member.name,
            resident_pnu=member.resident_pnu,
            resident_address_jibun=member.resident_address_jibun,
            actor_user_id=auth_user.id,
        )
        return RegistrationResult(member=member, dedup=dedup)

    @staticmethod
    @transaction.atomic
    def _insert(*, tenant_id: UUID, auth_user, provider: str, properties: List[Dict[str, Any]], **fields) -> Member:
        member = Member.objects.create(
            tenant_id=tenant_id,
            status=MemberStatus.PENDING_APPROVAL,
            role=MemberRole.APPLICANT,
            **fields,
        )
        _create_units(member, properties)
        UserAuthLink.objects.create(tenant_id=tenant_id, member=member, auth_user=auth_user, provider=provider or "")

        AuditService.log(
            event_code="member.registered",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=auth_user.id,
            metadata={"units": len(properties)},
        )
        return member

    @staticmethod
    @transaction.atomic
    def link_auth_user(
        *,
        tenant_id: UUID,
        member_id: UUID,
        auth_user,
        provider: str,
        name: str,
        phone_number: str,
    ) -> Member:
        member = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)

        if normalize_name(member.name) != normalize_name(name) or normalize_phone(member.phone_number) != normalize_phone(phone_number):
            raise ValidationError({"link_to_member_id": "Name and phone number do not match the selected member."})

        UserAuthLink.objects.create(tenant_id=tenant_id, member=member, auth_user=auth_user, provider=provider or "")

        AuditService.log(
            event_code="member.auth_linked",
            entity_type="Member",
            entity_id=member.id,
            tenant_id=tenant_id,
            actor_user_id=auth_user.id,
            metadata={"provider": provider or ""},
        )
        return member


# ---------------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MemberActionResult:
    member: Member
    notification_sent: bool = False


class MemberService:
    """
    Admin actions on members. State changes commit first; the member is
    notified afterwards and a failed notification only shows up as
    notification_sent=False.
    """

    @staticmethod
    @transaction.atomic
    def _approve(*, tenant_id: UUID, member_id: UUID, actor_user_id: int | None) -> Member:
        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)

        if m.status != MemberStatus.PENDING_APPROVAL:
            raise ValidationError({"status": f"Only {MemberStatus.PENDING_APPROVAL} members can be approved (current: {m.status})."})

        m.status = MemberStatus.APPROVED
        if m.role == MemberRole.APPLICANT:
            m.role = MemberRole.USER
        m.approved_at = timezone.now()
        m.rejected_reason = ""
        m.rejected_at = None
        m.save(update_fields=["status", "role", "approved_at", "rejected_reason", "rejected_at", "updated_at"])

        AuditService.log(
            event_code="member.approved",
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
        )
        return m

    @staticmethod
    def approve(*, tenant_id: UUID, member_id: UUID, actor_user_id: int | None = None) -> MemberActionResult:
        m = MemberService._approve(tenant_id=tenant_id, member_id=member_id, actor_user_id=actor_user_id)
        sent = NotificationService.notify_quietly(
            tenant_id=tenant_id,
            template_code=MEMBER_APPROVED,
            recipients=[_recipient(m)],
            actor_user_id=actor_user_id,
            meta={"member_id": str(m.id)},
        )
        return MemberActionResult(member=m, notification_sent=sent)

    @staticmethod
    @transaction.atomic
    def _reject(*, tenant_id: UUID, member_id: UUID, reason: str, actor_user_id: int | None) -> Member:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "This field is required."})

        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)
        if m.status != MemberStatus.PENDING_APPROVAL:
            raise ValidationError({"status": f"Only {MemberStatus.PENDING_APPROVAL} members can be rejected (current: {m.status})."})

        m.status = MemberStatus.REJECTED
        m.rejected_reason = reason
        m.rejected_at = timezone.now()
        m.save(update_fields=["status", "rejected_reason", "rejected_at", "updated_at"])

        AuditService.log(
            event_code="member.rejected",
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"reason": reason},
        )
        return m

    @staticmethod
    def reject(*, tenant_id: UUID, member_id: UUID, reason: str, actor_user_id: int | None = None) -> MemberActionResult:
        m = MemberService._reject(tenant_id=tenant_id, member_id=member_id, reason=reason, actor_user_id=actor_user_id)
        sent = NotificationService.notify_quietly(
            tenant_id=tenant_id,
            template_code=MEMBER_REJECTED,
            recipients=[_recipient(m, reason=m.rejected_reason)],
            actor_user_id=actor_user_id,
            meta={"member_id": str(m.id)},
        )
        return MemberActionResult(member=m, notification_sent=sent)

    @staticmethod
    @transaction.atomic
    def cancel_rejection(*, tenant_id: UUID, member_id: UUID, actor_user_id: int | None = None) -> Member:
        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)
        if m.status != MemberStatus.REJECTED:
            raise ValidationError({"status": "Member is not rejected."})

        m.status = MemberStatus.PENDING_APPROVAL
        m.rejected_reason = ""
        m.rejected_at = None
        m.save(update_fields=["status", "rejected_reason", "rejected_at", "updated_at"])

        AuditService.log(
            event_code="member.rejection_cancelled",
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
        )
        return m

    @staticmethod
    @transaction.atomic
    def block(
        *,
        tenant_id: UUID,
        member_id: UUID,
        reason: str,
        actor_user_id: int | None = None,
        event_code: str = "member.blocked",
    ) -> Member:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError({"reason": "This field is required."})

        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)

        # idempotent no-op
        if m.is_blocked and m.blocked_reason == reason:
            return m

        m.is_blocked = True
        m.blocked_reason = reason
        m.blocked_at = timezone.now()
        m.save(update_fields=["is_blocked", "blocked_reason", "blocked_at", "updated_at"])

        AuditService.log(
            event_code=event_code,
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"reason": reason},
        )
        return m

    @staticmethod
    @transaction.atomic
    def unblock(*, tenant_id: UUID, member_id: UUID, actor_user_id: int | None = None) -> Member:
        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)

        if not m.is_blocked:
            return m

        m.is_blocked = False
        m.blocked_reason = ""
        m.blocked_at = None
        m.save(update_fields=["is_blocked", "blocked_reason", "blocked_at", "updated_at"])

        AuditService.log(
            event_code="member.unblocked",
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
        )
        return m

    @staticmethod
    def force_withdraw(*, tenant_id: UUID, member_id: UUID, reason: str, actor_user_id: int | None = None) -> Member:
        """Withdrawal keeps the row (consents, audit) and blocks it."""
        return MemberService.block(
            tenant_id=tenant_id,
            member_id=member_id,
            reason=reason,
            actor_user_id=actor_user_id,
            event_code="member.force_withdrawn",
        )

    @staticmethod
    @transaction.atomic
    def update_profile(
        *,
        tenant_id: UUID,
        member_id: UUID,
        data: Dict[str, Any],
        actor_user_id: int | None = None,
    ) -> Member:
        unknown = set(data) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError({f: "Field cannot be updated." for f in sorted(unknown)})
        if "name" in data and not (data["name"] or "").strip():
            raise ValidationError({"name": "This field is required."})

        m = Member.objects.select_for_update().get(id=member_id, tenant_id=tenant_id)

        changed = []
        for k, v in data.items():
            if isinstance(v, str):
                v = v.strip()
            if getattr(m, k) != v:
                setattr(m, k, v)
                changed.append(k)

        if not changed:
            return m

        m.save(update_fields=[*changed, "updated_at"])
        AuditService.log(
            event_code="member.profile_updated",
            entity_type="Member",
            entity_id=m.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"fields": changed},
        )
        return m

    @staticmethod
    @transaction.atomic
    def set_primary_unit(*, tenant_id: UUID, member_id: UUID, unit_id: UUID) -> PropertyUnit:
        units = list(PropertyUnit.objects.select_for_update().filter(member_id=member_id, tenant_id=tenant_id))
        target = next((u for u in units if u.id == unit_id), None)
        if target is None:
            raise PropertyUnit.DoesNotExist("Property unit not found for this member.")

        PropertyUnit.objects.filter(member_id=member_id).exclude(id=unit_id).update(is_primary=False)
        if not target.is_primary:
            target.is_primary = True
            target.save(update_fields=["is_primary", "updated_at"])
        return target


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InviteResult:
    invite: MemberInvite
    notification_sent: bool = False


@dataclass
class BulkInviteResult:
    created_count: int = 0
    sent_count: int = 0
    failed_count: int = 0
    invalid: List[Dict[str, Any]] = field(default_factory=list)


def _invite_url(slug: str, token: str) -> str:
    base = (getattr(settings, "INVITE_BASE_URL", "") or "").rstrip("/")
    return f"{base}/{slug}/invite/{token}"


def _invite_recipient(invite: MemberInvite, *, union) -> Recipient:
    return Recipient(
        phone_number=invite.phone_number,
        name=invite.name,
        variables={
            "union_name": union.name,
            "member_name": invite.name,
            "property_address": invite.property_address,
            "invite_url": _invite_url(union.slug, invite.token),
            "expires_at": timezone.localtime(invite.expires_at).strftime("%Y-%m-%d %H:%M"),
        },
    )


class InviteService:

    @staticmethod
    @transaction.atomic
    def _create(
        *,
        tenant_id: UUID,
        name: str,
        phone_number: str,
        property_address: str = "",
        pnu: Optional[str] = None,
        dong: str = "",
        ho: str = "",
        expires_in_days: Optional[int] = None,
        actor_user_id: int | None = None,
    ) -> MemberInvite:
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": "This field is required."})
        if not normalize_phone(phone_number):
            raise ValidationError({"phone_number": "This field is required."})

        days = expires_in_days or getattr(settings, "INVITE_EXPIRY_DAYS", 7)

        member = Member.objects.create(
            tenant_id=tenant_id,
            name=name,
            phone_number=phone_number.strip(),
            status=MemberStatus.PRE_REGISTERED,
            role=MemberRole.USER,
        )
        _create_units(
            member,
            [{"pnu": pnu, "dong": dong, "ho": ho, "property_address_jibun": property_address}],
        )
        invite = MemberInvite.objects.create(
            tenant_id=tenant_id,
            name=name,
            phone_number=phone_number.strip(),
            property_address=property_address or "",
            expires_at=timezone.now() + timedelta(days=days),
            member=member,
            created_by_user_id=actor_user_id,
        )

        AuditService.log(
            event_code="member.invited",
            entity_type="MemberInvite",
            entity_id=invite.id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"member_id": str(member.id)},
        )
        return invite

    @staticmethod
    def create_invite(*, tenant_id: UUID, actor_user_id: int | None = None, **fields) -> InviteResult:
        invite = InviteService._create(tenant_id=tenant_id, actor_user_id=actor_user_id, **fields)
        union = get_union(union_id=tenant_id)
        sent = NotificationService.notify_quietly(
            tenant_id=tenant_id,
            template_code=MEMBER_INVITE,
            recipients=[_invite_recipient(invite, union=union)],
            actor_user_id=actor_user_id,
            meta={"invite_id": str(invite.id)},
        )
        return InviteResult(invite=invite, notification_sent=sent)

    @staticmethod
    def bulk_invite(
        *,
        tenant_id: UUID,
        entries: List[Dict[str, Any]],
        actor_user_id: int | None = None,
    ) -> BulkInviteResult:
        """
        Each entry is created on its own; invalid entries are reported by
        index and do not stop the rest. One templated send covers all
        created invites.
        """
        result = BulkInviteResult()
        invites: List[MemberInvite] = []

        for idx, entry in enumerate(entries):
            try:
                invites.append(InviteService._create(tenant_id=tenant_id, actor_user_id=actor_user_id, **entry))
            except ValidationError as exc:
                result.invalid.append({"index": idx, "errors": exc.detail})

        result.created_count = len(invites)
        if not invites:
            return result

        union = get_union(union_id=tenant_id)
        try:
            sent = NotificationService.send_template(
                tenant_id=tenant_id,
                template_code=MEMBER_INVITE,
                recipients=[_invite_recipient(i, union=union) for i in invites],
                actor_user_id=actor_user_id,
                meta={"bulk": True},
            )
            result.sent_count = sent.success_count
            result.failed_count = sent.fail_count
        except NotificationError:
            logger.exception("bulk invite notification failed for tenant %s", tenant_id)
            result.failed_count = len(invites)

        return result

    @staticmethod
    def accept_invite(*, token: str, auth_user, provider: str = "") -> Member:
        """
        Links the auth user to the pre-registered member and approves it.
        An overdue invite is marked EXPIRED and rejected.
        """
        expired = False
        with transaction.atomic():
            invite = MemberInvite.objects.select_for_update().get(token=token)

            if invite.status != InviteStatus.PENDING:
                raise ValidationError({"token": f"Invite is {invite.status.lower()}."})

            if invite.expires_at <= timezone.now():
                invite.status = InviteStatus.EXPIRED
                invite.save(update_fields=["status", "updated_at"])
                expired = True
            else:
                if UserAuthLink.objects.filter(tenant_id=invite.tenant_id, auth_user=auth_user).exists():
                    raise ValidationError({"auth_user": "Already registered in this union."})
                if invite.member_id is None:
                    raise ValidationError({"token": "Invite has no pre-registered member."})

                member = Member.objects.select_for_update().get(id=invite.member_id)
                UserAuthLink.objects.create(
                    tenant_id=invite.tenant_id, member=member, auth_user=auth_user, provider=provider or ""
                )
                member.status = MemberStatus.APPROVED
                member.approved_at = timezone.now()
                member.save(update_fields=["status", "approved_at", "updated_at"])

                invite.status = InviteStatus.USED
                invite.used_at = timezone.now()
                invite.save(update_fields=["status", "used_at", "updated_at"])

                AuditService.log(
                    event_code="member.invite_accepted",
                    entity_type="MemberInvite",
                    entity_id=invite.id,
                    tenant_id=invite.tenant_id,
                    actor_user_id=auth_user.id,
                    metadata={"member_id": str(member.id)},
                )

        if expired:
            raise ValidationError({"token": "Invite has expired."})
        return member

    @staticmethod
    @transaction.atomic
    def revoke_invite(*, tenant_id: UUID, invite_id: UUID, actor_user_id: int | None = None) -> None:
        """Deleting the pre-registered member cascades to the invite."""
        invite = MemberInvite.objects.select_for_update().get(id=invite_id, tenant_id=tenant_id)

        member_id = invite.member_id
        if member_id and Member.objects.filter(id=member_id, status=MemberStatus.PRE_REGISTERED).exists():
            Member.objects.filter(id=member_id).delete()
        else:
            invite.delete()

        AuditService.log(
            event_code="member.invite_revoked",
            entity_type="MemberInvite",
            entity_id=invite_id,
            tenant_id=tenant_id,
            actor_user_id=actor_user_id,
            metadata={"member_id": str(member_id) if member_id else None},
        )

    @staticmethod
    def expire_overdue(*, tenant_id: Optional[UUID] = None, now=None) -> int:
        qs = MemberInvite.objects.filter(status=InviteStatus.PENDING, expires_at__lte=now or timezone.now())
        if tenant_id:
            qs = qs.filter(tenant_id=tenant_id)
        return qs.update(status=InviteStatus.EXPIRED, updated_at=timezone.now())

# union_core/members/models.py
from __future__ import annotations

import secrets

from django.conf import settings
from django.db import models

from union_core.common.models import TenantScopedModel


class MemberStatus(models.TextChoices):
    PROFILE_INCOMPLETE = "PROFILE_INCOMPLETE", "Profile incomplete"
    PENDING_APPROVAL = "PENDING_APPROVAL", "Pending approval"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"
    PRE_REGISTERED = "PRE_REGISTERED", "Pre-registered"


class MemberRole(models.TextChoices):
    APPLICANT = "APPLICANT", "Applicant"
    USER = "USER", "User"
    ADMIN = "ADMIN", "Admin"
    SYSTEM_ADMIN = "SYSTEM_ADMIN", "System admin"


class OwnershipType(models.TextChoices):
    OWNER = "OWNER", "Owner"
    CO_OWNER = "CO_OWNER", "Co-owner"
    FAMILY = "FAMILY", "Family"


class Member(TenantScopedModel):
    """
    A union member (or applicant). One row per person per union;
    auth identities attach through UserAuthLink.
    """
    name = models.CharField(max_length=64)
    phone_number = models.CharField(max_length=32, blank=True, default="")
    birth_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=24,
        choices=MemberStatus.choices,
        default=MemberStatus.PENDING_APPROVAL,
        db_index=True,
    )
    role = models.CharField(
        max_length=16,
        choices=MemberRole.choices,
        default=MemberRole.APPLICANT,
        db_index=True,
    )

    is_blocked = models.BooleanField(default=False, db_index=True)
    blocked_reason = models.TextField(blank=True, default="")
    blocked_at = models.DateTimeField(null=True, blank=True)

    rejected_reason = models.TextField(blank=True, default="")
    rejected_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)

    resident_address = models.CharField(max_length=255, blank=True, default="")
    resident_address_jibun = models.CharField(max_length=255, blank=True, default="")
    resident_address_detail = models.CharField(max_length=255, blank=True, default="")
    resident_pnu = models.CharField(max_length=19, blank=True, default="", db_index=True)

    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "members_member"
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
            models.Index(fields=["tenant_id", "name"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.status})"


class PropertyUnit(TenantScopedModel):
    """
    Ownership link: member -> parcel (PNU) / dong-ho.
    Exactly one is_primary row per member is maintained by the services.
    """
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="property_units")

    pnu = models.CharField(max_length=19, null=True, blank=True, db_index=True)
    dong = models.CharField(max_length=32, blank=True, default="")
    ho = models.CharField(max_length=32, blank=True, default="")

    building_unit = models.ForeignKey(
        "gis.BuildingUnit",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="property_units",
    )

    is_primary = models.BooleanField(default=False)
    ownership_type = models.CharField(
        max_length=16,
        choices=OwnershipType.choices,
        default=OwnershipType.OWNER,
    )
    land_ownership_ratio = models.DecimalField(max_digits=7, decimal_places=4, null=True, blank=True)

    property_address_jibun = models.CharField(max_length=255, blank=True, default="")
    property_address_road = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        db_table = "members_property_unit"
        indexes = [
            models.Index(fields=["tenant_id", "pnu"]),
            models.Index(fields=["member", "is_primary"]),
        ]

    def __str__(self) -> str:
        return f"{self.member_id} @ {self.pnu or '-'} {self.dong}/{self.ho}"


class UserAuthLink(TenantScopedModel):
    """
    Auth identity (Django user via a social provider) -> member.
    An auth user holds at most one member record per union.
    """
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name="auth_links")
    auth_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="union_member_links",
    )
    provider = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        db_table = "members_user_auth_link"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "auth_user"], name="uq_auth_link_per_union"),
        ]


class InviteStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    USED = "USED", "Used"
    EXPIRED = "EXPIRED", "Expired"


def _new_invite_token() -> str:
    return secrets.token_urlsafe(24)


class MemberInvite(TenantScopedModel):
    name = models.CharField(max_length=64)
    phone_number = models.CharField(max_length=32)
    property_address = models.CharField(max_length=255, blank=True, default="")

    token = models.CharField(max_length=64, unique=True, default=_new_invite_token)
    status = models.CharField(
        max_length=16,
        choices=InviteStatus.choices,
        default=InviteStatus.PENDING,
        db_index=True,
    )
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)

    # PRE_REGISTERED member created with the invite; deleting it removes the invite
    member = models.ForeignKey(
        Member,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="invites",
    )
    created_by_user_id = models.IntegerField(null=True, blank=True)

    class Meta:
        db_table = "members_member_invite"
        indexes = [
            models.Index(fields=["tenant_id", "status"]),
        ]

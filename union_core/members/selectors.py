# union_core/members/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from django.db.models import Prefetch, QuerySet

from union_core.members.models import (
    Member,
    MemberInvite,
    MemberStatus,
    PropertyUnit,
    UserAuthLink,
)
from union_core.members.normalization import format_address_display

CONFLICTING_STATUSES = (MemberStatus.APPROVED, MemberStatus.PRE_REGISTERED)

ROW_PRIMARY = "primary"
ROW_CO_OWNER = "co_owner"


def member_qs(*, tenant_id: UUID) -> QuerySet[Member]:
    units = PropertyUnit.objects.order_by("-is_primary", "created_at")
    return Member.objects.filter(tenant_id=tenant_id).prefetch_related(Prefetch("property_units", queryset=units))


def get_member(*, tenant_id: UUID, member_id: UUID) -> Member:
    return member_qs(tenant_id=tenant_id).get(id=member_id)


def get_member_for_auth_user_or_none(*, tenant_id: UUID, auth_user_id: int) -> Optional[Member]:
    link = (
        UserAuthLink.objects.select_related("member")
        .filter(tenant_id=tenant_id, auth_user_id=auth_user_id)
        .first()
    )
    return link.member if link else None


def auth_links_for_user(*, auth_user_id: int) -> QuerySet[UserAuthLink]:
    return UserAuthLink.objects.select_related("member").filter(auth_user_id=auth_user_id).order_by("created_at")


def primary_unit(member: Member) -> Optional[PropertyUnit]:
    units = list(member.property_units.all())
    for u in units:
        if u.is_primary:
            return u
    return units[0] if units else None


def parcel_members(*, tenant_id: UUID, pnu: str) -> QuerySet[PropertyUnit]:
    """Approved members holding a unit on the parcel."""
    return (
        PropertyUnit.objects.select_related("member")
        .filter(tenant_id=tenant_id, pnu=pnu, member__status=MemberStatus.APPROVED)
        .order_by("member__name")
    )


def list_invites(*, tenant_id: UUID, status: str | None = None) -> QuerySet[MemberInvite]:
    qs = MemberInvite.objects.filter(tenant_id=tenant_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


@dataclass(frozen=True)
class MemberView:
    """
    One row of a member detail listing.
    kind == "primary": the member itself (its primary unit)
    kind == "co_owner": another member sharing one of its building units
    """
    kind: str
    member_id: UUID
    name: str
    phone_number: str
    status: str
    is_blocked: bool
    property_unit_id: Optional[UUID]
    pnu: Optional[str]
    dong: str
    ho: str
    building_unit_id: Optional[UUID]
    ownership_type: Optional[str]
    land_ownership_ratio: Optional[Decimal]
    property_address: str


def _row(kind: str, member: Member, unit: Optional[PropertyUnit]) -> MemberView:
    return MemberView(
        kind=kind,
        member_id=member.id,
        name=member.name,
        phone_number=member.phone_number,
        status=member.status,
        is_blocked=member.is_blocked,
        property_unit_id=unit.id if unit else None,
        pnu=unit.pnu if unit else None,
        dong=unit.dong if unit else "",
        ho=unit.ho if unit else "",
        building_unit_id=unit.building_unit_id if unit else None,
        ownership_type=unit.ownership_type if unit else None,
        land_ownership_ratio=unit.land_ownership_ratio if unit else None,
        property_address=format_address_display(
            unit.property_address_jibun if unit else "",
            unit.property_address_road if unit else "",
        ),
    )


def member_rows(*, tenant_id: UUID, member_id: UUID) -> List[MemberView]:
    """
    Primary row for the member followed by co-owner rows: other members of
    the union holding a unit on the same building unit.
    """
    member = get_member(tenant_id=tenant_id, member_id=member_id)
    rows = [_row(ROW_PRIMARY, member, primary_unit(member))]

    building_unit_ids = [u.building_unit_id for u in member.property_units.all() if u.building_unit_id]
    if not building_unit_ids:
        return rows

    co_units = (
        PropertyUnit.objects.select_related("member")
        .filter(tenant_id=tenant_id, building_unit_id__in=building_unit_ids)
        .exclude(member_id=member.id)
        .order_by("member__name", "created_at")
    )
    rows.extend(_row(ROW_CO_OWNER, u.member, u) for u in co_units)
    return rows


@dataclass(frozen=True)
class PropertyConflict:
    property_unit_id: UUID
    building_unit_id: Optional[UUID]
    pnu: Optional[str]
    dong: str
    ho: str
    address: str
    existing_member_id: UUID
    existing_name: str
    existing_phone: str
    existing_status: str
    existing_ownership_type: str
    existing_share_ratio: Optional[Decimal]


def find_property_conflicts(*, tenant_id: UUID, member_id: UUID) -> List[PropertyConflict]:
    """
    Other APPROVED / PRE_REGISTERED members already holding one of this
    member's properties: same building unit, or same PNU when the unit has
    no building unit.
    """
    member = get_member(tenant_id=tenant_id, member_id=member_id)
    conflicts: List[PropertyConflict] = []

    for unit in member.property_units.all():
        qs = PropertyUnit.objects.select_related("member").filter(
            tenant_id=tenant_id,
            member__status__in=CONFLICTING_STATUSES,
        ).exclude(member_id=member.id)

        if unit.building_unit_id:
            qs = qs.filter(building_unit_id=unit.building_unit_id)
        elif unit.pnu:
            qs = qs.filter(pnu=unit.pnu)
        else:
            continue

        for existing in qs.order_by("created_at"):
            conflicts.append(
                PropertyConflict(
                    property_unit_id=unit.id,
                    building_unit_id=unit.building_unit_id,
                    pnu=unit.pnu,
                    dong=unit.dong,
                    ho=unit.ho,
                    address=unit.property_address_jibun or unit.property_address_road,
                    existing_member_id=existing.member_id,
                    existing_name=existing.member.name,
                    existing_phone=existing.member.phone_number,
                    existing_status=existing.member.status,
                    existing_ownership_type=existing.ownership_type,
                    existing_share_ratio=existing.land_ownership_ratio,
                )
            )
    return conflicts

# union_core/consents/selectors.py
"""
Consent and registration rate aggregation.

Parcel rates count distinct approved owners on the parcel. The union-wide
headline rate divides by the admin-set Union.member_count instead, and is 0
when that denominator is 0.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.gis.models import LandLot
from union_core.gis.selectors import latest_published_job, union_parcels_geojson, union_pnus
from union_core.members.models import Member, MemberStatus, PropertyUnit
from union_core.unions.selectors import get_union

FULL_AGREED = "FULL_AGREED"
PARTIAL_AGREED = "PARTIAL_AGREED"
NONE_AGREED = "NONE_AGREED"
NOT_SUBMITTED = "NOT_SUBMITTED"

ALL_REGISTERED = "ALL_REGISTERED"
PARTIAL_REGISTERED = "PARTIAL_REGISTERED"
NONE_REGISTERED = "NONE_REGISTERED"
NO_OWNER = "NO_OWNER"

HUNDRED = Decimal("100")


def _percent(numerator, denominator, places: str = "1") -> Decimal:
    if not denominator:
        return Decimal("0").quantize(Decimal(places))
    value = Decimal(numerator) * HUNDRED / Decimal(denominator)
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def list_stages(*, tenant_id: UUID, business_type: str | None = None) -> QuerySet[ConsentStage]:
    qs = ConsentStage.objects.filter(tenant_id=tenant_id)
    if business_type:
        qs = qs.filter(business_type=business_type)
    return qs.order_by("sort_order", "created_at")


def get_stage(*, tenant_id: UUID, stage_id: UUID) -> ConsentStage:
    return ConsentStage.objects.get(tenant_id=tenant_id, id=stage_id)


def list_consents(*, tenant_id: UUID, stage_id: UUID, status: str | None = None) -> QuerySet[UserConsent]:
    qs = UserConsent.objects.select_related("member").filter(stage_id=stage_id, stage__tenant_id=tenant_id)
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("member__name", "id")


def members_without_agreement(*, tenant_id: UUID, stage_id: UUID) -> QuerySet[Member]:
    """Approved, unblocked members with no AGREED consent for the stage."""
    agreed = UserConsent.objects.filter(stage_id=stage_id, status=ConsentStatus.AGREED).values("member_id")
    return (
        Member.objects.filter(tenant_id=tenant_id, status=MemberStatus.APPROVED, is_blocked=False)
        .exclude(id__in=agreed)
        .order_by("name")
    )


# ---------------------------------------------------------------------------
# consent rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParcelConsentStatus:
    pnu: str
    stage_id: UUID
    total_owners: int
    agreed_owners: int
    consent_rate: int
    display_status: str
    is_completed: bool


def _display_status(total: int, rate: int) -> str:
    if total == 0:
        return NOT_SUBMITTED
    if rate >= 100:
        return FULL_AGREED
    if rate == 0:
        return NONE_AGREED
    return PARTIAL_AGREED


def _parcel_status(pnu: str, stage: ConsentStage, total: int, agreed: int) -> ParcelConsentStatus:
    rate = int(_percent(agreed, total, "1"))
    return ParcelConsentStatus(
        pnu=pnu,
        stage_id=stage.id,
        total_owners=total,
        agreed_owners=agreed,
        consent_rate=rate,
        display_status=_display_status(total, rate),
        is_completed=Decimal(rate) >= stage.required_rate,
    )


def _owner_counts(*, tenant_id: UUID, stage_id: UUID, pnus: Optional[Iterable[str]] = None) -> Dict[str, Dict[str, int]]:
    """
    {pnu: {"total": n, "agreed": m}} in one grouped query over approved
    owners' units.
    """
    qs = PropertyUnit.objects.filter(
        tenant_id=tenant_id,
        pnu__isnull=False,
        member__status=MemberStatus.APPROVED,
    )
    if pnus is not None:
        qs = qs.filter(pnu__in=list(pnus))

    rows = (
        qs.values("pnu")
        .annotate(
            total=Count("member", distinct=True),
            agreed=Count(
                "member",
                distinct=True,
                filter=Q(member__consents__stage_id=stage_id, member__consents__status=ConsentStatus.AGREED),
            ),
        )
        .order_by()
    )
    return {r["pnu"]: {"total": r["total"], "agreed": r["agreed"]} for r in rows}


def parcel_consent_status(*, tenant_id: UUID, pnu: str, stage_id: UUID) -> ParcelConsentStatus:
    stage = get_stage(tenant_id=tenant_id, stage_id=stage_id)
    counts = _owner_counts(tenant_id=tenant_id, stage_id=stage.id, pnus=[pnu]).get(pnu, {"total": 0, "agreed": 0})
    return _parcel_status(pnu, stage, counts["total"], counts["agreed"])


def union_consent_statuses(*, tenant_id: UUID, stage_id: UUID) -> List[ParcelConsentStatus]:
    """Per-parcel status for every union parcel, zero-owner parcels included."""
    stage = get_stage(tenant_id=tenant_id, stage_id=stage_id)
    pnus = sorted(union_pnus(tenant_id=tenant_id))
    counts = _owner_counts(tenant_id=tenant_id, stage_id=stage.id, pnus=pnus)

    out = []
    for pnu in pnus:
        c = counts.get(pnu, {"total": 0, "agreed": 0})
        out.append(_parcel_status(pnu, stage, c["total"], c["agreed"]))
    return out


@dataclass(frozen=True)
class UnionConsentSummary:
    stage_id: UUID
    stage_name: str
    required_rate: Decimal
    agreed_count: int
    member_count: int
    rate: Decimal
    area_rate: Decimal
    parcel_count: int
    completed_parcel_count: int
    is_completed: bool


def union_consent_summary(*, tenant_id: UUID, stage_id: UUID) -> UnionConsentSummary:
    union = get_union(union_id=tenant_id)
    stage = get_stage(tenant_id=tenant_id, stage_id=stage_id)

    agreed_count = (
        Member.objects.filter(
            tenant_id=tenant_id,
            status=MemberStatus.APPROVED,
            consents__stage_id=stage.id,
            consents__status=ConsentStatus.AGREED,
        )
        .distinct()
        .count()
    )
    rate = _percent(agreed_count, union.member_count, "0.1")

    statuses = union_consent_statuses(tenant_id=tenant_id, stage_id=stage.id)
    areas = dict(LandLot.objects.filter(pnu__in=[s.pnu for s in statuses], area__isnull=False).values_list("pnu", "area"))

    # area-weighted: every parcel with a known area counts toward the denominator
    weighted = Decimal("0")
    total_area = Decimal("0")
    for s in statuses:
        area = areas.get(s.pnu)
        if area is None:
            continue
        total_area += area
        if s.total_owners:
            weighted += area * Decimal(s.agreed_owners) / Decimal(s.total_owners)
    area_rate = _percent(weighted, total_area, "0.1")

    return UnionConsentSummary(
        stage_id=stage.id,
        stage_name=stage.stage_name,
        required_rate=stage.required_rate,
        agreed_count=agreed_count,
        member_count=union.member_count,
        rate=rate,
        area_rate=area_rate,
        parcel_count=len(statuses),
        completed_parcel_count=sum(1 for s in statuses if s.is_completed),
        is_completed=union.member_count > 0 and rate >= stage.required_rate,
    )


# ---------------------------------------------------------------------------
# registration rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParcelRegistrationStatus:
    pnu: str
    total_owners: int
    registered_owners: int
    registration_rate: int
    status: str


def _registration_status(total: int, registered: int) -> str:
    if total == 0:
        return NO_OWNER
    if registered == 0:
        return NONE_REGISTERED
    if registered >= total:
        return ALL_REGISTERED
    return PARTIAL_REGISTERED


def _registration_counts(*, tenant_id: UUID, pnus: Optional[Iterable[str]] = None) -> Dict[str, Dict[str, int]]:
    """Owners are unblocked, non-rejected members; registered owners are APPROVED."""
    qs = PropertyUnit.objects.filter(tenant_id=tenant_id, pnu__isnull=False, member__is_blocked=False).exclude(
        member__status=MemberStatus.REJECTED
    )
    if pnus is not None:
        qs = qs.filter(pnu__in=list(pnus))

    rows = (
        qs.values("pnu")
        .annotate(
            total=Count("member", distinct=True),
            registered=Count("member", distinct=True, filter=Q(member__status=MemberStatus.APPROVED)),
        )
        .order_by()
    )
    return {r["pnu"]: {"total": r["total"], "registered": r["registered"]} for r in rows}


def _registration(pnu: str, total: int, registered: int) -> ParcelRegistrationStatus:
    return ParcelRegistrationStatus(
        pnu=pnu,
        total_owners=total,
        registered_owners=registered,
        registration_rate=int(_percent(registered, total, "1")),
        status=_registration_status(total, registered),
    )


def parcel_registration_status(*, tenant_id: UUID, pnu: str) -> ParcelRegistrationStatus:
    c = _registration_counts(tenant_id=tenant_id, pnus=[pnu]).get(pnu, {"total": 0, "registered": 0})
    return _registration(pnu, c["total"], c["registered"])


def union_registration_statuses(*, tenant_id: UUID) -> List[ParcelRegistrationStatus]:
    pnus = sorted(union_pnus(tenant_id=tenant_id))
    counts = _registration_counts(tenant_id=tenant_id, pnus=pnus)
    out = []
    for pnu in pnus:
        c = counts.get(pnu, {"total": 0, "registered": 0})
        out.append(_registration(pnu, c["total"], c["registered"]))
    return out


@dataclass(frozen=True)
class UnionRegistrationSummary:
    registered_count: int
    member_count: int
    rate: Decimal
    status_counts: Dict[str, int]


def union_registration_summary(*, tenant_id: UUID) -> UnionRegistrationSummary:
    union = get_union(union_id=tenant_id)
    registered = Member.objects.filter(tenant_id=tenant_id, status=MemberStatus.APPROVED, is_blocked=False).count()

    status_counts = {ALL_REGISTERED: 0, PARTIAL_REGISTERED: 0, NONE_REGISTERED: 0, NO_OWNER: 0}
    for s in union_registration_statuses(tenant_id=tenant_id):
        status_counts[s.status] += 1

    return UnionRegistrationSummary(
        registered_count=registered,
        member_count=union.member_count,
        rate=_percent(registered, union.member_count, "0.1"),
        status_counts=status_counts,
    )


# ---------------------------------------------------------------------------
# maps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParcelMap:
    is_published: bool
    sync_job_id: Optional[UUID]
    geojson: Optional[Dict[str, Any]]


def consent_map(*, tenant_id: UUID, stage_id: UUID) -> ParcelMap:
    """Parcel polygons with consent status; empty until the latest completed sync job is published."""
    job = latest_published_job(tenant_id=tenant_id)
    if job is None:
        return ParcelMap(is_published=False, sync_job_id=None, geojson=None)

    props = {
        s.pnu: {
            "consent_rate": s.consent_rate,
            "display_status": s.display_status,
            "total_owners": s.total_owners,
            "agreed_owners": s.agreed_owners,
            "is_completed": s.is_completed,
        }
        for s in union_consent_statuses(tenant_id=tenant_id, stage_id=stage_id)
    }
    return ParcelMap(is_published=True, sync_job_id=job.id, geojson=union_parcels_geojson(tenant_id=tenant_id, properties=props))


def registration_map(*, tenant_id: UUID) -> ParcelMap:
    job = latest_published_job(tenant_id=tenant_id)
    if job is None:
        return ParcelMap(is_published=False, sync_job_id=None, geojson=None)

    props = {
        s.pnu: {
            "registration_rate": s.registration_rate,
            "registration_status": s.status,
            "total_owners": s.total_owners,
            "registered_owners": s.registered_owners,
        }
        for s in union_registration_statuses(tenant_id=tenant_id)
    }
    return ParcelMap(is_published=True, sync_job_id=job.id, geojson=union_parcels_geojson(tenant_id=tenant_id, properties=props))

import pytest
from rest_framework.exceptions import NotFound, ValidationError

from union_core.consents.models import ConsentStage, ConsentStatus, UserConsent
from union_core.gis.models import LandLot, UnionLandLot
from union_core.gis.services import ParcelService
from union_core.members.models import MemberStatus, PropertyUnit

pytestmark = pytest.mark.django_db


def test_add_manual_land_lot_links_parcel_to_union(union):
    lot = ParcelService.add_manual_land_lot(tenant_id=union.id, pnu="1129010100100120003", address="행복동 12-3")

    assert lot.address == "행복동 12-3"
    assert UnionLandLot.objects.filter(tenant_id=union.id, land_lot=lot).exists()


def test_add_manual_land_lot_rejects_short_pnu(union):
    with pytest.raises(ValidationError):
        ParcelService.add_manual_land_lot(tenant_id=union.id, pnu="12345", address="행복동 1")


def test_link_member_upserts_unit_without_touching_primary(union, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    make_parcel(union, "PNU-2")
    m = make_member(union, units=[{"pnu": "PNU-1", "dong": "1", "ho": "101"}])

    unit = ParcelService.link_member_to_parcel(tenant_id=union.id, pnu="PNU-2", member_id=m.id, ho="201")
    again = ParcelService.link_member_to_parcel(tenant_id=union.id, pnu="PNU-2", member_id=m.id, ho="202")

    assert unit.id == again.id
    assert again.ho == "202"
    assert again.is_primary is False
    assert PropertyUnit.objects.filter(member=m, is_primary=True).count() == 1


def test_delete_parcel_drops_consents_and_unreferenced_land_lot(union, make_member, make_parcel):
    make_parcel(union, "PNU-1")
    stage = ConsentStage.objects.create(
        tenant_id=union.id, business_type=union.business_type, stage_name="본동의", required_rate=75
    )
    m = make_member(union, status=MemberStatus.APPROVED, units=[{"pnu": "PNU-1"}])
    UserConsent.objects.create(member=m, stage=stage, status=ConsentStatus.AGREED)

    r = ParcelService.delete_parcel(tenant_id=union.id, pnu="PNU-1")

    assert r.deleted_consents == 1
    assert r.land_lot_deleted is True
    assert not LandLot.objects.filter(pnu="PNU-1").exists()
    assert not UserConsent.objects.filter(member=m).exists()


def test_delete_parcel_keeps_land_lot_used_by_another_union(union, other_union, make_parcel):
    make_parcel(union, "PNU-1")
    make_parcel(other_union, "PNU-1")

    r = ParcelService.delete_parcel(tenant_id=union.id, pnu="PNU-1")

    assert r.land_lot_deleted is False
    assert LandLot.objects.filter(pnu="PNU-1").exists()
    assert not UnionLandLot.objects.filter(tenant_id=union.id, land_lot_id="PNU-1").exists()


def test_delete_parcel_outside_union_is_not_found(union, other_union, make_parcel):
    make_parcel(other_union, "PNU-9")

    with pytest.raises(NotFound):
        ParcelService.delete_parcel(tenant_id=union.id, pnu="PNU-9")


def test_update_parcel_info_updates_land_and_building(union, make_parcel, make_building):
    b = make_building("old")
    make_parcel(union, "PNU-1", building=b)

    lot = ParcelService.update_parcel_info(
        pnu="PNU-1",
        land={"owner_count": 4, "pnu": "ignored"},
        building_id=b.id,
        building={"building_name": "new"},
    )

    assert lot.owner_count == 4
    b.refresh_from_db()
    assert b.building_name == "new"

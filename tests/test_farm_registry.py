"""Tests for the farm registry (farmers and crops)."""

import pytest

from agrimrv.exceptions import ConflictError, NotFoundError, OwnershipError
from agrimrv.models import CropStatus, PracticeType, UpdateFarmerRequest
from agrimrv.store import VERIFICATIONS

from conftest import OTHER_USER_ID, USER_ID


class TestFarmers:
    """Farmer profile CRUD."""

    def test_create_farmer(self, farmer, clock):
        assert farmer.id.startswith("FRM-")
        assert farmer.user_id == USER_ID
        assert farmer.total_carbon_credits == 0.0
        assert farmer.created_at == clock()

    def test_one_profile_per_user(self, make_farmer, farmer):
        with pytest.raises(ConflictError):
            make_farmer()

    def test_create_requires_user(self, make_farmer):
        with pytest.raises(OwnershipError):
            make_farmer(user_id=None)

    def test_profile_lookup(self, registry, farmer, identity):
        assert registry.get_farmer_profile().id == farmer.id
        with identity.acting_as(OTHER_USER_ID):
            assert registry.get_farmer_profile() is None

    def test_list_by_cooperative(self, registry, farmer, make_farmer):
        make_farmer(user_id=OTHER_USER_ID, name="Ravi Kumar", cooperative_id="COOP-HASSAN")

        assert [f.id for f in registry.list_farmers("COOP-MANDYA")] == [farmer.id]
        assert [f.name for f in registry.list_farmers()] == ["Asha Gowda", "Ravi Kumar"]

    def test_partial_update(self, registry, farmer):
        updated = registry.update_farmer(farmer.id, UpdateFarmerRequest(phone="+91-98450"))

        assert updated.phone == "+91-98450"
        assert updated.farm_size == farmer.farm_size
        assert updated.name == farmer.name

    def test_update_requires_ownership(self, registry, farmer, identity):
        with identity.acting_as(OTHER_USER_ID):
            with pytest.raises(OwnershipError):
                registry.update_farmer(farmer.id, UpdateFarmerRequest(name="Mallory"))

    def test_delete_keeps_evidence(self, registry, farmer, verified_evidence, store):
        ids = verified_evidence(farmer.id)

        assert registry.delete_farmer(farmer.id) is True

        with pytest.raises(NotFoundError):
            registry.get_farmer(farmer.id)
        assert store.get(VERIFICATIONS, ids[0]) is not None


class TestCrops:
    """Crop registration and statistics."""

    def test_estimated_sequestration(self, make_crop, farmer):
        crop = make_crop(farmer.id, area=3.0, practice_type=PracticeType.REGENERATIVE)

        assert crop.estimated_carbon_sequestration == pytest.approx(9.6)
        assert crop.status == CropStatus.PLANTED

    def test_requires_ownership(self, make_crop, farmer, identity):
        with identity.acting_as(OTHER_USER_ID):
            with pytest.raises(OwnershipError):
                make_crop(farmer.id)

    def test_status_update(self, registry, make_crop, farmer):
        crop = make_crop(farmer.id)

        updated = registry.update_crop_status(crop.id, CropStatus.HARVESTED)

        assert updated.status == CropStatus.HARVESTED
        assert registry.get_crop(crop.id).status == CropStatus.HARVESTED

    def test_unknown_crop(self, registry):
        with pytest.raises(NotFoundError):
            registry.update_crop_status("CRP-missing", CropStatus.GROWING)

    def test_crop_stats(self, registry, make_crop, farmer):
        make_crop(farmer.id, area=2.0)
        make_crop(farmer.id, area=1.0, practice_type=PracticeType.ORGANIC, crop_type="millet")

        stats = registry.get_crop_stats(farmer.id)

        assert stats.total_crops == 2
        assert stats.total_area == 3.0
        assert stats.total_estimated_sequestration == pytest.approx(6.8)
        assert stats.by_practice == {"SRI": 1, "Organic": 1}
        assert stats.by_status == {"planted": 2}

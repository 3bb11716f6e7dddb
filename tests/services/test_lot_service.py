"""
Tests for LotService.

Covers find_or_create, quality status, deactivation, quantity deltas and
lot splitting.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import (
    LotNotFoundError,
    ValidationError,
)
from stock_kernel.models.lot import LotQualityStatus
from stock_kernel.services.lot_service import LotService


@pytest.fixture
def lots(session):
    return LotService(session)


@pytest.fixture
def lot(lots, tenant_id, product, test_actor_id):
    created = lots.find_or_create(
        tenant_id, "LOT-001", product.id, test_actor_id,
        initial_quantity=Decimal("100"), expiry_date=date(2025, 6, 30),
    )
    lots.adjust_current(tenant_id, created.id, Decimal("100"), test_actor_id)
    return created


class TestFindOrCreate:

    def test_new_lot_starts_pending_and_empty(self, lots, tenant_id, product, test_actor_id):
        created = lots.find_or_create(
            tenant_id, "LOT-NEW", product.id, test_actor_id, initial_quantity=Decimal("50"),
        )
        assert created.quality_status == LotQualityStatus.PENDING.value
        assert created.current_quantity == Decimal("0")
        assert created.initial_quantity == Decimal("50")
        assert created.is_active

    def test_existing_lot_is_returned(self, lots, lot, tenant_id, product, test_actor_id):
        again = lots.find_or_create(tenant_id, "LOT-001", product.id, test_actor_id)
        assert again.id == lot.id

    def test_lot_number_of_other_product_rejected(
        self, lots, lot, master_data, tenant_id, test_actor_id,
    ):
        other = master_data.add_product(tenant_id, "P-200")
        with pytest.raises(ValidationError):
            lots.find_or_create(tenant_id, "LOT-001", other.id, test_actor_id)

    def test_lot_number_required(self, lots, tenant_id, product, test_actor_id):
        with pytest.raises(ValidationError):
            lots.find_or_create(tenant_id, "", product.id, test_actor_id)

    def test_lot_numbers_are_per_tenant(self, lots, lot, product, test_actor_id):
        other = lots.find_or_create(uuid4(), "LOT-001", product.id, test_actor_id)
        assert other.id != lot.id


class TestMutation:

    def test_set_quality_status(self, lots, lot, tenant_id, test_actor_id):
        lots.set_quality_status(tenant_id, lot.id, "PASSED", test_actor_id)
        assert lots.get(tenant_id, lot.id).quality_status == "PASSED"
        assert [l.lot_no for l in lots.find_by_quality_status(tenant_id, LotQualityStatus.PASSED)] == ["LOT-001"]

    def test_deactivate_appends_remarks(self, lots, lot, tenant_id, test_actor_id):
        lots.deactivate(tenant_id, lot.id, test_actor_id, remarks="Cancelled: damaged")
        lots.deactivate(tenant_id, lot.id, test_actor_id, remarks="second note")
        refreshed = lots.get(tenant_id, lot.id)
        assert not refreshed.is_active
        assert refreshed.remarks == "Cancelled: damaged | second note"

    def test_adjust_current_applies_signed_delta_without_floor(
        self, lots, lot, tenant_id, test_actor_id,
    ):
        lots.adjust_current(tenant_id, lot.id, Decimal("-30"), test_actor_id)
        assert lots.get(tenant_id, lot.id).current_quantity == Decimal("70")
        lots.adjust_current(tenant_id, lot.id, Decimal("-101"), test_actor_id)
        assert lots.get(tenant_id, lot.id).current_quantity == Decimal("-31")

    def test_unknown_lot(self, lots, tenant_id):
        with pytest.raises(LotNotFoundError):
            lots.get(tenant_id, uuid4())

    def test_lot_of_other_tenant_not_found(self, lots, lot):
        with pytest.raises(LotNotFoundError):
            lots.get(uuid4(), lot.id)


class TestSplit:

    def test_split_creates_numbered_child(self, lots, lot, tenant_id, test_actor_id):
        lots.set_quality_status(tenant_id, lot.id, "PASSED", test_actor_id)
        child = lots.split_lot(tenant_id, lot.id, Decimal("30"), test_actor_id)

        assert child.lot_no == "LOT-001-S01"
        assert child.parent_lot_id == lot.id
        assert child.current_quantity == Decimal("30")
        assert child.quality_status == "PASSED"
        assert child.expiry_date == date(2025, 6, 30)
        assert child.remarks == "Split from LOT-001"
        assert lots.get(tenant_id, lot.id).current_quantity == Decimal("70")

    def test_second_split_skips_taken_number(self, lots, lot, tenant_id, test_actor_id):
        lots.split_lot(tenant_id, lot.id, Decimal("10"), test_actor_id)
        second = lots.split_lot(tenant_id, lot.id, Decimal("10"), test_actor_id)
        assert second.lot_no == "LOT-001-S02"

    @pytest.mark.parametrize("qty", ["100", "150"])
    def test_split_must_leave_remainder(self, lots, lot, tenant_id, test_actor_id, qty):
        with pytest.raises(ValidationError):
            lots.split_lot(tenant_id, lot.id, Decimal(qty), test_actor_id)

    def test_split_quantity_must_be_positive(self, lots, lot, tenant_id, test_actor_id):
        with pytest.raises(ValidationError):
            lots.split_lot(tenant_id, lot.id, Decimal("0"), test_actor_id)

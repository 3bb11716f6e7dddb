"""
Tests for QualityInspectionService.

Covers request numbering, grading into PASS / CONDITIONAL / FAIL with the
pass/fail quantity split, idempotent re-grading, corrective actions and
the statistics queries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InspectionNotFoundError, ValidationError
from stock_modules.quality.models import InspectionResult
from stock_modules.quality.service import QualityInspectionService


@pytest.fixture
def quality(session, deterministic_clock):
    return QualityInspectionService(session, deterministic_clock)


@pytest.fixture
def standard(standards, tenant_id, product):
    return standards.add(tenant_id, product.id)


@pytest.fixture
def request_one(quality, standard, tenant_id, product, test_actor_id):
    def _request(qty="1000"):
        return quality.request_inspection(
            tenant_id, standard, product_id=product.id,
            inspected_quantity=Decimal(qty), actor_id=test_actor_id,
        )
    return _request


class TestRequest:

    def test_request_is_numbered_and_ungraded(self, request_one, standard):
        inspection = request_one()
        assert inspection.inspection_no == "IQC-20240101-0001"
        assert inspection.inspection_type == "INCOMING"
        assert not inspection.is_graded
        assert inspection.passed_quantity == Decimal("0")
        assert inspection.failed_quantity == Decimal("0")
        assert inspection.min_value == standard.min_value
        assert inspection.quality_standard_id == standard.id

    def test_numbers_increase(self, request_one):
        request_one()
        assert request_one().inspection_no == "IQC-20240101-0002"

    def test_negative_quantity_rejected(self, request_one):
        with pytest.raises(ValidationError):
            request_one("-1")


class TestGrading:

    @pytest.mark.parametrize(
        "measured, result, passed, failed",
        [
            ("100", InspectionResult.PASS, "1000", "0"),
            ("113", InspectionResult.CONDITIONAL, "1000", "0"),
            ("120", InspectionResult.FAIL, "0", "1000"),
        ],
    )
    def test_grade(self, quality, request_one, tenant_id, test_actor_id, measured, result, passed, failed):
        inspection = request_one()
        graded = quality.grade_inspection(tenant_id, inspection.id, Decimal(measured), test_actor_id)
        assert graded.result is result
        assert graded.passed_quantity == Decimal(passed)
        assert graded.failed_quantity == Decimal(failed)
        assert graded.inspector_id == test_actor_id

    def test_grade_can_override_quantity(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        graded = quality.grade_inspection(
            tenant_id, inspection.id, Decimal("120"), test_actor_id,
            inspected_quantity=Decimal("40"),
        )
        assert graded.failed_quantity == Decimal("40")

    def test_measured_value_required(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        with pytest.raises(ValidationError):
            quality.grade_inspection(tenant_id, inspection.id, None, test_actor_id)

    def test_update_without_changes_is_idempotent(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        graded = quality.grade_inspection(tenant_id, inspection.id, Decimal("113"), test_actor_id)
        again = quality.update_inspection(tenant_id, inspection.id, test_actor_id)
        assert again.result is graded.result
        assert again.passed_quantity == graded.passed_quantity
        assert again.failed_quantity == graded.failed_quantity

    def test_update_regrades(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        quality.grade_inspection(tenant_id, inspection.id, Decimal("100"), test_actor_id)
        updated = quality.update_inspection(
            tenant_id, inspection.id, test_actor_id, measured_value=Decimal("130"),
            remarks="re-measured",
        )
        assert updated.result is InspectionResult.FAIL
        assert updated.remarks == "re-measured"

    def test_update_of_ungraded_stays_ungraded(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        updated = quality.update_inspection(
            tenant_id, inspection.id, test_actor_id, inspected_quantity=Decimal("10"),
        )
        assert updated.result is None
        assert updated.passed_quantity == Decimal("0")

    def test_regrade_uses_snapshotted_band(
        self, quality, request_one, standards, tenant_id, product, test_actor_id,
    ):
        inspection = request_one()
        standards.add(tenant_id, product.id, min_value=Decimal("0"), max_value=Decimal("1000"))
        graded = quality.grade_inspection(tenant_id, inspection.id, Decimal("500"), test_actor_id)
        assert graded.result is InspectionResult.FAIL

    def test_unknown_inspection(self, quality, tenant_id, test_actor_id):
        with pytest.raises(InspectionNotFoundError):
            quality.grade_inspection(tenant_id, uuid4(), Decimal("1"), test_actor_id)

    def test_other_tenant_cannot_read(self, quality, request_one):
        inspection = request_one()
        with pytest.raises(InspectionNotFoundError):
            quality.get(uuid4(), inspection.id)


class TestStatistics:

    def test_pass_rate_with_no_inspections(self, quality, tenant_id):
        assert quality.pass_rate(tenant_id) == 0.0

    def test_pass_rate_includes_open_requests(self, quality, request_one, tenant_id, test_actor_id):
        for value in ("100", "100", "113", "120"):
            inspection = request_one()
            quality.grade_inspection(tenant_id, inspection.id, Decimal(value), test_actor_id)
        request_one()

        assert quality.count_all(tenant_id) == 5
        assert quality.count_by_result(tenant_id, InspectionResult.PASS) == 2
        assert quality.pass_rate(tenant_id) == pytest.approx(40.0)
        assert len(quality.find_failed(tenant_id)) == 1

    def test_pass_rate_over_hundred_inspections(
        self, quality, request_one, tenant_id, test_actor_id,
    ):
        graded = [("100", 75), ("120", 15)]
        for value, count in graded:
            for _ in range(count):
                inspection = request_one()
                quality.grade_inspection(tenant_id, inspection.id, Decimal(value), test_actor_id)
        for _ in range(10):
            request_one()

        assert quality.count_all(tenant_id) == 100
        assert quality.pass_rate(tenant_id) == 75.0
        assert quality.pass_rate(uuid4()) == 0.0

    def test_retest_required_lists_open_corrective_actions(
        self, quality, request_one, tenant_id, test_actor_id,
    ):
        open_one = request_one()
        closed_one = request_one()
        for inspection in (open_one, closed_one):
            quality.grade_inspection(tenant_id, inspection.id, Decimal("200"), test_actor_id)
        quality.record_corrective_action(tenant_id, open_one.id, "return to supplier", test_actor_id)
        quality.record_corrective_action(
            tenant_id, closed_one.id, "reworked", test_actor_id, completed_on=date(2024, 1, 5),
        )

        retest = quality.find_retest_required(tenant_id)
        assert [i.id for i in retest] == [open_one.id]

    def test_corrective_action_required(self, quality, request_one, tenant_id, test_actor_id):
        inspection = request_one()
        with pytest.raises(ValidationError):
            quality.record_corrective_action(tenant_id, inspection.id, "", test_actor_id)

"""
Unit tests for the appointment fee calculator
"""

import pytest

from use_cases.hospital.domain.services import FeeCalculator, round_half_up


class TestFeeCalculator:

    def setup_method(self):
        self.calculator = FeeCalculator()

    def test_base_1200_doctor_10_department_5(self):
        fees = self.calculator.calculate(1200, 10, 5)
        assert fees.doctor_fee == 120
        assert fees.department_fee == 60
        assert fees.total_fee == 1380

    def test_surcharges_are_rounded_separately(self):
        # 1001 * 0.5% = 5.005 -> 5 twice, not round(10.01) = 10 once
        fees = self.calculator.calculate(1001, 0.5, 0.5)
        assert (fees.doctor_fee, fees.department_fee) == (5, 5)
        assert fees.total_fee == 1011

    def test_halves_round_up(self):
        # 150 * 1% = 1.5
        fees = self.calculator.calculate(150, 1, 3)
        assert fees.doctor_fee == 2
        assert fees.department_fee == 5  # 4.5

    def test_zero_percentages_leave_base_fee(self):
        fees = self.calculator.calculate(1200)
        assert fees.total_fee == 1200
        assert fees.doctor_fee == fees.department_fee == 0

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValueError):
            self.calculator.calculate(-1, 0, 0)
        with pytest.raises(ValueError):
            self.calculator.calculate(1200, -5, 0)

    def test_execute_delegates_to_calculate(self):
        assert self.calculator.execute(1000, 10, 10).total_fee == 1200

    def test_to_dict_uses_document_field_names(self):
        assert self.calculator.calculate(1200, 10, 5).to_dict() == {
            "baseFee": 1200,
            "doctorFee": 120,
            "departmentFee": 60,
            "totalFee": 1380,
        }


@pytest.mark.parametrize("value, expected", [(0.0, 0), (0.49, 0), (0.5, 1), (2.5, 3), (119.99, 120)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected

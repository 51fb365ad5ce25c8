from decimal import Decimal

from src.shared.utils.money import ZERO, percent_of, round_money


class TestRoundMoney:
    """Tests for round_money function."""

    def test_round_half_up(self):
        assert round_money(10.125) == Decimal("10.13")
        assert round_money(10.124) == Decimal("10.12")
        assert round_money("10.115") == Decimal("10.12")

    def test_inputs_of_any_numeric_type(self):
        assert round_money(Decimal("99.999")) == Decimal("100.00")
        assert round_money("0.001") == ZERO
        assert round_money(1500) == Decimal("1500.00")

    def test_negative_amounts_round_toward_zero_on_half(self):
        assert round_money(Decimal("-10.125")) == Decimal("-10.12")
        assert round_money(Decimal("-10.126")) == Decimal("-10.13")

    def test_always_two_places(self):
        assert str(round_money(10)) == "10.00"
        assert str(round_money(10.1)) == "10.10"


class TestPercentOf:
    """Tests for percent_of function."""

    def test_discount_and_vat_amounts(self):
        assert percent_of(Decimal("1500"), 10) == Decimal("150.00")
        assert percent_of(Decimal("1350"), Decimal("27")) == Decimal("364.50")

    def test_rounds_to_money_precision(self):
        # 333.33 * 27% = 89.9991
        assert percent_of(Decimal("333.33"), 27) == Decimal("90.00")

    def test_zero_percent(self):
        assert percent_of(Decimal("1000"), 0) == ZERO

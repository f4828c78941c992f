"""Line and PO total computation, input validation, invariant checks."""

from decimal import Decimal

import pytest

from ledger_kernel.db.types import has_at_most_places, round_money, to_decimal
from ledger_kernel.domain.totals import (
    compute_line,
    compute_totals,
    invariant_violations,
    outstanding_for,
    validate_money,
    validate_percent,
    validate_quantity,
)
from ledger_kernel.exceptions import LedgerValidationError


class TestComputeLine:
    def test_tax_only(self):
        line = compute_line(1, Decimal("10000.00"), Decimal("18"))
        assert line.base == Decimal("10000.00")
        assert line.discount == 0
        assert line.tax == Decimal("1800")
        assert line.line_total == Decimal("11800.00")

    def test_tax_applies_after_discount(self):
        # 2 x 500 = 1000, 10% off = 900, 18% tax on 900 = 162
        line = compute_line(2, Decimal("500.00"), Decimal("18"), Decimal("10"))
        assert line.discount == Decimal("100")
        assert line.tax == Decimal("162")
        assert line.line_total == Decimal("1062.00")

    def test_line_total_is_rounded_half_up(self):
        # 3 x 0.35 = 1.05; 5% tax = 0.0525 -> 1.1025 -> 1.10
        line = compute_line(3, Decimal("0.35"), Decimal("5"))
        assert line.line_total == Decimal("1.10")
        # 1 x 0.10 at 25% = 0.125 -> 0.13
        assert compute_line(1, Decimal("0.10"), Decimal("25")).line_total == Decimal("0.13")


class TestComputeTotals:
    def test_sums_lines(self):
        lines = [
            compute_line(1, Decimal("10000.00"), Decimal("18")),
            compute_line(2, Decimal("500.00"), Decimal("18"), Decimal("10")),
        ]
        totals = compute_totals(lines)
        assert totals.subtotal == Decimal("11000.00")
        assert totals.discount_amount == Decimal("100.00")
        assert totals.tax_amount == Decimal("1962.00")
        assert totals.total_amount == Decimal("12862.00")

    def test_total_identity_holds_exactly(self):
        lines = [compute_line(7, Decimal("3.33"), Decimal("12.5"), Decimal("3"))]
        totals = compute_totals(lines)
        assert totals.total_amount == (
            totals.subtotal - totals.discount_amount + totals.tax_amount
        )

    def test_tax_override_replaces_computed_tax(self):
        totals = compute_totals(
            [compute_line(1, Decimal("10000.00"), Decimal("18"))],
            tax_override=Decimal("1500.00"),
        )
        assert totals.tax_amount == Decimal("1500.00")
        assert totals.total_amount == Decimal("11500.00")

    def test_discount_override(self):
        totals = compute_totals(
            [compute_line(1, Decimal("1000.00"))],
            discount_override=Decimal("250.00"),
        )
        assert totals.discount_amount == Decimal("250.00")
        assert totals.total_amount == Decimal("750.00")

    def test_zero_overrides_are_applied(self):
        totals = compute_totals(
            [compute_line(1, Decimal("1000.00"), Decimal("18"))],
            tax_override=Decimal("0"),
        )
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("1000.00")

    def test_negative_override_rejected(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            compute_totals(
                [compute_line(1, Decimal("1000.00"))], tax_override=Decimal("-1")
            )
        assert exc_info.value.field == "tax_amount"

    def test_discount_larger_than_total_rejected(self):
        with pytest.raises(LedgerValidationError):
            compute_totals(
                [compute_line(1, Decimal("100.00"))], discount_override=Decimal("100.01")
            )

    def test_empty_lines_rejected(self):
        with pytest.raises(LedgerValidationError) as exc_info:
            compute_totals([])
        assert exc_info.value.field == "items"


class TestValidation:
    @pytest.mark.parametrize("qty", [0, -1, 1.5, "3", True])
    def test_bad_quantity(self, qty):
        with pytest.raises(LedgerValidationError):
            validate_quantity(qty)

    def test_good_quantity(self):
        assert validate_quantity(12) == 12

    @pytest.mark.parametrize("value", ["-0.01", "1.001", "abc", "NaN", "Infinity"])
    def test_bad_money(self, value):
        with pytest.raises(LedgerValidationError):
            validate_money(value, "amount")

    def test_zero_money_allowed_unless_positive_required(self):
        assert validate_money("0", "unit_price") == Decimal("0")
        with pytest.raises(LedgerValidationError) as exc_info:
            validate_money("0", "amount", allow_zero=False)
        assert "positive" in exc_info.value.reason

    def test_float_goes_through_repr(self):
        assert validate_money(0.1, "amount") == Decimal("0.1")

    @pytest.mark.parametrize("value", ["-1", "100.01", "12.345"])
    def test_bad_percent(self, value):
        with pytest.raises(LedgerValidationError):
            validate_percent(value, "tax_rate")

    @pytest.mark.parametrize("value", ["0", "18", "100", "12.5"])
    def test_good_percent(self, value):
        assert validate_percent(value, "tax_rate") == Decimal(value)


class TestOutstandingAndInvariants:
    def test_outstanding_floors_at_zero(self):
        assert outstanding_for(Decimal("100.00"), Decimal("120.00")) == Decimal("0.00")
        assert outstanding_for(Decimal("100.00"), Decimal("40.00")) == Decimal("60.00")

    def test_consistent_snapshot_has_no_violations(self):
        assert invariant_violations(
            Decimal("10000.00"),
            Decimal("0.00"),
            Decimal("1800.00"),
            Decimal("11800.00"),
            Decimal("5000.00"),
            Decimal("6800.00"),
        ) == []

    def test_balance_mismatch_reported(self):
        names = [
            name
            for name, _ in invariant_violations(
                Decimal("100.00"),
                Decimal("0.00"),
                Decimal("0.00"),
                Decimal("100.00"),
                Decimal("50.00"),
                Decimal("40.00"),
            )
        ]
        assert names == ["balance"]

    def test_rounding_epsilon_tolerated(self):
        assert invariant_violations(
            Decimal("100.00"),
            Decimal("0.00"),
            Decimal("0.00"),
            Decimal("100.00"),
            Decimal("33.33"),
            Decimal("66.66"),
        ) == []

    def test_composition_and_sign_violations(self):
        names = {
            name
            for name, _ in invariant_violations(
                Decimal("100.00"),
                Decimal("0.00"),
                Decimal("10.00"),
                Decimal("100.00"),
                Decimal("-5.00"),
                Decimal("105.00"),
            )
        }
        assert names == {"total_composition", "paid_non_negative"}


class TestMoneyHelpers:
    def test_round_money(self):
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("2.674")) == Decimal("2.67")

    def test_has_at_most_places(self):
        assert has_at_most_places(Decimal("1.10"))
        assert has_at_most_places(Decimal("100"))
        assert not has_at_most_places(Decimal("1.001"))

    def test_to_decimal_rejects_bool(self):
        with pytest.raises(ValueError):
            to_decimal(True)

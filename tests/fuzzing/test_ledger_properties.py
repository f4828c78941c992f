"""
Property-based tests for ledger arithmetic and payment sequences.

Properties:
- Totals: total == subtotal - discount + tax exactly; every amount has two
  decimal places; tax never exceeds its rate applied to the discounted base
  by more than rounding.
- Status: derive_status agrees with the amounts for every input.
- Payment sequences: after any mix of payments and voids on one PO,
  paid == sum of live payments, paid + outstanding == total, and the
  status is the one the amounts imply.
"""

from datetime import date
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.db.types import has_at_most_places
from ledger_kernel.domain.status import PurchaseOrderStatus, derive_status
from ledger_kernel.domain.totals import compute_line, compute_totals, outstanding_for
from ledger_kernel.exceptions import PaymentExceedsOutstandingError
from ledger_kernel.services.payment_service import PaymentService
from ledger_kernel.services.purchase_order_service import PurchaseOrderService
from tests.helpers import make_item

S = PurchaseOrderStatus

money = st.decimals(
    min_value=Decimal("0.00"),
    max_value=Decimal("99999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
positive_money = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("20000.00"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
percent = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
line = st.tuples(st.integers(min_value=1, max_value=500), money, percent, percent)


class TestTotalsProperties:
    @given(lines=st.lists(line, min_size=1, max_size=8))
    def test_total_identity_and_precision(self, lines):
        totals = compute_totals(compute_line(*args) for args in lines)

        assert totals.total_amount == (
            totals.subtotal - totals.discount_amount + totals.tax_amount
        )
        assert totals.total_amount >= 0
        for amount in (
            totals.subtotal,
            totals.discount_amount,
            totals.tax_amount,
            totals.total_amount,
        ):
            assert has_at_most_places(amount)

    @given(args=line)
    def test_line_total_close_to_components(self, args):
        amounts = compute_line(*args)
        exact = amounts.base - amounts.discount + amounts.tax
        assert abs(amounts.line_total - exact) <= Decimal("0.005")
        assert amounts.discount <= amounts.base

    @given(lines=st.lists(line, min_size=1, max_size=8))
    def test_line_totals_sum_close_to_po_total(self, lines):
        computed = [compute_line(*args) for args in lines]
        totals = compute_totals(computed)
        line_sum = sum(c.line_total for c in computed)
        # each line rounds once, the PO rounds three sums
        assert abs(line_sum - totals.total_amount) <= Decimal("0.01") * (len(lines) + 3)


class TestStatusProperties:
    @given(total=money, paid=money, overdue=st.booleans())
    def test_derive_status_matches_amounts(self, total, paid, overdue):
        due = date(2026, 1, 31)
        today = date(2026, 2, 1) if overdue else date(2026, 1, 15)
        status = derive_status(paid, total, due, today, S.APPROVED)

        outstanding = total - paid
        if paid > 0 and outstanding <= 0:
            assert status == S.PAID
        elif paid > 0:
            assert status == S.PARTIALLY_PAID
        elif overdue and outstanding > 0:
            assert status == S.OVERDUE
        else:
            assert status == S.APPROVED

    @given(total=money, paid=money)
    def test_outstanding_never_negative(self, total, paid):
        outstanding = outstanding_for(total, paid)
        assert outstanding >= 0
        if paid <= total:
            assert paid + outstanding == total


operations = st.lists(
    st.one_of(
        st.tuples(st.just("pay"), positive_money),
        st.tuples(st.just("void"), st.integers(min_value=0, max_value=20)),
    ),
    min_size=1,
    max_size=12,
)


class TestPaymentSequenceProperties:
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(ops=operations)
    def test_invariants_hold_after_any_sequence(
        self, session, deterministic_clock, vendor, test_actor_id, ops
    ):
        po_service = PurchaseOrderService(session, deterministic_clock)
        payments = PaymentService(session, deterministic_clock, po_service)

        po = po_service.create_purchase_order(
            vendor.id, [make_item()], test_actor_id, po_date=date(2026, 1, 1)
        )
        po_service.update_status(po.id, S.APPROVED, test_actor_id)

        live: dict = {}
        for op, arg in ops:
            if op == "pay":
                current = po_service.get(po.id)
                if current.status not in (S.APPROVED, S.PARTIALLY_PAID, S.OVERDUE):
                    continue
                try:
                    payment = payments.record_payment(po.id, arg, "cash", test_actor_id)
                except PaymentExceedsOutstandingError:
                    assert arg > current.outstanding_amount
                    continue
                live[payment.id] = payment.amount_paid
            elif live:
                payment_id = list(live)[arg % len(live)]
                payments.void_payment(payment_id, "property test", test_actor_id)
                del live[payment_id]

            state = po_service.check_invariants(po.id)
            assert state.paid_amount == sum(live.values(), Decimal("0"))
            assert state.paid_amount + state.outstanding_amount == state.total_amount
            assert state.status == derive_status(
                state.paid_amount,
                state.total_amount,
                state.due_date,
                deterministic_clock.today(),
                S.APPROVED,
            )

"""
Unit tests for order totals.
"""

from decimal import Decimal

from order_entry.models import PaymentStatus
from order_entry.services.pricing_service import calculate_tax, calculate_totals


class TestTotals:
    """Tests for calculate_totals."""

    def test_basic_order(self):
        """Test 2 x 1000 with no discount paid in full."""
        totals = calculate_totals(Decimal('2000'), Decimal('0'), PaymentStatus.COMPLETE)

        assert totals.subtotal == Decimal('2000')
        assert totals.tax == Decimal('360')
        assert totals.discount_amount == Decimal('0')
        assert totals.total == Decimal('2000')
        assert totals.amount_due == Decimal('2000')
        assert totals.remaining == Decimal('0')

    def test_tax_not_added_to_total(self):
        totals = calculate_totals(Decimal('5000'), Decimal('500'), PaymentStatus.COMPLETE)
        assert totals.total == Decimal('4500')
        assert totals.tax == Decimal('900')

    def test_partial_payment_splits_total(self):
        """Test a pending 3000 order collects 1500 now and leaves 1500."""
        totals = calculate_totals(Decimal('3000'), Decimal('0'), PaymentStatus.PENDING)

        assert totals.amount_due == Decimal('1500')
        assert totals.remaining == Decimal('1500')

    def test_partial_payment_ratio_configurable(self):
        totals = calculate_totals(
            Decimal('1000'), Decimal('0'), PaymentStatus.PENDING, partial_payment_ratio=Decimal('0.3')
        )
        assert totals.amount_due == Decimal('300')
        assert totals.remaining == Decimal('700')

    def test_total_formula_holds(self):
        for subtotal, discount in [('0', '0'), ('1234', '234'), ('99.5', '10.25')]:
            totals = calculate_totals(Decimal(subtotal), Decimal(discount), PaymentStatus.COMPLETE)
            assert totals.total == totals.subtotal - totals.discount_amount

    def test_custom_tax_rate(self):
        assert calculate_tax(Decimal('1000'), Decimal('0.16')) == Decimal('160')

    def test_json_amounts_are_numbers(self):
        totals = calculate_totals(Decimal('2000'), Decimal('0'), PaymentStatus.COMPLETE)
        assert totals.model_dump(mode='json')['tax'] == 360.0

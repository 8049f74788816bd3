"""
Unit tests for discount eligibility, selection and amounts.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from order_entry.exceptions import DiscountConflictError
from order_entry.models import Discount, LineItem, PaymentStatus
from order_entry.services.discount_service import (
    DiscountSelection, auto_apply_discounts, bottle_return_amount, calculate_discount_amount,
    discount_contribution, eligible_discounts, is_discount_eligible, preview_savings
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_line(product_id, price, quantity, product_type='general', stock=100):
    return LineItem(
        product_id=product_id, name=f'Product {product_id}', price=Decimal(price),
        quantity=quantity, available_stock=stock, product_type=product_type
    )


class TestEligibility:
    """Tests for the eligibility gates."""

    def test_walk_in_only_gets_bottle_returns(self, discounts, walk_in_customer):
        """Test walk-in customers only see bottle-return discounts."""
        lines = [make_line(1, '5000', 1)]
        result = eligible_discounts(discounts, lines, walk_in_customer, PaymentStatus.COMPLETE, NOW)
        assert {d.id for d in result} == {102, 103}

    def test_no_customer_counts_as_walk_in(self, discounts):
        lines = [make_line(1, '5000', 1)]
        result = eligible_discounts(discounts, lines, None, PaymentStatus.COMPLETE, NOW)
        assert all(d.is_bottle_return for d in result)

    def test_regular_customer_sees_everything_applicable(self, discounts, regular_customer):
        lines = [make_line(1, '5000', 1)]
        result = eligible_discounts(discounts, lines, regular_customer, PaymentStatus.COMPLETE, NOW)
        assert {d.id for d in result} == {100, 101, 102, 103}

    def test_inactive_discount_excluded(self, regular_customer):
        discount = Discount(id=1, name='Off', type='percentage', value=10, is_active=False)
        assert not is_discount_eligible(discount, [make_line(1, '100', 1)], regular_customer, PaymentStatus.COMPLETE, NOW)

    def test_validity_window(self, regular_customer):
        """Test discounts outside their window are excluded."""
        lines = [make_line(1, '100', 1)]
        future = Discount(id=1, type='percentage', value=10, start_date=NOW + timedelta(days=1))
        expired = Discount(id=2, type='percentage', value=10, end_date=NOW - timedelta(seconds=1))
        current = Discount(id=3, type='percentage', value=10,
                           start_date=NOW - timedelta(days=1), end_date=NOW + timedelta(days=1))

        result = eligible_discounts([future, expired, current], lines, regular_customer, PaymentStatus.COMPLETE, NOW)
        assert [d.id for d in result] == [3]

    def test_naive_dates_compare_as_utc(self, regular_customer):
        discount = Discount(id=1, type='percentage', value=10, end_date=datetime(2024, 6, 15, 11, 0))
        assert not is_discount_eligible(discount, [make_line(1, '100', 1)], regular_customer, PaymentStatus.COMPLETE, NOW)

    def test_product_type_allowlist(self, regular_customer):
        """Test a discount limited to perfume needs a perfume line."""
        discount = Discount(id=1, type='percentage', value=10, product_types=['perfume'])
        general = [make_line(1, '1000', 1)]
        mixed = general + [make_line(2, '100', 3, 'perfume')]

        assert not is_discount_eligible(discount, general, regular_customer, PaymentStatus.COMPLETE, NOW)
        assert is_discount_eligible(discount, mixed, regular_customer, PaymentStatus.COMPLETE, NOW)

    def test_product_types_from_json_string(self):
        discount = Discount(id=1, type='percentage', value=10, product_types='["perfume", "oil"]')
        assert discount.product_types == ['perfume', 'oil']

    def test_min_purchase_uses_matching_lines_only(self, regular_customer):
        """Test the minimum purchase ignores lines outside the allowlist."""
        discount = Discount(id=1, type='fixed_amount', value=500,
                            product_types=['perfume'], min_purchase_amount=3000)
        lines = [make_line(1, '10000', 1), make_line(2, '100', 20, 'perfume')]
        assert not is_discount_eligible(discount, lines, regular_customer, PaymentStatus.COMPLETE, NOW)

        lines[1] = make_line(2, '100', 30, 'perfume')
        assert is_discount_eligible(discount, lines, regular_customer, PaymentStatus.COMPLETE, NOW)

    def test_partial_payment_requires_opt_in(self, percentage_discount, fixed_discount, regular_customer):
        """Test pending payments only allow discounts flagged for partial payment."""
        lines = [make_line(1, '3000', 1)]
        result = eligible_discounts(
            [percentage_discount, fixed_discount], lines, regular_customer, PaymentStatus.PENDING, NOW
        )
        assert [d.id for d in result] == [101]

    def test_bottle_return_respects_other_gates(self, walk_in_customer):
        """Test bottle returns skip the customer gate but not the allowlist."""
        discount = Discount(id=1, type='bottle_return', bottle_return_count=1, product_types=['perfume'])
        assert not is_discount_eligible(
            discount, [make_line(1, '1000', 1)], walk_in_customer, PaymentStatus.COMPLETE, NOW
        )

    def test_evaluation_is_idempotent(self, discounts, regular_customer):
        lines = [make_line(1, '5000', 1)]
        first = eligible_discounts(discounts, lines, regular_customer, PaymentStatus.COMPLETE, NOW)
        second = eligible_discounts(discounts, lines, regular_customer, PaymentStatus.COMPLETE, NOW)
        assert [d.id for d in first] == [d.id for d in second]


class TestAmounts:
    """Tests for discount amounts."""

    def test_percentage(self, percentage_discount):
        """Test 10% of 5000 is 500."""
        lines = [make_line(1, '5000', 1)]
        assert discount_contribution(percentage_discount, lines, NOW) == Decimal('500')

    def test_fixed_amount_capped_by_matching_subtotal(self):
        discount = Discount(id=1, type='fixed_amount', value=2000, product_types=['perfume'])
        lines = [make_line(1, '5000', 1), make_line(2, '100', 5, 'perfume')]
        assert discount_contribution(discount, lines, NOW) == Decimal('500')

    def test_bottle_return_tier(self, bottle_return_two):
        """Test returning 2 bottles on a 10000 order takes 2000 off."""
        lines = [make_line(1, '10000', 1)]
        assert discount_contribution(bottle_return_two, lines, NOW) == Decimal('2000')

    def test_bottle_return_capped(self, bottle_return_two):
        lines = [make_line(1, '1500', 1)]
        assert discount_contribution(bottle_return_two, lines, NOW) == Decimal('1500')

    def test_bottle_return_unknown_count(self):
        discount = Discount(id=1, type='bottle_return', bottle_return_count=7)
        assert discount_contribution(discount, [make_line(1, '10000', 1)], NOW) == Decimal('0')
        assert bottle_return_amount(7) == Decimal('0')

    def test_custom_tiers(self, bottle_return_two):
        lines = [make_line(1, '10000', 1)]
        assert discount_contribution(bottle_return_two, lines, NOW, tiers={'2': 2500}) == Decimal('2500')

    def test_selected_discount_no_longer_qualifying_contributes_zero(self, fixed_discount):
        """Test a minimum purchase re-check after the cart shrank."""
        lines = [make_line(1, '1000', 2)]
        assert discount_contribution(fixed_discount, lines, NOW) == Decimal('0')

    def test_sum_of_contributions(self, percentage_discount, fixed_discount):
        lines = [make_line(1, '5000', 1)]
        total = calculate_discount_amount([percentage_discount, fixed_discount], lines, NOW)
        assert total == Decimal('1000')

    def test_preview_savings(self, percentage_discount, bottle_return_two):
        lines = [make_line(1, '5000', 1)]
        assert preview_savings(percentage_discount, lines) == Decimal('500')
        assert preview_savings(bottle_return_two, lines) == Decimal('2000')


class TestSelection:
    """Tests for DiscountSelection."""

    def test_toggle(self, percentage_discount):
        selection = DiscountSelection()
        assert selection.toggle(percentage_discount) is True
        assert selection.is_selected(100)
        assert selection.toggle(percentage_discount) is False
        assert len(selection) == 0

    def test_single_bottle_return(self, bottle_return_one, bottle_return_two):
        """Test a second bottle return is rejected and the first one kept."""
        selection = DiscountSelection()
        selection.select(bottle_return_two)

        with pytest.raises(DiscountConflictError):
            selection.select(bottle_return_one)

        assert [d.id for d in selection] == [102]

    def test_retain_bottle_returns(self, percentage_discount, bottle_return_two):
        selection = DiscountSelection()
        selection.select(percentage_discount)
        selection.select(bottle_return_two)

        removed = selection.retain_bottle_returns()

        assert [d.id for d in removed] == [100]
        assert [d.id for d in selection] == [102]


class TestAutoApply:
    """Tests for auto-applied discounts."""

    def test_applies_once(self, auto_discount, regular_customer):
        selection = DiscountSelection()
        lines = [make_line(1, '1000', 1)]

        applied = auto_apply_discounts([auto_discount], selection, regular_customer, lines)
        again = auto_apply_discounts([auto_discount], selection, regular_customer, lines)

        assert [d.id for d in applied] == [104]
        assert again == []

    def test_not_for_walk_in_or_empty_cart(self, auto_discount, walk_in_customer, regular_customer):
        selection = DiscountSelection()
        assert auto_apply_discounts([auto_discount], selection, walk_in_customer, [make_line(1, '1000', 1)]) == []
        assert auto_apply_discounts([auto_discount], selection, None, [make_line(1, '1000', 1)]) == []
        assert auto_apply_discounts([auto_discount], selection, regular_customer, []) == []

    def test_only_one_bottle_return(self, regular_customer):
        first = Discount(id=1, type='bottle_return', bottle_return_count=1, auto_apply=True)
        second = Discount(id=2, type='bottle_return', bottle_return_count=2, auto_apply=True)
        selection = DiscountSelection()

        applied = auto_apply_discounts([first, second], selection, regular_customer, [make_line(1, '5000', 1)])

        assert [d.id for d in applied] == [1]

"""
Unit tests for the pricing engine.
"""

import pytest
from decimal import Decimal

from quotedesk.exceptions import ValidationError
from quotedesk.services.pricing_service import (
    allocate_cents, compute_totals, Discount, LineItem, TaxRate, coerce_tax_rate
)


ITEMS = [
    {'quantity': 10, 'unit_price': 100},
    {'quantity': 5, 'unit_price': 200},
]


class TestComputeTotals:
    """Tests for the breakdown computation."""

    def test_reference_scenario(self):
        """10x100 + 5x200, 5% discount, 9% + 9% taxes, 50 shipping."""
        breakdown = compute_totals(
            ITEMS,
            discount={'type': 'percent', 'value': 5},
            tax_rates=[{'name': 'CGST', 'rate': 9}, {'name': 'SGST', 'rate': 9}],
            shipping=50,
        ).rounded()

        assert breakdown.line_subtotals == (Decimal('1000.00'), Decimal('1000.00'))
        assert breakdown.subtotal == Decimal('2000.00')
        assert breakdown.discount == Decimal('100.00')
        assert breakdown.discounted_subtotal == Decimal('1900.00')
        assert [t.amount for t in breakdown.taxes] == [Decimal('171.00'), Decimal('171.00')]
        assert breakdown.tax_total == Decimal('342.00')
        assert breakdown.shipping == Decimal('50.00')
        assert breakdown.total == Decimal('2292.00')

    def test_deterministic(self):
        """Same inputs always give the same breakdown."""
        args = dict(items=ITEMS, discount=Discount.percent('12.5'), tax_rates=[18], shipping='9.99')
        assert compute_totals(**args) == compute_totals(**args)

    def test_taxes_are_additive(self):
        """Two 9% taxes on 100 give 18, not compounded."""
        breakdown = compute_totals([LineItem('x', Decimal('1'), Decimal('100'))],
                                   tax_rates=[('A', 9), ('B', 9)])
        assert breakdown.tax_total == Decimal('18')
        assert breakdown.total == Decimal('118')

    def test_taxes_apply_to_discounted_subtotal(self):
        breakdown = compute_totals([{'qty': 1, 'price': 200}],
                                   discount={'type': 'amount', 'value': 100},
                                   tax_rates=[10])
        assert breakdown.discounted_subtotal == Decimal('100')
        assert breakdown.tax_total == Decimal('10')

    def test_amount_discount_clamped_at_subtotal(self):
        """Discount larger than the subtotal never makes totals negative."""
        breakdown = compute_totals([{'quantity': 2, 'unit_price': 10}],
                                   discount={'type': 'amount', 'value': 500},
                                   tax_rates=[18], shipping=5)
        assert breakdown.discount == Decimal('20')
        assert breakdown.discounted_subtotal == Decimal('0')
        assert breakdown.tax_total == Decimal('0')
        assert breakdown.total == Decimal('5')

    def test_full_percent_discount(self):
        breakdown = compute_totals(ITEMS, discount=Discount.percent(100))
        assert breakdown.discounted_subtotal == Decimal('0')
        assert breakdown.total == Decimal('0')

    def test_empty_quote(self):
        breakdown = compute_totals([], shipping=25)
        assert breakdown.subtotal == Decimal('0')
        assert breakdown.total == Decimal('25')

    def test_values_unrounded_until_rounded_view(self):
        """Intermediate values keep full precision."""
        breakdown = compute_totals([{'quantity': '0.333', 'unit_price': '10'}], tax_rates=[18])
        assert breakdown.subtotal == Decimal('3.330')
        assert breakdown.tax_total == Decimal('0.59940')
        view = breakdown.rounded()
        assert view.tax_total == Decimal('0.60')
        assert view.total == Decimal('3.93')

    def test_half_up_rounding(self):
        breakdown = compute_totals([{'quantity': '0.125', 'unit_price': 1}]).rounded()
        assert breakdown.total == Decimal('0.13')

    def test_to_dict_uses_rounded_strings(self):
        data = compute_totals(ITEMS, tax_rates=[{'name': 'VAT', 'rate': '12.5'}]).to_dict()
        assert data['subtotal'] == '2000.00'
        assert data['taxes'] == [{'name': 'VAT', 'rate': '12.5', 'amount': '250.00'}]
        assert data['total'] == '2250.00'


class TestValidation:
    """Malformed input raises ValidationError naming the field."""

    @pytest.mark.parametrize('item, field', [
        ({'quantity': 0, 'unit_price': 10}, 'items[0].quantity'),
        ({'quantity': -1, 'unit_price': 10}, 'items[0].quantity'),
        ({'quantity': 'ten', 'unit_price': 10}, 'items[0].quantity'),
        ({'quantity': 1, 'unit_price': -5}, 'items[0].unit_price'),
        ({'quantity': 1}, 'items[0].unit_price'),
        ({'quantity': 'NaN', 'unit_price': 1}, 'items[0].quantity'),
    ])
    def test_invalid_items(self, item, field):
        with pytest.raises(ValidationError) as exc:
            compute_totals([item])
        assert exc.value.field == field
        assert exc.value.status_code == 400

    def test_field_names_carry_item_index(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals([{'quantity': 1, 'unit_price': 1}, {'quantity': 1, 'unit_price': 'abc'}])
        assert exc.value.field == 'items[1].unit_price'

    def test_percent_discount_over_100(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, discount={'type': 'percent', 'value': 101})
        assert exc.value.field == 'discount.value'

    def test_negative_discount(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, discount={'type': 'amount', 'value': -1})
        assert exc.value.field == 'discount.value'

    def test_unknown_discount_type(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, discount={'type': 'bogus', 'value': 1})
        assert exc.value.field == 'discount.type'

    @pytest.mark.parametrize('rate', [-1, 101, 'x'])
    def test_invalid_tax_rate(self, rate):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, tax_rates=[rate])
        assert exc.value.field == 'tax_rates[0].rate'

    def test_duplicate_tax_names(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, tax_rates=[('GST', 9), ('GST', 9)])
        assert exc.value.field == 'tax_rates[1].name'

    def test_negative_shipping(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, shipping=-10)
        assert exc.value.field == 'shipping'

    def test_error_payload(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals(ITEMS, shipping='lots')
        assert exc.value.to_dict()['field'] == 'shipping'


class TestTaxRateCoercion:

    def test_bare_numbers_get_generated_names(self):
        assert coerce_tax_rate(18, 0) == TaxRate('Tax 1', Decimal('18'))
        assert coerce_tax_rate('5', 2).name == 'Tax 3'

    def test_pair(self):
        assert coerce_tax_rate(('IGST', '18'), 0) == TaxRate('IGST', Decimal('18'))


class TestStoredScale:
    """Inputs are rejected when they carry more places than the columns keep."""

    @pytest.mark.parametrize('kwargs, field', [
        (dict(items=[{'quantity': '0.0001', 'unit_price': 10}]), 'items[0].quantity'),
        (dict(items=[{'quantity': 1, 'unit_price': '0.333'}]), 'items[0].unit_price'),
        (dict(items=ITEMS, discount={'type': 'amount', 'value': '1.005'}), 'discount.value'),
        (dict(items=ITEMS, discount={'type': 'percent', 'value': '12.345'}), 'discount.value'),
        (dict(items=ITEMS, tax_rates=['9.0001']), 'tax_rates[0].rate'),
        (dict(items=ITEMS, shipping='1.001'), 'shipping'),
    ])
    def test_too_many_places(self, kwargs, field):
        with pytest.raises(ValidationError) as exc:
            compute_totals(**kwargs)
        assert exc.value.field == field

    def test_trailing_zeros_are_fine(self):
        breakdown = compute_totals([{'quantity': '2.5000', 'unit_price': '3.100'}], shipping='1.50')
        assert breakdown.rounded().total == Decimal('9.25')


class TestConsistentRounding:
    """The two-decimal view always adds up."""

    def test_two_half_percent_taxes_on_one(self):
        view = compute_totals([{'quantity': 1, 'unit_price': '1.00'}],
                              tax_rates=[('A', '0.5'), ('B', '0.5')]).rounded()
        assert [t.amount for t in view.taxes] == [Decimal('0.01'), Decimal('0.00')]
        assert view.tax_total == Decimal('0.01')
        assert view.total == Decimal('1.01')
        assert sum(t.amount for t in view.taxes) == view.tax_total
        assert view.total == view.subtotal - view.discount + view.tax_total + view.shipping

    def test_line_subtotals_add_up(self):
        view = compute_totals([{'quantity': '0.005', 'unit_price': 1}] * 3).rounded()
        assert view.subtotal == Decimal('0.02')
        assert sum(view.line_subtotals) == view.subtotal

    @pytest.mark.parametrize('discount, rates, shipping', [
        ({'type': 'percent', 'value': '33.33'}, ['7.125', '2.5'], '4.99'),
        ({'type': 'amount', 'value': '0.01'}, [('X', '0.333'), ('Y', '0.333'), ('Z', '0.333')], 0),
        (None, [18], '0.01'),
    ])
    def test_invariant_holds(self, discount, rates, shipping):
        items = [{'quantity': '1.333', 'unit_price': '7.77'}, {'quantity': '2.5', 'unit_price': '0.19'}]
        view = compute_totals(items, discount=discount, tax_rates=rates, shipping=shipping).rounded()
        assert sum(t.amount for t in view.taxes) == view.tax_total
        assert sum(view.line_subtotals) == view.subtotal
        assert view.total == view.subtotal - view.discount + view.tax_total + view.shipping


class TestAllocateCents:

    def test_largest_remainder_gets_the_cent(self):
        values = [Decimal('0.004'), Decimal('0.006')]
        assert allocate_cents(values, Decimal('0.01')) == (Decimal('0.00'), Decimal('0.01'))

    def test_ties_go_to_earlier_values(self):
        values = [Decimal('0.005'), Decimal('0.005')]
        assert allocate_cents(values, Decimal('0.01')) == (Decimal('0.01'), Decimal('0.00'))

    def test_exact_values_unchanged(self):
        values = [Decimal('1.50'), Decimal('2.25')]
        assert allocate_cents(values, Decimal('3.75')) == (Decimal('1.50'), Decimal('2.25'))

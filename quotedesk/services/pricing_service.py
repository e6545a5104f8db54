"""
Pricing engine for quotes and invoices.

Computation order is fixed:
    1. sum line subtotals
    2. apply the discount, clamped so the discounted subtotal never goes negative
    3. apply every tax rate to the discounted subtotal independently (no compounding)
    4. add shipping
    5. total = discounted subtotal + sum(taxes) + shipping

Everything here is pure Decimal arithmetic. Values are kept unrounded between
steps; `Breakdown.rounded()` produces the two-decimal view used for display
and persistence.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Tuple

from quotedesk.exceptions import ValidationError

CENT = Decimal('0.01')
ZERO = Decimal('0')
HUNDRED = Decimal('100')

PERCENT = 'percent'
AMOUNT = 'amount'

# Decimal places each input may carry; matches the quote columns
QUANTITY_PLACES = 3
MONEY_PLACES = 2
RATE_PLACES = 3


def to_decimal(value: Any, field: str) -> Decimal:
    """Parse a numeric input into Decimal or raise ValidationError for `field`."""
    if value is None or isinstance(value, bool):
        raise ValidationError(field, 'a number is required')
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(field, f'invalid number {value!r}')
    if not result.is_finite():
        raise ValidationError(field, 'must be a finite number')
    return result


def round_money(value: Decimal) -> Decimal:
    """Round a monetary value for display (half-up, two decimals)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def check_places(value: Decimal, places: int, field: str) -> Decimal:
    """Reject values carrying more decimal places than can be stored."""
    if value != value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN):
        raise ValidationError(field, f'cannot have more than {places} decimal places')
    return value


def allocate_cents(exact_values, target: Decimal) -> Tuple[Decimal, ...]:
    """
    Round non-negative values to cents so they add up to `target`.

    Each value is truncated to cents, then the missing cents go to the values
    with the largest remainders (earlier values win ties).
    """
    floors = [value.quantize(CENT, rounding=ROUND_DOWN) for value in exact_values]
    missing = int((target - sum(floors, ZERO)) / CENT)
    order = sorted(range(len(floors)), key=lambda i: (-(exact_values[i] - floors[i]), i))
    for i in order[:missing]:
        floors[i] += CENT
    return tuple(floors)


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class Discount:
    """Discount: a percentage of the subtotal or a flat amount."""
    kind: str
    value: Decimal

    @classmethod
    def percent(cls, value) -> 'Discount':
        return cls(PERCENT, to_decimal(value, 'discount.value'))

    @classmethod
    def amount(cls, value) -> 'Discount':
        return cls(AMOUNT, to_decimal(value, 'discount.value'))


@dataclass(frozen=True)
class TaxRate:
    name: str
    rate: Decimal


@dataclass(frozen=True)
class TaxLine:
    name: str
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class Breakdown:
    """Structured result of the pricing engine."""
    line_subtotals: Tuple[Decimal, ...]
    subtotal: Decimal
    discount: Decimal
    discounted_subtotal: Decimal
    taxes: Tuple[TaxLine, ...]
    tax_total: Decimal
    shipping: Decimal
    total: Decimal

    def rounded(self) -> 'Breakdown':
        """
        Two-decimal view that still adds up.

        Subtotal, discounted subtotal, shipping and total are rounded half-up
        from their exact values. Discount and tax total are the differences
        between them, and line subtotals and tax lines are spread over those
        figures by largest remainder, so that
        total == subtotal - discount + sum(taxes) + shipping holds exactly.
        """
        subtotal = round_money(self.subtotal)
        discounted_subtotal = round_money(self.discounted_subtotal)
        shipping = round_money(self.shipping)
        total = round_money(self.total)
        tax_total = total - discounted_subtotal - shipping
        tax_amounts = allocate_cents([t.amount for t in self.taxes], tax_total)
        return Breakdown(
            line_subtotals=allocate_cents(list(self.line_subtotals), subtotal),
            subtotal=subtotal,
            discount=subtotal - discounted_subtotal,
            discounted_subtotal=discounted_subtotal,
            taxes=tuple(TaxLine(t.name, t.rate, amount) for t, amount in zip(self.taxes, tax_amounts)),
            tax_total=tax_total,
            shipping=shipping,
            total=total,
        )

    def to_dict(self) -> dict:
        view = self.rounded()
        return {
            'line_subtotals': [str(v) for v in view.line_subtotals],
            'subtotal': str(view.subtotal),
            'discount': str(view.discount),
            'discounted_subtotal': str(view.discounted_subtotal),
            'taxes': [
                {'name': t.name, 'rate': str(t.rate), 'amount': str(t.amount)}
                for t in view.taxes
            ],
            'tax_total': str(view.tax_total),
            'shipping': str(view.shipping),
            'total': str(view.total),
        }


def _first(data: Mapping, *keys):
    for key in keys:
        if key in data:
            return data[key]
    return None


def coerce_item(raw: Any, index: int) -> LineItem:
    """Build a validated LineItem from a LineItem or a request mapping."""
    prefix = f'items[{index}]'
    if isinstance(raw, LineItem):
        description, quantity, unit_price = raw.description, raw.quantity, raw.unit_price
    elif isinstance(raw, Mapping):
        description = raw.get('description') or ''
        quantity = _first(raw, 'quantity', 'qty')
        unit_price = _first(raw, 'unit_price', 'unitPrice', 'price')
    else:
        raise ValidationError(prefix, 'expected an object with quantity and unit_price')

    quantity = check_places(to_decimal(quantity, f'{prefix}.quantity'), QUANTITY_PLACES, f'{prefix}.quantity')
    unit_price = check_places(to_decimal(unit_price, f'{prefix}.unit_price'), MONEY_PLACES, f'{prefix}.unit_price')
    if quantity <= 0:
        raise ValidationError(f'{prefix}.quantity', 'must be greater than 0')
    if unit_price < 0:
        raise ValidationError(f'{prefix}.unit_price', 'cannot be negative')
    return LineItem(str(description).strip(), quantity, unit_price)


def coerce_discount(raw: Any) -> Optional[Discount]:
    """Accept a Discount, a {'type', 'value'} mapping or None."""
    if raw is None:
        return None
    if isinstance(raw, Discount):
        kind, value = raw.kind, raw.value
    elif isinstance(raw, Mapping):
        kind = _first(raw, 'type', 'kind') or PERCENT
        value = raw.get('value', 0)
    else:
        raise ValidationError('discount', 'expected {"type": "percent"|"amount", "value": ...}')

    kind = getattr(kind, 'value', kind)
    if kind not in (PERCENT, AMOUNT):
        raise ValidationError('discount.type', f'unknown discount type {kind!r}')
    value = check_places(to_decimal(value, 'discount.value'), MONEY_PLACES, 'discount.value')
    if value < 0:
        raise ValidationError('discount.value', 'cannot be negative')
    if kind == PERCENT and value > HUNDRED:
        raise ValidationError('discount.value', 'percentage must be between 0 and 100')
    return Discount(kind, value)


def coerce_tax_rate(raw: Any, index: int) -> TaxRate:
    """Accept a TaxRate, {'name', 'rate'}, (name, rate) or a bare percentage."""
    prefix = f'tax_rates[{index}]'
    if isinstance(raw, TaxRate):
        name, rate = raw.name, raw.rate
    elif isinstance(raw, Mapping):
        name, rate = raw.get('name'), raw.get('rate')
    elif isinstance(raw, (tuple, list)) and len(raw) == 2:
        name, rate = raw
    else:
        name, rate = None, raw

    rate = check_places(to_decimal(rate, f'{prefix}.rate'), RATE_PLACES, f'{prefix}.rate')
    if rate < 0 or rate > HUNDRED:
        raise ValidationError(f'{prefix}.rate', 'must be between 0 and 100')
    name = str(name).strip() if name else f'Tax {index + 1}'
    return TaxRate(name, rate)


def compute_totals(items: Iterable[Any], discount: Any = None,
                   tax_rates: Iterable[Any] = (), shipping: Any = 0) -> Breakdown:
    """
    Compute the pricing breakdown for a list of items.

    Args:
        items: LineItem objects or mappings with quantity/unit_price
        discount: Discount, {'type': 'percent'|'amount', 'value': n} or None
        tax_rates: TaxRate objects, mappings, (name, rate) pairs or numbers
        shipping: non-negative shipping charge

    Returns:
        Unrounded Breakdown

    Raises:
        ValidationError: naming the first offending field
    """
    line_items = [coerce_item(raw, index) for index, raw in enumerate(items)]
    discount = coerce_discount(discount)
    rates = [coerce_tax_rate(raw, index) for index, raw in enumerate(tax_rates or ())]

    names = [rate.name for rate in rates]
    for index, name in enumerate(names):
        if name in names[:index]:
            raise ValidationError(f'tax_rates[{index}].name', f'duplicate tax {name!r}')

    shipping = check_places(to_decimal(shipping if shipping is not None else 0, 'shipping'), MONEY_PLACES, 'shipping')
    if shipping < 0:
        raise ValidationError('shipping', 'cannot be negative')

    # 1. Subtotal
    line_subtotals = tuple(item.subtotal for item in line_items)
    subtotal = sum(line_subtotals, ZERO)

    # 2. Discount, clamped at the subtotal
    if discount is None:
        discount_amount = ZERO
    elif discount.kind == PERCENT:
        discount_amount = subtotal * discount.value / HUNDRED
    else:
        discount_amount = discount.value
    discount_amount = min(discount_amount, subtotal)
    discounted_subtotal = subtotal - discount_amount

    # 3. Taxes on the discounted subtotal, each independent
    taxes = tuple(
        TaxLine(rate.name, rate.rate, discounted_subtotal * rate.rate / HUNDRED)
        for rate in rates
    )
    tax_total = sum((tax.amount for tax in taxes), ZERO)

    # 4-5. Shipping and total
    total = discounted_subtotal + tax_total + shipping

    return Breakdown(
        line_subtotals=line_subtotals,
        subtotal=subtotal,
        discount=discount_amount,
        discounted_subtotal=discounted_subtotal,
        taxes=taxes,
        tax_total=tax_total,
        shipping=shipping,
        total=total,
    )

"""Line-item financial calculator.

Turns billable line items plus discount/tax percentages and the amount paid
into a fully itemised FinancialSummary. The discount is always taken off the
pre-tax subtotal before tax is computed.

The calculator never fails: malformed numeric input degrades to zero.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal, localcontext
from typing import Any

from services.billing.money import exact_context, to_decimal
from services.billing.schema import FinancialSummary, LineItem, LineTotal

ZERO = Decimal("0")
HUNDRED = Decimal("100")

__all__ = ["compute_summary", "to_decimal"]


def _as_line_item(item: LineItem | Mapping[str, Any]) -> LineItem:
    if isinstance(item, LineItem):
        return item
    return LineItem.model_validate(dict(item))


def compute_summary(
    items: Iterable[LineItem | Mapping[str, Any]],
    discount_percentage: Any = 0,
    tax_percentage: Any = 0,
    amount_paid: Any = 0,
) -> FinancialSummary:
    """Compute the financial summary of a draft or finalized document.

    Order of operations is fixed:
    1. line total = quantity x unit price, summed into the subtotal
    2. discount = subtotal x discount% / 100
    3. subtotal after discount = max(0, subtotal - discount)
    4. tax = subtotal after discount x tax% / 100
    5. grand total = subtotal after discount + tax
    6. balance due = grand total - amount paid (may be negative)

    Out-of-range percentages are tolerated as given; clamping belongs to
    the caller.

    Args:
        items: Line items in entry order (LineItem models or plain mappings)
        discount_percentage: Discount percentage (blank/absent -> 0)
        tax_percentage: Tax percentage (blank/absent -> 0)
        amount_paid: Amount already paid (blank/absent -> 0)

    Returns:
        FinancialSummary derived purely from the inputs
    """
    discount_pct = to_decimal(discount_percentage)
    tax_pct = to_decimal(tax_percentage)
    paid = to_decimal(amount_paid)

    line_items = [_as_line_item(raw) for raw in items]
    operands = [discount_pct, tax_pct, paid, HUNDRED, HUNDRED]
    for item in line_items:
        operands.extend((item.quantity, item.unit_price))

    line_totals: list[LineTotal] = []
    sub_total = ZERO
    with localcontext(exact_context(*operands)):
        for item in line_items:
            total = item.computed_total
            line_totals.append(
                LineTotal(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    computed_total=total,
                )
            )
            sub_total += total

        discount_amount = sub_total * discount_pct / HUNDRED
        sub_total_after_discount = max(ZERO, sub_total - discount_amount)
        tax_amount = sub_total_after_discount * tax_pct / HUNDRED
        grand_total = sub_total_after_discount + tax_amount
        balance_due = grand_total - paid

    return FinancialSummary(
        line_totals=line_totals,
        sub_total=sub_total,
        discount_percentage=discount_pct,
        discount_amount=discount_amount,
        sub_total_after_discount=sub_total_after_discount,
        tax_percentage=tax_pct,
        tax_amount=tax_amount,
        grand_total=grand_total,
        amount_paid=paid,
        balance_due=balance_due,
    )

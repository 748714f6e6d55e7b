"""Line item and invoice total calculation.

Pure functions over Decimal: nothing here rounds, clamps or touches storage.
A discount larger than subtotal + tax yields a negative total on purpose; the
invoice aggregate is the one that rejects it.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from pydantic import BaseModel

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class LineAmounts(BaseModel):
    description: str
    quantity: Decimal
    rate: Decimal
    tax_rate: Decimal
    amount: Decimal
    tax_amount: Decimal


class InvoiceTotals(BaseModel):
    lines: List[LineAmounts]
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def to_money(value: Decimal) -> Decimal:
    """Quantize to cents for storage"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def line_amount(quantity: Decimal, rate: Decimal) -> Decimal:
    return quantity * rate


def line_tax(amount: Decimal, tax_rate: Decimal) -> Decimal:
    return amount * tax_rate / HUNDRED


def calculate_totals(items: Iterable, discount_amount: Decimal = ZERO) -> InvoiceTotals:
    """
    Compute line amounts, subtotal, tax and grand total.

    ``items`` are objects exposing ``description``, ``quantity``, ``rate`` and
    ``tax_rate`` (e.g. LineItemIn). Inputs are assumed validated upstream.
    """
    lines = []
    subtotal = ZERO
    tax_total = ZERO

    for item in items:
        tax_rate = item.tax_rate if item.tax_rate is not None else ZERO
        amount = line_amount(item.quantity, item.rate)
        tax = line_tax(amount, tax_rate)

        subtotal += amount
        tax_total += tax

        lines.append(LineAmounts(
            description=item.description,
            quantity=item.quantity,
            rate=item.rate,
            tax_rate=tax_rate,
            amount=amount,
            tax_amount=tax,
        ))

    discount = discount_amount or ZERO
    return InvoiceTotals(
        lines=lines,
        subtotal=subtotal,
        tax_amount=tax_total,
        discount_amount=discount,
        total_amount=subtotal + tax_total - discount,
    )

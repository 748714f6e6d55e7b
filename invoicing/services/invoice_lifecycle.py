"""Invoice status machine and aggregate rules.

draft -> sent -> viewed -> paid, with sent/viewed able to fall overdue and
draft/sent able to be cancelled. Paid and cancelled invoices are frozen.
Every write path calls ``recompute_status`` before the invoice is flushed.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from invoicing.core.exceptions import InvalidStateError, ValidationError
from invoicing.models.enums import InvoiceStatus, ReminderType, SendMethod
from invoicing.models.invoice import Invoice
from invoicing.services.calculator import InvoiceTotals, to_money

ALLOWED_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED, InvoiceStatus.PAID}),
    InvoiceStatus.SENT: frozenset({
        InvoiceStatus.SENT,
        InvoiceStatus.VIEWED,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
        InvoiceStatus.PAID,
    }),
    InvoiceStatus.VIEWED: frozenset({InvoiceStatus.SENT, InvoiceStatus.OVERDUE, InvoiceStatus.PAID}),
    InvoiceStatus.OVERDUE: frozenset({InvoiceStatus.SENT, InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

FROZEN_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(invoice: Invoice, target: InvoiceStatus) -> None:
    if not can_transition(invoice.status, target):
        raise InvalidStateError(
            f"Cannot move invoice from {invoice.status.value} to {target.value}",
            {"invoice_id": invoice.id, "status": invoice.status.value, "target": target.value}
        )


def ensure_mutable(invoice: Invoice, action: str) -> None:
    """Paid and cancelled invoices accept no edits"""
    if invoice.status in FROZEN_STATUSES:
        raise InvalidStateError(
            f"Cannot {action} a {invoice.status.value} invoice",
            {"invoice_id": invoice.id, "status": invoice.status.value}
        )


def serialize_lines(totals: InvoiceTotals) -> list:
    return [
        {
            "description": line.description,
            "quantity": str(line.quantity),
            "rate": str(line.rate),
            "tax_rate": str(line.tax_rate),
            "amount": str(to_money(line.amount)),
            "tax_amount": str(to_money(line.tax_amount)),
        }
        for line in totals.lines
    ]


def apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
    """Store recomputed totals, enforcing 0 <= paid <= total"""
    total = to_money(totals.total_amount)
    if total < 0:
        raise ValidationError(
            "Discount exceeds invoice subtotal plus tax",
            {"total_amount": str(total)}
        )

    paid = invoice.paid_amount if invoice.paid_amount is not None else Decimal("0")
    if total < paid:
        raise ValidationError(
            "Invoice total cannot be less than the amount already paid",
            {"total_amount": str(total), "paid_amount": str(paid)}
        )

    invoice.items = serialize_lines(totals)
    invoice.subtotal = to_money(totals.subtotal)
    invoice.tax_amount = to_money(totals.tax_amount)
    invoice.discount_amount = to_money(totals.discount_amount)
    invoice.total_amount = total


def recompute_status(invoice: Invoice, now: datetime) -> InvoiceStatus:
    """
    Derive remaining balance and apply the automatic transitions.

    Runs on every write, including ones that touched neither total nor paid
    amount; the recomputation is idempotent when the invariant already holds.
    The automatic flips go through the same transition table as explicit ones.
    """
    invoice.remaining_amount = invoice.total_amount - invoice.paid_amount

    if invoice.status == InvoiceStatus.CANCELLED:
        return invoice.status

    if invoice.paid_amount >= invoice.total_amount and invoice.status != InvoiceStatus.PAID:
        ensure_transition(invoice, InvoiceStatus.PAID)
        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
    elif (
        invoice.due_date < now.date()
        and invoice.status == InvoiceStatus.SENT
        and invoice.paid_amount < invoice.total_amount
    ):
        ensure_transition(invoice, InvoiceStatus.OVERDUE)
        invoice.status = InvoiceStatus.OVERDUE

    return invoice.status


def mark_sent(invoice: Invoice, now: datetime, sent_to: Optional[str], method: SendMethod) -> None:
    ensure_mutable(invoice, "send")
    ensure_transition(invoice, InvoiceStatus.SENT)

    invoice.sent_history = list(invoice.sent_history or []) + [{
        "sent_date": now.isoformat(),
        "sent_to": sent_to,
        "method": method.value,
    }]
    invoice.status = InvoiceStatus.SENT
    recompute_status(invoice, now)


def mark_viewed(invoice: Invoice, now: datetime) -> bool:
    """Record the first view; only a sent invoice changes status"""
    changed = False
    if invoice.status == InvoiceStatus.SENT:
        invoice.status = InvoiceStatus.VIEWED
        changed = True
    if invoice.viewed_at is None and invoice.status != InvoiceStatus.DRAFT:
        invoice.viewed_at = now
        changed = True
    if changed:
        recompute_status(invoice, now)
    return changed


def cancel(invoice: Invoice, now: datetime) -> None:
    ensure_mutable(invoice, "cancel")
    ensure_transition(invoice, InvoiceStatus.CANCELLED)
    invoice.status = InvoiceStatus.CANCELLED
    recompute_status(invoice, now)


def add_reminder(invoice: Invoice, now: datetime, reminder_type: ReminderType) -> dict:
    ensure_mutable(invoice, "remind about")
    if invoice.status == InvoiceStatus.DRAFT:
        raise InvalidStateError(
            "Cannot send a reminder for a draft invoice",
            {"invoice_id": invoice.id}
        )

    reminder = {
        "type": reminder_type.value,
        "sent_date": now.isoformat(),
        "days_overdue": max(0, (now.date() - invoice.due_date).days),
    }
    invoice.reminders = list(invoice.reminders or []) + [reminder]
    recompute_status(invoice, now)
    return reminder

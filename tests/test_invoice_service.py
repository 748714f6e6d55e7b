from datetime import date
from decimal import Decimal

import pytest

from conftest import NOW, invoice_payload, run
from invoicing.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from invoicing.models import InvoiceStatus, SendMethod
from invoicing.schemas.invoice import InvoiceUpdate, LineItemIn, PaymentCreate, SendInvoiceRequest


def lines(quantity, rate, tax_rate="0"):
    return [LineItemIn(description="Work", quantity=Decimal(quantity), rate=Decimal(rate), tax_rate=Decimal(tax_rate))]


def test_create_invoice_computes_totals_and_ledger(services, seed, load_client) -> None:
    ids = seed()

    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    assert invoice.subtotal == Decimal("200.00")
    assert invoice.tax_amount == Decimal("20.00")
    assert invoice.total_amount == Decimal("220.00")
    assert invoice.remaining_amount == Decimal("220.00")
    assert invoice.paid_amount == Decimal("0")
    assert invoice.status == InvoiceStatus.DRAFT
    assert invoice.invoice_number == "INV-0001"
    assert invoice.currency == "INR"

    client = load_client(ids.client_id)
    assert client.total_invoiced == Decimal("220.00")
    assert client.total_outstanding == Decimal("220.00")
    assert client.total_paid == Decimal("0")


def test_create_rejects_due_before_issue(services, seed, load_client) -> None:
    ids = seed()

    with pytest.raises(ValidationError):
        run(services.invoices.create_invoice(
            invoice_payload(ids.client_id, issue_date=date(2026, 2, 1), due_date=date(2026, 1, 1)),
            ids.user_id,
        ))
    assert load_client(ids.client_id).total_invoiced == Decimal("0")


def test_create_requires_owned_client(services, seed) -> None:
    owner = seed(email="a@example.com")
    other = seed(email="b@example.com", client_email="theirs@example.com")

    with pytest.raises(NotFoundError):
        run(services.invoices.create_invoice(invoice_payload(other.client_id), owner.user_id))


def test_create_rejects_discount_above_total(services, seed) -> None:
    ids = seed()

    with pytest.raises(ValidationError, match="Discount exceeds"):
        run(services.invoices.create_invoice(invoice_payload(ids.client_id, discount="500"), ids.user_id))


def test_explicit_duplicate_number_is_conflict(services, seed) -> None:
    ids = seed()
    run(services.invoices.create_invoice(invoice_payload(ids.client_id, invoice_number="X-1"), ids.user_id))

    with pytest.raises(ConflictError):
        run(services.invoices.create_invoice(invoice_payload(ids.client_id, invoice_number="X-1"), ids.user_id))


def test_update_items_recomputes_and_adjusts_ledger(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    updated = run(services.invoices.update_invoice(
        invoice.id,
        InvoiceUpdate(items=lines("3", "100", "10"), notes="Revised scope"),
        ids.user_id,
    ))

    assert updated.total_amount == Decimal("330.00")
    assert updated.remaining_amount == Decimal("330.00")
    assert updated.notes == "Revised scope"
    assert updated.invoice_number == invoice.invoice_number

    client = load_client(ids.client_id)
    assert client.total_invoiced == Decimal("330.00")
    assert client.total_outstanding == Decimal("330.00")


def test_update_discount_only_keeps_items(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    updated = run(services.invoices.update_invoice(
        invoice.id, InvoiceUpdate(discount_amount=Decimal("20")), ids.user_id
    ))

    assert updated.subtotal == Decimal("200.00")
    assert updated.total_amount == Decimal("200.00")
    assert len(updated.items) == 1


def test_update_without_money_fields_still_recomputes_remaining(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("20")), ids.user_id))

    updated = run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(template="modern"), ids.user_id))

    assert updated.template == "modern"
    assert updated.remaining_amount == updated.total_amount - updated.paid_amount == Decimal("200.00")


def test_update_rejected_for_paid_invoice(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("220")), ids.user_id))

    with pytest.raises(InvalidStateError, match="Cannot update a paid invoice"):
        run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(notes="late edit"), ids.user_id))


def test_update_rejects_changed_invoice_number(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    with pytest.raises(ValidationError):
        run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(invoice_number="HACK-1"), ids.user_id))

    same = run(services.invoices.update_invoice(
        invoice.id, InvoiceUpdate(invoice_number=invoice.invoice_number), ids.user_id
    ))
    assert same.invoice_number == invoice.invoice_number


def test_update_total_below_paid_is_rejected(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("150")), ids.user_id))

    with pytest.raises(ValidationError):
        run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(items=lines("1", "100")), ids.user_id))
    assert load_client(ids.client_id).total_invoiced == Decimal("220.00")


def test_moving_invoice_to_another_client_moves_ledger(services, seed, session_factory, load_client) -> None:
    from invoicing.models import Client

    ids = seed()

    async def add_second_client():
        async with session_factory() as session:
            async with session.begin():
                client = Client(user_id=ids.user_id, name="Initech", email="initech@example.com")
                session.add(client)
                await session.flush()
                return client.id

    second_id = run(add_second_client())
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("20")), ids.user_id))

    run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(client_id=second_id), ids.user_id))

    first, second = load_client(ids.client_id), load_client(second_id)
    assert (first.total_invoiced, first.total_paid, first.total_outstanding) == (Decimal("0"), Decimal("0"), Decimal("0"))
    assert second.total_invoiced == Decimal("220.00")
    assert second.total_paid == Decimal("20.00")
    assert second.total_outstanding == Decimal("200.00")


def test_delete_reverses_invoiced_and_keeps_received_money(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("20")), ids.user_id))

    run(services.invoices.delete_invoice(invoice.id, ids.user_id))

    client = load_client(ids.client_id)
    assert client.total_invoiced == Decimal("0")
    assert client.total_outstanding == Decimal("0")
    assert client.total_paid == Decimal("20.00")
    assert run(services.clients.reconcile(ids.user_id))[1] == []
    with pytest.raises(NotFoundError):
        run(services.queries.invoice_document(invoice.id, ids.user_id))


def test_delete_rejected_for_paid_invoice(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("220")), ids.user_id))

    with pytest.raises(InvalidStateError, match="Cannot delete a paid invoice"):
        run(services.invoices.delete_invoice(invoice.id, ids.user_id))
    assert load_client(ids.client_id).total_paid == Decimal("220.00")


def test_send_defaults_recipient_to_client_email(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    sent = run(services.invoices.mark_sent(invoice.id, SendInvoiceRequest(), ids.user_id))

    assert sent.status == InvoiceStatus.SENT
    assert sent.sent_history[0]["sent_to"] == "client@example.com"
    assert sent.sent_history[0]["method"] == SendMethod.EMAIL.value


def test_send_past_due_invoice_lands_overdue(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(
        invoice_payload(ids.client_id, issue_date=date(2025, 11, 1), due_date=date(2025, 12, 1)),
        ids.user_id,
    ))

    sent = run(services.invoices.mark_sent(invoice.id, SendInvoiceRequest(), ids.user_id))

    assert sent.status == InvoiceStatus.OVERDUE
    assert len(sent.sent_history) == 1


def test_cancelled_invoice_rejects_updates(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    cancelled = run(services.invoices.cancel_invoice(invoice.id, ids.user_id))

    assert cancelled.status == InvoiceStatus.CANCELLED
    with pytest.raises(InvalidStateError):
        run(services.invoices.update_invoice(invoice.id, InvoiceUpdate(notes="x"), ids.user_id))


def test_zero_total_invoice_is_paid_on_creation(services, seed) -> None:
    ids = seed()

    invoice = run(services.invoices.create_invoice(
        invoice_payload(ids.client_id, items=lines("1", "0")), ids.user_id
    ))

    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_at == NOW

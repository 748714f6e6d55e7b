from decimal import Decimal

import pytest

from conftest import NOW, invoice_payload, run
from invoicing.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from invoicing.models import Client, InvoiceStatus, PaymentMethod, PaymentRequestStatus
from invoicing.schemas.invoice import PaymentCreate
from invoicing.schemas.payment_request import PaymentRequestCreate


def portal_client(ids):
    return Client(id=ids.client_id, user_id=ids.user_id, email="client@example.com")


def submit(services, ids, invoice_id, amount, **extra):
    return run(services.requests.submit(
        invoice_id,
        PaymentRequestCreate(amount=Decimal(amount), **extra),
        portal_client(ids),
        [ids.client_id],
    ))


def test_submission_does_not_touch_invoice_or_ledger(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    request = submit(services, ids, invoice.id, "100", transaction_id="UTR-1")

    assert request.status == PaymentRequestStatus.PENDING
    assert request.method == PaymentMethod.CASH
    assert request.date == NOW.date()
    assert request.business_user_id == ids.user_id
    document = run(services.queries.invoice_document(invoice.id, ids.user_id))
    assert document.invoice.paid_amount == Decimal("0")
    assert load_client(ids.client_id).total_paid == Decimal("0")


def test_submission_over_remaining_is_rejected(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    with pytest.raises(ValidationError):
        submit(services, ids, invoice.id, "300")
    assert run(services.requests.list_for_business(ids.user_id)) == []


def test_submission_requires_own_invoice(services, seed) -> None:
    ids = seed()
    other = seed(email="b@example.com", client_email="someone@example.com")
    foreign = run(services.invoices.create_invoice(invoice_payload(other.client_id), other.user_id))

    with pytest.raises(NotFoundError):
        submit(services, ids, foreign.id, "10")


def test_approve_applies_exact_amount(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "100", notes="Paid at counter")

    approved, updated = run(services.requests.approve(request.id, ids.user_id))

    assert approved.status == PaymentRequestStatus.APPROVED
    assert approved.reviewed_by == ids.user_id
    assert approved.reviewed_at == NOW
    assert updated.paid_amount == Decimal("100.00")
    assert updated.remaining_amount == Decimal("120.00")
    assert updated.payments[-1].notes == "Client submitted: Paid at counter"
    assert updated.payments[-1].payment_method == PaymentMethod.CASH

    client = load_client(ids.client_id)
    assert client.total_paid == Decimal("100.00")
    assert client.total_outstanding == Decimal("120.00")


def test_submitted_method_carries_into_payment(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "40", method=PaymentMethod.UPI)

    assert request.method == PaymentMethod.UPI
    _, updated = run(services.requests.approve(request.id, ids.user_id))
    assert updated.payments[-1].payment_method == PaymentMethod.UPI


def test_approve_revalidates_against_current_balance(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "200")
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("100")), ids.user_id))

    with pytest.raises(ValidationError, match="exceeds remaining balance"):
        run(services.requests.approve(request.id, ids.user_id))

    pending = run(services.requests.list_for_business(ids.user_id))
    assert [row[0].id for row in pending] == [request.id]
    assert load_client(ids.client_id).total_paid == Decimal("100.00")


def test_approval_can_complete_invoice(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "220")

    _, updated = run(services.requests.approve(request.id, ids.user_id))

    assert updated.status == InvoiceStatus.PAID
    assert updated.payments[-1].notes == "Client-submitted payment approved"


def test_reject_has_no_monetary_effect(services, seed, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "100")

    rejected = run(services.requests.reject(request.id, ids.user_id))

    assert rejected.status == PaymentRequestStatus.REJECTED
    assert rejected.reviewed_by == ids.user_id
    document = run(services.queries.invoice_document(invoice.id, ids.user_id))
    assert document.invoice.paid_amount == Decimal("0")
    assert document.invoice.payment_history == []
    client = load_client(ids.client_id)
    assert client.total_paid == Decimal("0")
    assert client.total_outstanding == Decimal("220.00")


def test_reviewed_requests_are_terminal(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    approved = submit(services, ids, invoice.id, "10")
    rejected = submit(services, ids, invoice.id, "10")
    run(services.requests.approve(approved.id, ids.user_id))
    run(services.requests.reject(rejected.id, ids.user_id))

    for request_id in (approved.id, rejected.id):
        with pytest.raises(InvalidStateError, match="not pending"):
            run(services.requests.approve(request_id, ids.user_id))
        with pytest.raises(InvalidStateError):
            run(services.requests.reject(request_id, ids.user_id))


def test_other_business_cannot_review(services, seed) -> None:
    ids = seed()
    other = seed(email="b@example.com", client_email="x@example.com")
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    request = submit(services, ids, invoice.id, "10")

    with pytest.raises(NotFoundError):
        run(services.requests.approve(request.id, other.user_id))


def test_listing_includes_labels(services, seed) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    submit(services, ids, invoice.id, "10")

    business_rows = run(services.requests.list_for_business(ids.user_id, None))
    client_rows = run(services.requests.list_for_client(ids.client_id))

    assert business_rows[0][1] == invoice.invoice_number
    assert business_rows[0][2] == "Globex"
    assert len(client_rows) == 1

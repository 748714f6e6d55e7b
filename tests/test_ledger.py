from decimal import Decimal

from sqlalchemy import update

from conftest import invoice_payload, run
from invoicing.models import Client
from invoicing.schemas.invoice import InvoiceUpdate, LineItemIn, PaymentCreate
from invoicing.schemas.payment_request import PaymentRequestCreate


def corrupt_ledger(session_factory, client_id, **values):
    async def _corrupt():
        async with session_factory() as session:
            async with session.begin():
                await session.execute(update(Client).where(Client.id == client_id).values(**values))

    run(_corrupt())


def test_ledger_matches_invoices_after_mixed_operations(services, seed) -> None:
    ids = seed()
    first = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    second = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    third = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    run(services.payments.apply_payment(first.id, PaymentCreate(amount=Decimal("220")), ids.user_id))
    run(services.payments.apply_payment(second.id, PaymentCreate(amount=Decimal("50")), ids.user_id))
    run(services.invoices.update_invoice(
        second.id,
        InvoiceUpdate(items=[LineItemIn(description="Resized", quantity=Decimal("1"), rate=Decimal("80"))]),
        ids.user_id,
    ))
    request = run(services.requests.submit(
        second.id, PaymentRequestCreate(amount=Decimal("30")), Client(id=ids.client_id), [ids.client_id]
    ))
    run(services.requests.approve(request.id, ids.user_id))
    run(services.invoices.delete_invoice(third.id, ids.user_id))

    checked, drifts = run(services.clients.reconcile(ids.user_id))

    assert checked == 1
    assert drifts == []
    stats = run(services.queries.client_stats(ids.client_id, ids.user_id))
    assert stats.total_invoiced == Decimal("300.00")
    assert stats.total_paid == Decimal("300.00")
    assert stats.total_outstanding == Decimal("0")


def test_reconcile_reports_drift_without_repairing(services, seed, session_factory, load_client) -> None:
    ids = seed()
    run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    corrupt_ledger(session_factory, ids.client_id, total_outstanding=Decimal("999"))

    _, drifts = run(services.clients.reconcile(ids.user_id))

    assert len(drifts) == 1
    assert drifts[0].client_id == ids.client_id
    assert drifts[0].recorded_outstanding == Decimal("999.00")
    assert drifts[0].actual_outstanding == Decimal("220.00")
    assert load_client(ids.client_id).total_outstanding == Decimal("999.00")


def test_reconcile_repair_restores_totals(services, seed, session_factory, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("20")), ids.user_id))
    corrupt_ledger(session_factory, ids.client_id, total_invoiced=Decimal("0"), total_paid=Decimal("5"))

    _, drifts = run(services.clients.reconcile(ids.user_id, repair=True))

    assert len(drifts) == 1
    client = load_client(ids.client_id)
    assert client.total_invoiced == Decimal("220.00")
    assert client.total_paid == Decimal("20.00")
    assert client.total_outstanding == Decimal("200.00")
    assert run(services.clients.reconcile(ids.user_id))[1] == []


def test_deleting_partly_paid_invoice_is_not_drift(services, seed, load_client) -> None:
    ids = seed()
    kept = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    dropped = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(kept.id, PaymentCreate(amount=Decimal("100")), ids.user_id))
    run(services.payments.apply_payment(dropped.id, PaymentCreate(amount=Decimal("20")), ids.user_id))

    run(services.invoices.delete_invoice(dropped.id, ids.user_id))

    assert run(services.clients.reconcile(ids.user_id))[1] == []
    client = load_client(ids.client_id)
    assert client.total_invoiced == Decimal("220.00")
    assert client.total_paid == Decimal("120.00")
    assert client.total_outstanding == Decimal("120.00")


def test_paid_below_invoice_payments_is_drift(services, seed, session_factory, load_client) -> None:
    ids = seed()
    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))
    run(services.payments.apply_payment(invoice.id, PaymentCreate(amount=Decimal("50")), ids.user_id))
    corrupt_ledger(session_factory, ids.client_id, total_paid=Decimal("10"))

    _, drifts = run(services.clients.reconcile(ids.user_id, repair=True))

    assert len(drifts) == 1
    assert drifts[0].recorded_paid == Decimal("10.00")
    assert drifts[0].actual_paid == Decimal("50.00")
    assert load_client(ids.client_id).total_paid == Decimal("50.00")

from datetime import datetime, timezone

import pytest

from conftest import NOW, invoice_payload, run
from invoicing.core.exceptions import ConflictError
from invoicing.models import User
from invoicing.services.numbering import InvoiceNumberingService, NumberingConfig


def test_format_and_prefix_resolution() -> None:
    numbering = InvoiceNumberingService(NumberingConfig(default_prefix="INV", padding=4))

    assert numbering.format_number("INV", 7) == "INV-0007"
    assert numbering.format_number("INV", 12345) == "INV-12345"
    assert numbering.resolve_prefix(None) == "INV"
    assert numbering.resolve_prefix(User(invoice_prefix="ACME")) == "ACME"
    assert numbering.resolve_prefix(User(invoice_prefix=None)) == "INV"


def test_fallback_number_is_timestamp_suffixed() -> None:
    moment = datetime(2026, 1, 1, tzinfo=timezone.utc)
    numbering = InvoiceNumberingService(NumberingConfig(), clock=lambda: moment)

    assert numbering.fallback_number("INV") == f"INV-{int(moment.timestamp() * 1000)}"


def test_sequential_numbers_per_business(services, seed) -> None:
    first = seed(email="a@example.com", invoice_prefix="ACME")
    second = seed(email="b@example.com", client_email="other@example.com")

    numbers = [
        run(services.invoices.create_invoice(invoice_payload(first.client_id), first.user_id)).invoice_number,
        run(services.invoices.create_invoice(invoice_payload(first.client_id), first.user_id)).invoice_number,
        run(services.invoices.create_invoice(invoice_payload(second.client_id), second.user_id)).invoice_number,
    ]

    assert numbers == ["ACME-0001", "ACME-0002", "INV-0001"]


def test_collision_falls_back_to_timestamp_number(services, seed) -> None:
    ids = seed()
    # Occupies the number the count-based sequence will produce next
    run(services.invoices.create_invoice(invoice_payload(ids.client_id, invoice_number="INV-0002"), ids.user_id))

    invoice = run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

    assert invoice.invoice_number.startswith("INV-")
    assert invoice.invoice_number != "INV-0002"
    assert len(invoice.invoice_number) > len("INV-0002")


def test_second_collision_is_a_conflict(services, seed) -> None:
    ids = seed()
    # Two invoices make the sequence produce INV-0003; the fallback is taken too
    run(services.invoices.create_invoice(invoice_payload(ids.client_id, invoice_number="INV-0003"), ids.user_id))
    run(services.invoices.create_invoice(
        invoice_payload(ids.client_id, invoice_number=f"INV-{int(NOW.timestamp() * 1000)}"), ids.user_id
    ))

    with pytest.raises(ConflictError, match="Could not assign a unique invoice number"):
        run(services.invoices.create_invoice(invoice_payload(ids.client_id), ids.user_id))

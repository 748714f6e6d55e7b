from decimal import Decimal


def test_requires_authentication(api) -> None:
    response = api.get("/api/invoices")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_ERROR"


def test_create_and_fetch_invoice(api, business, create_client, create_invoice) -> None:
    owner = business(businessName="Acme Studio", invoicePrefix="ACME")
    client = create_client(owner.headers)

    invoice = create_invoice(owner.headers, client["id"], notes="Thanks")

    assert invoice["invoice_number"] == "ACME-0001"
    assert Decimal(invoice["subtotal"]) == Decimal("200")
    assert Decimal(invoice["tax_amount"]) == Decimal("20")
    assert Decimal(invoice["total_amount"]) == Decimal("220")
    assert Decimal(invoice["remaining_amount"]) == Decimal("220")
    assert invoice["status"] == "draft"

    response = api.get(f"/api/invoices/{invoice['id']}", headers=owner.headers)
    assert response.status_code == 200
    document = response.json()
    assert document["invoice"]["notes"] == "Thanks"
    assert document["client"]["email"] == "client@example.com"
    assert document["business"]["business_name"] == "Acme Studio"


def test_create_validation_errors(api, business, create_client) -> None:
    owner = business()
    client = create_client(owner.headers)

    no_items = api.post(
        "/api/invoices",
        json={"clientId": client["id"], "issueDate": "2026-01-10", "dueDate": "2026-02-10", "items": []},
        headers=owner.headers,
    )
    bad_dates = api.post(
        "/api/invoices",
        json={
            "clientId": client["id"],
            "issueDate": "2026-02-10",
            "dueDate": "2026-01-10",
            "items": [{"description": "x", "quantity": 1, "rate": 10}],
        },
        headers=owner.headers,
    )
    negative_rate = api.post(
        "/api/invoices",
        json={
            "clientId": client["id"],
            "issueDate": "2026-01-10",
            "dueDate": "2026-02-10",
            "items": [{"description": "x", "quantity": 1, "rate": -10}],
        },
        headers=owner.headers,
    )

    assert no_items.status_code == 400
    assert no_items.json()["error"]["code"] == "VALIDATION_ERROR"
    assert bad_dates.status_code == 400
    assert negative_rate.status_code == 400


def test_create_for_unknown_client_is_404(api, business) -> None:
    owner = business()

    response = api.post(
        "/api/invoices",
        json={
            "clientId": "missing",
            "issueDate": "2026-01-10",
            "dueDate": "2026-02-10",
            "items": [{"description": "x", "quantity": 1, "rate": 10}],
        },
        headers=owner.headers,
    )

    assert response.status_code == 404


def test_invoices_are_isolated_between_businesses(api, business, create_client, create_invoice) -> None:
    owner = business()
    intruder = business(email="intruder@example.com")
    invoice = create_invoice(owner.headers, create_client(owner.headers)["id"])

    assert api.get(f"/api/invoices/{invoice['id']}", headers=intruder.headers).status_code == 404
    assert api.delete(f"/api/invoices/{invoice['id']}", headers=intruder.headers).status_code == 404
    response = api.post(f"/api/invoices/{invoice['id']}/payment", json={"amount": 10}, headers=intruder.headers)
    assert response.status_code == 404


def test_payment_flow_updates_invoice_and_ledger(api, business, create_client, create_invoice) -> None:
    owner = business()
    client = create_client(owner.headers)
    invoice = create_invoice(owner.headers, client["id"])

    over = api.post(f"/api/invoices/{invoice['id']}/payment", json={"amount": 300}, headers=owner.headers)
    assert over.status_code == 400
    assert "exceeds remaining balance" in over.json()["error"]["message"]

    paid = api.post(
        f"/api/invoices/{invoice['id']}/payment",
        json={"amount": 220, "paymentMethod": "bank_transfer", "transactionId": "NEFT-9"},
        headers=owner.headers,
    )
    assert paid.status_code == 200
    body = paid.json()["invoice"]
    assert body["status"] == "paid"
    assert body["paid_at"] is not None
    assert Decimal(body["remaining_amount"]) == Decimal("0")
    assert body["payment_history"][0]["payment_method"] == "bank_transfer"

    ledger = api.get(f"/api/clients/{client['id']}", headers=owner.headers).json()
    assert Decimal(ledger["total_paid"]) == Decimal("220")
    assert Decimal(ledger["total_outstanding"]) == Decimal("0")


def test_paid_invoice_cannot_be_updated_or_deleted(api, business, create_client, create_invoice) -> None:
    owner = business()
    invoice = create_invoice(owner.headers, create_client(owner.headers)["id"])
    api.post(f"/api/invoices/{invoice['id']}/payment", json={"amount": 220}, headers=owner.headers)

    update = api.put(f"/api/invoices/{invoice['id']}", json={"notes": "edit"}, headers=owner.headers)
    delete = api.delete(f"/api/invoices/{invoice['id']}", headers=owner.headers)

    assert update.status_code == 400
    assert update.json()["error"]["message"] == "Cannot update a paid invoice"
    assert delete.status_code == 400


def test_update_rejects_unknown_fields(api, business, create_client, create_invoice) -> None:
    owner = business()
    invoice = create_invoice(owner.headers, create_client(owner.headers)["id"])

    response = api.put(
        f"/api/invoices/{invoice['id']}",
        json={"paidAmount": 220},
        headers=owner.headers,
    )

    assert response.status_code == 400
    fetched = api.get(f"/api/invoices/{invoice['id']}", headers=owner.headers).json()
    assert Decimal(fetched["invoice"]["paid_amount"]) == Decimal("0")


def test_send_cancel_and_remind(api, business, create_client, create_invoice) -> None:
    owner = business()
    client_id = create_client(owner.headers)["id"]
    first = create_invoice(owner.headers, client_id)
    second = create_invoice(owner.headers, client_id)

    sent = api.post(f"/api/invoices/{first['id']}/send", json={"method": "download"}, headers=owner.headers)
    assert sent.status_code == 200
    assert sent.json()["invoice"]["status"] == "sent"

    reminded = api.post(f"/api/invoices/{first['id']}/reminders", json={}, headers=owner.headers)
    assert reminded.status_code == 200
    assert len(reminded.json()["invoice"]["reminders"]) == 1

    draft_reminder = api.post(f"/api/invoices/{second['id']}/reminders", json={}, headers=owner.headers)
    assert draft_reminder.status_code == 400

    cancelled = api.post(f"/api/invoices/{second['id']}/cancel", headers=owner.headers)
    assert cancelled.json()["invoice"]["status"] == "cancelled"
    payment = api.post(f"/api/invoices/{second['id']}/payment", json={"amount": 1}, headers=owner.headers)
    assert payment.status_code == 400
    assert payment.json()["error"]["code"] == "INVALID_STATE"


def test_list_and_stats(api, business, create_client, create_invoice) -> None:
    owner = business()
    client_id = create_client(owner.headers)["id"]
    first = create_invoice(owner.headers, client_id)
    create_invoice(owner.headers, client_id)
    api.post(f"/api/invoices/{first['id']}/payment", json={"amount": 220}, headers=owner.headers)

    listing = api.get("/api/invoices", params={"status": "paid"}, headers=owner.headers).json()
    assert listing["total"] == 1
    assert listing["invoices"][0]["id"] == first["id"]
    assert listing["invoices"][0]["client"]["id"] == client_id

    paged = api.get("/api/invoices", params={"limit": 1, "page": 2}, headers=owner.headers).json()
    assert paged["total"] == 2
    assert paged["total_pages"] == 2
    assert len(paged["invoices"]) == 1

    stats = api.get("/api/invoices/stats/overview", headers=owner.headers).json()
    assert stats["total"] == 2
    assert stats["paid"] == 1
    assert stats["draft"] == 1
    assert Decimal(stats["outstanding_amount"]) == Decimal("220")


def test_delete_draft_invoice(api, business, create_client, create_invoice) -> None:
    owner = business()
    client = create_client(owner.headers)
    invoice = create_invoice(owner.headers, client["id"])

    response = api.delete(f"/api/invoices/{invoice['id']}", headers=owner.headers)

    assert response.status_code == 200
    assert api.get(f"/api/invoices/{invoice['id']}", headers=owner.headers).status_code == 404
    ledger = api.get(f"/api/clients/{client['id']}", headers=owner.headers).json()
    assert Decimal(ledger["total_invoiced"]) == Decimal("0")

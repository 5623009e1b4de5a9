from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from backend.app.core.errors import DependencyError
from backend.app.core.time import utc_today
from backend.app.db.base import Base
from backend.app.db.session import engine
from backend.app.main import app
from backend.app.services.notifications import InvoiceNotifier, get_notifier


class RecordingNotifier(InvoiceNotifier):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    def deliver(self, message):
        if self.fail:
            raise DependencyError("SMTP server unavailable")
        self.messages.append(message)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    fake = RecordingNotifier()
    app.dependency_overrides[get_notifier] = lambda: fake
    return fake


def register_and_login(client: TestClient, email: str, password: str = "password123") -> dict:
    client.post("/auth/register", json={"email": email, "password": password, "company_name": "Studio One"})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_client(client: TestClient, headers: dict, email: str = "billing@acme.example.com") -> int:
    resp = client.post("/clients", json={"name": "Acme", "email": email}, headers=headers)
    assert resp.status_code == 201
    return resp.json()["id"]


def create_invoice(client: TestClient, headers: dict, client_id: int, **overrides) -> dict:
    payload = {
        "client_id": client_id,
        "line_items": [
            {"description": "Design", "quantity": "2", "unit_price": "40.00"},
            {"description": "Hosting", "quantity": "1", "unit_price": "20.00"},
        ],
    }
    payload.update(overrides)
    resp = client.post("/invoices", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def send_invoice(client: TestClient, headers: dict, invoice_id: int) -> dict:
    resp = client.post(f"/invoices/{invoice_id}/send", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_requires_authentication():
    client = TestClient(app)
    assert client.get("/invoices").status_code in (401, 403)


def test_create_invoice_computes_totals_and_number():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)

    data = create_invoice(client, headers, client_id, tax_rate="10", discount_amount="5")
    assert data["status"] == "DRAFT"
    assert data["invoice_number"] == f"INV-{utc_today().year}-0001"
    assert data["subtotal"] == "100.00"
    assert data["tax_amount"] == "10.00"
    assert data["total"] == "105.00"
    assert data["currency"] == "USD"
    assert [item["sort_order"] for item in data["line_items"]] == [0, 1]
    assert data["activities"][0]["action"] == "CREATED"


def test_fractional_inputs_keep_totals_after_reload_and_edit():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    data = create_invoice(
        client,
        headers,
        client_id,
        tax_rate="7.125",
        line_items=[
            {"description": "Research", "quantity": "0.333", "unit_price": "3"},
            {"description": "Setup", "quantity": "1", "unit_price": "100"},
        ],
    )
    assert (data["subtotal"], data["tax_amount"], data["total"]) == ("101.00", "7.20", "108.20")

    reloaded = client.get(f"/invoices/{data['id']}", headers=headers).json()
    assert Decimal(reloaded["tax_rate"]) == Decimal("7.125")
    assert Decimal(reloaded["line_items"][0]["quantity"]) == Decimal("0.333")
    assert reloaded["total"] == "108.20"

    edited = client.patch(f"/invoices/{data['id']}", json={"notes": "hi"}, headers=headers)
    assert edited.status_code == 200
    body = edited.json()
    assert (body["subtotal"], body["tax_amount"], body["total"]) == ("101.00", "7.20", "108.20")


def test_inputs_finer_than_stored_precision_are_rejected():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    item = {"description": "x", "quantity": "1", "unit_price": "1"}

    fine_quantity = {"client_id": client_id, "line_items": [{**item, "quantity": "0.33333"}]}
    assert client.post("/invoices", json=fine_quantity, headers=headers).status_code == 422
    fine_tax = {"client_id": client_id, "tax_rate": "7.12345", "line_items": [item]}
    assert client.post("/invoices", json=fine_tax, headers=headers).status_code == 422
    fine_discount = {"client_id": client_id, "discount_amount": "0.005", "line_items": [item]}
    assert client.post("/invoices", json=fine_discount, headers=headers).status_code == 422


def test_invoice_numbers_are_sequential_per_owner():
    client = TestClient(app)
    owner_a = register_and_login(client, "a@example.com")
    owner_b = register_and_login(client, "b@example.com")
    client_a = create_client(client, owner_a)
    client_b = create_client(client, owner_b)

    numbers_a = [create_invoice(client, owner_a, client_a)["invoice_number"] for _ in range(3)]
    number_b = create_invoice(client, owner_b, client_b)["invoice_number"]

    assert [int(n.rsplit("-", 1)[-1]) for n in numbers_a] == [1, 2, 3]
    assert number_b.endswith("-0001")


def test_create_invoice_validation_errors():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)

    bad_tax = {"client_id": client_id, "tax_rate": "150", "line_items": [{"description": "x", "quantity": "1", "unit_price": "1"}]}
    assert client.post("/invoices", json=bad_tax, headers=headers).status_code == 400
    negative = {"client_id": client_id, "line_items": [{"description": "x", "quantity": "-1", "unit_price": "1"}]}
    assert client.post("/invoices", json=negative, headers=headers).status_code == 400
    missing_interval = {
        "client_id": client_id,
        "is_recurring": True,
        "line_items": [{"description": "x", "quantity": "1", "unit_price": "1"}],
    }
    assert client.post("/invoices", json=missing_interval, headers=headers).status_code == 400
    unknown_client = {"client_id": 999, "line_items": [{"description": "x", "quantity": "1", "unit_price": "1"}]}
    assert client.post("/invoices", json=unknown_client, headers=headers).status_code == 404


def test_list_invoices_is_owner_scoped_and_filtered():
    client = TestClient(app)
    owner = register_and_login(client, "owner@example.com")
    other = register_and_login(client, "other@example.com")
    client_id = create_client(client, owner)
    first = create_invoice(client, owner, client_id)
    create_invoice(client, owner, client_id)
    send_invoice(client, owner, first["id"])

    resp = client.get("/invoices", params={"page_size": 1}, headers=owner)
    assert resp.status_code == 200
    page = resp.json()
    assert page["total"] == 2
    assert page["total_pages"] == 2
    assert len(page["items"]) == 1

    sent = client.get("/invoices", params={"status": "SENT"}, headers=owner).json()
    assert [inv["id"] for inv in sent["items"]] == [first["id"]]

    assert client.get("/invoices", headers=other).json()["total"] == 0
    assert client.get(f"/invoices/{first['id']}", headers=other).status_code == 404


def test_update_and_delete_only_while_draft(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)

    resp = client.patch(
        f"/invoices/{invoice['id']}",
        json={"line_items": [{"description": "Consulting", "quantity": "3", "unit_price": "50"}], "tax_rate": "20"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["total"] == "180.00"
    assert [item["description"] for item in resp.json()["line_items"]] == ["Consulting"]

    send_invoice(client, headers, invoice["id"])
    assert client.patch(f"/invoices/{invoice['id']}", json={"notes": "late"}, headers=headers).status_code == 400
    assert client.delete(f"/invoices/{invoice['id']}", headers=headers).status_code == 400

    draft = create_invoice(client, headers, client_id)
    assert client.delete(f"/invoices/{draft['id']}", headers=headers).status_code == 204
    assert client.get(f"/invoices/{draft['id']}", headers=headers).status_code == 404


def test_send_emails_client(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)

    result = send_invoice(client, headers, invoice["id"])
    assert result["invoice"]["status"] == "SENT"
    assert result["invoice"]["sent_at"] is not None
    assert result["notification"] == {"delivered": True, "error": None}
    assert notifier.messages[0]["Subject"] == f"Invoice {invoice['invoice_number']} from Studio One"
    assert notifier.messages[0]["To"] == "billing@acme.example.com"

    assert client.post(f"/invoices/{invoice['id']}/send", headers=headers).status_code == 400


def test_send_commits_even_when_email_fails():
    failing = RecordingNotifier(fail=True)
    app.dependency_overrides[get_notifier] = lambda: failing
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)

    result = send_invoice(client, headers, invoice["id"])
    assert result["invoice"]["status"] == "SENT"
    assert result["notification"]["delivered"] is False
    assert client.get(f"/invoices/{invoice['id']}", headers=headers).json()["status"] == "SENT"


def test_public_link_marks_viewed_once(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)
    token = client.get(f"/invoices/{invoice['id']}", headers=headers).json()["share_token"]

    assert client.get(f"/public/invoices/{token}").status_code == 404

    send_invoice(client, headers, invoice["id"])
    first = client.get(f"/public/invoices/{token}")
    assert first.status_code == 200
    assert first.json()["status"] == "VIEWED"
    assert "share_token" not in first.json()
    client.get(f"/public/invoices/{token}")

    detail = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
    assert detail["viewed_at"] is not None
    assert [a["action"] for a in detail["activities"]].count("VIEWED") == 1
    assert client.get("/public/invoices/not-a-token").status_code == 404


def test_record_payments_until_paid(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)
    send_invoice(client, headers, invoice["id"])

    resp = client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "60", "method": "CASH"}, headers=headers)
    assert resp.status_code == 201
    assert resp.json()["invoice"]["status"] == "PARTIALLY_PAID"
    assert resp.json()["invoice"]["balance_due"] == "40.00"

    resp = client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "40", "method": "CHECK"}, headers=headers)
    assert resp.json()["invoice"]["status"] == "PAID"
    assert resp.json()["invoice"]["paid_at"] is not None
    assert notifier.messages[-1]["Subject"] == f"Payment received for invoice {invoice['invoice_number']}"

    rejected = client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "1", "method": "CASH"}, headers=headers)
    assert rejected.status_code == 400
    detail = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
    assert len(detail["payments"]) == 2

    unknown = client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "1", "method": "BARTER"}, headers=headers)
    assert unknown.status_code == 400


def test_mark_paid_and_cancel(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)
    send_invoice(client, headers, invoice["id"])

    resp = client.post(f"/invoices/{invoice['id']}/mark-paid", json={"method": "BANK_TRANSFER"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "PAID"
    assert resp.json()["amount_paid"] == "100.00"
    assert client.post(f"/invoices/{invoice['id']}/cancel", headers=headers).status_code == 400

    other = create_invoice(client, headers, client_id)
    cancelled = client.post(f"/invoices/{other['id']}/cancel", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"


def test_reminders(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)

    assert client.post(f"/invoices/{invoice['id']}/remind", json={}, headers=headers).status_code == 400

    send_invoice(client, headers, invoice["id"])
    resp = client.post(f"/invoices/{invoice['id']}/remind", json={"tone": "FINAL"}, headers=headers)
    assert resp.status_code == 200
    assert notifier.messages[-1]["Subject"] == f"Final notice: Invoice {invoice['invoice_number']}"
    detail = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
    assert detail["activities"][-1]["action"] == "REMINDER_SENT"
    assert detail["activities"][-1]["details"] == {"tone": "FINAL"}


def test_failed_reminder_is_not_recorded(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id)
    send_invoice(client, headers, invoice["id"])

    notifier.fail = True
    resp = client.post(f"/invoices/{invoice['id']}/remind", json={"tone": "FRIENDLY"}, headers=headers)
    assert resp.status_code == 502
    detail = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
    assert "REMINDER_SENT" not in [a["action"] for a in detail["activities"]]


def test_overdue_check(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    past_due = create_invoice(client, headers, client_id, issue_date="2024-01-01", due_date="2024-01-15")
    not_sent = create_invoice(client, headers, client_id, issue_date="2024-01-01", due_date="2024-01-15")
    send_invoice(client, headers, past_due["id"])

    resp = client.post("/invoices/overdue-check", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["count"] == 1
    assert resp.json()["marked"][0]["id"] == past_due["id"]
    assert client.get(f"/invoices/{past_due['id']}", headers=headers).json()["status"] == "OVERDUE"
    assert client.get(f"/invoices/{not_sent['id']}", headers=headers).json()["status"] == "DRAFT"

    assert client.post("/invoices/overdue-check", headers=headers).json()["count"] == 0


def test_recurring_toggle_list_and_generate(notifier):
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id, issue_date="2024-01-31")

    resp = client.put(
        f"/invoices/{invoice['id']}/recurring",
        json={"is_recurring": True, "recurring_interval": "MONTHLY"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["next_recurring_date"] == "2024-02-29"
    assert client.put(f"/invoices/{invoice['id']}/recurring", json={"is_recurring": True}, headers=headers).status_code == 400

    listed = client.get("/invoices/recurring", headers=headers).json()
    assert [inv["id"] for inv in listed] == [invoice["id"]]

    send_invoice(client, headers, invoice["id"])
    resp = client.post("/invoices/recurring", json={}, headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["count"] == 1
    assert body["failures"] == []
    generated = body["generated"][0]
    assert generated["status"] == "DRAFT"
    assert generated["total"] == invoice["total"]

    source = client.get(f"/invoices/{invoice['id']}", headers=headers).json()
    assert source["next_recurring_date"] is None

    one = client.post("/invoices/recurring", json={"invoice_id": generated["id"]}, headers=headers)
    assert one.status_code == 200
    assert one.json()["count"] == 1


def test_pdf_download():
    client = TestClient(app)
    headers = register_and_login(client, "owner@example.com")
    client_id = create_client(client, headers)
    invoice = create_invoice(client, headers, client_id, notes="Thank you for your business")

    resp = client.get(f"/invoices/{invoice['id']}/pdf", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")
    assert invoice["invoice_number"] in resp.headers["content-disposition"]

from decimal import Decimal
from uuid import uuid4

from conftest import FakeResult, entity_handler, make_loan

from lendmarket.models import Loan


def test_list_loans_is_public(client, fake_db):
    loan = make_loan()
    fake_db.on_execute(entity_handler(Loan, FakeResult(items=[loan])))

    resp = client.get("/api/v1/loans")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data[0]["id"] == str(loan.id)
    assert Decimal(data[0]["interestRate"]) == Decimal("7.5")


def test_get_loan(client, fake_db):
    loan = make_loan()
    fake_db.on_get(Loan, loan.id, loan)
    resp = client.get(f"/api/v1/loans/{loan.id}")
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Small Business Loan"


def test_get_missing_loan_is_404(client):
    assert client.get(f"/api/v1/loans/{uuid4()}").status_code == 404


def test_get_loan_with_bad_id_is_400(client):
    resp = client.get("/api/v1/loans/abc")
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_identifier"


def test_manager_creates_loan(client, fake_db, manager_headers):
    resp = client.post(
        "/api/v1/loans",
        headers=manager_headers,
        json={"title": "Bridge", "amount": 2500, "interestRate": 4.5, "category": "personal"},
    )

    assert resp.status_code == 200
    loan = fake_db.added[0]
    assert resp.json()["data"]["loanId"] == str(loan.id)
    assert loan.created_by == "manager@example.com"
    assert loan.amount == Decimal("2500")


def test_create_loan_validates_amount(client, manager_headers):
    resp = client.post("/api/v1/loans", headers=manager_headers, json={"title": "Bad", "amount": 0})
    assert resp.status_code == 422


def test_update_and_delete_loan(client, fake_db, admin_headers):
    loan = make_loan()
    fake_db.on_get(Loan, loan.id, loan)

    resp = client.patch(f"/api/v1/loans/{loan.id}", headers=admin_headers, json={"terms": "24 months"})
    assert resp.status_code == 200
    assert resp.json()["data"]["terms"] == "24 months"
    assert loan.title == "Small Business Loan"

    resp = client.delete(f"/api/v1/loans/{loan.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert fake_db.deleted == [loan]

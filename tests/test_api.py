"""
Integration tests for the Life Banking API
Tests end-to-end workflows using FastAPI TestClient
"""

import random

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from fastapi.testclient import TestClient

from life_banking.api import app, get_banking_system
from life_banking.config import EconomyConfig
from life_banking.system import BankingSystem


@pytest.fixture
def system():
    return BankingSystem(
        settings=EconomyConfig(),
        rng=random.Random(11),
        clock=lambda: datetime(2030, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def client(system):
    """Create a test client bound to a fresh banking session"""
    app.dependency_overrides[get_banking_system] = lambda: system
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_account(client, category="checking", amount="1000", year=2030):
    r = client.post("/accounts", json={"category": category, "amount": amount, "year": year})
    assert r.status_code == 201
    return r.json()["account_id"]


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["system"] == "Life Banking Engine"


class TestAccountFlow:
    """End-to-end account management tests"""

    def test_open_and_get(self, client):
        account_id = open_account(client, "savings", "250.50")

        r = client.get(f"/accounts/{account_id}", params={"include_ledger": True})
        assert r.status_code == 200
        data = r.json()
        assert data["balance"] == "250.50"
        assert data["interest_rate"] == "0.01"
        assert len(data["ledger"]) == 1

    def test_unknown_account(self, client):
        r = client.get("/accounts/ACC999999")
        assert r.status_code == 404

    def test_invalid_category(self, client):
        r = client.post("/accounts", json={"category": "piggy_bank", "amount": "10", "year": 2030})
        assert r.status_code == 400

    def test_opening_below_minimum_rejected(self, client):
        r = client.post("/accounts", json={"category": "checking", "amount": "10", "year": 2030})
        assert r.status_code == 400
        assert "at least 25" in r.json()["detail"]
        assert client.get("/accounts").json()["accounts"] == []

    def test_list_filters(self, client):
        open_account(client, "checking")
        savings_id = open_account(client, "savings", "50")
        client.post(f"/accounts/{savings_id}/close", json={"year": 2030})

        all_accounts = client.get("/accounts").json()["accounts"]
        open_accounts = client.get("/accounts", params={"include_closed": False}).json()["accounts"]
        assert len(all_accounts) == 2
        assert [a["category"] for a in open_accounts] == ["checking"]

    def test_close_pays_out(self, client):
        account_id = open_account(client, "checking", "75")
        r = client.post(f"/accounts/{account_id}/close", json={"year": 2031})
        assert r.status_code == 200
        assert r.json()["payout"] == "75.00"


class TestTransactionFlow:
    """Deposits, withdrawals and transfers"""

    def test_deposit_and_withdraw(self, client):
        account_id = open_account(client)

        r = client.post("/transactions/deposit", json={"account_id": account_id, "amount": "200", "year": 2030})
        assert r.status_code == 200
        assert r.json()["balance_after"] == "1200.00"

        r = client.post("/transactions/withdraw", json={"account_id": account_id, "amount": "50.25", "year": 2030})
        assert r.json()["balance_after"] == "1149.75"

    def test_overdraft_rejected(self, client):
        account_id = open_account(client)
        r = client.post("/transactions/withdraw", json={"account_id": account_id, "amount": "5000", "year": 2030})
        assert r.status_code == 400
        assert "Insufficient funds" in r.json()["detail"]

    def test_transfer(self, client):
        source = open_account(client)
        target = open_account(client, "savings", "50")

        r = client.post("/transactions/transfer", json={
            "from_account_id": source, "to_account_id": target, "amount": "400", "year": 2030
        })
        assert r.status_code == 200
        assert r.json()["debit"]["delta"] == "-400.00"
        assert r.json()["credit"]["balance_after"] == "450.00"


class TestLoanFlow:
    """Loans, collateral and payments"""

    def test_secured_loan_and_payment(self, client):
        checking = open_account(client, "checking", "5000")
        r = client.post("/collateral", json={"collateral_type": "vehicle", "value": "20000", "year": 2030})
        assert r.status_code == 201
        collateral_id = r.json()["id"]

        r = client.post("/loans", json={
            "category": "auto_loan", "principal": "8000", "year": 2030,
            "collateral_id": collateral_id, "disburse_to": checking
        })
        assert r.status_code == 201
        loan = r.json()
        assert loan["signed_balance"] == "-8000.00"
        assert loan["collateral_id"] == collateral_id

        r = client.post(f"/loans/{loan['account_id']}/payments", json={
            "amount": "1000", "year": 2030, "source_account_id": checking
        })
        assert r.status_code == 200
        assert r.json()["loan"]["balance"] == "7000.00"

    def test_credit_line_reports_available_credit(self, client):
        r = client.post("/loans", json={"category": "credit_line", "principal": "0", "year": 2030})
        assert r.status_code == 201
        line = r.json()
        limit = Decimal(line["credit_limit"])
        assert Decimal(line["available_credit"]) == limit

        client.post("/transactions/withdraw", json={"account_id": line["account_id"], "amount": "1000", "year": 2030})
        line = client.get(f"/accounts/{line['account_id']}").json()
        assert Decimal(line["available_credit"]) == limit - 1000
        assert Decimal(client.get("/summary").json()["available_credit"]) == limit - 1000

    def test_collateral_listing_flags_underwater_assets(self, client):
        r = client.post("/collateral", json={"collateral_type": "vehicle", "value": "10000", "year": 2030})
        collateral_id = r.json()["id"]
        r = client.post("/loans", json={
            "category": "auto_loan", "principal": "8000", "year": 2030, "collateral_id": collateral_id
        })
        assert r.status_code == 201

        items = client.get("/collateral", params={"year": 2030}).json()["collateral"]
        assert items[0]["current_value"] == "10000.00"
        assert items[0]["underwater"] is False

        items = client.get("/collateral", params={"year": 2032}).json()["collateral"]
        assert items[0]["current_value"] == "7225.00"
        assert items[0]["underwater"] is True

    def test_unsecured_mortgage_declined(self, client):
        r = client.post("/loans", json={"category": "mortgage", "principal": "10000", "year": 2030})
        assert r.status_code == 400
        assert "collateral" in r.json()["detail"]


class TestSimulation:
    """Yearly update, policy and rates"""

    def test_advance_year(self, client):
        open_account(client, "savings", "1000")

        r = client.post("/simulation/advance", json={})
        assert r.status_code == 400

        r = client.post("/simulation/advance", json={"year": 2031})
        assert r.status_code == 200
        report = r.json()
        assert report["year"] == 2031
        assert report["total_interest"] == "10.00"
        assert report["failures"] == []

        r = client.post("/simulation/advance", json={})
        assert r.json()["year"] == 2032

        history = client.get("/rates/history").json()["history"]
        assert [item["year"] for item in history] == [2031, 2032]

    def test_policy_update(self, client):
        r = client.put("/policy", json={"minimum_reserve_ratio": "0.2", "base_interest_rate": "0.05"})
        assert r.status_code == 200
        assert Decimal(r.json()["minimum_reserve_ratio"]) == Decimal("0.2")
        assert Decimal(r.json()["base_interest_rate"]) == Decimal("0.05")

        r = client.put("/policy", json={"max_loan_to_value_ratio": "1.5"})
        assert r.status_code == 400

    def test_rejected_policy_update_changes_nothing(self, client):
        before = client.get("/policy").json()

        r = client.put("/policy", json={"minimum_reserve_ratio": "0.5", "max_loan_to_value_ratio": "5"})
        assert r.status_code == 400
        assert client.get("/policy").json() == before

    def test_quote_uses_live_rate(self, client):
        r = client.get("/rates/quote", params={"category": "mortgage", "term_years": 30, "credit_score": 720})
        assert Decimal(r.json()["rate"]) == Decimal("0.04")

        client.put("/policy", json={"base_interest_rate": "0.05"})
        r = client.get("/rates/quote", params={"category": "mortgage", "term_years": 30, "credit_score": 720})
        assert Decimal(r.json()["rate"]) == Decimal("0.06")

    def test_quote_validation(self, client):
        r = client.get("/rates/quote", params={"category": "mortgage", "term_years": 0})
        assert r.status_code == 422

        r = client.get("/rates/quote", params={"category": "spaceship", "term_years": 5})
        assert r.status_code == 400

    def test_projection_leaves_rate_unchanged(self, client):
        r = client.get("/rates/projection", params={"years": 4, "projected_inflation": "0.05"})
        assert r.status_code == 200
        assert len(r.json()["projection"]) == 4
        assert client.get("/policy").json()["base_interest_rate"] == "0.03"

    def test_summary(self, client):
        open_account(client, "checking", "1000")
        open_account(client, "investment", "1500")
        data = client.get("/summary").json()
        assert data["net_position"] == "2500.00"
        assert data["total_investments"] == "1500.00"
        assert Decimal(data["available_credit"]) == 0
        assert data["market_regime"] == "normal"

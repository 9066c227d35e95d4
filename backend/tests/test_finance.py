"""Tests for the ledgers: transactions, revenues and royalties."""

from datetime import date, timedelta
from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import load_workbook

from franchisehub.models import (
    Notification, Revenue, RevenueStatus, RevenueType, Royalty, RoyaltyStatus, Transaction,
    TransactionStatus, TransactionType, Unit, UnitStatus,
)
from franchisehub.services.royalty_service import RoyaltyService

TRANSACTIONS = "/api/v1/transactions"
REVENUES = "/api/v1/revenues"
ROYALTIES = "/api/v1/royalties"


def _transaction(**overrides):
    payload = {"type": "expense", "category": "other", "amount": "100.00", "transaction_date": "2024-05-10"}
    payload.update(overrides)
    return payload


# ============== Transactions ==============

class TestTransactions:
    def test_franchisor_records_franchise_level_transaction(self, client, franchisor_headers, franchise):
        response = client.post(f"{TRANSACTIONS}/", json=_transaction(), headers=franchisor_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["transaction_number"] == "TXN2024050001"
        assert data["franchise_id"] == franchise.id
        assert data["unit_id"] is None
        assert data["status"] == "pending"

    def test_franchisee_transaction_lands_on_their_unit(self, client, franchisee_headers, unit):
        response = client.post(f"{TRANSACTIONS}/", json=_transaction(), headers=franchisee_headers)
        assert response.status_code == 201
        assert response.json()["data"]["unit_id"] == unit.id

    def test_amount_must_be_positive(self, client, franchisor_headers, franchise):
        response = client.post(f"{TRANSACTIONS}/", json=_transaction(amount="0"), headers=franchisor_headers)
        assert response.status_code == 422

    def test_admin_needs_an_owner(self, client, admin_headers):
        response = client.post(f"{TRANSACTIONS}/", json=_transaction(), headers=admin_headers)
        assert response.status_code == 422

    def test_complete_and_cancel_only_from_pending(self, client, franchisor_headers, franchise):
        txn = client.post(f"{TRANSACTIONS}/", json=_transaction(), headers=franchisor_headers).json()["data"]
        response = client.patch(f"{TRANSACTIONS}/{txn['id']}/complete", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"
        response = client.patch(f"{TRANSACTIONS}/{txn['id']}/cancel", headers=franchisor_headers)
        assert response.status_code == 422

    def test_recurring_completion_schedules_next(self, client, franchisor_headers, franchise):
        txn = client.post(
            f"{TRANSACTIONS}/",
            json=_transaction(is_recurring=True, recurrence_type="monthly"),
            headers=franchisor_headers,
        ).json()["data"]
        response = client.patch(f"{TRANSACTIONS}/{txn['id']}/complete", headers=franchisor_headers)
        successor = response.json()["data"]["next_transaction"]
        assert successor["transaction_date"] == "2024-06-10"
        assert successor["status"] == "pending"
        assert successor["parent_transaction_id"] == txn["id"]

    def test_partial_refund_creates_negative_child(self, client, db_session, franchisor_headers, franchise):
        txn = client.post(
            f"{TRANSACTIONS}/", json=_transaction(type="revenue", status="completed"), headers=franchisor_headers
        ).json()["data"]
        response = client.post(
            f"{TRANSACTIONS}/{txn['id']}/refund",
            json={"amount": "30.00", "reason": "Damaged goods"},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transaction"]["status"] == "refunded"
        assert data["refund"]["amount"] == -30.0
        assert data["refund"]["type"] == "refund"
        assert data["refund"]["parent_transaction_id"] == txn["id"]
        refund = db_session.query(Transaction).filter(Transaction.type == TransactionType.REFUND).one()
        assert refund.status == TransactionStatus.COMPLETED

    def test_statistics_net_partial_refund(self, client, franchisor_headers, franchise):
        txn = client.post(
            f"{TRANSACTIONS}/", json=_transaction(type="revenue", status="completed"), headers=franchisor_headers
        ).json()["data"]
        client.post(
            f"{TRANSACTIONS}/{txn['id']}/refund", json={"amount": "30.00", "reason": "Damaged goods"},
            headers=franchisor_headers,
        )
        response = client.get(f"{TRANSACTIONS}/statistics", headers=franchisor_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["totalIncome"] == 70.0
        assert data["totalExpenses"] == 0.0
        assert data["netAmount"] == 70.0

    def test_full_refund_zeroes_income(self, client, franchisor_headers, franchise):
        txn = client.post(
            f"{TRANSACTIONS}/", json=_transaction(type="revenue", status="completed"), headers=franchisor_headers
        ).json()["data"]
        client.post(f"{TRANSACTIONS}/{txn['id']}/refund", json={"reason": "Cancelled"}, headers=franchisor_headers)
        data = client.get(f"{TRANSACTIONS}/statistics", headers=franchisor_headers).json()["data"]
        assert data["totalIncome"] == 0.0

    def test_refund_above_original_rejected(self, client, franchisor_headers, franchise):
        txn = client.post(
            f"{TRANSACTIONS}/", json=_transaction(status="completed"), headers=franchisor_headers
        ).json()["data"]
        response = client.post(
            f"{TRANSACTIONS}/{txn['id']}/refund", json={"amount": "150.00", "reason": "Oops"}, headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_refund_pending_rejected(self, client, franchisor_headers, franchise):
        txn = client.post(f"{TRANSACTIONS}/", json=_transaction(), headers=franchisor_headers).json()["data"]
        response = client.post(
            f"{TRANSACTIONS}/{txn['id']}/refund", json={"reason": "Not yet"}, headers=franchisor_headers
        )
        assert response.status_code == 422


# ============== Revenues ==============

class TestRevenues:
    def _payload(self, **overrides):
        payload = {
            "amount": "1000.00",
            "discount_amount": "100.00",
            "tax_amount": "50.00",
            "revenue_date": "2024-05-20",
        }
        payload.update(overrides)
        return payload

    def test_net_amount_and_period(self, client, franchisor_headers, franchise):
        response = client.post(f"{REVENUES}/", json=self._payload(), headers=franchisor_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["net_amount"] == 950.0
        assert data["period_year"] == 2024
        assert data["period_month"] == 5
        assert data["revenue_number"] == "REV2024050001"
        assert data["status"] == "verified"
        assert data["verified_by"] is not None

    def test_discount_above_amount_rejected(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{REVENUES}/", json=self._payload(discount_amount="2000.00"), headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_franchisee_revenue_awaits_verification(self, client, franchisee_headers, franchisor_headers, unit):
        created = client.post(f"{REVENUES}/", json=self._payload(), headers=franchisee_headers).json()["data"]
        assert created["status"] == "pending"
        assert created["unit_id"] == unit.id
        response = client.patch(f"{REVENUES}/{created['id']}/verify", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "verified"
        response = client.patch(f"{REVENUES}/{created['id']}/verify", headers=franchisor_headers)
        assert response.status_code == 422

    def test_franchisee_cannot_verify(self, client, franchisee_headers, unit):
        created = client.post(f"{REVENUES}/", json=self._payload(), headers=franchisee_headers).json()["data"]
        response = client.patch(f"{REVENUES}/{created['id']}/verify", headers=franchisee_headers)
        assert response.status_code == 403

    def test_refund_once(self, client, franchisor_headers, franchise):
        created = client.post(f"{REVENUES}/", json=self._payload(), headers=franchisor_headers).json()["data"]
        response = client.post(
            f"{REVENUES}/{created['id']}/refund", json={"amount": "200.00", "reason": "Return"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["refund"]["amount"] == -200.0
        assert data["refund"]["payment_status"] == "refunded"
        assert data["revenue"]["payment_status"] == "refunded"
        response = client.post(
            f"{REVENUES}/{created['id']}/refund", json={"reason": "Again"}, headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_dispute(self, client, franchisor_headers, franchise):
        created = client.post(f"{REVENUES}/", json=self._payload(), headers=franchisor_headers).json()["data"]
        response = client.post(
            f"{REVENUES}/{created['id']}/dispute", json={"reason": "Figures do not match POS"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "disputed"


# ============== Royalties ==============

class TestRoyaltyCalculation:
    def test_amounts_from_franchise_rates(self, db_session, franchise, unit):
        royalty = RoyaltyService.build(db_session, franchise, 2024, 5, Decimal("10000"), unit=unit)
        assert royalty.royalty_amount == Decimal("600.00")
        assert royalty.marketing_fee_amount == Decimal("200.00")
        assert royalty.technology_fee_amount == Decimal("50.00")
        assert royalty.total_amount == Decimal("850.00")
        assert royalty.due_date == date(2024, 6, 15)
        assert royalty.franchisee_id == unit.franchisee_id

    def test_half_up_rounding(self, db_session, franchise):
        royalty = RoyaltyService.build(
            db_session, franchise, 2024, 5, Decimal("1234.56"), technology_fee_amount=0, marketing_fee_percentage=0
        )
        # 6% of 1234.56 = 74.0736
        assert royalty.royalty_amount == Decimal("74.07")
        assert royalty.total_amount == Decimal("74.07")

    def test_late_fee_applies_once(self, db_session, franchise, unit):
        royalty = RoyaltyService.build(
            db_session, franchise, 2024, 5, Decimal("10000"), unit=unit, due_date=date.today() - timedelta(days=1)
        )
        RoyaltyService.apply_late_fee(royalty)
        assert royalty.late_fee == Decimal("42.50")
        assert royalty.total_amount == Decimal("892.50")
        assert royalty.status == RoyaltyStatus.OVERDUE
        with pytest.raises(ValueError):
            RoyaltyService.apply_late_fee(royalty)

    def test_late_fee_needs_overdue(self, db_session, franchise):
        royalty = RoyaltyService.build(
            db_session, franchise, 2024, 5, Decimal("100"), due_date=date.today() + timedelta(days=10)
        )
        with pytest.raises(ValueError):
            RoyaltyService.apply_late_fee(royalty)

    def test_adjustment_replaces_previous(self, db_session, franchise):
        royalty = RoyaltyService.build(db_session, franchise, 2024, 5, Decimal("10000"))
        RoyaltyService.apply_adjustment(royalty, Decimal("-100"), "Promo credit")
        RoyaltyService.apply_adjustment(royalty, Decimal("-50"), "Revised credit")
        assert royalty.adjustments == Decimal("-50.00")
        assert royalty.total_amount == Decimal("800.00")

    def test_adjustment_cannot_go_negative(self, db_session, franchise):
        royalty = RoyaltyService.build(db_session, franchise, 2024, 5, Decimal("100"))
        with pytest.raises(ValueError):
            RoyaltyService.apply_adjustment(royalty, Decimal("-1000"), "Too much")


class TestRoyaltyRoutes:
    def test_create_and_mark_paid(self, client, franchisor_headers, franchisee_headers, unit):
        response = client.post(
            f"{ROYALTIES}/",
            json={"unit_id": unit.id, "period_year": 2024, "period_month": 5, "gross_revenue": "10000"},
            headers=franchisor_headers,
        )
        assert response.status_code == 201
        royalty = response.json()["data"]
        assert royalty["total_amount"] == 850.0
        assert royalty["royalty_number"] == f"ROY{date.today().strftime('%Y%m')}0001"

        response = client.patch(
            f"{ROYALTIES}/{royalty['id']}/mark-paid",
            json={"payment_method": "bank_transfer", "payment_reference": "WIRE-1"},
            headers=franchisee_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "paid"

        response = client.patch(
            f"{ROYALTIES}/{royalty['id']}/mark-paid", json={"payment_method": "cash"}, headers=franchisor_headers
        )
        assert response.status_code == 422
        response = client.delete(f"{ROYALTIES}/{royalty['id']}", headers=franchisor_headers)
        assert response.status_code == 422

    def test_generate_monthly_bills_active_units_once(self, client, db_session, franchisor_headers, franchise, unit):
        db_session.add(Revenue(
            revenue_number="REV2024050099",
            franchise_id=franchise.id,
            unit_id=unit.id,
            type=RevenueType.SALES,
            amount=Decimal("5000.00"),
            net_amount=Decimal("5000.00"),
            revenue_date=date(2024, 5, 3),
            period_year=2024,
            period_month=5,
            status=RevenueStatus.VERIFIED,
        ))
        closed = Unit(
            franchise_id=franchise.id, unit_name="Closed", unit_code="COF-CLOSED", status=UnitStatus.PERMANENTLY_CLOSED
        )
        db_session.add(closed)
        db_session.commit()

        response = client.post(
            f"{ROYALTIES}/generate-monthly", json={"year": 2024, "month": 5}, headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["generated"] == 1
        assert data["royalties"][0]["gross_revenue"] == 5000.0
        assert data["royalties"][0]["unit_id"] == unit.id
        assert db_session.query(Notification).filter(Notification.type == "royalty_generated").count() == 1

        response = client.post(
            f"{ROYALTIES}/generate-monthly", json={"year": 2024, "month": 5}, headers=franchisor_headers
        )
        assert response.json()["data"]["generated"] == 0
        assert db_session.query(Royalty).count() == 1

    def test_generate_monthly_falls_back_to_unit_revenue(self, client, franchisor_headers, unit):
        response = client.post(
            f"{ROYALTIES}/generate-monthly", json={"year": 2024, "month": 4}, headers=franchisor_headers
        )
        assert response.json()["data"]["royalties"][0]["gross_revenue"] == 20000.0

    def test_statistics(self, client, franchisor_headers, unit):
        client.post(
            f"{ROYALTIES}/",
            json={"unit_id": unit.id, "period_year": 2024, "period_month": 5, "gross_revenue": "10000"},
            headers=franchisor_headers,
        )
        response = client.get(f"{ROYALTIES}/statistics", headers=franchisor_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 1
        assert data["totalBilled"] == 850.0
        assert data["collectionRate"] == 0.0

    def _bill(self, client, headers, unit, **overrides):
        payload = {"unit_id": unit.id, "period_year": 2024, "period_month": 5, "gross_revenue": "10000"}
        payload.update(overrides)
        return client.post(f"{ROYALTIES}/", json=payload, headers=headers).json()["data"]

    def test_late_fee_over_http(self, client, franchisor_headers, unit):
        overdue = (date.today() - timedelta(days=3)).isoformat()
        royalty = self._bill(client, franchisor_headers, unit, due_date=overdue)
        response = client.post(f"{ROYALTIES}/{royalty['id']}/late-fee", headers=franchisor_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["late_fee"] == 42.5
        assert data["total_amount"] == 892.5
        assert data["status"] == "overdue"
        response = client.post(f"{ROYALTIES}/{royalty['id']}/late-fee", headers=franchisor_headers)
        assert response.status_code == 422

    def test_late_fee_before_due_date(self, client, franchisor_headers, unit):
        royalty = self._bill(client, franchisor_headers, unit, due_date=(date.today() + timedelta(days=5)).isoformat())
        response = client.post(f"{ROYALTIES}/{royalty['id']}/late-fee", headers=franchisor_headers)
        assert response.status_code == 422

    def test_franchisee_cannot_charge_late_fee(self, client, franchisor_headers, franchisee_headers, unit):
        royalty = self._bill(client, franchisor_headers, unit, due_date=(date.today() - timedelta(days=3)).isoformat())
        response = client.post(f"{ROYALTIES}/{royalty['id']}/late-fee", headers=franchisee_headers)
        assert response.status_code == 403

    def test_export_csv(self, client, franchisor_headers, unit):
        royalty = self._bill(client, franchisor_headers, unit)
        response = client.get(f"{ROYALTIES}/export", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment; filename=royalties_" in response.headers["content-disposition"]
        lines = response.content.decode("utf-8-sig").splitlines()
        assert lines[0].startswith("Royalty Number,Unit,Period,Gross Revenue")
        assert lines[1].startswith(f"{royalty['royalty_number']},Downtown,2024-05,10000.0")
        assert len(lines) == 2

    def test_export_xlsx(self, client, franchisor_headers, unit):
        self._bill(client, franchisor_headers, unit)
        response = client.get(f"{ROYALTIES}/export", params={"format": "xlsx"}, headers=franchisor_headers)
        assert response.status_code == 200
        workbook = load_workbook(BytesIO(response.content))
        rows = list(workbook.active.iter_rows(values_only=True))
        assert rows[0][0] == "Royalty Number"
        assert rows[1][1] == "Downtown"

    def test_export_is_scoped(self, client, franchisor_headers, other_franchisor_headers, unit):
        self._bill(client, franchisor_headers, unit)
        response = client.get(f"{ROYALTIES}/export", headers=other_franchisor_headers)
        assert len(response.content.decode("utf-8-sig").splitlines()) == 1


# ============== Revenue reports ==============

class TestRevenueReports:
    def _revenue(self, client, headers, revenue_date, amount="100.00", **extra):
        payload = {"amount": amount, "revenue_date": revenue_date}
        payload.update(extra)
        response = client.post(f"{REVENUES}/", json=payload, headers=headers)
        assert response.status_code == 201
        return response.json()["data"]

    def test_total_by_period_monthly(self, client, franchisor_headers, franchise):
        self._revenue(client, franchisor_headers, "2024-05-03", "100.00")
        self._revenue(client, franchisor_headers, "2024-05-28", "50.00")
        self._revenue(client, franchisor_headers, "2024-07-01", "25.00")
        self._revenue(client, franchisor_headers, "2023-12-31", "999.00")
        self._revenue(client, franchisor_headers, "2024-06-01", "500.00", status="pending")
        response = client.get(
            f"{REVENUES}/total-by-period", params={"period": "monthly", "year": 2024}, headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["start"] == "2024-01-01"
        assert data["end"] == "2024-12-31"
        totals = {row["period"]: row["amount"] for row in data["totals"]}
        assert len(totals) == 12
        assert totals["2024-05"] == 150.0
        assert totals["2024-06"] == 0.0
        assert totals["2024-07"] == 25.0
        assert data["grandTotal"] == 175.0

    def test_total_by_period_daily(self, client, franchisor_headers, franchise):
        self._revenue(client, franchisor_headers, "2024-02-29", "80.00")
        response = client.get(
            f"{REVENUES}/total-by-period",
            params={"period": "daily", "year": 2024, "month": 2},
            headers=franchisor_headers,
        )
        data = response.json()["data"]
        assert len(data["totals"]) == 29
        assert data["totals"][-1] == {"period": "2024-02-29", "amount": 80.0}

    def test_line_items_append(self, client, franchisor_headers, franchise):
        revenue = self._revenue(client, franchisor_headers, "2024-05-03", "100.00")
        response = client.post(
            f"{REVENUES}/{revenue['id']}/line-items",
            json={"line_items": [{"product_name": "Latte", "quantity": 3, "unit_price": "4.50"}]},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["line_items"][0]["total"] == 13.5
        assert data["amount"] == 100.0

    def test_line_items_recalculate_amount(self, client, franchisor_headers, franchise):
        revenue = self._revenue(
            client,
            franchisor_headers,
            "2024-05-03",
            "100.00",
            line_items=[{"product_name": "Muffin", "quantity": 2, "unit_price": "3.00"}],
        )
        response = client.post(
            f"{REVENUES}/{revenue['id']}/line-items",
            json={
                "line_items": [{"product_name": "Latte", "quantity": 3, "unit_price": "4.50"}],
                "recalculate_amount": True,
            },
            headers=franchisor_headers,
        )
        data = response.json()["data"]
        assert [item["product_name"] for item in data["line_items"]] == ["Muffin", "Latte"]
        assert data["amount"] == 19.5
        assert data["net_amount"] == 19.5

    def test_line_items_need_positive_quantity(self, client, franchisor_headers, franchise):
        revenue = self._revenue(client, franchisor_headers, "2024-05-03")
        response = client.post(
            f"{REVENUES}/{revenue['id']}/line-items",
            json={"line_items": [{"product_name": "Latte", "quantity": 0, "unit_price": "4.50"}]},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

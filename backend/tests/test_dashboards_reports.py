"""Tests for role dashboards, financial reports, performance analytics and onboarding."""

from datetime import date

from franchisehub.models import UnitPerformance, UserRole

from conftest import headers_for, make_user

FINANCIAL = "/api/v1/financial"
PERFORMANCE = "/api/v1/performance"


# ============== Dashboards ==============

class TestDashboards:
    def test_franchisor_dashboard(self, client, franchisor_headers, unit):
        response = client.get("/api/v1/franchisor/dashboard/stats", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_franchisor_finance_dashboard(self, client, franchisor_headers, unit):
        response = client.get("/api/v1/franchisor/dashboard/finance", headers=franchisor_headers)
        assert response.status_code == 200

    def test_unit_manager_sees_own_unit(self, client, franchisee_headers, unit):
        response = client.get("/api/v1/unit-manager/unit", headers=franchisee_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == unit.id
        assert data["franchise_name"] == "Coffee Corner"

    def test_unit_manager_statistics(self, client, franchisee_headers, unit):
        response = client.get("/api/v1/unit-manager/statistics", headers=franchisee_headers)
        assert response.status_code == 200
        assert response.json()["data"]["totalStaff"] == 0

    def test_franchisor_cannot_use_unit_manager(self, client, franchisor_headers, unit):
        response = client.get("/api/v1/unit-manager/unit", headers=franchisor_headers)
        assert response.status_code == 403


# ============== Financial reports ==============

class TestFinancialReports:
    def _record(self, client, headers):
        sale = client.post(
            f"{FINANCIAL}/sales",
            json={"product": "Latte", "amount": "500.00", "date": "2024-05-10"},
            headers=headers,
        )
        assert sale.status_code == 201
        expense = client.post(
            f"{FINANCIAL}/expenses",
            json={"category": "other", "amount": "200.00", "date": "2024-05-12"},
            headers=headers,
        )
        assert expense.status_code == 201

    def test_statistics_for_month(self, client, franchisor_headers, franchise):
        self._record(client, franchisor_headers)
        response = client.get(
            f"{FINANCIAL}/statistics",
            params={"period": "daily", "year": 2024, "month": 5},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["sales"]["total"] == 500.0
        assert data["expenses"]["total"] == 200.0
        assert data["profit"]["total"] == 300.0
        assert data["period"]["start"] == "2024-05-01"
        assert data["period"]["end"] == "2024-05-31"

    def test_charts_have_one_point_per_day(self, client, franchisor_headers, franchise):
        self._record(client, franchisor_headers)
        response = client.get(
            f"{FINANCIAL}/charts",
            params={"period": "daily", "year": 2024, "month": 5},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["categories"]) == 31
        assert [s["name"] for s in data["series"]] == ["Sales", "Expenses", "Royalties", "Profit"]

    def test_sales_list(self, client, franchisor_headers, franchise):
        self._record(client, franchisor_headers)
        response = client.get(
            f"{FINANCIAL}/sales",
            params={"period": "monthly", "year": 2024},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        rows = response.json()["data"]
        assert len(rows) == 1
        assert rows[0]["product"] == "Latte"
        assert rows[0]["amount"] == 500.0

    def test_refunded_expense_counts_net(self, client, franchisor_headers, franchise):
        today = date.today()
        expense = client.post(
            f"{FINANCIAL}/expenses",
            json={"category": "other", "amount": "100.00", "date": today.isoformat()},
            headers=franchisor_headers,
        ).json()["data"]
        response = client.post(
            f"/api/v1/transactions/{expense['id']}/refund",
            json={"amount": "30.00", "reason": "Supplier credit"},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        response = client.get(
            f"{FINANCIAL}/statistics",
            params={"period": "daily", "year": today.year, "month": today.month},
            headers=franchisor_headers,
        )
        assert response.json()["data"]["expenses"]["total"] == 70.0

    def test_import_then_export_round_trip(self, client, franchisor_headers, franchise):
        content = (
            b"date,category,amount,description\n"
            b"2024-05-02,rent,1500.00,May rent\n"
            b"2024-05-09,Utilities,200.50,Power\n"
            b"2024-05-10,teleport,10,Unknown category\n"
        )
        response = client.post(
            f"{FINANCIAL}/import",
            data={"category": "expenses"},
            files={"file": ("expenses.csv", content, "text/csv")},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        result = response.json()["data"]
        assert result["imported"] == 2
        assert result["errors"][0]["row"] == 4

        response = client.get(
            f"{FINANCIAL}/export",
            params={"category": "expenses", "period": "monthly", "year": 2024},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        exported = response.content
        lines = exported.decode("utf-8-sig").splitlines()
        assert lines[0] == "Date,Category,Amount,Description,Unit,Transaction Number"
        assert lines[1].startswith("2024-05-09,utilities,200.5,Power,")
        assert lines[2].startswith("2024-05-02,rent,1500.0,May rent,")

        response = client.post(
            f"{FINANCIAL}/import",
            data={"category": "expenses"},
            files={"file": ("export.csv", exported, "text/csv")},
            headers=franchisor_headers,
        )
        assert response.json()["data"] == {"imported": 2, "errors": []}
        response = client.get(
            f"{FINANCIAL}/statistics",
            params={"period": "monthly", "year": 2024},
            headers=franchisor_headers,
        )
        assert response.json()["data"]["expenses"]["total"] == 3401.0

    def test_import_sales(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{FINANCIAL}/import",
            data={"category": "sales"},
            files={"file": ("sales.csv", b"date,product,amount\n2024-05-03,Latte,12.50\n", "text/csv")},
            headers=franchisor_headers,
        )
        assert response.json()["data"]["imported"] == 1
        response = client.get(
            f"{FINANCIAL}/export",
            params={"category": "sales", "period": "monthly", "year": 2024},
            headers=franchisor_headers,
        )
        lines = response.content.decode("utf-8-sig").splitlines()
        assert lines[1].startswith("2024-05-03,Latte,12.5,")

    def test_import_missing_columns(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{FINANCIAL}/import",
            data={"category": "sales"},
            files={"file": ("sales.csv", b"date,amount\n2024-05-03,12.50\n", "text/csv")},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_period_is_required(self, client, franchisor_headers, franchise):
        response = client.get(f"{FINANCIAL}/statistics", headers=franchisor_headers)
        assert response.status_code == 422

    def test_franchisee_forbidden(self, client, franchisee_headers, unit):
        response = client.get(
            f"{FINANCIAL}/statistics", params={"period": "monthly"}, headers=franchisee_headers
        )
        assert response.status_code == 403


# ============== Performance ==============

class TestPerformance:
    def test_rows_start_empty(self, client, franchisor_headers, unit):
        response = client.get(f"{PERFORMANCE}/", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_top_performers_lists_units(self, client, franchisor_headers, unit):
        response = client.get(f"{PERFORMANCE}/top-performers", headers=franchisor_headers)
        assert response.status_code == 200
        rows = response.json()["data"]
        assert rows[0]["unit_id"] == unit.id
        assert rows[0]["growth_rate"] == 0.0

    def test_foreign_unit_filter(self, client, franchisor_headers, other_unit):
        response = client.get(f"{PERFORMANCE}/chart-data", params={"unit_id": other_unit.id}, headers=franchisor_headers)
        assert response.status_code == 403

    def test_snapshot_upserts_one_row_per_unit_and_bucket(self, client, db_session, franchisor_headers, unit):
        client.post(
            f"{FINANCIAL}/sales",
            json={"product": "Latte", "amount": "500.00", "date": "2024-05-10", "unit_id": unit.id},
            headers=franchisor_headers,
        )
        first = client.post(
            f"{PERFORMANCE}/snapshot",
            json={"period_type": "monthly", "period_date": "2024-05-20"},
            headers=franchisor_headers,
        )
        assert first.status_code == 200
        rows = first.json()["data"]
        assert len(rows) == 1
        assert rows[0]["period_date"] == "2024-05-01"
        assert rows[0]["revenue"] == 500.0

        client.post(
            f"{FINANCIAL}/sales",
            json={"product": "Mocha", "amount": "250.00", "date": "2024-05-11", "unit_id": unit.id},
            headers=franchisor_headers,
        )
        second = client.post(
            f"{PERFORMANCE}/snapshot",
            json={"period_type": "monthly", "period_date": "2024-05-02"},
            headers=franchisor_headers,
        )
        rows_again = second.json()["data"]
        assert rows_again[0]["id"] == rows[0]["id"]
        assert rows_again[0]["revenue"] == 750.0
        assert db_session.query(UnitPerformance).count() == 1

        client.post(
            f"{PERFORMANCE}/snapshot",
            json={"period_type": "daily", "period_date": "2024-05-10"},
            headers=franchisor_headers,
        )
        assert db_session.query(UnitPerformance).count() == 2

    def test_snapshot_is_franchisor_only(self, client, franchisee_headers, unit):
        response = client.post(f"{PERFORMANCE}/snapshot", json={}, headers=franchisee_headers)
        assert response.status_code == 403


# ============== Onboarding ==============

class TestOnboarding:
    PROFILE = {
        "phone": "+966500000001",
        "nationality": "Saudi",
        "state": "Riyadh Province",
        "city": "Riyadh",
        "address": "King Fahd Road 1",
    }

    def test_new_franchisee_requires_onboarding(self, client, db_session):
        user = make_user(db_session, "fresh@example.com", UserRole.FRANCHISEE)
        response = client.get("/api/v1/onboarding/status", headers=headers_for(user))
        assert response.status_code == 200
        assert response.json()["data"]["requires_onboarding"] is True

    def test_complete_profile(self, client, db_session):
        user = make_user(db_session, "fresh@example.com", UserRole.FRANCHISEE)
        headers = headers_for(user)
        response = client.post("/api/v1/onboarding/complete", json=self.PROFILE, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["city"] == "Riyadh"
        response = client.get("/api/v1/onboarding/status", headers=headers)
        assert response.json()["data"]["requires_onboarding"] is False

    def test_missing_fields(self, client, db_session):
        user = make_user(db_session, "fresh@example.com", UserRole.FRANCHISEE)
        response = client.post(
            "/api/v1/onboarding/complete", json={"phone": "+966500000001"}, headers=headers_for(user)
        )
        assert response.status_code == 422

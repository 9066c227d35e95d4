"""Tests for tenant isolation and role checks across resources."""

from decimal import Decimal

from franchisehub.core.tenancy import TenantScope
from franchisehub.models import Lead, Task, Unit


# ============== Scope resolution ==============

class TestScopeResolution:
    def test_franchisor_owns_their_franchise(self, db_session, franchisor_user, franchise):
        scope = TenantScope(db_session, franchisor_user)
        assert scope.franchise_id == franchise.id
        assert scope.is_franchisor

    def test_franchisee_resolves_units(self, db_session, franchisee_user, unit):
        scope = TenantScope(db_session, franchisee_user)
        assert scope.unit_ids == [unit.id]
        assert scope.franchise_id == unit.franchise_id

    def test_broker_uses_assigned_franchise(self, db_session, broker_user, franchise):
        scope = TenantScope(db_session, broker_user)
        assert scope.franchise_id == franchise.id
        assert scope.is_sales

    def test_admin_has_no_restriction(self, db_session, admin_user):
        scope = TenantScope(db_session, admin_user)
        assert scope.condition(Unit) is None
        assert scope.resolve_franchise_id(99) == 99

    def test_non_admin_cannot_pick_franchise(self, db_session, franchisor_user, franchise, other_franchise):
        scope = TenantScope(db_session, franchisor_user)
        assert scope.resolve_franchise_id(other_franchise.id) == franchise.id

    def test_franchisor_without_franchise_sees_nothing(self, db_session, other_franchisor_user, unit):
        scope = TenantScope(db_session, other_franchisor_user)
        assert scope.apply(db_session.query(Unit), Unit).count() == 0

    def test_franchisee_leads_hidden(self, db_session, franchisee_user, franchise, unit):
        db_session.add(Lead(first_name="A", last_name="B", email="a.b@example.com", franchise_id=franchise.id))
        db_session.commit()
        scope = TenantScope(db_session, franchisee_user)
        assert scope.apply(db_session.query(Lead), Lead).count() == 0


# ============== Cross-tenant access ==============

class TestCrossTenantAccess:
    def test_foreign_franchise_is_forbidden(self, client, franchisor_headers, other_franchise):
        response = client.get(f"/api/v1/franchises/{other_franchise.id}", headers=franchisor_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "You do not have access to this resource"

    def test_missing_franchise_is_not_found(self, client, franchisor_headers):
        response = client.get("/api/v1/franchises/9999", headers=franchisor_headers)
        assert response.status_code == 404

    def test_foreign_unit_is_forbidden(self, client, franchisor_headers, other_unit):
        response = client.get(f"/api/v1/units/{other_unit.id}", headers=franchisor_headers)
        assert response.status_code == 403

    def test_franchisee_cannot_see_sibling_unit(self, client, db_session, franchisee_headers, franchise):
        sibling = Unit(franchise_id=franchise.id, unit_name="Mall", unit_code="COF-MALL")
        db_session.add(sibling)
        db_session.commit()
        response = client.get(f"/api/v1/units/{sibling.id}", headers=franchisee_headers)
        assert response.status_code == 403

    def test_unit_list_is_scoped(self, client, franchisor_headers, unit, other_unit):
        response = client.get("/api/v1/units/", headers=franchisor_headers)
        assert response.status_code == 200
        ids = [u["id"] for u in response.json()["data"]]
        assert ids == [unit.id]

    def test_admin_sees_all_units(self, client, admin_headers, unit, other_unit):
        response = client.get("/api/v1/units/", headers=admin_headers)
        assert response.json()["pagination"]["total"] == 2

    def test_foreign_task_is_forbidden(self, client, db_session, franchisor_headers, other_franchise, other_franchisor_user):
        task = Task(title="Audit", franchise_id=other_franchise.id, created_by=other_franchisor_user.id)
        db_session.add(task)
        db_session.commit()
        response = client.get(f"/api/v1/tasks/{task.id}", headers=franchisor_headers)
        assert response.status_code == 403

    def test_cannot_create_transaction_on_foreign_unit(self, client, franchisor_headers, other_unit):
        response = client.post(
            "/api/v1/transactions/",
            json={
                "type": "expense",
                "amount": "100.00",
                "transaction_date": "2024-05-01",
                "unit_id": other_unit.id,
            },
            headers=franchisor_headers,
        )
        assert response.status_code == 403


# ============== Role checks ==============

class TestRoleChecks:
    def test_franchisee_cannot_list_leads(self, client, franchisee_headers):
        response = client.get("/api/v1/leads/", headers=franchisee_headers)
        assert response.status_code == 403

    def test_broker_cannot_read_transactions(self, client, broker_headers):
        response = client.get("/api/v1/transactions/", headers=broker_headers)
        assert response.status_code == 403

    def test_franchisor_cannot_use_admin_routes(self, client, franchisor_headers):
        response = client.get("/api/v1/admin/users", headers=franchisor_headers)
        assert response.status_code == 403

    def test_franchisee_cannot_create_royalty(self, client, franchisee_headers, unit):
        response = client.post(
            "/api/v1/royalties/",
            json={"period_year": 2024, "period_month": 5, "gross_revenue": str(Decimal("100"))},
            headers=franchisee_headers,
        )
        assert response.status_code == 403

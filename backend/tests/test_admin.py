"""Tests for the admin console: user management and dashboards."""

from franchisehub.models import User, UserRole

ADMIN = "/api/v1/admin"


# ============== Users ==============

class TestAdminUsers:
    def test_create_user(self, client, db_session, admin_headers, franchise):
        response = client.post(
            f"{ADMIN}/users",
            json={
                "name": "Sales Rep",
                "email": "Rep@Example.com",
                "password": "Str0ng!pass",
                "role": "sales",
                "franchise_id": franchise.id,
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "rep@example.com"
        assert data["role"] == "sales"
        assert "password_hash" not in data
        user = db_session.query(User).filter(User.email == "rep@example.com").one()
        assert user.franchise_id == franchise.id

    def test_duplicate_email(self, client, admin_headers, franchisee_user):
        response = client.post(
            f"{ADMIN}/users",
            json={"name": "Dup", "email": franchisee_user.email, "password": "Str0ng!pass", "role": "broker"},
            headers=admin_headers,
        )
        assert response.status_code == 422
        assert "email" in response.json()["errors"]

    def test_unknown_franchise(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/users",
            json={"name": "Lost", "email": "lost@example.com", "password": "Str0ng!pass", "role": "broker",
                  "franchise_id": 999},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_list_filters_by_role(self, client, admin_headers, franchisee_user, franchisor_user):
        response = client.get(f"{ADMIN}/users", params={"role": "franchisee"}, headers=admin_headers)
        assert response.status_code == 200
        assert [u["email"] for u in response.json()["data"]] == [franchisee_user.email]

    def test_cannot_delete_self(self, client, admin_headers, admin_user):
        response = client.delete(f"{ADMIN}/users/{admin_user.id}", headers=admin_headers)
        assert response.status_code == 400

    def test_cannot_change_own_role(self, client, admin_headers, admin_user):
        response = client.put(f"{ADMIN}/users/{admin_user.id}", json={"role": "broker"}, headers=admin_headers)
        assert response.status_code == 400

    def test_franchise_owner_cannot_be_deleted(self, client, admin_headers, franchisor_user, franchise):
        response = client.delete(f"{ADMIN}/users/{franchisor_user.id}", headers=admin_headers)
        assert response.status_code == 409

    def test_delete_user(self, client, db_session, admin_headers, broker_user):
        response = client.delete(f"{ADMIN}/users/{broker_user.id}", headers=admin_headers)
        assert response.status_code == 200
        assert db_session.query(User).filter(User.email == "broker@example.com").first() is None

    def test_non_admin_forbidden(self, client, franchisor_headers):
        response = client.get(f"{ADMIN}/users", headers=franchisor_headers)
        assert response.status_code == 403


# ============== Dashboard and onboarding ==============

class TestAdminDashboard:
    def test_dashboard_stats(self, client, admin_headers, franchise, unit):
        response = client.get(f"{ADMIN}/dashboard/stats", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_franchisee_with_unit_needs_franchise(self, client, admin_headers):
        response = client.post(
            f"{ADMIN}/franchisees-with-unit",
            json={
                "franchisee": {"name": "New Manager", "email": "new.manager@example.com"},
                "unit": {"unit_name": "Harbour"},
            },
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_franchisee_with_unit(self, client, db_session, admin_headers, franchise):
        response = client.post(
            f"{ADMIN}/franchisees-with-unit",
            json={
                "franchise_id": franchise.id,
                "franchisee": {"name": "New Manager", "email": "new.manager@example.com"},
                "unit": {"unit_name": "Harbour"},
            },
            headers=admin_headers,
        )
        assert response.status_code == 201
        user = db_session.query(User).filter(User.email == "new.manager@example.com").one()
        assert user.role == UserRole.FRANCHISEE
        assert user.profile_completed is False

"""Tests for support tickets."""

from datetime import date

from franchisehub.models import Notification, RequestStatus, TechnicalRequest

REQUESTS = "/api/v1/technical-requests"


def _open(client, headers, **extra):
    payload = {"title": "POS offline", "description": "Terminal 2 will not boot", "category": "other"}
    payload.update(extra)
    return client.post(f"{REQUESTS}/", json=payload, headers=headers)


# ============== Creation ==============

class TestCreateRequest:
    def test_franchisee_ticket_is_numbered_and_scoped(self, client, franchisee_headers, franchisee_user, unit):
        response = _open(client, franchisee_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["ticket_number"] == f"TR{date.today().strftime('%Y%m')}0001"
        assert data["status"] == "open"
        assert data["unit_id"] == unit.id
        assert data["franchise_id"] == unit.franchise_id
        assert data["requester_id"] == franchisee_user.id

    def test_sequence_increments(self, client, franchisee_headers, unit):
        _open(client, franchisee_headers)
        second = _open(client, franchisee_headers).json()["data"]
        assert second["ticket_number"].endswith("0002")

    def test_description_required(self, client, franchisee_headers, unit):
        response = client.post(f"{REQUESTS}/", json={"title": "Empty"}, headers=franchisee_headers)
        assert response.status_code == 422

    def test_franchisor_sees_franchise_tickets(self, client, franchisee_headers, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.get(f"{REQUESTS}/{ticket['id']}", headers=franchisor_headers)
        assert response.status_code == 200

    def test_other_franchisor_is_forbidden(self, client, franchisee_headers, other_franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.get(f"{REQUESTS}/{ticket['id']}", headers=other_franchisor_headers)
        assert response.status_code == 403


# ============== Lifecycle ==============

class TestRequestLifecycle:
    def test_respond_moves_to_in_progress(self, client, db_session, franchisee_headers, franchisee_user, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.post(
            f"{REQUESTS}/{ticket['id']}/respond", json={"message": "Looking into it"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "in_progress"
        assert data["first_response_at"] is not None
        assert "Looking into it" in data["internal_notes"]
        notification = db_session.query(Notification).filter(Notification.user_id == franchisee_user.id).one()
        assert notification.type == "technical_request_status"

    def test_resolve_then_close_with_rating(self, client, franchisee_headers, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.patch(
            f"{REQUESTS}/{ticket['id']}/resolve", json={"resolution_notes": "Replaced cable"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "resolved"
        assert response.json()["data"]["resolved_at"] is not None
        response = client.patch(
            f"{REQUESTS}/{ticket['id']}/close", json={"satisfaction_rating": 5}, headers=franchisee_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "closed"
        assert data["satisfaction_rating"] == 5
        assert data["closed_at"] is not None

    def test_close_twice_rejected(self, client, franchisee_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        client.patch(f"{REQUESTS}/{ticket['id']}/close", headers=franchisee_headers)
        response = client.patch(f"{REQUESTS}/{ticket['id']}/close", headers=franchisee_headers)
        assert response.status_code == 422

    def test_respond_to_closed_rejected(self, client, franchisee_headers, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        client.patch(f"{REQUESTS}/{ticket['id']}/close", headers=franchisee_headers)
        response = client.post(
            f"{REQUESTS}/{ticket['id']}/respond", json={"message": "Too late"}, headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_escalate_raises_priority(self, client, franchisee_headers, unit):
        ticket = _open(client, franchisee_headers, priority="low").json()["data"]
        response = client.patch(
            f"{REQUESTS}/{ticket['id']}/escalate", json={"reason": "Store closed"}, headers=franchisee_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_escalated"] is True
        assert data["priority"] == "urgent"

    def test_escalate_resolved_rejected(self, client, franchisee_headers, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        client.patch(
            f"{REQUESTS}/{ticket['id']}/resolve", json={"resolution_notes": "Fixed"}, headers=franchisor_headers
        )
        response = client.patch(f"{REQUESTS}/{ticket['id']}/escalate", headers=franchisee_headers)
        assert response.status_code == 422

    def test_admin_sets_status(self, client, db_session, franchisee_headers, admin_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.patch(
            f"/api/v1/admin/technical-requests/{ticket['id']}/status",
            json={"status": "cancelled"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        stored = db_session.query(TechnicalRequest).filter(TechnicalRequest.id == ticket["id"]).one()
        assert stored.status == RequestStatus.CANCELLED

    def test_bulk_delete_is_admin_only(self, client, franchisee_headers, franchisor_headers, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.post(f"{REQUESTS}/bulk-delete", json={"ids": [ticket["id"]]}, headers=franchisor_headers)
        assert response.status_code == 403


# ============== Assignment ==============

class TestAssignRequest:
    def test_assign_to_support_admin(self, client, db_session, franchisee_headers, franchisor_headers, admin_user, unit):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.patch(
            f"{REQUESTS}/{ticket['id']}/assign", json={"assigned_to": admin_user.id}, headers=franchisor_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["assigned_to"] == admin_user.id

    def test_assignee_from_other_franchise_rejected(
        self, client, franchisee_headers, franchisor_headers, other_franchisor_user, unit
    ):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.patch(
            f"{REQUESTS}/{ticket['id']}/assign",
            json={"assigned_to": other_franchisor_user.id},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_bulk_assign_checks_each_ticket(
        self, client, db_session, franchisee_headers, franchisor_headers, other_franchisor_user, unit
    ):
        ticket = _open(client, franchisee_headers).json()["data"]
        response = client.post(
            f"{REQUESTS}/bulk-assign",
            json={"request_ids": [ticket["id"]], "assigned_to": other_franchisor_user.id},
            headers=franchisor_headers,
        )
        assert response.status_code == 422
        stored = db_session.query(TechnicalRequest).filter(TechnicalRequest.id == ticket["id"]).one()
        assert stored.assigned_to is None

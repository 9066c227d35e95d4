"""Tests for the lead pipeline: creation, assignment, conversion and import."""

from franchisehub.models import Lead, LeadStatus, Notification, UserRole

from conftest import make_user

LEADS = "/api/v1/leads"


def _lead(**overrides):
    payload = {"first_name": "Sara", "last_name": "Ali", "email": "sara.ali@example.com"}
    payload.update(overrides)
    return payload


# ============== Creation ==============

class TestCreateLead:
    def test_franchisor_creates_lead_in_own_franchise(self, client, franchisor_headers, franchise):
        response = client.post(f"{LEADS}/", json=_lead(), headers=franchisor_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["franchise_id"] == franchise.id
        assert data["status"] == "new"
        assert data["assigned_to"] is None

    def test_email_is_normalised(self, client, franchisor_headers, franchise):
        response = client.post(f"{LEADS}/", json=_lead(email="Sara.Ali@Example.com"), headers=franchisor_headers)
        assert response.json()["data"]["email"] == "sara.ali@example.com"

    def test_duplicate_email(self, client, franchisor_headers, franchise):
        client.post(f"{LEADS}/", json=_lead(), headers=franchisor_headers)
        response = client.post(f"{LEADS}/", json=_lead(first_name="Other"), headers=franchisor_headers)
        assert response.status_code == 422
        assert "email" in response.json()["errors"]

    def test_broker_lead_is_self_assigned(self, client, broker_headers, broker_user, franchise):
        response = client.post(f"{LEADS}/", json=_lead(), headers=broker_headers)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["assigned_to"] == broker_user.id
        assert data["franchise_id"] == franchise.id

    def test_invalid_email(self, client, franchisor_headers, franchise):
        response = client.post(f"{LEADS}/", json=_lead(email="not-an-email"), headers=franchisor_headers)
        assert response.status_code == 422


# ============== Assignment ==============

class TestAssignLead:
    def _create(self, client, headers):
        return client.post(f"{LEADS}/", json=_lead(), headers=headers).json()["data"]

    def test_assign_to_franchise_broker_notifies(self, client, db_session, franchisor_headers, broker_user):
        lead = self._create(client, franchisor_headers)
        response = client.patch(
            f"{LEADS}/{lead['id']}/assign", json={"assigned_to": broker_user.id}, headers=franchisor_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["assigned_to"] == broker_user.id
        notification = db_session.query(Notification).filter(Notification.user_id == broker_user.id).one()
        assert notification.type == "lead_assigned"

    def test_assign_to_foreign_broker_rejected(self, client, db_session, franchisor_headers, other_franchise):
        outsider = make_user(
            db_session, "outsider@example.com", UserRole.BROKER, franchise_id=other_franchise.id
        )
        lead = self._create(client, franchisor_headers)
        response = client.patch(
            f"{LEADS}/{lead['id']}/assign", json={"assigned_to": outsider.id}, headers=franchisor_headers
        )
        assert response.status_code == 422

    def test_broker_only_sees_assigned_leads(self, client, franchisor_headers, broker_headers, broker_user):
        first = self._create(client, franchisor_headers)
        client.post(f"{LEADS}/", json=_lead(email="second@example.com"), headers=franchisor_headers)
        client.patch(f"{LEADS}/{first['id']}/assign", json={"assigned_to": broker_user.id}, headers=franchisor_headers)
        response = client.get(f"{LEADS}/", headers=broker_headers)
        assert [lead["id"] for lead in response.json()["data"]] == [first["id"]]

    def test_broker_cannot_delete(self, client, broker_headers):
        lead = self._create(client, broker_headers)
        response = client.delete(f"{LEADS}/{lead['id']}", headers=broker_headers)
        assert response.status_code == 403


# ============== Lifecycle ==============

class TestLeadLifecycle:
    def _create(self, client, headers):
        return client.post(f"{LEADS}/", json=_lead(), headers=headers).json()["data"]

    def test_convert_once(self, client, franchisor_headers):
        lead = self._create(client, franchisor_headers)
        response = client.patch(f"{LEADS}/{lead['id']}/convert", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "closed_won"
        response = client.patch(f"{LEADS}/{lead['id']}/convert", headers=franchisor_headers)
        assert response.status_code == 422

    def test_mark_lost_records_reason(self, client, franchisor_headers):
        lead = self._create(client, franchisor_headers)
        response = client.patch(
            f"{LEADS}/{lead['id']}/mark-lost", json={"reason": "Budget"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "closed_lost"
        assert data["lost_reason"] == "Budget"

    def test_call_counts_as_contact(self, client, franchisor_headers):
        lead = self._create(client, franchisor_headers)
        response = client.post(
            f"{LEADS}/{lead['id']}/notes", json={"note": "Left voicemail", "type": "call"}, headers=franchisor_headers
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["lead"]["status"] == "contacted"
        assert data["lead"]["contact_attempts"] == 1
        assert data["lead"]["communication_log"][0]["note"] == "Left voicemail"

    def test_plain_note_is_not_a_contact(self, client, franchisor_headers):
        lead = self._create(client, franchisor_headers)
        response = client.post(f"{LEADS}/{lead['id']}/notes", json={"note": "Looks promising"}, headers=franchisor_headers)
        assert response.json()["data"]["lead"]["contact_attempts"] == 0
        assert response.json()["data"]["lead"]["status"] == "new"


# ============== Import ==============

class TestImportLeads:
    def test_import_csv_reports_bad_rows(self, client, db_session, franchisor_headers, franchise):
        content = (
            "first_name,last_name,email,phone,city,lead_source\n"
            "Omar,Khan,omar@example.com,,Jeddah,referral\n"
            "Bad,Row,not-an-email,,,\n"
            "Omar,Again,omar@example.com,,,\n"
        ).encode("utf-8")
        response = client.post(
            f"{LEADS}/import",
            files={"file": ("leads.csv", content, "text/csv")},
            headers=franchisor_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["imported"] == 1
        assert [e["row"] for e in data["errors"]] == [3, 4]
        lead = db_session.query(Lead).filter(Lead.email == "omar@example.com").one()
        assert lead.franchise_id == franchise.id
        assert lead.status == LeadStatus.NEW

    def test_missing_columns(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{LEADS}/import",
            files={"file": ("leads.csv", b"first_name,email\nA,a@example.com\n", "text/csv")},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_rejects_other_formats(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{LEADS}/import",
            files={"file": ("leads.txt", b"hello", "text/plain")},
            headers=franchisor_headers,
        )
        assert response.status_code == 422


# ============== Sales associates ==============

class TestSalesAssociates:
    ASSOCIATES = "/api/v1/franchisor/sales-associates"

    def test_create_is_broker_in_franchise(self, client, db_session, franchisor_headers, franchise):
        response = client.post(
            self.ASSOCIATES,
            json={"name": "New Rep", "email": "New.Rep@example.com", "password": "Str0ng!pass"},
            headers=franchisor_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["role"] == "broker"
        assert data["franchise_id"] == franchise.id
        assert data["email"] == "new.rep@example.com"

    def test_weak_password_rejected(self, client, franchisor_headers, franchise):
        response = client.post(
            self.ASSOCIATES,
            json={"name": "New Rep", "email": "rep@example.com", "password": "password"},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_delete_unassigns_leads(self, client, db_session, franchisor_headers, broker_user, franchise):
        lead = client.post(
            f"{LEADS}/", json=_lead(assigned_to=broker_user.id), headers=franchisor_headers
        ).json()["data"]
        assert lead["assigned_to"] == broker_user.id

        response = client.get(f"{self.ASSOCIATES}/{broker_user.id}", headers=franchisor_headers)
        assert response.json()["data"]["assigned_leads"] == 1

        response = client.delete(f"{self.ASSOCIATES}/{broker_user.id}", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"unassigned_leads": 1}
        db_session.expire_all()
        stored = db_session.query(Lead).filter(Lead.id == lead["id"]).one()
        assert stored.assigned_to is None

    def test_other_franchise_associate_forbidden(self, client, db_session, other_franchisor_headers, broker_user):
        response = client.delete(f"{self.ASSOCIATES}/{broker_user.id}", headers=other_franchisor_headers)
        assert response.status_code == 403

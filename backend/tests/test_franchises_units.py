"""Tests for franchises, units and their staff and reviews."""

from decimal import Decimal

from franchisehub.models import Document, Notification, Product, UnitInventory

FRANCHISES = "/api/v1/franchises"
UNITS = "/api/v1/units"


# ============== Franchises ==============

class TestFranchises:
    def test_admin_creates_franchise_with_generated_brn(self, client, db_session, admin_headers, other_franchisor_user):
        response = client.post(
            f"{FRANCHISES}/",
            json={"franchisor_id": other_franchisor_user.id, "business_name": "Tea House", "royalty_percentage": "7.5"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["business_registration_number"].startswith("BRN-")
        assert data["total_units"] == 0

    def test_franchisor_must_have_franchisor_role(self, client, admin_headers, franchisee_user):
        response = client.post(
            f"{FRANCHISES}/",
            json={"franchisor_id": franchisee_user.id, "business_name": "Tea House"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_one_franchise_per_franchisor(self, client, admin_headers, franchisor_user, franchise):
        response = client.post(
            f"{FRANCHISES}/",
            json={"franchisor_id": franchisor_user.id, "business_name": "Second Brand"},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_duplicate_registration_number(self, client, admin_headers, other_franchisor_user, franchise):
        response = client.post(
            f"{FRANCHISES}/",
            json={
                "franchisor_id": other_franchisor_user.id,
                "business_name": "Copycat",
                "business_registration_number": franchise.business_registration_number,
            },
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_franchisor_cannot_create_franchise_directly(self, client, franchisor_headers, franchisor_user):
        response = client.post(
            f"{FRANCHISES}/",
            json={"franchisor_id": franchisor_user.id, "business_name": "Mine"},
            headers=franchisor_headers,
        )
        assert response.status_code == 403

    def test_franchisor_updates_own_franchise(self, client, franchisor_headers, franchise):
        response = client.put(
            f"{FRANCHISES}/{franchise.id}", json={"brand_name": "CC"}, headers=franchisor_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["brand_name"] == "CC"

    def test_franchisor_cannot_change_status(self, client, franchisor_headers, franchise):
        response = client.put(
            f"{FRANCHISES}/{franchise.id}", json={"status": "suspended"}, headers=franchisor_headers
        )
        assert response.status_code == 403

    def test_list_is_scoped(self, client, franchisor_headers, franchise, other_franchise):
        response = client.get(f"{FRANCHISES}/", headers=franchisor_headers)
        assert response.status_code == 200
        assert [f["id"] for f in response.json()["data"]] == [franchise.id]

    def test_statistics(self, client, admin_headers, franchise, other_franchise, unit):
        response = client.get(f"{FRANCHISES}/statistics", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["byStatus"]["active"] == 2

    def test_admin_deactivates(self, client, admin_headers, franchise):
        response = client.patch(f"{FRANCHISES}/{franchise.id}/deactivate", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "inactive"


# ============== Units ==============

class TestUnits:
    def test_franchisor_creates_unit_with_generated_code(self, client, db_session, franchisor_headers, franchise):
        response = client.post(
            f"{UNITS}/", json={"unit_name": "Olaya Street", "status": "active"}, headers=franchisor_headers
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["unit_code"] == "COF-OLAYAS"
        assert data["franchise_id"] == franchise.id
        db_session.refresh(franchise)
        assert franchise.total_units == 1
        assert franchise.active_units == 1

    def test_generated_codes_are_unique(self, client, franchisor_headers, franchise):
        first = client.post(f"{UNITS}/", json={"unit_name": "Olaya Street"}, headers=franchisor_headers)
        second = client.post(f"{UNITS}/", json={"unit_name": "Olaya Street"}, headers=franchisor_headers)
        assert first.json()["data"]["unit_code"] != second.json()["data"]["unit_code"]

    def test_duplicate_unit_code(self, client, franchisor_headers, unit):
        response = client.post(
            f"{UNITS}/", json={"unit_name": "Copy", "unit_code": unit.unit_code}, headers=franchisor_headers
        )
        assert response.status_code == 409

    def test_admin_needs_franchise_id(self, client, admin_headers):
        response = client.post(f"{UNITS}/", json={"unit_name": "Nowhere"}, headers=admin_headers)
        assert response.status_code == 422

    def test_franchisee_id_must_be_a_franchisee(self, client, franchisor_headers, franchisor_user):
        response = client.post(
            f"{UNITS}/",
            json={"unit_name": "Wrong Manager", "franchisee_id": franchisor_user.id},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_franchisee_cannot_change_status(self, client, franchisee_headers, unit):
        response = client.put(f"{UNITS}/{unit.id}", json={"status": "permanently_closed"}, headers=franchisee_headers)
        assert response.status_code == 403

    def test_franchisee_updates_details(self, client, franchisee_headers, unit):
        response = client.put(f"{UNITS}/{unit.id}", json={"phone": "+966500000000"}, headers=franchisee_headers)
        assert response.status_code == 200
        assert response.json()["data"]["phone"] == "+966500000000"

    def test_close_updates_active_count(self, client, db_session, franchisor_headers, franchise, unit):
        response = client.patch(f"{UNITS}/{unit.id}/close", headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "permanently_closed"
        db_session.refresh(franchise)
        assert franchise.active_units == 0

    def test_delete_refreshes_counts(self, client, db_session, franchisor_headers, franchise, unit):
        response = client.delete(f"{UNITS}/{unit.id}", headers=franchisor_headers)
        assert response.status_code == 200
        db_session.refresh(franchise)
        assert franchise.total_units == 0


# ============== Staff and reviews ==============

class TestUnitStaffAndReviews:
    def test_staff_updates_employee_count(self, client, db_session, franchisee_headers, unit):
        response = client.post(
            f"{UNITS}/{unit.id}/staff", json={"name": "Barista One", "job_title": "Barista"}, headers=franchisee_headers
        )
        assert response.status_code == 201
        db_session.refresh(unit)
        assert unit.employee_count == 1

    def test_invalid_shift(self, client, franchisee_headers, unit):
        response = client.post(
            f"{UNITS}/{unit.id}/staff",
            json={"name": "Night Owl", "shift_start": "22:00:00", "shift_end": "06:00:00"},
            headers=franchisee_headers,
        )
        assert response.status_code == 422

    def test_review_sentiment_and_statistics(self, client, franchisee_headers, unit):
        for rating in (5, 3, 1):
            response = client.post(
                f"{UNITS}/{unit.id}/reviews",
                json={"customer_name": f"Guest {rating}", "rating": rating},
                headers=franchisee_headers,
            )
            assert response.status_code == 201
        response = client.get(f"{UNITS}/{unit.id}/reviews/statistics", headers=franchisee_headers)
        data = response.json()["data"]
        assert data["total"] == 3
        assert data["average_rating"] == 3.0
        assert data["sentiment"] == {"positive": 1, "neutral": 1, "negative": 1}


# ============== Franchisee onboarding ==============

class TestFranchiseeWithUnit:
    def test_franchisor_creates_franchisee_and_unit(self, client, db_session, franchisor_headers, franchise):
        response = client.post(
            "/api/v1/franchisor/franchisees-with-unit",
            json={
                "franchisee": {"name": "New Manager", "email": "new.manager@example.com"},
                "unit": {"unit_name": "Harbour", "status": "active"},
            },
            headers=franchisor_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["franchisee"]["role"] == "franchisee"
        assert data["unit"]["franchisee_id"] == data["franchisee"]["id"]
        assert "password" not in data["franchisee"]
        notification = (
            db_session.query(Notification).filter(Notification.user_id == data["franchisee"]["id"]).first()
        )
        assert notification.type == "unit_assigned"

    def test_taken_email(self, client, franchisor_headers, franchise, franchisee_user):
        response = client.post(
            "/api/v1/franchisor/franchisees-with-unit",
            json={
                "franchisee": {"name": "Dup", "email": franchisee_user.email},
                "unit": {"unit_name": "Harbour"},
            },
            headers=franchisor_headers,
        )
        assert response.status_code == 422


# ============== Products ==============

def _products_url(franchise_id):
    return f"{FRANCHISES}/{franchise_id}/products"


def _add_product(client, headers, franchise_id, **overrides):
    payload = {"name": "Paper cups", "unit_price": "0.50", "stock": 10, "minimum_stock": 5}
    payload.update(overrides)
    return client.post(f"{_products_url(franchise_id)}/", json=payload, headers=headers)


class TestProducts:
    def test_subtract_below_zero_rejected(self, client, db_session, franchisor_headers, franchise):
        product = _add_product(client, franchisor_headers, franchise.id).json()["data"]
        url = f"{_products_url(franchise.id)}/{product['id']}/stock"
        response = client.patch(url, json={"stock": 11, "operation": "subtract"}, headers=franchisor_headers)
        assert response.status_code == 422
        assert db_session.query(Product).filter(Product.id == product["id"]).one().stock == 10
        response = client.patch(url, json={"stock": 4, "operation": "subtract"}, headers=franchisor_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["stock"] == 6
        assert data["is_low_stock"] is False

    def test_add_and_set_stock(self, client, franchisor_headers, franchise):
        product = _add_product(client, franchisor_headers, franchise.id).json()["data"]
        url = f"{_products_url(franchise.id)}/{product['id']}/stock"
        response = client.patch(url, json={"stock": 5, "operation": "add"}, headers=franchisor_headers)
        assert response.json()["data"]["stock"] == 15
        response = client.patch(url, json={"stock": 2}, headers=franchisor_headers)
        assert response.json()["data"]["stock"] == 2

    def test_low_stock_filter(self, client, franchisor_headers, franchise):
        _add_product(client, franchisor_headers, franchise.id, name="Lids", stock=3, minimum_stock=5)
        _add_product(client, franchisor_headers, franchise.id, name="Straws", stock=50, minimum_stock=5)
        response = client.get(f"{_products_url(franchise.id)}/", params={"low_stock": True}, headers=franchisor_headers)
        assert response.status_code == 200
        rows = response.json()["data"]
        assert [p["name"] for p in rows] == ["Lids"]
        assert rows[0]["is_low_stock"] is True

    def test_duplicate_sku(self, client, franchisor_headers, franchise):
        _add_product(client, franchisor_headers, franchise.id, sku="CUP-12")
        response = _add_product(client, franchisor_headers, franchise.id, name="Other cups", sku="CUP-12")
        assert response.status_code == 409

    def test_image_upload_and_delete(self, client, franchisor_headers, franchise):
        product = _add_product(client, franchisor_headers, franchise.id).json()["data"]
        url = f"{_products_url(franchise.id)}/{product['id']}/image"
        response = client.post(
            url, files={"image": ("cup.png", b"\x89PNG\r\n\x1a\n fake", "image/png")}, headers=franchisor_headers
        )
        assert response.status_code == 200
        image = response.json()["data"]["image"]
        assert image.startswith(f"products/{franchise.id}/")
        assert image.endswith(".png")

        response = client.delete(url, headers=franchisor_headers)
        assert response.status_code == 200
        assert response.json()["data"]["image"] is None

    def test_image_must_be_an_image(self, client, franchisor_headers, franchise):
        product = _add_product(client, franchisor_headers, franchise.id).json()["data"]
        response = client.post(
            f"{_products_url(franchise.id)}/{product['id']}/image",
            files={"image": ("cup.pdf", b"%PDF-1.4", "application/pdf")},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_franchisee_cannot_edit_catalogue(self, client, franchisor_headers, franchisee_headers, franchise, unit):
        product = _add_product(client, franchisor_headers, franchise.id).json()["data"]
        response = client.patch(
            f"{_products_url(franchise.id)}/{product['id']}/stock", json={"stock": 1}, headers=franchisee_headers
        )
        assert response.status_code == 403


# ============== Documents ==============

def _documents_url(franchise_id):
    return f"{FRANCHISES}/{franchise_id}/documents"


def _upload(client, headers, franchise_id, content=b"%PDF-1.4 franchise agreement", **fields):
    data = {"name": "Franchise agreement", "type": "contract"}
    data.update({k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in fields.items()})
    return client.post(
        f"{_documents_url(franchise_id)}/",
        data=data,
        files={"file": ("agreement.pdf", content, "application/pdf")},
        headers=headers,
    )


class TestDocuments:
    def test_upload_and_download(self, client, franchisee_headers, unit):
        response = _upload(client, franchisee_headers, unit.franchise_id)
        assert response.status_code == 201
        document = response.json()["data"]
        assert document["unit_id"] == unit.id
        assert document["file_extension"] == "pdf"
        assert document["status"] == "active"

        response = client.get(
            f"{_documents_url(unit.franchise_id)}/{document['id']}/download", headers=franchisee_headers
        )
        assert response.status_code == 200
        assert response.content == b"%PDF-1.4 franchise agreement"

    def test_disallowed_extension(self, client, franchisor_headers, franchise):
        response = client.post(
            f"{_documents_url(franchise.id)}/",
            data={"name": "Script", "type": "other"},
            files={"file": ("run.exe", b"MZ", "application/octet-stream")},
            headers=franchisor_headers,
        )
        assert response.status_code == 422

    def test_approve_notifies_unit_manager(self, client, db_session, franchisee_headers, franchisor_headers,
                                           franchisee_user, unit):
        document = _upload(client, franchisee_headers, unit.franchise_id).json()["data"]
        response = client.patch(
            f"{_documents_url(unit.franchise_id)}/{document['id']}/approve", headers=franchisor_headers
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "approved"
        assert data["reviewed_by"] is not None
        notification = db_session.query(Notification).filter(Notification.user_id == franchisee_user.id).one()
        assert notification.type == "document_approved"

    def test_reject_records_reason(self, client, franchisee_headers, franchisor_headers, unit):
        document = _upload(client, franchisee_headers, unit.franchise_id).json()["data"]
        url = f"{_documents_url(unit.franchise_id)}/{document['id']}/reject"
        response = client.patch(url, json={}, headers=franchisor_headers)
        assert response.status_code == 422
        response = client.patch(url, json={"reason": "Unsigned copy"}, headers=franchisor_headers)
        data = response.json()["data"]
        assert data["status"] == "rejected"
        assert data["rejection_reason"] == "Unsigned copy"

    def test_franchisee_cannot_review(self, client, franchisee_headers, unit):
        document = _upload(client, franchisee_headers, unit.franchise_id).json()["data"]
        response = client.patch(
            f"{_documents_url(unit.franchise_id)}/{document['id']}/approve", headers=franchisee_headers
        )
        assert response.status_code == 403

    def test_confidential_hidden_from_franchisee(self, client, franchisor_headers, franchisee_headers, unit):
        secret = _upload(client, franchisor_headers, unit.franchise_id, name="Board minutes", is_confidential=True)
        secret = secret.json()["data"]
        _upload(client, franchisor_headers, unit.franchise_id, name="Brand guide")

        response = client.get(f"{_documents_url(unit.franchise_id)}/", headers=franchisee_headers)
        assert [d["name"] for d in response.json()["data"]] == ["Brand guide"]
        response = client.get(f"{_documents_url(unit.franchise_id)}/{secret['id']}", headers=franchisee_headers)
        assert response.status_code == 403
        response = client.get(
            f"{_documents_url(unit.franchise_id)}/{secret['id']}/download", headers=franchisee_headers
        )
        assert response.status_code == 403

        response = client.get(
            f"{_documents_url(unit.franchise_id)}/", params={"confidential": True}, headers=franchisor_headers
        )
        assert [d["name"] for d in response.json()["data"]] == ["Board minutes"]

    def test_confidential_visible_to_own_unit(self, client, franchisee_headers, unit):
        document = _upload(client, franchisee_headers, unit.franchise_id, is_confidential=True).json()["data"]
        response = client.get(f"{_documents_url(unit.franchise_id)}/{document['id']}", headers=franchisee_headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_confidential"] is True

    def test_other_franchise_forbidden(self, client, db_session, franchisor_headers, other_franchisor_headers, franchise):
        _upload(client, franchisor_headers, franchise.id)
        response = client.get(f"{_documents_url(franchise.id)}/", headers=other_franchisor_headers)
        assert response.status_code == 403
        assert db_session.query(Document).count() == 1


# ============== Unit inventory ==============

class TestUnitInventory:
    def _product(self, db, franchise, name="Coffee beans"):
        product = Product(franchise_id=franchise.id, name=name, unit_price=Decimal("25.00"))
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    def test_add_and_flag_reorder(self, client, db_session, franchisee_headers, franchise, unit):
        product = self._product(db_session, franchise)
        response = client.post(
            f"{UNITS}/{unit.id}/inventory/{product.id}",
            json={"quantity": 2, "reorder_level": 5},
            headers=franchisee_headers,
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["product_name"] == "Coffee beans"
        assert data["needs_reorder"] is True

    def test_foreign_franchise_product_rejected(self, client, db_session, franchisee_headers, other_franchise, unit):
        product = self._product(db_session, other_franchise, name="Burger buns")
        response = client.post(
            f"{UNITS}/{unit.id}/inventory/{product.id}", json={"quantity": 1}, headers=franchisee_headers
        )
        assert response.status_code == 422
        assert db_session.query(UnitInventory).count() == 0

    def test_duplicate_rejected(self, client, db_session, franchisee_headers, franchise, unit):
        product = self._product(db_session, franchise)
        url = f"{UNITS}/{unit.id}/inventory/{product.id}"
        assert client.post(url, json={"quantity": 1}, headers=franchisee_headers).status_code == 201
        response = client.post(url, json={"quantity": 4}, headers=franchisee_headers)
        assert response.status_code == 409

    def test_update_and_remove(self, client, db_session, franchisee_headers, franchise, unit):
        product = self._product(db_session, franchise)
        url = f"{UNITS}/{unit.id}/inventory/{product.id}"
        client.post(url, json={"quantity": 1}, headers=franchisee_headers)
        response = client.put(url, json={"quantity": 30, "reorder_level": 5}, headers=franchisee_headers)
        assert response.json()["data"]["needs_reorder"] is False
        assert client.delete(url, headers=franchisee_headers).status_code == 200
        assert client.delete(url, headers=franchisee_headers).status_code == 404

    def test_other_franchise_unit_forbidden(self, client, db_session, franchisor_headers, other_franchise, other_unit):
        product = self._product(db_session, other_franchise)
        response = client.post(
            f"{UNITS}/{other_unit.id}/inventory/{product.id}", json={"quantity": 1}, headers=franchisor_headers
        )
        assert response.status_code == 403

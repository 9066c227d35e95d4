"""Tests for shared plumbing: list parameters, engine options, upload limits and numbering."""

import io
from datetime import date
from decimal import Decimal

import pytest

from franchisehub.core.config import Settings
from franchisehub.core.file_utils import read_limited
from franchisehub.db.session import engine_options
from franchisehub.models import Transaction, TransactionStatus, TransactionType
from franchisehub.schemas.pagination import escape_like
from franchisehub.services.numbering import next_number

FRANCHISES = "/api/v1/franchises"


# ============== List parameters ==============

class TestListParams:
    def test_page_and_per_page_envelope(self, client, admin_headers, franchise, other_franchise):
        response = client.get(
            f"{FRANCHISES}/",
            params={"per_page": 1, "page": 2, "sortBy": "business_name", "sortOrder": "asc"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert [f["business_name"] for f in body["data"]] == ["Coffee Corner"]
        assert body["pagination"] == {
            "total": 2, "per_page": 1, "current_page": 2, "last_page": 2, "from": 2, "to": 2,
        }

    def test_sort_order_is_respected(self, client, admin_headers, franchise, other_franchise):
        response = client.get(
            f"{FRANCHISES}/", params={"sort_by": "business_name", "sort_order": "desc"}, headers=admin_headers
        )
        assert [f["business_name"] for f in response.json()["data"]] == ["Coffee Corner", "Burger Barn"]

    def test_unknown_sort_column_falls_back(self, client, admin_headers, franchise, other_franchise):
        response = client.get(
            f"{FRANCHISES}/", params={"sortBy": "franchisor_id; drop", "sortOrder": "asc"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 2

    def test_page_past_the_end_is_empty(self, client, admin_headers, franchise):
        response = client.get(f"{FRANCHISES}/", params={"page": 5}, headers=admin_headers)
        body = response.json()
        assert body["data"] == []
        assert body["pagination"]["from"] is None
        assert body["pagination"]["last_page"] == 1

    def test_per_page_capped(self, client, admin_headers):
        response = client.get(f"{FRANCHISES}/", params={"per_page": 500}, headers=admin_headers)
        assert response.status_code == 422

    def test_search_wildcards_match_literally(self, client, admin_headers, franchise, other_franchise):
        for term in ("_", "%"):
            response = client.get(f"{FRANCHISES}/", params={"search": term}, headers=admin_headers)
            assert response.json()["data"] == []
        response = client.get(f"{FRANCHISES}/", params={"search": "corner"}, headers=admin_headers)
        assert [f["business_name"] for f in response.json()["data"]] == ["Coffee Corner"]

    def test_escape_like(self):
        assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


# ============== Engine options ==============

class TestEngineOptions:
    def test_server_database_uses_pool_settings(self):
        config = Settings(
            database_url="postgresql://app@localhost/franchisehub",
            database_echo=True,
            db_pool_size=3,
            db_max_overflow=4,
            db_pool_recycle=60,
        )
        options = engine_options(config)
        assert options["echo"] is True
        assert options["pool_size"] == 3
        assert options["max_overflow"] == 4
        assert options["pool_recycle"] == 60
        assert "connect_args" not in options

    def test_sqlite_skips_pool_size(self):
        options = engine_options(Settings(database_url="sqlite:///:memory:"))
        assert options["connect_args"] == {"check_same_thread": False}
        assert "pool_size" not in options
        assert options["echo"] is False


# ============== Uploads ==============

class CountingStream(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        return super().read(size)


class TestReadLimited:
    def test_within_limit(self):
        assert read_limited(io.BytesIO(b"abcdef"), limit=10, chunk_size=4) == b"abcdef"

    def test_exactly_at_limit(self):
        assert read_limited(io.BytesIO(b"abcd"), limit=4, chunk_size=2) == b"abcd"

    def test_stops_once_limit_passed(self):
        stream = CountingStream(b"x" * 100)
        with pytest.raises(ValueError):
            read_limited(stream, limit=10, chunk_size=4)
        assert stream.reads == 3


# ============== Numbering ==============

class TestNextNumber:
    def _seed(self, db, number):
        db.add(Transaction(
            transaction_number=number,
            type=TransactionType.EXPENSE,
            amount=Decimal("1.00"),
            transaction_date=date(2024, 5, 1),
            status=TransactionStatus.COMPLETED,
        ))
        db.commit()

    def test_first_of_month(self, db_session):
        assert next_number(db_session, "TXN", date(2024, 5, 10)) == "TXN2024050001"

    def test_sequence_past_four_digits(self, db_session):
        self._seed(db_session, "TXN2024059999")
        self._seed(db_session, "TXN20240510000")
        assert next_number(db_session, "TXN", date(2024, 5, 10)) == "TXN20240510001"

    def test_months_are_independent(self, db_session):
        self._seed(db_session, "TXN2024050007")
        assert next_number(db_session, "TXN", date(2024, 6, 1)) == "TXN2024060001"

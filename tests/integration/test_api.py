"""Integration tests for API endpoints"""

import threading

import pytest
from urllib.parse import quote
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from cnab_processor.api.dependencies import get_cancel_event
from cnab_processor.config import settings
from cnab_processor.domain.exceptions import BulkInsertError
from cnab_processor.infrastructure.database.repositories import TransactionRepository

pytestmark = pytest.mark.integration


def _upload(client: TestClient, content: bytes, file_name: str = "CNAB.txt", content_type: str = "text/plain"):
    return client.post("/api/cnab/upload", files={"file": (file_name, content, content_type)})


@pytest.fixture
def imported(client: TestClient, sample_file_bytes: bytes) -> TestClient:
    response = _upload(client, sample_file_bytes)
    assert response.status_code == 200
    return client


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["service"] == settings.service_name


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "cnab_import_total" in response.text
    assert "cnab_bulk_insert_batch_seconds" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = client.get("/health")
    assert generated.headers["X-Request-ID"]


def test_upload_sample_file(client: TestClient, sample_file_bytes: bytes):
    """Test the three-line sample imports three transactions"""
    response = _upload(client, sample_file_bytes)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["transaction_count"] == 3
    assert data["skipped_lines"] == 0
    assert data["file_name"] == "CNAB.txt"


def test_upload_skips_malformed_lines(client: TestClient, sample_lines, make_line):
    content = "\n".join(sample_lines + [make_line(date="20191399")]).encode("utf-8")

    response = _upload(client, content)

    assert response.status_code == 200
    assert response.json()["transaction_count"] == 3
    assert response.json()["skipped_lines"] == 1


def test_upload_uses_bulk_path_above_threshold(client: TestClient, sample_file_bytes: bytes, monkeypatch):
    monkeypatch.setattr(settings, "bulk_insert_threshold", 2)
    monkeypatch.setattr(settings, "bulk_batch_size", 2)

    response = _upload(client, sample_file_bytes)

    assert response.status_code == 200
    assert response.json()["transaction_count"] == 3
    assert len(client.get("/api/cnab/transactions").json()) == 3


def test_upload_bulk_failure_commits_nothing(client: TestClient, sample_file_bytes: bytes, monkeypatch):
    def failing_bulk_insert(self, transactions, batch_size=5000, cancel_event=None):
        raise BulkInsertError("connection lost", batches_attempted=1, records_staged=0)

    monkeypatch.setattr(settings, "bulk_insert_threshold", 1)
    monkeypatch.setattr(TransactionRepository, "bulk_insert", failing_bulk_insert)

    response = _upload(client, sample_file_bytes)

    assert response.status_code == 500
    assert "rolled back" in response.json()["detail"]
    assert client.get("/api/cnab/transactions").json() == []


def test_upload_empty_file(client: TestClient):
    response = _upload(client, b"")
    assert response.status_code == 400


def test_upload_bad_extension(client: TestClient, sample_file_bytes: bytes):
    response = _upload(client, sample_file_bytes, file_name="CNAB.csv")
    assert response.status_code == 400
    assert "extension" in response.json()["detail"]


def test_upload_bad_content_type(client: TestClient, sample_file_bytes: bytes):
    response = _upload(client, sample_file_bytes, content_type="image/png")
    assert response.status_code == 400


def test_upload_first_character_not_a_digit(client: TestClient, sample_lines):
    content = ("X" + sample_lines[0][1:]).encode("utf-8")

    response = _upload(client, content)

    assert response.status_code == 400
    assert "First character" in response.json()["detail"]


def test_upload_without_valid_transactions(client: TestClient, make_line):
    content = "\n".join([make_line(date="20190230"), make_line(cents="0")]).encode("utf-8")

    response = _upload(client, content)

    assert response.status_code == 400
    assert response.json()["detail"] == "No valid transactions found in the file."


def test_balances(imported: TestClient):
    """Test stores come back by name with their signed totals"""
    response = imported.get("/api/cnab/balances")

    assert response.status_code == 200
    data = response.json()
    assert [b["store_name"] for b in data] == ["BAR DO JOÃO", "LOJA DO Ó - MATRIZ", "MERCEARIA 3 IRMÃOS"]
    assert data[0]["total_balance"] == -142.0
    assert data[0]["total_expenses"] == 142.0
    assert data[1]["total_balance"] == -122.0
    assert data[2]["total_balance"] == 132.0
    assert data[2]["total_income"] == 132.0
    assert data[2]["transactions"][0]["type_description"] == "Loan Receipt"


def test_balances_empty(client: TestClient):
    assert client.get("/api/cnab/balances").json() == []


def test_stats(imported: TestClient):
    data = imported.get("/api/cnab/stats").json()

    assert data["total_transactions"] == 3
    assert data["total_stores"] == 3
    assert data["total_balance"] == -132.0
    assert data["biggest_store"] == "MERCEARIA 3 IRMÃOS"
    assert data["smallest_store"] == "BAR DO JOÃO"


def test_stats_empty(client: TestClient):
    data = client.get("/api/cnab/stats").json()

    assert data["total_transactions"] == 0
    assert data["biggest_store"] is None
    assert data["smallest_store"] is None


def test_transactions_newest_first(imported: TestClient):
    data = imported.get("/api/cnab/transactions").json()

    assert [t["time"] for t in data] == ["17:27:12", "15:34:53", "14:13:58"]
    assert data[0]["type"] == "2"
    assert data[0]["nature"] == "Expense"
    assert data[0]["signed_amount"] == -122.0
    assert data[1]["amount"] == 132.0


def test_transactions_paged(imported: TestClient):
    data = imported.get("/api/cnab/transactions/paged", params={"page_number": 1, "page_size": 2}).json()

    assert len(data["items"]) == 2
    assert data["total_count"] == 3
    assert data["total_pages"] == 2
    assert data["has_next"] is True
    assert data["has_previous"] is False


def test_transactions_paged_clamps(imported: TestClient):
    data = imported.get("/api/cnab/transactions/paged", params={"page_number": 99, "page_size": 2}).json()

    assert data["page_number"] == 2
    assert len(data["items"]) == 1


def test_store_transactions(imported: TestClient):
    response = imported.get(f"/api/cnab/store/{quote('BAR DO JOÃO')}")

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["store_owner"] == "JOÃO MACEDO"


def test_store_transactions_unknown_store(imported: TestClient):
    assert imported.get("/api/cnab/store/NOWHERE").json() == []


def test_store_transactions_blank_name(client: TestClient):
    response = client.get("/api/cnab/store/%20%20")
    assert response.status_code == 400


def test_store_transactions_paged(imported: TestClient):
    data = imported.get(
        f"/api/cnab/store/{quote('MERCEARIA 3 IRMÃOS')}/paged", params={"page_size": 5}
    ).json()

    assert data["total_count"] == 1
    assert data["items"][0]["store_name"] == "MERCEARIA 3 IRMÃOS"


def test_delete_all_transactions(imported: TestClient):
    response = imported.delete("/api/cnab/transactions")

    assert response.status_code == 200
    assert response.json()["deleted"] == 3
    assert imported.get("/api/cnab/transactions").json() == []


def _override_cancel_event(client: TestClient, event) -> None:
    client.app.dependency_overrides[get_cancel_event] = lambda: event


def test_upload_cancelled_during_parse(client: TestClient, sample_file_bytes: bytes):
    """Test a cancelled import answers 500 and commits nothing"""
    event = threading.Event()
    event.set()
    _override_cancel_event(client, event)

    response = _upload(client, sample_file_bytes)

    assert response.status_code == 500
    assert "rolled back" in response.json()["detail"]
    assert client.get("/api/cnab/transactions").json() == []


def test_upload_cancelled_between_bulk_batches(
    client: TestClient, sample_file_bytes: bytes, cancel_after, monkeypatch
):
    monkeypatch.setattr(settings, "bulk_insert_threshold", 2)
    monkeypatch.setattr(settings, "bulk_batch_size", 2)
    # Three line checks while parsing, then one per batch: the second batch is cancelled
    _override_cancel_event(client, cancel_after(4))

    response = _upload(client, sample_file_bytes)

    assert response.status_code == 500
    assert client.get("/api/cnab/transactions").json() == []


def test_upload_cancelled_before_small_import_commit(client: TestClient, sample_file_bytes: bytes, cancel_after):
    _override_cancel_event(client, cancel_after(3))

    response = _upload(client, sample_file_bytes)

    assert response.status_code == 500
    assert client.get("/api/cnab/transactions").json() == []


def _request_count(endpoint: str, status: str) -> float:
    return REGISTRY.get_sample_value(
        "http_request_duration_seconds_count",
        {"method": "GET", "endpoint": endpoint, "status": status},
    ) or 0.0


def test_metrics_label_unmatched_paths_as_constant(client: TestClient):
    before = _request_count("unmatched", "404")

    client.get("/nope/xyz123")
    client.get("/another/missing/path")

    assert _request_count("unmatched", "404") == before + 2
    assert _request_count("/nope/xyz123", "404") == 0.0


def test_metrics_label_uses_full_route_template(imported: TestClient):
    before = _request_count("/api/cnab/store/{store_name}", "200")

    imported.get(f"/api/cnab/store/{quote('BAR DO JOÃO')}")
    imported.get("/api/cnab/store/NOWHERE")

    assert _request_count("/api/cnab/store/{store_name}", "200") == before + 2

"""Unit tests for the document API.

Tests cover:
- Health, readiness and metrics endpoints
- Live financial summaries
- Synchronous rendering and share messages
- Backend-backed invoice/receipt downloads
- Background render jobs
"""

from collections.abc import Callable, Generator
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from services.api import main
from services.api.main import app
from services.backend.client import BackendError
from services.billing.schema import DocumentKind, FinalizedDocument, Tenant
from services.queue.tasks import JobResult
from services.storage.service import PresignedUrlResult


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


@pytest.fixture
def invoice_json(invoice: FinalizedDocument) -> dict[str, Any]:
    """Invoice as a JSON request body."""
    return invoice.model_dump(mode="json")


@pytest.fixture
def raw_backend_invoice() -> dict[str, Any]:
    """Minimal GET /invoices/{id} payload."""
    return {
        "invoiceId": 42,
        "userGeneratedInvoiceId": "INV-2024-001",
        "invoiceDate": "2024-03-05",
        "dueDate": "2024-04-05",
        "status": "UNPAID",
        "customer": {"customerName": "Ada Obi"},
        "tenant": {"tenantName": "Acme Ltd", "tenantEmail": "billing@acme.test"},
        "items": [{"itemDescription": "Design", "quantity": 2, "unitPrice": 100}],
        "discountPercentage": 0,
        "taxPercentage": 0,
        "amountPaid": 50,
    }


@pytest.fixture
def queue_enabled() -> Generator[None, None, None]:
    """Enable the background queue for one test."""
    with patch.object(main.settings, "queue_enabled", True):
        yield


@pytest.fixture
def mock_pool() -> AsyncMock:
    """Create mock arq pool."""
    pool = AsyncMock()
    pool.get.return_value = None
    return pool


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "service" in data


def test_readiness_check(client: TestClient) -> None:
    """Test readiness check endpoint."""
    with patch.object(main.storage_service, "health_check", return_value=False):
        response = client.get("/ready")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["ready"] is True
    assert data["renderer"] == main.settings.document_renderer
    assert data["storage"] is False


def test_summary_endpoint(client: TestClient) -> None:
    """Test live summary with formatted totals."""
    response = client.post(
        "/api/v1/summaries",
        json={
            "items": [
                {"description": "Design work", "quantity": 2, "unit_price": 100},
                {"description": "Hosting", "quantity": 1, "unit_price": 50},
            ],
            "discount_percentage": 10,
            "tax_percentage": "7.5",
            "amount_paid": 200,
            "currency_symbol": "$",
        },
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert Decimal(data["summary"]["grand_total"]) == Decimal("241.875")
    assert data["formatted"]["sub_total"] == "$ 250.00"
    assert data["formatted"]["discount_amount"] == "$ 25.00"
    assert data["formatted"]["grand_total"] == "$ 241.88"
    assert data["formatted"]["balance_due"] == "$ 41.88"


def test_summary_blank_values_count_as_zero(client: TestClient) -> None:
    """Test that a half-filled draft still gets a summary."""
    response = client.post(
        "/api/v1/summaries",
        json={
            "items": [{"description": "Consulting", "quantity": "", "unit_price": "abc"}],
            "discount_percentage": "",
            "tax_percentage": None,
            "amount_paid": "",
        },
    )

    assert response.status_code == status.HTTP_200_OK
    formatted = response.json()["formatted"]
    assert formatted["grand_total"] == "₦ 0.00"
    assert formatted["balance_due"] == "₦ 0.00"


def test_summary_overpayment_shows_negative_balance(client: TestClient) -> None:
    """Test that balance due is not clamped at zero."""
    response = client.post(
        "/api/v1/summaries",
        json={
            "items": [{"description": "Item", "quantity": 1, "unit_price": 100}],
            "amount_paid": 150,
        },
    )

    assert Decimal(response.json()["summary"]["balance_due"]) == Decimal("-50")


def test_summary_with_very_large_amounts(client: TestClient) -> None:
    """Test that totals beyond default decimal precision still format."""
    response = client.post(
        "/api/v1/summaries",
        json={"items": [{"description": "Bulk", "quantity": 1000, "unit_price": 1e27}]},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert Decimal(data["summary"]["grand_total"]) == Decimal(10) ** 30
    assert data["formatted"]["grand_total"] == f"₦ {10**30:,}.00"


def test_render_pdf(client: TestClient, invoice_json: dict[str, Any]) -> None:
    """Test rendering a finalized invoice as PDF."""
    response = client.post("/api/v1/documents/render", params={"format": "pdf"}, json=invoice_json)

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/pdf"
    assert (
        response.headers["content-disposition"]
        == 'attachment; filename="Invoice_INV-2024-001.pdf"'
    )
    assert response.content.startswith(b"%PDF")
    assert "x-omitted-assets" not in response.headers


def test_render_text(client: TestClient, invoice_json: dict[str, Any]) -> None:
    """Test rendering the plain-text variant."""
    response = client.post(
        "/api/v1/documents/render", params={"format": "text"}, json=invoice_json
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/plain")
    assert "INV-2024-001" in response.text
    assert "₦ 241.88" in response.text


def test_render_reports_omitted_assets(
    client: TestClient, make_document: Callable[..., FinalizedDocument]
) -> None:
    """Test that an unreachable logo is omitted, not fatal."""
    document = make_document(
        tenant=Tenant(name="Acme Ltd", logo_url="https://files.example.com/logo.png")
    )

    with patch.object(main.asset_fetcher, "fetch", return_value=None):
        response = client.post(
            "/api/v1/documents/render",
            params={"format": "pdf"},
            json=document.model_dump(mode="json"),
        )

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["x-omitted-assets"] == "logo"


def test_render_without_tenant_name_is_rejected(
    client: TestClient, invoice_json: dict[str, Any]
) -> None:
    """Test that a document without tenant identity is not rendered."""
    invoice_json["tenant"]["name"] = "  "

    response = client.post("/api/v1/documents/render", json=invoice_json)

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert "tenant" in response.json()["detail"]


def test_render_timeout(client: TestClient, invoice_json: dict[str, Any]) -> None:
    """Test that a render exceeding its time limit returns 504."""
    with patch("services.api.main.render_async", AsyncMock(side_effect=TimeoutError())):
        response = client.post("/api/v1/documents/render", json=invoice_json)

    assert response.status_code == status.HTTP_504_GATEWAY_TIMEOUT


def test_share_message(client: TestClient, invoice_json: dict[str, Any]) -> None:
    """Test share text endpoint."""
    response = client.post(
        "/api/v1/documents/share-message",
        json={"document": invoice_json, "link": "https://app.example.com/i/42"},
    )

    assert response.status_code == status.HTTP_200_OK
    message = response.json()["message"]
    assert message.startswith("Invoice INV-2024-001\n")
    assert message.endswith("View Invoice: https://app.example.com/i/42")


def test_download_invoice_forwards_session(
    client: TestClient, raw_backend_invoice: dict[str, Any]
) -> None:
    """Test invoice download with caller headers passed to the backend."""
    with patch.object(
        main.backend_client, "fetch_document", return_value=raw_backend_invoice
    ) as mock_fetch:
        response = client.get(
            "/api/v1/invoices/42/pdf",
            headers={
                "Authorization": "Bearer tok-123",
                "X-User-Role": "USER",
                "X-Tenant-ID": "9",
            },
        )

    assert response.status_code == status.HTTP_200_OK
    assert response.content.startswith(b"%PDF")
    kind, document_id, session = mock_fetch.call_args.args
    assert kind is DocumentKind.INVOICE
    assert document_id == "42"
    assert session.access_token == "tok-123"
    assert session.tenant_id == 9
    assert session.is_admin is False


def test_download_receipt(client: TestClient, raw_backend_invoice: dict[str, Any]) -> None:
    """Test receipt download uses the receipt filename."""
    raw = {
        "receiptId": "R-7",
        "userGeneratedReceiptId": "RCT-7",
        "tenant": raw_backend_invoice["tenant"],
        "items": raw_backend_invoice["items"],
    }

    with patch.object(main.backend_client, "fetch_document", return_value=[raw]):
        response = client.get("/api/v1/receipts/R-7/pdf")

    assert response.status_code == status.HTTP_200_OK
    assert 'filename="Receipt_RCT-7.pdf"' in response.headers["content-disposition"]


def test_download_not_found(client: TestClient) -> None:
    """Test that a backend 404 is passed through."""
    with patch.object(
        main.backend_client,
        "fetch_document",
        side_effect=BackendError("Invoice not found", status_code=404),
    ):
        response = client.get("/api/v1/invoices/missing/pdf")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Invoice not found"


def test_download_backend_failure(client: TestClient) -> None:
    """Test that other backend failures are reported as 502."""
    with patch.object(
        main.backend_client,
        "fetch_document",
        side_effect=BackendError("Backend unreachable: Connection refused"),
    ):
        response = client.get("/api/v1/invoices/42/pdf")

    assert response.status_code == status.HTTP_502_BAD_GATEWAY


def test_download_without_company_data(client: TestClient) -> None:
    """Test that a payload without tenant data is rejected."""
    with patch.object(main.backend_client, "fetch_document", return_value={"invoiceId": 42}):
        response = client.get("/api/v1/invoices/42/pdf")

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["detail"] == "Invoice or company data not found"


def test_render_async_requires_queue(client: TestClient, invoice_json: dict[str, Any]) -> None:
    """Test that background rendering is unavailable when the queue is off."""
    with patch.object(main.settings, "queue_enabled", False):
        response = client.post("/api/v1/documents/render/async", json=invoice_json)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_render_async_enqueues_job(
    client: TestClient,
    invoice_json: dict[str, Any],
    queue_enabled: None,
    mock_pool: AsyncMock,
) -> None:
    """Test that a render job is recorded as pending and queued."""
    with patch("services.api.main.get_arq_pool", return_value=mock_pool):
        response = client.post("/api/v1/documents/render/async", json=invoice_json)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "pending"

    mock_pool.set.assert_awaited_once()
    assert mock_pool.set.call_args.args[0] == f"job:{data['job_id']}"
    args, kwargs = mock_pool.enqueue_job.call_args
    assert args == ("render_document",)
    assert kwargs["job_id"] == data["job_id"]
    assert kwargs["_job_id"] == data["job_id"]
    assert kwargs["document"]["external_id"] == "INV-2024-001"
    pending = JobResult.model_validate_json(mock_pool.set.call_args.args[1])
    assert kwargs["created_at"] == pending.created_at


def test_job_status_not_found(
    client: TestClient, queue_enabled: None, mock_pool: AsyncMock
) -> None:
    """Test polling an unknown job."""
    with patch("services.api.main.get_arq_pool", return_value=mock_pool):
        response = client.get("/api/v1/jobs/unknown")

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_job_status_completed_with_download_url(
    client: TestClient, queue_enabled: None, mock_pool: AsyncMock
) -> None:
    """Test that a stored artifact gets a presigned download URL."""
    job = JobResult(
        job_id="job-1",
        status="completed",
        document_id="42",
        kind="invoice",
        storage_path="documents/rendered/invoice/42/Invoice_42.pdf",
        filename="Invoice_42.pdf",
        created_at="2024-03-05T10:00:00+00:00",
        completed_at="2024-03-05T10:00:02+00:00",
    )
    mock_pool.get.return_value = job.model_dump_json()
    presign = MagicMock(
        return_value=PresignedUrlResult(
            success=True, url="https://minio/signed", expires_in_seconds=3600
        )
    )

    with (
        patch("services.api.main.get_arq_pool", return_value=mock_pool),
        patch.object(main.storage_service, "get_presigned_url", presign),
    ):
        response = client.get("/api/v1/jobs/job-1")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["job"]["status"] == "completed"
    assert data["download_url"] == "https://minio/signed"
    presign.assert_called_once_with("rendered/invoice/42/Invoice_42.pdf")


def test_metrics_endpoint(client: TestClient) -> None:
    """Test Prometheus metrics endpoint."""
    client.get("/health")

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert "http_requests_total" in response.text
    assert "documents_rendered_total" in response.text

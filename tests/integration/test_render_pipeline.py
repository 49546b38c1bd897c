"""Integration tests for the document pipeline.

Runs backend payload -> FinalizedDocument -> layout -> PDF -> background job
with real billing, rendering and queue code. The backend, the asset file
server, Redis and object storage are replaced by in-process fakes, so no
services need to be running.

Use pytest -v -m integration to run only integration tests.
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from services.backend.client import BackendClient
from services.billing.money import format_money
from services.billing.parsing import parse_document
from services.billing.schema import DocumentKind, DocumentStatus
from services.queue.tasks import render_document
from services.rendering.assets import AssetFetcher
from services.rendering.pdf_renderer import PdfDocumentRenderer
from services.shared.config import Settings
from services.shared.session import Session
from services.storage.service import StorageService

pytestmark = pytest.mark.integration

BACKEND_URL = "https://api.example.com"


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at the fake backend and file server."""
    return Settings(
        _env_file=None,
        backend_api_url=BACKEND_URL,
        asset_base_url="https://files.example.com/",
        default_currency_symbol="₦",
        storage_enabled=True,
        storage_access_key="access",
        storage_secret_key="secret",
        storage_bucket="documents",
    )


@pytest.fixture
def raw_invoice() -> dict[str, Any]:
    """Invoice as the backend returns it."""
    return {
        "invoiceId": 1001,
        "userGeneratedInvoiceId": "INV-1001",
        "projectName": "Storefront",
        "invoiceDate": "2024-06-01T09:30:00.000Z",
        "dueDate": "2024-06-30",
        "status": "partial payment",
        "customer": {
            "customerName": "Chidi Okafor",
            "customerEmail": "chidi@example.com",
            "customerAddress": "4 Broad Street, Lagos",
        },
        "tenant": {
            "tenantName": "Bright Studio",
            "tenantEmail": "hello@bright.test",
            "tenantPhone": "0801 234 5678",
            "tenantLogo": "logos/bright.png",
            "authorizedSignature": "signatures/missing.png",
        },
        "bank": "Zenith Bank",
        "accountName": "Bright Studio Ltd",
        "accountNumber": "1234567890",
        "items": [
            {"itemDescription": "Landing page design", "quantity": 1, "unitPrice": "150000"},
            {"itemDescription": "Copywriting", "quantity": "3", "unitPrice": 12500.5},
            {"itemDescription": "Stock photos", "amount": "9000"},
        ],
        "discountPercentage": "5",
        "taxPercentage": "7.5",
        "amountPaid": "100000",
        "notes": "Balance due within 30 days.",
    }


@pytest.fixture
def http_handler(
    raw_invoice: dict[str, Any], png_bytes: bytes
) -> Callable[[httpx.Request], httpx.Response]:
    """Serve the backend API and the asset file server."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.example.com" and request.url.path == "/invoices/1001":
            return httpx.Response(200, json=raw_invoice)
        if request.url.path == "/logos/bright.png":
            return httpx.Response(200, content=png_bytes)
        return httpx.Response(404, json={"message": "Not found"})

    return handler


@pytest.fixture
def backend_client(
    settings: Settings, http_handler: Callable[[httpx.Request], httpx.Response]
) -> BackendClient:
    """Backend client served by the fake backend."""
    client = httpx.Client(base_url=BACKEND_URL, transport=httpx.MockTransport(http_handler))
    return BackendClient(settings, client=client)


@pytest.fixture
def renderer(
    settings: Settings, http_handler: Callable[[httpx.Request], httpx.Response]
) -> PdfDocumentRenderer:
    """PDF renderer whose asset fetcher talks to the fake file server."""
    client = httpx.Client(transport=httpx.MockTransport(http_handler))
    fetcher = AssetFetcher(settings, client=client)
    return PdfDocumentRenderer(settings, asset_fetcher=fetcher)


def test_backend_invoice_to_pdf(
    settings: Settings, backend_client: BackendClient, renderer: PdfDocumentRenderer
) -> None:
    """Test download flow: fetch, parse, compute totals and render."""
    raw = backend_client.fetch_document(
        DocumentKind.INVOICE, "1001", Session(role="USER", tenant_id=3, access_token="t")
    )
    document = parse_document(raw, DocumentKind.INVOICE, settings)

    assert document.status is DocumentStatus.PARTIAL_PAYMENT
    assert document.tenant.logo_url == "https://files.example.com/logos/bright.png"

    # 150000 + 37501.5 + 9000 = 196501.5; -5% = 186676.425; +7.5% tax
    summary = document.summary
    assert format_money(summary.sub_total, "₦") == "₦ 196,501.50"
    assert format_money(summary.grand_total, "₦") == "₦ 200,677.16"
    assert format_money(summary.balance_due, "₦") == "₦ 100,677.16"

    first = renderer.render(document)
    second = renderer.render(document)

    assert first.content.startswith(b"%PDF")
    assert first.filename == "Invoice_INV-1001.pdf"
    assert first.omitted_assets == ["signature"]
    assert first.content == second.content


@pytest.mark.asyncio
async def test_background_job_renders_and_stores(
    settings: Settings,
    backend_client: BackendClient,
    renderer: PdfDocumentRenderer,
) -> None:
    """Test the queued path from payload to stored artifact."""
    raw = backend_client.fetch_document(DocumentKind.INVOICE, "1001", Session(role="ADMIN"))
    document = parse_document(raw, DocumentKind.INVOICE, settings)

    minio_client = MagicMock()
    minio_client.bucket_exists.return_value = True
    minio_client.put_object.return_value = MagicMock(etag="etag-1")
    redis = AsyncMock()
    ctx = {
        "redis": redis,
        "settings": settings,
        "renderer": renderer,
        "storage_service": StorageService(settings, client=minio_client),
    }

    result = await render_document(
        ctx, job_id="job-1001", document=document.model_dump(mode="json")
    )

    assert result["status"] == "completed"
    assert result["storage_path"] == "documents/rendered/invoice/1001/Invoice_INV-1001.pdf"
    assert result["omitted_assets"] == ["signature"]

    stored = minio_client.put_object.call_args.kwargs
    assert stored["object_name"] == "rendered/invoice/1001/Invoice_INV-1001.pdf"
    assert stored["content_type"] == "application/pdf"
    assert stored["data"].getvalue() == renderer.render(document).content

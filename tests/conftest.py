"""Shared fixtures: settings, sample documents and image bytes."""

import io
from collections.abc import Callable
from datetime import date
from typing import Any

import pytest
from PIL import Image

from services.billing.schema import (
    BankDetails,
    Customer,
    DocumentKind,
    FinalizedDocument,
    LineItem,
    Tenant,
)
from services.shared.config import Settings


@pytest.fixture
def app_settings() -> Settings:
    """Settings with a file server prefix for relative asset paths."""
    return Settings(asset_base_url="https://files.example.com/")


@pytest.fixture
def png_bytes() -> bytes:
    """Create a small PNG image as bytes."""
    img = Image.new("RGB", (120, 40), color="navy")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_document() -> Callable[..., FinalizedDocument]:
    """Factory for finalized documents with sensible defaults."""

    def _make(**overrides: Any) -> FinalizedDocument:
        kind = overrides.pop("kind", DocumentKind.INVOICE)
        values: dict[str, Any] = {
            "kind": kind,
            "id": "42",
            "external_id": "INV-2024-001" if kind is DocumentKind.INVOICE else "RCT-2024-001",
            "issue_date": date(2024, 3, 5),
            "due_date": date(2024, 4, 5) if kind is DocumentKind.INVOICE else None,
            "status": "UNPAID" if kind is DocumentKind.INVOICE else "ISSUED",
            "customer": Customer(
                name="Ada Obi",
                email="ada@example.com",
                phone="0800 000 0000",
                address="12 Marina, Lagos",
            ),
            "tenant": Tenant(name="Acme Ltd", email="billing@acme.test", phone="0700 000 0000"),
            "bank": BankDetails(
                bank="First Bank", account_name="Acme Ltd", account_number="0123456789"
            ),
            "notes": "Thank you for your business.",
            "items": [
                LineItem(description="Design work", quantity=2, unit_price=100),
                LineItem(description="Hosting", quantity=1, unit_price=50),
            ],
            "discount_percentage": 10,
            "tax_percentage": 7.5,
            "amount_paid": 200,
        }
        values.update(overrides)
        return FinalizedDocument(**values)

    return _make


@pytest.fixture
def invoice(make_document: Callable[..., FinalizedDocument]) -> FinalizedDocument:
    """Invoice with two items, 10% discount, 7.5% tax and 200 paid."""
    return make_document()


@pytest.fixture
def receipt(make_document: Callable[..., FinalizedDocument]) -> FinalizedDocument:
    """Receipt mirroring the sample invoice."""
    return make_document(kind=DocumentKind.RECEIPT, amount_paid=241.875)

"""Validation boundary between backend API payloads and typed documents.

The backend returns loosely-typed JSON (camelCase keys, optional nested
objects, numbers as strings, sometimes wrapped in a list). Everything past
this module works on validated FinalizedDocument values only.
"""

import logging
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError

from services.billing.calculator import compute_summary
from services.billing.errors import InvalidDocumentError
from services.billing.schema import (
    BankDetails,
    Customer,
    DocumentKind,
    DocumentStatus,
    FinalizedDocument,
    LineItem,
    Tenant,
)
from services.shared.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_STATUS = {
    DocumentKind.INVOICE: DocumentStatus.UNPAID,
    DocumentKind.RECEIPT: DocumentStatus.ISSUED,
}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _optional_str(value: Any) -> str | None:
    if _blank(value):
        return None
    return str(value).strip()


def parse_date(value: Any) -> date | None:
    """Parse an API date value (ISO date or ISO datetime).

    Args:
        value: Raw date value

    Returns:
        Parsed date, or None when missing or unparseable
    """
    if _blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        logger.warning(f"Unparseable date in payload: {text!r}")
        return None


def asset_url(path: Any, base_url: str) -> str | None:
    """Resolve a logo/signature path returned by the backend to a full URL.

    Args:
        path: Absolute URL or path relative to the file server
        base_url: File server prefix

    Returns:
        Full URL, or None when no asset is configured
    """
    if _blank(path):
        return None
    text = str(path).strip()
    if text.startswith(("http://", "https://", "data:")):
        return text
    return f"{base_url}{text}"


def parse_line_item(raw: dict[str, Any]) -> LineItem:
    """Convert a backend item to a LineItem.

    Items created through the simple editor only carry an amount; those are
    treated as a single unit priced at that amount.
    """
    quantity = raw.get("quantity")
    if quantity is None:
        quantity = 1
    unit_price = raw.get("unitPrice", raw.get("unit_price"))
    if unit_price is None:
        unit_price = raw.get("amount")
    return LineItem(
        description=raw.get("itemDescription", raw.get("description")),
        quantity=quantity,
        unit_price=unit_price,
    )


def parse_document(
    raw: Any,
    kind: DocumentKind,
    settings: Settings,
) -> FinalizedDocument:
    """Validate a backend invoice/receipt payload into a FinalizedDocument.

    Args:
        raw: Decoded JSON body from GET /invoices/{id} or /receipts/{id}
        kind: Which document type the payload describes
        settings: Settings providing the asset base URL and default currency

    Returns:
        Validated FinalizedDocument

    Raises:
        InvalidDocumentError: If the payload lacks document or tenant data,
            or fails validation
    """
    if isinstance(raw, list):
        raw = raw[0] if raw else None

    label = kind.value.capitalize()
    if not isinstance(raw, dict) or not isinstance(raw.get("tenant"), dict):
        raise InvalidDocumentError(f"{label} or company data not found")

    tenant_raw: dict[str, Any] = raw["tenant"]
    customer_raw = _mapping(raw.get("customer"))
    currency_raw = _mapping(raw.get("currency_detail"))

    prefix = "invoice" if kind is DocumentKind.INVOICE else "receipt"
    document_id = raw.get(f"{prefix}Id") or raw.get("id")
    external_id = raw.get(f"userGenerated{label}Id")
    issue_date = raw.get(f"{prefix}Date")
    if _blank(issue_date):
        issue_date = raw.get("createdAt")

    items_raw = raw.get("items")
    if not isinstance(items_raw, list):
        items_raw = []
    items = [parse_line_item(item) for item in items_raw if isinstance(item, dict)]
    discount_percentage = raw.get("discountPercentage")
    tax_percentage = raw.get("taxPercentage")
    amount_paid = raw.get("amountPaid")
    if kind is DocumentKind.RECEIPT and _blank(amount_paid):
        # Receipts record a payment in full unless stated otherwise
        amount_paid = compute_summary(items, discount_percentage, tax_percentage).grand_total

    status = raw.get("status")
    if _blank(status):
        status = DEFAULT_STATUS[kind].value

    customer_name = (
        _optional_str(customer_raw.get("customerName"))
        or _optional_str(raw.get("accountName"))
        or "Customer"
    )

    try:
        return FinalizedDocument(
            kind=kind,
            id=str(document_id) if document_id is not None else "",
            external_id=_optional_str(external_id),
            project_name=_optional_str(raw.get("projectName")),
            issue_date=parse_date(issue_date),
            due_date=parse_date(raw.get("dueDate")) if kind is DocumentKind.INVOICE else None,
            status=status,
            customer=Customer(
                name=customer_name,
                email=_optional_str(customer_raw.get("customerEmail")),
                phone=_optional_str(customer_raw.get("customerPhone")),
                address=_optional_str(customer_raw.get("customerAddress")),
            ),
            tenant=Tenant(
                name=str(tenant_raw.get("tenantName") or ""),
                email=str(tenant_raw.get("tenantEmail") or ""),
                phone=str(tenant_raw.get("tenantPhone") or ""),
                logo_url=asset_url(tenant_raw.get("tenantLogo"), settings.asset_base_url),
                signature_url=asset_url(
                    tenant_raw.get("authorizedSignature"), settings.asset_base_url
                ),
                currency_symbol=currency_raw.get("currencySymbol")
                or settings.default_currency_symbol,
            ),
            bank=BankDetails(
                bank=raw.get("bank"),
                account_name=raw.get("accountName"),
                account_number=raw.get("accountNumber"),
            ),
            notes=_optional_str(raw.get("notes")),
            items=items,
            discount_percentage=discount_percentage,
            tax_percentage=tax_percentage,
            amount_paid=amount_paid,
        )
    except ValidationError as e:
        raise InvalidDocumentError(f"Invalid {kind.value} payload: {e}") from e

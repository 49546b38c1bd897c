"""Invoice and receipt data models.

LineItem and FinancialSummary carry the billing math; FinalizedDocument is the
typed, validated input of the document renderers. Financial totals are never
stored on a document: they are recomputed from its items and percentages.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from services.billing.money import DEFAULT_CURRENCY_SYMBOL, to_decimal


class LineItem(BaseModel):
    """Billable line on an invoice or receipt draft.

    Quantity and unit price are coerced leniently: non-numeric or missing
    values become 0 instead of failing validation.
    """

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "itemDescription"),
        description="Free-text description shown on the document",
    )
    quantity: Decimal = Field(default=Decimal("0"), description="Billed quantity")
    unit_price: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("unit_price", "unitPrice"),
        description="Price per unit",
    )

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @property
    def computed_total(self) -> Decimal:
        """Line total: quantity x unit price."""
        return self.quantity * self.unit_price


class LineTotal(BaseModel):
    """A line item together with its computed total."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    computed_total: Decimal


class FinancialSummary(BaseModel):
    """Fully itemised financial summary.

    Pure projection of (items, discount%, tax%, amount paid); see
    services.billing.calculator.compute_summary for the formulas.
    """

    model_config = ConfigDict(frozen=True)

    line_totals: list[LineTotal] = Field(default_factory=list)
    sub_total: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    sub_total_after_discount: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal


class DocumentKind(str, Enum):
    """Type of finalized billing document."""

    INVOICE = "invoice"
    RECEIPT = "receipt"


class DocumentStatus(str, Enum):
    """Lifecycle status as reported by the backend."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    UNPAID = "UNPAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    PARTIAL_PAYMENT = "PARTIAL_PAYMENT"
    ISSUED = "ISSUED"
    PARTIAL = "PARTIAL"
    VOID = "VOID"


class Customer(BaseModel):
    """Counterparty the document is issued to."""

    name: str = Field(..., description="Customer name")
    email: str | None = None
    phone: str | None = None
    address: str | None = None


class Tenant(BaseModel):
    """Issuing business."""

    name: str = Field(..., description="Business name printed in the header")
    email: str = ""
    phone: str = ""
    logo_url: str | None = Field(None, description="Logo image URL (optional asset)")
    signature_url: str | None = Field(None, description="Signature image URL (optional asset)")
    currency_symbol: str = Field(DEFAULT_CURRENCY_SYMBOL, description="Currency symbol prefix")


class BankDetails(BaseModel):
    """Remittance account shown in the payment block."""

    bank: str = ""
    account_name: str = ""
    account_number: str = ""

    @field_validator("bank", "account_name", "account_number", mode="before")
    @classmethod
    def _none_to_blank(cls, value: Any) -> str:
        return "" if value is None else str(value)


class FinalizedDocument(BaseModel):
    """Invoice or receipt as issued, ready to be rendered.

    Immutable once created; status transitions belong to the backend.
    """

    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    id: str = Field(..., description="System identifier")
    external_id: str | None = Field(None, description="User-supplied identifier")
    project_name: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    status: DocumentStatus
    customer: Customer
    tenant: Tenant
    bank: BankDetails = Field(default_factory=BankDetails)
    notes: str | None = None
    items: list[LineItem] = Field(default_factory=list)
    discount_percentage: Decimal = Decimal("0")
    tax_percentage: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper().replace(" ", "_")
        return value

    @field_validator("discount_percentage", "tax_percentage", "amount_paid", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @property
    def display_id(self) -> str:
        """Identifier printed on the document: user-supplied id when present."""
        return self.external_id or self.id

    @property
    def file_stem(self) -> str:
        """Base name for downloads, e.g. Invoice_INV-001."""
        return f"{self.kind.value.capitalize()}_{self.display_id}"

    @property
    def summary(self) -> FinancialSummary:
        """Financial summary recomputed from items and percentages."""
        from services.billing.calculator import compute_summary

        return compute_summary(
            self.items,
            discount_percentage=self.discount_percentage,
            tax_percentage=self.tax_percentage,
            amount_paid=self.amount_paid,
        )

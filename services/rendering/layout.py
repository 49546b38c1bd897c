"""Format-independent document layout.

build_layout turns a FinalizedDocument into an ordered list of sections with
all text already formatted. Renderers only decide how each section looks, so
field order, table columns and summary row order are identical across
output formats.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar

from services.billing.errors import InvalidDocumentError
from services.billing.money import ZERO, format_money, format_percentage
from services.billing.schema import DocumentKind, FinalizedDocument
from services.rendering.assets import AssetFetcher

logger = logging.getLogger(__name__)

ITEM_COLUMNS = ("Description", "Amount")
SIGNATURE_LABEL = "Authorized Signature"


@dataclass(frozen=True)
class DocumentAssets:
    """Image assets resolved for a document (None when unavailable)."""

    logo: bytes | None = None
    signature: bytes | None = None
    omitted: tuple[str, ...] = ()


@dataclass(frozen=True)
class HeaderSection:
    name: ClassVar[str] = "header"

    logo: bytes | None
    company_name: str
    company_email: str
    company_phone: str


@dataclass(frozen=True)
class TitleSection:
    name: ClassVar[str] = "title"

    title: str
    identifier: str


@dataclass(frozen=True)
class PartiesSection:
    name: ClassVar[str] = "parties"

    issued_to_label: str
    customer_name: str
    customer_details: tuple[str, ...]
    date_rows: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class ItemsSection:
    name: ClassVar[str] = "items"

    columns: tuple[str, str]
    rows: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class SummaryRow:
    label: str
    amount: str
    emphasis: bool = False


@dataclass(frozen=True)
class SummarySection:
    name: ClassVar[str] = "summary"

    rows: tuple[SummaryRow, ...]


@dataclass(frozen=True)
class PaymentSection:
    name: ClassVar[str] = "payment"

    heading: str
    rows: tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class NotesSection:
    name: ClassVar[str] = "notes"

    heading: str
    text: str


@dataclass(frozen=True)
class SignatureSection:
    name: ClassVar[str] = "signature"

    image: bytes
    label: str


Section = (
    HeaderSection
    | TitleSection
    | PartiesSection
    | ItemsSection
    | SummarySection
    | PaymentSection
    | NotesSection
    | SignatureSection
)


@dataclass
class DocumentLayout:
    """Ordered sections of one document."""

    kind: DocumentKind
    title: str
    author: str
    sections: list[Section] = field(default_factory=list)
    omitted_assets: list[str] = field(default_factory=list)

    @property
    def section_names(self) -> list[str]:
        return [section.name for section in self.sections]

    def get(self, name: str) -> Section | None:
        """Return the first section with the given name, if present."""
        for section in self.sections:
            if section.name == name:
                return section
        return None


def format_date(value: date | None) -> str:
    """Format a date as DD/MM/YYYY; blank when missing."""
    return value.strftime("%d/%m/%Y") if value else ""


def validate_document(document: FinalizedDocument) -> None:
    """Check the document carries the identity every layout needs.

    Raises:
        InvalidDocumentError: If tenant name or document identifier is blank
    """
    if not document.tenant.name.strip():
        raise InvalidDocumentError("Document has no issuing tenant name")
    if not document.display_id.strip():
        raise InvalidDocumentError("Document has no identifier")


def load_assets(document: FinalizedDocument, fetcher: AssetFetcher | None) -> DocumentAssets:
    """Resolve logo and signature images for a document.

    Args:
        document: Document whose tenant references the assets
        fetcher: Asset fetcher; when None no images are loaded

    Returns:
        DocumentAssets with the images that could be loaded and the names of
        configured assets that could not
    """
    if fetcher is None:
        return DocumentAssets()

    omitted: list[str] = []
    logo = fetcher.fetch(document.tenant.logo_url) if document.tenant.logo_url else None
    if document.tenant.logo_url and logo is None:
        omitted.append("logo")
    signature = (
        fetcher.fetch(document.tenant.signature_url) if document.tenant.signature_url else None
    )
    if document.tenant.signature_url and signature is None:
        omitted.append("signature")

    if omitted:
        logger.warning(
            f"Rendering {document.kind.value} {document.display_id} without: {', '.join(omitted)}"
        )
    return DocumentAssets(logo=logo, signature=signature, omitted=tuple(omitted))


def build_layout(
    document: FinalizedDocument, assets: DocumentAssets | None = None
) -> DocumentLayout:
    """Lay out a finalized invoice or receipt.

    Section order: header, title, parties, items, summary, payment, then
    notes and signature when present.

    Args:
        document: Validated document
        assets: Resolved images (none when omitted)

    Returns:
        DocumentLayout ready for a renderer

    Raises:
        InvalidDocumentError: If the document lacks tenant identity
    """
    validate_document(document)
    assets = assets or DocumentAssets()
    summary = document.summary
    symbol = document.tenant.currency_symbol
    is_invoice = document.kind is DocumentKind.INVOICE
    title = "INVOICE" if is_invoice else "RECEIPT"

    layout = DocumentLayout(
        kind=document.kind,
        title=f"{title.capitalize()} {document.display_id}",
        author=document.tenant.name,
        omitted_assets=list(assets.omitted),
    )

    layout.sections.append(
        HeaderSection(
            logo=assets.logo,
            company_name=document.tenant.name,
            company_email=document.tenant.email,
            company_phone=document.tenant.phone,
        )
    )
    layout.sections.append(TitleSection(title=title, identifier=document.display_id))

    customer = document.customer
    details = tuple(
        value for value in (customer.address, customer.email, customer.phone) if value
    )
    date_rows: list[tuple[str, str]] = [
        ("Invoice Date" if is_invoice else "Receipt Date", format_date(document.issue_date))
    ]
    if is_invoice and document.due_date:
        date_rows.append(("Due Date", format_date(document.due_date)))
    date_rows.append(("Status", document.status.value))
    layout.sections.append(
        PartiesSection(
            issued_to_label="Bill To" if is_invoice else "Issued To",
            customer_name=customer.name,
            customer_details=details,
            date_rows=tuple(date_rows),
        )
    )

    layout.sections.append(
        ItemsSection(
            columns=ITEM_COLUMNS,
            rows=tuple(
                (line.description, format_money(line.computed_total, symbol))
                for line in summary.line_totals
            ),
        )
    )

    rows = [SummaryRow("Subtotal", format_money(summary.sub_total, symbol))]
    if summary.discount_amount > ZERO:
        rows.append(
            SummaryRow(
                f"Discount ({format_percentage(summary.discount_percentage)}%)",
                format_money(summary.discount_amount, symbol),
            )
        )
    rows.append(
        SummaryRow(
            f"Tax ({format_percentage(summary.tax_percentage)}%)",
            format_money(summary.tax_amount, symbol),
        )
    )
    rows.append(SummaryRow("Total", format_money(summary.grand_total, symbol)))
    rows.append(SummaryRow("Amount Paid", format_money(summary.amount_paid, symbol), emphasis=True))
    if is_invoice:
        rows.append(
            SummaryRow("Balance Due", format_money(summary.balance_due, symbol), emphasis=True)
        )
    layout.sections.append(SummarySection(rows=tuple(rows)))

    layout.sections.append(
        PaymentSection(
            heading="Payment Details" if is_invoice else "Payment Received Via",
            rows=(
                ("Account Name", document.bank.account_name),
                ("Account Number", document.bank.account_number),
                ("Bank", document.bank.bank),
            ),
        )
    )

    if document.notes and document.notes.strip():
        layout.sections.append(NotesSection(heading="Notes", text=document.notes.strip()))

    if assets.signature:
        layout.sections.append(SignatureSection(image=assets.signature, label=SIGNATURE_LABEL))

    return layout

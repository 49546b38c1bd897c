"""Share snippet for sending a document link over chat or social apps."""

from services.billing.money import format_money
from services.billing.schema import FinalizedDocument


def build_share_message(document: FinalizedDocument, link: str) -> str:
    """Build the plain-text message shared alongside a document link.

    Args:
        document: Document being shared
        link: URL where the recipient can view the document

    Returns:
        Multi-line share message
    """
    label = document.kind.value.capitalize()
    amount = format_money(document.summary.grand_total, document.tenant.currency_symbol)
    return "\n".join(
        [
            f"{label} {document.display_id}",
            f"From: {document.tenant.name}",
            f"To: {document.customer.name}",
            f"Amount: {amount}",
            f"Status: {document.status.value}",
            f"View {label}: {link}",
        ]
    )

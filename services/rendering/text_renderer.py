"""Plain-text document renderer.

Renders the same layout as the PDF renderer as fixed-width UTF-8 text, for
email bodies and quick previews. Images cannot be shown; the signature block
keeps its caption line.
"""

import textwrap

from services.rendering.base import DocumentRenderer
from services.rendering.layout import (
    DocumentLayout,
    HeaderSection,
    ItemsSection,
    NotesSection,
    PartiesSection,
    PaymentSection,
    SignatureSection,
    SummarySection,
    TitleSection,
)

LINE_WIDTH = 72
AMOUNT_WIDTH = 24
RULE = "-" * LINE_WIDTH


def _columns(left: str, right: str) -> str:
    return f"{left:<{LINE_WIDTH - AMOUNT_WIDTH}}{right:>{AMOUNT_WIDTH}}"


class TextDocumentRenderer(DocumentRenderer):
    """Renders invoices and receipts as plain text."""

    media_type = "text/plain; charset=utf-8"
    file_extension = "txt"

    @property
    def renderer_name(self) -> str:
        return "text"

    def is_available(self) -> bool:
        return True

    def render_layout(self, layout: DocumentLayout) -> bytes:
        lines: list[str] = []
        for section in layout.sections:
            if isinstance(section, HeaderSection):
                lines.append(section.company_name)
                contacts = (section.company_email, section.company_phone)
                lines.extend(line for line in contacts if line)
                lines.append("=" * LINE_WIDTH)
            elif isinstance(section, TitleSection):
                lines.append("")
                lines.append(section.title.center(LINE_WIDTH).rstrip())
                lines.append(section.identifier.center(LINE_WIDTH).rstrip())
                lines.append("")
            elif isinstance(section, PartiesSection):
                lines.append(f"{section.issued_to_label}: {section.customer_name}")
                lines.extend(f"  {detail}" for detail in section.customer_details)
                lines.extend(f"{label}: {value}" for label, value in section.date_rows)
                lines.append("")
            elif isinstance(section, ItemsSection):
                lines.append(_columns(*section.columns))
                lines.append(RULE)
                for description, amount in section.rows:
                    wrapped = textwrap.wrap(description, LINE_WIDTH - AMOUNT_WIDTH - 2) or [""]
                    lines.append(_columns(wrapped[0], amount))
                    lines.extend(wrapped[1:])
                lines.append(RULE)
            elif isinstance(section, SummarySection):
                for row in section.rows:
                    label = row.label.upper() if row.emphasis else row.label
                    lines.append(_columns(label, row.amount))
                lines.append("")
            elif isinstance(section, PaymentSection):
                lines.append(section.heading)
                lines.extend(f"  {label}: {value}" for label, value in section.rows)
                lines.append("")
            elif isinstance(section, NotesSection):
                lines.append(section.heading)
                lines.extend(textwrap.wrap(section.text, LINE_WIDTH) or [""])
                lines.append("")
            elif isinstance(section, SignatureSection):
                lines.append("")
                lines.append(("_" * 30).rjust(LINE_WIDTH))
                lines.append(section.label.rjust(LINE_WIDTH))

        return ("\n".join(lines).rstrip() + "\n").encode("utf-8")

"""PDF document renderer using reportlab.

Produces an A4 document with the fixed invoice/receipt layout. Output is
byte-stable for identical input: reportlab runs in invariant mode (fixed
creation date and document ID) and no timestamps are embedded.

Based on reportlab platypus:
https://docs.reportlab.com/reportlab/userguide/ch5_platypus/
"""

import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import (
    Flowable,
    Image,
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from services.billing.schema import DocumentKind
from services.rendering.base import DocumentRenderer
from services.rendering.layout import (
    ITEM_COLUMNS,
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

logger = logging.getLogger(__name__)

PAGE_MARGIN = 50
CONTENT_WIDTH = A4[0] - 2 * PAGE_MARGIN

LOGO_BOX = (150, 60)
SIGNATURE_BOX = (180, 80)

BORDER = colors.HexColor("#e5e7eb")
TEXT = colors.HexColor("#333333")
MUTED = colors.HexColor("#666666")

# Per-kind palette: accent, table header, summary rows, emphasised rows, emphasised text
PALETTES = {
    DocumentKind.INVOICE: {
        "accent": colors.HexColor("#0A66C2"),
        "table_header": colors.HexColor("#f3f4f6"),
        "total_row": colors.HexColor("#eff6ff"),
        "emphasis_row": colors.HexColor("#fffbeb"),
        "emphasis_text": colors.HexColor("#d97706"),
    },
    DocumentKind.RECEIPT: {
        "accent": colors.HexColor("#16A34A"),
        "table_header": colors.HexColor("#f0fdf4"),
        "total_row": colors.HexColor("#dcfce7"),
        "emphasis_row": colors.HexColor("#bbf7d0"),
        "emphasis_text": colors.HexColor("#16A34A"),
    },
}
PAYMENT_BACKGROUND = colors.HexColor("#f0fdf4")
NOTES_BACKGROUND = colors.HexColor("#f9fafb")


def _text(value: str) -> str:
    """Escape user text for Paragraph markup, keeping line breaks."""
    return escape(value).replace("\n", "<br/>")


class PdfDocumentRenderer(DocumentRenderer):
    """Renders invoices and receipts as A4 PDF documents."""

    media_type = "application/pdf"
    file_extension = "pdf"

    @property
    def renderer_name(self) -> str:
        return "pdf"

    def is_available(self) -> bool:
        return True

    def render_layout(self, layout: DocumentLayout) -> bytes:
        """Build the PDF for a laid-out document.

        Args:
            layout: Ordered document sections

        Returns:
            PDF bytes
        """
        palette = PALETTES[layout.kind]
        styles = self._styles(palette["accent"])

        elements: list[Flowable] = []
        items_section = ItemsSection(columns=ITEM_COLUMNS, rows=())
        for section in layout.sections:
            if isinstance(section, HeaderSection):
                elements.extend(self._header(section, styles))
            elif isinstance(section, TitleSection):
                elements.append(Paragraph(_text(section.title), styles["title"]))
                elements.append(Paragraph(_text(section.identifier), styles["identifier"]))
            elif isinstance(section, PartiesSection):
                elements.extend(self._parties(section, styles))
            elif isinstance(section, ItemsSection):
                items_section = section
            elif isinstance(section, SummarySection):
                elements.extend(self._items_table(items_section, section, styles, palette))
            elif isinstance(section, PaymentSection):
                elements.extend(self._payment(section, styles))
            elif isinstance(section, NotesSection):
                elements.extend(self._notes(section, styles))
            elif isinstance(section, SignatureSection):
                elements.extend(self._signature(section, styles))

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=PAGE_MARGIN,
            rightMargin=PAGE_MARGIN,
            topMargin=PAGE_MARGIN,
            bottomMargin=PAGE_MARGIN,
            title=layout.title,
            author=layout.author,
            subject=layout.title,
            creator=self.settings.service_name,
            invariant=1,
        )
        doc.build(elements)
        pdf = buffer.getvalue()
        logger.debug(f"Rendered PDF '{layout.title}' ({len(pdf)} bytes)")
        return pdf

    @staticmethod
    def _styles(accent: colors.Color) -> dict[str, ParagraphStyle]:
        base = getSampleStyleSheet()["Normal"]
        body = ParagraphStyle("Body", parent=base, fontName="Helvetica", fontSize=11,
                              leading=14, textColor=TEXT)
        return {
            "body": body,
            "right": ParagraphStyle("Right", parent=body, alignment=TA_RIGHT),
            "company": ParagraphStyle("Company", parent=body, fontName="Helvetica-Bold",
                                      fontSize=22, leading=26, alignment=TA_RIGHT,
                                      textColor=accent, spaceAfter=8),
            "title": ParagraphStyle("Title", parent=body, fontName="Helvetica-Bold",
                                    fontSize=30, leading=34, alignment=TA_CENTER,
                                    textColor=accent, spaceBefore=20, spaceAfter=10),
            "identifier": ParagraphStyle("Identifier", parent=body, fontSize=16, leading=20,
                                         alignment=TA_CENTER, spaceAfter=30),
            "label": ParagraphStyle("Label", parent=body, fontSize=10, leading=13,
                                    textColor=MUTED),
            "value": ParagraphStyle("Value", parent=body, fontName="Helvetica-Bold"),
            "detail": ParagraphStyle("Detail", parent=body, fontSize=10, leading=13,
                                     textColor=MUTED),
            "heading": ParagraphStyle("Heading", parent=body, fontName="Helvetica-Bold",
                                      fontSize=12, leading=15, spaceAfter=8),
            "caption": ParagraphStyle("Caption", parent=body, fontSize=10, leading=13,
                                      alignment=TA_CENTER),
        }

    @staticmethod
    def _header(section: HeaderSection, styles: dict[str, ParagraphStyle]) -> list[Flowable]:
        if section.logo:
            logo: Flowable | str = Image(
                io.BytesIO(section.logo),
                width=LOGO_BOX[0],
                height=LOGO_BOX[1],
                kind="proportional",
            )
        else:
            logo = ""

        company = [Paragraph(_text(section.company_name), styles["company"])]
        for line in (section.company_email, section.company_phone):
            if line:
                company.append(Paragraph(_text(line), styles["right"]))

        table = Table(
            [[logo, company]],
            colWidths=[LOGO_BOX[0] + 10, CONTENT_WIDTH - LOGO_BOX[0] - 10],
        )
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ALIGN", (0, 0), (0, 0), "LEFT"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 20),
            ("LINEBELOW", (0, 0), (-1, 0), 2, colors.HexColor("#e0e0e0")),
        ]))
        return [table]

    @staticmethod
    def _parties(section: PartiesSection, styles: dict[str, ParagraphStyle]) -> list[Flowable]:
        left: list[Flowable] = [
            Paragraph(_text(section.issued_to_label), styles["label"]),
            Paragraph(_text(section.customer_name), styles["value"]),
        ]
        left.extend(Paragraph(_text(line), styles["detail"]) for line in section.customer_details)

        right: list[Flowable] = []
        for label, value in section.date_rows:
            right.append(Paragraph(_text(label), styles["label"]))
            style = styles["value"] if label == "Status" else styles["body"]
            right.append(Paragraph(_text(value), style))

        table = Table([[left, right]], colWidths=[CONTENT_WIDTH * 0.6, CONTENT_WIDTH * 0.4])
        table.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ]))
        return [table, Spacer(1, 25)]

    @staticmethod
    def _items_table(
        items: ItemsSection,
        summary: SummarySection,
        styles: dict[str, ParagraphStyle],
        palette: dict[str, colors.Color],
    ) -> list[Flowable]:
        data: list[list[Flowable | str]] = [list(items.columns)]
        for description, amount in items.rows:
            data.append([Paragraph(_text(description), styles["body"]), amount])

        first_summary_row = len(data)
        for row in summary.rows:
            data.append([row.label, row.amount])

        commands = [
            ("BOX", (0, 0), (-1, -1), 1, BORDER),
            ("LINEBELOW", (0, 0), (-1, -1), 1, BORDER),
            ("BACKGROUND", (0, 0), (-1, 0), palette["table_header"]),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 11),
            ("TEXTCOLOR", (0, 0), (-1, -1), TEXT),
            ("ALIGN", (1, 0), (1, -1), "RIGHT"),
            ("ALIGN", (0, first_summary_row), (0, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("TOPPADDING", (0, 0), (-1, -1), 12),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 12),
            ("LEFTPADDING", (0, 0), (-1, -1), 12),
            ("RIGHTPADDING", (0, 0), (-1, -1), 12),
        ]
        for offset, row in enumerate(summary.rows):
            index = first_summary_row + offset
            if row.emphasis:
                commands += [
                    ("BACKGROUND", (0, index), (-1, index), palette["emphasis_row"]),
                    ("FONTNAME", (0, index), (-1, index), "Helvetica-Bold"),
                    ("FONTSIZE", (0, index), (-1, index), 15),
                    ("TEXTCOLOR", (0, index), (-1, index), palette["emphasis_text"]),
                ]
            else:
                commands += [
                    ("BACKGROUND", (0, index), (-1, index), palette["total_row"]),
                    ("FONTNAME", (0, index), (-1, index), "Helvetica-Bold"),
                    ("FONTSIZE", (0, index), (-1, index), 12),
                ]

        table = Table(data, colWidths=[CONTENT_WIDTH / 2] * 2, repeatRows=1)
        table.setStyle(TableStyle(commands))
        return [table, Spacer(1, 30)]

    @staticmethod
    def _boxed(flowables: list[Flowable], background: colors.Color) -> Table:
        table = Table([[flowables]], colWidths=[CONTENT_WIDTH])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, -1), background),
            ("LEFTPADDING", (0, 0), (-1, -1), 15),
            ("RIGHTPADDING", (0, 0), (-1, -1), 15),
            ("TOPPADDING", (0, 0), (-1, -1), 15),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 15),
        ]))
        return table

    def _payment(
        self, section: PaymentSection, styles: dict[str, ParagraphStyle]
    ) -> list[Flowable]:
        flowables: list[Flowable] = [Paragraph(_text(section.heading), styles["heading"])]
        for label, value in section.rows:
            flowables.append(Paragraph(f"{_text(label)}: {_text(value)}", styles["body"]))
        return [self._boxed(flowables, PAYMENT_BACKGROUND)]

    def _notes(self, section: NotesSection, styles: dict[str, ParagraphStyle]) -> list[Flowable]:
        flowables: list[Flowable] = [
            Paragraph(_text(section.heading), styles["heading"]),
            Paragraph(_text(section.text), styles["body"]),
        ]
        return [Spacer(1, 40), self._boxed(flowables, NOTES_BACKGROUND)]

    @staticmethod
    def _signature(section: SignatureSection, styles: dict[str, ParagraphStyle]) -> list[Flowable]:
        image = Image(
            io.BytesIO(section.image),
            width=SIGNATURE_BOX[0],
            height=SIGNATURE_BOX[1],
            kind="proportional",
        )
        block = Table(
            [[image], [Paragraph(_text(section.label), styles["caption"])]],
            colWidths=[SIGNATURE_BOX[0] + 20],
            hAlign="RIGHT",
        )
        block.setStyle(TableStyle([("ALIGN", (0, 0), (-1, -1), "CENTER")]))
        return [Spacer(1, 50), KeepTogether([block])]

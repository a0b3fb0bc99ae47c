"""
Invoice PDF rendering.

Builds an A4 invoice with ReportLab platypus: tenant header, bill-to block,
line items table and totals. Rendering is synchronous and CPU-bound; callers
run it in a worker thread.
"""
import io
from decimal import Decimal
from xml.sax.saxutils import escape
from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from app.domain.invoicing.models import Invoice
from app.domain.tenants.models import Tenant


def _money(value, currency: str | None) -> str:
    amount = Decimal(value or 0).quantize(Decimal("0.01"))
    return f"{amount:,.2f} {currency}" if currency else f"{amount:,.2f}"


def _qty(value) -> str:
    return f"{Decimal(value or 0).normalize():f}"


def render_invoice_pdf(tenant: Tenant, invoice: Invoice) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Invoice {invoice.number}",
        author=tenant.business_name or tenant.slug,
    )
    styles = getSampleStyleSheet()
    right = ParagraphStyle("Right", parent=styles["Normal"], alignment=TA_RIGHT)

    elements = [
        Table(
            [[Paragraph(escape(tenant.business_name or tenant.slug), styles["Heading1"]),
              Paragraph(f"INVOICE {escape(invoice.number)}", right)]],
            colWidths=[110 * mm, 64 * mm],
        ),
        Paragraph(f"Issue: {invoice.issue_date.isoformat()}", right),
        Paragraph(f"Due: {invoice.due_date.isoformat()}", right),
        Spacer(1, 6 * mm),
        Paragraph("<b>Bill To:</b>", styles["Normal"]),
    ]

    client = invoice.client
    if client is not None:
        for line in (client.name, client.billing_address, client.email):
            if line:
                elements.append(Paragraph(escape(str(line)), styles["Normal"]))
    elements.append(Spacer(1, 6 * mm))

    rows = [["Description", "Qty", "Unit", "Total"]]
    for item in invoice.items or []:
        rows.append([
            Paragraph(escape(item.description or ""), styles["Normal"]),
            _qty(item.quantity),
            _money(item.unit_price, invoice.currency),
            _money(item.line_total, invoice.currency),
        ])
    items_table = Table(rows, colWidths=[84 * mm, 20 * mm, 35 * mm, 35 * mm], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("LINEBELOW", (0, 0), (-1, 0), 1, colors.black),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 4 * mm))

    totals = Table(
        [
            ["Subtotal", _money(invoice.subtotal, invoice.currency)],
            ["Tax", _money(invoice.tax_total, invoice.currency)],
            ["Total", _money(invoice.total, invoice.currency)],
        ],
        colWidths=[35 * mm, 35 * mm],
        hAlign="RIGHT",
    )
    totals.setStyle(TableStyle([
        ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("LINEABOVE", (0, 0), (-1, 0), 1, colors.black),
    ]))
    elements.append(totals)

    if invoice.notes:
        elements.append(Spacer(1, 6 * mm))
        elements.append(Paragraph(f"Notes: {escape(invoice.notes)}", styles["Normal"]))

    doc.build(elements)
    return buffer.getvalue()

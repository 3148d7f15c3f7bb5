"""
Report export - render report dicts to XLSX (openpyxl), PDF (reportlab) and
HTML (Jinja2 template templates/report.html)

Exports are downstream of reporting_service: they take the dict a report
function returned and lay it out as a table. Nothing here queries the
database.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from xml.sax.saxutils import escape

from flask import render_template
from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..validation import ValidationError

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIMETYPE = "application/pdf"
HTML_MIMETYPE = "text/html"

EXPORT_FORMATS = ("excel", "pdf", "html")


@dataclass(frozen=True)
class ReportTable:
    title: str
    filename: str
    summary: list[tuple[str, str]]
    headers: list[str]
    rows: list[list]


def format_cents(cents: int | None) -> str:
    if cents is None:
        return ""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100:,}.{cents % 100:02d}"


def _date_range(report: dict) -> tuple[str, str]:
    return ("Period", f"{report.get('start') or 'All time'} to {report.get('end') or 'Current'}")


def _sales_table(report: dict) -> ReportTable:
    summary = report["summary"]
    lines = [
        _date_range(report),
        ("Total sales", str(summary["total_sales"])),
        ("Units sold", str(summary["total_units_sold"])),
        ("Total revenue", format_cents(summary["total_revenue_cents"])),
    ]

    if report.get("group_by"):
        lines.append(("Grouped by", f"{report['group_by']} ({report.get('timezone')})"))
        headers = ["Period", "Sales", "Units", "Revenue"]
        rows = [
            [row["period"], row["sales_count"], row["units_sold"], format_cents(row["total_cents"])]
            for row in report["rows"]
        ]
    else:
        headers = ["Sale", "Date", "Customer", "Payment", "Lines", "Units", "Total"]
        rows = [
            [
                row["id"],
                row["date"],
                row["customer_name"],
                row["payment_method"],
                row["item_count"],
                row["units"],
                format_cents(row["total_amount_cents"]),
            ]
            for row in report["rows"]
        ]

    return ReportTable("Sales Report", "sales-report", lines, headers, rows)


def _items_table(report: dict) -> ReportTable:
    headers = ["Item", "Category", "In stock", "Price", "Sold", "Revenue", "Last sold", "Low stock"]
    rows = [
        [
            row["name"],
            row.get("category") or "",
            row["quantity"],
            format_cents(row["price_cents"]),
            row["total_sold"],
            format_cents(row["total_revenue_cents"]),
            row["last_sold"] or "",
            "yes" if row["is_low_stock"] else "",
        ]
        for row in report["items"]
    ]
    lines = [
        _date_range(report),
        ("Low stock below", str(report["low_stock_threshold"])),
    ]
    return ReportTable("Items Report", "items-report", lines, headers, rows)


def _inventory_table(report: dict) -> ReportTable:
    headers = ["Item", "Category", "Quantity", "Price", "Value", "Low stock"]
    rows = [
        [
            row["name"],
            row.get("category") or "",
            row["quantity"],
            format_cents(row["price_cents"]),
            format_cents(row["value_cents"]),
            "yes" if row["is_low_stock"] else "",
        ]
        for row in report["items"]
    ]
    lines = [
        ("Total items", str(report["total_items"])),
        ("Total units", str(report["total_units"])),
        ("Total value", format_cents(report["total_value_cents"])),
        ("Low-stock items", str(len(report["low_stock_items"]))),
    ]
    return ReportTable("Inventory Report", "inventory-report", lines, headers, rows)


def _ledger_table(report: dict) -> ReportTable:
    customer = report["customer"]
    summary = report["summary"]
    headers = ["Sale", "Date", "Payment", "Lines", "Units", "Total"]
    rows = [
        [
            row["id"],
            row["date"],
            row["payment_method"],
            row["item_count"],
            row["units"],
            format_cents(row["total_amount_cents"]),
        ]
        for row in report["sales"]
    ]
    lines = [
        ("Customer", customer["name"]),
        ("Mobile", customer.get("mobile") or ""),
        ("Address", customer.get("address") or ""),
        _date_range(report),
        ("Total purchases", str(summary["total_sales"])),
        ("Total amount", format_cents(summary["total_amount_cents"])),
        ("First purchase", summary["first_purchase_date"] or "-"),
        ("Last purchase", summary["last_purchase_date"] or "-"),
    ]
    return ReportTable(
        f"Customer Ledger - {customer['name']}",
        f"customer-ledger-{customer['id']}",
        lines,
        headers,
        rows,
    )


TABLE_BUILDERS = {
    "sales": _sales_table,
    "items": _items_table,
    "inventory": _inventory_table,
    "customer-ledger": _ledger_table,
}


def build_table(kind: str, report: dict) -> ReportTable:
    builder = TABLE_BUILDERS.get(kind)
    if builder is None:
        raise ValidationError(
            f"Unknown report kind: {kind}",
            details={"allowed": sorted(TABLE_BUILDERS)},
        )
    return builder(report)


def render_xlsx(table: ReportTable) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = table.filename[:31]

    bold = Font(bold=True)
    ws.append([table.title])
    ws.cell(row=1, column=1).font = Font(bold=True, size=14)

    for label, value in table.summary:
        ws.append([label, value])
        ws.cell(row=ws.max_row, column=1).font = bold

    ws.append([])
    ws.append(table.headers)
    header_row = ws.max_row
    for col_idx in range(1, len(table.headers) + 1):
        ws.cell(row=header_row, column=col_idx).font = bold

    for row in table.rows:
        ws.append(row)

    for col_idx, header in enumerate(table.headers, start=1):
        width = max([len(str(header))] + [len(str(row[col_idx - 1])) for row in table.rows])
        ws.column_dimensions[get_column_letter(col_idx)].width = min(width + 2, 60)

    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def render_pdf(table: ReportTable) -> bytes:
    buffer = BytesIO()
    pagesize = landscape(A4) if len(table.headers) > 6 else A4
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
        title=table.title,
    )
    styles = getSampleStyleSheet()

    elements = [Paragraph(escape(table.title), styles["Heading1"]), Spacer(1, 0.15 * inch)]

    summary = Table([[label, value] for label, value in table.summary], hAlign="LEFT")
    summary.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    elements.append(summary)
    elements.append(Spacer(1, 0.25 * inch))

    if table.rows:
        body = Table([table.headers] + [[str(cell) for cell in row] for row in table.rows], repeatRows=1)
        body.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 8),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#fafafa")]),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ]))
        elements.append(body)
    else:
        elements.append(Paragraph("No records for this period.", styles["Normal"]))

    doc.build(elements)
    return buffer.getvalue()


def render_html(table: ReportTable) -> bytes:
    # Needs an app context; the template is autoescaped
    return render_template("report.html", table=table).encode("utf-8")


def export_report(kind: str, report: dict, fmt: str) -> tuple[bytes, str, str]:
    """Render a report; returns (content, filename, mimetype)."""
    table = build_table(kind, report)
    if fmt == "excel":
        return render_xlsx(table), f"{table.filename}.xlsx", XLSX_MIMETYPE
    if fmt == "pdf":
        return render_pdf(table), f"{table.filename}.pdf", PDF_MIMETYPE
    if fmt == "html":
        return render_html(table), f"{table.filename}.html", HTML_MIMETYPE
    raise ValidationError(f"format must be one of: {', '.join(EXPORT_FORMATS)}")

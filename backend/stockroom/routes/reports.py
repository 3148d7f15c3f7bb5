# Overview: Report API routes; JSON reports plus Excel/PDF/HTML export and email delivery.

from flask import Blueprint, Response, jsonify, request

from ..decorators import json_body
from ..services import reporting_service
from ..services.export_service import build_table, export_report
from ..services.mail_service import Attachment, send_email
from ..validation import ValidationError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _sales_from_args(args) -> dict:
    return reporting_service.sales_report(
        start=args.get("start"),
        end=args.get("end"),
        customer_id=args.get("customer_id"),
        item_id=args.get("item_id"),
        group_by=args.get("group_by"),
    )


def _items_from_args(args) -> dict:
    return reporting_service.items_report(start=args.get("start"), end=args.get("end"))


def _inventory_from_args(args) -> dict:
    return reporting_service.inventory_report()


def _ledger_from_args(args) -> dict:
    customer_id = args.get("customer_id")
    if customer_id in (None, ""):
        raise ValidationError("customer_id is required")
    return reporting_service.customer_ledger(customer_id, start=args.get("start"), end=args.get("end"))


REPORT_SOURCES = {
    "sales": _sales_from_args,
    "items": _items_from_args,
    "inventory": _inventory_from_args,
    "customer-ledger": _ledger_from_args,
}


def _run_report(kind: str, args) -> dict:
    source = REPORT_SOURCES.get(kind)
    if source is None:
        raise ValidationError(f"Unknown report kind: {kind}", details={"allowed": sorted(REPORT_SOURCES)})
    return source(args)


@reports_bp.get("/sales")
def sales_report_route():
    return jsonify(_sales_from_args(request.args)), 200


@reports_bp.get("/items")
def items_report_route():
    return jsonify(_items_from_args(request.args)), 200


@reports_bp.get("/inventory")
def inventory_report_route():
    return jsonify(reporting_service.inventory_report()), 200


@reports_bp.get("/customers/<int:customer_id>/ledger")
def customer_ledger_route(customer_id: int):
    report = reporting_service.customer_ledger(
        customer_id,
        start=request.args.get("start"),
        end=request.args.get("end"),
    )
    return jsonify(report), 200


@reports_bp.get("/<kind>/<any(excel, pdf, html):fmt>")
def export_report_route(kind: str, fmt: str):
    report = _run_report(kind, request.args)
    content, filename, mimetype = export_report(kind, report, fmt)
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.post("/<kind>/email")
def email_report_route(kind: str):
    """
    Email a report as an attachment.

    Body: {"email": "...", "format": "pdf" | "excel" | "html"}. Report filters are
    taken from the query string, as for the export routes.
    """
    data = json_body()
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    to = data.get("email")
    if not to:
        raise ValidationError("Email address is required")
    fmt = data.get("format") or "pdf"

    report = _run_report(kind, request.args)
    content, filename, mimetype = export_report(kind, report, fmt)
    title = build_table(kind, report).title

    message_id = send_email(
        to,
        subject=title,
        text=f"Please find attached the {title.lower()} you requested.",
        attachments=[Attachment(filename=filename, content=content, mimetype=mimetype)],
    )
    return jsonify({"message": f"{title} sent to {to}", "message_id": message_id}), 200

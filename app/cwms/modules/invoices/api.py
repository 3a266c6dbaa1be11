from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cwms.api import created, json_payload, ok, page_args, paginate, sort_args
from app.cwms.db import db_session
from app.cwms.errors import ValidationError
from app.cwms.models import User
from app.cwms.modules.invoices.models import Invoice
from app.cwms.modules.invoices.serializers import serialize_invoice
from app.cwms.modules.invoices.service import (
    append_to_invoice,
    create_invoice,
    delete_invoice,
    find_open_invoice,
    get_invoice,
    invoice_stats,
    query_invoices,
    update_invoice,
    update_payment,
)
from app.cwms.rbac import require_permission
from app.cwms.utils import parse_date, parse_int

bp = Blueprint("invoices", __name__)

SORTABLE = {
    "date": Invoice.date,
    "invoiceNo": Invoice.invoice_no,
    "grandTotal": Invoice.grand_total,
    "status": Invoice.status,
    "createdAt": Invoice.created_at,
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _date_arg(name: str):
    try:
        return parse_date(request.args.get(name))
    except ValueError as e:
        raise ValidationError(f"{name} must be YYYY-MM-DD") from e


@bp.get("")
@require_permission("invoices.view")
def invoices_list():
    s = db_session()
    q = query_invoices(
        s,
        type_=request.args.get("type") or "",
        status=request.args.get("status") or "",
        company_id=parse_int(request.args.get("companyId")),
        transporter_id=parse_int(request.args.get("transporterId")),
        search=request.args.get("search") or "",
        start_date=_date_arg("startDate"),
        end_date=_date_arg("endDate"),
    )
    q = q.order_by(sort_args(SORTABLE, "date"), Invoice.id.desc())
    invoices, pagination = paginate(q, page_args())
    data = [serialize_invoice(inv, include_entries=False) for inv in invoices]
    return ok(data, "Invoices retrieved successfully", pagination=pagination)


@bp.get("/stats")
@require_permission("invoices.view")
def invoices_statistics():
    s = db_session()
    return ok({"stats": invoice_stats(s, type_=request.args.get("type") or "")}, "Statistics retrieved successfully")


@bp.get("/open")
@require_permission("invoices.view")
def invoices_open():
    company_id = parse_int(request.args.get("companyId"))
    if company_id is None:
        raise ValidationError("companyId is required")
    s = db_session()
    invoice = find_open_invoice(s, company_id)
    return ok(
        {"invoice": serialize_invoice(invoice) if invoice else None},
        "Open invoice found" if invoice else "No open invoice for this company",
    )


@bp.get("/<int:invoice_id>")
@require_permission("invoices.view")
def invoice_detail(invoice_id: int):
    s = db_session()
    return ok({"invoice": serialize_invoice(get_invoice(s, invoice_id))}, "Invoice retrieved successfully")


@bp.post("")
@require_permission("invoices.create")
def invoice_create():
    s = db_session()
    invoice = create_invoice(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Invoice created: %s (%s) total=%s", invoice.invoice_no, invoice.id, invoice.grand_total)
    return created({"invoice": serialize_invoice(invoice)}, "Invoice created successfully")


@bp.put("/<int:invoice_id>")
@require_permission("invoices.edit")
def invoice_update(invoice_id: int):
    s = db_session()
    invoice = get_invoice(s, invoice_id)
    update_invoice(s, invoice, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Invoice updated: %s (%s)", invoice.invoice_no, invoice.id)
    return ok({"invoice": serialize_invoice(invoice)}, "Invoice updated successfully")


@bp.put("/<int:invoice_id>/payment")
@require_permission("invoices.edit")
def invoice_payment(invoice_id: int):
    s = db_session()
    invoice = get_invoice(s, invoice_id)
    update_payment(s, invoice, json_payload(), _current_user())
    s.commit()
    current_app.logger.info(
        "Payment updated: %s received=%s status=%s", invoice.invoice_no, invoice.payment_received, invoice.status
    )
    return ok({"invoice": serialize_invoice(invoice)}, "Payment updated successfully")


@bp.post("/<int:invoice_id>/append")
@require_permission("invoices.edit")
def invoice_append(invoice_id: int):
    s = db_session()
    invoice = get_invoice(s, invoice_id)
    summary = append_to_invoice(s, invoice, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Appended to invoice %s: %s", invoice.invoice_no, summary)
    return ok({"invoice": serialize_invoice(invoice), "summary": summary}, "Invoice updated successfully")


@bp.delete("/<int:invoice_id>")
@require_permission("invoices.delete")
def invoice_delete(invoice_id: int):
    s = db_session()
    invoice = get_invoice(s, invoice_id)
    invoice_no = invoice.invoice_no
    delete_invoice(s, invoice, _current_user())
    s.commit()
    current_app.logger.info("Invoice deleted: %s (%s)", invoice_no, invoice_id)
    return ok(message="Invoice deleted successfully")

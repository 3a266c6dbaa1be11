"""
Invoice service layer.

Covers the invoice lifecycle (create, update, payment, delete), entry linking
and the append workflow used when a company already has an unpaid invoice.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from flask import current_app, has_app_context
from sqlalchemy import func

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.modules.invoices.models import Invoice, InvoiceManifest, InvoiceMaterial
from app.cwms.modules.invoices.utils import (
    INVOICE_TYPES,
    STATUSES,
    compute_totals,
    derive_status,
    line_amount,
    split_new_lines,
    unique_in_order,
)
from app.cwms.modules.inward.models import InwardEntry
from app.cwms.modules.outward.models import OutwardEntry
from app.cwms.utils import (
    money,
    monthly_prefix,
    next_serial,
    normalize_text,
    optional_text,
    parse_date,
    parse_decimal,
    parse_int,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.cwms.models import User

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# ---------- Payload parsing ----------
def _decimal_field(payload: dict, key: str, label: str, errors: list[str], *, minimum: Decimal | None = ZERO):
    if key not in payload:
        return None
    try:
        value = parse_decimal(payload.get(key))
    except ValueError:
        errors.append(f"{label} must be a number.")
        return None
    if value is not None and minimum is not None and value < minimum:
        errors.append(f"{label} cannot be negative.")
    return value


MAX_TAX_RATE = Decimal("100")


def _rate_field(payload: dict, key: str, label: str, errors: list[str]) -> Decimal | None:
    value = _decimal_field(payload, key, label, errors)
    if value is not None and value > MAX_TAX_RATE:
        errors.append(f"{label} cannot exceed 100.")
    return value


def _id_list(payload: dict, key: str, errors: list[str]) -> list[int] | None:
    if key not in payload:
        return None
    raw = payload.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append(f"{key} must be a list of ids.")
        return None
    ids: list[int] = []
    for value in raw:
        parsed = parse_int(value)
        if parsed is None:
            errors.append(f"{key} must contain numeric ids.")
            return None
        if parsed not in ids:
            ids.append(parsed)
    return ids


def parse_material_lines(raw: Any, errors: list[str]) -> list[dict[str, Any]] | None:
    """Turn payload ``materials`` into line dicts with computed amounts."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append("materials must be a list.")
        return None
    lines: list[dict[str, Any]] = []
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            errors.append(f"Material {idx} must be an object.")
            continue
        name = normalize_text(item.get("materialName"))
        if not name:
            errors.append(f"Material {idx}: material name is required.")
        item_errors: list[str] = []
        quantity = _decimal_field(item, "quantity", f"Material {idx}: quantity", item_errors)
        rate = _decimal_field(item, "rate", f"Material {idx}: rate", item_errors)
        amount = _decimal_field(item, "amount", f"Material {idx}: amount", item_errors)
        errors.extend(item_errors)
        entry_id = item.get("inwardEntryId")
        if entry_id not in (None, "") and parse_int(entry_id) is None:
            errors.append(f"Material {idx}: inwardEntryId must be numeric.")
        lines.append(
            {
                "material_name": name,
                "manifest_no": optional_text(item.get("manifestNo")),
                "quantity": quantity,
                "unit": optional_text(item.get("unit")),
                "rate": rate,
                "amount": line_amount(quantity, rate, amount),
                "description": optional_text(item.get("description")),
                "inward_entry_id": parse_int(entry_id),
            }
        )
    return lines


def line_from_inward_entry(entry: InwardEntry) -> dict[str, Any]:
    rate = entry.rate if entry.rate is not None else ZERO
    return {
        "material_name": entry.waste_name,
        "manifest_no": entry.manifest_no,
        "quantity": entry.quantity,
        "unit": entry.unit,
        "rate": rate,
        "amount": line_amount(entry.quantity, rate),
        "description": None,
        "inward_entry_id": entry.id,
    }


def _manifest_list(payload: dict, errors: list[str]) -> list[str] | None:
    if "manifestNos" not in payload:
        return None
    raw = payload.get("manifestNos")
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors.append("manifestNos must be a list.")
        return None
    return unique_in_order(raw)


# ---------- Lookups ----------
def get_invoice(s: "Session", invoice_id: int) -> Invoice:
    invoice = s.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError("Invoice")
    return invoice


def query_invoices(
    s: "Session",
    *,
    type_: str = "",
    status: str = "",
    company_id: int | None = None,
    transporter_id: int | None = None,
    search: str = "",
    start_date: date | None = None,
    end_date: date | None = None,
) -> "Query":
    q = s.query(Invoice)
    type_ = normalize_text(type_)
    if type_:
        q = q.filter(Invoice.type == type_)
    status = normalize_text(status).lower()
    if status:
        q = q.filter(Invoice.status == status)
    if company_id:
        q = q.filter(Invoice.company_id == company_id)
    if transporter_id:
        q = q.filter(Invoice.transporter_id == transporter_id)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter((Invoice.invoice_no.ilike(like)) | (Invoice.customer_name.ilike(like)))
    if start_date:
        q = q.filter(Invoice.date >= start_date)
    if end_date:
        q = q.filter(Invoice.date <= end_date)
    return q


def find_open_invoice(s: "Session", company_id: int) -> Invoice | None:
    """Most recent Inward invoice of the company that is not fully paid."""
    return (
        s.query(Invoice)
        .filter(Invoice.type == "Inward", Invoice.company_id == company_id, Invoice.status != "paid")
        .order_by(Invoice.date.desc(), Invoice.id.desc())
        .first()
    )


def generate_invoice_no(s: "Session", today: date | None = None) -> str:
    """Next invoice number for the current month: INV-YYYYMM-NNNN."""
    prefix = monthly_prefix("INV", today or date.today())
    existing = [row[0] for row in s.query(Invoice.invoice_no).filter(Invoice.invoice_no.like(f"{prefix}-%")).all()]
    return next_serial(prefix, existing)


def _default_rate(s: "Session", key: str, config_key: str) -> Decimal:
    from app.cwms.modules.settings.service import get_decimal_setting

    fallback = "9"
    if has_app_context():
        fallback = str(current_app.config.get(config_key, fallback))
    return get_decimal_setting(s, key, fallback)


# ---------- Linking ----------
def _link_inward_entries(s: "Session", invoice: Invoice, entry_ids: list[int]) -> list[InwardEntry]:
    """Link entries not yet on the invoice. Returns the newly linked ones."""
    already = {e.id for e in invoice.inward_entries}
    linked: list[InwardEntry] = []
    for entry_id in entry_ids:
        if entry_id in already:
            continue
        entry = s.get(InwardEntry, entry_id)
        if entry is None:
            raise ValidationError(f"Inward entry {entry_id} not found")
        if entry.invoice_id is not None and entry.invoice_id != invoice.id:
            raise ValidationError(f"Inward entry {entry.lot_no} is already linked to another invoice")
        if invoice.company_id is not None and entry.company_id != invoice.company_id:
            raise ValidationError(f"Inward entry {entry.lot_no} belongs to a different company")
        invoice.inward_entries.append(entry)
        already.add(entry.id)
        linked.append(entry)
    return linked


def _link_outward_entries(s: "Session", invoice: Invoice, entry_ids: list[int]) -> list[OutwardEntry]:
    already = {e.id for e in invoice.outward_entries}
    linked: list[OutwardEntry] = []
    for entry_id in entry_ids:
        if entry_id in already:
            continue
        entry = s.get(OutwardEntry, entry_id)
        if entry is None:
            raise ValidationError(f"Outward entry {entry_id} not found")
        if entry.invoice_id is not None and entry.invoice_id != invoice.id:
            raise ValidationError(f"Outward entry {entry.id} is already linked to another invoice")
        invoice.outward_entries.append(entry)
        already.add(entry.id)
        linked.append(entry)
    return linked


def _replace_inward_links(s: "Session", invoice: Invoice, entry_ids: list[int]) -> set[int]:
    """Make ``entry_ids`` the linked set. Returns the ids that were unlinked."""
    unlinked: set[int] = set()
    for entry in list(invoice.inward_entries):
        if entry.id not in entry_ids:
            invoice.inward_entries.remove(entry)
            unlinked.add(entry.id)
    _link_inward_entries(s, invoice, entry_ids)
    return unlinked


def _drop_lines_for_entries(invoice: Invoice, entry_ids: set[int]) -> Decimal:
    """Remove lines billing unlinked entries. Returns the amount removed."""
    removed = ZERO
    for line in list(invoice.invoice_materials):
        if line.inward_entry_id in entry_ids:
            removed += line.amount or ZERO
            invoice.invoice_materials.remove(line)
    return removed


def _replace_outward_links(s: "Session", invoice: Invoice, entry_ids: list[int]) -> None:
    for entry in list(invoice.outward_entries):
        if entry.id not in entry_ids:
            invoice.outward_entries.remove(entry)
    _link_outward_entries(s, invoice, entry_ids)


def _set_materials(invoice: Invoice, lines: list[dict[str, Any]]) -> None:
    invoice.invoice_materials.clear()
    _append_materials(invoice, lines)


def _append_materials(invoice: Invoice, lines: list[dict[str, Any]]) -> None:
    position = max((m.position for m in invoice.invoice_materials), default=-1) + 1
    for line in lines:
        invoice.invoice_materials.append(InvoiceMaterial(position=position, **line))
        position += 1


def _set_manifests(s: "Session", invoice: Invoice, manifest_nos: list[str]) -> None:
    invoice.invoice_manifests.clear()
    # Old rows must be gone before re-inserting the same (invoice_id, manifest_no).
    s.flush()
    for position, manifest_no in enumerate(unique_in_order(manifest_nos)):
        invoice.invoice_manifests.append(InvoiceManifest(position=position, manifest_no=manifest_no))


def _apply_totals(invoice: Invoice, subtotal: Decimal | None = None) -> None:
    """Recompute money fields and status. Line amounts drive the subtotal when lines exist."""
    if invoice.invoice_materials:
        subtotal = sum((m.amount or ZERO for m in invoice.invoice_materials), ZERO)
    elif subtotal is None:
        subtotal = invoice.subtotal or ZERO
    totals = compute_totals(
        subtotal,
        invoice.additional_charges or ZERO,
        invoice.cgst_rate or ZERO,
        invoice.sgst_rate or ZERO,
    )
    for attr, value in totals.items():
        setattr(invoice, attr, value)
    invoice.status = derive_status(invoice.grand_total, invoice.payment_received or ZERO)


def _apply_payment(invoice: Invoice, payload: dict) -> None:
    amount = parse_decimal(payload.get("paymentReceived"))
    invoice.payment_received = money(amount or ZERO)
    if "paymentReceivedOn" in payload:
        invoice.payment_received_on = parse_date(payload.get("paymentReceivedOn"))
    elif invoice.payment_received > 0 and invoice.payment_received_on is None:
        invoice.payment_received_on = date.today()
    if invoice.payment_received == 0 and "paymentReceivedOn" not in payload:
        invoice.payment_received_on = None


def _check_party_ids(payload: dict, errors: list[str]) -> None:
    for key, label in (("companyId", "Company id"), ("transporterId", "Transporter id")):
        if payload.get(key) not in (None, "") and parse_int(payload.get(key)) is None:
            errors.append(f"{label} must be numeric.")


def _check_dates(payload: dict, errors: list[str]) -> None:
    for key, label in (("date", "Date"), ("paymentReceivedOn", "Payment date")):
        if payload.get(key) not in (None, ""):
            try:
                parse_date(payload.get(key))
            except ValueError:
                errors.append(f"{label} must be YYYY-MM-DD.")


# ---------- Create ----------
def create_invoice(s: "Session", payload: dict, user: "User", *, today: date | None = None) -> Invoice:
    from app.cwms.modules.companies.service import get_company
    from app.cwms.modules.transporters.service import get_transporter

    errors: list[str] = []
    inv_type = normalize_text(payload.get("type"))
    if not inv_type:
        errors.append("Invoice type is required.")
    elif inv_type not in INVOICE_TYPES:
        errors.append(f"Invoice type must be one of: {', '.join(INVOICE_TYPES)}.")
    _check_party_ids(payload, errors)
    _check_dates(payload, errors)
    lines = parse_material_lines(payload.get("materials"), errors)
    subtotal = _decimal_field(payload, "subtotal", "Subtotal", errors)
    charges = _decimal_field(payload, "additionalCharges", "Additional charges", errors)
    cgst_rate = _rate_field(payload, "cgstRate", "CGST rate", errors)
    sgst_rate = _rate_field(payload, "sgstRate", "SGST rate", errors)
    _decimal_field(payload, "paymentReceived", "Payment received", errors)
    inward_ids = _id_list(payload, "inwardEntryIds", errors) or []
    outward_ids = _id_list(payload, "outwardEntryIds", errors) or []
    manifest_nos = _manifest_list(payload, errors)
    raise_if_errors(errors)

    company = transporter = None
    if inv_type == "Inward":
        if payload.get("companyId") in (None, ""):
            raise ValidationError("Company is required for Inward invoices")
        company = get_company(s, parse_int(payload.get("companyId")))
        if outward_ids:
            raise ValidationError("Inward invoices cannot link outward entries")
    else:
        if payload.get("transporterId") in (None, ""):
            raise ValidationError(f"Transporter is required for {inv_type} invoices")
        transporter = get_transporter(s, parse_int(payload.get("transporterId")))
        if inward_ids:
            raise ValidationError(f"{inv_type} invoices cannot link inward entries")

    invoice_no = normalize_text(payload.get("invoiceNo")) or generate_invoice_no(s, today)
    if s.query(Invoice.id).filter(Invoice.invoice_no == invoice_no).first() is not None:
        raise ValidationError("Invoice number already exists")

    party = company or transporter
    billed_to = optional_text(payload.get("billedTo")) or party.address
    now = datetime.utcnow()
    invoice = Invoice(
        invoice_no=invoice_no,
        type=inv_type,
        date=parse_date(payload.get("date")) or (today or date.today()),
        company_id=company.id if company else None,
        transporter_id=transporter.id if transporter else None,
        customer_name=optional_text(payload.get("customerName")) or party.name,
        gst_no=optional_text(payload.get("gstNo")) or party.gst_number,
        billed_to=billed_to,
        shipped_to=optional_text(payload.get("shippedTo")) or billed_to,
        description=optional_text(payload.get("description")),
        additional_charges=money(charges or ZERO),
        additional_charges_description=optional_text(payload.get("additionalChargesDescription")),
        cgst_rate=cgst_rate if cgst_rate is not None else _default_rate(s, "cgst_rate", "DEFAULT_CGST_RATE"),
        sgst_rate=sgst_rate if sgst_rate is not None else _default_rate(s, "sgst_rate", "DEFAULT_SGST_RATE"),
        payment_received=ZERO,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    invoice.company = company
    invoice.transporter = transporter
    s.add(invoice)

    # Lines may name entries without listing them in inwardEntryIds.
    for line in lines:
        if line["inward_entry_id"] is not None and line["inward_entry_id"] not in inward_ids:
            inward_ids.append(line["inward_entry_id"])
    linked_inward = _link_inward_entries(s, invoice, inward_ids)
    linked_outward = _link_outward_entries(s, invoice, outward_ids)

    if not lines and linked_inward and subtotal is None:
        lines = [line_from_inward_entry(e) for e in linked_inward]
    if not lines and not (subtotal and subtotal > 0):
        raise ValidationError("Add at least one material or enter a subtotal")
    _append_materials(invoice, lines)

    if manifest_nos is None:
        manifest_nos = unique_in_order(
            [e.manifest_no for e in linked_inward]
            + [e.manifest_no for e in linked_outward]
            + [line["manifest_no"] for line in lines]
        )
    for position, manifest_no in enumerate(manifest_nos):
        invoice.invoice_manifests.append(InvoiceManifest(position=position, manifest_no=manifest_no))

    if "paymentReceived" in payload:
        _apply_payment(invoice, payload)
    _apply_totals(invoice, subtotal)
    s.flush()

    record_event(
        s,
        actor=user,
        action="invoice.create",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={
            "invoice_no": invoice.invoice_no,
            "type": invoice.type,
            "grand_total": invoice.grand_total,
            "inward_entry_ids": [e.id for e in linked_inward],
            "outward_entry_ids": [e.id for e in linked_outward],
        },
    )
    return invoice


# ---------- Update ----------
_TEXT_FIELDS = {
    "customerName": "customer_name",
    "gstNo": "gst_no",
    "billedTo": "billed_to",
    "shippedTo": "shipped_to",
    "description": "description",
    "additionalChargesDescription": "additional_charges_description",
}


def update_invoice(s: "Session", invoice: Invoice, payload: dict, user: "User") -> Invoice:
    """
    Partial update. ``materials``, ``manifestNos``, ``inwardEntryIds`` and
    ``outwardEntryIds`` replace the current sets when present.
    """
    from app.cwms.modules.companies.service import get_company
    from app.cwms.modules.transporters.service import get_transporter

    errors: list[str] = []
    if "type" in payload and normalize_text(payload.get("type")) != invoice.type:
        errors.append("Invoice type cannot be changed.")
    _check_party_ids(payload, errors)
    _check_dates(payload, errors)
    lines = parse_material_lines(payload.get("materials"), errors) if "materials" in payload else None
    subtotal = _decimal_field(payload, "subtotal", "Subtotal", errors)
    charges = _decimal_field(payload, "additionalCharges", "Additional charges", errors)
    cgst_rate = _rate_field(payload, "cgstRate", "CGST rate", errors)
    sgst_rate = _rate_field(payload, "sgstRate", "SGST rate", errors)
    _decimal_field(payload, "paymentReceived", "Payment received", errors)
    inward_ids = _id_list(payload, "inwardEntryIds", errors)
    outward_ids = _id_list(payload, "outwardEntryIds", errors)
    manifest_nos = _manifest_list(payload, errors)
    raise_if_errors(errors)

    changes: dict[str, Any] = {}

    if "invoiceNo" in payload:
        new_no = normalize_text(payload.get("invoiceNo"))
        if not new_no:
            raise ValidationError("Invoice number cannot be empty")
        if new_no != invoice.invoice_no:
            clash = s.query(Invoice.id).filter(Invoice.invoice_no == new_no, Invoice.id != invoice.id).first()
            if clash is not None:
                raise ValidationError("Invoice number already exists")
            changes["invoice_no"] = {"old": invoice.invoice_no, "new": new_no}
            invoice.invoice_no = new_no

    if invoice.type == "Inward" and payload.get("companyId") not in (None, ""):
        company = get_company(s, parse_int(payload.get("companyId")))
        if company.id != invoice.company_id:
            changes["company_id"] = {"old": invoice.company_id, "new": company.id}
            invoice.company_id = company.id
            invoice.company = company
    if invoice.type != "Inward" and payload.get("transporterId") not in (None, ""):
        transporter = get_transporter(s, parse_int(payload.get("transporterId")))
        if transporter.id != invoice.transporter_id:
            changes["transporter_id"] = {"old": invoice.transporter_id, "new": transporter.id}
            invoice.transporter_id = transporter.id
            invoice.transporter = transporter

    if payload.get("date") not in (None, ""):
        invoice.date = parse_date(payload.get("date"))
    for key, attr in _TEXT_FIELDS.items():
        if key in payload:
            new_value = optional_text(payload.get(key))
            if new_value != getattr(invoice, attr):
                changes[attr] = {"old": getattr(invoice, attr), "new": new_value}
                setattr(invoice, attr, new_value)

    if charges is not None:
        invoice.additional_charges = money(charges)
    if cgst_rate is not None:
        invoice.cgst_rate = cgst_rate
    if sgst_rate is not None:
        invoice.sgst_rate = sgst_rate

    # Every line that names an inward entry must bill an entry linked to this invoice.
    line_entry_ids: list[int] = []
    for line in lines or []:
        if line["inward_entry_id"] is not None and line["inward_entry_id"] not in line_entry_ids:
            line_entry_ids.append(line["inward_entry_id"])
    if line_entry_ids and invoice.type != "Inward":
        raise ValidationError(f"{invoice.type} invoices cannot link inward entries")

    if inward_ids is not None:
        if invoice.type != "Inward" and inward_ids:
            raise ValidationError(f"{invoice.type} invoices cannot link inward entries")
        for entry_id in line_entry_ids:
            if entry_id not in inward_ids:
                inward_ids.append(entry_id)
        unlinked = _replace_inward_links(s, invoice, inward_ids)
        if unlinked and lines is None:
            removed = _drop_lines_for_entries(invoice, unlinked)
            if subtotal is None and not invoice.invoice_materials:
                subtotal = max((invoice.subtotal or ZERO) - removed, ZERO)
        changes["inward_entry_ids"] = inward_ids
    elif line_entry_ids:
        linked = _link_inward_entries(s, invoice, line_entry_ids)
        if linked:
            changes["inward_entry_ids"] = [e.id for e in invoice.inward_entries]
    if outward_ids is not None:
        if invoice.type == "Inward" and outward_ids:
            raise ValidationError("Inward invoices cannot link outward entries")
        _replace_outward_links(s, invoice, outward_ids)
        changes["outward_entry_ids"] = outward_ids

    for entry in invoice.inward_entries:
        if entry.company_id != invoice.company_id:
            raise ValidationError(f"Inward entry {entry.lot_no} belongs to a different company")

    if lines is not None:
        _set_materials(invoice, lines)
        changes["materials"] = len(lines)
    if manifest_nos is not None:
        _set_manifests(s, invoice, manifest_nos)
        changes["manifest_nos"] = manifest_nos

    if "paymentReceived" in payload:
        _apply_payment(invoice, payload)
    _apply_totals(invoice, subtotal)
    invoice.updated_at = datetime.utcnow()
    invoice.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="invoice.edit",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={"invoice_no": invoice.invoice_no, "grand_total": invoice.grand_total, "changes": changes},
    )
    return invoice


def update_payment(s: "Session", invoice: Invoice, payload: dict, user: "User") -> Invoice:
    errors: list[str] = []
    if payload.get("paymentReceived") in (None, ""):
        errors.append("Payment received is required.")
    else:
        _decimal_field(payload, "paymentReceived", "Payment received", errors)
    _check_dates(payload, errors)
    raise_if_errors(errors)

    old_amount, old_status = invoice.payment_received, invoice.status
    _apply_payment(invoice, payload)
    invoice.status = derive_status(invoice.grand_total, invoice.payment_received)
    invoice.updated_at = datetime.utcnow()
    invoice.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="invoice.payment",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={
            "invoice_no": invoice.invoice_no,
            "payment_received": {"old": old_amount, "new": invoice.payment_received},
            "status": {"old": old_status, "new": invoice.status},
        },
    )
    return invoice


def delete_invoice(s: "Session", invoice: Invoice, user: "User") -> None:
    inward_ids = [e.id for e in invoice.inward_entries]
    outward_ids = [e.id for e in invoice.outward_entries]
    for entry in list(invoice.inward_entries):
        invoice.inward_entries.remove(entry)
    for entry in list(invoice.outward_entries):
        invoice.outward_entries.remove(entry)
    record_event(
        s,
        actor=user,
        action="invoice.delete",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={
            "invoice_no": invoice.invoice_no,
            "unlinked_inward_entry_ids": inward_ids,
            "unlinked_outward_entry_ids": outward_ids,
        },
    )
    s.delete(invoice)


# ---------- Append ----------
def append_to_invoice(s: "Session", invoice: Invoice, payload: dict, user: "User") -> dict[str, Any]:
    """
    Merge new materials, manifests and entry links into an existing Inward invoice.

    Existing lines stay; a new line for an inward entry that already has a line
    is skipped. Newly linked entries without a line get one generated from the
    entry. Stored tax rates, charges and payment are kept unless the payload
    overrides them.
    """
    if invoice.type != "Inward":
        raise ValidationError("Only Inward invoices can be appended to")
    if invoice.status == "paid":
        raise ValidationError(f"Invoice {invoice.invoice_no} is fully paid and cannot be appended to")

    errors: list[str] = []
    _check_dates(payload, errors)
    new_lines = parse_material_lines(payload.get("materials"), errors)
    charges = _decimal_field(payload, "additionalCharges", "Additional charges", errors)
    cgst_rate = _rate_field(payload, "cgstRate", "CGST rate", errors)
    sgst_rate = _rate_field(payload, "sgstRate", "SGST rate", errors)
    _decimal_field(payload, "paymentReceived", "Payment received", errors)
    entry_ids = _id_list(payload, "inwardEntryIds", errors) or []
    manifest_nos = _manifest_list(payload, errors) or []
    raise_if_errors(errors)

    for line in new_lines:
        if line["inward_entry_id"] is not None and line["inward_entry_id"] not in entry_ids:
            entry_ids.append(line["inward_entry_id"])
    newly_linked = _link_inward_entries(s, invoice, entry_ids)

    represented = {m.inward_entry_id for m in invoice.invoice_materials if m.inward_entry_id is not None}
    kept, skipped = split_new_lines(new_lines, represented)
    covered = represented | {line["inward_entry_id"] for line in kept if line["inward_entry_id"] is not None}
    generated = [line_from_inward_entry(e) for e in newly_linked if e.id not in covered]
    added = kept + generated
    if not added and not newly_linked and not manifest_nos:
        raise ValidationError("Nothing to append: add materials, manifests or inward entries")
    _append_materials(invoice, added)

    existing_manifests = [m.manifest_no for m in invoice.invoice_manifests]
    merged = unique_in_order(existing_manifests + manifest_nos + [e.manifest_no for e in newly_linked])
    position = max((m.position for m in invoice.invoice_manifests), default=-1) + 1
    for manifest_no in merged[len(existing_manifests):]:
        invoice.invoice_manifests.append(InvoiceManifest(position=position, manifest_no=manifest_no))
        position += 1

    if charges is not None:
        invoice.additional_charges = money(charges)
    if "additionalChargesDescription" in payload:
        invoice.additional_charges_description = optional_text(payload.get("additionalChargesDescription"))
    if cgst_rate is not None:
        invoice.cgst_rate = cgst_rate
    if sgst_rate is not None:
        invoice.sgst_rate = sgst_rate
    if "paymentReceived" in payload:
        _apply_payment(invoice, payload)

    _apply_totals(invoice)
    invoice.updated_at = datetime.utcnow()
    invoice.updated_by_user_id = user.id

    if skipped:
        logger.info(
            "Append to %s skipped %d line(s) for entries already billed: %s",
            invoice.invoice_no,
            len(skipped),
            [line["inward_entry_id"] for line in skipped],
        )
    summary = {
        "linkedEntries": len(newly_linked),
        "addedMaterials": len(added),
        "skippedMaterials": len(skipped),
        "addedManifests": len(merged) - len(existing_manifests),
    }
    record_event(
        s,
        actor=user,
        action="invoice.append",
        entity_type="Invoice",
        entity_id=str(invoice.id),
        metadata={"invoice_no": invoice.invoice_no, "grand_total": invoice.grand_total, **summary},
    )
    return summary


# ---------- Stats ----------
def invoice_stats(s: "Session", *, type_: str = "") -> dict[str, Any]:
    base = s.query(Invoice)
    type_ = normalize_text(type_)
    if type_:
        base = base.filter(Invoice.type == type_)

    count, invoiced, received = base.with_entities(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.grand_total), 0),
        func.coalesce(func.sum(Invoice.payment_received), 0),
    ).one()
    invoiced, received = money(invoiced), money(received)

    by_status = {status: {"count": 0, "amount": 0.0} for status in STATUSES}
    for status, n, amount in base.with_entities(
        Invoice.status, func.count(Invoice.id), func.coalesce(func.sum(Invoice.grand_total), 0)
    ).group_by(Invoice.status):
        by_status[status] = {"count": int(n), "amount": float(money(amount))}

    by_type = {t: {"count": 0, "amount": 0.0, "received": 0.0} for t in INVOICE_TYPES}
    for t, n, amount, paid in base.with_entities(
        Invoice.type,
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.grand_total), 0),
        func.coalesce(func.sum(Invoice.payment_received), 0),
    ).group_by(Invoice.type):
        by_type[t] = {"count": int(n), "amount": float(money(amount)), "received": float(money(paid))}

    return {
        "totalInvoices": int(count or 0),
        "totalInvoiced": float(invoiced),
        "totalReceived": float(received),
        "outstanding": float(max(invoiced - received, ZERO)),
        "byStatus": by_status,
        "byType": by_type,
    }

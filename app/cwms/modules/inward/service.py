"""
Inward service layer.
Handles inward entry CRUD, serial/lot number generation, inward material lines and statistics.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.modules.inward.models import InwardEntry, InwardMaterial
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
    from app.cwms.modules.invoices.models import Invoice


REQUIRED_FIELDS = (
    ("date", "Date"),
    ("companyId", "Company"),
    ("manifestNo", "Manifest number"),
    ("wasteName", "Waste name"),
    ("quantity", "Quantity"),
    ("unit", "Unit"),
)


def validate_entry_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate inward entry creation/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial:
        missing = [label for key, label in REQUIRED_FIELDS if payload.get(key) in (None, "")]
        if missing:
            errors.append(
                "Date, company, manifest number, waste name, quantity, and unit are required"
                f" (missing: {', '.join(missing)})"
            )
    else:
        for key, label in REQUIRED_FIELDS:
            if key in payload and payload.get(key) in (None, ""):
                errors.append(f"{label} cannot be empty.")

    if payload.get("date") not in (None, ""):
        try:
            parse_date(payload.get("date"))
        except ValueError:
            errors.append("Date must be YYYY-MM-DD.")
    if payload.get("companyId") not in (None, "") and parse_int(payload.get("companyId")) is None:
        errors.append("Company id must be numeric.")
    if payload.get("quantity") not in (None, ""):
        try:
            qty = parse_decimal(payload.get("quantity"))
            if qty is not None and qty <= 0:
                errors.append("Quantity must be greater than zero.")
        except ValueError:
            errors.append("Quantity must be a number.")
    if "rate" in payload:
        try:
            rate = parse_decimal(payload.get("rate"))
            if rate is not None and rate < 0:
                errors.append("Rate cannot be negative.")
        except ValueError:
            errors.append("Rate must be a number.")
    if "srNo" in payload and payload.get("srNo") not in (None, "") and parse_int(payload.get("srNo")) is None:
        errors.append("Serial number must be an integer.")
    return errors


def get_entry(s: "Session", entry_id: int) -> InwardEntry:
    entry = s.get(InwardEntry, entry_id)
    if not entry:
        raise NotFoundError("Inward entry")
    return entry


def query_entries(
    s: "Session",
    *,
    search: str = "",
    company_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    invoiced: str = "",
) -> "Query":
    q = s.query(InwardEntry)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter(
            (InwardEntry.manifest_no.ilike(like))
            | (InwardEntry.lot_no.ilike(like))
            | (InwardEntry.waste_name.ilike(like))
        )
    if company_id:
        q = q.filter(InwardEntry.company_id == company_id)
    if start_date:
        q = q.filter(InwardEntry.date >= start_date)
    if end_date:
        q = q.filter(InwardEntry.date <= end_date)
    invoiced = normalize_text(invoiced).lower()
    if invoiced in ("true", "1"):
        q = q.filter(InwardEntry.invoice_id.isnot(None))
    elif invoiced in ("false", "0"):
        q = q.filter(InwardEntry.invoice_id.is_(None))
    return q


def next_sr_no(s: "Session") -> int:
    last = s.query(func.max(InwardEntry.sr_no)).scalar()
    return int(last) + 1 if last else 1


def generate_lot_no(s: "Session", today: date | None = None) -> str:
    """Next lot number for the current month: LOT-YYYYMM-NNNN."""
    prefix = monthly_prefix("LOT", today or date.today())
    existing = [row[0] for row in s.query(InwardEntry.lot_no).filter(InwardEntry.lot_no.like(f"{prefix}-%")).all()]
    return next_serial(prefix, existing)


def _ensure_unique_lot(s: "Session", lot_no: str, exclude_id: int | None = None) -> None:
    q = s.query(InwardEntry.id).filter(InwardEntry.lot_no == lot_no)
    if exclude_id is not None:
        q = q.filter(InwardEntry.id != exclude_id)
    if q.first() is not None:
        raise ValidationError("Lot number already exists")


def _require_company(s: "Session", company_id: Any):
    from app.cwms.modules.companies.service import get_company

    return get_company(s, int(company_id))


def create_entry(s: "Session", payload: dict, user: "User", *, today: date | None = None) -> InwardEntry:
    """Create an inward entry, assigning sr_no and lot number when not supplied."""
    raise_if_errors(validate_entry_payload(payload))
    company = _require_company(s, payload.get("companyId"))

    sr_no = parse_int(payload.get("srNo")) or next_sr_no(s)
    lot_no = normalize_text(payload.get("lotNo")) or generate_lot_no(s, today)
    _ensure_unique_lot(s, lot_no)

    now = datetime.utcnow()
    entry = InwardEntry(
        sr_no=sr_no,
        date=parse_date(payload.get("date")),
        lot_no=lot_no,
        company_id=company.id,
        company=company,
        manifest_no=normalize_text(payload.get("manifestNo")),
        vehicle_no=optional_text(payload.get("vehicleNo")),
        waste_name=normalize_text(payload.get("wasteName")),
        rate=parse_decimal(payload.get("rate")),
        category=optional_text(payload.get("category")),
        quantity=parse_decimal(payload.get("quantity")),
        unit=normalize_text(payload.get("unit")),
        month=optional_text(payload.get("month")),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(entry)
    s.flush()

    record_event(
        s,
        actor=user,
        action="inward.create",
        entity_type="InwardEntry",
        entity_id=str(entry.id),
        metadata={"lot_no": entry.lot_no, "company_id": company.id, "manifest_no": entry.manifest_no},
    )
    return entry


# payload key -> (attribute, parser)
_ENTRY_FIELDS = {
    "date": ("date", parse_date),
    "manifestNo": ("manifest_no", normalize_text),
    "vehicleNo": ("vehicle_no", optional_text),
    "wasteName": ("waste_name", normalize_text),
    "rate": ("rate", parse_decimal),
    "category": ("category", optional_text),
    "quantity": ("quantity", parse_decimal),
    "unit": ("unit", normalize_text),
    "month": ("month", optional_text),
    "srNo": ("sr_no", parse_int),
}


def update_entry(s: "Session", entry: InwardEntry, payload: dict, user: "User") -> InwardEntry:
    raise_if_errors(validate_entry_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    if "lotNo" in payload:
        new_lot = normalize_text(payload.get("lotNo"))
        if not new_lot:
            raise ValidationError("Lot number cannot be empty")
        if new_lot != entry.lot_no:
            _ensure_unique_lot(s, new_lot, exclude_id=entry.id)
            changes["lot_no"] = {"old": entry.lot_no, "new": new_lot}
            entry.lot_no = new_lot

    if "companyId" in payload:
        company = _require_company(s, payload.get("companyId"))
        if company.id != entry.company_id:
            if entry.invoice_id is not None:
                raise ValidationError("Cannot move an invoiced entry to another company")
            changes["company_id"] = {"old": entry.company_id, "new": company.id}
            entry.company_id = company.id
            entry.company = company

    for key, (attr, parser) in _ENTRY_FIELDS.items():
        if key not in payload:
            continue
        new_value = parser(payload.get(key))
        if new_value != getattr(entry, attr):
            changes[attr] = {"old": getattr(entry, attr), "new": new_value}
            setattr(entry, attr, new_value)

    entry.updated_at = datetime.utcnow()
    entry.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="inward.edit",
        entity_type="InwardEntry",
        entity_id=str(entry.id),
        metadata={"lot_no": entry.lot_no, "changes": changes},
    )
    return entry


def delete_entry(s: "Session", entry: InwardEntry, user: "User") -> None:
    if entry.invoice_id is not None:
        invoice_no = entry.invoice.invoice_no if entry.invoice else entry.invoice_id
        raise ValidationError(f"Inward entry is billed on invoice {invoice_no}; remove it from the invoice first")
    record_event(
        s,
        actor=user,
        action="inward.delete",
        entity_type="InwardEntry",
        entity_id=str(entry.id),
        metadata={"lot_no": entry.lot_no, "manifest_no": entry.manifest_no},
    )
    s.delete(entry)


def update_entry_payment(s: "Session", entry: InwardEntry, payload: dict, user: "User") -> "Invoice":
    """Payments are tracked on invoices; record this one against the entry's invoice."""
    from app.cwms.modules.invoices.service import update_payment

    if entry.invoice is None:
        raise ValidationError("Inward entry is not linked to an invoice")
    return update_payment(s, entry.invoice, payload, user)


def inward_stats(s: "Session") -> dict[str, Any]:
    from app.cwms.modules.invoices.models import Invoice

    total_entries, total_quantity = s.query(
        func.count(InwardEntry.id), func.coalesce(func.sum(InwardEntry.quantity), 0)
    ).one()
    invoiced_entries = s.query(func.count(InwardEntry.id)).filter(InwardEntry.invoice_id.isnot(None)).scalar() or 0

    # Each invoice counted once, however many entries it bills.
    invoice_ids = s.query(InwardEntry.invoice_id).filter(InwardEntry.invoice_id.isnot(None)).distinct().subquery()
    invoiced, received = (
        s.query(func.coalesce(func.sum(Invoice.grand_total), 0), func.coalesce(func.sum(Invoice.payment_received), 0))
        .filter(Invoice.id.in_(invoice_ids.select()))
        .one()
    )
    return {
        "totalEntries": int(total_entries or 0),
        "totalQuantity": float(total_quantity or 0),
        "invoicedEntries": int(invoiced_entries),
        "uninvoicedEntries": int((total_entries or 0) - invoiced_entries),
        "totalInvoiced": float(money(Decimal(str(invoiced)))),
        "totalReceived": float(money(Decimal(str(received)))),
    }


# ---------- Inward materials ----------
def validate_material_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial and payload.get("inwardEntryId") in (None, ""):
        errors.append("Inward entry is required.")
    for key, label in (("quantity", "Quantity"), ("rate", "Rate"), ("amount", "Amount")):
        if key in payload:
            try:
                value = parse_decimal(payload.get(key))
                if value is not None and value < 0:
                    errors.append(f"{label} cannot be negative.")
            except ValueError:
                errors.append(f"{label} must be a number.")
    return errors


def get_material(s: "Session", material_id: int) -> InwardMaterial:
    material = s.get(InwardMaterial, material_id)
    if not material:
        raise NotFoundError("Inward material")
    return material


def query_materials(s: "Session", *, inward_entry_id: int | None = None, search: str = "") -> "Query":
    q = s.query(InwardMaterial)
    if inward_entry_id:
        q = q.filter(InwardMaterial.inward_entry_id == inward_entry_id)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter((InwardMaterial.transporter_name.ilike(like)) | (InwardMaterial.vehicle_no.ilike(like)))
    return q


def _line_amount(quantity: Decimal | None, rate: Decimal | None, amount: Decimal | None) -> Decimal | None:
    if amount is not None:
        return money(amount)
    if quantity is not None and rate is not None:
        return money(quantity * rate)
    return None


def create_material(s: "Session", payload: dict, user: "User") -> InwardMaterial:
    raise_if_errors(validate_material_payload(payload))
    entry_id = parse_int(payload.get("inwardEntryId"))
    if entry_id is None:
        raise ValidationError("Inward entry id must be numeric")
    entry = get_entry(s, entry_id)

    quantity = parse_decimal(payload.get("quantity"))
    rate = parse_decimal(payload.get("rate"))
    now = datetime.utcnow()
    material = InwardMaterial(
        inward_entry_id=entry.id,
        transporter_name=optional_text(payload.get("transporterName")),
        vehicle_no=optional_text(payload.get("vehicleNo")) or entry.vehicle_no,
        quantity=quantity,
        rate=rate,
        amount=_line_amount(quantity, rate, parse_decimal(payload.get("amount"))),
        remarks=optional_text(payload.get("remarks")),
        created_at=now,
        updated_at=now,
    )
    s.add(material)
    s.flush()

    record_event(
        s,
        actor=user,
        action="inward_material.create",
        entity_type="InwardMaterial",
        entity_id=str(material.id),
        metadata={"inward_entry_id": entry.id, "lot_no": entry.lot_no},
    )
    return material


def update_material(s: "Session", material: InwardMaterial, payload: dict, user: "User") -> InwardMaterial:
    raise_if_errors(validate_material_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    for key, attr, parser in (
        ("transporterName", "transporter_name", optional_text),
        ("vehicleNo", "vehicle_no", optional_text),
        ("quantity", "quantity", parse_decimal),
        ("rate", "rate", parse_decimal),
        ("remarks", "remarks", optional_text),
    ):
        if key in payload:
            new_value = parser(payload.get(key))
            if new_value != getattr(material, attr):
                changes[attr] = {"old": getattr(material, attr), "new": new_value}
                setattr(material, attr, new_value)

    if "amount" in payload:
        new_amount = _line_amount(material.quantity, material.rate, parse_decimal(payload.get("amount")))
    elif "quantity" in payload or "rate" in payload:
        new_amount = _line_amount(material.quantity, material.rate, None)
    else:
        new_amount = material.amount
    if new_amount != material.amount:
        changes["amount"] = {"old": material.amount, "new": new_amount}
        material.amount = new_amount

    material.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="inward_material.edit",
        entity_type="InwardMaterial",
        entity_id=str(material.id),
        metadata={"inward_entry_id": material.inward_entry_id, "changes": changes},
    )
    return material


def delete_material(s: "Session", material: InwardMaterial, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="inward_material.delete",
        entity_type="InwardMaterial",
        entity_id=str(material.id),
        metadata={"inward_entry_id": material.inward_entry_id},
    )
    s.delete(material)

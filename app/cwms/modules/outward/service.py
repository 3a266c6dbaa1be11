"""
Outward service layer.
Outward entries record waste dispatched to cement plants for co-processing.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.modules.outward.models import OutwardEntry
from app.cwms.utils import money, normalize_text, optional_text, parse_date, parse_decimal, parse_int

if TYPE_CHECKING:
    from decimal import Decimal

    from sqlalchemy.orm import Query, Session
    from app.cwms.models import User
    from app.cwms.modules.transporters.models import Transporter


def validate_entry_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate outward entry creation/update payload. Returns list of errors."""
    errors: list[str] = []
    required = (("date", "Date"), ("wasteName", "Waste name"), ("quantity", "Quantity"), ("unit", "Unit"))
    for key, label in required:
        if (not partial or key in payload) and payload.get(key) in (None, ""):
            errors.append(f"{label} is required.")

    if payload.get("date") not in (None, ""):
        try:
            parse_date(payload.get("date"))
        except ValueError:
            errors.append("Date must be YYYY-MM-DD.")
    if payload.get("quantity") not in (None, ""):
        try:
            qty = parse_decimal(payload.get("quantity"))
            if qty is not None and qty <= 0:
                errors.append("Quantity must be greater than zero.")
        except ValueError:
            errors.append("Quantity must be a number.")
    for key, label in (("rate", "Rate"), ("amount", "Amount")):
        if key in payload:
            try:
                value = parse_decimal(payload.get(key))
                if value is not None and value < 0:
                    errors.append(f"{label} cannot be negative.")
            except ValueError:
                errors.append(f"{label} must be a number.")
    if payload.get("transporterId") not in (None, "") and parse_int(payload.get("transporterId")) is None:
        errors.append("Transporter id must be numeric.")
    return errors


def get_entry(s: "Session", entry_id: int) -> OutwardEntry:
    entry = s.get(OutwardEntry, entry_id)
    if not entry:
        raise NotFoundError("Outward entry")
    return entry


def query_entries(
    s: "Session",
    *,
    search: str = "",
    transporter_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    month: str = "",
) -> "Query":
    q = s.query(OutwardEntry)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter(
            (OutwardEntry.manifest_no.ilike(like))
            | (OutwardEntry.cement_company.ilike(like))
            | (OutwardEntry.waste_name.ilike(like))
            | (OutwardEntry.vehicle_no.ilike(like))
        )
    if transporter_id:
        q = q.filter(OutwardEntry.transporter_id == transporter_id)
    if start_date:
        q = q.filter(OutwardEntry.date >= start_date)
    if end_date:
        q = q.filter(OutwardEntry.date <= end_date)
    month = normalize_text(month)
    if month:
        q = q.filter(OutwardEntry.month == month)
    return q


def next_sr_no(s: "Session") -> int:
    last = s.query(func.max(OutwardEntry.sr_no)).scalar()
    return int(last) + 1 if last else 1


def _resolve_transporter(s: "Session", raw: Any) -> "Transporter | None":
    from app.cwms.modules.transporters.service import get_transporter

    if raw in (None, ""):
        return None
    return get_transporter(s, int(raw))


def _amount(quantity: "Decimal | None", rate: "Decimal | None", amount: "Decimal | None") -> "Decimal | None":
    if amount is not None:
        return money(amount)
    if quantity is not None and rate is not None:
        return money(quantity * rate)
    return None


def create_entry(s: "Session", payload: dict, user: "User") -> OutwardEntry:
    raise_if_errors(validate_entry_payload(payload))
    transporter = _resolve_transporter(s, payload.get("transporterId"))
    transporter_id = transporter.id if transporter else None
    quantity = parse_decimal(payload.get("quantity"))
    rate = parse_decimal(payload.get("rate"))

    now = datetime.utcnow()
    entry = OutwardEntry(
        sr_no=parse_int(payload.get("srNo")) or next_sr_no(s),
        date=parse_date(payload.get("date")),
        month=optional_text(payload.get("month")),
        cement_company=optional_text(payload.get("cementCompany")),
        location=optional_text(payload.get("location")),
        manifest_no=optional_text(payload.get("manifestNo")),
        transporter_id=transporter_id,
        transporter=transporter,
        vehicle_no=optional_text(payload.get("vehicleNo")),
        waste_name=normalize_text(payload.get("wasteName")),
        quantity=quantity,
        unit=normalize_text(payload.get("unit")),
        packing=optional_text(payload.get("packing")),
        rate=rate,
        amount=_amount(quantity, rate, parse_decimal(payload.get("amount"))),
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
        action="outward.create",
        entity_type="OutwardEntry",
        entity_id=str(entry.id),
        metadata={"sr_no": entry.sr_no, "manifest_no": entry.manifest_no, "transporter_id": transporter_id},
    )
    return entry


_ENTRY_FIELDS = {
    "date": ("date", parse_date),
    "month": ("month", optional_text),
    "cementCompany": ("cement_company", optional_text),
    "location": ("location", optional_text),
    "manifestNo": ("manifest_no", optional_text),
    "vehicleNo": ("vehicle_no", optional_text),
    "wasteName": ("waste_name", normalize_text),
    "quantity": ("quantity", parse_decimal),
    "unit": ("unit", normalize_text),
    "packing": ("packing", optional_text),
    "rate": ("rate", parse_decimal),
    "srNo": ("sr_no", parse_int),
}


def update_entry(s: "Session", entry: OutwardEntry, payload: dict, user: "User") -> OutwardEntry:
    raise_if_errors(validate_entry_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    if "transporterId" in payload:
        transporter = _resolve_transporter(s, payload.get("transporterId"))
        new_tid = transporter.id if transporter else None
        if new_tid != entry.transporter_id:
            changes["transporter_id"] = {"old": entry.transporter_id, "new": new_tid}
            entry.transporter_id = new_tid
            entry.transporter = transporter

    for key, (attr, parser) in _ENTRY_FIELDS.items():
        if key not in payload:
            continue
        new_value = parser(payload.get(key))
        if new_value != getattr(entry, attr):
            changes[attr] = {"old": getattr(entry, attr), "new": new_value}
            setattr(entry, attr, new_value)

    if "amount" in payload:
        new_amount = _amount(entry.quantity, entry.rate, parse_decimal(payload.get("amount")))
    elif "quantity" in payload or "rate" in payload:
        new_amount = _amount(entry.quantity, entry.rate, None)
    else:
        new_amount = entry.amount
    if new_amount != entry.amount:
        changes["amount"] = {"old": entry.amount, "new": new_amount}
        entry.amount = new_amount

    entry.updated_at = datetime.utcnow()
    entry.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="outward.edit",
        entity_type="OutwardEntry",
        entity_id=str(entry.id),
        metadata={"sr_no": entry.sr_no, "changes": changes},
    )
    return entry


def delete_entry(s: "Session", entry: OutwardEntry, user: "User") -> None:
    if entry.invoice_id is not None:
        invoice_no = entry.invoice.invoice_no if entry.invoice else entry.invoice_id
        raise ValidationError(f"Outward entry is billed on invoice {invoice_no}; remove it from the invoice first")
    record_event(
        s,
        actor=user,
        action="outward.delete",
        entity_type="OutwardEntry",
        entity_id=str(entry.id),
        metadata={"sr_no": entry.sr_no, "manifest_no": entry.manifest_no},
    )
    s.delete(entry)


def outward_stats(s: "Session") -> dict[str, Any]:
    total_entries, total_quantity, total_amount = s.query(
        func.count(OutwardEntry.id),
        func.coalesce(func.sum(OutwardEntry.quantity), 0),
        func.coalesce(func.sum(OutwardEntry.amount), 0),
    ).one()
    invoiced = s.query(func.count(OutwardEntry.id)).filter(OutwardEntry.invoice_id.isnot(None)).scalar() or 0
    by_destination = (
        s.query(OutwardEntry.cement_company, func.count(OutwardEntry.id), func.coalesce(func.sum(OutwardEntry.quantity), 0))
        .group_by(OutwardEntry.cement_company)
        .order_by(OutwardEntry.cement_company)
        .all()
    )
    return {
        "totalEntries": int(total_entries or 0),
        "totalQuantity": float(total_quantity or 0),
        "totalAmount": float(money(total_amount)),
        "invoicedEntries": int(invoiced),
        "uninvoicedEntries": int((total_entries or 0) - invoiced),
        "byCementCompany": [
            {"cementCompany": name, "count": int(count), "quantity": float(qty or 0)} for name, count, qty in by_destination
        ],
    }

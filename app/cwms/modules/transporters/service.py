from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.modules.companies.service import EMAIL_RE, GSTIN_RE, normalize_gst
from app.cwms.modules.transporters.models import Transporter
from app.cwms.utils import normalize_text, optional_text

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.cwms.models import User


def validate_transporter_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate transporter creation/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial or "name" in payload:
        if not normalize_text(payload.get("name")):
            errors.append("Transporter name is required.")
    gst = normalize_gst(payload.get("gstNumber"))
    if gst and not GSTIN_RE.fullmatch(gst):
        errors.append("GST number must be a valid 15-character GSTIN.")
    email = normalize_text(payload.get("email"))
    if email and not EMAIL_RE.fullmatch(email):
        errors.append("Email address is invalid.")
    if "isActive" in payload and not isinstance(payload.get("isActive"), bool):
        errors.append("isActive must be true or false.")
    return errors


def get_transporter(s: "Session", transporter_id: int) -> Transporter:
    transporter = s.get(Transporter, transporter_id)
    if not transporter:
        raise NotFoundError("Transporter")
    return transporter


def _ensure_unique_name(s: "Session", name: str, exclude_id: int | None = None) -> None:
    q = s.query(Transporter).filter(func.lower(Transporter.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Transporter.id != exclude_id)
    if q.first() is not None:
        raise ValidationError("Transporter with this name already exists")


def query_transporters(s: "Session", *, search: str = "", active: str = "") -> "Query":
    q = s.query(Transporter)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter(
            (Transporter.name.ilike(like))
            | (Transporter.transporter_code.ilike(like))
            | (Transporter.gst_number.ilike(like))
            | (Transporter.mobile.ilike(like))
        )
    active = normalize_text(active).lower()
    if active in ("true", "1"):
        q = q.filter(Transporter.is_active.is_(True))
    elif active in ("false", "0"):
        q = q.filter(Transporter.is_active.is_(False))
    return q


def create_transporter(s: "Session", payload: dict, user: "User") -> Transporter:
    raise_if_errors(validate_transporter_payload(payload))
    name = normalize_text(payload.get("name"))
    _ensure_unique_name(s, name)

    now = datetime.utcnow()
    transporter = Transporter(
        name=name,
        transporter_code=optional_text(payload.get("transporterCode")),
        gst_number=normalize_gst(payload.get("gstNumber")),
        contact_person=optional_text(payload.get("contactPerson")),
        mobile=optional_text(payload.get("mobile")),
        email=optional_text(payload.get("email")),
        address=optional_text(payload.get("address")),
        is_active=payload.get("isActive", True),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(transporter)
    s.flush()

    record_event(
        s,
        actor=user,
        action="transporter.create",
        entity_type="Transporter",
        entity_id=str(transporter.id),
        metadata={"name": transporter.name},
    )
    return transporter


_TEXT_FIELDS = {
    "transporterCode": "transporter_code",
    "contactPerson": "contact_person",
    "mobile": "mobile",
    "email": "email",
    "address": "address",
}


def update_transporter(s: "Session", transporter: Transporter, payload: dict, user: "User") -> Transporter:
    raise_if_errors(validate_transporter_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    if "name" in payload:
        new_name = normalize_text(payload.get("name"))
        if new_name != transporter.name:
            _ensure_unique_name(s, new_name, exclude_id=transporter.id)
            changes["name"] = {"old": transporter.name, "new": new_name}
            transporter.name = new_name

    if "gstNumber" in payload:
        new_gst = normalize_gst(payload.get("gstNumber"))
        if new_gst != transporter.gst_number:
            changes["gst_number"] = {"old": transporter.gst_number, "new": new_gst}
            transporter.gst_number = new_gst

    for key, attr in _TEXT_FIELDS.items():
        if key in payload:
            new_value = optional_text(payload.get(key))
            if new_value != getattr(transporter, attr):
                changes[attr] = {"old": getattr(transporter, attr), "new": new_value}
                setattr(transporter, attr, new_value)

    if "isActive" in payload and payload["isActive"] != transporter.is_active:
        changes["is_active"] = {"old": transporter.is_active, "new": payload["isActive"]}
        transporter.is_active = payload["isActive"]

    transporter.updated_at = datetime.utcnow()
    transporter.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="transporter.edit",
        entity_type="Transporter",
        entity_id=str(transporter.id),
        metadata={"name": transporter.name, "changes": changes},
    )
    return transporter


def delete_transporter(s: "Session", transporter: Transporter, user: "User") -> None:
    from app.cwms.modules.invoices.models import Invoice
    from app.cwms.modules.outward.models import OutwardEntry

    outward = s.query(func.count(OutwardEntry.id)).filter(OutwardEntry.transporter_id == transporter.id).scalar() or 0
    invoices = s.query(func.count(Invoice.id)).filter(Invoice.transporter_id == transporter.id).scalar() or 0
    if outward or invoices:
        raise ValidationError(
            "Transporter has outward entries or invoices and cannot be deleted",
            details=[f"{outward} outward entries", f"{invoices} invoices"],
        )
    record_event(
        s,
        actor=user,
        action="transporter.delete",
        entity_type="Transporter",
        entity_id=str(transporter.id),
        metadata={"name": transporter.name},
    )
    s.delete(transporter)

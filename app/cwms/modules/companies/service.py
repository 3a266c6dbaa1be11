from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.modules.companies.models import Company, CompanyMaterial
from app.cwms.utils import money, normalize_text, optional_text, parse_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Query, Session
    from app.cwms.models import User

logger = logging.getLogger(__name__)

# 2-digit state code + PAN + entity digit + "Z" + checksum
GSTIN_RE = re.compile(r"^\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_gst(value: Any) -> str | None:
    v = normalize_text(value).upper().replace(" ", "")
    return v or None


def validate_company_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate company creation/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial or "name" in payload:
        if not normalize_text(payload.get("name")):
            errors.append("Company name is required.")
    gst = normalize_gst(payload.get("gstNumber"))
    if gst and not GSTIN_RE.fullmatch(gst):
        errors.append("GST number must be a valid 15-character GSTIN.")
    email = normalize_text(payload.get("email"))
    if email and not EMAIL_RE.fullmatch(email):
        errors.append("Email address is invalid.")
    materials = payload.get("materials")
    if materials is not None:
        if not isinstance(materials, list):
            errors.append("Materials must be a list.")
        else:
            for i, m in enumerate(materials, start=1):
                if not isinstance(m, dict):
                    errors.append(f"Material #{i} must be an object.")
                    continue
                errors.extend(f"Material #{i}: {e}" for e in validate_material_payload(m))
    return errors


def validate_material_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial or "materialName" in payload:
        if not normalize_text(payload.get("materialName")):
            errors.append("Material name is required.")
    if "rate" in payload:
        try:
            rate = parse_decimal(payload.get("rate"))
            if rate is not None and rate < 0:
                errors.append("Rate cannot be negative.")
        except ValueError:
            errors.append("Rate must be a number.")
    return errors


def get_company(s: "Session", company_id: int) -> Company:
    company = s.get(Company, company_id)
    if not company:
        raise NotFoundError("Company")
    return company


def _ensure_unique_name(s: "Session", name: str, exclude_id: int | None = None) -> None:
    q = s.query(Company).filter(func.lower(Company.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Company.id != exclude_id)
    if q.first() is not None:
        raise ValidationError("Company with this name already exists")


def query_companies(s: "Session", *, search: str = "") -> "Query":
    q = s.query(Company)
    search = normalize_text(search)
    if search:
        like = f"%{search}%"
        q = q.filter(
            (Company.name.ilike(like))
            | (Company.gst_number.ilike(like))
            | (Company.address.ilike(like))
        )
    return q


def related_counts(s: "Session", company_ids: list[int]) -> dict[int, dict[str, int]]:
    """Inward entry / invoice counts per company, for list views."""
    from app.cwms.modules.inward.models import InwardEntry
    from app.cwms.modules.invoices.models import Invoice

    counts: dict[int, dict[str, int]] = {cid: {"inwardEntries": 0, "invoices": 0} for cid in company_ids}
    if not company_ids:
        return counts
    for cid, cnt in (
        s.query(InwardEntry.company_id, func.count(InwardEntry.id))
        .filter(InwardEntry.company_id.in_(company_ids))
        .group_by(InwardEntry.company_id)
        .all()
    ):
        counts[int(cid)]["inwardEntries"] = int(cnt or 0)
    for cid, cnt in (
        s.query(Invoice.company_id, func.count(Invoice.id))
        .filter(Invoice.company_id.in_(company_ids))
        .group_by(Invoice.company_id)
        .all()
    ):
        counts[int(cid)]["invoices"] = int(cnt or 0)
    return counts


def _build_material(payload: dict) -> CompanyMaterial:
    now = datetime.utcnow()
    return CompanyMaterial(
        material_name=normalize_text(payload.get("materialName")),
        rate=parse_decimal(payload.get("rate")),
        unit=optional_text(payload.get("unit")),
        description=optional_text(payload.get("description")),
        created_at=now,
        updated_at=now,
    )


def create_company(s: "Session", payload: dict, user: "User") -> Company:
    """Create a new company, optionally with an initial price list."""
    raise_if_errors(validate_company_payload(payload))
    name = normalize_text(payload.get("name"))
    _ensure_unique_name(s, name)

    now = datetime.utcnow()
    company = Company(
        name=name,
        gst_number=normalize_gst(payload.get("gstNumber")),
        address=optional_text(payload.get("address")),
        contact_person=optional_text(payload.get("contactPerson")),
        phone=optional_text(payload.get("phone")),
        email=optional_text(payload.get("email")),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    seen: set[str] = set()
    for m in payload.get("materials") or []:
        material = _build_material(m)
        key = material.material_name.lower()
        if key in seen:
            raise ValidationError(f"Material '{material.material_name}' is listed twice")
        seen.add(key)
        company.materials.append(material)

    s.add(company)
    s.flush()

    record_event(
        s,
        actor=user,
        action="company.create",
        entity_type="Company",
        entity_id=str(company.id),
        metadata={"name": company.name, "materials": len(company.materials)},
    )
    return company


_COMPANY_FIELDS = {
    "address": "address",
    "contactPerson": "contact_person",
    "phone": "phone",
    "email": "email",
}


def update_company(s: "Session", company: Company, payload: dict, user: "User") -> Company:
    """Update an existing company. Only keys present in the payload change."""
    raise_if_errors(validate_company_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    if "name" in payload:
        new_name = normalize_text(payload.get("name"))
        if new_name != company.name:
            _ensure_unique_name(s, new_name, exclude_id=company.id)
            changes["name"] = {"old": company.name, "new": new_name}
            company.name = new_name

    if "gstNumber" in payload:
        new_gst = normalize_gst(payload.get("gstNumber"))
        if new_gst != company.gst_number:
            changes["gst_number"] = {"old": company.gst_number, "new": new_gst}
            company.gst_number = new_gst

    for key, attr in _COMPANY_FIELDS.items():
        if key not in payload:
            continue
        new_value = optional_text(payload.get(key))
        old_value = getattr(company, attr)
        if new_value != old_value:
            changes[attr] = {"old": old_value, "new": new_value}
            setattr(company, attr, new_value)

    company.updated_at = datetime.utcnow()
    company.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="company.edit",
        entity_type="Company",
        entity_id=str(company.id),
        metadata={"name": company.name, "changes": changes},
    )
    return company


def delete_company(s: "Session", company: Company, user: "User") -> None:
    """Delete a company. Refused while shipments or invoices still reference it."""
    counts = related_counts(s, [company.id])[company.id]
    if counts["inwardEntries"] or counts["invoices"]:
        raise ValidationError(
            "Company has inward entries or invoices and cannot be deleted",
            details=[f"{counts['inwardEntries']} inward entries", f"{counts['invoices']} invoices"],
        )
    record_event(
        s,
        actor=user,
        action="company.delete",
        entity_type="Company",
        entity_id=str(company.id),
        metadata={"name": company.name},
    )
    s.delete(company)


# ---------- Materials (price list) ----------
def get_material(s: "Session", company: Company, material_id: int) -> CompanyMaterial:
    material = s.get(CompanyMaterial, material_id)
    if not material or material.company_id != company.id:
        raise NotFoundError("Material")
    return material


def _ensure_unique_material(company: Company, name: str, exclude_id: int | None = None) -> None:
    for m in company.materials:
        if m.id != exclude_id and m.material_name.lower() == name.lower():
            raise ValidationError("Material already exists for this company")


def add_material(s: "Session", company: Company, payload: dict, user: "User") -> CompanyMaterial:
    raise_if_errors(validate_material_payload(payload))
    material = _build_material(payload)
    _ensure_unique_material(company, material.material_name)
    company.materials.append(material)
    s.flush()

    record_event(
        s,
        actor=user,
        action="company.material_add",
        entity_type="CompanyMaterial",
        entity_id=str(material.id),
        metadata={"company_id": company.id, "material_name": material.material_name, "rate": material.rate},
    )
    return material


def update_material(s: "Session", company: Company, material: CompanyMaterial, payload: dict, user: "User") -> CompanyMaterial:
    raise_if_errors(validate_material_payload(payload, partial=True))
    changes: dict[str, dict[str, Any]] = {}

    if "materialName" in payload:
        new_name = normalize_text(payload.get("materialName"))
        if new_name != material.material_name:
            _ensure_unique_material(company, new_name, exclude_id=material.id)
            changes["material_name"] = {"old": material.material_name, "new": new_name}
            material.material_name = new_name
    if "rate" in payload:
        new_rate = parse_decimal(payload.get("rate"))
        if new_rate != material.rate:
            changes["rate"] = {"old": material.rate, "new": new_rate}
            material.rate = new_rate
    for key, attr in (("unit", "unit"), ("description", "description")):
        if key in payload:
            new_value = optional_text(payload.get(key))
            if new_value != getattr(material, attr):
                changes[attr] = {"old": getattr(material, attr), "new": new_value}
                setattr(material, attr, new_value)

    material.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="company.material_edit",
        entity_type="CompanyMaterial",
        entity_id=str(material.id),
        metadata={"company_id": company.id, "changes": changes},
    )
    return material


def remove_material(s: "Session", company: Company, material: CompanyMaterial, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="company.material_remove",
        entity_type="CompanyMaterial",
        entity_id=str(material.id),
        metadata={"company_id": company.id, "material_name": material.material_name},
    )
    company.materials.remove(material)
    s.flush()


# ---------- Statistics ----------
def company_stats(s: "Session", company: Company) -> dict[str, Any]:
    from app.cwms.modules.inward.models import InwardEntry
    from app.cwms.modules.invoices.models import Invoice

    entries, quantity, last_date = (
        s.query(func.count(InwardEntry.id), func.coalesce(func.sum(InwardEntry.quantity), 0), func.max(InwardEntry.date))
        .filter(InwardEntry.company_id == company.id)
        .one()
    )
    invoice_count, invoiced, received = (
        s.query(
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.sum(Invoice.payment_received), 0),
        )
        .filter(Invoice.company_id == company.id)
        .one()
    )
    uninvoiced = (
        s.query(func.count(InwardEntry.id))
        .filter(InwardEntry.company_id == company.id, InwardEntry.invoice_id.is_(None))
        .scalar()
    )
    invoiced_d = money(Decimal(str(invoiced)))
    received_d = money(Decimal(str(received)))
    return {
        "totalEntries": int(entries or 0),
        "totalQuantity": float(quantity or 0),
        "uninvoicedEntries": int(uninvoiced or 0),
        "invoiceCount": int(invoice_count or 0),
        "totalInvoiced": float(invoiced_d),
        "totalReceived": float(received_d),
        "pendingAmount": float(invoiced_d - received_d),
        "lastEntryDate": last_date.isoformat() if last_date else None,
        "materialCount": len(company.materials),
    }


def global_stats(s: "Session") -> dict[str, Any]:
    from app.cwms.modules.inward.models import InwardEntry

    total_companies = s.query(func.count(Company.id)).scalar() or 0
    total_materials = s.query(func.count(CompanyMaterial.id)).scalar() or 0
    with_entries = s.query(func.count(func.distinct(InwardEntry.company_id))).scalar() or 0
    with_gst = s.query(func.count(Company.id)).filter(Company.gst_number.isnot(None)).scalar() or 0
    return {
        "totalCompanies": int(total_companies),
        "totalMaterials": int(total_materials),
        "companiesWithEntries": int(with_entries),
        "companiesWithGst": int(with_gst),
    }

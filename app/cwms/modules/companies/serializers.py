from __future__ import annotations

from typing import Any

from app.cwms.modules.companies.models import Company, CompanyMaterial
from app.cwms.utils import iso, to_number


def serialize_material(m: CompanyMaterial, *, include_rate: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": m.id,
        "companyId": m.company_id,
        "materialName": m.material_name,
        "unit": m.unit,
        "description": m.description,
        "createdAt": iso(m.created_at),
        "updatedAt": iso(m.updated_at),
    }
    # Rates are commercial data: only users allowed to see them get the key at all.
    if include_rate:
        data["rate"] = to_number(m.rate)
    return data


def serialize_company(
    c: Company,
    *,
    include_rates: bool = True,
    counts: dict[str, int] | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": c.id,
        "name": c.name,
        "gstNumber": c.gst_number,
        "address": c.address,
        "contactPerson": c.contact_person,
        "phone": c.phone,
        "email": c.email,
        "materials": [serialize_material(m, include_rate=include_rates) for m in c.materials],
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
    }
    if counts is not None:
        data["_count"] = counts
    return data


def company_ref(c: Company | None) -> dict[str, Any] | None:
    """Compact form embedded in entries and invoices."""
    if c is None:
        return None
    return {"id": c.id, "name": c.name, "gstNumber": c.gst_number, "address": c.address}

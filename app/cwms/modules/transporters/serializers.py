from __future__ import annotations

from typing import Any

from app.cwms.modules.transporters.models import Transporter
from app.cwms.utils import iso


def serialize_transporter(t: Transporter) -> dict[str, Any]:
    return {
        "id": t.id,
        "name": t.name,
        "transporterCode": t.transporter_code,
        "gstNumber": t.gst_number,
        "contactPerson": t.contact_person,
        "mobile": t.mobile,
        "email": t.email,
        "address": t.address,
        "isActive": t.is_active,
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }


def transporter_ref(t: Transporter | None) -> dict[str, Any] | None:
    if t is None:
        return None
    return {"id": t.id, "name": t.name, "gstNumber": t.gst_number, "address": t.address}

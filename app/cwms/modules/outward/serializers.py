from __future__ import annotations

from typing import Any

from app.cwms.modules.outward.models import OutwardEntry
from app.cwms.modules.transporters.serializers import transporter_ref
from app.cwms.utils import iso, to_number


def serialize_entry(e: OutwardEntry) -> dict[str, Any]:
    invoice = e.invoice
    return {
        "id": e.id,
        "srNo": e.sr_no,
        "date": iso(e.date),
        "month": e.month,
        "cementCompany": e.cement_company,
        "location": e.location,
        "manifestNo": e.manifest_no,
        "transporterId": e.transporter_id,
        "transporter": transporter_ref(e.transporter),
        "vehicleNo": e.vehicle_no,
        "wasteName": e.waste_name,
        "quantity": to_number(e.quantity),
        "unit": e.unit,
        "packing": e.packing,
        "rate": to_number(e.rate),
        "amount": to_number(e.amount),
        "invoiceId": e.invoice_id,
        "invoice": (
            {"id": invoice.id, "invoiceNo": invoice.invoice_no, "status": invoice.status} if invoice is not None else None
        ),
        "createdAt": iso(e.created_at),
        "updatedAt": iso(e.updated_at),
    }

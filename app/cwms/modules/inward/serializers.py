from __future__ import annotations

from typing import Any

from app.cwms.modules.companies.serializers import company_ref
from app.cwms.modules.inward.models import InwardEntry, InwardMaterial
from app.cwms.utils import iso, to_number


def serialize_inward_material(m: InwardMaterial) -> dict[str, Any]:
    return {
        "id": m.id,
        "inwardEntryId": m.inward_entry_id,
        "transporterName": m.transporter_name,
        "vehicleNo": m.vehicle_no,
        "quantity": to_number(m.quantity),
        "rate": to_number(m.rate),
        "amount": to_number(m.amount),
        "remarks": m.remarks,
        "createdAt": iso(m.created_at),
        "updatedAt": iso(m.updated_at),
    }


def serialize_entry(e: InwardEntry, *, include_materials: bool = True) -> dict[str, Any]:
    invoice = e.invoice
    data: dict[str, Any] = {
        "id": e.id,
        "srNo": e.sr_no,
        "date": iso(e.date),
        "lotNo": e.lot_no,
        "companyId": e.company_id,
        "company": company_ref(e.company),
        "manifestNo": e.manifest_no,
        "vehicleNo": e.vehicle_no,
        "wasteName": e.waste_name,
        "rate": to_number(e.rate),
        "category": e.category,
        "quantity": to_number(e.quantity),
        "unit": e.unit,
        "month": e.month,
        "invoiceId": e.invoice_id,
        "invoice": None,
        "createdAt": iso(e.created_at),
        "updatedAt": iso(e.updated_at),
    }
    if invoice is not None:
        data["invoice"] = {
            "id": invoice.id,
            "invoiceNo": invoice.invoice_no,
            "grandTotal": to_number(invoice.grand_total),
            "paymentReceived": to_number(invoice.payment_received),
            "paymentReceivedOn": iso(invoice.payment_received_on),
            "status": invoice.status,
        }
    if include_materials:
        data["inwardMaterials"] = [serialize_inward_material(m) for m in e.inward_materials]
    return data

from __future__ import annotations

from typing import Any

from app.cwms.modules.companies.serializers import company_ref
from app.cwms.modules.invoices.models import Invoice, InvoiceManifest, InvoiceMaterial
from app.cwms.modules.transporters.serializers import transporter_ref
from app.cwms.utils import iso, to_number


def serialize_invoice_material(m: InvoiceMaterial) -> dict[str, Any]:
    return {
        "id": m.id,
        "position": m.position,
        "materialName": m.material_name,
        "manifestNo": m.manifest_no,
        "quantity": to_number(m.quantity),
        "unit": m.unit,
        "rate": to_number(m.rate),
        "amount": to_number(m.amount),
        "description": m.description,
        "inwardEntryId": m.inward_entry_id,
    }


def serialize_invoice_manifest(m: InvoiceManifest) -> dict[str, Any]:
    return {"id": m.id, "manifestNo": m.manifest_no}


def serialize_invoice(inv: Invoice, *, include_entries: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": inv.id,
        "invoiceNo": inv.invoice_no,
        "type": inv.type,
        "date": iso(inv.date),
        "companyId": inv.company_id,
        "company": company_ref(inv.company),
        "transporterId": inv.transporter_id,
        "transporter": transporter_ref(inv.transporter),
        "customerName": inv.customer_name,
        "gstNo": inv.gst_no,
        "billedTo": inv.billed_to,
        "shippedTo": inv.shipped_to,
        "description": inv.description,
        "subtotal": to_number(inv.subtotal),
        "additionalCharges": to_number(inv.additional_charges),
        "additionalChargesDescription": inv.additional_charges_description,
        "cgstRate": to_number(inv.cgst_rate),
        "sgstRate": to_number(inv.sgst_rate),
        "cgst": to_number(inv.cgst),
        "sgst": to_number(inv.sgst),
        "grandTotal": to_number(inv.grand_total),
        "paymentReceived": to_number(inv.payment_received),
        "paymentReceivedOn": iso(inv.payment_received_on),
        "status": inv.status,
        "invoiceMaterials": [serialize_invoice_material(m) for m in inv.invoice_materials],
        "invoiceManifests": [serialize_invoice_manifest(m) for m in inv.invoice_manifests],
        "createdAt": iso(inv.created_at),
        "updatedAt": iso(inv.updated_at),
    }
    if include_entries:
        data["inwardEntries"] = [
            {
                "id": e.id,
                "lotNo": e.lot_no,
                "date": iso(e.date),
                "manifestNo": e.manifest_no,
                "wasteName": e.waste_name,
                "quantity": to_number(e.quantity),
                "unit": e.unit,
            }
            for e in inv.inward_entries
        ]
        data["outwardEntries"] = [
            {
                "id": e.id,
                "srNo": e.sr_no,
                "date": iso(e.date),
                "manifestNo": e.manifest_no,
                "cementCompany": e.cement_company,
                "wasteName": e.waste_name,
                "quantity": to_number(e.quantity),
                "unit": e.unit,
            }
            for e in inv.outward_entries
        ]
    return data

from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cwms.api import created, json_payload, ok, page_args, paginate, sort_args
from app.cwms.db import db_session
from app.cwms.errors import ValidationError
from app.cwms.models import User
from app.cwms.modules.inward.models import InwardEntry, InwardMaterial
from app.cwms.modules.inward.serializers import serialize_entry, serialize_inward_material
from app.cwms.modules.inward.service import (
    create_entry,
    create_material,
    delete_entry,
    delete_material,
    get_entry,
    get_material,
    inward_stats,
    query_entries,
    query_materials,
    update_entry,
    update_entry_payment,
    update_material,
)
from app.cwms.modules.invoices.serializers import serialize_invoice
from app.cwms.rbac import require_permission
from app.cwms.utils import parse_date, parse_int

bp = Blueprint("inward", __name__)
materials_bp = Blueprint("inward_materials", __name__)

SORTABLE = {
    "date": InwardEntry.date,
    "srNo": InwardEntry.sr_no,
    "lotNo": InwardEntry.lot_no,
    "createdAt": InwardEntry.created_at,
    "quantity": InwardEntry.quantity,
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _date_arg(name: str):
    try:
        return parse_date(request.args.get(name))
    except ValueError as e:
        raise ValidationError(f"{name} must be YYYY-MM-DD") from e


# ---------- Entries ----------
@bp.get("")
@require_permission("inward.view")
def inward_list():
    s = db_session()
    q = query_entries(
        s,
        search=request.args.get("search") or "",
        company_id=parse_int(request.args.get("companyId")),
        start_date=_date_arg("startDate"),
        end_date=_date_arg("endDate"),
        invoiced=request.args.get("invoiced") or "",
    )
    q = q.order_by(sort_args(SORTABLE, "date"), InwardEntry.id.desc())
    entries, pagination = paginate(q, page_args())
    return ok([serialize_entry(e) for e in entries], "Inward entries retrieved successfully", pagination=pagination)


@bp.get("/stats")
@require_permission("inward.view")
def inward_statistics():
    s = db_session()
    return ok({"stats": inward_stats(s)}, "Statistics retrieved successfully")


@bp.get("/<int:entry_id>")
@require_permission("inward.view")
def inward_detail(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    return ok({"entry": serialize_entry(entry)}, "Inward entry retrieved successfully")


@bp.post("")
@require_permission("inward.create")
def inward_create():
    s = db_session()
    entry = create_entry(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Inward entry created: %s (%s)", entry.lot_no, entry.id)
    return created({"entry": serialize_entry(entry)}, "Inward entry created successfully")


@bp.put("/<int:entry_id>")
@require_permission("inward.edit")
def inward_update(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    update_entry(s, entry, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Inward entry updated: %s (%s)", entry.lot_no, entry.id)
    return ok({"entry": serialize_entry(entry)}, "Inward entry updated successfully")


@bp.put("/<int:entry_id>/payment")
@require_permission("invoices.edit")
def inward_payment(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    invoice = update_entry_payment(s, entry, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Payment updated via inward entry %s on invoice %s", entry.id, invoice.invoice_no)
    return ok(
        {"entry": serialize_entry(entry), "invoice": serialize_invoice(invoice)},
        "Payment updated successfully",
    )


@bp.delete("/<int:entry_id>")
@require_permission("inward.delete")
def inward_delete(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    delete_entry(s, entry, _current_user())
    s.commit()
    current_app.logger.info("Inward entry deleted: %s", entry_id)
    return ok(message="Inward entry deleted successfully")


# ---------- Inward materials ----------
@materials_bp.get("")
@require_permission("inward.view")
def inward_materials_list():
    s = db_session()
    q = query_materials(
        s,
        inward_entry_id=parse_int(request.args.get("inwardEntryId")),
        search=request.args.get("search") or "",
    )
    q = q.order_by(InwardMaterial.created_at.desc(), InwardMaterial.id.desc())
    materials, pagination = paginate(q, page_args())
    return ok(
        [serialize_inward_material(m) for m in materials],
        "Inward materials retrieved successfully",
        pagination=pagination,
    )


@materials_bp.get("/<int:material_id>")
@require_permission("inward.view")
def inward_material_detail(material_id: int):
    s = db_session()
    material = get_material(s, material_id)
    return ok({"material": serialize_inward_material(material)}, "Inward material retrieved successfully")


@materials_bp.post("")
@require_permission("inward.edit")
def inward_material_create():
    s = db_session()
    material = create_material(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Inward material created: %s (entry %s)", material.id, material.inward_entry_id)
    return created({"material": serialize_inward_material(material)}, "Inward material created successfully")


@materials_bp.put("/<int:material_id>")
@require_permission("inward.edit")
def inward_material_update(material_id: int):
    s = db_session()
    material = get_material(s, material_id)
    update_material(s, material, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Inward material updated: %s", material.id)
    return ok({"material": serialize_inward_material(material)}, "Inward material updated successfully")


@materials_bp.delete("/<int:material_id>")
@require_permission("inward.edit")
def inward_material_delete(material_id: int):
    s = db_session()
    material = get_material(s, material_id)
    delete_material(s, material, _current_user())
    s.commit()
    current_app.logger.info("Inward material deleted: %s", material_id)
    return ok(message="Inward material deleted successfully")

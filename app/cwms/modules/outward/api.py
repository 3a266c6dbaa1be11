from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cwms.api import created, json_payload, ok, page_args, paginate, sort_args
from app.cwms.db import db_session
from app.cwms.errors import ValidationError
from app.cwms.models import User
from app.cwms.modules.outward.models import OutwardEntry
from app.cwms.modules.outward.serializers import serialize_entry
from app.cwms.modules.outward.service import (
    create_entry,
    delete_entry,
    get_entry,
    outward_stats,
    query_entries,
    update_entry,
)
from app.cwms.rbac import require_permission
from app.cwms.utils import parse_date, parse_int

bp = Blueprint("outward", __name__)

SORTABLE = {
    "date": OutwardEntry.date,
    "srNo": OutwardEntry.sr_no,
    "createdAt": OutwardEntry.created_at,
    "quantity": OutwardEntry.quantity,
    "cementCompany": OutwardEntry.cement_company,
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


@bp.get("")
@require_permission("outward.view")
def outward_list():
    s = db_session()
    q = query_entries(
        s,
        search=request.args.get("search") or "",
        transporter_id=parse_int(request.args.get("transporterId")),
        start_date=_date_arg("startDate"),
        end_date=_date_arg("endDate"),
        month=request.args.get("month") or "",
    )
    q = q.order_by(sort_args(SORTABLE, "date"), OutwardEntry.id.desc())
    entries, pagination = paginate(q, page_args())
    return ok([serialize_entry(e) for e in entries], "Outward entries retrieved successfully", pagination=pagination)


@bp.get("/stats")
@require_permission("outward.view")
def outward_statistics():
    s = db_session()
    return ok({"stats": outward_stats(s)}, "Statistics retrieved successfully")


@bp.get("/<int:entry_id>")
@require_permission("outward.view")
def outward_detail(entry_id: int):
    s = db_session()
    return ok({"entry": serialize_entry(get_entry(s, entry_id))}, "Outward entry retrieved successfully")


@bp.post("")
@require_permission("outward.create")
def outward_create():
    s = db_session()
    entry = create_entry(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Outward entry created: sr_no=%s (%s)", entry.sr_no, entry.id)
    return created({"entry": serialize_entry(entry)}, "Outward entry created successfully")


@bp.put("/<int:entry_id>")
@require_permission("outward.edit")
def outward_update(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    update_entry(s, entry, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Outward entry updated: %s", entry.id)
    return ok({"entry": serialize_entry(entry)}, "Outward entry updated successfully")


@bp.delete("/<int:entry_id>")
@require_permission("outward.delete")
def outward_delete(entry_id: int):
    s = db_session()
    entry = get_entry(s, entry_id)
    delete_entry(s, entry, _current_user())
    s.commit()
    current_app.logger.info("Outward entry deleted: %s", entry_id)
    return ok(message="Outward entry deleted successfully")

from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cwms.api import created, json_payload, ok, page_args, paginate, sort_args
from app.cwms.db import db_session
from app.cwms.models import User
from app.cwms.modules.transporters.models import Transporter
from app.cwms.modules.transporters.serializers import serialize_transporter
from app.cwms.modules.transporters.service import (
    create_transporter,
    delete_transporter,
    get_transporter,
    query_transporters,
    update_transporter,
)
from app.cwms.rbac import require_permission

bp = Blueprint("transporters", __name__)

SORTABLE = {
    "name": Transporter.name,
    "createdAt": Transporter.created_at,
    "transporterCode": Transporter.transporter_code,
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("")
@require_permission("transporters.view")
def transporters_list():
    s = db_session()
    q = query_transporters(s, search=request.args.get("search") or "", active=request.args.get("isActive") or "")
    q = q.order_by(sort_args(SORTABLE, "name", "asc"), Transporter.id.asc())
    transporters, pagination = paginate(q, page_args())
    return ok([serialize_transporter(t) for t in transporters], "Transporters retrieved successfully", pagination=pagination)


@bp.get("/<int:transporter_id>")
@require_permission("transporters.view")
def transporter_detail(transporter_id: int):
    s = db_session()
    transporter = get_transporter(s, transporter_id)
    return ok({"transporter": serialize_transporter(transporter)}, "Transporter retrieved successfully")


@bp.post("")
@require_permission("transporters.create")
def transporter_create():
    s = db_session()
    transporter = create_transporter(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Transporter created: %s (%s)", transporter.name, transporter.id)
    return created({"transporter": serialize_transporter(transporter)}, "Transporter created successfully")


@bp.put("/<int:transporter_id>")
@require_permission("transporters.edit")
def transporter_update(transporter_id: int):
    s = db_session()
    transporter = get_transporter(s, transporter_id)
    update_transporter(s, transporter, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Transporter updated: %s (%s)", transporter.name, transporter.id)
    return ok({"transporter": serialize_transporter(transporter)}, "Transporter updated successfully")


@bp.delete("/<int:transporter_id>")
@require_permission("transporters.delete")
def transporter_delete(transporter_id: int):
    s = db_session()
    transporter = get_transporter(s, transporter_id)
    delete_transporter(s, transporter, _current_user())
    s.commit()
    current_app.logger.info("Transporter deleted: %s", transporter_id)
    return ok(message="Transporter deleted successfully")

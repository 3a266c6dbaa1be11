from __future__ import annotations

from flask import Blueprint, request

from app.cwms.api import ok
from app.cwms.db import db_session
from app.cwms.modules.dashboard.service import (
    dashboard_stats,
    payment_status,
    recent_activity,
    revenue_chart,
    waste_flow,
)
from app.cwms.rbac import require_permission
from app.cwms.utils import parse_int

bp = Blueprint("dashboard", __name__)


def _months_arg(default: int = 6) -> int:
    return max(1, parse_int(request.args.get("months"), default) or default)


@bp.get("/stats")
@require_permission("dashboard.view")
def stats():
    s = db_session()
    return ok({"stats": dashboard_stats(s)}, "Dashboard statistics retrieved successfully")


@bp.get("/revenue")
@require_permission("dashboard.view")
def revenue():
    s = db_session()
    return ok({"revenue": revenue_chart(s, _months_arg())}, "Revenue data retrieved successfully")


@bp.get("/payment-status")
@require_permission("dashboard.view")
def payment_status_summary():
    s = db_session()
    return ok({"paymentStatus": payment_status(s)}, "Payment status retrieved successfully")


@bp.get("/recent-activity")
@require_permission("dashboard.view")
def recent():
    s = db_session()
    limit = min(max(1, parse_int(request.args.get("limit"), 10) or 10), 50)
    return ok({"activities": recent_activity(s, limit)}, "Recent activity retrieved successfully")


@bp.get("/waste-flow")
@require_permission("dashboard.view")
def flow():
    s = db_session()
    return ok({"wasteFlow": waste_flow(s, _months_arg())}, "Waste flow data retrieved successfully")

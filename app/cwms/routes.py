from datetime import datetime, timezone

from flask import Blueprint

from app.cwms.api import ok

bp = Blueprint("routes", __name__)

API_VERSION = "1.0.0"


@bp.get("/")
def index():
    return ok({"health": "/health", "api": "/api"}, "Chemical Waste Management Backend API")


@bp.get("/api")
def api_index():
    return ok({"version": API_VERSION}, "Chemical Waste Management API")


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return ok({"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}, "Server is running")


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, request, session
from werkzeug.security import check_password_hash

from app.cwms.api import json_payload, ok
from app.cwms.audit import record_event
from app.cwms.db import db_session
from app.cwms.errors import AppError, ValidationError
from app.cwms.models import User
from app.cwms.rbac import require_login
from app.cwms.security import ensure_csrf_token

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def primary_role(user: User) -> str | None:
    keys = [r.key for r in user.roles]
    if "admin" in keys:
        return "admin"
    return keys[0] if keys else None


def serialize_user(user: User) -> dict:
    permissions = sorted({p.key for r in user.roles for p in r.permissions})
    return {
        "id": user.id,
        "email": user.email,
        "fullName": user.full_name,
        "isActive": user.is_active,
        "role": primary_role(user),
        "roles": [r.key for r in user.roles],
        "permissions": permissions,
        "lastLoginAt": user.last_login_at.isoformat() if user.last_login_at else None,
    }


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login():
    payload = json_payload()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if not email or not password:
        raise ValidationError("Email and password are required")

    if _check_rate_limit(ip):
        raise AppError("Too many login attempts. Please wait 5 minutes.", status_code=429)

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.warning("Login failed for %s (ip=%s)", email, ip)
        raise AppError("Invalid credentials", status_code=401)

    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    _login_attempts[ip].clear()
    user.last_login_at = datetime.utcnow()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    current_app.logger.info("User logged in: %s (%s)", user.email, user.id)

    return ok({"user": serialize_user(user), "csrfToken": ensure_csrf_token()}, "Login successful")


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return ok(message="Logged out")


@bp.get("/me")
@require_login
def me():
    return ok({"user": serialize_user(g.current_user), "csrfToken": ensure_csrf_token()}, "Current user")

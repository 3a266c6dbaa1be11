from __future__ import annotations

import json
import re
from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, g, request
from werkzeug.security import generate_password_hash

from app.cwms.api import created, json_payload, ok, page_args, paginate
from app.cwms.audit import record_event
from app.cwms.auth import serialize_user
from app.cwms.db import db_session
from app.cwms.errors import NotFoundError, ValidationError, raise_if_errors
from app.cwms.models import AuditEvent, Role, User
from app.cwms.rbac import require_permission
from app.cwms.utils import iso, normalize_text, optional_text

bp = Blueprint("admin", __name__)

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 8


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError as e:
        raise ValidationError("Dates must be YYYY-MM-DD") from e


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _roles_from_keys(s, keys) -> list[Role]:
    if not isinstance(keys, list):
        raise ValidationError("roles must be a list of role keys")
    roles = s.query(Role).filter(Role.key.in_([normalize_text(k) for k in keys])).all() if keys else []
    unknown = sorted({normalize_text(k) for k in keys} - {r.key for r in roles})
    if unknown:
        raise ValidationError("Unknown role", details=unknown)
    return roles


def _password_errors(password: str) -> list[str]:
    if not password:
        return ["Password is required."]
    if len(password) < MIN_PASSWORD_LENGTH:
        return [f"Password must be at least {MIN_PASSWORD_LENGTH} characters."]
    return []


# ---------- Accounts ----------
@bp.get("/users")
@require_permission("users.manage")
def users_list():
    s = db_session()
    users = s.query(User).order_by(User.email.asc()).all()
    return ok([serialize_user(u) for u in users], "Users retrieved successfully")


@bp.get("/roles")
@require_permission("users.manage")
def roles_list():
    s = db_session()
    roles = s.query(Role).order_by(Role.name.asc()).all()
    data = [{"id": r.id, "key": r.key, "name": r.name, "permissions": sorted(p.key for p in r.permissions)} for r in roles]
    return ok(data, "Roles retrieved successfully")


@bp.post("/users")
@require_permission("users.manage")
def users_create():
    s = db_session()
    u = _current_user()
    payload = json_payload()

    email = normalize_text(payload.get("email")).lower()
    password = payload.get("password") or ""
    errors: list[str] = []
    if not email:
        errors.append("Email is required.")
    elif not EMAIL_RE.match(email):
        errors.append("Invalid email format.")
    elif s.query(User).filter(User.email == email).one_or_none():
        errors.append("An account with this email already exists.")
    errors.extend(_password_errors(password))
    raise_if_errors(errors)

    new_user = User(
        email=email,
        full_name=optional_text(payload.get("fullName")),
        password_hash=generate_password_hash(password),
        is_active=True,
    )
    new_user.roles = _roles_from_keys(s, payload.get("roles") or [])
    s.add(new_user)
    s.flush()

    record_event(
        s,
        actor=u,
        action="user.create",
        entity_type="User",
        entity_id=str(new_user.id),
        metadata={"email": email, "roles": [r.key for r in new_user.roles]},
    )
    s.commit()
    current_app.logger.info("User created: %s (%s)", new_user.email, new_user.id)
    return created({"user": serialize_user(new_user)}, "User created successfully")


@bp.put("/users/<int:user_id>")
@require_permission("users.manage")
def users_update(user_id: int):
    s = db_session()
    u = _current_user()
    user = s.get(User, user_id)
    if not user:
        raise NotFoundError("User")
    if user.id == u.id:
        raise ValidationError("You cannot modify your own account from this endpoint")

    payload = json_payload()
    before = {"is_active": user.is_active, "roles": [r.key for r in user.roles]}

    if "isActive" in payload:
        if not isinstance(payload["isActive"], bool):
            raise ValidationError("isActive must be true or false")
        user.is_active = payload["isActive"]
    if "fullName" in payload:
        user.full_name = optional_text(payload.get("fullName"))
    if "roles" in payload:
        user.roles = _roles_from_keys(s, payload.get("roles") or [])
    if payload.get("password"):
        raise_if_errors(_password_errors(payload["password"]))
        user.password_hash = generate_password_hash(payload["password"])

    after = {"is_active": user.is_active, "roles": [r.key for r in user.roles]}
    record_event(
        s,
        actor=u,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": after, "password_reset": bool(payload.get("password"))},
    )
    s.commit()
    current_app.logger.info("User updated: %s (%s)", user.email, user.id)
    return ok({"user": serialize_user(user)}, "User updated successfully")


# ---------- Audit trail ----------
@bp.get("/audit")
@require_permission("admin.view")
def audit_list():
    """
    Audit trail, newest first, with simple filters:
    - action (contains)
    - actorEmail (contains)
    - entityType / entityId (exact)
    - dateFrom / dateTo (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    action = normalize_text(request.args.get("action"))
    actor_email = normalize_text(request.args.get("actorEmail"))
    entity_type = normalize_text(request.args.get("entityType"))
    entity_id = normalize_text(request.args.get("entityId"))
    date_from = _parse_date(request.args.get("dateFrom") or "")
    date_to = _parse_date(request.args.get("dateTo") or "")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    q = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
    events, pagination = paginate(q, page_args())
    data = [
        {
            "id": ev.id,
            "createdAt": iso(ev.created_at),
            "requestId": ev.request_id,
            "actorUserId": ev.actor_user_id,
            "actorEmail": ev.actor_user_email,
            "action": ev.action,
            "entityType": ev.entity_type,
            "entityId": ev.entity_id,
            "reason": ev.reason,
            "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
            "clientIp": ev.client_ip,
        }
        for ev in events
    ]
    return ok(data, "Audit events retrieved successfully", pagination=pagination)

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from app.cwms.audit import record_event
from app.cwms.errors import NotFoundError, ValidationError
from app.cwms.modules.settings.models import Setting
from app.cwms.utils import normalize_text, optional_text, parse_decimal

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cwms.models import User

logger = logging.getLogger(__name__)

KEY_RE = re.compile(r"^[a-z][a-z0-9_.-]{0,127}$")

DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    "cgst_rate": ("9", "Default CGST rate (percent) for new invoices"),
    "sgst_rate": ("9", "Default SGST rate (percent) for new invoices"),
}


def _check_key(key: str) -> str:
    key = normalize_text(key)
    if not KEY_RE.fullmatch(key):
        raise ValidationError("Setting key must be lowercase letters, digits, '_', '.' or '-'")
    return key


def list_settings(s: "Session") -> list[Setting]:
    return s.query(Setting).order_by(Setting.key.asc()).all()


def get_setting(s: "Session", key: str) -> Setting:
    setting = s.get(Setting, key)
    if not setting:
        raise NotFoundError("Setting")
    return setting


def get_decimal_setting(s: "Session", key: str, default: Decimal | str) -> Decimal:
    """Numeric setting value; unset or unparsable values fall back to ``default``."""
    setting = s.get(Setting, key)
    if setting is not None and normalize_text(setting.value):
        try:
            value = parse_decimal(setting.value)
        except ValueError:
            logger.warning("Setting %s has non-numeric value %r; using default", key, setting.value)
        else:
            if value is not None:
                return value
    return Decimal(str(default))


def upsert_setting(s: "Session", key: str, payload: dict, user: "User") -> Setting:
    key = _check_key(key)
    if "value" not in payload:
        raise ValidationError("Setting value is required")
    value = payload.get("value")
    if isinstance(value, (dict, list)):
        raise ValidationError("Setting value must be a string or number")
    value = None if value is None else normalize_text(value)

    setting = s.get(Setting, key)
    old = setting.value if setting else None
    if setting is None:
        setting = Setting(key=key)
        s.add(setting)
        s.flush()
    setting.value = value
    if "description" in payload:
        setting.description = optional_text(payload.get("description"))
    setting.updated_at = datetime.utcnow()
    setting.updated_by_user_id = user.id

    record_event(
        s,
        actor=user,
        action="setting.update",
        entity_type="Setting",
        entity_id=key,
        metadata={"old": old, "new": value},
    )
    return setting


def bulk_upsert(s: "Session", payload: Any, user: "User") -> list[Setting]:
    """
    Accepts either ``{"settings": [{"key", "value", "description"?}, ...]}``
    or a flat ``{"key": "value", ...}`` mapping.
    """
    items: list[tuple[str, dict]] = []
    if isinstance(payload, dict) and isinstance(payload.get("settings"), list):
        for item in payload["settings"]:
            if not isinstance(item, dict) or not normalize_text(item.get("key")):
                raise ValidationError("Each setting needs a key")
            items.append((normalize_text(item.get("key")), item))
    elif isinstance(payload, dict) and payload:
        items = [(key, {"value": value}) for key, value in payload.items()]
    else:
        raise ValidationError("No settings provided")
    return [upsert_setting(s, key, item, user) for key, item in items]


def delete_setting(s: "Session", setting: Setting, user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="setting.delete",
        entity_type="Setting",
        entity_id=setting.key,
        metadata={"value": setting.value},
    )
    s.delete(setting)


def seed_defaults(s: "Session") -> int:
    """Insert missing default settings. Returns number created."""
    created = 0
    for key, (value, description) in DEFAULT_SETTINGS.items():
        if s.get(Setting, key) is None:
            s.add(Setting(key=key, value=value, description=description))
            created += 1
    return created

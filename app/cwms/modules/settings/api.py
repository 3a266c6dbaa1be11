from __future__ import annotations

from flask import Blueprint, current_app, g

from app.cwms.api import json_payload, ok
from app.cwms.db import db_session
from app.cwms.models import User
from app.cwms.modules.settings.models import Setting
from app.cwms.modules.settings.service import (
    bulk_upsert,
    delete_setting,
    get_setting,
    list_settings,
    upsert_setting,
)
from app.cwms.rbac import require_permission
from app.cwms.utils import iso

bp = Blueprint("settings", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def serialize_setting(setting: Setting) -> dict:
    return {
        "key": setting.key,
        "value": setting.value,
        "description": setting.description,
        "updatedAt": iso(setting.updated_at),
    }


@bp.get("")
@require_permission("settings.view")
def settings_list():
    s = db_session()
    return ok([serialize_setting(x) for x in list_settings(s)], "Settings retrieved successfully")


@bp.post("/bulk")
@require_permission("settings.edit")
def settings_bulk():
    s = db_session()
    settings = bulk_upsert(s, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Settings bulk-updated: %s", ", ".join(x.key for x in settings))
    return ok([serialize_setting(x) for x in settings], "Settings updated successfully")


@bp.get("/<key>")
@require_permission("settings.view")
def setting_detail(key: str):
    s = db_session()
    return ok({"setting": serialize_setting(get_setting(s, key))}, "Setting retrieved successfully")


@bp.put("/<key>")
@require_permission("settings.edit")
def setting_update(key: str):
    s = db_session()
    setting = upsert_setting(s, key, json_payload(), _current_user())
    s.commit()
    current_app.logger.info("Setting updated: %s", setting.key)
    return ok({"setting": serialize_setting(setting)}, "Setting updated successfully")


@bp.delete("/<key>")
@require_permission("settings.edit")
def setting_delete(key: str):
    s = db_session()
    setting = get_setting(s, key)
    delete_setting(s, setting, _current_user())
    s.commit()
    current_app.logger.info("Setting deleted: %s", key)
    return ok(message="Setting deleted successfully")

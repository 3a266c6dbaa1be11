"""
JSON envelope and query helpers shared by every module blueprint.

Every response follows ``{success, data, pagination?, message}``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from flask import current_app, jsonify, request

from app.cwms.errors import ValidationError
from app.cwms.utils import normalize_text, parse_int


def ok(data: Any = None, message: str = "OK", *, status: int = 200, pagination: dict | None = None):
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    body["message"] = message
    return jsonify(body), status


def created(data: Any, message: str):
    return ok(data, message, status=201)


def json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


@dataclass(frozen=True)
class PageArgs:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_args() -> PageArgs:
    default_limit = int(current_app.config.get("DEFAULT_PAGE_SIZE", 20))
    max_limit = int(current_app.config.get("MAX_PAGE_SIZE", 100))
    page = parse_int(request.args.get("page"), 1) or 1
    limit = parse_int(request.args.get("limit"), default_limit) or default_limit
    return PageArgs(page=max(1, page), limit=min(max(1, limit), max_limit))


def pagination_meta(page: int, limit: int, total: int) -> dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "hasNext": page * limit < total,
        "hasPrev": page > 1,
    }


def paginate(query, args: PageArgs) -> tuple[list[Any], dict[str, Any]]:
    """Apply offset/limit to an ORM query and build the pagination block."""
    total = query.order_by(None).count()
    items = query.offset(args.offset).limit(args.limit).all()
    return items, pagination_meta(args.page, args.limit, total)


def sort_args(allowed: dict[str, Any], default: str, default_order: str = "desc") -> Any:
    """
    Map ``sortBy``/``sortOrder`` query params to an ORDER BY clause.
    Unknown columns fall back to the default instead of erroring.
    """
    key = normalize_text(request.args.get("sortBy")) or default
    column = allowed.get(key, allowed[default])
    order = normalize_text(request.args.get("sortOrder")).lower() or default_order
    return column.asc() if order == "asc" else column.desc()

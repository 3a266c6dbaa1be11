from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.cwms.api import created, json_payload, ok, page_args, paginate, sort_args
from app.cwms.db import db_session
from app.cwms.models import User
from app.cwms.modules.companies.models import Company
from app.cwms.modules.companies.serializers import serialize_company, serialize_material
from app.cwms.modules.companies.service import (
    add_material,
    company_stats,
    create_company,
    delete_company,
    get_company,
    get_material,
    global_stats,
    query_companies,
    related_counts,
    remove_material,
    update_company,
    update_material,
)
from app.cwms.rbac import current_user_can, require_permission

bp = Blueprint("companies", __name__)

SORTABLE = {
    "name": Company.name,
    "createdAt": Company.created_at,
    "updatedAt": Company.updated_at,
    "gstNumber": Company.gst_number,
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _can_see_rates() -> bool:
    return current_user_can("rates.view")


# ---------- List ----------
@bp.get("")
@require_permission("companies.view")
def companies_list():
    s = db_session()
    args = page_args()
    q = query_companies(s, search=request.args.get("search") or "")
    q = q.order_by(sort_args(SORTABLE, "name", "asc"), Company.id.asc())
    companies, pagination = paginate(q, args)

    counts = related_counts(s, [c.id for c in companies])
    include_rates = _can_see_rates()
    data = [serialize_company(c, include_rates=include_rates, counts=counts.get(c.id)) for c in companies]
    return ok(data, "Companies retrieved successfully", pagination=pagination)


@bp.get("/stats/all")
@require_permission("companies.view")
def companies_global_stats():
    s = db_session()
    return ok({"stats": global_stats(s)}, "Global statistics retrieved successfully")


# ---------- Detail ----------
@bp.get("/<int:company_id>")
@require_permission("companies.view")
def company_detail(company_id: int):
    s = db_session()
    company = get_company(s, company_id)
    counts = related_counts(s, [company.id])[company.id]
    return ok(
        {"company": serialize_company(company, include_rates=_can_see_rates(), counts=counts)},
        "Company retrieved successfully",
    )


@bp.post("")
@require_permission("companies.create")
def company_create():
    s = db_session()
    u = _current_user()
    company = create_company(s, json_payload(), u)
    s.commit()
    current_app.logger.info("Company created: %s (%s)", company.name, company.id)
    return created({"company": serialize_company(company, include_rates=_can_see_rates())}, "Company created successfully")


@bp.put("/<int:company_id>")
@require_permission("companies.edit")
def company_update(company_id: int):
    s = db_session()
    u = _current_user()
    company = get_company(s, company_id)
    update_company(s, company, json_payload(), u)
    s.commit()
    current_app.logger.info("Company updated: %s (%s)", company.name, company.id)
    return ok({"company": serialize_company(company, include_rates=_can_see_rates())}, "Company updated successfully")


@bp.delete("/<int:company_id>")
@require_permission("companies.delete")
def company_delete(company_id: int):
    s = db_session()
    u = _current_user()
    company = get_company(s, company_id)
    delete_company(s, company, u)
    s.commit()
    current_app.logger.info("Company deleted: %s", company_id)
    return ok(message="Company deleted successfully")


# ---------- Materials ----------
@bp.get("/<int:company_id>/materials")
@require_permission("companies.view")
def company_materials(company_id: int):
    s = db_session()
    company = get_company(s, company_id)
    include_rate = _can_see_rates()
    materials = [serialize_material(m, include_rate=include_rate) for m in company.materials]
    return ok({"materials": materials}, "Materials retrieved successfully")


@bp.post("/<int:company_id>/materials")
@require_permission("companies.edit")
def company_material_add(company_id: int):
    s = db_session()
    u = _current_user()
    company = get_company(s, company_id)
    material = add_material(s, company, json_payload(), u)
    s.commit()
    current_app.logger.info("Material added to company %s: %s", company.id, material.material_name)
    return created({"material": serialize_material(material, include_rate=_can_see_rates())}, "Material added successfully")


@bp.put("/<int:company_id>/materials/<int:material_id>")
@require_permission("companies.edit")
def company_material_update(company_id: int, material_id: int):
    s = db_session()
    u = _current_user()
    company = get_company(s, company_id)
    material = get_material(s, company, material_id)
    update_material(s, company, material, json_payload(), u)
    s.commit()
    current_app.logger.info("Material updated: %s", material.id)
    return ok({"material": serialize_material(material, include_rate=_can_see_rates())}, "Material updated successfully")


@bp.delete("/<int:company_id>/materials/<int:material_id>")
@require_permission("companies.edit")
def company_material_remove(company_id: int, material_id: int):
    s = db_session()
    u = _current_user()
    company = get_company(s, company_id)
    material = get_material(s, company, material_id)
    remove_material(s, company, material, u)
    s.commit()
    current_app.logger.info("Material removed: %s", material_id)
    return ok(message="Material removed successfully")


@bp.get("/<int:company_id>/stats")
@require_permission("companies.view")
def company_statistics(company_id: int):
    s = db_session()
    company = get_company(s, company_id)
    return ok({"stats": company_stats(s, company)}, "Statistics retrieved successfully")

"""
Dashboard aggregates.

Monthly series are bucketed in Python so the same code runs on SQLite and Postgres.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.cwms.modules.companies.models import Company
from app.cwms.modules.invoices.models import Invoice
from app.cwms.modules.invoices.utils import STATUSES
from app.cwms.modules.inward.models import InwardEntry
from app.cwms.modules.outward.models import OutwardEntry
from app.cwms.modules.transporters.models import Transporter
from app.cwms.utils import iso, last_n_months, money, month_key, to_number

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

MAX_MONTHS = 36


def _first_day(key: str) -> date:
    year, month = key.split("-")
    return date(int(year), int(month), 1)


def dashboard_stats(s: "Session", today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    month_start = today.replace(day=1)

    inward_count, inward_qty = s.query(
        func.count(InwardEntry.id), func.coalesce(func.sum(InwardEntry.quantity), 0)
    ).one()
    outward_count, outward_qty = s.query(
        func.count(OutwardEntry.id), func.coalesce(func.sum(OutwardEntry.quantity), 0)
    ).one()
    invoice_count, invoiced, received = s.query(
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.grand_total), 0),
        func.coalesce(func.sum(Invoice.payment_received), 0),
    ).one()
    invoiced, received = money(invoiced), money(received)
    pending_invoices = s.query(func.count(Invoice.id)).filter(Invoice.status != "paid").scalar() or 0
    uninvoiced_inward = s.query(func.count(InwardEntry.id)).filter(InwardEntry.invoice_id.is_(None)).scalar() or 0

    return {
        "totalCompanies": s.query(func.count(Company.id)).scalar() or 0,
        "totalTransporters": s.query(func.count(Transporter.id)).scalar() or 0,
        "totalInwardEntries": int(inward_count or 0),
        "totalInwardQuantity": float(inward_qty or 0),
        "totalOutwardEntries": int(outward_count or 0),
        "totalOutwardQuantity": float(outward_qty or 0),
        "totalInvoices": int(invoice_count or 0),
        "totalInvoiced": float(invoiced),
        "totalReceived": float(received),
        "outstanding": float(max(invoiced - received, Decimal("0"))),
        "pendingInvoices": int(pending_invoices),
        "uninvoicedInwardEntries": int(uninvoiced_inward),
        "inwardThisMonth": s.query(func.count(InwardEntry.id)).filter(InwardEntry.date >= month_start).scalar() or 0,
        "outwardThisMonth": s.query(func.count(OutwardEntry.id)).filter(OutwardEntry.date >= month_start).scalar() or 0,
    }


def revenue_chart(s: "Session", months: int = 6, today: date | None = None) -> list[dict[str, Any]]:
    """Invoiced vs received per month (by invoice date) for the last ``months`` months."""
    keys = last_n_months(min(months, MAX_MONTHS), today)
    buckets = {k: {"invoiced": Decimal("0"), "received": Decimal("0"), "count": 0} for k in keys}
    rows = (
        s.query(Invoice.date, Invoice.grand_total, Invoice.payment_received)
        .filter(Invoice.date >= _first_day(keys[0]))
        .all()
    )
    for d, total, paid in rows:
        bucket = buckets.get(month_key(d))
        if bucket is None:
            continue
        bucket["invoiced"] += total or 0
        bucket["received"] += paid or 0
        bucket["count"] += 1
    return [
        {
            "month": k,
            "invoiced": float(money(b["invoiced"])),
            "received": float(money(b["received"])),
            "invoiceCount": b["count"],
        }
        for k, b in buckets.items()
    ]


def payment_status(s: "Session") -> dict[str, Any]:
    summary = {status: {"count": 0, "amount": 0.0, "received": 0.0} for status in STATUSES}
    rows = (
        s.query(
            Invoice.status,
            func.count(Invoice.id),
            func.coalesce(func.sum(Invoice.grand_total), 0),
            func.coalesce(func.sum(Invoice.payment_received), 0),
        )
        .group_by(Invoice.status)
        .all()
    )
    for status, count, amount, paid in rows:
        summary[status] = {"count": int(count), "amount": float(money(amount)), "received": float(money(paid))}
    return summary


def recent_activity(s: "Session", limit: int = 10) -> list[dict[str, Any]]:
    """Latest inward, outward and invoice records merged by creation time."""
    items: list[dict[str, Any]] = []
    for e in s.query(InwardEntry).order_by(InwardEntry.created_at.desc(), InwardEntry.id.desc()).limit(limit):
        items.append(
            {
                "type": "inward",
                "id": e.id,
                "title": f"Inward {e.lot_no}",
                "description": f"{e.waste_name} from {e.company.name if e.company else 'unknown company'}",
                "quantity": to_number(e.quantity),
                "unit": e.unit,
                "date": iso(e.date),
                "createdAt": e.created_at,
            }
        )
    for e in s.query(OutwardEntry).order_by(OutwardEntry.created_at.desc(), OutwardEntry.id.desc()).limit(limit):
        items.append(
            {
                "type": "outward",
                "id": e.id,
                "title": f"Outward #{e.sr_no}",
                "description": f"{e.waste_name} to {e.cement_company or 'unspecified destination'}",
                "quantity": to_number(e.quantity),
                "unit": e.unit,
                "date": iso(e.date),
                "createdAt": e.created_at,
            }
        )
    for inv in s.query(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit):
        items.append(
            {
                "type": "invoice",
                "id": inv.id,
                "title": f"Invoice {inv.invoice_no}",
                "description": f"{inv.type} invoice for {inv.customer_name or 'unknown party'}",
                "amount": to_number(inv.grand_total),
                "status": inv.status,
                "date": iso(inv.date),
                "createdAt": inv.created_at,
            }
        )
    items.sort(key=lambda item: item["createdAt"], reverse=True)
    items = items[:limit]
    for item in items:
        item["createdAt"] = iso(item["createdAt"])
    return items


def waste_flow(s: "Session", months: int = 6, today: date | None = None) -> list[dict[str, Any]]:
    """Monthly inward vs outward quantity."""
    keys = last_n_months(min(months, MAX_MONTHS), today)
    start = _first_day(keys[0])
    buckets = {k: {"inward": Decimal("0"), "outward": Decimal("0")} for k in keys}
    for d, qty in s.query(InwardEntry.date, InwardEntry.quantity).filter(InwardEntry.date >= start):
        if month_key(d) in buckets:
            buckets[month_key(d)]["inward"] += qty or 0
    for d, qty in s.query(OutwardEntry.date, OutwardEntry.quantity).filter(OutwardEntry.date >= start):
        if month_key(d) in buckets:
            buckets[month_key(d)]["outward"] += qty or 0
    return [{"month": k, "inward": float(b["inward"]), "outward": float(b["outward"])} for k, b in buckets.items()]

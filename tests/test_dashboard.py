from datetime import date

from app.cwms.db import session_scope
from app.cwms.modules.dashboard.service import revenue_chart, waste_flow
from app.cwms.utils import month_key


def test_dashboard_requires_permission(client, staff_client):
    assert client.get("/api/dashboard/stats").status_code == 401
    assert staff_client.get("/api/dashboard/stats").status_code == 403


def test_dashboard_stats(admin_client, make_company, make_transporter, make_inward):
    today = date.today().isoformat()
    company = make_company()
    make_transporter()
    entry = make_inward(company["id"], date=today, quantity=3)
    make_inward(company["id"], date="2020-01-01", quantity=1)
    admin_client.post(
        "/api/outward",
        json={"date": today, "wasteName": "Incinerable", "quantity": 2, "unit": "MT"},
    )
    admin_client.post(
        "/api/invoices",
        json={"type": "Inward", "companyId": company["id"], "inwardEntryIds": [entry["id"]], "paymentReceived": 1000},
    )

    r = admin_client.get("/api/dashboard/stats")
    assert r.status_code == 200
    stats = r.json["data"]["stats"]
    assert stats["totalCompanies"] == 1
    assert stats["totalTransporters"] == 1
    assert stats["totalInwardEntries"] == 2
    assert stats["totalInwardQuantity"] == 4
    assert stats["totalOutwardQuantity"] == 2
    assert stats["totalInvoiced"] == 3540
    assert stats["totalReceived"] == 1000
    assert stats["outstanding"] == 2540
    assert stats["pendingInvoices"] == 1
    assert stats["uninvoicedInwardEntries"] == 1
    assert stats["inwardThisMonth"] == 1
    assert stats["outwardThisMonth"] == 1


def test_revenue_and_payment_status(admin_client, make_company):
    company = make_company()
    admin_client.post(
        "/api/invoices",
        json={"type": "Inward", "companyId": company["id"], "subtotal": 1000, "cgstRate": 0, "sgstRate": 0, "paymentReceived": 250},
    )

    r = admin_client.get("/api/dashboard/revenue?months=3")
    revenue = r.json["data"]["revenue"]
    assert len(revenue) == 3
    assert revenue[-1] == {"month": month_key(date.today()), "invoiced": 1000.0, "received": 250.0, "invoiceCount": 1}
    assert revenue[0]["invoiced"] == 0

    r = admin_client.get("/api/dashboard/payment-status")
    status = r.json["data"]["paymentStatus"]
    assert status["partial"] == {"count": 1, "amount": 1000.0, "received": 250.0}
    assert status["paid"]["count"] == 0


def test_recent_activity_is_newest_first(admin_client, make_company, make_inward):
    company = make_company()
    make_inward(company["id"])
    admin_client.post("/api/outward", json={"date": "2026-01-12", "wasteName": "Incinerable", "quantity": 2, "unit": "MT"})
    admin_client.post("/api/invoices", json={"type": "Inward", "companyId": company["id"], "subtotal": 10})

    r = admin_client.get("/api/dashboard/recent-activity?limit=2")
    activities = r.json["data"]["activities"]
    assert [a["type"] for a in activities] == ["invoice", "outward"]
    assert activities[0]["title"].startswith("Invoice INV-")


def test_monthly_series_bucket_by_month(app, make_company, make_inward):
    company = make_company()
    make_inward(company["id"], date="2026-01-10", quantity=2)
    make_inward(company["id"], date="2026-03-02", quantity=5)
    make_inward(company["id"], date="2025-06-30", quantity=99)

    with session_scope(app) as s:
        flow = waste_flow(s, 3, today=date(2026, 3, 15))
        revenue = revenue_chart(s, 100, today=date(2026, 3, 15))

    assert flow == [
        {"month": "2026-01", "inward": 2.0, "outward": 0.0},
        {"month": "2026-02", "inward": 0.0, "outward": 0.0},
        {"month": "2026-03", "inward": 5.0, "outward": 0.0},
    ]
    # Long ranges are capped.
    assert len(revenue) == 36

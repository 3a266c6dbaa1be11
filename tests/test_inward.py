import re


LOT_RE = re.compile(r"^LOT-\d{6}-(\d{4})$")


def test_create_inward_entry(admin_client, make_company):
    company = make_company()
    r = admin_client.post(
        "/api/inward",
        json={
            "date": "2026-01-10",
            "companyId": company["id"],
            "manifestNo": "MF-001",
            "vehicleNo": "MH12AB1234",
            "wasteName": "Spent Solvent",
            "category": "Solvent",
            "quantity": "2.5",
            "unit": "MT",
            "rate": 1000,
        },
    )
    assert r.status_code == 201, r.json
    entry = r.json["data"]["entry"]
    assert entry["srNo"] == 1
    assert LOT_RE.match(entry["lotNo"]).group(1) == "0001"
    assert entry["company"]["name"] == "Acme Chemicals"
    assert entry["quantity"] == 2.5
    assert entry["invoiceId"] is None
    assert entry["invoice"] is None
    assert entry["inwardMaterials"] == []


def test_serial_and_lot_numbers_increase(make_company, make_inward):
    company = make_company()
    first = make_inward(company["id"])
    second = make_inward(company["id"], manifestNo="MF-002")
    assert second["srNo"] == first["srNo"] + 1
    assert LOT_RE.match(second["lotNo"]).group(1) == "0002"


def test_explicit_lot_number_must_be_unique(admin_client, make_company, make_inward):
    company = make_company()
    make_inward(company["id"], lotNo="LOT-CUSTOM-1")
    r = admin_client.post(
        "/api/inward",
        json={
            "date": "2026-01-11",
            "companyId": company["id"],
            "lotNo": "LOT-CUSTOM-1",
            "manifestNo": "MF-009",
            "wasteName": "Sludge",
            "quantity": 1,
            "unit": "MT",
        },
    )
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Lot number already exists"


def test_missing_required_fields(admin_client, make_company):
    company = make_company()
    r = admin_client.post("/api/inward", json={"companyId": company["id"], "wasteName": "Sludge"})
    assert r.status_code == 400
    message = r.json["error"]["message"]
    assert message.startswith("Date, company, manifest number, waste name, quantity, and unit are required")
    assert "Manifest number" in message


def test_quantity_must_be_positive(admin_client, make_company):
    company = make_company()
    r = admin_client.post(
        "/api/inward",
        json={"date": "2026-01-10", "companyId": company["id"], "manifestNo": "MF-1", "wasteName": "X", "quantity": 0, "unit": "MT"},
    )
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Quantity must be greater than zero."


def test_unknown_company_is_404(admin_client):
    r = admin_client.post(
        "/api/inward",
        json={"date": "2026-01-10", "companyId": 999, "manifestNo": "MF-1", "wasteName": "X", "quantity": 1, "unit": "MT"},
    )
    assert r.status_code == 404
    assert r.json["error"]["message"] == "Company not found"


def test_list_pagination_and_filters(admin_client, make_company, make_inward):
    acme = make_company()
    other = make_company("Other Industries")
    for day in range(1, 6):
        make_inward(acme["id"], date=f"2026-01-0{day}", manifestNo=f"MF-10{day}")
    make_inward(other["id"], date="2026-02-01", manifestNo="MF-900")

    r = admin_client.get(f"/api/inward?companyId={acme['id']}&limit=2")
    assert r.status_code == 200
    assert r.json["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 5,
        "totalPages": 3,
        "hasNext": True,
        "hasPrev": False,
    }
    # Newest first by default.
    assert [e["date"] for e in r.json["data"]] == ["2026-01-05", "2026-01-04"]

    r = admin_client.get("/api/inward?startDate=2026-01-04&endDate=2026-01-31")
    assert r.json["pagination"]["total"] == 2

    r = admin_client.get("/api/inward?search=MF-900")
    assert [e["companyId"] for e in r.json["data"]] == [other["id"]]

    r = admin_client.get("/api/inward?sortBy=date&sortOrder=asc&limit=1")
    assert r.json["data"][0]["date"] == "2026-01-01"

    r = admin_client.get("/api/inward?startDate=01-01-2026")
    assert r.status_code == 400


def test_update_entry(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    r = admin_client.put(f"/api/inward/{entry['id']}", json={"quantity": 3, "vehicleNo": "MH14XY9999"})
    assert r.status_code == 200
    updated = r.json["data"]["entry"]
    assert updated["quantity"] == 3
    assert updated["vehicleNo"] == "MH14XY9999"
    assert updated["lotNo"] == entry["lotNo"]

    r = admin_client.put(f"/api/inward/{entry['id']}", json={"wasteName": ""})
    assert r.status_code == 400


def test_delete_entry(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    r = admin_client.delete(f"/api/inward/{entry['id']}")
    assert r.status_code == 200
    assert admin_client.get(f"/api/inward/{entry['id']}").status_code == 404


def test_invoiced_entry_cannot_be_deleted_or_moved(admin_client, make_company, make_inward):
    company = make_company()
    other = make_company("Other Industries")
    entry = make_inward(company["id"])
    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": company["id"], "inwardEntryIds": [entry["id"]]})
    assert r.status_code == 201

    r = admin_client.delete(f"/api/inward/{entry['id']}")
    assert r.status_code == 400
    assert "remove it from the invoice first" in r.json["error"]["message"]

    r = admin_client.put(f"/api/inward/{entry['id']}", json={"companyId": other["id"]})
    assert r.status_code == 400


def test_payment_through_entry_updates_its_invoice(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"], quantity=1, rate=1000)

    r = admin_client.put(f"/api/inward/{entry['id']}/payment", json={"paymentReceived": 100})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Inward entry is not linked to an invoice"

    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": company["id"], "inwardEntryIds": [entry["id"]]})
    invoice = r.json["data"]["invoice"]
    assert invoice["grandTotal"] == 1180

    r = admin_client.put(
        f"/api/inward/{entry['id']}/payment",
        json={"paymentReceived": 500, "paymentReceivedOn": "2026-01-20"},
    )
    assert r.status_code == 200
    assert r.json["data"]["invoice"]["status"] == "partial"
    assert r.json["data"]["entry"]["invoice"]["paymentReceived"] == 500
    assert r.json["data"]["entry"]["invoice"]["paymentReceivedOn"] == "2026-01-20"


def test_staff_cannot_record_payments(staff_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    r = staff_client.put(f"/api/inward/{entry['id']}/payment", json={"paymentReceived": 1})
    assert r.status_code == 403


def test_inward_stats(admin_client, make_company, make_inward):
    company = make_company()
    a = make_inward(company["id"], quantity=1, rate=1000)
    b = make_inward(company["id"], quantity=2, rate=1000)
    make_inward(company["id"], quantity=4)
    r = admin_client.post(
        "/api/invoices",
        json={"type": "Inward", "companyId": company["id"], "inwardEntryIds": [a["id"], b["id"]], "paymentReceived": 1000},
    )
    assert r.status_code == 201

    stats = admin_client.get("/api/inward/stats").json["data"]["stats"]
    assert stats["totalEntries"] == 3
    assert stats["totalQuantity"] == 7
    assert stats["invoicedEntries"] == 2
    assert stats["uninvoicedEntries"] == 1
    # One invoice billing two entries is counted once.
    assert stats["totalInvoiced"] == 3540
    assert stats["totalReceived"] == 1000


def test_inward_material_lines(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"], vehicleNo="MH12AB1234")

    r = admin_client.post(
        "/api/inward-materials",
        json={"inwardEntryId": entry["id"], "transporterName": "Fast Haulers", "quantity": 1.5, "rate": 200},
    )
    assert r.status_code == 201
    material = r.json["data"]["material"]
    assert material["amount"] == 300
    assert material["vehicleNo"] == "MH12AB1234"

    r = admin_client.put(f"/api/inward-materials/{material['id']}", json={"rate": 300})
    assert r.json["data"]["material"]["amount"] == 450

    r = admin_client.put(f"/api/inward-materials/{material['id']}", json={"amount": 999})
    assert r.json["data"]["material"]["amount"] == 999

    r = admin_client.get(f"/api/inward-materials?inwardEntryId={entry['id']}")
    assert r.json["pagination"]["total"] == 1

    r = admin_client.get(f"/api/inward/{entry['id']}")
    assert [m["id"] for m in r.json["data"]["entry"]["inwardMaterials"]] == [material["id"]]

    r = admin_client.post("/api/inward-materials", json={"quantity": 1})
    assert r.status_code == 400

    r = admin_client.delete(f"/api/inward-materials/{material['id']}")
    assert r.status_code == 200
    assert admin_client.get(f"/api/inward-materials/{material['id']}").status_code == 404

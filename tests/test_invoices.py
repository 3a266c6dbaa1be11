import re


def _inward_invoice(client, company_id, **extra):
    r = client.post("/api/invoices", json={"type": "Inward", "companyId": company_id, **extra})
    assert r.status_code == 201, r.json
    return r.json["data"]["invoice"]


def test_create_invoice_with_material_lines(admin_client, make_company):
    company = make_company()
    r = admin_client.post(
        "/api/invoices",
        json={
            "type": "Inward",
            "companyId": company["id"],
            "date": "2026-01-15",
            "materials": [
                {"materialName": "Spent Solvent", "quantity": 2, "rate": 400, "unit": "MT", "manifestNo": "MF-1"},
                {"materialName": "Handling", "amount": 200},
            ],
            "additionalCharges": 100,
            "additionalChargesDescription": "Transport",
        },
    )
    assert r.status_code == 201, r.json
    inv = r.json["data"]["invoice"]
    assert re.match(r"^INV-\d{6}-0001$", inv["invoiceNo"])
    assert inv["customerName"] == "Acme Chemicals"
    assert inv["gstNo"] == company["gstNumber"]
    assert inv["billedTo"] == company["address"]
    assert inv["shippedTo"] == company["address"]
    # Default tax rates come from settings.
    assert inv["cgstRate"] == 9
    assert inv["sgstRate"] == 9
    assert inv["subtotal"] == 1000
    assert inv["cgst"] == 99
    assert inv["sgst"] == 99
    assert inv["grandTotal"] == 1298
    assert inv["status"] == "pending"
    assert [m["position"] for m in inv["invoiceMaterials"]] == [0, 1]
    assert [m["manifestNo"] for m in inv["invoiceManifests"]] == ["MF-1"]


def test_invoice_numbers_increase(admin_client, make_company):
    company = make_company()
    first = _inward_invoice(admin_client, company["id"], subtotal=100)
    second = _inward_invoice(admin_client, company["id"], subtotal=100)
    assert first["invoiceNo"][:-4] == second["invoiceNo"][:-4]
    assert int(second["invoiceNo"][-4:]) == int(first["invoiceNo"][-4:]) + 1


def test_tax_rate_setting_drives_new_invoices(admin_client, make_company):
    company = make_company()
    r = admin_client.put("/api/settings/cgst_rate", json={"value": "2.5"})
    assert r.status_code == 200
    inv = _inward_invoice(admin_client, company["id"], subtotal=1000)
    assert inv["cgstRate"] == 2.5
    assert inv["cgst"] == 25
    assert inv["grandTotal"] == 1115


def test_invoice_requires_party_and_content(admin_client, make_company, make_transporter):
    company = make_company()
    r = admin_client.post("/api/invoices", json={"type": "Inward", "subtotal": 10})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Company is required for Inward invoices"

    r = admin_client.post("/api/invoices", json={"type": "Outward", "subtotal": 10})
    assert r.json["error"]["message"] == "Transporter is required for Outward invoices"

    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": company["id"]})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Add at least one material or enter a subtotal"

    r = admin_client.post("/api/invoices", json={"type": "Sales", "companyId": company["id"], "subtotal": 10})
    assert r.status_code == 400

    t = make_transporter()
    r = admin_client.post("/api/invoices", json={"type": "Transporter", "transporterId": t["id"], "subtotal": 500})
    assert r.status_code == 201
    assert r.json["data"]["invoice"]["customerName"] == "Fast Haulers"


def test_duplicate_invoice_number_rejected(admin_client, make_company):
    company = make_company()
    _inward_invoice(admin_client, company["id"], invoiceNo="INV-MANUAL-1", subtotal=10)
    r = admin_client.post(
        "/api/invoices",
        json={"type": "Inward", "companyId": company["id"], "invoiceNo": "INV-MANUAL-1", "subtotal": 10},
    )
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Invoice number already exists"


def test_lines_generated_from_linked_entries(admin_client, make_company, make_inward):
    company = make_company()
    a = make_inward(company["id"], manifestNo="MF-A", quantity=1, rate=1000)
    b = make_inward(company["id"], manifestNo="MF-B", quantity=2, rate=500)

    inv = _inward_invoice(admin_client, company["id"], inwardEntryIds=[a["id"], b["id"]])
    assert [m["inwardEntryId"] for m in inv["invoiceMaterials"]] == [a["id"], b["id"]]
    assert inv["subtotal"] == 2000
    assert [m["manifestNo"] for m in inv["invoiceManifests"]] == ["MF-A", "MF-B"]
    assert sorted(e["id"] for e in inv["inwardEntries"]) == sorted([a["id"], b["id"]])

    r = admin_client.get(f"/api/inward/{a['id']}")
    assert r.json["data"]["entry"]["invoiceId"] == inv["id"]


def test_entry_cannot_be_billed_on_two_invoices(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]])
    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": company["id"], "inwardEntryIds": [entry["id"]]})
    assert r.status_code == 400
    assert "already linked to another invoice" in r.json["error"]["message"]


def test_entry_of_other_company_rejected(admin_client, make_company, make_inward):
    acme = make_company()
    other = make_company("Other Industries")
    entry = make_inward(other["id"])
    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": acme["id"], "inwardEntryIds": [entry["id"]]})
    assert r.status_code == 400
    assert "belongs to a different company" in r.json["error"]["message"]


def test_payment_status_transitions(admin_client, make_company):
    company = make_company()
    inv = _inward_invoice(admin_client, company["id"], subtotal=1000, cgstRate=0, sgstRate=0)
    url = f"/api/invoices/{inv['id']}/payment"

    r = admin_client.put(url, json={"paymentReceived": 400})
    assert r.json["data"]["invoice"]["status"] == "partial"
    assert r.json["data"]["invoice"]["paymentReceivedOn"] is not None

    r = admin_client.put(url, json={"paymentReceived": 1000, "paymentReceivedOn": "2026-02-01"})
    assert r.json["data"]["invoice"]["status"] == "paid"
    assert r.json["data"]["invoice"]["paymentReceivedOn"] == "2026-02-01"

    r = admin_client.put(url, json={"paymentReceived": 0})
    assert r.json["data"]["invoice"]["status"] == "pending"
    assert r.json["data"]["invoice"]["paymentReceivedOn"] is None

    r = admin_client.put(url, json={})
    assert r.status_code == 400
    r = admin_client.put(url, json={"paymentReceived": -5})
    assert r.status_code == 400


def test_update_replaces_sets_and_recomputes(admin_client, make_company, make_inward):
    company = make_company()
    a = make_inward(company["id"], manifestNo="MF-A", quantity=1, rate=1000)
    b = make_inward(company["id"], manifestNo="MF-B", quantity=1, rate=1000)
    inv = _inward_invoice(admin_client, company["id"], inwardEntryIds=[a["id"]], paymentReceived=1180)
    assert inv["status"] == "paid"

    r = admin_client.put(
        f"/api/invoices/{inv['id']}",
        json={
            "inwardEntryIds": [b["id"]],
            "materials": [{"materialName": "Spent Solvent", "quantity": 1, "rate": 2000, "inwardEntryId": b["id"]}],
            "manifestNos": ["MF-B", "MF-B"],
        },
    )
    assert r.status_code == 200, r.json
    updated = r.json["data"]["invoice"]
    assert [e["id"] for e in updated["inwardEntries"]] == [b["id"]]
    assert [m["manifestNo"] for m in updated["invoiceManifests"]] == ["MF-B"]
    assert updated["grandTotal"] == 2360
    # Paid amount unchanged, so the larger total drops back to partial.
    assert updated["status"] == "partial"

    assert admin_client.get(f"/api/inward/{a['id']}").json["data"]["entry"]["invoiceId"] is None

    r = admin_client.put(f"/api/invoices/{inv['id']}", json={"type": "Outward"})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Invoice type cannot be changed."


def test_update_lines_must_bill_entries_of_this_invoice(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    first = _inward_invoice(admin_client, company["id"], subtotal=100, cgstRate=0, sgstRate=0)
    _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]])

    r = admin_client.put(
        f"/api/invoices/{first['id']}",
        json={"materials": [{"materialName": "Spent Solvent", "inwardEntryId": entry["id"], "amount": 2500}]},
    )
    assert r.status_code == 400
    assert "already linked to another invoice" in r.json["error"]["message"]
    assert admin_client.get(f"/api/invoices/{first['id']}").json["data"]["invoice"]["subtotal"] == 100


def test_update_lines_link_their_entries(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    inv = _inward_invoice(admin_client, company["id"], subtotal=100, cgstRate=0, sgstRate=0)

    r = admin_client.put(
        f"/api/invoices/{inv['id']}",
        json={"materials": [{"materialName": "Spent Solvent", "inwardEntryId": entry["id"], "amount": 2500}]},
    )
    assert r.status_code == 200, r.json
    assert [e["id"] for e in r.json["data"]["invoice"]["inwardEntries"]] == [entry["id"]]
    assert admin_client.get(f"/api/inward/{entry['id']}").json["data"]["entry"]["invoiceId"] == inv["id"]


def test_unlinking_entry_drops_its_lines(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    first = _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]], cgstRate=0, sgstRate=0)
    assert first["subtotal"] == 2500

    r = admin_client.put(f"/api/invoices/{first['id']}", json={"inwardEntryIds": []})
    assert r.status_code == 200, r.json
    updated = r.json["data"]["invoice"]
    assert updated["invoiceMaterials"] == []
    assert updated["subtotal"] == 0
    assert updated["grandTotal"] == 0

    second = _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]], cgstRate=0, sgstRate=0)
    assert second["subtotal"] == 2500


def test_unlinking_one_entry_keeps_other_lines(admin_client, make_company, make_inward):
    company = make_company()
    a = make_inward(company["id"], quantity=1, rate=1000)
    b = make_inward(company["id"], quantity=2, rate=1000)
    inv = _inward_invoice(admin_client, company["id"], inwardEntryIds=[a["id"], b["id"]], cgstRate=0, sgstRate=0)
    assert inv["subtotal"] == 3000

    r = admin_client.put(f"/api/invoices/{inv['id']}", json={"inwardEntryIds": [b["id"]]})
    updated = r.json["data"]["invoice"]
    assert [m["inwardEntryId"] for m in updated["invoiceMaterials"]] == [b["id"]]
    assert updated["subtotal"] == 2000


def test_non_numeric_party_ids_rejected(admin_client, make_company):
    r = admin_client.post("/api/invoices", json={"type": "Inward", "companyId": "abc", "subtotal": 10})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Company id must be numeric."

    r = admin_client.post("/api/invoices", json={"type": "Outward", "transporterId": "x1", "subtotal": 10})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Transporter id must be numeric."

    company = make_company()
    inv = _inward_invoice(admin_client, company["id"], subtotal=10)
    r = admin_client.put(f"/api/invoices/{inv['id']}", json={"companyId": "abc"})
    assert r.status_code == 400
    assert r.json["error"]["message"] == "Company id must be numeric."


def test_tax_rates_capped_at_100(admin_client, make_company):
    company = make_company()
    r = admin_client.post(
        "/api/invoices",
        json={"type": "Inward", "companyId": company["id"], "subtotal": 10, "cgstRate": 1000},
    )
    assert r.status_code == 400
    assert r.json["error"]["message"] == "CGST rate cannot exceed 100."

    inv = _inward_invoice(admin_client, company["id"], subtotal=10, cgstRate=100, sgstRate=0)
    assert inv["cgstRate"] == 100
    r = admin_client.put(f"/api/invoices/{inv['id']}", json={"sgstRate": 150})
    assert r.status_code == 400
    r = admin_client.post(
        f"/api/invoices/{inv['id']}/append", json={"manifestNos": ["MF-9"], "cgstRate": 101}
    )
    assert r.status_code == 400


def test_delete_invoice_unlinks_entries(admin_client, make_company, make_inward):
    company = make_company()
    entry = make_inward(company["id"])
    inv = _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]])

    r = admin_client.delete(f"/api/invoices/{inv['id']}")
    assert r.status_code == 200
    assert admin_client.get(f"/api/invoices/{inv['id']}").status_code == 404

    r = admin_client.get(f"/api/inward/{entry['id']}")
    assert r.json["data"]["entry"]["invoiceId"] is None
    # The entry can be billed again.
    _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]])


def test_open_invoice_lookup(admin_client, make_company):
    company = make_company()
    r = admin_client.get(f"/api/invoices/open?companyId={company['id']}")
    assert r.status_code == 200
    assert r.json["data"]["invoice"] is None

    inv = _inward_invoice(admin_client, company["id"], subtotal=100)
    r = admin_client.get(f"/api/invoices/open?companyId={company['id']}")
    assert r.json["data"]["invoice"]["id"] == inv["id"]

    admin_client.put(f"/api/invoices/{inv['id']}/payment", json={"paymentReceived": 1000})
    r = admin_client.get(f"/api/invoices/open?companyId={company['id']}")
    assert r.json["data"]["invoice"] is None

    assert admin_client.get("/api/invoices/open").status_code == 400


class TestAppend:
    def test_append_entries_without_double_billing(self, admin_client, make_company, make_inward):
        company = make_company()
        a = make_inward(company["id"], manifestNo="MF-A", quantity=1, rate=1000)
        b = make_inward(company["id"], manifestNo="MF-B", quantity=2, rate=1000)
        inv = _inward_invoice(admin_client, company["id"], inwardEntryIds=[a["id"]])

        r = admin_client.post(
            f"/api/invoices/{inv['id']}/append",
            json={
                "inwardEntryIds": [a["id"], b["id"]],
                "materials": [{"materialName": "Spent Solvent", "quantity": 1, "rate": 1000, "inwardEntryId": a["id"]}],
                "manifestNos": ["MF-A", "MF-C"],
            },
        )
        assert r.status_code == 200, r.json
        summary = r.json["data"]["summary"]
        assert summary == {"linkedEntries": 1, "addedMaterials": 1, "skippedMaterials": 1, "addedManifests": 2}

        appended = r.json["data"]["invoice"]
        assert [m["inwardEntryId"] for m in appended["invoiceMaterials"]] == [a["id"], b["id"]]
        assert [m["position"] for m in appended["invoiceMaterials"]] == [0, 1]
        assert [m["manifestNo"] for m in appended["invoiceManifests"]] == ["MF-A", "MF-C", "MF-B"]
        assert appended["subtotal"] == 3000
        assert appended["grandTotal"] == 3540
        assert appended["invoiceNo"] == inv["invoiceNo"]

    def test_append_keeps_stored_rates(self, admin_client, make_company):
        company = make_company()
        inv = _inward_invoice(
            admin_client,
            company["id"],
            materials=[{"materialName": "Sludge", "quantity": 1, "rate": 100}],
            cgstRate=6,
            sgstRate=6,
        )
        r = admin_client.post(
            f"/api/invoices/{inv['id']}/append",
            json={"materials": [{"materialName": "Acid", "quantity": 1, "rate": 100}]},
        )
        appended = r.json["data"]["invoice"]
        assert appended["cgstRate"] == 6
        assert appended["subtotal"] == 200
        assert appended["grandTotal"] == 224

    def test_nothing_to_append(self, admin_client, make_company):
        company = make_company()
        inv = _inward_invoice(admin_client, company["id"], subtotal=100)
        r = admin_client.post(f"/api/invoices/{inv['id']}/append", json={})
        assert r.status_code == 400
        assert r.json["error"]["message"].startswith("Nothing to append")

    def test_paid_invoice_cannot_be_appended(self, admin_client, make_company):
        company = make_company()
        inv = _inward_invoice(admin_client, company["id"], subtotal=100, paymentReceived=118)
        assert inv["status"] == "paid"
        r = admin_client.post(f"/api/invoices/{inv['id']}/append", json={"manifestNos": ["MF-9"]})
        assert r.status_code == 400
        assert "fully paid" in r.json["error"]["message"]

    def test_append_keeps_payment_unless_sent(self, admin_client, make_company):
        company = make_company()
        inv = _inward_invoice(
            admin_client,
            company["id"],
            materials=[{"materialName": "Sludge", "quantity": 1, "rate": 1000}],
            cgstRate=0,
            sgstRate=0,
            paymentReceived=400,
            paymentReceivedOn="2026-01-20",
        )
        assert inv["status"] == "partial"
        url = f"/api/invoices/{inv['id']}/append"

        r = admin_client.post(url, json={"materials": [{"materialName": "Acid", "amount": 500}]})
        appended = r.json["data"]["invoice"]
        assert appended["grandTotal"] == 1500
        assert appended["paymentReceived"] == 400
        assert appended["paymentReceivedOn"] == "2026-01-20"
        assert appended["status"] == "partial"

        r = admin_client.post(
            url,
            json={
                "materials": [{"materialName": "Oil", "amount": 100}],
                "paymentReceived": 1600,
                "paymentReceivedOn": "2026-02-05",
            },
        )
        appended = r.json["data"]["invoice"]
        assert appended["grandTotal"] == 1600
        assert appended["paymentReceived"] == 1600
        assert appended["paymentReceivedOn"] == "2026-02-05"
        assert appended["status"] == "paid"

    def test_append_recomputes_status_against_new_total(self, admin_client, make_company):
        company = make_company()
        inv = _inward_invoice(
            admin_client,
            company["id"],
            materials=[{"materialName": "Sludge", "amount": 1000}],
            cgstRate=0,
            sgstRate=0,
        )
        assert inv["status"] == "pending"
        r = admin_client.post(
            f"/api/invoices/{inv['id']}/append",
            json={"materials": [{"materialName": "Acid", "amount": 500}], "paymentReceived": 1000},
        )
        appended = r.json["data"]["invoice"]
        assert appended["grandTotal"] == 1500
        assert appended["status"] == "partial"
        assert appended["paymentReceivedOn"] is not None

    def test_append_refuses_entry_on_another_invoice(self, admin_client, make_company, make_inward):
        company = make_company()
        entry = make_inward(company["id"])
        _inward_invoice(admin_client, company["id"], inwardEntryIds=[entry["id"]])
        target = _inward_invoice(admin_client, company["id"], subtotal=100)

        r = admin_client.post(f"/api/invoices/{target['id']}/append", json={"inwardEntryIds": [entry["id"]]})
        assert r.status_code == 400
        assert "already linked to another invoice" in r.json["error"]["message"]

    def test_append_refuses_entry_of_other_company(self, admin_client, make_company, make_inward):
        acme = make_company()
        other = make_company("Other Industries")
        entry = make_inward(other["id"])
        target = _inward_invoice(admin_client, acme["id"], subtotal=100)

        r = admin_client.post(f"/api/invoices/{target['id']}/append", json={"inwardEntryIds": [entry["id"]]})
        assert r.status_code == 400
        assert "belongs to a different company" in r.json["error"]["message"]
        assert admin_client.get(f"/api/inward/{entry['id']}").json["data"]["entry"]["invoiceId"] is None

    def test_only_inward_invoices(self, admin_client, make_transporter):
        t = make_transporter()
        r = admin_client.post("/api/invoices", json={"type": "Transporter", "transporterId": t["id"], "subtotal": 100})
        inv = r.json["data"]["invoice"]
        r = admin_client.post(f"/api/invoices/{inv['id']}/append", json={"manifestNos": ["MF-9"]})
        assert r.status_code == 400


def test_list_and_stats(admin_client, make_company, make_transporter):
    company = make_company()
    t = make_transporter()
    _inward_invoice(admin_client, company["id"], subtotal=1000, cgstRate=0, sgstRate=0)
    _inward_invoice(admin_client, company["id"], subtotal=500, cgstRate=0, sgstRate=0, paymentReceived=500)
    admin_client.post(
        "/api/invoices",
        json={"type": "Outward", "transporterId": t["id"], "subtotal": 200, "cgstRate": 0, "sgstRate": 0, "paymentReceived": 50},
    )

    r = admin_client.get("/api/invoices?type=Inward")
    assert r.json["pagination"]["total"] == 2
    assert "inwardEntries" not in r.json["data"][0]

    r = admin_client.get("/api/invoices?status=paid")
    assert r.json["pagination"]["total"] == 1

    stats = admin_client.get("/api/invoices/stats").json["data"]["stats"]
    assert stats["totalInvoices"] == 3
    assert stats["totalInvoiced"] == 1700
    assert stats["totalReceived"] == 550
    assert stats["outstanding"] == 1150
    assert stats["byStatus"]["pending"]["count"] == 1
    assert stats["byStatus"]["partial"] == {"count": 1, "amount": 200.0}
    assert stats["byType"]["Transporter"]["count"] == 0

    inward_only = admin_client.get("/api/invoices/stats?type=Inward").json["data"]["stats"]
    assert inward_only["totalInvoiced"] == 1500


def test_staff_has_no_invoice_access(staff_client):
    assert staff_client.get("/api/invoices").status_code == 403
    assert staff_client.get("/api/invoices/stats").status_code == 403

from conftest import PASSWORD, STAFF_EMAIL


def test_list_users_and_roles(admin_client):
    r = admin_client.get("/api/admin/users")
    assert r.status_code == 200
    emails = [u["email"] for u in r.json["data"]]
    assert emails == ["admin@example.com", STAFF_EMAIL]

    r = admin_client.get("/api/admin/roles")
    roles = {x["key"]: x["permissions"] for x in r.json["data"]}
    assert "invoices.edit" in roles["admin"]
    assert "inward.create" in roles["staff"]
    assert "rates.view" not in roles["staff"]
    assert "invoices.view" not in roles["staff"]


def test_create_user_and_login(admin_client, app):
    r = admin_client.post(
        "/api/admin/users",
        json={"email": "Clerk@Example.com", "password": "longenough", "fullName": "Clerk", "roles": ["staff"]},
    )
    assert r.status_code == 201, r.json
    user = r.json["data"]["user"]
    assert user["email"] == "clerk@example.com"
    assert user["roles"] == ["staff"]

    c = app.test_client()
    r = c.post("/api/auth/login", json={"email": "clerk@example.com", "password": "longenough"})
    assert r.status_code == 200


def test_create_user_validation(admin_client):
    r = admin_client.post("/api/admin/users", json={"email": STAFF_EMAIL, "password": "short"})
    assert r.status_code == 400
    assert r.json["error"]["details"] == [
        "An account with this email already exists.",
        "Password must be at least 8 characters.",
    ]

    r = admin_client.post("/api/admin/users", json={"email": "new@example.com", "password": "longenough", "roles": ["owner"]})
    assert r.status_code == 400
    assert r.json["error"]["details"] == ["owner"]


def test_deactivated_user_cannot_log_in(admin_client, app):
    staff_id = next(u["id"] for u in admin_client.get("/api/admin/users").json["data"] if u["email"] == STAFF_EMAIL)
    r = admin_client.put(f"/api/admin/users/{staff_id}", json={"isActive": False})
    assert r.status_code == 200
    assert r.json["data"]["user"]["isActive"] is False

    r = app.test_client().post("/api/auth/login", json={"email": STAFF_EMAIL, "password": PASSWORD})
    assert r.status_code == 401


def test_cannot_modify_own_account(admin_client):
    me = admin_client.get("/api/auth/me").json["data"]["user"]
    r = admin_client.put(f"/api/admin/users/{me['id']}", json={"isActive": False})
    assert r.status_code == 400


def test_staff_cannot_manage_users(staff_client):
    assert staff_client.get("/api/admin/users").status_code == 403
    assert staff_client.get("/api/admin/audit").status_code == 403


def test_audit_trail_records_mutations(admin_client, make_company):
    company = make_company()
    admin_client.put(f"/api/companies/{company['id']}", json={"phone": "020-1234"})

    r = admin_client.get("/api/admin/audit?entityType=Company")
    assert r.status_code == 200
    actions = [e["action"] for e in r.json["data"]]
    assert actions == ["company.edit", "company.create"]
    latest = r.json["data"][0]
    assert latest["actorEmail"] == "admin@example.com"
    assert latest["metadata"]["changes"]["phone"] == {"old": None, "new": "020-1234"}
    assert latest["requestId"]

    r = admin_client.get("/api/admin/audit?action=company.create&limit=1")
    assert r.json["pagination"]["total"] == 1

    assert admin_client.get("/api/admin/audit?dateFrom=yesterday").status_code == 400

from conftest import ADMIN_EMAIL, PASSWORD


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["success"] is True
    assert r.json["data"]["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_api_index(client):
    r = client.get("/api")
    assert r.status_code == 200
    assert r.json["data"]["version"] == "1.0.0"


def test_unknown_route_returns_error_envelope(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["success"] is False
    assert r.json["error"]["message"] == "Route not found"
    assert r.json["requestId"]


def test_request_id_is_echoed(client):
    r = client.get("/api", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def test_anonymous_gets_401(client):
    r = client.get("/api/companies")
    assert r.status_code == 401
    assert r.json["error"]["message"] == "Authentication required"


def test_login_me_logout(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert r.status_code == 200
    user = r.json["data"]["user"]
    assert user["email"] == ADMIN_EMAIL
    assert user["role"] == "admin"
    assert "invoices.create" in user["permissions"]
    token = r.json["data"]["csrfToken"]

    r = client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json["data"]["user"]["email"] == ADMIN_EMAIL

    r = client.post("/api/auth/logout", headers={"X-CSRF-Token": token})
    assert r.status_code == 200
    r = client.get("/api/auth/me")
    assert r.status_code == 401


def test_login_invalid_credentials(client):
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    assert r.status_code == 401
    assert r.json["error"]["message"] == "Invalid credentials"


def test_login_requires_fields(client):
    r = client.post("/api/auth/login", json={"email": ""})
    assert r.status_code == 400


def test_login_rate_limited(client):
    for _ in range(5):
        client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong"})
    r = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": PASSWORD})
    assert r.status_code == 429


def test_mutation_without_csrf_token_is_rejected(admin_client):
    r = admin_client.post("/api/companies", json={"name": "No Token"}, headers={"X-CSRF-Token": ""})
    assert r.status_code == 403
    assert "CSRF" in r.json["error"]["message"]


def test_staff_cannot_reach_invoices(staff_client):
    r = staff_client.get("/api/invoices")
    assert r.status_code == 403


def test_staff_can_list_inward(staff_client):
    r = staff_client.get("/api/inward")
    assert r.status_code == 200
    assert r.json["data"] == []
    assert r.json["pagination"]["total"] == 0

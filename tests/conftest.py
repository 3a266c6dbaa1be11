import pytest
from werkzeug.security import generate_password_hash

from app.cwms import auth, create_app
from app.cwms.db import session_scope
from app.cwms.models import Base, Role, User
from scripts.init_db import seed_only

ADMIN_EMAIL = "admin@example.com"
STAFF_EMAIL = "staff@example.com"
PASSWORD = "pw-for-tests"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'test.db'}"
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("ADMIN_PASSWORD", PASSWORD)
    for k in ("DEFAULT_CGST_RATE", "DEFAULT_SGST_RATE", "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE"):
        monkeypatch.delenv(k, raising=False)
    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    # Permissions, admin/staff roles, admin user and default tax settings.
    seed_only(database_url=db_url)

    with session_scope(app) as s:
        staff_role = s.query(Role).filter(Role.key == "staff").one()
        u = User(email=STAFF_EMAIL, full_name="Staff", password_hash=generate_password_hash(PASSWORD), is_active=True)
        u.roles.append(staff_role)
        s.add(u)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email: str):
    r = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.json
    # Every later mutating request carries the CSRF token handed out at login.
    client.environ_base["HTTP_X_CSRF_TOKEN"] = r.json["data"]["csrfToken"]
    return client


@pytest.fixture()
def admin_client(app):
    return _login(app.test_client(), ADMIN_EMAIL)


@pytest.fixture()
def staff_client(app):
    return _login(app.test_client(), STAFF_EMAIL)


@pytest.fixture()
def make_company(admin_client):
    def _make(name: str = "Acme Chemicals", **extra):
        payload = {"name": name, "gstNumber": "27AAPFU0939F1ZV", "address": "Plot 7, MIDC, Pune", **extra}
        r = admin_client.post("/api/companies", json=payload)
        assert r.status_code == 201, r.json
        return r.json["data"]["company"]

    return _make


@pytest.fixture()
def make_transporter(admin_client):
    def _make(name: str = "Fast Haulers", **extra):
        r = admin_client.post("/api/transporters", json={"name": name, "mobile": "9800000000", **extra})
        assert r.status_code == 201, r.json
        return r.json["data"]["transporter"]

    return _make


@pytest.fixture()
def make_inward(admin_client):
    def _make(company_id: int, **extra):
        payload = {
            "date": "2026-01-10",
            "companyId": company_id,
            "manifestNo": "MF-001",
            "wasteName": "Spent Solvent",
            "quantity": 2.5,
            "unit": "MT",
            "rate": 1000,
            **extra,
        }
        r = admin_client.post("/api/inward", json=payload)
        assert r.status_code == 201, r.json
        return r.json["data"]["entry"]

    return _make

import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cwms.models import Permission, Role, User
from app.cwms.modules.settings.service import seed_defaults
from scripts._db_utils import script_session

PERMISSIONS: list[tuple[str, str]] = [
    ("admin.view", "Admin: view audit trail"),
    ("users.manage", "Admin: manage user accounts"),
    ("companies.view", "Companies: view"),
    ("companies.create", "Companies: create"),
    ("companies.edit", "Companies: edit"),
    ("companies.delete", "Companies: delete"),
    ("rates.view", "Companies: view material rates"),
    ("transporters.view", "Transporters: view"),
    ("transporters.create", "Transporters: create"),
    ("transporters.edit", "Transporters: edit"),
    ("transporters.delete", "Transporters: delete"),
    ("inward.view", "Inward: view"),
    ("inward.create", "Inward: create"),
    ("inward.edit", "Inward: edit"),
    ("inward.delete", "Inward: delete"),
    ("outward.view", "Outward: view"),
    ("outward.create", "Outward: create"),
    ("outward.edit", "Outward: edit"),
    ("outward.delete", "Outward: delete"),
    ("invoices.view", "Invoices: view"),
    ("invoices.create", "Invoices: create"),
    ("invoices.edit", "Invoices: edit and record payments"),
    ("invoices.delete", "Invoices: delete"),
    ("dashboard.view", "Dashboard: view"),
    ("settings.view", "Settings: view"),
    ("settings.edit", "Settings: edit"),
]

# Staff handle day-to-day entries; money (rates, invoices, dashboard, settings) stays with admins.
STAFF_PREFIXES = ("companies.", "transporters.", "inward.", "outward.")


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user/default settings in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@cwms.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///cwms.db").strip()

    # Use direct engine/session so this can run in release without importing app.wsgi (avoids recursion).
    with script_session(db_url) as s:
        # Permissions (idempotent)
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=name)
                s.add(r)
            return r

        perms = {key: ensure_perm(key, name) for key, name in PERMISSIONS}

        role_admin = ensure_role("admin", "Administrator")
        for p in perms.values():
            if p not in role_admin.permissions:
                role_admin.permissions.append(p)

        role_staff = ensure_role("staff", "Staff")
        for key, p in perms.items():
            if key.startswith(STAFF_PREFIXES) and p not in role_staff.permissions:
                role_staff.permissions.append(p)

        # User
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(
                email=admin_email,
                full_name="Administrator",
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
        if role_admin not in user.roles:
            user.roles.append(role_admin)

        created = seed_defaults(s)

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")
    print(f"Default settings created: {created}")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()

"""
Release step for CWMS deployments.

Upgrades the schema to the latest Alembic revision, then seeds roles,
permissions, the bootstrap admin and the default tax settings. Safe to rerun.

    python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL must be set before running the release step.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and url.startswith("sqlite"):
        raise RuntimeError("Production releases need a Postgres DATABASE_URL, got sqlite.")
    return url


def run_release() -> None:
    db_url = _database_url()

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    print("Upgrading CWMS schema to head", flush=True)
    command.upgrade(cfg, "head")

    from scripts import init_db

    init_db.seed_only(database_url=db_url)
    print("CWMS schema current; roles, admin and default settings seeded", flush=True)


if __name__ == "__main__":
    run_release()

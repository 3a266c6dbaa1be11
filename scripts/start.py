#!/usr/bin/env python3
"""
Container entrypoint: migrate and seed the CWMS database, then hand the process to gunicorn.

    python scripts/start.py

Environment: PORT (default 5000), WEB_CONCURRENCY (default 2), DATABASE_URL.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _port() -> str:
    raw = os.environ.get("PORT", "").strip() or "5000"
    if not raw.isdigit() or not 1 <= int(raw) <= 65535:
        print(f"PORT={raw!r} is not a valid TCP port", flush=True)
        sys.exit(1)
    return raw


def main() -> None:
    port = _port()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Database release step failed, not starting web workers: {e}", flush=True)
        sys.exit(1)

    workers = os.environ.get("WEB_CONCURRENCY", "2").strip() or "2"
    print(f"Launching CWMS API: {workers} gunicorn worker(s) on port {port}", flush=True)
    # execvp so gunicorn takes over this PID and receives container signals.
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", workers,
            "--timeout", "60",
            "--preload",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()

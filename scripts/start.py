#!/usr/bin/env python3
"""
Production startup script.

1. Runs alembic migrations and seeds the admin user
2. Starts gunicorn (replaces this process via os.execvp)

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

logger = logging.getLogger("start")


def run_release() -> None:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("Missing required environment variable DATABASE_URL.")

    from alembic import command
    from alembic.config import Config

    logger.info("Running alembic migrations...")
    command.upgrade(Config(str(ROOT / "alembic.ini")), "head")

    from scripts.init_db import seed_admin
    from app.tenderguru import create_app

    seed_admin(create_app())


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    port = (os.environ.get("PORT") or "8080").strip()
    if not port.isdigit() or not 1 <= int(port) <= 65535:
        logger.error("Invalid PORT value %r. Must be integer 1-65535.", port)
        sys.exit(1)

    try:
        run_release()
    except Exception:
        logger.exception("Release failed")
        sys.exit(1)

    logger.info("Starting gunicorn on 0.0.0.0:%s", port)
    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", "2",
            "--timeout", "60",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()

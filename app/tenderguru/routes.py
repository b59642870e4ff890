from flask import Blueprint, current_app
from sqlalchemy import text

from app.tenderguru.db import db_session

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Pings the database; returns JSON."""
    try:
        db_session().execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        current_app.logger.exception("Health check: database unreachable")
        db_ok = False
    return {"ok": db_ok, "database": "ok" if db_ok else "unreachable"}, (200 if db_ok else 503)


@bp.get("/healthz")
def healthz():
    """
    Fast liveness probe. No DB access, minimal overhead.
    """
    return "ok", 200

import logging

from dotenv import load_dotenv
from flask import Flask

from app.tenderguru.config import load_config
from app.tenderguru.db import init_db, teardown_db_session
from app.tenderguru.errors import register_error_handlers
from app.tenderguru.routes import bp as routes_bp
from app.tenderguru.auth import bp as auth_bp, load_request_context
from app.tenderguru.modules.committees.admin import bp as committees_bp
from app.tenderguru.modules.committees.notifications import init_notifications

_DEFAULT_SECRETS = ("", "change-me")


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    root.setLevel(level)


def _production_guardrails(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in _DEFAULT_SECRETS:
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if str(app.config.get("JWT_SECRET") or "") in _DEFAULT_SECRETS:
        raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")


def create_app(overrides: dict | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    if overrides:
        app.config.from_mapping(overrides)

    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    _production_guardrails(app)

    init_db(app)
    init_notifications(app)

    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(committees_bp, url_prefix="/committees")

    app.before_request(load_request_context)
    app.teardown_appcontext(teardown_db_session)
    register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve (env=%s)", app.config.get("ENV"))
    return app

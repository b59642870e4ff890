import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expires_in: int
    jwt_cookie_expires_days: int

    storage_backend: str
    upload_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    smtp_server: str
    smtp_port: int
    smtp_use_tls: bool
    smtp_username: str
    smtp_password: str
    email_from: str

    expose_reset_token: bool
    notifications_async: bool
    allow_open_registration: bool


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _getenv_flag(name: str, default: bool) -> bool:
    raw = _getenv(name)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    env = _getenv("ENV", "development")
    is_production = env.lower() in ("prod", "production")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=env,
        database_url=_getenv("DATABASE_URL", "sqlite:///tenderguru.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        jwt_secret=_getenv("JWT_SECRET", "change-me"),
        jwt_expires_in=_getenv_int("JWT_EXPIRES_IN", 24 * 60 * 60),
        jwt_cookie_expires_days=_getenv_int("JWT_COOKIE_EXPIRES_DAYS", 1),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        upload_root=_getenv("UPLOAD_ROOT", os.path.join(os.getcwd(), "uploads")),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        smtp_server=_getenv("SMTP_SERVER", ""),
        smtp_port=_getenv_int("SMTP_PORT", 587),
        smtp_use_tls=_getenv_flag("SMTP_USE_TLS", True),
        smtp_username=_getenv("SMTP_USERNAME", ""),
        smtp_password=_getenv("SMTP_PASSWORD", ""),
        email_from=_getenv("EMAIL_FROM", "") or _getenv("SMTP_USERNAME", "") or "no-reply@example.com",
        # Never echo reset tokens in production, whatever the env says.
        expose_reset_token=_getenv_flag("EXPOSE_RESET_TOKEN", not is_production) and not is_production,
        notifications_async=_getenv_flag("NOTIFICATIONS_ASYNC", True),
        allow_open_registration=_getenv_flag("ALLOW_OPEN_REGISTRATION", True),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env.lower() in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_EXPIRES_IN": s.jwt_expires_in,
        "JWT_COOKIE_EXPIRES_DAYS": s.jwt_cookie_expires_days,
        "STORAGE_BACKEND": s.storage_backend,
        "UPLOAD_ROOT": s.upload_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "SMTP_SERVER": s.smtp_server,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USE_TLS": s.smtp_use_tls,
        "SMTP_USERNAME": s.smtp_username,
        "SMTP_PASSWORD": s.smtp_password,
        "EMAIL_FROM": s.email_from,
        "EXPOSE_RESET_TOKEN": s.expose_reset_token,
        "NOTIFICATIONS_ASYNC": s.notifications_async,
        "ALLOW_OPEN_REGISTRATION": s.allow_open_registration,
        # cookie defaults for the jwt cookie
        "JWT_COOKIE_SECURE": is_production,
        "JWT_COOKIE_SAMESITE": "Lax",
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }

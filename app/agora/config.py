import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    # uploads (profile pictures)
    storage_backend: str
    upload_root: str
    max_upload_mb: int
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    session_hours: int
    csrf_enabled: bool

    log_level: str
    log_file: str

    @property
    def is_production(self) -> bool:
        return self.env in ("prod", "production")


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    try:
        value = int(raw) if raw else default
    except ValueError:
        return default
    return value if value > 0 else default


def _getflag(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if not raw:
        return default
    return raw not in ("0", "false", "no", "off")


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development").lower(),
        database_url=_getenv("DATABASE_URL", "sqlite:///agora.db"),
        storage_backend=_getenv("STORAGE_BACKEND", "local").lower(),
        upload_root=_getenv("UPLOAD_ROOT"),
        max_upload_mb=_getint("MAX_UPLOAD_MB", 5),
        s3_endpoint=_getenv("S3_ENDPOINT"),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET"),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID"),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY"),
        session_hours=_getint("SESSION_HOURS", 8),
        csrf_enabled=_getflag("CSRF_ENABLED", True),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        log_file=_getenv("LOG_FILE"),
    )


def load_config() -> dict:
    """Flask config mapping built from the environment (see .env.example)."""
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "STORAGE_BACKEND": s.storage_backend,
        "UPLOAD_ROOT": s.upload_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "CSRF_ENABLED": s.csrf_enabled,
        "LOG_LEVEL": s.log_level,
        "LOG_FILE": s.log_file,
        "SESSION_HOURS": s.session_hours,
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": s.is_production,
        "MAX_UPLOAD_MB": s.max_upload_mb,
        "MAX_CONTENT_LENGTH": s.max_upload_mb * 1024 * 1024,
    }

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _csv(value: str) -> List[str]:
    return [x.strip() for x in value.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    jwt_secret: str = "secret"
    jwt_algorithm: str = "HS256"
    token_expire_minutes: int = 60
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "marketplace"
    upload_dir: str = "uploads"
    max_upload_bytes: int = 5 * 1024 * 1024
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    port: int = 5000


def load_settings() -> Settings:
    return Settings(
        jwt_secret=os.getenv("JWT_SECRET", "").strip() or "secret",
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256").strip() or "HS256",
        token_expire_minutes=_int_env("TOKEN_EXPIRE_MINUTES", 60),
        database_url=os.getenv("DATABASE_URL", "").strip() or "mongodb://localhost:27017",
        database_name=os.getenv("DATABASE_NAME", "").strip() or "marketplace",
        upload_dir=os.getenv("UPLOAD_DIR", "").strip() or "uploads",
        max_upload_bytes=_int_env("MAX_UPLOAD_BYTES", 5 * 1024 * 1024),
        cors_origins=tuple(_csv(os.getenv("CORS_ORIGINS", "*"))) or ("*",),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        admin_email=os.getenv("ADMIN_EMAIL", "").strip() or None,
        admin_password=os.getenv("ADMIN_PASSWORD", "").strip() or None,
        port=_int_env("PORT", 5000),
    )

# backend/clinicstock/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Bearer tokens are HS256 JWTs signed with JWT_SECRET
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-me")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRE_MINUTES = int(os.environ.get("JWT_EXPIRE_MINUTES", "480"))

    # SQLite DB stored in backend/instance/clinicstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///clinicstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on any single store round trip before failing closed (503)
    STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "5"))

    IDENTITY_CACHE_TTL_SECONDS = float(os.environ.get("IDENTITY_CACHE_TTL_SECONDS", "300"))

    # Include the failing (category, permission) pair in 403 bodies
    EXPOSE_DENIED_PERMISSION = _env_bool("EXPOSE_DENIED_PERMISSION", True)

    MAX_BULK_OPERATIONS = int(os.environ.get("MAX_BULK_OPERATIONS", "100"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options_for(database_uri: str, timeout_seconds: float) -> dict:
    """
    Engine options that bound how long a request may block on the store.

    SQLite waits on its file lock (busy timeout); pooled servers wait on
    connection checkout.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {"pool_timeout": timeout_seconds, "pool_pre_ping": True}

# backend/config.py
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _to_bool(env_name: str, default: str = "false") -> bool:
    return (os.getenv(env_name, default) or "").strip().lower() in ("1", "true", "yes", "y")


def _csv(env_name: str, default: str) -> list:
    return [x.strip() for x in (os.getenv(env_name, default) or "").split(",") if x.strip()]


class Config:
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")

    # ---- Database ----
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///crowdfunding.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # ---- JWT ----
    JWT_SECRET_KEY = os.getenv("JWT_SECRET", os.getenv("SECRET_KEY", "dev-jwt-secret-change-me"))
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("JWT_EXPIRATION", "3600")))
    JWT_TOKEN_LOCATION = ["headers"]
    EMAIL_TOKEN_EXPIRES = timedelta(hours=int(os.getenv("EMAIL_TOKEN_HOURS", "24")))

    # ---- Accounts ----
    REQUIRE_EMAIL_VERIFICATION = _to_bool("REQUIRE_EMAIL_VERIFICATION", "true")
    ALLOW_ADMIN_REGISTRATION = _to_bool("ALLOW_ADMIN_REGISTRATION", "false")
    DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "")
    DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "")

    # ---- Encryption (Fernet key; empty -> per-process key) ----
    ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

    # ---- Uploads ----
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", "")  # empty -> <instance>/uploads
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_BYTES", str(60 * 1024 * 1024)))

    # ---- URLs ----
    APP_URL = os.getenv("APP_URL", "http://localhost:3001")
    API_URL = os.getenv("API_URL", "http://localhost:3000")
    CORS_ALLOWED_ORIGINS = _csv("CORS_ALLOWED_ORIGINS", "http://localhost:3001")

    # ---- Mail ----
    MAIL_SERVER = os.getenv("SMTP_HOST", os.getenv("MAIL_SERVER", "localhost"))
    MAIL_PORT = int(os.getenv("SMTP_PORT", os.getenv("MAIL_PORT", "587")))
    MAIL_USE_TLS = _to_bool("MAIL_USE_TLS", "true")
    MAIL_USE_SSL = _to_bool("MAIL_USE_SSL", "false")
    MAIL_USERNAME = os.getenv("SMTP_USER", os.getenv("MAIL_USERNAME"))
    MAIL_PASSWORD = os.getenv("SMTP_PASS", os.getenv("MAIL_PASSWORD"))
    MAIL_DEFAULT_SENDER = os.getenv("SMTP_FROM", os.getenv("MAIL_DEFAULT_SENDER", "noreply@atlas-f.ma"))
    MAIL_SUPPRESS_SEND = _to_bool("MAIL_SUPPRESS_SEND", "false")

    # ---- Logging / errors ----
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE", "")
    EXPOSE_ERROR_DETAILS = _to_bool("EXPOSE_ERROR_DETAILS", "true" if ENVIRONMENT == "development" else "false")

    # ---- Background jobs ----
    ENABLE_SCHEDULER = _to_bool("ENABLE_SCHEDULER", "true")
    SCHEDULER_DEV_MODE = _to_bool("SCHEDULER_DEV_MODE", "false")  # run the closer every minute


class TestingConfig(Config):
    TESTING = True
    ENVIRONMENT = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "testing-jwt-secret-with-enough-length-for-hs256"
    SECRET_KEY = "testing-secret"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@example.test"
    ENABLE_SCHEDULER = False
    EXPOSE_ERROR_DETAILS = False
    DEFAULT_ADMIN_EMAIL = ""
    DEFAULT_ADMIN_PASSWORD = ""
    LOG_FILE = ""

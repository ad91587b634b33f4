# app.py
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, jsonify

from backend.config import Config
from backend.container import build_services
from backend.errors import register_error_handlers
from backend.extensions import init_extensions, db  # single shared SQLAlchemy/Migrate/JWT instances

# ===== Blueprints =====
from backend.routes.auth_routes import auth_bp
from backend.routes.profile_routes import profile_bp
from backend.routes.project_routes import projects_bp
from backend.routes.documents_routes import documents_bp
from backend.routes.admin_routes import admin_bp
from backend.scheduler import start_scheduler
from backend.utils.emailing import send_project_status_email, send_verification_email

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


# ---------- helpers ----------
def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    logging.getLogger("backend").setLevel(level)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        app.logger.addHandler(handler)
        logging.getLogger("backend").addHandler(handler)


def _normalize_sqlite_uri(app: Flask) -> None:
    """
    If SQLALCHEMY_DATABASE_URI points at a *relative* SQLite file, rewrite it to an
    absolute path under app.instance_path and log the final location.
    """
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite:///") and uri != "sqlite:///:memory:":
        rel = uri[len("sqlite:///") :]
        if not os.path.isabs(rel):
            os.makedirs(app.instance_path, exist_ok=True)
            abs_path = os.path.join(app.instance_path, rel)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{abs_path}"
            app.logger.info("Normalized SQLite path -> %s", app.config["SQLALCHEMY_DATABASE_URI"])


def _resolve_upload_root(app: Flask) -> str:
    root = app.config.get("UPLOAD_DIR") or os.path.join(app.instance_path, "uploads")
    root = os.path.abspath(root)
    os.makedirs(root, exist_ok=True)
    app.config["UPLOAD_DIR"] = root
    return root


# =========================
#   Database bootstrap
# =========================
def _auto_db_bootstrap(app: Flask) -> None:
    """
    1) Run Alembic upgrade if migrations/ exists
    2) Otherwise create tables
    """
    from flask_migrate import upgrade

    migrations_dir = Path(__file__).resolve().parent / "migrations"
    with app.app_context():
        if migrations_dir.is_dir():
            upgrade(directory=str(migrations_dir))   # apply migrations
        else:
            db.create_all()                          # first-time dev


def _seed_default_admin(app: Flask) -> None:
    """
    Create the admin named by DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD
    exactly once. No-op when either is unset or the user already exists.
    """
    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").strip().lower()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    from backend.models import User
    from backend.services.accounts import hash_password

    with app.app_context():
        users = app.extensions["services"].users
        if users.get_by_email(admin_email):
            return  # already seeded

        admin = User(
            email=admin_email,
            password_hash=hash_password(admin_password),
            first_name="Platform",
            last_name="Admin",
            role="admin",
            email_verified=True,
        )
        users.add(admin)
        db.session.commit()
        app.logger.info("Default admin created: %s", admin_email)


# ---------- app factory ----------
def create_app(config_object=None, overrides=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    if overrides:
        app.config.update(overrides)

    _configure_logging(app)

    # Normalize SQLite path (avoid multiple relative files) BEFORE init db
    _normalize_sqlite_uri(app)
    upload_root = _resolve_upload_root(app)

    # Initialize db/migrate/jwt/mail/cors once
    init_extensions(app)
    register_error_handlers(app)

    app.extensions["services"] = build_services(
        db.session,
        app.config,
        upload_root,
        send_verification=send_verification_email,
        notify_status_change=send_project_status_email,
    )

    # ✅ Import models BEFORE DB bootstrap so metadata is loaded
    import backend.models  # noqa: F401

    _auto_db_bootstrap(app)
    _seed_default_admin(app)

    # Health check
    @app.get("/health")
    def health():
        return jsonify(status="ok", environment=app.config.get("ENVIRONMENT"))

    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(documents_bp)  # defines its own prefixes
    app.register_blueprint(admin_bp)

    if app.config.get("ENABLE_SCHEDULER") and not app.testing:
        app.extensions["scheduler"] = start_scheduler(app, dev_mode=app.config.get("SCHEDULER_DEV_MODE", False))

    app.logger.info(
        "App ready (env=%s, db=%s, uploads=%s)",
        app.config.get("ENVIRONMENT"),
        app.config.get("SQLALCHEMY_DATABASE_URI"),
        upload_root,
    )
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="localhost", port=int(os.getenv("PORT", "3000")), debug=True)

# extensions.py
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_mail import Mail
from cryptography.fernet import Fernet, InvalidToken
from flask import Flask, current_app
from flask_migrate import Migrate

# Extensions

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
mail = Mail()

# Used when ENCRYPTION_KEY is unset: fine for dev, not for prod data.
_PROCESS_KEY = Fernet.generate_key()


def _fernet() -> Fernet:
    return current_app.extensions["fernet"]


def encrypt_value(value):
    if value is None or value == "":
        return None
    return _fernet().encrypt(str(value).encode()).decode()


def decrypt_value(token):
    if not token:
        return None
    try:
        return _fernet().decrypt(token.encode()).decode()
    except InvalidToken:
        return None


def init_extensions(app: Flask):
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    app.extensions["fernet"] = Fernet(app.config.get("ENCRYPTION_KEY") or _PROCESS_KEY)
    CORS(
        app,
        supports_credentials=True,
        resources={r"/api/*": {"origins": app.config.get("CORS_ALLOWED_ORIGINS", "*")}},
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )

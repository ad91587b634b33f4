# backend/routes/auth_routes.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user

from backend.container import services
from backend.utils.auth import auth_required
from backend.validators import json_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ─────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────

@auth_bp.post("/register")
def register():
    """
    Accepts JSON: { email, password, role, first_name, last_name, phone?, ... }
    Creates the user and its investor/company profile, then mails a
    verification link.
    """
    data = json_object()
    user = services().accounts.register_user(data)
    current_app.logger.info("New %s account %s", user.role, user.id)
    return jsonify({
        "ok": True,
        "message": "User registered. Please verify your email."
        if not user.email_verified else "User registered.",
        "user": user.to_dict(),
    }), 201


@auth_bp.get("/verify-email")
def verify_email():
    user = services().accounts.verify_email(request.args.get("token"))
    return jsonify({"ok": True, "message": "Email verified successfully", "user": user.to_brief()}), 200


@auth_bp.post("/login")
def login():
    """Accepts JSON: { email, password } and returns a Bearer access token."""
    data = json_object()
    token, user = services().accounts.login(data.get("email"), data.get("password"))
    return jsonify({"ok": True, "access_token": token, "user": user.to_dict()}), 200


@auth_bp.get("/me")
@auth_required()
def me():
    body = services().accounts.profile_of(current_user)
    return jsonify({"ok": True, **body}), 200

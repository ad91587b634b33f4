# backend/routes/profile_routes.py
from __future__ import annotations

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from backend.container import services
from backend.utils.auth import auth_required
from backend.validators import json_object

profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.route("", methods=["GET"], strict_slashes=False)
@auth_required()
def get_profile():
    return jsonify({"ok": True, **services().accounts.profile_of(current_user)}), 200


@profile_bp.route("", methods=["PUT"], strict_slashes=False)
@auth_required()
def update_profile():
    """Personal fields only; email and role are fixed after registration."""
    data = json_object()
    user = services().accounts.update_user(current_user, data)
    return jsonify({"ok": True, "user": user.to_dict()}), 200


@profile_bp.patch("/investor")
@auth_required("investor")
def update_investor_profile():
    data = json_object()
    profile = services().accounts.update_investor_profile(current_user, data)
    return jsonify({"ok": True, "investor_profile": profile.to_dict()}), 200


@profile_bp.patch("/company")
@auth_required("company")
def update_company_profile():
    data = json_object()
    profile = services().accounts.update_company_profile(current_user, data)
    return jsonify({"ok": True, "company_profile": profile.to_dict()}), 200

# backend/routes/admin_routes.py
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import current_user

from backend.container import services
from backend.utils.auth import auth_required
from backend.validators import json_object

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# ─────────────────────── Review queue ───────────────────────

@admin_bp.get("/projects")
@auth_required("admin")
def list_projects():
    """
    ?status=submitted|...|all&page=1&limit=10&sort=created_at&order=DESC
    ``status`` defaults to the submitted queue.
    """
    args = request.args
    result = services().admin_review.list_projects(
        status=args.get("status"),
        page=args.get("page"),
        limit=args.get("limit"),
        sort=args.get("sort"),
        order=args.get("order"),
    )
    return jsonify({"ok": True, **result}), 200


@admin_bp.get("/projects/<int:project_id>")
@auth_required("admin")
def project_detail(project_id: int):
    body = services().admin_review.project_detail(project_id, current_user)
    return jsonify({"ok": True, "project": body}), 200


# ─────────────────────── Status changes ───────────────────────

@admin_bp.patch("/projects/<int:project_id>/status")
@auth_required("admin")
def change_status(project_id: int):
    """Accepts JSON: { status: under_review|approved|rejected|active, review_notes?, risk_rating? }"""
    data = json_object()
    project = services().lifecycle.change_status(
        project_id,
        current_user,
        data.get("status"),
        review_notes=data.get("review_notes"),
        risk_rating=data.get("risk_rating"),
    )
    current_app.logger.info(
        "Admin %s moved project %s to %s", current_user.id, project.id, project.status
    )
    return jsonify({"ok": True, "project": project.to_dict()}), 200

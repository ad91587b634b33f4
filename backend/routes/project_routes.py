# backend/routes/project_routes.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, get_current_user

from backend.container import services
from backend.utils.auth import auth_required
from backend.validators import json_object

projects_bp = Blueprint("projects", __name__, url_prefix="/api/projects")


@projects_bp.route("", methods=["POST"], strict_slashes=False)
@auth_required("company")
def create_project():
    data = json_object()
    project = services().lifecycle.create_project(current_user, data)
    return jsonify({"ok": True, "project": project.to_dict()}), 201


@projects_bp.route("", methods=["GET"], strict_slashes=False)
@auth_required(optional=True)
def list_projects():
    """Public catalogue; admins also see projects that are not yet public."""
    projects = services().lifecycle.list_public(
        get_current_user(),
        industry=(request.args.get("industry") or "").strip() or None,
        impact=(request.args.get("impact") or "").strip() or None,
    )
    return jsonify({"ok": True, "projects": [p.to_dict() for p in projects]}), 200


@projects_bp.get("/mine")
@auth_required("company")
def my_projects():
    projects = services().lifecycle.list_mine(current_user)
    return jsonify({"ok": True, "projects": [p.to_dict() for p in projects]}), 200


@projects_bp.get("/<int:project_id>")
@auth_required(optional=True)
def get_project(project_id: int):
    project = services().lifecycle.get_visible(project_id, get_current_user())
    return jsonify({"ok": True, "project": project.to_dict()}), 200


@projects_bp.put("/<int:project_id>")
@auth_required("company", "admin")
def update_project(project_id: int):
    data = json_object()
    project = services().lifecycle.update_project(project_id, current_user, data)
    return jsonify({"ok": True, "project": project.to_dict()}), 200


@projects_bp.post("/<int:project_id>/submit")
@auth_required("company")
def submit_project(project_id: int):
    project = services().lifecycle.submit_project(project_id, current_user)
    return jsonify({
        "ok": True,
        "message": "Project submitted for review",
        "project": project.to_dict(),
    }), 200


@projects_bp.post("/<int:project_id>/review")
@auth_required("admin")
def review_project(project_id: int):
    """Accepts JSON: { status: approved|rejected, review_notes?, risk_rating? }"""
    data = json_object()
    project = services().lifecycle.review_project(
        project_id,
        get_current_user(),
        data.get("status"),
        review_notes=data.get("review_notes"),
        risk_rating=data.get("risk_rating"),
    )
    current_app.logger.info("Admin %s reviewed project %s: %s", current_user.id, project.id, project.status)
    return jsonify({"ok": True, "message": f"Project {project.status}", "project": project.to_dict()}), 200

# backend/routes/documents_routes.py
from flask import Blueprint, request, jsonify, send_file
from flask_jwt_extended import current_user

from backend.container import services
from backend.utils.auth import auth_required
from backend.validators import json_object

documents_bp = Blueprint("documents", __name__)


# ─────────────────────────────────────────────────────────────
# Upload / list (per project)
# ─────────────────────────────────────────────────────────────
@documents_bp.post("/api/projects/<int:project_id>/documents")
@auth_required("company")
def upload_document(project_id: int):
    """multipart/form-data: document=<file>, docType=<type>"""
    doc = services().document_service.upload(
        project_id,
        current_user,
        request.files.get("document"),
        (request.form.get("docType") or "").strip() or None,
    )
    return jsonify(ok=True, message="Document uploaded", document=doc.to_dict()), 201


@documents_bp.get("/api/projects/<int:project_id>/documents")
@auth_required("company", "admin")
def list_documents(project_id: int):
    docs = services().document_service.list_for_project(project_id, current_user)
    return jsonify(ok=True, documents=[d.to_dict() for d in docs])


# ─────────────────────────────────────────────────────────────
# Single document
# ─────────────────────────────────────────────────────────────
@documents_bp.get("/api/documents/<int:doc_id>/download")
@auth_required()
def download_document(doc_id: int):
    doc, path = services().document_service.open_for_download(doc_id, current_user)
    return send_file(
        path,
        mimetype=doc.mime_type or "application/octet-stream",
        as_attachment=True,
        download_name=doc.original_filename,
    )


@documents_bp.delete("/api/documents/<int:doc_id>")
@auth_required("company", "admin")
def delete_document(doc_id: int):
    services().document_service.delete(doc_id, current_user)
    return jsonify(ok=True)


@documents_bp.put("/api/documents/<int:doc_id>/verify")
@auth_required("admin")
def verify_document(doc_id: int):
    """Accepts JSON: { verified: bool, notes? }"""
    data = json_object()
    doc = services().document_service.verify(doc_id, current_user, data.get("verified"), data.get("notes"))
    return jsonify(ok=True, document=doc.to_dict())

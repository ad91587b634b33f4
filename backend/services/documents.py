# backend/services/documents.py
from __future__ import annotations

import logging
import mimetypes
import os
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from werkzeug.utils import secure_filename

from backend.errors import ForbiddenError, NotFoundError, PayloadTooLargeError, ValidationError
from backend.models import Document
from backend.services.lifecycle import check_project_access
from backend.validators import FieldErrors

logger = logging.getLogger(__name__)

MB = 1024 * 1024

ALLOWED_MIME_TYPES = {
    "id_card": ("image/jpeg", "image/png", "application/pdf"),
    "passport": ("image/jpeg", "image/png", "application/pdf"),
    "company_registration": ("application/pdf",),
    "business_plan": (
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    "financial_statements": (
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    ),
    "project_image": ("image/jpeg", "image/png", "image/webp"),
    "project_video": ("video/mp4", "video/webm"),
    "other": ("application/pdf", "image/jpeg", "image/png"),
}
DOC_TYPES = tuple(ALLOWED_MIME_TYPES)

SIZE_LIMITS = {"project_image": 5 * MB, "project_video": 50 * MB}
DEFAULT_SIZE_LIMIT = 10 * MB

# Documents can be added or removed by the owner until review starts.
EDITABLE_STATUSES = ("draft", "submitted")


def size_limit_for(doc_type: str) -> int:
    return SIZE_LIMITS.get(doc_type, DEFAULT_SIZE_LIMIT)


def _mime_of(file_storage, filename: str) -> str:
    mime = (file_storage.mimetype or "").lower()
    if not mime or mime == "application/octet-stream":
        mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return mime


class DocumentService:
    """Files attached to projects, stored under ``upload_root`` by type and month."""

    def __init__(self, session, documents, projects, companies, upload_root: str):
        self.session = session
        self.documents = documents
        self.projects = projects
        self.companies = companies
        self.upload_root = upload_root

    # ---------- paths ----------
    def absolute_path(self, document: Document) -> str:
        root = os.path.realpath(self.upload_root)
        path = os.path.realpath(os.path.join(root, document.file_path))
        if os.path.commonpath([root, path]) != root:
            raise NotFoundError("File not found", code="FILE_NOT_FOUND")
        return path

    def _target_for(self, doc_type: str, filename: str) -> Tuple[str, str]:
        ext = os.path.splitext(filename)[1].lower()
        relative = os.path.join(doc_type, datetime.utcnow().strftime("%Y-%m"), f"{uuid.uuid4().hex}{ext}")
        absolute = os.path.join(self.upload_root, relative)
        os.makedirs(os.path.dirname(absolute), exist_ok=True)
        return relative, absolute

    def _remove_file(self, path: str) -> None:
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError:
            logger.warning("Could not remove %s", path, exc_info=True)

    # ---------- access ----------
    def _owner_or_admin(self, project_id, user):
        return check_project_access(
            self.projects, self.companies, project_id, user.id, None, bypass_ownership=user.is_admin
        )

    def _get(self, document_id) -> Document:
        document = self.documents.get(document_id)
        if not document:
            raise NotFoundError("Document not found", code="DOCUMENT_NOT_FOUND")
        return document

    def _check_readable(self, document: Document, user) -> None:
        if user.is_admin:
            return
        if document.project_id is None:
            if document.user_id != user.id:
                raise ForbiddenError("Access denied to this document.", code="AUTH_NOT_DOCUMENT_OWNER")
            return
        self._owner_or_admin(document.project_id, user)

    # ---------- operations ----------
    def upload(self, project_id, user, file_storage, doc_type: Optional[str]) -> Document:
        project = check_project_access(self.projects, self.companies, project_id, user.id, EDITABLE_STATUSES)

        errors = FieldErrors()
        if file_storage is None or not file_storage.filename:
            errors.add("document", "No file was uploaded")
        if not doc_type:
            errors.add("docType", "Document type is required")
        elif doc_type not in ALLOWED_MIME_TYPES:
            errors.add("docType", f"docType must be one of: {', '.join(DOC_TYPES)}")
        errors.raise_if_any("Invalid document upload", code="INVALID_DOCUMENT")

        original = secure_filename(file_storage.filename) or "upload.bin"
        mime = _mime_of(file_storage, original)
        allowed = ALLOWED_MIME_TYPES[doc_type]
        if mime not in allowed:
            raise ValidationError(
                f"File type not allowed. Accepted types for {doc_type}: {', '.join(allowed)}",
                code="INVALID_FILE_TYPE",
                errors=[{"field": "document", "message": f"{mime} is not accepted for {doc_type}"}],
            )

        relative, absolute = self._target_for(doc_type, original)
        file_storage.save(absolute)
        size = os.path.getsize(absolute)
        limit = size_limit_for(doc_type)
        if size > limit:
            self._remove_file(absolute)
            raise PayloadTooLargeError(
                f"File too large. Maximum: {limit // MB}MB", code="FILE_TOO_LARGE", payload={"maxBytes": limit}
            )

        document = Document(
            user_id=user.id,
            project_id=project.id,
            doc_type=doc_type,
            file_path=relative,
            original_filename=original,
            mime_type=mime,
            size_bytes=size,
        )
        try:
            self.documents.add(document)
            self.session.commit()
        except Exception:
            self.session.rollback()
            self._remove_file(absolute)
            raise

        logger.info("Document %s (%s) uploaded to project %s by user %s", document.id, doc_type, project.id, user.id)
        return document

    def list_for_project(self, project_id, user) -> List[Document]:
        project = self._owner_or_admin(project_id, user)
        return self.documents.list_for_project(project.id)

    def open_for_download(self, document_id, user) -> Tuple[Document, str]:
        document = self._get(document_id)
        self._check_readable(document, user)
        path = self.absolute_path(document)
        if not os.path.exists(path):
            raise NotFoundError("File missing on server.", code="FILE_NOT_FOUND")
        return document, path

    def delete(self, document_id, user) -> None:
        document = self._get(document_id)
        if not user.is_admin:
            if document.project_id is None:
                if document.user_id != user.id:
                    raise ForbiddenError("Access denied to this document.", code="AUTH_NOT_DOCUMENT_OWNER")
            else:
                check_project_access(
                    self.projects, self.companies, document.project_id, user.id, EDITABLE_STATUSES
                )

        path = self.absolute_path(document)
        self.documents.delete(document)
        self.session.commit()
        self._remove_file(path)
        logger.info("Document %s deleted by user %s", document_id, user.id)

    def verify(self, document_id, admin, verified, notes=None) -> Document:
        errors = FieldErrors()
        if not isinstance(verified, bool):
            errors.add("verified", "verified must be true or false")
        if notes is not None and (not isinstance(notes, str) or len(notes) > 500):
            errors.add("notes", "notes must be a string of at most 500 characters")
        errors.raise_if_any("Invalid verification")

        document = self._get(document_id)
        document.verified = verified
        if notes is not None:
            document.verification_notes = notes.strip() or None
        self.session.commit()
        logger.info("Document %s marked verified=%s by admin %s", document.id, verified, admin.id)
        return document

# backend/container.py
"""
Composition root: build every repository once over the given session and
hand them to the services that need them. ``create_app`` stores the result in
``app.extensions["services"]``; routes reach it through ``services()``.
"""
from __future__ import annotations

from types import SimpleNamespace

from flask import current_app

from backend.repositories import (
    CompanyProfileRepository,
    DocumentRepository,
    InvestorProfileRepository,
    ProjectContentRepository,
    ProjectRepository,
    TransactionRepository,
    UserRepository,
)
from backend.services.accounts import AccountService
from backend.services.admin_review import AdminReviewService
from backend.services.documents import DocumentService
from backend.services.lifecycle import ProjectLifecycle


def build_services(session, config, upload_root: str, send_verification=None, notify_status_change=None):
    users = UserRepository(session)
    companies = CompanyProfileRepository(session)
    investors = InvestorProfileRepository(session)
    projects = ProjectRepository(session)
    documents = DocumentRepository(session)
    transactions = TransactionRepository(session)
    content = ProjectContentRepository(session)

    return SimpleNamespace(
        users=users,
        companies=companies,
        investors=investors,
        projects=projects,
        documents=documents,
        transactions=transactions,
        content=content,
        accounts=AccountService(session, users, companies, investors, config, send_verification),
        lifecycle=ProjectLifecycle(
            session, projects, companies, documents, transactions, users, notify_status_change
        ),
        document_service=DocumentService(session, documents, projects, companies, upload_root),
        admin_review=AdminReviewService(projects, companies, users, documents, transactions, content),
    )


def services():
    return current_app.extensions["services"]

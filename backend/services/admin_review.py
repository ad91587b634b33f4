# backend/services/admin_review.py
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Dict, Optional

from backend.errors import NotFoundError
from backend.models import PROJECT_STATUSES
from backend.services.admin_stats import compute_admin_statistics, compute_risk_indicators
from backend.validators import FieldErrors, parse_positive_int

logger = logging.getLogger(__name__)

DEFAULT_LIST_STATUS = "submitted"
MAX_PAGE_SIZE = 100


def _company_brief(company) -> Optional[Dict[str, Any]]:
    if not company:
        return None
    owner = company.user
    return {
        "id": company.id,
        "company_name": company.company_name,
        "industry_sector": company.industry_sector,
        "kyc_status": company.kyc_status,
        "user": owner.to_brief() if owner else None,
    }


class AdminReviewService:
    """Read side of the admin project pages: the review queue and the project dossier."""

    def __init__(self, projects, companies, users, documents, transactions, content):
        self.projects = projects
        self.companies = companies
        self.users = users
        self.documents = documents
        self.transactions = transactions
        self.content = content

    def list_projects(self, status=None, page=None, limit=None, sort=None, order=None) -> Dict[str, Any]:
        errors = FieldErrors()

        status = (status or DEFAULT_LIST_STATUS).strip()
        if status == "all":
            status_filter = None
        elif status in PROJECT_STATUSES:
            status_filter = status
        else:
            errors.add("status", f"status must be 'all' or one of: {', '.join(PROJECT_STATUSES)}")
            status_filter = None

        page = parse_positive_int(page, "page", 1, errors=errors)
        limit = parse_positive_int(limit, "limit", 10, maximum=MAX_PAGE_SIZE, errors=errors)

        sort = sort or "created_at"
        if sort not in self.projects.SORTABLE:
            errors.add("sort", f"sort must be one of: {', '.join(self.projects.SORTABLE)}")

        order = (order or "DESC").upper()
        if order not in ("ASC", "DESC"):
            errors.add("order", "order must be ASC or DESC")

        errors.raise_if_any("Invalid query parameters", code="INVALID_QUERY")

        rows, total = self.projects.paginate(status_filter, page, limit, sort, order)
        items = []
        for project in rows:
            body = project.to_dict()
            body["company"] = _company_brief(project.company)
            body["reviewer"] = project.reviewer.to_brief() if project.reviewer else None
            items.append(body)

        return {
            "projects": items,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if total else 0,
            },
        }

    def project_detail(self, project_id, admin, today: Optional[date] = None) -> Dict[str, Any]:
        project = self.projects.get(project_id)
        if not project:
            raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")

        company = self.companies.get(project.company_id)
        founder = self.users.get(company.user_id) if company else None
        documents = self.documents.list_for_project(project.id)
        investments = self.transactions.investments_for_project(project.id)
        donations = self.transactions.donations_for_project(project.id)
        team = self.content.team(project.id)
        faqs = self.content.faqs(project.id)
        updates = self.content.updates(project.id)
        rewards = self.content.rewards(project.id)

        body = project.to_dict()
        body["company"] = company.to_dict() if company else None
        body["founder"] = founder.to_dict() if founder else None
        body["reviewer"] = project.reviewer.to_brief() if project.reviewer else None
        body["documents"] = [d.to_dict() for d in documents]
        body["team"] = [m.to_dict() for m in team]
        body["faqs"] = [f.to_dict() for f in faqs]
        body["updates"] = [u.to_dict() for u in updates]
        body["rewards"] = [r.to_dict() for r in rewards]
        body["investments"] = [t.to_dict() for t in investments]
        body["donations"] = [t.to_dict() for t in donations]
        body["adminStatistics"] = compute_admin_statistics(
            project, documents, investments, donations, team, faqs, updates, rewards, today=today
        )
        body["riskIndicators"] = compute_risk_indicators(company, founder, documents, team, faqs, updates)

        logger.info("Admin %s accessed project details for project %s", admin.id, project.id)
        return body

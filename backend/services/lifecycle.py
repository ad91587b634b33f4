# backend/services/lifecycle.py
"""
Project lifecycle: the status state machine, the access gate in front of it,
and every write that moves a project from one status to another.

    draft -> submitted -> under_review -> approved | rejected
             submitted ----------------> approved | rejected
    approved -> active -> funded | failed

Each transition is a single conditional UPDATE keyed on the status observed
when the project was read. If another request moved the project in between,
no row matches and the transition is refused as if that newer status had been
read in the first place.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from backend.errors import BadRequestError, ForbiddenError, NotFoundError
from backend.models import PROJECT_STATUSES, Project
from backend.services.admin_stats import compute_funding_totals
from backend.services.readiness import check_submission_readiness
from backend.validators import FieldErrors, parse_project_payload

logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "draft": ("submitted",),
    "submitted": ("under_review", "approved", "rejected"),
    "under_review": ("approved", "rejected"),
    "approved": ("active",),
    "rejected": (),
    "active": ("funded", "failed"),
    "funded": (),
    "failed": (),
}

PUBLIC_STATUSES = ("approved", "active", "funded")
TERMINAL_STATUSES = tuple(s for s, nxt in TRANSITIONS.items() if not nxt)
REVIEWABLE_STATUSES = ("submitted", "under_review")
REVIEW_DECISIONS = ("approved", "rejected")
ADMIN_STATUS_TARGETS = ("under_review", "approved", "rejected", "active")


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def check_project_access(
    projects,
    companies,
    project_id,
    user_id,
    allowed_statuses: Optional[Iterable[str]] = None,
    *,
    bypass_ownership: bool = False,
) -> Project:
    """
    Single gate in front of every mutating project operation.

    Ownership is skipped only when the caller passes ``bypass_ownership``
    (admins); this function never looks at roles itself. A non-None
    ``allowed_statuses`` is enforced for everyone.
    """
    project = projects.get(project_id)
    if not project:
        raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")

    if not bypass_ownership:
        company = companies.get_by_user_id(user_id)
        if not company or project.company_id != company.id:
            raise ForbiddenError(
                "Access denied. You are not the owner of this project.",
                code="AUTH_NOT_PROJECT_OWNER",
            )

    if allowed_statuses is not None and project.status not in set(allowed_statuses):
        raise _status_not_allowed(project.status)

    return project


def _status_not_allowed(status: str) -> ForbiddenError:
    return ForbiddenError(
        f"Action not allowed for project with status '{status}'.",
        code="PROJECT_STATUS_NOT_ALLOWED",
        payload={"status": status},
    )


def _not_reviewable(status: str) -> BadRequestError:
    return BadRequestError(
        "Project is not in a reviewable state.",
        code="PROJECT_NOT_REVIEWABLE",
        payload={"status": status},
    )


def _invalid_transition(current: str, target: str) -> BadRequestError:
    return BadRequestError(
        f"Cannot move project from '{current}' to '{target}'.",
        code="INVALID_STATUS_TRANSITION",
        payload={"status": current, "requestedStatus": target},
    )


def _incomplete(missing_fields: List[str], missing_documents: List[str]) -> BadRequestError:
    if missing_fields and missing_documents:
        code, message = "PROJECT_INCOMPLETE", "Project is missing required fields and documents."
    elif missing_documents:
        code, message = "MISSING_REQUIRED_DOCUMENTS", "Project is missing required documents."
    else:
        code, message = "MISSING_REQUIRED_FIELDS", "Project is missing required fields."

    errors = [{"field": f, "message": f"{f} is required"} for f in missing_fields]
    errors += [{"field": d, "message": f"document '{d}' is required"} for d in missing_documents]
    return BadRequestError(
        message,
        code=code,
        errors=errors,
        payload={"missingFields": missing_fields, "missingDocuments": missing_documents},
    )


class ProjectLifecycle:
    def __init__(
        self,
        session,
        projects,
        companies,
        documents,
        transactions,
        users,
        notify_status_change: Optional[Callable] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.projects = projects
        self.companies = companies
        self.documents = documents
        self.transactions = transactions
        self.users = users
        self.notify_status_change = notify_status_change
        self.clock = clock

    # ---------- access ----------
    def check_access(self, project_id, user_id, allowed_statuses=None, *, bypass_ownership=False) -> Project:
        return check_project_access(
            self.projects,
            self.companies,
            project_id,
            user_id,
            allowed_statuses,
            bypass_ownership=bypass_ownership,
        )

    def _company_for(self, user):
        company = self.companies.get_by_user_id(user.id)
        if not company:
            raise NotFoundError("Company profile not found", code="COMPANY_PROFILE_NOT_FOUND")
        return company

    # ---------- reads ----------
    def list_public(self, user=None, industry=None, impact=None) -> List[Project]:
        statuses = None if (user is not None and user.is_admin) else PUBLIC_STATUSES
        return self.projects.list_public(statuses, industry=industry, impact=impact)

    def list_mine(self, user) -> List[Project]:
        return self.projects.list_for_company(self._company_for(user).id)

    def get_visible(self, project_id, user=None) -> Project:
        project = self.projects.get(project_id)
        if not project:
            raise NotFoundError("Project not found", code="PROJECT_NOT_FOUND")
        if project.status in PUBLIC_STATUSES:
            return project
        if user is not None:
            if user.is_admin:
                return project
            company = self.companies.get_by_user_id(user.id)
            if company and company.id == project.company_id:
                return project
        raise ForbiddenError("Access denied. Insufficient permissions.", code="AUTH_INSUFFICIENT_PERMISSIONS")

    # ---------- content ----------
    def create_project(self, user, payload) -> Project:
        company = self._company_for(user)
        values = parse_project_payload(payload, admin=False, require_title=True)
        project = Project(company_id=company.id, status="draft", **values)
        self.projects.add(project)
        self.session.commit()
        logger.info("Project %s created by company %s", project.id, company.id)
        return project

    def update_project(self, project_id, user, payload) -> Project:
        is_admin = user.is_admin
        project = self.check_access(
            project_id,
            user.id,
            None if is_admin else ["draft"],
            bypass_ownership=is_admin,
        )
        values = parse_project_payload(payload, admin=is_admin)
        if not values:
            return project

        expected = PROJECT_STATUSES if is_admin else ("draft",)
        if not self.projects.update_if_status(project.id, expected, values):
            self.session.rollback()
            raise _status_not_allowed(self.projects.refresh(project).status)
        self.session.commit()
        logger.info("Project %s updated by user %s (%s)", project.id, user.id, ", ".join(sorted(values)))
        return self.projects.refresh(project)

    # ---------- transitions ----------
    def _write_transition(self, project: Project, target: str, values: Dict, refuse: Callable[[str], Exception]) -> Project:
        observed = project.status
        if not can_transition(observed, target):
            raise refuse(observed)

        changes = dict(values)
        changes["status"] = target
        if not self.projects.update_if_status(project.id, [observed], changes):
            self.session.rollback()
            current = self.projects.refresh(project).status
            logger.warning(
                "Project %s moved from %s to %s concurrently; %s refused", project.id, observed, current, target
            )
            raise refuse(current)

        self.session.commit()
        logger.info("Project %s: %s -> %s", project.id, observed, target)
        return self.projects.refresh(project)

    def submit_project(self, project_id, user) -> Project:
        project = self.check_access(project_id, user.id, ["draft"])

        readiness = check_submission_readiness(project, self.documents.list_for_project(project.id))
        if not readiness.ready:
            raise _incomplete(readiness.missing_fields, readiness.missing_documents)

        return self._write_transition(
            project, "submitted", {"submitted_at": self.clock()}, _status_not_allowed
        )

    def review_project(self, project_id, admin, decision, review_notes=None, risk_rating=None) -> Project:
        errors = FieldErrors()
        status_error = None
        if decision not in REVIEW_DECISIONS:
            errors.add("status", 'Invalid status value. Must be "approved" or "rejected".')
            status_error = "INVALID_STATUS"
        rating = _check_review_fields(errors, review_notes, risk_rating, status_error)

        project = self.check_access(project_id, admin.id, None, bypass_ownership=True)
        if project.status not in REVIEWABLE_STATUSES:
            raise _not_reviewable(project.status)

        values = {
            "reviewer_id": admin.id,
            "review_notes": review_notes if review_notes is not None else project.review_notes,
            "risk_rating": rating if rating is not None else project.risk_rating,
        }
        project = self._write_transition(project, decision, values, _not_reviewable)
        self._notify(project)
        return project

    def start_review(self, project_id, admin, review_notes=None, risk_rating=None) -> Project:
        project = self.check_access(project_id, admin.id, None, bypass_ownership=True)
        return self._write_transition(
            project,
            "under_review",
            _review_extras(review_notes, risk_rating),
            lambda s: _invalid_transition(s, "under_review"),
        )

    def activate_project(self, project_id, admin, review_notes=None, risk_rating=None) -> Project:
        project = self.check_access(project_id, admin.id, None, bypass_ownership=True)
        values = _review_extras(review_notes, risk_rating)
        if project.start_date is None:
            values["start_date"] = self.clock().date()
        return self._write_transition(project, "active", values, lambda s: _invalid_transition(s, "active"))

    def change_status(self, project_id, admin, target, review_notes=None, risk_rating=None) -> Project:
        """
        Admin status endpoint: route the requested status to its transition.
        Notes and rating are checked for every target and stored when given.
        """
        if target in REVIEW_DECISIONS:
            return self.review_project(project_id, admin, target, review_notes, risk_rating)

        errors = FieldErrors()
        status_error = None
        if target not in ADMIN_STATUS_TARGETS:
            errors.add("status", f"Invalid status. Must be one of: {', '.join(ADMIN_STATUS_TARGETS)}")
            status_error = "INVALID_STATUS"
        rating = _check_review_fields(errors, review_notes, risk_rating, status_error)

        if target == "under_review":
            return self.start_review(project_id, admin, review_notes, rating)
        return self.activate_project(project_id, admin, review_notes, rating)

    def close_expired_campaigns(self, today: Optional[date] = None) -> List[Tuple[int, str]]:
        """Move every active project past its end_date to funded or failed."""
        today = today or self.clock().date()
        closed = []
        for project in self.projects.list_expired_active(today):
            totals = compute_funding_totals(
                project,
                self.transactions.investments_for_project(project.id),
                self.transactions.donations_for_project(project.id),
            )
            reached = totals["fundingGoal"] > 0 and totals["totalRaised"] >= totals["fundingGoal"]
            target = "funded" if reached else "failed"
            try:
                project = self._write_transition(project, target, {}, lambda s, t=target: _invalid_transition(s, t))
            except BadRequestError:
                continue
            closed.append((project.id, target))
            self._notify(project)
        return closed

    # ---------- notifications ----------
    def _notify(self, project: Project) -> None:
        if not self.notify_status_change:
            return
        company = self.companies.get(project.company_id)
        owner = self.users.get(company.user_id) if company else None
        if owner:
            self.notify_status_change(owner, project)


def _parse_risk_rating(value, errors: FieldErrors):
    """Return an int in 1..5, None when absent, or False after recording an error."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        errors.add("risk_rating", "Risk rating must be between 1 and 5")
        return False
    try:
        rating = int(value)
        if isinstance(value, float) and not value.is_integer():
            raise ValueError
    except (TypeError, ValueError):
        errors.add("risk_rating", "Risk rating must be between 1 and 5")
        return False
    if not 1 <= rating <= 5:
        errors.add("risk_rating", "Risk rating must be between 1 and 5")
        return False
    return rating


def _check_review_fields(errors: FieldErrors, review_notes, risk_rating, code: Optional[str] = None):
    """Raise one 422 for everything collected so far; return the parsed rating."""
    rating = _parse_risk_rating(risk_rating, errors)
    if rating is False:
        code = code or "INVALID_RISK_RATING"
    if review_notes is not None and not isinstance(review_notes, str):
        errors.add("review_notes", "review_notes must be a string")
    errors.raise_if_any("Invalid review", code=code or "VALIDATION_ERROR")
    return rating


def _review_extras(review_notes, risk_rating) -> Dict:
    values = {}
    if review_notes is not None:
        values["review_notes"] = review_notes
    if risk_rating is not None:
        values["risk_rating"] = risk_rating
    return values

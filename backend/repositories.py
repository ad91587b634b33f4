# backend/repositories.py
"""
One repository per entity, each bound to the session it is given at startup.

Repositories only read and stage writes; committing is the job of the service
that owns the unit of work.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import asc, desc, func

from backend.models import (
    CompanyProfile,
    DonationTransaction,
    Document,
    InvestmentTransaction,
    InvestorProfile,
    Project,
    ProjectFAQ,
    ProjectTeamMember,
    ProjectUpdate,
    Reward,
    User,
)


class _Repository:
    def __init__(self, session):
        self.session = session

    def add(self, obj):
        self.session.add(obj)
        return obj

    def flush(self):
        self.session.flush()


class UserRepository(_Repository):
    def get(self, user_id) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        email = (email or "").strip().lower()
        if not email:
            return None
        return self.session.query(User).filter(func.lower(User.email) == email).first()


class CompanyProfileRepository(_Repository):
    def get(self, profile_id) -> Optional[CompanyProfile]:
        return self.session.get(CompanyProfile, profile_id)

    def get_by_user_id(self, user_id) -> Optional[CompanyProfile]:
        if user_id is None:
            return None
        return self.session.query(CompanyProfile).filter_by(user_id=user_id).first()


class InvestorProfileRepository(_Repository):
    def get_by_user_id(self, user_id) -> Optional[InvestorProfile]:
        if user_id is None:
            return None
        return self.session.query(InvestorProfile).filter_by(user_id=user_id).first()


class ProjectRepository(_Repository):
    SORTABLE = ("created_at", "updated_at", "submitted_at", "title", "funding_goal", "status")

    def get(self, project_id) -> Optional[Project]:
        return self.session.get(Project, project_id)

    def refresh(self, project: Project) -> Project:
        self.session.refresh(project)
        return project

    def list_for_company(self, company_id) -> List[Project]:
        return (
            self.session.query(Project)
            .filter(Project.company_id == company_id)
            .order_by(Project.created_at.desc(), Project.id.desc())
            .all()
        )

    def list_public(self, statuses: Optional[Sequence[str]], industry=None, impact=None) -> List[Project]:
        q = self.session.query(Project)
        if statuses is not None:
            q = q.filter(Project.status.in_(list(statuses)))
        if industry:
            q = q.filter(Project.industry_sector == industry)
        if impact:
            q = q.filter(Project.impact_type == impact)
        return q.order_by(Project.created_at.desc(), Project.id.desc()).all()

    def paginate(
        self,
        status: Optional[str],
        page: int,
        limit: int,
        sort: str = "created_at",
        order: str = "DESC",
    ) -> Tuple[List[Project], int]:
        q = self.session.query(Project)
        if status:
            q = q.filter(Project.status == status)
        total = q.count()

        column = getattr(Project, sort if sort in self.SORTABLE else "created_at")
        direction = asc if (order or "").upper() == "ASC" else desc
        rows = (
            q.order_by(direction(column), direction(Project.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def list_expired_active(self, today: date) -> List[Project]:
        return (
            self.session.query(Project)
            .filter(Project.status == "active", Project.end_date.isnot(None), Project.end_date < today)
            .all()
        )

    def update_if_status(self, project_id, expected_statuses: Iterable[str], values: Dict) -> bool:
        """
        Conditional UPDATE: apply ``values`` only if the row still has one of
        ``expected_statuses``. Returns False when another writer got there first.
        """
        values = dict(values)
        values.setdefault("updated_at", datetime.utcnow())
        count = (
            self.session.query(Project)
            .filter(Project.id == project_id, Project.status.in_(list(expected_statuses)))
            .update(values, synchronize_session=False)
        )
        return count == 1


class DocumentRepository(_Repository):
    def get(self, document_id) -> Optional[Document]:
        return self.session.get(Document, document_id)

    def list_for_project(self, project_id) -> List[Document]:
        return (
            self.session.query(Document)
            .filter(Document.project_id == project_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
            .all()
        )

    def delete(self, document: Document) -> None:
        self.session.delete(document)


class TransactionRepository(_Repository):
    def investments_for_project(self, project_id) -> List[InvestmentTransaction]:
        return (
            self.session.query(InvestmentTransaction)
            .filter(InvestmentTransaction.project_id == project_id)
            .order_by(InvestmentTransaction.created_at.asc())
            .all()
        )

    def donations_for_project(self, project_id) -> List[DonationTransaction]:
        return (
            self.session.query(DonationTransaction)
            .filter(DonationTransaction.project_id == project_id)
            .order_by(DonationTransaction.created_at.asc())
            .all()
        )


class ProjectContentRepository(_Repository):
    """Team members, FAQs, updates and rewards attached to a project."""

    def team(self, project_id) -> List[ProjectTeamMember]:
        return self.session.query(ProjectTeamMember).filter_by(project_id=project_id).all()

    def faqs(self, project_id) -> List[ProjectFAQ]:
        return self.session.query(ProjectFAQ).filter_by(project_id=project_id).all()

    def updates(self, project_id) -> List[ProjectUpdate]:
        return (
            self.session.query(ProjectUpdate)
            .filter_by(project_id=project_id)
            .order_by(ProjectUpdate.created_at.desc())
            .all()
        )

    def rewards(self, project_id) -> List[Reward]:
        return self.session.query(Reward).filter_by(project_id=project_id).all()

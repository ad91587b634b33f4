"""
Pytest configuration for the crowdfunding backend tests.

This module provides:
1. A Flask app built with TestingConfig on a throwaway SQLite file
2. Factories for users, projects, documents and transactions
3. Bearer headers minted with create_access_token
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from backend.config import TestingConfig
from backend.extensions import db
from backend.models import (
    CompanyProfile,
    Document,
    DonationTransaction,
    InvestmentTransaction,
    InvestorProfile,
    Project,
    User,
)
from backend.services.accounts import hash_password

PASSWORD = "Sup3rSecret"

COMPLETE_PROJECT = {
    "title": "Solar irrigation for smallholders",
    "description": "Pumps powered by panels for 300 farms.",
    "funding_goal": Decimal("10000"),
    "industry_sector": "agriculture",
    "impact_type": "environmental",
    "duration_months": 12,
    "expected_return_rate": Decimal("6.5"),
}


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
@pytest.fixture
def app(tmp_path):
    app = create_app(
        TestingConfig,
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "UPLOAD_DIR": str(tmp_path / "uploads"),
        },
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["services"]


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------
class Factory:
    def __init__(self):
        self._n = 0

    def _next(self):
        self._n += 1
        return self._n

    def user(self, role="company", email=None, verified=True, active=True, **fields):
        n = self._next()
        user = User(
            email=email or f"{role}{n}@example.test",
            password_hash=hash_password(PASSWORD),
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", f"User{n}"),
            role=role,
            email_verified=verified,
            is_active=active,
            **fields,
        )
        db.session.add(user)
        db.session.flush()
        if role == "company":
            db.session.add(CompanyProfile(user_id=user.id, company_name=f"Company {n}"))
        elif role == "investor":
            db.session.add(InvestorProfile(user_id=user.id))
        db.session.commit()
        return user

    def company_of(self, user):
        return CompanyProfile.query.filter_by(user_id=user.id).one()

    def project(self, owner, status="draft", complete=True, **fields):
        values = dict(COMPLETE_PROJECT) if complete else {"title": "Untitled idea"}
        values.update(fields)
        project = Project(company_id=self.company_of(owner).id, status=status, **values)
        db.session.add(project)
        db.session.commit()
        return project

    def document(self, project, doc_type, verified=False, user=None):
        company = db.session.get(CompanyProfile, project.company_id)
        doc = Document(
            user_id=user.id if user else company.user_id,
            project_id=project.id,
            doc_type=doc_type,
            file_path=f"{doc_type}/2024-01/{doc_type}.pdf",
            original_filename=f"{doc_type}.pdf",
            mime_type="application/pdf",
            size_bytes=1024,
            verified=verified,
        )
        db.session.add(doc)
        db.session.commit()
        return doc

    def required_documents(self, project):
        return [
            self.document(project, "business_plan"),
            self.document(project, "financial_statements"),
        ]

    def investment(self, project, amount, status="completed", investor=None):
        tx = InvestmentTransaction(
            project_id=project.id,
            investor_id=investor.id if investor else None,
            amount=Decimal(str(amount)),
            status=status,
        )
        db.session.add(tx)
        db.session.commit()
        return tx

    def donation(self, project, amount, status="completed", donor=None):
        tx = DonationTransaction(
            project_id=project.id,
            donor_id=donor.id if donor else None,
            amount=Decimal(str(amount)),
            status=status,
        )
        db.session.add(tx)
        db.session.commit()
        return tx

    def active_campaign(self, owner, days_ago=1, **fields):
        today = datetime.utcnow().date()
        return self.project(
            owner,
            status="active",
            start_date=today - timedelta(days=60),
            end_date=today - timedelta(days=days_ago),
            **fields,
        )


@pytest.fixture
def factory(app):
    return Factory()


@pytest.fixture
def company_user(factory):
    return factory.user("company")


@pytest.fixture
def other_company_user(factory):
    return factory.user("company")


@pytest.fixture
def investor_user(factory):
    return factory.user("investor")


@pytest.fixture
def admin_user(factory):
    return factory.user("admin")


# -----------------------------------------------------------------------------
# Auth
# -----------------------------------------------------------------------------
def bearer(user, **claims):
    token = create_access_token(identity=str(user.id), additional_claims={"role": user.role, **claims})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    return bearer

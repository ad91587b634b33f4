from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal

from backend.extensions import db, decrypt_value

ROLES = ("admin", "investor", "company")

PROJECT_STATUSES = (
    "draft",
    "submitted",
    "under_review",
    "approved",
    "rejected",
    "active",
    "funded",
    "failed",
)

TRANSACTION_STATUSES = ("initiated", "processing", "completed", "failed")
KYC_STATUSES = ("pending", "approved", "rejected")


def _iso(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _num(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


# ------------------ User Model ------------------
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email         = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name  = db.Column(db.String(100), nullable=False, default="")
    phone      = db.Column(db.String(30),  nullable=True)
    birth_date = db.Column(db.Date,        nullable=True)

    address = db.Column(db.String(255), nullable=True)
    city    = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    # fixed at registration
    role = db.Column(db.String(20), nullable=False)

    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    phone_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_active      = db.Column(db.Boolean, nullable=False, default=True)

    profile_picture = db.Column(db.String(300), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company_profile  = db.relationship("CompanyProfile", back_populates="user", uselist=False, lazy=True)
    investor_profile = db.relationship("InvestorProfile", back_populates="user", uselist=False, lazy=True)

    __table_args__ = (db.CheckConstraint(_in_list("role", ROLES), name="ck_users_role"),)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "birth_date": _iso(self.birth_date),
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "role": self.role,
            "email_verified": self.email_verified,
            "phone_verified": self.phone_verified,
            "is_active": self.is_active,
            "profile_picture": self.profile_picture,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def to_brief(self):
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }

    def __repr__(self):
        return f"<User {self.id} {self.email} {self.role}>"


# ------------------ Company Profile ------------------
class CompanyProfile(db.Model):
    __tablename__ = "company_profiles"

    id      = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    company_name        = db.Column(db.String(200), nullable=True)
    legal_status        = db.Column(db.String(100), nullable=True)
    registration_number = db.Column(db.String(100), nullable=True)
    tax_id_encrypted    = db.Column(db.Text,        nullable=True)  # Fernet token
    industry_sector     = db.Column(db.String(120), nullable=True)
    website             = db.Column(db.String(300), nullable=True)
    description         = db.Column(db.Text,        nullable=True)
    employee_count      = db.Column(db.Integer,     nullable=True)
    founding_date       = db.Column(db.Date,        nullable=True)
    address             = db.Column(db.String(255), nullable=True)
    city                = db.Column(db.String(100), nullable=True)

    kyc_status = db.Column(db.String(20), nullable=False, default="pending")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user     = db.relationship("User", back_populates="company_profile", lazy=True)
    projects = db.relationship("Project", back_populates="company", lazy=True)

    __table_args__ = (db.CheckConstraint(_in_list("kyc_status", KYC_STATUSES), name="ck_company_kyc_status"),)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "company_name": self.company_name,
            "legal_status": self.legal_status,
            "registration_number": self.registration_number,
            "tax_id": "***" if decrypt_value(self.tax_id_encrypted) else None,
            "industry_sector": self.industry_sector,
            "website": self.website,
            "description": self.description,
            "employee_count": self.employee_count,
            "founding_date": _iso(self.founding_date),
            "address": self.address,
            "city": self.city,
            "kyc_status": self.kyc_status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ------------------ Investor Profile ------------------
class InvestorProfile(db.Model):
    __tablename__ = "investor_profiles"

    id      = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    investor_type         = db.Column(db.String(20), nullable=True)  # retail|professional|institutional|diaspora
    kyc_status            = db.Column(db.String(20), nullable=False, default="pending")
    max_investment_amount = db.Column(db.Numeric(15, 2), nullable=True)
    terms_accepted        = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="investor_profile", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "investor_type": self.investor_type,
            "kyc_status": self.kyc_status,
            "max_investment_amount": _num(self.max_investment_amount),
            "terms_accepted": self.terms_accepted,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# ------------------ Project ------------------
class Project(db.Model):
    __tablename__ = "projects"

    id         = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("company_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    title             = db.Column(db.String(200), nullable=True)
    short_description = db.Column(db.String(300), nullable=True)
    description       = db.Column(db.Text,        nullable=True)

    funding_goal     = db.Column(db.Numeric(15, 2), nullable=True)
    min_investment   = db.Column(db.Numeric(15, 2), nullable=True)
    funding_type     = db.Column(db.String(20),     nullable=True)  # equity|donation
    equity_structure = db.Column(db.Text,           nullable=True)

    industry_sector      = db.Column(db.String(120), nullable=True)
    impact_type          = db.Column(db.String(20),  nullable=True)  # social|environmental|both|none
    duration_months      = db.Column(db.Integer,     nullable=True)
    expected_return_rate = db.Column(db.Numeric(5, 2), nullable=True)

    video_url  = db.Column(db.String(300), nullable=True)
    image_path = db.Column(db.String(300), nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date   = db.Column(db.Date, nullable=True)

    platform_fee_percentage = db.Column(db.Numeric(5, 2), nullable=True)

    # lifecycle: written only by ProjectLifecycle transitions
    status       = db.Column(db.String(20), nullable=False, default="draft", index=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    reviewer_id  = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    risk_rating  = db.Column(db.Integer, nullable=True)
    review_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    company  = db.relationship("CompanyProfile", back_populates="projects", lazy=True)
    reviewer = db.relationship("User", foreign_keys=[reviewer_id], lazy=True)

    __table_args__ = (
        db.CheckConstraint(_in_list("status", PROJECT_STATUSES), name="ck_projects_status"),
        db.CheckConstraint("risk_rating IS NULL OR (risk_rating BETWEEN 1 AND 5)", name="ck_projects_risk_rating"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "title": self.title,
            "short_description": self.short_description,
            "description": self.description,
            "funding_goal": _num(self.funding_goal),
            "min_investment": _num(self.min_investment),
            "funding_type": self.funding_type,
            "equity_structure": self.equity_structure,
            "industry_sector": self.industry_sector,
            "impact_type": self.impact_type,
            "duration_months": self.duration_months,
            "expected_return_rate": _num(self.expected_return_rate),
            "video_url": self.video_url,
            "image_path": self.image_path,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "platform_fee_percentage": _num(self.platform_fee_percentage),
            "status": self.status,
            "submitted_at": _iso(self.submitted_at),
            "reviewer_id": self.reviewer_id,
            "risk_rating": self.risk_rating,
            "review_notes": self.review_notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Project {self.id} {self.title!r} {self.status}>"


# ------------------ Document ------------------
class Document(db.Model):
    __tablename__ = "documents"

    id         = db.Column(db.Integer, primary_key=True)
    user_id    = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)

    # id_card, passport, company_registration, business_plan, financial_statements, ...
    doc_type = db.Column(db.String(50), nullable=False)

    file_path         = db.Column(db.String(500), nullable=False)  # relative to UPLOAD_DIR
    original_filename = db.Column(db.String(255), nullable=False)
    mime_type         = db.Column(db.String(120), nullable=False)
    size_bytes        = db.Column(db.Integer,     nullable=True)

    verified           = db.Column(db.Boolean, nullable=False, default=False)
    verification_notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "project_id": self.project_id,
            "doc_type": self.doc_type,
            "original_filename": self.original_filename,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "verified": self.verified,
            "verification_notes": self.verification_notes,
            "created_at": _iso(self.created_at),
        }


# ------------------ Transactions ------------------
class InvestmentTransaction(db.Model):
    __tablename__ = "investment_transactions"

    id          = db.Column(db.Integer, primary_key=True)
    project_id  = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    investor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    amount            = db.Column(db.Numeric(15, 2), nullable=False)
    status            = db.Column(db.String(20), nullable=False, default="initiated")
    payment_method    = db.Column(db.String(50), nullable=True)
    contract_accepted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    investor = db.relationship("User", foreign_keys=[investor_id], lazy=True)

    __table_args__ = (db.CheckConstraint(_in_list("status", TRANSACTION_STATUSES), name="ck_investment_status"),)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "investor_id": self.investor_id,
            "investor": self.investor.to_brief() if self.investor else None,
            "amount": _num(self.amount),
            "status": self.status,
            "payment_method": self.payment_method,
            "contract_accepted": self.contract_accepted,
            "created_at": _iso(self.created_at),
        }


class DonationTransaction(db.Model):
    __tablename__ = "donation_transactions"

    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    donor_id   = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # null = anonymous
    reward_id  = db.Column(db.Integer, db.ForeignKey("rewards.id"), nullable=True)

    amount         = db.Column(db.Numeric(15, 2), nullable=False)
    status         = db.Column(db.String(20), nullable=False, default="initiated")
    payment_method = db.Column(db.String(50), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    donor  = db.relationship("User", foreign_keys=[donor_id], lazy=True)
    reward = db.relationship("Reward", lazy=True)

    __table_args__ = (db.CheckConstraint(_in_list("status", TRANSACTION_STATUSES), name="ck_donation_status"),)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "donor_id": self.donor_id,
            "donor": self.donor.to_brief() if self.donor else None,
            "reward": {"id": self.reward.id, "title": self.reward.title} if self.reward else None,
            "amount": _num(self.amount),
            "status": self.status,
            "payment_method": self.payment_method,
            "created_at": _iso(self.created_at),
        }


# ------------------ Project satellites ------------------
class ProjectTeamMember(db.Model):
    __tablename__ = "project_team"

    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    name         = db.Column(db.String(150), nullable=False)
    position     = db.Column(db.String(150), nullable=True)
    bio          = db.Column(db.Text,        nullable=True)
    linkedin_url = db.Column(db.String(300), nullable=True)
    photo_path   = db.Column(db.String(300), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id, "name": self.name, "position": self.position, "bio": self.bio,
            "linkedin_url": self.linkedin_url, "photo_path": self.photo_path,
            "created_at": _iso(self.created_at),
        }


class ProjectFAQ(db.Model):
    __tablename__ = "project_faqs"

    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    question   = db.Column(db.String(500), nullable=False)
    answer     = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {"id": self.id, "question": self.question, "answer": self.answer, "created_at": _iso(self.created_at)}


class ProjectUpdate(db.Model):
    __tablename__ = "project_updates"

    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title      = db.Column(db.String(200), nullable=False)
    content    = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {"id": self.id, "title": self.title, "content": self.content, "created_at": _iso(self.created_at)}


class Reward(db.Model):
    __tablename__ = "rewards"

    id         = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    title                 = db.Column(db.String(200), nullable=False)
    description           = db.Column(db.Text, nullable=False)
    min_donation          = db.Column(db.Numeric(15, 2), nullable=False)
    quantity_available    = db.Column(db.Integer, nullable=True)
    quantity_claimed      = db.Column(db.Integer, nullable=False, default=0)
    estimated_delivery    = db.Column(db.Date, nullable=True)
    shipping_restrictions = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "min_donation": _num(self.min_donation),
            "quantity_available": self.quantity_available,
            "quantity_claimed": self.quantity_claimed,
            "estimated_delivery": _iso(self.estimated_delivery),
            "shipping_restrictions": self.shipping_restrictions,
            "created_at": _iso(self.created_at),
        }

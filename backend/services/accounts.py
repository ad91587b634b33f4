# backend/services/accounts.py
from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

import jwt as pyjwt
from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from werkzeug.security import check_password_hash, generate_password_hash

from backend.errors import BadRequestError, ForbiddenError, NotFoundError, UnauthorizedError
from backend.extensions import encrypt_value
from backend.models import CompanyProfile, InvestorProfile, User
from backend.validators import (
    parse_company_profile,
    parse_investor_profile,
    parse_registration,
    parse_user_update,
)

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION = "email_verification"
SELF_SERVICE_ROLES = ("investor", "company")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash or not password:
        return False
    return check_password_hash(password_hash, password)


class AccountService:
    """Registration, login, e-mail verification and the caller's own profile."""

    def __init__(
        self,
        session,
        users,
        companies,
        investors,
        config,
        send_verification: Optional[Callable] = None,
    ):
        self.session = session
        self.users = users
        self.companies = companies
        self.investors = investors
        self.config = config
        self.send_verification = send_verification

    # ---------- registration ----------
    def allowed_roles(self) -> Tuple[str, ...]:
        if self.config.get("ALLOW_ADMIN_REGISTRATION"):
            return SELF_SERVICE_ROLES + ("admin",)
        return SELF_SERVICE_ROLES

    def register_user(self, payload) -> User:
        """
        Create the user and the profile matching its role in one transaction.
        Nothing is persisted if either insert fails.
        """
        values = parse_registration(payload, self.allowed_roles())
        email, password, role = values.pop("email"), values.pop("password"), values.pop("role")

        if self.users.get_by_email(email):
            raise BadRequestError("Email already in use", code="EMAIL_ALREADY_IN_USE")

        user = User(
            email=email,
            password_hash=hash_password(password),
            role=role,
            email_verified=not self.config.get("REQUIRE_EMAIL_VERIFICATION", True),
            **values,
        )
        try:
            self.users.add(user)
            self.users.flush()
            if role == "company":
                self.companies.add(CompanyProfile(user_id=user.id))
            elif role == "investor":
                self.investors.add(InvestorProfile(user_id=user.id))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Registered %s user %s", role, user.id)
        if not user.email_verified and self.send_verification:
            self.send_verification(user, self.issue_verification_token(user))
        return user

    # ---------- e-mail verification ----------
    def issue_verification_token(self, user: User) -> str:
        return create_access_token(
            identity=str(user.id),
            additional_claims={"purpose": EMAIL_VERIFICATION},
            expires_delta=self.config.get("EMAIL_TOKEN_EXPIRES"),
        )

    def verify_email(self, token: Optional[str]) -> User:
        if not token:
            raise BadRequestError("Verification token is required", code="INVALID_VERIFICATION_TOKEN")
        try:
            claims = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            raise BadRequestError("Verification token expired", code="VERIFICATION_TOKEN_EXPIRED")
        except (pyjwt.InvalidTokenError, JWTExtendedException):
            raise BadRequestError("Invalid verification token", code="INVALID_VERIFICATION_TOKEN")

        if claims.get("purpose") != EMAIL_VERIFICATION:
            raise BadRequestError("Invalid verification token", code="INVALID_VERIFICATION_TOKEN")

        user = self.users.get(int(claims["sub"]))
        if not user:
            raise BadRequestError("Invalid verification token", code="INVALID_VERIFICATION_TOKEN")

        if not user.email_verified:
            user.email_verified = True
            self.session.commit()
            logger.info("User %s verified their email", user.id)
        return user

    # ---------- login ----------
    def authenticate(self, email, password) -> User:
        if not isinstance(email, str) or not isinstance(password, str) or not email.strip() or not password:
            raise BadRequestError("Email and password are required", code="MISSING_CREDENTIALS")

        user = self.users.get_by_email(email)
        if not user or not verify_password(user.password_hash, password):
            raise UnauthorizedError("Invalid credentials", code="INVALID_CREDENTIALS")
        if not user.is_active:
            raise ForbiddenError("Account is disabled.", code="AUTH_ACCOUNT_DISABLED")
        if self.config.get("REQUIRE_EMAIL_VERIFICATION", True) and not user.email_verified:
            raise ForbiddenError("Email not verified.", code="AUTH_EMAIL_NOT_VERIFIED")
        return user

    def login(self, email, password) -> Tuple[str, User]:
        user = self.authenticate(email, password)
        token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
        logger.info("User %s logged in", user.id)
        return token, user

    # ---------- profile ----------
    def profile_of(self, user: User) -> dict:
        body = {"user": user.to_dict(), "company_profile": None, "investor_profile": None}
        if user.role == "company":
            company = self.companies.get_by_user_id(user.id)
            body["company_profile"] = company.to_dict() if company else None
        elif user.role == "investor":
            investor = self.investors.get_by_user_id(user.id)
            body["investor_profile"] = investor.to_dict() if investor else None
        return body

    def update_user(self, user: User, payload) -> User:
        values = parse_user_update(payload)
        for name, value in values.items():
            setattr(user, name, value)
        self.session.commit()
        return user

    def update_company_profile(self, user: User, payload) -> CompanyProfile:
        company = self.companies.get_by_user_id(user.id)
        if not company:
            raise NotFoundError("Company profile not found", code="COMPANY_PROFILE_NOT_FOUND")
        values = parse_company_profile(payload)
        if "tax_id" in values:
            company.tax_id_encrypted = encrypt_value(values.pop("tax_id"))
        for name, value in values.items():
            setattr(company, name, value)
        self.session.commit()
        logger.info("Company profile %s updated", company.id)
        return company

    def update_investor_profile(self, user: User, payload) -> InvestorProfile:
        investor = self.investors.get_by_user_id(user.id)
        if not investor:
            raise NotFoundError("Investor profile not found", code="INVESTOR_PROFILE_NOT_FOUND")
        values = parse_investor_profile(payload)
        if values.get("terms_accepted") is None:
            values.pop("terms_accepted", None)
        for name, value in values.items():
            setattr(investor, name, value)
        self.session.commit()
        return investor

# backend/validators.py
"""
Request payload checks. Each parser walks the whole payload and raises one
ValidationError carrying every violation found, never just the first.
"""
from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import request

from backend.errors import BadRequestError, ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_RE = re.compile(r"^\+?[0-9]{10,15}$")
URL_RE = re.compile(r"^https?://[^\s]+$", re.IGNORECASE)

FUNDING_TYPES = ("equity", "donation")
IMPACT_TYPES = ("social", "environmental", "both", "none")
INVESTOR_TYPES = ("retail", "professional", "institutional", "diaspora")


class _Invalid(Exception):
    pass


class FieldErrors:
    def __init__(self):
        self.items: List[Dict[str, str]] = []

    def add(self, field: str, message: str):
        self.items.append({"field": field, "message": message})

    def raise_if_any(self, message: str = "Validation error", code: str = "VALIDATION_ERROR"):
        if self.items:
            raise ValidationError(message, code=code, errors=self.items)


def json_object() -> Dict[str, Any]:
    """The request's JSON body as a dict; ``{}`` when absent or unparseable."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("Request body must be a JSON object", code="INVALID_BODY")
    return data


# ─────────────────────────────────────────────────────────────
# Scalar coercions (raise _Invalid with a user-facing message)
# ─────────────────────────────────────────────────────────────
def _text(max_len: Optional[int] = None) -> Callable[[Any], Optional[str]]:
    def parse(value):
        if not isinstance(value, str):
            raise _Invalid("must be a string")
        value = value.strip()
        if max_len and len(value) > max_len:
            raise _Invalid(f"must be at most {max_len} characters")
        return value or None
    return parse


def _decimal(min_value=None, max_value=None, strict_min=False):
    def parse(value):
        if isinstance(value, bool):
            raise _Invalid("must be a number")
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise _Invalid("must be a number")
        if not d.is_finite():
            raise _Invalid("must be a number")
        if min_value is not None and (d <= min_value if strict_min else d < min_value):
            raise _Invalid(f"must be {'greater than' if strict_min else 'at least'} {min_value}")
        if max_value is not None and d > max_value:
            raise _Invalid(f"must be at most {max_value}")
        return d
    return parse


def _integer(min_value=None, max_value=None):
    def parse(value):
        if isinstance(value, bool):
            raise _Invalid("must be an integer")
        try:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError
            i = int(value)
        except (TypeError, ValueError):
            raise _Invalid("must be an integer")
        if min_value is not None and i < min_value:
            raise _Invalid(f"must be at least {min_value}")
        if max_value is not None and i > max_value:
            raise _Invalid(f"must be at most {max_value}")
        return i
    return parse


def _choice(options: Tuple[str, ...]):
    def parse(value):
        if value not in options:
            raise _Invalid(f"must be one of: {', '.join(options)}")
        return value
    return parse


def _date(value):
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise _Invalid("must be a date (YYYY-MM-DD)")


def _url(value):
    value = _text(300)(value)
    if value and not URL_RE.match(value):
        raise _Invalid("must be a valid URL")
    return value


def _boolean(value):
    if isinstance(value, bool):
        return value
    raise _Invalid("must be true or false")


def _parse_fields(data: Dict[str, Any], spec: Dict[str, Callable], errors: FieldErrors) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, parse in spec.items():
        if name not in data:
            continue
        raw = data[name]
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            values[name] = None
            continue
        try:
            values[name] = parse(raw)
        except _Invalid as e:
            errors.add(name, f"{name} {e}")
    return values


# ─────────────────────────────────────────────────────────────
# Projects
# ─────────────────────────────────────────────────────────────
PROJECT_FIELDS: Dict[str, Callable] = {
    "title": _text(200),
    "short_description": _text(300),
    "description": _text(),
    "funding_goal": _decimal(0, strict_min=True),
    "min_investment": _decimal(0),
    "funding_type": _choice(FUNDING_TYPES),
    "equity_structure": _text(),
    "industry_sector": _text(120),
    "impact_type": _choice(IMPACT_TYPES),
    "duration_months": _integer(1, 120),
    "expected_return_rate": _decimal(0, 100),
    "video_url": _url,
    "image_path": _text(300),
    "start_date": _date,
    "end_date": _date,
}

ADMIN_PROJECT_FIELDS: Dict[str, Callable] = {
    "platform_fee_percentage": _decimal(0, 100),
}


def parse_project_payload(data: Dict[str, Any], admin: bool = False, require_title: bool = False) -> Dict[str, Any]:
    """Return the editable project columns present in ``data``. Lifecycle fields are never accepted."""
    errors = FieldErrors()
    spec = dict(PROJECT_FIELDS)
    if admin:
        spec.update(ADMIN_PROJECT_FIELDS)

    values = _parse_fields(data or {}, spec, errors)

    if require_title and not values.get("title"):
        errors.add("title", "title is required")

    start, end = values.get("start_date"), values.get("end_date")
    if start and end and end < start:
        errors.add("end_date", "end_date must be on or after start_date")

    errors.raise_if_any("Invalid project data")
    return values


# ─────────────────────────────────────────────────────────────
# Accounts & profiles
# ─────────────────────────────────────────────────────────────
def password_problems(password: str) -> List[str]:
    problems = []
    if not isinstance(password, str) or len(password) < 8:
        problems.append("Password must be at least 8 characters")
        password = password if isinstance(password, str) else ""
    if not re.search(r"[a-z]", password):
        problems.append("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", password):
        problems.append("Password must contain an uppercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("Password must contain a digit")
    return problems


USER_FIELDS: Dict[str, Callable] = {
    "first_name": _text(50),
    "last_name": _text(50),
    "phone": _text(30),
    "birth_date": _date,
    "address": _text(255),
    "city": _text(100),
    "country": _text(100),
    "profile_picture": _text(300),
}


def parse_registration(data: Dict[str, Any], allowed_roles: Tuple[str, ...]) -> Dict[str, Any]:
    errors = FieldErrors()
    data = data or {}

    email = (data.get("email") or "").strip().lower() if isinstance(data.get("email"), str) else ""
    if not EMAIL_RE.match(email):
        errors.add("email", "Invalid email format")

    password = data.get("password") or ""
    for problem in password_problems(password):
        errors.add("password", problem)

    role = data.get("role")
    if role not in allowed_roles:
        errors.add("role", f"role must be one of: {', '.join(allowed_roles)}")

    values = _parse_fields(data, USER_FIELDS, errors)
    for name in ("first_name", "last_name"):
        v = values.get(name)
        if not v or len(v) < 2:
            errors.add(name, f"{name} must be between 2 and 50 characters")

    phone = values.get("phone")
    if phone and not PHONE_RE.match(phone):
        errors.add("phone", "Invalid phone number")

    errors.raise_if_any("Invalid registration data")
    values.update(email=email, password=password, role=role)
    return values


def parse_user_update(data: Dict[str, Any]) -> Dict[str, Any]:
    errors = FieldErrors()
    values = _parse_fields(data or {}, USER_FIELDS, errors)
    for name in ("first_name", "last_name"):
        if name in values and (not values[name] or len(values[name]) < 2):
            errors.add(name, f"{name} must be between 2 and 50 characters")
    if values.get("phone") and not PHONE_RE.match(values["phone"]):
        errors.add("phone", "Invalid phone number")
    errors.raise_if_any("Invalid profile data")
    return values


COMPANY_FIELDS: Dict[str, Callable] = {
    "company_name": _text(200),
    "legal_status": _text(100),
    "registration_number": _text(100),
    "tax_id": _text(64),
    "industry_sector": _text(120),
    "website": _url,
    "description": _text(),
    "employee_count": _integer(0),
    "founding_date": _date,
    "address": _text(255),
    "city": _text(100),
}

INVESTOR_FIELDS: Dict[str, Callable] = {
    "investor_type": _choice(INVESTOR_TYPES),
    "max_investment_amount": _decimal(0),
    "terms_accepted": _boolean,
}


def parse_company_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    errors = FieldErrors()
    values = _parse_fields(data or {}, COMPANY_FIELDS, errors)
    errors.raise_if_any("Invalid company profile")
    return values


def parse_investor_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    errors = FieldErrors()
    values = _parse_fields(data or {}, INVESTOR_FIELDS, errors)
    errors.raise_if_any("Invalid investor profile")
    return values


def parse_positive_int(value, name: str, default: int, maximum: Optional[int] = None, errors: FieldErrors = None) -> int:
    if value in (None, ""):
        return default
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = 0
    if n < 1 or (maximum and n > maximum):
        if errors is not None:
            bound = f" and at most {maximum}" if maximum else ""
            errors.add(name, f"{name} must be a positive integer{bound}")
        return default
    return n

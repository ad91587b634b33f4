# backend/services/readiness.py
from __future__ import annotations

from typing import Iterable, List, NamedTuple

REQUIRED_FIELDS = (
    "title",
    "description",
    "funding_goal",
    "industry_sector",
    "impact_type",
    "duration_months",
    "expected_return_rate",
)

REQUIRED_DOCUMENTS = ("business_plan", "financial_statements")


class Readiness(NamedTuple):
    missing_fields: List[str]
    missing_documents: List[str]

    @property
    def ready(self) -> bool:
        return not self.missing_fields and not self.missing_documents


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def check_submission_readiness(project, documents: Iterable) -> Readiness:
    """
    List what stands between ``project`` and submission: required scalar
    fields that are empty and required document types not attached.
    Pure; order follows REQUIRED_FIELDS / REQUIRED_DOCUMENTS.
    """
    missing_fields = [name for name in REQUIRED_FIELDS if _is_blank(getattr(project, name, None))]

    attached = {getattr(d, "doc_type", None) for d in documents or []}
    missing_documents = [t for t in REQUIRED_DOCUMENTS if t not in attached]

    return Readiness(missing_fields, missing_documents)

# backend/services/admin_stats.py
"""
Derived figures shown to reviewers on the admin project page.

Everything here is a pure function of the records passed in (plus ``today``),
so the same inputs always give the same numbers.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Sequence

PENDING_TX = ("initiated", "processing")


def _amount(value) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_date(value) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value):
    return value.isoformat() if isinstance(value, (date, datetime)) else value


def funding_progress(total_raised: float, funding_goal: float) -> float:
    """Percent of goal raised, clamped to [0, 100]; 0 when there is no goal."""
    if funding_goal <= 0:
        return 0.0
    return max(0.0, min(100.0, 100.0 * total_raised / funding_goal))


def compute_funding_totals(project, investments: Iterable, donations: Iterable) -> Dict[str, float]:
    completed_inv = [t for t in investments or [] if t.status == "completed"]
    completed_don = [t for t in donations or [] if t.status == "completed"]

    total_investments = sum(_amount(t.amount) for t in completed_inv)
    total_donations = sum(_amount(t.amount) for t in completed_don)
    total_raised = total_investments + total_donations
    goal = _amount(project.funding_goal)

    return {
        "totalRaised": total_raised,
        "totalInvestments": total_investments,
        "totalDonations": total_donations,
        "fundingGoal": goal,
        "fundingProgress": funding_progress(total_raised, goal),
        "remainingAmount": max(goal - total_raised, 0.0),
    }


def compute_admin_statistics(
    project,
    documents: Sequence,
    investments: Sequence,
    donations: Sequence,
    team: Sequence = (),
    faqs: Sequence = (),
    updates: Sequence = (),
    rewards: Sequence = (),
    today: Optional[date] = None,
) -> Dict[str, Any]:
    today = today or datetime.utcnow().date()

    completed_inv = [t for t in investments if t.status == "completed"]
    completed_don = [t for t in donations if t.status == "completed"]

    investor_ids = {t.investor_id for t in completed_inv if t.investor_id}
    donor_ids = {t.donor_id for t in completed_don if t.donor_id}

    all_tx = list(investments) + list(donations)
    transactions = {
        "total": len(all_tx),
        "completed": len(completed_inv) + len(completed_don),
        "pending": sum(1 for t in all_tx if t.status in PENDING_TX),
        "failed": sum(1 for t in all_tx if t.status == "failed"),
    }

    verified = sum(1 for d in documents if d.verified)
    document_stats = {
        "total": len(documents),
        "verified": verified,
        "pending": len(documents) - verified,
    }

    start = _as_date(project.start_date)
    end = _as_date(project.end_date)

    return {
        "funding": compute_funding_totals(project, investments, donations),
        "backers": {
            "total": len(investor_ids | donor_ids),
            "investors": len(investor_ids),
            "donors": len(donor_ids),
        },
        "transactions": transactions,
        "documents": document_stats,
        "engagement": {
            "updatesCount": len(updates),
            "teamMembersCount": len(team),
            "faqsCount": len(faqs),
            "rewardsCount": len(rewards),
        },
        "timeline": {
            "projectCreated": _iso(project.created_at),
            "lastUpdated": _iso(project.updated_at),
            "daysActive": (today - start).days if start else None,
            "daysRemaining": (end - today).days if end else None,
        },
    }


def compute_risk_indicators(
    company,
    founder,
    documents: Sequence,
    team: Sequence = (),
    faqs: Sequence = (),
    updates: Sequence = (),
) -> Dict[str, Any]:
    total = len(documents)
    verified = sum(1 for d in documents if d.verified)
    return {
        "companyKycStatus": getattr(company, "kyc_status", None) or "unknown",
        "documentVerificationRate": (verified / total) * 100 if total else 0,
        "founderVerification": {
            "emailVerified": bool(getattr(founder, "email_verified", False)),
            "phoneVerified": bool(getattr(founder, "phone_verified", False)),
        },
        "projectCompleteness": {
            "hasTeam": len(team) > 0,
            "hasFaqs": len(faqs) > 0,
            "hasUpdates": len(updates) > 0,
            "hasDocuments": total > 0,
        },
    }

"""
Project lifecycle: transition table, submit, review, admin status moves,
campaign closing and the conditional write guarding each transition.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value

from backend.errors import BadRequestError, ForbiddenError, NotFoundError, ValidationError
from backend.extensions import db
from backend.models import PROJECT_STATUSES, Project
from backend.services.lifecycle import TERMINAL_STATUSES, TRANSITIONS, can_transition


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(PROJECT_STATUSES)

    def test_terminal_statuses(self):
        assert set(TERMINAL_STATUSES) == {"rejected", "funded", "failed"}

    def test_targets_are_known_statuses(self):
        for targets in TRANSITIONS.values():
            assert set(targets) <= set(PROJECT_STATUSES)

    @pytest.mark.parametrize("current,target,ok", [
        ("draft", "submitted", True),
        ("draft", "approved", False),
        ("submitted", "approved", True),
        ("under_review", "rejected", True),
        ("approved", "active", True),
        ("approved", "funded", False),
        ("active", "funded", True),
        ("rejected", "draft", False),
    ])
    def test_can_transition(self, current, target, ok):
        assert can_transition(current, target) is ok


class TestCreateAndUpdate:
    def test_create_ignores_lifecycle_fields(self, services, company_user):
        project = services.lifecycle.create_project(
            company_user, {"title": "Seed bank", "status": "approved", "reviewer_id": 1, "risk_rating": 2}
        )

        assert project.status == "draft"
        assert project.reviewer_id is None
        assert project.risk_rating is None

    def test_create_requires_company_profile(self, services, investor_user):
        with pytest.raises(NotFoundError) as exc:
            services.lifecycle.create_project(investor_user, {"title": "x"})

        assert exc.value.code == "COMPANY_PROFILE_NOT_FOUND"

    def test_create_reports_all_violations(self, services, company_user):
        with pytest.raises(ValidationError) as exc:
            services.lifecycle.create_project(
                company_user, {"funding_goal": -1, "impact_type": "cosmic", "duration_months": "soon"}
            )

        fields = {e["field"] for e in exc.value.errors}
        assert fields == {"title", "funding_goal", "impact_type", "duration_months"}

    def test_owner_updates_draft(self, services, factory, company_user):
        project = factory.project(company_user)

        updated = services.lifecycle.update_project(project.id, company_user, {"title": "Renamed"})

        assert updated.title == "Renamed"

    def test_owner_cannot_update_after_submit(self, services, factory, company_user):
        project = factory.project(company_user, status="submitted")

        with pytest.raises(ForbiddenError) as exc:
            services.lifecycle.update_project(project.id, company_user, {"title": "Late"})

        assert exc.value.code == "PROJECT_STATUS_NOT_ALLOWED"

    def test_admin_updates_any_status_and_fee(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="active")

        updated = services.lifecycle.update_project(
            project.id, admin_user, {"platform_fee_percentage": 5, "status": "funded"}
        )

        assert float(updated.platform_fee_percentage) == 5
        assert updated.status == "active"

    def test_company_cannot_set_platform_fee(self, services, factory, company_user):
        project = factory.project(company_user)

        updated = services.lifecycle.update_project(project.id, company_user, {"platform_fee_percentage": 1})

        assert updated.platform_fee_percentage is None


class TestSubmit:
    def test_complete_draft_submits(self, services, factory, company_user):
        project = factory.project(company_user)
        factory.required_documents(project)

        submitted = services.lifecycle.submit_project(project.id, company_user)

        assert submitted.status == "submitted"
        assert submitted.submitted_at is not None

    def test_missing_financial_statements(self, services, factory, company_user):
        project = factory.project(company_user)
        factory.document(project, "business_plan")

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.submit_project(project.id, company_user)

        assert exc.value.status_code == 400
        assert exc.value.code == "MISSING_REQUIRED_DOCUMENTS"
        assert exc.value.payload["missingDocuments"] == ["financial_statements"]
        assert db.session.get(Project, project.id).status == "draft"

    def test_missing_fields_only(self, services, factory, company_user):
        project = factory.project(company_user, description=None, duration_months=None)
        factory.required_documents(project)

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.submit_project(project.id, company_user)

        assert exc.value.code == "MISSING_REQUIRED_FIELDS"
        assert exc.value.payload["missingFields"] == ["description", "duration_months"]

    def test_missing_both(self, services, factory, company_user):
        project = factory.project(company_user, complete=False)

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.submit_project(project.id, company_user)

        assert exc.value.code == "PROJECT_INCOMPLETE"
        assert exc.value.payload["missingDocuments"] == ["business_plan", "financial_statements"]
        assert "title" not in exc.value.payload["missingFields"]

    def test_second_submit_refused(self, services, factory, company_user):
        project = factory.project(company_user)
        factory.required_documents(project)
        services.lifecycle.submit_project(project.id, company_user)

        with pytest.raises(ForbiddenError) as exc:
            services.lifecycle.submit_project(project.id, company_user)

        assert exc.value.code == "PROJECT_STATUS_NOT_ALLOWED"

    def test_non_owner_refused(self, services, factory, company_user, other_company_user):
        project = factory.project(company_user)
        factory.required_documents(project)

        with pytest.raises(ForbiddenError) as exc:
            services.lifecycle.submit_project(project.id, other_company_user)

        assert exc.value.code == "AUTH_NOT_PROJECT_OWNER"


class TestReview:
    def test_approve_sets_reviewer_and_fields(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")

        reviewed = services.lifecycle.review_project(
            project.id, admin_user, "approved", review_notes="Solid plan", risk_rating=2
        )

        assert reviewed.status == "approved"
        assert reviewed.reviewer_id == admin_user.id
        assert reviewed.review_notes == "Solid plan"
        assert reviewed.risk_rating == 2

    def test_second_review_not_reviewable(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")
        services.lifecycle.review_project(project.id, admin_user, "approved")

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.review_project(project.id, admin_user, "rejected")

        assert exc.value.code == "PROJECT_NOT_REVIEWABLE"
        assert db.session.get(Project, project.id).status == "approved"

    @pytest.mark.parametrize("status", ["draft", "approved", "rejected", "active", "funded", "failed"])
    def test_other_statuses_not_reviewable(self, services, factory, company_user, admin_user, status):
        project = factory.project(company_user, status=status)

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.review_project(project.id, admin_user, "approved")

        assert exc.value.code == "PROJECT_NOT_REVIEWABLE"
        assert db.session.get(Project, project.id).status == status
        assert db.session.get(Project, project.id).reviewer_id is None

    def test_under_review_can_be_rejected(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="under_review")

        assert services.lifecycle.review_project(project.id, admin_user, "rejected").status == "rejected"

    def test_invalid_input_reported_together(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")

        with pytest.raises(ValidationError) as exc:
            services.lifecycle.review_project(project.id, admin_user, "maybe", risk_rating=9)

        assert exc.value.status_code == 422
        assert exc.value.code == "INVALID_STATUS"
        assert {e["field"] for e in exc.value.errors} == {"status", "risk_rating"}

    @pytest.mark.parametrize("rating", [0, 6, "high", 2.5, True])
    def test_bad_risk_rating(self, services, factory, company_user, admin_user, rating):
        project = factory.project(company_user, status="submitted")

        with pytest.raises(ValidationError) as exc:
            services.lifecycle.review_project(project.id, admin_user, "approved", risk_rating=rating)

        assert exc.value.code == "INVALID_RISK_RATING"

    def test_notifies_owner(self, app, factory, company_user, admin_user):
        sent = []
        lifecycle = app.extensions["services"].lifecycle
        lifecycle.notify_status_change = lambda user, project: sent.append((user.id, project.status))
        project = factory.project(company_user, status="submitted")

        lifecycle.review_project(project.id, admin_user, "rejected")

        assert sent == [(company_user.id, "rejected")]


class TestConditionalWrite:
    def test_stale_read_loses_race(self, services, factory, company_user, admin_user):
        """A second writer moved the row after our read: nothing is written."""
        project = factory.project(company_user, status="submitted")
        lifecycle = services.lifecycle

        assert services.projects.update_if_status(project.id, ["submitted"], {"status": "rejected"})
        db.session.commit()

        # the in-memory object still says 'submitted'
        assert project.status == "rejected"
        set_committed_value(project, "status", "submitted")
        with pytest.raises(BadRequestError) as exc:
            lifecycle._write_transition(
                project, "approved", {"reviewer_id": admin_user.id}, lambda s: BadRequestError(code=s)
            )

        assert exc.value.code == "rejected"
        fresh = db.session.get(Project, project.id)
        assert fresh.status == "rejected"
        assert fresh.reviewer_id is None

    def test_update_if_status_reports_mismatch(self, services, factory, company_user):
        project = factory.project(company_user, status="approved")

        assert services.projects.update_if_status(project.id, ["draft"], {"title": "nope"}) is False
        db.session.rollback()
        assert db.session.get(Project, project.id).title != "nope"


class TestAdminStatusChanges:
    def test_start_review(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")

        assert services.lifecycle.change_status(project.id, admin_user, "under_review").status == "under_review"

    def test_activate_sets_start_date(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="approved")

        active = services.lifecycle.change_status(project.id, admin_user, "active")

        assert active.status == "active"
        assert active.start_date == datetime.utcnow().date()

    def test_activate_keeps_existing_start_date(self, services, factory, company_user, admin_user):
        start = datetime.utcnow().date() + timedelta(days=3)
        project = factory.project(company_user, status="approved", start_date=start)

        assert services.lifecycle.change_status(project.id, admin_user, "active").start_date == start

    def test_cannot_skip_states(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="draft")

        with pytest.raises(BadRequestError) as exc:
            services.lifecycle.change_status(project.id, admin_user, "active")

        assert exc.value.code == "INVALID_STATUS_TRANSITION"

    def test_unsupported_target(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="active")

        with pytest.raises(ValidationError) as exc:
            services.lifecycle.change_status(project.id, admin_user, "funded")

        assert exc.value.code == "INVALID_STATUS"

    @pytest.mark.parametrize("target, status", [("under_review", "submitted"), ("active", "approved")])
    def test_bad_risk_rating_refused_for_every_target(self, services, factory, company_user, admin_user, target, status):
        project = factory.project(company_user, status=status)

        with pytest.raises(ValidationError) as exc:
            services.lifecycle.change_status(project.id, admin_user, target, risk_rating=9)

        assert exc.value.code == "INVALID_RISK_RATING"
        assert db.session.get(Project, project.id).status == status

    def test_notes_must_be_text(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")

        with pytest.raises(ValidationError) as exc:
            services.lifecycle.change_status(project.id, admin_user, "under_review", review_notes=["x"])

        assert [e["field"] for e in exc.value.errors] == ["review_notes"]

    def test_start_review_stores_notes_and_rating(self, services, factory, company_user, admin_user):
        project = factory.project(company_user, status="submitted")

        moved = services.lifecycle.change_status(
            project.id, admin_user, "under_review", review_notes="Checking KYC", risk_rating="4"
        )

        assert moved.status == "under_review"
        assert moved.review_notes == "Checking KYC"
        assert moved.risk_rating == 4
        assert moved.reviewer_id is None


class TestDatabaseConstraints:
    def test_unknown_status_rejected_by_check(self, services, factory, company_user):
        project = factory.project(company_user)

        with pytest.raises(IntegrityError):
            services.projects.update_if_status(project.id, ["draft"], {"status": "paused"})
        db.session.rollback()

        assert db.session.get(Project, project.id).status == "draft"

    def test_risk_rating_out_of_range_rejected_by_check(self, services, factory, company_user):
        project = factory.project(company_user, status="submitted")

        with pytest.raises(IntegrityError):
            services.projects.update_if_status(project.id, ["submitted"], {"risk_rating": 7})
        db.session.rollback()

        fresh = db.session.get(Project, project.id)
        assert fresh.risk_rating is None
        assert fresh.status == "submitted"


class TestCloseExpiredCampaigns:
    def test_goal_reached_becomes_funded(self, services, factory, company_user):
        project = factory.active_campaign(company_user)
        factory.investment(project, 8000)
        factory.donation(project, 2000)

        closed = services.lifecycle.close_expired_campaigns()

        assert closed == [(project.id, "funded")]
        assert db.session.get(Project, project.id).status == "funded"

    def test_goal_missed_becomes_failed(self, services, factory, company_user):
        project = factory.active_campaign(company_user)
        factory.investment(project, 9000)
        factory.investment(project, 5000, status="initiated")

        services.lifecycle.close_expired_campaigns()

        assert db.session.get(Project, project.id).status == "failed"

    def test_running_campaigns_untouched(self, services, factory, company_user):
        running = factory.active_campaign(company_user, days_ago=-5)
        ends_today = factory.active_campaign(company_user, days_ago=0)

        assert services.lifecycle.close_expired_campaigns() == []
        assert db.session.get(Project, running.id).status == "active"
        assert db.session.get(Project, ends_today.id).status == "active"

    def test_scheduler_job_runs_in_app_context(self, app, factory, company_user):
        from backend.scheduler import close_expired_campaigns

        project = factory.active_campaign(company_user)

        assert close_expired_campaigns(app) == [(project.id, "failed")]

"""
/api/projects over HTTP: create, list, read, update, submit and review.
"""

from backend.extensions import db
from backend.models import Project


class TestCreateAndList:
    def test_company_creates_draft(self, client, company_user, auth):
        resp = client.post(
            "/api/projects",
            json={"title": "Mangrove nursery", "funding_goal": "25000", "status": "active"},
            headers=auth(company_user),
        )

        assert resp.status_code == 201
        project = resp.get_json()["project"]
        assert project["status"] == "draft"
        assert project["funding_goal"] == 25000

    def test_investor_cannot_create(self, client, investor_user, auth):
        resp = client.post("/api/projects", json={"title": "x"}, headers=auth(investor_user))

        assert resp.status_code == 403
        assert resp.get_json()["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_public_list_hides_unreviewed(self, client, factory, company_user):
        for status in ("draft", "submitted", "approved", "active", "funded", "rejected"):
            factory.project(company_user, status=status, title=status)

        resp = client.get("/api/projects")

        assert resp.status_code == 200
        titles = {p["title"] for p in resp.get_json()["projects"]}
        assert titles == {"approved", "active", "funded"}

    def test_admin_list_sees_everything(self, client, factory, company_user, admin_user, auth):
        factory.project(company_user, status="draft")
        factory.project(company_user, status="active")

        resp = client.get("/api/projects", headers=auth(admin_user))

        assert len(resp.get_json()["projects"]) == 2

    def test_filters(self, client, factory, company_user):
        factory.project(company_user, status="active", industry_sector="energy", impact_type="environmental")
        factory.project(company_user, status="active", industry_sector="health", impact_type="social")

        resp = client.get("/api/projects?industry=health")

        assert [p["industry_sector"] for p in resp.get_json()["projects"]] == ["health"]

    def test_mine_lists_only_own(self, client, factory, company_user, other_company_user, auth):
        mine = factory.project(company_user)
        factory.project(other_company_user)

        resp = client.get("/api/projects/mine", headers=auth(company_user))

        assert [p["id"] for p in resp.get_json()["projects"]] == [mine.id]


class TestGetProject:
    def test_public_project_visible_anonymously(self, client, factory, company_user):
        project = factory.project(company_user, status="active")

        assert client.get(f"/api/projects/{project.id}").status_code == 200

    def test_draft_visible_to_owner(self, client, factory, company_user, auth):
        project = factory.project(company_user)

        resp = client.get(f"/api/projects/{project.id}", headers=auth(company_user))

        assert resp.status_code == 200

    def test_draft_hidden_from_others(self, client, factory, company_user, other_company_user, auth):
        project = factory.project(company_user)

        anonymous = client.get(f"/api/projects/{project.id}")
        stranger = client.get(f"/api/projects/{project.id}", headers=auth(other_company_user))

        assert anonymous.status_code == 403
        assert stranger.get_json()["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_missing_project(self, client):
        resp = client.get("/api/projects/999")

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "PROJECT_NOT_FOUND"


class TestUpdate:
    def test_owner_updates_draft(self, client, factory, company_user, auth):
        project = factory.project(company_user)

        resp = client.put(
            f"/api/projects/{project.id}",
            json={"short_description": "Short pitch", "reviewer_id": 7},
            headers=auth(company_user),
        )

        assert resp.status_code == 200
        assert resp.get_json()["project"]["short_description"] == "Short pitch"
        assert resp.get_json()["project"]["reviewer_id"] is None

    def test_validation_lists_every_field(self, client, factory, company_user, auth):
        project = factory.project(company_user)

        resp = client.put(
            f"/api/projects/{project.id}",
            json={"funding_type": "loan", "video_url": "ftp://x", "end_date": "2020-01-01", "start_date": "2021-01-01"},
            headers=auth(company_user),
        )

        assert resp.status_code == 422
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert fields == {"funding_type", "video_url", "end_date"}

    def test_non_owner_refused(self, client, factory, company_user, other_company_user, auth):
        project = factory.project(company_user)

        resp = client.put(f"/api/projects/{project.id}", json={"title": "Mine now"}, headers=auth(other_company_user))

        assert resp.status_code == 403
        assert resp.get_json()["code"] == "AUTH_NOT_PROJECT_OWNER"


class TestSubmitAndReview:
    def test_full_flow(self, client, factory, company_user, admin_user, auth):
        project = factory.project(company_user)
        factory.required_documents(project)

        submitted = client.post(f"/api/projects/{project.id}/submit", headers=auth(company_user))
        assert submitted.status_code == 200
        assert submitted.get_json()["project"]["status"] == "submitted"

        reviewed = client.post(
            f"/api/projects/{project.id}/review",
            json={"status": "approved", "risk_rating": 3, "review_notes": "Good"},
            headers=auth(admin_user),
        )
        assert reviewed.status_code == 200
        body = reviewed.get_json()["project"]
        assert body["status"] == "approved"
        assert body["reviewer_id"] == admin_user.id

        again = client.post(
            f"/api/projects/{project.id}/review", json={"status": "rejected"}, headers=auth(admin_user)
        )
        assert again.status_code == 400
        assert again.get_json()["code"] == "PROJECT_NOT_REVIEWABLE"

    def test_submit_missing_financial_statements(self, client, factory, company_user, auth):
        project = factory.project(company_user)
        factory.document(project, "business_plan")

        resp = client.post(f"/api/projects/{project.id}/submit", headers=auth(company_user))

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "MISSING_REQUIRED_DOCUMENTS"
        assert body["missingDocuments"] == ["financial_statements"]
        assert body["missingFields"] == []
        assert db.session.get(Project, project.id).status == "draft"

    def test_company_cannot_review(self, client, factory, company_user, auth):
        project = factory.project(company_user, status="submitted")

        resp = client.post(f"/api/projects/{project.id}/review", json={"status": "approved"}, headers=auth(company_user))

        assert resp.status_code == 403
        assert resp.get_json()["code"] == "AUTH_INSUFFICIENT_PERMISSIONS"

    def test_review_validation(self, client, factory, company_user, admin_user, auth):
        project = factory.project(company_user, status="submitted")

        resp = client.post(
            f"/api/projects/{project.id}/review",
            json={"status": "approved", "risk_rating": 7},
            headers=auth(admin_user),
        )

        assert resp.status_code == 422
        assert resp.get_json()["code"] == "INVALID_RISK_RATING"
        assert db.session.get(Project, project.id).status == "submitted"


class TestRequestBodies:
    def test_review_with_list_body(self, client, factory, company_user, admin_user, auth):
        project = factory.project(company_user, status="submitted")

        resp = client.post(f"/api/projects/{project.id}/review", json=["approved"], headers=auth(admin_user))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_BODY"
        assert db.session.get(Project, project.id).status == "submitted"

    def test_update_with_string_body(self, client, factory, company_user, auth):
        project = factory.project(company_user)

        resp = client.put(f"/api/projects/{project.id}", json="title", headers=auth(company_user))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_BODY"

    def test_admin_status_with_list_body(self, client, factory, company_user, admin_user, auth):
        project = factory.project(company_user, status="submitted")

        resp = client.patch(
            f"/api/admin/projects/{project.id}/status", json=["under_review"], headers=auth(admin_user)
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_BODY"

    def test_admin_status_bad_rating_for_start_review(self, client, factory, company_user, admin_user, auth):
        project = factory.project(company_user, status="submitted")

        resp = client.patch(
            f"/api/admin/projects/{project.id}/status",
            json={"status": "under_review", "risk_rating": 9},
            headers=auth(admin_user),
        )

        assert resp.status_code == 422
        assert resp.get_json()["code"] == "INVALID_RISK_RATING"
        assert db.session.get(Project, project.id).status == "submitted"

import pytest

from conftest import bid_payload, job_payload, post_raw_json


class TestJobsCRUD:
    def test_create_job(self, client, provider):
        headers, user = provider
        r = client.post("/api/jobs", json=job_payload(title="  Logo design  ", category="Design"), headers=headers)
        assert r.status_code == 201
        data = r.json()
        assert data["title"] == "Logo design"
        assert data["status"] == "open"
        assert data["bids_count"] == 0
        assert data["assigned_to"] is None
        assert data["created_by"] == user["id"]
        assert data["budget_type"] == "fixed"
        assert data["experience_level"] == "intermediate"

    def test_freelancer_cannot_post(self, client, freelancer):
        r = client.post("/api/jobs", json=job_payload(), headers=freelancer[0])
        assert r.status_code == 403

    def test_requires_login(self, client):
        r = client.post("/api/jobs", json=job_payload())
        assert r.status_code == 401

    def test_validation_errors(self, client, provider):
        r = client.post("/api/jobs", json=job_payload(
            title="Hey",
            description="too short",
            category="Gardening",
            budget=0,
        ), headers=provider[0])
        assert r.status_code == 400
        fields = {d["field"] for d in r.json()["details"]}
        assert {"title", "description", "category", "budget"} <= fields

    def test_get_job(self, client, job):
        r = client.get(f"/api/jobs/{job['id']}")
        assert r.status_code == 200
        assert r.json()["title"] == job["title"]

    def test_get_missing_job(self, client):
        r = client.get("/api/jobs/does-not-exist")
        assert r.status_code == 404

    def test_update_job(self, client, provider, job):
        r = client.put(f"/api/jobs/{job['id']}", json={
            "title": "Build a landing page v2",
            "budget": 650,
        }, headers=provider[0])
        assert r.status_code == 200
        assert r.json()["title"] == "Build a landing page v2"
        assert r.json()["budget"] == 650

    def test_update_ignores_fields_outside_allowlist(self, client, provider, job):
        r = client.put(f"/api/jobs/{job['id']}", json={
            "category": "Writing",
            "created_by": "someone-else",
            "bids_count": 99,
        }, headers=provider[0])
        assert r.status_code == 200
        data = r.json()
        assert data["category"] == "Web Development"
        assert data["created_by"] == job["created_by"]
        assert data["bids_count"] == 0

    def test_update_by_non_owner(self, client, signup, job):
        other_headers, _ = signup("job_provider")
        r = client.put(f"/api/jobs/{job['id']}", json={"title": "Hijacked title"}, headers=other_headers)
        assert r.status_code == 403

    def test_delete_job_removes_bids(self, client, provider, freelancer, job, test_db):
        client.post("/api/bids", json=bid_payload(job["id"]), headers=freelancer[0])
        r = client.delete(f"/api/jobs/{job['id']}", headers=provider[0])
        assert r.status_code == 200
        assert client.get(f"/api/jobs/{job['id']}").status_code == 404

        from marketplace.models.bid import Bid
        db = test_db()
        try:
            assert db.query(Bid).filter(Bid.job_id == job["id"]).count() == 0
        finally:
            db.close()


class TestJobStatusOverrides:
    def test_cancel_and_reopen(self, client, provider, job):
        r = client.put(f"/api/jobs/{job['id']}", json={"status": "cancelled"}, headers=provider[0])
        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"

        r = client.put(f"/api/jobs/{job['id']}", json={"status": "open"}, headers=provider[0])
        assert r.status_code == 200
        assert r.json()["status"] == "open"

    def test_cannot_force_in_progress(self, client, provider, job):
        r = client.put(f"/api/jobs/{job['id']}", json={"status": "in_progress"}, headers=provider[0])
        assert r.status_code == 409
        assert client.get(f"/api/jobs/{job['id']}").json()["status"] == "open"

    def test_cannot_force_completed(self, client, provider, assigned_job):
        r = client.put(f"/api/jobs/{assigned_job['id']}", json={"status": "completed"}, headers=provider[0])
        assert r.status_code == 409

    def test_cannot_cancel_assigned_job(self, client, provider, assigned_job):
        r = client.put(f"/api/jobs/{assigned_job['id']}", json={"status": "cancelled"}, headers=provider[0])
        assert r.status_code == 409
        data = client.get(f"/api/jobs/{assigned_job['id']}").json()
        assert data["status"] == "in_progress"
        assert data["assigned_to"] is not None


class TestJobListing:
    def _post(self, client, headers, **overrides):
        r = client.post("/api/jobs", json=job_payload(**overrides), headers=headers)
        assert r.status_code == 201, r.text
        return r.json()

    def test_list_only_open_jobs(self, client, provider):
        headers, _ = provider
        self._post(client, headers, title="Open job one")
        cancelled = self._post(client, headers, title="Cancelled job")
        client.put(f"/api/jobs/{cancelled['id']}", json={"status": "cancelled"}, headers=headers)

        r = client.get("/api/jobs")
        assert r.status_code == 200
        data = r.json()
        assert data["total"] == 1
        assert [j["title"] for j in data["jobs"]] == ["Open job one"]

    def test_filters(self, client, provider):
        headers, _ = provider
        self._post(client, headers, title="Mobile banking app", category="Mobile Development", budget=3000)
        self._post(client, headers, title="Blog articles", category="Writing", budget=200)
        self._post(client, headers, title="Product translation", category="Translation", budget=800)

        by_category = client.get("/api/jobs", params={"category": "Writing"}).json()
        assert [j["title"] for j in by_category["jobs"]] == ["Blog articles"]

        by_budget = client.get("/api/jobs", params={"budget_min": 500, "budget_max": 1000}).json()
        assert [j["title"] for j in by_budget["jobs"]] == ["Product translation"]

        by_search = client.get("/api/jobs", params={"search": "banking"}).json()
        assert [j["title"] for j in by_search["jobs"]] == ["Mobile banking app"]

        everything = client.get("/api/jobs", params={"category": "all"}).json()
        assert everything["total"] == 3

    def test_pagination(self, client, provider):
        headers, _ = provider
        for i in range(5):
            self._post(client, headers, title=f"Paged job {i}")

        r = client.get("/api/jobs", params={"page": 2, "limit": 2})
        data = r.json()
        assert data["total"] == 5
        assert data["total_pages"] == 3
        assert data["page"] == 2
        assert len(data["jobs"]) == 2

    def test_categories(self, client):
        r = client.get("/api/jobs/categories")
        assert r.status_code == 200
        categories = r.json()["categories"]
        assert "Web Development" in categories
        assert "Other" in categories

    def test_posted_by_me(self, client, provider, signup):
        headers, _ = provider
        self._post(client, headers, title="Mine number one")
        other_headers, _ = signup("job_provider")
        self._post(client, other_headers, title="Not mine at all")

        r = client.get("/api/jobs/user/posted", headers=headers)
        assert r.status_code == 200
        assert [j["title"] for j in r.json()] == ["Mine number one"]

    def test_posted_requires_provider(self, client, freelancer):
        r = client.get("/api/jobs/user/posted", headers=freelancer[0])
        assert r.status_code == 403


class TestNonFiniteBudget:
    @pytest.mark.parametrize("literal", ["Infinity", "NaN"])
    def test_create_rejects_non_finite_budget(self, client, provider, literal):
        body = (
            '{"title": "Build a landing page", '
            '"description": "Responsive landing page for a product launch next month.", '
            f'"category": "Web Development", "budget": {literal}}}'
        )
        r = post_raw_json(client, "/api/jobs", body, headers=provider[0])
        assert r.status_code == 400
        assert "budget" in [d["field"] for d in r.json()["details"]]
        assert client.get("/api/jobs").json()["total"] == 0

    def test_update_rejects_infinite_budget(self, client, provider, job):
        r = client.request(
            "PUT",
            f"/api/jobs/{job['id']}",
            content=b'{"budget": Infinity}',
            headers={**provider[0], "Content-Type": "application/json"},
        )
        assert r.status_code == 400
        assert client.get(f"/api/jobs/{job['id']}").json()["budget"] == 500

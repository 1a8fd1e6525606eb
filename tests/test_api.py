"""
Test cases for the HTTP API
"""
from datetime import datetime, timedelta, timezone

import app as app_module


class TestAccounts:

    def test_register_and_duplicate(self, client):
        resp = client.post("/users", json={"email": "Sam@Example.com", "name": "Sam", "role": "CANDIDATE"})
        assert resp.status_code == 201
        assert resp.json()["email"] == "sam@example.com"

        resp = client.post("/users", json={"email": "sam@example.com", "name": "Sam", "role": "CANDIDATE"})
        assert resp.status_code == 409

    def test_missing_identity(self, client):
        assert client.get("/candidate/profile").status_code == 401
        assert client.get("/candidate/profile", headers={"X-User-Id": "999"}).status_code == 401

    def test_role_checks(self, client, candidate_headers, recruiter_headers):
        assert client.get("/recruiter/jobs", headers=candidate_headers).status_code == 403
        assert client.get("/candidate/profile", headers=recruiter_headers).status_code == 403


class TestProfile:

    def test_new_profile(self, client, candidate_headers):
        body = client.get("/candidate/profile", headers=candidate_headers).json()
        assert body["full_name"] == "Jane Doe"
        assert body["profile_completeness"] == 7
        assert "phone" in body["missing_fields"]
        assert body["skills"] == []

    def test_update_recomputes_completeness(self, client, matching_profile):
        assert matching_profile["skills"] == ["React", "Node.js"]
        assert matching_profile["profile_completeness"] == 36
        assert "total_experience" not in matching_profile["missing_fields"]

    def test_partial_update_keeps_other_fields(self, client, candidate_headers, matching_profile):
        resp = client.put("/candidate/profile", json={"job_type": "CONTRACT"}, headers=candidate_headers)
        body = resp.json()
        assert body["job_type"] == "CONTRACT"
        assert body["skills"] == ["React", "Node.js"]
        assert body["profile_completeness"] == 43

    def test_rejects_negative_experience(self, client, candidate_headers):
        resp = client.put("/candidate/profile", json={"total_experience": -1}, headers=candidate_headers)
        assert resp.status_code == 422


class TestResumeUpload:

    def test_txt_resume_fills_profile(self, client, candidate_headers):
        resume = b"Jane Doe\n+1 415 555 0132\nSkills: Python, Docker, AWS\n6 years of experience in backend work\n"
        resp = client.post(
            "/candidate/resume",
            files={"resume": ("cv.txt", resume, "text/plain")},
            headers=candidate_headers,
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["parsed"]["source"] == "heuristic"
        assert "text" not in body["parsed"]
        assert body["profile_completeness"] == 36

        profile = client.get("/candidate/profile", headers=candidate_headers).json()
        assert profile["skills"] == ["python", "docker", "aws"]
        assert profile["total_experience"] == 6.0
        assert profile["phone"] == "+14155550132"
        assert profile["resume_filename"] == "cv.txt"

    def test_rejects_unknown_type(self, client, candidate_headers):
        resp = client.post(
            "/candidate/resume",
            files={"resume": ("cv.exe", b"MZ", "application/octet-stream")},
            headers=candidate_headers,
        )
        assert resp.status_code == 400

    def test_rejects_empty_text(self, client, candidate_headers):
        resp = client.post(
            "/candidate/resume",
            files={"resume": ("cv.txt", b"   ", "text/plain")},
            headers=candidate_headers,
        )
        assert resp.status_code == 422


class TestRecommendations:

    def test_only_eligible_jobs_above_threshold(self, client, candidate_headers, matching_profile, make_job):
        good = make_job()
        make_job(title="Java Lead", skills=["Java"], locations=["Berlin"], work_mode="ONSITE",
                 experience_min=10, experience_max=15, salary_min=200000, salary_max=300000)
        make_job(status="DRAFT")
        make_job(deadline="2000-01-01T00:00:00")

        resp = client.get("/candidate/recommended-jobs", headers=candidate_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["totalJobs"] == 1
        assert body["jobs"][0]["jobId"] == good["id"]
        assert body["jobs"][0]["score"] == 80
        assert body["jobs"][0]["job"]["title"] == "Frontend Engineer"

    def test_offset_deadline_is_compared_in_utc(self, client, candidate_headers, matching_profile, make_job):
        pacific = timezone(timedelta(hours=-8))
        deadline = (datetime.now(timezone.utc) + timedelta(hours=1)).astimezone(pacific)
        job = make_job(deadline=deadline.isoformat())

        stored = datetime.fromisoformat(job["deadline"])
        assert stored.tzinfo is None
        assert abs(stored - deadline.astimezone(timezone.utc).replace(tzinfo=None)) < timedelta(seconds=1)

        body = client.get("/candidate/recommended-jobs", headers=candidate_headers).json()
        assert [j["jobId"] for j in body["jobs"]] == [job["id"]]

    def test_empty_profile_gets_nothing(self, client, candidate_headers, make_job):
        make_job()
        body = client.get("/candidate/recommended-jobs", headers=candidate_headers).json()
        assert body == {"jobs": [], "totalJobs": 0}


class TestSavedJobs:

    def test_save_list_remove(self, client, candidate_headers, make_job):
        job = make_job()
        resp = client.post("/jobs/save", json={"job_id": job["id"]}, headers=candidate_headers)
        assert resp.status_code == 200
        assert client.post("/jobs/save", json={"job_id": job["id"]}, headers=candidate_headers).status_code == 400
        assert client.post("/jobs/save", json={"job_id": 999}, headers=candidate_headers).status_code == 404

        saved = client.get("/candidate/saved-jobs", headers=candidate_headers).json()
        assert [s["id"] for s in saved] == [job["id"]]
        assert "saved_at" in saved[0]

        assert client.delete(f"/jobs/save/{job['id']}", headers=candidate_headers).status_code == 200
        assert client.delete(f"/jobs/save/{job['id']}", headers=candidate_headers).status_code == 404


class TestApplications:

    def test_apply_once(self, client, candidate_headers, make_job):
        job = make_job()
        resp = client.post("/candidate/applications", json={"job_id": job["id"], "cover_letter": "Hi"},
                           headers=candidate_headers)
        assert resp.status_code == 201
        assert resp.json()["status"] == "APPLIED"
        assert resp.json()["job_title"] == "Frontend Engineer"

        again = client.post("/candidate/applications", json={"job_id": job["id"]}, headers=candidate_headers)
        assert again.status_code == 400

        mine = client.get("/candidate/applications", headers=candidate_headers).json()
        assert len(mine) == 1

        detail = client.get(f"/jobs/{job['id']}").json()
        assert detail["application_count"] == 1

    def test_cannot_apply_to_draft(self, client, candidate_headers, make_job):
        job = make_job(status="DRAFT")
        resp = client.post("/candidate/applications", json={"job_id": job["id"]}, headers=candidate_headers)
        assert resp.status_code == 400

    def test_recruiter_sees_real_match_score(self, client, candidate_headers, recruiter_headers,
                                             matching_profile, make_job):
        job = make_job()
        client.post("/candidate/applications", json={"job_id": job["id"]}, headers=candidate_headers)

        apps = client.get("/recruiter/applications", headers=recruiter_headers).json()
        assert len(apps) == 1
        assert apps[0]["match_score"] == 80
        assert apps[0]["candidate_name"] == "Jane Doe"
        assert apps[0]["candidate_info"]["skills"] == ["React", "Node.js"]

        resp = client.patch(f"/recruiter/applications/{apps[0]['id']}", json={"status": "SHORTLISTED"},
                            headers=recruiter_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "SHORTLISTED"

    def test_other_recruiter_cannot_update(self, client, register, candidate_headers, make_job):
        job = make_job()
        app_id = client.post("/candidate/applications", json={"job_id": job["id"]},
                             headers=candidate_headers).json()["id"]
        other = register("other@corp.io", "Other", "RECRUITER")
        resp = client.patch(f"/recruiter/applications/{app_id}", json={"status": "REJECTED"}, headers=other)
        assert resp.status_code == 403


class TestJobs:

    def test_create_validates_ranges(self, client, recruiter_headers):
        resp = client.post("/recruiter/jobs", json={
            "title": "X", "company_name": "Acme", "description": "d",
            "salary_min": 100, "salary_max": 50,
        }, headers=recruiter_headers)
        assert resp.status_code == 422

    def test_status_change(self, client, recruiter_headers, make_job):
        job = make_job(status="DRAFT")
        resp = client.patch(f"/recruiter/jobs/{job['id']}/status", json={"status": "ACTIVE"},
                            headers=recruiter_headers)
        assert resp.json()["status"] == "ACTIVE"
        assert client.get("/jobs/999").status_code == 404

    def test_search_filters(self, client, make_job):
        frontend = make_job()
        java = make_job(title="Java Lead", skills=["Java"], locations=["Berlin"], work_mode="ONSITE",
                        employment_type="CONTRACT", salary_min=200000, salary_max=300000)
        make_job(title="Hidden", status="DRAFT")

        body = client.get("/jobs/search").json()
        assert body["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}

        body = client.get("/jobs/search", params={"query": "typescript"}).json()
        assert [j["id"] for j in body["jobs"]] == [frontend["id"]]

        body = client.get("/jobs/search", params={"location": "berlin"}).json()
        assert [j["id"] for j in body["jobs"]] == [java["id"]]

        body = client.get("/jobs/search", params={"job_type": "CONTRACT"}).json()
        assert [j["id"] for j in body["jobs"]] == [java["id"]]

        body = client.get("/jobs/search", params={"salary_min": 150000}).json()
        assert [j["id"] for j in body["jobs"]] == [java["id"]]

        body = client.get("/jobs/search", params={"query": "typescript", "salary_min": 150000}).json()
        assert body["jobs"] == []

    def test_search_sorting(self, client, make_job):
        react = make_job(title="React Engineer", description="Builds UI in react", skills=["React"])
        python = make_job(title="Python Engineer", description="Python python python", skills=["Python"],
                          salary_min=130000, salary_max=160000)

        by_date = client.get("/jobs/search", params={"query": "engineer", "sort_by": "date"}).json()
        assert [j["id"] for j in by_date["jobs"]] == [python["id"], react["id"]]

        by_relevance = client.get("/jobs/search", params={"query": "engineer"}).json()
        assert [j["id"] for j in by_relevance["jobs"]] == [react["id"], python["id"]]

        by_salary = client.get("/jobs/search", params={"sort_by": "salary_low"}).json()
        assert [j["id"] for j in by_salary["jobs"]] == [react["id"], python["id"]]

    def test_search_pagination(self, client, make_job):
        for i in range(3):
            make_job(title=f"Role {i}")
        body = client.get("/jobs/search", params={"limit": 2, "page": 2}).json()
        assert len(body["jobs"]) == 1
        assert body["pagination"]["pages"] == 2


class TestChat:

    def _setup(self, client, candidate_headers, make_job, **job_fields):
        job = make_job(**job_fields)
        candidate_id = client.get("/candidate/profile", headers=candidate_headers).json()["id"]
        return job, candidate_id

    def test_fallback_reply_flags_salary_negotiation(self, client, candidate_headers, recruiter_headers, make_job):
        job, candidate_id = self._setup(client, candidate_headers, make_job)
        resp = client.post("/chat/ai-response", json={
            "candidate_id": candidate_id,
            "job_id": job["id"],
            "message": "Can we negotiate a higher salary?",
            "sender_role": "CANDIDATE",
        }, headers=recruiter_headers)
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert "$80,000 - $120,000" in body["message"]
        assert body["metadata"]["interventionNeeded"] is True
        assert body["metadata"]["conversationComplete"] is False
        assert body["metadata"]["confidence"] == "low"
        assert body["metadata"]["error"]

        queue = client.get("/recruiter/action-queue", headers=recruiter_headers).json()
        assert len(queue) == 1
        assert queue[0]["sender_role"] == "BOT"

        resolved = client.post(f"/recruiter/action-queue/{queue[0]['id']}/resolve", headers=recruiter_headers)
        assert resolved.json()["resolved"] is True
        assert client.get("/recruiter/action-queue", headers=recruiter_headers).json() == []

    def test_llm_reply_and_completion(self, client, monkeypatch, candidate_headers, recruiter_headers, make_job):
        calls = []

        def fake_reply(context, message, sender_role, criteria):
            calls.append((context, criteria))
            return "Sounds good! You can apply here: https://jobs.acme.io/1", "high"

        monkeypatch.setattr(app_module, "generate_reply", fake_reply)
        job, candidate_id = self._setup(client, candidate_headers, make_job,
                                        non_negotiable_criteria=["5+ years of React"])

        first = client.post("/chat/ai-response", json={
            "candidate_id": candidate_id, "job_id": job["id"],
            "message": "I love this role, when do I start?", "sender_role": "CANDIDATE",
        }, headers=recruiter_headers).json()
        assert first["metadata"]["interventionNeeded"] is False
        assert first["metadata"]["conversationComplete"] is False
        assert first["metadata"]["confidence"] == "high"
        assert first["metadata"].get("error") is None
        assert calls[0][1] == ["5+ years of React"]
        assert "Frontend Engineer" in calls[0][0]

        second = client.post("/chat/ai-response", json={
            "candidate_id": candidate_id, "job_id": job["id"],
            "message": "Thanks, will do", "sender_role": "CANDIDATE",
        }, headers=recruiter_headers).json()
        assert second["metadata"]["conversationComplete"] is True
        assert "I love this role" in calls[1][0]

        history = client.get("/chat/history", params={"job_id": job["id"], "candidate_id": candidate_id},
                             headers=candidate_headers).json()
        assert [m["sender_role"] for m in history] == ["CANDIDATE", "BOT", "CANDIDATE", "BOT"]

    def test_disqualifier_uses_job_criteria(self, client, monkeypatch, candidate_headers, recruiter_headers, make_job):
        monkeypatch.setattr(app_module, "generate_reply", lambda *args: ("Noted.", "high"))
        job, candidate_id = self._setup(client, candidate_headers, make_job,
                                        non_negotiable_criteria=["Bachelor's degree"])
        body = client.post("/chat/ai-response", json={
            "candidate_id": candidate_id, "job_id": job["id"],
            "message": "I don't have a degree", "sender_role": "CANDIDATE",
        }, headers=recruiter_headers).json()
        assert body["metadata"]["interventionNeeded"] is True

    def test_only_job_owner_can_chat(self, client, register, candidate_headers, make_job):
        job, candidate_id = self._setup(client, candidate_headers, make_job)
        other = register("other@corp.io", "Other", "RECRUITER")
        resp = client.post("/chat/ai-response", json={
            "candidate_id": candidate_id, "job_id": job["id"],
            "message": "Hello", "sender_role": "RECRUITER",
        }, headers=other)
        assert resp.status_code == 403


class TestCustomQuestions:

    def _add(self, client, headers, job_id, **payload):
        return client.post(f"/jobs/{job_id}/questions", json=payload, headers=headers)

    def test_add_and_list(self, client, recruiter_headers, make_job):
        job = make_job()
        first = self._add(client, recruiter_headers, job["id"], question="Why us?", type="TEXTAREA")
        assert first.status_code == 201
        assert first.json()["order"] == 0
        assert first.json()["options"] == []

        second = self._add(client, recruiter_headers, job["id"], question="Preferred stack?",
                           type="DROPDOWN", options=["React", "Vue", " "], is_mandatory=True)
        assert second.status_code == 201
        assert second.json()["order"] == 1
        assert second.json()["options"] == ["React", "Vue"]

        listed = client.get(f"/jobs/{job['id']}/questions").json()
        assert [q["question"] for q in listed] == ["Why us?", "Preferred stack?"]
        detail = client.get(f"/jobs/{job['id']}").json()
        assert [q["order"] for q in detail["custom_questions"]] == [0, 1]

    def test_validation(self, client, recruiter_headers, make_job):
        job = make_job()
        for qtype in ("DROPDOWN", "MULTIPLE_CHOICE", "CHECKBOX"):
            resp = self._add(client, recruiter_headers, job["id"], question="Pick one", type=qtype)
            assert resp.status_code == 422
        assert self._add(client, recruiter_headers, job["id"], question="", type="TEXT").status_code == 422
        assert self._add(client, recruiter_headers, job["id"], question="Q?").status_code == 422
        assert self._add(client, recruiter_headers, job["id"], question="Q?", type="ESSAY").status_code == 422
        assert self._add(client, recruiter_headers, 999, question="Q?", type="TEXT").status_code == 404
        assert client.get("/jobs/999/questions").status_code == 404

    def test_only_owner_adds(self, client, register, candidate_headers, make_job):
        job = make_job()
        other = register("other@corp.io", "Other", "RECRUITER")
        assert self._add(client, other, job["id"], question="Q?", type="TEXT").status_code == 403
        assert self._add(client, candidate_headers, job["id"], question="Q?", type="TEXT").status_code == 403

    def test_answers_checked_on_apply(self, client, recruiter_headers, candidate_headers, make_job):
        job = make_job()
        stack = self._add(client, recruiter_headers, job["id"], question="Preferred stack?",
                          type="DROPDOWN", options=["React", "Vue"], is_mandatory=True).json()
        tools = self._add(client, recruiter_headers, job["id"], question="Tools?",
                          type="CHECKBOX", options=["Jest", "Cypress"]).json()
        visa = self._add(client, recruiter_headers, job["id"], question="Need a visa?", type="YES_NO").json()
        stack_id, tools_id, visa_id = str(stack["id"]), str(tools["id"]), str(visa["id"])

        def apply(answers):
            return client.post("/candidate/applications", json={"job_id": job["id"], "answers": answers},
                               headers=candidate_headers)

        assert apply({}).status_code == 400
        assert apply({stack_id: "Angular"}).status_code == 400
        assert apply({stack_id: "React", tools_id: ["Jest", "Selenium"]}).status_code == 400
        assert apply({stack_id: "React", visa_id: "maybe"}).status_code == 400
        assert apply({stack_id: "React", "999": "extra"}).status_code == 400

        ok = apply({stack_id: "React", tools_id: ["Jest", "Cypress"], visa_id: "no"})
        assert ok.status_code == 201, ok.text
        assert ok.json()["answers"][stack_id] == "React"

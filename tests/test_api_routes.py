"""
tests/test_api_routes.py -- Integration tests for the QuizDesk HTTP surface.

These tests exercise the full stack: FastAPI routing -> bearer-token dependency
-> access decision -> UserStore/QuizStore operations -> response model
serialization -> error envelope. Each test gets a fresh app and database from
the client fixture.

Coverage:
  - Auth: register, login (all three fields must match), first-run admin, create-admin
  - Token handling: missing -> 401, invalid -> 403, student on admin routes -> 403
  - Profile: get / update / delete own account; ids are never reused
  - Questions: public read, admin CRUD, not-found ids
  - Results: scoring, alias key, per-student scoping, admin listing, wipe
  - Admin: students list/delete, stats
  - End-to-end student flow
  - Error envelope, including storage failures
  - Rate limiting on credential endpoints

Fixtures used (from conftest.py):
  - client, admin_headers, student_headers, register_student
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.limiter import limiter

QUESTION = {"question": "Capital of France?", "a": "Berlin", "b": "Madrid", "c": "Paris", "d": "Rome", "correct": "c"}


def _error_code(resp) -> str:
    return resp.json().get("error", {}).get("code")


class TestRegisterAndLogin:
    def test_register_returns_token_and_user(self, client: TestClient) -> None:
        resp = client.post(
            "/auth/register",
            json={"name": "Sam", "email": "Sam@Example.com", "password": "studentpass1"},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "sam@example.com"
        assert data["user"]["role"] == "student"
        assert "password" not in data["user"]
        assert "hashed_password" not in data["user"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_register_as_admin_is_forbidden_and_creates_nothing(self, client: TestClient) -> None:
        body = {"name": "Mallory", "email": "mallory@example.com", "password": "password123", "role": "admin"}
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 403
        assert _error_code(resp) == "forbidden"

        login = client.post(
            "/auth/login", json={"email": "mallory@example.com", "password": "password123", "role": "admin"}
        )
        assert login.status_code == 401
        # The email is still free, so nothing was written.
        retry = client.post("/auth/register", json={**body, "role": "student"})
        assert retry.status_code == 201

    @pytest.mark.parametrize(
        "body",
        [
            {"name": "M", "email": "m@example.com", "password": "x", "role": "admin"},
            {"name": "", "email": "not-an-email", "password": "password123", "role": "admin"},
            {"role": "ADMIN"},
        ],
    )
    def test_register_as_admin_is_forbidden_whatever_else_is_wrong(self, client: TestClient, body) -> None:
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 403
        assert _error_code(resp) == "forbidden"

    def test_register_duplicate_email(self, client: TestClient, register_student) -> None:
        register_student(email="dup@example.com")
        resp = client.post(
            "/auth/register", json={"name": "Other", "email": "DUP@example.com", "password": "password123"}
        )
        assert resp.status_code == 400
        assert _error_code(resp) == "conflict"

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "a@example.com", "password": "password123"},  # no name
            {"name": "Ann", "email": "a@example.com", "password": "short"},
            {"name": "Ann", "email": "not-an-email", "password": "password123"},
            {"name": "Ann", "email": "ann@example", "password": "password123"},
            {"name": "Ann", "email": "ann@@example.com", "password": "password123"},
            {"name": "Ann", "email": "a@example.com", "password": "password123", "role": "moderator"},
        ],
    )
    def test_register_validation(self, client: TestClient, body) -> None:
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"

    def test_login_success(self, client: TestClient, register_student) -> None:
        _headers, user = register_student()
        resp = client.post(
            "/auth/login", json={"email": "sam@example.com", "password": "studentpass1", "role": "student"}
        )
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["user"]["id"] == user["id"]
        assert data["token"]
        assert resp.headers["Cache-Control"] == "no-store"

    @pytest.mark.parametrize(
        "body",
        [
            {"email": "sam@example.com", "password": "wrongpass", "role": "student"},
            {"email": "sam@example.com", "password": "studentpass1", "role": "admin"},
            {"email": "nobody@example.com", "password": "studentpass1", "role": "student"},
        ],
    )
    def test_login_any_mismatch_is_401(self, client: TestClient, register_student, body) -> None:
        register_student()
        resp = client.post("/auth/login", json=body)
        assert resp.status_code == 401
        assert _error_code(resp) == "bad_credentials"
        assert "token" not in resp.json()


class TestAdminBootstrap:
    def test_first_admin_succeeds_once(self, client: TestClient) -> None:
        body = {"name": "Ada", "email": "ada@example.com", "password": "adminpass1"}
        first = client.post("/setup/first-admin", json=body)
        assert first.status_code == 201, first.text
        assert first.json()["user"]["role"] == "admin"
        assert first.json()["token"]

        second = client.post(
            "/setup/first-admin", json={"name": "Eve", "email": "eve@example.com", "password": "adminpass2"}
        )
        assert second.status_code == 403
        assert _error_code(second) == "forbidden"

        login = client.post("/auth/login", json={"email": "eve@example.com", "password": "adminpass2", "role": "admin"})
        assert login.status_code == 401

    def test_first_admin_rejects_invalid_email(self, client: TestClient) -> None:
        resp = client.post("/setup/first-admin", json={"name": "Ada", "email": "ada@@example.com", "password": "adminpass1"})
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"

    def test_first_admin_token_works_on_admin_routes(self, client: TestClient, admin_headers) -> None:
        resp = client.get("/admin/stats", headers=admin_headers)
        assert resp.status_code == 200

    def test_create_admin_issues_no_token(self, client: TestClient, admin_headers) -> None:
        body = {"name": "Bob", "email": "bob@example.com", "password": "adminpass2"}
        resp = client.post("/admin/create-admin", json=body, headers=admin_headers)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["message"]
        assert data["admin"]["role"] == "admin"
        assert "token" not in data

        login = client.post("/auth/login", json={"email": "bob@example.com", "password": "adminpass2", "role": "admin"})
        assert login.status_code == 200

    def test_create_admin_duplicate_email(self, client: TestClient, admin_headers) -> None:
        body = {"name": "Ada Again", "email": "admin@example.com", "password": "adminpass2"}
        resp = client.post("/admin/create-admin", json=body, headers=admin_headers)
        assert resp.status_code == 400
        assert _error_code(resp) == "conflict"

    def test_create_admin_requires_token(self, client: TestClient) -> None:
        body = {"name": "Bob", "email": "bob@example.com", "password": "adminpass2"}
        resp = client.post("/admin/create-admin", json=body)
        assert resp.status_code == 401
        assert _error_code(resp) == "unauthorized"


class TestTokenHandling:
    def test_missing_token_is_401(self, client: TestClient) -> None:
        for method, path in [("get", "/users/profile"), ("get", "/results"), ("get", "/admin/stats")]:
            resp = getattr(client, method)(path)
            assert resp.status_code == 401, path
            assert _error_code(resp) == "unauthorized"

    def test_invalid_token_is_403(self, client: TestClient) -> None:
        resp = client.get("/users/profile", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 403
        assert _error_code(resp) == "forbidden"

    def test_non_bearer_scheme_counts_as_missing(self, client: TestClient) -> None:
        resp = client.get("/users/profile", headers={"Authorization": "Basic dXNlcjpwYXNz"})
        assert resp.status_code == 401

    def test_student_token_rejected_on_every_admin_route(
        self, client: TestClient, admin_headers, student_headers
    ) -> None:
        q = client.post("/questions", json=QUESTION, headers=admin_headers).json()
        admin_only = [
            ("post", "/admin/create-admin", {"name": "X", "email": "x@example.com", "password": "password123"}),
            ("get", "/admin/students", None),
            ("delete", "/admin/students/1", None),
            ("get", "/admin/stats", None),
            ("post", "/questions", QUESTION),
            ("put", f"/questions/{q['id']}", {"a": "changed"}),
            ("delete", f"/questions/{q['id']}", None),
            ("delete", "/questions", None),
            ("delete", "/results", None),
        ]
        for method, path, body in admin_only:
            kwargs = {"headers": student_headers}
            if body is not None:
                kwargs["json"] = body
            resp = client.request(method.upper(), path, **kwargs)
            assert resp.status_code == 403, f"{method} {path} -> {resp.status_code}"
            assert _error_code(resp) == "forbidden"

        # Nothing changed behind the rejected requests.
        assert client.get("/questions").json() == [q]


class TestProfile:
    def test_get_profile(self, client: TestClient, register_student) -> None:
        headers, user = register_student()
        resp = client.get("/users/profile", headers=headers)
        assert resp.status_code == 200
        assert resp.json() == user

    def test_update_profile(self, client: TestClient, register_student) -> None:
        headers, _user = register_student()
        resp = client.put("/users/profile", json={"name": "Samantha", "email": "samantha@example.com"}, headers=headers)
        assert resp.status_code == 200, resp.text
        assert resp.json()["name"] == "Samantha"
        assert resp.json()["email"] == "samantha@example.com"
        assert resp.json()["role"] == "student"

        login = client.post(
            "/auth/login", json={"email": "samantha@example.com", "password": "studentpass1", "role": "student"}
        )
        assert login.status_code == 200

    def test_update_profile_ignores_role(self, client: TestClient, register_student) -> None:
        headers, _user = register_student()
        resp = client.put("/users/profile", json={"role": "admin"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["role"] == "student"

    def test_update_profile_email_taken(self, client: TestClient, register_student) -> None:
        register_student(email="first@example.com")
        headers, _user = register_student(name="Second", email="second@example.com")
        resp = client.put("/users/profile", json={"email": "first@example.com"}, headers=headers)
        assert resp.status_code == 400
        assert _error_code(resp) == "conflict"

    def test_delete_profile(self, client: TestClient, register_student) -> None:
        headers, _user = register_student()
        resp = client.delete("/users/profile", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["message"]

        # The token outlives the account; the account itself is gone.
        again = client.get("/users/profile", headers=headers)
        assert again.status_code == 404
        assert _error_code(again) == "not_found"

    def test_update_profile_rejects_invalid_email(self, client: TestClient, register_student) -> None:
        headers, user = register_student()
        resp = client.put("/users/profile", json={"email": "sam@example"}, headers=headers)
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"
        assert client.get("/users/profile", headers=headers).json()["email"] == user["email"]

    def test_deleted_account_id_is_not_reused(self, client: TestClient, register_student) -> None:
        alice_headers, alice = register_student(name="Alice", email="alice@example.com")
        submitted = client.post("/results", json={"score": 1, "total_questions": 5}, headers=alice_headers)
        assert submitted.status_code == 201
        assert client.delete("/users/profile", headers=alice_headers).status_code == 200

        bob_headers, bob = register_student(name="Bob", email="bob@example.com")
        assert bob["id"] > alice["id"]
        assert client.get("/results", headers=bob_headers).json() == []

        # Alice's token still verifies but names an id nobody holds.
        assert client.get("/users/profile", headers=alice_headers).status_code == 404
        assert client.post("/results", json={"score": 1, "total_questions": 5}, headers=alice_headers).status_code == 404


class TestQuestions:
    def test_list_is_public(self, client: TestClient, admin_headers) -> None:
        client.post("/questions", json=QUESTION, headers=admin_headers)
        resp = client.get("/questions")
        assert resp.status_code == 200
        assert len(resp.json()) == 1
        assert resp.json()[0]["correct"] == "c"

    def test_create_update_delete(self, client: TestClient, admin_headers) -> None:
        created = client.post("/questions", json={**QUESTION, "correct": "C"}, headers=admin_headers)
        assert created.status_code == 201, created.text
        qid = created.json()["id"]
        assert created.json()["correct"] == "c"

        updated = client.put(f"/questions/{qid}", json={"correct": "a"}, headers=admin_headers)
        assert updated.status_code == 200
        assert updated.json()["correct"] == "a"
        assert updated.json()["question"] == QUESTION["question"]

        deleted = client.delete(f"/questions/{qid}", headers=admin_headers)
        assert deleted.status_code == 200
        assert client.get("/questions").json() == []

    def test_invalid_correct_label(self, client: TestClient, admin_headers) -> None:
        resp = client.post("/questions", json={**QUESTION, "correct": "e"}, headers=admin_headers)
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"

    def test_missing_field(self, client: TestClient, admin_headers) -> None:
        body = {k: v for k, v in QUESTION.items() if k != "b"}
        resp = client.post("/questions", json=body, headers=admin_headers)
        assert resp.status_code == 400

    def test_missing_id_is_not_found(self, client: TestClient, admin_headers) -> None:
        put = client.put("/questions/9999", json={"a": "x"}, headers=admin_headers)
        assert put.status_code == 404
        assert _error_code(put) == "not_found"

        delete = client.delete("/questions/9999", headers=admin_headers)
        assert delete.status_code == 404
        assert _error_code(delete) == "not_found"

    def test_delete_all(self, client: TestClient, admin_headers) -> None:
        for _ in range(3):
            client.post("/questions", json=QUESTION, headers=admin_headers)
        resp = client.delete("/questions", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"message": "All questions have been deleted.", "deleted": 3}
        assert client.get("/questions").json() == []


class TestResults:
    def test_submit_scores_server_side(self, client: TestClient, student_headers) -> None:
        resp = client.post("/results", json={"score": 6, "total_questions": 10}, headers=student_headers)
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["percentage"] == 60
        assert data["passed"] is True
        assert data["student_name"] == "Sam Student"
        assert data["completed_at"]

    def test_submit_accepts_camel_case_total(self, client: TestClient, student_headers) -> None:
        resp = client.post("/results", json={"score": 5, "totalQuestions": 10}, headers=student_headers)
        assert resp.status_code == 201, resp.text
        assert resp.json()["percentage"] == 50
        assert resp.json()["passed"] is False

    @pytest.mark.parametrize(
        "body",
        [
            {"score": 6, "total_questions": 5},
            {"score": -1, "total_questions": 5},
            {"score": 1, "total_questions": 0},
            {"score": 1},
        ],
    )
    def test_submit_invalid(self, client: TestClient, student_headers, body) -> None:
        resp = client.post("/results", json=body, headers=student_headers)
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"

    def test_submit_requires_token(self, client: TestClient) -> None:
        resp = client.post("/results", json={"score": 1, "total_questions": 2})
        assert resp.status_code == 401

    def test_students_see_only_their_own(self, client: TestClient, admin_headers, register_student) -> None:
        sam_headers, sam = register_student()
        kim_headers, kim = register_student(name="Kim", email="kim@example.com")
        client.post("/results", json={"score": 3, "total_questions": 5}, headers=sam_headers)
        client.post("/results", json={"score": 1, "total_questions": 5}, headers=kim_headers)
        client.post("/results", json={"score": 4, "total_questions": 5}, headers=kim_headers)

        sam_results = client.get("/results", headers=sam_headers).json()
        assert [r["student_id"] for r in sam_results] == [sam["id"]]
        assert sam_results[0]["student"] is None

        all_results = client.get("/results", headers=admin_headers).json()
        assert len(all_results) == 3
        owners = {r["student"]["email"] for r in all_results}
        assert owners == {"sam@example.com", "kim@example.com"}
        assert {r["student_id"] for r in all_results} == {sam["id"], kim["id"]}

    def test_delete_all_results(self, client: TestClient, admin_headers, student_headers) -> None:
        client.post("/results", json={"score": 3, "total_questions": 5}, headers=student_headers)
        resp = client.delete("/results", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"message": "All results have been deleted.", "deleted": 1}
        assert client.get("/results", headers=admin_headers).json() == []


class TestAdminManagement:
    def test_list_and_delete_students(self, client: TestClient, admin_headers, register_student) -> None:
        _headers, sam = register_student()
        register_student(name="Kim", email="kim@example.com")

        students = client.get("/admin/students", headers=admin_headers).json()
        assert [s["email"] for s in students] == ["sam@example.com", "kim@example.com"]
        assert all(s["role"] == "student" for s in students)

        resp = client.delete(f"/admin/students/{sam['id']}", headers=admin_headers)
        assert resp.status_code == 200
        students = client.get("/admin/students", headers=admin_headers).json()
        assert [s["email"] for s in students] == ["kim@example.com"]

    def test_delete_student_cannot_remove_admin(self, client: TestClient, admin_headers) -> None:
        admin_id = client.get("/users/profile", headers=admin_headers).json()["id"]
        resp = client.delete(f"/admin/students/{admin_id}", headers=admin_headers)
        assert resp.status_code == 404
        assert client.get("/users/profile", headers=admin_headers).status_code == 200

    def test_stats(self, client: TestClient, admin_headers, register_student) -> None:
        sam_headers, _sam = register_student()
        client.post("/questions", json=QUESTION, headers=admin_headers)
        client.post("/questions", json=QUESTION, headers=admin_headers)
        client.post("/results", json={"score": 3, "total_questions": 5}, headers=sam_headers)
        client.post("/results", json={"score": 1, "total_questions": 5}, headers=sam_headers)

        resp = client.get("/admin/stats", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"students": 1, "questions": 2, "passed": 1, "failed": 1}


class TestStudentFlow:
    def test_register_login_submit_list(self, client: TestClient) -> None:
        reg = client.post("/auth/register", json={"name": "Lee", "email": "lee@example.com", "password": "leepass123"})
        assert reg.status_code == 201

        login = client.post("/auth/login", json={"email": "lee@example.com", "password": "leepass123", "role": "student"})
        assert login.status_code == 200
        headers = {"Authorization": f"Bearer {login.json()['token']}"}

        submitted = client.post("/results", json={"score": 3, "total_questions": 5}, headers=headers)
        assert submitted.status_code == 201
        assert submitted.json()["percentage"] == 60
        assert submitted.json()["passed"] is True

        results = client.get("/results", headers=headers).json()
        assert len(results) == 1
        assert results[0]["score"] == 3
        assert results[0]["total_questions"] == 5
        assert results[0]["percentage"] == 60
        assert results[0]["passed"] is True
        assert results[0]["student_name"] == "Lee"


class TestErrorEnvelope:
    def test_unknown_route(self, client: TestClient) -> None:
        resp = client.get("/no-such-route")
        assert resp.status_code == 404
        assert "error" in resp.json()

    def test_malformed_json(self, client: TestClient) -> None:
        resp = client.post("/auth/register", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert _error_code(resp) == "validation_error"

    def test_store_failure_hides_the_cause(self, client: TestClient, student_headers, monkeypatch) -> None:
        monkeypatch.setattr(client.app.state.quiz_store, "get_result", lambda result_id: None)
        resp = client.post("/results", json={"score": 1, "total_questions": 2}, headers=student_headers)
        assert resp.status_code == 500
        assert resp.json()["error"] == {
            "code": "store_failure",
            "message": "A storage error occurred.",
            "detail": None,
        }

    def test_database_error_is_store_failure(self, client: TestClient, monkeypatch) -> None:
        def broken():
            raise OperationalError("SELECT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(client.app.state.quiz_store, "list_questions", broken)
        resp = client.get("/questions")
        assert resp.status_code == 500
        assert _error_code(resp) == "store_failure"
        assert "disk" not in resp.text


class TestRateLimit:
    def test_login_is_rate_limited(self, client: TestClient) -> None:
        limiter.enabled = True
        limiter.reset()
        try:
            body = {"email": "nobody@example.com", "password": "whatever1", "role": "student"}
            statuses = [client.post("/auth/login", json=body).status_code for _ in range(11)]
            assert statuses[:10] == [401] * 10
            assert statuses[10] == 429
        finally:
            limiter.reset()
            limiter.enabled = False

"""Validate exam, part, user, media and dashboard services against a fake backend."""

import httpx
import pytest

from toeic_admin.core.exceptions import (
    ApiError,
    PartNotEmptyError,
    UploadError,
    ValidationError,
)
from toeic_admin.core.models import PartInput, PartStatus, TestInput, UserInput
from toeic_admin.services.dashboard_service import DashboardService
from toeic_admin.services.exam_service import ExamService
from toeic_admin.services.media_service import MediaService
from toeic_admin.services.part_service import PartService
from toeic_admin.services.user_service import UserService

from sample_data import ADMIN_USER, part_record, question_record


def _test_record(test_id, status="LOCKED"):
    return {"id": test_id, "title": f"ETS {test_id}", "testType": "LISTENING", "status": status}


class TestExamService:
    """Exam CRUD."""

    def test_list_skips_all_filters_and_counts_page(self, backend, api_client):
        backend.add(
            "GET",
            "/tests",
            {
                "success": True,
                "tests": [_test_record("t1"), _test_record("t2", "UNLOCKED"), _test_record("t3")],
                "pagination": {"page": 1, "limit": 10, "total": 23, "totalPages": 3},
            },
        )
        exams = ExamService(api_client)

        page, stats = exams.list_tests(difficulty="ALL", status="ALL", search="  ETS ")

        params = backend.requests[0].url.params
        assert "difficulty" not in params
        assert "status" not in params
        assert params["search"] == "ETS"
        assert [t.id for t in page.items] == ["t1", "t2", "t3"]
        assert page.pagination.total_pages == 3
        assert (stats.total, stats.locked, stats.unlocked) == (23, 2, 1)

    def test_list_sends_real_filters_upper_case(self, backend, api_client):
        backend.add("GET", "/tests", {"success": True, "tests": []})

        ExamService(api_client).list_tests(difficulty="hard", status="unlocked")

        params = backend.requests[0].url.params
        assert params["difficulty"] == "HARD"
        assert params["status"] == "UNLOCKED"

    def test_create_fills_defaults(self, backend, api_client):
        backend.add("POST", "/tests", {"success": True, "data": _test_record("new")})

        test = ExamService(api_client).create_test(TestInput(title="ETS 2024 Test 1"))

        assert test.id == "new"
        assert backend.json_of(backend.requests[0]) == {
            "title": "ETS 2024 Test 1",
            "testType": "LISTENING",
            "difficulty": "MEDIUM",
            "status": "LOCKED",
            "duration": 120,
            "totalQuestions": 100,
        }

    def test_update_sends_only_given_fields(self, backend, api_client):
        backend.add("PATCH", "/tests/t1", {"success": True})

        ExamService(api_client).update_test("t1", TestInput(status="UNLOCKED"))

        assert backend.json_of(backend.requests[0]) == {"status": "UNLOCKED"}

    def test_get_and_delete(self, backend, api_client):
        backend.add("GET", "/tests/t1", {"success": True, "data": _test_record("t1")})
        backend.add("DELETE", "/tests/t1", {"success": True})
        exams = ExamService(api_client)

        assert exams.get_test("t1").title == "ETS t1"
        exams.delete_test("t1")
        assert len(backend.calls("DELETE", "/tests/t1")) == 1


class TestPartService:
    """Part CRUD, bulk status and delete guard."""

    def test_get_part(self, backend, api_client):
        record = part_record("p6", 6, totalQuestions=16, completedQuestions=8)
        backend.add("GET", "/parts/p6", {"success": True, "part": record})

        part = PartService(api_client).get_part("p6")

        assert (part.part_number, part.completed_questions) == (6, 8)
        assert part.progress_percent == 50

    def test_create_prefills_from_catalog(self, backend, api_client):
        backend.add("POST", "/tests/t1/parts", {"success": True, "part": part_record("p3", 3)})

        PartService(api_client).create_part("t1", 3, "<p>Listen.</p>")

        assert backend.json_of(backend.requests[0]) == {
            "partNumber": 3,
            "partName": "Part 3: Conversations",
            "totalQuestions": 39,
            "timeLimit": 17,
            "orderIndex": 3,
            "status": "INACTIVE",
            "instructions": "<p>Listen.</p>",
        }

    def test_create_with_overrides(self, backend, api_client):
        backend.add("POST", "/tests/t1/parts", {"success": True})

        PartService(api_client).create_part("t1", 5, "Read.", time_limit=12, status="ACTIVE")

        payload = backend.json_of(backend.requests[0])
        assert payload["timeLimit"] == 12
        assert payload["status"] == "ACTIVE"
        assert payload["totalQuestions"] == 30

    @pytest.mark.parametrize("instructions", ["", "   ", None])
    def test_instructions_are_required(self, backend, api_client, instructions):
        parts = PartService(api_client)

        with pytest.raises(ValidationError):
            parts.create_part("t1", 1, instructions)
        with pytest.raises(ValidationError):
            parts.update_part("p1", PartInput(time_limit=5), instructions)
        assert backend.requests == []

    def test_list_is_ordered(self, backend, api_client):
        backend.add(
            "GET",
            "/tests/t1/parts",
            {
                "success": True,
                "parts": [
                    part_record("p7", 7, orderIndex=7),
                    part_record("p1", 1, orderIndex=1),
                    part_record("p5", 5, orderIndex=5),
                ],
            },
        )

        parts = PartService(api_client).list_parts("t1")

        assert [p.part_number for p in parts] == [1, 5, 7]

    def test_bulk_status_reports_each_part(self, backend, api_client):
        backend.add("PATCH", "/parts/p1", {"success": True})
        backend.add("PATCH", "/parts/p2", {"success": False, "message": "Locked by exam"})

        result = PartService(api_client, max_workers=2).set_status_bulk(
            ["p1", "p2", "p1"], PartStatus.ACTIVE
        )

        assert result.total == 2
        assert result.succeeded == 1
        assert result.errors == ["Locked by exam"]
        for request in backend.requests:
            assert backend.json_of(request) == {"status": "ACTIVE"}

    def test_bulk_status_needs_a_selection(self, api_client):
        with pytest.raises(ValidationError):
            PartService(api_client).set_status_bulk([], PartStatus.INACTIVE)

    def test_delete_refuses_non_empty_part(self, backend, api_client):
        backend.add(
            "GET",
            "/parts/p1/questions",
            {"success": True, "questions": [question_record(1), question_record(2)]},
        )

        with pytest.raises(PartNotEmptyError) as exc_info:
            PartService(api_client).delete_part("p1")

        assert exc_info.value.question_count == 2
        assert backend.calls("DELETE", "/parts/p1") == []

    def test_delete_empty_part(self, backend, api_client):
        backend.add("GET", "/parts/p1/questions", {"success": True, "questions": []})
        backend.add("DELETE", "/parts/p1", {"success": True})

        PartService(api_client).delete_part("p1")

        assert len(backend.calls("DELETE", "/parts/p1")) == 1

    def test_set_part_audio(self, backend, api_client):
        backend.add("PATCH", "/parts/p2", {"success": True, "part": part_record("p2", 2)})

        PartService(api_client).set_part_audio("p2", "https://cdn/p2.mp3")

        assert backend.json_of(backend.requests[0]) == {"audioUrl": "https://cdn/p2.mp3"}


class TestUserService:
    def test_list_with_role_filter(self, backend, api_client):
        backend.add(
            "GET",
            "/users",
            {"success": True, "users": [ADMIN_USER], "pagination": {"total": 1}},
        )

        page = UserService(api_client).list_users(role="admin", search="")

        params = backend.requests[0].url.params
        assert params["role"] == "ADMIN"
        assert "search" not in params
        assert page.items[0].email == ADMIN_USER["email"]

    def test_create_defaults_to_student(self, backend, api_client):
        backend.add("POST", "/users", {"success": True, "user": dict(ADMIN_USER, role="STUDENT")})

        UserService(api_client).create_user(
            UserInput(email="new@toeic.test", name="New", password="pw123456")
        )

        payload = backend.json_of(backend.requests[0])
        assert payload["role"] == "STUDENT"
        assert payload["email"] == "new@toeic.test"

    def test_update_sends_camel_case_fields(self, backend, api_client):
        backend.add("PATCH", "/users/u1", {"success": True, "data": dict(ADMIN_USER, id="u1")})

        user = UserService(api_client).update_user(
            "u1", UserInput(target_score=750, gender="FEMALE")
        )

        assert user.id == "u1"
        assert backend.json_of(backend.requests[0]) == {"targetScore": 750, "gender": "FEMALE"}

    def test_invalid_email_is_rejected_locally(self):
        with pytest.raises(ValueError):
            UserInput(email="not-an-email")


class TestMediaService:
    def test_upload_image_returns_url(self, backend, api_client, tmp_path):
        image = tmp_path / "q1.jpg"
        image.write_bytes(b"jpeg")
        backend.add("POST", "/upload/image", {"success": True, "url": "https://cdn/q1.jpg"})

        assert MediaService(api_client).upload_image(image) == "https://cdn/q1.jpg"

    def test_upload_without_url_fails(self, backend, api_client, tmp_path):
        audio = tmp_path / "a.mp3"
        audio.write_bytes(b"ID3")
        backend.add("POST", "/upload/audio", {"success": True})

        with pytest.raises(UploadError):
            MediaService(api_client).upload_audio(audio)

    def test_avatar_updates_stored_user(self, backend, api_client, session_store, logged_in, tmp_path):
        avatar = tmp_path / "me.png"
        avatar.write_bytes(b"png")
        updated = dict(ADMIN_USER, avatarUrl="https://cdn/me.png")
        backend.add("POST", "/users/avatar", {"success": True, "user": updated})

        user = MediaService(api_client, session_store).upload_avatar(avatar)

        assert user.avatar_url == "https://cdn/me.png"
        assert session_store.load().user.avatar_url == "https://cdn/me.png"


class TestDashboardService:
    def _wire(self, backend):
        def tests_listing(request):
            status = request.url.params.get("status")
            limit = int(request.url.params["limit"])
            totals = {None: 3, "LOCKED": 2, "UNLOCKED": 1}
            items = [_test_record(f"t{i}") for i in range(1, 4)][:limit]
            return httpx.Response(
                200,
                json={"success": True, "tests": items, "pagination": {"total": totals[status]}},
            )

        backend.add("GET", "/tests", handler=tests_listing)
        backend.add("GET", "/users", {"success": True, "users": [], "pagination": {"total": 42}})
        for test_id, completed in (("t1", [6, 25]), ("t2", [10]), ("t3", [])):
            backend.add(
                "GET",
                f"/tests/{test_id}/parts",
                {
                    "success": True,
                    "parts": [
                        part_record(f"{test_id}-{n}", n, completedQuestions=c)
                        for n, c in enumerate(completed, 1)
                    ],
                },
            )

    def _service(self, api_client):
        return DashboardService(
            ExamService(api_client), UserService(api_client), PartService(api_client), max_workers=2
        )

    def test_totals_come_from_pagination(self, backend, api_client):
        self._wire(backend)

        stats = self._service(api_client).get_stats()

        assert (stats.users, stats.tests, stats.locked_tests, stats.unlocked_tests) == (42, 3, 2, 1)
        assert stats.questions is None
        for request in backend.calls("GET", "/tests"):
            assert request.url.params["limit"] == "1"

    def test_question_total_sums_completed_questions(self, backend, api_client):
        self._wire(backend)

        stats = self._service(api_client).get_stats(include_questions=True)

        assert stats.questions == 41

    def test_question_total_fails_loudly(self, backend, api_client):
        self._wire(backend)
        backend.add("GET", "/tests/t2/parts", {"success": False, "message": "boom"}, 500)

        with pytest.raises(ApiError):
            self._service(api_client).get_stats(include_questions=True)

"""Drive the console commands end to end against a fake backend."""

import json

import httpx
import pytest
from click.testing import CliRunner

from toeic_admin.core.config import get_settings, reset_settings
from toeic_admin.data.session_store import SessionStore
from toeic_admin.main import main

from sample_data import ADMIN_USER, part_record, question_record


@pytest.fixture
def run(backend, monkeypatch):
    # Cached loggers would otherwise keep writing to the runner's closed stream
    monkeypatch.setattr("toeic_admin.main.setup_logging", lambda **kwargs: None)
    runner = CliRunner()

    def invoke(*args, **kwargs):
        return runner.invoke(main, list(args), obj={"transport": backend.transport()}, **kwargs)

    return invoke


class TestAuthCommands:
    """login, logout, whoami."""

    def test_login_stores_session(self, backend, run):
        backend.add("POST", "/auth/login", {"success": True, "token": "abc", "user": ADMIN_USER})

        result = run("login", "--email", " admin@toeic.test ", "--password", "secret")

        assert result.exit_code == 0, result.output
        assert "Logged in as Admin." in result.output
        assert backend.json_of(backend.requests[0]) == {
            "email": "admin@toeic.test",
            "password": "secret",
        }
        assert SessionStore.from_config(get_settings().session).token() == "abc"

    def test_non_admin_is_refused(self, backend, run):
        student = dict(ADMIN_USER, role="STUDENT")
        backend.add("POST", "/auth/login", {"success": True, "token": "abc", "user": student})

        result = run("login", "--email", "s@toeic.test", "--password", "x")

        assert result.exit_code == 1
        assert "do not have access" in result.output
        assert not get_settings().session.session_file.exists()

    def test_login_reports_unreachable_server(self, backend, run):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.add("POST", "/auth/login", handler=refuse)

        result = run("login", "--email", "admin@toeic.test", "--password", "secret")

        assert result.exit_code == 1
        assert "Could not connect to the server." in result.output
        assert not get_settings().session.session_file.exists()

    def test_whoami_and_logout(self, run, logged_in):
        result = run("whoami")
        assert result.exit_code == 0
        assert "admin@toeic.test" in result.output

        assert run("logout").exit_code == 0
        assert not get_settings().session.session_file.exists()


class TestExamCommands:
    def test_commands_need_a_session(self, backend, run):
        result = run("tests", "list")

        assert result.exit_code == 1
        assert "Not logged in" in result.output
        assert backend.requests == []

    def test_list_sends_bearer_token(self, backend, run, logged_in):
        backend.add(
            "GET",
            "/tests",
            {
                "success": True,
                "tests": [{"id": "t1", "title": "ETS 1", "status": "UNLOCKED"}],
                "pagination": {"page": 1, "limit": 10, "total": 1, "totalPages": 1},
            },
        )

        result = run("tests", "list")

        assert result.exit_code == 0, result.output
        assert "ETS 1" in result.output
        assert backend.requests[0].headers["Authorization"] == "Bearer test-token"

    def test_dry_run_sends_no_mutation(self, backend, run, logged_in):
        result = run("--dry-run", "tests", "delete", "t1", "--yes")

        assert result.exit_code == 0, result.output
        assert "Exam deleted successfully!" in result.output
        assert backend.requests == []

    def test_backend_error_is_printed(self, backend, run, logged_in):
        backend.add("DELETE", "/tests/t1", {"success": False, "message": "Exam in use"}, status=400)

        result = run("tests", "delete", "t1", "--yes")

        assert result.exit_code == 1
        assert "Exam in use" in result.output

    def test_network_failure_speaks_configured_locale(self, backend, run, logged_in, monkeypatch):
        monkeypatch.setenv("TOEIC_LOCALE", "vi")
        reset_settings()

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend.add("DELETE", "/tests/t1", handler=refuse)

        result = run("tests", "delete", "t1", "--yes")

        assert result.exit_code == 1
        assert "Lỗi kết nối server" in result.output


class TestUtilityCommands:
    def test_template_needs_no_session(self, tmp_path, run):
        result = run("questions", "template", "6", "--output-dir", str(tmp_path / "out"))

        assert result.exit_code == 0, result.output
        assert (tmp_path / "out" / "Template_Part_6.xlsx").exists()

    def test_config_shows_settings(self, run):
        result = run("config")

        assert result.exit_code == 0
        assert "http://api.test/api" in result.output

    def test_config_reports_bad_url(self, run, monkeypatch):
        monkeypatch.setenv("TOEIC_API_BASE_URL", "api.test")
        reset_settings()

        result = run("config")

        assert result.exit_code == 1
        assert "TOEIC_API_BASE_URL" in result.output

    def test_commands_refuse_bad_configuration(self, backend, run, logged_in, monkeypatch):
        monkeypatch.setenv("TOEIC_API_BASE_URL", "api.test")
        reset_settings()

        result = run("tests", "list")

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert backend.requests == []

    def test_reset_unknown_breaker(self, run):
        assert run("reset-breaker", "nope").exit_code == 1


class TestQuestionCommands:
    """Passage-aware listing and editing of questions."""

    def _serve_part(self, backend, number, questions):
        part_id = f"p{number}"
        record = part_record(part_id, number)
        backend.add("GET", f"/parts/{part_id}", {"success": True, "part": record})
        backend.add("GET", f"/parts/{part_id}/questions", {"success": True, "questions": questions})

    @pytest.mark.parametrize("number,first", [(6, 131), (7, 147)])
    def test_list_shows_each_passage_once(self, backend, run, logged_in, number, first):
        questions = [question_record(first + i, passage="Memo A") for i in range(4)]
        questions += [question_record(first + i, passage="Memo B") for i in range(4, 6)]
        self._serve_part(backend, number, questions)

        result = run("questions", "list", f"p{number}")

        assert result.exit_code == 0, result.output
        assert result.output.count("Memo A") == 1
        assert result.output.count("Memo B") == 1
        assert f"Question {first + 5}" in result.output

    def test_grouped_lists_passages_and_images(self, backend, run, logged_in):
        image_passage = '<img src="https://cdn/page1.png" /><p>Schedule</p>'
        backend.add(
            "GET",
            "/parts/p7/questions",
            {
                "success": True,
                "questions": [
                    question_record(149, passage="Notice B"),
                    question_record(147, passage=image_passage),
                    question_record(148, passage=image_passage),
                    question_record(150, passage="Notice B"),
                ],
            },
        )

        result = run("questions", "grouped", "p7")

        assert result.exit_code == 0, result.output
        assert "Passage 1 (questions 147-148)" in result.output
        assert "Passage 2 (questions 149-150)" in result.output
        assert "Images: https://cdn/page1.png" in result.output
        assert result.output.count("Images:") == 1

    def test_part6_partial_success_warns_and_succeeds(self, backend, run, logged_in, tmp_path):
        backend.add("GET", "/parts/p6", {"success": True, "part": part_record("p6", 6)})

        def batch(request):
            if backend.json_of(request)["passage"] == "Memo B":
                return httpx.Response(400, json={"success": False, "message": "Range taken"})
            return httpx.Response(200, json={"success": True, "count": 1})

        backend.add("POST", "/parts/p6/questions/batch", handler=batch)
        drafts = tmp_path / "part6.json"
        drafts.write_text(
            json.dumps(
                [
                    {
                        "start": 131,
                        "end": 134,
                        "passage": "Memo A",
                        "questions": [{"questionNumber": 131, "correctAnswer": "A"}],
                    },
                    {
                        "start": 135,
                        "end": 138,
                        "passage": "Memo B",
                        "questions": [{"questionNumber": 135, "correctAnswer": "B"}],
                    },
                ]
            ),
            encoding="utf-8",
        )

        result = run("questions", "part6", "p6", str(drafts))

        assert result.exit_code == 0, result.output
        assert "Created 1/2 passages. Please check the rest." in result.output
        assert "1/2 succeeded" in result.output
        assert "135-138: Range taken" in result.output
        assert len(backend.calls("POST", "/parts/p6/questions/batch")) == 2

    def test_update_passage_syncs_part6_block(self, backend, run, logged_in):
        self._serve_part(
            backend, 6, [question_record(n, passage="Old memo") for n in range(131, 139)]
        )
        for n in range(131, 139):
            backend.add("PATCH", f"/questions/q{n}", {"success": True})

        result = run("questions", "update", "q132", "--part-id", "p6", "--passage", "New memo")

        assert result.exit_code == 0, result.output
        assert "passage synchronized across 4 question(s)" in result.output
        patched = sorted(
            r.url.path.rsplit("/", 1)[-1] for r in backend.requests if r.method == "PATCH"
        )
        assert patched == ["q131", "q132", "q133", "q134"]

    @pytest.mark.parametrize("flag,kept", [("--keep-images", True), ("--drop-images", False)])
    def test_sync_passage_images(self, backend, run, logged_in, tmp_path, flag, kept):
        old = '<img src="https://cdn/page1.png" /><p>Old</p>'
        self._serve_part(backend, 7, [question_record(n, passage=old) for n in (147, 148)])
        backend.add("POST", "/upload/image", {"success": True, "url": "https://cdn/page2.png"})
        for n in (147, 148):
            backend.add("PATCH", f"/questions/q{n}", {"success": True})
        image = tmp_path / "page2.png"
        image.write_bytes(b"png")

        result = run(
            "questions", "sync-passage", "p7", "--number", "148",
            "--passage", "<p>New</p>", "--image", str(image), flag,
        )

        assert result.exit_code == 0, result.output
        assert "Passage updated successfully!" in result.output
        passages = [backend.json_of(r)["passage"] for r in backend.requests if r.method == "PATCH"]
        assert len(passages) == 2 and passages[0] == passages[1]
        assert ("page1.png" in passages[0]) is kept
        assert passages[0].index("page2.png") < passages[0].index("<p>New</p>")
        if kept:
            assert passages[0].index("page1.png") < passages[0].index("page2.png")

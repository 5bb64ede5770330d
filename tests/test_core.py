"""Validate the part catalog, models, configuration and notifications."""

from pathlib import Path

import pytest

import toeic_admin

from toeic_admin.core.catalog import (
    PART_CONFIG,
    default_first_question,
    display_part_name,
    get_part_spec,
    template_question_numbers,
    validate_question_number,
)
from toeic_admin.core.config import (
    configuration_summary,
    get_settings,
    reset_settings,
    validate_required_settings,
)
from toeic_admin.core.exceptions import ValidationError
from toeic_admin.core.messages import MESSAGES, notify
from toeic_admin.core.models import BatchItemResult, BatchResult, Part, Question, QuestionInput


class TestCatalog:
    """Static TOEIC facts."""

    def test_totals_add_up_to_two_hundred(self):
        assert sum(spec.total_questions for spec in PART_CONFIG.values()) == 200

    def test_ranges_are_contiguous(self):
        expected_first = 1
        for number in range(1, 8):
            spec = PART_CONFIG[number]
            assert spec.first_question == expected_first
            assert spec.last_question - spec.first_question + 1 == spec.total_questions
            expected_first = spec.last_question + 1

    def test_names_and_sections(self):
        assert get_part_spec(2).name == "Part 2: Question-Response"
        assert get_part_spec(2).option_count == 3
        assert get_part_spec(4).section == "LISTENING"
        assert get_part_spec(5).section == "READING"

    @pytest.mark.parametrize(
        "part,number,ok",
        [(1, 6, True), (1, 7, False), (5, 101, True), (5, 100, False), (6, 146, True), (7, 201, False)],
    )
    def test_validate_question_number(self, part, number, ok):
        if ok:
            assert validate_question_number(part, number) == number
        else:
            with pytest.raises(ValidationError):
                validate_question_number(part, number)

    def test_unknown_part(self):
        with pytest.raises(ValidationError):
            get_part_spec(8)

    def test_defaults_and_templates(self):
        assert default_first_question(3) == 32
        assert default_first_question(4) == 71
        assert default_first_question(6) == 1
        assert list(template_question_numbers(6)) == list(range(1, 17))

    def test_display_part_name(self):
        assert display_part_name("Part 7: Reading Comprehension") == "Reading Comprehension"
        assert display_part_name("Custom") == "Custom"
        assert display_part_name(None) == ""


class TestModels:
    def test_camel_case_in_and_out(self):
        question = QuestionInput.model_validate(
            {"questionNumber": 101, "correctAnswer": " b ", "optionA": "x"}
        )

        assert question.correct_answer == "B"
        assert question.to_payload() == {
            "questionNumber": 101,
            "correctAnswer": "B",
            "optionA": "x",
        }

    def test_input_requires_valid_answer(self):
        with pytest.raises(ValueError):
            QuestionInput(question_number=1, correct_answer="E")

    def test_record_allows_missing_answer(self):
        assert Question(question_number=1).correct_answer is None

    def test_part_progress(self):
        part = Part.model_validate(
            {"id": "p", "partNumber": 7, "totalQuestions": 54, "completedQuestions": 27}
        )
        assert part.progress_percent == 50
        assert not part.is_complete

    def test_batch_result_counts(self):
        result = BatchResult(
            results=[
                BatchItemResult(item=1, value="a"),
                BatchItemResult(item=2, success=False, error="boom"),
            ]
        )
        assert (result.total, result.succeeded, result.failed, result.ok) == (2, 1, 1, False)
        assert result.errors == ["boom"]
        assert result.values() == ["a"]


class TestConfiguration:
    def test_settings_read_environment(self, tmp_path):
        settings = get_settings()

        assert settings.api.base_url == "http://api.test/api"
        assert settings.session.session_file == tmp_path / "session.json"
        assert settings.session.idle_timeout_seconds == 300
        assert settings.batch.ai_batch_size == 2

    def test_trailing_slash_and_unknown_locale(self, monkeypatch):
        monkeypatch.setenv("TOEIC_API_BASE_URL", "https://admin.example.com/api/")
        monkeypatch.setenv("TOEIC_LOCALE", "fr")
        reset_settings()

        settings = get_settings()

        assert settings.api.base_url == "https://admin.example.com/api"
        assert settings.locale == "en"

    def test_validate_required_settings(self, monkeypatch):
        assert validate_required_settings() == []

        monkeypatch.setenv("TOEIC_API_BASE_URL", "ftp://nope")
        reset_settings()

        assert any("TOEIC_API_BASE_URL" in item for item in validate_required_settings())

    def test_summary(self):
        summary = configuration_summary()
        assert summary["API Base URL"] == "http://api.test/api"
        assert summary["Idle Timeout"] == "300s"


class TestMessages:
    def test_every_english_key_is_translated(self):
        assert set(MESSAGES["vi"]) == set(MESSAGES["en"])

    def test_every_key_is_used_by_the_console(self):
        package = Path(toeic_admin.__file__).parent
        source = "\n".join(
            path.read_text(encoding="utf-8")
            for path in package.rglob("*.py")
            if path.name != "messages.py"
        )

        unused = [
            key
            for key in MESSAGES["en"]
            if f'"{key}"' not in source and f"'{key}'" not in source
        ]

        assert unused == []

    def test_network_errors_are_translated(self):
        assert notify("network.error", locale="vi") == "Lỗi kết nối server"
        assert notify("network.error", locale="en") == "Could not connect to the server."

    def test_formats_fields(self):
        assert notify("parts.activated", count=3) == notify("parts.activated", locale="en", count=3)
        assert "3" in notify("parts.activated", count=3)

    def test_locale_from_settings(self, monkeypatch):
        monkeypatch.setenv("TOEIC_LOCALE", "vi")
        reset_settings()

        assert notify("login.not_admin") == MESSAGES["vi"]["login.not_admin"]

    def test_fallbacks(self):
        assert notify("no.such.key") == "no.such.key"
        assert notify("login.success", locale="de", name="An") == "Logged in as An."
        # Missing fields leave the template unformatted rather than failing
        assert notify("login.success") == MESSAGES["en"]["login.success"]

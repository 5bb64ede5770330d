"""Validate batched AI explanation generation."""

import httpx

from toeic_admin.core.models import Question
from toeic_admin.services.ai_service import AIExplanationService, explanation_request


def _question(number, explanation=None):
    return Question(
        question_number=number,
        question_text=f"Sentence {number}",
        option_a="a",
        option_b="b",
        option_c="c",
        option_d=None,
        correct_answer="A",
        explanation=explanation,
    )


class TestAIExplanationService:
    """Batches, pauses and result mapping."""

    def setup_method(self):
        self.sleeps = []
        self.progress = []

    def _service(self, api_client, batch_size=2, delay=12.0):
        return AIExplanationService(
            api_client, batch_size=batch_size, delay_seconds=delay, sleep=self.sleeps.append
        )

    def _answer_by_number(self, backend):
        def explain(request):
            numbers = [i["questionNumber"] for i in backend.json_of(request)["questions"]]
            explanations = [{"questionNumber": n, "explanation": f"AI {n}"} for n in numbers]
            return httpx.Response(200, json={"success": True, "explanations": explanations})

        backend.add("POST", "/ai/generate-batch-explanations", handler=explain)

    def test_request_item_shape(self):
        assert explanation_request(_question(101)) == {
            "questionNumber": 101,
            "questionText": "Sentence 101",
            "options": {"A": "a", "B": "b", "C": "c", "D": ""},
            "correctAnswer": "A",
        }

    def test_batches_with_pause_between_but_not_after_last(self, backend, api_client):
        self._answer_by_number(backend)
        questions = [_question(n) for n in range(101, 106)]

        explained = self._service(api_client).generate_explanations(
            questions, progress=lambda done, total: self.progress.append((done, total))
        )

        assert explained == 5
        assert len(backend.requests) == 3
        assert self.sleeps == [12.0, 12.0]
        assert self.progress == [(2, 5), (4, 5), (5, 5)]
        assert [q.explanation for q in questions] == [f"AI {n}" for n in range(101, 106)]

    def test_existing_explanations_are_kept(self, backend, api_client):
        self._answer_by_number(backend)
        questions = [_question(101, "Mine"), _question(102, "Mine too"), _question(103)]

        explained = self._service(api_client).generate_explanations(questions)

        assert explained == 1
        assert len(backend.requests) == 1
        assert backend.json_of(backend.requests[0])["questions"][0]["questionNumber"] == 103
        assert questions[0].explanation == "Mine"
        # A batch with nothing pending is skipped without a pause
        assert self.sleeps == []

    def test_results_without_numbers_map_by_position(self, backend, api_client):
        backend.add(
            "POST",
            "/ai/generate-batch-explanations",
            {"success": True, "explanations": [{"explanation": "first"}, {"explanation": "second"}]},
        )
        questions = [_question(101), _question(102)]

        self._service(api_client).generate_explanations(questions)

        assert [q.explanation for q in questions] == ["first", "second"]

    def test_failed_batch_is_skipped(self, backend, api_client):
        calls = []

        def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(429, json={"success": False, "message": "Rate limited"})
            numbers = [i["questionNumber"] for i in backend.json_of(request)["questions"]]
            explanations = [{"questionNumber": n, "explanation": "ok"} for n in numbers]
            return httpx.Response(200, json={"success": True, "explanations": explanations})

        backend.add("POST", "/ai/generate-batch-explanations", handler=flaky)
        questions = [_question(n) for n in range(101, 105)]

        explained = self._service(api_client).generate_explanations(questions)

        assert explained == 2
        assert [q.explanation for q in questions] == [None, None, "ok", "ok"]

    def test_defaults_come_from_settings(self, api_client):
        service = AIExplanationService(api_client)
        assert service.batch_size == 2
        assert service.delay_seconds == 0

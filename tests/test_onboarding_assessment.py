"""Tests for the onboarding questionnaire and the skills assessment."""

import random

import pytest
from fastapi.testclient import TestClient

from jobboard import app as app_module
from jobboard.service.assessment import (
    QUESTION_BANK,
    AssessmentService,
    resolve_field,
    skill_level,
)
from jobboard.service.errors import ValidationError


@pytest.fixture
def client():
    return TestClient(app_module.app)


def _account(client, email="learner@example.com", role="employee"):
    response = client.post(
        "/api/auth/signup",
        json={"email": email, "password": "Passw0rd!", "name": "Learner", "role": role},
    )
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


class TestAssessmentService:
    """Unit tests for question selection and grading."""

    def test_every_field_has_ten_questions(self):
        assert set(QUESTION_BANK) == {
            "IT", "Marketing", "Design", "Finance", "Sales", "HR", "Engineering"
        }
        for questions in QUESTION_BANK.values():
            assert len(questions) == 10
            assert len({q.id for q in questions}) == 10
            for q in questions:
                assert 0 <= q.answer < len(q.options)

    def test_unknown_field_falls_back_to_it(self):
        assert resolve_field("Astrology") == "IT"
        assert resolve_field(None) == "IT"
        assert resolve_field("Finance") == "Finance"

    @pytest.mark.parametrize(
        "score,level",
        [(100, "Expert"), (90, "Expert"), (89, "Advanced"), (70, "Advanced"),
         (50, "Intermediate"), (49, "Beginner"), (0, "Beginner")],
    )
    def test_skill_levels(self, score, level):
        assert skill_level(score) == level

    def test_questions_hide_answers(self):
        service = AssessmentService(rng=random.Random(7))
        field, questions = service.questions_for("Design")

        assert field == "Design"
        assert len(questions) == 10
        assert all(set(q) == {"id", "question", "options"} for q in questions)

    def test_question_count_is_capped_by_bank(self):
        service = AssessmentService(question_count=3, rng=random.Random(1))
        _, questions = service.questions_for("HR")
        assert len(questions) == 3

    def test_grading_is_by_question_id(self):
        bank = QUESTION_BANK["Sales"]
        # answers submitted in reverse order still match their own question
        answers = [(q.id, q.answer) for q in reversed(bank)]
        result = AssessmentService().grade("Sales", answers)

        assert result["score"] == 100
        assert result["correct_answers"] == 10
        assert result["skill_level"] == "Expert"

    def test_partial_score_rounds(self):
        bank = QUESTION_BANK["IT"]
        answers = [(bank[0].id, bank[0].answer), (bank[1].id, bank[1].answer), (bank[2].id, 3)]
        result = AssessmentService().grade("IT", answers)

        assert result["score"] == 67
        assert result["total_questions"] == 3
        assert result["results"][2]["is_correct"] is False

    def test_unknown_question_id_counts_as_wrong(self):
        result = AssessmentService().grade("IT", [(999, 0)])

        assert result["score"] == 0
        assert result["results"][0]["correct_answer"] is None

    def test_empty_answers_rejected(self):
        with pytest.raises(ValidationError):
            AssessmentService().grade("IT", [])

    def test_repeated_question_id_rejected(self):
        question = QUESTION_BANK["IT"][0]
        with pytest.raises(ValidationError) as excinfo:
            AssessmentService().grade("IT", [(question.id, question.answer)] * 10)

        assert excinfo.value.detail == {"duplicate_question_ids": [question.id]}


class TestOnboardingFlow:
    """Integration tests for the onboarding steps."""

    def test_initial_status(self, client):
        headers = _account(client)
        data = client.get("/api/onboarding/status", headers=headers).json()["data"]

        assert data["onboarding_step"] == "user_type"
        assert data["user_type"] is None

    def test_employer_starts_complete(self, client):
        headers = _account(client, email="hire@example.com", role="employer")
        data = client.get("/api/onboarding/status", headers=headers).json()["data"]
        assert data["onboarding_step"] == "complete"

    def test_employer_user_type_finishes_onboarding(self, client):
        headers = _account(client)
        response = client.put(
            "/api/onboarding/user-type", headers=headers, json={"user_type": "employer"}
        )
        assert response.json()["data"]["onboarding_step"] == "complete"

    def test_step_progression(self, client):
        headers = _account(client)

        steps = [
            client.put(
                "/api/onboarding/user-type", headers=headers, json={"user_type": "employee"}
            ),
            client.put(
                "/api/onboarding/qualifications",
                headers=headers,
                json={"highest_education": "BSc", "field_of_study": "CS"},
            ),
            client.put(
                "/api/onboarding/experience",
                headers=headers,
                json={"has_experience": False, "years_of_experience": 4},
            ),
            client.put(
                "/api/onboarding/skills",
                headers=headers,
                json={"skills": "Figma, Sketch", "interested_fields": ["Design"]},
            ),
        ]

        assert [s.json()["data"]["onboarding_step"] for s in steps] == [
            "qualifications",
            "experience",
            "skills",
            "assessment",
        ]
        status = client.get("/api/onboarding/status", headers=headers).json()["data"]
        assert status["qualifications"]["certifications"] == []
        assert status["experience"]["years_of_experience"] == 0
        assert status["profile"]["skills"] == ["Figma", "Sketch"]

    def test_questions_follow_interested_field(self, client):
        headers = _account(client)
        client.put(
            "/api/onboarding/skills", headers=headers, json={"interested_fields": ["Finance"]}
        )

        data = client.get("/api/assessment/questions", headers=headers).json()["data"]

        assert data["field"] == "Finance"
        assert data["total_questions"] == 10
        assert all("answer" not in q for q in data["questions"])

    def test_submit_records_result(self, client):
        headers = _account(client)
        answers = [
            {"question_id": q.id, "answer": q.answer} for q in QUESTION_BANK["Marketing"][:7]
        ] + [{"question_id": q.id, "answer": (q.answer + 1) % len(q.options)}
             for q in QUESTION_BANK["Marketing"][7:]]

        response = client.post(
            "/api/assessment/submit",
            headers=headers,
            json={"field": "Marketing", "answers": answers},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["score"] == 70
        assert data["skill_level"] == "Advanced"
        status = client.get("/api/onboarding/status", headers=headers).json()["data"]
        assert status["onboarding_step"] == "complete"
        assert status["assessment"]["field"] == "Marketing"

    def test_submit_without_answers_is_400(self, client):
        headers = _account(client)
        response = client.post(
            "/api/assessment/submit", headers=headers, json={"field": "IT", "answers": []}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_submit_repeated_answer_is_400(self, client):
        headers = _account(client)
        question = QUESTION_BANK["IT"][0]
        answers = [{"question_id": question.id, "answer": question.answer}] * 10

        response = client.post(
            "/api/assessment/submit", headers=headers, json={"field": "IT", "answers": answers}
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["duplicate_question_ids"] == [question.id]
        status = client.get("/api/onboarding/status", headers=headers).json()["data"]
        assert status["onboarding_step"] != "complete"

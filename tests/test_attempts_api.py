"""
HTTP tests for the attempt endpoints
"""
import uuid

import pytest

from helpers import answers_json, option, question_id


@pytest.fixture
def player(make_user):
    return make_user("player")


@pytest.fixture
def quiz(make_user, make_quiz):
    return make_quiz(make_user("author", premium=True))


def start(client, headers, quiz):
    response = client.post(f"/api/attempts/start/{quiz.id}", headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestAttemptFlow:

    def test_start_returns_questions_without_correctness(self, client, auth_headers, player, quiz):
        body = start(client, auth_headers(player), quiz)

        assert body["status"] == "in_progress"
        assert body["resumed"] is False
        assert body["total_questions"] == 3
        assert body["quiz"]["title"] == quiz.title
        assert body["deadline_at"] is not None
        assert 0 < body["remaining_seconds"] <= 600
        assert body["draft_answers"] == []
        for question in body["questions"]:
            assert len(question["options"]) == 4
            for opt in question["options"]:
                assert set(opt) == {"id", "content"}

    def test_draft_then_resume(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]

        response = client.put(
            f"/api/attempts/{attempt_id}/draft",
            json={"answers": answers_json(quiz, (1, "B"))},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["saved"] is True

        resumed = start(client, headers, quiz)
        assert resumed["resumed"] is True
        assert resumed["attempt_id"] == attempt_id
        assert resumed["draft_answers"] == [{
            "question_id": str(question_id(quiz, 1)),
            "selected_answer_id": str(option(quiz, 1, "B").id),
        }]

    def test_submit_merges_drafts(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        client.put(
            f"/api/attempts/{attempt_id}/draft",
            json={"answers": answers_json(quiz, (1, "B"), (2, "D"))},
            headers=headers,
        )

        response = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": answers_json(quiz, (3, "C"))},
            headers=headers,
        )

        assert response.status_code == 200, response.text
        result = response.json()
        assert result["status"] == "completed"
        assert result["score"] == 100
        assert result["correct_answers"] == 3
        assert result["completed_at"] is not None

    def test_details_reveal_answers_after_submit(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]

        pending = client.get(f"/api/attempts/{attempt_id}", headers=headers).json()
        assert pending["answers"] == []
        assert pending["incorrect_answers"] is None

        client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": answers_json(quiz, (1, "B"), (2, "A"))},
            headers=headers,
        )

        details = client.get(f"/api/attempts/{attempt_id}", headers=headers).json()
        assert details["score"] == 33
        assert details["incorrect_answers"] == 2
        graded = {a["question_id"]: a for a in details["answers"]}
        assert len(graded) == 3
        second = graded[str(question_id(quiz, 2))]
        assert second["is_correct"] is False
        assert second["selected_answer"] == "Option A"
        assert second["correct_answer"] == "Option D"
        assert graded[str(question_id(quiz, 3))]["selected_answer_id"] is None

    def test_in_progress_and_history(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        client.put(
            f"/api/attempts/{attempt_id}/draft",
            json={"answers": answers_json(quiz, (1, "A"), (2, "A"))},
            headers=headers,
        )

        in_progress = client.get("/api/attempts/in-progress", headers=headers).json()
        assert len(in_progress) == 1
        assert in_progress[0]["answered"] == 2
        assert in_progress[0]["progress"] == pytest.approx(2 / 3, abs=1e-3)

        client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)

        assert client.get("/api/attempts/in-progress", headers=headers).json() == []
        history = client.get("/api/attempts/history", params={"quiz_id": str(quiz.id)}, headers=headers).json()
        assert [h["status"] for h in history] == ["abandoned"]


class TestAttemptErrors:

    def test_requires_authentication(self, client, quiz):
        response = client.post(f"/api/attempts/start/{quiz.id}")

        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"

    def test_invalid_token(self, client, quiz):
        response = client.post(
            f"/api/attempts/start/{quiz.id}",
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"

    def test_unknown_quiz(self, client, auth_headers, player):
        response = client.post(f"/api/attempts/start/{uuid.uuid4()}", headers=auth_headers(player))

        assert response.status_code == 404
        assert response.json()["error"] == "quiz_not_found"

    def test_premium_quiz_without_entitlement(self, client, auth_headers, make_user, make_quiz, player):
        premium_quiz = make_quiz(make_user("premium_author", premium=True), is_premium=True)

        response = client.post(f"/api/attempts/start/{premium_quiz.id}", headers=auth_headers(player))

        assert response.status_code == 402
        body = response.json()
        assert body["error"] == "premium_required"
        assert body["status_code"] == 402

    def test_second_submit_conflicts(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": []}, headers=headers)

        response = client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": []}, headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "attempt_already_finished"
        assert body["attempt_id"] == attempt_id
        assert body["status"] == "completed"

    def test_abandon_after_submit_conflicts(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": []}, headers=headers)

        response = client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)

        assert response.status_code == 409
        assert response.json()["status"] == "completed"

    def test_autosave_after_finish_is_not_saved(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)

        response = client.put(
            f"/api/attempts/{attempt_id}/draft",
            json={"answers": answers_json(quiz, (1, "B"))},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["saved"] is False
        assert body["status"] == "abandoned"

    def test_foreign_attempt_is_forbidden(self, client, auth_headers, make_user, player, quiz):
        attempt_id = start(client, auth_headers(player), quiz)["attempt_id"]
        intruder = make_user("intruder")

        response = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": []},
            headers=auth_headers(intruder),
        )

        assert response.status_code == 403

    def test_option_from_other_question_rejected(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]

        response = client.put(
            f"/api/attempts/{attempt_id}/draft",
            json={"answers": [{
                "question_id": str(question_id(quiz, 1)),
                "selected_answer_id": str(option(quiz, 2, "A").id),
            }]},
            headers=headers,
        )

        assert response.status_code == 400

    def test_duplicate_question_rejected(self, client, auth_headers, player, quiz):
        headers = auth_headers(player)
        attempt_id = start(client, headers, quiz)["attempt_id"]
        item = answers_json(quiz, (1, "B"))[0]

        response = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": [item, item]},
            headers=headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "duplicate_question"

    def test_blocked_user_is_rejected(self, client, auth_headers, make_user, quiz):
        blocked = make_user("blocked", is_blocked=True)

        response = client.post(f"/api/attempts/start/{quiz.id}", headers=auth_headers(blocked))

        assert response.status_code == 403
        assert response.json()["error"] == "user_blocked"

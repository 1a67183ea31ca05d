import logging
import uuid
from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework.throttling import ScopedRateThrottle

from mastery.data.models import AttemptLog, PracticeQuestion, ReviewCard, StreakRecord

logger = logging.getLogger(__name__)

# Helpers

def make_card(user_id, front="Capital of France?", back="Paris", **kwargs):
    return ReviewCard.objects.create(user_id=user_id, front=front, back=back, **kwargs)


def make_question(user_id, question="Largest planet?", expected="Jupiter", **kwargs):
    return PracticeQuestion.objects.create(
        user_id=user_id, question=question, expected_answer=expected, **kwargs
    )


def post_attempt(client, user_id, target_id, answer, rating=None, idem_key=None):
    payload = {
        "user_id": str(user_id),
        "target_id": str(target_id),
        "submitted_answer": answer,
    }
    if rating is not None:
        payload["quality_rating"] = rating
    if idem_key is not None:
        payload["idempotency_key"] = idem_key
    resp = client.post(reverse("attempt"), data=payload, content_type="application/json")
    data = resp.json()
    logger.info(
        "POST /attempts answer=%r rating=%s → status=%s state=%s idempotent=%s",
        answer,
        rating,
        resp.status_code,
        data.get("card_state"),
        data.get("idempotent"),
    )
    return resp


def get_due_cards(client, user_id, until=None, **params):
    url = reverse("due-cards", kwargs={"user_id": user_id})
    if until is not None:
        params["until"] = until.isoformat()
    return client.get(url, params)


# Attempts

@pytest.mark.django_db
def test_correct_attempt_updates_card_and_streak(client, user_id):
    card = make_card(user_id)

    resp = post_attempt(client, user_id, card.id, "paris", idem_key="idem-1")
    data = resp.json()

    assert resp.status_code == 201
    assert data["idempotent"] is False
    assert data["persisted"] is True
    assert data["evaluation"]["method"] == "exact"
    assert data["evaluation"]["score"] == 100
    assert data["card_state"] == "learning"
    assert data["streak"]["current"] == 1
    assert data["streak"]["started"] is True
    assert data["streak_delta"] == 1
    assert data["xp_awarded"] == 10 + 1 + 5
    assert data["rating_label"] == "Good"
    assert data["next_intervals"]["again"] < data["next_intervals"]["good"]
    assert set(data["next_intervals"]) == {"again", "hard", "good", "easy"}

    card.refresh_from_db()
    assert card.state == "learning"
    assert card.reps == 1
    assert card.version == 1
    assert card.due_at is not None

    streak = StreakRecord.objects.get(user_id=user_id)
    assert streak.current_streak == 1
    assert streak.last_activity_date == timezone.now().date().isoformat()
    assert AttemptLog.objects.filter(user_id=user_id, target_id=card.id).count() == 1
    logger.info("✓ Passed: attempt persisted card, streak and log")


@pytest.mark.django_db
def test_idempotent_replay(client, user_id):
    card = make_card(user_id)

    first = post_attempt(client, user_id, card.id, "Paris", rating=4, idem_key="same-key")
    second = post_attempt(client, user_id, card.id, "Paris", rating=4, idem_key="same-key")

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["idempotent"] is True
    assert second.json()["new_due_date"] == first.json()["new_due_date"]
    assert second.json()["xp_awarded"] == first.json()["xp_awarded"]

    card.refresh_from_db()
    assert card.reps == 1
    assert AttemptLog.objects.count() == 1
    logger.info("✓ Passed: same idempotency key replayed without a second write")


@pytest.mark.django_db
def test_attempts_without_key_are_all_recorded(client, user_id):
    card = make_card(user_id)
    post_attempt(client, user_id, card.id, "Paris")
    post_attempt(client, user_id, card.id, "Paris")

    card.refresh_from_db()
    assert card.reps == 2
    assert card.state == "review"
    assert AttemptLog.objects.count() == 2


@pytest.mark.django_db
def test_wrong_answer_is_graded_not_rejected(client, user_id):
    card = make_card(user_id)
    resp = post_attempt(client, user_id, card.id, "London")
    data = resp.json()

    assert resp.status_code == 201
    assert data["evaluation"]["is_correct"] is False
    assert data["xp_breakdown"]["answer"] == 1
    assert data["streak"]["current"] == 1


@pytest.mark.django_db
def test_blank_answer_scores_zero(client, user_id):
    card = make_card(user_id)
    data = post_attempt(client, user_id, card.id, "   ").json()
    assert data["evaluation"]["score"] == 0
    assert data["evaluation"]["feedback"] == "No answer provided."


@pytest.mark.django_db
def test_practice_question_attempt(client, user_id):
    question = make_question(user_id, acceptable_answers=["planet jupiter"])
    resp = post_attempt(client, user_id, question.id, "Planet Jupiter!")
    data = resp.json()

    assert resp.status_code == 201
    assert data["evaluation"]["method"] == "exact"
    assert data["card_state"] is None
    assert data["new_due_date"] is None
    assert data["rating_label"] is None
    assert data["next_intervals"] is None
    assert data["streak"]["current"] == 1


@pytest.mark.django_db
def test_due_date_reported_in_user_timezone(client, user_id):
    StreakRecord.objects.create(user_id=user_id, tz_name="Asia/Tokyo")
    card = make_card(user_id)
    data = post_attempt(client, user_id, card.id, "Paris").json()
    assert data["new_due_date_local"].endswith("+09:00")


@pytest.mark.django_db
def test_unknown_target_is_not_found(client, user_id):
    resp = post_attempt(client, user_id, uuid.uuid4(), "Paris")
    assert resp.status_code == 404
    assert resp.json()["error"]["kind"] == "not_found"


@pytest.mark.django_db
def test_other_users_card_is_not_found(client, user_id):
    card = make_card(uuid.uuid4())
    resp = post_attempt(client, user_id, card.id, "Paris")
    assert resp.status_code == 404


@pytest.mark.django_db
@pytest.mark.parametrize("rating", [0, 5, "great"])
def test_invalid_quality_rating(client, user_id, rating):
    card = make_card(user_id)
    resp = post_attempt(client, user_id, card.id, "Paris", rating=rating)
    error = resp.json()["error"]

    assert resp.status_code == 400
    assert error["kind"] == "invalid_request"
    assert "quality_rating" in error["details"]
    card.refresh_from_db()
    assert card.reps == 0


@pytest.mark.django_db
def test_malformed_ids_are_invalid(client):
    resp = client.post(
        reverse("attempt"),
        data={"user_id": "nope", "target_id": "nope", "submitted_answer": "x"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert set(resp.json()["error"]["details"]) == {"user_id", "target_id"}


# Standalone evaluation

@pytest.mark.django_db
def test_evaluate_answer_endpoint(client):
    resp = client.post(
        reverse("evaluate-answer"),
        data={
            "question": "Plants make food by?",
            "expected_answer": "photosynthesis",
            "user_answer": "photosynthessis",
        },
        content_type="application/json",
    )
    data = resp.json()
    assert resp.status_code == 200
    assert data["is_correct"] is True
    assert data["method"] == "fuzzy"
    assert data["score"] == 93


@pytest.mark.django_db
def test_evaluate_answer_requires_question(client):
    resp = client.post(
        reverse("evaluate-answer"),
        data={"expected_answer": "Paris", "user_answer": "Paris"},
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid_request"
    assert "question" in resp.json()["error"]["details"]


@pytest.mark.django_db
def test_evaluate_answer_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(ScopedRateThrottle, "THROTTLE_RATES", {"evaluate": "2/min", "attempts": "2/min"})
    payload = {"question": "Q?", "expected_answer": "A", "user_answer": "A"}
    statuses = [
        client.post(reverse("evaluate-answer"), data=payload, content_type="application/json").status_code
        for _ in range(3)
    ]
    assert statuses == [200, 200, 429]

    resp = client.post(reverse("evaluate-answer"), data=payload, content_type="application/json")
    assert resp.json()["error"]["kind"] == "throttled"


# Due cards

@pytest.mark.django_db
def test_due_cards_lists_new_and_due(client, user_id):
    now = timezone.now()
    new_card = make_card(user_id)
    overdue = make_card(user_id, state="review", interval_days=3, due_at=now - timedelta(days=1))
    later = make_card(user_id, state="review", interval_days=3, due_at=now + timedelta(days=2))
    make_card(uuid.uuid4())  # someone else's

    data = get_due_cards(client, user_id, until=now).json()
    assert data["card_ids"] == [str(new_card.id), str(overdue.id)]

    data = get_due_cards(client, user_id, until=now + timedelta(days=3)).json()
    assert str(later.id) in data["card_ids"]
    assert len(data["card_ids"]) == 3


@pytest.mark.django_db
def test_reviewed_card_leaves_due_list(client, user_id):
    card = make_card(user_id)
    post_attempt(client, user_id, card.id, "Paris")

    now = timezone.now()
    assert get_due_cards(client, user_id, until=now).json()["card_ids"] == []
    assert get_due_cards(client, user_id, until=now + timedelta(hours=1)).json()["card_ids"] == [str(card.id)]


@pytest.mark.django_db
def test_due_cards_limit_validation(client, user_id):
    resp = get_due_cards(client, user_id, limit=0)
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid_request"


# Streaks

@pytest.mark.django_db
def test_streak_status_for_new_user(client, user_id):
    resp = client.get(reverse("streak-status", kwargs={"user_id": user_id}))
    data = resp.json()
    assert resp.status_code == 200
    assert data["current"] == 0
    assert data["next_milestone"] == 3
    assert data["timezone"] == "UTC"
    assert data["milestone_progress"] == {"current": 0, "target": 3, "percent": 0}
    assert data["streak_lost"] is False
    assert not StreakRecord.objects.filter(user_id=user_id).exists()


@pytest.mark.django_db
def test_streak_status_after_attempt(client, user_id):
    question = make_question(user_id)
    post_attempt(client, user_id, question.id, "Jupiter")

    data = client.get(reverse("streak-status", kwargs={"user_id": user_id})).json()
    assert data["current"] == 1
    assert data["active_today"] is True
    assert data["is_at_risk"] is False


@pytest.mark.django_db
def test_streak_freeze_then_unavailable(client, user_id):
    url = reverse("streak-freeze", kwargs={"user_id": user_id})

    first = client.post(url)
    assert first.status_code == 200
    assert first.json()["active_today"] is True

    second = client.post(url)
    error = second.json()["error"]
    assert second.status_code == 409
    assert error["kind"] == "freeze_unavailable"
    assert error["details"]["streak_freezes"] == 0

    row = StreakRecord.objects.get(user_id=user_id)
    assert row.streak_freezes == 0
    assert row.last_freeze_used == row.last_activity_date


@pytest.mark.django_db
def test_set_timezone(client, user_id):
    url = reverse("user-timezone", kwargs={"user_id": user_id})
    resp = client.put(url, data={"timezone": "Europe/Berlin"}, content_type="application/json")
    assert resp.status_code == 200
    assert resp.json() == {"user_id": str(user_id), "timezone": "Europe/Berlin"}
    assert StreakRecord.objects.get(user_id=user_id).tz_name == "Europe/Berlin"

    resp = client.put(url, data={"timezone": "Europe/Berlin"}, content_type="application/json")
    assert resp.status_code == 200


@pytest.mark.django_db
def test_set_timezone_rejects_unknown_zone(client, user_id):
    url = reverse("user-timezone", kwargs={"user_id": user_id})
    resp = client.put(url, data={"timezone": "Mars/Olympus_Mons"}, content_type="application/json")
    assert resp.status_code == 400
    assert resp.json()["error"]["kind"] == "invalid_request"


@pytest.mark.django_db
def test_streak_status_reports_lost_streak(client, user_id):
    StreakRecord.objects.create(
        user_id=user_id,
        current_streak=5,
        longest_streak=5,
        last_activity_date=(timezone.now() - timedelta(days=3)).date().isoformat(),
    )
    data = client.get(reverse("streak-status", kwargs={"user_id": user_id})).json()
    assert data["streak_lost"] is True
    assert data["is_at_risk"] is False
    assert data["milestone_progress"] == {"current": 2, "target": 4, "percent": 50}


@pytest.mark.django_db
def test_evaluate_answer_honours_judge_budget(client, settings, monkeypatch, blocking_judge):
    settings.MASTERY_JUDGE = dict(settings.MASTERY_JUDGE, TIMEOUT_SECONDS=0.2)
    monkeypatch.setattr("mastery.api.views.get_default_judge", lambda: blocking_judge)

    resp = client.post(
        reverse("evaluate-answer"),
        data={
            "question": "Powerhouse of the cell",
            "expected_answer": "mitochondria",
            "user_answer": "mitochondrion",
        },
        content_type="application/json",
    )
    data = resp.json()

    assert resp.status_code == 200
    assert len(blocking_judge.calls) == 1
    assert data["method"] == "fuzzy"
    assert data["score"] == 85
    assert data["elapsed_ms"] < 1500
    logger.info("✓ Passed: slow judge cut off after %sms", data["elapsed_ms"])

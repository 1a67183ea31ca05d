import uuid
from dataclasses import dataclass, replace
from typing import Optional

import structlog
from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from ..data import repos
from ..domain.coordinator import apply_evaluation
from ..domain.enums import RATING_LABELS, Rating
from ..domain.evaluator import evaluate_answer
from ..domain.logic import preview_intervals, snapshot_of
from ..errors import ConcurrentUpdateConflict, InvalidRequest
from ..utils.time import to_local_iso
from .judge import get_default_judge

logger = structlog.get_logger()

MAX_WRITE_ATTEMPTS = 2  # first try plus one retry
_DEFAULT_JUDGE = object()


@dataclass
class AttemptOutcome:
    payload: dict
    idempotent: bool = False
    persisted: bool = True
    failure: Optional[str] = None


def evaluation_payload(user_id, target_id, evaluation):
    return {
        "user_id": str(user_id),
        "target_id": str(target_id),
        "evaluation": evaluation.as_dict(),
    }


def next_intervals(schedule):
    """Days each rating would schedule at the card's next review."""
    preview = preview_intervals(snapshot_of(schedule), schedule.due_at)
    return {rating.key: round(days, 4) for rating, days in preview.items()}


def build_payload(update, tz_name):
    payload = evaluation_payload(update.user_id, update.target_id, update.evaluation)
    schedule = update.schedule
    result = update.streak_result
    payload.update(
        {
            "new_due_date": schedule.due_at.isoformat() if schedule else None,
            "new_due_date_local": to_local_iso(schedule.due_at, tz_name) if schedule else None,
            "card_state": schedule.state.value if schedule else None,
            "interval_days": schedule.interval_days if schedule else None,
            "rating_label": RATING_LABELS[schedule.rating] if schedule else None,
            "next_intervals": next_intervals(schedule) if schedule else None,
            "streak": {
                "current": result.current_streak,
                "longest": result.longest_streak,
                "maintained": result.streak_maintained,
                "broken": result.streak_broken,
                "started": result.streak_started,
                "milestone": result.milestone.label if result.milestone else None,
            },
            "streak_delta": update.streak_delta,
            "xp_awarded": update.xp_awarded,
            "xp_breakdown": update.xp_breakdown,
        }
    )
    return payload


def _parse_rating(quality_rating):
    if quality_rating is None:
        return None
    try:
        return Rating(quality_rating)
    except ValueError:
        raise InvalidRequest(
            "quality_rating must be 1 (again), 2 (hard), 3 (good) or 4 (easy)",
            details={"quality_rating": quality_rating},
        )


def _apply_and_save(user_id, target, card, evaluation, rating, idem_key, submitted_answer, now):
    with transaction.atomic():
        row = repos.get_or_create_streak(user_id)
        if card is not None:
            card = repos.reload_card(card)
            target = replace(target, card=repos.card_snapshot(card))

        update = apply_evaluation(
            user_id,
            target,
            evaluation,
            repos.streak_record(row),
            now,
            quality_rating=rating,
            timezone=row.tz_name,
        )
        if card is not None:
            repos.save_card_if_unchanged(card, update.schedule)
        repos.save_streak_if_unchanged(row, update.streak_record)

        payload = build_payload(update, row.tz_name)
        repos.persist_attempt(user_id, target.id, idem_key, submitted_answer, update, payload)

    logger.info(
        "attempt_recorded",
        user_id=str(user_id),
        target_id=str(target.id),
        card_state=payload["card_state"],
        next_review_utc=payload["new_due_date"],
        streak=update.streak_result.current_streak,
        xp_awarded=update.xp_awarded,
    )
    return AttemptOutcome(payload=payload)


def record_attempt(
    user_id,
    target_id,
    submitted_answer,
    quality_rating=None,
    idempotency_key=None,
    judge=_DEFAULT_JUDGE,
    now=None,
):
    logger.info(
        "attempt_received",
        user_id=str(user_id),
        target_id=str(target_id),
        quality_rating=quality_rating,
        idempotency_key=idempotency_key,
    )
    rating = _parse_rating(quality_rating)

    # Fast path: return previous result if same idempotency_key
    existing = repos.get_existing_attempt(user_id, target_id, idempotency_key)
    if existing:
        logger.info("idempotent_reuse", user_id=str(user_id), target_id=str(target_id))
        return AttemptOutcome(payload=existing.response, idempotent=True)

    target, card = repos.load_target(user_id, target_id)
    if judge is _DEFAULT_JUDGE:
        judge = get_default_judge()

    # Graded once, outside any transaction; retries below never re-run the judge
    evaluation = evaluate_answer(
        question=target.question,
        expected_answer=target.expected_answer,
        user_answer=submitted_answer,
        acceptable_answers=target.acceptable_answers,
        context=target.context,
        judge=judge,
        timeout=settings.MASTERY_JUDGE["TIMEOUT_SECONDS"],
    )
    now = now or timezone.now()
    idem_key = idempotency_key or uuid.uuid4().hex

    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        try:
            return _apply_and_save(
                user_id, target, card, evaluation, rating, idem_key, submitted_answer, now
            )
        except ConcurrentUpdateConflict as exc:
            logger.warning(
                "write_conflict",
                user_id=str(user_id),
                target_id=str(target_id),
                attempt=attempt,
                error=exc.message,
            )
        except IntegrityError:
            # Duplicate idempotency key safeguard
            existing = repos.get_existing_attempt(user_id, target_id, idem_key)
            if existing is None:
                raise
            logger.info("idempotent_reuse", user_id=str(user_id), target_id=str(target_id))
            return AttemptOutcome(payload=existing.response, idempotent=True)
        except DatabaseError as exc:
            logger.error(
                "persistence_failed",
                user_id=str(user_id),
                target_id=str(target_id),
                error=str(exc),
                evaluation=evaluation.as_dict(),
            )
            return AttemptOutcome(
                payload=evaluation_payload(user_id, target_id, evaluation),
                persisted=False,
            )

    logger.warning(
        "write_conflict_unresolved",
        user_id=str(user_id),
        target_id=str(target_id),
        evaluation=evaluation.as_dict(),
    )
    return AttemptOutcome(
        payload=evaluation_payload(user_id, target_id, evaluation),
        persisted=False,
        failure=ConcurrentUpdateConflict.kind,
    )

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from ..domain import streak as streak_domain
from ..domain.coordinator import Target
from ..domain.enums import CardState
from ..domain.logic import CardSnapshot
from ..errors import ConcurrentUpdateConflict, NotFound
from .models import AttemptLog, PracticeQuestion, ReviewCard, StreakRecord


def card_snapshot(card):
    return CardSnapshot(
        state=CardState(card.state),
        interval_days=card.interval_days,
        ease_factor=card.ease_factor,
        lapses=card.lapses,
        reps=card.reps,
        due_at=card.due_at,
        last_reviewed_at=card.last_reviewed_at,
    )


def load_target(user_id, target_id):
    """
    Resolve a target id to a review card or a practice question owned by the user.
    Returns (Target, card row or None).
    """
    card = ReviewCard.objects.filter(pk=target_id, user_id=user_id).first()
    if card is not None:
        target = Target(
            id=str(card.pk),
            question=card.front,
            expected_answer=card.back,
            acceptable_answers=tuple(card.acceptable_answers or ()),
            context=card.context or None,
            card=card_snapshot(card),
        )
        return target, card

    question = PracticeQuestion.objects.filter(pk=target_id, user_id=user_id).first()
    if question is None:
        raise NotFound(f"No card or question {target_id} for this user")
    target = Target(
        id=str(question.pk),
        question=question.question,
        expected_answer=question.expected_answer,
        acceptable_answers=tuple(question.acceptable_answers or ()),
        context=question.context or None,
    )
    return target, None


def reload_card(card):
    return ReviewCard.objects.get(pk=card.pk)


def save_card_if_unchanged(card, outcome):
    """
    Conditional write: only applies if the row still has the version we read.
    """
    updated = ReviewCard.objects.filter(pk=card.pk, version=card.version).update(
        state=outcome.state.value,
        interval_days=outcome.interval_days,
        ease_factor=outcome.ease_factor,
        lapses=outcome.lapses,
        reps=outcome.reps,
        due_at=outcome.due_at,
        last_reviewed_at=outcome.last_reviewed_at,
        version=F("version") + 1,
    )
    if updated == 0:
        raise ConcurrentUpdateConflict(f"Card {card.pk} changed while it was being reviewed")


def get_or_create_streak(user_id, tz_name=None):
    defaults = {"tz_name": tz_name or settings.DEFAULT_USER_TIMEZONE}
    try:
        with transaction.atomic():
            row, _ = StreakRecord.objects.get_or_create(user_id=user_id, defaults=defaults)
    except IntegrityError:
        # Another request created it first
        row = StreakRecord.objects.get(user_id=user_id)
    return row


def streak_record(row):
    return streak_domain.StreakRecord(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
        streak_freezes=row.streak_freezes,
        last_freeze_used=row.last_freeze_used,
    )


def save_streak_if_unchanged(row, record):
    updated = StreakRecord.objects.filter(pk=row.pk, version=row.version).update(
        current_streak=record.current_streak,
        longest_streak=record.longest_streak,
        last_activity_date=record.last_activity_date,
        streak_freezes=record.streak_freezes,
        last_freeze_used=record.last_freeze_used,
        updated_at=timezone.now(),
        version=F("version") + 1,
    )
    if updated == 0:
        raise ConcurrentUpdateConflict(f"Streak for user {row.user_id} changed concurrently")


def get_existing_attempt(user_id, target_id, idem_key):
    if not idem_key:
        return None
    return AttemptLog.objects.filter(
        user_id=user_id, target_id=target_id, idempotency_key=idem_key
    ).first()


def persist_attempt(user_id, target_id, idem_key, submitted_answer, update, response):
    """
    Insert AttemptLog; without an idempotency key every attempt gets a fresh one.
    """
    return AttemptLog.objects.create(
        user_id=user_id,
        target_id=target_id,
        idempotency_key=idem_key,
        submitted_answer=submitted_answer or "",
        is_correct=update.evaluation.is_correct,
        score=update.evaluation.score,
        method=update.evaluation.method.value,
        xp_awarded=update.xp_awarded,
        response=response,
    )


def due_cards(user_id, until, limit=100):
    return list(
        ReviewCard.objects.filter(user_id=user_id)
        .filter(Q(state=CardState.NEW.value) | Q(due_at__lte=until))
        .order_by(F("due_at").asc(nulls_first=True), "created_at")
        .values_list("id", flat=True)[:limit]
    )

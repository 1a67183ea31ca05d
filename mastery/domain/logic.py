from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional

from .. import config
from .enums import CardState, Rating


@dataclass(frozen=True)
class SchedulerPolicy:
    learning_steps_minutes: Dict[str, float] = field(
        default_factory=lambda: dict(config.LEARNING_STEPS_MINUTES)
    )
    relearning_step_minutes: float = config.RELEARNING_STEP_MINUTES
    graduating_interval_days: float = config.GRADUATING_INTERVAL_DAYS
    relearn_graduating_interval_days: float = config.RELEARN_GRADUATING_INTERVAL_DAYS
    starting_ease: float = config.STARTING_EASE
    min_ease: float = config.MIN_EASE
    max_ease: float = config.MAX_EASE
    hard_multiplier: float = config.HARD_MULTIPLIER
    easy_bonus: float = config.EASY_BONUS
    ease_delta: Dict[str, float] = field(default_factory=lambda: dict(config.EASE_DELTA))
    lapse_ease_penalty: float = config.LAPSE_EASE_PENALTY
    max_interval_days: float = config.MAX_INTERVAL_DAYS

    def learning_step_days(self, rating: Rating) -> float:
        return self.learning_steps_minutes[rating.key] * config.MINUTE_IN_DAYS

    def clamp_ease(self, ease: float) -> float:
        return max(self.min_ease, min(self.max_ease, ease))


DEFAULT_POLICY = SchedulerPolicy()


@dataclass(frozen=True)
class CardSnapshot:
    state: CardState = CardState.NEW
    interval_days: float = 0.0
    ease_factor: float = config.STARTING_EASE
    lapses: int = 0
    reps: int = 0
    due_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ScheduleOutcome:
    state: CardState
    interval_days: float
    ease_factor: float
    lapses: int
    reps: int
    due_at: datetime
    last_reviewed_at: datetime
    rating: Rating


def resolve_rating(correct: bool, rating: Optional[Rating] = None) -> Rating:
    if not correct:
        return Rating.AGAIN
    if rating is None:
        return Rating.GOOD
    rating = Rating(rating)
    if rating == Rating.AGAIN:
        raise ValueError("a correct review cannot be rated 'again'")
    return rating


def _grow(prior_days: float, ease: float, rating: Rating, policy: SchedulerPolicy) -> float:
    if rating == Rating.HARD:
        multiplier = policy.hard_multiplier
    elif rating == Rating.EASY:
        multiplier = ease * policy.easy_bonus
    else:
        multiplier = ease
    proposed = min(prior_days * multiplier, policy.max_interval_days)
    # Successful reviews never shrink the interval
    return max(proposed, prior_days)


def _new(card, rating, policy):
    # First review always enters learning, whatever the outcome
    ease = card.ease_factor or policy.starting_ease
    return CardState.LEARNING, policy.learning_step_days(rating), ease, card.lapses


def _learning(card, rating, policy):
    if rating == Rating.AGAIN:
        return CardState.LEARNING, policy.learning_step_days(rating), card.ease_factor, card.lapses
    ease = policy.clamp_ease(card.ease_factor + policy.ease_delta[rating.key])
    interval = max(policy.graduating_interval_days, _grow(card.interval_days, ease, rating, policy))
    return CardState.REVIEW, min(interval, policy.max_interval_days), ease, card.lapses


def _review(card, rating, policy):
    if rating == Rating.AGAIN:
        ease = policy.clamp_ease(card.ease_factor - policy.lapse_ease_penalty)
        interval = policy.relearning_step_minutes * config.MINUTE_IN_DAYS
        return CardState.RELEARNING, interval, ease, card.lapses + 1
    ease = policy.clamp_ease(card.ease_factor + policy.ease_delta[rating.key])
    prior = max(card.interval_days, policy.graduating_interval_days)
    interval = _grow(prior, ease, rating, policy)
    return CardState.REVIEW, max(interval, card.interval_days), ease, card.lapses


def _relearning(card, rating, policy):
    if rating == Rating.AGAIN:
        interval = policy.relearning_step_minutes * config.MINUTE_IN_DAYS
        return CardState.RELEARNING, interval, card.ease_factor, card.lapses
    interval = policy.relearn_graduating_interval_days
    if rating == Rating.EASY:
        interval *= policy.easy_bonus
    return CardState.REVIEW, interval, card.ease_factor, card.lapses


_TRANSITIONS = {
    CardState.NEW: _new,
    CardState.LEARNING: _learning,
    CardState.REVIEW: _review,
    CardState.RELEARNING: _relearning,
}


def schedule_next(
    card: CardSnapshot,
    correct: bool,
    now: datetime,
    rating: Optional[Rating] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> ScheduleOutcome:
    """Compute the card's next state after one graded review.

    Deterministic in ``(card, correct, rating, now)``. A state outside
    ``CardState`` raises ``ValueError``.
    """
    state = CardState(card.state)
    rating = resolve_rating(correct, rating)

    next_state, interval, ease, lapses = _TRANSITIONS[state](card, rating, policy)

    due_at = now + timedelta(days=interval)
    earliest = now + timedelta(seconds=config.MIN_DUE_OFFSET_SECONDS)
    return ScheduleOutcome(
        state=next_state,
        interval_days=interval,
        ease_factor=round(ease, 4),
        lapses=lapses,
        reps=card.reps + 1,
        due_at=max(due_at, earliest),
        last_reviewed_at=now,
        rating=rating,
    )


def preview_intervals(
    card: CardSnapshot,
    now: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> Dict[Rating, float]:
    """Interval in days each rating would produce, for rating buttons."""
    preview = {}
    for rating in Rating:
        outcome = schedule_next(card, rating != Rating.AGAIN, now, rating, policy)
        preview[rating] = outcome.interval_days
    return preview


def snapshot_of(outcome: ScheduleOutcome) -> CardSnapshot:
    return CardSnapshot(
        state=outcome.state,
        interval_days=outcome.interval_days,
        ease_factor=outcome.ease_factor,
        lapses=outcome.lapses,
        reps=outcome.reps,
        due_at=outcome.due_at,
        last_reviewed_at=outcome.last_reviewed_at,
    )

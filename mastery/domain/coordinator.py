"""Glue between evaluation, scheduling and streaks.

``process`` grades an attempt and then folds the verdict into the card
schedule and the user's streak. Nothing here touches storage: callers
read the current card and streak, pass them in, and persist the returned
state themselves.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Sequence

from ..config import ANSWER_XP, INCORRECT_ATTEMPT_XP, RATING_BONUS_XP
from .enums import EvaluationMethod, Rating
from .evaluator import EvaluationResult, SemanticJudge, clamp_score, evaluate_answer
from .logic import DEFAULT_POLICY, CardSnapshot, ScheduleOutcome, SchedulerPolicy, schedule_next
from .streak import StreakRecord, StreakResult, check_and_update_streak


@dataclass(frozen=True)
class Target:
    """Something a user answers: a review card or a standalone practice question."""

    id: str
    question: str
    expected_answer: str
    acceptable_answers: Sequence[str] = ()
    context: Optional[str] = None
    card: Optional[CardSnapshot] = None

    @property
    def is_card(self):
        return self.card is not None


@dataclass(frozen=True)
class MasteryUpdate:
    user_id: str
    target_id: str
    evaluation: EvaluationResult
    schedule: Optional[ScheduleOutcome]
    streak_record: StreakRecord
    streak_result: StreakResult
    streak_delta: int
    xp_awarded: int
    xp_breakdown: Dict[str, int] = field(default_factory=dict)

    @property
    def new_due_date(self) -> Optional[datetime]:
        return self.schedule.due_at if self.schedule else None


def review_rating(evaluation: EvaluationResult, quality_rating: Optional[Rating] = None):
    """Map a verdict plus optional self-rating onto the scheduler's inputs.

    An explicit ``again`` counts as a failed recall even when the answer
    was graded correct.
    """
    if quality_rating is not None:
        quality_rating = Rating(quality_rating)
    correct = evaluation.is_correct and quality_rating != Rating.AGAIN
    if not correct:
        return False, None
    return True, quality_rating


def answer_xp(evaluation: EvaluationResult) -> int:
    if not evaluation.is_correct:
        return INCORRECT_ATTEMPT_XP
    if evaluation.method == EvaluationMethod.AI:
        return max(1, clamp_score(ANSWER_XP["ai"] * evaluation.score / 100))
    return ANSWER_XP[evaluation.method.value]


def apply_evaluation(
    user_id: str,
    target: Target,
    evaluation: EvaluationResult,
    streak_record: StreakRecord,
    now: datetime,
    quality_rating: Optional[Rating] = None,
    timezone: str = "UTC",
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> MasteryUpdate:
    schedule = None
    breakdown = {"answer": answer_xp(evaluation)}

    if target.is_card:
        correct, rating = review_rating(evaluation, quality_rating)
        schedule = schedule_next(target.card, correct, now, rating, policy)
        if correct:
            breakdown["rating_bonus"] = RATING_BONUS_XP[schedule.rating.key]

    # Any graded attempt is activity, right or wrong
    new_record, streak_result = check_and_update_streak(streak_record, timezone, now)
    breakdown["streak"] = streak_result.xp_earned

    return MasteryUpdate(
        user_id=str(user_id),
        target_id=str(target.id),
        evaluation=evaluation,
        schedule=schedule,
        streak_record=new_record,
        streak_result=streak_result,
        streak_delta=new_record.current_streak - (streak_record.current_streak or 0),
        xp_awarded=sum(breakdown.values()),
        xp_breakdown=breakdown,
    )


def process(
    user_id: str,
    target: Target,
    submitted_answer: str,
    streak_record: StreakRecord,
    now: datetime,
    quality_rating: Optional[Rating] = None,
    judge: Optional[SemanticJudge] = None,
    timezone: str = "UTC",
    policy: SchedulerPolicy = DEFAULT_POLICY,
) -> MasteryUpdate:
    evaluation = evaluate_answer(
        question=target.question,
        expected_answer=target.expected_answer,
        user_answer=submitted_answer,
        acceptable_answers=target.acceptable_answers,
        context=target.context,
        judge=judge,
    )
    return apply_evaluation(
        user_id,
        target,
        evaluation,
        streak_record,
        now,
        quality_rating=quality_rating,
        timezone=timezone,
        policy=policy,
    )

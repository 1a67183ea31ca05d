"""Tiered answer evaluation.

A submitted answer is graded by a fixed cascade of tiers:

- empty-answer guard
- exact match after normalization
- fuzzy match (edit-distance similarity)
- semantic judge (external, optional)
- fuzzy fallback when the judge is missing, slow or returns garbage

Every tier is a plain function that either returns a
``(is_correct, score, feedback, method)`` verdict or ``None`` to pass the
attempt on to the next one. Evaluation of a
well-formed request always produces a verdict.
"""

import math
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional, Protocol, Sequence

import structlog

from ..config import (
    FUZZY_MATCH_THRESHOLD,
    JUDGE_TIMEOUT_SECONDS,
    LOW_SIMILARITY_WEIGHT,
    PARTIAL_CREDIT_THRESHOLD,
)
from ..errors import InvalidRequest, JudgeError
from .enums import EvaluationMethod
from .normalize import normalize_answer
from .similarity import MatchResult, best_match

logger = structlog.get_logger()


@dataclass(frozen=True)
class EvaluationResult:
    is_correct: bool
    score: int
    feedback: str
    method: EvaluationMethod
    elapsed_ms: float = 0.0

    def as_dict(self):
        data = asdict(self)
        data["method"] = self.method.value
        return data


@dataclass(frozen=True)
class JudgeVerdict:
    correct: bool
    score: int
    feedback: str


class SemanticJudge(Protocol):
    """Grades free-form answers with partial credit.

    Implementations may raise anything on failure; the evaluator treats
    every exception as "judge unavailable".
    """

    def judge(
        self,
        question: str,
        expected_answer: str,
        user_answer: str,
        context: Optional[str] = None,
    ) -> JudgeVerdict:
        ...


def clamp_score(value) -> int:
    # Half-up rounding, clamped to 0..100
    return int(max(0, min(100, math.floor(value + 0.5))))


def parse_verdict(payload) -> JudgeVerdict:
    """Validate a decoded judge response.

    Any missing or malformed field raises ``JudgeError`` so the caller can
    fall back to fuzzy scoring.
    """
    if not isinstance(payload, dict):
        raise JudgeError(f"verdict must be an object, got {type(payload).__name__}")

    correct = payload.get("correct")
    if not isinstance(correct, bool):
        raise JudgeError("verdict field 'correct' must be a boolean")

    score = payload.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise JudgeError("verdict field 'score' must be a number")
    if score != score:  # NaN
        raise JudgeError("verdict field 'score' is NaN")

    feedback = payload.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        raise JudgeError("verdict field 'feedback' must be a non-empty string")

    return JudgeVerdict(correct=correct, score=clamp_score(score), feedback=feedback.strip())


@dataclass
class _Attempt:
    question: str
    expected_answer: str
    user_answer: str
    acceptable_answers: Sequence[str]
    context: Optional[str]
    judge: Optional[SemanticJudge]
    timeout: float
    normalized_answer: str = ""
    fuzzy: Optional[MatchResult] = field(default=None)


def _empty_answer_tier(attempt: _Attempt):
    if not attempt.user_answer or not attempt.user_answer.strip():
        return False, 0, "No answer provided.", EvaluationMethod.EXACT
    return None


def _exact_tier(attempt: _Attempt):
    attempt.normalized_answer = normalize_answer(attempt.user_answer)
    for answer in (attempt.expected_answer, *attempt.acceptable_answers):
        if answer and normalize_answer(answer) == attempt.normalized_answer:
            return True, 100, "Correct!", EvaluationMethod.EXACT
    return None


def _fuzzy_tier(attempt: _Attempt):
    attempt.fuzzy = best_match(
        attempt.user_answer,
        [attempt.expected_answer, *attempt.acceptable_answers],
        threshold=FUZZY_MATCH_THRESHOLD,
    )
    if attempt.fuzzy.matches:
        return (
            True,
            clamp_score(attempt.fuzzy.similarity * 100),
            "Correct! (minor spelling differences accepted)",
            EvaluationMethod.FUZZY,
        )
    return None


def _semantic_tier(attempt: _Attempt):
    if attempt.judge is None:
        logger.info("judge_skipped", reason="not_configured")
        return None
    try:
        verdict = call_with_budget(
            lambda: attempt.judge.judge(
                attempt.question,
                attempt.expected_answer,
                attempt.user_answer,
                attempt.context,
            ),
            attempt.timeout,
        )
        if not isinstance(verdict, JudgeVerdict):
            raise JudgeError(f"judge returned {type(verdict).__name__}")
    except FutureTimeout:
        logger.warning("judge_timeout", timeout_seconds=attempt.timeout)
        return None
    except Exception as exc:
        logger.warning("judge_failed", error=str(exc), error_type=type(exc).__name__)
        return None
    return verdict.correct, clamp_score(verdict.score), verdict.feedback, EvaluationMethod.AI


def _fallback_tier(attempt: _Attempt):
    similarity = attempt.fuzzy.similarity if attempt.fuzzy else 0.0
    if similarity >= PARTIAL_CREDIT_THRESHOLD:
        return (
            False,
            clamp_score(similarity * 100),
            "Partially correct. Review the expected answer.",
            EvaluationMethod.FUZZY,
        )
    return (
        False,
        clamp_score(similarity * LOW_SIMILARITY_WEIGHT),
        "Not quite. Compare with the correct answer.",
        EvaluationMethod.FUZZY,
    )


TIERS = (
    _empty_answer_tier,
    _exact_tier,
    _fuzzy_tier,
    _semantic_tier,
    _fallback_tier,
)


def call_with_budget(fn: Callable, timeout: float):
    """Run ``fn`` in a worker thread and stop waiting after ``timeout`` seconds.

    The worker is abandoned, not joined, so a hung network call cannot
    hold the request past its budget.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(fn)
        return future.result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def validate_request(question, expected_answer, acceptable_answers=()):
    errors = {}
    if not isinstance(question, str) or not question.strip():
        errors["question"] = "This field is required."
    if not isinstance(expected_answer, str) or not expected_answer.strip():
        errors["expected_answer"] = "This field is required."
    if acceptable_answers is None or isinstance(acceptable_answers, str):
        errors["acceptable_answers"] = "Must be a list of strings."
    elif any(not isinstance(a, str) for a in acceptable_answers):
        errors["acceptable_answers"] = "Must be a list of strings."
    if errors:
        raise InvalidRequest("Question and expected answer are required", details=errors)


def evaluate_answer(
    question: str,
    expected_answer: str,
    user_answer: Optional[str],
    acceptable_answers: Sequence[str] = (),
    context: Optional[str] = None,
    judge: Optional[SemanticJudge] = None,
    timeout: float = JUDGE_TIMEOUT_SECONDS,
    clock: Callable[[], float] = time.perf_counter,
) -> EvaluationResult:
    """Grade ``user_answer`` against the expected and acceptable answers.

    Raises ``InvalidRequest`` for a missing question or expected answer.
    Judge failures never propagate.
    """
    started = clock()
    validate_request(question, expected_answer, acceptable_answers)

    attempt = _Attempt(
        question=question,
        expected_answer=expected_answer,
        user_answer=user_answer or "",
        acceptable_answers=tuple(acceptable_answers),
        context=context,
        judge=judge,
        timeout=timeout,
    )
    for tier in TIERS:
        verdict = tier(attempt)
        if verdict is not None:
            break

    is_correct, score, feedback, method = verdict
    result = EvaluationResult(
        is_correct=is_correct,
        score=score,
        feedback=feedback,
        method=method,
        elapsed_ms=round((clock() - started) * 1000, 3),
    )
    logger.info(
        "answer_evaluated",
        method=result.method.value,
        is_correct=result.is_correct,
        score=result.score,
        elapsed_ms=result.elapsed_ms,
    )
    return result

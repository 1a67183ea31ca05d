import uuid

import structlog
from django.conf import settings
from django.utils import timezone
from rest_framework import status, views
from rest_framework.response import Response

from ..data import repos
from ..domain.evaluator import evaluate_answer
from ..services.judge import get_default_judge
from ..services.reviews import record_attempt
from ..services.streaks import (
    get_streak_status_for_user,
    set_user_timezone,
    use_streak_freeze_for_user,
)
from .exceptions import error_body
from .serializers import (
    AttemptInSerializer,
    DueQuerySerializer,
    EvaluateAnswerSerializer,
    TimezoneSerializer,
)

base_logger = structlog.get_logger()


class AttemptView(views.APIView):
    throttle_scope = "attempts"

    def post(self, request):
        # Create a unique request_id
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        s = AttemptInSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        outcome = record_attempt(
            data["user_id"],
            data["target_id"],
            data["submitted_answer"],
            quality_rating=data.get("quality_rating"),
            idempotency_key=data.get("idempotency_key"),
        )

        body = dict(outcome.payload, idempotent=outcome.idempotent, persisted=outcome.persisted)
        if outcome.failure:
            body.update(error_body(outcome.failure, "Progress could not be saved, try again"))
            status_code = status.HTTP_409_CONFLICT
        elif outcome.idempotent or not outcome.persisted:
            # Nothing new was stored
            status_code = status.HTTP_200_OK
        else:
            status_code = status.HTTP_201_CREATED

        logger.info(
            "attempt_api_response",
            user_id=str(data["user_id"]),
            target_id=str(data["target_id"]),
            is_correct=body["evaluation"]["is_correct"],
            method=body["evaluation"]["method"],
            idempotent=outcome.idempotent,
            persisted=outcome.persisted,
            status=status_code,
        )
        return Response(body, status=status_code)


class EvaluateAnswerView(views.APIView):
    throttle_scope = "evaluate"

    def post(self, request):
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        s = EvaluateAnswerSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        data = s.validated_data

        result = evaluate_answer(
            question=data["question"],
            expected_answer=data["expected_answer"],
            user_answer=data["user_answer"],
            acceptable_answers=data["acceptable_answers"],
            context=data.get("context"),
            judge=get_default_judge(),
            timeout=settings.MASTERY_JUDGE["TIMEOUT_SECONDS"],
        )
        logger.info("evaluate_api_response", method=result.method.value, score=result.score)
        return Response(result.as_dict())


class DueCardsView(views.APIView):
    def get(self, request, user_id):
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        qs = DueQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)
        until = qs.validated_data.get("until") or timezone.now()

        results = [str(card_id) for card_id in repos.due_cards(user_id, until, qs.validated_data["limit"])]

        logger.info(
            "due_cards_api_response",
            user_id=str(user_id),
            until_utc=until.isoformat(),
            card_count=len(results),
        )
        return Response(
            {
                "user_id": str(user_id),
                "until_utc": until.isoformat(),
                "card_ids": results,
            }
        )


class StreakStatusView(views.APIView):
    def get(self, request, user_id):
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        payload = get_streak_status_for_user(user_id)
        logger.info(
            "streak_status_api_response",
            user_id=str(user_id),
            current=payload["current"],
            is_at_risk=payload["is_at_risk"],
        )
        return Response(payload)


class StreakFreezeView(views.APIView):
    def post(self, request, user_id):
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        payload = use_streak_freeze_for_user(user_id)
        logger.info("streak_freeze_api_response", user_id=str(user_id), current=payload["current"])
        return Response(payload)


class TimezoneView(views.APIView):
    def put(self, request, user_id):
        request_id = str(uuid.uuid4())
        logger = base_logger.bind(request_id=request_id)

        s = TimezoneSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        tz_name = set_user_timezone(user_id, s.validated_data["timezone"])
        logger.info("timezone_api_response", user_id=str(user_id), timezone=tz_name)
        return Response({"user_id": str(user_id), "timezone": tz_name})

import threading
import uuid
from datetime import datetime, timezone

import pytest

from mastery.domain.evaluator import JudgeVerdict

from .fakes import FakeJudge


@pytest.fixture(autouse=True)
def _no_live_judge(settings):
    # Never reach the real API from tests
    settings.MASTERY_JUDGE = dict(settings.MASTERY_JUDGE, API_KEY="")


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def approving_judge():
    return FakeJudge(verdict=JudgeVerdict(correct=True, score=80, feedback="Same idea, different words."))


@pytest.fixture
def blocking_judge():
    gate = threading.Event()
    judge = FakeJudge(verdict=JudgeVerdict(correct=True, score=100, feedback="Late."), block=gate)
    yield judge
    gate.set()

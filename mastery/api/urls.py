from django.urls import path
from .views import (
    AttemptView,
    DueCardsView,
    EvaluateAnswerView,
    StreakFreezeView,
    StreakStatusView,
    TimezoneView,
)

urlpatterns = [
    path("attempts", AttemptView.as_view(), name="attempt"),
    path("evaluate-answer", EvaluateAnswerView.as_view(), name="evaluate-answer"),
    path("users/<uuid:user_id>/due-cards", DueCardsView.as_view(), name="due-cards"),
    path("users/<uuid:user_id>/streak", StreakStatusView.as_view(), name="streak-status"),
    path("users/<uuid:user_id>/streak/freeze", StreakFreezeView.as_view(), name="streak-freeze"),
    path("users/<uuid:user_id>/timezone", TimezoneView.as_view(), name="user-timezone"),
]

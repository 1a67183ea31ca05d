import uuid

from django.db import models
from django.utils import timezone

from ..config import DEFAULT_STREAK_FREEZES, STARTING_EASE
from ..domain.enums import CARD_STATE_CHOICES, CardState


class ReviewCard(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField()
    course_id = models.UUIDField(null=True, blank=True)
    front = models.TextField()
    back = models.TextField()
    acceptable_answers = models.JSONField(default=list, blank=True)
    context = models.TextField(blank=True, default="")
    state = models.CharField(max_length=16, choices=CARD_STATE_CHOICES, default=CardState.NEW.value)
    interval_days = models.FloatField(default=0.0)
    ease_factor = models.FloatField(default=STARTING_EASE)
    lapses = models.PositiveIntegerField(default=0)
    reps = models.PositiveIntegerField(default=0)
    due_at = models.DateTimeField(null=True, blank=True)  # UTC; null until first review
    last_reviewed_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "due_at"], name="card_user_due_idx"),
            models.Index(fields=["user_id", "state"], name="card_user_state_idx"),
        ]


class PracticeQuestion(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.UUIDField()
    course_id = models.UUIDField(null=True, blank=True)
    question = models.TextField()
    expected_answer = models.TextField()
    acceptable_answers = models.JSONField(default=list, blank=True)
    context = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="question_user_created_idx"),
        ]


class StreakRecord(models.Model):
    user_id = models.UUIDField(unique=True)
    current_streak = models.PositiveIntegerField(default=0)
    longest_streak = models.PositiveIntegerField(default=0)
    last_activity_date = models.CharField(max_length=10, null=True, blank=True)  # YYYY-MM-DD, user tz
    streak_freezes = models.PositiveIntegerField(default=DEFAULT_STREAK_FREEZES)
    last_freeze_used = models.CharField(max_length=10, null=True, blank=True)
    tz_name = models.CharField(max_length=64, default="UTC")  # IANA name
    version = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(default=timezone.now)


class AttemptLog(models.Model):
    user_id = models.UUIDField()
    target_id = models.UUIDField()
    idempotency_key = models.CharField(max_length=64)
    submitted_answer = models.TextField(blank=True, default="")
    is_correct = models.BooleanField()
    score = models.PositiveSmallIntegerField()
    method = models.CharField(max_length=8)
    xp_awarded = models.PositiveIntegerField(default=0)
    response = models.JSONField(default=dict)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = (("user_id", "target_id", "idempotency_key"),)
        indexes = [
            models.Index(fields=["user_id", "target_id", "created_at"], name="attempt_user_target_idx"),
        ]

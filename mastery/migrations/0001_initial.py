import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ReviewCard",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.UUIDField()),
                ("course_id", models.UUIDField(blank=True, null=True)),
                ("front", models.TextField()),
                ("back", models.TextField()),
                ("acceptable_answers", models.JSONField(blank=True, default=list)),
                ("context", models.TextField(blank=True, default="")),
                (
                    "state",
                    models.CharField(
                        choices=[
                            ("new", "new"),
                            ("learning", "learning"),
                            ("review", "review"),
                            ("relearning", "relearning"),
                        ],
                        default="new",
                        max_length=16,
                    ),
                ),
                ("interval_days", models.FloatField(default=0.0)),
                ("ease_factor", models.FloatField(default=2.5)),
                ("lapses", models.PositiveIntegerField(default=0)),
                ("reps", models.PositiveIntegerField(default=0)),
                ("due_at", models.DateTimeField(blank=True, null=True)),
                ("last_reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user_id", "due_at"], name="card_user_due_idx"),
                    models.Index(fields=["user_id", "state"], name="card_user_state_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PracticeQuestion",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_id", models.UUIDField()),
                ("course_id", models.UUIDField(blank=True, null=True)),
                ("question", models.TextField()),
                ("expected_answer", models.TextField()),
                ("acceptable_answers", models.JSONField(blank=True, default=list)),
                ("context", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["user_id", "created_at"], name="question_user_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StreakRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.UUIDField(unique=True)),
                ("current_streak", models.PositiveIntegerField(default=0)),
                ("longest_streak", models.PositiveIntegerField(default=0)),
                ("last_activity_date", models.CharField(blank=True, max_length=10, null=True)),
                ("streak_freezes", models.PositiveIntegerField(default=1)),
                ("last_freeze_used", models.CharField(blank=True, max_length=10, null=True)),
                ("tz_name", models.CharField(default="UTC", max_length=64)),
                ("version", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
        ),
        migrations.CreateModel(
            name="AttemptLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.UUIDField()),
                ("target_id", models.UUIDField()),
                ("idempotency_key", models.CharField(max_length=64)),
                ("submitted_answer", models.TextField(blank=True, default="")),
                ("is_correct", models.BooleanField()),
                ("score", models.PositiveSmallIntegerField()),
                ("method", models.CharField(max_length=8)),
                ("xp_awarded", models.PositiveIntegerField(default=0)),
                ("response", models.JSONField(default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "unique_together": {("user_id", "target_id", "idempotency_key")},
                "indexes": [
                    models.Index(fields=["user_id", "target_id", "created_at"], name="attempt_user_target_idx"),
                ],
            },
        ),
    ]

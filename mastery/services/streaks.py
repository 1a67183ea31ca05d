import structlog
from django.conf import settings
from django.utils import timezone

from ..data import repos
from ..data.models import StreakRecord
from ..domain import streak as streak_domain
from ..errors import ConcurrentUpdateConflict, FreezeUnavailable

logger = structlog.get_logger()


def status_payload(record, tz_name, now):
    status = streak_domain.get_streak_status(record, tz_name, now)
    progress = streak_domain.get_milestone_progress(status.current)
    return {
        "current": status.current,
        "longest": status.longest,
        "last_activity_date": status.last_activity_date,
        "active_today": status.active_today,
        "is_at_risk": status.is_at_risk,
        "hours_remaining": status.hours_remaining,
        "next_milestone": status.next_milestone,
        "days_to_milestone": status.days_to_milestone,
        "milestone_progress": {
            "current": progress.current,
            "target": progress.target,
            "percent": progress.percent,
        },
        # Already past saving by a normal activity; the next one restarts at 1
        "streak_lost": streak_domain.would_streak_break(record, tz_name, now),
        "timezone": tz_name,
    }


def get_streak_status_for_user(user_id, now=None):
    # Read-only: users without a row get the default record, nothing is created
    row = StreakRecord.objects.filter(user_id=user_id).first()
    record = repos.streak_record(row) if row else streak_domain.StreakRecord()
    tz_name = row.tz_name if row else settings.DEFAULT_USER_TIMEZONE
    return status_payload(record, tz_name, now or timezone.now())


def use_streak_freeze_for_user(user_id, now=None):
    now = now or timezone.now()
    for attempt in (1, 2):
        row = repos.get_or_create_streak(user_id)
        record = repos.streak_record(row)
        frozen = streak_domain.use_streak_freeze(record, row.tz_name, now)
        if frozen is None:
            logger.info(
                "streak_freeze_rejected",
                user_id=str(user_id),
                freezes=record.streak_freezes,
                last_freeze_used=record.last_freeze_used,
            )
            raise FreezeUnavailable(
                "No streak freeze available",
                details={
                    "streak_freezes": record.streak_freezes,
                    "last_freeze_used": record.last_freeze_used,
                },
            )
        try:
            repos.save_streak_if_unchanged(row, frozen)
        except ConcurrentUpdateConflict:
            logger.warning("write_conflict", user_id=str(user_id), attempt=attempt)
            continue
        logger.info(
            "streak_freeze_used",
            user_id=str(user_id),
            freezes_left=frozen.streak_freezes,
            current_streak=frozen.current_streak,
        )
        return status_payload(frozen, row.tz_name, now)
    raise ConcurrentUpdateConflict("Streak changed concurrently, try again")


def set_user_timezone(user_id, tz_name):
    row = repos.get_or_create_streak(user_id, tz_name)
    if row.tz_name != tz_name:
        StreakRecord.objects.filter(pk=row.pk).update(tz_name=tz_name)
    logger.info("timezone_updated", user_id=str(user_id), timezone=tz_name)
    return tz_name

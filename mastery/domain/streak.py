"""Daily learning streaks.

A streak counts consecutive calendar days, in the user's timezone, with at
least one qualifying activity. All functions here are pure: they take the
stored ``StreakRecord`` plus an explicit ``now`` and return new values.
Day boundaries are always compared as ``YYYY-MM-DD`` strings.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional, Tuple

from ..config import (
    DEFAULT_STREAK_FREEZES,
    FREEZE_COOLDOWN_DAYS,
    STREAK_MAINTAIN_XP,
    STREAK_MILESTONES,
)
from ..utils.time import (
    days_between,
    hours_until_local_midnight,
    local_date_string,
    previous_date_string,
    utc_now,
)


@dataclass(frozen=True)
class Milestone:
    days: int
    label: str
    xp_bonus: int


MILESTONES = tuple(Milestone(days, label, bonus) for days, label, bonus in STREAK_MILESTONES)


@dataclass(frozen=True)
class StreakRecord:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[str] = None
    streak_freezes: int = DEFAULT_STREAK_FREEZES
    last_freeze_used: Optional[str] = None


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    longest_streak: int
    streak_maintained: bool = False
    streak_broken: bool = False
    streak_started: bool = False
    xp_earned: int = 0
    milestone: Optional[Milestone] = None


@dataclass(frozen=True)
class StreakStatus:
    current: int
    longest: int
    last_activity_date: Optional[str]
    active_today: bool
    is_at_risk: bool
    hours_remaining: float
    next_milestone: Optional[int]
    days_to_milestone: int


@dataclass(frozen=True)
class MilestoneProgress:
    current: int
    target: int
    percent: int
    milestone: Optional[Milestone]


def get_reached_milestone(streak: int) -> Optional[Milestone]:
    """The milestone hit exactly at ``streak`` days, if any."""
    for milestone in MILESTONES:
        if milestone.days == streak:
            return milestone
    return None


def get_next_milestone(streak: int) -> Optional[Milestone]:
    for milestone in MILESTONES:
        if milestone.days > streak:
            return milestone
    return None


def get_achieved_milestones(streak: int) -> List[Milestone]:
    return [m for m in MILESTONES if m.days <= streak]


def get_milestone_progress(streak: int) -> MilestoneProgress:
    upcoming = get_next_milestone(streak)
    if upcoming is None:
        return MilestoneProgress(current=streak, target=streak, percent=100, milestone=None)

    achieved = get_achieved_milestones(streak)
    start = achieved[-1].days if achieved else 0
    current = streak - start
    target = upcoming.days - start
    return MilestoneProgress(
        current=current,
        target=target,
        percent=round(current / target * 100),
        milestone=upcoming,
    )


def check_and_update_streak(
    record: StreakRecord,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> Tuple[StreakRecord, StreakResult]:
    """Apply one qualifying activity to ``record``.

    Safe to call repeatedly on the same day: only the first call of a day
    can change the streak or earn XP.
    """
    now = now or utc_now()
    today = local_date_string(now, timezone)
    yesterday = previous_date_string(today)

    current = record.current_streak or 0
    longest = record.longest_streak or 0
    last = record.last_activity_date
    maintained = broken = started = False
    xp = 0
    milestone = None

    if not last:
        current = 1
        started = True
        xp = STREAK_MAINTAIN_XP
    elif last >= today:
        # Already counted today, or stamped ahead of us by a timezone change
        maintained = True
    elif last == yesterday:
        current += 1
        maintained = True
        xp = STREAK_MAINTAIN_XP
        milestone = get_reached_milestone(current)
        if milestone:
            xp += milestone.xp_bonus
    else:
        broken = current > 0
        current = 1
        started = True
        xp = STREAK_MAINTAIN_XP

    longest = max(longest, current)
    new_record = replace(
        record,
        current_streak=current,
        longest_streak=longest,
        last_activity_date=max(last, today) if last else today,
    )
    result = StreakResult(
        current_streak=current,
        longest_streak=longest,
        streak_maintained=maintained,
        streak_broken=broken,
        streak_started=started,
        xp_earned=xp,
        milestone=milestone,
    )
    return new_record, result


def get_streak_status(
    record: StreakRecord,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> StreakStatus:
    now = now or utc_now()
    today = local_date_string(now, timezone)
    yesterday = previous_date_string(today)

    current = record.current_streak or 0
    last = record.last_activity_date
    active_today = last is not None and last >= today
    is_at_risk = current > 0 and not active_today and last == yesterday

    hours_remaining = 0.0
    if is_at_risk:
        hours_remaining = round(hours_until_local_midnight(now, timezone), 1)

    upcoming = get_next_milestone(current)
    return StreakStatus(
        current=current,
        longest=record.longest_streak or 0,
        last_activity_date=last,
        active_today=active_today,
        is_at_risk=is_at_risk,
        hours_remaining=hours_remaining,
        next_milestone=upcoming.days if upcoming else None,
        days_to_milestone=upcoming.days - current if upcoming else 0,
    )


def would_streak_break(
    record: StreakRecord,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> bool:
    """True when the stored streak is already past saving by a normal activity."""
    if not record.last_activity_date:
        return False
    today = local_date_string(now or utc_now(), timezone)
    if record.last_activity_date >= today:
        return False
    return record.last_activity_date != previous_date_string(today)


def can_use_streak_freeze(
    record: StreakRecord,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> bool:
    if record.streak_freezes <= 0:
        return False
    if record.last_freeze_used:
        today = local_date_string(now or utc_now(), timezone)
        if days_between(record.last_freeze_used, today) < FREEZE_COOLDOWN_DAYS:
            return False
    return True


def use_streak_freeze(
    record: StreakRecord,
    timezone: str = "UTC",
    now: Optional[datetime] = None,
) -> Optional[StreakRecord]:
    """Spend a freeze to keep the current streak; ``None`` when not allowed.

    The freeze stamps today as an active day without incrementing, so the
    next day's activity continues the streak.
    """
    now = now or utc_now()
    if not can_use_streak_freeze(record, timezone, now):
        return None
    today = local_date_string(now, timezone)
    return replace(
        record,
        streak_freezes=record.streak_freezes - 1,
        last_freeze_used=today,
        last_activity_date=today,
    )

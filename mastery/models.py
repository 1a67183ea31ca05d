from .data.models import AttemptLog, PracticeQuestion, ReviewCard, StreakRecord

__all__ = ["AttemptLog", "PracticeQuestion", "ReviewCard", "StreakRecord"]

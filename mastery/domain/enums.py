from enum import Enum, IntEnum


class CardState(str, Enum):
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4

    @property
    def key(self):
        return self.name.lower()


class EvaluationMethod(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"
    AI = "ai"


RATING_LABELS = {
    Rating.AGAIN: "Again",
    Rating.HARD: "Hard",
    Rating.GOOD: "Good",
    Rating.EASY: "Easy",
}

CARD_STATE_CHOICES = [(s.value, s.value) for s in CardState]

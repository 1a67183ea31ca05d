MINUTE_IN_DAYS = 1 / (24 * 60)

# Answer evaluation
FUZZY_MATCH_THRESHOLD = 0.85     # fully correct typo tolerance
PARTIAL_CREDIT_THRESHOLD = 0.6   # fallback partial credit
LOW_SIMILARITY_WEIGHT = 50       # score = similarity * 50 below partial credit
JUDGE_TIMEOUT_SECONDS = 5.0

# Spaced repetition
LEARNING_STEPS_MINUTES = {
    "again": 1,
    "hard": 6,
    "good": 10,
    "easy": 10,
}
RELEARNING_STEP_MINUTES = 10
GRADUATING_INTERVAL_DAYS = 1.0
RELEARN_GRADUATING_INTERVAL_DAYS = 1.0
STARTING_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 3.5
HARD_MULTIPLIER = 1.2
EASY_BONUS = 1.3
EASE_DELTA = {
    "hard": -0.15,
    "good": 0.0,
    "easy": 0.15,
}
LAPSE_EASE_PENALTY = 0.2
MAX_INTERVAL_DAYS = 36500
MIN_DUE_OFFSET_SECONDS = 1

# Streaks
STREAK_MAINTAIN_XP = 5
FREEZE_COOLDOWN_DAYS = 7
DEFAULT_STREAK_FREEZES = 1
STREAK_MILESTONES = (
    (3, "3 Day Streak", 10),
    (7, "Week Warrior", 25),
    (14, "Two Weeks Strong", 50),
    (30, "Monthly Master", 100),
    (60, "Two Month Titan", 200),
    (90, "Quarter Champion", 300),
    (180, "Half Year Hero", 500),
    (365, "Year of Learning", 1000),
)

# XP
ANSWER_XP = {
    "exact": 10,
    "fuzzy": 8,     # typo-tolerant matches earn a little less
    "ai": 10,       # scaled by the judge's score
}
INCORRECT_ATTEMPT_XP = 1
RATING_BONUS_XP = {
    "hard": 0,
    "good": 1,
    "easy": 2,
}

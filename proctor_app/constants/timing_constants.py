"""Timing limits shared by validation, the timing policy and submission checks."""

MIN_QUIZ_DURATION_MINUTES: int = 1
MAX_QUIZ_DURATION_MINUTES: int = 300

MIN_QUESTION_TIME_LIMIT_SECONDS: int = 10
MAX_QUESTION_TIME_LIMIT_SECONDS: int = 3600
# Applied when a per-question quiz question carries no limit of its own.
DEFAULT_QUESTION_TIME_LIMIT_SECONDS: int = 60

SUBMIT_TOLERANCE_SECONDS: int = 30

RECOMMENDED_TIME_LIMITS_SECONDS: dict[str, tuple[int, ...]] = {
    "single-select": (30, 60, 120),
    "multi-select": (60, 120, 180),
    "free-text": (120, 300, 600),
}
FALLBACK_RECOMMENDED_TIME_LIMITS_SECONDS: tuple[int, ...] = (60, 120, 180)

"""Quiz-related constants shared across the session, scoring and stats layers."""

TURN_DURATION_SECONDS: int = 60
TICK_INTERVAL_SECONDS: float = 1.0
OPTION_COUNT: int = 4

MIN_QUESTION_COUNT: int = 5
MAX_QUESTION_COUNT: int = 120
DEFAULT_QUESTION_COUNT: int = 5

DEFAULT_PLAYER_ONE_NAME: str = "Player 1"
DEFAULT_PLAYER_TWO_NAME: str = "Player 2"

# Engagement points policy used by the dashboard.
XP_PER_QUIZ: int = 10
XP_PER_CORRECT_ANSWER: int = 5
XP_PER_LEVEL: int = 100

CHART_WINDOW_DAYS: int = 7
RECENT_ACTIVITY_LIMIT: int = 5

# Finished, failed and cancelled sessions kept for result lookups before eviction.
RETAINED_FINISHED_SESSIONS: int = 200

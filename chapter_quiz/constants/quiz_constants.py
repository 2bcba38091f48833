"""Quiz-related constants shared across the session engine, ranking and API layers."""

DEFAULT_DURATION_MINUTES: float = 20
AUTO_ADVANCE_DELAY_SECONDS: float = 1.0
TIMER_TICK_SECONDS: int = 1
TICKER_POLL_INTERVAL_SECONDS: float = 0.2
FINISHED_SESSION_LIMIT: int = 500

OPTION_COUNT: int = 4
OPTION_LETTERS: tuple[str, ...] = ("A", "B", "C", "D")
PHONE_PATTERN: str = r"^[0-9]{10}$"

LIVE_LEADERBOARD_SIZE: int = 15
RESULT_TOP_SIZE: int = 5
PODIUM_SIZE: int = 3
SCORES_PAGE_SIZE: int = 10

RESULTS_TABLE: str = "results"

"""Static metadata describing ChapterQuiz."""

APP_NAME = "ChapterQuiz"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "ChapterQuiz runs timed, single-attempt chapter quizzes for registered participants "
    "and publishes live leaderboards computed from the submitted results."
)

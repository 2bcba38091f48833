"""ChapterQuiz: timed single-attempt chapter quizzes and leaderboards."""

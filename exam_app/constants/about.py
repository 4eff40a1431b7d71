"""Static metadata describing ExamArena."""

APP_NAME = "ExamArena"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ExamArena runs timed multiple-choice practice quizzes for Railway and Bank exams, "
    "solo or head-to-head, and keeps a history with streaks and accuracy trends."
)

"""Static metadata describing the proctored quiz service."""

APP_NAME = "ProctorQuiz"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "ProctorQuiz runs timed, monitored quiz attempts: it grades answers, applies "
    "negative marking and decides when users may see their results."
)

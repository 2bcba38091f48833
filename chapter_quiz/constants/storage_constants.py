"""Filesystem and key-layout constants for durable storage."""

QUESTIONS_DIR: str = "data/chapters"
DEVICE_STAGE_DIR: str = "data/device_stage"
QUESTION_FILE_SUFFIX: str = ".txt"

PENDING_RESULT_PREFIX: str = "pending"
ATTEMPT_MARKER_PREFIX: str = "attempted"
STAGE_KEY_SEPARATOR: str = ":"

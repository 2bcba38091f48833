"""Validation of the participant intake form before a session is created."""

from __future__ import annotations

import math
import re
from typing import Any, Mapping

from chapter_quiz.constants.messages import INVALID_PHONE, MISSING_FIELDS, localized
from chapter_quiz.constants.quiz_constants import DEFAULT_DURATION_MINUTES, PHONE_PATTERN
from chapter_quiz.core.errors import ValidationError
from chapter_quiz.core.models import Language, Participant, SessionParams

_PHONE_RE = re.compile(PHONE_PATTERN)
_LANGUAGE_ALIASES = {
    "en": Language.ENGLISH,
    "english": Language.ENGLISH,
    "ta": Language.TAMIL,
    "tamil": Language.TAMIL,
}
_REQUIRED_FIELDS = ("name", "phone", "place", "chapter_id")


def normalize_language(value: str | Language | None) -> Language:
    if isinstance(value, Language):
        return value
    if not value:
        return Language.ENGLISH
    language = _LANGUAGE_ALIASES.get(str(value).strip().lower())
    if language is None:
        raise ValidationError(f"Unsupported language: {value!r}", field="language")
    return language


def validate_participant(raw: Mapping[str, Any]) -> SessionParams:
    """Turn raw intake fields into a session parameter bundle.

    Raises ValidationError with a message in the participant's language when a
    field is missing, the phone is not exactly ten digits, or the duration is
    not positive.
    """
    language = normalize_language(raw.get("language"))
    cleaned: dict[str, str] = {}
    for name in _REQUIRED_FIELDS:
        value = raw.get(name)
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ValidationError(localized(MISSING_FIELDS, language.value), field=name)
        cleaned[name] = text

    if not _PHONE_RE.match(cleaned["phone"]):
        raise ValidationError(localized(INVALID_PHONE, language.value), field="phone")

    duration = raw.get("duration_minutes")
    if duration is None:
        duration = DEFAULT_DURATION_MINUTES
    try:
        duration = float(duration)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Duration must be a number of minutes.", field="duration_minutes") from exc
    if not math.isfinite(duration) or duration <= 0:
        raise ValidationError("Duration must be a positive number of minutes.", field="duration_minutes")

    seed = raw.get("seed")
    participant = Participant(
        name=cleaned["name"],
        phone=cleaned["phone"],
        place=cleaned["place"],
        language=language,
    )
    return SessionParams(
        participant=participant,
        chapter_id=cleaned["chapter_id"],
        duration_minutes=duration,
        preview=bool(raw.get("preview", False)),
        seed=int(seed) if seed is not None else None,
    )

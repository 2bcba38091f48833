"""Participant-facing messages keyed by language code."""

NAVIGATION_WARNING: dict[str, str] = {
    "en": "Do not leave or switch tabs during the exam. Doing it again will submit your answers.",
    "ta": "தேர்வு போது பக்கத்தை விட்டு வெளியேறவோ டாப் மாற்றவோ வேண்டாம். மீண்டும் செய்தால் உங்கள் பதில்கள் சமர்ப்பிக்கப்படும்.",
}
NAVIGATION_FORCED_SUBMIT: dict[str, str] = {
    "en": "You left the exam again. Your answers have been submitted.",
    "ta": "நீங்கள் மீண்டும் தேர்வை விட்டு வெளியேறினீர்கள். உங்கள் பதில்கள் சமர்ப்பிக்கப்பட்டன.",
}
MISSING_FIELDS: dict[str, str] = {
    "en": "Please fill all fields",
    "ta": "எல்லா புலங்களையும் நிரப்பவும்",
}
INVALID_PHONE: dict[str, str] = {
    "en": "Enter a valid 10-digit phone number",
    "ta": "செல்லுபடியாகும் 10 இலக்க தொலைபேசி எண்ணை உள்ளிடவும்",
}
ALREADY_ATTEMPTED: dict[str, str] = {
    "en": "You've already attempted this chapter",
    "ta": "இந்த அத்தியாயத்தை நீங்கள் ஏற்கனவே முயற்சித்துவிட்டீர்கள்",
}
NO_QUESTIONS: dict[str, str] = {
    "en": "No questions found for this chapter.",
    "ta": "இந்த அத்தியாயத்திற்கு கேள்விகள் இல்லை.",
}


def localized(messages: dict[str, str], language: str) -> str:
    """Pick the message for a language code, falling back to English."""
    return messages.get(language, messages["en"])

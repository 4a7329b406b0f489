# voices.py - Voice catalog and voice selection
"""
The coach picks a synthesis voice from the speech service's catalog.

select_voice() is a pure function of (gender, locale, catalog) so the same
inputs always give the same voice:

1. an exact name match from the ranked preference list for the gender,
2. a voice whose name (or declared gender) matches the gender and that is
   hosted locally (an owned/cloned voice rather than a shared public one),
3. the catalog's default voice,
4. the first voice for the locale.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from config import FEMALE, MALE


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    language: str
    gender: Optional[str] = None
    local: bool = False
    default: bool = False


PREFERRED_VOICES = {
    FEMALE: (
        "Indian Lady",
        "Hindi Narrator Woman",
        "Sarah",
        "British Lady",
        "Helpful Woman",
        "Reading Lady",
    ),
    MALE: (
        "Indian Man",
        "Hindi Narrator Man",
        "Friendly Reading Man",
        "British Reading Man",
        "Newsman",
        "Wise Man",
    ),
}

GENDER_PATTERNS = {
    FEMALE: re.compile(r"\b(female|woman|lady|girl)\b", re.IGNORECASE),
    MALE: re.compile(r"\b(male|man|gentleman|guy)\b", re.IGNORECASE),
}

# Cartesia lists gender as feminine, masculine or gender_neutral.
DECLARED_GENDERS = {
    "feminine": FEMALE,
    "masculine": MALE,
    FEMALE: FEMALE,
    MALE: MALE,
}


def _language(locale: str) -> str:
    return locale.replace("_", "-").split("-")[0].lower()


def matches_locale(voice: Voice, locale: str) -> bool:
    return _language(voice.language) == _language(locale)


def matches_gender(voice: Voice, gender: str) -> bool:
    if voice.gender:
        return voice.gender.lower() == gender
    return GENDER_PATTERNS[gender].search(voice.name) is not None


def select_voice(gender: str, locale: str, catalog: Sequence[Voice],
                 preferences: Optional[dict] = None) -> Optional[Voice]:
    preferences = PREFERRED_VOICES if preferences is None else preferences
    locale_voices = [v for v in catalog if matches_locale(v, locale)]

    for name in preferences.get(gender, ()):
        for voice in locale_voices:
            if voice.name == name:
                return voice

    for voice in locale_voices:
        if voice.local and matches_gender(voice, gender):
            return voice

    for voice in catalog:
        if voice.default:
            return voice

    return locale_voices[0] if locale_voices else None


def voice_from_record(record, default_id: Optional[str] = None) -> Voice:
    """Build a Voice from a Cartesia voice listing entry (object or dict)."""
    def field(name, fallback=None):
        if isinstance(record, dict):
            return record.get(name, fallback)
        return getattr(record, name, fallback)

    voice_id = field("id")
    gender = field("gender")
    if gender is not None:
        gender = DECLARED_GENDERS.get(str(getattr(gender, "value", gender)).lower())
    return Voice(
        id=voice_id,
        name=field("name", "") or "",
        language=field("language", "") or "",
        gender=gender,
        local=bool(field("is_owner", False)) and not field("is_public", True),
        default=voice_id == default_id,
    )


def build_catalog(records: Iterable, default_id: Optional[str] = None) -> List[Voice]:
    return [voice_from_record(record, default_id) for record in records]

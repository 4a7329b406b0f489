# config.py - Environment driven settings for the voice coach
"""
Settings are read from the environment (a .env file is loaded by main.py)
and can be overridden from the command line.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional

FEMALE = "female"
MALE = "male"

RATE_RANGE = (0.5, 1.5)
PITCH_RANGE = (0.5, 1.5)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return int(value)


def _clamp(value: float, bounds) -> float:
    low, high = bounds
    return max(low, min(high, value))


@dataclass(frozen=True)
class VoiceSettings:
    """What the user can tune from the settings panel."""
    gender: str = FEMALE
    rate: float = 0.9
    pitch: float = 1.1

    def __post_init__(self):
        if self.gender not in (FEMALE, MALE):
            raise ValueError(f"Unknown voice gender: {self.gender!r}")
        object.__setattr__(self, "rate", _clamp(self.rate, RATE_RANGE))
        object.__setattr__(self, "pitch", _clamp(self.pitch, PITCH_RANGE))

    def with_changes(self, **changes) -> "VoiceSettings":
        return replace(self, **changes)


@dataclass
class CoachConfig:
    anthropic_api_key: Optional[str] = None
    cartesia_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 1024
    tts_model: str = "sonic-2"
    tts_sample_rate: int = 24000
    stt_model: str = "ink-whisper"
    stt_language: str = "en"
    stt_sample_rate: int = 16000
    voice_locale: str = "en-US"
    input_device: Optional[int] = None
    output_device: Optional[int] = None
    voice: VoiceSettings = field(default_factory=VoiceSettings)

    @classmethod
    def from_env(cls) -> "CoachConfig":
        voice = VoiceSettings(
            gender=os.getenv("COACH_VOICE_GENDER", FEMALE).strip().lower(),
            rate=_env_float("COACH_SPEECH_RATE", 0.9),
            pitch=_env_float("COACH_SPEECH_PITCH", 1.1),
        )
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            cartesia_api_key=os.getenv("CARTESIA_API_KEY"),
            llm_model=os.getenv("COACH_LLM_MODEL", cls.llm_model),
            tts_model=os.getenv("COACH_TTS_MODEL", cls.tts_model),
            stt_language=os.getenv("COACH_STT_LANGUAGE", cls.stt_language),
            voice_locale=os.getenv("COACH_VOICE_LOCALE", cls.voice_locale),
            input_device=_env_int("COACH_INPUT_DEVICE"),
            output_device=_env_int("COACH_OUTPUT_DEVICE"),
            voice=voice,
        )

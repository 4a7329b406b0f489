# errors.py - Error taxonomy for the voice coach
"""
Every failure the coach can surface is one of these exceptions.

Capture and synthesis failures are handled by the conversation state machine,
gateway failures are turned into a spoken apology. Nothing here is ever fatal
to a session.
"""

from enum import Enum


class CaptureErrorCode(Enum):
    NO_SPEECH = "no-speech"
    NETWORK = "network"
    NOT_ALLOWED = "not-allowed"
    ABORTED = "aborted"
    OTHER = "other"


class VoiceCoachError(Exception):
    """Base class for all voice coach errors."""


class CaptureError(VoiceCoachError):
    code = CaptureErrorCode.OTHER


class MicrophonePermissionError(CaptureError):
    """The microphone could not be opened (denied, busy or missing)."""
    code = CaptureErrorCode.NOT_ALLOWED


class NoSpeechDetected(CaptureError):
    code = CaptureErrorCode.NO_SPEECH


class NetworkUnavailable(CaptureError):
    code = CaptureErrorCode.NETWORK


class RecognitionAborted(CaptureError):
    code = CaptureErrorCode.ABORTED


class SynthesisVoiceUnavailable(VoiceCoachError):
    """No synthesis voice exists for the configured gender and locale."""


class SynthesisInterrupted(VoiceCoachError):
    """An utterance was cut off by cancel(). Never reported as an error."""


class GatewayError(VoiceCoachError):
    """Base class for LLM gateway failures."""


class GatewayRateLimited(GatewayError):
    pass


class GatewayUnavailable(GatewayError):
    pass


class GatewayMalformedResponse(GatewayError):
    pass

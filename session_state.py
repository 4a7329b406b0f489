# session_state.py - Conversation session state and its transition function
"""
The whole "what is the assistant doing right now" state lives in one
immutable SessionState record. transition() is pure: it takes the current
state and an event and returns the next state plus the effects the
ConversationManager has to carry out (speak, listen, call the LLM, ...).

Lifecycle:

    IDLE -> SPEAKING (greeting) -> LISTENING -> PROCESSING -> SPEAKING -> LISTENING ...

`paused` is an overlay: pausing forces IDLE from any lifecycle, resuming
goes straight back to LISTENING.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from errors import CaptureErrorCode


class Lifecycle(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


class Category(Enum):
    VOCALS = "Vocals"
    INSTRUMENTS = "Instruments"


class Role(Enum):
    USER = "user"
    MODEL = "model"


GREETINGS = {
    Category.VOCALS: "Namaste! I am your vocal coach. How can I help you with your singing today?",
    Category.INSTRUMENTS: "Greetings! I am SwaraaLaya, your guide to musical instruments. Ask me anything!",
}

APOLOGY = "I'm sorry, I seem to have encountered a problem. Let's try that again."
EMPTY_TRANSCRIPT_REPROMPT = "I didn't quite catch that. Could you please repeat?"
NO_SPEECH_REPROMPT = "I didn't hear anything. Let's try that again."

NOTICE_NOT_ALLOWED = "Microphone access is not allowed. Please enable it in your system settings."
NOTICE_NETWORK = "I couldn't connect to the speech service. Please check your internet connection."
NOTICE_UNKNOWN = "An unknown recognition error occurred."
NOTICE_NO_VOICE = "No speech voice is available on this system."

CAPTURE_NOTICES = {
    CaptureErrorCode.NOT_ALLOWED: NOTICE_NOT_ALLOWED,
    CaptureErrorCode.NETWORK: NOTICE_NETWORK,
    CaptureErrorCode.OTHER: NOTICE_UNKNOWN,
}

STATUS_TEXT = {
    Lifecycle.IDLE: "Ready.",
    Lifecycle.LISTENING: "Listening for your response...",
    Lifecycle.PROCESSING: "Thinking...",
    Lifecycle.SPEAKING: "SwaraaLaya is speaking...",
}
STATUS_INITIALIZING = "Initializing SwaraaLaya..."
STATUS_PAUSED = "Paused. Press space to resume."


@dataclass(frozen=True)
class ConversationTurn:
    role: Role
    text: str


@dataclass(frozen=True)
class SessionState:
    category: Category
    lifecycle: Lifecycle = Lifecycle.IDLE
    paused: bool = False
    history: Tuple[ConversationTurn, ...] = ()
    notice: Optional[str] = None
    started: bool = False

    @property
    def status_text(self) -> str:
        if self.paused:
            return STATUS_PAUSED
        if not self.started:
            return STATUS_INITIALIZING
        if self.lifecycle is Lifecycle.IDLE and self.notice:
            return self.notice
        return STATUS_TEXT[self.lifecycle]

    def with_turn(self, role: Role, text: str) -> "SessionState":
        return replace(self, history=self.history + (ConversationTurn(role, text),))


# --- Events -----------------------------------------------------------------

@dataclass(frozen=True)
class SessionStarted:
    pass


@dataclass(frozen=True)
class ListenRequested:
    pass


@dataclass(frozen=True)
class TranscriptReceived:
    text: str


@dataclass(frozen=True)
class CaptureFailed:
    code: CaptureErrorCode


@dataclass(frozen=True)
class ReplyReceived:
    text: str


@dataclass(frozen=True)
class ReplyFailed:
    reason: str = ""


@dataclass(frozen=True)
class SpeechFinished:
    pass


@dataclass(frozen=True)
class VoiceUnavailable:
    pass


@dataclass(frozen=True)
class PauseToggled:
    pass


# --- Effects ----------------------------------------------------------------

@dataclass(frozen=True)
class Speak:
    text: str


@dataclass(frozen=True)
class StartListening:
    pass


@dataclass(frozen=True)
class StopListening:
    pass


@dataclass(frozen=True)
class CancelSpeech:
    pass


@dataclass(frozen=True)
class RequestReply:
    history: Tuple[ConversationTurn, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CancelReply:
    pass


def _speak(state: SessionState, text: str) -> Tuple[SessionState, List]:
    return replace(state, lifecycle=Lifecycle.SPEAKING, notice=None), [Speak(text)]


def _listen(state: SessionState) -> Tuple[SessionState, List]:
    if state.lifecycle is Lifecycle.LISTENING:
        return state, []
    return replace(state, lifecycle=Lifecycle.LISTENING, notice=None), [StartListening()]


def transition(state: SessionState, event) -> Tuple[SessionState, List]:
    """Return (next_state, effects). Events that make no sense in the
    current state leave it untouched and produce no effects."""

    if isinstance(event, PauseToggled):
        if state.paused:
            state = replace(state, paused=False, lifecycle=Lifecycle.IDLE, notice=None)
            return _listen(state)
        return (replace(state, paused=True, lifecycle=Lifecycle.IDLE),
                [CancelSpeech(), StopListening(), CancelReply()])

    if isinstance(event, SessionStarted):
        if state.started:
            return state, []
        greeting = GREETINGS[state.category]
        state = replace(state, started=True).with_turn(Role.MODEL, greeting)
        if state.paused:
            return state, []
        return _speak(state, greeting)

    if state.paused:
        return state, []

    if isinstance(event, ListenRequested):
        return _listen(state)

    if isinstance(event, SpeechFinished):
        if state.lifecycle is not Lifecycle.SPEAKING:
            return state, []
        return _listen(state)

    if isinstance(event, TranscriptReceived):
        if state.lifecycle is not Lifecycle.LISTENING:
            return state, []
        text = event.text.strip()
        if not text:
            return _speak(state, EMPTY_TRANSCRIPT_REPROMPT)
        state = replace(state, lifecycle=Lifecycle.PROCESSING).with_turn(Role.USER, text)
        return state, [RequestReply(state.history)]

    if isinstance(event, CaptureFailed):
        if state.lifecycle is not Lifecycle.LISTENING:
            return state, []
        if event.code is CaptureErrorCode.NO_SPEECH:
            return _speak(state, NO_SPEECH_REPROMPT)
        if event.code is CaptureErrorCode.ABORTED:
            return replace(state, lifecycle=Lifecycle.IDLE, notice=None), []
        return replace(state, lifecycle=Lifecycle.IDLE, notice=CAPTURE_NOTICES[event.code]), []

    if isinstance(event, ReplyReceived):
        if state.lifecycle is not Lifecycle.PROCESSING:
            return state, []
        return _speak(state.with_turn(Role.MODEL, event.text), event.text)

    if isinstance(event, ReplyFailed):
        if state.lifecycle is not Lifecycle.PROCESSING:
            return state, []
        return _speak(state, APOLOGY)

    if isinstance(event, VoiceUnavailable):
        return (replace(state, lifecycle=Lifecycle.IDLE, notice=NOTICE_NO_VOICE),
                [StopListening()])

    raise TypeError(f"Unknown session event: {event!r}")

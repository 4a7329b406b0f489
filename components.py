# components.py - Abstract Base Classes for the Voice Coach
"""
This module defines the abstract interfaces for every collaborator of the
conversation state machine. The state machine only ever talks to these
interfaces, so tests can drive it with fakes and no audio device or network.

The interfaces define the contract for:
- Audio input sources (microphone)
- Speech recognition (one utterance at a time)
- Speech engines (render and play one utterance)
- Voice capture and voice synthesis drivers
- Audio visualization
- The LLM gateway
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncGenerator, AsyncIterator, Callable, Dict, Optional, Sequence

import numpy as np

from errors import CaptureErrorCode


class AudioSource(ABC):
    """
    Abstract base class for audio input sources.

    Implementations own a scoped capture-device handle: it is acquired by
    open() (or on first use) and released by close().
    """

    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Safe to call when already open."""
        pass

    @abstractmethod
    async def stream_audio(self) -> AsyncGenerator[bytes, None]:
        """
        Stream audio data as chunks.

        Yields:
            bytes: Audio chunks in 16-bit PCM format (typically 100ms duration)
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call when not open."""
        pass

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class ASRInterface(ABC):
    """
    Abstract base class for speech recognition.

    Recognition is single-utterance and non-continuous: one call returns
    the transcript of one utterance.
    """

    @abstractmethod
    async def recognize(self, audio: AsyncIterator[bytes],
                        stop_requested: Callable[[], bool]) -> str:
        """
        Transcribe one utterance.

        Args:
            audio: Audio chunks from the microphone
            stop_requested: Polled between chunks; True ends the utterance early

        Returns:
            str: The transcript, possibly empty

        Raises:
            NoSpeechDetected, NetworkUnavailable
        """
        pass


class TTSInterface(ABC):
    """
    Abstract base class for speech engines.

    An engine renders one utterance and plays it, returning once playback
    has finished.
    """

    @abstractmethod
    async def list_voices(self) -> list:
        """Return the voice catalog (a list of voices.Voice)."""
        pass

    @abstractmethod
    async def say(self, text: str, voice, rate: float, pitch: float) -> None:
        """
        Speak one utterance and wait for it to finish.

        Raises:
            SynthesisInterrupted: if cancel() cut the utterance off
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance immediately."""
        pass


class AudioPlayer(ABC):
    """
    Abstract base class for audio output players.
    """

    @abstractmethod
    async def play(self, samples: np.ndarray) -> None:
        """Play samples and wait until they have been played."""
        pass

    @abstractmethod
    def flush_and_stop(self) -> None:
        """Drop anything still buffered and stop output."""
        pass


@dataclass(frozen=True)
class CaptureResult:
    """The single terminal event of one capture pass."""
    transcript: Optional[str] = None
    error: Optional[CaptureErrorCode] = None


class VoiceCapture(ABC):
    """Microphone + recognition driver used by the state machine."""

    @property
    @abstractmethod
    def active(self) -> bool:
        pass

    @abstractmethod
    def start(self, on_result: Callable[[CaptureResult], None]) -> bool:
        """
        Begin one recognition pass. on_result is called exactly once.

        Returns:
            bool: True if a pass is in progress (a new one, or the one that
            was already running; a second start() is a no-op)
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def abort(self) -> None:
        pass


class VoiceSynthesis(ABC):
    """Line/note scheduling speech driver used by the state machine."""

    @property
    @abstractmethod
    def speaking(self) -> bool:
        pass

    @abstractmethod
    def speak(self, text: str, on_complete: Optional[Callable[[], None]] = None) -> None:
        """
        Cancel whatever is playing, then speak text.

        Raises:
            SynthesisVoiceUnavailable: if no voice can be selected
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass


class AudioVisualizer(ABC):
    """Independent microphone stream exposing frequency data for rendering."""

    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def frame(self) -> np.ndarray:
        """Current frequency-domain sample as a fixed-size uint8 array."""
        pass


class LLMInterface(ABC):
    """
    Abstract base class for the hosted language model.

    Rate-limit errors are retried inside the gateway; everything else
    propagates as a GatewayError.
    """

    @abstractmethod
    async def complete(self, system_prompt: Optional[str], history: Sequence) -> str:
        pass

    @abstractmethod
    async def singing_feedback(self, song_title: str) -> Dict[str, str]:
        """Returns {"lyrics": ..., "feedback": ...}."""
        pass

    @abstractmethod
    async def generate_melody(self, prompt: str) -> Dict[str, str]:
        """Returns {"description": ..., "notes": ...}."""
        pass

    @abstractmethod
    async def diction_feedback(self, lyrics: str) -> str:
        pass

    @abstractmethod
    async def instrument_accompaniment(self, instrument: str) -> str:
        pass

    @abstractmethod
    async def instrument_transformation(self, instrument: str) -> str:
        pass

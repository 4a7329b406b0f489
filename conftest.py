"""
Shared fakes for the voice coach test suite.

The drivers below stand in for the microphone, the speech service and the
LLM so the state machine and the schedulers can be exercised without audio
devices or network access.
"""

import asyncio
from typing import Callable, List, Optional

import numpy as np
import pytest

from components import (
    AudioSource, AudioVisualizer, CaptureResult, LLMInterface, TTSInterface, VoiceCapture, VoiceSynthesis,
)
from config import VoiceSettings
from errors import CaptureErrorCode, SynthesisVoiceUnavailable
from voices import Voice


class FakeCapture(VoiceCapture):
    def __init__(self):
        self.starts = 0
        self.stops = 0
        self.aborts = 0
        self.on_result: Optional[Callable[[CaptureResult], None]] = None

    @property
    def active(self) -> bool:
        return self.on_result is not None

    def start(self, on_result):
        if self.active:
            return True
        self.starts += 1
        self.on_result = on_result
        return True

    def stop(self):
        self.stops += 1

    def abort(self):
        self.aborts += 1
        self.on_result = None

    def hear(self, transcript: str) -> None:
        callback, self.on_result = self.on_result, None
        callback(CaptureResult(transcript=transcript))

    def fail(self, code: CaptureErrorCode) -> None:
        callback, self.on_result = self.on_result, None
        callback(CaptureResult(error=code))


class FakeSynthesis(VoiceSynthesis):
    def __init__(self):
        self.spoken: List[str] = []
        self.cancels = 0
        self.unavailable = False
        self.settings = VoiceSettings()
        self.on_complete = None

    @property
    def speaking(self) -> bool:
        return self.on_complete is not None

    def speak(self, text, on_complete=None):
        if self.unavailable:
            raise SynthesisVoiceUnavailable("no voice")
        self.spoken.append(text)
        self.on_complete = on_complete

    def cancel(self):
        self.cancels += 1
        self.on_complete = None

    def update_settings(self, settings):
        self.settings = settings

    def finish(self) -> None:
        callback, self.on_complete = self.on_complete, None
        callback()


class FakeLLM(LLMInterface):
    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    async def _next(self):
        await asyncio.sleep(0)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def complete(self, system_prompt, history):
        self.calls.append(("complete", tuple(history)))
        return await self._next()

    async def singing_feedback(self, song_title):
        self.calls.append(("singing_feedback", song_title))
        return await self._next()

    async def generate_melody(self, prompt):
        self.calls.append(("generate_melody", prompt))
        return await self._next()

    async def diction_feedback(self, lyrics):
        self.calls.append(("diction_feedback", lyrics))
        return await self._next()

    async def instrument_accompaniment(self, instrument):
        self.calls.append(("instrument_accompaniment", instrument))
        return await self._next()

    async def instrument_transformation(self, instrument):
        self.calls.append(("instrument_transformation", instrument))
        return await self._next()


class FakeEngine(TTSInterface):
    def __init__(self, voices=(), fail_on=()):
        self.voices = list(voices)
        self.fail_on = set(fail_on)
        self.said = []
        self.cancels = 0

    async def list_voices(self):
        return list(self.voices)

    async def say(self, text, voice, rate, pitch):
        self.said.append((text, voice.name, round(rate, 3), round(pitch, 3)))
        await asyncio.sleep(0)
        if text in self.fail_on:
            raise RuntimeError(f"cannot say {text}")

    def cancel(self):
        self.cancels += 1


class FakeMicrophone(AudioSource):
    def __init__(self, chunks=(b"\x00\x00" * 160,)):
        self.chunks = list(chunks)
        self.opened = 0
        self.closed = 0

    def open(self):
        self.opened += 1

    async def stream_audio(self):
        for chunk in self.chunks:
            yield chunk
            await asyncio.sleep(0)

    def close(self):
        self.closed += 1


class FakeVisualizer(AudioVisualizer):
    def __init__(self, available=True):
        self.available = available
        self.started = 0
        self.stopped = 0

    async def start(self):
        self.started += 1

    def stop(self):
        self.stopped += 1

    def frame(self):
        return np.zeros(128, dtype=np.uint8)


@pytest.fixture
def catalog():
    return [
        Voice(id="v-sarah", name="Sarah", language="en", gender="female"),
        Voice(id="v-newsman", name="Newsman", language="en", gender="male"),
        Voice(id="v-priya", name="Priya Woman", language="hi", gender="female", local=True),
        Voice(id="v-default", name="Default Voice", language="en", default=True),
    ]


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def synthesis():
    return FakeSynthesis()

# synthesis.py - Voice synthesis driver with line and Sargam note scheduling
"""
speak(text, on_complete) turns a reply into a flat plan of steps and plays
it with one asyncio task:

    Utter("Here is the Aaroha:")        plain line, base rate/pitch
    Utter("Sa", rate*1.2, pitch*1.1)    one step per Sargam note
    Rest(0.1)                           after every note
    Rest(0.4)                           on a ',' or '.' separator
    Rest(0.3)                           for an empty line

Steps run strictly one after another. on_complete fires exactly once, after
the last step, unless the plan was cancelled; cancelling never fires it.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from components import TTSInterface, VoiceSynthesis
from config import VoiceSettings
from errors import SynthesisInterrupted, SynthesisVoiceUnavailable
from sargam import PlainText, SargamLine, split_lines
from voices import Voice, select_voice

NOTE_RATE_FACTOR = 1.2
NOTE_PITCH_FACTOR = 1.1
NOTE_GAP = 0.1
SEPARATOR_PAUSE = 0.4
BLANK_LINE_PAUSE = 0.3


@dataclass(frozen=True)
class Utter:
    text: str
    rate: float
    pitch: float
    # A failed line ends the whole utterance, a failed note only skips itself.
    is_note: bool = False


@dataclass(frozen=True)
class Rest:
    seconds: float


Step = Union[Utter, Rest]


def plan_speech(text: str, settings: VoiceSettings) -> List[Step]:
    steps: List[Step] = []
    for line in split_lines(text):
        if isinstance(line, SargamLine):
            note_rate = settings.rate * NOTE_RATE_FACTOR
            note_pitch = settings.pitch * NOTE_PITCH_FACTOR
            for note in line.notes:
                if note.is_rest:
                    steps.append(Rest(SEPARATOR_PAUSE))
                else:
                    steps.append(Utter(note.spoken, note_rate, note_pitch, is_note=True))
                    steps.append(Rest(NOTE_GAP))
        elif isinstance(line, PlainText) and line.text:
            steps.append(Utter(line.text, settings.rate, settings.pitch))
        else:
            steps.append(Rest(BLANK_LINE_PAUSE))
    return steps


class VoiceSynthesisDriver(VoiceSynthesis):
    def __init__(self, engine: TTSInterface, settings: Optional[VoiceSettings] = None,
                 locale: str = "en-US", voices: Sequence[Voice] = ()):
        self.engine = engine
        self.settings = settings or VoiceSettings()
        self.locale = locale
        self.voices = list(voices)
        self._task: Optional[asyncio.Task] = None

    async def load_voices(self) -> None:
        self.voices = await self.engine.list_voices()

    def update_settings(self, settings: VoiceSettings) -> None:
        """New settings apply from the next speak()."""
        self.settings = settings

    def current_voice(self) -> Optional[Voice]:
        return select_voice(self.settings.gender, self.locale, self.voices)

    @property
    def speaking(self) -> bool:
        return self._task is not None and not self._task.done()

    def speak(self, text: str, on_complete: Optional[Callable[[], None]] = None) -> None:
        self.cancel()
        voice = self.current_voice()
        if voice is None:
            print(f"[Synthesis] No {self.settings.gender} voice available for {self.locale}")
            raise SynthesisVoiceUnavailable(f"{self.settings.gender}/{self.locale}")

        steps = plan_speech(text, self.settings)
        self._task = asyncio.get_running_loop().create_task(self._run(steps, voice, on_complete))

    async def _run(self, steps: List[Step], voice: Voice,
                   on_complete: Optional[Callable[[], None]]) -> None:
        for step in steps:
            if isinstance(step, Rest):
                await asyncio.sleep(step.seconds)
                continue
            try:
                await self.engine.say(step.text, voice, step.rate, step.pitch)
            except SynthesisInterrupted:
                return
            except Exception as e:
                print(f"[Synthesis] Speech synthesis error on '{step.text}': {e}")
                if not step.is_note:
                    break

        if self._task is asyncio.current_task():
            self._task = None
        if on_complete is not None:
            on_complete()

    def cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self.engine.cancel()

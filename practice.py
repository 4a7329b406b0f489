# practice.py - Lyric practice and freestyle singing sessions
"""
Two practice modes offered in the vocals category.

LyricPractice recites a bundled practice song word by word, records the
student (the recording only drives the visualizer) and asks the gateway for
diction feedback.

SingingSession records a freestyle performance, asks for the song title and
gets lyrics plus feedback from the gateway. The words of the returned lyrics
are marked right or wrong by a LyricScorer. No audio analysis happens: the
default RandomLyricScorer is a placeholder that flags about one word in five.
"""

import asyncio
import random
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from components import AudioVisualizer, LLMInterface, TTSInterface
from config import FEMALE
from errors import MicrophonePermissionError, SynthesisInterrupted, SynthesisVoiceUnavailable
from llm import fallback_message
from voices import Voice, select_voice

WORD_GAP = 0.05
PUNCTUATION_GAP = 0.35
SPACE_GAP = 0.15
NEWLINE_GAP = 0.4
RECITE_RATE = 0.9
RECITE_PITCH = 1.0

PUNCTUATION = re.compile(r"[.,;?!—]")
WHITESPACE_SPLIT = re.compile(r"(\s+)")

LYRICS_UNAVAILABLE = "Could not retrieve lyrics due to an unexpected error."


@dataclass(frozen=True)
class PracticeSong:
    title: str
    category: str
    lyrics: str
    lang: str = "en-US"


PRACTICE_SONGS = (
    PracticeSong(
        title="Peter Piper",
        category="Tongue-Twister",
        lyrics="Peter Piper picked a peck of pickled peppers.\nA peck of pickled peppers Peter Piper picked.\nIf Peter Piper picked a peck of pickled peppers,\nWhere's the peck of pickled peppers Peter Piper picked?",
    ),
    PracticeSong(
        title="कच्चा पापड़ (Kaccha Papad)",
        category="Tongue-Twister",
        lyrics="कच्चा पापड़, पक्का पापड़। कच्चा पापड़, पक्का पापड़।",
        lang="hi-IN",
    ),
    PracticeSong(
        title="Supercalifragilisticexpialidocious",
        category="Musical Theatre",
        lyrics="Supercalifragilisticexpialidocious!\nEven though the sound of it\nIs something quite atrocious\nIf you say it loud enough\nYou'll always sound precocious!",
    ),
    PracticeSong(
        title="Modern Major-General",
        category="Musical Theatre",
        lyrics="I am the very model of a modern Major-General,\nI've information vegetable, animal, and mineral,\nI know the kings of England, and I quote the fights historical\nFrom Marathon to Waterloo, in order categorical.",
    ),
    PracticeSong(
        title="She Sells Sea-Shells",
        category="Tongue-Twister",
        lyrics="She sells sea-shells on the sea-shore.\nThe shells she sells are sea-shells, I'm sure.\nFor if she sells sea-shells on the sea-shore,\nThen I'm sure she sells sea-shore shells.",
    ),
    PracticeSong(
        title="The Raven (Verse 1)",
        category="Classic Poetry",
        lyrics="Once upon a midnight dreary, while I pondered, weak and weary,\nOver many a quaint and curious volume of forgotten lore—\nWhile I nodded, nearly napping, suddenly there came a tapping,\nAs of some one gently rapping, rapping at my chamber door.",
    ),
)


def find_song(lang: str, songs: Sequence[PracticeSong] = PRACTICE_SONGS) -> Optional[PracticeSong]:
    return next((song for song in songs if song.lang == lang), None)


@dataclass(frozen=True)
class RecitationStep:
    index: int
    token: str
    pause_after: float

    @property
    def spoken(self) -> bool:
        return bool(self.token.strip())


def recitation_plan(lyrics: str) -> List[RecitationStep]:
    """Tokens (words and the whitespace between them) with the pause after each."""
    steps = []
    for index, token in enumerate(WHITESPACE_SPLIT.split(lyrics)):
        word = token.strip()
        if not word:
            if not token:
                continue
            pause = NEWLINE_GAP if "\n" in token else SPACE_GAP
        else:
            pause = PUNCTUATION_GAP if PUNCTUATION.search(word) else WORD_GAP
        steps.append(RecitationStep(index, word or token, pause))
    return steps


class LyricPractice:
    def __init__(self, song: PracticeSong, engine: TTSInterface, llm: LLMInterface,
                 visualizer_factory: Callable[[], AudioVisualizer],
                 voices: Sequence[Voice], gender: str = FEMALE,
                 on_word: Optional[Callable[[int], None]] = None):
        self.song = song
        self.engine = engine
        self.llm = llm
        self.visualizer_factory = visualizer_factory
        self.voices = voices
        self.gender = gender
        self.on_word = on_word
        self.visualizer: Optional[AudioVisualizer] = None
        self.feedback = ""

    def _highlight(self, index: int) -> None:
        if self.on_word is not None:
            self.on_word(index)

    async def recite(self) -> None:
        """Speak the lyrics word by word. Cancel the task running this to stop."""
        voice = select_voice(self.gender, self.song.lang, self.voices)
        if voice is None:
            raise SynthesisVoiceUnavailable(f"No suitable voice for language '{self.song.lang}'")

        try:
            for step in recitation_plan(self.song.lyrics):
                self._highlight(step.index)
                if step.spoken:
                    await self.engine.say(step.token, voice, RECITE_RATE, RECITE_PITCH)
                await asyncio.sleep(step.pause_after)
        except SynthesisInterrupted:
            pass
        except asyncio.CancelledError:
            self.engine.cancel()
            raise
        finally:
            self._highlight(-1)

    async def start_recording(self) -> AudioVisualizer:
        self.visualizer = self.visualizer_factory()
        await self.visualizer.start()
        if not getattr(self.visualizer, "available", True):
            self.visualizer = None
            raise MicrophonePermissionError(
                "Microphone access denied. Please allow microphone access to use this feature.")
        return self.visualizer

    def stop_recording(self) -> None:
        visualizer, self.visualizer = self.visualizer, None
        if visualizer is not None:
            visualizer.stop()

    async def analyze(self) -> str:
        self.stop_recording()
        try:
            self.feedback = await self.llm.diction_feedback(self.song.lyrics)
        except Exception as e:
            print(f"[Practice] Error getting diction feedback: {e}")
            self.feedback = fallback_message(e)
        return self.feedback


class LyricScorer:
    """Decides whether a recited word counts as correct."""

    def score(self, word: str) -> bool:
        raise NotImplementedError


class RandomLyricScorer(LyricScorer):
    """Placeholder scorer: flags roughly `error_rate` of the words at random."""

    def __init__(self, error_rate: float = 0.2, rng: Optional[random.Random] = None):
        self.error_rate = error_rate
        self.rng = rng or random.Random()

    def score(self, word: str) -> bool:
        return self.rng.random() >= self.error_rate


@dataclass(frozen=True)
class MarkedWord:
    word: str
    correct: bool


def mark_lyrics(lyrics: str, scorer: LyricScorer) -> List[MarkedWord]:
    marked = []
    for token in WHITESPACE_SPLIT.split(lyrics):
        if not token:
            continue
        correct = True if not token.strip() else scorer.score(token)
        marked.append(MarkedWord(token, correct))
    return marked


@dataclass
class SingingFeedback:
    song_title: str
    lyrics: str
    feedback: str
    marked: List[MarkedWord] = field(default_factory=list)


class SingingSession:
    def __init__(self, llm: LLMInterface, visualizer_factory: Callable[[], AudioVisualizer],
                 scorer: Optional[LyricScorer] = None):
        self.llm = llm
        self.visualizer_factory = visualizer_factory
        self.scorer = scorer or RandomLyricScorer()
        self.visualizer: Optional[AudioVisualizer] = None

    async def start_singing(self) -> AudioVisualizer:
        self.visualizer = self.visualizer_factory()
        await self.visualizer.start()
        if not getattr(self.visualizer, "available", True):
            self.visualizer = None
            raise MicrophonePermissionError(
                "Microphone access denied. Please allow microphone access to use this feature.")
        return self.visualizer

    def stop_singing(self) -> None:
        visualizer, self.visualizer = self.visualizer, None
        if visualizer is not None:
            visualizer.stop()

    async def get_feedback(self, song_title: str) -> SingingFeedback:
        song_title = song_title.strip()
        if not song_title:
            raise ValueError("A song title is required")
        self.stop_singing()
        try:
            result = await self.llm.singing_feedback(song_title)
        except Exception as e:
            print(f"[Singing] Error getting singing feedback: {e}")
            return SingingFeedback(song_title, LYRICS_UNAVAILABLE, fallback_message(e))
        return SingingFeedback(song_title, result["lyrics"], result["feedback"],
                               mark_lyrics(result["lyrics"], self.scorer))

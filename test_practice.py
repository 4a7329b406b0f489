import asyncio
import random

import pytest

from conftest import FakeEngine, FakeLLM, FakeVisualizer
from errors import GatewayError, GatewayRateLimited, MicrophonePermissionError, SynthesisVoiceUnavailable
from melody import make_melody
from playground import InstrumentPlayground
from practice import (
    LYRICS_UNAVAILABLE, NEWLINE_GAP, PUNCTUATION_GAP, SPACE_GAP, WORD_GAP, LyricPractice, LyricScorer,
    RandomLyricScorer, SingingSession, find_song, mark_lyrics, recitation_plan,
)
from prompts import HIGH_TRAFFIC, SOUR_NOTE


@pytest.fixture
def no_wait(monkeypatch):
    pauses = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds, *args, **kwargs):
        if seconds:
            pauses.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr("practice.asyncio.sleep", fake_sleep)
    return pauses


class AllWrong(LyricScorer):
    def score(self, word):
        return False


def test_recitation_pacing():
    steps = recitation_plan("Hi there,\nfriend")
    assert [(s.token, s.pause_after) for s in steps] == [
        ("Hi", WORD_GAP),
        (" ", SPACE_GAP),
        ("there,", PUNCTUATION_GAP),
        ("\n", NEWLINE_GAP),
        ("friend", WORD_GAP),
    ]
    assert [s.spoken for s in steps] == [True, False, True, False, True]


def test_default_practice_song_is_hindi():
    song = find_song("hi-IN")
    assert song.lang == "hi-IN"
    assert "पापड़" in song.lyrics
    assert find_song("fr-FR") is None


@pytest.mark.asyncio
async def test_recite_speaks_each_word_with_language_voice(catalog, no_wait):
    song = find_song("hi-IN")
    engine = FakeEngine()
    highlighted = []
    practice = LyricPractice(song, engine, FakeLLM(), FakeVisualizer, catalog, on_word=highlighted.append)

    await practice.recite()

    words = song.lyrics.split()
    assert [s[0] for s in engine.said] == words
    assert {(s[1], s[2], s[3]) for s in engine.said} == {("Priya Woman", 0.9, 1.0)}
    assert highlighted[-1] == -1
    assert PUNCTUATION_GAP in no_wait


@pytest.mark.asyncio
async def test_recite_without_voice_fails(no_wait):
    practice = LyricPractice(find_song("hi-IN"), FakeEngine(), FakeLLM(), FakeVisualizer, [])
    with pytest.raises(SynthesisVoiceUnavailable):
        await practice.recite()


@pytest.mark.asyncio
async def test_diction_feedback_after_recording(catalog):
    llm = FakeLLM(["Crisp consonants!"])
    practice = LyricPractice(find_song("en-US"), FakeEngine(), llm, FakeVisualizer, catalog)

    visualizer = await practice.start_recording()
    assert visualizer.started == 1
    assert await practice.analyze() == "Crisp consonants!"
    assert visualizer.stopped == 1
    assert llm.calls == [("diction_feedback", find_song("en-US").lyrics)]


@pytest.mark.asyncio
async def test_diction_feedback_falls_back_in_character(catalog):
    practice = LyricPractice(find_song("en-US"), FakeEngine(), FakeLLM([GatewayRateLimited("429")]),
                             FakeVisualizer, catalog)
    assert await practice.analyze() == HIGH_TRAFFIC


def test_marking_keeps_whitespace_correct():
    marked = mark_lyrics("Sa Re\nGa", AllWrong())
    assert [(m.word, m.correct) for m in marked] == [
        ("Sa", False), (" ", True), ("Re", False), ("\n", True), ("Ga", False),
    ]


def test_random_scorer_respects_error_rate():
    words = ["w"] * 50
    assert all(RandomLyricScorer(0.0, random.Random(1)).score(w) for w in words)
    assert not any(RandomLyricScorer(1.0, random.Random(1)).score(w) for w in words)


@pytest.mark.asyncio
async def test_singing_feedback_is_marked_with_injected_scorer():
    llm = FakeLLM([{"lyrics": "Tum hi ho", "feedback": "Warm tone."}])
    session = SingingSession(llm, FakeVisualizer, scorer=AllWrong())
    await session.start_singing()

    result = await session.get_feedback("  Tum Hi Ho ")
    assert result.song_title == "Tum Hi Ho"
    assert result.feedback == "Warm tone."
    assert [m.word for m in result.marked if not m.correct] == ["Tum", "hi", "ho"]
    assert session.visualizer is None


@pytest.mark.asyncio
async def test_singing_feedback_failure_and_validation():
    session = SingingSession(FakeLLM([GatewayError("boom")]), FakeVisualizer)
    with pytest.raises(ValueError):
        await session.get_feedback("   ")

    result = await session.get_feedback("Unknown Song")
    assert result.lyrics == LYRICS_UNAVAILABLE
    assert result.feedback == SOUR_NOTE
    assert result.marked == []


@pytest.mark.asyncio
async def test_singing_needs_microphone():
    session = SingingSession(FakeLLM(), lambda: FakeVisualizer(available=False))
    with pytest.raises(MicrophonePermissionError):
        await session.start_singing()


@pytest.mark.asyncio
async def test_playground_jam_and_transform():
    llm = FakeLLM(["Lay down a tabla groove.", GatewayError("down")])
    playground = InstrumentPlayground(llm)

    reply = await playground.jam("piano")
    assert reply.instrument == "Piano" and not reply.failed
    assert llm.calls[0] == ("instrument_accompaniment", "Piano")

    reply = await playground.transform("Drums")
    assert reply.failed and reply.text == SOUR_NOTE
    assert playground.last_reply is reply

    with pytest.raises(ValueError):
        await playground.jam("kazoo")


@pytest.mark.asyncio
async def test_melody_maker():
    llm = FakeLLM([{"description": "A bright morning phrase.", "notes": "S R  G P"}, GatewayRateLimited("429")])

    melody = await make_melody(llm, "happy morning raga")
    assert melody.notes == ["S", "R", "G", "P"]
    assert melody.notation == "S R G P"
    assert melody.error is None

    failed = await make_melody(llm, "again")
    assert failed.error == HIGH_TRAFFIC and failed.notes == []

    with pytest.raises(ValueError):
        await make_melody(llm, "  ")

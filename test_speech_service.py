import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from asr import CartesiaASR
from components import AudioPlayer
from errors import NetworkUnavailable, NoSpeechDetected, SynthesisInterrupted
from tts import CartesiaTTS, rate_to_speed, shift_pitch
from voices import Voice


class FakeSTTSocket:
    def __init__(self, results, delay=0.0):
        self.results = results
        self.delay = delay
        self.sent = []
        self.closed = False

    async def send(self, message):
        self.sent.append(message)

    async def receive(self):
        for result in self.results:
            await asyncio.sleep(self.delay)
            yield result

    async def close(self):
        self.closed = True


def make_asr(socket, **kwargs):
    client = MagicMock()
    client.stt.websocket = AsyncMock(return_value=socket)
    return CartesiaASR(client=client, **kwargs)


async def audio(chunks=3):
    for _ in range(chunks):
        yield b"\x00\x00" * 160
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_first_final_transcript_ends_utterance():
    socket = FakeSTTSocket([
        {"type": "transcript", "text": "Sa Re", "is_final": False},
        {"type": "transcript", "text": " Sa Re Ga ", "is_final": True},
        {"type": "transcript", "text": "ignored", "is_final": True},
    ])
    asr = make_asr(socket)
    assert await asr.recognize(audio(), lambda: False) == "Sa Re Ga"
    assert socket.closed


@pytest.mark.asyncio
async def test_service_error_is_network_error():
    asr = make_asr(FakeSTTSocket([{"type": "error", "message": "socket closed"}]))
    with pytest.raises(NetworkUnavailable):
        await asr.recognize(audio(), lambda: False)


@pytest.mark.asyncio
async def test_silence_raises_no_speech():
    asr = make_asr(FakeSTTSocket([{"type": "done"}], delay=1.0), no_speech_timeout=0.05)
    with pytest.raises(NoSpeechDetected):
        await asr.recognize(audio(), lambda: False)


@pytest.mark.asyncio
async def test_stop_returns_partial_transcript():
    socket = FakeSTTSocket([{"type": "transcript", "text": "Namaste", "is_final": False}, {"type": "done"}])
    asr = make_asr(socket)
    assert await asr.recognize(audio(), lambda: True) == "Namaste"
    assert socket.sent[-2:] == ["finalize", "done"]


@pytest.mark.asyncio
async def test_connect_failure_is_network_error():
    client = MagicMock()
    client.stt.websocket = AsyncMock(side_effect=OSError("unreachable"))
    with pytest.raises(NetworkUnavailable):
        await CartesiaASR(client=client).recognize(audio(), lambda: False)


class DroppedSTTSocket(FakeSTTSocket):
    async def send(self, message):
        raise ConnectionError("connection reset")


@pytest.mark.asyncio
async def test_dropped_connection_while_sending_is_network_error():
    socket = DroppedSTTSocket([{"type": "done"}], delay=1.0)
    asr = make_asr(socket, no_speech_timeout=0.05)
    with pytest.raises(NetworkUnavailable):
        await asr.recognize(audio(), lambda: False)
    assert socket.closed


def test_rate_maps_onto_speed_control():
    assert rate_to_speed(1.0) == 0.0
    assert rate_to_speed(0.5) == -0.5
    assert rate_to_speed(3.0) == 1.0


def test_pitch_shift_changes_length():
    samples = np.linspace(-1, 1, 1000, dtype=np.float32)
    assert len(shift_pitch(samples, 1.25)) == 800
    assert len(shift_pitch(samples, 0.5)) == 2000
    assert shift_pitch(samples, 1.0) is samples


class RecordingPlayer(AudioPlayer):
    def __init__(self):
        self.played = []
        self.flushes = 0

    async def play(self, samples):
        self.played.append(samples)

    def flush_and_stop(self):
        self.flushes += 1


def make_tts(chunks, player):
    async def stream():
        for chunk in chunks:
            yield SimpleNamespace(audio=chunk)

    socket = MagicMock()
    socket.send = AsyncMock(side_effect=lambda **kwargs: stream())
    socket.close = AsyncMock()
    client = MagicMock()
    client.tts.websocket = AsyncMock(return_value=socket)
    return CartesiaTTS(player, client=client), socket


VOICE = Voice(id="v1", name="Sarah", language="en")


@pytest.mark.asyncio
async def test_say_renders_and_plays_one_utterance():
    chunk = np.ones(100, dtype="<f4").tobytes()
    player = RecordingPlayer()
    tts, socket = make_tts([chunk, chunk], player)

    await tts.say("Sa", VOICE, rate=1.2, pitch=1.0)

    assert len(player.played) == 1 and len(player.played[0]) == 200
    kwargs = socket.send.call_args.kwargs
    assert kwargs["transcript"] == "Sa"
    assert kwargs["voice"]["id"] == "v1"
    assert kwargs["voice"]["experimental_controls"]["speed"] == pytest.approx(0.2)
    socket.close.assert_awaited()


@pytest.mark.asyncio
async def test_cancel_interrupts_utterance():
    class CancellingPlayer(RecordingPlayer):
        async def play(self, samples):
            tts.cancel()

    player = CancellingPlayer()
    tts, _ = make_tts([np.ones(10, dtype="<f4").tobytes()], player)
    with pytest.raises(SynthesisInterrupted):
        await tts.say("Re", VOICE, 1.0, 1.0)
    assert player.flushes == 1


@pytest.mark.asyncio
async def test_voice_catalog_from_listing():
    player = RecordingPlayer()
    tts, _ = make_tts([], player)
    tts.client.voices.list = AsyncMock(return_value=SimpleNamespace(items=[
        {"id": tts.default_voice_id, "name": "Default", "language": "en"},
        {"id": "x", "name": "Mine", "language": "hi", "is_owner": True, "is_public": False},
    ]))
    catalog = await tts.list_voices()
    assert [v.default for v in catalog] == [True, False]
    assert catalog[1].local

# tts.py - Text-to-Speech Synthesis using Cartesia API
"""
This module implements the speech engine using Cartesia's streaming TTS service.

The CartesiaTTS class renders ONE utterance at a time and plays it:
- High-quality voice synthesis using Cartesia's Sonic model over a WebSocket
- Speaking rate mapped onto Cartesia's speed control
- Pitch applied locally by resampling the rendered audio with numpy
- Playback through the buffered sounddevice player
- Immediate cancellation

Line splitting and Sargam note pacing live in synthesis.py; this engine only
ever sees one line or one note.
"""

import asyncio
from typing import AsyncGenerator, List, Optional

import numpy as np
from cartesia import AsyncCartesia

from components import AudioPlayer, TTSInterface
from errors import SynthesisInterrupted
from voices import Voice, build_catalog

DEFAULT_VOICE_ID = "a0e99841-438c-4a64-b679-ae501e7d6091"


def rate_to_speed(rate: float) -> float:
    """Map a speech rate (1.0 = normal) onto Cartesia's speed range [-1, 1]."""
    return float(np.clip(rate - 1.0, -1.0, 1.0))


def shift_pitch(samples: np.ndarray, pitch: float) -> np.ndarray:
    """
    Raise (pitch > 1) or lower (pitch < 1) the voice by resampling.

    Like changing a tape's speed, this also shortens or lengthens the audio.
    """
    if len(samples) == 0 or abs(pitch - 1.0) < 1e-3:
        return samples
    new_length = max(1, int(round(len(samples) / pitch)))
    positions = np.linspace(0, len(samples) - 1, new_length)
    return np.interp(positions, np.arange(len(samples)), samples).astype(np.float32)


class CartesiaTTS(TTSInterface):
    """
    Cartesia-powered speech engine.

    Features:
    - WebSocket-based synthesis with Cartesia's Sonic model
    - Voice catalog from Cartesia's voice listing
    - Rate and pitch controls
    - Cancellable playback
    """

    def __init__(self,
                 player: AudioPlayer,
                 api_key: Optional[str] = None,
                 model_id: str = "sonic-2",
                 sample_rate: int = 24000,
                 default_voice_id: str = DEFAULT_VOICE_ID,
                 client=None):
        """
        Initialize the Cartesia TTS client.

        Args:
            player: Where rendered audio is played
            api_key: Cartesia API key
            model_id: Cartesia TTS model
            sample_rate: Output audio sample rate in Hz (24kHz for high quality)
            default_voice_id: Voice treated as the system default
        """
        if client is None:
            if not api_key:
                raise ValueError("CARTESIA_API_KEY not found in environment")
            client = AsyncCartesia(api_key=api_key)
        self.client = client
        self.player = player
        self.model_id = model_id
        self.sample_rate = sample_rate
        self.default_voice_id = default_voice_id
        self._cancelled = False

    async def list_voices(self) -> List[Voice]:
        listing = await self.client.voices.list()
        records = getattr(listing, "items", listing)
        if hasattr(records, "__aiter__"):
            records = [record async for record in records]
        catalog = build_catalog(records, self.default_voice_id)
        print(f"[TTS] Loaded {len(catalog)} voices")
        return catalog

    async def _synthesize(self, text: str, voice: Voice, rate: float) -> AsyncGenerator[bytes, None]:
        """
        Synthesize one utterance using Cartesia's TTS API.

        Yields:
            bytes: Audio chunks in PCM float32 little-endian format
        """
        ws = await self.client.tts.websocket()
        try:
            async for output in await ws.send(
                model_id=self.model_id,           # Cartesia's Sonic model
                transcript=text,                  # Text to synthesize
                voice={
                    "mode": "id",
                    "id": voice.id,
                    "experimental_controls": {"speed": rate_to_speed(rate)},
                },
                stream=True,                      # Enable streaming output
                output_format={
                    "container": "raw",           # Raw audio format
                    "encoding": "pcm_f32le",      # 32-bit float PCM little-endian
                    "sample_rate": self.sample_rate,
                },
            ):
                audio_bytes = output.audio  # Raw audio data
                if audio_bytes:
                    yield audio_bytes
        finally:
            await ws.close()

    async def say(self, text: str, voice: Voice, rate: float, pitch: float) -> None:
        self._cancelled = False
        chunks = []
        async for chunk in self._synthesize(text, voice, rate):
            if self._cancelled:
                raise SynthesisInterrupted(text)
            chunks.append(np.frombuffer(chunk, dtype='<f4'))
        if self._cancelled:
            raise SynthesisInterrupted(text)
        if not chunks:
            return

        samples = shift_pitch(np.concatenate(chunks), pitch)
        try:
            await self.player.play(samples)
        except asyncio.CancelledError:
            self.player.flush_and_stop()
            raise
        if self._cancelled:
            raise SynthesisInterrupted(text)
        print(f"[TTS] Synthesized: '{text}'")

    def cancel(self) -> None:
        self._cancelled = True
        self.player.flush_and_stop()

    async def close(self):
        self.player.flush_and_stop()
        await self.client.close()

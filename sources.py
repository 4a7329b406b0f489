# sources.py - Microphone input for the voice coach
"""
This module implements the scoped microphone handle.

RealTimeMicrophoneSource captures audio from the system microphone using
sounddevice. Each driver that needs the microphone (recognition and the
visualizer) opens its own instance: they are independent acquisitions of the
same physical device and are released independently.

Key features:
- Low-latency audio capture (100ms chunks)
- Cross-platform compatibility via sounddevice
- Thread-safe buffering between the PortAudio thread and asyncio
- Optional raw-sample listener for analysis (visualization)
"""

import asyncio
import threading
from collections import deque
from typing import AsyncGenerator, Callable, Optional

import numpy as np
import sounddevice as sd

from components import AudioSource
from errors import MicrophonePermissionError


class RealTimeMicrophoneSource(AudioSource):
    """
    Real-time microphone audio source implementation.

    The audio is captured in a separate thread and buffered in a thread-safe
    queue for consumption by the async pipeline. Use it as an async context
    manager to get deterministic release:

        async with RealTimeMicrophoneSource() as mic:
            async for chunk in mic.stream_audio():
                ...
    """

    def __init__(self,
                 sample_rate: int = 16000,
                 channels: int = 1,
                 chunk_duration_ms: int = 100,  # 100ms chunks
                 device: Optional[int] = None,
                 on_samples: Optional[Callable[[np.ndarray], None]] = None,
                 name: str = "MicSource"):
        """
        Args:
            sample_rate: Audio sample rate in Hz (16kHz is optimal for speech)
            channels: Number of audio channels (1 for mono, 2 for stereo)
            chunk_duration_ms: Duration of each audio chunk in milliseconds
            device: Audio device ID (None for system default)
            on_samples: Called from the audio thread with each float32 block
            name: Tag used in log lines
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_duration_ms = chunk_duration_ms
        self.device = device
        self.on_samples = on_samples
        self.name = name

        # Calculate samples per chunk based on sample rate and duration
        self.chunk_samples = int(sample_rate * chunk_duration_ms / 1000)

        # Thread-safe audio buffer for storing captured audio chunks
        self.audio_buffer = deque(maxlen=100)
        self.buffer_lock = threading.Lock()
        self.recording = False
        self.stream = None

    @property
    def is_open(self) -> bool:
        return self.stream is not None

    def _audio_callback(self, indata, frames, time, status):
        """
        Sounddevice audio input callback function, run on the PortAudio thread.
        """
        if status:
            print(f"[{self.name}] Recording status: {status}")

        if not self.recording:
            return

        if self.on_samples is not None:
            self.on_samples(indata[:, 0].copy())

        # Convert from float32 [-1.0, 1.0] to int16 PCM format
        audio_int16 = (np.clip(indata, -1.0, 1.0) * 32767).astype(np.int16)
        with self.buffer_lock:
            self.audio_buffer.append(audio_int16.tobytes())

    def open(self) -> None:
        """
        Acquire the microphone.

        Raises:
            MicrophonePermissionError: if the device is denied, busy or missing
        """
        if self.stream is not None:
            return
        try:
            self.stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=np.float32,
                callback=self._audio_callback,
                blocksize=self.chunk_samples,
                device=self.device,
                latency='low'  # Optimize for low latency
            )
            self.stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self.stream = None
            print(f"[{self.name}] Could not open microphone: {e}")
            raise MicrophonePermissionError(str(e)) from e
        self.recording = True
        print(f"[{self.name}] Started recording ({self.sample_rate}Hz, {self.chunk_duration_ms}ms chunks)")

    def close(self) -> None:
        """
        Stop audio recording and release the device. Safe to call twice.
        """
        self.recording = False
        stream, self.stream = self.stream, None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
            print(f"[{self.name}] Recording stopped")
        with self.buffer_lock:
            self.audio_buffer.clear()

    async def stream_audio(self) -> AsyncGenerator[bytes, None]:
        """
        Yield audio chunks while the microphone is open.

        Yields:
            bytes: Audio chunks in 16-bit PCM format
        """
        self.open()
        while self.recording:
            chunk = None
            with self.buffer_lock:
                if self.audio_buffer:
                    chunk = self.audio_buffer.popleft()
            if chunk is not None:
                yield chunk
            else:
                # Small delay to prevent busy waiting
                await asyncio.sleep(0.01)

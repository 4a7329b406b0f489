# visualizer.py - Audio visualization driver
"""
Opens its own microphone stream (independent from the one used for speech
recognition) and turns the most recent samples into a frequency-domain byte
array on every animation tick.

FrequencyAnalyser follows the Web Audio AnalyserNode: Blackman window,
exponential smoothing between frames, magnitudes in dB mapped from
[min_db, max_db] onto 0..255.
"""

import threading
from typing import Optional

import numpy as np

from components import AudioSource, AudioVisualizer
from errors import MicrophonePermissionError


class FrequencyAnalyser:
    def __init__(self, fft_size: int = 256, smoothing: float = 0.8,
                 min_db: float = -100.0, max_db: float = -30.0):
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 32")
        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self.window = np.blackman(fft_size).astype(np.float32)
        self._smoothed = np.zeros(self.bin_count, dtype=np.float64)

    @property
    def bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        self._smoothed[:] = 0.0

    def byte_frequency_data(self, samples: np.ndarray) -> np.ndarray:
        frame = np.zeros(self.fft_size, dtype=np.float32)
        tail = samples[-self.fft_size:]
        if len(tail):
            frame[-len(tail):] = tail

        spectrum = np.fft.rfft(frame * self.window)[:self.bin_count]
        magnitude = np.abs(spectrum) / self.fft_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * magnitude

        db = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        scaled = 255.0 * (db - self.min_db) / (self.max_db - self.min_db)
        return np.clip(scaled, 0, 255).astype(np.uint8)


class AudioVisualizationDriver(AudioVisualizer):
    def __init__(self, microphone: Optional[AudioSource] = None,
                 analyser: Optional[FrequencyAnalyser] = None,
                 sample_rate: int = 48000, device: Optional[int] = None):
        self.analyser = analyser or FrequencyAnalyser()
        if microphone is None:
            from sources import RealTimeMicrophoneSource
            microphone = RealTimeMicrophoneSource(
                sample_rate=sample_rate, chunk_duration_ms=20, device=device, name="Visualizer")
        self.microphone = microphone
        self.microphone.on_samples = self._on_samples
        self._samples = np.zeros(self.analyser.fft_size, dtype=np.float32)
        self._lock = threading.Lock()
        self.available = False
        self.error: Optional[str] = None

    def _on_samples(self, block: np.ndarray) -> None:
        # Runs on the PortAudio thread.
        with self._lock:
            self._samples = np.concatenate((self._samples, block))[-self.analyser.fft_size:]

    async def start(self) -> None:
        try:
            self.microphone.open()
        except MicrophonePermissionError as e:
            print(f"[Visualizer] Error setting up audio for visualizer: {e}")
            self.error = "Could not access microphone for visualizer."
            self.available = False
            return
        self.available = True
        self.error = None

    def stop(self) -> None:
        self.microphone.close()
        self.available = False
        self.analyser.reset()
        with self._lock:
            self._samples[:] = 0.0

    def frame(self) -> np.ndarray:
        if not self.available:
            return np.zeros(self.analyser.bin_count, dtype=np.uint8)
        with self._lock:
            samples = self._samples.copy()
        return self.analyser.byte_frequency_data(samples)

    @staticmethod
    def level(frame: np.ndarray) -> float:
        """Mean of a frame, 0..255."""
        return float(frame.mean()) if len(frame) else 0.0

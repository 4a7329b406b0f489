# audio_player.py - Real-time Audio Playback using SoundDevice
"""
This module implements audio playback for the coach's voice.

The SoundDeviceAudioPlayer class provides:
- Buffered playback of synthesized speech through a callback stream
- A minimum pre-buffer before output starts, to avoid dropouts
- Underrun detection
- Immediate flush for cancellation (pause, barge-in, new utterance)

The PortAudio callback thread only touches the lock-protected buffer;
play() waits on the asyncio side until the buffer has drained.
"""

import asyncio
import threading
from collections import deque
from typing import Optional

import numpy as np
import sounddevice as sd

from components import AudioPlayer


class SoundDeviceAudioPlayer(AudioPlayer):
    """
    Real-time audio player implementation using sounddevice.
    """

    def __init__(self,
                 sample_rate: int = 24000,
                 channels: int = 1,
                 dtype: str = 'float32',
                 buffer_size: int = 2048,  # Audio callback buffer size
                 device: Optional[int] = None,
                 min_buffer_samples: int = 4800):  # Minimum buffer before playback (200ms)
        """
        Initialize the real-time audio player.

        Args:
            sample_rate: Audio sample rate in Hz
            channels: Number of audio channels (1=mono, 2=stereo)
            dtype: Audio data type ('float32' or 'int16')
            buffer_size: Size of sounddevice callback buffer
            device: Audio device ID (None for system default)
            min_buffer_samples: Minimum samples to buffer before starting playback
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.dtype = dtype
        self.buffer_size = buffer_size
        self.device = device
        self.min_buffer_samples = min_buffer_samples

        # Thread-safe audio buffer queue
        self.audio_buffer = deque()
        self.buffer_lock = threading.Lock()

        # Playback state and statistics
        self.is_playing = False
        self.stream = None
        self.total_samples_buffered = 0
        self.underrun_count = 0
        self.started_playback = False

    def _audio_callback(self, outdata, frames, time, status):
        """
        Sounddevice audio output callback function, run on the audio thread.
        """
        if status:
            print(f"[AudioPlayer] Status: {status}")

        with self.buffer_lock:
            # Wait for minimum buffer before starting playback
            if not self.started_playback and self.total_samples_buffered < self.min_buffer_samples:
                outdata.fill(0)
                return

            self.started_playback = True
            samples_needed = frames
            output_pos = 0

            # Fill output buffer from audio queue
            while samples_needed > 0 and self.audio_buffer:
                audio_chunk = self.audio_buffer[0]  # Peek at first chunk

                if len(audio_chunk) <= samples_needed:
                    chunk_size = len(audio_chunk)
                    outdata[output_pos:output_pos + chunk_size] = audio_chunk.reshape(-1, self.channels)
                    self.audio_buffer.popleft()
                else:
                    chunk_size = samples_needed
                    outdata[output_pos:output_pos + chunk_size] = audio_chunk[:chunk_size].reshape(-1, self.channels)
                    # Keep remaining data
                    self.audio_buffer[0] = audio_chunk[chunk_size:]

                self.total_samples_buffered -= chunk_size
                output_pos += chunk_size
                samples_needed -= chunk_size

            # Fill remaining with silence if needed
            if samples_needed > 0:
                outdata[output_pos:] = 0
                if self.audio_buffer:
                    self.underrun_count += 1
                    if self.underrun_count % 10 == 1:  # Log every 10th underrun
                        print(f"[AudioPlayer] Buffer underrun #{self.underrun_count}, missing {samples_needed} samples")

    def _start_stream(self):
        """
        Start the audio output stream if it is not running.
        """
        if self.stream is None or not self.stream.active:
            self.stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype=self.dtype,
                callback=self._audio_callback,
                blocksize=self.buffer_size,
                device=self.device,
                latency='high'  # Use high latency to reduce buffer underruns
            )
            self.stream.start()
            self.is_playing = True
            print(f"[AudioPlayer] Audio stream started with blocksize={self.buffer_size}")

    def _stop_stream(self):
        """
        Stop the audio output stream and clean up resources.
        """
        stream, self.stream = self.stream, None
        if stream is not None:
            stream.stop()
            stream.close()
        self.is_playing = False

    def _add_audio_chunk(self, audio_data: np.ndarray):
        with self.buffer_lock:
            self.audio_buffer.append(audio_data)
            self.total_samples_buffered += len(audio_data)

    def _to_array(self, audio) -> np.ndarray:
        if isinstance(audio, bytes):
            # Synthesized audio arrives as float32 little-endian PCM
            audio = np.frombuffer(audio, dtype='<f4')
        if self.dtype == 'int16' and audio.dtype != np.int16:
            audio = (np.clip(audio, -1.0, 1.0) * 32767).astype(np.int16)
        return audio.astype(self.dtype, copy=False)

    async def play(self, samples) -> None:
        """
        Play one block of audio and wait until it has been played.

        Args:
            samples: float32 numpy array or float32 little-endian bytes
        """
        audio_array = self._to_array(samples)
        if len(audio_array) == 0:
            return

        with self.buffer_lock:
            self.started_playback = False
        self._add_audio_chunk(audio_array)
        # Short utterances must still play even if below the pre-buffer size.
        with self.buffer_lock:
            if self.total_samples_buffered < self.min_buffer_samples:
                self.started_playback = True
        self._start_stream()

        while True:
            with self.buffer_lock:
                if not self.audio_buffer:
                    break
            await asyncio.sleep(0.02)
        # Let the device play out its own latency buffer.
        if self.stream is not None:
            await asyncio.sleep(self.stream.latency)

    def flush_and_stop(self) -> None:
        """
        Immediately clear the buffer and stop playback.
        """
        with self.buffer_lock:
            self.audio_buffer.clear()
            self.total_samples_buffered = 0
            self.started_playback = False
        self._stop_stream()


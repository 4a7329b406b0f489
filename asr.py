# asr.py - Automatic Speech Recognition using Cartesia API
"""
This module implements speech recognition using Cartesia's streaming ASR service.

The CartesiaASR class transcribes ONE utterance per call, the way a
non-continuous browser recognizer does:
- Audio chunks are streamed to the service over a WebSocket
- The first final transcript ends the utterance
- No speech within `no_speech_timeout` raises NoSpeechDetected
- An utterance is capped at `max_utterance_secs`
- A stop request flushes the service and returns what was heard so far

The implementation uses Cartesia's "ink-whisper" model which is based on OpenAI's Whisper
but optimized for real-time streaming applications.
"""

import asyncio
from typing import AsyncIterator, Callable, List, Optional

from cartesia import AsyncCartesia

from components import ASRInterface
from errors import NetworkUnavailable, NoSpeechDetected


class _Utterance:
    def __init__(self):
        self.final_parts: List[str] = []
        self.partial = ""

    @property
    def heard(self) -> bool:
        return bool(self.final_parts or self.partial)

    @property
    def text(self) -> str:
        if self.final_parts:
            return " ".join(self.final_parts)
        return self.partial


class CartesiaASR(ASRInterface):
    """
    Cartesia-powered Automatic Speech Recognition implementation.

    Features:
    - Single-utterance, non-continuous recognition in one fixed language
    - WebSocket-based communication for low latency
    - Voice activity endpointing done by the service
    """

    def __init__(self,
                 api_key: Optional[str] = None,
                 model: str = "ink-whisper",
                 language: str = "en",
                 sample_rate: int = 16000,
                 no_speech_timeout: float = 8.0,
                 max_utterance_secs: float = 20.0,
                 client=None):
        """
        Initialize the Cartesia ASR client.

        Args:
            api_key: Cartesia API key
            model: Cartesia STT model
            language: Recognition language
            sample_rate: Sample rate of the PCM audio sent to the service
            no_speech_timeout: Seconds without any transcript before giving up
            max_utterance_secs: Upper bound on one utterance
        """
        if client is None:
            if not api_key:
                raise ValueError("CARTESIA_API_KEY not found in environment")
            client = AsyncCartesia(api_key=api_key)
        self.client = client
        self.model = model
        self.language = language
        self.sample_rate = sample_rate
        self.no_speech_timeout = no_speech_timeout
        self.max_utterance_secs = max_utterance_secs

    async def _connect(self):
        try:
            return await self.client.stt.websocket(
                model=self.model,
                language=self.language,
                encoding="pcm_s16le",         # 16-bit PCM little-endian format
                sample_rate=self.sample_rate,
                min_volume=0.15,              # Volume threshold for voice activity detection. Range: 0.0-1.0.
                max_silence_duration_secs=1.5,  # Silence that ends the utterance.
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            print(f"[ASR] Could not connect to speech service: {e}")
            raise NetworkUnavailable(str(e)) from e

    async def recognize(self, audio: AsyncIterator[bytes],
                        stop_requested: Callable[[], bool]) -> str:
        """
        Transcribe one utterance.

        Args:
            audio: Audio chunks (16-bit PCM at `sample_rate`)
            stop_requested: Polled between chunks; True flushes and ends the utterance

        Returns:
            str: The transcript, empty if stopped before anything was said
        """
        ws = await self._connect()
        utterance = _Utterance()

        async def sender():
            """
            Send audio chunks to the ASR service until stopped.
            """
            try:
                async for chunk in audio:
                    if stop_requested():
                        break
                    await ws.send(chunk)
                # Flush whatever the service is still holding and end the session.
                await ws.send("finalize")
                await ws.send("done")
            except (ConnectionError, OSError) as e:
                print(f"[ASR Sender] Error: {e}")
                raise NetworkUnavailable(str(e)) from e

        async def receiver():
            """
            Receive results until the first final transcript (or 'done').
            """
            async for result in ws.receive():
                if result['type'] == 'transcript':
                    text = result['text'].strip()
                    if not text:
                        continue
                    if result.get('is_final', False):
                        utterance.final_parts.append(text)
                        print(f"[ASR] Final transcript: '{text}'")
                        return
                    utterance.partial = text
                elif result['type'] == 'done':
                    return
                elif result['type'] == 'error':
                    raise NetworkUnavailable(str(result.get('message', result)))

        sender_task = asyncio.create_task(sender())
        receiver_task = asyncio.create_task(receiver())

        async def wait_for_receiver(timeout: float) -> bool:
            """
            Wait up to `timeout` for the receiver. A failed sender ends the wait
            with its error, a sender that finished cleanly keeps it going.
            """
            loop = asyncio.get_running_loop()
            deadline = loop.time() + timeout
            while not receiver_task.done():
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return False
                waiting = {receiver_task} if sender_task.done() else {sender_task, receiver_task}
                await asyncio.wait(waiting, timeout=remaining,
                                   return_when=asyncio.FIRST_COMPLETED)
                if sender_task.done() and not sender_task.cancelled():
                    sender_task.result()
            return True

        try:
            done = await wait_for_receiver(self.no_speech_timeout)
            if not done and not utterance.heard and not stop_requested():
                raise NoSpeechDetected(f"No speech within {self.no_speech_timeout:.0f}s")
            if not done:
                done = await wait_for_receiver(
                    max(0.0, self.max_utterance_secs - self.no_speech_timeout))
            if done:
                # Re-raise receiver failures.
                receiver_task.result()
            return utterance.text
        except (ConnectionError, OSError) as e:
            print(f"[ASR Receiver] Error: {e}")
            raise NetworkUnavailable(str(e)) from e
        finally:
            for task in (sender_task, receiver_task):
                task.cancel()
            await asyncio.gather(sender_task, receiver_task, return_exceptions=True)
            await ws.close()

    async def close(self):
        await self.client.close()
